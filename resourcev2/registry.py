"""Registry of admission plugin factories and the ResourceV2 registration."""

import logging
import threading
from typing import IO, Any, Callable, Dict, List, Optional

import yaml

from .admission import Handler, ResourceV2Plugin
from .config import CONFIG_INTERCEPTED_RESOURCE, PLUGIN_NAME
from .errors import PluginConfigError
from .utils import load_manifest

logger = logging.getLogger(__name__)

PluginFactory = Callable[[Optional[IO[str]]], Handler]


class Plugins:
    """Thread-safe registry mapping plugin names to factories."""

    def __init__(self):
        self._factories: Dict[str, PluginFactory] = {}
        self._lock = threading.RLock()

    def register(self, name: str, factory: PluginFactory) -> None:
        """
        Register a plugin factory.

        Args:
            name: Plugin name
            factory: Callable taking an optional config stream and returning the plugin

        Raises:
            ValueError: If a plugin with this name is already registered
        """
        with self._lock:
            if name in self._factories:
                raise ValueError(f"admission plugin {name!r} is already registered")
            self._factories[name] = factory
            logger.debug(f"Registered admission plugin: {name}")

    def registered(self) -> List[str]:
        with self._lock:
            return sorted(self._factories)

    def new_plugin(self, name: str, config: Optional[IO[str]] = None) -> Handler:
        """
        Create a plugin instance by name.

        Raises:
            KeyError: If no plugin with this name is registered
        """
        with self._lock:
            factory = self._factories.get(name)
        if factory is None:
            raise KeyError(f"unknown admission plugin {name!r}")
        return factory(config)


def load_plugin_config(stream: Optional[IO[str]]) -> Dict[str, Any]:
    """
    Parse the optional ResourceV2 configuration.

    The stream holds a JSON or YAML mapping. A missing or empty stream yields
    an empty configuration.

    Raises:
        PluginConfigError: If the configuration is malformed
    """
    if stream is None:
        return {}

    text = stream.read()
    if not text.strip():
        return {}

    try:
        data = load_manifest(text)
    except yaml.YAMLError as e:
        raise PluginConfigError(f"invalid {PLUGIN_NAME} configuration: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise PluginConfigError(f"{PLUGIN_NAME} configuration must be a mapping")

    for key in data:
        if not isinstance(key, str):
            raise PluginConfigError(f"{PLUGIN_NAME} configuration keys must be strings, got {key!r}")

    unknown = set(data) - {CONFIG_INTERCEPTED_RESOURCE}
    if unknown:
        raise PluginConfigError(f"unknown {PLUGIN_NAME} configuration keys: {', '.join(sorted(unknown))}")

    resource = data.get(CONFIG_INTERCEPTED_RESOURCE)
    if resource is not None and (not isinstance(resource, str) or not resource):
        raise PluginConfigError(f"{CONFIG_INTERCEPTED_RESOURCE} must be a non-empty string")

    return data


def new_resource_v2(config: Optional[IO[str]] = None) -> ResourceV2Plugin:
    settings = load_plugin_config(config)
    if CONFIG_INTERCEPTED_RESOURCE in settings:
        return ResourceV2Plugin(intercepted_resource=settings[CONFIG_INTERCEPTED_RESOURCE])
    return ResourceV2Plugin()


def register(plugins: Plugins) -> None:
    """Register the ResourceV2 plugin factory."""
    plugins.register(PLUGIN_NAME, new_resource_v2)
