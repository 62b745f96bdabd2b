"""Utility functions for resource maps and manifest serialization."""

import json
from typing import Any, Dict, Optional

import yaml

from .models import Container, ResourceRequirements


def fill_requests(container: Container) -> bool:
    """
    Default a container's limits to its requests.

    If requests are set and non-empty, limits are replaced by a copy of the
    requests. Otherwise the container is left alone.

    Returns:
        True if the limits were defaulted
    """
    requests = container.resources.requests
    if not requests:
        return False

    container.resources.limits = dict(requests)
    return True


def delete_resource(resources: ResourceRequirements, resource_name: str) -> None:
    """Remove a resource from both the requests and the limits, where present."""
    if resources.requests is not None:
        resources.requests.pop(resource_name, None)

    if resources.limits is not None:
        resources.limits.pop(resource_name, None)


def load_manifest(text: str) -> Optional[Dict[str, Any]]:
    """
    Load a single JSON or YAML manifest.

    JSON is a subset of YAML, so both go through the YAML loader.
    """
    return yaml.safe_load(text)


def serialize_manifest(obj: Dict[str, Any], output_format: str = "yaml") -> str:
    """Serialize a manifest to YAML or indented JSON."""
    if output_format == "json":
        return json.dumps(obj, indent=2)
    return yaml.safe_dump(obj, default_flow_style=False, sort_keys=False)
