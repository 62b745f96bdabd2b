"""Typed view of the Pod fields rewritten by the ResourceV2 plugin."""

import copy
from collections.abc import Mapping, MutableMapping
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from kubernetes.client import ApiClient, V1Pod

from .config import (
    POD_KIND,
    EXTENDED_RESOURCES_FIELD,
    EXTENDED_RESOURCE_REQUESTS_FIELD,
)
from .errors import BadRequestError

# resource name -> quantity, quantities are carried as-is
ResourceList = Dict[str, Any]


def _type_name(value: Any) -> str:
    return type(value).__name__


def _expect_mapping(value: Any, where: str, writable: bool = False) -> Mapping:
    if not isinstance(value, Mapping):
        raise BadRequestError(f"expected a mapping at {where} but got {_type_name(value)}")
    if writable and not isinstance(value, MutableMapping):
        raise BadRequestError(f"expected a writable mapping at {where} but got {_type_name(value)}")
    return value


def _optional_mapping(parent: Mapping, key: str, where: str, writable: bool = False) -> Optional[Mapping]:
    value = parent.get(key)
    if value is None:
        return None
    return _expect_mapping(value, f"{where}.{key}", writable)


def _optional_list(parent: Mapping, key: str, where: str) -> Optional[list]:
    value = parent.get(key)
    if value is None:
        return None
    if not isinstance(value, list):
        raise BadRequestError(f"expected a list at {where}.{key} but got {_type_name(value)}")
    return value


def _plain_copy(value: Any) -> Any:
    """Deep copy with every mapping turned into a dict and every list copied."""
    if isinstance(value, Mapping):
        return {key: _plain_copy(item) for key, item in value.items()}
    if isinstance(value, list):
        return [_plain_copy(item) for item in value]
    return copy.deepcopy(value)


def _resource_list(parent: Mapping, key: str, where: str) -> Optional[ResourceList]:
    value = _optional_mapping(parent, key, where)
    if value is None:
        return None
    for name in value:
        if not isinstance(name, str):
            raise BadRequestError(
                f"expected resource names at {where}.{key} to be strings but got {_type_name(name)}"
            )
    return dict(value)


@dataclass
class ResourceRequirements:
    """Requests and limits of a container or extended resource.

    ``None`` means the map is unset; an empty dict means it is set but empty.
    """
    requests: Optional[ResourceList] = None
    limits: Optional[ResourceList] = None

    @classmethod
    def from_dict(cls, data: Mapping, where: str = "resources") -> "ResourceRequirements":
        """Create ResourceRequirements from a serialized ``resources`` mapping."""
        return cls(
            requests=_resource_list(data, "requests", where),
            limits=_resource_list(data, "limits", where),
        )

    def to_dict(self) -> Dict[str, ResourceList]:
        result = {}
        if self.requests is not None:
            result["requests"] = dict(self.requests)
        if self.limits is not None:
            result["limits"] = dict(self.limits)
        return result

    def write_to(self, target: MutableMapping) -> None:
        """Overwrite the maps that are set; unset maps are left alone."""
        for key, value in self.to_dict().items():
            target[key] = value


@dataclass
class Container:
    """The resource-related fields of a single container."""
    name: str = ""
    resources: ResourceRequirements = field(default_factory=ResourceRequirements)
    extended_resource_requests: Optional[List[str]] = None

    @classmethod
    def from_dict(cls, data: Any, where: str = "container", writable: bool = False) -> "Container":
        """
        Create a Container from its serialized form, validating its shape.

        With ``writable`` the container and its resources must accept
        assignment, so the rewrite can be written back into them.
        """
        data = _expect_mapping(data, where, writable)
        resources = _optional_mapping(data, "resources", where, writable) or {}

        refs = _optional_list(data, EXTENDED_RESOURCE_REQUESTS_FIELD, where)
        if refs is not None:
            for ref in refs:
                if not isinstance(ref, str):
                    raise BadRequestError(
                        f"expected strings at {where}.{EXTENDED_RESOURCE_REQUESTS_FIELD} "
                        f"but got {_type_name(ref)}"
                    )
            refs = list(refs)

        return cls(
            name=str(data.get("name") or ""),
            resources=ResourceRequirements.from_dict(resources, f"{where}.resources"),
            extended_resource_requests=refs,
        )

    def write_to(self, target: MutableMapping) -> None:
        resources = self.resources.to_dict()
        if resources:
            if target.get("resources") is None:
                target["resources"] = {}
            self.resources.write_to(target["resources"])

        if self.extended_resource_requests is not None:
            target[EXTENDED_RESOURCE_REQUESTS_FIELD] = list(self.extended_resource_requests)


@dataclass
class PodExtendedResource:
    """A pod-level resource allocation that containers reference by name."""
    name: str
    resources: ResourceRequirements = field(default_factory=ResourceRequirements)

    @classmethod
    def from_dict(cls, data: Any, where: str = EXTENDED_RESOURCES_FIELD) -> "PodExtendedResource":
        data = _expect_mapping(data, where)
        name = data.get("name")
        if not isinstance(name, str):
            raise BadRequestError(f"expected a string at {where}.name but got {_type_name(name)}")
        resources = _optional_mapping(data, "resources", where) or {}
        return cls(name=name, resources=ResourceRequirements.from_dict(resources, f"{where}.resources"))

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "resources": self.resources.to_dict()}


@dataclass
class Pod:
    """
    The parts of a Pod the plugin reads and writes.

    ``source`` holds the mapping the Pod was parsed from. Fields this class
    does not model are only ever carried through from it.
    """
    name: str = ""
    namespace: str = ""
    init_containers: List[Container] = field(default_factory=list)
    containers: List[Container] = field(default_factory=list)
    extended_resources: List[PodExtendedResource] = field(default_factory=list)
    source: Optional[Dict[str, Any]] = field(default=None, repr=False, compare=False)

    @classmethod
    def from_object(cls, obj: Any) -> "Pod":
        """
        Parse an admission object into a Pod.

        Args:
            obj: A Pod as a mapping in API (camelCase) form, or a kubernetes
                client ``V1Pod``

        Returns:
            The parsed Pod

        Raises:
            BadRequestError: If the object does not have the shape of a Pod
        """
        if not isinstance(obj, Mapping):
            if not isinstance(obj, V1Pod):
                raise BadRequestError(f"expected {POD_KIND} but got {_type_name(obj)}")
            obj = ApiClient().sanitize_for_serialization(obj)

        # Mutable input is rewritten in place, so every level written to must be mutable
        writable = isinstance(obj, MutableMapping)

        kind = obj.get("kind")
        if kind is not None and kind != POD_KIND:
            raise BadRequestError(f"expected {POD_KIND} but got {kind}")

        metadata = _optional_mapping(obj, "metadata", "pod") or {}
        spec = _expect_mapping(obj.get("spec"), "spec", writable)

        init_containers = [
            Container.from_dict(item, f"spec.initContainers[{i}]", writable)
            for i, item in enumerate(_optional_list(spec, "initContainers", "spec") or [])
        ]
        containers = [
            Container.from_dict(item, f"spec.containers[{i}]", writable)
            for i, item in enumerate(_optional_list(spec, "containers", "spec") or [])
        ]
        extended_resources = [
            PodExtendedResource.from_dict(item, f"spec.{EXTENDED_RESOURCES_FIELD}[{i}]")
            for i, item in enumerate(_optional_list(spec, EXTENDED_RESOURCES_FIELD, "spec") or [])
        ]

        return cls(
            name=str(metadata.get("name") or ""),
            namespace=str(metadata.get("namespace") or ""),
            init_containers=init_containers,
            containers=containers,
            extended_resources=extended_resources,
            source=obj,
        )

    @property
    def key(self) -> str:
        return f"{self.namespace or 'default'}/{self.name or '<unnamed>'}"

    def write_to(self, target: MutableMapping) -> None:
        """
        Write container resources, references and new records into ``target``.

        ``target`` must have the layout of the mapping this Pod was parsed
        from. Records already present in ``target`` are kept as they are and
        only the records appended since parsing are added.
        """
        spec = target["spec"]

        for container, raw in zip(self.init_containers, spec.get("initContainers") or []):
            container.write_to(raw)
        for container, raw in zip(self.containers, spec.get("containers") or []):
            container.write_to(raw)

        existing = spec.get(EXTENDED_RESOURCES_FIELD)
        known = len(existing) if existing is not None else 0
        added = [record.to_dict() for record in self.extended_resources[known:]]
        if not added:
            return
        if existing is None:
            spec[EXTENDED_RESOURCES_FIELD] = added
        else:
            existing.extend(added)

    def to_dict(self) -> Dict[str, Any]:
        """Return a rewritten deep copy of the source mapping."""
        if self.source is None:
            raise ValueError(f"Pod {self.key} has no source object to serialize")
        result = _plain_copy(self.source)
        self.write_to(result)
        return result
