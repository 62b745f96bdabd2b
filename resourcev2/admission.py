"""Admission hook that applies the resource rewrite to incoming Pods."""

import logging
from collections.abc import MutableMapping
from dataclasses import dataclass
from typing import Any

from .config import (
    HANDLED_OPERATIONS,
    INTERCEPTED_RESOURCE,
    POD_GROUP,
    POD_RESOURCE,
)
from .errors import AdmissionError
from .models import Pod
from .rewriter import UidSource, new_uid, rewrite

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GroupVersionResource:
    """Identifies the API resource an admission request is for."""
    group: str
    version: str
    resource: str

    def group_resource(self) -> tuple:
        return self.group, self.resource


@dataclass
class AdmissionAttributes:
    """The parts of an admission request a plugin gets to see."""
    operation: str
    resource: GroupVersionResource
    object: Any
    subresource: str = ""
    name: str = ""
    namespace: str = ""


@dataclass
class AdmissionResult:
    """Outcome of an admission call: the admitted object or a typed failure."""
    allowed: bool
    object: Any = None
    code: int = 200
    message: str = ""

    @classmethod
    def ok(cls, obj: Any) -> "AdmissionResult":
        return cls(allowed=True, object=obj)

    @classmethod
    def from_error(cls, error: AdmissionError) -> "AdmissionResult":
        return cls(allowed=False, code=error.code, message=error.message)


class Handler:
    """Base for plugins that only handle a subset of operations."""

    def __init__(self, *operations: str):
        self.operations = frozenset(operations)

    def handles(self, operation: str) -> bool:
        return operation in self.operations


class ResourceV2Plugin(Handler):
    """
    Mutating admission plugin for Pods.

    Moves the intercepted device resource out of each container's requests
    and limits into extended resources owned by the Pod.
    """

    def __init__(
        self,
        intercepted_resource: str = INTERCEPTED_RESOURCE,
        new_uid: UidSource = new_uid
    ):
        """
        Initialize the plugin.

        Args:
            intercepted_resource: Resource name moved to extended resources
            new_uid: Source of unique extended resource names
        """
        super().__init__(*HANDLED_OPERATIONS)
        self.intercepted_resource = intercepted_resource
        self.new_uid = new_uid

    def applies_to(self, attributes: AdmissionAttributes) -> bool:
        """Check if a request is for a Pod itself, not one of its subresources."""
        if not self.handles(attributes.operation):
            return False
        if attributes.subresource:
            return False
        return attributes.resource.group_resource() == (POD_GROUP, POD_RESOURCE)

    def admit(self, attributes: AdmissionAttributes) -> AdmissionResult:
        """
        Rewrite the Pod carried by an admission request.

        Requests for other resources or subresources are admitted unchanged.
        Mappings are rewritten in place; any other accepted object is replaced
        on ``attributes`` by its rewritten mapping form.

        Args:
            attributes: The admission request

        Returns:
            The admitted object, or a failure if it is not shaped like a Pod
        """
        if not self.applies_to(attributes):
            return AdmissionResult.ok(attributes.object)

        obj = attributes.object
        try:
            pod = Pod.from_object(obj)
        except AdmissionError as e:
            logger.warning(
                f"Rejecting {attributes.operation} of {self._describe(attributes)}: {e.message}"
            )
            return AdmissionResult.from_error(e)

        before = len(pod.extended_resources)
        try:
            rewrite(pod, self.intercepted_resource, self.new_uid)
        except AdmissionError as e:
            logger.error(f"Failed to rewrite {self._describe(attributes)}: {e.message}")
            return AdmissionResult.from_error(e)

        if isinstance(obj, MutableMapping):
            pod.write_to(obj)
        else:
            obj = pod.to_dict()
            attributes.object = obj

        added = len(pod.extended_resources) - before
        if added:
            logger.info(
                f"Pod {self._describe(attributes)}: moved {self.intercepted_resource} "
                f"of {added} container(s) to extended resources"
            )
        return AdmissionResult.ok(obj)

    @staticmethod
    def _describe(attributes: AdmissionAttributes) -> str:
        namespace = attributes.namespace or "default"
        return f"{namespace}/{attributes.name or '<unnamed>'}"
