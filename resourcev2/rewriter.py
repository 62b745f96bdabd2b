"""Moves the intercepted device resource of each container into pod-level extended resources."""

import copy
import logging
import uuid
from typing import Any, Callable

from .config import INTERCEPTED_RESOURCE, MAX_UID_ATTEMPTS
from .errors import DuplicateIdentifierError
from .models import Container, Pod, PodExtendedResource, ResourceRequirements
from .utils import delete_resource, fill_requests

logger = logging.getLogger(__name__)

UidSource = Callable[[], str]


def new_uid() -> str:
    return str(uuid.uuid4())


def new_extended_resource(resource_name: str, quantity: Any, uid: str) -> PodExtendedResource:
    """Create an extended resource holding ``quantity`` of ``resource_name`` as request and limit."""
    return PodExtendedResource(
        name=uid,
        resources=ResourceRequirements(
            requests={resource_name: copy.copy(quantity)},
            limits={resource_name: copy.copy(quantity)},
        ),
    )


def _unique_uid(pod: Pod, new_uid: UidSource) -> str:
    taken = {record.name for record in pod.extended_resources}
    for _ in range(MAX_UID_ATTEMPTS):
        uid = new_uid()
        if uid not in taken:
            return uid
        logger.warning(f"Pod {pod.key}: extended resource name {uid} already in use, regenerating")
    raise DuplicateIdentifierError(
        f"could not generate an unused extended resource name after {MAX_UID_ATTEMPTS} attempts"
    )


def _rewrite_container(
    pod: Pod,
    container: Container,
    intercepted_resource: str,
    new_uid: UidSource
) -> None:
    # Only containers whose limits were defaulted from requests are scanned
    if not fill_requests(container):
        return

    for resource_name, quantity in list(container.resources.limits.items()):
        if resource_name != intercepted_resource:
            continue

        uid = _unique_uid(pod, new_uid)
        container.extended_resource_requests = [uid]
        pod.extended_resources.append(new_extended_resource(resource_name, quantity, uid))
        delete_resource(container.resources, resource_name)

        logger.debug(
            f"Pod {pod.key}: moved {resource_name}={quantity} of container "
            f"{container.name} to extended resource {uid}"
        )


def rewrite(
    pod: Pod,
    intercepted_resource: str = INTERCEPTED_RESOURCE,
    new_uid: UidSource = new_uid
) -> None:
    """
    Rewrite the resources of every container of a pod in place.

    Init containers are processed before regular containers, each in
    declaration order. For every container with requests set, limits are
    defaulted to the requests. Then each intercepted resource found in the
    limits is removed from the container and replaced by a reference to a new
    extended resource appended to the pod.

    Args:
        pod: The pod to rewrite
        intercepted_resource: Name of the resource moved to extended resources
        new_uid: Source of unique names for new extended resources
    """
    for container in pod.init_containers:
        _rewrite_container(pod, container, intercepted_resource, new_uid)

    for container in pod.containers:
        _rewrite_container(pod, container, intercepted_resource, new_uid)
