"""Tests for the ResourceV2 admission hook."""

import copy
import logging
from types import MappingProxyType

import pytest
from kubernetes import client

from factories import GPU, make_container, make_pod
from resourcev2.admission import (
    AdmissionAttributes,
    AdmissionResult,
    GroupVersionResource,
    Handler,
    ResourceV2Plugin,
)
from resourcev2.errors import BadRequestError

PODS = GroupVersionResource(group="", version="v1", resource="pods")


def _attributes(obj, operation="CREATE", resource=PODS, subresource=""):
    return AdmissionAttributes(
        operation=operation,
        resource=resource,
        object=obj,
        subresource=subresource,
        name="trainer",
        namespace="ml",
    )


@pytest.fixture
def plugin(sequential_uids):
    return ResourceV2Plugin(new_uid=sequential_uids)


def test_handler_operations() -> None:
    handler = Handler("CREATE")

    assert handler.handles("CREATE")
    assert not handler.handles("DELETE")


def test_plugin_handles_create_and_update(plugin) -> None:
    assert plugin.handles("CREATE")
    assert plugin.handles("UPDATE")
    assert not plugin.handles("DELETE")
    assert not plugin.handles("CONNECT")


@pytest.mark.parametrize("operation", ["CREATE", "UPDATE"])
def test_admit_rewrites_pod_in_place(plugin, operation) -> None:
    manifest = make_pod(containers=[make_container("app", requests={GPU: "1", "cpu": "1"})])

    result = plugin.admit(_attributes(manifest, operation=operation))

    assert result == AdmissionResult(allowed=True, object=manifest)
    assert result.object is manifest
    container = manifest["spec"]["containers"][0]
    assert container["resources"] == {"requests": {"cpu": "1"}, "limits": {"cpu": "1"}}
    assert container["extendedResourceRequests"] == ["uid-0"]
    assert manifest["spec"]["extendedResources"] == [
        {"name": "uid-0", "resources": {"requests": {GPU: "1"}, "limits": {GPU: "1"}}}
    ]


@pytest.mark.parametrize(
    ("operation", "resource", "subresource"),
    [
        ("DELETE", PODS, ""),
        ("CONNECT", PODS, ""),
        ("CREATE", PODS, "status"),
        ("UPDATE", PODS, "binding"),
        ("CREATE", GroupVersionResource(group="", version="v1", resource="services"), ""),
        ("CREATE", GroupVersionResource(group="apps", version="v1", resource="pods"), ""),
    ],
)
def test_admit_declines_other_requests(plugin, operation, resource, subresource) -> None:
    """Requests that are not for a Pod itself pass through untouched."""

    manifest = make_pod(containers=[make_container("app", requests={GPU: "1"})])
    original = copy.deepcopy(manifest)

    result = plugin.admit(_attributes(manifest, operation, resource, subresource))

    assert result.allowed
    assert result.object is manifest
    assert manifest == original


def test_admit_declines_non_pod_objects_on_other_resources(plugin) -> None:
    """Shape is only checked for requests the plugin applies to."""

    services = GroupVersionResource(group="", version="v1", resource="services")
    result = plugin.admit(_attributes("anything", resource=services))

    assert result.allowed
    assert result.object == "anything"


def test_admit_rejects_malformed_pod(plugin, caplog) -> None:
    manifest = {"kind": "Pod", "spec": {"containers": [{"name": "app", "resources": "lots"}]}}
    original = copy.deepcopy(manifest)

    with caplog.at_level(logging.WARNING):
        result = plugin.admit(_attributes(manifest))

    assert not result.allowed
    assert result.code == BadRequestError.code
    assert "spec.containers[0].resources" in result.message
    assert manifest == original
    assert "Rejecting CREATE of ml/trainer" in caplog.text


def test_admit_rejects_wrong_object_type(plugin) -> None:
    result = plugin.admit(_attributes(42))

    assert result == AdmissionResult(allowed=False, code=400, message="expected Pod but got int")


def test_malformed_later_container_leaves_earlier_ones_untouched(plugin) -> None:
    """Shape checks cover the whole Pod before anything is mutated."""

    manifest = make_pod(
        containers=[make_container("app", requests={GPU: "1"}), {"name": "bad", "resources": {"limits": []}}],
    )
    original = copy.deepcopy(manifest)

    result = plugin.admit(_attributes(manifest))

    assert not result.allowed
    assert manifest == original


def test_identifier_failure_leaves_pod_untouched() -> None:
    plugin = ResourceV2Plugin(new_uid=lambda: "same")
    manifest = make_pod(
        containers=[make_container("a", requests={GPU: "1"}), make_container("b", requests={GPU: "1"})],
    )
    original = copy.deepcopy(manifest)

    result = plugin.admit(_attributes(manifest))

    assert not result.allowed
    assert result.code == 500
    assert manifest == original


def test_admit_replaces_client_model_with_mapping(plugin) -> None:
    v1_pod = client.V1Pod(
        kind="Pod",
        metadata=client.V1ObjectMeta(name="trainer"),
        spec=client.V1PodSpec(
            containers=[
                client.V1Container(name="app", resources=client.V1ResourceRequirements(requests={GPU: "2"}))
            ]
        ),
    )
    attributes = _attributes(v1_pod)

    result = plugin.admit(attributes)

    assert result.allowed
    assert attributes.object is result.object
    assert result.object["spec"]["containers"][0]["extendedResourceRequests"] == ["uid-0"]
    assert result.object["spec"]["extendedResources"][0]["resources"]["limits"] == {GPU: "2"}


def test_admit_logs_rewrite(plugin, caplog) -> None:
    manifest = make_pod(containers=[make_container("app", requests={GPU: "1"})])

    with caplog.at_level(logging.INFO, logger="resourcev2"):
        plugin.admit(_attributes(manifest))

    assert "moved nvidia.com/gpu of 1 container(s)" in caplog.text


def test_admit_without_gpu_is_quiet(plugin, caplog) -> None:
    manifest = make_pod(containers=[make_container("app", requests={"cpu": "1"})])

    with caplog.at_level(logging.INFO, logger="resourcev2"):
        result = plugin.admit(_attributes(manifest))

    assert result.allowed
    assert "extendedResources" not in manifest["spec"]
    assert caplog.text == ""


def test_admit_rejects_client_model_of_other_kind(plugin) -> None:
    """Only V1Pod client models are accepted on the pods resource."""

    service = client.V1Service(spec=client.V1ServiceSpec(ports=[client.V1ServicePort(port=80)]))
    attributes = _attributes(service)

    result = plugin.admit(attributes)

    assert result == AdmissionResult(allowed=False, code=400, message="expected Pod but got V1Service")
    assert attributes.object is service


def test_read_only_container_leaves_pod_untouched(plugin) -> None:
    """A container that cannot be written to fails before any container is rewritten."""

    manifest = make_pod(
        containers=[
            make_container("app", requests={GPU: "1"}),
            MappingProxyType(make_container("sidecar", requests={GPU: "1"})),
        ],
    )
    first = copy.deepcopy(manifest["spec"]["containers"][0])

    result = plugin.admit(_attributes(manifest))

    assert not result.allowed
    assert result.code == 400
    assert manifest["spec"]["containers"][0] == first
    assert "extendedResources" not in manifest["spec"]
