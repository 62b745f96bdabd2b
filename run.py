#!/usr/bin/env python3
"""
ResourceV2 - Preview Entry Point

Runs the ResourceV2 admission plugin against a single Pod and prints the
rewritten object, with the device resource of each container moved into
pod-level extended resources.

Usage:
    python run.py --file pod.yaml [--output json]
    python run.py --pod NAME [--namespace NAMESPACE] [--in-cluster]
"""

import argparse
import io
import json
import logging
import sys

from kubernetes import client, config
from kubernetes.client.rest import ApiException

from resourcev2.admission import AdmissionAttributes, GroupVersionResource
from resourcev2.config import (
    CONFIG_INTERCEPTED_RESOURCE,
    HANDLED_OPERATIONS,
    PLUGIN_NAME,
    POD_GROUP,
    POD_RESOURCE,
)
from resourcev2.errors import PluginConfigError
from resourcev2.registry import Plugins, register
from resourcev2.utils import load_manifest, serialize_manifest

logger = logging.getLogger(__name__)


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        description="ResourceV2 - Preview the extended resource rewrite of a Pod"
    )
    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument(
        "--file", "-f",
        help="Pod manifest (JSON or YAML), '-' for stdin"
    )
    source.add_argument(
        "--pod", "-p",
        help="Name of a Pod to fetch from the cluster"
    )
    parser.add_argument(
        "--namespace", "-n",
        default="default",
        help="Namespace of the Pod to fetch (default: default)"
    )
    parser.add_argument(
        "--in-cluster",
        action="store_true",
        help="Use in-cluster config (for running inside Kubernetes)"
    )
    parser.add_argument(
        "--operation",
        choices=HANDLED_OPERATIONS,
        default=HANDLED_OPERATIONS[0],
        help="Admission operation to simulate (default: CREATE)"
    )
    parser.add_argument(
        "--resource", "-r",
        help="Resource name to move into extended resources (default: nvidia.com/gpu)"
    )
    parser.add_argument(
        "--output", "-o",
        choices=("yaml", "json"),
        default="yaml",
        help="Output format (default: yaml)"
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose/debug logging"
    )
    return parser.parse_args(argv)


def read_manifest(path: str) -> dict:
    if path == "-":
        return load_manifest(sys.stdin.read())
    with open(path) as f:
        return load_manifest(f.read())


def fetch_pod(name: str, namespace: str, in_cluster: bool) -> dict:
    """Fetch a Pod from the cluster in its API (camelCase) form."""
    if in_cluster:
        config.load_incluster_config()
        logger.info("Loaded in-cluster configuration")
    else:
        config.load_kube_config()
        logger.info("Loaded kubeconfig from default location")

    api_client = client.ApiClient()
    pod = client.CoreV1Api(api_client).read_namespaced_pod(name=name, namespace=namespace)
    return api_client.sanitize_for_serialization(pod)


def main(argv=None) -> int:
    """Main entry point."""
    args = parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S',
        stream=sys.stderr
    )

    plugins = Plugins()
    register(plugins)

    plugin_config = None
    if args.resource:
        plugin_config = io.StringIO(json.dumps({CONFIG_INTERCEPTED_RESOURCE: args.resource}))

    try:
        plugin = plugins.new_plugin(PLUGIN_NAME, plugin_config)
    except PluginConfigError as e:
        logger.error(f"Invalid plugin configuration: {e}")
        return 1

    try:
        if args.file:
            obj = read_manifest(args.file)
        else:
            obj = fetch_pod(args.pod, args.namespace, args.in_cluster)
    except ApiException as e:
        logger.error(f"Failed to fetch pod {args.namespace}/{args.pod}: {e}")
        return 1
    except Exception as e:
        logger.error(f"Failed to load pod: {e}")
        return 1

    metadata = {}
    if isinstance(obj, dict) and isinstance(obj.get("metadata"), dict):
        metadata = obj["metadata"]
    attributes = AdmissionAttributes(
        operation=args.operation,
        resource=GroupVersionResource(group=POD_GROUP, version="v1", resource=POD_RESOURCE),
        object=obj,
        name=metadata.get("name", ""),
        namespace=metadata.get("namespace", ""),
    )

    result = plugin.admit(attributes)
    if not result.allowed:
        logger.error(f"Admission rejected ({result.code}): {result.message}")
        return 1

    print(serialize_manifest(result.object, args.output), end="")
    return 0


if __name__ == "__main__":
    sys.exit(main())
