"""Kubernetes API access through the official client.

The kubeconfig is always an explicit parameter. Cluster state is never cached:
every call goes to the API server.
"""
import base64
import logging
import time
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional

import yaml
from kubernetes import client, config
from kubernetes.client.rest import ApiException
from kubernetes.config.config_exception import ConfigException
from kubernetes.dynamic import DynamicClient
from kubernetes.dynamic.exceptions import ResourceNotFoundError

from ..errors import ApiUnreachable, CommandFailed

logger = logging.getLogger("homelabctl.kube")

MERGE_PATCH = "application/merge-patch+json"


def wait_until_reachable(
    check: Callable[[], bool],
    timeout: float = 60,
    interval: float = 2,
    sleep: Callable[[float], None] = time.sleep,
    clock: Callable[[], float] = time.monotonic,
    endpoint: str = "Kubernetes API",
) -> float:
    """Poll check every interval until it succeeds or the budget is spent.

    The check runs once more when the elapsed time reaches the budget, so an
    API that never answers fails exactly at budget exhaustion.

    Returns:
        Seconds elapsed until the check succeeded

    Raises:
        ApiUnreachable: If the budget is exhausted
    """
    start = clock()
    while True:
        if check():
            elapsed = clock() - start
            logger.info(f"✅ {endpoint} reachable after {elapsed:.0f}s")
            return elapsed
        elapsed = clock() - start
        if elapsed >= timeout:
            raise ApiUnreachable(
                f"{endpoint} did not become ready within {timeout:g}s",
                remediation="Check the K3s service with: systemctl status k3s; journalctl -u k3s",
            )
        logger.info(f"⏳ Waiting for {endpoint}... ({elapsed:.0f}s/{timeout:g}s)")
        sleep(min(interval, timeout - elapsed))


class KubeClient:
    """Namespaces, secrets, manifests and readiness for one cluster."""

    def __init__(self, kubeconfig: str):
        self.kubeconfig = kubeconfig
        self._api_client: Optional[client.ApiClient] = None

    @property
    def api_client(self) -> client.ApiClient:
        if self._api_client is None:
            if not Path(self.kubeconfig).exists():
                raise ConfigException(f"Kubeconfig not found: {self.kubeconfig}")
            self._api_client = config.new_client_from_config(config_file=self.kubeconfig)
        return self._api_client

    @property
    def core(self) -> client.CoreV1Api:
        return client.CoreV1Api(self.api_client)

    def get_nodes(self) -> List[str]:
        """Names of the cluster nodes."""
        nodes = self.core.list_node(_request_timeout=5)
        return [n.metadata.name for n in nodes.items]

    def api_reachable(self) -> bool:
        """Single readiness probe; never raises."""
        try:
            self.get_nodes()
            return True
        except Exception as e:
            logger.debug(f"Kubernetes API not reachable yet: {e}")
            return False

    def wait_for_api(
        self,
        timeout: float = 60,
        interval: float = 2,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> float:
        return wait_until_reachable(
            self.api_reachable, timeout, interval, sleep, clock,
            endpoint=f"Kubernetes API ({self.kubeconfig})",
        )

    def namespace_exists(self, name: str) -> bool:
        try:
            self.core.read_namespace(name)
            return True
        except ApiException as e:
            if e.status == 404:
                return False
            raise CommandFailed(f"Could not read namespace {name}: {e.reason}") from e

    def ensure_namespace(self, name: str) -> bool:
        """Create a namespace if absent.

        Returns:
            True if it was created, False if it already existed
        """
        if self.namespace_exists(name):
            return False
        body = client.V1Namespace(metadata=client.V1ObjectMeta(name=name))
        try:
            self.core.create_namespace(body)
        except ApiException as e:
            if e.status == 409:
                return False
            raise CommandFailed(f"Could not create namespace {name}: {e.reason}") from e
        logger.info(f"📁 Created namespace {name}")
        return True

    def replace_secret(self, name: str, namespace: str, data: Dict[str, bytes]) -> None:
        """Delete then recreate an Opaque secret.

        Values are raw bytes and are sent base64-encoded, so binary key
        material such as a DER certificate is stored unchanged.
        """
        try:
            self.core.delete_namespaced_secret(name, namespace)
            logger.info(f"🔄 Deleted existing secret {namespace}/{name}")
        except ApiException as e:
            if e.status != 404:
                raise CommandFailed(f"Could not delete secret {namespace}/{name}: {e.reason}") from e

        body = client.V1Secret(
            metadata=client.V1ObjectMeta(name=name, namespace=namespace),
            type="Opaque",
            data={key: base64.b64encode(value).decode("ascii") for key, value in data.items()},
        )
        try:
            self.core.create_namespaced_secret(namespace, body)
        except ApiException as e:
            raise CommandFailed(f"Could not create secret {namespace}/{name}: {e.reason}") from e
        logger.info(f"🔑 Created secret {namespace}/{name}")

    def apply_documents(self, docs: Iterable[Optional[Dict[str, Any]]], source: str = "<inline>") -> List[str]:
        """Create each document, patching it when it already exists.

        Returns:
            ``Kind/name`` of every applied object
        """
        dyn_client = DynamicClient(self.api_client)
        applied = []
        for doc in docs:
            if not doc or not doc.get("kind") or not doc.get("apiVersion"):
                continue
            kind = doc["kind"]
            api_version = doc["apiVersion"]
            metadata = doc.get("metadata") or {}
            name = metadata.get("name", "")
            try:
                resource = dyn_client.resources.get(api_version=api_version, kind=kind)
            except ResourceNotFoundError as e:
                raise CommandFailed(
                    f"{source}: {api_version}/{kind} is not served by the cluster",
                    remediation="Install the chart that provides this CRD before applying the manifest",
                ) from e

            namespace = (metadata.get("namespace") or "default") if resource.namespaced else None
            try:
                logger.info(f"📄 Applying {kind}/{name}{' in ' + namespace if namespace else ''}")
                resource.create(body=doc, namespace=namespace)
            except ApiException as e:
                if e.status != 409:
                    raise CommandFailed(f"{source}: applying {kind}/{name} failed: {e.reason}") from e
                logger.info(f"↪️ {kind}/{name} exists. Patching...")
                try:
                    resource.patch(body=doc, name=name, namespace=namespace, content_type=MERGE_PATCH)
                except ApiException as patch_error:
                    raise CommandFailed(
                        f"{source}: patching {kind}/{name} failed: {patch_error.reason}"
                    ) from patch_error
            applied.append(f"{kind}/{name}")
        return applied

    def apply_manifest(self, path: Path) -> List[str]:
        with open(path) as f:
            docs = list(yaml.safe_load_all(f))
        return self.apply_documents(docs, source=str(path))
