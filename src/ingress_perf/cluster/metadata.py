"""Cluster metadata, metrics endpoint and router version discovery."""

import logging
import re
from typing import Optional

from kubernetes.client.rest import ApiException
from kubernetes.stream import stream
from urllib3.exceptions import HTTPError

from ingress_perf.cluster.prometheus import PrometheusClient
from ingress_perf.cluster.session import ClusterSession
from ingress_perf.exceptions import ConnectivityError
from ingress_perf.models import ClusterMetadata
from ingress_perf.settings import Settings

logger = logging.getLogger(__name__)

MONITORING_NAMESPACE = "openshift-monitoring"
PROMETHEUS_ROUTE = "prometheus-k8s"
ROUTER_NAMESPACE = "openshift-ingress"
ROUTER_SELECTOR = "ingresscontroller.operator.openshift.io/deployment-ingresscontroller=default"

NODE_ROLE_LABEL = "node-role.kubernetes.io/"
HAPROXY_VERSION = re.compile(r"version\s+(\S+)", re.IGNORECASE)


class MetadataCollector:
    """Reads cluster identity and locates the metrics backend."""

    def __init__(self, session: ClusterSession, settings: Settings):
        self.session = session
        self.settings = settings

    def cluster_metadata(self) -> ClusterMetadata:
        """Snapshot of versions and node counts.

        Raises:
            ConnectivityError: the API server could not be queried.
        """
        try:
            version = self.session.version.get_code()
            nodes = self.session.core.list_node()
        except ApiException as e:
            raise ConnectivityError(f"Failed to fetch cluster metadata: {e.reason}") from e
        except HTTPError as e:
            raise ConnectivityError(f"Cluster API unreachable: {e}") from e

        metadata = ClusterMetadata(
            k8s_version=version.git_version,
            total_nodes=len(nodes.items),
        )
        for node in nodes.items:
            roles = {
                label[len(NODE_ROLE_LABEL):]
                for label in (node.metadata.labels or {})
                if label.startswith(NODE_ROLE_LABEL)
            }
            if roles & {"master", "control-plane"}:
                metadata.master_nodes += 1
            if "worker" in roles:
                metadata.worker_nodes += 1
            if "infra" in roles:
                metadata.infra_nodes += 1

        cluster_version = self._get_cluster_object("clusterversions", "version")
        if cluster_version:
            metadata.ocp_version = cluster_version.get("status", {}).get("desired", {}).get("version")
        infrastructure = self._get_cluster_object("infrastructures", "cluster")
        if infrastructure:
            status = infrastructure.get("status", {})
            metadata.cluster_name = status.get("infrastructureName")
            metadata.platform = status.get("platformStatus", {}).get("type") or status.get("platform")
        return metadata

    def _get_cluster_object(self, plural: str, name: str) -> Optional[dict]:
        """OpenShift config object, None on plain Kubernetes."""
        try:
            return self.session.custom.get_cluster_custom_object(
                group="config.openshift.io", version="v1", plural=plural, name=name
            )
        except ApiException as e:
            if e.status == 404:
                return None
            raise ConnectivityError(f"Failed to read {plural}/{name}: {e.reason}") from e
        except HTTPError as e:
            raise ConnectivityError(f"Failed to read {plural}/{name}: {e}") from e

    def metrics_client(self) -> PrometheusClient:
        """Prometheus client from settings, or from the in-cluster monitoring stack.

        Raises:
            ConnectivityError: Prometheus could not be located.
        """
        url = self.settings.prometheus_url
        if not url:
            try:
                route = self.session.custom.get_namespaced_custom_object(
                    group="route.openshift.io",
                    version="v1",
                    namespace=MONITORING_NAMESPACE,
                    plural="routes",
                    name=PROMETHEUS_ROUTE,
                )
            except ApiException as e:
                raise ConnectivityError(f"Error fetching prometheus information: {e.reason}") from e
            except HTTPError as e:
                raise ConnectivityError(f"Error fetching prometheus information: {e}") from e
            url = f"https://{route['spec']['host']}"
        token = self.settings.prometheus_token or self.session.bearer_token()
        logger.info(f"Using Prometheus at {url}")
        return PrometheusClient(url, token=token)

    def load_balancer_version(self) -> str:
        """HAProxy version reported by a default router pod.

        Raises:
            ApiException: router pods could not be listed or exec'd into.
            RuntimeError: no router pod or unparsable output.
        """
        pods = self.session.core.list_namespaced_pod(
            namespace=ROUTER_NAMESPACE,
            label_selector=ROUTER_SELECTOR,
            field_selector="status.phase=Running",
        )
        if not pods.items:
            raise RuntimeError(f"no running router pods in {ROUTER_NAMESPACE}")
        output = stream(
            self.session.core.connect_get_namespaced_pod_exec,
            pods.items[0].metadata.name,
            ROUTER_NAMESPACE,
            command=["haproxy", "-v"],
            stderr=True,
            stdin=False,
            stdout=True,
            tty=False,
        )
        match = HAPROXY_VERSION.search(output or "")
        if not match:
            raise RuntimeError(f"unexpected haproxy -v output: {output!r}")
        return match.group(1)
