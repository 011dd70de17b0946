"""Removal of the benchmark assets."""

import logging
import threading
from typing import Optional

from kubernetes.client.rest import ApiException

from ingress_perf.cluster.assets import (
    CLIENT_NAME,
    ROUTE_GROUP,
    ROUTE_PLURAL,
    ROUTE_VERSION,
    SERVER_NAME,
    ResourceSpecs,
)
from ingress_perf.cluster.session import ClusterSession
from ingress_perf.runner.poller import poll_until

logger = logging.getLogger(__name__)

NOT_FOUND = 404


class Teardown:
    """Deletes what a run deployed, keeping pre-existing namespaces alive."""

    def __init__(
        self,
        session: ClusterSession,
        specs: ResourceSpecs,
        namespace_existed: bool,
        interval: float = 1.0,
        stop_event: Optional[threading.Event] = None,
    ):
        self.session = session
        self.specs = specs
        self.namespace_existed = namespace_existed
        self.interval = interval
        self.stop_event = stop_event

    def cleanup(self, timeout: float) -> None:
        """Delete the benchmark objects.

        Raises:
            ApiException: the first deletion that failed.
            WaitTimeoutError: the namespace was still present after ``timeout``.
        """
        logger.info("Cleaning up resources")
        if self.namespace_existed:
            self._delete_objects()
        else:
            self._delete_namespace(timeout)
        self.session.rbac.delete_cluster_role_binding(name=self.specs.crb_name)

    def _delete_objects(self) -> None:
        namespace = self.specs.namespace
        self.session.apps.delete_namespaced_deployment(name=CLIENT_NAME, namespace=namespace)
        self.session.apps.delete_namespaced_deployment(name=SERVER_NAME, namespace=namespace)
        self.session.core.delete_namespaced_service(name=SERVER_NAME, namespace=namespace)
        for route in self.specs.routes():
            self.session.custom.delete_namespaced_custom_object(
                group=ROUTE_GROUP,
                version=ROUTE_VERSION,
                namespace=namespace,
                plural=ROUTE_PLURAL,
                name=route["metadata"]["name"],
            )

    def _delete_namespace(self, timeout: float) -> None:
        namespace = self.specs.namespace
        self.session.core.delete_namespace(name=namespace)

        def gone() -> bool:
            try:
                self.session.core.read_namespace(name=namespace)
            except ApiException as e:
                if e.status == NOT_FOUND:
                    return True
                raise
            return False

        logger.info(f"Waiting for namespace {namespace} to be deleted")
        poll_until(gone, self.interval, timeout, stop_event=self.stop_event)
