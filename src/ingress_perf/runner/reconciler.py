"""Scale benchmark deployments to the replicas a test case asks for."""

import logging

from ingress_perf.cluster.assets import CLIENT_NAME, SERVER_NAME
from ingress_perf.cluster.session import ClusterSession
from ingress_perf.exceptions import DeploymentNotReady
from ingress_perf.runner.poller import ReadinessPoller

logger = logging.getLogger(__name__)


class ResourceReconciler:
    """Brings the server and client deployments to their desired replicas."""

    def __init__(
        self,
        session: ClusterSession,
        namespace: str,
        poller: ReadinessPoller,
        timeout: float = 60.0,
    ):
        self.session = session
        self.namespace = namespace
        self.poller = poller
        self.timeout = timeout

    def reconcile(self, server_replicas: int, client_replicas: int) -> None:
        """Scale the server, then the client deployment.

        Raises:
            ApiException: a deployment could not be read or updated.
            DeploymentNotReady: a scaled deployment did not become ready.
        """
        self.scale(SERVER_NAME, server_replicas)
        self.scale(CLIENT_NAME, client_replicas)

    def scale(self, name: str, replicas: int) -> bool:
        """Scale one deployment and wait for it. Returns False when already satisfied."""
        deployment = self.session.apps.read_namespaced_deployment(name=name, namespace=self.namespace)
        if (deployment.status.ready_replicas or 0) == replicas:
            logger.debug(f"Deployment {name} already has {replicas} ready replicas")
            return False

        logger.info(f"Scaling deployment {name} to {replicas} replicas")
        # Scale subresource write, independent of the resourceVersion just read
        self.session.apps.patch_namespaced_deployment_scale(
            name=name, namespace=self.namespace, body={"spec": {"replicas": replicas}}
        )
        try:
            self.poller.wait_ready(self.namespace, name, self.timeout)
        except DeploymentNotReady as e:
            report_not_ready(e)
            raise
        return True


def report_not_ready(error: DeploymentNotReady) -> None:
    """Log the diagnostic carried by a readiness timeout."""
    logger.error(str(error))
    if error.diagnostic is None:
        return
    for entry in error.diagnostic.pending:
        container = f"/{entry.container}" if entry.container else ""
        logger.error(
            f"{entry.pod}{container}@{entry.node or '<unscheduled>'}: "
            f"{entry.reason}: {entry.message or ''}"
        )
