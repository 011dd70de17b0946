"""Bounded polling and deployment readiness checks."""

import logging
import threading
import time
from typing import Callable, List, Optional

from kubernetes.client.rest import ApiException

from ingress_perf.cluster.session import ClusterSession
from ingress_perf.exceptions import DeploymentNotReady, WaitTimeoutError
from ingress_perf.models import PendingContainer, ReadinessDiagnostic

logger = logging.getLogger(__name__)


def poll_until(
    condition: Callable[[], bool],
    interval: float,
    timeout: float,
    immediate: bool = True,
    stop_event: Optional[threading.Event] = None,
) -> None:
    """Call ``condition`` every ``interval`` seconds until it returns True.

    Exceptions raised by ``condition`` abort the wait and propagate unchanged.

    Raises:
        WaitTimeoutError: ``timeout`` elapsed, or ``stop_event`` was set.
    """
    deadline = time.monotonic() + timeout
    if not immediate:
        _pause(interval, stop_event)
    while True:
        if condition():
            return
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            raise WaitTimeoutError(f"timed out after {timeout}s")
        _pause(min(interval, remaining), stop_event)


def _pause(seconds: float, stop_event: Optional[threading.Event]) -> None:
    if stop_event is None:
        time.sleep(seconds)
    elif stop_event.wait(seconds):
        raise WaitTimeoutError("wait cancelled", cancelled=True)


def is_ready(deployment) -> bool:
    """All replica counts of the deployment agree with the desired count."""
    desired = deployment.spec.replicas or 0
    status = deployment.status
    return (
        (status.replicas or 0) == desired
        and (status.ready_replicas or 0) == desired
        and (status.available_replicas or 0) == desired
    )


def label_selector(deployment) -> str:
    match_labels = deployment.spec.selector.match_labels or {}
    return ",".join(f"{key}={value}" for key, value in sorted(match_labels.items()))


class ReadinessPoller:
    """Waits for deployments to converge to their desired replica count."""

    def __init__(
        self,
        session: ClusterSession,
        interval: float = 1.0,
        stop_event: Optional[threading.Event] = None,
    ):
        self.session = session
        self.interval = interval
        self.stop_event = stop_event

    def wait_ready(self, namespace: str, name: str, timeout: float) -> None:
        """Block until deployment ``name`` is ready.

        API errors abort the wait immediately.

        Raises:
            DeploymentNotReady: on timeout or cancellation, with a diagnostic
                snapshot of the pods still pending.
        """
        last = {}

        def check() -> bool:
            deployment = self.session.apps.read_namespaced_deployment(name=name, namespace=namespace)
            last["deployment"] = deployment
            if is_ready(deployment):
                logger.debug(
                    f"{deployment.status.updated_replicas} replicas from deployment {name} ready"
                )
                return True
            logger.debug(
                f"{deployment.status.available_replicas or 0}/{deployment.spec.replicas} "
                f"replicas ready in deployment {name}"
            )
            return False

        logger.info(f"Waiting for replicas from deployment {name} in ns {namespace} to be ready")
        try:
            poll_until(check, self.interval, timeout, stop_event=self.stop_event)
        except WaitTimeoutError as e:
            diagnostic = self.diagnose(namespace, last["deployment"])
            raise DeploymentNotReady(
                f"deployment {namespace}/{name} not ready: {diagnostic.summary()} ({e})",
                diagnostic=diagnostic,
                cancelled=e.cancelled,
            ) from e

    def diagnose(self, namespace: str, deployment) -> ReadinessDiagnostic:
        """Describe the pending pods selected by ``deployment``."""
        selector = label_selector(deployment)
        diagnostic = ReadinessDiagnostic(
            namespace=namespace,
            deployment=deployment.metadata.name,
            selector=selector,
            desired=deployment.spec.replicas or 0,
            ready=deployment.status.ready_replicas or 0,
            available=deployment.status.available_replicas or 0,
        )
        try:
            pods = self.session.core.list_namespaced_pod(
                namespace=namespace,
                label_selector=selector,
                field_selector="status.phase=Pending",
            )
        except ApiException as e:
            logger.warning(f"Could not list pending pods of {deployment.metadata.name}: {e.reason}")
            return diagnostic
        for pod in pods.items:
            diagnostic.pending.extend(pending_containers(pod))
        return diagnostic


def pending_containers(pod) -> List[PendingContainer]:
    """Waiting reasons of a pending pod, one entry per waiting container.

    Pods without container statuses (e.g. unschedulable) get a single entry
    built from their scheduling condition.
    """
    entries = []
    for cs in pod.status.container_statuses or []:
        waiting = cs.state.waiting if cs.state else None
        if waiting is not None:
            entries.append(
                PendingContainer(
                    pod=pod.metadata.name,
                    node=pod.spec.node_name,
                    container=cs.name,
                    reason=waiting.reason or "Waiting",
                    message=waiting.message,
                )
            )
    if entries:
        return entries

    reason, message = pod.status.reason, pod.status.message
    for condition in pod.status.conditions or []:
        if condition.type == "PodScheduled" and condition.status != "True":
            reason, message = condition.reason, condition.message
    return [
        PendingContainer(
            pod=pod.metadata.name,
            node=pod.spec.node_name,
            reason=reason or "Pending",
            message=message,
        )
    ]
