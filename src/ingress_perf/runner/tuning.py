"""Ingress controller tuning profiles."""

import logging
from typing import Any, Dict

from kubernetes.client.rest import ApiException

from ingress_perf.cluster.session import ClusterSession
from ingress_perf.exceptions import DeploymentNotReady, TuningError
from ingress_perf.runner.poller import ReadinessPoller

logger = logging.getLogger(__name__)

OPERATOR_NAMESPACE = "openshift-ingress-operator"
ROUTER_NAMESPACE = "openshift-ingress"
INGRESS_CONTROLLER = "default"
ROUTER_DEPLOYMENT = "router-default"


def parse_profile(profile: str) -> Dict[str, Any]:
    """Turn ``threadCount=4,maxConnections=20000`` into tuningOptions.

    Integer values are converted, everything else is kept as a string.
    """
    options: Dict[str, Any] = {}
    for item in profile.split(","):
        item = item.strip()
        if not item:
            continue
        key, sep, value = item.partition("=")
        key, value = key.strip(), value.strip()
        if not sep or not key or not value:
            raise TuningError(f"invalid tuning option {item!r} in profile {profile!r}")
        options[key] = int(value) if value.lstrip("-").isdigit() else value
    if not options:
        raise TuningError(f"empty tuning profile {profile!r}")
    return options


class IngressTuner:
    """Applies tuning profiles to the default IngressController."""

    def __init__(self, session: ClusterSession, poller: ReadinessPoller, timeout: float = 300.0):
        self.session = session
        self.poller = poller
        self.timeout = timeout

    def apply(self, profile: str) -> None:
        """Patch the tuning options and wait for the router rollout.

        Raises:
            TuningError: the profile is malformed, the patch failed, or the
                router did not become ready in time.
            DeploymentNotReady: the router wait was cancelled through ``stop_event``.
        """
        options = parse_profile(profile)
        logger.info(f"Applying ingress tuning profile: {profile}")
        try:
            self.session.custom.patch_namespaced_custom_object(
                group="operator.openshift.io",
                version="v1",
                namespace=OPERATOR_NAMESPACE,
                plural="ingresscontrollers",
                name=INGRESS_CONTROLLER,
                body={"spec": {"tuningOptions": options}},
            )
            self.poller.wait_ready(ROUTER_NAMESPACE, ROUTER_DEPLOYMENT, self.timeout)
        except ApiException as e:
            raise TuningError(f"Failed to apply tuning profile {profile!r}: {e.reason}") from e
        except DeploymentNotReady as e:
            if e.cancelled:
                raise
            raise TuningError(f"Router not ready after applying {profile!r}: {e}") from e
