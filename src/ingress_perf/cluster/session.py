"""Kubernetes API session shared by every component of a run."""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from kubernetes import client, config as k8s_config

from ingress_perf.exceptions import ConnectivityError
from ingress_perf.settings import Settings

logger = logging.getLogger(__name__)


@dataclass
class ClusterSession:
    """Typed API handles built once per run."""

    api_client: client.ApiClient
    core: client.CoreV1Api
    apps: client.AppsV1Api
    rbac: client.RbacAuthorizationV1Api
    custom: client.CustomObjectsApi
    version: client.VersionApi

    @classmethod
    def from_api_client(cls, api_client: client.ApiClient) -> "ClusterSession":
        return cls(
            api_client=api_client,
            core=client.CoreV1Api(api_client),
            apps=client.AppsV1Api(api_client),
            rbac=client.RbacAuthorizationV1Api(api_client),
            custom=client.CustomObjectsApi(api_client),
            version=client.VersionApi(api_client),
        )

    def bearer_token(self) -> Optional[str]:
        """Token the session authenticates with, if any."""
        api_key = self.api_client.configuration.api_key or {}
        token = api_key.get("authorization") or api_key.get("BearerToken")
        if token and token.startswith("Bearer "):
            token = token[len("Bearer "):]
        return token


def resolve_kubeconfig(settings: Settings) -> Optional[Path]:
    """Pick the kubeconfig: settings, then $KUBECONFIG, then ~/.kube/config."""
    if settings.kubeconfig is not None:
        return settings.kubeconfig
    if os.getenv("KUBECONFIG"):
        return Path(os.environ["KUBECONFIG"])
    default = Path.home() / ".kube" / "config"
    if default.exists():
        return default
    return None


def connect(settings: Settings) -> ClusterSession:
    """Build the API session, falling back to in-cluster configuration."""
    configuration = client.Configuration()
    kubeconfig = resolve_kubeconfig(settings)
    try:
        if kubeconfig is not None:
            k8s_config.load_kube_config(
                config_file=str(kubeconfig), client_configuration=configuration
            )
            logger.info(f"Using kubeconfig {kubeconfig}")
        else:
            k8s_config.load_incluster_config(client_configuration=configuration)
            logger.info("Using in-cluster Kubernetes configuration")
    except (k8s_config.ConfigException, OSError) as e:
        raise ConnectivityError(f"Failed to load Kubernetes configuration: {e}") from e

    # The reconciliation loop issues many requests back to back
    configuration.connection_pool_maxsize = settings.api_pool_maxsize
    return ClusterSession.from_api_client(client.ApiClient(configuration))
