"""Runtime settings and configuration management."""

import re
from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

# RFC 1123 subdomain, same rule the API server applies to namespace names
DNS1123_SUBDOMAIN = re.compile(r"^[a-z0-9]([-a-z0-9]*[a-z0-9])?(\.[a-z0-9]([-a-z0-9]*[a-z0-9])?)*$")
DNS1123_SUBDOMAIN_MAX_LENGTH = 253


class Settings(BaseSettings):
    """Settings loaded from environment variables (INGRESS_PERF_*)."""

    # Cluster access
    kubeconfig: Optional[Path] = Field(
        default=None,
        description="Path to kubeconfig file, falls back to $KUBECONFIG and ~/.kube/config",
    )

    namespace: str = Field(
        default="ingress-perf",
        description="Namespace hosting the benchmark assets",
    )

    api_pool_maxsize: int = Field(
        default=200,
        ge=1,
        description="Connection pool size of the Kubernetes API client",
    )

    # Polling
    poll_interval: float = Field(
        default=1.0,
        gt=0,
        description="Interval between readiness checks in seconds",
    )

    readiness_timeout: float = Field(
        default=60.0,
        gt=0,
        description="Maximum time to wait for a deployment to become ready",
    )

    cleanup_timeout: float = Field(
        default=600.0,
        gt=0,
        description="Maximum time to wait for the benchmark namespace to be removed",
    )

    tuning_timeout: float = Field(
        default=300.0,
        gt=0,
        description="Maximum time to wait for the router to roll out a tuning change",
    )

    # Indexing
    es_server: Optional[str] = Field(
        default=None,
        description="Elasticsearch URL, enables streaming indexing",
    )

    es_index: str = Field(
        default="ingress-performance",
        description="Elasticsearch index name",
    )

    es_verify_certs: bool = Field(
        default=False,
        description="Verify TLS certificates of the Elasticsearch server",
    )

    results_dir: Optional[Path] = Field(
        default=None,
        description="Directory for local batch indexing of results",
    )

    # Metrics
    prometheus_url: Optional[str] = Field(
        default=None,
        description="Prometheus URL, discovered from the cluster when unset",
    )

    prometheus_token: Optional[str] = Field(
        default=None,
        description="Bearer token for Prometheus, taken from the kubeconfig when unset",
    )

    pod_metrics: bool = Field(
        default=False,
        description="Collect router pod metrics for every sample",
    )

    log_level: str = Field(
        default="INFO",
        description="Logging level",
    )

    @field_validator("namespace")
    @classmethod
    def validate_namespace(cls, v: str) -> str:
        """Reject namespace names the API server would refuse."""
        if len(v) > DNS1123_SUBDOMAIN_MAX_LENGTH or not DNS1123_SUBDOMAIN.match(v):
            raise ValueError(f"invalid namespace {v!r}: must be a DNS-1123 subdomain")
        return v

    @field_validator("kubeconfig", "results_dir", mode="before")
    @classmethod
    def expand_path(cls, v):
        """Expand ~ in paths."""
        if isinstance(v, str):
            return Path(v).expanduser()
        return v

    @field_validator("log_level")
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        return v.upper()

    class Config:
        """Pydantic settings configuration."""

        env_prefix = "INGRESS_PERF_"
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False
