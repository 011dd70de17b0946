"""Pydantic models for test cases, cluster metadata and benchmark results."""

import re
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

_DURATION = re.compile(r"^(\d+(?:\.\d+)?)(ms|s|m|h)?$")
_DURATION_UNITS = {"ms": 0.001, "s": 1, "m": 60, "h": 3600}


def parse_duration(value: Any) -> float:
    """Convert 30, "30", "30s", "2m" or "500ms" to seconds."""
    if isinstance(value, bool):
        raise ValueError(f"invalid duration: {value!r}")
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        match = _DURATION.match(value.strip())
        if match:
            return float(match.group(1)) * _DURATION_UNITS[match.group(2) or "s"]
    raise ValueError(f"invalid duration: {value!r}")


class Termination(str, Enum):
    """Route TLS termination variants."""

    HTTP = "http"
    EDGE = "edge"
    PASSTHROUGH = "passthrough"
    REENCRYPT = "reencrypt"


class Tool(str, Enum):
    """Load generation tools available in the client image."""

    WRK = "wrk"
    HLOADER = "hloader"


class RunPhase(str, Enum):
    """Lifecycle phases of a run."""

    INIT = "init"
    CONNECTED = "connected"
    DEPLOYED = "deployed"
    RUNNING = "running"
    INDEXED = "indexed"
    CLEANED_UP = "cleaned_up"
    DONE = "done"


class TestCaseConfig(BaseModel):
    """Parameters of a single benchmark test case."""

    __test__ = False

    uuid: str = Field(default="", description="Run identifier shared by every test case")
    tool: Tool = Field(default=Tool.WRK, description="Load generation tool")
    termination: Termination = Field(default=Termination.HTTP, description="Route termination")
    samples: int = Field(default=1, ge=1, description="Number of samples per test case")
    duration: float = Field(default=30.0, gt=0, description="Sample duration in seconds")
    path: str = Field(default="/1024.html", description="Requested URL path")
    concurrency: int = Field(default=1, ge=1, description="Client pods, one replica each")
    procs: int = Field(default=1, ge=1, description="Tool processes per client pod")
    connections: int = Field(default=10, ge=1, description="Connections per process")
    server_replicas: int = Field(
        default=1, ge=1, alias="serverReplicas", description="Server deployment replicas"
    )
    request_timeout: float = Field(
        default=1.0, gt=0, alias="requestTimeout", description="Request timeout in seconds"
    )
    delay: float = Field(default=0.0, ge=0, description="Pause between samples in seconds")
    keepalive: bool = Field(default=True, description="Reuse HTTP connections")
    warmup: bool = Field(default=False, description="Run without indexing the results")
    tuning: str = Field(default="", description="Ingress tuning profile to apply")

    @field_validator("duration", "request_timeout", "delay", mode="before")
    @classmethod
    def convert_duration(cls, v: Any) -> float:
        return parse_duration(v)

    @field_validator("tuning", mode="before")
    @classmethod
    def empty_tuning(cls, v: Any) -> str:
        return "" if v is None else v

    class Config:
        """Pydantic configuration."""

        frozen = True
        populate_by_name = True
        use_enum_values = True


class ClusterMetadata(BaseModel):
    """Cluster identity captured once per run."""

    platform: Optional[str] = Field(default=None, description="Infrastructure platform")
    cluster_name: Optional[str] = Field(default=None, description="Infrastructure name")
    ocp_version: Optional[str] = Field(default=None, description="OpenShift version")
    k8s_version: Optional[str] = Field(default=None, description="Kubernetes version")
    total_nodes: int = Field(default=0, ge=0)
    master_nodes: int = Field(default=0, ge=0)
    worker_nodes: int = Field(default=0, ge=0)
    infra_nodes: int = Field(default=0, ge=0)
    haproxy_version: Optional[str] = Field(default=None, description="Router HAProxy version")


class Result(BaseModel):
    """Aggregated outcome of one sample of a test case."""

    uuid: str = Field(description="Run identifier")
    sample: int = Field(ge=1, description="Sample number within the test case")
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    config: TestCaseConfig = Field(description="Test case parameters")
    metadata: ClusterMetadata = Field(description="Cluster metadata")
    requests: int = Field(default=0, ge=0, description="Total requests")
    rps: float = Field(default=0.0, ge=0, description="Requests per second")
    avg_lat_us: float = Field(default=0.0, ge=0, description="Average latency")
    max_lat_us: float = Field(default=0.0, ge=0, description="Maximum latency")
    p90_lat_us: float = Field(default=0.0, ge=0, description="90th percentile latency")
    p95_lat_us: float = Field(default=0.0, ge=0, description="95th percentile latency")
    p99_lat_us: float = Field(default=0.0, ge=0, description="99th percentile latency")
    http_errors: int = Field(default=0, ge=0, description="Non 2xx/3xx responses")
    timeouts: int = Field(default=0, ge=0, description="Timed out requests")
    router_cpu: Optional[float] = Field(default=None, description="Average router CPU cores")

    def to_document(self) -> Dict[str, Any]:
        """Return the JSON-serializable document sent to indexers."""
        return self.model_dump(mode="json")


class IndexingOptions(BaseModel):
    """Options forwarded to an indexer."""

    metric_name: Optional[str] = Field(
        default=None, description="Batch label, used as file name by local indexing"
    )


class PendingContainer(BaseModel):
    """Why a container of a pending pod is not running yet."""

    pod: str
    node: Optional[str] = None
    container: Optional[str] = None
    reason: str
    message: Optional[str] = None


class ReadinessDiagnostic(BaseModel):
    """Snapshot explaining why a deployment is not ready."""

    namespace: str
    deployment: str
    selector: str = Field(default="", description="Label selector of the deployment pods")
    desired: int = 0
    ready: int = 0
    available: int = 0
    pending: List[PendingContainer] = Field(default_factory=list)

    def summary(self) -> str:
        return f"{self.available}/{self.desired} replicas ready"
