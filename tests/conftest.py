"""Pytest configuration and shared fixtures for ingress-perf tests."""

from typing import Any, Callable, Dict, List, Optional, Tuple
from unittest.mock import MagicMock

import pytest
from kubernetes.client.rest import ApiException

from ingress_perf.cluster.session import ClusterSession
from ingress_perf.models import ClusterMetadata, Result, TestCaseConfig
from ingress_perf.runner import poller as poller_module
from ingress_perf.settings import Settings

TEST_NAMESPACE = "ingress-perf-test"


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers."""
    config.addinivalue_line("markers", "cluster: Tests driving the mocked Kubernetes API")
    config.addinivalue_line("markers", "indexing: Result sink and indexer tests")
    config.addinivalue_line("markers", "lifecycle: End to end run orchestration tests")


def api_error(status: int, reason: str = "") -> ApiException:
    """ApiException as raised by the Kubernetes client."""
    return ApiException(status=status, reason=reason or {404: "Not Found", 409: "AlreadyExists"}.get(status, "Error"))


class FakeClock:
    """Stands in for the time module used by the poller."""

    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: List[float] = []

    def monotonic(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture
def fake_clock(monkeypatch) -> FakeClock:
    """Make polling instant while keeping timeout arithmetic."""
    clock = FakeClock()
    monkeypatch.setattr(poller_module, "time", clock)
    return clock


@pytest.fixture
def k8s_api() -> MagicMock:
    """Parent mock of every API group, records calls across groups in order."""
    return MagicMock()


@pytest.fixture
def k8s_session(k8s_api: MagicMock) -> ClusterSession:
    """ClusterSession backed by mocks."""
    return ClusterSession(
        api_client=k8s_api.api_client,
        core=k8s_api.core,
        apps=k8s_api.apps,
        rbac=k8s_api.rbac,
        custom=k8s_api.custom,
        version=k8s_api.version,
    )


@pytest.fixture
def settings() -> Settings:
    return Settings(namespace=TEST_NAMESPACE, poll_interval=1.0, readiness_timeout=60.0)


def _create_mock_deployment(
    name: str,
    desired: int,
    ready: int = 0,
    available: int = 0,
    replicas: Optional[int] = None,
    labels: Optional[Dict[str, str]] = None,
) -> MagicMock:
    deployment = MagicMock()
    deployment.metadata.name = name
    deployment.spec.replicas = desired
    deployment.spec.selector.match_labels = labels or {"app": name}
    deployment.status.replicas = desired if replicas is None else replicas
    deployment.status.ready_replicas = ready
    deployment.status.available_replicas = available
    deployment.status.updated_replicas = ready
    return deployment


@pytest.fixture
def deployment_factory() -> Callable[..., MagicMock]:
    """Build deployments as returned by read_namespaced_deployment."""
    return _create_mock_deployment


def _create_mock_pod(
    name: str,
    waiting: Optional[List[Tuple[str, str, str]]] = None,
    node: Optional[str] = "worker-0",
    unschedulable_message: Optional[str] = None,
) -> MagicMock:
    pod = MagicMock()
    pod.metadata.name = name
    pod.spec.node_name = node
    pod.status.reason = None
    pod.status.message = None
    statuses = []
    for container, reason, message in waiting or []:
        cs = MagicMock()
        cs.name = container
        cs.state.waiting.reason = reason
        cs.state.waiting.message = message
        statuses.append(cs)
    pod.status.container_statuses = statuses
    conditions = []
    if unschedulable_message is not None:
        condition = MagicMock()
        condition.type = "PodScheduled"
        condition.status = "False"
        condition.reason = "Unschedulable"
        condition.message = unschedulable_message
        conditions.append(condition)
    pod.status.conditions = conditions
    return pod


@pytest.fixture
def pod_factory() -> Callable[..., MagicMock]:
    """Build pods as returned by list_namespaced_pod."""
    return _create_mock_pod


def _pod_list(pods: List[Any]) -> MagicMock:
    pod_list = MagicMock()
    pod_list.items = pods
    return pod_list


@pytest.fixture
def pod_list() -> Callable[[List[Any]], MagicMock]:
    return _pod_list


class FakeDeployments:
    """Deployments that converge as soon as they are updated."""

    def __init__(self, session: ClusterSession) -> None:
        self.replicas: Dict[str, int] = {}
        self.updates: List[Tuple[str, int]] = []
        session.apps.read_namespaced_deployment.side_effect = self.read
        session.apps.patch_namespaced_deployment_scale.side_effect = self.patch_scale

    def read(self, name: str, namespace: str) -> MagicMock:
        count = self.replicas.get(name, 0)
        return _create_mock_deployment(name, count, ready=count, available=count)

    def patch_scale(self, name: str, namespace: str, body: Dict[str, Any]) -> Dict[str, Any]:
        replicas = body["spec"]["replicas"]
        self.updates.append((name, replicas))
        self.replicas[name] = replicas
        return body


@pytest.fixture
def fake_deployments(k8s_session: ClusterSession) -> FakeDeployments:
    return FakeDeployments(k8s_session)


@pytest.fixture
def make_result() -> Callable[..., Result]:
    """Build a Result for a test case."""

    def _make(sample: int = 1, cfg: Optional[TestCaseConfig] = None, **metrics: Any) -> Result:
        cfg = cfg or TestCaseConfig(uuid="run-1")
        return Result(
            uuid=cfg.uuid,
            sample=sample,
            config=cfg,
            metadata=ClusterMetadata(k8s_version="v1.29.0"),
            **metrics,
        )

    return _make
