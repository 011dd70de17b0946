"""Benchmark orchestration: deployment, reconciliation, sequencing and teardown."""

from ingress_perf.runner.driver import BenchmarkDriver, PodExecDriver
from ingress_perf.runner.poller import ReadinessPoller, poll_until
from ingress_perf.runner.reconciler import ResourceReconciler
from ingress_perf.runner.runner import Comparator, Runner, RunState
from ingress_perf.runner.teardown import Teardown

__all__ = [
    "BenchmarkDriver",
    "PodExecDriver",
    "ReadinessPoller",
    "poll_until",
    "ResourceReconciler",
    "Comparator",
    "Runner",
    "RunState",
    "Teardown",
]
