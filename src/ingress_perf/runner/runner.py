"""End to end orchestration of a benchmark run."""

import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence

from ingress_perf.cluster.assets import ResourceSpecs
from ingress_perf.cluster.metadata import MetadataCollector
from ingress_perf.cluster.session import ClusterSession, connect
from ingress_perf.exceptions import ComparisonFailed
from ingress_perf.indexers.sinks import ResultSink
from ingress_perf.models import ClusterMetadata, Result, RunPhase, TestCaseConfig
from ingress_perf.runner.deployer import deploy_assets
from ingress_perf.runner.driver import BenchmarkDriver, PodExecDriver
from ingress_perf.runner.poller import ReadinessPoller
from ingress_perf.runner.reconciler import ResourceReconciler
from ingress_perf.runner.teardown import Teardown
from ingress_perf.runner.tuning import IngressTuner
from ingress_perf.settings import Settings

logger = logging.getLogger(__name__)


class Comparator(ABC):
    """Judges the results of a test case, e.g. against a baseline run."""

    @abstractmethod
    def compare(self, cfg: TestCaseConfig, results: List[Result]) -> bool:
        """Return False when ``results`` are degraded."""


@dataclass
class RunState:
    """Mutable state scoped to one Runner."""

    phase: RunPhase = RunPhase.INIT
    already_exists_ns: bool = False
    current_tuning: str = ""
    teardown_done: bool = False
    passed: bool = True


class Runner:
    """Deploys the benchmark assets and runs every test case in order."""

    def __init__(
        self,
        uuid: str,
        cleanup: bool,
        test_cases: Sequence[TestCaseConfig],
        settings: Optional[Settings] = None,
        session: Optional[ClusterSession] = None,
        sink: Optional[ResultSink] = None,
        collector: Optional[MetadataCollector] = None,
        driver: Optional[BenchmarkDriver] = None,
        tuner: Optional[IngressTuner] = None,
        comparator: Optional[Comparator] = None,
        connect_fn: Callable[[Settings], ClusterSession] = connect,
    ):
        self.uuid = uuid
        self.cleanup = cleanup
        self.test_cases = list(test_cases)
        self.settings = settings or Settings()
        self.namespace = self.settings.namespace
        self.specs = ResourceSpecs(self.namespace)
        self.session = session
        self.sink = sink
        self.collector = collector
        self.driver = driver
        self.tuner = tuner
        self.comparator = comparator
        self.connect_fn = connect_fn
        self.state = RunState()
        self.stop_event = threading.Event()

    def stop(self) -> None:
        """Cancel in-flight waits."""
        self.stop_event.set()

    def start(self) -> None:
        """Run every test case.

        Raises:
            IngressPerfError or ApiException: the run could not be completed.
            ComparisonFailed: the run completed with degraded results.
        """
        metadata, metrics = self._connect()
        self.state.already_exists_ns = deploy_assets(self.session, self.specs)
        self.state.phase = RunPhase.DEPLOYED

        poller = ReadinessPoller(self.session, self.settings.poll_interval, self.stop_event)
        reconciler = ResourceReconciler(
            self.session, self.namespace, poller, timeout=self.settings.readiness_timeout
        )
        if self.tuner is None:
            self.tuner = IngressTuner(self.session, poller, timeout=self.settings.tuning_timeout)
        if self.driver is None:
            self.driver = PodExecDriver(self.session, self.namespace)

        self.state.phase = RunPhase.RUNNING
        for i, cfg in enumerate(self.test_cases):
            cfg = cfg.model_copy(update={"uuid": self.uuid})
            logger.info(f"Running test {i + 1}/{len(self.test_cases)}")
            logger.info(
                f"Tool:{cfg.tool} termination:{cfg.termination} servers:{cfg.server_replicas} "
                f"concurrency:{cfg.concurrency} procs:{cfg.procs} connections:{cfg.connections} "
                f"duration:{cfg.duration}s"
            )
            self._run_case(cfg, reconciler, metadata, metrics)

        if self.sink is not None:
            self.sink.close()
        self.state.phase = RunPhase.INDEXED

        if self.cleanup:
            self.teardown()
            self.state.phase = RunPhase.CLEANED_UP
        self.state.phase = RunPhase.DONE

        if not self.state.passed:
            raise ComparisonFailed("some benchmark comparisons failed")

    def _connect(self):
        if self.session is None:
            self.session = self.connect_fn(self.settings)
        if self.collector is None:
            self.collector = MetadataCollector(self.session, self.settings)
        metadata: ClusterMetadata = self.collector.cluster_metadata()
        metrics = self.collector.metrics_client()
        try:
            metadata.haproxy_version = self.collector.load_balancer_version()
            logger.info(f"HAProxy version: {metadata.haproxy_version}")
        except Exception as e:
            logger.error(f"Couldn't fetch haproxy version: {e}")
        self.state.phase = RunPhase.CONNECTED
        return metadata, metrics

    def _run_case(self, cfg: TestCaseConfig, reconciler: ResourceReconciler, metadata, metrics) -> None:
        reconciler.reconcile(cfg.server_replicas, cfg.concurrency)
        if cfg.tuning and cfg.tuning != self.state.current_tuning:
            self.tuner.apply(cfg.tuning)
            self.state.current_tuning = cfg.tuning

        results = self.driver.run(cfg, metadata, metrics, self.settings.pod_metrics)
        if cfg.warmup:
            logger.info("Warmup test case, results are not indexed")
            return
        if self.comparator is not None and not self.comparator.compare(cfg, results):
            logger.error(f"Benchmark comparison failed for test case with uuid {cfg.uuid}")
            self.state.passed = False
        if self.sink is not None:
            self.sink.accept(results)

    def teardown(self) -> None:
        """Delete the benchmark assets, at most once per run."""
        if self.state.teardown_done:
            return
        self.state.teardown_done = True
        Teardown(
            self.session,
            self.specs,
            self.state.already_exists_ns,
            interval=self.settings.poll_interval,
            stop_event=self.stop_event,
        ).cleanup(self.settings.cleanup_timeout)
