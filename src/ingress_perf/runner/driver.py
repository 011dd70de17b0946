"""Benchmark drivers running the load generation tool against a route."""

import json
import logging
import time
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Dict, List, Optional

import requests
from kubernetes.client.rest import ApiException
from kubernetes.stream import stream

from ingress_perf.cluster.assets import CLIENT_NAME, ROUTE_GROUP, ROUTE_PLURAL, ROUTE_VERSION, route_name
from ingress_perf.cluster.prometheus import PrometheusClient
from ingress_perf.cluster.session import ClusterSession
from ingress_perf.exceptions import BenchmarkError
from ingress_perf.models import ClusterMetadata, Result, TestCaseConfig, Termination

logger = logging.getLogger(__name__)

ROUTER_CPU_QUERY = (
    'sum(rate(container_cpu_usage_seconds_total{{namespace="openshift-ingress",'
    'container="router"}}[{window}s]))'
)


class BenchmarkDriver(ABC):
    """Runs one test case and returns one Result per sample."""

    @abstractmethod
    def run(
        self,
        cfg: TestCaseConfig,
        metadata: ClusterMetadata,
        metrics: Optional[PrometheusClient],
        pod_metrics: bool,
    ) -> List[Result]:
        """Raises BenchmarkError when the test case cannot be completed."""


def wrk_command(cfg: TestCaseConfig, url: str) -> List[str]:
    cmd = [
        "wrk",
        "-s", "json.lua",
        "-c", str(cfg.connections),
        "-t", "1",
        "-d", f"{int(cfg.duration)}s",
        "--timeout", f"{cfg.request_timeout}s",
    ]
    if not cfg.keepalive:
        cmd.extend(["-H", "Connection: close"])
    cmd.append(url)
    return cmd


def hloader_command(cfg: TestCaseConfig, url: str) -> List[str]:
    return [
        "hloader",
        "-u", url,
        "-c", str(cfg.connections),
        "-d", f"{int(cfg.duration)}s",
        "-t", f"{cfg.request_timeout}s",
        f"--keepalive={str(cfg.keepalive).lower()}",
        "-j",
    ]


# Command line of each tool available in the client image
TOOL_COMMANDS: Dict[str, Callable[[TestCaseConfig, str], List[str]]] = {
    "wrk": wrk_command,
    "hloader": hloader_command,
}


def aggregate(outputs: List[Dict[str, Any]]) -> Dict[str, Any]:
    """Combine per-process tool outputs into the metrics of one sample."""
    if not outputs:
        raise BenchmarkError("no tool output to aggregate")

    def total(key: str) -> float:
        return sum(float(o.get(key, 0)) for o in outputs)

    def peak(key: str) -> float:
        return max(float(o.get(key, 0)) for o in outputs)

    return {
        "requests": int(total("requests")),
        "rps": total("rps"),
        "avg_lat_us": total("avg_lat_us") / len(outputs),
        "max_lat_us": peak("max_lat_us"),
        "p90_lat_us": peak("p90_lat_us"),
        "p95_lat_us": peak("p95_lat_us"),
        "p99_lat_us": peak("p99_lat_us"),
        "http_errors": int(total("http_errors")),
        "timeouts": int(total("timeouts")),
    }


class PodExecDriver(BenchmarkDriver):
    """Execs the tool inside every client pod, ``procs`` processes per pod."""

    def __init__(self, session: ClusterSession, namespace: str):
        self.session = session
        self.namespace = namespace

    def run(
        self,
        cfg: TestCaseConfig,
        metadata: ClusterMetadata,
        metrics: Optional[PrometheusClient],
        pod_metrics: bool,
    ) -> List[Result]:
        try:
            command = TOOL_COMMANDS[cfg.tool](cfg, self._url(cfg))
            pods = self._client_pods(cfg.concurrency)
        except (KeyError, ApiException) as e:
            raise BenchmarkError(f"Cannot prepare test case: {e}") from e

        results = []
        for sample in range(1, cfg.samples + 1):
            logger.info(f"Running sample {sample}/{cfg.samples}: {' '.join(command)}")
            outputs = self._exec_all(pods, command, cfg.procs)
            result = Result(uuid=cfg.uuid, sample=sample, config=cfg, metadata=metadata, **aggregate(outputs))
            if pod_metrics and metrics is not None:
                result.router_cpu = self._router_cpu(metrics, cfg)
            logger.info(
                f"Sample {sample}: rps={result.rps:.2f} avg_lat_us={result.avg_lat_us:.0f} "
                f"p99_lat_us={result.p99_lat_us:.0f} http_errors={result.http_errors}"
            )
            results.append(result)
            if cfg.delay and sample < cfg.samples:
                time.sleep(cfg.delay)
        return results

    def _url(self, cfg: TestCaseConfig) -> str:
        route = self.session.custom.get_namespaced_custom_object(
            group=ROUTE_GROUP,
            version=ROUTE_VERSION,
            namespace=self.namespace,
            plural=ROUTE_PLURAL,
            name=route_name(cfg.termination),
        )
        scheme = "http" if cfg.termination == Termination.HTTP else "https"
        return f"{scheme}://{route['spec']['host']}{cfg.path}"

    def _client_pods(self, expected: int) -> List[str]:
        pods = self.session.core.list_namespaced_pod(
            namespace=self.namespace,
            label_selector=f"app={CLIENT_NAME}",
            field_selector="status.phase=Running",
        )
        names = [pod.metadata.name for pod in pods.items]
        if len(names) < expected:
            raise BenchmarkError(f"expected {expected} running client pods, found {len(names)}")
        return names[:expected]

    def _exec_all(self, pods: List[str], command: List[str], procs: int) -> List[Dict[str, Any]]:
        targets = [pod for pod in pods for _ in range(procs)]
        with ThreadPoolExecutor(max_workers=len(targets)) as executor:
            return list(executor.map(lambda pod: self._exec(pod, command), targets))

    def _exec(self, pod: str, command: List[str]) -> Dict[str, Any]:
        try:
            output = stream(
                self.session.core.connect_get_namespaced_pod_exec,
                pod,
                self.namespace,
                command=command,
                stderr=False,
                stdin=False,
                stdout=True,
                tty=False,
            )
            return json.loads(output)
        except ApiException as e:
            raise BenchmarkError(f"exec in pod {pod} failed: {e.reason}") from e
        except (TypeError, ValueError) as e:
            raise BenchmarkError(f"invalid tool output from pod {pod}: {e}") from e

    def _router_cpu(self, metrics: PrometheusClient, cfg: TestCaseConfig) -> Optional[float]:
        try:
            return metrics.query_scalar(ROUTER_CPU_QUERY.format(window=int(cfg.duration)))
        except (requests.RequestException, RuntimeError, KeyError, ValueError) as e:
            logger.warning(f"Could not fetch router CPU usage: {e}")
            return None
