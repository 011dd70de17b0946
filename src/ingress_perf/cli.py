"""Command line entry point."""

import argparse
import logging
import signal
import sys
import uuid as uuidlib
from typing import List, Optional

from kubernetes.client.rest import ApiException
from pydantic import ValidationError
from urllib3.exceptions import HTTPError

from ingress_perf import __version__
from ingress_perf.config import load_config
from ingress_perf.exceptions import ComparisonFailed, ConfigError, IngressPerfError, WaitTimeoutError
from ingress_perf.indexers.sinks import build_sink
from ingress_perf.runner.runner import Runner
from ingress_perf.settings import Settings

logger = logging.getLogger("ingress_perf")

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_COMPARISON_FAILED = 2


def setup_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stdout,
    )
    # Per-request debug output of the API client drowns the run progress
    logging.getLogger("urllib3").setLevel(logging.WARNING)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ingress-perf",
        description="Benchmark the cluster ingress layer",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    run = subparsers.add_parser("run", help="Run the benchmark")
    run.add_argument("--cfg", required=True, help="YAML file with the test cases")
    run.add_argument("--uuid", default=None, help="Run identifier (random by default)")
    run.add_argument("--cleanup", action="store_true", help="Delete the benchmark assets at the end")
    run.add_argument("--namespace", default=None, help="Benchmark namespace")
    run.add_argument("--es-server", default=None, help="Elasticsearch URL for streaming indexing")
    run.add_argument("--es-index", default=None, help="Elasticsearch index")
    run.add_argument("--output-dir", default=None, help="Directory for local batch indexing")
    run.add_argument("--pod-metrics", action="store_true", default=None, help="Collect router metrics")
    run.add_argument("--log-level", default=None, help="Logging level")

    subparsers.add_parser("version", help="Print the version")
    return parser


def settings_from_args(args: argparse.Namespace) -> Settings:
    """Settings from the environment, overridden by the flags that were given."""
    overrides = {
        "namespace": args.namespace,
        "es_server": args.es_server,
        "es_index": args.es_index,
        "results_dir": args.output_dir,
        "pod_metrics": args.pod_metrics,
        "log_level": args.log_level,
    }
    try:
        return Settings(**{key: value for key, value in overrides.items() if value is not None})
    except ValidationError as e:
        raise ConfigError(f"Invalid settings: {e}") from e


def run(args: argparse.Namespace) -> int:
    try:
        settings = settings_from_args(args)
    except ConfigError as e:
        print(str(e), file=sys.stderr)
        return EXIT_ERROR
    setup_logging(settings.log_level)

    run_id = args.uuid or str(uuidlib.uuid4())
    try:
        test_cases = load_config(args.cfg)
        sink = build_sink(settings, run_id)
    except IngressPerfError as e:
        logger.error(str(e))
        return EXIT_ERROR

    logger.info(f"Starting ingress-perf run {run_id} with {len(test_cases)} test cases")
    runner = Runner(run_id, args.cleanup, test_cases, settings=settings, sink=sink)

    def handle_signal(signum, frame):
        logger.warning(f"Received signal {signum}, cancelling")
        runner.stop()

    signal.signal(signal.SIGINT, handle_signal)
    signal.signal(signal.SIGTERM, handle_signal)

    try:
        runner.start()
    except ComparisonFailed as e:
        logger.error(str(e))
        return EXIT_COMPARISON_FAILED
    except WaitTimeoutError as e:
        if e.cancelled:
            logger.warning(f"Run {run_id} cancelled in phase {runner.state.phase.value}")
        else:
            logger.error(f"Run {run_id} failed in phase {runner.state.phase.value}: {e}")
        return EXIT_ERROR
    except (IngressPerfError, ApiException, HTTPError) as e:
        logger.error(f"Run {run_id} failed in phase {runner.state.phase.value}: {e}")
        return EXIT_ERROR
    logger.info(f"Run {run_id} completed")
    return EXIT_OK


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    if args.command == "version":
        print(f"ingress-perf {__version__}")
        return EXIT_OK
    return run(args)


if __name__ == "__main__":
    sys.exit(main())
