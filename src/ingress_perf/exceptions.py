"""Exception hierarchy for ingress-perf runs."""

from typing import Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from ingress_perf.models import ReadinessDiagnostic


class IngressPerfError(Exception):
    """Base class for all ingress-perf errors."""


class ConfigError(IngressPerfError):
    """Invalid settings or test case file."""


class ConnectivityError(IngressPerfError):
    """The cluster API or one of its metadata endpoints is unreachable."""


class WaitTimeoutError(IngressPerfError):
    """A bounded poll elapsed or was cancelled before its condition held."""

    def __init__(self, message: str, cancelled: bool = False):
        super().__init__(message)
        self.cancelled = cancelled


class DeploymentNotReady(WaitTimeoutError):
    """A deployment did not reach its desired replicas in time."""

    def __init__(
        self,
        message: str,
        diagnostic: Optional["ReadinessDiagnostic"] = None,
        cancelled: bool = False,
    ):
        super().__init__(message, cancelled=cancelled)
        self.diagnostic = diagnostic


class TuningError(IngressPerfError):
    """An ingress tuning profile could not be applied."""


class BenchmarkError(IngressPerfError):
    """The benchmark driver failed to produce results for a test case."""


class IndexingError(IngressPerfError):
    """Result documents could not be written to the indexing backend."""


class ComparisonFailed(IngressPerfError):
    """Every test case ran, but at least one result comparison failed."""
