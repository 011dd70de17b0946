"""Result sinks deciding when buffered results are flushed to an indexer."""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from ingress_perf.exceptions import ConfigError, IndexingError
from ingress_perf.indexers.base import Indexer
from ingress_perf.models import IndexingOptions, Result
from ingress_perf.settings import Settings

logger = logging.getLogger(__name__)


class ResultSink(ABC):
    """Accumulates results of non-warmup test cases.

    Indexing failures are logged and never raised: results are telemetry and
    losing them must not stop a run.
    """

    def __init__(self, indexer: Indexer):
        self.indexer = indexer
        self.buffer: List[Dict[str, Any]] = []

    @abstractmethod
    def accept(self, results: List[Result]) -> None:
        """Take the results of one test case."""

    @abstractmethod
    def close(self) -> None:
        """Flush anything still buffered at the end of the run."""

    def flush(self, opts: Optional[IndexingOptions] = None) -> bool:
        """Index and drop the buffered documents. Returns False on failure."""
        documents, self.buffer = self.buffer, []
        try:
            msg = self.indexer.index(documents, opts or IndexingOptions())
        except IndexingError as e:
            logger.error(f"Indexing error: {e}")
            return False
        logger.info(msg)
        return True


class StreamingSink(ResultSink):
    """Flushes every test case as soon as it completes."""

    def accept(self, results: List[Result]) -> None:
        self.buffer.extend(result.to_document() for result in results)
        self.flush()

    def close(self) -> None:
        if self.buffer:
            self.flush()


class BatchSink(ResultSink):
    """Keeps every result of the run and flushes them once, labelled with the run id."""

    def __init__(self, indexer: Indexer, run_id: str):
        super().__init__(indexer)
        self.run_id = run_id

    def accept(self, results: List[Result]) -> None:
        self.buffer.extend(result.to_document() for result in results)

    def close(self) -> None:
        self.flush(IndexingOptions(metric_name=self.run_id))


def build_sink(settings: Settings, run_id: str) -> Optional[ResultSink]:
    """Sink matching the settings: Elasticsearch streaming, local batch, or none."""
    from ingress_perf.indexers.elastic import ElasticIndexer
    from ingress_perf.indexers.local import LocalIndexer

    if settings.es_server:
        logger.info(f"Creating elastic indexer for {settings.es_index}")
        try:
            indexer = ElasticIndexer(
                [settings.es_server], settings.es_index, verify_certs=settings.es_verify_certs
            )
        except ValueError as e:
            raise ConfigError(f"Invalid Elasticsearch server {settings.es_server}: {e}") from e
        return StreamingSink(indexer)
    if settings.results_dir:
        logger.info(f"Creating local indexer in {settings.results_dir}")
        try:
            indexer = LocalIndexer(settings.results_dir)
        except IndexingError as e:
            raise ConfigError(str(e)) from e
        return BatchSink(indexer, run_id)
    return None
