"""Result indexers and sinks."""

from ingress_perf.indexers.base import Indexer
from ingress_perf.indexers.sinks import BatchSink, ResultSink, StreamingSink, build_sink

__all__ = [
    "Indexer",
    "ResultSink",
    "StreamingSink",
    "BatchSink",
    "build_sink",
]
