"""File based indexer, one JSON file per batch."""

import json
from pathlib import Path
from typing import Any, Dict, List

from ingress_perf.exceptions import IndexingError
from ingress_perf.indexers.base import Indexer
from ingress_perf.models import IndexingOptions

DEFAULT_METRIC_NAME = "ingress-perf"


class LocalIndexer(Indexer):
    """Writes every batch of documents to ``<directory>/<metric_name>.json``."""

    def __init__(self, directory: Path):
        """Initialize the indexer.

        Args:
            directory: Directory receiving the result files, created if missing.
        """
        self.directory = Path(directory)
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise IndexingError(f"Cannot create results directory {self.directory}: {e}") from e

    def index(self, documents: List[Dict[str, Any]], opts: IndexingOptions) -> str:
        name = opts.metric_name or DEFAULT_METRIC_NAME
        if "/" in name or ".." in name:
            raise IndexingError(f"Invalid metric name: {name}")
        target = self.directory / f"{name}.json"
        try:
            # Write to temporary file first
            temp_file = target.with_suffix(".tmp")
            with open(temp_file, "w") as f:
                json.dump(documents, f, indent=2, default=str)

            # Atomic rename
            temp_file.replace(target)
        except (IOError, TypeError) as e:
            raise IndexingError(f"Failed to write {target}: {e}") from e
        return f"File {target} created with {len(documents)} documents"
