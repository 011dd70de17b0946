"""Indexer interface."""

from abc import ABC, abstractmethod
from typing import Any, Dict, List

from ingress_perf.models import IndexingOptions


class Indexer(ABC):
    """Writes result documents to a storage backend."""

    @abstractmethod
    def index(self, documents: List[Dict[str, Any]], opts: IndexingOptions) -> str:
        """Store ``documents`` and return a human readable status message.

        Raises:
            IndexingError: the documents could not be stored.
        """
