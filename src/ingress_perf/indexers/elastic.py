"""Elasticsearch indexer."""

from typing import Any, Dict, List

from elasticsearch import Elasticsearch
from elasticsearch.helpers import BulkIndexError, bulk

from ingress_perf.exceptions import IndexingError
from ingress_perf.indexers.base import Indexer
from ingress_perf.models import IndexingOptions


class ElasticIndexer(Indexer):
    """Bulk-indexes documents into a single index."""

    def __init__(self, servers: List[str], index: str, verify_certs: bool = False, client=None):
        self.servers = servers
        self.index_name = index
        self.client = client or Elasticsearch(hosts=servers, verify_certs=verify_certs)

    def index(self, documents: List[Dict[str, Any]], opts: IndexingOptions) -> str:
        actions = [{"_index": self.index_name, "_source": doc} for doc in documents]
        try:
            indexed, _ = bulk(self.client, actions)
        except BulkIndexError as e:
            raise IndexingError(f"{len(e.errors)} documents failed to index in {self.index_name}") from e
        except Exception as e:
            raise IndexingError(f"Failed to index documents in {self.index_name}: {e}") from e
        return f"Indexed {indexed} documents in {self.index_name}"
