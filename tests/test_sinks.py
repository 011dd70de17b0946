"""Result sink and indexer tests."""

import json
from unittest.mock import MagicMock

import pytest
from elasticsearch.helpers import BulkIndexError

from ingress_perf.exceptions import ConfigError, IndexingError
from ingress_perf.indexers import elastic
from ingress_perf.indexers.elastic import ElasticIndexer
from ingress_perf.indexers.local import LocalIndexer
from ingress_perf.indexers.sinks import BatchSink, StreamingSink, build_sink
from ingress_perf.models import IndexingOptions
from ingress_perf.settings import Settings


@pytest.fixture
def indexer() -> MagicMock:
    indexer = MagicMock()
    indexer.index.return_value = "ok"
    return indexer


@pytest.mark.indexing
class TestStreamingSink:
    """One flush per test case"""

    def test_flushes_every_accept(self, indexer, make_result):
        sink = StreamingSink(indexer)

        for sample in (1, 2, 3):
            sink.accept([make_result(sample=sample)])
        sink.close()

        assert indexer.index.call_count == 3
        for c in indexer.index.call_args_list:
            documents, opts = c.args
            assert len(documents) == 1
            assert opts.metric_name is None
        assert sink.buffer == []

    def test_indexing_error_is_not_fatal(self, indexer, make_result, caplog):
        indexer.index.side_effect = [IndexingError("cluster unavailable"), "ok"]
        sink = StreamingSink(indexer)

        sink.accept([make_result()])
        sink.accept([make_result(sample=2)])

        assert indexer.index.call_count == 2
        assert "Indexing error: cluster unavailable" in caplog.text
        # Failed documents are dropped, not retried with the next batch
        assert len(indexer.index.call_args_list[1].args[0]) == 1

    def test_close_without_results(self, indexer):
        StreamingSink(indexer).close()

        indexer.index.assert_not_called()


@pytest.mark.indexing
class TestBatchSink:
    """Single flush at the end of the run"""

    def test_single_flush_labelled_with_run_id(self, indexer, make_result):
        sink = BatchSink(indexer, "run-1")

        for sample in (1, 2, 3):
            sink.accept([make_result(sample=sample), make_result(sample=sample)])
        indexer.index.assert_not_called()
        sink.close()

        indexer.index.assert_called_once()
        documents, opts = indexer.index.call_args.args
        assert len(documents) == 6
        assert opts.metric_name == "run-1"
        assert documents[0]["uuid"] == "run-1"

    def test_close_flushes_empty_batch(self, indexer):
        BatchSink(indexer, "run-1").close()

        indexer.index.assert_called_once()
        assert indexer.index.call_args.args[0] == []

    def test_indexing_error_is_not_fatal(self, indexer, make_result, caplog):
        indexer.index.side_effect = IndexingError("disk full")
        sink = BatchSink(indexer, "run-1")
        sink.accept([make_result()])

        sink.close()

        assert "Indexing error: disk full" in caplog.text


@pytest.mark.indexing
class TestBuildSink:
    """Sink selection from settings"""

    def test_elasticsearch_streams(self, monkeypatch):
        es_client = MagicMock()
        monkeypatch.setattr(elastic, "Elasticsearch", es_client)
        settings = Settings(es_server="https://es.example.com:9200", es_index="ingress-perf-ci")

        sink = build_sink(settings, "run-1")

        assert isinstance(sink, StreamingSink)
        assert sink.indexer.index_name == "ingress-perf-ci"
        es_client.assert_called_once_with(hosts=["https://es.example.com:9200"], verify_certs=False)

    def test_elasticsearch_wins_over_local(self, monkeypatch, tmp_path):
        monkeypatch.setattr(elastic, "Elasticsearch", MagicMock())
        settings = Settings(es_server="https://es.example.com:9200", results_dir=tmp_path)

        assert isinstance(build_sink(settings, "run-1"), StreamingSink)

    def test_invalid_elasticsearch_server(self, monkeypatch):
        monkeypatch.setattr(elastic, "Elasticsearch", MagicMock(side_effect=ValueError("bad URL")))

        with pytest.raises(ConfigError):
            build_sink(Settings(es_server="not a url"), "run-1")

    def test_local_directory_batches(self, tmp_path):
        sink = build_sink(Settings(results_dir=tmp_path / "results"), "run-1")

        assert isinstance(sink, BatchSink)
        assert sink.run_id == "run-1"
        assert (tmp_path / "results").is_dir()

    def test_no_indexing(self):
        assert build_sink(Settings(), "run-1") is None


@pytest.mark.indexing
class TestLocalIndexer:
    """JSON files on disk"""

    def test_writes_file_named_after_metric(self, tmp_path, make_result):
        indexer = LocalIndexer(tmp_path)
        documents = [make_result(sample=1, rps=100.0).to_document()]

        msg = indexer.index(documents, IndexingOptions(metric_name="run-1"))

        target = tmp_path / "run-1.json"
        assert msg == f"File {target} created with 1 documents"
        written = json.loads(target.read_text())
        assert written[0]["rps"] == 100.0
        assert written[0]["config"]["termination"] == "http"
        assert not (tmp_path / "run-1.tmp").exists()

    def test_default_file_name(self, tmp_path):
        LocalIndexer(tmp_path).index([], IndexingOptions())

        assert json.loads((tmp_path / "ingress-perf.json").read_text()) == []

    def test_rejects_path_traversal(self, tmp_path):
        with pytest.raises(IndexingError):
            LocalIndexer(tmp_path).index([], IndexingOptions(metric_name="../escape"))

    def test_unwritable_directory(self, tmp_path):
        blocker = tmp_path / "file"
        blocker.write_text("")

        with pytest.raises(IndexingError):
            LocalIndexer(blocker / "results")


@pytest.mark.indexing
class TestElasticIndexer:
    """Bulk indexing"""

    def test_bulk_actions(self, monkeypatch):
        bulk = MagicMock(return_value=(2, []))
        monkeypatch.setattr(elastic, "bulk", bulk)
        client = MagicMock()
        indexer = ElasticIndexer(["http://es:9200"], "ingress-performance", client=client)

        msg = indexer.index([{"rps": 1.0}, {"rps": 2.0}], IndexingOptions())

        assert msg == "Indexed 2 documents in ingress-performance"
        actions = bulk.call_args.args[1]
        assert actions == [
            {"_index": "ingress-performance", "_source": {"rps": 1.0}},
            {"_index": "ingress-performance", "_source": {"rps": 2.0}},
        ]
        assert bulk.call_args.args[0] is client

    def test_bulk_errors(self, monkeypatch):
        monkeypatch.setattr(
            elastic, "bulk", MagicMock(side_effect=BulkIndexError("1 document(s) failed", [{"index": {}}]))
        )
        indexer = ElasticIndexer(["http://es:9200"], "ingress-performance", client=MagicMock())

        with pytest.raises(IndexingError, match="1 documents failed"):
            indexer.index([{"rps": 1.0}], IndexingOptions())

    def test_connection_errors(self, monkeypatch):
        monkeypatch.setattr(elastic, "bulk", MagicMock(side_effect=ConnectionError("refused")))
        indexer = ElasticIndexer(["http://es:9200"], "ingress-performance", client=MagicMock())

        with pytest.raises(IndexingError, match="refused"):
            indexer.index([{"rps": 1.0}], IndexingOptions())

    def test_failure_logged_once_by_sink(self, monkeypatch, make_result, caplog):
        monkeypatch.setattr(elastic, "bulk", MagicMock(side_effect=ConnectionError("refused")))
        sink = StreamingSink(ElasticIndexer(["http://es:9200"], "ingress-performance", client=MagicMock()))

        sink.accept([make_result()])

        records = [r for r in caplog.records if "refused" in r.getMessage()]
        assert len(records) == 1
        assert records[0].levelname == "ERROR"
        assert records[0].getMessage().startswith("Indexing error")
