"""Test SuccessStore and FailureStore session semantics."""

import logging

from crawl_history.history import FailureStore, SuccessStore
from crawl_history.request import serialize

from conftest import FakeBackend


class TestSuccessStore:
    def test_upsert_returns_true_once(self):
        store = SuccessStore()
        assert store.upsert("k") is True
        assert store.upsert("k") is False
        assert store.delta == {"k"}

    def test_delete_allows_upsert_again(self):
        store = SuccessStore()
        store.upsert("k")
        store.delete("k")
        assert store.upsert("k") is True

    def test_delete_removes_from_baseline(self, fake_backend):
        fake_backend.success = {"old"}
        store = SuccessStore()
        store.read_inherit(fake_backend, inherit=True)

        store.delete("old")

        assert store.upsert("old") is True

    def test_read_without_inherit_ignores_backend(self, fake_backend):
        fake_backend.success = {"a", "b"}
        store = SuccessStore()
        store.upsert("c")

        store.read_inherit(fake_backend, inherit=False)

        assert store.baseline == set()
        assert store.delta == set()
        assert store.inheritable is False
        assert fake_backend.load_calls == 0

    def test_read_with_inherit_loads_baseline(self, fake_backend):
        fake_backend.success = {"a", "b"}
        store = SuccessStore()

        store.read_inherit(fake_backend, inherit=True)

        assert store.baseline == {"a", "b"}
        assert store.inheritable is True
        assert store.upsert("a") is False

    def test_second_inherited_read_is_noop(self, fake_backend):
        fake_backend.success = {"a"}
        store = SuccessStore()
        store.read_inherit(fake_backend, inherit=True)
        store.upsert("b")

        store.read_inherit(fake_backend, inherit=True)

        assert fake_backend.load_calls == 1
        assert store.baseline == {"a"}
        assert store.delta == {"b"}

    def test_read_failure_degrades_to_empty(self, fake_backend):
        fake_backend.success = {"a"}
        fake_backend.fail_reads = True
        store = SuccessStore()

        store.read_inherit(fake_backend, inherit=True)

        assert store.baseline == set()
        assert store.upsert("a") is True

    def test_flush_merges_delta_into_baseline(self, fake_backend):
        store = SuccessStore()
        store.upsert("a")
        store.upsert("b")

        count = store.flush(fake_backend)

        assert count == 2
        assert fake_backend.success == {"a", "b"}
        assert store.baseline == {"a", "b"}
        assert store.delta == set()
        assert store.upsert("a") is False

    def test_flush_empty_delta_skips_backend(self, fake_backend):
        store = SuccessStore()
        assert store.flush(fake_backend) == 0
        assert fake_backend.persist_calls == 0

    def test_failed_flush_keeps_delta_for_retry(self, fake_backend):
        store = SuccessStore()
        store.upsert("a")
        fake_backend.fail_writes = True

        assert store.flush(fake_backend) == 1
        assert store.delta == {"a"}
        assert store.upsert("a") is False

        fake_backend.fail_writes = False
        assert store.flush(fake_backend) == 1
        assert fake_backend.success == {"a"}
        assert store.delta == set()

    def test_failed_flush_logs_error_not_flushed(self, fake_backend, caplog):
        store = SuccessStore()
        store.upsert("a")
        fake_backend.fail_writes = True

        with caplog.at_level(logging.INFO, logger="crawl_history.history"):
            store.flush(fake_backend)

        assert "Failed to flush 1 success records" in caplog.text
        assert "Flushed" not in caplog.text

        caplog.clear()
        fake_backend.fail_writes = False
        with caplog.at_level(logging.INFO, logger="crawl_history.history"):
            store.flush(fake_backend)

        assert "Flushed 1 new success records" in caplog.text


class TestFailureStore:
    def test_upsert_groups_by_spider(self, make_request):
        store = FailureStore()
        news = make_request("https://a.example/", spider="news")
        shop = make_request("https://b.example/", spider="shop")

        assert store.upsert(news) is True
        assert store.upsert(news) is False
        assert store.upsert(shop) is True

        assert store.delta == {"news": {serialize(news)}, "shop": {serialize(shop)}}
        assert store.baseline == {"news": set(), "shop": set()}

    def test_same_request_for_other_spider_is_distinct(self, make_request):
        store = FailureStore()
        assert store.upsert(make_request(spider="news")) is True
        assert store.upsert(make_request(spider="shop")) is True

    def test_delete_removes_from_both_maps(self, make_request):
        request = make_request()
        backend = FakeBackend(failure={"news": {serialize(request)}})
        store = FailureStore()
        store.read_inherit(backend, inherit=True)

        store.delete(request)

        assert store.baseline["news"] == set()
        assert store.upsert(request) is True

    def test_delete_unknown_spider_is_noop(self, make_request):
        store = FailureStore()
        store.delete(make_request(spider="ghost"))
        assert store.baseline == {}
        assert store.delta == {}

    def test_pull_returns_only_baseline_of_spider(self, make_request):
        x1 = make_request("https://x.example/1", spider="X")
        x2 = make_request("https://x.example/2", spider="X")
        y1 = make_request("https://y.example/1", spider="Y")
        backend = FakeBackend(
            failure={
                "X": {serialize(x1), serialize(x2)},
                "Y": {serialize(y1)},
            }
        )
        store = FailureStore()
        store.read_inherit(backend, inherit=True)
        store.upsert(make_request("https://x.example/3", spider="X"))

        pulled = store.pull("X")

        assert sorted(r.url for r in pulled) == [
            "https://x.example/1",
            "https://x.example/2",
        ]
        assert store.pull("never-seen") == []

    def test_pull_skips_undecodable_keys(self, make_request):
        good = make_request()
        backend = FakeBackend(failure={"news": {serialize(good), "garbage"}})
        store = FailureStore()
        store.read_inherit(backend, inherit=True)

        assert store.pull("news") == [good]

    def test_pull_returns_fresh_list(self, make_request):
        request = make_request()
        backend = FakeBackend(failure={"news": {serialize(request)}})
        store = FailureStore()
        store.read_inherit(backend, inherit=True)

        first = store.pull("news")
        first.clear()

        assert store.pull("news") == [request]

    def test_read_without_inherit_resets(self, make_request):
        backend = FakeBackend(failure={"news": {serialize(make_request())}})
        store = FailureStore()
        store.upsert(make_request("https://other.example/"))

        store.read_inherit(backend, inherit=False)

        assert store.baseline == {}
        assert store.delta == {}
        assert backend.load_calls == 0

    def test_second_inherited_read_is_noop(self, make_request):
        backend = FakeBackend(failure={"news": {serialize(make_request())}})
        store = FailureStore()
        store.read_inherit(backend, inherit=True)
        store.read_inherit(backend, inherit=True)
        assert backend.load_calls == 1

    def test_flush_persists_all_spiders(self, make_request):
        backend = FakeBackend()
        store = FailureStore()
        news = make_request(spider="news")
        shop = make_request(spider="shop")
        store.upsert(news)
        store.upsert(shop)

        assert store.flush(backend) == 2
        assert backend.failure == {"news": {serialize(news)}, "shop": {serialize(shop)}}
        assert store.baseline == {"news": {serialize(news)}, "shop": {serialize(shop)}}
        assert store.delta == {"news": set(), "shop": set()}
        assert store.upsert(news) is False

    def test_failed_flush_keeps_delta(self, make_request):
        backend = FakeBackend()
        backend.fail_writes = True
        store = FailureStore()
        request = make_request()
        store.upsert(request)

        store.flush(backend)

        assert store.delta == {"news": {serialize(request)}}
        assert store.baseline == {"news": set()}

    def test_failed_flush_logs_error_not_flushed(self, make_request, caplog):
        backend = FakeBackend()
        backend.fail_writes = True
        store = FailureStore()
        store.upsert(make_request())

        with caplog.at_level(logging.INFO, logger="crawl_history.history"):
            store.flush(backend)

        assert "Failed to flush 1 failure records" in caplog.text
        assert "Flushed" not in caplog.text
