"""Test fixtures for crawl history tests."""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import pytest  # noqa: E402

from crawl_history.core.config import HistoryConfig  # noqa: E402
from crawl_history.db.base import HistoryBackend  # noqa: E402
from crawl_history.core.errors import BackendQueryError  # noqa: E402
from crawl_history.request import Request  # noqa: E402


class FakeBackend(HistoryBackend):
    """In-memory backend recording every call."""

    name = "fake"

    def __init__(self, success=None, failure=None):
        super().__init__(HistoryConfig())
        self.success = set(success or ())
        self.failure = {spider: set(keys) for spider, keys in (failure or {}).items()}
        self.fail_reads = False
        self.fail_writes = False
        self.load_calls = 0
        self.persist_calls = 0
        self.closed = False

    def load_success(self):
        self.load_calls += 1
        if self.fail_reads:
            raise BackendQueryError("read failed")
        return set(self.success)

    def load_failure(self):
        self.load_calls += 1
        if self.fail_reads:
            raise BackendQueryError("read failed")
        return {spider: set(keys) for spider, keys in self.failure.items()}

    def persist_success(self, keys):
        self.persist_calls += 1
        if self.fail_writes:
            raise BackendQueryError("write failed")
        keys = list(keys)
        self.success.update(keys)
        return len(keys)

    def persist_failure(self, delta):
        self.persist_calls += 1
        if self.fail_writes:
            raise BackendQueryError("write failed")
        count = 0
        for spider, keys in delta.items():
            self.failure.setdefault(spider, set()).update(keys)
            count += len(keys)
        return count

    def close(self):
        self.closed = True


@pytest.fixture
def fake_backend():
    return FakeBackend()


@pytest.fixture
def history_config(tmp_path):
    """Config pointing every local backend at a temporary directory."""
    return HistoryConfig(
        provider="file",
        cache_dir=str(tmp_path / "cache"),
        base_file_name="history",
        sqlite_path=str(tmp_path / "history.db"),
        sql_connect_attempts=1,
    )


@pytest.fixture
def make_request():
    def _make(url="https://example.com/", spider="news", **kwargs):
        return Request(spider=spider, url=url, **kwargs)

    return _make
