"""
Crawl History

Remembers which requests succeeded and which failed, across crawl sessions.

Each store keeps an inherited baseline (already persisted) and a delta
(recorded this session, pending flush). A flush persists only the delta and
then folds it into the baseline, so duplicate detection keeps working.

Backend errors never reach the caller: a failed read leaves an empty
baseline, a failed flush leaves the delta pending for the next flush.
"""

import logging
import threading
from typing import Callable

from crawl_history.core.config import HistoryConfig
from crawl_history.core.errors import DecodeError, HistoryError
from crawl_history.db.base import HistoryBackend
from crawl_history.db.factory import get_backend
from crawl_history.request import (
    Record,
    Request,
    record_key,
    serialize,
    spider_name_of,
    unserialize,
)

logger = logging.getLogger(__name__)

BackendFactory = Callable[[str, HistoryConfig], HistoryBackend]


class SuccessStore:
    """Keys of requests known to have succeeded."""

    def __init__(self):
        self.baseline: set[str] = set()
        self.delta: set[str] = set()
        self.inheritable = False

    def reset(self) -> None:
        self.baseline = set()
        self.delta = set()

    def read_inherit(self, backend: HistoryBackend, inherit: bool) -> None:
        if not inherit:
            # Session starts without memory of past successes
            self.reset()
            self.inheritable = False
            return
        if self.inheritable:
            # Already inherited in this session
            return

        self.reset()
        self.inheritable = True
        try:
            self.baseline = backend.load_success()
        except (HistoryError, OSError) as e:
            logger.error(f"Failed to read success records from {backend.name}: {e}")
            return
        logger.info(f" *     Read {len(self.baseline)} success records")

    def upsert(self, key: str) -> bool:
        if key in self.baseline or key in self.delta:
            return False
        self.delta.add(key)
        return True

    def delete(self, key: str) -> None:
        self.baseline.discard(key)
        self.delta.discard(key)

    def flush(self, backend: HistoryBackend) -> int:
        count = len(self.delta)
        if not count:
            return 0
        try:
            backend.persist_success(list(self.delta))
        except (HistoryError, OSError) as e:
            logger.error(f"Failed to flush {count} success records to {backend.name}: {e}")
            return count
        self.baseline |= self.delta
        self.delta = set()
        logger.info(f" *     Flushed {count} new success records")
        return count


class FailureStore:
    """Keys of requests known to have failed, grouped by spider name."""

    def __init__(self):
        self.baseline: dict[str, set[str]] = {}
        self.delta: dict[str, set[str]] = {}
        self.inheritable = False

    def reset(self) -> None:
        self.baseline = {}
        self.delta = {}

    def read_inherit(self, backend: HistoryBackend, inherit: bool) -> None:
        if not inherit:
            self.reset()
            self.inheritable = False
            return
        if self.inheritable:
            return

        self.reset()
        self.inheritable = True
        try:
            self.baseline = backend.load_failure()
        except (HistoryError, OSError) as e:
            logger.error(f"Failed to read failure records from {backend.name}: {e}")
            return
        for spider in self.baseline:
            self.delta[spider] = set()
        total = sum(len(keys) for keys in self.baseline.values())
        logger.info(f" *     Read {total} failure records")

    def _contains(self, spider: str, key: str) -> bool:
        return key in self.baseline.get(spider, ()) or key in self.delta.get(spider, ())

    def upsert(self, request: Request) -> bool:
        key = serialize(request)
        spider = spider_name_of(request)
        if self._contains(spider, key):
            return False
        self.baseline.setdefault(spider, set())
        self.delta.setdefault(spider, set()).add(key)
        return True

    def delete(self, request: Request) -> None:
        key = serialize(request)
        spider = spider_name_of(request)
        if spider in self.baseline:
            self.baseline[spider].discard(key)
        if spider in self.delta:
            self.delta[spider].discard(key)

    def pull(self, spider: str) -> list[Request]:
        """Requests that failed for ``spider`` in the inherited run."""
        requests = []
        for key in sorted(self.baseline.get(spider, ())):
            try:
                requests.append(unserialize(key))
            except DecodeError:
                continue
        return requests

    def flush(self, backend: HistoryBackend) -> int:
        pending = {spider: keys for spider, keys in self.delta.items() if keys}
        count = sum(len(keys) for keys in pending.values())
        if not count:
            return 0
        try:
            backend.persist_failure(pending)
        except (HistoryError, OSError) as e:
            logger.error(f"Failed to flush {count} failure records to {backend.name}: {e}")
            return count
        for spider, keys in pending.items():
            self.baseline.setdefault(spider, set()).update(keys)
            self.delta[spider] = set()
        logger.info(f" *     Flushed {count} new failure records")
        return count


class HistoryTracker:
    """
    Success/failure history shared by every request-completion call site.

    One lock guards both stores and the active provider for the whole of
    every public operation, backend I/O included.

    Usage:
        tracker = HistoryTracker(HistoryConfig.from_settings())
        tracker.read_success("file", inherit=True)
        tracker.read_failure("file", inherit=True)

        if tracker.upsert_success(request):
            ...
        tracker.flush_success("file")
    """

    def __init__(
        self,
        config: HistoryConfig | None = None,
        backend_factory: BackendFactory = get_backend,
    ):
        self.config = config or HistoryConfig.from_settings()
        self._backend_factory = backend_factory
        self._backends: dict[str, HistoryBackend] = {}
        self._success = SuccessStore()
        self._failure = FailureStore()
        self._provider = self.config.provider
        self._lock = threading.Lock()

    @property
    def provider(self) -> str:
        with self._lock:
            return self._provider

    def _backend(self, provider: str) -> HistoryBackend:
        backend = self._backends.get(provider)
        if backend is None:
            backend = self._backend_factory(provider, self.config)
            self._backends[provider] = backend
        return backend

    def read_success(self, provider: str, inherit: bool) -> None:
        """Start a session's success history, inheriting the persisted one if asked."""
        with self._lock:
            self._provider = provider
            self._success.read_inherit(self._backend(provider), inherit)

    def read_failure(self, provider: str, inherit: bool) -> None:
        """Start a session's failure history, inheriting the persisted one if asked."""
        with self._lock:
            self._provider = provider
            self._failure.read_inherit(self._backend(provider), inherit)

    def upsert_success(self, record: Record) -> bool:
        """Record a success. Returns False if it was already recorded."""
        with self._lock:
            return self._success.upsert(record_key(record))

    def delete_success(self, record: Record) -> None:
        with self._lock:
            self._success.delete(record_key(record))

    def upsert_failure(self, request: Request) -> bool:
        """Record a failure. Returns False if it was already recorded."""
        with self._lock:
            return self._failure.upsert(request)

    def delete_failure(self, request: Request) -> None:
        with self._lock:
            self._failure.delete(request)

    def flush_success(self, provider: str) -> int:
        """Persist pending successes without clearing the in-memory history."""
        with self._lock:
            self._provider = provider
            return self._success.flush(self._backend(provider))

    def flush_failure(self, provider: str) -> int:
        """Persist pending failures without clearing the in-memory history."""
        with self._lock:
            self._provider = provider
            return self._failure.flush(self._backend(provider))

    def pull_failure(self, spider_name: str) -> list[Request]:
        """Requests of ``spider_name`` that failed in the previous run."""
        with self._lock:
            return self._failure.pull(spider_name)

    def empty(self) -> None:
        """Drop all in-memory history without writing anything."""
        with self._lock:
            self._success.reset()
            self._failure.reset()
            # Next inherited read reloads from the backend
            self._success.inheritable = False
            self._failure.inheritable = False

    def stats(self) -> dict:
        """
        Snapshot of history sizes.

        Returns:
            Dict with provider, success and per-spider failure counts
        """
        with self._lock:
            spiders = sorted(set(self._failure.baseline) | set(self._failure.delta))
            return {
                "provider": self._provider,
                "success": {
                    "baseline": len(self._success.baseline),
                    "delta": len(self._success.delta),
                },
                "failure": {
                    spider: {
                        "baseline": len(self._failure.baseline.get(spider, ())),
                        "delta": len(self._failure.delta.get(spider, ())),
                    }
                    for spider in spiders
                },
            }

    def close(self) -> None:
        with self._lock:
            for backend in self._backends.values():
                backend.close()
            self._backends = {}
