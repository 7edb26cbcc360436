"""
History Backend Interface

Every persistence provider (MongoDB, relational, flat file) exposes the same
load/persist capability. Backends raise HistoryError subclasses or OSError;
recovering from them is the caller's job.
"""

import logging
from abc import ABC, abstractmethod
from typing import Iterable, Mapping

from crawl_history.core.config import HistoryConfig
from crawl_history.core.errors import DecodeError
from crawl_history.request import spider_name_of, unserialize

logger = logging.getLogger(__name__)


class HistoryBackend(ABC):
    """Load and persist success/failure keys for one provider."""

    name: str = "base"

    def __init__(self, config: HistoryConfig):
        self.config = config

    @abstractmethod
    def load_success(self) -> set[str]:
        """Return every persisted success key."""

    @abstractmethod
    def load_failure(self) -> dict[str, set[str]]:
        """Return persisted failure keys grouped by spider name."""

    @abstractmethod
    def persist_success(self, keys: Iterable[str]) -> int:
        """Upsert success keys. Returns the number of keys written."""

    @abstractmethod
    def persist_failure(self, delta: Mapping[str, Iterable[str]]) -> int:
        """Upsert failure keys for every spider. Returns the number of keys written."""

    def close(self) -> None:
        """Release client resources held by the backend."""


class KeyedBackend(HistoryBackend):
    """
    Backend storing flat key collections (one for success, one for failure).

    Failure keys carry no spider column, so the spider name is recovered by
    decoding each key on load.
    """

    @abstractmethod
    def _load_keys(self, name: str) -> list[str]:
        """Return every key stored under collection/table ``name``."""

    @abstractmethod
    def _upsert_keys(self, name: str, keys: list[str]) -> int:
        """Idempotently write ``keys`` under collection/table ``name``."""

    def load_success(self) -> set[str]:
        return set(self._load_keys(self.config.success_name))

    def load_failure(self) -> dict[str, set[str]]:
        return group_by_spider(self._load_keys(self.config.failure_name))

    def persist_success(self, keys: Iterable[str]) -> int:
        keys = list(keys)
        if not keys:
            return 0
        return self._upsert_keys(self.config.success_name, keys)

    def persist_failure(self, delta: Mapping[str, Iterable[str]]) -> int:
        keys = [key for spider_keys in delta.values() for key in spider_keys]
        if not keys:
            return 0
        return self._upsert_keys(self.config.failure_name, keys)


def group_by_spider(keys: Iterable[str]) -> dict[str, set[str]]:
    """File failure keys under the spider that produced them, skipping undecodable ones."""
    grouped: dict[str, set[str]] = {}
    skipped = 0
    for key in keys:
        try:
            spider = spider_name_of(unserialize(key))
        except DecodeError:
            skipped += 1
            continue
        grouped.setdefault(spider, set()).add(key)
    if skipped:
        logger.warning(f"Skipped {skipped} undecodable failure records")
    return grouped
