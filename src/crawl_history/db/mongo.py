"""
MongoDB History Backend

Collections (named after the configured base file name):
1. <base>_y - succeeded request keys
2. <base>_n - failed request keys (serialized requests)

Each document is {"_id": key}; writes are upserts so re-flushing is safe.
"""

import logging
from contextlib import contextmanager
from typing import Iterator

from pymongo import MongoClient, ReplaceOne
from pymongo.collection import Collection
from pymongo.errors import ConnectionFailure, PyMongoError, ServerSelectionTimeoutError

from crawl_history.core.config import HistoryConfig
from crawl_history.core.errors import BackendQueryError, BackendUnavailable
from crawl_history.db.base import KeyedBackend

logger = logging.getLogger(__name__)


@contextmanager
def _translate_errors(action: str) -> Iterator[None]:
    try:
        yield
    except (ServerSelectionTimeoutError, ConnectionFailure) as e:
        raise BackendUnavailable(f"MongoDB unreachable while {action}: {e}") from e
    except PyMongoError as e:
        raise BackendQueryError(f"MongoDB error while {action}: {e}") from e


class MongoHistoryBackend(KeyedBackend):
    """History persisted to two MongoDB collections."""

    name = "mgo"

    def __init__(self, config: HistoryConfig, client: MongoClient | None = None):
        super().__init__(config)
        self._client = client
        self._owns_client = client is None

    def _collection(self, name: str) -> Collection:
        if self._client is None:
            self._client = MongoClient(
                self.config.mongo_uri,
                serverSelectionTimeoutMS=self.config.mongo_timeout_ms,
            )
            logger.info(f"[HISTORY][MongoDB] Connected with db={self.config.mongo_db}")
        return self._client[self.config.mongo_db][name]

    def _load_keys(self, name: str) -> list[str]:
        with _translate_errors(f"reading {name}"):
            docs = self._collection(name).find({}, {"_id": 1})
            return [str(doc["_id"]) for doc in docs]

    def _upsert_keys(self, name: str, keys: list[str]) -> int:
        ops = [ReplaceOne({"_id": key}, {"_id": key}, upsert=True) for key in keys]
        with _translate_errors(f"writing {name}"):
            self._collection(name).bulk_write(ops, ordered=False)
        return len(keys)

    def close(self) -> None:
        if self._client is not None and self._owns_client:
            self._client.close()
            self._client = None
