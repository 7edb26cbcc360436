"""
History Backend Factory

Maps a provider name onto one of the closed set of backends:

    "mgo"                         -> MongoHistoryBackend
    "mysql", "postgres", "sqlite" -> SqlHistoryBackend
    anything else ("file")        -> FileHistoryBackend
"""

from crawl_history.core.config import HistoryConfig
from crawl_history.db.base import HistoryBackend

PROVIDER_MONGO = "mgo"
PROVIDER_MYSQL = "mysql"
PROVIDER_POSTGRES = "postgres"
PROVIDER_SQLITE = "sqlite"
PROVIDER_FILE = "file"

SQL_PROVIDERS = (PROVIDER_MYSQL, PROVIDER_POSTGRES, PROVIDER_SQLITE)


def get_backend(provider: str, config: HistoryConfig) -> HistoryBackend:
    """Create the backend for ``provider``. Unknown providers fall back to flat files."""
    if provider == PROVIDER_MONGO:
        from crawl_history.db.mongo import MongoHistoryBackend

        return MongoHistoryBackend(config)

    if provider in SQL_PROVIDERS:
        from crawl_history.db.sql import SqlHistoryBackend

        return SqlHistoryBackend.for_provider(provider, config)

    from crawl_history.db.flatfile import FileHistoryBackend

    return FileHistoryBackend(config)
