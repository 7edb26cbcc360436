"""
History Configuration

Environment-driven settings for the crawl history tracker and the explicit
HistoryConfig structure handed to HistoryTracker.

Relative default paths resolve against the working directory.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path

SUCCESS_SUFFIX = "_y"
FAILURE_SUFFIX = "_n"


class HistorySettings:
    """Crawl history configuration (backend selection, paths, connections)"""

    # Backend selection: "mgo", "mysql", "postgres", "sqlite" or "file"
    HISTORY_PROVIDER: str = os.getenv("HISTORY_PROVIDER", "file")

    # Flat file backend
    HISTORY_CACHE_DIR: str = os.getenv("HISTORY_CACHE_DIR", "data/cache")
    HISTORY_FILE_NAME: str = os.getenv("HISTORY_FILE_NAME", "history")

    # MongoDB
    HISTORY_MONGO_URI: str = os.getenv("HISTORY_MONGO_URI", "mongodb://localhost:27017")
    HISTORY_MONGO_DB: str = os.getenv("HISTORY_MONGO_DB", "crawl_history")
    HISTORY_MONGO_TIMEOUT_MS: int = int(os.getenv("HISTORY_MONGO_TIMEOUT_MS", "5000"))

    # MySQL
    HISTORY_MYSQL_HOST: str = os.getenv("HISTORY_MYSQL_HOST", "localhost")
    HISTORY_MYSQL_PORT: int = int(os.getenv("HISTORY_MYSQL_PORT", "3306"))
    HISTORY_MYSQL_USER: str = os.getenv("HISTORY_MYSQL_USER", "root")
    HISTORY_MYSQL_PASSWORD: str = os.getenv("HISTORY_MYSQL_PASSWORD", "")
    HISTORY_MYSQL_DATABASE: str = os.getenv("HISTORY_MYSQL_DATABASE", "crawl_history")

    # PostgreSQL (production): DATABASE_URL
    # SQLite (development): HISTORY_SQLITE_PATH
    DATABASE_URL: str | None = os.getenv("DATABASE_URL")
    HISTORY_SQLITE_PATH: str = os.getenv("HISTORY_SQLITE_PATH", "data/history.db")
    HISTORY_SQL_CONNECT_ATTEMPTS: int = int(
        os.getenv("HISTORY_SQL_CONNECT_ATTEMPTS", "3")
    )
    HISTORY_SQL_CONNECT_TIMEOUT: int = int(
        os.getenv("HISTORY_SQL_CONNECT_TIMEOUT", "10")
    )


settings = HistorySettings()


@dataclass
class MysqlConfig:
    host: str = "localhost"
    port: int = 3306
    user: str = "root"
    password: str = ""
    database: str = "crawl_history"


@dataclass
class HistoryConfig:
    """
    Explicit configuration for a HistoryTracker.

    Success and failure file (or table/collection) names are derived from
    base_file_name by suffixing "_y" and "_n".
    """

    provider: str = "file"
    cache_dir: str = "data/cache"
    base_file_name: str = "history"

    mongo_uri: str = "mongodb://localhost:27017"
    mongo_db: str = "crawl_history"
    mongo_timeout_ms: int = 5000

    mysql: MysqlConfig = field(default_factory=MysqlConfig)
    database_url: str | None = None
    sqlite_path: str = "data/history.db"
    sql_connect_attempts: int = 3
    sql_connect_timeout: int = 10

    @property
    def success_name(self) -> str:
        return self.base_file_name + SUCCESS_SUFFIX

    @property
    def failure_name(self) -> str:
        return self.base_file_name + FAILURE_SUFFIX

    @property
    def success_file(self) -> Path:
        return Path(self.cache_dir) / self.success_name

    @property
    def failure_file(self) -> Path:
        return Path(self.cache_dir) / self.failure_name

    @classmethod
    def from_settings(cls, source: HistorySettings = settings) -> "HistoryConfig":
        """Build a config from the environment-driven settings."""
        return cls(
            provider=source.HISTORY_PROVIDER,
            cache_dir=source.HISTORY_CACHE_DIR,
            base_file_name=source.HISTORY_FILE_NAME,
            mongo_uri=source.HISTORY_MONGO_URI,
            mongo_db=source.HISTORY_MONGO_DB,
            mongo_timeout_ms=source.HISTORY_MONGO_TIMEOUT_MS,
            mysql=MysqlConfig(
                host=source.HISTORY_MYSQL_HOST,
                port=source.HISTORY_MYSQL_PORT,
                user=source.HISTORY_MYSQL_USER,
                password=source.HISTORY_MYSQL_PASSWORD,
                database=source.HISTORY_MYSQL_DATABASE,
            ),
            database_url=source.DATABASE_URL,
            sqlite_path=source.HISTORY_SQLITE_PATH,
            sql_connect_attempts=source.HISTORY_SQL_CONNECT_ATTEMPTS,
            sql_connect_timeout=source.HISTORY_SQL_CONNECT_TIMEOUT,
        )
