"""
Relational History Backend

Stores success and failure keys in two tables over a DB-API connection.

Supports:
- MySQL (pymysql)
- PostgreSQL (psycopg2): DATABASE_URL
- Local SQLite (development/test only)

Each table holds (id_hash, id): id_hash is the sha256 of the key and serves as
primary key so long failure keys never hit index length limits.
"""

import hashlib
import logging
import re
from dataclasses import dataclass
from typing import Any, Callable

from tenacity import (
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from crawl_history.core.config import HistoryConfig
from crawl_history.core.errors import BackendQueryError, BackendUnavailable
from crawl_history.db.base import KeyedBackend

logger = logging.getLogger(__name__)

_TABLE_NAME_RE = re.compile(r"^[A-Za-z0-9_]+$")


@dataclass
class SqlDialect:
    """Driver-specific pieces of the relational backend."""

    name: str
    connect: Callable[[], Any]
    errors: tuple[type[BaseException], ...]
    quote: str
    create_table: str
    upsert: str

    def quote_name(self, table: str) -> str:
        if not _TABLE_NAME_RE.match(table):
            raise ValueError(f"invalid history table name: {table!r}")
        return f"{self.quote}{table}{self.quote}"


def mysql_dialect(config: HistoryConfig) -> SqlDialect:
    import pymysql

    mysql = config.mysql

    def connect():
        return pymysql.connect(
            host=mysql.host,
            port=mysql.port,
            user=mysql.user,
            password=mysql.password,
            database=mysql.database,
            charset="utf8mb4",
            connect_timeout=config.sql_connect_timeout,
        )

    return SqlDialect(
        name="mysql",
        connect=connect,
        errors=(pymysql.Error,),
        quote="`",
        create_table=(
            "CREATE TABLE IF NOT EXISTS {table} ("
            "id_hash CHAR(64) NOT NULL PRIMARY KEY, "
            "id TEXT NOT NULL"
            ") DEFAULT CHARSET=utf8mb4"
        ),
        upsert=(
            "INSERT INTO {table} (id_hash, id) VALUES (%s, %s) "
            "ON DUPLICATE KEY UPDATE id = VALUES(id)"
        ),
    )


def postgres_dialect(config: HistoryConfig) -> SqlDialect:
    import psycopg2

    def connect():
        if not config.database_url:
            raise BackendUnavailable(
                "DATABASE_URL is required for the postgres history provider"
            )
        return psycopg2.connect(
            config.database_url, connect_timeout=config.sql_connect_timeout
        )

    return SqlDialect(
        name="postgres",
        connect=connect,
        errors=(psycopg2.Error,),
        quote='"',
        create_table=(
            "CREATE TABLE IF NOT EXISTS {table} ("
            "id_hash TEXT PRIMARY KEY, "
            "id TEXT NOT NULL"
            ")"
        ),
        upsert=(
            "INSERT INTO {table} (id_hash, id) VALUES (%s, %s) "
            "ON CONFLICT (id_hash) DO NOTHING"
        ),
    )


def sqlite_dialect(config: HistoryConfig) -> SqlDialect:
    import sqlite3
    from pathlib import Path

    path = config.sqlite_path

    def connect():
        Path(path).parent.mkdir(parents=True, exist_ok=True)
        return sqlite3.connect(path, timeout=config.sql_connect_timeout)

    return SqlDialect(
        name="sqlite",
        connect=connect,
        errors=(sqlite3.Error, OSError),
        quote='"',
        create_table=(
            "CREATE TABLE IF NOT EXISTS {table} ("
            "id_hash TEXT PRIMARY KEY, "
            "id TEXT NOT NULL"
            ")"
        ),
        upsert=(
            "INSERT INTO {table} (id_hash, id) VALUES (?, ?) "
            "ON CONFLICT (id_hash) DO NOTHING"
        ),
    )


DIALECTS: dict[str, Callable[[HistoryConfig], SqlDialect]] = {
    "mysql": mysql_dialect,
    "postgres": postgres_dialect,
    "sqlite": sqlite_dialect,
}


def key_hash(key: str) -> str:
    return hashlib.sha256(key.encode()).hexdigest()


class SqlHistoryBackend(KeyedBackend):
    """History persisted to two relational tables."""

    def __init__(self, config: HistoryConfig, dialect: SqlDialect):
        super().__init__(config)
        self.dialect = dialect
        self.name = dialect.name
        self._ready_tables: set[str] = set()

    @classmethod
    def for_provider(cls, provider: str, config: HistoryConfig) -> "SqlHistoryBackend":
        return cls(config, DIALECTS[provider](config))

    def _connect(self) -> Any:
        """Open a connection, retrying with exponential backoff."""
        retrying = Retrying(
            stop=stop_after_attempt(max(1, self.config.sql_connect_attempts)),
            wait=wait_exponential(multiplier=1, min=1, max=10),
            retry=retry_if_exception_type(self.dialect.errors),
            reraise=True,
        )
        try:
            return retrying(self.dialect.connect)
        except self.dialect.errors as e:
            raise BackendUnavailable(
                f"cannot connect to {self.dialect.name} history store: {e}"
            ) from e

    def _ensure_table(self, cur: Any, table: str) -> None:
        if table in self._ready_tables:
            return
        cur.execute(self.dialect.create_table.format(table=self.dialect.quote_name(table)))
        logger.debug(f"Ensured {self.dialect.name} history table {table}")

    def _load_keys(self, name: str) -> list[str]:
        con = self._connect()
        try:
            cur = con.cursor()
            try:
                self._ensure_table(cur, name)
                cur.execute(f"SELECT id FROM {self.dialect.quote_name(name)}")
                keys = [row[0] for row in cur.fetchall()]
            finally:
                cur.close()
            con.commit()
            self._ready_tables.add(name)
            return keys
        except self.dialect.errors as e:
            raise BackendQueryError(f"reading {name} from {self.dialect.name}: {e}") from e
        finally:
            con.close()

    def _upsert_keys(self, name: str, keys: list[str]) -> int:
        con = self._connect()
        try:
            cur = con.cursor()
            try:
                self._ensure_table(cur, name)
                cur.executemany(
                    self.dialect.upsert.format(table=self.dialect.quote_name(name)),
                    [(key_hash(key), key) for key in keys],
                )
            finally:
                cur.close()
            con.commit()
            self._ready_tables.add(name)
            return len(keys)
        except self.dialect.errors as e:
            con.rollback()
            raise BackendQueryError(f"writing {name} to {self.dialect.name}: {e}") from e
        finally:
            con.close()
