"""Core database infrastructure: connect, execute, transactions, schema."""

import logging
import os
import re
import sqlite3
from collections.abc import Iterator, Mapping, Sequence
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any, Callable
from urllib.parse import urlparse, urlunparse

logger = logging.getLogger(__name__)

ROOT = Path(__file__).resolve().parents[2]
DB_PATH = ROOT / "data" / "congress.db"
SCHEMA_PATH = ROOT / "schema.sql"
SCHEMA_POSTGRES_PATH = ROOT / "schema.postgres.sql"

_NAMED_PARAM_RE = re.compile(r"(?<!:):([a-zA-Z_][a-zA-Z0-9_]*)")


def _normalize_db_url(db_url: str) -> str:
    """Strip a driver suffix such as `postgresql+psycopg://`."""
    if not db_url:
        return db_url
    parsed = urlparse(db_url)
    scheme = parsed.scheme
    if "+" not in scheme:
        return db_url
    return urlunparse(parsed._replace(scheme=scheme.split("+", 1)[0]))


def get_db_backend() -> str:
    db_url = os.environ.get("DATABASE_URL", "").strip()
    if not db_url:
        return "sqlite"
    if urlparse(db_url).scheme.lower().startswith("postgres"):
        return "postgres"
    return "sqlite"


def _is_postgres() -> bool:
    return get_db_backend() == "postgres"


def _prepare_query(sql: str, params: Mapping[str, Any] | Sequence[Any] | None):
    """
    Normalize parameter style for the active backend.
    - SQLite: accepts :name or ? placeholders as-is.
    - Postgres (psycopg): translate :name -> %(name)s and ? -> %s.
    """
    if params is None or not _is_postgres():
        return sql, params

    if isinstance(params, Mapping):
        return _NAMED_PARAM_RE.sub(r"%(\1)s", sql), params

    return sql.replace("?", "%s"), params


def execute(con, sql: str, params: Mapping[str, Any] | Sequence[Any] | None = None):
    cur = con.cursor()
    sql, params = _prepare_query(sql, params)
    if params is None:
        cur.execute(sql)
    else:
        cur.execute(sql, params)
    return cur


def fetch_scalar(con, sql: str, params: Mapping[str, Any] | None = None):
    row = execute(con, sql, params).fetchone()
    return row[0] if row else None


def as_db_timestamp(value: datetime) -> str | datetime:
    """SQLite stores ISO text; psycopg adapts datetimes natively."""
    if _is_postgres():
        return value
    return value.isoformat()


def get_schema_path() -> Path:
    if _is_postgres():
        return SCHEMA_POSTGRES_PATH
    return SCHEMA_PATH


def connect():
    if _is_postgres():
        db_url = _normalize_db_url(os.environ.get("DATABASE_URL", "").strip())
        import psycopg

        return psycopg.connect(db_url)

    DB_PATH.parent.mkdir(parents=True, exist_ok=True)
    con = sqlite3.connect(DB_PATH, timeout=30)
    con.execute("PRAGMA journal_mode=WAL")
    con.execute("PRAGMA foreign_keys=ON")
    return con


class Database:
    """
    Explicit connection handle.

    Every unit of work (one batch transaction, one resolver lookup) takes
    its own connection from here and releases it on every exit path.
    """

    def __init__(self, connect_fn: Callable[[], Any] | None = None):
        self._connect = connect_fn or connect

    @contextmanager
    def connection(self) -> Iterator[Any]:
        """Read-only unit of work."""
        con = self._connect()
        try:
            yield con
        finally:
            con.close()

    @contextmanager
    def transaction(self) -> Iterator[Any]:
        """Commit on success, roll back on any exception."""
        con = self._connect()
        try:
            yield con
            con.commit()
        except BaseException:
            con.rollback()
            raise
        finally:
            con.close()


def init_db():
    con = connect()
    try:
        schema_sql = get_schema_path().read_text(encoding="utf-8")
        if _is_postgres():
            statements = [s.strip() for s in schema_sql.split(";") if s.strip()]
            cur = con.cursor()
            for statement in statements:
                cur.execute(statement)
        else:
            con.executescript(schema_sql)
        con.commit()
    finally:
        con.close()
    logger.debug("Schema applied from %s", get_schema_path().name)


def insert_returning_id(con, sql: str, params: Mapping[str, Any], id_column: str = "id"):
    if _is_postgres():
        row = execute(con, f"{sql} RETURNING {id_column}", params).fetchone()
        return row[0] if row else None
    return execute(con, sql, params).lastrowid
