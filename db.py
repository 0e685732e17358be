"""
db.py
Persistence adapter. The whole dataset is one JSON document keyed by table
name; every mutating call is a read-modify-write of that document.

- LocalStore: SQLite file holding the document under one storage key.
- RemoteStore: GET ?action=init against a remote endpoint, falling back
  to in-memory mock data. Writes are logged, never transmitted.
"""

from __future__ import annotations

import copy
import json
import logging
import sqlite3
import time
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator

import requests

import config
from models import default_document

logger = logging.getLogger(__name__)


@contextmanager
def get_conn(db_file: Path):
    # isolation_level=None: transactions are opened explicitly with BEGIN IMMEDIATE
    conn = sqlite3.connect(db_file, check_same_thread=False, isolation_level=None)
    conn.row_factory = sqlite3.Row
    try:
        yield conn
    finally:
        conn.close()


class DocumentStore:
    """
    Repository primitives shared by both backends. Subclasses provide
    load() and transaction().
    """

    def load(self) -> dict:
        raise NotImplementedError

    def transaction(self):
        """Context manager yielding the mutable document; written back on clean exit."""
        raise NotImplementedError

    # ---------- repository interface ----------

    def get(self, table: str) -> list[dict]:
        return self.load().get(table) or []

    def upsert(self, table: str, record: dict) -> dict:
        with self.transaction() as doc:
            rows = doc.setdefault(table, [])
            for row in rows:
                if row.get("id") == record["id"]:
                    row.update(record)
                    break
            else:
                rows.append(dict(record))
        return record

    def remove(self, table: str, record_id: str) -> None:
        self.delete(table, record_id)

    # ---------- primitives ----------

    def insert(self, table: str, record: dict) -> dict:
        with self.transaction() as doc:
            doc.setdefault(table, []).append(dict(record))
        return record

    def update(self, table: str, record_id: str, updates: dict) -> None:
        """Shallow merge `updates` into the record with `record_id`. Missing ids are ignored."""
        with self.transaction() as doc:
            for row in doc.get(table) or []:
                if row.get("id") == record_id:
                    row.update(updates)

    def delete(self, table: str, record_id: str) -> None:
        self.bulk_delete(table, [record_id])

    def bulk_delete(self, table: str, ids) -> None:
        ids = set(ids)
        with self.transaction() as doc:
            if table in doc:
                doc[table] = [row for row in doc[table] if row.get("id") not in ids]

    def set_singleton(self, key: str, value: dict) -> None:
        with self.transaction() as doc:
            doc[key] = dict(value)


class LocalStore(DocumentStore):
    def __init__(
        self,
        db_file: Path = config.DB_FILE,
        key: str = config.STORAGE_KEY,
        latency: float = config.STORE_LATENCY_SECONDS,
        seed: dict | None = None,
    ):
        self.db_file = Path(db_file)
        self.key = key
        self.latency = latency
        self.seed = seed if seed is not None else default_document()
        self._create_tables()

    def _create_tables(self) -> None:
        with get_conn(self.db_file) as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS documents (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
                """
            )

    def _simulate_latency(self) -> None:
        if self.latency > 0:
            time.sleep(self.latency)

    def _read(self, conn: sqlite3.Connection) -> dict:
        row = conn.execute("SELECT value FROM documents WHERE key = ?", (self.key,)).fetchone()
        if row is None:
            logger.info("[STORE] No document under %r, writing seed data", self.key)
            doc = copy.deepcopy(self.seed)
            self._write(conn, doc)
            return doc
        try:
            doc = json.loads(row["value"])
        except json.JSONDecodeError as e:
            logger.error("[STORE] Document %r is corrupt (%s), restoring seed data", self.key, e)
            doc = None
        if not isinstance(doc, dict):
            doc = copy.deepcopy(self.seed)
            self._write(conn, doc)
        return doc

    def _write(self, conn: sqlite3.Connection, doc: dict) -> None:
        now = datetime.now(timezone.utc).isoformat(timespec="seconds")
        conn.execute(
            """
            INSERT INTO documents(key, value, updated_at) VALUES(?, ?, ?)
            ON CONFLICT(key) DO UPDATE SET value=excluded.value, updated_at=excluded.updated_at
            """,
            (self.key, json.dumps(doc), now),
        )

    def _peek(self, conn: sqlite3.Connection) -> dict | None:
        row = conn.execute("SELECT value FROM documents WHERE key = ?", (self.key,)).fetchone()
        if row is None:
            return None
        try:
            doc = json.loads(row["value"])
        except json.JSONDecodeError:
            return None
        return doc if isinstance(doc, dict) else None

    def load(self) -> dict:
        """
        Plain autocommit read. The write lock is only taken when the
        document is missing or corrupt and has to be (re)seeded.
        """
        self._simulate_latency()
        with get_conn(self.db_file) as conn:
            doc = self._peek(conn)
            if doc is not None:
                return doc
            conn.execute("BEGIN IMMEDIATE")
            try:
                doc = self._read(conn)
                conn.execute("COMMIT")
            except Exception:
                conn.execute("ROLLBACK")
                raise
        return doc

    @contextmanager
    def transaction(self) -> Iterator[dict]:
        """
        Yield the current document for in-place mutation and write it back
        when the block exits cleanly. BEGIN IMMEDIATE holds the write lock
        for the whole read-modify-write.
        """
        self._simulate_latency()
        with get_conn(self.db_file) as conn:
            conn.execute("BEGIN IMMEDIATE")
            try:
                doc = self._read(conn)
                yield doc
                self._write(conn, doc)
                conn.execute("COMMIT")
            except BaseException:
                conn.execute("ROLLBACK")
                raise


class RemoteStore(DocumentStore):
    def __init__(
        self,
        url: str = config.REMOTE_URL,
        timeout: float = config.REMOTE_TIMEOUT_SECONDS,
        mock: dict | None = None,
    ):
        self.url = url
        self.timeout = timeout
        self._mock = copy.deepcopy(mock) if mock is not None else default_document()
        self.using_mock = False

    def fetch(self) -> dict:
        try:
            resp = requests.get(self.url, params={"action": "init"}, timeout=self.timeout)
            resp.raise_for_status()
            data = resp.json()
            if not isinstance(data, dict):
                raise ValueError(f"expected a JSON object, got {type(data).__name__}")
        except (requests.RequestException, ValueError) as e:
            logger.warning("[STORE] Remote fetch from %r failed (%s), using mock data", self.url, e)
            self.using_mock = True
            return copy.deepcopy(self._mock)
        self.using_mock = False
        return data

    def load(self) -> dict:
        return self.fetch()

    @contextmanager
    def transaction(self) -> Iterator[dict]:
        doc = self.fetch()
        yield doc
        logger.info("[STORE] Remote write not transmitted (no write endpoint)")
        if self.using_mock:
            self._mock = copy.deepcopy(doc)


def get_store(seed: dict | None = None) -> DocumentStore:
    if config.STORE_BACKEND == "remote":
        return RemoteStore(mock=seed)
    return LocalStore(seed=seed)
