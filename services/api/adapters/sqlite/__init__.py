# services/api/adapters/sqlite/__init__.py
from __future__ import annotations

import json
import os
import sqlite3
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import (
    Column,
    DateTime,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    create_engine,
    event,
    insert,
    select,
    text,
    update,
)
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError

from core.errors import Conflict

# ---- Engine (SQLite) with WAL & pragmas -------------------------------------

def _ensure_dir(path: str):
    d = os.path.dirname(path)
    if d and not os.path.isdir(d):
        os.makedirs(d, exist_ok=True)

def make_engine(db_url: str) -> Engine:
    # Create data dir if sqlite file
    if db_url.startswith("sqlite:///"):
        file_path = db_url.replace("sqlite:///", "", 1)
        _ensure_dir(file_path)

    engine = create_engine(db_url, future=True, pool_pre_ping=True)

    # Apply pragmas per-connection
    @event.listens_for(engine, "connect")
    def _set_sqlite_pragma(dbapi_connection, connection_record):  # type: ignore
        if isinstance(dbapi_connection, sqlite3.Connection):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA journal_mode=WAL;")
            cursor.execute("PRAGMA synchronous=NORMAL;")
            cursor.execute("PRAGMA foreign_keys=ON;")
            cursor.close()

    return engine

# ---- Schema via SQLAlchemy Core ---------------------------------------------

metadata = MetaData()

# One row per request. The whole record lives in `payload` (JSON text);
# id/status/created_at are copied out for listing and ordering.
requests = Table(
    "requests",
    metadata,
    Column("seq", Integer, primary_key=True, autoincrement=True),
    Column("id", String, nullable=False, unique=True),
    Column("status", String, nullable=False, default="In Progress"),
    Column("version", Integer, nullable=False, default=1),
    Column("payload", Text, nullable=False),
    Column("created_at", String, nullable=False, default=""),
    Column("updated_at", DateTime, nullable=False, default=datetime.utcnow),
)

# ---- Adapter implementation --------------------------------------------------

def _dump(record: Dict[str, Any]) -> str:
    return json.dumps(record, ensure_ascii=False, default=str)


def _load(payload: str, version: int) -> Dict[str, Any]:
    record = json.loads(payload)
    record["version"] = int(version)
    return record


@dataclass(frozen=True)
class SqliteAdapter:
    engine: Engine

    @classmethod
    def from_url(cls, db_url: str = "sqlite:///data/requests.db") -> "SqliteAdapter":
        eng = make_engine(db_url)
        metadata.create_all(eng)
        return cls(engine=eng)

    def list_requests(self) -> List[Dict[str, Any]]:
        with self.engine.begin() as conn:
            rows = conn.execute(
                select(requests.c.payload, requests.c.version).order_by(requests.c.seq.asc())
            ).all()
        return [_load(r.payload, r.version) for r in rows]

    def get_request(self, request_id: str) -> Optional[Dict[str, Any]]:
        with self.engine.begin() as conn:
            row = conn.execute(
                select(requests.c.payload, requests.c.version).where(requests.c.id == request_id)
            ).first()
        return _load(row.payload, row.version) if row else None

    def insert_request(self, record: Dict[str, Any]) -> Dict[str, Any]:
        stored = dict(record)
        stored["version"] = 1
        try:
            with self.engine.begin() as conn:
                conn.execute(
                    insert(requests).values(
                        id=stored["id"],
                        status=stored.get("status") or "In Progress",
                        version=1,
                        payload=_dump(stored),
                        created_at=stored.get("createdAt") or "",
                        updated_at=datetime.utcnow(),
                    )
                )
        except IntegrityError as e:
            raise Conflict(f"Request {stored['id']} already exists") from e
        return stored

    def replace_request(
        self,
        request_id: str,
        record: Dict[str, Any],
        expected_version: Optional[int] = None,
    ) -> Optional[Dict[str, Any]]:
        with self.engine.begin() as conn:
            current = conn.execute(
                select(requests.c.version).where(requests.c.id == request_id)
            ).first()
            if not current:
                return None

            base_version = current.version if expected_version is None else int(expected_version)
            stored = dict(record)
            stored["id"] = request_id
            stored["version"] = base_version + 1

            # Version check happens inside the UPDATE so two writers can't both win
            res = conn.execute(
                update(requests)
                .where(requests.c.id == request_id)
                .where(requests.c.version == base_version)
                .values(
                    status=stored.get("status") or "In Progress",
                    version=requests.c.version + 1,
                    payload=_dump(stored),
                    updated_at=datetime.utcnow(),
                )
            )
            if res.rowcount != 1:
                raise Conflict(
                    f"Request {request_id} was modified concurrently "
                    f"(expected version {base_version}, found {current.version})"
                )
        return stored

    def ping(self) -> None:
        with self.engine.begin() as conn:
            conn.execute(text("SELECT 1"))
