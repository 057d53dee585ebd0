"""
tenantsql/storage/rowstore.py

Physical storage for every owner's logical tables: one shared SQLAlchemy table of
JSON documents tagged with (owner_id, table_name).

Responsibilities:
- Create the single physical table `tenantsql_rows` when the store is opened (the
  only physical DDL the project issues; never in response to user SQL)
- Append / scan / merge-update / delete row documents of one logical table
- Keep the catalog document of each logical table (kind="schema")
- Apply whole-table transformations (column add/drop/rename, table rename)

Isolation:
- Every method takes owner_id and table_name, and every statement it issues filters
  on both. Nothing here can read or write a document of another owner.

Physical layout (one row per document):
    seq         monotonically increasing insertion sequence (primary key)
    id          uuid exposed as `_id`
    owner_id    tenant identifier
    table_name  lowercased logical table name
    kind        "schema" | "row"
    data        JSON document (JSONB on PostgreSQL)
    created_at  insertion timestamp, exposed as `_createdAt`
    updated_at  last modification timestamp
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Iterable, Iterator

from sqlalchemy import (
    JSON,
    BigInteger,
    Column,
    DateTime,
    Index,
    Integer,
    MetaData,
    String,
    Table,
    and_,
    create_engine,
    delete,
    func,
    insert,
    inspect,
    select,
    update,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.pool import StaticPool

logger = logging.getLogger(__name__)

PHYSICAL_TABLE = "tenantsql_rows"

KIND_SCHEMA = "schema"
KIND_ROW = "row"

# Rows per IN (...) list when deleting/updating by id.
ID_BATCH = 500

metadata = MetaData()

rows_table = Table(
    PHYSICAL_TABLE,
    metadata,
    Column("seq", BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True),
    Column("id", String(36), nullable=False, unique=True),
    Column("owner_id", String(255), nullable=False),
    Column("table_name", String(255), nullable=False),
    Column("kind", String(16), nullable=False),
    Column("data", JSON().with_variant(JSONB(), "postgresql"), nullable=False),
    Column("created_at", DateTime(timezone=True), nullable=False),
    Column("updated_at", DateTime(timezone=True), nullable=False),
    Index("ix_tenantsql_rows_owner_table_kind", "owner_id", "table_name", "kind"),
)


@dataclass(frozen=True)
class StoredRow:
    """
    One row document as read from storage.

    Attributes:
        id: Row identity (`_id`).
        data: Column name -> value document.
        created_at: Insertion timestamp (`_createdAt`).
    """
    id: str
    data: dict[str, Any]
    created_at: datetime

    @property
    def created_at_text(self) -> str:
        return self.created_at.isoformat()


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _chunks(ids: list[str], size: int = ID_BATCH) -> Iterator[list[str]]:
    for i in range(0, len(ids), size):
        yield ids[i:i + size]


def _is_memory_sqlite(url: str) -> bool:
    return url.startswith("sqlite") and (":memory:" in url or url.rstrip("/") in ("sqlite:", "sqlite+pysqlite:"))


@dataclass
class RowStore:
    """
    Storage adapter over one SQLAlchemy Engine.

    Attributes:
        engine: SQLAlchemy Engine for the physical database.
    """
    engine: Engine

    @classmethod
    def open(cls, url: str) -> "RowStore":
        """
        Connect to `url` and make sure the physical table exists.

        Args:
            url: SQLAlchemy database URL (sqlite:///file.db, postgresql+psycopg://...).

        Returns:
            RowStore instance.
        """
        kwargs: dict[str, Any] = {}
        if _is_memory_sqlite(url):
            # one shared connection, otherwise every checkout sees an empty database
            kwargs = {"poolclass": StaticPool, "connect_args": {"check_same_thread": False}}
        engine = create_engine(url, **kwargs)
        metadata.create_all(engine, tables=[rows_table])
        logger.debug("Opened row store %s", engine.url.render_as_string(hide_password=True))
        return cls(engine=engine)

    def transaction(self):
        """Begin a transaction; use as `with store.transaction() as conn:`."""
        return self.engine.begin()

    def dispose(self) -> None:
        self.engine.dispose()

    def physical_table_names(self) -> set[str]:
        """Names of the real tables in the physical database."""
        return set(inspect(self.engine).get_table_names())

    # ---------- scoping ----------

    @staticmethod
    def _scope(owner_id: str, table_name: str, kind: str):
        return and_(
            rows_table.c.owner_id == owner_id,
            rows_table.c.table_name == table_name,
            rows_table.c.kind == kind,
        )

    # ---------- schema documents ----------

    def get_schema(self, conn: Connection, owner_id: str, table_name: str) -> dict[str, Any] | None:
        """Return the catalog document of a logical table, or None."""
        stmt = select(rows_table.c.data).where(self._scope(owner_id, table_name, KIND_SCHEMA))
        row = conn.execute(stmt).first()
        return None if row is None else dict(row.data)

    def list_schemas(self, conn: Connection, owner_id: str) -> list[dict[str, Any]]:
        """Return every catalog document of one owner, in creation order."""
        stmt = (
            select(rows_table.c.data)
            .where(and_(rows_table.c.owner_id == owner_id, rows_table.c.kind == KIND_SCHEMA))
            .order_by(rows_table.c.seq)
        )
        return [dict(r.data) for r in conn.execute(stmt)]

    def count_tables(self, conn: Connection, owner_id: str) -> int:
        stmt = select(func.count()).select_from(rows_table).where(
            and_(rows_table.c.owner_id == owner_id, rows_table.c.kind == KIND_SCHEMA)
        )
        return int(conn.execute(stmt).scalar_one())

    def put_schema(self, conn: Connection, owner_id: str, table_name: str, doc: dict[str, Any]) -> None:
        """Insert or replace the catalog document of a logical table."""
        now = _now()
        result = conn.execute(
            update(rows_table)
            .where(self._scope(owner_id, table_name, KIND_SCHEMA))
            .values(data=doc, updated_at=now)
        )
        if result.rowcount:
            return
        conn.execute(
            insert(rows_table).values(
                id=str(uuid.uuid4()),
                owner_id=owner_id,
                table_name=table_name,
                kind=KIND_SCHEMA,
                data=doc,
                created_at=now,
                updated_at=now,
            )
        )

    def delete_schema(self, conn: Connection, owner_id: str, table_name: str) -> int:
        result = conn.execute(delete(rows_table).where(self._scope(owner_id, table_name, KIND_SCHEMA)))
        return result.rowcount

    # ---------- row documents ----------

    def insert_rows(
        self, conn: Connection, owner_id: str, table_name: str, docs: Iterable[dict[str, Any]]
    ) -> list[StoredRow]:
        """
        Append row documents.

        Returns:
            The stored rows (with their new ids and timestamps), in input order.
        """
        now = _now()
        stored = [StoredRow(id=str(uuid.uuid4()), data=dict(d), created_at=now) for d in docs]
        if not stored:
            return []
        conn.execute(
            insert(rows_table),
            [
                {
                    "id": r.id,
                    "owner_id": owner_id,
                    "table_name": table_name,
                    "kind": KIND_ROW,
                    "data": r.data,
                    "created_at": r.created_at,
                    "updated_at": r.created_at,
                }
                for r in stored
            ],
        )
        logger.debug("Inserted %d row(s) into %s/%s", len(stored), owner_id, table_name)
        return stored

    def scan(self, conn: Connection, owner_id: str, table_name: str) -> list[StoredRow]:
        """Return every row document of a logical table in insertion order."""
        stmt = (
            select(rows_table.c.id, rows_table.c.data, rows_table.c.created_at)
            .where(self._scope(owner_id, table_name, KIND_ROW))
            .order_by(rows_table.c.seq)
        )
        return [StoredRow(id=r.id, data=dict(r.data), created_at=r.created_at) for r in conn.execute(stmt)]

    def update_row_data(
        self,
        conn: Connection,
        owner_id: str,
        table_name: str,
        changes: list[tuple[str, dict[str, Any]]],
    ) -> int:
        """
        Merge field changes into row documents (untouched fields are kept).

        Args:
            changes: (row id, {column: new value}) pairs.

        Returns:
            Number of rows updated.
        """
        if not changes:
            return 0
        by_id = dict(changes)
        now = _now()
        updated = 0
        for ids in _chunks(list(by_id)):
            stmt = select(rows_table.c.id, rows_table.c.data).where(
                and_(self._scope(owner_id, table_name, KIND_ROW), rows_table.c.id.in_(ids))
            )
            for row in conn.execute(stmt).all():
                merged = dict(row.data)
                merged.update(by_id[row.id])
                conn.execute(
                    update(rows_table)
                    .where(and_(self._scope(owner_id, table_name, KIND_ROW), rows_table.c.id == row.id))
                    .values(data=merged, updated_at=now)
                )
                updated += 1
        return updated

    def delete_rows(self, conn: Connection, owner_id: str, table_name: str, row_ids: list[str]) -> int:
        """Delete row documents by id; returns the number deleted."""
        deleted = 0
        for ids in _chunks(row_ids):
            result = conn.execute(
                delete(rows_table).where(
                    and_(self._scope(owner_id, table_name, KIND_ROW), rows_table.c.id.in_(ids))
                )
            )
            deleted += result.rowcount
        return deleted

    def delete_table(self, conn: Connection, owner_id: str, table_name: str) -> int:
        """Delete every row document and the catalog document of a logical table."""
        result = conn.execute(
            delete(rows_table).where(
                and_(rows_table.c.owner_id == owner_id, rows_table.c.table_name == table_name)
            )
        )
        logger.debug("Purged %d document(s) of %s/%s", result.rowcount, owner_id, table_name)
        return result.rowcount

    def rewrite_documents(
        self,
        conn: Connection,
        owner_id: str,
        table_name: str,
        transform: Callable[[dict[str, Any]], dict[str, Any]],
    ) -> int:
        """
        Replace every row document of a table with transform(document).

        Returns:
            Number of documents rewritten.
        """
        now = _now()
        count = 0
        for row in self.scan(conn, owner_id, table_name):
            conn.execute(
                update(rows_table)
                .where(and_(self._scope(owner_id, table_name, KIND_ROW), rows_table.c.id == row.id))
                .values(data=transform(row.data), updated_at=now)
            )
            count += 1
        return count

    def retag_table(self, conn: Connection, owner_id: str, old_name: str, new_name: str) -> int:
        """Move every document of a logical table (rows and schema) to a new table name."""
        result = conn.execute(
            update(rows_table)
            .where(and_(rows_table.c.owner_id == owner_id, rows_table.c.table_name == old_name))
            .values(table_name=new_name, updated_at=_now())
        )
        return result.rowcount
