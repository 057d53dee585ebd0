"""
tenantsql/catalog.py

Per-owner schema catalog of logical tables.

Responsibilities:
- Describe logical tables (TableMeta / ColumnMeta) and persist them as the
  kind="schema" document of each table in the row store
- Map declared SQL types to storage kinds (number, string, boolean, date, object, array)
- Validate and coerce values written to a column
- Create / drop / alter logical tables; every ALTER rewrites the row documents of
  the table through the row store on the same connection, so schema and rows change
  together inside the statement's transaction

Design notes:
- Table names are case-insensitive: the storage key is the lowercased name and the
  name as first written is kept for display.
- Column names keep their declared spelling; lookups try an exact match first and
  fall back to a case-insensitive match.
- A Catalog object is bound to one owner and one connection; it only lives for the
  duration of one statement.
"""

from __future__ import annotations

import datetime as dt
import json
import logging
import math
import re
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

from sqlalchemy.engine import Connection

from .ast import ColumnDef, TypeSpec
from .config import EngineConfig
from .errors import AlreadyExistsError, NotFoundError, ResourceLimitError, ValidationError
from .exec.values import parse_number
from .messages import t
from .storage.rowstore import RowStore

logger = logging.getLogger(__name__)

CATALOG_VERSION = 1

KIND_NUMBER = "number"
KIND_STRING = "string"
KIND_BOOLEAN = "boolean"
KIND_DATE = "date"
KIND_OBJECT = "object"
KIND_ARRAY = "array"

NUMBER_TYPES = {
    "INT", "INTEGER", "BIGINT", "SMALLINT", "TINYINT", "MEDIUMINT", "INT2", "INT4", "INT8",
    "SERIAL", "BIGSERIAL", "SMALLSERIAL", "NUMERIC", "DECIMAL", "REAL", "FLOAT", "FLOAT4",
    "FLOAT8", "DOUBLE", "DOUBLE PRECISION", "MONEY",
}
BOOLEAN_TYPES = {"BOOL", "BOOLEAN"}
DATE_TYPES = {"DATE", "TIME", "TIMETZ", "TIMESTAMP", "TIMESTAMPTZ", "DATETIME"}
OBJECT_TYPES = {"JSON", "JSONB"}
ARRAY_TYPES = {"ARRAY"}

_BR_DATE_RE = re.compile(r"^(\d{2})/(\d{2})/(\d{4})$")

_TRUE_TEXT = {"true", "t", "yes", "y", "on", "1"}
_FALSE_TEXT = {"false", "f", "no", "n", "off", "0"}


def storage_kind(typ: TypeSpec) -> str:
    """
    Storage kind of a declared SQL type.

    Examples:
        INTEGER -> number, VARCHAR(50) -> string, JSONB -> object, TEXT[] -> array
    """
    if typ.array:
        return KIND_ARRAY
    name = typ.name.upper()
    if name in NUMBER_TYPES:
        return KIND_NUMBER
    if name in BOOLEAN_TYPES:
        return KIND_BOOLEAN
    if name in DATE_TYPES:
        return KIND_DATE
    if name in OBJECT_TYPES:
        return KIND_OBJECT
    if name in ARRAY_TYPES:
        return KIND_ARRAY
    return KIND_STRING


def display_value(value: Any) -> str:
    """Short rendering of a value for error messages."""
    text = json.dumps(value, ensure_ascii=False, default=str)
    return text if len(text) <= 60 else text[:57] + "..."


# ---------- metadata ----------

@dataclass
class ColumnMeta:
    """
    Column metadata stored in the catalog.

    Attributes:
        name: Column name as declared.
        type_sql: Declared type rendered back to SQL (informational, e.g. "VARCHAR(100)").
        kind: Storage kind (see storage_kind()).
        not_null: NOT NULL (implied by PRIMARY KEY).
        unique: UNIQUE (implied by PRIMARY KEY).
        primary_key: PRIMARY KEY.
        default: {"value": v} for a constant default, {"function": NAME} for a
            default computed at insert time (NOW(), CURRENT_DATE, ...), or None.
    """
    name: str
    type_sql: str
    kind: str
    not_null: bool = False
    unique: bool = False
    primary_key: bool = False
    default: dict[str, Any] | None = None

    def to_doc(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "type": self.type_sql,
            "kind": self.kind,
            "not_null": self.not_null,
            "unique": self.unique,
            "primary_key": self.primary_key,
            "default": self.default,
        }

    @classmethod
    def from_doc(cls, doc: dict[str, Any]) -> "ColumnMeta":
        return cls(
            name=doc["name"],
            type_sql=doc.get("type", "TEXT"),
            kind=doc.get("kind", KIND_STRING),
            not_null=bool(doc.get("not_null", False)),
            unique=bool(doc.get("unique", False)),
            primary_key=bool(doc.get("primary_key", False)),
            default=doc.get("default"),
        )


@dataclass
class TableMeta:
    """
    Logical table metadata.

    Attributes:
        name: Storage key (lowercased table name).
        display_name: Name as written in CREATE TABLE.
        columns: Ordered column list.
    """
    name: str
    display_name: str
    columns: list[ColumnMeta] = field(default_factory=list)

    def column_names(self) -> list[str]:
        """Return column names in declaration order."""
        return [c.name for c in self.columns]

    def get_column(self, name: str) -> ColumnMeta | None:
        """Return a column by exact name, then by case-insensitive name, or None."""
        for c in self.columns:
            if c.name == name:
                return c
        lowered = name.lower()
        for c in self.columns:
            if c.name.lower() == lowered:
                return c
        return None

    def require_column(self, name: str) -> ColumnMeta:
        col = self.get_column(name)
        if col is None:
            raise NotFoundError(t("column_not_found", column=name, table=self.display_name))
        return col

    def to_doc(self) -> dict[str, Any]:
        return {
            "version": CATALOG_VERSION,
            "name": self.display_name,
            "columns": [c.to_doc() for c in self.columns],
        }

    @classmethod
    def from_doc(cls, key: str, doc: dict[str, Any]) -> "TableMeta":
        return cls(
            name=key,
            display_name=doc.get("name", key),
            columns=[ColumnMeta.from_doc(c) for c in doc.get("columns", [])],
        )


def column_meta_from_def(col: ColumnDef, default: dict[str, Any] | None) -> ColumnMeta:
    """Build ColumnMeta from a parsed column definition and its prepared default."""
    return ColumnMeta(
        name=col.name,
        type_sql=col.typ.sql(),
        kind=storage_kind(col.typ),
        not_null=col.not_null,
        unique=col.unique,
        primary_key=col.primary_key,
        default=default,
    )


# ---------- write-time validation ----------

def _date_text(value: Any) -> str | None:
    if isinstance(value, dt.datetime):
        return value.isoformat()
    if isinstance(value, dt.date):
        return value.isoformat()
    if not isinstance(value, str):
        return None
    s = value.strip()
    m = _BR_DATE_RE.match(s)
    if m:
        day, month, year = (int(g) for g in m.groups())
        try:
            return dt.date(year, month, day).isoformat()
        except ValueError:
            return None
    try:
        if len(s) <= 10:
            return dt.date.fromisoformat(s).isoformat()
        dt.datetime.fromisoformat(s.replace("Z", "+00:00"))
        return s
    except ValueError:
        pass
    try:
        dt.time.fromisoformat(s)
        return s
    except ValueError:
        return None


def coerce_value(table: TableMeta, column: ColumnMeta, value: Any) -> Any:
    """
    Validate a value written to `column` and convert it to its stored form.

    Rules:
        number:  ints/floats; numeric strings are converted; booleans and other text rejected
        boolean: booleans; the integers 0/1; 'true'/'false' style text
        date:    ISO-8601 date/timestamp text or DD/MM/YYYY (stored as ISO text)
        string:  text; numbers are stored as their text
        object:  mappings only
        array:   lists only

    Raises:
        ValidationError: on a type mismatch.
    """
    if value is None:
        return None

    def mismatch() -> ValidationError:
        return ValidationError(
            t("type_mismatch", value=display_value(value), column=column.name, type=column.type_sql)
        )

    kind = column.kind
    if kind == KIND_NUMBER:
        if isinstance(value, bool):
            raise mismatch()
        if isinstance(value, Decimal):
            return int(value) if value == value.to_integral_value() else float(value)
        if isinstance(value, (int, float)):
            if isinstance(value, float) and (math.isnan(value) or math.isinf(value)):
                raise mismatch()
            return value
        if isinstance(value, str):
            number = parse_number(value)
            if number is None:
                raise mismatch()
            return number
        raise mismatch()

    if kind == KIND_BOOLEAN:
        if isinstance(value, bool):
            return value
        if isinstance(value, int) and value in (0, 1):
            return bool(value)
        if isinstance(value, str):
            lowered = value.strip().lower()
            if lowered in _TRUE_TEXT:
                return True
            if lowered in _FALSE_TEXT:
                return False
        raise mismatch()

    if kind == KIND_DATE:
        text = _date_text(value)
        if text is None:
            raise mismatch()
        return text

    if kind == KIND_OBJECT:
        if isinstance(value, dict):
            return value
        raise mismatch()

    if kind == KIND_ARRAY:
        if isinstance(value, (list, tuple)):
            return list(value)
        raise mismatch()

    # string
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float, Decimal)):
        return str(value)
    if isinstance(value, (dt.date, dt.datetime)):
        return value.isoformat()
    raise mismatch()


# ---------- catalog ----------

@dataclass
class Catalog:
    """
    Schema catalog of one owner, bound to one connection.

    Attributes:
        store: Row store holding the schema documents.
        conn: Connection of the current statement's transaction.
        owner_id: Owner whose namespace this catalog manages.
        config: Engine limits (MAX_TABLES_PER_OWNER).
    """
    store: RowStore
    conn: Connection
    owner_id: str
    config: EngineConfig
    _cache: dict[str, TableMeta | None] = field(default_factory=dict)

    @staticmethod
    def key(name: str) -> str:
        return name.lower()

    # ---------- lookup helpers ----------

    def get_table(self, name: str) -> TableMeta | None:
        """Return table metadata, or None if the owner has no such table."""
        key = self.key(name)
        if key not in self._cache:
            doc = self.store.get_schema(self.conn, self.owner_id, key)
            self._cache[key] = None if doc is None else TableMeta.from_doc(key, doc)
        return self._cache[key]

    def require_table(self, name: str) -> TableMeta:
        """
        Fetch a table by name or raise NotFoundError.

        Args:
            name: Table name (any case).

        Returns:
            TableMeta.
        """
        table = self.get_table(name)
        if table is None:
            raise NotFoundError(t("table_not_found", table=name))
        return table

    def list_tables(self) -> list[TableMeta]:
        """Return every table of the owner in creation order."""
        tables: list[TableMeta] = []
        for doc in self.store.list_schemas(self.conn, self.owner_id):
            key = self.key(doc.get("name", ""))
            tables.append(TableMeta.from_doc(key, doc))
        return tables

    def _save(self, table: TableMeta) -> None:
        self.store.put_schema(self.conn, self.owner_id, table.name, table.to_doc())
        self._cache[table.name] = table

    # ---------- DDL ----------

    def create_table(self, name: str, columns: list[ColumnMeta]) -> TableMeta:
        """
        Register a new logical table (no rows are allocated).

        Raises:
            AlreadyExistsError: if the owner already has a table of that name.
            ValidationError: on duplicate column names.
            ResourceLimitError: when MAX_TABLES_PER_OWNER is reached.
        """
        if self.get_table(name) is not None:
            raise AlreadyExistsError(t("table_exists", table=name))

        seen: set[str] = set()
        for c in columns:
            if c.name.lower() in seen:
                raise AlreadyExistsError(t("column_exists", column=c.name, table=name))
            seen.add(c.name.lower())

        if self.store.count_tables(self.conn, self.owner_id) >= self.config.MAX_TABLES_PER_OWNER:
            raise ResourceLimitError(t("max_tables", limit=self.config.MAX_TABLES_PER_OWNER))

        table = TableMeta(name=self.key(name), display_name=name, columns=list(columns))
        self._save(table)
        logger.info("Created table %s for owner %s", table.name, self.owner_id)
        return table

    def drop_table(self, name: str) -> None:
        """
        Deregister a table and purge all of its rows.

        Raises:
            NotFoundError: if the table does not exist.
        """
        table = self.require_table(name)
        self.store.delete_table(self.conn, self.owner_id, table.name)
        self._cache[table.name] = None
        logger.info("Dropped table %s for owner %s", table.name, self.owner_id)

    def add_column(self, table: TableMeta, column: ColumnMeta, fill: Any = None) -> None:
        """
        Append a column; every existing row gets `fill` (NULL unless a constant DEFAULT).

        Raises:
            AlreadyExistsError: if the column already exists.
        """
        if table.get_column(column.name) is not None:
            raise AlreadyExistsError(t("column_exists", column=column.name, table=table.display_name))
        table.columns.append(column)
        self._save(table)

        def transform(doc: dict[str, Any]) -> dict[str, Any]:
            out = dict(doc)
            out[column.name] = fill
            return out

        self.store.rewrite_documents(self.conn, self.owner_id, table.name, transform)

    def drop_column(self, table: TableMeta, name: str) -> None:
        """
        Remove a column and its key from every row document.

        Raises:
            NotFoundError: if the column does not exist.
        """
        column = table.require_column(name)
        table.columns = [c for c in table.columns if c is not column]
        self._save(table)

        def transform(doc: dict[str, Any]) -> dict[str, Any]:
            return {k: v for k, v in doc.items() if k != column.name}

        self.store.rewrite_documents(self.conn, self.owner_id, table.name, transform)

    def rename_column(self, table: TableMeta, old: str, new: str) -> None:
        """
        Rename a column; values move to the new key and the old key is removed.

        Raises:
            NotFoundError: if `old` does not exist.
            AlreadyExistsError: if `new` already exists.
        """
        column = table.require_column(old)
        other = table.get_column(new)
        if other is not None and other is not column:
            raise AlreadyExistsError(t("column_exists", column=new, table=table.display_name))
        old_name = column.name
        column.name = new
        self._save(table)

        def transform(doc: dict[str, Any]) -> dict[str, Any]:
            out: dict[str, Any] = {}
            for k, v in doc.items():
                out[new if k == old_name else k] = v
            return out

        self.store.rewrite_documents(self.conn, self.owner_id, table.name, transform)

    def rename_table(self, table: TableMeta, new_name: str) -> TableMeta:
        """
        Rename a table; rows keep their content and move to the new name.

        Raises:
            AlreadyExistsError: if the owner already has a table called `new_name`.
        """
        new_key = self.key(new_name)
        if new_key != table.name and self.get_table(new_name) is not None:
            raise AlreadyExistsError(t("table_exists", table=new_name))
        old_key = table.name
        self.store.retag_table(self.conn, self.owner_id, old_key, new_key)
        renamed = TableMeta(name=new_key, display_name=new_name, columns=table.columns)
        self._cache[old_key] = None
        self._save(renamed)
        logger.info("Renamed table %s to %s for owner %s", old_key, new_key, self.owner_id)
        return renamed
