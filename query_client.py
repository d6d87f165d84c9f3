"""Backend boundary for every forum query.

Services never write SQL. They describe a query as a table name, a list of
``Filter`` objects and an ordering, and hand it to a ``QueryClient``. The
shipped ``SqliteQueryClient`` turns that into SQLite statements, one
connection per call, run in a worker thread so the event loop stays free.
"""
import asyncio
import logging
import sqlite3
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple, Union

from database import get_db
from database_schemas import TABLE_COLUMNS
from errors import ConstraintViolation, DataError, NotFound, TransportFailure

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Filter:
    column: Union[str, Tuple[str, ...]]
    op: str
    value: Any


@dataclass(frozen=True)
class Order:
    column: str
    ascending: bool = True


def eq(column: str, value) -> Filter:
    return Filter(column, "eq", value)


def neq(column: str, value) -> Filter:
    return Filter(column, "neq", value)


def lt(column: str, value) -> Filter:
    return Filter(column, "lt", value)


def gte(column: str, value) -> Filter:
    return Filter(column, "gte", value)


def in_(column: str, values: Iterable) -> Filter:
    return Filter(column, "in", tuple(values))


def ilike(column: str, pattern: str) -> Filter:
    return Filter(column, "ilike", pattern)


def any_ilike(columns: Sequence[str], pattern: str) -> Filter:
    """Match when any of ``columns`` matches ``pattern`` (an OR of ilikes)."""
    return Filter(tuple(columns), "any_ilike", pattern)


def contains_pattern(term: str) -> str:
    """Build an ilike pattern matching ``term`` anywhere, with wildcards escaped."""
    escaped = term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def asc(column: str) -> Order:
    return Order(column, True)


def desc(column: str) -> Order:
    return Order(column, False)


def utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="microseconds")


class QueryClient(ABC):
    """Tabular query interface the data access layer is written against."""

    @abstractmethod
    async def select(self, table: str, columns: Optional[Sequence[str]] = None,
                     filters: Sequence[Filter] = (), order: Sequence[Order] = (),
                     limit: Optional[int] = None) -> List[Dict[str, Any]]:
        ...

    async def select_one(self, table: str, columns: Optional[Sequence[str]] = None,
                         filters: Sequence[Filter] = ()) -> Dict[str, Any]:
        """Fetch exactly one row, raising ``NotFound`` when there is none."""
        rows = await self.select(table, columns, filters, limit=2)
        if not rows:
            raise NotFound(f"select {table}")
        if len(rows) > 1:
            raise DataError(f"select {table}", message=f"select {table}: expected one row, got several")
        return rows[0]

    async def maybe_one(self, table: str, columns: Optional[Sequence[str]] = None,
                        filters: Sequence[Filter] = ()) -> Optional[Dict[str, Any]]:
        rows = await self.select(table, columns, filters, limit=1)
        return rows[0] if rows else None

    @abstractmethod
    async def insert(self, table: str, payload: Dict[str, Any],
                     ignore_conflicts: bool = False) -> Optional[Dict[str, Any]]:
        """Insert one row and return it, or ``None`` if a conflict was ignored."""

    @abstractmethod
    async def upsert(self, table: str, payload: Dict[str, Any], on_conflict: str) -> Dict[str, Any]:
        ...

    @abstractmethod
    async def update(self, table: str, values: Dict[str, Any], filters: Sequence[Filter]) -> int:
        ...

    @abstractmethod
    async def delete(self, table: str, filters: Sequence[Filter]) -> int:
        ...

    @abstractmethod
    async def count(self, table: str, filters: Sequence[Filter] = ()) -> int:
        ...

    @abstractmethod
    async def count_by(self, table: str, column: str, filters: Sequence[Filter] = ()) -> Dict[Any, int]:
        """Grouped count: ``{column value: row count}`` for rows matching ``filters``."""

    @abstractmethod
    async def increment(self, table: str, column: str, filters: Sequence[Filter], amount: int = 1) -> int:
        ...

    @abstractmethod
    async def upload_blob(self, bucket: str, path: str, data: bytes) -> str:
        """Store ``data`` and return its public URL."""

    @abstractmethod
    async def remove_blob(self, bucket: str, path: str) -> bool:
        ...


def _check_table(table: str):
    if table not in TABLE_COLUMNS:
        raise ValueError(f"Unknown table: {table!r}")


def _check_columns(table: str, columns: Iterable[str]):
    unknown = set(columns) - TABLE_COLUMNS[table]
    if unknown:
        raise ValueError(f"Unknown column(s) for {table}: {sorted(unknown)}")


def _where(table: str, filters: Sequence[Filter]) -> Tuple[str, List[Any]]:
    clauses = []
    params: List[Any] = []
    for f in filters:
        if f.op == "any_ilike":
            _check_columns(table, f.column)
            clauses.append("(" + " OR ".join(f"{c} LIKE ? ESCAPE '\\'" for c in f.column) + ")")
            params.extend([f.value] * len(f.column))
            continue
        _check_columns(table, [f.column])
        if f.op == "eq":
            if f.value is None:
                clauses.append(f"{f.column} IS NULL")
            else:
                clauses.append(f"{f.column} = ?")
                params.append(f.value)
        elif f.op == "neq":
            clauses.append(f"{f.column} != ?")
            params.append(f.value)
        elif f.op == "lt":
            clauses.append(f"{f.column} < ?")
            params.append(f.value)
        elif f.op == "gte":
            clauses.append(f"{f.column} >= ?")
            params.append(f.value)
        elif f.op == "in":
            if not f.value:
                clauses.append("0")
            else:
                clauses.append(f"{f.column} IN ({', '.join('?' for _ in f.value)})")
                params.extend(f.value)
        elif f.op == "ilike":
            clauses.append(f"{f.column} LIKE ? ESCAPE '\\'")
            params.append(f.value)
        else:
            raise ValueError(f"Unsupported filter operator: {f.op!r}")
    if not clauses:
        return "", params
    return " WHERE " + " AND ".join(clauses), params


def blob_file_path(upload_folder: Union[str, Path], bucket: str, path: str) -> Path:
    """On-disk location of a blob. Raises ValueError for paths leaving the bucket."""
    base = Path(upload_folder).resolve()
    root = (base / bucket).resolve()
    dest = (root / path).resolve()
    if base not in root.parents or root not in dest.parents:
        raise ValueError(f"Blob path escapes bucket: {bucket}/{path}")
    return dest


class SqliteQueryClient(QueryClient):
    def __init__(self, db_path: str, upload_folder: str = "uploads", public_base_url: str = ""):
        self.db_path = db_path
        self.upload_folder = Path(upload_folder)
        self.public_base_url = public_base_url.rstrip("/")

    async def _run(self, operation: str, fn, *args):
        try:
            return await asyncio.to_thread(fn, *args)
        except sqlite3.IntegrityError as exc:
            logger.error("%s violated a constraint: %s", operation, exc)
            raise ConstraintViolation(operation, exc)
        except sqlite3.Error as exc:
            logger.error("%s failed: %s", operation, exc)
            raise TransportFailure(operation, exc)

    # Blocking helpers, executed in a worker thread

    def _fetch(self, sql: str, params: List[Any]) -> List[Dict[str, Any]]:
        with get_db(self.db_path) as conn:
            return [dict(row) for row in conn.execute(sql, params).fetchall()]

    def _write(self, sql: str, params: List[Any]) -> int:
        with get_db(self.db_path) as conn:
            cursor = conn.execute(sql, params)
            conn.commit()
            return cursor.rowcount

    def _insert_returning(self, table: str, sql: str, params: List[Any]) -> Optional[Dict[str, Any]]:
        with get_db(self.db_path) as conn:
            cursor = conn.execute(sql, params)
            if cursor.rowcount == 0:
                conn.commit()
                return None
            row = conn.execute(f"SELECT * FROM {table} WHERE rowid = ?", (cursor.lastrowid,)).fetchone()
            conn.commit()
            return dict(row)

    # QueryClient

    async def select(self, table, columns=None, filters=(), order=(), limit=None):
        _check_table(table)
        if columns:
            _check_columns(table, columns)
        where, params = _where(table, filters)
        sql = f"SELECT {', '.join(columns) if columns else '*'} FROM {table}{where}"
        if order:
            _check_columns(table, [o.column for o in order])
            sql += " ORDER BY " + ", ".join(f"{o.column} {'ASC' if o.ascending else 'DESC'}" for o in order)
        if limit is not None:
            sql += " LIMIT ?"
            params.append(int(limit))
        return await self._run(f"select {table}", self._fetch, sql, params)

    def _stamp(self, table: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        row = dict(payload)
        now = utcnow_iso()
        for column in ("created_at", "updated_at"):
            if column in TABLE_COLUMNS[table] and row.get(column) is None:
                row[column] = now
        return row

    async def insert(self, table, payload, ignore_conflicts=False):
        _check_table(table)
        row = self._stamp(table, payload)
        _check_columns(table, row)
        columns = list(row)
        verb = "INSERT OR IGNORE" if ignore_conflicts else "INSERT"
        sql = f"{verb} INTO {table} ({', '.join(columns)}) VALUES ({', '.join('?' for _ in columns)})"
        return await self._run(f"insert {table}", self._insert_returning, table, sql, [row[c] for c in columns])

    async def upsert(self, table, payload, on_conflict):
        _check_table(table)
        _check_columns(table, list(payload) + [on_conflict])
        columns = list(payload)
        updates = ", ".join(f"{c} = excluded.{c}" for c in columns if c != on_conflict)
        sql = (
            f"INSERT INTO {table} ({', '.join(columns)}) VALUES ({', '.join('?' for _ in columns)}) "
            f"ON CONFLICT({on_conflict}) DO UPDATE SET {updates}"
        )
        await self._run(f"upsert {table}", self._write, sql, [payload[c] for c in columns])
        return await self.select_one(table, filters=[eq(on_conflict, payload[on_conflict])])

    async def update(self, table, values, filters):
        _check_table(table)
        _check_columns(table, values)
        if not values:
            return 0
        set_clause = ", ".join(f"{c} = ?" for c in values)
        where, params = _where(table, filters)
        sql = f"UPDATE {table} SET {set_clause}{where}"
        return await self._run(f"update {table}", self._write, sql, list(values.values()) + params)

    async def delete(self, table, filters):
        _check_table(table)
        where, params = _where(table, filters)
        return await self._run(f"delete {table}", self._write, f"DELETE FROM {table}{where}", params)

    async def count(self, table, filters=()):
        _check_table(table)
        where, params = _where(table, filters)
        rows = await self._run(f"count {table}", self._fetch, f"SELECT COUNT(*) AS n FROM {table}{where}", params)
        return rows[0]["n"]

    async def count_by(self, table, column, filters=()):
        _check_table(table)
        _check_columns(table, [column])
        where, params = _where(table, filters)
        sql = f"SELECT {column} AS k, COUNT(*) AS n FROM {table}{where} GROUP BY {column}"
        rows = await self._run(f"count {table} by {column}", self._fetch, sql, params)
        return {row["k"]: row["n"] for row in rows}

    async def increment(self, table, column, filters, amount=1):
        _check_table(table)
        _check_columns(table, [column])
        where, params = _where(table, filters)
        sql = f"UPDATE {table} SET {column} = COALESCE({column}, 0) + ?{where}"
        return await self._run(f"increment {table}.{column}", self._write, sql, [amount] + params)

    # Blob storage

    def _blob_path(self, bucket: str, path: str) -> Path:
        return blob_file_path(self.upload_folder, bucket, path)

    def blob_url(self, bucket: str, path: str) -> str:
        return f"{self.public_base_url}/cdn/{bucket}/{path}"

    def _write_blob(self, dest: Path, data: bytes):
        dest.parent.mkdir(parents=True, exist_ok=True)
        dest.write_bytes(data)

    async def upload_blob(self, bucket, path, data):
        dest = self._blob_path(bucket, path)
        if dest.exists():
            raise ConstraintViolation(f"upload {bucket}", message=f"{bucket}/{path} already exists")
        try:
            await asyncio.to_thread(self._write_blob, dest, data)
        except OSError as exc:
            logger.error("upload %s/%s failed: %s", bucket, path, exc)
            raise TransportFailure(f"upload {bucket}", exc)
        return self.blob_url(bucket, path)

    async def remove_blob(self, bucket, path):
        dest = self._blob_path(bucket, path)
        if not dest.is_file():
            return False
        try:
            await asyncio.to_thread(dest.unlink)
        except OSError as exc:
            raise TransportFailure(f"remove {bucket}", exc)
        return True
