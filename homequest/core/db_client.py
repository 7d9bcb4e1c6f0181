"""SQLite document store with batched writes, optimistic transactions and change notification."""

import asyncio
import json
import logging
import re
import secrets
import string
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, TypeVar

import aiosqlite

from homequest.core.change_stream import ChangeEvent, ChangeStream
from homequest.core.config import settings
from homequest.core.field_values import resolve_fields


logger = logging.getLogger(__name__)

T = TypeVar("T")

_SEGMENT_PATTERN = re.compile(r"^[A-Za-z0-9_-]+$")
_FIELD_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
_AUTO_ID_CHARS = string.ascii_letters + string.digits
AUTO_ID_LENGTH = 20


class DatabaseError(Exception):
    """Raised when the document store cannot complete an operation."""


class RecordNotFoundError(DatabaseError, KeyError):
    """Raised when an update targets a document that does not exist."""


class RecordExistsError(DatabaseError):
    """Raised when a create targets a document that already exists."""


class TransactionConflictError(DatabaseError):
    """Raised when an optimistic transaction keeps losing to concurrent writers."""


def utc_now() -> datetime:
    return datetime.now(UTC)


def format_timestamp(value: datetime) -> str:
    """Render a datetime as a UTC ISO-8601 string whose lexical order is chronological."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC).isoformat(timespec="microseconds").replace("+00:00", "Z")


def new_id() -> str:
    """Generate a 20-character document id."""
    return "".join(secrets.choice(_AUTO_ID_CHARS) for _ in range(AUTO_ID_LENGTH))


def _split_path(path: str) -> list[str]:
    segments = path.strip("/").split("/")
    for segment in segments:
        if not _SEGMENT_PATTERN.fullmatch(segment):
            msg = f"Invalid path segment '{segment}' in {path}. Only letters, digits, '_' and '-' are allowed."
            raise ValueError(msg)
    return segments


def validate_document_path(path: str) -> tuple[str, str]:
    """Validate a document path and split it into (collection path, document id)."""
    segments = _split_path(path)
    if len(segments) % 2 != 0:
        msg = f"Document paths need an even number of segments: {path}"
        raise ValueError(msg)
    return "/".join(segments[:-1]), segments[-1]


def validate_collection_path(path: str) -> str:
    segments = _split_path(path)
    if len(segments) % 2 != 1:
        msg = f"Collection paths need an odd number of segments: {path}"
        raise ValueError(msg)
    return "/".join(segments)


def get_db_path(db_path: str | None = None) -> Path:
    """Get the resolved SQLite database file path."""
    path_str = db_path or settings.sqlite_db_path
    return Path(path_str).resolve()


def _parse_literal(token: str) -> str | int | float | bool | None:
    """Parse an unquoted filter literal."""
    lowered = token.lower()
    if lowered == "null":
        return None
    if lowered == "true":
        return True
    if lowered == "false":
        return False
    try:
        return int(token)
    except ValueError:
        pass
    try:
        return float(token)
    except ValueError:
        msg = f"Invalid filter literal: {token}"
        raise ValueError(msg) from None


_SQL_OPERATORS = {"=": "=", "!=": "!=", ">": ">", "<": "<", ">=": ">=", "<=": "<="}


def _parse_single_comparison(comparison: str) -> tuple[str, list[Any]]:
    """Parse one comparison into a SQL condition over the JSON document body.

    Quoted values are always strings; unquoted values are numbers, booleans or null.
    """
    match = re.fullmatch(
        r"""(\w+)\s*(>=|<=|!=|=|>|<)\s*(?:(['"])(.*?)\3|([\w.+-]+))""",
        comparison.strip(),
    )
    if not match:
        msg = f"Invalid filter syntax: {comparison}"
        raise ValueError(msg)

    field, op = match.group(1), match.group(2)
    value = match.group(4) if match.group(3) else _parse_literal(match.group(5))
    column = f"json_extract(data, '$.{field}')"

    if value is None:
        if op == "=":
            return f"{column} IS NULL", []
        if op == "!=":
            return f"{column} IS NOT NULL", []
        msg = f"Operator {op} cannot compare against null"
        raise ValueError(msg)

    return f"{column} {_SQL_OPERATORS[op]} ?", [value]


def _parse_or_group(or_group: str) -> tuple[str, list[Any]]:
    """Parse a parenthesized OR group into a SQL condition and parameters."""
    inner = or_group[1:-1]
    conditions = []
    params: list[Any] = []
    for part in inner.split("||"):
        cond, values = _parse_single_comparison(part)
        conditions.append(cond)
        params.extend(values)
    return f"({' OR '.join(conditions)})", params


def _split_and_conditions(filter_query: str) -> list[str]:
    """Split filter query by && while preserving parenthesized groups."""
    parts = []
    current = ""
    paren_depth = 0

    for char in filter_query:
        if char == "(":
            paren_depth += 1
        elif char == ")":
            paren_depth -= 1

        current += char

        if paren_depth == 0 and current.endswith("&&"):
            parts.append(current[:-2].strip())
            current = ""

    if current.strip():
        parts.append(current.strip())

    return parts


def parse_filter(filter_query: str) -> tuple[str, list[Any]]:
    """Parse filter syntax into a SQL WHERE clause and parameter list."""
    if not filter_query:
        return "", []

    conditions = []
    params: list[Any] = []
    for part in _split_and_conditions(filter_query):
        if part.startswith("(") and part.endswith(")"):
            cond, values = _parse_or_group(part)
        else:
            cond, values = _parse_single_comparison(part)
        conditions.append(cond)
        params.extend(values)

    return " AND ".join(conditions), params


def parse_sort(sort: str) -> str:
    """Translate 'field' / '-field' into an ORDER BY clause, path as tie-breaker."""
    if not sort:
        return "path ASC"
    field = sort.strip()
    direction = "ASC"
    if field.startswith("-"):
        field, direction = field[1:], "DESC"
    if not _FIELD_PATTERN.fullmatch(field):
        logger.warning("Invalid sort parameter, using default", extra={"sort": sort})
        return "path ASC"
    return f"json_extract(data, '$.{field}') {direction}, path {direction}"


@dataclass(frozen=True)
class DocumentSnapshot:
    """A document as read from the store. `data` is None when the document does not exist."""

    path: str
    data: dict[str, Any] | None
    version: int = 0
    update_time: str | None = None

    @property
    def exists(self) -> bool:
        return self.data is not None

    @property
    def id(self) -> str:
        return self.path.rsplit("/", 1)[-1]

    def get(self, field: str, default: Any = None) -> Any:
        if self.data is None:
            return default
        return self.data.get(field, default)


@dataclass(frozen=True)
class _Write:
    kind: str
    path: str
    data: dict[str, Any] | None = None
    merge: bool = False

    def apply(self, current: dict[str, Any] | None, commit_time: str) -> dict[str, Any] | None:
        """Return the document body after this write; None means deleted."""
        if self.kind == "delete":
            return None
        if self.kind == "create" and current is not None:
            raise RecordExistsError(f"Document already exists: {self.path}")
        if self.kind == "update" and current is None:
            raise RecordNotFoundError(f"Document not found: {self.path}")

        resolved = resolve_fields(self.data or {}, current, commit_time)
        if self.kind == "update" or (self.kind == "set" and self.merge):
            return {**(current or {}), **resolved}
        return resolved


class WriteBatch:
    """Collects writes that commit all-or-nothing with a single commit timestamp."""

    def __init__(self, store: "DocumentStore") -> None:
        self._store = store
        self._writes: list[_Write] = []
        self._committed = False

    def __len__(self) -> int:
        return len(self._writes)

    def _add(self, write: _Write) -> "WriteBatch":
        if self._committed:
            raise DatabaseError("Batch already committed")
        validate_document_path(write.path)
        self._writes.append(write)
        return self

    def create(self, path: str, data: dict[str, Any]) -> "WriteBatch":
        return self._add(_Write("create", path, dict(data)))

    def set(self, path: str, data: dict[str, Any], *, merge: bool = False) -> "WriteBatch":
        return self._add(_Write("set", path, dict(data), merge=merge))

    def update(self, path: str, data: dict[str, Any]) -> "WriteBatch":
        if not data:
            raise ValueError("Empty update payload")
        return self._add(_Write("update", path, dict(data)))

    def delete(self, path: str) -> "WriteBatch":
        return self._add(_Write("delete", path))

    async def commit(self) -> list[ChangeEvent]:
        events = await self._store._commit(self._writes, {})
        self._committed = True
        return events


class Transaction(WriteBatch):
    """Optimistic transaction: reads record versions that are re-checked at commit."""

    def __init__(self, store: "DocumentStore") -> None:
        super().__init__(store)
        self._read_versions: dict[str, int] = {}

    async def get(self, path: str) -> DocumentSnapshot:
        if self._writes:
            raise DatabaseError("Transactions require all reads to be executed before all writes")
        snapshot = await self._store.get(path)
        self._read_versions.setdefault(path, snapshot.version)
        return snapshot


class DocumentStore:
    """Hierarchical document store persisted in a single SQLite table.

    One aiosqlite connection is shared by every caller and guarded by an
    asyncio lock, so reads never observe a half-applied batch.
    """

    def __init__(
        self,
        *,
        db_path: str | None = None,
        change_stream: ChangeStream | None = None,
        max_transaction_attempts: int | None = None,
    ) -> None:
        self.db_path = get_db_path(db_path)
        self.changes = change_stream or ChangeStream()
        self._max_transaction_attempts = max_transaction_attempts or settings.transaction_max_attempts
        self._conn: aiosqlite.Connection | None = None
        self._lock = asyncio.Lock()

    async def connect(self) -> None:
        """Open the connection and create the schema if needed."""
        if self._conn is not None:
            return

        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        conn = await aiosqlite.connect(str(self.db_path), isolation_level=None)
        await conn.execute("PRAGMA journal_mode = WAL")
        await conn.execute(
            """
            CREATE TABLE IF NOT EXISTS documents (
                path TEXT PRIMARY KEY,
                collection TEXT NOT NULL,
                doc_id TEXT NOT NULL,
                data TEXT NOT NULL,
                version INTEGER NOT NULL DEFAULT 1,
                update_time TEXT NOT NULL
            )
            """
        )
        await conn.execute("CREATE INDEX IF NOT EXISTS idx_documents_collection ON documents (collection)")
        self._conn = conn
        logger.info("Opened document store", extra={"db_path": str(self.db_path)})

    async def close(self) -> None:
        if self._conn is None:
            return
        await self._conn.close()
        self._conn = None
        logger.info("Closed document store", extra={"db_path": str(self.db_path)})

    @property
    def _connection(self) -> aiosqlite.Connection:
        if self._conn is None:
            raise DatabaseError("Document store is not connected. Call connect() first.")
        return self._conn

    async def _fetch(self, path: str) -> DocumentSnapshot:
        cursor = await self._connection.execute(
            "SELECT data, version, update_time FROM documents WHERE path = ?", (path,)
        )
        row = await cursor.fetchone()
        if row is None:
            return DocumentSnapshot(path=path, data=None)
        return DocumentSnapshot(path=path, data=json.loads(row[0]), version=row[1], update_time=row[2])

    async def get(self, path: str) -> DocumentSnapshot:
        """Read a document. Missing documents return a snapshot with exists == False."""
        validate_document_path(path)
        try:
            async with self._lock:
                return await self._fetch(path)
        except DatabaseError:
            raise
        except Exception as e:
            logger.error("get_document_failed", extra={"path": path, "error": str(e)})
            msg = f"Failed to read {path}: {e}"
            raise DatabaseError(msg) from e

    async def query(
        self,
        collection_path: str,
        *,
        filter_query: str = "",
        sort: str = "",
        limit: int | None = None,
        offset: int = 0,
    ) -> list[DocumentSnapshot]:
        """List the documents of one collection with optional filtering, sorting, limit and offset."""
        collection = validate_collection_path(collection_path)
        where_clause, params = parse_filter(filter_query)

        sql = "SELECT path, data, version, update_time FROM documents WHERE collection = ?"
        if where_clause:
            sql += f" AND {where_clause}"
        sql += f" ORDER BY {parse_sort(sort)}"
        args: list[Any] = [collection, *params]
        if limit is not None or offset:
            # SQLite needs a LIMIT before OFFSET; -1 means no limit
            sql += " LIMIT ? OFFSET ?"
            args.extend([-1 if limit is None else limit, offset])

        try:
            async with self._lock:
                cursor = await self._connection.execute(sql, args)
                rows = await cursor.fetchall()
        except DatabaseError:
            raise
        except Exception as e:
            logger.error("query_failed", extra={"collection": collection, "error": str(e)})
            msg = f"Failed to query {collection}: {e}"
            raise DatabaseError(msg) from e

        return [
            DocumentSnapshot(path=row[0], data=json.loads(row[1]), version=row[2], update_time=row[3]) for row in rows
        ]

    async def create(self, path: str, data: dict[str, Any]) -> None:
        await self.batch().create(path, data).commit()

    async def set(self, path: str, data: dict[str, Any], *, merge: bool = False) -> None:
        await self.batch().set(path, data, merge=merge).commit()

    async def update(self, path: str, data: dict[str, Any]) -> None:
        await self.batch().update(path, data).commit()

    async def delete(self, path: str) -> None:
        await self.batch().delete(path).commit()

    def batch(self) -> WriteBatch:
        return WriteBatch(self)

    async def run_transaction(
        self,
        body: Callable[[Transaction], Awaitable[T]],
        *,
        max_attempts: int | None = None,
    ) -> T:
        """Run `body` in an optimistic transaction, re-running it on conflicting commits.

        The body may be executed more than once; it must not have side effects
        outside the transaction. Any exception it raises aborts without retry.
        """
        attempts = max_attempts or self._max_transaction_attempts
        for attempt in range(1, attempts + 1):
            transaction = Transaction(self)
            result = await body(transaction)
            try:
                await self._commit(transaction._writes, transaction._read_versions)
            except TransactionConflictError:
                logger.info("Transaction conflict, retrying", extra={"attempt": attempt, "max_attempts": attempts})
                await asyncio.sleep(0)
                continue
            transaction._committed = True
            return result

        msg = f"Transaction aborted after {attempts} conflicting attempts"
        raise TransactionConflictError(msg)

    async def _commit(self, writes: list[_Write], read_versions: dict[str, int]) -> list[ChangeEvent]:
        events: list[ChangeEvent] = []
        conn = self._connection

        async with self._lock:
            for path, version in read_versions.items():
                current = await self._fetch(path)
                if current.version != version:
                    msg = f"Document changed during transaction: {path}"
                    raise TransactionConflictError(msg)

            if not writes:
                return events

            commit_time = format_timestamp(utc_now())
            await conn.execute("BEGIN IMMEDIATE")
            try:
                for write in writes:
                    before = await self._fetch(write.path)
                    after = write.apply(before.data, commit_time)
                    if after is None:
                        if not before.exists:
                            continue
                        await conn.execute("DELETE FROM documents WHERE path = ?", (write.path,))
                    else:
                        collection, doc_id = validate_document_path(write.path)
                        await conn.execute(
                            """
                            INSERT INTO documents (path, collection, doc_id, data, version, update_time)
                            VALUES (?, ?, ?, ?, 1, ?)
                            ON CONFLICT(path) DO UPDATE SET
                                data = excluded.data,
                                version = documents.version + 1,
                                update_time = excluded.update_time
                            """,
                            (write.path, collection, doc_id, json.dumps(after), commit_time),
                        )
                    events.append(
                        ChangeEvent(path=write.path, before=before.data, after=after, commit_time=commit_time)
                    )
                await conn.execute("COMMIT")
            except DatabaseError:
                await conn.execute("ROLLBACK")
                raise
            except Exception as e:
                await conn.execute("ROLLBACK")
                logger.error("commit_failed", extra={"writes": len(writes), "error": str(e)})
                msg = f"Failed to commit {len(writes)} writes: {e}"
                raise DatabaseError(msg) from e

        logger.debug("Committed writes", extra={"writes": len(writes), "commit_time": commit_time})
        self.changes.publish(events)
        return events
