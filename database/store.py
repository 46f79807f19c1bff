"""
Document store on top of the SQLAlchemy async engine.

Provides the handful of document operations the propagation engine needs:
point reads, inserts with server-assigned ids, merges, deletes, simple
equality/range queries and an atomic unit (`transaction()`) that commits or
discards all of its writes together.

Usage:
    store = DocumentStore(AsyncSessionLocal)
    job_id = await store.add("jobs", {"title": "Cook", "createdAt": SERVER_TIMESTAMP})

    async with store.transaction("create_application") as tx:
        tx.set("applications", app_id, {...})
"""

import copy
import logging
import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Iterable, Optional

from sqlalchemy import ColumnElement, Select, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from core.errors import NotFound, PropagationError, TransactionAborted
from database.models.documents import Document

logger = logging.getLogger(__name__)


class _ServerTimestamp:
    """Sentinel replaced with the commit-time UTC timestamp."""

    def __repr__(self) -> str:
        return "SERVER_TIMESTAMP"


SERVER_TIMESTAMP = _ServerTimestamp()

# (field, operator, value)
WhereClause = tuple[str, str, Any]

_OPERATORS = {
    "==": lambda a, b: a == b,
    "!=": lambda a, b: a != b,
    "<": lambda a, b: a is not None and a < b,
    "<=": lambda a, b: a is not None and a <= b,
    ">": lambda a, b: a is not None and a > b,
    ">=": lambda a, b: a is not None and a >= b,
    "in": lambda a, b: a in b,
    "array_contains": lambda a, b: isinstance(a, list) and b in a,
}


def utc_timestamp() -> str:
    """Current UTC time as an ISO-8601 string (sortable)."""
    return datetime.now(timezone.utc).isoformat()


def new_document_id() -> str:
    return uuid.uuid4().hex


def document_path(collection: str, doc_id: str) -> str:
    if not doc_id or "/" in doc_id:
        raise ValueError(f"Invalid document id: {doc_id!r}")
    if not collection or collection.strip("/") != collection:
        raise ValueError(f"Invalid collection path: {collection!r}")
    return f"{collection}/{doc_id}"


def resolve_server_values(data: Any, timestamp: Optional[str] = None) -> Any:
    """Replace every SERVER_TIMESTAMP sentinel, including nested ones."""
    timestamp = timestamp or utc_timestamp()
    if data is SERVER_TIMESTAMP:
        return timestamp
    if isinstance(data, dict):
        return {key: resolve_server_values(value, timestamp) for key, value in data.items()}
    if isinstance(data, list):
        return [resolve_server_values(item, timestamp) for item in data]
    return data


def _snapshot(row: Document) -> dict[str, Any]:
    snapshot = copy.deepcopy(row.data)
    snapshot["id"] = row.doc_id
    return snapshot


def _check_operators(where: Iterable[WhereClause]) -> None:
    for _, op, _ in where:
        if op not in _OPERATORS:
            raise ValueError(f"Unsupported query operator: {op!r}")


def _sql_clause(field: str, op: str, value: Any) -> Optional[ColumnElement[bool]]:
    """
    SQL form of a string equality / membership clause, or None.

    Only string comparisons are pushed into the statement; they render the
    same way on SQLite and PostgreSQL. Everything else is filtered in Python.
    """
    if op == "==" and isinstance(value, str):
        return Document.data[field].as_string() == value
    if op == "in" and isinstance(value, (list, tuple, set)) and all(isinstance(item, str) for item in value):
        return Document.data[field].as_string().in_(list(value))
    return None


def _filtered_select(collection: str, where: list[WhereClause]) -> tuple[Select, bool]:
    """Select for `collection` narrowed by every pushable clause; True if all were pushed."""
    statement = select(Document).where(Document.collection == collection)
    pushed_all = True
    for field, op, value in where:
        clause = _sql_clause(field, op, value)
        if clause is None:
            pushed_all = False
        else:
            statement = statement.where(clause)
    return statement, pushed_all


def _matches(data: dict[str, Any], where: Iterable[WhereClause]) -> bool:
    for field, op, value in where:
        compare = _OPERATORS[op]
        try:
            if not compare(data.get(field), value):
                return False
        except TypeError:
            return False
    return True


class Transaction:
    """
    Reads and writes bound to one database transaction.

    Writes are staged on the session and become visible only when the
    enclosing `DocumentStore.transaction()` block exits without error.
    """

    def __init__(self, session: AsyncSession):
        self._session = session
        self._timestamp = utc_timestamp()

    async def _row(self, collection: str, doc_id: str) -> Optional[Document]:
        return await self._session.get(Document, document_path(collection, doc_id))

    async def get(self, collection: str, doc_id: str) -> Optional[dict[str, Any]]:
        row = await self._row(collection, doc_id)
        return _snapshot(row) if row else None

    async def set(
        self,
        collection: str,
        doc_id: str,
        data: dict[str, Any],
        merge: bool = False,
    ) -> None:
        resolved = resolve_server_values(dict(data), self._timestamp)
        row = await self._row(collection, doc_id)
        if row is None:
            self._session.add(
                Document(
                    path=document_path(collection, doc_id),
                    collection=collection,
                    doc_id=doc_id,
                    data=resolved,
                )
            )
        elif merge:
            row.data = {**row.data, **resolved}
        else:
            row.data = resolved
        await self._session.flush()

    async def update(self, collection: str, doc_id: str, fields: dict[str, Any]) -> None:
        row = await self._row(collection, doc_id)
        if row is None:
            raise NotFound(collection, doc_id)
        row.data = {**row.data, **resolve_server_values(dict(fields), self._timestamp)}
        await self._session.flush()

    async def delete(self, collection: str, doc_id: str) -> bool:
        row = await self._row(collection, doc_id)
        if row is None:
            return False
        await self._session.delete(row)
        await self._session.flush()
        return True


class DocumentStore:
    """Document-oriented access to the `documents` table."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    @staticmethod
    def new_id() -> str:
        return new_document_id()

    @asynccontextmanager
    async def transaction(self, operation: str = "transaction") -> AsyncIterator[Transaction]:
        """
        Atomic unit: every write in the block commits together or not at all.

        Engine errors (NotFound, ...) raised inside the block propagate
        unchanged after rollback; anything else surfaces as TransactionAborted.
        """
        session = self._session_factory()
        try:
            async with session.begin():
                yield Transaction(session)
        except PropagationError:
            raise
        except Exception as exc:
            logger.error(f"Transaction {operation} rolled back: {exc}")
            raise TransactionAborted(operation, exc) from exc
        finally:
            await session.close()

    async def get(self, collection: str, doc_id: str) -> Optional[dict[str, Any]]:
        """Point read; None when the document does not exist."""
        async with self._session_factory() as session:
            row = await session.get(Document, document_path(collection, doc_id))
            return _snapshot(row) if row else None

    async def get_entity(self, collection: str, doc_id: str) -> dict[str, Any]:
        """Point read that raises NotFound instead of returning None."""
        document = await self.get(collection, doc_id)
        if document is None:
            raise NotFound(collection, doc_id)
        return document

    async def exists(self, collection: str, doc_id: str) -> bool:
        return await self.get(collection, doc_id) is not None

    async def add(self, collection: str, data: dict[str, Any]) -> str:
        """Insert a document under a server-assigned id and return the id."""
        doc_id = self.new_id()
        async with self._session_factory() as session:
            async with session.begin():
                session.add(
                    Document(
                        path=document_path(collection, doc_id),
                        collection=collection,
                        doc_id=doc_id,
                        data=resolve_server_values(dict(data)),
                    )
                )
        return doc_id

    async def create(self, collection: str, doc_id: str, data: dict[str, Any]) -> bool:
        """Insert under a caller-chosen id; False if the document already exists."""
        async with self._session_factory() as session:
            async with session.begin():
                path = document_path(collection, doc_id)
                if await session.get(Document, path) is not None:
                    return False
                session.add(
                    Document(
                        path=path,
                        collection=collection,
                        doc_id=doc_id,
                        data=resolve_server_values(dict(data)),
                    )
                )
        return True

    async def set(
        self,
        collection: str,
        doc_id: str,
        data: dict[str, Any],
        merge: bool = False,
    ) -> None:
        async with self.transaction(f"set {collection}") as tx:
            await tx.set(collection, doc_id, data, merge=merge)

    async def update(self, collection: str, doc_id: str, fields: dict[str, Any]) -> None:
        """Merge fields into an existing document; NotFound if it is absent."""
        async with self.transaction(f"update {collection}") as tx:
            await tx.update(collection, doc_id, fields)

    async def delete(self, collection: str, doc_id: str) -> bool:
        async with self.transaction(f"delete {collection}") as tx:
            return await tx.delete(collection, doc_id)

    async def query(
        self,
        collection: str,
        where: Optional[Iterable[WhereClause]] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> list[dict[str, Any]]:
        """
        Query one collection.

        Args:
            collection: Collection path
            where: (field, operator, value) clauses, all of which must match
            order_by: Data field to sort on; documents missing it come first
                in ascending order and last in descending order
            descending: Sort order
            limit: Maximum number of documents

        Returns:
            List of document snapshots (each with an `id` key)
        """
        where = list(where or [])
        _check_operators(where)
        statement, pushed_all = _filtered_select(collection, where)

        if order_by:
            key = Document.data[order_by].as_string()
            key = key.desc().nulls_last() if descending else key.asc().nulls_first()
            statement = statement.order_by(key, Document.path)
        else:
            statement = statement.order_by(Document.path)
        if limit is not None and pushed_all:
            statement = statement.limit(limit)

        async with self._session_factory() as session:
            rows = (await session.execute(statement)).scalars().all()

        # Pushed clauses are re-checked: PostgreSQL compares the text form of
        # non-string values
        documents = [_snapshot(row) for row in rows if _matches(row.data, where)]
        if limit is not None:
            documents = documents[:limit]
        return documents

    async def count(
        self,
        collection: str,
        where: Optional[Iterable[WhereClause]] = None,
    ) -> int:
        where = list(where or [])
        _check_operators(where)
        statement, pushed_all = _filtered_select(collection, where)
        if not pushed_all:
            return len(await self.query(collection, where=where))

        async with self._session_factory() as session:
            result = await session.execute(
                select(func.count()).select_from(statement.subquery())
            )
            return result.scalar_one()
