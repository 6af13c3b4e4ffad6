"""
Per-user document store: whole-document get/set/delete keyed by slash-separated paths,
plus collection listing. The engine never relies on server-side query predicates;
`query` returns every document of a collection and filters in memory.
"""
from __future__ import annotations

import copy
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Protocol

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from fitledger.models.document import StoredDocument


@dataclass
class Document:
    id: str
    data: dict


class DocumentStore(Protocol):
    async def get(self, path: str) -> dict | None: ...

    async def set(self, path: str, value: dict, *, merge: bool = False) -> None: ...

    async def delete(self, path: str) -> None: ...

    async def query(
        self, collection: str, predicate: Callable[[dict], bool] | None = None
    ) -> list[Document]: ...


def split_path(path: str) -> tuple[str, str]:
    """'users/1/logs/2026-01-02' -> ('users/1/logs', '2026-01-02')."""
    collection, _, doc_id = path.rstrip("/").rpartition("/")
    return collection, doc_id


def merge_fields(existing: dict | None, incoming: dict | None) -> dict:
    """Deep merge incoming into existing; nested mappings merge, everything else is replaced."""
    out = dict(existing or {})
    if not incoming:
        return out
    for k, v in incoming.items():
        if isinstance(v, dict) and isinstance(out.get(k), dict):
            out[k] = merge_fields(out[k], v)
        else:
            out[k] = v
    return out


class InMemoryDocumentStore:
    """Process-local store. Values are deep-copied in and out so callers never alias stored state."""

    def __init__(self) -> None:
        self._docs: dict[str, dict] = {}

    async def get(self, path: str) -> dict | None:
        doc = self._docs.get(path)
        return copy.deepcopy(doc) if doc is not None else None

    async def set(self, path: str, value: dict, *, merge: bool = False) -> None:
        value = copy.deepcopy(value)
        if merge:
            value = merge_fields(self._docs.get(path), value)
        self._docs[path] = value

    async def delete(self, path: str) -> None:
        self._docs.pop(path, None)

    async def query(
        self, collection: str, predicate: Callable[[dict], bool] | None = None
    ) -> list[Document]:
        out = []
        for path, data in self._docs.items():
            parent, doc_id = split_path(path)
            if parent != collection:
                continue
            if predicate is not None and not predicate(data):
                continue
            out.append(Document(id=doc_id, data=copy.deepcopy(data)))
        return out


class SqlDocumentStore:
    """Documents as JSON rows in `stored_documents`; each call runs in its own transaction."""

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]) -> None:
        self._session_maker = session_maker

    async def get(self, path: str) -> dict | None:
        async with self._session_maker() as session:
            r = await session.execute(select(StoredDocument.data).where(StoredDocument.path == path))
            data = r.scalar_one_or_none()
            return copy.deepcopy(data) if data is not None else None

    async def set(self, path: str, value: dict, *, merge: bool = False) -> None:
        collection, doc_id = split_path(path)
        async with self._session_maker() as session:
            async with session.begin():
                r = await session.execute(select(StoredDocument).where(StoredDocument.path == path))
                row = r.scalar_one_or_none()
                if row is None:
                    session.add(
                        StoredDocument(path=path, collection=collection, doc_id=doc_id, data=copy.deepcopy(value))
                    )
                    return
                # Assign a new object so the JSON column is flagged dirty
                row.data = merge_fields(row.data, value) if merge else copy.deepcopy(value)
                row.updated_at = datetime.now(timezone.utc)

    async def delete(self, path: str) -> None:
        async with self._session_maker() as session:
            async with session.begin():
                await session.execute(delete(StoredDocument).where(StoredDocument.path == path))

    async def query(
        self, collection: str, predicate: Callable[[dict], bool] | None = None
    ) -> list[Document]:
        async with self._session_maker() as session:
            r = await session.execute(
                select(StoredDocument.doc_id, StoredDocument.data).where(StoredDocument.collection == collection)
            )
            rows = r.all()
        out = []
        for doc_id, data in rows:
            if predicate is not None and not predicate(data):
                continue
            out.append(Document(id=doc_id, data=copy.deepcopy(data)))
        return out
