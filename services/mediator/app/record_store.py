from __future__ import annotations

import copy
import logging
import uuid
from typing import Any, Protocol

from qdrant_client import AsyncQdrantClient
from qdrant_client.models import (
    Direction,
    FieldCondition,
    Filter,
    MatchValue,
    OrderBy,
    PayloadSchemaType,
    PointStruct,
)

from .models import CHAT_LOGS, ENTITY_KINDS, ESCALATIONS, FEEDBACK_TALLIES

logger = logging.getLogger("mediator.store")

# Payload fields that get an index on creation; ordered scrolls need one.
_INDEXED_FIELDS: dict[str, dict[str, PayloadSchemaType]] = {
    CHAT_LOGS: {
        "product_id": PayloadSchemaType.KEYWORD,
        "helpfulness": PayloadSchemaType.KEYWORD,
        "created_ts": PayloadSchemaType.FLOAT,
    },
    ESCALATIONS: {
        "product_id": PayloadSchemaType.KEYWORD,
        "status": PayloadSchemaType.KEYWORD,
        "created_ts": PayloadSchemaType.FLOAT,
    },
    FEEDBACK_TALLIES: {
        "product_id": PayloadSchemaType.KEYWORD,
    },
}


class PersistenceFailure(Exception):
    pass


class RecordStore(Protocol):
    async def list(
        self,
        kind: str,
        filters: dict[str, Any],
        order_by: str | None = None,
        descending: bool = True,
        limit: int | None = None,
    ) -> list[dict[str, Any]]: ...

    async def count(self, kind: str, filters: dict[str, Any]) -> int: ...

    async def create(self, kind: str, record: dict[str, Any]) -> dict[str, Any]: ...

    async def update(self, kind: str, record_id: str, partial: dict[str, Any]) -> None: ...


def point_id(record_id: str) -> str:
    return str(uuid.uuid5(uuid.NAMESPACE_URL, record_id))


def build_filter(filters: dict[str, Any]) -> Filter | None:
    if not filters:
        return None
    return Filter(
        must=[FieldCondition(key=key, match=MatchValue(value=value)) for key, value in filters.items()]
    )


class QdrantRecordStore:
    """Entity records kept as vectorless Qdrant points, one collection per kind.

    The record's own ``id`` lives in the payload; the point id is derived from
    it so updates can address the point directly.
    """

    def __init__(
        self,
        url: str,
        collection_prefix: str,
        scan_limit: int = 10000,
        client: AsyncQdrantClient | None = None,
    ):
        self.collection_prefix = collection_prefix
        self.scan_limit = scan_limit
        self.client = client or AsyncQdrantClient(url=url)
        self._ready: set[str] = set()

    def collection_name(self, kind: str) -> str:
        return f"{self.collection_prefix}_{kind}"

    async def ensure_collection(self, kind: str) -> None:
        if kind in self._ready:
            return
        name = self.collection_name(kind)
        try:
            await self.client.get_collection(name)
            self._ready.add(kind)
            return
        except Exception:
            logger.info("Qdrant collection missing; creating '%s'", name)

        try:
            await self.client.create_collection(collection_name=name, vectors_config={})
            for field_name, schema in _INDEXED_FIELDS.get(kind, {}).items():
                await self.client.create_payload_index(
                    collection_name=name,
                    field_name=field_name,
                    field_schema=schema,
                )
            self._ready.add(kind)
        except Exception as exc:
            logger.warning("Qdrant create collection failed: %s", exc)
            raise PersistenceFailure("Record store unavailable") from exc

    async def ensure_all(self) -> None:
        for kind in ENTITY_KINDS:
            await self.ensure_collection(kind)

    async def list(
        self,
        kind: str,
        filters: dict[str, Any],
        order_by: str | None = None,
        descending: bool = True,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        await self.ensure_collection(kind)
        order = None
        if order_by:
            order = OrderBy(key=order_by, direction=Direction.DESC if descending else Direction.ASC)
        try:
            points, _ = await self.client.scroll(
                collection_name=self.collection_name(kind),
                scroll_filter=build_filter(filters),
                limit=limit or self.scan_limit,
                with_payload=True,
                with_vectors=False,
                order_by=order,
            )
        except Exception as exc:
            logger.warning("Qdrant scroll on %s failed: %s", kind, exc)
            raise PersistenceFailure("Record store unavailable") from exc
        return [dict(point.payload or {}) for point in points]

    async def count(self, kind: str, filters: dict[str, Any]) -> int:
        await self.ensure_collection(kind)
        try:
            result = await self.client.count(
                collection_name=self.collection_name(kind),
                count_filter=build_filter(filters),
                exact=True,
            )
        except Exception as exc:
            logger.warning("Qdrant count on %s failed: %s", kind, exc)
            raise PersistenceFailure("Record store unavailable") from exc
        return result.count

    async def create(self, kind: str, record: dict[str, Any]) -> dict[str, Any]:
        if not record.get("id"):
            raise ValueError("record id is required")
        await self.ensure_collection(kind)
        point = PointStruct(id=point_id(str(record["id"])), vector={}, payload=record)
        try:
            await self.client.upsert(collection_name=self.collection_name(kind), points=[point])
        except Exception as exc:
            logger.warning("Qdrant upsert on %s failed: %s", kind, exc)
            raise PersistenceFailure("Record store unavailable") from exc
        return dict(record)

    async def update(self, kind: str, record_id: str, partial: dict[str, Any]) -> None:
        if not partial:
            return
        await self.ensure_collection(kind)
        try:
            await self.client.set_payload(
                collection_name=self.collection_name(kind),
                payload=partial,
                points=[point_id(record_id)],
            )
        except Exception as exc:
            logger.warning("Qdrant set_payload on %s/%s failed: %s", kind, record_id, exc)
            raise PersistenceFailure("Record store unavailable") from exc


class InMemoryRecordStore:
    def __init__(self):
        self.records: dict[str, dict[str, dict[str, Any]]] = {kind: {} for kind in ENTITY_KINDS}

    def _table(self, kind: str) -> dict[str, dict[str, Any]]:
        return self.records.setdefault(kind, {})

    async def list(
        self,
        kind: str,
        filters: dict[str, Any],
        order_by: str | None = None,
        descending: bool = True,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        rows = [
            copy.deepcopy(record)
            for record in self._table(kind).values()
            if all(record.get(key) == value for key, value in filters.items())
        ]
        if order_by:
            present = [row for row in rows if row.get(order_by) is not None]
            rows = sorted(present, key=lambda row: row[order_by], reverse=descending)
        if limit is not None:
            rows = rows[:limit]
        return rows

    async def count(self, kind: str, filters: dict[str, Any]) -> int:
        return len(await self.list(kind, filters))

    async def create(self, kind: str, record: dict[str, Any]) -> dict[str, Any]:
        if not record.get("id"):
            raise ValueError("record id is required")
        self._table(kind)[str(record["id"])] = copy.deepcopy(record)
        return copy.deepcopy(record)

    async def update(self, kind: str, record_id: str, partial: dict[str, Any]) -> None:
        table = self._table(kind)
        if record_id not in table:
            raise PersistenceFailure(f"{kind} record {record_id} not found")
        table[record_id].update(copy.deepcopy(partial))
