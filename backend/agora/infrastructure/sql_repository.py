"""SQL Repository — the Repository protocol over the entity_records table.

Invariants:
    - save() of a version-0 entity is an INSERT; a duplicate key means someone
      else created it first and surfaces as ConflictError
    - save() of a loaded entity is UPDATE ... WHERE version = :expected; zero
      rows updated means a concurrent writer won and surfaces as ConflictError
    - One session and one commit per call; no transaction spans two entities
    - Any other database failure surfaces as DependencyFailureError
"""

import logging
from typing import Any

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError

from agora.core.domain_types import EntityKind
from agora.core.errors import ConflictError, ResourceNotFoundError
from agora.infrastructure.database import DatabaseSessionManager
from agora.infrastructure.entity_codec import decode, encode
from agora.models.entity_record import EntityRecord

logger = logging.getLogger(__name__)


class SqlRepository:

    def __init__(self, manager: DatabaseSessionManager):
        self._manager = manager

    async def get(self, kind: EntityKind, entity_id: str) -> Any:
        async with self._manager.session() as db:
            record = await db.get(EntityRecord, (kind.value, entity_id))
            if record is None:
                raise ResourceNotFoundError(kind.value, entity_id)
            return decode(kind, record.payload, record.version)

    async def save(self, entity: Any) -> Any:
        kind, entity_id = entity.KIND, entity.entity_id
        payload = encode(entity)
        async with self._manager.session() as db:
            if entity.version == 0:
                db.add(EntityRecord(
                    kind=kind.value, entity_id=entity_id, version=1, payload=payload,
                ))
                try:
                    await db.commit()
                except IntegrityError:
                    await db.rollback()
                    raise ConflictError(kind.value, entity_id, 0)
            else:
                result = await db.execute(
                    update(EntityRecord)
                    .where(
                        EntityRecord.kind == kind.value,
                        EntityRecord.entity_id == entity_id,
                        EntityRecord.version == entity.version,
                    )
                    .values(version=entity.version + 1, payload=payload)
                )
                if result.rowcount != 1:
                    await db.rollback()
                    raise ConflictError(kind.value, entity_id, entity.version)
                await db.commit()
        logger.debug(
            f"Saved {kind.value} {entity_id} v{entity.version + 1}",
            extra={"entity_kind": kind.value, "entity_id": entity_id},
        )
        return decode(kind, payload, entity.version + 1)

    async def delete(self, kind: EntityKind, entity_id: str) -> None:
        async with self._manager.session() as db:
            result = await db.execute(
                delete(EntityRecord).where(
                    EntityRecord.kind == kind.value,
                    EntityRecord.entity_id == entity_id,
                )
            )
            if result.rowcount != 1:
                raise ResourceNotFoundError(kind.value, entity_id)
            await db.commit()

    async def list_all(self, kind: EntityKind) -> list[Any]:
        async with self._manager.session() as db:
            result = await db.execute(
                select(EntityRecord).where(EntityRecord.kind == kind.value)
            )
            return [
                decode(kind, record.payload, record.version)
                for record in result.scalars()
            ]
