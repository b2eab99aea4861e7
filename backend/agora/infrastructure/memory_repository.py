"""In-Memory Repository — the Repository protocol over a process-local dict.

Invariants:
    - Stores encoded payloads, never live objects: nothing a caller holds
      aliases stored state
    - save() succeeds only when entity.version equals the stored version
      (0 for absent); it returns a copy carrying version + 1
    - No await between the version check and the write, so the check-and-set is
      atomic on the event loop

Design Decisions:
    - Default backend for tests and single-process deployments; the SQL
      repository implements the same contract durably
"""

import logging
from typing import Any

from agora.core.domain_types import EntityKind
from agora.core.errors import ConflictError, ResourceNotFoundError
from agora.infrastructure.entity_codec import decode, encode

logger = logging.getLogger(__name__)


class InMemoryRepository:

    def __init__(self):
        self._records: dict[tuple[EntityKind, str], tuple[int, dict]] = {}

    async def get(self, kind: EntityKind, entity_id: str) -> Any:
        record = self._records.get((kind, entity_id))
        if record is None:
            raise ResourceNotFoundError(kind.value, entity_id)
        version, payload = record
        return decode(kind, payload, version)

    async def save(self, entity: Any) -> Any:
        key = (entity.KIND, entity.entity_id)
        stored = self._records.get(key)
        stored_version = stored[0] if stored else 0
        if entity.version != stored_version:
            logger.debug(
                f"Stale save of {entity.KIND.value} {entity.entity_id}: "
                f"v{entity.version} != v{stored_version}",
                extra={"entity_kind": entity.KIND.value, "entity_id": entity.entity_id},
            )
            raise ConflictError(entity.KIND.value, entity.entity_id, entity.version)
        payload = encode(entity)
        self._records[key] = (stored_version + 1, payload)
        return decode(entity.KIND, payload, stored_version + 1)

    async def delete(self, kind: EntityKind, entity_id: str) -> None:
        if self._records.pop((kind, entity_id), None) is None:
            raise ResourceNotFoundError(kind.value, entity_id)

    async def list_all(self, kind: EntityKind) -> list[Any]:
        return [
            decode(kind, payload, version)
            for (stored_kind, _), (version, payload) in self._records.items()
            if stored_kind == kind
        ]

    def __len__(self) -> int:
        return len(self._records)
