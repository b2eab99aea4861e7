"""Entity Codec — core dataclasses <-> JSON-safe dicts.

Invariants:
    - encode() never includes version; the repository stores it beside the payload
    - decode(kind, payload, version) returns a fresh object sharing nothing with
      the payload, so callers can mutate what they load
    - Every EntityKind has exactly one entity class

Design Decisions:
    - pydantic TypeAdapter over the plain dataclasses: enums, datetimes and
      nested OtpChallenge maps round-trip without hand-written converters
"""

from typing import Any

from pydantic import TypeAdapter

from agora.core.domain_types import EntityKind
from agora.core.entities import (
    AccountStanding,
    AuthAccountState,
    Conversation,
    Group,
    GroupMembership,
    Message,
    ModerationReport,
    ReputationRecord,
    VotableTarget,
)

ENTITY_CLASSES: dict[EntityKind, type] = {
    cls.KIND: cls
    for cls in (
        VotableTarget, Group, GroupMembership, ModerationReport,
        AccountStanding, Conversation, Message, AuthAccountState,
        ReputationRecord,
    )
}

_ADAPTERS: dict[EntityKind, TypeAdapter] = {
    kind: TypeAdapter(cls) for kind, cls in ENTITY_CLASSES.items()
}


def encode(entity: Any) -> dict:
    payload = _ADAPTERS[entity.KIND].dump_python(entity, mode="json")
    payload.pop("version", None)
    return payload


def decode(kind: EntityKind, payload: dict, version: int) -> Any:
    return _ADAPTERS[kind].validate_python({**payload, "version": version})
