"""In-Memory Repository — optimistic versions and copy-on-read."""

import pytest

from agora.core.domain_types import EntityKind, StandingStatus
from agora.core.entities import AccountStanding, ReputationRecord
from agora.core.errors import ConflictError, ResourceNotFoundError
from agora.infrastructure.memory_repository import InMemoryRepository


async def test_create_then_update_bumps_version():
    repo = InMemoryRepository()
    created = await repo.save(AccountStanding(user_id="alice"))
    assert created.version == 1
    created.warnings = 1
    updated = await repo.save(created)
    assert updated.version == 2
    assert (await repo.get(EntityKind.STANDING, "alice")).warnings == 1


async def test_stale_save_conflicts():
    repo = InMemoryRepository()
    first = await repo.save(AccountStanding(user_id="alice"))
    await repo.save(first)
    with pytest.raises(ConflictError) as exc:
        await repo.save(first)
    assert exc.value.code == "CONCURRENCY_CONFLICT"


async def test_second_create_conflicts():
    repo = InMemoryRepository()
    await repo.save(AccountStanding(user_id="alice"))
    with pytest.raises(ConflictError):
        await repo.save(AccountStanding(user_id="alice", status=StandingStatus.BANNED))


async def test_loaded_objects_do_not_alias_storage():
    repo = InMemoryRepository()
    saved = await repo.save(AccountStanding(user_id="alice"))
    saved.status = StandingStatus.BANNED
    assert (await repo.get(EntityKind.STANDING, "alice")).status == StandingStatus.GOOD


async def test_missing_and_delete():
    repo = InMemoryRepository()
    with pytest.raises(ResourceNotFoundError):
        await repo.get(EntityKind.STANDING, "missing")
    await repo.save(AccountStanding(user_id="alice"))
    assert len(repo) == 1
    await repo.delete(EntityKind.STANDING, "alice")
    assert len(repo) == 0
    with pytest.raises(ResourceNotFoundError):
        await repo.delete(EntityKind.STANDING, "alice")


async def test_list_all_returns_one_kind():
    repo = InMemoryRepository()
    await repo.save(AccountStanding(user_id="alice"))
    await repo.save(ReputationRecord(user_id="alice", answers_score=15))
    await repo.save(ReputationRecord(user_id="bob"))
    records = await repo.list_all(EntityKind.REPUTATION)
    assert sorted(r.user_id for r in records) == ["alice", "bob"]
    assert all(r.version == 1 for r in records)
    assert await repo.list_all(EntityKind.GROUP) == []
