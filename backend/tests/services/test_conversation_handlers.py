"""Conversation Handlers — sequencing under concurrency, history and read markers."""

import asyncio

import pytest

from agora.core.domain_types import DenialReason, EntityKind
from agora.core.entities import message_key
from agora.core.errors import AuthorizationDeniedError, InputValidationError
from tests.support import run, user


async def _conversation(dispatch, participants=("bob",), conversation_type="direct"):
    result = await run(
        dispatch, user("alice"), kind="create_conversation",
        participant_ids=list(participants), conversation_type=conversation_type,
    )
    return result.conversation_id


async def _send(dispatch, conversation_id, sender, content, **extra):
    return await run(
        dispatch, user(sender), kind="send_message",
        conversation_id=conversation_id, content=content, **extra,
    )


async def test_messages_get_consecutive_sequences(dispatch, sink):
    conversation_id = await _conversation(dispatch)
    first = await _send(dispatch, conversation_id, "alice", "hi")
    second = await _send(dispatch, conversation_id, "bob", "hey")
    assert (first.sequence, second.sequence) == (1, 2)
    assert [u for u, _ in sink.of_kind("message_received")] == ["bob", "alice"]


async def test_concurrent_senders_never_share_a_sequence(dispatch):
    conversation_id = await _conversation(dispatch, ("bob", "carol"), "group")
    senders = ["alice", "bob", "carol"] * 7
    results = await asyncio.gather(*(
        _send(dispatch, conversation_id, s, f"m{i}") for i, s in enumerate(senders)
    ))
    assert sorted(r.sequence for r in results) == list(range(1, len(senders) + 1))


async def test_outsider_cannot_read_or_send(dispatch):
    conversation_id = await _conversation(dispatch)
    with pytest.raises(AuthorizationDeniedError) as exc:
        await _send(dispatch, conversation_id, "mallory", "hi")
    assert exc.value.reason == DenialReason.NOT_PARTICIPANT
    with pytest.raises(AuthorizationDeniedError):
        await run(dispatch, user("mallory"), kind="get_messages", conversation_id=conversation_id)


async def test_reply_to_missing_message(dispatch, repository):
    conversation_id = await _conversation(dispatch)
    await _send(dispatch, conversation_id, "alice", "hi")
    await repository.delete(EntityKind.MESSAGE, message_key(conversation_id, 1))
    with pytest.raises(InputValidationError):
        await _send(dispatch, conversation_id, "bob", "re", reply_to_sequence=1)


async def test_history_pages_backwards_in_ascending_pages(dispatch):
    conversation_id = await _conversation(dispatch)
    for i in range(5):
        await _send(dispatch, conversation_id, "alice", f"m{i + 1}")

    page = await run(dispatch, user("bob"), kind="get_messages", conversation_id=conversation_id, limit=2)
    assert [m.sequence for m in page.messages] == [4, 5]
    older = await run(
        dispatch, user("bob"), kind="get_messages", conversation_id=conversation_id,
        limit=2, before_sequence=page.next_cursor,
    )
    assert [m.sequence for m in older.messages] == [2, 3]


async def test_history_skips_gaps(dispatch, repository):
    conversation_id = await _conversation(dispatch)
    for i in range(3):
        await _send(dispatch, conversation_id, "alice", f"m{i + 1}")
    await repository.delete(EntityKind.MESSAGE, message_key(conversation_id, 2))
    page = await run(dispatch, user("bob"), kind="get_messages", conversation_id=conversation_id)
    assert [m.sequence for m in page.messages] == [1, 3]


async def test_unread_and_mark_read(dispatch):
    conversation_id = await _conversation(dispatch)
    await _send(dispatch, conversation_id, "alice", "one")
    await _send(dispatch, conversation_id, "alice", "two")
    status = await run(dispatch, user("bob"), kind="get_conversation", conversation_id=conversation_id)
    assert status.unread_count == 2
    read = await run(dispatch, user("bob"), kind="mark_conversation_read", conversation_id=conversation_id, up_to_sequence=1)
    assert read.unread_count == 1
    again = await run(dispatch, user("bob"), kind="mark_conversation_read", conversation_id=conversation_id, up_to_sequence=0)
    assert again.unread_count == 1
