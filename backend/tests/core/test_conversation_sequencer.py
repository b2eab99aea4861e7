"""Conversation Sequencer — sequence assignment, replies, read markers, paging."""

from dataclasses import replace
from datetime import timedelta

import pytest

from agora.core.domain_types import ConversationType
from agora.core.entities import Message
from agora.core.errors import AuthorizationDeniedError, InputValidationError
from agora.core.sequence_messages import (
    accept_message,
    history_window,
    mark_read,
    new_conversation,
    order_page,
    unread_count,
)
from tests.support import T0


def _direct():
    return new_conversation("c1", "alice", ["bob"], ConversationType.DIRECT, T0)


def test_creator_is_always_a_participant():
    conv = _direct()
    assert set(conv.participants) == {"alice", "bob"}


def test_direct_needs_exactly_two():
    with pytest.raises(InputValidationError):
        new_conversation("c1", "alice", ["bob", "carol"], ConversationType.DIRECT, T0)
    with pytest.raises(InputValidationError):
        new_conversation("c1", "alice", ["alice"], ConversationType.GROUP, T0)


def test_sequences_are_consecutive():
    conv = _direct()
    conv, first = accept_message(conv, "alice", "hi", T0)
    conv, second = accept_message(conv, "bob", "hey", T0)
    assert (first.sequence, second.sequence) == (1, 2)
    assert conv.last_sequence == 2


def test_sent_at_never_goes_backwards():
    conv, _ = accept_message(_direct(), "alice", "hi", T0)
    conv, late = accept_message(conv, "bob", "earlier clock", T0 - timedelta(seconds=5))
    assert late.sent_at == T0


def test_non_participant_cannot_send():
    with pytest.raises(AuthorizationDeniedError):
        accept_message(_direct(), "mallory", "hi", T0)


def test_reply_must_point_backwards():
    conv, _ = accept_message(_direct(), "alice", "hi", T0)
    with pytest.raises(InputValidationError):
        accept_message(conv, "bob", "re", T0, reply_to_sequence=2)
    _, reply = accept_message(conv, "bob", "re", T0, reply_to_sequence=1)
    assert reply.reply_to_sequence == 1


def test_sender_has_read_own_message():
    conv, _ = accept_message(_direct(), "alice", "hi", T0)
    assert unread_count(conv, "alice") == 0
    assert unread_count(conv, "bob") == 1


def test_read_marker_only_moves_forward():
    conv = _direct()
    for _ in range(3):
        conv, _ = accept_message(conv, "alice", "msg", T0)
    conv = mark_read(conv, "bob", None)
    assert unread_count(conv, "bob") == 0
    assert mark_read(conv, "bob", 1) is conv


def test_read_marker_is_capped_at_last_sequence():
    conv, _ = accept_message(_direct(), "alice", "hi", T0)
    assert mark_read(conv, "bob", 99).participants["bob"] == 1


def test_history_window_pages_backwards():
    conv = replace(_direct(), last_sequence=5)
    page = history_window(conv, None, 2)
    assert page.sequences == [5, 4]
    assert page.next_cursor == 4
    older = history_window(conv, page.next_cursor, 2)
    assert older.sequences == [3, 2]
    last = history_window(conv, older.next_cursor, 2)
    assert last.sequences == [1]
    assert last.next_cursor is None


def test_empty_conversation_has_no_history():
    page = history_window(_direct(), None, 10)
    assert page.sequences == []
    assert page.next_cursor is None


def test_order_page_is_ascending():
    msgs = [
        Message(conversation_id="c1", sequence=s, sender_id="alice", content="x", sent_at=T0)
        for s in (3, 1, 2)
    ]
    assert [m.sequence for m in order_page(msgs)] == [1, 2, 3]
