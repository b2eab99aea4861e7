"""Conversation Sequencer — message order, reply and read-marker rules.

Invariants:
    - Sequence numbers are assigned at accept time as last_sequence + 1;
      ordering never depends on wall-clock time
    - sent_at is non-decreasing along the sequence (clamped to last_sent_at)
    - A reply references a strictly earlier sequence in the same conversation
    - Read markers only move forward and never pass last_sequence
    - History pages walk backwards by sequence; each page is returned ascending

Design Decisions:
    - The conversation header is the serialization point: claiming a sequence
      is an optimistic write on the header, the message body is written after
    - A sequence whose message never got stored leaves a gap; readers skip it
"""

from dataclasses import dataclass, replace
from datetime import datetime

from agora.core.domain_types import (
    ConversationId,
    ConversationType,
    DenialReason,
    UserId,
)
from agora.core.entities import Conversation, Message
from agora.core.errors import AuthorizationDeniedError, InputValidationError

MAX_CONTENT_LENGTH: int = 4000
MAX_TITLE_LENGTH: int = 200
MAX_PARTICIPANTS: int = 100


@dataclass(frozen=True)
class HistoryWindow:
    """Sequences to fetch for one page, newest first, plus the next cursor."""
    sequences: list[int]
    next_cursor: int | None


def new_conversation(
    conversation_id: ConversationId,
    creator_id: UserId,
    participant_ids: list[str],
    conversation_type: ConversationType,
    now: datetime,
    title: str = "",
) -> Conversation:
    """The creator is always a participant. Direct means exactly two people."""
    members = list(dict.fromkeys([creator_id, *participant_ids]))
    if len(members) < 2:
        raise InputValidationError(
            "A conversation needs at least one other participant",
            field="participant_ids",
        )
    if conversation_type == ConversationType.DIRECT and len(members) != 2:
        raise InputValidationError(
            "A direct conversation has exactly two participants",
            field="participant_ids",
        )
    if len(members) > MAX_PARTICIPANTS:
        raise InputValidationError(
            f"A conversation allows at most {MAX_PARTICIPANTS} participants",
            field="participant_ids",
        )
    if len(title) > MAX_TITLE_LENGTH:
        raise InputValidationError("Title is too long", field="title")
    return Conversation(
        conversation_id=conversation_id,
        conversation_type=conversation_type,
        creator_id=creator_id,
        created_at=now,
        title=title.strip(),
        participants={member: 0 for member in members},
    )


def check_participant(conversation: Conversation, user_id: str) -> None:
    if user_id not in conversation.participants:
        raise AuthorizationDeniedError(DenialReason.NOT_PARTICIPANT)


def accept_message(
    conversation: Conversation,
    sender_id: UserId,
    content: str,
    now: datetime,
    reply_to_sequence: int | None = None,
) -> tuple[Conversation, Message]:
    """Claim the next sequence for sender_id's message. Pure.

    The sender's own read marker advances to the new message.
    """
    check_participant(conversation, sender_id)
    content = content.strip()
    if not content:
        raise InputValidationError("Message content cannot be empty", field="content")
    if len(content) > MAX_CONTENT_LENGTH:
        raise InputValidationError(
            f"Message exceeds {MAX_CONTENT_LENGTH} characters", field="content",
        )

    sequence = conversation.last_sequence + 1
    if reply_to_sequence is not None and not 1 <= reply_to_sequence < sequence:
        raise InputValidationError(
            "reply_to must reference an earlier message in this conversation",
            field="reply_to_sequence",
        )

    sent_at = now
    if conversation.last_sent_at is not None and conversation.last_sent_at > now:
        sent_at = conversation.last_sent_at

    participants = dict(conversation.participants)
    participants[sender_id] = sequence
    header = replace(
        conversation,
        last_sequence=sequence,
        last_sent_at=sent_at,
        participants=participants,
    )
    message = Message(
        conversation_id=conversation.conversation_id,
        sequence=sequence,
        sender_id=sender_id,
        content=content,
        sent_at=sent_at,
        reply_to_sequence=reply_to_sequence,
    )
    return header, message


def mark_read(conversation: Conversation, user_id: str, up_to: int | None) -> Conversation:
    """Advance user_id's read marker. Moving backwards is a no-op."""
    check_participant(conversation, user_id)
    target = conversation.last_sequence if up_to is None else min(up_to, conversation.last_sequence)
    if target <= conversation.participants[user_id]:
        return conversation
    participants = dict(conversation.participants)
    participants[user_id] = target
    return replace(conversation, participants=participants)


def unread_count(conversation: Conversation, user_id: str) -> int:
    check_participant(conversation, user_id)
    return conversation.last_sequence - conversation.participants[user_id]


def history_window(
    conversation: Conversation, before_sequence: int | None, limit: int,
) -> HistoryWindow:
    """Newest-first slice of sequence numbers strictly below before_sequence."""
    if limit < 1:
        raise InputValidationError("limit must be positive", field="limit")
    upper = conversation.last_sequence
    if before_sequence is not None:
        upper = min(upper, before_sequence - 1)
    lower = max(1, upper - limit + 1)
    sequences = list(range(upper, lower - 1, -1)) if upper >= 1 else []
    next_cursor = lower if sequences and lower > 1 else None
    return HistoryWindow(sequences=sequences, next_cursor=next_cursor)


def order_page(messages: list[Message]) -> list[Message]:
    """Ascending sequence order — the order every reader observes."""
    return sorted(messages, key=lambda m: m.sequence)
