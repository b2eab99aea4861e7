"""Conversation Handlers — create, send, page history, read markers (5 methods).

Invariants:
    - Sending claims a sequence by a versioned write on the conversation header
      under its key lock; two concurrent senders never share a sequence
    - The message body is written after the header commits. A body write that
      fails leaves a gap the history reader skips
    - Only participants see or touch a conversation
"""

import logging

from agora.core.domain_types import ConversationId, EntityKind, NotificationEvent
from agora.core.entities import Conversation, Message, Principal, message_key
from agora.core.errors import InputValidationError
from agora.core.sequence_messages import (
    accept_message,
    check_participant,
    history_window,
    mark_read,
    new_conversation,
    order_page,
    unread_count,
)
from agora.schemas.requests import (
    CreateConversation,
    GetConversation,
    GetMessages,
    MarkConversationRead,
    SendMessage,
)
from agora.schemas.results import ConversationResult, MessagePage, MessageResult
from agora.services.handler_context import HandlerContext, lock_key

logger = logging.getLogger(__name__)


def _result(conversation: Conversation, user_id: str) -> ConversationResult:
    return ConversationResult(
        conversation_id=conversation.conversation_id,
        conversation_type=conversation.conversation_type,
        title=conversation.title,
        participant_ids=list(conversation.participants),
        last_sequence=conversation.last_sequence,
        unread_count=unread_count(conversation, user_id),
    )


class ConversationHandlers:
    """Conversation Sequencer shell."""

    def __init__(self, ctx: HandlerContext):
        self.ctx = ctx

    async def create_conversation(
        self, request: CreateConversation, principal: Principal,
    ) -> ConversationResult:
        await self.ctx.require_good_standing(principal.user_id)
        conversation = new_conversation(
            ConversationId(self.ctx.id_factory()),
            principal.user_id,
            request.participant_ids,
            request.conversation_type,
            self.ctx.clock(),
            title=request.title,
        )
        saved = await self.ctx.repository.save(conversation)
        logger.info(
            f"Conversation {saved.conversation_id} created with {len(saved.participants)} participants",
            extra={"user_id": principal.user_id, "entity_id": saved.conversation_id},
        )
        return _result(saved, principal.user_id)

    async def send_message(self, request: SendMessage, principal: Principal) -> MessageResult:
        await self.ctx.require_good_standing(principal.user_id)
        conversation_id = request.conversation_id

        async def attempt() -> tuple[Conversation, Message]:
            conversation = await self._load(conversation_id)
            header, message = accept_message(
                conversation, principal.user_id, request.content,
                self.ctx.clock(), reply_to_sequence=request.reply_to_sequence,
            )
            return await self.ctx.repository.save(header), message

        async with self.ctx.locks.hold(lock_key(EntityKind.CONVERSATION, conversation_id)):
            if request.reply_to_sequence is not None:
                check_participant(await self._load(conversation_id), principal.user_id)
                await self._check_reply_target(conversation_id, request.reply_to_sequence)
            header, message = await self.ctx.retry_on_conflict(attempt, "send_message")
            message = await self.ctx.repository.save(message)

        logger.info(
            f"Message {message.entity_id} accepted",
            extra={"user_id": principal.user_id, "entity_id": message.entity_id},
        )
        for participant in header.participants:
            if participant != principal.user_id:
                await self.ctx.notify(participant, NotificationEvent.MESSAGE_RECEIVED, {
                    "conversation_id": conversation_id,
                    "sequence": message.sequence,
                    "sender_id": principal.user_id,
                })
        return MessageResult.from_entity(message)

    async def get_messages(self, request: GetMessages, principal: Principal) -> MessagePage:
        conversation = await self._load(request.conversation_id)
        check_participant(conversation, principal.user_id)
        limit = min(request.limit, self.ctx.policy.messages_page_size_max)
        window = history_window(conversation, request.before_sequence, limit)

        messages = []
        for sequence in window.sequences:
            message = await self.ctx.find(
                EntityKind.MESSAGE, message_key(request.conversation_id, sequence),
            )
            if message is not None:
                messages.append(message)

        return MessagePage(
            conversation_id=request.conversation_id,
            messages=[MessageResult.from_entity(m) for m in order_page(messages)],
            next_cursor=window.next_cursor,
        )

    async def mark_conversation_read(
        self, request: MarkConversationRead, principal: Principal,
    ) -> ConversationResult:
        async def attempt() -> Conversation:
            conversation = await self._load(request.conversation_id)
            updated = mark_read(conversation, principal.user_id, request.up_to_sequence)
            if updated is conversation:
                return conversation
            return await self.ctx.repository.save(updated)

        async with self.ctx.locks.hold(lock_key(EntityKind.CONVERSATION, request.conversation_id)):
            saved = await self.ctx.retry_on_conflict(attempt, "mark_conversation_read")
        return _result(saved, principal.user_id)

    async def get_conversation(
        self, request: GetConversation, principal: Principal,
    ) -> ConversationResult:
        conversation = await self._load(request.conversation_id)
        check_participant(conversation, principal.user_id)
        return _result(conversation, principal.user_id)

    async def _load(self, conversation_id: str) -> Conversation:
        return await self.ctx.repository.get(EntityKind.CONVERSATION, conversation_id)

    async def _check_reply_target(self, conversation_id: str, sequence: int) -> None:
        replied = await self.ctx.find(EntityKind.MESSAGE, message_key(conversation_id, sequence))
        if replied is None:
            raise InputValidationError(
                f"Message {sequence} does not exist in this conversation",
                field="reply_to_sequence",
            )
