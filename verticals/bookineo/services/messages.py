"""Direct messaging service."""

import logging
from typing import Any

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from core.database import get_session
from core.errors import AuthorizationError, ResourceNotFoundError, ValidationError
from patterns.domain_config import BookineoConfig
from patterns.repository import Page
from verticals.bookineo.config import get_config
from verticals.bookineo.models.db_models import Message
from verticals.bookineo.models.schemas import MessageCreate
from verticals.bookineo.repository import MessageRepository, UserRepository
from verticals.bookineo.rules import check_message_content, check_not_self

logger = logging.getLogger(__name__)


class MessageService:
    """Send, read and manage direct messages between users."""

    def __init__(self, session: AsyncSession, config: BookineoConfig):
        self.session = session
        self.config = config
        self.messages = MessageRepository(session)
        self.users = UserRepository(session)

    async def send(self, sender_id: str, data: MessageCreate) -> Message:
        limits = self.config.messaging
        content = check_message_content(
            data.content,
            max_length=limits.max_length,
            max_repeated_chars=limits.max_repeated_chars,
            max_links=limits.max_links,
        )
        if not content.passed:
            raise ValidationError(content.message, field="content")

        if data.receiver_id:
            receiver = await self.users.get(data.receiver_id)
        else:
            receiver = await self.users.get_by_email(data.receiver_email)
        if receiver is None:
            raise ResourceNotFoundError("Receiver")

        not_self = check_not_self(sender_id, receiver.id)
        if not not_self.passed:
            raise ValidationError(not_self.message, field="receiverId")

        message = await self.messages.create(
            {
                "sender_id": sender_id,
                "receiver_id": receiver.id,
                "content": data.content.strip(),
                "is_read": False,
            }
        )
        logger.info("Message %s sent from %s to %s", message.id, sender_id, receiver.id)
        return await self.messages.reload(message)

    # -- Mailboxes --

    async def list_received(
        self, user_id: str, page: int = 1, limit: int = 20, unread_only: bool = False
    ) -> Page[Message]:
        return await self.messages.paginate(
            self.messages.received(user_id, unread_only), page=page, limit=limit
        )

    async def list_sent(self, user_id: str, page: int = 1, limit: int = 20) -> Page[Message]:
        return await self.messages.paginate(self.messages.sent(user_id), page=page, limit=limit)

    async def conversation(
        self, user_id: str, other_email: str, page: int = 1, limit: int = 50
    ) -> Page[Message]:
        other = await self.users.get_by_email(other_email)
        if other is None:
            raise ResourceNotFoundError("User")
        return await self.messages.paginate(
            self.messages.conversation(user_id, other.id), page=page, limit=limit
        )

    # -- Single message --

    async def get_message(self, message_id: str, user_id: str) -> Message:
        """Read one message; reading it as the receiver marks it read."""
        message = await self.messages.get(message_id)
        if message is None or user_id not in (message.sender_id, message.receiver_id):
            raise ResourceNotFoundError("Message", message_id)
        if message.receiver_id == user_id and not message.is_read:
            await self.messages.update(message, {"is_read": True})
        return message

    async def mark_read(self, message_id: str, user_id: str) -> Message:
        """Idempotent: marking an already-read message is a no-op."""
        message = await self.messages.get(message_id)
        if message is None:
            raise ResourceNotFoundError("Message", message_id)
        if message.receiver_id != user_id:
            raise AuthorizationError("Only the receiver can mark a message as read")
        if not message.is_read:
            await self.messages.update(message, {"is_read": True})
        return message

    async def mark_all_read(self, user_id: str) -> int:
        return await self.messages.mark_all_read(user_id)

    async def unread_count(self, user_id: str) -> int:
        return await self.messages.unread_count(user_id)

    async def delete(self, message_id: str, user_id: str) -> None:
        message = await self.messages.get(message_id)
        if message is None:
            raise ResourceNotFoundError("Message", message_id)
        if message.sender_id != user_id:
            raise AuthorizationError("Only the sender can delete a message")
        await self.messages.delete(message)

    async def stats(self, user_id: str) -> dict[str, Any]:
        received = await self.messages.count(Message.receiver_id == user_id)
        sent = await self.messages.count(Message.sender_id == user_id)
        unread = await self.messages.unread_count(user_id)
        return {
            "totalReceived": received,
            "totalSent": sent,
            "unreadCount": unread,
            "readCount": received - unread,
        }


# ---------------------------------------------------------------------------
# FastAPI dependency factory
# ---------------------------------------------------------------------------

def get_message_service(
    session: AsyncSession = Depends(get_session),
    config: BookineoConfig = Depends(get_config),
) -> MessageService:
    """FastAPI dependency for MessageService."""
    return MessageService(session, config)
