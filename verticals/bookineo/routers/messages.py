"""Direct message routes."""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from verticals.bookineo.auth import AuthContext, get_current_user
from verticals.bookineo.models.schemas import MessageCreate
from verticals.bookineo.routers.common import ok
from verticals.bookineo.services.messages import MessageService, get_message_service
from verticals.bookineo.throttling import rate_limit

router = APIRouter(prefix="/messages", tags=["Messages"])

read_limit = [Depends(rate_limit("light"))]
write_limit = [Depends(rate_limit("moderate"))]


@router.get("", dependencies=read_limit)
async def list_messages(
    box: str = Query("received", alias="type", pattern="^(received|sent)$"),
    unread_only: bool = Query(False, alias="unreadOnly"),
    conversation_with: Optional[str] = Query(None, alias="conversationWith"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    user: AuthContext = Depends(get_current_user),
    service: MessageService = Depends(get_message_service),
):
    """Inbox (default), sent box, or the thread with one other user."""
    if conversation_with:
        result = await service.conversation(user.user_id, conversation_with, page, limit)
    elif box == "sent":
        result = await service.list_sent(user.user_id, page, limit)
    else:
        result = await service.list_received(user.user_id, page, limit, unread_only)
    return ok(result.to_dict())


@router.post("", status_code=201, dependencies=[Depends(rate_limit("messaging"))])
async def send_message(
    request: MessageCreate,
    user: AuthContext = Depends(get_current_user),
    service: MessageService = Depends(get_message_service),
):
    message = await service.send(user.user_id, request)
    return ok(message.to_dict(), "Message sent")


@router.get("/unread-count", dependencies=read_limit)
async def unread_count(
    user: AuthContext = Depends(get_current_user),
    service: MessageService = Depends(get_message_service),
):
    return ok({"count": await service.unread_count(user.user_id)})


@router.get("/stats", dependencies=read_limit)
async def message_stats(
    user: AuthContext = Depends(get_current_user),
    service: MessageService = Depends(get_message_service),
):
    return ok(await service.stats(user.user_id))


@router.put("/read-all", dependencies=write_limit)
async def mark_all_read(
    user: AuthContext = Depends(get_current_user),
    service: MessageService = Depends(get_message_service),
):
    updated = await service.mark_all_read(user.user_id)
    return ok({"count": updated}, f"{updated} message(s) marked as read")


@router.get("/{message_id}", dependencies=read_limit)
async def get_message(
    message_id: str,
    user: AuthContext = Depends(get_current_user),
    service: MessageService = Depends(get_message_service),
):
    message = await service.get_message(message_id, user.user_id)
    return ok(message.to_dict())


@router.put("/{message_id}/read", dependencies=write_limit)
async def mark_read(
    message_id: str,
    user: AuthContext = Depends(get_current_user),
    service: MessageService = Depends(get_message_service),
):
    message = await service.mark_read(message_id, user.user_id)
    return ok(message.to_dict())


@router.delete("/{message_id}", dependencies=write_limit)
async def delete_message(
    message_id: str,
    user: AuthContext = Depends(get_current_user),
    service: MessageService = Depends(get_message_service),
):
    await service.delete(message_id, user.user_id)
    return ok(message="Message deleted")
