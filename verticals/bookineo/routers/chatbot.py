"""Chat assistant route."""

from fastapi import APIRouter, Depends

from core.errors import AppError
from patterns.domain_config import BookineoConfig
from verticals.bookineo.auth import AuthContext, get_current_user
from verticals.bookineo.config import get_config
from verticals.bookineo.models.schemas import ChatRequest
from verticals.bookineo.routers.common import ok
from verticals.bookineo.services.chatbot import ChatbotService, get_chatbot_service
from verticals.bookineo.throttling import rate_limit

router = APIRouter(prefix="/chatbot", tags=["Chatbot"])


@router.post("", dependencies=[Depends(rate_limit("moderate"))])
async def chat(
    request: ChatRequest,
    user: AuthContext = Depends(get_current_user),
    config: BookineoConfig = Depends(get_config),
    service: ChatbotService = Depends(get_chatbot_service),
):
    """Answer from data when possible, otherwise hand off to the local model.

    Model failures never surface here; the rule-based reply is returned instead.
    """
    message = request.message.strip()
    if not message:
        raise AppError.bad_request("Message is required", {"message": "Message is required"})
    limit = config.chatbot.max_message_length
    if len(message) > limit:
        raise AppError.bad_request(
            f"Message cannot exceed {limit} characters",
            {"message": f"Message cannot exceed {limit} characters"},
        )

    reply = await service.respond(message, request.context or "general", user)
    return ok(reply)
