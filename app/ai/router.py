import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from app.ai.assistant import AssistantMisconfigured
from app.ai.prompts import CHAT_SUGGESTIONS
from app.auth.permissions import UserContext, get_current_user
from app.core.dependencies import get_assistant
from app.core.errors import ValidationFailed

router = APIRouter(tags=["AI Assistant"])
logger = logging.getLogger(__name__)


class ChatTurn(BaseModel):
    role: str
    content: str


class ChatRequest(BaseModel):
    message: Optional[str] = None
    conversation_history: List[ChatTurn] = []


@router.post("/chat")
async def chat_with_ai(
    payload: ChatRequest,
    user: UserContext = Depends(get_current_user),
    assistant=Depends(get_assistant),
):
    try:
        if not payload.message or not payload.message.strip():
            raise ValidationFailed("Message is required")
        if assistant is None:
            raise AssistantMisconfigured("AI service configuration error")

        history = [turn.dict() for turn in payload.conversation_history]
        data = await assistant.reply(payload.message, history)
        return {"success": True, "message": "AI response generated", "data": data}
    except HTTPException:
        raise
    except Exception:
        logger.exception("AI chat failed for %s", user.user_id)
        raise HTTPException(status_code=500, detail="Something went wrong with the AI service")


@router.get("/suggestions")
async def chat_suggestions(user: UserContext = Depends(get_current_user)):
    return {"success": True, "message": "Suggestions fetched", "data": {"suggestions": CHAT_SUGGESTIONS}}
