"""
Library assistant route.
"""

from datetime import datetime
from typing import Any, Dict

import structlog
from fastapi import APIRouter, Depends

from api.chatbot import DEFAULT_LANGUAGE, generate_response
from api.models import ChatbotResponse
from api.validation import CHATBOT_MESSAGE_RULES, validated_body

logger = structlog.get_logger(__name__)

router = APIRouter()


@router.post("/message", response_model=ChatbotResponse)
async def send_message(payload: Dict[str, Any] = Depends(validated_body(CHATBOT_MESSAGE_RULES))):
    language = payload.get("language") or DEFAULT_LANGUAGE
    if not isinstance(language, str):
        language = DEFAULT_LANGUAGE

    response = generate_response(payload["message"], language)
    logger.debug("Chatbot reply", language=language)
    return ChatbotResponse(response=response, timestamp=datetime.utcnow())
