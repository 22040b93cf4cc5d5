"""Chat and SMS assistant endpoints."""

from typing import Any, Dict, List, Optional

import openai
from fastapi import APIRouter, Depends, Form, HTTPException, Query
from fastapi.responses import Response
from pydantic import BaseModel, Field

from api.dependencies import get_chat_assistant, get_config, load_menu
from assistant.chat import ChatAssistant, parse_menu_data
from assistant.sms import FEATURES, SmsResponder
from core.config import StorefrontConfig
from core.errors import StorefrontError
from core.observability.logging import get_logger


router = APIRouter()
logger = get_logger(__name__)


class ChatRequest(BaseModel):
    message: Optional[str] = None
    menu_data: Optional[List[Dict[str, Any]]] = Field(default=None, alias="menuData")

    model_config = {"populate_by_name": True}


class ChatResponse(BaseModel):
    response: str
    timestamp: str
    cart_actions: List[Dict[str, Any]] = []


@router.post("/chat", response_model=ChatResponse)
async def chat(
    body: ChatRequest,
    location: Optional[str] = Query(None),
    config: StorefrontConfig = Depends(get_config),
    assistant: ChatAssistant = Depends(get_chat_assistant),
) -> ChatResponse:
    """Answer a customer message about the menu."""
    if not body.message:
        raise HTTPException(status_code=400, detail="Message is required")

    if body.menu_data is not None:
        menu = parse_menu_data(body.menu_data)
    else:
        try:
            menu = await load_menu(config, location)
        except StorefrontError as e:
            logger.error(f"Failed to fetch menu data: {e}")
            menu = []

    try:
        reply = await assistant.reply(body.message, menu)
    except openai.OpenAIError as e:
        logger.error(f"Chat API error: {e}", exc_info=True)
        raise HTTPException(
            status_code=500,
            detail={"error": "Failed to process chat message", "details": str(e)},
        )

    return ChatResponse(**reply.to_dict())


@router.post("/sms")
async def sms_webhook(
    sender: Optional[str] = Form(None, alias="From"),
    body: Optional[str] = Form(None, alias="Body"),
    config: StorefrontConfig = Depends(get_config),
) -> Response:
    """Inbound SMS webhook; always answers with TwiML."""
    responder = SmsResponder(lambda: load_menu(config))
    twiml = await responder.respond(sender, body)
    return Response(content=twiml, media_type="text/xml")


@router.get("/sms")
async def sms_status() -> Dict[str, Any]:
    """Webhook verification."""
    return {
        "message": "Cannabis Menu SMS Assistant is ready!",
        "features": FEATURES,
    }
