"""
Chat API Endpoint

Turns a free-text Indonesian purchase command into a priced order
confirmation (or a conversational explanation of why it could not).
"""
from fastapi import APIRouter, Depends
from pydantic import BaseModel
from typing import Dict, Any
import logging

from ..dependencies import ServiceContainer, get_container

logger = logging.getLogger(__name__)

router = APIRouter()


class ChatRequest(BaseModel):
    command: str


@router.post("/chat/process")
async def process_chat_endpoint(
    request: ChatRequest,
    container: ServiceContainer = Depends(get_container)
) -> Dict[str, Any]:
    """
    Process a chat command.

    Request Body:
        {"command": "Beli pulsa Telkomsel 50rb untuk 081234567890"}

    Returns:
        {"success": bool, "message": str, "productData"?: {...}}

    Resolution failures still return 200 with success=false; the message
    is meant to be shown to the user as-is.
    """
    command = request.command.strip()
    if not command:
        raise ValueError("Perintah tidak boleh kosong")

    logger.info(f"Chat command received: {command[:100]}")
    result = await container.chat.process(command)
    return result.to_dict()
