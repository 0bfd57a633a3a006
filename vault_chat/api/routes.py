import asyncio
import logging
import os
from fastapi import APIRouter, HTTPException
from pydantic import BaseModel
from typing import List, Optional
from vault_chat.api.dependencies import get_container
from vault_chat.chat.models import ChatReply, Conversation, HistoryTurn
from vault_chat.config import get_config
from vault_chat.errors import ChatError
from vault_chat.rag.indexer import IndexReport
from vault_chat.rag.service import RetrievalMode

logger = logging.getLogger(__name__)

router = APIRouter()


class ChatRequest(BaseModel):
    message: str
    conversation_id: Optional[str] = None
    vault_id: Optional[str] = None
    mode: RetrievalMode = RetrievalMode.NONE
    current_note_path: Optional[str] = None


class ConversationDetail(BaseModel):
    conversation: Conversation
    messages: List[HistoryTurn]


class IndexRequest(BaseModel):
    vault_path: Optional[str] = None
    rebuild: bool = False


def _resolve_vault(vault_id: Optional[str]) -> str:
    vault = vault_id or get_config().vault_path
    if not vault:
        raise HTTPException(status_code=400, detail="No vault given and no default vault configured (VAULT_PATH)")
    return os.path.abspath(os.path.expanduser(vault))


@router.post("/chat", response_model=ChatReply)
async def chat_endpoint(request: ChatRequest):
    """
    Classic chat endpoint (Non-Streaming).
    """
    vault = _resolve_vault(request.vault_id)
    try:
        return await get_container().chat_service.send_message(
            vault,
            request.conversation_id,
            request.message,
            request.mode,
            request.current_note_path,
        )
    except ChatError as e:
        raise HTTPException(status_code=502, detail=e.detail)
    except Exception as e:
        logger.exception(f"[API] Chat failed: {e}")
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/conversations", response_model=List[Conversation])
async def list_conversations(vault_id: Optional[str] = None):
    if vault_id:
        vault_id = os.path.abspath(os.path.expanduser(vault_id))
    return await asyncio.to_thread(get_container().conversations.list_conversations, vault_id)


@router.get("/conversations/{conversation_id}", response_model=ConversationDetail)
async def get_conversation(conversation_id: str):
    repository = get_container().conversations
    conversation = await asyncio.to_thread(repository.get_conversation, conversation_id)
    if conversation is None:
        raise HTTPException(status_code=404, detail="Conversation not found")
    messages = await asyncio.to_thread(repository.get_messages, conversation_id)
    return ConversationDetail(conversation=conversation, messages=messages)


@router.delete("/conversations/{conversation_id}")
async def delete_conversation(conversation_id: str):
    repository = get_container().conversations
    if await asyncio.to_thread(repository.get_conversation, conversation_id) is None:
        raise HTTPException(status_code=404, detail="Conversation not found")
    await asyncio.to_thread(repository.delete_conversation, conversation_id)
    return {"status": "deleted", "conversation_id": conversation_id}


@router.post("/index", response_model=IndexReport)
async def index_vault(request: IndexRequest):
    """(Re)indexes every markdown note of a vault into the vector store."""
    vault = _resolve_vault(request.vault_path)
    try:
        return await get_container().indexer.index_vault(vault, rebuild=request.rebuild)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
