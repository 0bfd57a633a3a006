"""
Chat Service
------------
Entry point for one user message:

1. Resolve the conversation id (a new one is only written with its first
   reply) and load its memory window.
2. Run the chat graph: agents first, retrieval + completion as fallback.
3. Render the reply and persist the user/assistant pair.

Messages are written only once the reply exists, so a cancelled or failed
request leaves no conversation state behind. The only error surfaced to the
caller is ChatError.
"""

import asyncio
import logging
import os
import uuid
from typing import Optional, Tuple
from vault_chat.agents.base import AgentContext
from vault_chat.agents.master import MasterAgent
from vault_chat.chat.formatter import AGENT_NAMES, format_agent_result
from vault_chat.chat.models import ChatReply, HistoryTurn, MessageAuthor, title_from_message
from vault_chat.chat.prompt import PromptBuilder
from vault_chat.config import SettingsSnapshot, get_config
from vault_chat.errors import ChatError, CompletionError, RetrievalError
from vault_chat.graph.workflow import build_graph
from vault_chat.rag.service import RetrievalMode, RetrievalService
from vault_chat.state.history import ConversationRepository
from vault_chat.state.memory import ConversationMemoryProvider

logger = logging.getLogger(__name__)


class ChatService:
    def __init__(
        self,
        master_agent: MasterAgent,
        retrieval_service: RetrievalService,
        llm,
        repository: ConversationRepository,
        memory: ConversationMemoryProvider,
        prompt_builder: Optional[PromptBuilder] = None,
        settings: Optional[SettingsSnapshot] = None,
    ):
        self.llm = llm
        self.repository = repository
        self.memory = memory
        self.settings = settings
        self.graph = build_graph(master_agent, retrieval_service, prompt_builder or PromptBuilder(), llm)

    async def send_message(
        self,
        vault_id: str,
        conversation_id: Optional[str],
        user_message: str,
        retrieval_mode: RetrievalMode = RetrievalMode.NONE,
        current_note_path: Optional[str] = None,
    ) -> ChatReply:
        settings = self.settings or get_config().snapshot()
        vault_id = os.path.abspath(os.path.expanduser(vault_id))
        conversation_id, is_new = await self._resolve_conversation(conversation_id)
        history = await self.memory.build_context_messages(conversation_id, settings.memory)

        context = AgentContext(vault_path=vault_id, current_note_path=current_note_path, settings=settings)
        logger.info(f"[CHAT] Conversation {conversation_id}: mode={RetrievalMode(retrieval_mode).value}, history={len(history)}")

        try:
            state = await self.graph.ainvoke({
                "message": user_message,
                "history": history,
                "context": context,
                "mode": RetrievalMode(retrieval_mode).value,
            })
        except CompletionError as e:
            logger.error(f"[CHAT] Completion failed ({e.provider}/{e.model}): {e.message}")
            raise ChatError(f"Failed to generate response: {e.message}", provider=e.provider, model=e.model) from e
        except RetrievalError as e:
            logger.error(f"[CHAT] Retrieval failed: {e.message}")
            raise ChatError(
                f"Failed to retrieve context: {e.message}", provider=settings.provider, model=settings.main_model_name
            ) from e

        agent_result = state.get("agent_result")
        if agent_result is not None:
            reply_text = format_agent_result(agent_result)
            agent = AGENT_NAMES.get(agent_result.kind)
        else:
            reply_text = (state.get("answer") or "").strip()
            agent = None
            if not reply_text:
                raise ChatError(
                    "LLM returned an empty response", provider=settings.provider, model=settings.main_model_name
                )

        await asyncio.to_thread(
            self.repository.append_messages,
            conversation_id,
            [
                HistoryTurn(author=MessageAuthor.USER, text=user_message),
                HistoryTurn(author=MessageAuthor.ASSISTANT, text=reply_text),
            ],
            vault_id=vault_id if is_new else None,
            title=title_from_message(user_message),
        )
        logger.info(f"[CHAT] Replied in {conversation_id} ({agent or 'chat'}, {len(reply_text)} chars)")
        return ChatReply(conversation_id=conversation_id, assistant_message=reply_text, agent=agent)

    async def _resolve_conversation(self, conversation_id: Optional[str]) -> Tuple[str, bool]:
        """Existing conversation id, or a fresh one whose row is written with the first reply."""
        if conversation_id:
            existing = await asyncio.to_thread(self.repository.get_conversation, conversation_id)
            if existing is not None:
                return existing.id, False
        return conversation_id or uuid.uuid4().hex, True
