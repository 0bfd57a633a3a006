"""
Graph State Definition
----------------------
Shared state passed between the chat graph nodes for one user message.
"""

from typing import List, Optional, TypedDict
from vault_chat.agents.base import AgentContext
from vault_chat.chat.models import HistoryTurn
from vault_chat.rag.models import RetrievalContext


class ChatState(TypedDict, total=False):
    """
    Attributes:
        message: The new user message.
        history: Bounded window of prior turns, chronological.
        context: Per-request agent context (vault, open note, settings snapshot).
        mode: Retrieval mode for the normal-chat path.
        agent_result: Structured result when an agent handled the message.
        retrieval: Context fetched for the normal-chat path.
        answer: Completion text for the normal-chat path.
    """
    message: str
    history: List[HistoryTurn]
    context: AgentContext
    mode: str
    agent_result: Optional[object]
    retrieval: Optional[RetrievalContext]
    answer: Optional[str]
