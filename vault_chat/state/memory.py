"""
Conversation Memory
-------------------
Builds the bounded window of prior turns that accompanies each new message.
Turns are taken newest-first while both the message-count and character
budgets hold; the first turn that would break either budget stops the walk.
A turn is included whole or not at all.
"""

import asyncio
import logging
from typing import List, Optional, Sequence
from vault_chat.chat.models import HistoryTurn
from vault_chat.config import MemoryPolicy
from vault_chat.state.history import ConversationRepository

logger = logging.getLogger(__name__)


def select_window(turns: Sequence[HistoryTurn], policy: MemoryPolicy) -> List[HistoryTurn]:
    """`turns` in chronological order; returns the window in chronological order."""
    window = []
    total_chars = 0
    for turn in reversed(turns):
        if len(window) + 1 > policy.max_messages:
            break
        if total_chars + len(turn.text) > policy.max_chars:
            break
        window.append(turn)
        total_chars += len(turn.text)
    window.reverse()
    return window


class ConversationMemoryProvider:
    def __init__(self, repository: ConversationRepository, policy: MemoryPolicy):
        self.repository = repository
        self.policy = policy

    async def build_context_messages(self, conversation_id: str, policy: Optional[MemoryPolicy] = None) -> List[HistoryTurn]:
        policy = policy or self.policy
        turns = await asyncio.to_thread(self.repository.get_messages, conversation_id)
        window = select_window(turns, policy)
        logger.debug(
            f"[MEMORY] Conversation {conversation_id}: {len(window)}/{len(turns)} turns "
            f"(policy {policy.max_messages} msgs / {policy.max_chars} chars)"
        )
        return window
