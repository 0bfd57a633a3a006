"""
Master Agent
------------
Single entry point of the agent layer. One pass per message:
classify once, then either stop (NORMAL_CHAT / UNKNOWN) or run exactly the one
agent mapped to the intent. A failing classifier or agent is logged and
reported as "nothing handled it" (None); it never raises.
"""

import asyncio
import logging
from typing import Dict, List, Optional
from vault_chat.agents.base import AgentContext, ChatAgent, IntentType
from vault_chat.agents.classifier import IntentClassifier
from vault_chat.agents.results import AgentResult
from vault_chat.chat.models import HistoryTurn

logger = logging.getLogger(__name__)


class MasterAgent:
    def __init__(
        self,
        classifier: IntentClassifier,
        create_note_agent: ChatAgent,
        search_note_agent: ChatAgent,
        summarize_note_agent: ChatAgent,
        flashcard_agent: ChatAgent,
        study_agent: ChatAgent,
    ):
        self.classifier = classifier
        self.agents: Dict[IntentType, ChatAgent] = {
            IntentType.CREATE_NOTE: create_note_agent,
            IntentType.SEARCH_NOTES: search_note_agent,
            IntentType.SUMMARIZE_NOTE: summarize_note_agent,
            IntentType.GENERATE_FLASHCARDS: flashcard_agent,
            IntentType.STUDY_GOAL: study_agent,
        }

    async def try_handle(self, message: str, history: List[HistoryTurn], context: AgentContext) -> Optional[AgentResult]:
        try:
            intent = await self.classifier.classify(message, history, context)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"[MASTER] Classification failed, falling back to chat: {e}")
            return None

        agent = self.agents.get(intent) if intent.dispatches else None
        if agent is None:
            logger.info(f"[MASTER] Intent {intent.value}: no agent, falling back to chat")
            return None

        logger.info(f"[MASTER] Intent {intent.value}: dispatching to {agent.name}")
        try:
            result = await agent.execute(message, history, context)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.warning(f"[MASTER] {agent.name} could not handle the message: {e}")
            return None

        logger.info(f"[MASTER] {agent.name} returned {result.kind}")
        return result
