"""
Intent Classifier
-----------------
One model call labels a message with one of the fixed intents. Only the last
four history turns are sent along. The answer is trimmed, upper-cased and
matched exactly; anything else, including a failed call, is UNKNOWN.
"""

import asyncio
import logging
from typing import List
from vault_chat.agents.base import AgentContext, IntentType
from vault_chat.agents.constants import CLASSIFIER_HISTORY_TURNS
from vault_chat.chat.models import HistoryTurn
from vault_chat.errors import ClassificationError

logger = logging.getLogger(__name__)

CLASSIFIER_SYSTEM_PROMPT = (
    "You are an intent classifier for a markdown note-taking app.\n"
    "You must output exactly one of these labels:\n"
    "- CREATE_NOTE: user wants to create a new note or draft content for a new note.\n"
    "- SEARCH_NOTES: user wants to search, find, or list notes.\n"
    "- SUMMARIZE_NOTE: user wants a summary of the current note or of their notes on a topic.\n"
    "- GENERATE_FLASHCARDS: user wants flashcards or quiz cards from a note.\n"
    "- STUDY_GOAL: user wants to create, plan, get a roadmap for, or prepare a study goal or session.\n"
    "- NORMAL_CHAT: any other conversation, including questions and general chat.\n\n"
    "Respond with only the intent label, no explanation, no punctuation."
)

_LABELS = {intent.value: intent for intent in IntentType}


def parse_intent(raw: str) -> IntentType:
    token = (raw or "").strip().upper()
    return _LABELS.get(token, IntentType.UNKNOWN)


class IntentClassifier:
    def __init__(self, llm):
        self.llm = llm

    def build_prompt(self, message: str, history: List[HistoryTurn]) -> str:
        recent = history[-CLASSIFIER_HISTORY_TURNS:]
        history_text = "\n".join(f"{turn.author.value}: {turn.text}" for turn in recent)
        return f"Conversation so far:\n{history_text}\n\nUser message:\n{message}"

    async def _request_label(self, message: str, history: List[HistoryTurn]) -> str:
        try:
            return await self.llm.complete(self.build_prompt(message, history), system=CLASSIFIER_SYSTEM_PROMPT)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            raise ClassificationError(f"Intent model call failed: {e}") from e

    async def classify(self, message: str, history: List[HistoryTurn], context: AgentContext) -> IntentType:
        try:
            raw = await self._request_label(message, history)
        except ClassificationError as e:
            logger.error(f"[CLASSIFIER] {e.message}")
            return IntentType.UNKNOWN

        intent = parse_intent(raw)
        if intent == IntentType.UNKNOWN and (raw or "").strip().upper() != IntentType.UNKNOWN.value:
            logger.warning(f"[CLASSIFIER] Unrecognised intent token: '{(raw or '').strip()[:40]}'")
        logger.info(f"[CLASSIFIER] Intent: {intent.value}")
        return intent
