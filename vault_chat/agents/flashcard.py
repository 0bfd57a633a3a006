"""
Flashcard Agent
---------------
Finds the note the user means (a path named in the message, else the open
note) and turns it into question/answer cards.
"""

import logging
from typing import List, Optional
from vault_chat.agents.base import AgentContext, ChatAgent, resolve_in_vault
from vault_chat.agents.constants import DEFAULT_MAX_CARDS, MAX_CARDS_PATTERN, NOTE_PATH_PATTERNS
from vault_chat.agents.results import FlashcardsGenerated
from vault_chat.chat.models import HistoryTurn
from vault_chat.errors import AgentExecutionError, AgentPreconditionError
from vault_chat.notes.filesystem import NoteFileSystem
from vault_chat.notes.flashcards import FlashcardService

logger = logging.getLogger(__name__)


def extract_max_cards(message: str) -> int:
    match = MAX_CARDS_PATTERN.search(message)
    if match:
        value = int(match.group(1))
        if value > 0:
            return value
    return DEFAULT_MAX_CARDS


class FlashcardAgent(ChatAgent):
    name = "FlashcardAgent"

    def __init__(self, flashcard_service: FlashcardService, file_system: NoteFileSystem):
        self.flashcard_service = flashcard_service
        self.file_system = file_system

    async def execute(self, message: str, history: List[HistoryTurn], context: AgentContext) -> FlashcardsGenerated:
        note_path = await self.find_note_path(message, context)
        if note_path is None:
            raise AgentPreconditionError("No note specified. Please specify a note path or open a note.")
        if not await self.file_system.is_file(note_path):
            raise AgentPreconditionError(f"Note file not found: {note_path}")

        max_cards = extract_max_cards(message)
        logger.debug(f"[FLASHCARDS] Generating from {note_path}, max_cards={max_cards}")

        cards = await self.flashcard_service.generate_from_note(note_path, max_cards)
        if not cards:
            raise AgentExecutionError(
                "No flashcards were generated from the note. "
                "The note may be too short or not contain suitable content."
            )

        logger.info(f"[FLASHCARDS] Generated {len(cards)} flashcards from {note_path}")
        return FlashcardsGenerated(cards=cards, note_path=note_path, count=len(cards))

    async def find_note_path(self, message: str, context: AgentContext) -> Optional[str]:
        """First path named in the message that exists on disk, else the open note."""
        for pattern in NOTE_PATH_PATTERNS:
            for match in pattern.finditer(message):
                candidate = match.group(1).strip().rstrip(".,;:!?")
                if not candidate:
                    continue
                paths = [candidate]
                if not candidate.lower().endswith(".md"):
                    paths.append(f"{candidate}.md")
                for path in paths:
                    resolved = resolve_in_vault(path, context.vault_path)
                    if await self.file_system.is_file(resolved):
                        logger.debug(f"[FLASHCARDS] Note path from message: {resolved}")
                        return resolved

        if context.current_note_path:
            logger.debug(f"[FLASHCARDS] Using current note: {context.current_note_path}")
            return resolve_in_vault(context.current_note_path, context.vault_path)
        return None
