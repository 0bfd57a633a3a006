"""
Flashcard Generation
--------------------
Asks the main model for question/answer pairs drawn from a single note and
parses the JSON array out of whatever the model wrapped around it.
"""

import json
import logging
import re
from pydantic import BaseModel, ConfigDict
from typing import List
from vault_chat.notes.filesystem import NoteFileSystem

logger = logging.getLogger(__name__)


class Flashcard(BaseModel):
    model_config = ConfigDict(frozen=True)

    question: str
    answer: str
    source_file: str


FLASHCARD_PROMPT = """You are an AI that creates high-quality flashcards for spaced repetition.

You are given the full content of a single markdown note.
Your task: generate at most {max_cards} flashcards that help a learner remember the key facts and concepts.

Rules:
- Use only information from the note.
- Focus on important concepts, definitions, and relationships.
- Each flashcard must have:
  - "question": a clear, concise prompt.
  - "answer": a clear, concise answer.
- Avoid overly broad or vague questions.
- Do not include explanations outside the "answer" field.
- Do not mention that you are an AI, the note file name, or any meta instructions.

Return the result as pure JSON in the following format:

[
  {{ "question": "...", "answer": "..." }},
  {{ "question": "...", "answer": "..." }}
]

Note content:

{content}"""


def clean_json_array(raw: str) -> str:
    """Repairs the usual small-model JSON slips: trailing commas and backtick quoting."""
    cleaned = re.sub(r",\s*}", "}", raw)
    cleaned = re.sub(r",\s*]", "]", cleaned)
    cleaned = re.sub(r":\s*`([^`]*)`", r': "\1"', cleaned)
    cleaned = re.sub(r"`([^`]*)`", r'"\1"', cleaned)
    return cleaned


def parse_flashcards(response: str, source_file: str) -> List[Flashcard]:
    text = response.strip()
    start = text.find("[")
    end = text.rfind("]")
    if start == -1 or end <= start:
        logger.warning("[FLASHCARDS] No JSON array found in response")
        return []

    raw = text[start:end + 1]
    try:
        items = json.loads(raw)
    except json.JSONDecodeError:
        try:
            items = json.loads(clean_json_array(raw))
        except json.JSONDecodeError as e:
            logger.error(f"[FLASHCARDS] Failed to parse flashcards: {e}")
            return []
    if not isinstance(items, list):
        return []

    cards = []
    for item in items:
        if not isinstance(item, dict):
            continue
        question = str(item.get("question") or "").strip()
        answer = str(item.get("answer") or "").strip()
        if not question or not answer:
            continue
        cards.append(Flashcard(question=question, answer=answer, source_file=source_file))
    return cards


class FlashcardService:
    def __init__(self, file_system: NoteFileSystem, llm):
        self.file_system = file_system
        self.llm = llm

    async def generate_from_note(self, note_path: str, max_cards: int) -> List[Flashcard]:
        """
        Returns at most `max_cards` flashcards; an empty list when the note is
        missing, empty, or the model produced nothing parseable. Completion
        errors propagate.
        """
        if not await self.file_system.is_file(note_path):
            logger.warning(f"[FLASHCARDS] Note path is not a file: {note_path}")
            return []

        content = await self.file_system.read_file(note_path)
        if not content or not content.strip():
            logger.warning(f"[FLASHCARDS] Note content is empty: {note_path}")
            return []

        logger.debug(f"[FLASHCARDS] Generating flashcards for {note_path}, max_cards={max_cards}")
        response = await self.llm.complete(FLASHCARD_PROMPT.format(max_cards=max_cards, content=content))
        cards = parse_flashcards(response, note_path)[:max_cards]
        logger.info(f"[FLASHCARDS] Generated {len(cards)} flashcards from {note_path}")
        return cards
