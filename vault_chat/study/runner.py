"""
Study Runner
------------
Prepares a session ahead of time: a cached summary for every note and one
cached flashcard deck for the whole session. Per-note failures are logged
and skipped so one bad note does not block the session.
"""

import asyncio
import logging
from typing import List, Optional
from vault_chat.agents.base import AgentContext, resolve_in_vault
from vault_chat.agents.results import NoteSummarized
from vault_chat.config import SettingsSnapshot
from vault_chat.errors import AgentExecutionError
from vault_chat.notes.flashcards import Flashcard, FlashcardService
from vault_chat.study.models import NoteSummary, SessionFlashcards, StudySession
from vault_chat.study.repository import StudyCacheRepository, StudyGoalRepository, StudySessionRepository

logger = logging.getLogger(__name__)


class StudyRunner:
    def __init__(
        self,
        summarize_note_agent,
        flashcard_service: FlashcardService,
        goal_repository: StudyGoalRepository,
        session_repository: StudySessionRepository,
        cache_repository: StudyCacheRepository,
    ):
        self.summarize_note_agent = summarize_note_agent
        self.flashcard_service = flashcard_service
        self.goal_repository = goal_repository
        self.session_repository = session_repository
        self.cache_repository = cache_repository

    async def prepare_session(self, session_id: str, settings: Optional[SettingsSnapshot] = None) -> StudySession:
        settings = settings or SettingsSnapshot()
        session = await asyncio.to_thread(self.session_repository.get_session, session_id)
        if session is None:
            raise AgentExecutionError(f"Session not found: {session_id}")
        goal = await asyncio.to_thread(self.goal_repository.get_goal, session.goal_id)
        if goal is None:
            raise AgentExecutionError(f"Goal not found: {session.goal_id}")

        logger.info(f"[RUNNER] Preparing session '{session.topic}' ({len(session.note_paths)} notes)")
        context = AgentContext(vault_path=goal.vault_id, settings=settings)
        note_paths = [resolve_in_vault(path, goal.vault_id) for path in session.note_paths]

        for note_path in note_paths:
            await self._ensure_summary(note_path, context)

        cached = await asyncio.to_thread(self.cache_repository.get_session_flashcards, session.id)
        if cached is None:
            cards = await self._generate_flashcards(note_paths, settings.study.max_flashcards_per_note)
            if cards:
                await asyncio.to_thread(
                    self.cache_repository.save_session_flashcards,
                    SessionFlashcards(session_id=session.id, flashcards=cards),
                )
                logger.info(f"[RUNNER] Cached {len(cards)} flashcards for session '{session.topic}'")
            else:
                logger.warning(f"[RUNNER] No flashcards generated for session '{session.topic}'")
        else:
            logger.debug(f"[RUNNER] Using cached flashcards for session '{session.topic}'")

        logger.info(f"[RUNNER] Session prepared: {session.topic}")
        return session

    async def _ensure_summary(self, note_path: str, context: AgentContext):
        if await asyncio.to_thread(self.cache_repository.get_note_summary, note_path) is not None:
            logger.debug(f"[RUNNER] Using cached summary for {note_path}")
            return
        try:
            result = await self.summarize_note_agent.execute(
                "summarize this note", [], context.model_copy(update={"current_note_path": note_path})
            )
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.warning(f"[RUNNER] Could not summarize {note_path}: {e}")
            return
        if isinstance(result, NoteSummarized):
            await asyncio.to_thread(
                self.cache_repository.save_note_summary,
                NoteSummary(note_path=note_path, summary=result.summary),
            )

    async def _generate_flashcards(self, note_paths: List[str], max_cards: int) -> List[Flashcard]:
        cards: List[Flashcard] = []
        for note_path in note_paths:
            try:
                cards.extend(await self.flashcard_service.generate_from_note(note_path, max_cards))
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.warning(f"[RUNNER] Could not generate flashcards for {note_path}: {e}")
        return cards
