"""
Study Agent
-----------
Study-goal operations driven from chat. The operation is picked by the first
pattern family that matches, in this order:

    create   -> "create a study goal for <title> about <topics> ..."
    plan     -> "plan goal <id>" / "plan my study goal"
    roadmap  -> "generate a roadmap for goal <id>"
    prepare  -> "prepare session <id>"
"""

import asyncio
import logging
import re
import uuid
from typing import List, Optional, Tuple
from vault_chat.agents.base import AgentContext, ChatAgent, first_match, resolve_in_vault
from vault_chat.agents.constants import (
    GOAL_DESCRIPTION_PATTERN,
    GOAL_FIELD_BOUNDARY,
    GOAL_TARGET_DATE_PATTERN,
    GOAL_TITLE_PATTERN,
    GOAL_TOPICS_ABOUT_PATTERN,
    GOAL_TOPICS_PATTERN,
    STUDY_CREATE_PATTERNS,
    STUDY_PLAN_PATTERNS,
    STUDY_PREPARE_PATTERNS,
    STUDY_ROADMAP_PATTERNS,
)
from vault_chat.agents.results import (
    NotesFound,
    RoadmapGenerated,
    SessionPrepared,
    StudyGoalCreated,
    StudyGoalPlanned,
)
from vault_chat.chat.models import HistoryTurn, utcnow
from vault_chat.errors import AgentExecutionError, AgentPreconditionError
from vault_chat.study.models import GoalStatus, StudyGoal, StudySession
from vault_chat.study.planner import StudyPlanner
from vault_chat.study.repository import StudyCacheRepository, StudyGoalRepository, StudySessionRepository
from vault_chat.study.runner import StudyRunner

logger = logging.getLogger(__name__)


def _cut_at_field(text: str) -> str:
    return GOAL_FIELD_BOUNDARY.split(text, maxsplit=1)[0].strip()


def extract_goal_title(message: str) -> Optional[str]:
    match = GOAL_TITLE_PATTERN.search(message)
    if match and match.group(1).strip():
        return match.group(1).strip()

    index = message.lower().find("goal")
    if index == -1:
        return None
    after = re.sub(r"^(?:for|about|on)\s+", "", message[index + len("goal"):].strip(), flags=re.IGNORECASE)
    return _cut_at_field(after) or None


def extract_description(message: str) -> Optional[str]:
    match = GOAL_DESCRIPTION_PATTERN.search(message)
    if not match:
        return None
    return _cut_at_field(match.group(1)) or None


def _split_topics(text: str) -> List[str]:
    return [topic.strip() for topic in _cut_at_field(text).split(",") if topic.strip()]


def extract_topics(message: str) -> List[str]:
    match = GOAL_TOPICS_ABOUT_PATTERN.search(message)
    if match:
        return _split_topics(match.group(1))
    match = GOAL_TOPICS_PATTERN.search(message)
    if match:
        return _split_topics(match.group(1))
    return []


def extract_target_date(message: str) -> Optional[str]:
    match = GOAL_TARGET_DATE_PATTERN.search(message)
    return match.group(1) if match else None


def _captured_id(match: Optional[re.Match]) -> Optional[str]:
    if match is None or match.re.groups < 1 or match.group(1) is None:
        return None
    return match.group(1).strip() or None


class StudyAgent(ChatAgent):
    name = "StudyAgent"

    def __init__(
        self,
        search_note_agent,
        planner: StudyPlanner,
        runner: StudyRunner,
        goal_repository: StudyGoalRepository,
        session_repository: StudySessionRepository,
        cache_repository: StudyCacheRepository,
    ):
        self.search_note_agent = search_note_agent
        self.planner = planner
        self.runner = runner
        self.goal_repository = goal_repository
        self.session_repository = session_repository
        self.cache_repository = cache_repository

    async def execute(self, message: str, history: List[HistoryTurn], context: AgentContext):
        vault_path = context.vault_path
        if not vault_path:
            raise AgentPreconditionError("No vault open. Please open a vault to manage study goals.")

        if first_match(STUDY_CREATE_PATTERNS, message):
            return await self.create_goal(message, context)
        if first_match(STUDY_PLAN_PATTERNS, message):
            return await self.plan_goal(message, context)
        if first_match(STUDY_ROADMAP_PATTERNS, message):
            return await self.generate_roadmap(message, context)
        if first_match(STUDY_PREPARE_PATTERNS, message):
            return await self.prepare_session(message, context)
        raise AgentExecutionError(f"Could not determine study operation from message: {message}")

    async def create_goal(self, message: str, context: AgentContext) -> StudyGoalCreated:
        title = extract_goal_title(message)
        if not title:
            raise AgentExecutionError("Could not extract goal title from message")
        topics = extract_topics(message)
        logger.info(f"[STUDY] Creating goal '{title}' with {len(topics)} topics")

        query = f"search my notes for {title} about {', '.join(topics)}" if topics else f"search my notes for {title}"
        matched_notes: List[str] = []
        try:
            result = await self.search_note_agent.execute(query, [], context)
            if isinstance(result, NotesFound):
                matched_notes = [resolve_in_vault(m.file_path, context.vault_path) for m in result.matches]
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.warning(f"[STUDY] Could not fetch notes for goal '{title}': {e}")

        goal = StudyGoal(
            id=str(uuid.uuid4()),
            vault_id=context.vault_path,
            title=title,
            description=extract_description(message),
            topics=topics,
            matched_notes=matched_notes,
            status=GoalStatus.PENDING,
            target_date=extract_target_date(message),
        )
        if matched_notes:
            try:
                goal = goal.model_copy(update={"roadmap": await self.planner.generate_roadmap(goal, matched_notes)})
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.warning(f"[STUDY] Could not generate roadmap for goal '{title}': {e}")

        await asyncio.to_thread(self.goal_repository.upsert, goal)
        logger.info(f"[STUDY] Created goal '{title}' ({goal.id}) with {len(matched_notes)} matched notes")
        return StudyGoalCreated(goal_id=goal.id, title=title, topics=topics, matched_notes_count=len(matched_notes))

    async def plan_goal(self, message: str, context: AgentContext) -> StudyGoalPlanned:
        goal = await self._load_goal(message, context)
        logger.info(f"[STUDY] Planning goal '{goal.title}'")
        await self.planner.plan_for_goal(goal, context.settings)
        sessions = await asyncio.to_thread(self.session_repository.sessions_for_goal, goal.id)
        return StudyGoalPlanned(goal_id=goal.id, sessions_created=len(sessions), topics=goal.topics)

    async def generate_roadmap(self, message: str, context: AgentContext) -> RoadmapGenerated:
        goal = await self._load_goal(message, context)
        logger.info(f"[STUDY] Generating roadmap for goal '{goal.title}'")
        roadmap = await self.planner.generate_roadmap(goal, goal.matched_notes)
        await asyncio.to_thread(
            self.goal_repository.upsert, goal.model_copy(update={"roadmap": roadmap, "updated_at": utcnow()})
        )
        return RoadmapGenerated(goal_id=goal.id, roadmap=roadmap)

    async def prepare_session(self, message: str, context: AgentContext) -> SessionPrepared:
        session_id = _captured_id(first_match(STUDY_PREPARE_PATTERNS, message))
        if not session_id:
            raise AgentExecutionError("Could not extract session ID from message")

        session = await asyncio.to_thread(self.session_repository.get_session, session_id)
        if session is None:
            raise AgentExecutionError(f"Session not found: {session_id}")
        goal = await asyncio.to_thread(self.goal_repository.get_goal, session.goal_id)
        if goal is None:
            raise AgentExecutionError(f"Goal not found: {session.goal_id}")
        if goal.vault_id != context.vault_path:
            raise AgentPreconditionError("Session belongs to a different vault")

        logger.info(f"[STUDY] Preparing session '{session.topic}'")
        await self.runner.prepare_session(session_id, context.settings)

        try:
            summaries_count, flashcards_count = await asyncio.to_thread(self._cached_counts, session)
        except Exception as e:
            logger.warning(f"[STUDY] Could not count cached study material: {e}")
            summaries_count, flashcards_count = 0, 0

        return SessionPrepared(
            session_id=session_id,
            topic=session.topic,
            summaries_count=summaries_count,
            flashcards_count=flashcards_count,
        )

    def _cached_counts(self, session: StudySession) -> Tuple[int, int]:
        """Summaries and flashcards actually cached for the session's notes."""
        summaries = sum(1 for path in session.note_paths if self.cache_repository.get_note_summary(path) is not None)
        cached = self.cache_repository.get_session_flashcards(session.id)
        return summaries, len(cached.flashcards) if cached else 0

    async def _load_goal(self, message: str, context: AgentContext) -> StudyGoal:
        goal_id = _captured_id(first_match(STUDY_PLAN_PATTERNS, message)) or _captured_id(
            first_match(STUDY_ROADMAP_PATTERNS, message)
        )
        if goal_id:
            goal = await asyncio.to_thread(self.goal_repository.get_goal, goal_id)
        elif re.search(r"plan\s+my\s+study\s+goal", message, re.IGNORECASE):
            goal = await asyncio.to_thread(self.goal_repository.latest_goal, context.vault_path)
            goal_id = goal.id if goal else "(latest)"
        else:
            raise AgentExecutionError("Could not extract goal ID from message")

        if goal is None:
            raise AgentExecutionError(f"Goal not found: {goal_id}")
        if goal.vault_id != context.vault_path:
            raise AgentPreconditionError("Goal belongs to a different vault")
        return goal
