"""
Study Planner
-------------
Splits a goal into ordered study sessions and writes the goal's roadmap.

- With topics: one session per topic, fed from the goal's matched notes
  (filtered by filename) or from a notes search for the topic.
- Without topics: the model groups the matched notes into topics; a single
  session titled after the goal is the fallback.
"""

import asyncio
import logging
import os
from pydantic import BaseModel, Field, ValidationError
from typing import Dict, List, Optional
from vault_chat.agents.base import AgentContext, resolve_in_vault
from vault_chat.agents.results import NotesFound
from vault_chat.config import SettingsSnapshot
from vault_chat.study.models import StudyGoal, StudySession
from vault_chat.study.repository import StudySessionRepository

logger = logging.getLogger(__name__)

MATCHED_NOTES_FALLBACK = 5


class TopicGroup(BaseModel):
    name: str
    note_indices: List[int] = Field(default_factory=list, alias="noteIndices")


class TopicDivision(BaseModel):
    topics: List[TopicGroup] = Field(default_factory=list)


def build_roadmap_prompt(goal: StudyGoal, notes: List[str]) -> str:
    lines = ["Generate a brief study roadmap (1-2 paragraphs) for the following goal:", f"Title: {goal.title}"]
    if goal.description:
        lines.append(f"Description: {goal.description}")
    if goal.topics:
        lines.append(f"Topics: {', '.join(goal.topics)}")
    lines.append(f"Number of relevant notes found: {len(notes)}")
    lines.append("")
    lines.append(
        "The roadmap should describe what the user will learn and how the study plan is organized. "
        "Keep it concise (1-2 paragraphs)."
    )
    return "\n".join(lines)


def fallback_roadmap(goal: StudyGoal, notes: List[str]) -> str:
    text = f'This study plan for "{goal.title}" '
    if goal.topics:
        text += f"covers {len(goal.topics)} topics: {', '.join(goal.topics)}. "
    text += f"You will study {len(notes)} relevant notes to achieve this goal."
    return text


def build_topic_division_prompt(goal: StudyGoal, notes: List[str]) -> str:
    names = [os.path.splitext(os.path.basename(path))[0] for path in notes]
    listing = "\n".join(f"{i + 1}. {name}" for i, name in enumerate(names))
    return (
        f'Given a study goal titled "{goal.title}" and the following list of notes:\n\n'
        f"{listing}\n\n"
        "Please divide these notes into logical topics/sessions (3-6 topics recommended).\n"
        "For each topic, provide:\n"
        "1. A short topic name (2-5 words)\n"
        "2. The note numbers that belong to that topic\n\n"
        "Format your response as JSON with this structure:\n"
        '{\n  "topics": [\n    {\n      "name": "Topic Name",\n      "noteIndices": [1, 2, 3]\n    }\n  ]\n}\n\n'
        "Note indices are 1-based (first note is 1, second is 2, etc.).\n"
        "Each note should appear in exactly one topic."
    )


def extract_json_block(response: str) -> str:
    if "```json" in response:
        return response.split("```json", 1)[1].split("```", 1)[0].strip()
    if "```" in response:
        return response.split("```", 1)[1].split("```", 1)[0].strip()
    return response.strip()


def notes_for_topic(topic: str, matched_notes: List[str]) -> List[str]:
    """Matched notes whose filename mentions the topic (or vice versa), else the first few."""
    lowered_topic = topic.lower()
    filtered = []
    for path in matched_notes:
        name = os.path.basename(path).lower()
        if lowered_topic in name or name in lowered_topic:
            filtered.append(path)
    return filtered or matched_notes[:MATCHED_NOTES_FALLBACK]


class StudyPlanner:
    def __init__(self, llm, search_note_agent, session_repository: StudySessionRepository):
        self.llm = llm
        self.search_note_agent = search_note_agent
        self.session_repository = session_repository

    async def plan_for_goal(self, goal: StudyGoal, settings: Optional[SettingsSnapshot] = None) -> List[StudySession]:
        """Creates and stores the sessions for a goal; returns them in order."""
        logger.info(f"[PLANNER] Planning goal '{goal.title}' ({len(goal.topics)} topics, {len(goal.matched_notes)} notes)")
        if not goal.vault_id:
            logger.warning(f"[PLANNER] Goal has no vault: {goal.id}")
            return []

        if goal.topics:
            sessions = await self._sessions_per_topic(goal, settings or SettingsSnapshot())
        elif goal.matched_notes:
            sessions = await self._sessions_from_note_groups(goal, settings or SettingsSnapshot())
        else:
            logger.warning(f"[PLANNER] No topics and no matched notes for goal '{goal.title}'")
            sessions = []

        for session in sessions:
            await asyncio.to_thread(self.session_repository.upsert_session, session)
        logger.info(f"[PLANNER] Created {len(sessions)} sessions for goal '{goal.title}'")
        return sessions

    async def _sessions_per_topic(self, goal: StudyGoal, settings: SettingsSnapshot) -> List[StudySession]:
        context = AgentContext(vault_path=goal.vault_id, settings=settings)
        sessions = []
        for index, topic in enumerate(goal.topics):
            if goal.matched_notes:
                note_paths = notes_for_topic(topic, goal.matched_notes)
            else:
                note_paths = await self._search_topic(topic, context)

            if not note_paths:
                logger.warning(f"[PLANNER] Skipping topic '{topic}': no notes found")
                continue
            sessions.append(self._session(goal, index + 1, topic, note_paths))
        return sessions

    async def _search_topic(self, topic: str, context: AgentContext) -> List[str]:
        try:
            result = await self.search_note_agent.execute(f"search my notes for {topic}", [], context)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.warning(f"[PLANNER] Note search failed for topic '{topic}': {e}")
            return []
        if not isinstance(result, NotesFound):
            return []
        return [resolve_in_vault(match.file_path, context.vault_path) for match in result.matches]

    async def _sessions_from_note_groups(self, goal: StudyGoal, settings: SettingsSnapshot) -> List[StudySession]:
        groups = await self.divide_notes_into_topics(goal, goal.matched_notes[: settings.study.max_notes])
        if not groups:
            logger.warning(f"[PLANNER] Topic split failed, creating a single session for '{goal.title}'")
            return [self._session(goal, 1, goal.title, list(goal.matched_notes))]
        return [
            self._session(goal, index + 1, topic, note_paths)
            for index, (topic, note_paths) in enumerate(groups.items())
        ]

    async def divide_notes_into_topics(self, goal: StudyGoal, notes: List[str]) -> Dict[str, List[str]]:
        """Topic name -> note paths, in the order the model listed them. Empty on any failure."""
        try:
            response = (await self.llm.complete(build_topic_division_prompt(goal, notes)) or "").strip()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"[PLANNER] Topic split request failed: {e}")
            return {}
        if not response:
            return {}

        try:
            division = TopicDivision.model_validate_json(extract_json_block(response))
        except ValidationError as e:
            logger.error(f"[PLANNER] Could not parse topic split: {e}")
            return {}

        groups: Dict[str, List[str]] = {}
        for group in division.topics:
            paths = [notes[i - 1] for i in group.note_indices if 1 <= i <= len(notes)]
            if group.name.strip() and paths:
                groups[group.name.strip()] = paths
        logger.info(f"[PLANNER] Model split {len(notes)} notes into {len(groups)} topics")
        return groups

    async def generate_roadmap(self, goal: StudyGoal, notes: List[str]) -> str:
        try:
            roadmap = (await self.llm.complete(build_roadmap_prompt(goal, notes)) or "").strip()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"[PLANNER] Roadmap generation failed: {e}")
            return fallback_roadmap(goal, notes)
        if not roadmap:
            logger.warning("[PLANNER] Model returned an empty roadmap, using fallback")
            return fallback_roadmap(goal, notes)
        return roadmap

    @staticmethod
    def _session(goal: StudyGoal, order: int, topic: str, note_paths: List[str]) -> StudySession:
        return StudySession(
            id=f"{goal.id}-session-{order}",
            goal_id=goal.id,
            topic=topic,
            note_paths=note_paths,
            order=order,
        )
