"""
Study Goal Tests
----------------
Goal creation from chat, session planning, roadmap generation and session
preparation, backed by a temp SQLite database and a temp vault.
"""
import os
import sys
import pytest
from unittest.mock import AsyncMock, MagicMock

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from vault_chat.agents.base import AgentContext
from vault_chat.agents.search_note import SearchNoteAgent
from vault_chat.agents.study import StudyAgent, extract_description, extract_goal_title, extract_topics
from vault_chat.agents.summarize_note import SummarizeNoteAgent
from vault_chat.errors import AgentExecutionError, AgentPreconditionError
from vault_chat.notes.filesystem import NoteFileSystem
from vault_chat.notes.flashcards import FlashcardService
from vault_chat.study.models import StudyGoal
from vault_chat.study.planner import StudyPlanner, extract_json_block, fallback_roadmap, notes_for_topic
from vault_chat.study.repository import (
    StudyCacheRepository,
    StudyDatabase,
    StudyGoalRepository,
    StudySessionRepository,
)
from vault_chat.study.runner import StudyRunner


class FakeLLM:
    """Answers by prompt type so one instance can serve every collaborator."""

    def __init__(self):
        self.prompts = []

    async def complete(self, prompt, system=None):
        self.prompts.append(prompt)
        if "flashcards" in prompt:
            return '[{"question": "What owns a value?", "answer": "Its owner"}]'
        if "roadmap" in prompt:
            return "Start with ownership, then move to goroutines."
        return "A short summary."


@pytest.fixture
def vault(tmp_path):
    notes = tmp_path / "vault"
    notes.mkdir()
    (notes / "rust.md").write_text("# Rust\nAbout ownership and borrowing.\n")
    (notes / "go.md").write_text("# Go\nGoroutines are about concurrency.\n")
    return str(notes)


@pytest.fixture
def study(tmp_path):
    llm = FakeLLM()
    file_system = NoteFileSystem()
    database = StudyDatabase(str(tmp_path / "study.db"))
    goals = StudyGoalRepository(database)
    sessions = StudySessionRepository(database)
    cache = StudyCacheRepository(database)
    search = SearchNoteAgent(file_system)
    planner = StudyPlanner(llm, search, sessions)
    runner = StudyRunner(SummarizeNoteAgent(llm, file_system), FlashcardService(file_system, llm), goals, sessions, cache)
    agent = StudyAgent(search, planner, runner, goals, sessions, cache)
    return agent, goals, sessions, cache, llm


def test_goal_field_extraction():
    message = "create a study goal for Systems about rust, go description: learn it target date: 2026-12-01"
    assert extract_goal_title(message) == "Systems"
    assert extract_topics(message) == ["rust", "go"]
    assert extract_description(message) == "learn it"


def test_goal_title_fallback_strips_preposition():
    assert extract_goal_title("new goal about Distributed Systems") == "Distributed Systems"


def test_notes_for_topic_filters_by_filename():
    notes = ["/v/rust.md", "/v/go.md", "/v/c.md"]
    assert notes_for_topic("rust", notes) == ["/v/rust.md"]
    assert notes_for_topic("haskell", notes) == notes


def test_extract_json_block():
    assert extract_json_block('text ```json\n{"topics": []}\n``` more') == '{"topics": []}'
    assert extract_json_block('{"topics": []}') == '{"topics": []}'


@pytest.mark.asyncio
async def test_create_goal_matches_notes(study, vault):
    agent, goals, _, _, _ = study
    message = "create a study goal for Systems about rust, go description: learn it target date: 2026-12-01"

    result = await agent.execute(message, [], AgentContext(vault_path=vault))

    assert result.kind == "study_goal_created"
    assert result.title == "Systems"
    assert result.topics == ["rust", "go"]
    assert result.matched_notes_count == 2

    stored = goals.get_goal(result.goal_id)
    assert stored.vault_id == vault
    assert stored.description == "learn it"
    assert stored.target_date == "2026-12-01"
    assert stored.roadmap == "Start with ownership, then move to goroutines."
    assert sorted(stored.matched_notes) == sorted([os.path.join(vault, "go.md"), os.path.join(vault, "rust.md")])


@pytest.mark.asyncio
async def test_plan_goal_creates_session_per_topic(study, vault):
    agent, _, sessions, _, _ = study
    context = AgentContext(vault_path=vault)
    created = await agent.execute("create a study goal for Systems about rust, go", [], context)

    planned = await agent.execute(f"plan goal {created.goal_id}", [], context)

    assert planned.sessions_created == 2
    stored = sessions.sessions_for_goal(created.goal_id)
    assert [s.topic for s in stored] == ["rust", "go"]
    assert stored[0].id == f"{created.goal_id}-session-1"
    assert stored[0].note_paths == [os.path.join(vault, "rust.md")]


@pytest.mark.asyncio
async def test_plan_my_study_goal_uses_latest(study, vault):
    agent, _, _, _, _ = study
    context = AgentContext(vault_path=vault)
    created = await agent.execute("create a study goal for Systems about rust", [], context)

    planned = await agent.execute("plan my study goal", [], context)

    assert planned.goal_id == created.goal_id


@pytest.mark.asyncio
async def test_unknown_goal_raises(study, vault):
    agent, _, _, _, _ = study

    with pytest.raises(AgentExecutionError):
        await agent.execute("plan goal does-not-exist", [], AgentContext(vault_path=vault))


@pytest.mark.asyncio
async def test_goal_from_other_vault_is_rejected(study, vault, tmp_path):
    agent, _, _, _, _ = study
    created = await agent.execute("create a study goal for Systems about rust", [], AgentContext(vault_path=vault))

    with pytest.raises(AgentPreconditionError):
        await agent.execute(f"plan goal {created.goal_id}", [], AgentContext(vault_path=str(tmp_path)))


@pytest.mark.asyncio
async def test_generate_roadmap_updates_goal(study, vault):
    agent, goals, _, _, _ = study
    context = AgentContext(vault_path=vault)
    created = await agent.execute("create a study goal for Systems about rust", [], context)

    result = await agent.execute(f"generate a roadmap for goal {created.goal_id}", [], context)

    assert result.kind == "roadmap_generated"
    assert result.roadmap == "Start with ownership, then move to goroutines."
    assert goals.get_goal(created.goal_id).roadmap == result.roadmap


@pytest.mark.asyncio
async def test_prepare_session_caches_summaries_and_flashcards(study, vault):
    agent, _, _, cache, _ = study
    context = AgentContext(vault_path=vault)
    created = await agent.execute("create a study goal for Systems about rust, go", [], context)
    await agent.execute(f"plan goal {created.goal_id}", [], context)
    session_id = f"{created.goal_id}-session-1"

    result = await agent.execute(f"prepare session {session_id}", [], context)

    assert result.kind == "session_prepared"
    assert result.topic == "rust"
    assert result.summaries_count == 1
    assert result.flashcards_count == 1
    assert cache.get_note_summary(os.path.join(vault, "rust.md")).summary == "A short summary."


@pytest.mark.asyncio
async def test_prepare_reuses_cached_flashcards(study, vault):
    agent, _, _, _, llm = study
    context = AgentContext(vault_path=vault)
    created = await agent.execute("create a study goal for Systems about rust", [], context)
    await agent.execute(f"plan goal {created.goal_id}", [], context)
    session_id = f"{created.goal_id}-session-1"

    await agent.execute(f"prepare session {session_id}", [], context)
    calls = len(llm.prompts)
    await agent.execute(f"prepare session {session_id}", [], context)

    assert len(llm.prompts) == calls


@pytest.mark.asyncio
async def test_planner_splits_untopiced_goal_with_model(tmp_path):
    llm = MagicMock()
    llm.complete = AsyncMock(return_value='```json\n{"topics": [{"name": "Basics", "noteIndices": [2, 1]}, {"name": "Empty", "noteIndices": [9]}]}\n```')
    sessions = StudySessionRepository(StudyDatabase(str(tmp_path / "study.db")))
    planner = StudyPlanner(llm, MagicMock(), sessions)
    goal = StudyGoal(id="g1", vault_id="/v", title="Systems", matched_notes=["/v/a.md", "/v/b.md"])

    planned = await planner.plan_for_goal(goal)

    assert [(s.topic, s.note_paths) for s in planned] == [("Basics", ["/v/b.md", "/v/a.md"])]
    assert len(sessions.sessions_for_goal("g1")) == 1


@pytest.mark.asyncio
async def test_planner_falls_back_to_single_session(tmp_path):
    llm = MagicMock()
    llm.complete = AsyncMock(return_value="I cannot do that")
    planner = StudyPlanner(llm, MagicMock(), StudySessionRepository(StudyDatabase(str(tmp_path / "study.db"))))
    goal = StudyGoal(id="g1", vault_id="/v", title="Systems", matched_notes=["/v/a.md"])

    planned = await planner.plan_for_goal(goal)

    assert [(s.topic, s.note_paths) for s in planned] == [("Systems", ["/v/a.md"])]


@pytest.mark.asyncio
async def test_roadmap_falls_back_when_model_fails():
    llm = MagicMock()
    llm.complete = AsyncMock(side_effect=ConnectionError("down"))
    planner = StudyPlanner(llm, MagicMock(), MagicMock())
    goal = StudyGoal(id="g1", vault_id="/v", title="Systems", topics=["rust"])

    roadmap = await planner.generate_roadmap(goal, ["/v/a.md"])

    assert roadmap == fallback_roadmap(goal, ["/v/a.md"])
    assert "covers 1 topics: rust" in roadmap


@pytest.mark.asyncio
async def test_prepare_counts_only_cached_summaries(study, vault):
    agent, _, _, _, _ = study
    context = AgentContext(vault_path=vault)
    created = await agent.execute("create a study goal for Systems about rust", [], context)
    await agent.execute(f"plan goal {created.goal_id}", [], context)
    os.remove(os.path.join(vault, "rust.md"))

    result = await agent.execute(f"prepare session {created.goal_id}-session-1", [], context)

    assert result.summaries_count == 0
    assert result.flashcards_count == 0
