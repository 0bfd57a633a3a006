"""
Tool Routes
-----------
Each agent is exposed as one named operation. The route validates a small
parameter object, phrases it as the chat message the agent understands, runs
that agent directly (no classification) and returns the structured result.
"""

import logging
from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field, ValidationError
from typing import Any, Callable, Dict, List, Optional, Tuple, Type
from vault_chat.agents.base import AgentContext
from vault_chat.agents.results import agent_result_adapter
from vault_chat.api.dependencies import get_container
from vault_chat.config import get_config
from vault_chat.errors import AgentExecutionError, AgentPreconditionError

logger = logging.getLogger(__name__)

router = APIRouter()


class ToolParams(BaseModel):
    vault_path: Optional[str] = None


class CreateNoteParams(ToolParams):
    topic: str


class SearchNotesParams(ToolParams):
    query: str


class SummarizeNotesParams(ToolParams):
    topic: Optional[str] = None
    note_path: Optional[str] = None


class GenerateFlashcardsParams(ToolParams):
    note_path: str
    max_cards: int = Field(default=20, ge=1)


class CreateStudyGoalParams(ToolParams):
    title: str
    topics: List[str] = Field(default_factory=list)
    description: Optional[str] = None
    target_date: Optional[str] = None


class GoalParams(ToolParams):
    goal_id: str


class SessionParams(ToolParams):
    session_id: str


def _create_note(p: CreateNoteParams) -> Tuple[str, Optional[str]]:
    return f"create a note on {p.topic}", None


def _search_notes(p: SearchNotesParams) -> Tuple[str, Optional[str]]:
    return f"search my notes for {p.query}", None


def _summarize_notes(p: SummarizeNotesParams) -> Tuple[str, Optional[str]]:
    if p.note_path:
        return "summarize this note", p.note_path
    if not p.topic:
        raise HTTPException(status_code=422, detail="Either topic or note_path is required")
    return f"summarize my notes about {p.topic}", None


def _generate_flashcards(p: GenerateFlashcardsParams) -> Tuple[str, Optional[str]]:
    return f"generate flashcards, max {p.max_cards} cards", p.note_path


def _create_study_goal(p: CreateStudyGoalParams) -> Tuple[str, Optional[str]]:
    message = f"create a study goal for {p.title}"
    if p.topics:
        message += f" about {', '.join(p.topics)}"
    if p.description:
        message += f" description: {p.description}"
    if p.target_date:
        message += f" target date: {p.target_date}"
    return message, None


def _plan_study_goal(p: GoalParams) -> Tuple[str, Optional[str]]:
    return f"plan goal {p.goal_id}", None


def _generate_roadmap(p: GoalParams) -> Tuple[str, Optional[str]]:
    return f"generate a roadmap for goal {p.goal_id}", None


def _prepare_session(p: SessionParams) -> Tuple[str, Optional[str]]:
    return f"prepare session {p.session_id}", None


# name -> (params model, agent attribute on the container, message builder)
TOOLS: Dict[str, Tuple[Type[ToolParams], str, Callable]] = {
    "create_note": (CreateNoteParams, "create_note_agent", _create_note),
    "search_notes": (SearchNotesParams, "search_note_agent", _search_notes),
    "summarize_notes": (SummarizeNotesParams, "summarize_note_agent", _summarize_notes),
    "generate_flashcards": (GenerateFlashcardsParams, "flashcard_agent", _generate_flashcards),
    "create_study_goal": (CreateStudyGoalParams, "study_agent", _create_study_goal),
    "plan_study_goal": (GoalParams, "study_agent", _plan_study_goal),
    "generate_roadmap": (GoalParams, "study_agent", _generate_roadmap),
    "prepare_session": (SessionParams, "study_agent", _prepare_session),
}


@router.get("/tools")
async def list_tools():
    return {"tools": [{"name": name, "parameters": model.model_json_schema()} for name, (model, _, _) in TOOLS.items()]}


@router.post("/tools/{name}")
async def call_tool(name: str, body: Dict[str, Any]):
    if name not in TOOLS:
        raise HTTPException(status_code=404, detail=f"Unknown tool: {name}")
    params_model, agent_attr, build_message = TOOLS[name]

    try:
        params = params_model.model_validate(body)
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=e.errors(include_url=False, include_context=False))

    message, note_path = build_message(params)
    config = get_config()
    context = AgentContext(
        vault_path=params.vault_path or config.vault_path,
        current_note_path=note_path,
        settings=config.snapshot(),
    )
    agent = getattr(get_container(), agent_attr)
    logger.info(f"[TOOLS] {name} -> {agent.name}: '{message}'")

    try:
        result = await agent.execute(message, [], context)
    except AgentPreconditionError as e:
        raise HTTPException(status_code=400, detail=e.message)
    except AgentExecutionError as e:
        raise HTTPException(status_code=422, detail=e.message)
    except Exception as e:
        logger.error(f"[TOOLS] {name} failed: {e}")
        raise HTTPException(status_code=500, detail=str(e))

    return agent_result_adapter.dump_python(result, mode="json")
