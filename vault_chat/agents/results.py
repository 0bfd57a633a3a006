"""
Agent Results
-------------
Closed set of structured outcomes, one variant per agent action, tagged by
the `kind` literal. Agents return these values; turning them into markdown or
JSON is left to the chat formatter and the tool routes.
"""

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter
from typing import Annotated, List, Literal, Union
from vault_chat.notes.flashcards import Flashcard


class _Result(BaseModel):
    model_config = ConfigDict(frozen=True)


class NoteMatch(_Result):
    file_path: str
    title: str
    score: float
    snippet: str


class NoteCreated(_Result):
    kind: Literal["note_created"] = "note_created"
    path: str
    title: str
    preview: str


class NotesFound(_Result):
    kind: Literal["notes_found"] = "notes_found"
    query: str
    matches: List[NoteMatch]


class NoteSummarized(_Result):
    kind: Literal["note_summarized"] = "note_summarized"
    title: str
    summary: str
    source_files: List[str]


class FlashcardsGenerated(_Result):
    kind: Literal["flashcards_generated"] = "flashcards_generated"
    cards: List[Flashcard]
    note_path: str
    count: int


class StudyGoalCreated(_Result):
    kind: Literal["study_goal_created"] = "study_goal_created"
    goal_id: str
    title: str
    topics: List[str]
    matched_notes_count: int


class StudyGoalPlanned(_Result):
    kind: Literal["study_goal_planned"] = "study_goal_planned"
    goal_id: str
    sessions_created: int
    topics: List[str]


class RoadmapGenerated(_Result):
    kind: Literal["roadmap_generated"] = "roadmap_generated"
    goal_id: str
    roadmap: str


class SessionPrepared(_Result):
    kind: Literal["session_prepared"] = "session_prepared"
    session_id: str
    topic: str
    summaries_count: int
    flashcards_count: int


AgentResult = Annotated[
    Union[
        NoteCreated,
        NotesFound,
        NoteSummarized,
        FlashcardsGenerated,
        StudyGoalCreated,
        StudyGoalPlanned,
        RoadmapGenerated,
        SessionPrepared,
    ],
    Field(discriminator="kind"),
]

agent_result_adapter: TypeAdapter = TypeAdapter(AgentResult)
