from datetime import datetime
from enum import Enum
from pydantic import BaseModel, ConfigDict, Field
from typing import List, Optional
from vault_chat.chat.models import utcnow
from vault_chat.notes.flashcards import Flashcard


class GoalStatus(str, Enum):
    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"


class SessionStatus(str, Enum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"


class StudyGoal(BaseModel):
    """A learning goal scoped to one vault. `matched_notes` are full note paths."""
    model_config = ConfigDict(frozen=True)

    id: str
    vault_id: str
    title: str
    description: Optional[str] = None
    topics: List[str] = Field(default_factory=list)
    matched_notes: List[str] = Field(default_factory=list)
    roadmap: Optional[str] = None
    status: GoalStatus = GoalStatus.PENDING
    target_date: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class StudySession(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    goal_id: str
    topic: str
    note_paths: List[str] = Field(default_factory=list)
    status: SessionStatus = SessionStatus.PENDING
    order: int
    created_at: datetime = Field(default_factory=utcnow)
    completed_at: Optional[datetime] = None


class NoteSummary(BaseModel):
    model_config = ConfigDict(frozen=True)

    note_path: str
    summary: str
    generated_at: datetime = Field(default_factory=utcnow)


class SessionFlashcards(BaseModel):
    model_config = ConfigDict(frozen=True)

    session_id: str
    flashcards: List[Flashcard]
    generated_at: datetime = Field(default_factory=utcnow)
