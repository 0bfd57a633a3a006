"""
Agent Contract
--------------
Shared types for the agent layer: the closed intent set, the per-request
context, the `execute` contract every concrete agent implements, and the
small text helpers agents use to pull parameters out of free text.
"""

import os
import re
from abc import ABC, abstractmethod
from enum import Enum
from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import List, Optional, Sequence
from vault_chat.chat.models import HistoryTurn
from vault_chat.config import SettingsSnapshot


class IntentType(str, Enum):
    CREATE_NOTE = "CREATE_NOTE"
    SEARCH_NOTES = "SEARCH_NOTES"
    SUMMARIZE_NOTE = "SUMMARIZE_NOTE"
    GENERATE_FLASHCARDS = "GENERATE_FLASHCARDS"
    STUDY_GOAL = "STUDY_GOAL"
    NORMAL_CHAT = "NORMAL_CHAT"
    UNKNOWN = "UNKNOWN"

    @property
    def dispatches(self) -> bool:
        return self not in (IntentType.NORMAL_CHAT, IntentType.UNKNOWN)


class AgentContext(BaseModel):
    """Immutable per-request snapshot handed to the classifier and the agents."""
    model_config = ConfigDict(frozen=True)

    vault_path: Optional[str] = None
    current_note_path: Optional[str] = None
    settings: SettingsSnapshot = Field(default_factory=SettingsSnapshot)

    @field_validator("vault_path")
    @classmethod
    def absolute_vault_path(cls, v):
        return os.path.abspath(os.path.expanduser(v)) if v else v


class ChatAgent(ABC):
    """
    A concrete agent runs after classification has already picked it.
    It raises AgentPreconditionError / AgentExecutionError instead of
    returning an empty result.
    """

    name: str = "agent"

    @abstractmethod
    async def execute(self, message: str, history: List[HistoryTurn], context: AgentContext):
        ...


def extract_after_patterns(message: str, patterns: Sequence[str]) -> Optional[str]:
    """
    First pattern (in order) found anywhere in the message, case-insensitively,
    with a non-blank remainder wins; the trimmed remainder is returned.
    """
    text = message.strip()
    lowered = text.lower()
    for pattern in patterns:
        index = lowered.find(pattern)
        if index == -1:
            continue
        remainder = text[index + len(pattern):].strip()
        if remainder:
            return remainder
    return None


def extract_title(content: str, file_path: str) -> str:
    """First markdown heading, else the filename stem with dashes and underscores as spaces."""
    for line in content.splitlines():
        stripped = line.strip()
        if stripped.startswith("#"):
            heading = stripped.lstrip("#").strip()
            if heading:
                return heading
    stem = os.path.splitext(os.path.basename(file_path))[0]
    return stem.replace("-", " ").replace("_", " ")


def relative_to_vault(path: str, vault_path: Optional[str]) -> str:
    if vault_path and os.path.isabs(path):
        try:
            rel = os.path.relpath(path, vault_path)
        except ValueError:
            return path
        if not rel.startswith(".."):
            return rel.replace(os.sep, "/")
    return path


def resolve_in_vault(path: str, vault_path: Optional[str]) -> str:
    if os.path.isabs(path) or not vault_path:
        return path
    return os.path.join(vault_path, path)


def first_match(patterns: Sequence[re.Pattern], text: str) -> Optional[re.Match]:
    for pattern in patterns:
        match = pattern.search(text)
        if match:
            return match
    return None
