"""
Create Note Agent
-----------------
Drafts a short markdown note on the requested topic and writes it into the
vault under a slug of the topic, never overwriting an existing file.
"""

import logging
import os
import re
from typing import List
from vault_chat.agents.base import AgentContext, ChatAgent, extract_after_patterns
from vault_chat.agents.constants import (
    CREATE_TOPIC_PATTERNS,
    MAX_COLLISION_ATTEMPTS,
    MAX_FILENAME_LENGTH,
    PREVIEW_LENGTH,
)
from vault_chat.agents.results import NoteCreated
from vault_chat.chat.models import HistoryTurn
from vault_chat.errors import AgentExecutionError, AgentPreconditionError
from vault_chat.notes.filesystem import NoteFileSystem

logger = logging.getLogger(__name__)

NOTE_PROMPT = (
    'Write a short markdown note about "{topic}".\n'
    "Include a title as # {topic} and a few bullet points or a brief explanation.\n"
    "Keep it concise and informative."
)


def slugify(text: str) -> str:
    slug = text.lower()
    slug = re.sub(r"[^a-z0-9\s-]", "", slug)
    slug = re.sub(r"\s+", "-", slug)
    slug = re.sub(r"-+", "-", slug)
    slug = slug.strip("-")[:MAX_FILENAME_LENGTH]
    return slug or "note"


def extract_heading(content: str, fallback: str) -> str:
    for line in content.splitlines():
        stripped = line.strip()
        if stripped.startswith("#"):
            return stripped.lstrip("#").strip() or fallback
    return fallback


def extract_preview(content: str) -> str:
    """First non-heading paragraph, joined onto one line."""
    parts = []
    for line in content.splitlines():
        stripped = line.strip()
        if not stripped:
            if parts:
                break
            continue
        if stripped.startswith("#"):
            continue
        parts.append(stripped)

    preview = " ".join(parts)
    if not preview:
        preview = re.sub(r"^#+\s*", "", content).strip()
    return preview[:PREVIEW_LENGTH].strip()


class CreateNoteAgent(ChatAgent):
    name = "CreateNoteAgent"

    def __init__(self, llm, file_system: NoteFileSystem):
        self.llm = llm
        self.file_system = file_system

    async def execute(self, message: str, history: List[HistoryTurn], context: AgentContext) -> NoteCreated:
        vault_path = context.vault_path
        if not vault_path:
            raise AgentPreconditionError("No vault open. Please open a vault to create notes.")
        if not await self.file_system.is_directory(vault_path):
            raise AgentPreconditionError(f"Vault path is not a directory: {vault_path}")

        topic = extract_after_patterns(message, CREATE_TOPIC_PATTERNS) or message.strip()
        if not topic:
            raise AgentExecutionError(f"Could not extract topic from message: {message}")
        logger.info(f"[CREATE] Topic: '{topic}'")

        content = (await self.llm.complete(NOTE_PROMPT.format(topic=topic)) or "").strip()
        if not content:
            raise AgentExecutionError(f"Generated content is empty for topic: {topic}")

        file_path = os.path.join(vault_path, await self.unique_file_name(topic, vault_path))
        try:
            await self.file_system.write_file(file_path, content)
        except OSError as e:
            raise AgentExecutionError(f"Failed to write file: {file_path}: {e}") from e

        logger.info(f"[CREATE] Created note: {file_path}")
        return NoteCreated(
            path=file_path,
            title=extract_heading(content, topic),
            preview=extract_preview(content),
        )

    async def unique_file_name(self, topic: str, vault_path: str) -> str:
        base = slugify(topic)
        file_name = f"{base}.md"
        counter = 1
        while await self.file_system.exists(os.path.join(vault_path, file_name)):
            if counter > MAX_COLLISION_ATTEMPTS:
                logger.warning(f"[CREATE] Too many collisions for filename: {base}.md")
                break
            file_name = f"{base}-{counter}.md"
            counter += 1
        return file_name
