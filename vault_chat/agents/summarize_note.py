"""
Summarize Note Agent
--------------------
Two modes:
1. Current note: summarize the note open in the editor.
2. Topic: summarize what the vault's notes say about a topic, from the
   retrieved chunks that actually mention it.

Prompts are kept short and instruction-free so small local models stay on task.
"""

import logging
import re
from typing import List, Optional
from vault_chat.agents.base import (
    AgentContext,
    ChatAgent,
    extract_after_patterns,
    extract_title,
    relative_to_vault,
    resolve_in_vault,
)
from vault_chat.agents.constants import (
    CURRENT_NOTE_PATTERNS,
    MAX_CHUNKS_FOR_SUMMARY,
    MAX_WORDS_PER_CHUNK,
    TOPIC_SUMMARY_PATTERNS,
)
from vault_chat.agents.results import NoteSummarized
from vault_chat.chat.models import HistoryTurn
from vault_chat.errors import AgentExecutionError, AgentPreconditionError
from vault_chat.notes.filesystem import NoteFileSystem
from vault_chat.rag.models import SearchResult

logger = logging.getLogger(__name__)

TOPIC_PROMPT = "Summarize the following notes about {topic}.\n\n{content}\n\nSummary:"
NOTE_PROMPT = "Summarize the following note.\n\n{content}\n\nSummary:"


def truncate_words(text: str, max_words: int) -> str:
    words = re.split(r"\s+", text.strip())
    if len(words) <= max_words:
        return text
    return " ".join(words[:max_words]) + "..."


def is_chunk_relevant(result: SearchResult, topic: str) -> bool:
    return topic.lower() in result.chunk.text.lower()


def build_topic_context(results: List[SearchResult]) -> str:
    blocks = []
    for result in results:
        chunk = result.chunk
        lines = []
        if chunk.section_title:
            lines.append(f"## {chunk.section_title}")
        lines.append(f"From: {chunk.file_path or 'unknown'}")
        lines.append("")
        lines.append(truncate_words(chunk.text, MAX_WORDS_PER_CHUNK))
        blocks.append("\n".join(lines))
    return "\n\n".join(blocks)


class SummarizeNoteAgent(ChatAgent):
    name = "SummarizeNoteAgent"

    def __init__(self, llm, file_system: NoteFileSystem, rag_retriever=None):
        self.llm = llm
        self.file_system = file_system
        self.rag_retriever = rag_retriever

    async def execute(self, message: str, history: List[HistoryTurn], context: AgentContext) -> NoteSummarized:
        lowered = message.lower().strip()
        if any(pattern in lowered for pattern in CURRENT_NOTE_PATTERNS):
            return await self._summarize_current_note(context)

        topic = extract_after_patterns(message, TOPIC_SUMMARY_PATTERNS)
        if topic:
            logger.info(f"[SUMMARIZE] Topic: '{topic}'")
            return await self._summarize_topic(topic, context)

        if context.current_note_path:
            return await self._summarize_current_note(context)

        raise AgentPreconditionError("No open note and no topic to summarize.")

    async def _summarize_current_note(self, context: AgentContext) -> NoteSummarized:
        if not context.current_note_path:
            raise AgentPreconditionError("No note is open to summarize.")

        note_path = resolve_in_vault(context.current_note_path, context.vault_path)
        if not await self.file_system.is_file(note_path):
            raise AgentPreconditionError(f"Current note path is not a file: {note_path}")

        content = await self.file_system.read_file(note_path)
        if not content or not content.strip():
            raise AgentPreconditionError(f"Note content is empty: {note_path}")

        summary = await self._generate(NOTE_PROMPT.format(content=content))
        logger.info(f"[SUMMARIZE] Summarized current note: {note_path}")
        return NoteSummarized(
            title=extract_title(content, note_path),
            summary=summary,
            source_files=[relative_to_vault(note_path, context.vault_path)],
        )

    async def _summarize_topic(self, topic: str, context: AgentContext) -> NoteSummarized:
        if not context.vault_path:
            raise AgentPreconditionError("No vault open. Please open a vault to summarize notes.")
        if self.rag_retriever is None:
            raise AgentPreconditionError("Topic summaries need a notes retriever.")

        results = await self.rag_retriever.retrieve_chunks(
            f"notes about {topic}", vault_id=context.vault_path, settings=context.settings.retrieval
        )
        relevant = [r for r in results if is_chunk_relevant(r, topic)][:MAX_CHUNKS_FOR_SUMMARY]
        logger.info(f"[SUMMARIZE] Retrieved {len(results)} chunks, {len(relevant)} relevant to '{topic}'")
        if not relevant:
            raise AgentExecutionError(f"No notes found about: {topic}")

        source_files: List[str] = []
        for result in relevant:
            path = result.chunk.file_path
            if not path:
                continue
            rel_path = relative_to_vault(path, context.vault_path)
            if rel_path not in source_files:
                source_files.append(rel_path)

        summary = await self._generate(TOPIC_PROMPT.format(topic=topic, content=build_topic_context(relevant)))
        logger.info(f"[SUMMARIZE] Summarized topic '{topic}' from {len(source_files)} files")
        return NoteSummarized(title=topic, summary=summary, source_files=source_files)

    async def _generate(self, prompt: str) -> str:
        summary: Optional[str] = await self.llm.complete(prompt)
        summary = (summary or "").strip()
        if not summary:
            raise AgentExecutionError("Summary generation returned an empty result")
        logger.debug(f"[SUMMARIZE] Summary generated, length: {len(summary)}")
        return summary
