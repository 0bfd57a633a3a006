"""
Search Note Agent
-----------------
Hybrid note search. Vector hits (when a retriever is configured) and a
keyword scan of every markdown note are scored independently and merged by
file path:

    vector score   = max(0.9 - 0.1 * rank, 0.3)
    keyword score  = matched tokens / query tokens (+0.2 filename boost), clamped
    combined score = 0.7 * vector + 0.3 * keyword, clamped

A file found by only one source gets only that source's weighted share.
"""

import asyncio
import logging
import os
from typing import Dict, List, Tuple
from vault_chat.agents.base import (
    AgentContext,
    ChatAgent,
    extract_after_patterns,
    extract_title,
    relative_to_vault,
    resolve_in_vault,
)
from vault_chat.agents.constants import (
    FILENAME_BOOST,
    KEYWORD_WEIGHT,
    MAX_KEYWORD_RESULTS,
    SEARCH_QUERY_PATTERNS,
    SNIPPET_LENGTH,
    VECTOR_WEIGHT,
)
from vault_chat.agents.results import NoteMatch, NotesFound
from vault_chat.chat.models import HistoryTurn
from vault_chat.errors import AgentExecutionError, AgentPreconditionError
from vault_chat.notes.filesystem import NoteFileSystem

logger = logging.getLogger(__name__)


def _clamp(value: float) -> float:
    return min(max(value, 0.0), 1.0)


def extract_query(message: str) -> str:
    return extract_after_patterns(message, SEARCH_QUERY_PATTERNS) or message.strip()


def tokenize(query: str) -> List[str]:
    return [token for token in query.lower().split() if token]


def vector_rank_score(rank: int) -> float:
    return max(0.9 - 0.1 * rank, 0.3)


def keyword_score(tokens: List[str], content: str, file_name: str) -> float:
    """0.0 when no token occurs in the content."""
    if not tokens:
        return 0.0
    lowered = content.lower()
    matched = sum(1 for token in tokens if token in lowered)
    if matched == 0:
        return 0.0
    score = matched / len(tokens)
    lowered_name = file_name.lower()
    if any(token in lowered_name for token in tokens):
        score += FILENAME_BOOST
    return _clamp(score)


def merge_scores(vector_hits: Dict[str, float], keyword_hits: Dict[str, float]) -> List[Tuple[str, float]]:
    """Combined (path, score) pairs, best first; ties are ordered by path."""
    combined = {}
    for path in set(vector_hits) | set(keyword_hits):
        score = vector_hits.get(path, 0.0) * VECTOR_WEIGHT + keyword_hits.get(path, 0.0) * KEYWORD_WEIGHT
        combined[path] = _clamp(score)
    return sorted(combined.items(), key=lambda item: (-item[1], item[0]))


def extract_snippet(content: str, tokens: List[str]) -> str:
    def shorten(text: str) -> str:
        return text if len(text) <= SNIPPET_LENGTH else text[:SNIPPET_LENGTH] + "..."

    lines = content.splitlines()
    for line in lines:
        lowered = line.lower()
        if any(token in lowered for token in tokens):
            return shorten(line.strip())
    for line in lines:
        stripped = line.strip()
        if stripped and not stripped.startswith("#"):
            return shorten(stripped)
    return shorten(content.strip())


class SearchNoteAgent(ChatAgent):
    name = "SearchNoteAgent"

    def __init__(self, file_system: NoteFileSystem, rag_retriever=None):
        self.file_system = file_system
        self.rag_retriever = rag_retriever

    async def execute(self, message: str, history: List[HistoryTurn], context: AgentContext) -> NotesFound:
        vault_path = context.vault_path
        if not vault_path:
            raise AgentPreconditionError("No vault open. Please open a vault to search notes.")
        if not await self.file_system.is_directory(vault_path):
            raise AgentPreconditionError(f"Vault path is not a directory: {vault_path}")

        query = extract_query(message)
        if not query:
            raise AgentExecutionError(f"Could not extract search query from message: {message}")
        logger.info(f"[SEARCH] Query: '{query}'")

        tokens = tokenize(query)
        vector_hits = await self._vector_search(query, context)
        keyword_hits, contents = await self._keyword_search(vault_path, tokens)

        ranked = merge_scores(vector_hits, keyword_hits)
        if not ranked:
            raise AgentExecutionError(f"No matching notes found for query: {query}")

        matches = []
        for rel_path, score in ranked:
            content = contents.get(rel_path)
            if content is None:
                content = await self.file_system.read_file(resolve_in_vault(rel_path, vault_path)) or ""
            matches.append(
                NoteMatch(
                    file_path=rel_path,
                    title=extract_title(content, rel_path),
                    score=score,
                    snippet=extract_snippet(content, tokens),
                )
            )

        logger.info(f"[SEARCH] Found {len(matches)} notes for '{query}'")
        return NotesFound(query=query, matches=matches)

    async def _vector_search(self, query: str, context: AgentContext) -> Dict[str, float]:
        """Relative path -> rank-decayed score. A file keeps its best-ranked chunk."""
        if self.rag_retriever is None:
            return {}
        try:
            results = await self.rag_retriever.retrieve_chunks(
                query, vault_id=context.vault_path, settings=context.settings.retrieval
            )
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.warning(f"[SEARCH] Vector search failed, using keyword results only: {e}")
            return {}

        hits: Dict[str, float] = {}
        for rank, result in enumerate(results):
            file_path = result.chunk.file_path
            if not file_path:
                continue
            rel_path = relative_to_vault(file_path, context.vault_path)
            hits.setdefault(rel_path, vector_rank_score(rank))
        return hits

    async def _keyword_search(self, vault_path: str, tokens: List[str]) -> Tuple[Dict[str, float], Dict[str, str]]:
        if not tokens:
            return {}, {}

        scored = []
        contents: Dict[str, str] = {}
        for path in await self.file_system.list_markdown_files(vault_path):
            content = await self.file_system.read_file(path)
            if content is None:
                continue
            score = keyword_score(tokens, content, os.path.basename(path))
            if score <= 0.0:
                continue
            rel_path = relative_to_vault(path, vault_path)
            scored.append((rel_path, score))
            contents[rel_path] = content

        scored.sort(key=lambda item: (-item[1], item[0]))
        top = dict(scored[:MAX_KEYWORD_RESULTS])
        return top, {path: contents[path] for path in top}
