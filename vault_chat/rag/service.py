"""
Retrieval Service
-----------------
Fetches the context for the normal-chat path according to the retrieval mode:

- NONE:   nothing.
- RAG:    note chunks from the RagRetriever.
- WEB:    snippets from the web search client.
- HYBRID: both legs as concurrent tasks, joined before returning. A failed
          leg degrades to an empty list; only if both fail is a
          RetrievalError raised.

Cancelling the caller cancels whichever legs are still running.
"""

import asyncio
import logging
from enum import Enum
from typing import List, Optional
from vault_chat.config import RetrievalSettings
from vault_chat.errors import RetrievalError
from vault_chat.rag.models import RetrievalContext, SearchResult, WebSnippet
from vault_chat.rag.retriever import RagRetriever

logger = logging.getLogger(__name__)


class RetrievalMode(str, Enum):
    NONE = "none"
    RAG = "rag"
    WEB = "web"
    HYBRID = "hybrid"


class RetrievalService:
    def __init__(
        self,
        rag_retriever: Optional[RagRetriever] = None,
        web_client=None,
        settings: Optional[RetrievalSettings] = None,
    ):
        self.rag_retriever = rag_retriever
        self.web_client = web_client
        self.settings = settings or RetrievalSettings()

    async def retrieve(
        self,
        query: str,
        mode: RetrievalMode,
        vault_id: Optional[str] = None,
        settings: Optional[RetrievalSettings] = None,
    ) -> RetrievalContext:
        settings = settings or self.settings
        mode = RetrievalMode(mode)

        if mode == RetrievalMode.NONE:
            return RetrievalContext()

        if mode == RetrievalMode.RAG:
            return RetrievalContext(chunks=await self._retrieve_notes(query, vault_id, settings))

        if mode == RetrievalMode.WEB:
            return RetrievalContext(web_snippets=await self._retrieve_web(query, settings))

        return await self._retrieve_hybrid(query, vault_id, settings)

    async def _retrieve_hybrid(self, query: str, vault_id: Optional[str], settings: RetrievalSettings) -> RetrievalContext:
        notes_result, web_result = await asyncio.gather(
            self._retrieve_notes(query, vault_id, settings),
            self._retrieve_web(query, settings),
            return_exceptions=True,
        )

        notes_failed = isinstance(notes_result, BaseException)
        web_failed = isinstance(web_result, BaseException)

        # A leg that was itself cancelled means the whole request is going away
        for result in (notes_result, web_result):
            if isinstance(result, asyncio.CancelledError):
                raise result

        if notes_failed and web_failed:
            logger.error(f"[RETRIEVAL] Hybrid retrieval failed on both legs: notes={notes_result}, web={web_result}")
            raise RetrievalError(f"Hybrid retrieval failed: notes: {notes_result}; web: {web_result}")

        if notes_failed:
            logger.warning(f"[RETRIEVAL] Notes leg failed, continuing with web only: {notes_result}")
            return RetrievalContext(web_snippets=web_result)

        if web_failed:
            logger.warning(f"[RETRIEVAL] Web leg failed, continuing with notes only: {web_result}")
            return RetrievalContext(chunks=notes_result)

        logger.info(f"[RETRIEVAL] Hybrid: {len(notes_result)} chunks, {len(web_result)} web snippets")
        return RetrievalContext(chunks=notes_result, web_snippets=web_result)

    async def _retrieve_notes(self, query: str, vault_id: Optional[str], settings: RetrievalSettings) -> List[SearchResult]:
        if self.rag_retriever is None:
            logger.debug("[RETRIEVAL] No notes retriever configured")
            return []
        return await self.rag_retriever.retrieve_chunks(query, vault_id=vault_id, settings=settings)

    async def _retrieve_web(self, query: str, settings: RetrievalSettings) -> List[WebSnippet]:
        if self.web_client is None:
            logger.debug("[RETRIEVAL] No web search client configured")
            return []
        try:
            snippets = await self.web_client.search(query, settings.web_max_results)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            raise RetrievalError(f"Web search failed: {e}") from e
        return list(snippets)[: settings.web_max_results]
