"""
Notes Retriever
---------------
Turns a question into a short list of relevant note chunks:
0. Optionally rewrite the question, and optionally expand it into several
   phrasings (multi-query).
1. Embed each query.
2. Search the vector store for up to `max_k` candidates per query; with
   several queries, duplicate chunks keep their highest similarity.
3. Rerank the candidates (when a reranker is available and enabled).
4. Drop candidates below the similarity threshold.
5. Keep the best `display_k`.
"""

import asyncio
import logging
from typing import Dict, List, Optional
from vault_chat.config import RetrievalSettings
from vault_chat.errors import RetrievalError
from vault_chat.llm.client import Embedder
from vault_chat.rag.models import SearchResult
from vault_chat.rag.reranker import Reranker
from vault_chat.rag.rewriter import QueryRewriter
from vault_chat.rag.store import VectorStore

logger = logging.getLogger(__name__)

def dedupe_by_chunk(results: List[SearchResult]) -> List[SearchResult]:
    """One result per chunk id, the one with the highest similarity."""
    best: Dict[str, SearchResult] = {}
    for result in results:
        current = best.get(result.chunk.id)
        if current is None or result.similarity > current.similarity:
            best[result.chunk.id] = result
    return list(best.values())

class RagRetriever:
    def __init__(
        self,
        embedder: Embedder,
        vector_store: VectorStore,
        reranker: Optional[Reranker] = None,
        settings: Optional[RetrievalSettings] = None,
        rewriter: Optional[QueryRewriter] = None,
    ):
        self.embedder = embedder
        self.vector_store = vector_store
        self.reranker = reranker
        self.settings = settings or RetrievalSettings()
        self.rewriter = rewriter

    async def retrieve_chunks(
        self,
        query: str,
        vault_id: Optional[str] = None,
        settings: Optional[RetrievalSettings] = None,
    ) -> List[SearchResult]:
        settings = settings or self.settings
        try:
            search_query = query
            if self.rewriter is not None and settings.query_rewriting_enabled:
                search_query = await self.rewriter.rewrite(query)

            queries = [search_query]
            if self.rewriter is not None and settings.multi_query_enabled:
                queries = await self.rewriter.alternatives(search_query)

            where = {"vault_id": vault_id} if vault_id else None
            per_query = await asyncio.gather(*(self._search(q, settings.max_k, where) for q in queries))
            candidates = [r for results in per_query for r in results]
            if len(queries) > 1:
                total = len(candidates)
                candidates = dedupe_by_chunk(candidates)
                logger.debug(f"[RETRIEVER] Multi-query: {total} results, {len(candidates)} after dedupe")

            ranked = candidates
            if self.reranker is not None and settings.reranking_enabled and candidates:
                logger.debug(f"[RETRIEVER] Reranking {len(candidates)} candidates")
                ranked = await self.reranker.rerank(search_query, candidates)

            kept = [r for r in ranked if r.similarity >= settings.similarity_threshold]
            kept.sort(key=lambda r: r.similarity, reverse=True)
            top = kept[: settings.display_k]
        except asyncio.CancelledError:
            raise
        except RetrievalError:
            raise
        except Exception as e:
            raise RetrievalError(f"Failed to retrieve chunks: {e}") from e

        logger.info(
            f"[RETRIEVER] '{search_query[:40]}': {len(candidates)} candidates, "
            f"{len(kept)} above {settings.similarity_threshold}, {len(top)} kept"
        )
        return top

    async def _search(self, query: str, k: int, where: Optional[dict]) -> List[SearchResult]:
        embedding = await self.embedder.embed_query(query)
        return await asyncio.to_thread(self.vector_store.search, embedding, k, where)
