"""
Retrieval Tests
---------------
Mode routing, concurrent hybrid fan-out with per-leg degradation, the notes
retriever's threshold / top-N filtering, and the Tavily client.
"""
import os
import sys
import time
import json
import httpx
import pytest
import asyncio
from unittest.mock import AsyncMock, MagicMock

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from vault_chat.config import RetrievalSettings
from vault_chat.errors import RetrievalError, WebSearchError
from vault_chat.rag.models import RagChunk, SearchResult, WebSnippet
from vault_chat.rag.retriever import RagRetriever, dedupe_by_chunk
from vault_chat.rag.rewriter import QueryRewriter, parse_alternatives
from vault_chat.rag.service import RetrievalMode, RetrievalService
from vault_chat.web.search import TavilyClient


def result(name, similarity):
    return SearchResult(chunk=RagChunk(id=name, text=name, metadata={"file_path": f"{name}.md"}), similarity=similarity)


def slow_retriever(delay, chunks=None, error=None):
    async def retrieve_chunks(query, vault_id=None, settings=None):
        await asyncio.sleep(delay)
        if error:
            raise error
        return chunks or [result("note", 0.9)]

    retriever = MagicMock()
    retriever.retrieve_chunks = retrieve_chunks
    return retriever


def slow_web(delay, snippets=None, error=None):
    async def search(query, max_results=5):
        await asyncio.sleep(delay)
        if error:
            raise error
        return snippets or [WebSnippet(title="t", url="https://example.com", content="c")]

    client = MagicMock()
    client.search = search
    return client


@pytest.mark.asyncio
async def test_none_mode_is_noop():
    retriever = MagicMock()
    retriever.retrieve_chunks = AsyncMock()
    web = MagicMock()
    web.search = AsyncMock()
    service = RetrievalService(retriever, web)

    context = await service.retrieve("q", RetrievalMode.NONE)

    assert context.is_empty
    retriever.retrieve_chunks.assert_not_called()
    web.search.assert_not_called()


@pytest.mark.asyncio
async def test_hybrid_runs_legs_concurrently():
    service = RetrievalService(slow_retriever(0.2), slow_web(0.15))

    start = time.monotonic()
    context = await service.retrieve("q", RetrievalMode.HYBRID)
    elapsed = time.monotonic() - start

    assert len(context.chunks) == 1
    assert len(context.web_snippets) == 1
    assert elapsed < 0.33


@pytest.mark.asyncio
async def test_hybrid_notes_failure_degrades_to_web():
    service = RetrievalService(slow_retriever(0.01, error=RetrievalError("store down")), slow_web(0.01))

    context = await service.retrieve("q", "hybrid")

    assert context.chunks == []
    assert len(context.web_snippets) == 1


@pytest.mark.asyncio
async def test_hybrid_web_failure_degrades_to_notes():
    service = RetrievalService(slow_retriever(0.01), slow_web(0.01, error=WebSearchError("quota")))

    context = await service.retrieve("q", RetrievalMode.HYBRID)

    assert len(context.chunks) == 1
    assert context.web_snippets == []


@pytest.mark.asyncio
async def test_hybrid_both_failing_raises():
    service = RetrievalService(
        slow_retriever(0.01, error=RetrievalError("store down")),
        slow_web(0.01, error=WebSearchError("quota")),
    )

    with pytest.raises(RetrievalError):
        await service.retrieve("q", RetrievalMode.HYBRID)


@pytest.mark.asyncio
async def test_web_mode_caps_results():
    snippets = [WebSnippet(title=str(i)) for i in range(8)]
    service = RetrievalService(None, slow_web(0, snippets=snippets), RetrievalSettings(web_max_results=3))

    context = await service.retrieve("q", RetrievalMode.WEB)

    assert [s.title for s in context.web_snippets] == ["0", "1", "2"]


@pytest.mark.asyncio
async def test_rag_mode_failure_propagates():
    service = RetrievalService(slow_retriever(0, error=RetrievalError("store down")), None)

    with pytest.raises(RetrievalError):
        await service.retrieve("q", RetrievalMode.RAG)


@pytest.mark.asyncio
async def test_cancelling_hybrid_cancels_legs():
    finished = []

    async def retrieve_chunks(query, vault_id=None, settings=None):
        await asyncio.sleep(1)
        finished.append("notes")
        return []

    retriever = MagicMock()
    retriever.retrieve_chunks = retrieve_chunks
    service = RetrievalService(retriever, slow_web(1))

    task = asyncio.create_task(service.retrieve("q", RetrievalMode.HYBRID))
    await asyncio.sleep(0.05)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task
    await asyncio.sleep(0)
    assert finished == []


@pytest.mark.asyncio
async def test_retriever_filters_threshold_and_display_k():
    embedder = MagicMock()
    embedder.embed_query = AsyncMock(return_value=[0.1, 0.2])
    store = MagicMock()
    store.search.return_value = [result("a", 0.4), result("b", 0.1), result("c", 0.9), result("d", 0.7)]
    retriever = RagRetriever(embedder, store)

    top = await retriever.retrieve_chunks(
        "q", vault_id="/vault", settings=RetrievalSettings(similarity_threshold=0.25, display_k=2, reranking_enabled=False)
    )

    assert [r.chunk.id for r in top] == ["c", "d"]
    args = store.search.call_args.args
    assert args[2] == {"vault_id": "/vault"}


@pytest.mark.asyncio
async def test_retriever_wraps_store_errors():
    embedder = MagicMock()
    embedder.embed_query = AsyncMock(side_effect=ConnectionError("embedding host down"))
    retriever = RagRetriever(embedder, MagicMock())

    with pytest.raises(RetrievalError):
        await retriever.retrieve_chunks("q")


@pytest.mark.asyncio
async def test_retriever_searches_with_rewritten_query():
    embedder = MagicMock()
    embedder.embed_query = AsyncMock(return_value=[0.1, 0.2])
    store = MagicMock()
    store.search.return_value = [result("a", 0.8)]
    llm = MagicMock()
    llm.complete = AsyncMock(return_value="  retrieval augmented generation overview  ")
    retriever = RagRetriever(embedder, store, rewriter=QueryRewriter(llm))

    top = await retriever.retrieve_chunks(
        "hey, what's RAG?", settings=RetrievalSettings(query_rewriting_enabled=True, reranking_enabled=False)
    )

    assert [r.chunk.id for r in top] == ["a"]
    embedder.embed_query.assert_awaited_once_with("retrieval augmented generation overview")


@pytest.mark.asyncio
async def test_rewriting_is_off_by_default():
    embedder = MagicMock()
    embedder.embed_query = AsyncMock(return_value=[0.1])
    store = MagicMock()
    store.search.return_value = []
    llm = MagicMock()
    llm.complete = AsyncMock(return_value="rewritten")
    retriever = RagRetriever(embedder, store, rewriter=QueryRewriter(llm))

    await retriever.retrieve_chunks("original", settings=RetrievalSettings(reranking_enabled=False))

    llm.complete.assert_not_called()
    embedder.embed_query.assert_awaited_once_with("original")


@pytest.mark.asyncio
async def test_multi_query_dedupes_by_chunk_keeping_best_similarity():
    per_query = {
        "raft": [result("a", 0.5), result("b", 0.6)],
        "raft consensus leader election": [result("a", 0.9)],
        "how raft replicates logs": [result("c", 0.3), result("b", 0.2)],
    }
    embedder = MagicMock()
    embedder.embed_query = AsyncMock(side_effect=lambda q: [float(len(q))])
    store = MagicMock()
    store.search.side_effect = lambda embedding, k, where: next(
        v for q, v in per_query.items() if float(len(q)) == embedding[0]
    )
    llm = MagicMock()
    llm.complete = AsyncMock(return_value="1. raft consensus leader election\n- how raft replicates logs\n")
    retriever = RagRetriever(embedder, store, rewriter=QueryRewriter(llm))

    top = await retriever.retrieve_chunks(
        "raft", settings=RetrievalSettings(multi_query_enabled=True, reranking_enabled=False, similarity_threshold=0.0)
    )

    assert [(r.chunk.id, r.similarity) for r in top] == [("a", 0.9), ("b", 0.6), ("c", 0.3)]
    assert store.search.call_count == 3


@pytest.mark.asyncio
async def test_rewriter_falls_back_to_original_query():
    llm = MagicMock()
    llm.complete = AsyncMock(side_effect=ConnectionError("host down"))
    rewriter = QueryRewriter(llm)

    assert await rewriter.rewrite("what is raft") == "what is raft"
    assert await rewriter.alternatives("what is raft") == ["what is raft"]


def test_parse_alternatives_drops_chatter_and_numbering():
    response = "Here are some alternatives:\n1. raft leader election\n2) raft log replication\n* ok\n- consensus in raft\n- fourth phrasing extra"

    assert parse_alternatives(response) == ["raft leader election", "raft log replication", "consensus in raft"]


def test_dedupe_by_chunk():
    deduped = dedupe_by_chunk([result("a", 0.2), result("a", 0.7), result("b", 0.1)])

    assert sorted((r.chunk.id, r.similarity) for r in deduped) == [("a", 0.7), ("b", 0.1)]


def test_similarity_is_clamped():
    assert result("x", 1.7).similarity == 1.0
    assert result("x", -0.2).similarity == 0.0


@pytest.mark.asyncio
async def test_tavily_client_maps_results():
    seen = {}

    def handler(request):
        seen["auth"] = request.headers["Authorization"]
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"results": [
            {"title": "Rust", "url": "https://rust-lang.org", "content": "A language"},
            {"title": "Go", "url": "https://go.dev", "content": "Another"},
        ]})

    client = TavilyClient("tvly-key", transport=httpx.MockTransport(handler))
    snippets = await client.search("systems languages", max_results=1)

    assert seen["auth"] == "Bearer tvly-key"
    assert seen["body"]["query"] == "systems languages"
    assert seen["body"]["max_results"] == 1
    assert snippets == [WebSnippet(title="Rust", url="https://rust-lang.org", content="A language")]


@pytest.mark.asyncio
async def test_tavily_client_http_error():
    client = TavilyClient("bad", transport=httpx.MockTransport(lambda request: httpx.Response(401)))

    with pytest.raises(WebSearchError):
        await client.search("anything")
