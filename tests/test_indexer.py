"""
Vault Indexer Tests
-------------------
Heading-scoped markdown chunking and per-file re-indexing against a mocked
embedder and vector store.
"""
import os
import sys
import pytest
from unittest.mock import AsyncMock, MagicMock

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from vault_chat.notes.filesystem import NoteFileSystem
from vault_chat.rag.indexer import VaultIndexer, chunk_id, chunk_markdown

NOTE = """Intro line.

# First
Alpha text.

## Second
Beta text.
More beta.
"""


def test_chunks_follow_headings_and_lines():
    chunks = chunk_markdown(NOTE)

    assert [(c["section_title"], c["start_line"], c["end_line"]) for c in chunks] == [
        ("", 1, 2),
        ("First", 3, 5),
        ("Second", 6, 8),
    ]
    assert chunks[1]["text"] == "# First\nAlpha text."


def test_long_sections_split_on_line_boundaries():
    content = "# Big\n" + "\n".join("x" * 40 for _ in range(10))

    chunks = chunk_markdown(content, chunk_size=100)

    assert len(chunks) > 1
    assert all(c["section_title"] == "Big" for c in chunks)
    assert chunks[0]["start_line"] == 1
    assert chunks[-1]["end_line"] == 11
    for previous, current in zip(chunks, chunks[1:]):
        assert current["start_line"] == previous["end_line"] + 1


def test_chunk_ids_are_stable():
    assert chunk_id("/v", "a.md", 0) == chunk_id("/v", "a.md", 0)
    assert chunk_id("/v", "a.md", 0) != chunk_id("/v", "a.md", 1)


def make_indexer():
    embedder = MagicMock()
    embedder.embed_documents = AsyncMock(side_effect=lambda texts: [[0.1, 0.2] for _ in texts])
    store = MagicMock()
    return VaultIndexer(NoteFileSystem(), embedder, store), store


@pytest.mark.asyncio
async def test_index_vault_stores_relative_metadata(tmp_path):
    (tmp_path / "sub").mkdir()
    (tmp_path / "sub" / "raft.md").write_text(NOTE)
    (tmp_path / "empty.md").write_text("   ")
    (tmp_path / "ignore.txt").write_text("not markdown")
    indexer, store = make_indexer()

    report = await indexer.index_vault(str(tmp_path))

    assert report.files_indexed == 1
    assert report.chunks_indexed == 3
    assert report.failed_files == []
    chunks = store.upsert.call_args.args[0]
    assert chunks[1].metadata == {
        "vault_id": str(tmp_path),
        "file_path": "sub/raft.md",
        "section_title": "First",
        "start_line": 3,
        "end_line": 5,
    }
    store.delete_by_file_path.assert_any_call("sub/raft.md", str(tmp_path))


@pytest.mark.asyncio
async def test_rebuild_clears_vault_and_records_failures(tmp_path):
    (tmp_path / "a.md").write_text("# A\ntext")
    indexer, store = make_indexer()
    indexer.embedder.embed_documents = AsyncMock(side_effect=ConnectionError("embedding host down"))

    report = await indexer.index_vault(str(tmp_path), rebuild=True)

    store.clear.assert_called_once_with(str(tmp_path))
    assert report.failed_files == ["a.md"]
    assert report.files_indexed == 0


@pytest.mark.asyncio
async def test_index_vault_requires_directory(tmp_path):
    indexer, _ = make_indexer()

    with pytest.raises(ValueError):
        await indexer.index_vault(str(tmp_path / "missing"))
