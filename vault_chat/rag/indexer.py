"""
Vault Indexer
-------------
Splits markdown notes into heading-scoped chunks, embeds them and stores
them in the vector store. Each chunk remembers its vault, its vault-relative
file path, its section heading and the 1-based line range it came from.

Sections longer than `chunk_size` characters are split on line boundaries.
"""

import asyncio
import hashlib
import logging
import re
from typing import Dict, List, Optional
from pydantic import BaseModel
from vault_chat.agents.base import relative_to_vault
from vault_chat.llm.client import Embedder
from vault_chat.notes.filesystem import NoteFileSystem
from vault_chat.rag.models import RagChunk
from vault_chat.rag.store import VectorStore

logger = logging.getLogger(__name__)

HEADER_PATTERN = re.compile(r"^(#{1,6})\s*(.*)$")
DEFAULT_CHUNK_SIZE = 1500


class IndexReport(BaseModel):
    vault_id: str
    files_indexed: int = 0
    chunks_indexed: int = 0
    failed_files: List[str] = []


def chunk_markdown(content: str, chunk_size: int = DEFAULT_CHUNK_SIZE) -> List[Dict]:
    """
    Returns [{text, section_title, start_line, end_line}] in document order.
    Blank sections are dropped.
    """
    sections = []
    title = ""
    lines: List[str] = []
    start = 1

    def flush():
        if any(line.strip() for line in lines):
            sections.append((title, start, list(lines)))

    for number, line in enumerate(content.splitlines(), start=1):
        match = HEADER_PATTERN.match(line.strip())
        if match:
            flush()
            title = match.group(2).strip()
            lines = [line]
            start = number
            continue
        lines.append(line)
    flush()

    chunks = []
    for section_title, section_start, section_lines in sections:
        buffer: List[str] = []
        buffer_start = section_start
        size = 0
        for offset, line in enumerate(section_lines):
            if buffer and size + len(line) + 1 > chunk_size:
                chunks.append(_chunk(buffer, section_title, buffer_start))
                buffer, size = [], 0
                buffer_start = section_start + offset
            buffer.append(line)
            size += len(line) + 1
        if any(line.strip() for line in buffer):
            chunks.append(_chunk(buffer, section_title, buffer_start))
    return chunks


def _chunk(lines: List[str], section_title: str, start_line: int) -> Dict:
    return {
        "text": "\n".join(lines).strip(),
        "section_title": section_title,
        "start_line": start_line,
        "end_line": start_line + len(lines) - 1,
    }


def chunk_id(vault_id: str, rel_path: str, index: int) -> str:
    return hashlib.md5(f"{vault_id}:{rel_path}:{index}".encode()).hexdigest()


class VaultIndexer:
    def __init__(self, file_system: NoteFileSystem, embedder: Embedder, vector_store: VectorStore):
        self.file_system = file_system
        self.embedder = embedder
        self.vector_store = vector_store

    async def index_file(self, file_path: str, vault_id: str, chunk_size: int = DEFAULT_CHUNK_SIZE) -> int:
        """Replaces the stored chunks of one note; returns the number of chunks written."""
        rel_path = relative_to_vault(file_path, vault_id)
        content = await self.file_system.read_file(file_path)
        await asyncio.to_thread(self.vector_store.delete_by_file_path, rel_path, vault_id)
        if not content or not content.strip():
            logger.debug(f"[INDEXER] Skipping empty note: {rel_path}")
            return 0

        pieces = chunk_markdown(content, chunk_size)
        if not pieces:
            return 0
        embeddings = await self.embedder.embed_documents([piece["text"] for piece in pieces])

        chunks = [
            RagChunk(
                id=chunk_id(vault_id, rel_path, index),
                text=piece["text"],
                metadata={
                    "vault_id": vault_id,
                    "file_path": rel_path,
                    "section_title": piece["section_title"],
                    "start_line": piece["start_line"],
                    "end_line": piece["end_line"],
                },
                embedding=embedding,
            )
            for index, (piece, embedding) in enumerate(zip(pieces, embeddings))
        ]
        await asyncio.to_thread(self.vector_store.upsert, chunks)
        logger.info(f"[INDEXER] Indexed {rel_path}: {len(chunks)} chunks")
        return len(chunks)

    async def index_vault(self, vault_path: str, rebuild: bool = False, chunk_size: Optional[int] = None) -> IndexReport:
        if not await self.file_system.is_directory(vault_path):
            raise ValueError(f"Vault path is not a directory: {vault_path}")

        if rebuild:
            await asyncio.to_thread(self.vector_store.clear, vault_path)

        report = IndexReport(vault_id=vault_path)
        for path in await self.file_system.list_markdown_files(vault_path):
            try:
                count = await self.index_file(path, vault_path, chunk_size or DEFAULT_CHUNK_SIZE)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"[INDEXER] Failed to index {path}: {e}")
                report.failed_files.append(relative_to_vault(path, vault_path))
                continue
            if count:
                report.files_indexed += 1
                report.chunks_indexed += count

        logger.info(
            f"[INDEXER] Vault {vault_path}: {report.files_indexed} files, "
            f"{report.chunks_indexed} chunks, {len(report.failed_files)} failed"
        )
        return report
