"""
Note File System
----------------
Async access to the markdown files of a vault. Blocking file I/O runs in a
worker thread so a large vault scan never stalls the event loop.
"""

import asyncio
import logging
import os
from collections import deque
from typing import List, Optional

logger = logging.getLogger(__name__)

MARKDOWN_EXTENSIONS = (".md", ".markdown")


class NoteFileSystem:
    async def read_file(self, path: str) -> Optional[str]:
        """File contents, or None when the file is missing or unreadable."""
        return await asyncio.to_thread(self._read, path)

    async def write_file(self, path: str, content: str):
        await asyncio.to_thread(self._write, path, content)

    async def exists(self, path: str) -> bool:
        return await asyncio.to_thread(os.path.exists, path)

    async def is_file(self, path: str) -> bool:
        return await asyncio.to_thread(os.path.isfile, path)

    async def is_directory(self, path: str) -> bool:
        return await asyncio.to_thread(os.path.isdir, path)

    async def list_markdown_files(self, root: str) -> List[str]:
        """Every markdown file under `root`, breadth-first, skipping hidden directories."""
        return await asyncio.to_thread(self._walk_markdown, root)

    @staticmethod
    def _read(path: str) -> Optional[str]:
        try:
            with open(path, "r", encoding="utf-8") as f:
                return f.read()
        except (OSError, UnicodeDecodeError) as e:
            logger.warning(f"[FS] Could not read {path}: {e}")
            return None

    @staticmethod
    def _write(path: str, content: str):
        parent = os.path.dirname(path)
        if parent:
            os.makedirs(parent, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            f.write(content)

    @staticmethod
    def _list(directory: str) -> List[str]:
        try:
            return [os.path.join(directory, name) for name in sorted(os.listdir(directory))]
        except OSError as e:
            logger.warning(f"[FS] Could not list {directory}: {e}")
            return []

    @classmethod
    def _walk_markdown(cls, root: str) -> List[str]:
        found = []
        queue = deque([root])
        while queue:
            directory = queue.popleft()
            for path in cls._list(directory):
                name = os.path.basename(path)
                if name.startswith("."):
                    continue
                if os.path.isdir(path):
                    queue.append(path)
                elif name.lower().endswith(MARKDOWN_EXTENSIONS):
                    found.append(path)
        return found
