import sqlite3
import logging
import threading
import uuid
from datetime import datetime
from typing import List, Optional
from vault_chat.chat.models import Conversation, HistoryTurn, MessageAuthor, utcnow

logger = logging.getLogger(__name__)


class ConversationRepository:
    """
    SQLite-backed conversation store.

    Connections are thread-local (WAL mode) so the repository can be used from
    `asyncio.to_thread` workers without sharing a connection across threads.
    """

    def __init__(self, db_path: str = "vault_chat.db"):
        self.db_path = db_path
        self._local = threading.local()
        self._init_lock = threading.Lock()
        self._initialized = False

    def _connection(self) -> sqlite3.Connection:
        conn = getattr(self._local, "connection", None)
        if conn is None:
            conn = sqlite3.connect(self.db_path, check_same_thread=False)
            conn.execute("PRAGMA journal_mode=WAL")
            conn.execute("PRAGMA synchronous=NORMAL")
            conn.row_factory = sqlite3.Row
            self._local.connection = conn
            logger.debug("Created new SQLite connection with WAL mode enabled")
        self._ensure_schema(conn)
        return conn

    def _ensure_schema(self, conn: sqlite3.Connection):
        if self._initialized:
            return
        with self._init_lock:
            if self._initialized:
                return
            conn.execute("""
                CREATE TABLE IF NOT EXISTS conversations (
                    conversation_id TEXT PRIMARY KEY,
                    vault_id TEXT NOT NULL,
                    title TEXT,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS messages (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    conversation_id TEXT NOT NULL,
                    role TEXT NOT NULL,
                    content TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    FOREIGN KEY(conversation_id) REFERENCES conversations(conversation_id)
                )
            """)
            conn.execute("CREATE INDEX IF NOT EXISTS idx_messages_conversation ON messages(conversation_id)")
            conn.execute("CREATE INDEX IF NOT EXISTS idx_conversations_vault ON conversations(vault_id)")
            conn.commit()
            self._initialized = True

    def create_conversation(self, vault_id: str, title: str, conversation_id: Optional[str] = None) -> Conversation:
        conversation_id = conversation_id or uuid.uuid4().hex
        now = utcnow().isoformat()
        conn = self._connection()
        conn.execute(
            "INSERT INTO conversations (conversation_id, vault_id, title, created_at, updated_at) VALUES (?, ?, ?, ?, ?)",
            (conversation_id, vault_id, title, now, now),
        )
        conn.commit()
        logger.info(f"[HISTORY] Created conversation {conversation_id} in vault {vault_id}")
        return self.get_conversation(conversation_id)

    def get_conversation(self, conversation_id: str) -> Optional[Conversation]:
        cursor = self._connection().execute(
            "SELECT * FROM conversations WHERE conversation_id = ?", (conversation_id,)
        )
        row = cursor.fetchone()
        return _row_to_conversation(row) if row else None

    def list_conversations(self, vault_id: Optional[str] = None) -> List[Conversation]:
        conn = self._connection()
        if vault_id:
            cursor = conn.execute(
                "SELECT * FROM conversations WHERE vault_id = ? ORDER BY updated_at DESC", (vault_id,)
            )
        else:
            cursor = conn.execute("SELECT * FROM conversations ORDER BY updated_at DESC")
        return [_row_to_conversation(row) for row in cursor.fetchall()]

    def append_messages(
        self, conversation_id: str, turns: List[HistoryTurn], vault_id: Optional[str] = None, title: str = ""
    ):
        """
        Appends turns in order, in a single transaction.

        With `vault_id` set, the conversation row is created in that same
        transaction if it does not exist yet.
        """
        if not turns:
            return
        conn = self._connection()
        with conn:
            if vault_id is not None:
                now = utcnow().isoformat()
                conn.execute(
                    "INSERT OR IGNORE INTO conversations (conversation_id, vault_id, title, created_at, updated_at) "
                    "VALUES (?, ?, ?, ?, ?)",
                    (conversation_id, vault_id, title, now, now),
                )
            conn.executemany(
                "INSERT INTO messages (conversation_id, role, content, created_at) VALUES (?, ?, ?, ?)",
                [(conversation_id, t.author.value, t.text, t.created_at.isoformat()) for t in turns],
            )
            conn.execute(
                "UPDATE conversations SET updated_at = ? WHERE conversation_id = ?",
                (utcnow().isoformat(), conversation_id),
            )

    def get_messages(self, conversation_id: str) -> List[HistoryTurn]:
        """All turns of a conversation in creation order."""
        cursor = self._connection().execute(
            "SELECT role, content, created_at FROM messages WHERE conversation_id = ? ORDER BY id ASC",
            (conversation_id,),
        )
        return [
            HistoryTurn(
                author=MessageAuthor(row["role"]),
                text=row["content"],
                created_at=datetime.fromisoformat(row["created_at"]),
            )
            for row in cursor.fetchall()
        ]

    def rename_conversation(self, conversation_id: str, title: str):
        conn = self._connection()
        conn.execute(
            "UPDATE conversations SET title = ?, updated_at = ? WHERE conversation_id = ?",
            (title, utcnow().isoformat(), conversation_id),
        )
        conn.commit()

    def delete_conversation(self, conversation_id: str):
        conn = self._connection()
        with conn:
            conn.execute("DELETE FROM messages WHERE conversation_id = ?", (conversation_id,))
            conn.execute("DELETE FROM conversations WHERE conversation_id = ?", (conversation_id,))
        logger.info(f"[HISTORY] Deleted conversation {conversation_id}")


def _row_to_conversation(row: sqlite3.Row) -> Conversation:
    return Conversation(
        id=row["conversation_id"],
        vault_id=row["vault_id"],
        title=row["title"] or "",
        created_at=datetime.fromisoformat(row["created_at"]),
        updated_at=datetime.fromisoformat(row["updated_at"]),
    )
