"""
Study Persistence
-----------------
SQLite tables for goals, sessions and the per-note / per-session caches.
Each row keeps its lookup keys in plain columns and the full record as JSON.
Methods are synchronous; async callers go through `asyncio.to_thread`.
"""

import logging
import sqlite3
import threading
from typing import List, Optional
from vault_chat.study.models import (
    NoteSummary,
    SessionFlashcards,
    SessionStatus,
    StudyGoal,
    StudySession,
)
from vault_chat.chat.models import utcnow

logger = logging.getLogger(__name__)

SCHEMA = [
    """
    CREATE TABLE IF NOT EXISTS study_goals (
        goal_id TEXT PRIMARY KEY,
        vault_id TEXT NOT NULL,
        updated_at TEXT NOT NULL,
        data TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS study_sessions (
        session_id TEXT PRIMARY KEY,
        goal_id TEXT NOT NULL,
        session_order INTEGER NOT NULL,
        data TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS note_summaries (
        note_path TEXT PRIMARY KEY,
        data TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS session_flashcards (
        session_id TEXT PRIMARY KEY,
        data TEXT NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_goals_vault ON study_goals(vault_id)",
    "CREATE INDEX IF NOT EXISTS idx_sessions_goal ON study_sessions(goal_id)",
]


class StudyDatabase:
    """Thread-local WAL connections to the study tables, created on first use."""

    def __init__(self, db_path: str = "vault_chat.db"):
        self.db_path = db_path
        self._local = threading.local()
        self._init_lock = threading.Lock()
        self._initialized = False

    def connection(self) -> sqlite3.Connection:
        conn = getattr(self._local, "connection", None)
        if conn is None:
            conn = sqlite3.connect(self.db_path, check_same_thread=False)
            conn.execute("PRAGMA journal_mode=WAL")
            conn.row_factory = sqlite3.Row
            self._local.connection = conn
        if not self._initialized:
            with self._init_lock:
                if not self._initialized:
                    for statement in SCHEMA:
                        conn.execute(statement)
                    conn.commit()
                    self._initialized = True
        return conn


class StudyGoalRepository:
    def __init__(self, database: StudyDatabase):
        self.database = database

    def get_goal(self, goal_id: str) -> Optional[StudyGoal]:
        row = self.database.connection().execute(
            "SELECT data FROM study_goals WHERE goal_id = ?", (goal_id,)
        ).fetchone()
        return StudyGoal.model_validate_json(row["data"]) if row else None

    def upsert(self, goal: StudyGoal):
        conn = self.database.connection()
        with conn:
            conn.execute(
                "INSERT OR REPLACE INTO study_goals (goal_id, vault_id, updated_at, data) VALUES (?, ?, ?, ?)",
                (goal.id, goal.vault_id, goal.updated_at.isoformat(), goal.model_dump_json()),
            )
        logger.debug(f"[STUDY] Saved goal {goal.id}")

    def list_goals(self, vault_id: str) -> List[StudyGoal]:
        """Goals of a vault, most recently updated first."""
        rows = self.database.connection().execute(
            "SELECT data FROM study_goals WHERE vault_id = ? ORDER BY updated_at DESC", (vault_id,)
        ).fetchall()
        return [StudyGoal.model_validate_json(row["data"]) for row in rows]

    def latest_goal(self, vault_id: str) -> Optional[StudyGoal]:
        goals = self.list_goals(vault_id)
        return goals[0] if goals else None

    def delete_goal(self, goal_id: str):
        conn = self.database.connection()
        with conn:
            conn.execute("DELETE FROM study_sessions WHERE goal_id = ?", (goal_id,))
            conn.execute("DELETE FROM study_goals WHERE goal_id = ?", (goal_id,))


class StudySessionRepository:
    def __init__(self, database: StudyDatabase):
        self.database = database

    def get_session(self, session_id: str) -> Optional[StudySession]:
        row = self.database.connection().execute(
            "SELECT data FROM study_sessions WHERE session_id = ?", (session_id,)
        ).fetchone()
        return StudySession.model_validate_json(row["data"]) if row else None

    def upsert_session(self, session: StudySession):
        conn = self.database.connection()
        with conn:
            conn.execute(
                "INSERT OR REPLACE INTO study_sessions (session_id, goal_id, session_order, data) VALUES (?, ?, ?, ?)",
                (session.id, session.goal_id, session.order, session.model_dump_json()),
            )

    def sessions_for_goal(self, goal_id: str) -> List[StudySession]:
        rows = self.database.connection().execute(
            "SELECT data FROM study_sessions WHERE goal_id = ? ORDER BY session_order ASC", (goal_id,)
        ).fetchall()
        return [StudySession.model_validate_json(row["data"]) for row in rows]

    def update_session_status(self, session_id: str, status: SessionStatus):
        session = self.get_session(session_id)
        if session is None:
            return
        completed_at = utcnow() if status == SessionStatus.COMPLETED else None
        self.upsert_session(session.model_copy(update={"status": status, "completed_at": completed_at}))


class StudyCacheRepository:
    def __init__(self, database: StudyDatabase):
        self.database = database

    def get_note_summary(self, note_path: str) -> Optional[NoteSummary]:
        row = self.database.connection().execute(
            "SELECT data FROM note_summaries WHERE note_path = ?", (note_path,)
        ).fetchone()
        return NoteSummary.model_validate_json(row["data"]) if row else None

    def save_note_summary(self, summary: NoteSummary):
        conn = self.database.connection()
        with conn:
            conn.execute(
                "INSERT OR REPLACE INTO note_summaries (note_path, data) VALUES (?, ?)",
                (summary.note_path, summary.model_dump_json()),
            )

    def get_session_flashcards(self, session_id: str) -> Optional[SessionFlashcards]:
        row = self.database.connection().execute(
            "SELECT data FROM session_flashcards WHERE session_id = ?", (session_id,)
        ).fetchone()
        return SessionFlashcards.model_validate_json(row["data"]) if row else None

    def save_session_flashcards(self, flashcards: SessionFlashcards):
        conn = self.database.connection()
        with conn:
            conn.execute(
                "INSERT OR REPLACE INTO session_flashcards (session_id, data) VALUES (?, ?)",
                (flashcards.session_id, flashcards.model_dump_json()),
            )
