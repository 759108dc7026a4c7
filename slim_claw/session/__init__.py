"""Session transcripts with an append-only SQLite message log."""

import json
import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path

import aiosqlite

from slim_claw.config import get_config
from slim_claw.exceptions import SessionError, SessionNotFoundError
from slim_claw.logging import get_logger
from slim_claw.messages import Message

log = get_logger(__name__)


def _utcnow_iso() -> str:
    """Return current UTC timestamp in ISO format."""
    return datetime.now(UTC).isoformat()


@dataclass
class Session:
    """A conversation transcript."""

    id: str
    messages: list[Message] = field(default_factory=list)
    created_at: str = field(default_factory=_utcnow_iso)

    def add_message(self, message: Message) -> None:
        """Append a message to the in-memory transcript."""
        self.messages.append(message)


@dataclass
class SessionInfo:
    """Listing entry for a stored session."""

    id: str
    created_at: str
    last_active: str
    message_count: int


class SessionManager:
    """Persists session transcripts as ordered message rows."""

    def __init__(self, db_path: Path | str | None = None):
        """Initialize session manager.

        Args:
            db_path: Optional database path override
        """
        if db_path is None:
            config = get_config()
            self.db_path = Path(config.session.path).expanduser()
        else:
            self.db_path = Path(db_path).expanduser()

        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        self._db: aiosqlite.Connection | None = None

    async def _ensure_db(self) -> aiosqlite.Connection:
        """Ensure database is initialized."""
        if self._db is None:
            self._db = await aiosqlite.connect(str(self.db_path))
            await self._db.execute("PRAGMA journal_mode=WAL")
            await self._db.execute("""
                CREATE TABLE IF NOT EXISTS sessions (
                    id TEXT PRIMARY KEY,
                    created_at TEXT NOT NULL,
                    last_active TEXT NOT NULL
                )
            """)
            await self._db.execute("""
                CREATE TABLE IF NOT EXISTS messages (
                    session_id TEXT NOT NULL,
                    seq INTEGER NOT NULL,
                    role TEXT NOT NULL,
                    content TEXT NOT NULL,
                    timestamp TEXT NOT NULL,
                    PRIMARY KEY (session_id, seq)
                )
            """)
            await self._db.execute(
                "CREATE INDEX IF NOT EXISTS idx_sessions_last_active ON sessions(last_active)"
            )
            await self._db.commit()
        return self._db

    async def _session_exists(self, session_id: str) -> bool:
        db = await self._ensure_db()
        async with db.execute("SELECT 1 FROM sessions WHERE id = ?", (session_id,)) as cursor:
            return await cursor.fetchone() is not None

    async def create_session(self, session_id: str | None = None) -> Session:
        """Create and persist a new, empty session.

        Raises:
            SessionError: if a session with this id already exists
        """
        db = await self._ensure_db()

        session = Session(id=session_id or str(uuid.uuid4()))
        if await self._session_exists(session.id):
            raise SessionError(f"Session already exists: {session.id}")

        await db.execute(
            "INSERT INTO sessions (id, created_at, last_active) VALUES (?, ?, ?)",
            (session.id, session.created_at, session.created_at),
        )
        await db.commit()
        log.info("Created new session", session_id=session.id)
        return session

    async def get_or_create_session(self, session_id: str) -> Session:
        """Load a session, creating it when it does not exist yet."""
        if await self._session_exists(session_id):
            return await self.load_session(session_id)
        return await self.create_session(session_id)

    async def append_message(self, session_id: str, message: Message) -> None:
        """Persist one message at the end of the session's log."""
        db = await self._ensure_db()
        now = _utcnow_iso()

        await db.execute(
            """
            INSERT INTO messages (session_id, seq, role, content, timestamp)
            SELECT ?, COALESCE(MAX(seq), 0) + 1, ?, ?, ?
            FROM messages WHERE session_id = ?
            """,
            (
                session_id,
                message.role,
                json.dumps(message.to_dict()["content"]),
                now,
                session_id,
            ),
        )
        await db.execute(
            "UPDATE sessions SET last_active = ? WHERE id = ?",
            (now, session_id),
        )
        await db.commit()

    async def load_session(self, session_id: str) -> Session:
        """Load a session and its ordered messages.

        Rows that cannot be decoded into a Message are skipped.

        Raises:
            SessionNotFoundError: if the session does not exist
        """
        db = await self._ensure_db()

        async with db.execute(
            "SELECT id, created_at FROM sessions WHERE id = ?",
            (session_id,),
        ) as cursor:
            row = await cursor.fetchone()
        if not row:
            raise SessionNotFoundError(session_id)

        async with db.execute(
            "SELECT seq, role, content FROM messages WHERE session_id = ? ORDER BY seq",
            (session_id,),
        ) as cursor:
            rows = await cursor.fetchall()

        messages: list[Message] = []
        for seq, role, content in rows:
            try:
                messages.append(Message.from_dict({"role": role, "content": json.loads(content)}))
            except (json.JSONDecodeError, TypeError, ValueError) as e:
                log.warning("Skipping malformed stored message", session_id=session_id, seq=seq, error=str(e))

        return Session(id=row[0], messages=messages, created_at=row[1])

    async def list_sessions(self, limit: int = 20) -> list[SessionInfo]:
        """List sessions, most recently active first."""
        db = await self._ensure_db()

        async with db.execute(
            """
            SELECT s.id, s.created_at, s.last_active, COUNT(m.seq)
            FROM sessions s
            LEFT JOIN messages m ON m.session_id = s.id
            GROUP BY s.id
            ORDER BY s.last_active DESC
            LIMIT ?
            """,
            (limit,),
        ) as cursor:
            rows = await cursor.fetchall()

        return [
            SessionInfo(id=row[0], created_at=row[1], last_active=row[2], message_count=row[3])
            for row in rows
        ]

    async def delete_session(self, session_id: str) -> bool:
        """Delete a session and its messages.

        Returns:
            True if deleted, False if not found
        """
        db = await self._ensure_db()

        await db.execute("DELETE FROM messages WHERE session_id = ?", (session_id,))
        cursor = await db.execute("DELETE FROM sessions WHERE id = ?", (session_id,))
        await db.commit()

        return cursor.rowcount > 0

    async def close(self) -> None:
        """Close the database connection."""
        if self._db:
            await self._db.close()
            self._db = None


# Global session manager
_manager: SessionManager | None = None


def get_session_manager() -> SessionManager:
    """Get the global session manager."""
    global _manager
    if _manager is None:
        _manager = SessionManager()
    return _manager


def set_session_manager(manager: SessionManager | None) -> None:
    """Set the global session manager."""
    global _manager
    _manager = manager
