import json
import uuid
import sqlite3
from datetime import date, datetime
from pathlib import Path
from threading import RLock
from typing import Any, Dict, List, Optional

from graph.state import (
    Clinic,
    Conversation,
    ConversationState,
    HealthProfile,
    MessageRecord,
    User,
    utcnow,
)
from .config import settings
from .logger import setup_logger

logger = setup_logger("sqlite-storage")


class SQLiteStorageService:
    """SQLite-backed storage with the same API as the JSON StorageService.

    Records are stored as JSON payloads next to the columns we query on.
    Synchronous; a lock guards the shared connection.
    """

    def __init__(self, db_path: Optional[str] = None) -> None:
        if db_path is None:
            settings.DATA_DIR.mkdir(parents=True, exist_ok=True)
            db_path = str(settings.DATA_DIR / "obrin.db")
        self.db_path = Path(db_path)
        self._lock = RLock()
        # Use check_same_thread=False since we protect with a lock
        self.conn = sqlite3.connect(str(self.db_path), check_same_thread=False)
        self.conn.row_factory = sqlite3.Row
        self._ensure_tables()

    def _ensure_tables(self) -> None:
        with self._lock, self.conn:
            self.conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS users (
                    id TEXT PRIMARY KEY,
                    phone_number TEXT UNIQUE,
                    payload TEXT
                );
                CREATE TABLE IF NOT EXISTS conversations (
                    id TEXT PRIMARY KEY,
                    user_id TEXT,
                    session_day TEXT,
                    payload TEXT
                );
                CREATE TABLE IF NOT EXISTS conversation_states (
                    user_id TEXT,
                    conversation_id TEXT,
                    payload TEXT,
                    PRIMARY KEY (user_id, conversation_id)
                );
                CREATE TABLE IF NOT EXISTS health_profiles (
                    user_id TEXT PRIMARY KEY,
                    payload TEXT
                );
                CREATE TABLE IF NOT EXISTS messages (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    conversation_id TEXT,
                    role TEXT,
                    content TEXT,
                    timestamp TEXT
                );
                CREATE TABLE IF NOT EXISTS clinic_searches (
                    id TEXT PRIMARY KEY,
                    user_id TEXT,
                    location TEXT,
                    service_type TEXT,
                    results TEXT,
                    created_at TEXT
                );
                """
            )

    def _fetchone(self, sql: str, params: tuple) -> Optional[sqlite3.Row]:
        with self._lock:
            cur = self.conn.cursor()
            cur.execute(sql, params)
            return cur.fetchone()

    def _fetchall(self, sql: str, params: tuple = ()) -> List[sqlite3.Row]:
        with self._lock:
            cur = self.conn.cursor()
            cur.execute(sql, params)
            return cur.fetchall()

    # Users
    def find_or_create_user(self, phone_number: str) -> User:
        with self._lock:
            existing = self.get_user_by_phone(phone_number)
            if existing:
                return existing
            user = User(id=str(uuid.uuid4()), phone_number=phone_number)
            with self.conn:
                self.conn.execute(
                    "INSERT INTO users(id, phone_number, payload) VALUES (?, ?, ?)",
                    (user.id, phone_number, user.model_dump_json()),
                )
        logger.info(f"created user id={user.id} phone={phone_number}")
        return user

    def get_user(self, user_id: str) -> Optional[User]:
        row = self._fetchone("SELECT payload FROM users WHERE id = ?", (user_id,))
        return User.model_validate_json(row["payload"]) if row else None

    def get_user_by_phone(self, phone_number: str) -> Optional[User]:
        row = self._fetchone("SELECT payload FROM users WHERE phone_number = ?", (phone_number,))
        return User.model_validate_json(row["payload"]) if row else None

    def update_user_location(self, user_id: str, lat: float, lng: float, city: Optional[str] = None) -> Optional[User]:
        with self._lock:
            user = self.get_user(user_id)
            if not user:
                return None
            user.location_lat, user.location_lng = lat, lng
            if city:
                user.city = city
            with self.conn:
                self.conn.execute("UPDATE users SET payload = ? WHERE id = ?", (user.model_dump_json(), user_id))
        logger.info(f"updated location for user={user_id} to {lat}, {lng}")
        return user

    # Conversations and messages
    def get_or_create_conversation(self, user_id: str, day: Optional[date] = None) -> Conversation:
        day = day or utcnow().date()
        with self._lock:
            row = self._fetchone(
                "SELECT payload FROM conversations WHERE user_id = ? AND session_day = ?",
                (user_id, day.isoformat()),
            )
            if row:
                return Conversation.model_validate_json(row["payload"])
            conversation = Conversation(id=f"session_{uuid.uuid4().hex[:12]}", user_id=user_id, session_day=day)
            with self.conn:
                self.conn.execute(
                    "INSERT INTO conversations(id, user_id, session_day, payload) VALUES (?, ?, ?, ?)",
                    (conversation.id, user_id, day.isoformat(), conversation.model_dump_json()),
                )
        return conversation

    def save_message(self, conversation_id: str, role: str, content: str, timestamp: Optional[datetime] = None) -> MessageRecord:
        record = MessageRecord(conversation_id=conversation_id, role=role, content=content, timestamp=timestamp or utcnow())
        with self._lock, self.conn:
            self.conn.execute(
                "INSERT INTO messages(conversation_id, role, content, timestamp) VALUES (?, ?, ?, ?)",
                (conversation_id, role, content, record.timestamp.isoformat()),
            )
        return record

    def recent_messages(self, user_id: str, limit: int = 10) -> List[MessageRecord]:
        rows = self._fetchall(
            """
            SELECT m.conversation_id, m.role, m.content, m.timestamp FROM messages m
            JOIN conversations c ON c.id = m.conversation_id
            WHERE c.user_id = ? ORDER BY m.timestamp DESC, m.id DESC LIMIT ?
            """,
            (user_id, limit),
        )
        return [MessageRecord(**dict(r)) for r in reversed(rows)]

    # Conversation state
    def load_conversation_state(self, user_id: str, conversation_id: str) -> Optional[ConversationState]:
        row = self._fetchone(
            "SELECT payload FROM conversation_states WHERE user_id = ? AND conversation_id = ?",
            (user_id, conversation_id),
        )
        return ConversationState.model_validate_json(row["payload"]) if row else None

    def save_conversation_state(self, state: ConversationState) -> None:
        with self._lock, self.conn:
            self.conn.execute(
                """
                INSERT INTO conversation_states(user_id, conversation_id, payload) VALUES (?, ?, ?)
                ON CONFLICT(user_id, conversation_id) DO UPDATE SET payload = excluded.payload
                """,
                (state.metadata.user_id, state.metadata.conversation_id, state.model_dump_json()),
            )

    # Health profiles
    def get_health_profile(self, user_id: str) -> Optional[HealthProfile]:
        row = self._fetchone("SELECT payload FROM health_profiles WHERE user_id = ?", (user_id,))
        return HealthProfile.model_validate_json(row["payload"]) if row else None

    def save_health_profile(self, profile: HealthProfile) -> None:
        with self._lock, self.conn:
            self.conn.execute(
                """
                INSERT INTO health_profiles(user_id, payload) VALUES (?, ?)
                ON CONFLICT(user_id) DO UPDATE SET payload = excluded.payload
                """,
                (profile.user_id, profile.model_dump_json()),
            )

    def list_health_profiles(self) -> List[HealthProfile]:
        return [HealthProfile.model_validate_json(r["payload"]) for r in self._fetchall("SELECT payload FROM health_profiles")]

    # Clinic search audit log
    def save_clinic_search(self, user_id: str, location: str, service_type: Optional[str], results: List[Clinic]) -> None:
        with self._lock, self.conn:
            self.conn.execute(
                "INSERT INTO clinic_searches(id, user_id, location, service_type, results, created_at) VALUES (?, ?, ?, ?, ?, ?)",
                (
                    str(uuid.uuid4()),
                    user_id,
                    location,
                    service_type or "general",
                    json.dumps([c.model_dump(mode="json") for c in results]),
                    utcnow().isoformat(),
                ),
            )

    def clinic_search_history(self, user_id: str, limit: int = 10) -> List[Dict[str, Any]]:
        rows = self._fetchall(
            "SELECT * FROM clinic_searches WHERE user_id = ? ORDER BY created_at DESC LIMIT ?",
            (user_id, limit),
        )
        out = []
        for r in rows:
            item = dict(r)
            item["results"] = json.loads(item["results"])
            out.append(item)
        return out
