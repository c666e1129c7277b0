import os
import json
import uuid
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Tuple
from pathlib import Path
import tempfile
from threading import RLock

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

logger = setup_logger("storage")

_lock = RLock()

EMPTY_DB: Dict[str, Any] = {
    "users": {},
    "conversations": [],
    "conversation_states": {},
    "health_profiles": {},
    "messages": [],
    "clinic_searches": [],
}


def _atomic_write_json(path: Path, data: Dict[str, Any]) -> Tuple[bool, Optional[str]]:
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with tempfile.NamedTemporaryFile("w", delete=False, dir=str(path.parent), encoding="utf-8") as tmp:
            json.dump(data, tmp, indent=2)
            tmp.flush()
            os.fsync(tmp.fileno())
            tmp_path = Path(tmp.name)
        os.replace(str(tmp_path), str(path))
        return True, None
    except (OSError, TypeError, ValueError) as e:
        logger.error(f"Atomic write failed: {e}")
        return False, str(e)
    finally:
        if "tmp_path" in locals() and tmp_path.exists():
            tmp_path.unlink(missing_ok=True)


def state_key(user_id: str, conversation_id: str) -> str:
    return f"{user_id}|{conversation_id}"


class StorageService:
    """JSON-file persistence for users, conversations and health records.

    All reads return fresh model instances parsed from disk, so callers can
    mutate what they get back without touching stored data until they save.
    """

    def __init__(self, data_dir: Optional[Path] = None) -> None:
        self.data_dir = Path(data_dir or settings.DATA_DIR)
        self.json_path = self.data_dir / "obrin.json"
        self.data_dir.mkdir(parents=True, exist_ok=True)
        if not self.json_path.exists():
            success, err = _atomic_write_json(self.json_path, EMPTY_DB)
            if not success:
                raise RuntimeError(f"Failed initializing storage: {err}")

    def _load(self) -> Dict[str, Any]:
        with _lock:
            try:
                with self.json_path.open("r", encoding="utf-8") as f:
                    data = json.load(f)
            except FileNotFoundError:
                data = {}
        for key, empty in EMPTY_DB.items():
            data.setdefault(key, type(empty)())
        return data

    def _save(self, data: Dict[str, Any]) -> None:
        with _lock:
            ok, err = _atomic_write_json(self.json_path, data)
            if not ok:
                raise RuntimeError(f"Failed to persist storage: {err}")

    # Users
    def find_or_create_user(self, phone_number: str) -> User:
        with _lock:
            data = self._load()
            raw = data["users"].get(phone_number)
            if raw:
                return User.model_validate(raw)
            user = User(id=str(uuid.uuid4()), phone_number=phone_number)
            data["users"][phone_number] = user.model_dump(mode="json")
            self._save(data)
        logger.info(f"created user id={user.id} phone={phone_number}")
        return user

    def get_user(self, user_id: str) -> Optional[User]:
        for raw in self._load()["users"].values():
            if raw.get("id") == user_id:
                return User.model_validate(raw)
        return None

    def get_user_by_phone(self, phone_number: str) -> Optional[User]:
        raw = self._load()["users"].get(phone_number)
        return User.model_validate(raw) if raw else None

    def update_user_location(self, user_id: str, lat: float, lng: float, city: Optional[str] = None) -> Optional[User]:
        with _lock:
            data = self._load()
            for phone, raw in data["users"].items():
                if raw.get("id") == user_id:
                    raw.update({"location_lat": lat, "location_lng": lng})
                    if city:
                        raw["city"] = city
                    data["users"][phone] = raw
                    self._save(data)
                    logger.info(f"updated location for user={user_id} to {lat}, {lng}")
                    return User.model_validate(raw)
        return None

    # Conversations and messages
    def get_or_create_conversation(self, user_id: str, day: Optional[date] = None) -> Conversation:
        day = day or utcnow().date()
        with _lock:
            data = self._load()
            for raw in data["conversations"]:
                if raw["user_id"] == user_id and raw["session_day"] == day.isoformat():
                    return Conversation.model_validate(raw)
            conversation = Conversation(id=f"session_{uuid.uuid4().hex[:12]}", user_id=user_id, session_day=day)
            data["conversations"].append(conversation.model_dump(mode="json"))
            self._save(data)
        return conversation

    def save_message(self, conversation_id: str, role: str, content: str, timestamp: Optional[datetime] = None) -> MessageRecord:
        record = MessageRecord(conversation_id=conversation_id, role=role, content=content, timestamp=timestamp or utcnow())
        with _lock:
            data = self._load()
            data["messages"].append(record.model_dump(mode="json"))
            self._save(data)
        return record

    def recent_messages(self, user_id: str, limit: int = 10) -> List[MessageRecord]:
        """Last ``limit`` messages across the user's conversations, oldest first."""
        data = self._load()
        conversation_ids = {c["id"] for c in data["conversations"] if c["user_id"] == user_id}
        items = [MessageRecord.model_validate(m) for m in data["messages"] if m["conversation_id"] in conversation_ids]
        items.sort(key=lambda m: m.timestamp)
        return items[-limit:] if limit else items

    # Conversation state
    def load_conversation_state(self, user_id: str, conversation_id: str) -> Optional[ConversationState]:
        raw = self._load()["conversation_states"].get(state_key(user_id, conversation_id))
        return ConversationState.model_validate(raw) if raw else None

    def save_conversation_state(self, state: ConversationState) -> None:
        key = state_key(state.metadata.user_id, state.metadata.conversation_id)
        with _lock:
            data = self._load()
            data["conversation_states"][key] = state.model_dump(mode="json")
            self._save(data)

    # Health profiles
    def get_health_profile(self, user_id: str) -> Optional[HealthProfile]:
        raw = self._load()["health_profiles"].get(user_id)
        return HealthProfile.model_validate(raw) if raw else None

    def save_health_profile(self, profile: HealthProfile) -> None:
        with _lock:
            data = self._load()
            data["health_profiles"][profile.user_id] = profile.model_dump(mode="json")
            self._save(data)

    def list_health_profiles(self) -> List[HealthProfile]:
        return [HealthProfile.model_validate(raw) for raw in self._load()["health_profiles"].values()]

    # Clinic search audit log
    def save_clinic_search(self, user_id: str, location: str, service_type: Optional[str], results: List[Clinic]) -> None:
        row = {
            "id": str(uuid.uuid4()),
            "user_id": user_id,
            "location": location,
            "service_type": service_type or "general",
            "results": [c.model_dump(mode="json") for c in results],
            "created_at": utcnow().isoformat(),
        }
        with _lock:
            data = self._load()
            data["clinic_searches"].append(row)
            self._save(data)

    def clinic_search_history(self, user_id: str, limit: int = 10) -> List[Dict[str, Any]]:
        rows = [r for r in self._load()["clinic_searches"] if r["user_id"] == user_id]
        rows.sort(key=lambda r: r["created_at"], reverse=True)
        return rows[:limit]


def get_storage(data_dir: Optional[Path] = None):
    """SQLite storage when USE_SQLITE is set, JSON storage otherwise."""
    if settings.USE_SQLITE:
        from .sqlite_storage import SQLiteStorageService

        return SQLiteStorageService(db_path=settings.SQLITE_DB_PATH)
    return StorageService(data_dir=data_dir)
