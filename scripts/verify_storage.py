"""Small non-destructive verification for both storage backends.

Runs the same user / conversation / profile / audit-log round trip against:
 1. JSON storage in a temporary directory
 2. SQLite storage in a temporary database file

Run from project root (in your activated venv):
  python scripts/verify_storage.py
"""

import pprint
import tempfile
import uuid
from datetime import date
from pathlib import Path

from graph.state import Clinic
from services.conversation_store import ConversationStateStore
from services.health_service import HealthService
from services.sqlite_storage import SQLiteStorageService
from services.storage import StorageService

pp = pprint.PrettyPrinter(indent=2)


def run_smoke(storage, label: str) -> None:
    print(f"\n--- Running storage smoke tests: {label} ---")
    phone = f"+234{uuid.uuid4().int % 10**10:010d}"

    user = storage.find_or_create_user(phone)
    assert storage.find_or_create_user(phone).id == user.id, "find_or_create_user is not idempotent"
    storage.update_user_location(user.id, 6.6051, 3.3958, "Ogudu")
    pp.pprint(storage.get_user(user.id).model_dump(mode="json"))

    conversation = storage.get_or_create_conversation(user.id)
    storage.save_message(conversation.id, "USER", "hello")
    storage.save_message(conversation.id, "ASSISTANT", "Hi there!")
    print("Recent messages:")
    pp.pprint([m.model_dump(mode="json") for m in storage.recent_messages(user.id)])

    states = ConversationStateStore(storage)
    state = states.get(user.id, conversation.id)
    states.update(state.touched())
    print("message_count after one touch:", states.get(user.id, conversation.id).metadata.message_count)

    health = HealthService(storage)
    health.record_period(user.id, date(2024, 1, 1))
    print("cycle 40:", health.set_cycle_length(user.id, 40).message)
    print("cycle 28:", health.set_cycle_length(user.id, 28).message)
    pp.pprint(health.predict(user.id).model_dump(mode="json"))

    storage.save_clinic_search(user.id, "Ogudu, Lagos", None, [Clinic(name="Test Clinic", address="Ogudu")])
    pp.pprint(storage.clinic_search_history(user.id))
    print(f"--- Finished tests for {label} ---\n")


def main() -> None:
    with tempfile.TemporaryDirectory(prefix="obrin-json-") as tmp:
        run_smoke(StorageService(data_dir=Path(tmp)), f"JSON {tmp}")

    tmp_db = tempfile.NamedTemporaryFile(prefix="obrin-test-", suffix=".db", delete=False)
    tmp_db.close()
    run_smoke(SQLiteStorageService(db_path=tmp_db.name), f"SQLite {tmp_db.name}")
    # Left in place so it can be inspected
    print("SQLite DB path (left for inspection):", tmp_db.name)


if __name__ == "__main__":
    main()
