from datetime import date, datetime, timedelta, timezone

import pytest

from graph.state import Clinic, HealthProfile, Stage
from services.conversation_store import ConversationStateStore, follow_up_questions, initial_state
from services.lexicon import DEFAULT_FOLLOW_UP_QUESTIONS
from services.sqlite_storage import SQLiteStorageService
from services.storage import StorageService


@pytest.fixture(params=["json", "sqlite"])
def backend(request, tmp_path):
    if request.param == "json":
        return StorageService(data_dir=tmp_path)
    return SQLiteStorageService(db_path=str(tmp_path / "obrin.db"))


def test_find_or_create_user_is_idempotent(backend):
    a = backend.find_or_create_user("+2348011111111")
    b = backend.find_or_create_user("+2348011111111")
    assert a.id == b.id
    assert backend.get_user(a.id).phone_number == "+2348011111111"


def test_update_user_location(backend):
    user = backend.find_or_create_user("+2348011111111")
    backend.update_user_location(user.id, 6.6051, 3.3958, "Ogudu")
    loc = backend.get_user_by_phone("+2348011111111").location()
    assert (loc.lat, loc.lng, loc.city) == (6.6051, 3.3958, "Ogudu")


def test_one_conversation_per_day(backend):
    user = backend.find_or_create_user("+2348011111111")
    day = date(2024, 2, 1)
    first = backend.get_or_create_conversation(user.id, day)
    assert backend.get_or_create_conversation(user.id, day).id == first.id
    assert backend.get_or_create_conversation(user.id, day + timedelta(days=1)).id != first.id


def test_recent_messages_oldest_first(backend):
    user = backend.find_or_create_user("+2348011111111")
    conv = backend.get_or_create_conversation(user.id, date(2024, 2, 1))
    base = datetime(2024, 2, 1, 9, 0, tzinfo=timezone.utc)
    for i in range(12):
        backend.save_message(conv.id, "USER" if i % 2 == 0 else "ASSISTANT", f"m{i}", base + timedelta(minutes=i))
    recent = backend.recent_messages(user.id, 10)
    assert [m.content for m in recent] == [f"m{i}" for i in range(2, 12)]


def test_conversation_state_upsert(backend):
    state = initial_state("u1", "session_1")
    backend.save_conversation_state(state)
    state = state.touched()
    state.stage = Stage.CLINIC_SEARCH
    backend.save_conversation_state(state)
    loaded = backend.load_conversation_state("u1", "session_1")
    assert loaded.stage == Stage.CLINIC_SEARCH
    assert loaded.metadata.message_count == 1
    assert backend.load_conversation_state("u1", "other") is None


def test_health_profile_round_trip(backend):
    profile = HealthProfile(user_id="u1", last_period=date(2024, 1, 1), cycle_length=28)
    backend.save_health_profile(profile)
    profile.cycle_length = 30
    backend.save_health_profile(profile)
    assert backend.get_health_profile("u1").cycle_length == 30
    assert [p.user_id for p in backend.list_health_profiles()] == ["u1"]


def test_clinic_search_audit_log(backend):
    backend.save_clinic_search("u1", "Ogudu, Lagos", None, [Clinic(name="A", address="B")])
    rows = backend.clinic_search_history("u1")
    assert len(rows) == 1
    assert rows[0]["service_type"] == "general"
    assert rows[0]["results"][0]["name"] == "A"


def test_state_store_get_update_reset(backend):
    store = ConversationStateStore(backend)
    state = store.get("u1", "session_1")
    assert state.stage == Stage.GREETING
    assert state.metadata.message_count == 0

    state = state.touched()
    state.stage = Stage.SYMPTOM_CHECK
    store.update(state)
    assert store.get("u1", "session_1").stage == Stage.SYMPTOM_CHECK

    reset = store.reset("u1", "session_1")
    assert reset.stage == Stage.GREETING
    assert store.get("u1", "session_1").metadata.message_count == 0


def test_follow_up_questions_per_stage():
    assert len(follow_up_questions(initial_state("u1", "c1"))) == 3
    state = initial_state("u1", "c1")
    state.stage = Stage.FOLLOW_UP
    assert follow_up_questions(state) == list(DEFAULT_FOLLOW_UP_QUESTIONS)
