from datetime import date, timedelta

import pytest

from graph.state import FlowIntensity, HealthProfile, PeriodEntry
from services.health_service import (
    CYCLE_LENGTH_GUIDANCE,
    MAX_PERIOD_HISTORY,
    REMINDER_DAYS_GUIDANCE,
    HealthService,
    average_cycle_length,
    predict_next_period,
)


@pytest.fixture
def health(storage):
    return HealthService(storage)


def test_history_is_capped_fifo(health):
    start = date(2023, 1, 1)
    days = [start + timedelta(days=28 * i) for i in range(15)]
    for i, d in enumerate(days, start=1):
        profile = health.record_period("u1", d)
        assert len(profile.period_history) <= MAX_PERIOD_HISTORY
    assert [e.date for e in profile.period_history] == days[-12:]
    assert health.get_profile("u1").last_period == days[-1]


def test_record_period_defaults(health):
    profile = health.record_period("u1", date(2024, 1, 1))
    entry = profile.period_history[0]
    assert entry.length == 5
    assert entry.intensity == FlowIntensity.MEDIUM


def _profile(history_len: int) -> HealthProfile:
    start = date(2023, 6, 1)
    history = [PeriodEntry(date=start + timedelta(days=30 * i)) for i in range(history_len)]
    last = history[-1].date if history else date(2024, 1, 1)
    return HealthProfile(user_id="u1", last_period=last, cycle_length=28, period_history=history)


def test_confidence_grows_with_history_and_caps():
    confidences = [predict_next_period(_profile(h)).confidence_percent for h in range(3, 9)]
    assert confidences == sorted(confidences)
    assert confidences[0] == 85
    assert all(c == 95 for c in confidences[2:])


def test_prediction_is_deterministic():
    profile = _profile(4)
    assert predict_next_period(profile) == predict_next_period(profile)


@pytest.mark.parametrize("history_len", [0, 2, 5])
def test_fertility_window_placement(history_len):
    prediction = predict_next_period(_profile(history_len))
    window = prediction.fertility_window
    assert (window.end - window.start).days == 4
    assert window.end == prediction.date - timedelta(days=13)


@pytest.mark.parametrize("days, accepted", [(20, False), (21, True), (35, True), (36, False)])
def test_cycle_length_boundaries(health, days, accepted):
    result = health.set_cycle_length("u1", days)
    assert result.accepted is accepted


def test_without_history_uses_stored_cycle():
    profile = HealthProfile(user_id="u1", last_period=date(2024, 1, 1), cycle_length=28)
    prediction = predict_next_period(profile)
    assert prediction.date == date(2024, 1, 29)
    assert prediction.confidence_percent == 70


def test_rejected_cycle_length_leaves_profile_alone(health):
    health.set_cycle_length("u1", 30)
    result = health.set_cycle_length("u1", 40)
    assert result.accepted is False
    assert result.message == CYCLE_LENGTH_GUIDANCE
    assert health.get_profile("u1").cycle_length == 30


def test_rejected_cycle_length_creates_nothing(health, storage):
    health.set_cycle_length("u2", 40)
    assert storage.get_health_profile("u2") is None


def test_prediction_needs_last_period_and_cycle():
    assert predict_next_period(None) is None
    assert predict_next_period(HealthProfile(user_id="u1", cycle_length=28)) is None
    assert predict_next_period(HealthProfile(user_id="u1", last_period=date(2024, 1, 1))) is None


def test_average_uses_date_order():
    entries = [PeriodEntry(date=d) for d in (date(2024, 3, 1), date(2024, 1, 1), date(2024, 1, 31))]
    assert average_cycle_length(entries) == 30


def test_average_over_history_replaces_stored_cycle():
    history = [PeriodEntry(date=date(2024, 1, 1) + timedelta(days=30 * i)) for i in range(3)]
    profile = HealthProfile(user_id="u1", last_period=history[-1].date, cycle_length=28, period_history=history)
    prediction = predict_next_period(profile)
    assert prediction.cycle_length_used == 30
    assert prediction.date == history[-1].date + timedelta(days=30)


def test_reminder_days_validated(health):
    result = health.set_reminder("u1", enabled=True, days=9)
    assert result.accepted is False
    assert result.message == REMINDER_DAYS_GUIDANCE
    result = health.set_reminder("u1", enabled=True, days=2)
    assert result.accepted is True
    assert result.profile.reminder_enabled is True
    assert result.profile.reminder_days == 2


def test_symptoms_medications_allergies_are_sets(health):
    health.track_symptoms("u1", ["cramps", "nausea"])
    profile = health.track_symptoms("u1", ["nausea", "fever"])
    assert profile.symptoms == ["cramps", "nausea", "fever"]
    health.add_medication("u1", "ibuprofen")
    profile = health.add_medication("u1", "ibuprofen")
    assert profile.medications == ["ibuprofen"]
    assert health.add_allergy("u1", "penicillin").allergies == ["penicillin"]


@pytest.mark.parametrize("value, accepted", [(1, False), (2, True), (10, True), (11, False)])
def test_period_length_boundaries(health, value, accepted):
    assert health.set_period_length("u1", value).accepted is accepted


def test_flow_intensity_parsing(health):
    assert health.set_flow_intensity("u1", "heavy").profile.flow_intensity == FlowIntensity.HEAVY
    assert health.set_flow_intensity("u1", "torrential").accepted is False
