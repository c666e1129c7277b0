from datetime import date

import pytest

from agents.period_agent import ASK_CYCLE_LENGTH, ASK_LAST_PERIOD, FUTURE_DATE, handle_period_message, parse_period_date
from services.health_service import CYCLE_LENGTH_GUIDANCE, FLOW_GUIDANCE, HealthService

TODAY = date(2024, 2, 1)


@pytest.fixture
def health(storage):
    return HealthService(storage)


def test_last_period_without_profile_asks_for_cycle(health):
    reply = handle_period_message("My last period started 15/01/2024", "u1", health, TODAY)
    profile = health.get_profile("u1")
    assert profile.last_period == date(2024, 1, 15)
    assert profile.cycle_length is None
    assert ASK_CYCLE_LENGTH in reply


def test_cycle_then_prediction(health):
    handle_period_message("My last period started 15/01/2024", "u1", health, TODAY)
    reply = handle_period_message("My cycle is 28 days", "u1", health, TODAY)
    assert "28 days" in reply
    reply = handle_period_message("When is my next period?", "u1", health, TODAY)
    assert "Monday, 12 February 2024" in reply
    assert "in 11 days" in reply
    assert "Confidence: 70%" in reply


def test_out_of_range_cycle_returns_guidance(health):
    reply = handle_period_message("my cycle is 40 days", "u1", health, TODAY)
    assert reply == CYCLE_LENGTH_GUIDANCE
    assert health.get_profile("u1") is None


def test_future_date_is_rejected(health):
    assert handle_period_message("my period started 20/02/2024", "u1", health, TODAY) == FUTURE_DATE
    assert health.get_profile("u1") is None


def test_prediction_prompts_for_missing_data(health):
    assert handle_period_message("when is my next period", "u1", health, TODAY) == ASK_LAST_PERIOD
    handle_period_message("My last period started 15/01/2024", "u1", health, TODAY)
    assert handle_period_message("when is my next period", "u1", health, TODAY) == ASK_CYCLE_LENGTH


def test_reminders_on_and_off(health):
    reply = handle_period_message("remind me 2 days before", "u1", health, TODAY)
    assert "2 day(s)" in reply
    assert health.get_profile("u1").reminder_days == 2
    handle_period_message("stop reminders", "u1", health, TODAY)
    assert health.get_profile("u1").reminder_enabled is False


def test_flow_and_period_length(health):
    handle_period_message("my flow is heavy", "u1", health, TODAY)
    handle_period_message("my period lasts 6 days", "u1", health, TODAY)
    profile = health.get_profile("u1")
    assert profile.flow_intensity.value == "Heavy"
    assert profile.period_length == 6
    assert handle_period_message("my flow is weird", "u1", health, TODAY) == FLOW_GUIDANCE


def test_period_length_and_cycle_in_one_message(health):
    reply = handle_period_message("My period lasts 5 days and my cycle is 30 days", "u1", health, TODAY)
    profile = health.get_profile("u1")
    assert profile.period_length == 5
    assert profile.cycle_length == 30
    assert CYCLE_LENGTH_GUIDANCE not in reply


def test_only_the_invalid_field_is_rejected(health):
    reply = handle_period_message("my cycle is 40 days and my period lasts 5 days", "u1", health, TODAY)
    profile = health.get_profile("u1")
    assert CYCLE_LENGTH_GUIDANCE in reply
    assert profile.cycle_length is None
    assert profile.period_length == 5


def test_cycle_number_before_keyword(health):
    handle_period_message("I have a 26 day cycle", "u1", health, TODAY)
    assert health.get_profile("u1").cycle_length == 26


def test_parse_period_date_formats():
    assert parse_period_date("started 5-1-2024", TODAY) == date(2024, 1, 5)
    assert parse_period_date("started 05.01.24", TODAY) == date(2024, 1, 5)
    assert parse_period_date("started 31/02/2024", TODAY) is None
    assert parse_period_date("my period started yesterday", TODAY) == date(2024, 1, 31)
