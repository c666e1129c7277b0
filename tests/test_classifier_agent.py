from datetime import datetime, timezone

from agents.classifier_agent import classify, classify_message, extract_symptoms
from graph.state import Stage, Urgency
from services.conversation_store import initial_state

T0 = datetime(2024, 1, 1, 8, 0, tzinfo=timezone.utc)
T1 = datetime(2024, 1, 1, 8, 5, tzinfo=timezone.utc)


def fresh_state():
    return initial_state("user-1", "session_abc", T0)


def test_burning_and_discharge():
    new_state, result = classify("I have burning and discharge", fresh_state(), T1)
    assert result.symptoms == ["burning", "discharge"]
    assert new_state.context.symptoms == ["burning", "discharge"]
    assert new_state.stage == Stage.SYMPTOM_CHECK


def test_first_matching_stage_wins():
    # "hello" (greeting) is checked before "clinic" (clinic search)
    assert classify_message("hello, I need a clinic").stage == Stage.GREETING
    assert classify_message("I need a clinic").stage == Stage.CLINIC_SEARCH


def test_no_match_keeps_stage_and_counts_message():
    state = fresh_state()
    state.stage = Stage.CLINIC_DETAILS
    new_state, result = classify("ok thanks", state, T1)
    assert result.stage is None
    assert new_state.stage == Stage.CLINIC_DETAILS
    assert new_state.metadata.message_count == 1
    assert new_state.metadata.last_updated == T1


def test_input_state_is_not_mutated():
    state = fresh_state()
    classify("urgent: I have pain", state, T1)
    assert state.metadata.message_count == 0
    assert state.context.urgency is None
    assert state.context.symptoms == []


def test_urgency_always_overwrites():
    state, _ = classify("I need help urgently, this is an emergency", fresh_state(), T1)
    assert state.context.urgency == Urgency.HIGH
    state, _ = classify("can I see someone soon", state, T1)
    assert state.context.urgency == Urgency.MEDIUM
    state, _ = classify("thanks", state, T1)
    assert state.context.urgency == Urgency.LOW


def test_service_type_kept_when_nothing_matches():
    state, _ = classify("I want family planning", fresh_state(), T1)
    assert state.context.service_type == "family_planning"
    state, _ = classify("ok", state, T1)
    assert state.context.service_type == "family_planning"


def test_emergency_contraception_service_type():
    state, _ = classify("where can I get emergency contraception", fresh_state(), T1)
    assert state.context.service_type == "emergency_contraception"


def test_symptoms_replaced_only_when_new_ones_found():
    state, _ = classify("I have itching", fresh_state(), T1)
    state, _ = classify("what should I do", state, T1)
    assert state.context.symptoms == ["itching"]
    state, _ = classify("now there is fever", state, T1)
    assert state.context.symptoms == ["fever"]


def test_short_keywords_match_whole_words_only():
    assert classify_message("I think so").stage is None
    assert classify_message("hi there").stage == Stage.GREETING


def test_multi_word_symptoms():
    assert extract_symptoms("i missed period and have back pain") == ["missed period", "back pain", "pain"]


def test_period_tracking_intent():
    assert classify_message("My last period started 15/01/2024").intent == "period_tracking"
    assert classify_message("is the pill safe").intent == "contraception"
    assert classify_message("random words").intent == "general_health"
