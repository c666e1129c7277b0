from agents.symptom_agent import GENERAL, STI, assess, assessment_kind, determine_urgency, render_assessment
from graph.state import Urgency


def test_burning_and_discharge_sti_assessment():
    symptoms = ["burning", "discharge"]
    assert assessment_kind(symptoms) == STI
    result = assess(symptoms, STI)
    assert result.urgency == Urgency.MEDIUM
    assert result.referral_needed is True
    assert "Urine test for UTI" in result.testing_recommended
    assert "STI testing (chlamydia, gonorrhea)" in result.testing_recommended
    assert "Chlamydia or Gonorrhea" in result.possible_conditions


def test_general_assessment_has_no_tests():
    result = assess(["cramps", "irregular"], GENERAL)
    assert result.testing_recommended == []
    assert result.possible_conditions == ["Menstrual cramps or dysmenorrhea", "Irregular menstrual cycle"]
    assert result.urgency == Urgency.LOW
    assert result.referral_needed is False


def test_unknown_symptoms_fall_back():
    assert assess(["headache"], GENERAL).possible_conditions == ["General health concern requiring evaluation"]
    assert assess(["headache"], STI).possible_conditions == ["Sexual health concern requiring evaluation"]


def test_urgency_tiers():
    assert determine_urgency(["fever"]) == Urgency.HIGH
    assert determine_urgency(["severe pain"]) == Urgency.HIGH
    assert determine_urgency(["itching"]) == Urgency.MEDIUM
    assert determine_urgency(["nausea"]) == Urgency.LOW


def test_sti_service_forces_sti_kind():
    assert assessment_kind(["fatigue"], "sti_testing") == STI
    assert assessment_kind(["fatigue"]) == GENERAL


def test_render_sections_in_order():
    text = render_assessment(assess(["burning", "discharge"], STI), location_known=True)
    banner = text.index("📋")
    causes = text.index("Possible causes:")
    recs = text.index("💡 Recommendations:")
    tests = text.index("🔬 Recommended testing:")
    referral = text.index("find nearby clinics")
    assert banner < causes < recs < tests < referral
    assert "1. Chlamydia or Gonorrhea" in text


def test_render_asks_for_location_when_unknown():
    text = render_assessment(assess(["pain"], GENERAL), location_known=False)
    assert "share your location" in text
