from typing import Iterable, List, Optional, Sequence, Tuple

from graph.state import SymptomAssessment, Urgency
from services.lexicon import (
    GENERAL_CONDITIONS,
    GENERAL_FALLBACK_CONDITION,
    GENERAL_RECOMMENDATIONS,
    HIGH_URGENCY_SYMPTOMS,
    MEDIUM_URGENCY_SYMPTOMS,
    RECOMMENDED_TESTS,
    REFERRAL_SYMPTOMS,
    STI_CONDITIONS,
    STI_FALLBACK_CONDITION,
    STI_INDICATIVE_SYMPTOMS,
    STI_RECOMMENDATIONS,
)

GENERAL = "general"
STI = "sti"


def _any_symptom(symptoms: Sequence[str], needles: Iterable[str]) -> bool:
    return any(needle in s for needle in needles for s in symptoms)


def _mapped(symptoms: Sequence[str], table: Tuple[Tuple[str, str], ...]) -> List[str]:
    return [label for needle, label in table if _any_symptom(symptoms, (needle,))]


def determine_urgency(symptoms: Sequence[str]) -> Urgency:
    lowered = [s.lower() for s in symptoms]
    if _any_symptom(lowered, HIGH_URGENCY_SYMPTOMS):
        return Urgency.HIGH
    if _any_symptom(lowered, MEDIUM_URGENCY_SYMPTOMS):
        return Urgency.MEDIUM
    return Urgency.LOW


def assessment_kind(symptoms: Sequence[str], service_type: Optional[str] = None) -> str:
    if service_type == "sti_testing" or _any_symptom([s.lower() for s in symptoms], STI_INDICATIVE_SYMPTOMS):
        return STI
    return GENERAL


def assess(symptoms: Sequence[str], kind: str = GENERAL) -> SymptomAssessment:
    lowered = [s.lower() for s in symptoms]
    if kind == STI:
        conditions = _mapped(lowered, STI_CONDITIONS) or [STI_FALLBACK_CONDITION]
        recommendations = list(STI_RECOMMENDATIONS)
        tests = _mapped(lowered, RECOMMENDED_TESTS)
    else:
        conditions = _mapped(lowered, GENERAL_CONDITIONS) or [GENERAL_FALLBACK_CONDITION]
        recommendations = list(GENERAL_RECOMMENDATIONS)
        tests = []
    return SymptomAssessment(
        possible_conditions=conditions,
        urgency=determine_urgency(lowered),
        recommendations=recommendations,
        referral_needed=_any_symptom(lowered, REFERRAL_SYMPTOMS),
        testing_recommended=tests,
    )


def _numbered(title: str, items: Sequence[str]) -> str:
    lines = [title] + [f"{i}. {item}" for i, item in enumerate(items, start=1)]
    return "\n".join(lines)


def render_assessment(assessment: SymptomAssessment, location_known: bool = False) -> str:
    parts = []
    if assessment.urgency == Urgency.HIGH:
        parts.append("⚠️ These symptoms may need prompt medical attention.")
    elif assessment.urgency == Urgency.MEDIUM:
        parts.append("📋 These symptoms should be evaluated by a healthcare provider.")
    if assessment.possible_conditions:
        parts.append(_numbered("Possible causes:", assessment.possible_conditions))
    if assessment.recommendations:
        parts.append(_numbered("💡 Recommendations:", assessment.recommendations))
    if assessment.testing_recommended:
        parts.append(_numbered("🔬 Recommended testing:", assessment.testing_recommended))
    if assessment.referral_needed and location_known:
        parts.append("🏥 Would you like me to help you find nearby clinics for testing or consultation?")
    elif assessment.referral_needed:
        parts.append("🏥 Please share your location so I can help you find nearby clinics.")
    return "\n\n".join(parts)
