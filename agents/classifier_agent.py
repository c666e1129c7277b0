from datetime import datetime
from typing import List, Optional, Tuple

from pydantic import BaseModel, Field

from graph.state import ConversationState, Stage, Urgency
from services.lexicon import (
    HIGH_URGENCY_WORDS,
    INTENT_KEYWORDS,
    MEDIUM_URGENCY_WORDS,
    SERVICE_TYPES,
    STAGE_KEYWORDS,
    SYMPTOM_VOCABULARY,
    first_match,
    keyword_in,
)


class Classification(BaseModel):
    stage: Optional[Stage] = None  # None: no keyword set matched
    intent: str = "general_health"
    urgency: Urgency = Urgency.LOW
    service_type: Optional[str] = None
    symptoms: List[str] = Field(default_factory=list)


def detect_stage(text: str) -> Optional[Stage]:
    for stage, keywords in STAGE_KEYWORDS:
        if first_match(text, keywords):
            return stage
    return None


def detect_urgency(text: str) -> Urgency:
    if first_match(text, HIGH_URGENCY_WORDS):
        return Urgency.HIGH
    if first_match(text, MEDIUM_URGENCY_WORDS):
        return Urgency.MEDIUM
    return Urgency.LOW


def detect_service_type(text: str) -> Optional[str]:
    for service_type, keywords in SERVICE_TYPES:
        if first_match(text, keywords):
            return service_type
    return None


def detect_intent(text: str) -> str:
    for intent, keywords in INTENT_KEYWORDS:
        if first_match(text, keywords):
            return intent
    return "general_health"


def extract_symptoms(text: str) -> List[str]:
    """Vocabulary symptoms in the order they appear in the message."""
    found = [s for s in SYMPTOM_VOCABULARY if keyword_in(text, s)]
    return sorted(found, key=lambda s: (text.find(s), SYMPTOM_VOCABULARY.index(s)))


def classify_message(message: str) -> Classification:
    text = (message or "").lower()
    return Classification(
        stage=detect_stage(text),
        intent=detect_intent(text),
        urgency=detect_urgency(text),
        service_type=detect_service_type(text),
        symptoms=extract_symptoms(text),
    )


def apply_classification(
    state: ConversationState, result: Classification, now: Optional[datetime] = None
) -> ConversationState:
    """Return the next state; ``state`` itself is left untouched."""
    out = state.touched(now)
    if result.stage is not None:
        out.stage = result.stage
    out.context.intent = result.intent
    out.context.urgency = result.urgency
    if result.service_type is not None:
        out.context.service_type = result.service_type
    # Per-turn symptoms replace the previous turn's list; the long-term union
    # lives on the health profile.
    if result.symptoms:
        out.context.symptoms = list(result.symptoms)
    return out


def classify(
    message: str, state: ConversationState, now: Optional[datetime] = None
) -> Tuple[ConversationState, Classification]:
    result = classify_message(message)
    return apply_classification(state, result, now), result
