import re
from datetime import date, datetime
from typing import Optional

import dateparser

from graph.state import PeriodPrediction
from services.health_service import FLOW_GUIDANCE, HealthService
from services.lexicon import keyword_in

DATE_PATTERN = re.compile(r"\b(\d{1,2})[/.-](\d{1,2})[/.-](\d{2,4})\b")
DAYS_PATTERN = re.compile(r"\b(\d{1,3})\s*(?:days?|d)\b")
NUMBER_PATTERN = re.compile(r"\b(\d{1,3})\b")
NATURAL_DATE_PATTERN = re.compile(r"(?:started|began|start|came|begin)\s+(?:on\s+)?(.+)$")
CYCLE_PATTERN = re.compile(r"\bcycle\D{0,15}?(\d{1,3})|\b(\d{1,3})\s*-?\s*days?\s+cycle")
PERIOD_LENGTH_PATTERN = re.compile(
    r"(?:\bperiod\s+(?:lasts?|lasted|length)|\bbleed(?:ing)?\s+(?:for|lasts?))\D{0,15}?(\d{1,3})"
)

ASK_CYCLE_LENGTH = (
    "How long is your cycle usually? Tell me the number of days from the first day of one period "
    'to the first day of the next, e.g. "My cycle is 28 days".'
)
ASK_LAST_PERIOD = (
    "To predict your next period I need the date your last period started. "
    'You can say "My last period started 15/01/2024".'
)
FUTURE_DATE = "That date is in the future. Please tell me the day your last period actually started (DD/MM/YYYY)."
PERIOD_HELP = """📅 I can help you track your cycle. You can tell me:
• "My last period started 15/01/2024"
• "My cycle is 28 days"
• "My period lasts 5 days"
• "My flow is heavy"
• "Remind me 3 days before"
• "When is my next period?\""""


def parse_period_date(text: str, today: date) -> Optional[date]:
    """DD/MM/YYYY first, then natural language ("yesterday", "3rd of May")."""
    m = DATE_PATTERN.search(text)
    if m:
        day, month, year = (int(g) for g in m.groups())
        if year < 100:
            year += 2000
        try:
            return date(year, month, day)
        except ValueError:
            return None

    m = NATURAL_DATE_PATTERN.search(text)
    if not m:
        return None
    parsed = dateparser.parse(
        m.group(1).strip(" .!?"),
        languages=["en"],
        settings={
            "DATE_ORDER": "DMY",
            "PREFER_DATES_FROM": "past",
            "RELATIVE_BASE": datetime(today.year, today.month, today.day),
        },
    )
    return parsed.date() if parsed else None


def _days_value(text: str) -> Optional[int]:
    m = DAYS_PATTERN.search(text) or NUMBER_PATTERN.search(text)
    return int(m.group(1)) if m else None


def _field_value(pattern: re.Pattern, text: str) -> Optional[int]:
    m = pattern.search(text)
    if not m:
        return None
    return int(next(g for g in m.groups() if g is not None))


def describe_prediction(prediction: PeriodPrediction, today: date) -> str:
    days_until = (prediction.date - today).days
    if days_until > 1:
        when = f"in {days_until} days"
    elif days_until == 1:
        when = "tomorrow"
    elif days_until == 0:
        when = "today"
    else:
        when = f"{-days_until} day(s) ago, so it may be running late"
    window = prediction.fertility_window
    return (
        f"📅 Your next period is expected on {prediction.date.strftime('%A, %d %B %Y')} ({when}).\n"
        f"Confidence: {prediction.confidence_percent}% (based on a {prediction.cycle_length_used}-day cycle)\n"
        f"🌱 Fertile window: {window.start.strftime('%d %b')} - {window.end.strftime('%d %b')}"
    )


def _prediction_or_prompt(health: HealthService, user_id: str, today: date) -> str:
    profile = health.get_profile(user_id)
    prediction = health.predict(user_id)
    if prediction:
        return describe_prediction(prediction, today)
    if profile is None or profile.last_period is None:
        return ASK_LAST_PERIOD
    return ASK_CYCLE_LENGTH


def handle_period_message(message: str, user_id: str, health: HealthService, today: date) -> str:
    """Apply one period-tracking message to the user's profile and say what happened.

    Rejected values come back as the guidance text and change nothing.
    """
    text = (message or "").lower()

    if "remind" in text:
        if any(keyword_in(text, w) for w in ("stop", "off", "disable", "cancel", "no more")):
            return health.set_reminder(user_id, enabled=False).message
        return health.set_reminder(user_id, enabled=True, days=_days_value(text)).message

    # one message can state both the cycle and the period length
    updates = []
    if not DATE_PATTERN.search(text):
        cycle_days = _field_value(CYCLE_PATTERN, text)
        if cycle_days is not None:
            updates.append(health.set_cycle_length(user_id, cycle_days).message)
    period_days = _field_value(PERIOD_LENGTH_PATTERN, text)
    if period_days is not None:
        updates.append(health.set_period_length(user_id, period_days).message)
    if updates:
        return "\n".join(updates)

    if keyword_in(text, "flow"):
        for level in ("light", "medium", "heavy"):
            if keyword_in(text, level):
                return health.set_flow_intensity(user_id, level).message
        return FLOW_GUIDANCE

    started = parse_period_date(text, today)
    if started is not None:
        if started > today:
            return FUTURE_DATE
        profile = health.record_period(user_id, started)
        confirmation = f"Got it! I've logged your period starting {started.strftime('%d %B %Y')}. 🩸"
        if not profile.cycle_length:
            return f"{confirmation}\n\n{ASK_CYCLE_LENGTH}"
        return f"{confirmation}\n\n{_prediction_or_prompt(health, user_id, today)}"

    if any(keyword_in(text, k) for k in ("next period", "when", "ovulation", "fertile")):
        return _prediction_or_prompt(health, user_id, today)

    return PERIOD_HELP
