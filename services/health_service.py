from datetime import date, timedelta
from typing import Callable, Iterable, List, Optional, Tuple

from graph.state import (
    FertilityWindow,
    FlowIntensity,
    HealthProfile,
    PeriodEntry,
    PeriodPrediction,
    ProfileUpdate,
    utcnow,
)
from .logger import setup_logger

logger = setup_logger("health")

MAX_PERIOD_HISTORY = 12
CYCLE_LENGTH_RANGE = (21, 35)
PERIOD_LENGTH_RANGE = (2, 10)
REMINDER_DAYS_RANGE = (1, 7)
BASE_CONFIDENCE = 70
CONFIDENCE_STEP = 5
MAX_CONFIDENCE = 95
MIN_HISTORY_FOR_AVERAGE = 3
LUTEAL_PHASE_DAYS = 14

CYCLE_LENGTH_GUIDANCE = "A typical menstrual cycle is between 21-35 days. Please enter a number in that range."
PERIOD_LENGTH_GUIDANCE = "A period usually lasts between 2-10 days. Please enter a number in that range."
REMINDER_DAYS_GUIDANCE = "I can remind you between 1 and 7 days before your period. Please pick a number in that range."
FLOW_GUIDANCE = "Please describe your flow as light, medium or heavy."


def average_cycle_length(history: Iterable[PeriodEntry]) -> Optional[int]:
    """Rounded mean gap in days between consecutive periods.

    Gaps are taken over a date-sorted copy so backfilled entries do not skew
    the estimate; the stored history keeps its insertion order.
    """
    dates = sorted(entry.date for entry in history)
    gaps = [(b - a).days for a, b in zip(dates, dates[1:])]
    if not gaps:
        return None
    avg = round(sum(gaps) / len(gaps))
    return avg if avg > 0 else None


def predict_next_period(profile: Optional[HealthProfile]) -> Optional[PeriodPrediction]:
    if profile is None or profile.last_period is None or not profile.cycle_length:
        return None

    cycle_length = profile.cycle_length
    confidence = BASE_CONFIDENCE
    history = profile.period_history
    if len(history) >= MIN_HISTORY_FOR_AVERAGE:
        averaged = average_cycle_length(history)
        if averaged:
            cycle_length = averaged
        confidence = min(MAX_CONFIDENCE, BASE_CONFIDENCE + CONFIDENCE_STEP * len(history))

    next_period = profile.last_period + timedelta(days=cycle_length)
    ovulation = next_period - timedelta(days=LUTEAL_PHASE_DAYS)
    return PeriodPrediction(
        date=next_period,
        confidence_percent=confidence,
        fertility_window=FertilityWindow(start=ovulation - timedelta(days=3), end=ovulation + timedelta(days=1)),
        cycle_length_used=cycle_length,
    )


def _in_range(value: int, bounds: Tuple[int, int]) -> bool:
    return bounds[0] <= value <= bounds[1]


class HealthService:
    """Create-or-update access to a user's health profile.

    Every mutator creates the profile on first use. Out-of-range values are
    rejected with the guidance text and leave the stored profile untouched.
    """

    def __init__(self, storage, clock: Callable = utcnow) -> None:
        self.storage = storage
        self.clock = clock

    def get_profile(self, user_id: str) -> Optional[HealthProfile]:
        return self.storage.get_health_profile(user_id)

    def _load_or_new(self, user_id: str) -> HealthProfile:
        return self.storage.get_health_profile(user_id) or HealthProfile(user_id=user_id)

    def _save(self, profile: HealthProfile, what: str) -> HealthProfile:
        profile.updated_at = self.clock()
        self.storage.save_health_profile(profile)
        logger.info(f"health profile user={profile.user_id} updated: {what}")
        return profile

    def record_period(
        self,
        user_id: str,
        day: date,
        length: Optional[int] = None,
        intensity: Optional[FlowIntensity] = None,
    ) -> HealthProfile:
        profile = self._load_or_new(user_id)
        profile.period_history.append(
            PeriodEntry(date=day, length=length or 5, intensity=intensity or FlowIntensity.MEDIUM)
        )
        # FIFO eviction by insertion order
        if len(profile.period_history) > MAX_PERIOD_HISTORY:
            profile.period_history = profile.period_history[-MAX_PERIOD_HISTORY:]
        profile.last_period = day
        profile.period_length = length or profile.period_length
        profile.flow_intensity = intensity or profile.flow_intensity
        return self._save(profile, f"period recorded {day.isoformat()}")

    def set_cycle_length(self, user_id: str, days: int) -> ProfileUpdate:
        if not _in_range(days, CYCLE_LENGTH_RANGE):
            return ProfileUpdate(accepted=False, message=CYCLE_LENGTH_GUIDANCE, profile=self.get_profile(user_id))
        profile = self._load_or_new(user_id)
        profile.cycle_length = days
        profile = self._save(profile, f"cycle_length={days}")
        return ProfileUpdate(accepted=True, message=f"I've set your cycle length to {days} days.", profile=profile)

    def set_period_length(self, user_id: str, days: int) -> ProfileUpdate:
        if not _in_range(days, PERIOD_LENGTH_RANGE):
            return ProfileUpdate(accepted=False, message=PERIOD_LENGTH_GUIDANCE, profile=self.get_profile(user_id))
        profile = self._load_or_new(user_id)
        profile.period_length = days
        profile = self._save(profile, f"period_length={days}")
        return ProfileUpdate(accepted=True, message=f"Got it, your period usually lasts {days} days.", profile=profile)

    def set_flow_intensity(self, user_id: str, intensity: str) -> ProfileUpdate:
        try:
            flow = FlowIntensity(intensity.strip().capitalize())
        except ValueError:
            return ProfileUpdate(accepted=False, message=FLOW_GUIDANCE, profile=self.get_profile(user_id))
        profile = self._load_or_new(user_id)
        profile.flow_intensity = flow
        profile = self._save(profile, f"flow_intensity={flow.value}")
        return ProfileUpdate(accepted=True, message=f"Noted, your flow is usually {flow.value.lower()}.", profile=profile)

    def set_reminder(self, user_id: str, enabled: bool, days: Optional[int] = None) -> ProfileUpdate:
        if days is not None and not _in_range(days, REMINDER_DAYS_RANGE):
            return ProfileUpdate(accepted=False, message=REMINDER_DAYS_GUIDANCE, profile=self.get_profile(user_id))
        profile = self._load_or_new(user_id)
        profile.reminder_enabled = enabled
        if days is not None:
            profile.reminder_days = days
        profile = self._save(profile, f"reminder enabled={enabled} days={profile.reminder_days}")
        if not enabled:
            return ProfileUpdate(accepted=True, message="Period reminders are now off.", profile=profile)
        return ProfileUpdate(
            accepted=True,
            message=f"I'll remind you {profile.reminder_days} day(s) before your next period. 📅",
            profile=profile,
        )

    def track_symptoms(self, user_id: str, symptoms: List[str]) -> HealthProfile:
        profile = self._load_or_new(user_id)
        profile.symptoms = _union(profile.symptoms, symptoms)
        return self._save(profile, f"symptoms={profile.symptoms}")

    def add_medication(self, user_id: str, medication: str) -> HealthProfile:
        profile = self._load_or_new(user_id)
        profile.medications = _union(profile.medications, [medication])
        return self._save(profile, f"medication added {medication}")

    def add_allergy(self, user_id: str, allergy: str) -> HealthProfile:
        profile = self._load_or_new(user_id)
        profile.allergies = _union(profile.allergies, [allergy])
        return self._save(profile, f"allergy added {allergy}")

    def predict(self, user_id: str) -> Optional[PeriodPrediction]:
        return predict_next_period(self.get_profile(user_id))


def _union(existing: List[str], new: Iterable[str]) -> List[str]:
    out = list(existing)
    for item in new:
        if item and item not in out:
            out.append(item)
    return out
