from datetime import date
from typing import Iterable, List, Optional, Tuple

from graph.state import HealthProfile, PeriodPrediction
from .health_service import predict_next_period
from .logger import setup_logger
from .notifier import deliver

logger = setup_logger("reminders")


def reminder_text(prediction: PeriodPrediction, days_until: int) -> str:
    when = prediction.date.strftime("%A, %d %B")
    if days_until == 0:
        return f"🌸 Heads up: your period is expected to start today ({when}). Keep pads or tampons handy and take care of yourself! 💙"
    if days_until == 1:
        return f"🌸 Reminder: your period is expected tomorrow ({when}). A good time to pack some supplies. 💙"
    return f"🌸 Reminder: your period is expected in {days_until} days, on {when}. Reply \"stop reminders\" to turn these off."


def due_reminders(profiles: Iterable[HealthProfile], today: date) -> List[Tuple[HealthProfile, str]]:
    """Profiles with a reminder due today and the text to send them.

    A reminder fires ``reminder_days`` before the predicted date, the day
    before, and on the day itself.
    """
    due = []
    for profile in profiles:
        if not profile.reminder_enabled:
            continue
        prediction = predict_next_period(profile)
        if prediction is None:
            continue
        days_until = (prediction.date - today).days
        if days_until in {profile.reminder_days, 1, 0}:
            due.append((profile, reminder_text(prediction, days_until)))
    return due


async def send_due_reminders(storage, notifier, today: Optional[date] = None) -> int:
    """Send today's reminders; returns how many were delivered."""
    today = today or date.today()
    sent = 0
    for profile, text in due_reminders(storage.list_health_profiles(), today):
        user = storage.get_user(profile.user_id)
        if user is None:
            logger.warning(f"reminder skipped, no user for profile {profile.user_id}")
            continue
        if await deliver(notifier, user.phone_number, text):
            sent += 1
    logger.info(f"sent {sent} period reminder(s) for {today.isoformat()}")
    return sent

