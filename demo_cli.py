import asyncio
from datetime import date
from typing import Optional

import click
import pandas as pd

from graph.state import InboundMessage
from services.conversation_service import ConversationService
from services.health_service import predict_next_period
from services.logger import setup_logger
from services.notifier import ConsoleNotifier, TwilioNotifier
from services.reminders import send_due_reminders
from services.storage import get_storage

logger = setup_logger("cli")


@click.group()
def cli() -> None:
    pass


@cli.command()
@click.option("--phone", default="+2348000000000", help="Phone number to chat as")
@click.option("--message", default=None, help="Send a single message and exit")
def chat(phone: str, message: Optional[str]) -> None:
    """Chat with the assistant in the terminal; replies print as panels."""
    service = ConversationService(storage=get_storage(), notifier=ConsoleNotifier())

    async def send(text: str) -> None:
        await service.process_incoming_message(InboundMessage(sender_id=phone, text=text))

    if message:
        asyncio.run(send(message))
        return

    click.echo("Obrin Health assistant. Type 'exit' to quit.")
    while True:
        try:
            text = click.prompt("You")
        except (EOFError, KeyboardInterrupt, click.Abort):
            click.echo()
            break
        if text.lower().strip() in {"exit", "quit"}:
            break
        asyncio.run(send(text))


@cli.command()
@click.argument("phone")
def predict(phone: str) -> None:
    """Print the next-period prediction for a user."""
    storage = get_storage()
    user = storage.get_user_by_phone(phone)
    if user is None:
        raise click.ClickException(f"No user with phone {phone}")
    prediction = predict_next_period(storage.get_health_profile(user.id))
    if prediction is None:
        click.secho("Not enough data yet: need the last period date and cycle length.", fg="yellow")
        return
    window = prediction.fertility_window
    click.secho(f"Next period: {prediction.date.isoformat()} ({prediction.confidence_percent}% confidence)", fg="green")
    click.echo(f"Cycle length used: {prediction.cycle_length_used} days")
    click.echo(f"Fertile window: {window.start.isoformat()} to {window.end.isoformat()}")


@cli.command("send-reminders")
@click.option("--today", default=None, help="Run as if today were this date (YYYY-MM-DD)")
@click.option("--console", "use_console", is_flag=True, help="Print reminders instead of sending via Twilio")
def send_reminders(today: Optional[str], use_console: bool) -> None:
    """Send the period reminders due today."""
    run_day = date.fromisoformat(today) if today else date.today()
    notifier = ConsoleNotifier() if use_console else TwilioNotifier()
    sent = asyncio.run(send_due_reminders(get_storage(), notifier, run_day))
    click.secho(f"Sent {sent} reminder(s) for {run_day.isoformat()}", fg="green")


@cli.command("export-history")
@click.argument("phone")
@click.option("--out", "out_path", default=None, help="CSV path (default: <phone>_periods.csv)")
def export_history(phone: str, out_path: Optional[str]) -> None:
    """Write a user's period history to CSV."""
    storage = get_storage()
    user = storage.get_user_by_phone(phone)
    if user is None:
        raise click.ClickException(f"No user with phone {phone}")
    profile = storage.get_health_profile(user.id)
    rows = [e.model_dump(mode="json") for e in profile.period_history] if profile else []
    df = pd.DataFrame(rows, columns=["date", "length", "intensity"])
    if not df.empty:
        df = df.sort_values("date")
        df["gap_days"] = pd.to_datetime(df["date"]).diff().dt.days
    out_path = out_path or f"{phone.lstrip('+')}_periods.csv"
    df.to_csv(out_path, index=False)
    click.secho(f"Wrote {len(df)} period(s) to {out_path}", fg="green")


if __name__ == "__main__":
    cli()
