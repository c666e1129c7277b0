import asyncio
from typing import List, Optional, Protocol, Tuple

from rich.console import Console
from rich.panel import Panel

from .config import settings
from .external import guarded_call
from .logger import setup_logger

logger = setup_logger("notifier")

MAX_MESSAGE_LENGTH = 1600


class Notifier(Protocol):
    async def send(self, to: str, body: str) -> None:
        ...


def split_message(body: str, limit: int = MAX_MESSAGE_LENGTH) -> List[str]:
    """Cut ``body`` into WhatsApp-sized parts at natural breaks.

    Prefers a newline in the last 30% of a part, then a full stop or a space
    in the last 20%, and only then a hard cut at ``limit``.
    """
    if len(body) <= limit:
        return [body]
    parts = []
    remaining = body
    while remaining:
        cut = limit
        if len(remaining) > limit:
            window = remaining[:limit]
            newline = window.rfind("\n")
            period = window.rfind(".")
            space = window.rfind(" ")
            if newline > limit * 0.7:
                cut = newline + 1
            elif period > limit * 0.8:
                cut = period + 1
            elif space > limit * 0.8:
                cut = space + 1
        parts.append(remaining[:cut])
        remaining = remaining[cut:]
    return parts


def whatsapp_address(number: str) -> str:
    return number if number.startswith("whatsapp:") else f"whatsapp:{number}"


class TwilioNotifier:
    """Sends replies through the Twilio WhatsApp API, one part at a time."""

    def __init__(self, client=None, from_number: Optional[str] = None, pause_s: float = 1.0) -> None:
        if client is None:
            from twilio.rest import Client

            if not (settings.TWILIO_ACCOUNT_SID and settings.TWILIO_AUTH_TOKEN):
                raise RuntimeError("TWILIO_ACCOUNT_SID / TWILIO_AUTH_TOKEN not set")
            client = Client(settings.TWILIO_ACCOUNT_SID, settings.TWILIO_AUTH_TOKEN)
        from_number = from_number or settings.TWILIO_WHATSAPP_NUMBER
        if not from_number:
            raise RuntimeError("TWILIO_WHATSAPP_NUMBER not set")
        self.client = client
        self.from_number = whatsapp_address(from_number)
        self.pause_s = pause_s

    async def send(self, to: str, body: str) -> None:
        parts = split_message(body)
        for i, part in enumerate(parts, start=1):
            # The Twilio client is synchronous
            message = await asyncio.to_thread(
                self.client.messages.create, from_=self.from_number, to=whatsapp_address(to), body=part
            )
            logger.info(f"sent part {i}/{len(parts)} to {to} sid={getattr(message, 'sid', None)}")
            if i < len(parts):
                await asyncio.sleep(self.pause_s)


class ConsoleNotifier:
    def __init__(self, console: Optional[Console] = None) -> None:
        self.console = console or Console()

    async def send(self, to: str, body: str) -> None:
        self.console.print(Panel(body, title=f"Obrin → {to}", border_style="magenta"))


class MemoryNotifier:
    """Keeps every sent message; used by the Streamlit simulator and tests."""

    def __init__(self) -> None:
        self.sent: List[Tuple[str, str]] = []

    async def send(self, to: str, body: str) -> None:
        self.sent.append((to, body))

    def bodies(self, to: Optional[str] = None) -> List[str]:
        return [b for (t, b) in self.sent if to is None or t == to]


async def deliver(notifier: Notifier, to: str, body: str) -> bool:
    """Send through any notifier; a failed delivery is logged, never raised."""
    timeout = settings.EXTERNAL_TIMEOUT + len(split_message(body))
    return await guarded_call(_send(notifier, to, body), fallback=False, label=f"delivery to {to}", timeout=timeout)


async def _send(notifier: Notifier, to: str, body: str) -> bool:
    await notifier.send(to, body)
    return True
