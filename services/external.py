import asyncio
from typing import Awaitable, Optional, TypeVar

from .config import settings
from .logger import setup_logger

logger = setup_logger("external")

T = TypeVar("T")


async def guarded_call(
    call: Awaitable[T],
    fallback: T,
    label: str,
    timeout: Optional[float] = None,
) -> T:
    """Await an external call, returning ``fallback`` on timeout or error."""
    timeout = settings.EXTERNAL_TIMEOUT if timeout is None else timeout
    try:
        return await asyncio.wait_for(call, timeout=timeout)
    except asyncio.TimeoutError:
        logger.warning(f"{label} timed out after {timeout}s, using fallback")
    except Exception as e:
        logger.warning(f"{label} failed: {e}")
    return fallback
