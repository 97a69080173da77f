import asyncio
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime

Clock = Callable[[], datetime]
Sleeper = Callable[[float], Awaitable[None]]


def utcnow() -> datetime:
    return datetime.now(UTC)


async def async_sleep(seconds: float) -> None:
    await asyncio.sleep(seconds)
