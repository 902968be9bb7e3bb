from __future__ import annotations

import asyncio
import socket
import ssl
from typing import Any, Awaitable, Callable

import aiohttp

from workflow_engine.observability import get_logger

logger = get_logger(__name__)

TRANSIENT_SNIPPETS = [
    "SSLEOFError",
    "UNEXPECTED_EOF_WHILE_READING",
    "ConnectionResetError",
    "RemoteDisconnected",
    "ServerDisconnectedError",
    "TimeoutError",
]


def is_transient_exc(e: BaseException) -> bool:
    msg = repr(e)
    return any(s in msg for s in TRANSIENT_SNIPPETS) or isinstance(
        e,
        (
            asyncio.TimeoutError,
            aiohttp.ClientConnectionError,
            ssl.SSLError,
            ConnectionError,
            socket.gaierror,
        ),
    )


async def retry_async(
    fn: Callable[[], Awaitable[Any]],
    attempts: int = 3,
    base_delay: float = 0.6,
) -> Any:
    """Await ``fn()``, retrying transient network errors with exponential backoff."""
    last_err: BaseException | None = None
    attempts = max(1, attempts)
    for i in range(1, attempts + 1):
        try:
            return await fn()
        except Exception as e:
            last_err = e
            if not is_transient_exc(e) or i == attempts:
                break
            delay = base_delay * (2 ** (i - 1))
            logger.warning(
                "[retry] Transient error (%s). Retrying in %.1fs (%d/%d)...",
                e.__class__.__name__, delay, i, attempts,
            )
            await asyncio.sleep(delay)
    raise last_err  # let caller decide how to format error
