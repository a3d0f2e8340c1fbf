"""Timeout helpers for outbound calls."""

import asyncio
from typing import Any, Awaitable

from tablewise.infra.config import config
from tablewise.infra.error_handler import LLMTimeoutError

# Timeout configurations (seconds)
LLM_CALL_TIMEOUT = config.LLM_CALL_TIMEOUT
HEALTH_PROBE_TIMEOUT = config.HEALTH_PROBE_TIMEOUT


async def with_timeout(awaitable: Awaitable[Any], seconds: float, operation: str = "LLM call") -> Any:
    """
    Await with a deadline.

    Raises:
        LLMTimeoutError: If the awaitable does not finish in time
    """
    try:
        return await asyncio.wait_for(awaitable, timeout=seconds)
    except asyncio.TimeoutError:
        raise LLMTimeoutError(f"{operation} timed out after {seconds} seconds")
