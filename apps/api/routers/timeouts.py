"""Bounded execution for single-user reward handlers."""

import asyncio
from typing import Awaitable, Optional, TypeVar

from config import settings
from services.errors import OperationTimeout


T = TypeVar("T")


async def with_request_timeout(operation: Awaitable[T], seconds: Optional[float] = None) -> T:
    timeout = float(seconds if seconds is not None else settings.REQUEST_TIMEOUT_SECONDS)
    try:
        return await asyncio.wait_for(operation, timeout=timeout)
    except asyncio.TimeoutError as exc:
        raise OperationTimeout() from exc
