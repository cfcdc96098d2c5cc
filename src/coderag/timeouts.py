"""Deadline helper applied to every outbound service call."""
from __future__ import annotations

import asyncio
from typing import Awaitable, TypeVar

from coderag.errors import ServiceTimeout

T = TypeVar("T")


async def with_timeout(awaitable: Awaitable[T], *, service: str, timeout: float | None) -> T:
    """Await ``awaitable`` and convert an expired deadline into :class:`ServiceTimeout`.

    A ``timeout`` of ``None`` or ``<= 0`` disables the deadline.
    """

    if timeout is None or timeout <= 0:
        return await awaitable
    try:
        return await asyncio.wait_for(awaitable, timeout=timeout)
    except asyncio.TimeoutError as error:
        raise ServiceTimeout(service, timeout, cause=error) from error


__all__ = ["with_timeout"]
