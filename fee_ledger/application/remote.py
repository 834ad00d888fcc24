"""Bridge from the event loop to record stores, blocking or not."""
from __future__ import annotations

import asyncio
import inspect
from typing import Any, Callable


async def call_store(method: Callable[..., Any], *args: Any) -> Any:
    """Await coroutine store methods directly; run blocking ones in a worker thread."""
    if inspect.iscoroutinefunction(method):
        return await method(*args)
    return await asyncio.to_thread(method, *args)
