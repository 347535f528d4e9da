from __future__ import annotations

import asyncio
import logging
from typing import Callable, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def bounded_call(
    call: Callable[[], T],
    *,
    timeout_seconds: float,
    fallback: T,
    label: str,
) -> T:
    """Run a blocking call in a worker thread under a hard deadline.

    Returns ``fallback`` when the deadline expires or the call raises. The
    worker thread is abandoned on timeout, so ``call`` must carry its own
    socket timeout to finish eventually.
    """
    try:
        return await asyncio.wait_for(
            asyncio.to_thread(call),
            timeout=max(0.001, float(timeout_seconds)),
        )
    except asyncio.TimeoutError:
        logger.warning("%s timed out after %ss; using fallback", label, timeout_seconds)
    except Exception as exc:
        logger.warning("%s failed; using fallback: %s", label, exc)
    return fallback
