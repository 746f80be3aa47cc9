# ============================================================================
# TIMING HELPERS
# ============================================================================
# EPOCH: 1 - STACK SUPERVISION
# STATUS: Core - Interruptible waits
# PURPOSE: Sleep that ends early when a cancel event fires
# CREATED: 16 OCT 2026
# ============================================================================

import asyncio
from typing import Optional


async def sleep_unless_cancelled(
    delay: float,
    cancel_event: Optional[asyncio.Event] = None,
) -> bool:
    """
    Sleep for `delay` seconds or until `cancel_event` is set.

    Returns:
        True if the wait was cut short by the cancel event
    """
    if cancel_event is None:
        await asyncio.sleep(delay)
        return False
    if cancel_event.is_set():
        return True
    try:
        await asyncio.wait_for(cancel_event.wait(), timeout=delay)
        return True
    except asyncio.TimeoutError:
        return False
