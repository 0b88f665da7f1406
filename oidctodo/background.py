"""
Periodic sweep of expired in-memory state.

Logins abandoned at the provider never reach the callback, so their pending
entries only disappear here. Expired sessions are dropped in the same pass.
"""

import asyncio
import contextlib
import logging

from oidctodo import globals
from oidctodo.config import SWEEP_INTERVAL

_logger = logging.getLogger(__name__)
_task: asyncio.Task | None = None


def cleanup() -> None:
    logins = globals.pending.instance.sweep()
    sessions = globals.sessions.instance.cleanup()
    if logins or sessions:
        _logger.info("Swept %d pending logins, %d sessions", logins, sessions)


async def _sweep_forever(interval: float):
    while True:
        await asyncio.sleep(interval)
        try:
            cleanup()
        except Exception:
            _logger.exception("Sweep failed")


async def start(interval: float = SWEEP_INTERVAL.total_seconds()):
    """Start sweeping unless a sweep task is already running."""
    global _task
    if _task is None or _task.done():
        _task = asyncio.create_task(_sweep_forever(interval))
        _logger.debug("Sweeping every %.0fs", interval)


async def stop():
    global _task
    if _task is None:
        return
    task, _task = _task, None
    task.cancel()
    with contextlib.suppress(asyncio.CancelledError):
        await task
