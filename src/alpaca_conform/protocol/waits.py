"""Cooperative polling waits that stay responsive to session cancellation."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Awaitable, Callable

import structlog

if TYPE_CHECKING:
    from ..session import ConformSession

logger = structlog.get_logger(__name__)

MINIMUM_POLL_INTERVAL = 0.1

Predicate = Callable[[], Awaitable[bool]]


class WaitTimeout(Exception):
    def __init__(self, action: str, timeout_seconds: float) -> None:
        super().__init__(
            f'The "{action}" operation exceeded the timeout of {timeout_seconds:g} seconds specified for this operation.'
        )
        self.action = action
        self.timeout_seconds = timeout_seconds


async def pause(session: "ConformSession", seconds: float) -> bool:
    """Sleep for `seconds`, returning True early if the session is cancelled meanwhile."""
    try:
        await asyncio.wait_for(session.cancel_event.wait(), timeout=max(seconds, 0.0))
    except asyncio.TimeoutError:
        return False
    return True


def _next_poll_delay(elapsed: float, interval: float) -> float:
    # Align polls to multiples of the interval; the small offset absorbs timer jitter.
    loop_number = int((elapsed + 0.05) // interval)
    return interval * (loop_number + 1) - elapsed


async def wait_while(
    session: "ConformSession",
    action: str,
    predicate: Predicate,
    timeout_seconds: float,
    poll_interval: float = 0.5,
) -> bool:
    """Poll `predicate` until it returns False.

    Returns True when the operation completed and False when the session was
    cancelled. Exceeding the timeout, plus two poll intervals of slack, records
    an Issue and raises `WaitTimeout`.
    """
    if poll_interval < MINIMUM_POLL_INTERVAL:
        raise ValueError(f"The poll interval must be >=100ms: {poll_interval * 1000:.0f}")

    session.set_status(f"Waiting for the {action} operation to complete: 0.0 / {timeout_seconds:.1f} seconds")
    loop = asyncio.get_running_loop()
    started = loop.time()
    deadline = started + timeout_seconds + 2.0 * poll_interval

    while True:
        if session.cancelled:
            return False
        if not await predicate():
            break

        now = loop.time()
        if now >= deadline:
            session.log_issue("WaitUntil", f"The {action} operation timed out after {timeout_seconds:g} seconds.")
            logger.warning("conform.wait.timeout", action=action, timeout=timeout_seconds)
            raise WaitTimeout(action, timeout_seconds)

        delay = min(_next_poll_delay(now - started, poll_interval), deadline - now)
        if await pause(session, delay):
            return False
        elapsed = loop.time() - started
        session.set_status(f"Waiting for the {action} operation to complete: {elapsed:.1f} / {timeout_seconds:.1f} seconds")

    session.set_status("")
    return True


async def wait_for(session: "ConformSession", seconds: float, purpose: str, update_interval: float = 0.5) -> bool:
    """Delay for a fixed period. Returns False if the session was cancelled during the delay."""
    if seconds <= 0:
        return not session.cancelled

    update_interval = min(update_interval, seconds)
    session.set_status(f"Waiting for {purpose} - 0.0 / {seconds:.1f} seconds")
    loop = asyncio.get_running_loop()
    started = loop.time()

    while not session.cancelled:
        elapsed = loop.time() - started
        remaining = seconds - elapsed
        if remaining <= 0:
            break
        delay = min(_next_poll_delay(elapsed, update_interval), remaining)
        if await pause(session, delay):
            break
        session.set_status(f"Waiting for {purpose} - {min(loop.time() - started, seconds):.1f} / {seconds:.1f} seconds")

    session.set_status("")
    return not session.cancelled
