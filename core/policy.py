"""
Enforcement policy: pure decisions about timing and blocking.

Nothing here mutates state or talks to collaborators; the controller
applies the decisions.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

import config
from storage.models import Settings


class ActivityDecision(str, Enum):
    """What the session timer should do after an activity change."""

    STOP = "stop"  # disabled, unfocused or off-target: pause timing
    BLOCKED = "blocked"  # block window active: pause timing, enforce block
    START = "start"  # focused on a target: ensure a session is open


class BreachMode(str, Enum):
    SOFT = "soft"  # redirect the active tab only
    HARD = "hard"  # timed block across every target tab


@dataclass(frozen=True)
class BreachPlan:
    """Outcome of a limit breach."""

    mode: BreachMode
    block_until: int
    title: str
    message: str


def is_block_active(block_until: int, now: int) -> bool:
    """A block is active strictly before its end timestamp."""
    return bool(block_until) and now < block_until


def is_block_expired(block_until: int, now: int) -> bool:
    """True when a stored block window has run out and should be cleared."""
    return bool(block_until) and now >= block_until


def evaluate_activity(settings: Settings, block_until: int, now: int,
                      window_focused: bool, active_is_target: bool) -> ActivityDecision:
    """
    Decide whether the session timer should run.

    Checks in priority order: disabled, blocked, unfocused or off-target,
    otherwise timing.
    """
    if not settings.enabled:
        return ActivityDecision.STOP
    if is_block_active(block_until, now):
        return ActivityDecision.BLOCKED
    if not window_focused or not active_is_target:
        return ActivityDecision.STOP
    return ActivityDecision.START


def is_breached(settings: Settings, block_until: int, elapsed_ms: int,
                now: int, active_is_target: bool) -> bool:
    """
    Check the limit from stored timestamps.

    The check only fires while the active tab is on a target: time run up
    elsewhere is kept but not acted on until the user comes back.
    """
    if not settings.enabled or is_block_active(block_until, now):
        return False
    if elapsed_ms < settings.limit_ms:
        return False
    return active_is_target


def plan_breach(settings: Settings, now: int) -> BreachPlan:
    """Choose between the soft redirect and the hard timed block."""
    if settings.extreme_mode_enabled:
        return BreachPlan(
            mode=BreachMode.HARD,
            block_until=now + settings.extreme_duration_ms,
            title=config.NOTIFY_BLOCKED_TITLE,
            message=config.NOTIFY_BLOCKED_MESSAGE.format(
                minutes=settings.extreme_duration_minutes
            ),
        )
    return BreachPlan(
        mode=BreachMode.SOFT,
        block_until=0,
        title=config.NOTIFY_LIMIT_TITLE,
        message=config.NOTIFY_LIMIT_MESSAGE.format(minutes=settings.time_limit_minutes),
    )


def remaining_ms(settings: Settings, block_until: int, elapsed_ms: int,
                 now: int) -> Optional[int]:
    """Time left before the limit, or None when disabled or blocked."""
    if not settings.enabled or is_block_active(block_until, now):
        return None
    return max(0, settings.limit_ms - elapsed_ms)
