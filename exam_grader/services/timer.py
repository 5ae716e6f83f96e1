"""
Countdown timer for a single attempt.

A timer is persisted in a plain string key/value store (the browser's
localStorage on the web client, a dict in tests) as JSON holding an
absolute expiry instant. Remaining time is always recomputed from that
instant, so reloading or polling at any rate gives the same answer.

Nothing here does network I/O; every function takes ``now`` so callers and
tests can drive the clock.
"""

import logging
import math
import re
from collections.abc import MutableMapping
from datetime import datetime, timedelta, timezone

from pydantic import ValidationError

from exam_grader.schemas.timer import AttemptTimer

logger = logging.getLogger(__name__)

TIMER_KEY_PREFIX = "attempt_timer_"

_DURATION_RE = re.compile(r"(\d+)\s*(?:minutes?|mins?|phút)\b", re.IGNORECASE)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def timer_key(assessment_id: int) -> str:
    return f"{TIMER_KEY_PREFIX}{assessment_id}"


def derive_duration_minutes(instructions: str | None) -> int:
    """Return the first "N minutes" directive in ``instructions``, 0 if none."""
    if not instructions:
        return 0
    match = _DURATION_RE.search(instructions)
    if not match:
        return 0
    return int(match.group(1))


def load_timer(store: MutableMapping[str, str], assessment_id: int) -> AttemptTimer | None:
    raw = store.get(timer_key(assessment_id))
    if raw is None:
        return None
    try:
        timer = AttemptTimer.model_validate_json(raw)
    except ValidationError:
        logger.warning("Ignoring malformed timer state for assessment %s", assessment_id)
        return None
    if timer.assessment_id != assessment_id:
        logger.warning("Ignoring timer state stored under the wrong key for assessment %s", assessment_id)
        return None
    return timer


def start_or_resume_timer(
    store: MutableMapping[str, str],
    assessment_id: int,
    duration_seconds: int,
    now: datetime | None = None,
) -> AttemptTimer | None:
    """
    Resume the persisted timer if it has not expired yet, otherwise start a
    fresh one. Returns None for an untimed attempt (duration <= 0).
    """
    now = _as_utc(now or _utcnow())

    existing = load_timer(store, assessment_id)
    if existing is not None and _as_utc(existing.expires_at) > now:
        return existing

    if duration_seconds <= 0:
        return None

    timer = AttemptTimer(
        assessment_id=assessment_id,
        expires_at=now + timedelta(seconds=duration_seconds),
        total_duration_seconds=duration_seconds,
    )
    store[timer_key(assessment_id)] = timer.model_dump_json()
    logger.info("Started %ss timer for assessment %s", duration_seconds, assessment_id)
    return timer


def clear_timer(store: MutableMapping[str, str], assessment_id: int) -> None:
    store.pop(timer_key(assessment_id), None)


def remaining(timer: AttemptTimer, now: datetime | None = None) -> int:
    """Whole seconds left, never negative."""
    now = _as_utc(now or _utcnow())
    seconds = (_as_utc(timer.expires_at) - now).total_seconds()
    return max(0, math.floor(seconds))


def is_expired(timer: AttemptTimer, now: datetime | None = None) -> bool:
    return remaining(timer, now) == 0


def is_deadline_passed(deadline: datetime | None, now: datetime | None = None) -> bool:
    if deadline is None:
        return False
    return _as_utc(now or _utcnow()) > _as_utc(deadline)


def format_time(seconds: int) -> str:
    """MM:SS; minutes keep counting past 59."""
    seconds = max(0, seconds)
    return f"{seconds // 60:02d}:{seconds % 60:02d}"


def urgency(seconds_left: int, total_seconds: int) -> str:
    """Display band for the countdown."""
    if total_seconds <= 0:
        return "normal"
    if seconds_left <= 10:
        return "critical"
    fraction = seconds_left / total_seconds
    if fraction > 0.75:
        return "normal"
    if fraction > 0.5:
        return "ok"
    if fraction > 0.25:
        return "warning"
    return "low"
