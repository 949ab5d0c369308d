"""Attention signals and urgency scoring.

Everything here is a pure function of its arguments so the cognitive loop
can be tested without a clock or a workspace. Durations are in seconds.
"""

import math
import re
from datetime import datetime, tzinfo
from typing import Any, Dict, List, Optional

from tether.types import (
    AttentionState,
    Concern,
    ConcernPriority,
    DayPeriod,
    TimeContext,
)

HOUR_S = 60 * 60
QUIET_AFTER_S = 4 * HOUR_S
MORNING_REVIEW_AFTER_S = 6 * HOUR_S
EVENING_REVIEW_AFTER_S = 4 * HOUR_S

ACTIVE_CONCERN_WEIGHT = 0.15
MAX_ACTIVE_CONCERNS = 3
PENDING_ACTION_WEIGHT = 0.2
MAX_PENDING_ACTIONS = 2
TIME_PRESSURE_WEIGHT = 0.15
STALE_THREADS_BONUS = 0.10
MORNING_BONUS = 0.15
EVENING_BONUS = 0.10
QUIET_BONUS = 0.10
NIGHT_PENALTY = 0.15

_ACTIVE_HEADING = re.compile(r"^(\*\*|#+\s*)active\b", re.IGNORECASE)
_RADAR_HEADING = re.compile(r"^(\*\*|#+\s*)on my radar\b", re.IGNORECASE)
_PAREN_NOTE = re.compile(r"^\(.*\)$")
_METADATA = re.compile(r"^[a-z]+:")


def parse_concerns(content: str) -> List[Concern]:
    """Parse a concerns document into prioritized concerns.

    Bulleted items (``- `` or ``* ``) are collected. An ``**Active:**`` or
    ``## Active`` heading makes following items active, an ``**On my
    radar:**`` or ``## On my radar`` heading makes them radar. Items before
    any heading are active.
    """
    concerns: List[Concern] = []
    priority = ConcernPriority.ACTIVE

    for line in content.splitlines():
        stripped = line.strip()
        if _ACTIVE_HEADING.match(stripped):
            priority = ConcernPriority.ACTIVE
            continue
        if _RADAR_HEADING.match(stripped):
            priority = ConcernPriority.RADAR
            continue
        if stripped.startswith("- ") or stripped.startswith("* "):
            text = stripped[2:].strip()
            if text:
                concerns.append(Concern(text=text, priority=priority))

    return concerns


def count_substantive_items(content: str) -> int:
    """Count the lines of a notes document that hold actual content.

    List items always count. Other lines count when they are longer than 20
    characters and contain no colon. Headings, rules, parenthesised notes
    and ``key:`` metadata lines never count.
    """
    count = 0
    for line in content.splitlines():
        stripped = line.strip()
        if not stripped or stripped.startswith("#") or stripped == "---":
            continue
        if _PAREN_NOTE.match(stripped) or _METADATA.match(stripped):
            continue
        if stripped.startswith(("- ", "* ", "1.")):
            count += 1
        elif len(stripped) > 20 and ":" not in stripped:
            count += 1
    return count


def period_for_hour(hour: int) -> DayPeriod:
    if 6 <= hour < 10:
        return DayPeriod.MORNING
    if 10 <= hour < 18:
        return DayPeriod.DAYTIME
    if 18 <= hour < 23:
        return DayPeriod.EVENING
    return DayPeriod.NIGHT


def get_time_context(
    now: datetime,
    time_since_last_user_message: float = math.inf,
    tz: Optional[tzinfo] = None,
) -> TimeContext:
    """Time-of-day context for ``now``.

    Args:
        now: Current time (aware datetimes are converted to ``tz``)
        time_since_last_user_message: Seconds since the user last wrote;
            ``math.inf`` when they never have
        tz: Zone the rhythm follows; defaults to the system local zone
    """
    if now.tzinfo is not None:
        local = now.astimezone(tz) if tz is not None else now.astimezone()
    else:
        local = now
    hour = local.hour
    return TimeContext(
        period=period_for_hour(hour),
        is_quiet_period=time_since_last_user_message > QUIET_AFTER_S,
        hour_of_day=hour,
    )


def compute_urgency_score(
    concerns: List[Concern],
    pending_actions_count: int,
    time_since_last_reflection: float,
    max_interval: float,
    has_stale_threads: bool,
    time_context: Optional[TimeContext] = None,
) -> float:
    """Additive urgency heuristic, clamped to [0, 1].

    ``time_since_last_reflection`` and ``max_interval`` must share a unit;
    the rhythm bonuses assume seconds. Rhythm terms apply only when
    ``time_context`` is given.
    """
    score = 0.0

    active = sum(1 for c in concerns if c.priority == ConcernPriority.ACTIVE)
    score += min(active, MAX_ACTIVE_CONCERNS) * ACTIVE_CONCERN_WEIGHT
    score += min(max(pending_actions_count, 0), MAX_PENDING_ACTIONS) * PENDING_ACTION_WEIGHT

    if max_interval > 0:
        ratio = min(max(time_since_last_reflection, 0) / max_interval, 1.0)
        score += ratio * TIME_PRESSURE_WEIGHT

    if has_stale_threads:
        score += STALE_THREADS_BONUS

    if time_context is not None:
        if (
            time_context.period == DayPeriod.MORNING
            and time_since_last_reflection > MORNING_REVIEW_AFTER_S
        ):
            score += MORNING_BONUS
        if (
            time_context.period == DayPeriod.EVENING
            and time_since_last_reflection > EVENING_REVIEW_AFTER_S
        ):
            score += EVENING_BONUS
        if time_context.is_quiet_period:
            score += QUIET_BONUS
        if time_context.period == DayPeriod.NIGHT:
            score -= NIGHT_PENALTY

    return max(0.0, min(score, 1.0))


def attention_to_dict(state: AttentionState) -> Dict[str, Any]:
    """JSON-friendly view of an attention snapshot."""
    since_user = state.time_since_last_user_message
    return {
        "concerns": [{"text": c.text, "priority": c.priority.value} for c in state.concerns],
        "time_since_last_reflection_s": round(state.time_since_last_reflection, 1),
        "time_since_last_user_message_s": None if math.isinf(since_user) else round(since_user, 1),
        "pending_actions_count": state.pending_actions_count,
        "has_stale_threads": state.has_stale_threads,
        "urgency_score": round(state.urgency_score, 4),
        "time_context": {
            "period": state.time_context.period.value,
            "is_quiet_period": state.time_context.is_quiet_period,
            "hour_of_day": state.time_context.hour_of_day,
        },
    }
