"""Slack ranking used as an approximate critical path."""

from __future__ import annotations

import math
from collections.abc import Sequence
from datetime import datetime
from typing import Optional

from .schemas import HIGH_PRIORITIES, CriticalPathEntry, Task
from .utils import to_datetime, utcnow

CRITICAL_PATH_LIMIT = 10
_SECONDS_PER_DAY = 24 * 60 * 60


def slack_days(due_date: Optional[datetime], now: datetime) -> int:
    """Whole days of buffer before the due date, never negative; 0 without a due date."""
    due = due_date or now
    return max(0, math.floor((due - now).total_seconds() / _SECONDS_PER_DAY))


def estimate_critical_path(
    tasks: Sequence[Task],
    now: Optional[datetime] = None,
    limit: int = CRITICAL_PATH_LIMIT,
) -> list[CriticalPathEntry]:
    """
    Rank HIGH/URGENT tasks and tasks with dependencies by ascending slack.

    Slack is not propagated through the dependency graph; this is a
    ranking, not a forward/backward pass.
    """
    now = to_datetime(now) or utcnow()
    candidates = [t for t in tasks if t.priority in HIGH_PRIORITIES or t.dependencies]
    entries = [
        CriticalPathEntry(
            task_id=t.id,
            task_title=t.title,
            due_date=t.due_date or now,
            dependencies=list(t.dependencies),
            slack=slack_days(t.due_date, now),
        )
        for t in candidates
    ]
    entries.sort(key=lambda e: e.slack)
    return entries[:limit]
