"""Risk findings and deadline escalation candidates."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import datetime, timedelta
from typing import Optional

from .schemas import (
    HIGH_PRIORITIES,
    DeadlineEscalation,
    Milestone,
    RiskFactor,
    RiskSeverity,
    RiskType,
    Task,
    TaskStatus,
)
from .templates import BLOCKED_MITIGATION, OVERDUE_MITIGATION
from .utils import to_datetime, utcnow

logger = logging.getLogger(__name__)


def overdue_tasks(tasks: Sequence[Task], now: datetime) -> list[Task]:
    return [
        t for t in tasks
        if t.due_date is not None and t.due_date < now and t.status != TaskStatus.COMPLETED
    ]


def detect_risks(
    tasks: Sequence[Task],
    milestones: Sequence[Milestone] = (),
    now: Optional[datetime] = None,
) -> list[RiskFactor]:
    """
    Scan tasks for overdue work and blocked high-priority work.

    OVERDUE_TASKS comes first, BLOCKED_CRITICAL second; each is only
    emitted when triggered. ``milestones`` is accepted for callers that
    pass the timeline along but no current rule reads it.
    """
    now = to_datetime(now) or utcnow()
    risks: list[RiskFactor] = []

    overdue = overdue_tasks(tasks, now)
    if overdue:
        critical_overdue = [t for t in overdue if t.priority in HIGH_PRIORITIES]
        risks.append(RiskFactor(
            type=RiskType.OVERDUE_TASKS,
            severity=RiskSeverity.HIGH if critical_overdue else RiskSeverity.MEDIUM,
            description=f"{len(overdue)} tasks are overdue ({len(critical_overdue)} critical)",
            impact="May delay event milestones and affect overall timeline",
            mitigation=list(OVERDUE_MITIGATION),
        ))

    blocked = [t for t in tasks if t.status == TaskStatus.BLOCKED and t.priority in HIGH_PRIORITIES]
    if blocked:
        risks.append(RiskFactor(
            type=RiskType.BLOCKED_CRITICAL,
            severity=RiskSeverity.CRITICAL,
            description=f"{len(blocked)} critical tasks are blocked",
            impact="Critical path delays that could jeopardize event success",
            mitigation=list(BLOCKED_MITIGATION),
        ))

    if risks:
        logger.debug("detected risks: %s", [r.type.value for r in risks])
    return risks


def find_deadline_escalations(
    tasks: Sequence[Task],
    now: Optional[datetime] = None,
    threshold_hours: int = 24,
) -> list[DeadlineEscalation]:
    """Unfinished HIGH/URGENT tasks due within ``threshold_hours`` (or already past due)."""
    now = to_datetime(now) or utcnow()
    cutoff = now + timedelta(hours=threshold_hours)
    return [
        DeadlineEscalation(task_id=t.id, task_title=t.title, due_date=t.due_date, priority=t.priority)
        for t in tasks
        if t.due_date is not None
        and t.due_date <= cutoff
        and t.status != TaskStatus.COMPLETED
        and t.priority in HIGH_PRIORITIES
    ]
