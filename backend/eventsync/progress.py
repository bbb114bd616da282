"""Overall and per-milestone progress for a workspace."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from datetime import datetime
from typing import Optional

from .critical_path import estimate_critical_path
from .milestones import generate_milestones
from .risk import detect_risks
from .schemas import (
    Event,
    Milestone,
    MilestoneProgress,
    MilestoneStatus,
    ProgressReport,
    RelatedTask,
    Task,
    TaskStatus,
)
from .templates import RELATED_TASK_TABLE
from .utils import to_datetime, utcnow


def completion_percent(tasks: Sequence[Task]) -> float:
    """Share of COMPLETED tasks, 0..100; 0 for an empty list."""
    if not tasks:
        return 0.0
    done = sum(1 for t in tasks if t.status == TaskStatus.COMPLETED)
    return 100.0 * done / len(tasks)


def related_tasks(
    milestone: Milestone,
    tasks: Sequence[Task],
    related_table: Mapping[str, Sequence[str]] = RELATED_TASK_TABLE,
) -> list[Task]:
    """Tasks linked to the milestone by id, or whose category counts towards its type."""
    categories = related_table.get(milestone.type.value, ())
    return [
        t for t in tasks
        if t.metadata.milestone_id == milestone.id
        or (t.category is not None and t.category.value in categories)
    ]


def milestone_status(milestone: Milestone, progress: float, now: datetime) -> MilestoneStatus:
    if progress == 100:
        return MilestoneStatus.COMPLETED
    if progress > 0:
        return MilestoneStatus.IN_PROGRESS
    if now > milestone.due_date:
        return MilestoneStatus.OVERDUE
    return MilestoneStatus.NOT_STARTED


def milestone_progress(
    milestones: Sequence[Milestone],
    tasks: Sequence[Task],
    now: Optional[datetime] = None,
) -> list[MilestoneProgress]:
    now = to_datetime(now) or utcnow()
    out = []
    for m in milestones:
        related = related_tasks(m, tasks)
        progress = completion_percent(related)
        out.append(MilestoneProgress(
            milestone_id=m.id,
            milestone_name=m.name,
            progress=progress,
            status=milestone_status(m, progress, now),
            related_tasks=[
                RelatedTask(task_id=t.id, task_title=t.title, status=t.status) for t in related
            ],
        ))
    return out


def build_progress_report(
    workspace_id: str,
    event: Event,
    tasks: Sequence[Task],
    now: Optional[datetime] = None,
) -> ProgressReport:
    """Read-only snapshot of where a workspace stands against its event timeline."""
    now = to_datetime(now) or utcnow()
    milestones = generate_milestones(event)
    return ProgressReport(
        workspace_id=workspace_id,
        event_id=event.id,
        overall_progress=completion_percent(tasks),
        milestone_progress=milestone_progress(milestones, tasks, now),
        critical_path=estimate_critical_path(tasks, now),
        risk_factors=detect_risks(tasks, milestones, now),
    )
