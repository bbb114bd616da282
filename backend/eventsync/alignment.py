"""Task-to-milestone matching and deadline alignment."""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from datetime import timedelta
from typing import Optional

from .schemas import AlignedTask, Milestone, NewTask, Task, TaskMetadata, TaskPriority
from .templates import MATCH_TABLE, MILESTONE_TASK_CATEGORY

logger = logging.getLogger(__name__)

ALIGNMENT_BUFFER = timedelta(days=1)

_PRIORITY_FOR_MILESTONE = {
    "LOW": TaskPriority.LOW,
    "MEDIUM": TaskPriority.MEDIUM,
    "HIGH": TaskPriority.HIGH,
    "CRITICAL": TaskPriority.URGENT,
}


def match_milestone(
    task: Task,
    milestones: Sequence[Milestone],
    match_table: Mapping[str, Sequence[str]] = MATCH_TABLE,
) -> Optional[Milestone]:
    """
    Pick the milestone a task belongs to.

    Only milestones whose type is allowed for the task's category are
    considered. With a due date, the nearest one wins (first one on ties);
    without a due date, the first allowed milestone in emission order.
    """
    if task.category is None:
        return None
    allowed = match_table.get(task.category.value, ())
    candidates = [m for m in milestones if m.type.value in allowed]
    if not candidates:
        return None
    if task.due_date is None:
        return candidates[0]

    best = candidates[0]
    best_diff = abs(best.due_date - task.due_date)
    for m in candidates[1:]:
        diff = abs(m.due_date - task.due_date)
        if diff < best_diff:
            best, best_diff = m, diff
    return best


def align_tasks(tasks: Sequence[Task], milestones: Sequence[Milestone]) -> list[AlignedTask]:
    """
    Return the writes needed to pull late tasks in front of their milestone.

    A task due strictly after its matched milestone is moved to one day
    before it, and stamped with the milestone id and its previous due date.
    Tasks already on time, without a due date or without a match produce
    nothing, so running this again after the writes were applied is a no-op.
    """
    out: list[AlignedTask] = []
    for task in tasks:
        milestone = match_milestone(task, milestones)
        if milestone is None or task.due_date is None:
            continue
        if task.due_date <= milestone.due_date:
            continue

        new_due = milestone.due_date - ALIGNMENT_BUFFER
        metadata = task.metadata.model_copy(update={
            "aligned_milestone": milestone.id,
            "original_due_date": task.due_date,
        })
        logger.debug("task %s due %s aligned to %s (%s)", task.id, task.due_date, milestone.id, new_due)
        out.append(AlignedTask(
            task_id=task.id,
            milestone_id=milestone.id,
            new_due_date=new_due,
            original_due_date=task.due_date,
            metadata=metadata,
        ))
    return out


def realign_tasks(tasks: Sequence[Task], milestones: Sequence[Milestone]) -> list[AlignedTask]:
    """
    Recompute due dates of previously aligned tasks after the event moved.

    Only tasks stamped with ``aligned_milestone`` are touched; their new due
    date is one day before the regenerated milestone of the same id.
    """
    by_id = {m.id: m for m in milestones}
    out: list[AlignedTask] = []
    for task in tasks:
        milestone_id = task.metadata.aligned_milestone
        if not milestone_id or milestone_id not in by_id:
            continue
        out.append(AlignedTask(
            task_id=task.id,
            milestone_id=milestone_id,
            new_due_date=by_id[milestone_id].due_date - ALIGNMENT_BUFFER,
            original_due_date=task.metadata.original_due_date,
            metadata=task.metadata,
        ))
    return out


def plan_milestone_tasks(milestones: Sequence[Milestone], tasks: Sequence[Task]) -> list[NewTask]:
    """One task per milestone that no existing task is linked to."""
    linked = {t.metadata.milestone_id for t in tasks if t.metadata.milestone_id}
    out = []
    for m in milestones:
        if m.id in linked:
            continue
        out.append(NewTask(
            title=m.name,
            description=m.description,
            category=MILESTONE_TASK_CATEGORY.get(m.type.value, "SETUP"),
            priority=_PRIORITY_FOR_MILESTONE[m.priority.value],
            due_date=m.due_date,
            dependencies=list(m.dependencies),
            tags=["milestone", m.type.value.lower()],
            metadata=TaskMetadata(milestone_id=m.id, milestone_type=m.type, auto_generated=True),
        ))
    return out
