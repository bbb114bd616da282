"""
Templates from the other direction: derive one from a workspace that ran,
and measure how the workspaces that used a template actually went.
"""

from __future__ import annotations

import math
from collections.abc import Sequence
from datetime import datetime
from typing import Optional

from .progress import completion_percent
from .risk import overdue_tasks
from .schemas import (
    Bottleneck,
    Event,
    ImprovementSuggestion,
    RiskSeverity,
    SizeRange,
    SuggestionType,
    Task,
    TaskStatus,
    Template,
    TemplateDraft,
    TemplateEffectivenessReport,
    TemplateMetadata,
    TemplateTask,
    WorkspaceSnapshot,
)
from .utils import to_datetime, utcnow

PARTICIPANTS_PER_TEAM_MEMBER = 20
LARGE_WORKSPACE_TASKS = 50
DEFAULT_DAYS_BEFORE_EVENT = 7
OVERDUE_BOTTLENECK_SHARE = 0.2
BLOCKED_BOTTLENECK_SHARE = 0.1
_SECONDS_PER_DAY = 24 * 60 * 60


def derive_size_range(team_size: int, task_count: int) -> SizeRange:
    """Guess the event size a workspace was built for from its team and task counts."""
    estimated = team_size * PARTICIPANTS_PER_TEAM_MEMBER
    if task_count > LARGE_WORKSPACE_TASKS:
        estimated *= 2
    return SizeRange(min=max(10, math.floor(estimated * 0.5)), max=math.ceil(estimated * 2))


def days_before_event(task: Task, event: Event) -> int:
    if task.due_date is None:
        return DEFAULT_DAYS_BEFORE_EVENT
    return math.ceil((event.start_date - task.due_date).total_seconds() / _SECONDS_PER_DAY)


def template_from_workspace(
    workspace: WorkspaceSnapshot,
    team_size: int,
    draft: TemplateDraft,
    created_by: Optional[str] = None,
) -> Template:
    """
    Turn a workspace's tasks into template tasks dated relative to its event.

    Tasks without a category are left out; template tasks need one to be
    matched against milestones later.
    """
    tasks = [
        TemplateTask(
            title=t.title,
            description=t.description,
            category=t.category,
            priority=t.priority,
            days_before_event=days_before_event(t, workspace.event),
            dependencies=list(t.dependencies),
        )
        for t in workspace.tasks
        if t.category is not None
    ]
    return Template(
        name=draft.name,
        description=draft.description,
        category=draft.category,
        complexity=draft.complexity,
        event_size_range=derive_size_range(team_size, len(workspace.tasks)),
        tasks=tasks,
        metadata=TemplateMetadata(
            created_by=created_by,
            organization_id=workspace.event.organization_id,
            is_public=draft.is_public,
            tags=list(draft.tags),
        ),
    )


def _event_over(event: Event, now: datetime) -> bool:
    return (event.end_date or event.start_date) < now


def common_bottlenecks(workspaces: Sequence[WorkspaceSnapshot], now: datetime) -> list[Bottleneck]:
    tasks = [t for w in workspaces for t in w.tasks]
    if not tasks:
        return []

    out = []
    overdue_share = len(overdue_tasks(tasks, now)) / len(tasks)
    if overdue_share > OVERDUE_BOTTLENECK_SHARE:
        out.append(Bottleneck(
            issue="High rate of overdue tasks",
            frequency=round(overdue_share * 100),
            impact=RiskSeverity.HIGH,
        ))
    blocked_share = sum(1 for t in tasks if t.status == TaskStatus.BLOCKED) / len(tasks)
    if blocked_share > BLOCKED_BOTTLENECK_SHARE:
        out.append(Bottleneck(
            issue="Frequent task blocking",
            frequency=round(blocked_share * 100),
            impact=RiskSeverity.MEDIUM,
        ))
    return out


def improvement_suggestions(
    completion_rate: float,
    average_task_completion_rate: float,
    bottlenecks: Sequence[Bottleneck],
) -> list[ImprovementSuggestion]:
    out = []
    if completion_rate < 70:
        out.append(ImprovementSuggestion(
            type=SuggestionType.ADJUST_TIMELINE,
            description="Extend task deadlines to improve completion rates",
            priority=RiskSeverity.HIGH,
            based_on_data=f"Only {completion_rate:.1f}% of workspaces complete successfully",
        ))
    if average_task_completion_rate < 80:
        out.append(ImprovementSuggestion(
            type=SuggestionType.REMOVE_TASK,
            description="Remove or simplify complex tasks that are frequently incomplete",
            priority=RiskSeverity.MEDIUM,
            based_on_data=f"Average task completion rate is {average_task_completion_rate:.1f}%",
        ))
    for b in bottlenecks:
        if b.impact == RiskSeverity.HIGH:
            out.append(ImprovementSuggestion(
                type=SuggestionType.ADJUST_TIMELINE,
                description="Adjust task timelines to reduce overdue tasks",
                priority=RiskSeverity.HIGH,
                based_on_data=f"{b.frequency}% of tasks become overdue",
            ))
        else:
            out.append(ImprovementSuggestion(
                type=SuggestionType.MODIFY_ROLE,
                description="Add coordination roles to reduce task dependencies",
                priority=RiskSeverity.MEDIUM,
                based_on_data=f"{b.frequency}% of tasks get blocked",
            ))
    return out


def template_effectiveness(
    template_id: str,
    workspaces: Sequence[WorkspaceSnapshot],
    now: Optional[datetime] = None,
) -> TemplateEffectivenessReport:
    """
    A workspace counts as a successful completion once its event is over
    and every one of its tasks is COMPLETED. ``completion_rate`` is the
    share of successful workspaces, 0..100.
    """
    now = to_datetime(now) or utcnow()
    total = len(workspaces)
    successful = sum(
        1 for w in workspaces
        if _event_over(w.event, now) and w.tasks and completion_percent(w.tasks) == 100
    )
    completion_rate = 100.0 * successful / total if total else 0.0
    average_task_rate = (
        sum(completion_percent(w.tasks) for w in workspaces) / total if total else 0.0
    )
    bottlenecks = common_bottlenecks(workspaces, now)
    return TemplateEffectivenessReport(
        template_id=template_id,
        total_usages=total,
        successful_completions=successful,
        completion_rate=completion_rate,
        average_task_completion_rate=average_task_rate,
        common_bottlenecks=bottlenecks,
        improvement_suggestions=improvement_suggestions(completion_rate, average_task_rate, bottlenecks),
    )
