"""
Workspace-level operations built on the pure engine.

Every operation takes its collaborators (reader, writer, permission oracle,
notification sink) as arguments. Writes are issued one task at a time; if
one fails, earlier writes stay committed.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from datetime import datetime, timedelta
from typing import Any, Optional, Protocol

from .alignment import align_tasks, plan_milestone_tasks, realign_tasks
from .errors import AuthorizationError, NotFoundError
from .milestones import generate_milestones
from .progress import build_progress_report
from .risk import find_deadline_escalations
from .schemas import (
    AlignedTask,
    Event,
    NewTask,
    ProgressReport,
    SyncConfiguration,
    SyncResult,
    TaskMetadata,
    TaskPriority,
    TaskUpdate,
    Template,
    TemplateCustomization,
    TemplateDraft,
    TemplateEffectiveness,
    TemplateEffectivenessReport,
    TemplateRecommendation,
    WorkspaceSnapshot,
    default_sync_configuration,
)
from .template_match import recommend_templates
from .template_usage import template_effectiveness, template_from_workspace

logger = logging.getLogger(__name__)

MANAGE_WORKSPACE = "MANAGE_WORKSPACE"
VIEW_WORKSPACE = "VIEW_WORKSPACE"


class WorkspaceReader(Protocol):
    def get_workspace(self, workspace_id: str) -> WorkspaceSnapshot: ...

    def get_event(self, event_id: str) -> Event: ...

    def list_workspaces_for_event(self, event_id: str) -> list[WorkspaceSnapshot]: ...

    def get_workspace_owner(self, workspace_id: str) -> Optional[str]: ...

    def list_templates(self, organization_id: Optional[str]) -> list[Template]: ...

    def get_template(self, template_id: str) -> Template: ...

    def list_workspaces_for_template(self, template_id: str) -> list[WorkspaceSnapshot]: ...

    def get_team_size(self, workspace_id: str) -> int: ...


class TaskWriter(Protocol):
    def update_task(self, task_id: str, update: TaskUpdate) -> None: ...

    def create_task(self, workspace_id: str, task: NewTask) -> str: ...

    def delete_task(self, task_id: str) -> None: ...


class TemplateWriter(Protocol):
    def create_template(self, template: Template) -> str: ...

    def set_workspace_template(self, workspace_id: str, template_id: str) -> None: ...

    def update_template_effectiveness(self, template_id: str, effectiveness: TemplateEffectiveness) -> None: ...


class PermissionOracle(Protocol):
    def has_permission(self, workspace_id: str, user_id: str, permission: str) -> bool: ...


class NotificationSink(Protocol):
    def notify(self, kind: str, workspace_id: str, payload: dict) -> None: ...


def require_permission(oracle: PermissionOracle, workspace_id: str, user_id: str, permission: str) -> None:
    if not oracle.has_permission(workspace_id, user_id, permission):
        raise AuthorizationError(f"Access denied: user does not have {permission} permission")


def apply_alignment(aligned: list[AlignedTask], writer: TaskWriter) -> None:
    for a in aligned:
        writer.update_task(a.task_id, TaskUpdate(due_date=a.new_due_date, metadata=a.metadata))


# -----------------------
# Synchronization
# -----------------------
def synchronize_workspace(
    workspace_id: str,
    user_id: str,
    reader: WorkspaceReader,
    writer: TaskWriter,
    oracle: PermissionOracle,
    config: Optional[SyncConfiguration] = None,
) -> SyncResult:
    """Align workspace tasks with the event timeline and create missing milestone tasks."""
    require_permission(oracle, workspace_id, user_id, MANAGE_WORKSPACE)
    workspace = reader.get_workspace(workspace_id)
    config = config or default_sync_configuration()

    milestones = generate_milestones(workspace.event)
    aligned = align_tasks(workspace.tasks, milestones)
    apply_alignment(aligned, writer)

    created: list[str] = []
    if config.auto_create_milestone_tasks:
        owner = reader.get_workspace_owner(workspace_id)
        if owner is None:
            logger.info("workspace %s has no owner, milestone tasks not created", workspace_id)
        else:
            for new_task in plan_milestone_tasks(milestones, workspace.tasks):
                created.append(writer.create_task(workspace_id, new_task))

    logger.info(
        "workspace %s synchronized: %d milestones, %d tasks aligned, %d milestone tasks created",
        workspace_id, len(milestones), len(aligned), len(created),
    )
    return SyncResult(workspace_id=workspace_id, milestones=milestones, aligned=aligned, created_task_ids=created)


def handle_event_update(
    event_id: str,
    changes: Mapping[str, Any],
    reader: WorkspaceReader,
    writer: TaskWriter,
    sink: NotificationSink,
    config: Optional[SyncConfiguration] = None,
) -> dict[str, list[AlignedTask]]:
    """
    Move previously aligned tasks after the event dates changed.

    Returns the writes issued, keyed by workspace id. Changes that touch
    neither ``start_date`` nor ``end_date`` do nothing. The sink is told
    about moved deadlines unless deadline alerts are switched off.
    """
    if "start_date" not in changes and "end_date" not in changes:
        return {}
    config = config or default_sync_configuration()

    out: dict[str, list[AlignedTask]] = {}
    for workspace in reader.list_workspaces_for_event(event_id):
        event = Event.model_validate({**workspace.event.model_dump(), **changes})
        realigned = realign_tasks(workspace.tasks, generate_milestones(event))
        for a in realigned:
            writer.update_task(a.task_id, TaskUpdate(due_date=a.new_due_date))
        out[workspace.id] = realigned

        if realigned and config.notification_settings.enable_deadline_alerts:
            sink.notify("event_changed", workspace.id, {
                "event_id": event_id,
                "changes": dict(changes),
                "affected_task_count": len(realigned),
            })
    return out


# -----------------------
# Reporting / escalation
# -----------------------
def get_progress_report(
    workspace_id: str,
    user_id: str,
    reader: WorkspaceReader,
    oracle: PermissionOracle,
    now: Optional[datetime] = None,
) -> ProgressReport:
    require_permission(oracle, workspace_id, user_id, VIEW_WORKSPACE)
    workspace = reader.get_workspace(workspace_id)
    return build_progress_report(workspace.id, workspace.event, workspace.tasks, now)


def escalate_critical_deadlines(
    workspace_id: str,
    reader: WorkspaceReader,
    writer: TaskWriter,
    sink: NotificationSink,
    now: Optional[datetime] = None,
    config: Optional[SyncConfiguration] = None,
) -> list[str]:
    """
    Notify about urgent deadlines, then bump those tasks to URGENT.

    The window is ``escalation_thresholds.critical`` hours. Notifications
    are skipped when critical escalation is switched off; the priority
    bump still happens. Returns escalated task ids.
    """
    config = config or default_sync_configuration()
    workspace = reader.get_workspace(workspace_id)
    escalations = find_deadline_escalations(workspace.tasks, now, config.escalation_thresholds.critical)

    if config.notification_settings.enable_critical_escalation:
        for e in escalations:
            sink.notify("critical_deadline", workspace_id, e.model_dump())
    for e in escalations:
        if e.priority != TaskPriority.URGENT:
            writer.update_task(e.task_id, TaskUpdate(priority=TaskPriority.URGENT))

    if escalations:
        logger.info("workspace %s: escalated %d critical deadlines", workspace_id, len(escalations))
    return [e.task_id for e in escalations]


# -----------------------
# Templates
# -----------------------
def get_template_recommendations(event_id: str, reader: WorkspaceReader) -> list[TemplateRecommendation]:
    event = reader.get_event(event_id)
    return recommend_templates(event, reader.list_templates(event.organization_id))


def plan_template_tasks(
    template: Template,
    event: Event,
    customization: Optional[TemplateCustomization] = None,
) -> list[NewTask]:
    """Template tasks dated relative to the event start, followed by custom additions."""
    out = [
        NewTask(
            title=t.title,
            description=t.description,
            category=t.category,
            priority=t.priority,
            due_date=event.start_date - timedelta(days=t.days_before_event),
            dependencies=list(t.dependencies),
            tags=["template-generated"],
            metadata=TaskMetadata(template_id=template.id),
        )
        for t in template.tasks
    ]
    if customization is not None:
        for t in customization.add_tasks:
            out.append(t.model_copy(update={
                "tags": [*t.tags, "custom-added"],
                "metadata": t.metadata.model_copy(update={"customization": True}),
            }))
    return out


def apply_template(
    workspace_id: str,
    template_id: str,
    user_id: str,
    reader: WorkspaceReader,
    writer: TaskWriter,
    template_writer: TemplateWriter,
    oracle: PermissionOracle,
    customization: Optional[TemplateCustomization] = None,
) -> list[str]:
    """
    Create the template's tasks, then apply the customization: removals and
    modifications only touch tasks that already belonged to the workspace.
    Returns the ids of created tasks.
    """
    require_permission(oracle, workspace_id, user_id, MANAGE_WORKSPACE)
    workspace = reader.get_workspace(workspace_id)
    template = reader.get_template(template_id)

    created = [
        writer.create_task(workspace_id, t)
        for t in plan_template_tasks(template, workspace.event, customization)
    ]

    if customization is not None:
        own = {t.id for t in workspace.tasks}
        for task_id in customization.remove_tasks:
            if task_id not in own:
                logger.info("workspace %s: not removing foreign task %s", workspace_id, task_id)
                continue
            writer.delete_task(task_id)
        for mod in customization.modify_tasks:
            if mod.task_id not in own:
                logger.info("workspace %s: not modifying foreign task %s", workspace_id, mod.task_id)
                continue
            writer.update_task(mod.task_id, mod.to_update())

    template_writer.set_workspace_template(workspace_id, template_id)
    logger.info("template %s applied to workspace %s: %d tasks", template_id, workspace_id, len(created))
    return created


def create_template_from_workspace(
    workspace_id: str,
    user_id: str,
    draft: TemplateDraft,
    reader: WorkspaceReader,
    template_writer: TemplateWriter,
    oracle: PermissionOracle,
) -> str:
    require_permission(oracle, workspace_id, user_id, MANAGE_WORKSPACE)
    workspace = reader.get_workspace(workspace_id)
    template = template_from_workspace(workspace, reader.get_team_size(workspace_id), draft, created_by=user_id)
    template_id = template_writer.create_template(template)
    logger.info("template %s created from workspace %s (%d tasks)", template_id, workspace_id, len(template.tasks))
    return template_id


def track_template_effectiveness(
    template_id: str,
    reader: WorkspaceReader,
    template_writer: TemplateWriter,
    now: Optional[datetime] = None,
) -> TemplateEffectivenessReport:
    """Measure the workspaces that used a template and store the result on it."""
    reader.get_template(template_id)
    workspaces = reader.list_workspaces_for_template(template_id)
    if not workspaces:
        raise NotFoundError("Template usage data", template_id)

    report = template_effectiveness(template_id, workspaces, now)
    template_writer.update_template_effectiveness(template_id, report.to_effectiveness())
    logger.info(
        "template %s: %d usages, completion rate %.1f%%",
        template_id, report.total_usages, report.completion_rate,
    )
    return report
