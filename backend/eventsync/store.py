"""SQLModel-backed collaborators for the service layer."""

import json
import logging
from typing import Any, Dict, Optional

from sqlmodel import Session, or_, select

from . import models
from .errors import NotFoundError
from .schemas import (
    Event,
    NewTask,
    SizeRange,
    Task,
    TaskUpdate,
    Template,
    TemplateEffectiveness,
    TemplateMetadata,
    WorkspaceSnapshot,
)
from .services import VIEW_WORKSPACE
from .templates import DEFAULT_ROLE_PERMISSIONS
from .utils import sanitize_for_json, utcnow

logger = logging.getLogger(__name__)


def _pk(value) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return -1


def audit(session: Session, workspace_id: int, entity_type: str, entity_id: int,
          action: str, before: Dict[str, Any], after: Dict[str, Any], actor_user_id=None) -> None:
    row = models.AuditLog(
        workspace_id=workspace_id,
        actor_user_id=actor_user_id,
        entity_type=entity_type,
        entity_id=entity_id,
        action=action,
        before_json=json.dumps(sanitize_for_json(before), ensure_ascii=False),
        after_json=json.dumps(sanitize_for_json(after), ensure_ascii=False),
        created_at=utcnow(),
    )
    session.add(row)
    session.commit()


def to_event(row: models.Event) -> Event:
    return Event(
        id=str(row.id),
        name=row.name,
        start_date=row.start_date,
        end_date=row.end_date,
        registration_deadline=row.registration_deadline,
        created_at=row.created_at,
        organization_id=row.organization_id,
        capacity=row.capacity,
    )


def to_task(row: models.WorkspaceTask) -> Task:
    return Task(
        id=str(row.id),
        title=row.title,
        description=row.description,
        category=row.category,
        due_date=row.due_date,
        status=row.status,
        priority=row.priority,
        dependencies=[str(d) for d in row.dependencies or []],
        metadata=row.task_metadata or {},
    )


def to_template(row: models.WorkspaceTemplate) -> Template:
    return Template(
        id=str(row.id),
        name=row.name,
        description=row.description,
        category=row.category,
        complexity=row.complexity,
        event_size_range=SizeRange(min=row.size_min, max=row.size_max),
        tasks=row.tasks or [],
        metadata=TemplateMetadata(
            created_by=row.created_by,
            organization_id=row.organization_id,
            is_public=row.is_public,
            usage_count=row.usage_count,
            tags=row.tags or [],
        ),
        effectiveness=TemplateEffectiveness(
            completion_rate=row.completion_rate,
            average_task_completion_rate=row.average_task_completion_rate,
            successful_events=row.successful_events,
        ),
    )


class SqlWorkspaceStore:
    """Reader and task writer over one session. Every task write is audited."""

    def __init__(self, session: Session, actor_user_id: Optional[str] = None):
        self.session = session
        self.actor_user_id = actor_user_id

    def _snapshot(self, ws: models.Workspace) -> WorkspaceSnapshot:
        return WorkspaceSnapshot(
            id=str(ws.id),
            event=to_event(ws.event),
            tasks=[to_task(t) for t in ws.tasks],
        )

    def get_workspace(self, workspace_id: str) -> WorkspaceSnapshot:
        ws = self.session.get(models.Workspace, _pk(workspace_id))
        if not ws:
            raise NotFoundError("Workspace", workspace_id)
        return self._snapshot(ws)

    def get_event(self, event_id: str) -> Event:
        row = self.session.get(models.Event, _pk(event_id))
        if not row:
            raise NotFoundError("Event", event_id)
        return to_event(row)

    def list_workspaces_for_event(self, event_id: str) -> list[WorkspaceSnapshot]:
        rows = self.session.exec(
            select(models.Workspace).where(models.Workspace.event_id == _pk(event_id))
        ).all()
        return [self._snapshot(ws) for ws in rows]

    def get_workspace_owner(self, workspace_id: str) -> Optional[str]:
        owner = self.session.exec(
            select(models.TeamMember).where(
                models.TeamMember.workspace_id == _pk(workspace_id),
                models.TeamMember.role == "WORKSPACE_OWNER",
                models.TeamMember.status == "ACTIVE",
            )
        ).first()
        return owner.user_id if owner else None

    def list_templates(self, organization_id: Optional[str]) -> list[Template]:
        stmt = select(models.WorkspaceTemplate)
        if organization_id:
            stmt = stmt.where(or_(
                models.WorkspaceTemplate.organization_id == organization_id,
                models.WorkspaceTemplate.is_public == True,  # noqa: E712
            ))
        else:
            stmt = stmt.where(models.WorkspaceTemplate.is_public == True)  # noqa: E712
        return [to_template(r) for r in self.session.exec(stmt).all()]

    def get_template(self, template_id: str) -> Template:
        row = self.session.get(models.WorkspaceTemplate, _pk(template_id))
        if not row:
            raise NotFoundError("Template", template_id)
        return to_template(row)

    def list_workspaces_for_template(self, template_id: str) -> list[WorkspaceSnapshot]:
        rows = self.session.exec(
            select(models.Workspace).where(models.Workspace.template_id == _pk(template_id))
        ).all()
        return [self._snapshot(ws) for ws in rows]

    def get_team_size(self, workspace_id: str) -> int:
        members = self.session.exec(
            select(models.TeamMember).where(
                models.TeamMember.workspace_id == _pk(workspace_id),
                models.TeamMember.status == "ACTIVE",
            )
        ).all()
        return len(members)

    def update_task(self, task_id: str, update: TaskUpdate) -> None:
        task = self.session.get(models.WorkspaceTask, _pk(task_id))
        if not task:
            raise NotFoundError("Task", task_id)

        before = task.model_dump()
        if update.title is not None:
            task.title = update.title
        if update.description is not None:
            task.description = update.description
        if update.due_date is not None:
            task.due_date = update.due_date
        if update.metadata is not None:
            # new dict so the JSON column is flagged dirty
            task.task_metadata = sanitize_for_json(update.metadata.model_dump(exclude_none=True))
        if update.priority is not None:
            task.priority = update.priority.value

        task.updated_at = utcnow()
        self.session.add(task)
        self.session.commit()
        self.session.refresh(task)

        action = "update_dates" if update.due_date is not None else "update"
        audit(self.session, task.workspace_id, "task", task.id, action,
              before, task.model_dump(), self.actor_user_id)

    def create_task(self, workspace_id: str, task: NewTask) -> str:
        row = models.WorkspaceTask(
            workspace_id=_pk(workspace_id),
            title=task.title,
            description=task.description,
            category=task.category.value if task.category else None,
            status=task.status.value,
            priority=task.priority.value,
            due_date=task.due_date,
            dependencies=list(task.dependencies),
            tags=list(task.tags),
            task_metadata=sanitize_for_json(task.metadata.model_dump(exclude_none=True)),
        )
        self.session.add(row)
        self.session.commit()
        self.session.refresh(row)

        audit(self.session, row.workspace_id, "task", row.id, "create",
              {}, row.model_dump(), self.actor_user_id)
        return str(row.id)

    def delete_task(self, task_id: str) -> None:
        task = self.session.get(models.WorkspaceTask, _pk(task_id))
        if not task:
            raise NotFoundError("Task", task_id)

        before = task.model_dump()
        workspace_id, row_id = task.workspace_id, task.id
        self.session.delete(task)
        self.session.commit()

        audit(self.session, workspace_id, "task", row_id, "delete", before, {}, self.actor_user_id)

    # -----------------------
    # Templates
    # -----------------------
    def create_template(self, template: Template) -> str:
        row = models.WorkspaceTemplate(
            name=template.name,
            description=template.description,
            category=template.category.value,
            complexity=template.complexity.value,
            size_min=template.event_size_range.min,
            size_max=template.event_size_range.max,
            organization_id=template.metadata.organization_id,
            is_public=template.metadata.is_public,
            created_by=template.metadata.created_by,
            tags=list(template.metadata.tags),
            completion_rate=template.effectiveness.completion_rate,
            average_task_completion_rate=template.effectiveness.average_task_completion_rate,
            successful_events=template.effectiveness.successful_events,
            tasks=[t.model_dump(mode="json") for t in template.tasks],
        )
        self.session.add(row)
        self.session.commit()
        self.session.refresh(row)
        return str(row.id)

    def set_workspace_template(self, workspace_id: str, template_id: str) -> None:
        ws = self.session.get(models.Workspace, _pk(workspace_id))
        if not ws:
            raise NotFoundError("Workspace", workspace_id)
        row = self.session.get(models.WorkspaceTemplate, _pk(template_id))
        if not row:
            raise NotFoundError("Template", template_id)

        ws.template_id = row.id
        row.usage_count += 1
        self.session.add(ws)
        self.session.add(row)
        self.session.commit()

    def update_template_effectiveness(self, template_id: str, effectiveness: TemplateEffectiveness) -> None:
        row = self.session.get(models.WorkspaceTemplate, _pk(template_id))
        if not row:
            raise NotFoundError("Template", template_id)

        row.completion_rate = effectiveness.completion_rate
        row.average_task_completion_rate = effectiveness.average_task_completion_rate
        row.successful_events = effectiveness.successful_events
        self.session.add(row)
        self.session.commit()


class SqlPermissionOracle:
    def __init__(self, session: Session):
        self.session = session

    def has_permission(self, workspace_id: str, user_id: str, permission: str) -> bool:
        member = self.session.exec(
            select(models.TeamMember).where(
                models.TeamMember.workspace_id == _pk(workspace_id),
                models.TeamMember.user_id == user_id,
                models.TeamMember.status == "ACTIVE",
            )
        ).first()
        if not member:
            return False
        if permission == VIEW_WORKSPACE:
            return True
        if member.permissions is not None:
            return permission in member.permissions
        return permission in DEFAULT_ROLE_PERMISSIONS.get(member.role, ())


class LoggingNotificationSink:
    """Notifications go to the log; delivery is someone else's job."""

    def notify(self, kind: str, workspace_id: str, payload: dict) -> None:
        logger.warning("%s for workspace %s: %s", kind, workspace_id, sanitize_for_json(payload))
