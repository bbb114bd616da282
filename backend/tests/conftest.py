"""
Shared fixtures: a sample event, in-memory collaborators for the service
layer, and a TestClient bound to an in-memory SQLite database.
"""
from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, create_engine

from eventsync.db import get_session, init_db
from eventsync.errors import NotFoundError
from eventsync.main import app
from eventsync.schemas import Event, Task, TaskUpdate, WorkspaceSnapshot


def utc(*args):
    return datetime(*args, tzinfo=timezone.utc)


@pytest.fixture
def event():
    return Event(
        id="event-1",
        start_date=utc(2024, 3, 1),
        end_date=utc(2024, 3, 2),
        registration_deadline=utc(2024, 2, 25),
        created_at=utc(2024, 1, 1),
        organization_id="org-1",
        capacity=150,
    )


def make_task(task_id, **kw):
    kw.setdefault("title", f"Task {task_id}")
    return Task(id=task_id, **kw)


class FakeStore:
    """Reader + writers over plain snapshots; records every write."""

    def __init__(self, workspaces=(), templates=(), owners=None, template_usage=None, team_sizes=None):
        self.workspaces = {w.id: w for w in workspaces}
        self.templates = {t.id: t for t in templates}
        self.owners = owners or {}
        self.template_usage = template_usage or {}
        self.team_sizes = team_sizes or {}
        self.updates = []
        self.created = []
        self.deleted = []
        self.created_templates = []
        self.applied_templates = []
        self.effectiveness = {}

    def get_workspace(self, workspace_id):
        if workspace_id not in self.workspaces:
            raise NotFoundError("Workspace", workspace_id)
        return self.workspaces[workspace_id]

    def get_event(self, event_id):
        for w in self.workspaces.values():
            if w.event.id == event_id:
                return w.event
        raise NotFoundError("Event", event_id)

    def list_workspaces_for_event(self, event_id):
        return [w for w in self.workspaces.values() if w.event.id == event_id]

    def get_workspace_owner(self, workspace_id):
        return self.owners.get(workspace_id)

    def list_templates(self, organization_id):
        return [
            t for t in self.templates.values()
            if t.metadata.is_public or t.metadata.organization_id == organization_id
        ]

    def get_template(self, template_id):
        if template_id not in self.templates:
            raise NotFoundError("Template", template_id)
        return self.templates[template_id]

    def list_workspaces_for_template(self, template_id):
        return [self.workspaces[w] for w in self.template_usage.get(template_id, ())]

    def get_team_size(self, workspace_id):
        return self.team_sizes.get(workspace_id, 0)

    def update_task(self, task_id, update: TaskUpdate):
        self.updates.append((task_id, update))

    def create_task(self, workspace_id, task):
        self.created.append((workspace_id, task))
        return f"new-{len(self.created)}"

    def delete_task(self, task_id):
        self.deleted.append(task_id)

    def create_template(self, template):
        self.created_templates.append(template)
        return f"tpl-new-{len(self.created_templates)}"

    def set_workspace_template(self, workspace_id, template_id):
        self.applied_templates.append((workspace_id, template_id))

    def update_template_effectiveness(self, template_id, effectiveness):
        self.effectiveness[template_id] = effectiveness


class FlakyStore(FakeStore):
    """Fails the n-th task update, after recording the earlier ones."""

    def __init__(self, *args, fail_on=2, **kw):
        super().__init__(*args, **kw)
        self.fail_on = fail_on
        self.attempts = 0

    def update_task(self, task_id, update):
        self.attempts += 1
        if self.attempts == self.fail_on:
            raise RuntimeError(f"write failed for {task_id}")
        super().update_task(task_id, update)


class FakeOracle:
    def __init__(self, grants=()):
        self.grants = set(grants)
        self.calls = []

    def has_permission(self, workspace_id, user_id, permission):
        self.calls.append((workspace_id, user_id, permission))
        return (workspace_id, user_id, permission) in self.grants


class FakeSink:
    def __init__(self):
        self.sent = []

    def notify(self, kind, workspace_id, payload):
        self.sent.append((kind, workspace_id, payload))


@pytest.fixture
def workspace(event):
    return WorkspaceSnapshot(id="ws-1", event=event, tasks=[])


@pytest.fixture
def sink():
    return FakeSink()


@pytest.fixture
def client():
    engine = create_engine(
        "sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool
    )
    init_db(engine)

    def _session():
        with Session(engine) as session:
            yield session

    app.dependency_overrides[get_session] = _session
    yield TestClient(app)
    app.dependency_overrides.clear()
