from datetime import datetime
from typing import Optional

from sqlalchemy import JSON, Column, DateTime
from sqlmodel import Field, Relationship, SQLModel

from .utils import utcnow

# values are written as timezone-aware UTC; see utils.to_datetime for reads
AwareDateTime = DateTime(timezone=True)


# =========================
# Event
# =========================
class Event(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    organization_id: Optional[str] = Field(default=None, index=True)
    capacity: Optional[int] = None

    start_date: datetime = Field(sa_type=AwareDateTime)
    end_date: Optional[datetime] = Field(default=None, sa_type=AwareDateTime)
    registration_deadline: Optional[datetime] = Field(default=None, sa_type=AwareDateTime)

    created_at: datetime = Field(default_factory=utcnow, sa_type=AwareDateTime)
    updated_at: datetime = Field(default_factory=utcnow, sa_type=AwareDateTime)

    workspaces: list["Workspace"] = Relationship(
        back_populates="event",
        sa_relationship_kwargs={"cascade": "all, delete-orphan"}
    )


# =========================
# Workspace
# =========================
class Workspace(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    event_id: int = Field(foreign_key="event.id", index=True)
    name: str
    template_id: Optional[int] = None

    created_at: datetime = Field(default_factory=utcnow, sa_type=AwareDateTime)

    event: Optional[Event] = Relationship(back_populates="workspaces")
    tasks: list["WorkspaceTask"] = Relationship(
        back_populates="workspace",
        sa_relationship_kwargs={"cascade": "all, delete-orphan"}
    )
    members: list["TeamMember"] = Relationship(
        back_populates="workspace",
        sa_relationship_kwargs={"cascade": "all, delete-orphan"}
    )


# =========================
# TeamMember
# =========================
class TeamMember(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    workspace_id: int = Field(foreign_key="workspace.id", index=True)
    user_id: str = Field(index=True)

    role: str = "GENERAL_VOLUNTEER"
    status: str = "ACTIVE"
    # None: fall back to the role's default permissions
    permissions: Optional[list] = Field(default=None, sa_column=Column(JSON))

    created_at: datetime = Field(default_factory=utcnow, sa_type=AwareDateTime)

    workspace: Optional[Workspace] = Relationship(back_populates="members")


# =========================
# WorkspaceTask
# =========================
class WorkspaceTask(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    workspace_id: int = Field(foreign_key="workspace.id", index=True)

    title: str
    description: Optional[str] = None
    category: Optional[str] = None

    status: str = "NOT_STARTED"
    priority: str = "MEDIUM"
    due_date: Optional[datetime] = Field(default=None, sa_type=AwareDateTime)

    dependencies: list = Field(default_factory=list, sa_column=Column(JSON))
    tags: list = Field(default_factory=list, sa_column=Column(JSON))
    # "metadata" is reserved on SQLModel classes
    task_metadata: dict = Field(default_factory=dict, sa_column=Column("metadata", JSON))

    created_at: datetime = Field(default_factory=utcnow, sa_type=AwareDateTime)
    updated_at: datetime = Field(default_factory=utcnow, sa_type=AwareDateTime)

    workspace: Optional[Workspace] = Relationship(back_populates="tasks")


# =========================
# WorkspaceTemplate
# =========================
class WorkspaceTemplate(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    description: Optional[str] = None
    category: str = "GENERAL"
    complexity: str = "MODERATE"

    size_min: int = 0
    size_max: int = 100

    organization_id: Optional[str] = Field(default=None, index=True)
    is_public: bool = False
    created_by: Optional[str] = None
    tags: list = Field(default_factory=list, sa_column=Column(JSON))
    usage_count: int = 0

    # refreshed by effectiveness tracking
    completion_rate: float = 0.0
    average_task_completion_rate: float = 0.0
    successful_events: int = 0

    tasks: list = Field(default_factory=list, sa_column=Column(JSON))

    created_at: datetime = Field(default_factory=utcnow, sa_type=AwareDateTime)


# =========================
# AuditLog
# =========================
class AuditLog(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)

    workspace_id: int = Field(foreign_key="workspace.id", index=True)
    actor_user_id: Optional[str] = Field(default=None)

    entity_type: str
    entity_id: int
    action: str

    before_json: str = "{}"
    after_json: str = "{}"

    created_at: datetime = Field(default_factory=utcnow, sa_type=AwareDateTime)
