from datetime import datetime
from enum import Enum
from typing import Annotated, List, Optional

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field

from .config import get_auto_create_milestone_tasks, get_critical_escalation_hours
from .utils import to_datetime


class MilestoneType(str, Enum):
    REGISTRATION_OPEN = "REGISTRATION_OPEN"
    REGISTRATION_CLOSE = "REGISTRATION_CLOSE"
    VENUE_BOOKING = "VENUE_BOOKING"
    MARKETING_LAUNCH = "MARKETING_LAUNCH"
    FINAL_PREPARATIONS = "FINAL_PREPARATIONS"
    EVENT_START = "EVENT_START"
    EVENT_END = "EVENT_END"
    POST_EVENT_CLEANUP = "POST_EVENT_CLEANUP"


class MilestonePriority(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


class MilestoneStatus(str, Enum):
    NOT_STARTED = "NOT_STARTED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    OVERDUE = "OVERDUE"


class TaskStatus(str, Enum):
    NOT_STARTED = "NOT_STARTED"
    IN_PROGRESS = "IN_PROGRESS"
    REVIEW_REQUIRED = "REVIEW_REQUIRED"
    COMPLETED = "COMPLETED"
    BLOCKED = "BLOCKED"


class TaskPriority(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    URGENT = "URGENT"


class TaskCategory(str, Enum):
    SETUP = "SETUP"
    MARKETING = "MARKETING"
    LOGISTICS = "LOGISTICS"
    TECHNICAL = "TECHNICAL"
    REGISTRATION = "REGISTRATION"
    POST_EVENT = "POST_EVENT"


class RiskType(str, Enum):
    OVERDUE_TASKS = "OVERDUE_TASKS"
    BLOCKED_CRITICAL = "BLOCKED_CRITICAL"
    # declared for consumers of the report, never produced by detect_risks
    RESOURCE_SHORTAGE = "RESOURCE_SHORTAGE"
    DEPENDENCY_DELAY = "DEPENDENCY_DELAY"


class RiskSeverity(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


class TemplateCategory(str, Enum):
    CONFERENCE = "CONFERENCE"
    WORKSHOP = "WORKSHOP"
    HACKATHON = "HACKATHON"
    NETWORKING = "NETWORKING"
    COMPETITION = "COMPETITION"
    GENERAL = "GENERAL"


class TemplateComplexity(str, Enum):
    SIMPLE = "SIMPLE"
    MODERATE = "MODERATE"
    COMPLEX = "COMPLEX"


HIGH_PRIORITIES = (TaskPriority.HIGH, TaskPriority.URGENT)


# accepts datetimes, dates and ISO strings; always timezone-aware UTC
Instant = Annotated[datetime, BeforeValidator(to_datetime)]


# -----------------------
# Event / Task inputs
# -----------------------
class Event(BaseModel):
    id: Optional[str] = None
    name: Optional[str] = None
    start_date: Instant
    end_date: Optional[Instant] = None
    registration_deadline: Optional[Instant] = None
    created_at: Instant
    organization_id: Optional[str] = None
    capacity: Optional[int] = None


class TaskMetadata(BaseModel):
    """Known stamps on a task; unknown keys are kept as extras."""

    model_config = ConfigDict(extra="allow")

    aligned_milestone: Optional[str] = None
    milestone_id: Optional[str] = None
    milestone_type: Optional[MilestoneType] = None
    original_due_date: Optional[Instant] = None
    template_id: Optional[str] = None
    customization: Optional[bool] = None
    auto_generated: Optional[bool] = None


class Task(BaseModel):
    id: str
    title: str
    description: Optional[str] = None
    category: Optional[TaskCategory] = None
    due_date: Optional[Instant] = None
    status: TaskStatus = TaskStatus.NOT_STARTED
    priority: TaskPriority = TaskPriority.MEDIUM
    dependencies: List[str] = Field(default_factory=list)
    metadata: TaskMetadata = Field(default_factory=TaskMetadata)


class TaskUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    due_date: Optional[Instant] = None
    metadata: Optional[TaskMetadata] = None
    priority: Optional[TaskPriority] = None


class NewTask(BaseModel):
    title: str
    description: Optional[str] = None
    category: Optional[TaskCategory] = None
    priority: TaskPriority = TaskPriority.MEDIUM
    status: TaskStatus = TaskStatus.NOT_STARTED
    due_date: Optional[Instant] = None
    dependencies: List[str] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)
    metadata: TaskMetadata = Field(default_factory=TaskMetadata)


class WorkspaceSnapshot(BaseModel):
    id: str
    event: Event
    tasks: List[Task] = Field(default_factory=list)


# -----------------------
# Derived entities
# -----------------------
class Milestone(BaseModel):
    id: str
    name: str
    description: str
    due_date: Instant
    type: MilestoneType
    priority: MilestonePriority
    dependencies: List[str] = Field(default_factory=list)


class AlignedTask(BaseModel):
    """One intended task write produced by alignment."""

    task_id: str
    milestone_id: str
    new_due_date: Instant
    original_due_date: Optional[Instant] = None
    metadata: TaskMetadata


class RelatedTask(BaseModel):
    task_id: str
    task_title: str
    status: TaskStatus


class MilestoneProgress(BaseModel):
    milestone_id: str
    milestone_name: str
    progress: float
    status: MilestoneStatus
    related_tasks: List[RelatedTask] = Field(default_factory=list)


class CriticalPathEntry(BaseModel):
    task_id: str
    task_title: str
    due_date: Instant
    dependencies: List[str] = Field(default_factory=list)
    slack: int


class RiskFactor(BaseModel):
    type: RiskType
    severity: RiskSeverity
    description: str
    impact: str
    mitigation: List[str] = Field(default_factory=list)


class ProgressReport(BaseModel):
    workspace_id: str
    event_id: Optional[str] = None
    overall_progress: float
    milestone_progress: List[MilestoneProgress] = Field(default_factory=list)
    critical_path: List[CriticalPathEntry] = Field(default_factory=list)
    risk_factors: List[RiskFactor] = Field(default_factory=list)


class DeadlineEscalation(BaseModel):
    task_id: str
    task_title: str
    due_date: Instant
    priority: TaskPriority


# -----------------------
# Templates
# -----------------------
class SizeRange(BaseModel):
    min: int
    max: int


class TemplateTask(BaseModel):
    title: str
    description: Optional[str] = None
    category: TaskCategory
    priority: TaskPriority = TaskPriority.MEDIUM
    days_before_event: int = 7
    dependencies: List[str] = Field(default_factory=list)


class TemplateMetadata(BaseModel):
    created_by: Optional[str] = None
    organization_id: Optional[str] = None
    is_public: bool = False
    usage_count: int = 0
    tags: List[str] = Field(default_factory=list)


class TemplateEffectiveness(BaseModel):
    completion_rate: float = 0.0
    average_task_completion_rate: float = 0.0
    successful_events: int = 0


class Template(BaseModel):
    id: Optional[str] = None
    name: str
    description: Optional[str] = None
    category: TemplateCategory = TemplateCategory.GENERAL
    event_size_range: SizeRange
    complexity: TemplateComplexity = TemplateComplexity.MODERATE
    tasks: List[TemplateTask] = Field(default_factory=list)
    metadata: TemplateMetadata = Field(default_factory=TemplateMetadata)
    effectiveness: TemplateEffectiveness = Field(default_factory=TemplateEffectiveness)


class TemplateRecommendation(BaseModel):
    template: Template
    match_score: float
    match_reasons: List[str] = Field(default_factory=list)
    customization_suggestions: List[str] = Field(default_factory=list)


class TaskModification(BaseModel):
    task_id: str
    title: Optional[str] = None
    description: Optional[str] = None
    priority: Optional[TaskPriority] = None
    due_date: Optional[Instant] = None

    def to_update(self) -> TaskUpdate:
        return TaskUpdate(**self.model_dump(exclude={"task_id"}, exclude_none=True))


class TemplateCustomization(BaseModel):
    """Event-specific changes applied after the template tasks: add, then remove, then modify."""

    add_tasks: List[NewTask] = Field(default_factory=list)
    remove_tasks: List[str] = Field(default_factory=list)
    modify_tasks: List[TaskModification] = Field(default_factory=list)


class TemplateDraft(BaseModel):
    name: str
    description: Optional[str] = None
    category: TemplateCategory = TemplateCategory.GENERAL
    complexity: TemplateComplexity = TemplateComplexity.MODERATE
    is_public: bool = False
    tags: List[str] = Field(default_factory=list)


class Bottleneck(BaseModel):
    issue: str
    frequency: int
    impact: RiskSeverity


class SuggestionType(str, Enum):
    ADD_TASK = "ADD_TASK"
    REMOVE_TASK = "REMOVE_TASK"
    MODIFY_ROLE = "MODIFY_ROLE"
    ADJUST_TIMELINE = "ADJUST_TIMELINE"


class ImprovementSuggestion(BaseModel):
    type: SuggestionType
    description: str
    priority: RiskSeverity
    based_on_data: str


class TemplateEffectivenessReport(BaseModel):
    template_id: str
    total_usages: int
    successful_completions: int
    completion_rate: float
    average_task_completion_rate: float
    common_bottlenecks: List[Bottleneck] = Field(default_factory=list)
    improvement_suggestions: List[ImprovementSuggestion] = Field(default_factory=list)

    def to_effectiveness(self) -> TemplateEffectiveness:
        return TemplateEffectiveness(
            completion_rate=self.completion_rate,
            average_task_completion_rate=self.average_task_completion_rate,
            successful_events=self.successful_completions,
        )


# -----------------------
# Sync configuration / results
# -----------------------
class EscalationThresholds(BaseModel):
    # hours before a HIGH/URGENT deadline at which it is escalated
    critical: int = 24


class NotificationSettings(BaseModel):
    # event date changes that move task deadlines
    enable_deadline_alerts: bool = True
    enable_critical_escalation: bool = True


class SyncConfiguration(BaseModel):
    auto_create_milestone_tasks: bool = True
    escalation_thresholds: EscalationThresholds = Field(default_factory=EscalationThresholds)
    notification_settings: NotificationSettings = Field(default_factory=NotificationSettings)


def default_sync_configuration() -> SyncConfiguration:
    return SyncConfiguration(
        auto_create_milestone_tasks=get_auto_create_milestone_tasks(),
        escalation_thresholds=EscalationThresholds(critical=get_critical_escalation_hours()),
    )


class SyncResult(BaseModel):
    workspace_id: str
    milestones: List[Milestone] = Field(default_factory=list)
    aligned: List[AlignedTask] = Field(default_factory=list)
    created_task_ids: List[str] = Field(default_factory=list)


# -----------------------
# Request bodies
# -----------------------
class EventCreate(BaseModel):
    name: str
    start_date: Instant
    end_date: Optional[Instant] = None
    registration_deadline: Optional[Instant] = None
    created_at: Optional[Instant] = None
    organization_id: Optional[str] = None
    capacity: Optional[int] = None


class WorkspaceCreate(BaseModel):
    event_id: int
    name: str
    owner_user_id: Optional[str] = None


class MemberCreate(BaseModel):
    user_id: str
    role: str = "GENERAL_VOLUNTEER"
    permissions: Optional[List[str]] = None


class ApplyTemplateRequest(BaseModel):
    template_id: str
    customization: Optional[TemplateCustomization] = None
