import logging
from typing import List, Optional

from fastapi import Depends, FastAPI, Header, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlmodel import Session, select

from . import models
from .config import configure_logging
from .db import get_session, init_db
from .errors import AuthorizationError, NotFoundError
from .milestones import generate_milestones
from .schemas import (
    ApplyTemplateRequest,
    EventCreate,
    MemberCreate,
    Milestone,
    NewTask,
    ProgressReport,
    SyncConfiguration,
    SyncResult,
    Task,
    TaskCategory,
    TaskPriority,
    TaskStatus,
    Template,
    TemplateDraft,
    TemplateEffectivenessReport,
    TemplateRecommendation,
    WorkspaceCreate,
)
from .services import (
    VIEW_WORKSPACE,
    apply_template,
    create_template_from_workspace,
    escalate_critical_deadlines,
    get_progress_report,
    get_template_recommendations,
    handle_event_update,
    require_permission,
    synchronize_workspace,
    track_template_effectiveness,
)
from .store import LoggingNotificationSink, SqlPermissionOracle, SqlWorkspaceStore, audit, to_event
from .utils import to_datetime, utcnow

logger = logging.getLogger(__name__)

MANAGE_TEAM = "MANAGE_TEAM"
MANAGE_TASKS = "MANAGE_TASKS"

_ENUM_FIELDS = {
    "status": {s.value for s in TaskStatus},
    "priority": {p.value for p in TaskPriority},
    "category": {c.value for c in TaskCategory},
}

app = FastAPI(title="Event Timeline Sync")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("startup")
def on_startup():
    configure_logging()
    init_db()
    logger.info("database ready")


@app.exception_handler(NotFoundError)
def not_found_handler(request: Request, exc: NotFoundError):
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(AuthorizationError)
def authorization_handler(request: Request, exc: AuthorizationError):
    return JSONResponse(status_code=403, content={"detail": str(exc)})


def current_user(x_user_id: Optional[str] = Header(default=None, alias="X-User-Id")) -> str:
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(401, "X-User-Id header is required")
    return x_user_id.strip()


def _workspace_or_404(session: Session, wid: int) -> models.Workspace:
    ws = session.get(models.Workspace, wid)
    if not ws:
        raise HTTPException(404, "Workspace not found")
    return ws


# -----------------------
# Events
# -----------------------
@app.post("/events", response_model=models.Event)
def create_event(body: EventCreate, session: Session = Depends(get_session)):
    row = models.Event(
        name=body.name.strip(),
        organization_id=body.organization_id,
        capacity=body.capacity,
        start_date=body.start_date,
        end_date=body.end_date,
        registration_deadline=body.registration_deadline,
        created_at=body.created_at or utcnow(),
        updated_at=utcnow(),
    )
    session.add(row)
    session.commit()
    session.refresh(row)
    return row


@app.get("/events/{eid}", response_model=models.Event)
def get_event(eid: int, session: Session = Depends(get_session)):
    row = session.get(models.Event, eid)
    if not row:
        raise HTTPException(404, "Event not found")
    return row


@app.get("/events/{eid}/milestones", response_model=List[Milestone])
def list_milestones(eid: int, session: Session = Depends(get_session)):
    row = session.get(models.Event, eid)
    if not row:
        raise HTTPException(404, "Event not found")
    return generate_milestones(to_event(row))


@app.patch("/events/{eid}")
def patch_event(eid: int, payload: dict, session: Session = Depends(get_session)):
    row = session.get(models.Event, eid)
    if not row:
        raise HTTPException(404, "Event not found")

    date_fields = {"start_date", "end_date", "registration_deadline"}
    allowed = date_fields | {"name", "capacity", "organization_id"}
    changes = {}
    for k, v in payload.items():
        if k not in allowed:
            continue
        if k in date_fields:
            try:
                v = to_datetime(v)
            except ValueError:
                raise HTTPException(400, f"{k} is not a valid date")
        setattr(row, k, v)
        changes[k] = v

    row.updated_at = utcnow()
    session.add(row)
    session.commit()
    session.refresh(row)

    store = SqlWorkspaceStore(session)
    realigned = handle_event_update(str(eid), changes, store, store, LoggingNotificationSink())
    return {
        "event": row.model_dump(),
        "realigned": {wid: [a.task_id for a in writes] for wid, writes in realigned.items()},
    }


@app.get("/events/{eid}/template-recommendations", response_model=List[TemplateRecommendation])
def template_recommendations(eid: int, session: Session = Depends(get_session)):
    return get_template_recommendations(str(eid), SqlWorkspaceStore(session))


# -----------------------
# Workspaces / members
# -----------------------
@app.post("/workspaces", response_model=models.Workspace)
def create_workspace(body: WorkspaceCreate, session: Session = Depends(get_session)):
    if not session.get(models.Event, body.event_id):
        raise HTTPException(404, "Event not found")
    name = body.name.strip()
    if not name:
        raise HTTPException(400, "name is required")

    ws = models.Workspace(event_id=body.event_id, name=name)
    session.add(ws)
    session.commit()
    session.refresh(ws)

    if body.owner_user_id:
        session.add(models.TeamMember(workspace_id=ws.id, user_id=body.owner_user_id, role="WORKSPACE_OWNER"))
        session.commit()
        session.refresh(ws)
    return ws


@app.post("/workspaces/{wid}/members", response_model=models.TeamMember)
def add_member(wid: int, body: MemberCreate, user_id: str = Depends(current_user),
               session: Session = Depends(get_session)):
    _workspace_or_404(session, wid)
    require_permission(SqlPermissionOracle(session), str(wid), user_id, MANAGE_TEAM)

    exists = session.exec(select(models.TeamMember).where(
        models.TeamMember.workspace_id == wid, models.TeamMember.user_id == body.user_id
    )).first()
    if exists:
        raise HTTPException(409, "user is already a member")

    member = models.TeamMember(workspace_id=wid, user_id=body.user_id, role=body.role,
                               permissions=body.permissions)
    session.add(member)
    session.commit()
    session.refresh(member)
    return member


# -----------------------
# Tasks
# -----------------------
@app.post("/workspaces/{wid}/tasks", response_model=Task)
def create_task(wid: int, body: NewTask, user_id: str = Depends(current_user),
                session: Session = Depends(get_session)):
    _workspace_or_404(session, wid)
    require_permission(SqlPermissionOracle(session), str(wid), user_id, MANAGE_TASKS)

    store = SqlWorkspaceStore(session, actor_user_id=user_id)
    task_id = store.create_task(str(wid), body)
    return next(t for t in store.get_workspace(str(wid)).tasks if t.id == task_id)


@app.get("/workspaces/{wid}/tasks", response_model=List[Task])
def list_tasks(wid: int, user_id: str = Depends(current_user), session: Session = Depends(get_session)):
    require_permission(SqlPermissionOracle(session), str(wid), user_id, VIEW_WORKSPACE)
    return SqlWorkspaceStore(session).get_workspace(str(wid)).tasks


@app.patch("/tasks/{task_id}", response_model=Task)
def patch_task(task_id: int, payload: dict, user_id: str = Depends(current_user),
               session: Session = Depends(get_session)):
    task = session.get(models.WorkspaceTask, task_id)
    if not task:
        raise HTTPException(404, "Task not found")
    require_permission(SqlPermissionOracle(session), str(task.workspace_id), user_id, MANAGE_TASKS)

    before = task.model_dump()

    allowed = {"title", "description", "category", "status", "priority", "due_date"}
    for k, v in payload.items():
        if k not in allowed:
            continue
        if k == "due_date":
            try:
                v = to_datetime(v)
            except ValueError:
                raise HTTPException(400, "due_date is not a valid date")
        elif k in _ENUM_FIELDS and v is not None and v not in _ENUM_FIELDS[k]:
            raise HTTPException(400, f"invalid {k}: {v}")
        setattr(task, k, v)

    task.updated_at = utcnow()
    session.add(task)
    session.commit()
    session.refresh(task)

    action = "update"
    if "status" in payload:
        action = "update_status"
    if "due_date" in payload:
        action = "update_dates"

    audit(session, task.workspace_id, "task", task.id, action, before, task.model_dump(), user_id)
    store = SqlWorkspaceStore(session)
    return next(t for t in store.get_workspace(str(task.workspace_id)).tasks if t.id == str(task_id))


# -----------------------
# Timeline sync / analytics
# -----------------------
@app.post("/workspaces/{wid}/sync", response_model=SyncResult)
def sync_workspace(wid: int, config: Optional[SyncConfiguration] = None,
                   user_id: str = Depends(current_user), session: Session = Depends(get_session)):
    store = SqlWorkspaceStore(session, actor_user_id=user_id)
    return synchronize_workspace(str(wid), user_id, store, store, SqlPermissionOracle(session), config)


@app.get("/workspaces/{wid}/progress", response_model=ProgressReport)
def workspace_progress(wid: int, user_id: str = Depends(current_user), session: Session = Depends(get_session)):
    return get_progress_report(str(wid), user_id, SqlWorkspaceStore(session), SqlPermissionOracle(session))


@app.post("/workspaces/{wid}/escalate")
def escalate(wid: int, config: Optional[SyncConfiguration] = None,
             user_id: str = Depends(current_user), session: Session = Depends(get_session)):
    require_permission(SqlPermissionOracle(session), str(wid), user_id, MANAGE_TASKS)
    store = SqlWorkspaceStore(session, actor_user_id=user_id)
    escalated = escalate_critical_deadlines(str(wid), store, store, LoggingNotificationSink(), config=config)
    return {"ok": True, "escalated": escalated}


# -----------------------
# Templates
# -----------------------
@app.post("/templates", response_model=Template)
def create_template(body: Template, user_id: str = Depends(current_user),
                    session: Session = Depends(get_session)):
    if body.event_size_range.min > body.event_size_range.max:
        raise HTTPException(400, "event_size_range.min must not exceed max")

    store = SqlWorkspaceStore(session, actor_user_id=user_id)
    body = body.model_copy(update={"metadata": body.metadata.model_copy(update={"created_by": user_id})})
    return store.get_template(store.create_template(body))


@app.post("/workspaces/{wid}/templates", response_model=Template)
def create_template_from_workspace_route(wid: int, body: TemplateDraft, user_id: str = Depends(current_user),
                                         session: Session = Depends(get_session)):
    store = SqlWorkspaceStore(session, actor_user_id=user_id)
    template_id = create_template_from_workspace(str(wid), user_id, body, store, store,
                                                 SqlPermissionOracle(session))
    return store.get_template(template_id)


@app.post("/templates/{tid}/effectiveness", response_model=TemplateEffectivenessReport)
def template_effectiveness_route(tid: int, session: Session = Depends(get_session)):
    store = SqlWorkspaceStore(session)
    return track_template_effectiveness(str(tid), store, store)


@app.post("/workspaces/{wid}/apply-template")
def apply_template_route(wid: int, body: ApplyTemplateRequest, user_id: str = Depends(current_user),
                         session: Session = Depends(get_session)):
    store = SqlWorkspaceStore(session, actor_user_id=user_id)
    created = apply_template(str(wid), body.template_id, user_id, store, store, store,
                             SqlPermissionOracle(session), body.customization)
    return {"ok": True, "created_task_ids": created}


# -----------------------
# Audit logs
# -----------------------
@app.get("/workspaces/{wid}/audit", response_model=List[models.AuditLog])
def list_audit(wid: int, limit: int = 200, user_id: str = Depends(current_user),
               session: Session = Depends(get_session)):
    require_permission(SqlPermissionOracle(session), str(wid), user_id, VIEW_WORKSPACE)
    stmt = (
        select(models.AuditLog)
        .where(models.AuditLog.workspace_id == wid)
        .order_by(models.AuditLog.created_at.desc())
        .limit(limit)
    )
    return session.exec(stmt).all()
