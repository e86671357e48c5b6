from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy import or_
from sqlalchemy.orm import Session
from typing import List, Optional

from app.database import get_db
from app.models.activity_log import ActivityAction
from app.models.task import Task, TaskStatus, TaskPriority, AssignmentType
from app.models.team import Team
from app.models.user import User
from app.schemas.task import TaskCreate, TaskUpdate, TaskOut, TaskStatusUpdate, TaskReassign, TeamBrief
from app.schemas.user import UserBasic
from app.services.analytics_service import AnalyticsService
from app.services.audit_service import AuditService
from app.services.task_service import TaskService, SORT_OPTIONS
from app.utils.auth import get_current_user, require_capability
from app.utils.diff import field_changes
from app.utils.errors import forbidden
from app.utils.permissions import (
    Capability, task_scope, team_ids_for, can_view_task, authorize_update, authorize_delete,
)
from app.utils.search import any_element_contains, contains

router = APIRouter()


@router.get("/", response_model=List[TaskOut])
def list_tasks(
    status_filter: Optional[TaskStatus] = Query(None, alias="status"),
    priority: Optional[TaskPriority] = None,
    sort_by: str = Query("created_at", pattern="^(created_at|due_date|priority)$"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    query = db.query(Task).filter(task_scope(db, current_user))
    if status_filter:
        query = query.filter(Task.status == status_filter)
    if priority:
        query = query.filter(Task.priority == priority)
    return query.order_by(*SORT_OPTIONS[sort_by]).all()


@router.get("/search", response_model=List[TaskOut])
def search_tasks(
    q: str = Query(..., min_length=1),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return (
        db.query(Task)
        .filter(
            task_scope(db, current_user),
            or_(
                contains(Task.title, q),
                contains(Task.description, q),
                any_element_contains(db, Task.tags, q),
            ),
        )
        .order_by(Task.created_at.desc())
        .all()
    )


@router.get("/users", response_model=List[UserBasic])
def assignable_users(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_capability(Capability.ASSIGN_TASKS)),
):
    return db.query(User).filter(User.is_active.is_(True)).order_by(User.name).all()


@router.get("/teams", response_model=List[TeamBrief])
def assignable_teams(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_capability(Capability.ASSIGN_TASKS)),
):
    return db.query(Team).filter(Team.is_active.is_(True)).order_by(Team.name).all()


@router.get("/team/productivity")
def team_productivity(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_capability(Capability.VIEW_ALL_ANALYTICS)),
):
    return {"success": True, "data": AnalyticsService(db).task_stats_by_user()}


@router.post("/", response_model=TaskOut, status_code=status.HTTP_201_CREATED)
def create_task(
    payload: TaskCreate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    assignment_type, user_id, team_id = TaskService.resolve_assignment(db, current_user, payload.assignment)

    task = Task(
        title=payload.title,
        description=payload.description,
        status=payload.status,
        priority=payload.priority,
        start_date=payload.start_date,
        due_date=payload.due_date,
        tags=payload.tags,
        created_by_id=current_user.id,
    )
    task.apply_assignment(assignment_type, user_id, team_id)
    db.add(task)
    db.commit()
    db.refresh(task)

    AuditService.log_task_operation(
        db, ActivityAction.TASK_CREATED, current_user.id, task.id, request, details=payload.title
    )
    if assignment_type != AssignmentType.SELF:
        AuditService.log_task_operation(
            db, ActivityAction.TASK_ASSIGNED, current_user.id, task.id, request,
            changes={"assignment": {"from": None, "to": {
                "type": assignment_type.value, "user_id": user_id, "team_id": team_id,
            }}},
        )
    return task


@router.get("/{task_id}", response_model=TaskOut)
def get_task(task_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    task = TaskService.get_or_404(db, task_id)
    if not can_view_task(current_user, task, team_ids_for(db, current_user)):
        raise forbidden("Not authorized to view this task")
    return task


@router.put("/{task_id}", response_model=TaskOut)
def update_task(
    task_id: int,
    payload: TaskUpdate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    task = TaskService.get_or_404(db, task_id)
    decision = authorize_update(current_user, task, payload.model_dump(exclude_unset=True).keys())
    if not decision:
        raise forbidden(decision.reason)

    changes, reassigned = TaskService.apply_update(db, current_user, task, payload)
    db.commit()
    db.refresh(task)

    if changes:
        AuditService.log_task_operation(
            db, ActivityAction.TASK_UPDATED, current_user.id, task.id, request, changes=changes
        )
    if reassigned:
        AuditService.log_task_operation(
            db, ActivityAction.TASK_ASSIGNED, current_user.id, task.id, request, changes=reassigned
        )
    return task


@router.patch("/{task_id}/status", response_model=TaskOut)
def update_task_status(
    task_id: int,
    payload: TaskStatusUpdate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    task = TaskService.get_or_404(db, task_id)
    decision = authorize_update(current_user, task, ["status"])
    if not decision:
        raise forbidden(decision.reason)

    changes = field_changes(task, {"status": payload.status})
    task.status = payload.status
    db.commit()
    db.refresh(task)

    AuditService.log_task_operation(
        db, ActivityAction.TASK_STATUS_CHANGED, current_user.id, task.id, request, changes=changes
    )
    return task


@router.patch("/{task_id}/reassign", response_model=TaskOut)
def reassign_task(
    task_id: int,
    payload: TaskReassign,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_capability(Capability.ASSIGN_TASKS)),
):
    task = TaskService.get_or_404(db, task_id)
    resolved = TaskService.resolve_assignment(db, current_user, payload.assignment, owner_id=task.created_by_id)
    changes = TaskService.assignment_changes(task, *resolved)
    task.apply_assignment(*resolved)
    db.commit()
    db.refresh(task)

    AuditService.log_task_operation(
        db, ActivityAction.TASK_ASSIGNED, current_user.id, task.id, request, changes=changes
    )
    return task


@router.delete("/{task_id}")
def delete_task(
    task_id: int,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    task = TaskService.get_or_404(db, task_id)
    decision = authorize_delete(current_user, task)
    if not decision:
        raise forbidden(decision.reason)

    title = task.title
    db.delete(task)
    db.commit()

    AuditService.log_task_operation(
        db, ActivityAction.TASK_DELETED, current_user.id, task_id, request, details=title
    )
    return {"success": True, "message": "Task deleted successfully"}
