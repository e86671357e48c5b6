# app/routers/admin_tasks.py
from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy import or_
from sqlalchemy.orm import Session
from typing import Optional

from app.config.security import SecurityConfig
from app.database import get_db
from app.models.activity_log import ActivityAction, EntityType
from app.models.task import Task, TaskStatus, TaskPriority, AssignmentType
from app.models.user import User
from app.schemas.task import TaskUpdate, TaskOut, TaskReassign, BulkTaskDelete, BulkTaskUpdate
from app.services.analytics_service import AnalyticsService, AnalyticsFilters
from app.services.audit_service import AuditService
from app.services.task_service import TaskService, SORT_OPTIONS
from app.utils.auth import require_admin
from app.utils.dates import parse_date_param
from app.utils.diff import field_changes
from app.utils.errors import not_found
from app.utils.pagination import paginate
from app.utils.rate_limit import rate_limit
from app.utils.search import contains

router = APIRouter(dependencies=[Depends(require_admin)])


@router.get("/tasks")
def list_all_tasks(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    status_filter: Optional[TaskStatus] = Query(None, alias="status"),
    priority: Optional[TaskPriority] = None,
    assigned_to: Optional[int] = None,
    search: Optional[str] = None,
    start_date: Optional[str] = Query(None, alias="startDate"),
    end_date: Optional[str] = Query(None, alias="endDate"),
    sort_by: str = Query("created_at", pattern="^(created_at|due_date|priority)$"),
    db: Session = Depends(get_db),
):
    query = db.query(Task)
    if status_filter:
        query = query.filter(Task.status == status_filter)
    if priority:
        query = query.filter(Task.priority == priority)
    if assigned_to is not None:
        query = query.filter(Task.assigned_to_id == assigned_to)
    if search:
        query = query.filter(or_(contains(Task.title, search), contains(Task.description, search)))
    start = parse_date_param(start_date, "startDate")
    end = parse_date_param(end_date, "endDate", end_of_day=True)
    if start:
        query = query.filter(Task.created_at >= start)
    if end:
        query = query.filter(Task.created_at <= end)

    tasks, pagination = paginate(query.order_by(*SORT_OPTIONS[sort_by], Task.id), page, limit)
    return {
        "success": True,
        "data": [TaskOut.model_validate(task) for task in tasks],
        "pagination": pagination,
    }


@router.put("/tasks/{task_id}")
def update_any_task(
    task_id: int,
    payload: TaskUpdate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    task = TaskService.get_or_404(db, task_id)
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
    return {"success": True, "message": "Task updated successfully", "data": TaskOut.model_validate(task)}


@router.delete("/tasks/{task_id}")
def delete_any_task(
    task_id: int,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    task = TaskService.get_or_404(db, task_id)
    title = task.title
    db.delete(task)
    db.commit()

    AuditService.log_task_operation(
        db, ActivityAction.TASK_DELETED, current_user.id, task_id, request, details=title
    )
    return {"success": True, "message": "Task deleted successfully"}


@router.patch("/tasks/{task_id}/reassign")
def reassign_any_task(
    task_id: int,
    payload: TaskReassign,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
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
    return {"success": True, "message": "Task reassigned successfully", "data": TaskOut.model_validate(task)}


@router.post("/tasks/bulk-delete")
def bulk_delete_tasks(
    payload: BulkTaskDelete,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(rate_limit(*SecurityConfig.RATE_LIMITS['bulk_delete'])),
):
    tasks = db.query(Task).filter(Task.id.in_(payload.task_ids)).all()
    if not tasks:
        raise not_found("No matching tasks found")

    deleted_ids = sorted(task.id for task in tasks)
    for task in tasks:
        db.delete(task)
    db.commit()

    AuditService.record(
        db,
        ActivityAction.TASK_BULK_DELETE,
        performed_by_id=current_user.id,
        target_type=EntityType.TASK,
        request=request,
        changes={"task_ids": {"from": deleted_ids, "to": None}},
        details=f"Deleted {len(deleted_ids)} task(s)",
    )
    return {"success": True, "message": f"{len(deleted_ids)} task(s) deleted", "deleted_count": len(deleted_ids)}


@router.post("/tasks/bulk-update")
def bulk_update_tasks(
    payload: BulkTaskUpdate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(rate_limit(*SecurityConfig.RATE_LIMITS['bulk_update'])),
):
    updates = payload.updates.model_dump(exclude_none=True)
    if not updates:
        return {"success": True, "message": "Nothing to update", "modified_count": 0}

    assignee_id = updates.pop("assigned_to_id", None)
    if assignee_id is not None:
        TaskService.active_user_or_error(db, assignee_id)

    tasks = db.query(Task).filter(Task.id.in_(payload.task_ids)).all()
    modified = 0
    # Row by row so the completion timestamp follows each status change
    for task in tasks:
        changes = field_changes(task, updates)
        if assignee_id is not None and (task.assigned_to_id != assignee_id or task.assignment_type == AssignmentType.TEAM):
            changes["assigned_to_id"] = {"from": task.assigned_to_id, "to": assignee_id}
            task.apply_assignment(AssignmentType.INDIVIDUAL, user_id=assignee_id)
        for key, value in updates.items():
            setattr(task, key, value)
        if changes:
            modified += 1
    db.commit()

    applied = dict(updates)
    if assignee_id is not None:
        applied["assigned_to_id"] = assignee_id
    AuditService.record(
        db,
        ActivityAction.TASK_BULK_UPDATE,
        performed_by_id=current_user.id,
        target_type=EntityType.TASK,
        request=request,
        changes={key: {"from": None, "to": getattr(value, "value", value)} for key, value in applied.items()},
        details=f"Updated {modified} of {len(payload.task_ids)} task(s)",
    )
    return {"success": True, "message": f"{modified} task(s) updated", "modified_count": modified}


@router.get("/tasks/stats/by-user")
def task_stats_by_user(
    start_date: Optional[str] = Query(None, alias="startDate"),
    end_date: Optional[str] = Query(None, alias="endDate"),
    db: Session = Depends(get_db),
):
    filters = AnalyticsFilters(
        start_date=parse_date_param(start_date, "startDate"),
        end_date=parse_date_param(end_date, "endDate", end_of_day=True),
    )
    return {"success": True, "data": AnalyticsService(db, filters).task_stats_by_user()}
