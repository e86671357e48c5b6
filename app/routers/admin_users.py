# app/routers/admin_users.py
from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy import func, or_
from sqlalchemy.orm import Session
from datetime import datetime
from typing import Optional
import logging

from app.config.security import SecurityConfig
from app.database import get_db
from app.models.activity_log import ActivityLog, ActivityAction
from app.models.task import Task, TaskStatus, AssignmentType
from app.models.team import Team
from app.models.user import User, UserRole, AccountStatus
from app.schemas.activity_log import ActivityLogOut
from app.schemas.user import AdminUserCreate, AdminUserOut, UserUpdate, AdminPasswordReset
from app.services.audit_service import AuditService
from app.utils.auth import require_admin
from app.utils.diff import field_changes
from app.utils.pagination import paginate
from app.utils.rate_limit import rate_limit
from app.utils.search import contains
from app.utils.security import hash_password

logger = logging.getLogger(__name__)

router = APIRouter(dependencies=[Depends(require_admin)])

USER_SORT_FIELDS = {
    "created_at": User.created_at,
    "name": User.name,
    "email": User.email,
    "last_login": User.last_login,
    "role": User.role,
}


def get_user_or_404(db: Session, user_id: int) -> User:
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user


def task_counts_for(db: Session, user_ids):
    """Assigned and completed task counts keyed by user id"""
    if not user_ids:
        return {}
    rows = (
        db.query(Task.assigned_to_id, Task.status, func.count(Task.id))
        .filter(Task.assigned_to_id.in_(user_ids))
        .group_by(Task.assigned_to_id, Task.status)
        .all()
    )
    counts = {user_id: {"task_count": 0, "completed_task_count": 0} for user_id in user_ids}
    for user_id, task_status, count in rows:
        counts[user_id]["task_count"] += count
        if task_status == TaskStatus.COMPLETED:
            counts[user_id]["completed_task_count"] += count
    return counts


@router.get("/users")
def list_users(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    role: Optional[UserRole] = None,
    account_status: Optional[AccountStatus] = None,
    search: Optional[str] = None,
    sort_by: str = "created_at",
    order: str = Query("desc", pattern="^(asc|desc)$"),
    db: Session = Depends(get_db),
):
    query = db.query(User)
    if role:
        query = query.filter(User.role == role)
    if account_status:
        query = query.filter(User.account_status == account_status)
    if search:
        query = query.filter(or_(contains(User.name, search), contains(User.email, search)))

    sort_column = USER_SORT_FIELDS.get(sort_by, User.created_at)
    query = query.order_by(sort_column.asc() if order == "asc" else sort_column.desc(), User.id)

    users, pagination = paginate(query, page, limit)
    counts = task_counts_for(db, [user.id for user in users])
    data = [
        {**AdminUserOut.model_validate(user).model_dump(), **counts[user.id]}
        for user in users
    ]
    return {"success": True, "data": data, "pagination": pagination}


@router.get("/users/{user_id}")
def get_user(user_id: int, db: Session = Depends(get_db)):
    user = get_user_or_404(db, user_id)

    by_status = dict(
        db.query(Task.status, func.count(Task.id))
        .filter(Task.assigned_to_id == user.id)
        .group_by(Task.status)
        .all()
    )
    created = db.query(func.count(Task.id)).filter(Task.created_by_id == user.id).scalar()
    recent_activity = (
        db.query(ActivityLog)
        .filter(ActivityLog.performed_by_id == user.id)
        .order_by(ActivityLog.created_at.desc(), ActivityLog.id.desc())
        .limit(10)
        .all()
    )
    teams = db.query(Team).filter(Team.members.any(User.id == user.id)).all()

    return {
        "success": True,
        "data": {
            "user": AdminUserOut.model_validate(user),
            "stats": {
                "assigned_tasks": sum(by_status.values()),
                "completed_tasks": by_status.get(TaskStatus.COMPLETED, 0),
                "pending_tasks": by_status.get(TaskStatus.PENDING, 0),
                "in_progress_tasks": by_status.get(TaskStatus.IN_PROGRESS, 0),
                "created_tasks": created,
            },
            "teams": [{"id": team.id, "name": team.name} for team in teams],
            "recent_activity": [ActivityLogOut.model_validate(entry) for entry in recent_activity],
        },
    }


@router.post("/users", status_code=status.HTTP_201_CREATED)
def create_user(
    payload: AdminUserCreate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(rate_limit(*SecurityConfig.RATE_LIMITS['admin_create_user'])),
):
    if db.query(User).filter(User.email == payload.email).first():
        raise HTTPException(status_code=400, detail="User with this email already exists")

    user = User(
        name=payload.name,
        email=payload.email,
        hashed_password=hash_password(payload.password),
        role=payload.role,
        is_active=payload.is_active,
        account_status=payload.account_status,
    )
    db.add(user)
    db.commit()
    db.refresh(user)

    AuditService.log_user_management(
        db, ActivityAction.USER_CREATED, current_user.id, user.id, request,
        details=f"Created {user.email} as {user.role.value}",
    )
    return {"success": True, "message": "User created successfully", "data": AdminUserOut.model_validate(user)}


@router.put("/users/{user_id}")
def update_user(
    user_id: int,
    payload: UserUpdate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    user = get_user_or_404(db, user_id)
    updates = {key: value for key, value in payload.model_dump(exclude_unset=True).items() if value is not None}

    if "role" in updates and user.id == current_user.id and updates["role"] != user.role:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="You cannot change your own role")

    if "email" in updates and updates["email"] != user.email:
        if db.query(User).filter(User.email == updates["email"], User.id != user.id).first():
            raise HTTPException(status_code=400, detail="Email already in use")

    changes = field_changes(user, updates)
    for key, value in updates.items():
        setattr(user, key, value)
    db.commit()
    db.refresh(user)

    if "role" in changes:
        AuditService.log_user_management(
            db, ActivityAction.USER_ROLE_CHANGED, current_user.id, user.id, request,
            changes={"role": changes["role"]},
        )
    if "account_status" in changes and user.account_status == AccountStatus.SUSPENDED:
        AuditService.log_user_management(
            db, ActivityAction.USER_SUSPENDED, current_user.id, user.id, request,
            changes={"account_status": changes["account_status"]},
        )
    if "is_active" in changes:
        AuditService.log_user_management(
            db,
            ActivityAction.USER_ACTIVATED if user.is_active else ActivityAction.USER_DEACTIVATED,
            current_user.id, user.id, request,
            changes={"is_active": changes["is_active"]},
        )
    if changes:
        AuditService.log_user_management(
            db, ActivityAction.USER_UPDATED, current_user.id, user.id, request, changes=changes
        )
    return {"success": True, "message": "User updated successfully", "data": AdminUserOut.model_validate(user)}


@router.delete("/users/{user_id}")
def delete_user(
    user_id: int,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(rate_limit(*SecurityConfig.RATE_LIMITS['admin_delete_user'])),
):
    user = get_user_or_404(db, user_id)
    if user.id == current_user.id:
        raise HTTPException(status_code=400, detail="Cannot delete your own account")

    email = user.email
    policy = SecurityConfig.USER_DELETION['task_policy']
    assigned = db.query(Task).filter(Task.assigned_to_id == user.id).all()
    if policy == "reassign":
        for task in assigned:
            task.apply_assignment(AssignmentType.INDIVIDUAL, user_id=current_user.id)
    else:
        for task in assigned:
            db.delete(task)
    db.flush()

    # Whatever the user created now belongs to the admin removing them
    db.query(Task).filter(Task.created_by_id == user.id).update(
        {Task.created_by_id: current_user.id}, synchronize_session=False
    )
    db.query(Team).filter(Team.created_by_id == user.id).update(
        {Team.created_by_id: current_user.id}, synchronize_session=False
    )
    user.teams = []

    db.delete(user)
    db.commit()

    logger.info("User %s deleted by %s, %d assigned task(s) %s", user_id, current_user.id, len(assigned),
                "reassigned" if policy == "reassign" else "deleted")
    AuditService.log_user_management(
        db, ActivityAction.USER_DELETED, current_user.id, user_id, request,
        details=f"Deleted {email}; {len(assigned)} assigned task(s) {'reassigned' if policy == 'reassign' else 'deleted'}",
    )
    return {"success": True, "message": "User deleted successfully"}


@router.post("/users/{user_id}/reset-password")
def reset_user_password(
    user_id: int,
    payload: AdminPasswordReset,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(rate_limit(*SecurityConfig.RATE_LIMITS['admin_reset_password'])),
):
    user = get_user_or_404(db, user_id)
    user.hashed_password = hash_password(payload.new_password)
    user.last_password_change = datetime.utcnow()
    user.failed_login_attempts = 0
    user.lockout_until = None
    user.reset_password_token = None
    user.reset_password_expire = None
    db.commit()

    AuditService.log_user_management(db, ActivityAction.PASSWORD_RESET, current_user.id, user.id, request)
    return {"success": True, "message": "Password reset successfully"}


@router.post("/users/{user_id}/unlock")
def unlock_user(
    user_id: int,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    user = get_user_or_404(db, user_id)
    changes = field_changes(user, {"failed_login_attempts": 0, "lockout_until": None})
    user.failed_login_attempts = 0
    user.lockout_until = None
    db.commit()

    AuditService.log_user_management(
        db, ActivityAction.USER_UNLOCKED, current_user.id, user.id, request, changes=changes
    )
    return {"success": True, "message": "User account unlocked successfully"}


@router.post("/users/{user_id}/activate")
def activate_user(
    user_id: int,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    user = get_user_or_404(db, user_id)
    changes = field_changes(user, {"is_active": True, "account_status": AccountStatus.ACTIVE})
    user.is_active = True
    user.account_status = AccountStatus.ACTIVE
    db.commit()

    AuditService.log_user_management(
        db, ActivityAction.USER_ACTIVATED, current_user.id, user.id, request, changes=changes
    )
    return {"success": True, "message": "User activated successfully"}


@router.post("/users/{user_id}/deactivate")
def deactivate_user(
    user_id: int,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    user = get_user_or_404(db, user_id)
    if user.id == current_user.id:
        raise HTTPException(status_code=400, detail="Cannot deactivate your own account")

    changes = field_changes(user, {"is_active": False, "account_status": AccountStatus.INACTIVE})
    user.is_active = False
    user.account_status = AccountStatus.INACTIVE
    db.commit()

    AuditService.log_user_management(
        db, ActivityAction.USER_DEACTIVATED, current_user.id, user.id, request, changes=changes
    )
    return {"success": True, "message": "User deactivated successfully"}
