# app/routers/admin.py
from fastapi import APIRouter, Depends, Query
from sqlalchemy import func
from sqlalchemy.orm import Session
from datetime import datetime, timedelta
from typing import Optional

from app.database import get_db
from app.models.activity_log import ActivityLog, ActivityAction, LogStatus
from app.models.task import Task, TaskStatus
from app.models.user import User, AccountStatus
from app.schemas.activity_log import ActivityLogOut
from app.services.analytics_service import AnalyticsService, AnalyticsFilters, percentage
from app.utils.auth import require_admin
from app.utils.dates import parse_date_param
from app.utils.sql_functions import day_bucket

router = APIRouter(dependencies=[Depends(require_admin)])

PERIODS = {
    "24h": timedelta(hours=24),
    "7d": timedelta(days=7),
    "30d": timedelta(days=30),
    "90d": timedelta(days=90),
}


def period_start(period: str, default: str = "7d") -> datetime:
    return datetime.utcnow() - PERIODS.get(period, PERIODS[default])


def _daily_counts(db: Session, column, *criteria):
    bucket = day_bucket(column)
    rows = (
        db.query(bucket.label("date"), func.count().label("count"))
        .filter(*criteria)
        .group_by(bucket)
        .order_by(bucket)
        .all()
    )
    return [{"date": row.date, "count": row.count} for row in rows]


def _distribution(db: Session, column, key: str):
    rows = db.query(column, func.count()).group_by(column).all()
    return [{key: value.value if hasattr(value, "value") else value, "count": count} for value, count in rows]


@router.get("/dashboard/stats")
def dashboard_stats(db: Session = Depends(get_db)):
    now = datetime.utcnow()
    today = now.replace(hour=0, minute=0, second=0, microsecond=0)
    week_ago = today - timedelta(days=7)
    day_ago = now - timedelta(hours=24)

    total_tasks = db.query(func.count(Task.id)).scalar()
    by_status = dict(db.query(Task.status, func.count(Task.id)).group_by(Task.status).all())
    completed = by_status.get(TaskStatus.COMPLETED, 0)

    recent_activity = (
        db.query(ActivityLog).order_by(ActivityLog.created_at.desc(), ActivityLog.id.desc()).limit(10).all()
    )

    return {
        "success": True,
        "data": {
            "users": {
                "total": db.query(func.count(User.id)).scalar(),
                "active_24h": db.query(func.count(User.id)).filter(User.last_login >= day_ago).scalar(),
            },
            "tasks": {
                "total": total_tasks,
                "completed": completed,
                "pending": by_status.get(TaskStatus.PENDING, 0),
                "in_progress": by_status.get(TaskStatus.IN_PROGRESS, 0),
                "overdue": db.query(func.count(Task.id)).filter(
                    Task.status != TaskStatus.COMPLETED,
                    Task.due_date.isnot(None),
                    Task.due_date < now,
                ).scalar(),
                "created_today": db.query(func.count(Task.id)).filter(Task.created_at >= today).scalar(),
                "created_this_week": db.query(func.count(Task.id)).filter(Task.created_at >= week_ago).scalar(),
                "completion_rate": percentage(completed, total_tasks),
            },
            "recent_activity": [ActivityLogOut.model_validate(entry) for entry in recent_activity],
        },
    }


@router.get("/system/health")
def system_health(db: Session = Depends(get_db)):
    now = datetime.utcnow()
    day_ago = now - timedelta(hours=24)

    logins = db.query(func.count(ActivityLog.id)).filter(
        ActivityLog.action == ActivityAction.USER_LOGIN,
        ActivityLog.created_at >= day_ago,
    ).scalar()
    failed_logins = db.query(func.count(ActivityLog.id)).filter(
        ActivityLog.action == ActivityAction.LOGIN_FAILED,
        ActivityLog.created_at >= day_ago,
    ).scalar()

    return {
        "success": True,
        "data": {
            "logins_24h": logins,
            "failed_logins_24h": failed_logins,
            "login_success_rate": percentage(logins, logins + failed_logins),
            "activity_24h": db.query(func.count(ActivityLog.id)).filter(ActivityLog.created_at >= day_ago).scalar(),
            "locked_accounts": db.query(func.count(User.id)).filter(User.lockout_until > now).scalar(),
            "suspended_accounts": db.query(func.count(User.id)).filter(
                User.account_status == AccountStatus.SUSPENDED
            ).scalar(),
            "timestamp": now,
        },
    }


@router.get("/analytics/tasks")
def task_analytics(period: str = "7d", db: Session = Depends(get_db)):
    start = period_start(period)
    return {
        "success": True,
        "data": {
            "task_trend": _daily_counts(db, Task.created_at, Task.created_at >= start),
            "completion_trend": _daily_counts(
                db, Task.completed_at, Task.status == TaskStatus.COMPLETED, Task.completed_at >= start
            ),
            "status_distribution": _distribution(db, Task.status, "status"),
            "priority_distribution": _distribution(db, Task.priority, "priority"),
        },
    }


@router.get("/analytics/users")
def user_analytics(db: Session = Depends(get_db)):
    most_active = AnalyticsService(db).task_stats_by_user()[:10]
    return {
        "success": True,
        "data": {
            "most_active_users": most_active,
            "registration_trend": _daily_counts(db, User.created_at, User.created_at >= period_start("30d")),
            "role_distribution": _distribution(db, User.role, "role"),
            "account_status_distribution": _distribution(db, User.account_status, "account_status"),
        },
    }


@router.get("/reports/productivity")
def productivity_report(
    start_date: Optional[str] = Query(None, alias="startDate"),
    end_date: Optional[str] = Query(None, alias="endDate"),
    user_id: Optional[int] = Query(None, alias="userId"),
    db: Session = Depends(get_db),
):
    filters = AnalyticsFilters(
        user_id=user_id,
        start_date=parse_date_param(start_date, "startDate"),
        end_date=parse_date_param(end_date, "endDate", end_of_day=True),
    )
    report = AnalyticsService(db, filters).task_stats_by_user()
    report.sort(key=lambda row: row["completion_rate"], reverse=True)
    return {"success": True, "data": report}
