# app/routers/activity_logs.py
from fastapi import APIRouter, Depends, Query
from sqlalchemy import func
from sqlalchemy.orm import Session
from datetime import datetime
from typing import Optional

from app.database import get_db
from app.models.activity_log import ActivityLog, ActivityAction, EntityType, LogStatus
from app.models.user import User
from app.routers.admin import period_start
from app.schemas.activity_log import ActivityLogOut
from app.schemas.user import UserBasic
from app.utils.auth import require_admin
from app.utils.dates import parse_date_param
from app.utils.pagination import paginate
from app.utils.sql_functions import day_bucket

router = APIRouter(dependencies=[Depends(require_admin)])


def newest_first(query):
    return query.order_by(ActivityLog.created_at.desc(), ActivityLog.id.desc())


def page_of_logs(query, page: int, limit: int) -> dict:
    entries, pagination = paginate(newest_first(query), page, limit)
    return {
        "success": True,
        "data": [ActivityLogOut.model_validate(entry) for entry in entries],
        "pagination": pagination,
    }


@router.get("/activity-logs")
def list_activity_logs(
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
    action: Optional[ActivityAction] = None,
    performed_by: Optional[int] = None,
    entity_type: Optional[EntityType] = None,
    status: Optional[LogStatus] = None,
    start_date: Optional[str] = Query(None, alias="startDate"),
    end_date: Optional[str] = Query(None, alias="endDate"),
    db: Session = Depends(get_db),
):
    query = db.query(ActivityLog)
    if action:
        query = query.filter(ActivityLog.action == action)
    if performed_by is not None:
        query = query.filter(ActivityLog.performed_by_id == performed_by)
    if entity_type:
        query = query.filter(ActivityLog.target_entity_type == entity_type)
    if status:
        query = query.filter(ActivityLog.status == status)
    start = parse_date_param(start_date, "startDate")
    end = parse_date_param(end_date, "endDate", end_of_day=True)
    if start:
        query = query.filter(ActivityLog.created_at >= start)
    if end:
        query = query.filter(ActivityLog.created_at <= end)
    return page_of_logs(query, page, limit)


@router.get("/activity-logs/user/{user_id}")
def user_activity_history(
    user_id: int,
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
    db: Session = Depends(get_db),
):
    return page_of_logs(db.query(ActivityLog).filter(ActivityLog.performed_by_id == user_id), page, limit)


@router.get("/activity-logs/entity/{entity_type}/{entity_id}")
def entity_audit_trail(entity_type: EntityType, entity_id: int, db: Session = Depends(get_db)):
    entries = newest_first(
        db.query(ActivityLog).filter(
            ActivityLog.target_entity_type == entity_type,
            ActivityLog.target_entity_id == entity_id,
        )
    ).all()
    return {"success": True, "data": [ActivityLogOut.model_validate(entry) for entry in entries]}


@router.get("/activity-logs/stats")
def activity_stats(period: str = Query("7d", pattern="^(24h|7d|30d)$"), db: Session = Depends(get_db)):
    since = period_start(period)
    in_period = ActivityLog.created_at >= since

    by_action = (
        db.query(ActivityLog.action, func.count(ActivityLog.id))
        .filter(in_period)
        .group_by(ActivityLog.action)
        .order_by(func.count(ActivityLog.id).desc())
        .all()
    )
    top_users = (
        db.query(ActivityLog.performed_by_id, func.count(ActivityLog.id).label("count"))
        .filter(in_period, ActivityLog.performed_by_id.isnot(None))
        .group_by(ActivityLog.performed_by_id)
        .order_by(func.count(ActivityLog.id).desc())
        .limit(10)
        .all()
    )
    users = {
        user.id: user
        for user in db.query(User).filter(User.id.in_([row[0] for row in top_users])).all()
    } if top_users else {}

    bucket = day_bucket(ActivityLog.created_at)
    timeline = (
        db.query(bucket.label("date"), func.count(ActivityLog.id).label("count"))
        .filter(in_period)
        .group_by(bucket)
        .order_by(bucket)
        .all()
    )
    failed = db.query(func.count(ActivityLog.id)).filter(in_period, ActivityLog.status == LogStatus.FAILED).scalar()

    return {
        "success": True,
        "data": {
            "period": period,
            "by_action": [{"action": action.value, "count": count} for action, count in by_action],
            "top_users": [
                {
                    "user_id": user_id,
                    "user": UserBasic.model_validate(users[user_id]) if user_id in users else None,
                    "count": count,
                }
                for user_id, count in top_users
            ],
            "timeline": [{"date": row.date, "count": row.count} for row in timeline],
            "failed_actions": failed,
        },
    }


@router.get("/activity-logs/failed-logins")
def failed_logins(period: str = Query("24h", pattern="^(24h|7d|30d)$"), db: Session = Depends(get_db)):
    since = period_start(period, default="24h")
    failed = ActivityLog.action == ActivityAction.LOGIN_FAILED

    recent = newest_first(db.query(ActivityLog).filter(failed, ActivityLog.created_at >= since)).limit(100).all()
    per_account = (
        db.query(ActivityLog.performed_by_id, func.count(ActivityLog.id), func.max(ActivityLog.created_at))
        .filter(failed, ActivityLog.created_at >= since)
        .group_by(ActivityLog.performed_by_id)
        .order_by(func.count(ActivityLog.id).desc())
        .all()
    )
    locked = db.query(User).filter(User.lockout_until > datetime.utcnow()).all()

    return {
        "success": True,
        "data": {
            "period": period,
            "total": sum(count for _, count, _ in per_account),
            "recent": [ActivityLogOut.model_validate(entry) for entry in recent],
            "by_account": [
                {"user_id": user_id, "attempts": count, "last_attempt": last}
                for user_id, count, last in per_account
            ],
            "locked_accounts": [
                {**UserBasic.model_validate(user).model_dump(), "lockout_until": user.lockout_until,
                 "failed_login_attempts": user.failed_login_attempts}
                for user in locked
            ],
        },
    }
