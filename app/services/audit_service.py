from sqlalchemy.orm import Session
from fastapi import Request
from typing import Any, Dict, Optional
import logging

from app.models.activity_log import ActivityLog, ActivityAction, EntityType, LogStatus

logger = logging.getLogger(__name__)


def request_meta(request: Optional[Request]) -> Dict[str, Optional[str]]:
    """Client address and user agent of a request, if there is one"""
    if request is None:
        return {"ip_address": None, "user_agent": None}
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        ip_address = forwarded.split(",")[0].strip()
    else:
        ip_address = request.client.host if request.client else None
    return {"ip_address": ip_address, "user_agent": request.headers.get("user-agent")}


class AuditService:
    """Best-effort writer for the activity log.

    Entries are written after the operation they describe has committed. A
    failure to write is logged and swallowed, the caller's operation stands.
    """

    @staticmethod
    def record(
        db: Session,
        action: ActivityAction,
        performed_by_id: Optional[int],
        target_type: EntityType = EntityType.NONE,
        target_id: Optional[int] = None,
        changes: Optional[Dict[str, Any]] = None,
        request: Optional[Request] = None,
        status: LogStatus = LogStatus.SUCCESS,
        error_message: Optional[str] = None,
        details: Optional[str] = None,
    ) -> Optional[ActivityLog]:
        try:
            entry = ActivityLog(
                action=action,
                performed_by_id=performed_by_id,
                target_entity_type=target_type or EntityType.NONE,
                target_entity_id=target_id,
                changes=changes or None,
                status=status,
                error_message=error_message,
                details=details,
                **request_meta(request),
            )
            db.add(entry)
            db.commit()
            return entry
        except Exception:
            logger.exception("Failed to write activity log entry %s", getattr(action, "value", action))
            db.rollback()
            return None

    @staticmethod
    def log_login(
        db: Session,
        user_id: Optional[int],
        request: Optional[Request],
        success: bool,
        error_message: Optional[str] = None,
    ) -> Optional[ActivityLog]:
        return AuditService.record(
            db,
            ActivityAction.USER_LOGIN if success else ActivityAction.LOGIN_FAILED,
            performed_by_id=user_id,
            target_type=EntityType.USER,
            target_id=user_id,
            request=request,
            status=LogStatus.SUCCESS if success else LogStatus.FAILED,
            error_message=error_message,
        )

    @staticmethod
    def log_task_operation(
        db: Session,
        action: ActivityAction,
        user_id: int,
        task_id: Optional[int],
        request: Optional[Request] = None,
        changes: Optional[Dict[str, Any]] = None,
        details: Optional[str] = None,
    ) -> Optional[ActivityLog]:
        return AuditService.record(
            db,
            action,
            performed_by_id=user_id,
            target_type=EntityType.TASK,
            target_id=task_id,
            changes=changes,
            request=request,
            details=details,
        )

    @staticmethod
    def log_user_management(
        db: Session,
        action: ActivityAction,
        admin_id: int,
        target_user_id: Optional[int],
        request: Optional[Request] = None,
        changes: Optional[Dict[str, Any]] = None,
        details: Optional[str] = None,
    ) -> Optional[ActivityLog]:
        return AuditService.record(
            db,
            action,
            performed_by_id=admin_id,
            target_type=EntityType.USER,
            target_id=target_user_id,
            changes=changes,
            request=request,
            details=details,
        )

    @staticmethod
    def log_team_operation(
        db: Session,
        action: ActivityAction,
        user_id: int,
        team_id: Optional[int],
        request: Optional[Request] = None,
        changes: Optional[Dict[str, Any]] = None,
        details: Optional[str] = None,
    ) -> Optional[ActivityLog]:
        return AuditService.record(
            db,
            action,
            performed_by_id=user_id,
            target_type=EntityType.TEAM,
            target_id=team_id,
            changes=changes,
            request=request,
            details=details,
        )
