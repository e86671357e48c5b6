# app/models/activity_log.py
from sqlalchemy import Column, Integer, String, DateTime, Enum, Text, JSON, event
from sqlalchemy.orm import relationship, foreign
from datetime import datetime
import enum

from app.database import Base
from app.models.user import User, enum_values


class ActivityAction(str, enum.Enum):
    # Authentication
    USER_LOGIN = "USER_LOGIN"
    USER_LOGOUT = "USER_LOGOUT"
    USER_REGISTER = "USER_REGISTER"
    LOGIN_FAILED = "LOGIN_FAILED"
    PASSWORD_RESET = "PASSWORD_RESET"
    PASSWORD_RESET_REQUESTED = "PASSWORD_RESET_REQUESTED"
    PASSWORD_CHANGE = "PASSWORD_CHANGE"

    # Tasks
    TASK_CREATED = "TASK_CREATED"
    TASK_UPDATED = "TASK_UPDATED"
    TASK_DELETED = "TASK_DELETED"
    TASK_STATUS_CHANGED = "TASK_STATUS_CHANGED"
    TASK_ASSIGNED = "TASK_ASSIGNED"
    TASK_BULK_DELETE = "TASK_BULK_DELETE"
    TASK_BULK_UPDATE = "TASK_BULK_UPDATE"

    # User management
    USER_CREATED = "USER_CREATED"
    USER_UPDATED = "USER_UPDATED"
    USER_DELETED = "USER_DELETED"
    USER_ROLE_CHANGED = "USER_ROLE_CHANGED"
    USER_ACTIVATED = "USER_ACTIVATED"
    USER_DEACTIVATED = "USER_DEACTIVATED"
    USER_SUSPENDED = "USER_SUSPENDED"
    USER_UNLOCKED = "USER_UNLOCKED"

    # Teams
    TEAM_CREATED = "TEAM_CREATED"
    TEAM_UPDATED = "TEAM_UPDATED"
    TEAM_DELETED = "TEAM_DELETED"
    TEAM_MEMBER_ADDED = "TEAM_MEMBER_ADDED"
    TEAM_MEMBER_REMOVED = "TEAM_MEMBER_REMOVED"

    # System
    ADMIN_ACCESS = "ADMIN_ACCESS"
    SYSTEM_SETTINGS_CHANGED = "SYSTEM_SETTINGS_CHANGED"


class EntityType(str, enum.Enum):
    USER = "User"
    TASK = "Task"
    TEAM = "Team"
    SYSTEM = "System"
    NONE = "None"


class LogStatus(str, enum.Enum):
    SUCCESS = "success"
    FAILED = "failed"
    WARNING = "warning"


class ActivityLog(Base):
    __tablename__ = "activity_logs"

    id = Column(Integer, primary_key=True, index=True)
    action = Column(
        Enum(ActivityAction, values_callable=enum_values, native_enum=False, length=40),
        nullable=False,
        index=True,
    )
    # No foreign key: entries must outlive the users they describe
    performed_by_id = Column(Integer, nullable=True, index=True)
    target_entity_type = Column(
        Enum(EntityType, values_callable=enum_values, native_enum=False, length=20),
        default=EntityType.NONE,
        nullable=False,
    )
    target_entity_id = Column(Integer, nullable=True, index=True)
    details = Column(Text, nullable=True)
    changes = Column(JSON, nullable=True)
    ip_address = Column(String, nullable=True)
    user_agent = Column(String, nullable=True)
    status = Column(
        Enum(LogStatus, values_callable=enum_values, native_enum=False, length=20),
        default=LogStatus.SUCCESS,
        nullable=False,
        index=True,
    )
    error_message = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)

    performer = relationship(
        User,
        primaryjoin=foreign(performed_by_id) == User.id,
        viewonly=True,
        lazy="joined",
    )


class ActivityLogImmutableError(Exception):
    pass


@event.listens_for(ActivityLog, "before_update")
def _refuse_update(mapper, connection, target):
    raise ActivityLogImmutableError(f"Activity log entry {target.id} is append-only")
