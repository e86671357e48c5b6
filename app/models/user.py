# app/models/user.py
from sqlalchemy import Column, Integer, String, Boolean, DateTime, Enum
from datetime import datetime, timedelta
from typing import Optional
import enum

from app.database import Base


class UserRole(str, enum.Enum):
    USER = "user"
    MANAGER = "manager"
    ADMIN = "admin"


class AccountStatus(str, enum.Enum):
    ACTIVE = "active"
    SUSPENDED = "suspended"
    INACTIVE = "inactive"


def enum_values(enum_cls):
    return [member.value for member in enum_cls]


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    email = Column(String, unique=True, index=True, nullable=False)
    hashed_password = Column(String, nullable=False)
    role = Column(
        Enum(UserRole, values_callable=enum_values, native_enum=False, length=20),
        default=UserRole.USER,
        nullable=False,
        index=True,
    )
    is_active = Column(Boolean, default=True, nullable=False)
    account_status = Column(
        Enum(AccountStatus, values_callable=enum_values, native_enum=False, length=20),
        default=AccountStatus.ACTIVE,
        nullable=False,
    )

    # Brute force protection
    failed_login_attempts = Column(Integer, default=0, nullable=False)
    lockout_until = Column(DateTime, nullable=True)
    last_login = Column(DateTime, nullable=True)

    # Password lifecycle
    last_password_change = Column(DateTime, nullable=True)
    reset_password_token = Column(String, nullable=True, index=True)
    reset_password_expire = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def is_locked(self, now: Optional[datetime] = None) -> bool:
        now = now or datetime.utcnow()
        return self.lockout_until is not None and self.lockout_until > now

    def register_failed_login(self, max_attempts: int, lockout: timedelta, now: Optional[datetime] = None) -> bool:
        """Count a failed login and lock the account once the threshold is reached.

        Returns True when this attempt caused the lock.
        """
        now = now or datetime.utcnow()
        if self.lockout_until is not None and self.lockout_until <= now:
            # Previous lock has run out, start a fresh window
            self.failed_login_attempts = 1
            self.lockout_until = None
            return False

        self.failed_login_attempts = (self.failed_login_attempts or 0) + 1
        if self.failed_login_attempts >= max_attempts and not self.is_locked(now):
            self.lockout_until = now + lockout
            return True
        return False

    def reset_login_attempts(self, now: Optional[datetime] = None):
        self.failed_login_attempts = 0
        self.lockout_until = None
        self.last_login = now or datetime.utcnow()

    def __repr__(self):
        return f"<User {self.id} {self.email} ({self.role.value if self.role else None})>"
