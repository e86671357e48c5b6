from pydantic import BaseModel, EmailStr, Field, field_validator
from typing import Optional
from datetime import datetime

from app.models.user import UserRole, AccountStatus

# Older clients still send "employee" for the base role
ROLE_ALIASES = {"employee": UserRole.USER.value}


def normalize_role(value):
    if isinstance(value, str):
        value = value.strip().lower()
        return ROLE_ALIASES.get(value, value)
    return value


class UserCreate(BaseModel):
    name: str = Field(min_length=1)
    email: EmailStr
    password: str = Field(min_length=6)

    @field_validator("name")
    @classmethod
    def strip_name(cls, value):
        value = value.strip()
        if not value:
            raise ValueError("Name is required")
        return value

    @field_validator("email")
    @classmethod
    def lower_email(cls, value):
        return value.lower()


class AdminUserCreate(UserCreate):
    role: UserRole = UserRole.USER
    is_active: bool = True
    account_status: AccountStatus = AccountStatus.ACTIVE

    @field_validator("role", mode="before")
    @classmethod
    def alias_role(cls, value):
        return normalize_role(value)


class UserLogin(BaseModel):
    email: EmailStr
    password: str

    @field_validator("email")
    @classmethod
    def lower_email(cls, value):
        return value.lower()


class UserBasic(BaseModel):
    id: int
    name: str
    email: str
    role: UserRole

    model_config = {
        "from_attributes": True
    }


class UserOut(BaseModel):
    id: int
    name: str
    email: str
    role: UserRole
    is_active: bool
    account_status: AccountStatus
    last_login: Optional[datetime] = None
    created_at: datetime
    updated_at: Optional[datetime] = None

    model_config = {
        "from_attributes": True
    }


class AdminUserOut(UserOut):
    failed_login_attempts: int = 0
    lockout_until: Optional[datetime] = None
    last_password_change: Optional[datetime] = None


class UserUpdate(BaseModel):
    name: Optional[str] = None
    email: Optional[EmailStr] = None
    role: Optional[UserRole] = None
    is_active: Optional[bool] = None
    account_status: Optional[AccountStatus] = None

    @field_validator("role", mode="before")
    @classmethod
    def alias_role(cls, value):
        return normalize_role(value)

    @field_validator("email")
    @classmethod
    def lower_email(cls, value):
        return value.lower() if value else value


class ForgotPasswordRequest(BaseModel):
    email: EmailStr


class ResetPasswordRequest(BaseModel):
    token: str = Field(min_length=1)
    new_password: str = Field(min_length=6)


class ChangePasswordRequest(BaseModel):
    current_password: str
    new_password: str = Field(min_length=6)


class AdminPasswordReset(BaseModel):
    new_password: str = Field(min_length=6)
