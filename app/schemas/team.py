from pydantic import BaseModel, Field, field_validator
from typing import Optional, List
from datetime import datetime
from .user import UserBasic

class TeamCreate(BaseModel):
    name: str = Field(min_length=1)
    description: Optional[str] = None
    member_ids: List[int] = []

    @field_validator("name")
    @classmethod
    def strip_name(cls, value):
        value = value.strip()
        if not value:
            raise ValueError("Team name is required")
        return value

class TeamUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    member_ids: Optional[List[int]] = None
    is_active: Optional[bool] = None

    @field_validator("name")
    @classmethod
    def strip_name(cls, value):
        if value is None:
            return value
        value = value.strip()
        if not value:
            raise ValueError("Team name cannot be empty")
        return value

class TeamOut(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    created_by_id: int
    is_active: bool
    created_at: datetime
    updated_at: Optional[datetime] = None
    members: List[UserBasic]

    model_config = {
        "from_attributes": True
    }

class TeamMemberAdd(BaseModel):
    user_ids: List[int] = Field(min_length=1)
