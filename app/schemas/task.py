from pydantic import BaseModel, Field, field_validator
from typing import Optional, List, Union, Literal, Annotated, Dict, Any
from datetime import datetime

from app.models.task import TaskStatus, TaskPriority, AssignmentType
from .user import UserBasic

MAX_TAG_LENGTH = 50


class SelfAssignment(BaseModel):
    type: Literal["self"] = "self"


class IndividualAssignment(BaseModel):
    type: Literal["individual"]
    user_id: int


class TeamAssignment(BaseModel):
    type: Literal["team"]
    team_id: int


# Exactly one of: the creator, a single user, or a team
Assignment = Annotated[
    Union[SelfAssignment, IndividualAssignment, TeamAssignment],
    Field(discriminator="type"),
]


def _clean_tags(tags):
    if tags is None:
        return tags
    cleaned = []
    for tag in tags:
        tag = tag.strip()
        if not tag:
            continue
        if len(tag) > MAX_TAG_LENGTH:
            raise ValueError(f"Tags must be at most {MAX_TAG_LENGTH} characters")
        cleaned.append(tag)
    return cleaned


class TaskCreate(BaseModel):
    title: str
    description: Optional[str] = None
    status: TaskStatus = TaskStatus.PENDING
    priority: TaskPriority = TaskPriority.MEDIUM
    start_date: Optional[datetime] = None
    due_date: Optional[datetime] = None
    tags: List[str] = []
    assignment: Optional[Assignment] = None

    @field_validator("title")
    @classmethod
    def title_required(cls, value):
        value = value.strip()
        if not value:
            raise ValueError("Title is required")
        return value

    @field_validator("tags")
    @classmethod
    def clean_tags(cls, value):
        return _clean_tags(value)


class TaskUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    status: Optional[TaskStatus] = None
    priority: Optional[TaskPriority] = None
    start_date: Optional[datetime] = None
    due_date: Optional[datetime] = None
    tags: Optional[List[str]] = None
    assignment: Optional[Assignment] = None

    @field_validator("title")
    @classmethod
    def title_not_blank(cls, value):
        if value is None:
            return value
        value = value.strip()
        if not value:
            raise ValueError("Title cannot be empty")
        return value

    @field_validator("tags")
    @classmethod
    def clean_tags(cls, value):
        return _clean_tags(value)


class TaskStatusUpdate(BaseModel):
    status: TaskStatus


class TaskReassign(BaseModel):
    assignment: Assignment


class TeamBrief(BaseModel):
    id: int
    name: str

    model_config = {
        "from_attributes": True
    }


class TaskOut(BaseModel):
    id: int
    title: str
    description: Optional[str] = None
    status: TaskStatus
    priority: TaskPriority
    start_date: Optional[datetime] = None
    due_date: Optional[datetime] = None
    tags: List[str] = []
    assignment_type: AssignmentType
    assigned_to_id: Optional[int] = None
    assigned_team_id: Optional[int] = None
    assignment: Dict[str, Any]
    created_by_id: int
    completed_at: Optional[datetime] = None
    created_at: datetime
    updated_at: Optional[datetime] = None
    assignee: Optional[UserBasic] = None
    team: Optional[TeamBrief] = None
    creator: Optional[UserBasic] = None

    model_config = {
        "from_attributes": True
    }


class BulkTaskDelete(BaseModel):
    task_ids: List[int] = Field(min_length=1)


class BulkTaskFields(BaseModel):
    status: Optional[TaskStatus] = None
    priority: Optional[TaskPriority] = None
    assigned_to_id: Optional[int] = None

    model_config = {
        "extra": "forbid"
    }


class BulkTaskUpdate(BaseModel):
    task_ids: List[int] = Field(min_length=1)
    updates: BulkTaskFields
