from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Enum, Text, JSON, CheckConstraint
from sqlalchemy.orm import relationship, validates
from app.database import Base
from app.models.user import enum_values
import enum
from datetime import datetime
from typing import Optional


class TaskStatus(str, enum.Enum):
    PENDING = "pending"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"


class TaskPriority(str, enum.Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class AssignmentType(str, enum.Enum):
    SELF = "self"
    INDIVIDUAL = "individual"
    TEAM = "team"


class Task(Base):
    __tablename__ = "tasks"
    __table_args__ = (
        CheckConstraint(
            "(status = 'completed' AND completed_at IS NOT NULL) "
            "OR (status <> 'completed' AND completed_at IS NULL)",
            name="ck_tasks_completed_at_matches_status",
        ),
        CheckConstraint(
            "(assignment_type = 'team' AND assigned_team_id IS NOT NULL AND assigned_to_id IS NULL) "
            "OR (assignment_type IN ('self', 'individual') AND assigned_to_id IS NOT NULL AND assigned_team_id IS NULL)",
            name="ck_tasks_assignment_shape",
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String, nullable=False, index=True)
    description = Column(Text, nullable=True)

    # Task properties
    status = Column(
        Enum(TaskStatus, values_callable=enum_values, native_enum=False, length=20),
        default=TaskStatus.PENDING,
        nullable=False,
        index=True,
    )
    priority = Column(
        Enum(TaskPriority, values_callable=enum_values, native_enum=False, length=20),
        default=TaskPriority.MEDIUM,
        nullable=False,
        index=True,
    )
    start_date = Column(DateTime, nullable=True)
    due_date = Column(DateTime, nullable=True)
    tags = Column(JSON, nullable=False, default=list)

    # Assignment, written only through apply_assignment
    assignment_type = Column(
        Enum(AssignmentType, values_callable=enum_values, native_enum=False, length=20),
        default=AssignmentType.SELF,
        nullable=False,
    )
    assigned_to_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    assigned_team_id = Column(Integer, ForeignKey("teams.id"), nullable=True, index=True)
    created_by_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    # System dates
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    completed_at = Column(DateTime, nullable=True, index=True)

    # Relationships
    creator = relationship("User", foreign_keys=[created_by_id])
    assignee = relationship("User", foreign_keys=[assigned_to_id])
    team = relationship("Team", foreign_keys=[assigned_team_id])

    @validates("status")
    def _stamp_completion(self, key, value):
        value = TaskStatus(value)
        if value == TaskStatus.COMPLETED:
            if self.completed_at is None:
                self.completed_at = datetime.utcnow()
        else:
            self.completed_at = None
        return value

    def apply_assignment(self, assignment_type, user_id: Optional[int] = None, team_id: Optional[int] = None):
        """Point the task at exactly one assignee.

        self and individual assignments target a user, team assignments target a team.
        """
        assignment_type = AssignmentType(assignment_type)
        if assignment_type == AssignmentType.TEAM:
            if team_id is None:
                raise ValueError("Team assignment requires a team")
            self.assigned_team_id = team_id
            self.assigned_to_id = None
        else:
            if user_id is None:
                raise ValueError("User assignment requires a user")
            self.assigned_to_id = user_id
            self.assigned_team_id = None
        self.assignment_type = assignment_type

    @property
    def assignment(self) -> dict:
        if self.assignment_type == AssignmentType.TEAM:
            return {"type": AssignmentType.TEAM.value, "team_id": self.assigned_team_id}
        if self.assignment_type == AssignmentType.INDIVIDUAL:
            return {"type": AssignmentType.INDIVIDUAL.value, "user_id": self.assigned_to_id}
        return {"type": AssignmentType.SELF.value}
