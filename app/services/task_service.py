from sqlalchemy import case
from sqlalchemy.orm import Session
from typing import Optional, Tuple, Dict, Any

from app.models.task import Task, TaskPriority, AssignmentType
from app.models.team import Team
from app.models.user import User
from app.schemas.task import TaskUpdate
from app.utils.diff import field_changes
from app.utils.errors import forbidden, not_found, bad_request
from app.utils.permissions import authorize_assignment

PRIORITY_ORDER = case(
    (Task.priority == TaskPriority.HIGH, 0),
    (Task.priority == TaskPriority.MEDIUM, 1),
    else_=2,
)

SORT_OPTIONS = {
    "created_at": [Task.created_at.desc()],
    "due_date": [Task.due_date.asc()],
    "priority": [PRIORITY_ORDER, Task.created_at.desc()],
}

# Columns that may be cleared with an explicit null
NULLABLE_TASK_FIELDS = {"description", "start_date", "due_date"}


class TaskService:
    @staticmethod
    def get_or_404(db: Session, task_id: int) -> Task:
        task = db.query(Task).filter(Task.id == task_id).first()
        if not task:
            raise not_found("Task not found")
        return task

    @staticmethod
    def resolve_assignment(
        db: Session, actor: User, assignment, owner_id: Optional[int] = None
    ) -> Tuple[AssignmentType, Optional[int], Optional[int]]:
        """Check an Assignment against the actor's role and the database.

        A self assignment points at the task's creator (owner_id), or at the
        actor for a task being created. Returns the (type, user_id, team_id)
        triple to hand to Task.apply_assignment.
        """
        if assignment is None or assignment.type == AssignmentType.SELF.value:
            return AssignmentType.SELF, owner_id or actor.id, None

        decision = authorize_assignment(actor, assignment.type)
        if not decision:
            raise forbidden(decision.reason)

        if assignment.type == AssignmentType.INDIVIDUAL.value:
            return AssignmentType.INDIVIDUAL, TaskService.active_user_or_error(db, assignment.user_id).id, None

        team = db.query(Team).filter(Team.id == assignment.team_id).first()
        if not team:
            raise not_found("Assigned team not found")
        if not team.is_active:
            raise bad_request("Assigned team is not active")
        return AssignmentType.TEAM, None, team.id

    @staticmethod
    def active_user_or_error(db: Session, user_id: int) -> User:
        assignee = db.query(User).filter(User.id == user_id).first()
        if not assignee:
            raise not_found("Assigned user not found")
        if not assignee.is_active:
            raise bad_request("Assigned user is not active")
        return assignee

    @staticmethod
    def assignment_changes(task: Task, assignment_type, user_id, team_id) -> Dict[str, Any]:
        current = (AssignmentType(task.assignment_type), task.assigned_to_id, task.assigned_team_id)
        requested = (AssignmentType(assignment_type), user_id, team_id)
        if current == requested:
            return {}

        def describe(kind, assigned_user, assigned_team):
            return {"type": kind.value, "user_id": assigned_user, "team_id": assigned_team}

        return {"assignment": {"from": describe(*current), "to": describe(*requested)}}

    @staticmethod
    def apply_update(db: Session, actor: User, task: Task, payload: TaskUpdate) -> Tuple[Dict[str, Any], Dict[str, Any]]:
        """Apply a partial update to a loaded task without committing.

        Returns (field changes, assignment changes) for the activity log.
        """
        updates = payload.model_dump(exclude_unset=True)
        updates.pop("assignment", None)
        updates = {
            key: value for key, value in updates.items()
            if value is not None or key in NULLABLE_TASK_FIELDS
        }
        changes = field_changes(task, updates)

        reassigned = {}
        if payload.assignment is not None:
            resolved = TaskService.resolve_assignment(db, actor, payload.assignment, owner_id=task.created_by_id)
            reassigned = TaskService.assignment_changes(task, *resolved)
            task.apply_assignment(*resolved)

        for key, value in updates.items():
            setattr(task, key, value)
        return changes, reassigned
