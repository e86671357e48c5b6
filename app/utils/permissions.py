# app/utils/permissions.py
"""
Role capabilities and the rules built on them.

Every role rule in the application is answered from ROLE_CAPABILITIES, so
changing what a role may do is a one-line change to that table.
"""

import enum
from dataclasses import dataclass
from typing import FrozenSet, Iterable, List, Optional

from sqlalchemy import and_, or_, true
from sqlalchemy.orm import Session

from app.models.task import AssignmentType, Task
from app.models.team import Team, team_members
from app.models.user import User, UserRole


class Capability(str, enum.Enum):
    VIEW_ALL_TASKS = "view_all_tasks"
    EDIT_ANY_TASK = "edit_any_task"
    DELETE_TASKS = "delete_tasks"
    ASSIGN_TASKS = "assign_tasks"
    MANAGE_TEAMS = "manage_teams"
    VIEW_ALL_ANALYTICS = "view_all_analytics"
    ADMIN_CONSOLE = "admin_console"


_STAFF = frozenset({
    Capability.VIEW_ALL_TASKS,
    Capability.EDIT_ANY_TASK,
    Capability.DELETE_TASKS,
    Capability.ASSIGN_TASKS,
    Capability.MANAGE_TEAMS,
    Capability.VIEW_ALL_ANALYTICS,
})

ROLE_CAPABILITIES = {
    UserRole.USER: frozenset(),
    UserRole.MANAGER: _STAFF,
    UserRole.ADMIN: _STAFF | {Capability.ADMIN_CONSOLE},
}

# Fields a role without EDIT_ANY_TASK may change on its own tasks
SELF_EDITABLE_FIELDS: FrozenSet[str] = frozenset({"status", "description"})


def capabilities_for(user: User) -> FrozenSet[Capability]:
    return ROLE_CAPABILITIES.get(UserRole(user.role), frozenset())


def has_capability(user: User, capability: Capability) -> bool:
    return capability in capabilities_for(user)


@dataclass(frozen=True)
class Decision:
    allowed: bool
    reason: Optional[str] = None

    @classmethod
    def allow(cls) -> "Decision":
        return cls(True)

    @classmethod
    def deny(cls, reason: str) -> "Decision":
        return cls(False, reason)

    def __bool__(self):
        return self.allowed


# Visibility

def team_ids_for(db: Session, user: User) -> List[int]:
    """Ids of the active teams the user belongs to"""
    rows = (
        db.query(Team.id)
        .join(team_members, team_members.c.team_id == Team.id)
        .filter(team_members.c.user_id == user.id, Team.is_active.is_(True))
        .all()
    )
    return [row[0] for row in rows]


def task_scope(db: Session, user: User):
    """SQL criterion selecting the tasks the user may see"""
    if has_capability(user, Capability.VIEW_ALL_TASKS):
        return true()

    clauses = [
        Task.assigned_to_id == user.id,
        and_(Task.created_by_id == user.id, Task.assignment_type == AssignmentType.SELF),
    ]
    team_ids = team_ids_for(db, user)
    if team_ids:
        clauses.append(Task.assigned_team_id.in_(team_ids))
    return or_(*clauses)


def can_view_task(user: User, task: Task, team_ids: Iterable[int]) -> bool:
    if has_capability(user, Capability.VIEW_ALL_TASKS):
        return True
    if task.assigned_to_id == user.id:
        return True
    if task.assigned_team_id is not None and task.assigned_team_id in set(team_ids):
        return True
    return task.created_by_id == user.id and task.assignment_type == AssignmentType.SELF


# Mutations

def authorize_update(user: User, task: Task, requested_fields: Iterable[str]) -> Decision:
    if has_capability(user, Capability.EDIT_ANY_TASK):
        return Decision.allow()
    if task.assigned_to_id != user.id:
        return Decision.deny("Not authorized for this task")

    forbidden = sorted(set(requested_fields) - SELF_EDITABLE_FIELDS)
    if forbidden:
        return Decision.deny(f"Field not permitted for role: {', '.join(forbidden)}")
    return Decision.allow()


def authorize_delete(user: User, task: Task) -> Decision:
    if has_capability(user, Capability.DELETE_TASKS):
        return Decision.allow()
    return Decision.deny("Not authorized to delete tasks")


def authorize_assignment(user: User, assignment_type) -> Decision:
    if AssignmentType(assignment_type) == AssignmentType.SELF:
        return Decision.allow()
    if has_capability(user, Capability.ASSIGN_TASKS):
        return Decision.allow()
    return Decision.deny("Not authorized to assign tasks to others")


# Analytics

def resolve_analytics_user(user: User, requested_user_id: Optional[int]) -> Optional[int]:
    """Pick whose tasks an analytics query covers.

    Roles without VIEW_ALL_ANALYTICS are pinned to their own tasks. Others get
    the requested user, or everything when none is given.
    """
    if not has_capability(user, Capability.VIEW_ALL_ANALYTICS):
        return user.id
    return requested_user_id
