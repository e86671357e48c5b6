from .user import User, UserRole, AccountStatus
from .team import Team, team_members
from .task import Task, TaskStatus, TaskPriority, AssignmentType
from .activity_log import ActivityLog, ActivityAction, EntityType, LogStatus, ActivityLogImmutableError
