from .user import UserCreate, AdminUserCreate, UserLogin, UserOut, AdminUserOut, UserBasic, UserUpdate, ForgotPasswordRequest, ResetPasswordRequest, ChangePasswordRequest, AdminPasswordReset
from .tokens import Token
from .team import TeamCreate, TeamUpdate, TeamOut, TeamMemberAdd
from .task import TaskCreate, TaskUpdate, TaskOut, TaskStatusUpdate, TaskReassign, Assignment, SelfAssignment, IndividualAssignment, TeamAssignment, BulkTaskDelete, BulkTaskUpdate, BulkTaskFields
from .activity_log import ActivityLogOut
