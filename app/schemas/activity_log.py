from pydantic import BaseModel
from typing import Optional, Any, Dict
from datetime import datetime

from app.models.activity_log import ActivityAction, EntityType, LogStatus
from .user import UserBasic


class ActivityLogOut(BaseModel):
    id: int
    action: ActivityAction
    performed_by_id: Optional[int] = None
    performer: Optional[UserBasic] = None
    target_entity_type: EntityType
    target_entity_id: Optional[int] = None
    details: Optional[str] = None
    changes: Optional[Dict[str, Any]] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    status: LogStatus
    error_message: Optional[str] = None
    created_at: datetime

    model_config = {
        "from_attributes": True
    }
