# app/schemas/tokens.py
from pydantic import BaseModel
from app.schemas.user import UserOut

class Token(BaseModel):
    success: bool = True
    token: str
    token_type: str = "bearer"
    user: UserOut

    model_config = {
        "from_attributes": True
    }
