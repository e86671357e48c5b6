# app/utils/auth.py
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError
from sqlalchemy.orm import Session

from app.database import get_db
from app.models.activity_log import ActivityAction, EntityType, LogStatus
from app.models.user import User, AccountStatus
from app.services.audit_service import AuditService
from app.utils.permissions import Capability, has_capability
from app.utils.security import decode_access_token

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login", auto_error=False)


def get_current_user(token: str = Depends(oauth2_scheme), db: Session = Depends(get_db)) -> User:
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    try:
        payload = decode_access_token(token)
        subject = payload.get("sub")
        if subject is None:
            raise credentials_exception
        user_id = int(subject)
    except (JWTError, ValueError):
        raise credentials_exception

    user = db.query(User).filter(User.id == user_id).first()
    if user is None:
        raise credentials_exception

    # Check if user is active
    if not user.is_active or user.account_status != AccountStatus.ACTIVE:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Account has been deactivated. Please contact administrator.",
            headers={"WWW-Authenticate": "Bearer"},
        )
    if user.is_locked():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Account is temporarily locked. Please try again later or contact support.",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return user


def require_admin(
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> User:
    """Gate for the admin console, every attempt lands in the activity log"""
    if not has_capability(current_user, Capability.ADMIN_CONSOLE):
        AuditService.record(
            db,
            ActivityAction.ADMIN_ACCESS,
            performed_by_id=current_user.id,
            target_type=EntityType.SYSTEM,
            request=request,
            status=LogStatus.FAILED,
            error_message="Unauthorized admin access attempt",
        )
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Access denied. Admin privileges required.",
        )

    AuditService.record(
        db,
        ActivityAction.ADMIN_ACCESS,
        performed_by_id=current_user.id,
        target_type=EntityType.SYSTEM,
        request=request,
        details=f"Admin accessed: {request.method} {request.url.path}",
    )
    return current_user


def require_capability(capability: Capability):
    """Dependency factory rejecting callers whose role lacks the capability"""
    def checker(current_user: User = Depends(get_current_user)) -> User:
        if not has_capability(current_user, capability):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="You do not have permission to perform this action",
            )
        return current_user
    return checker
