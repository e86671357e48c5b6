from fastapi import APIRouter, HTTPException, Depends, Request, status
from sqlalchemy.orm import Session
from datetime import datetime
import logging

from app.config.security import SecurityConfig
from app.database import get_db
from app.models.activity_log import ActivityAction, EntityType, LogStatus
from app.models.user import User, UserRole, AccountStatus
from app.schemas.user import (
    UserCreate, UserLogin, UserOut, ForgotPasswordRequest, ResetPasswordRequest, ChangePasswordRequest,
)
from app.schemas.tokens import Token
from app.services import email_service
from app.services.audit_service import AuditService
from app.utils.auth import get_current_user
from app.utils.security import (
    hash_password, verify_password, create_access_token, generate_reset_token, hash_reset_token,
)

logger = logging.getLogger(__name__)

router = APIRouter()

GENERIC_RESET_MESSAGE = "If an account exists for that email, a password reset link has been sent."


def token_response(user: User) -> dict:
    return {
        "success": True,
        "token": create_access_token(data={"sub": str(user.id)}),
        "token_type": "bearer",
        "user": user,
    }


@router.post("/register", response_model=Token, status_code=status.HTTP_201_CREATED)
def register(payload: UserCreate, request: Request, db: Session = Depends(get_db)):
    existing_user = db.query(User).filter(User.email == payload.email).first()
    if existing_user:
        raise HTTPException(status_code=400, detail="User already exists with this email")

    new_user = User(
        name=payload.name,
        email=payload.email,
        hashed_password=hash_password(payload.password),
        role=UserRole.USER,
        last_login=datetime.utcnow(),
    )
    db.add(new_user)
    db.commit()
    db.refresh(new_user)

    AuditService.record(
        db,
        ActivityAction.USER_REGISTER,
        performed_by_id=new_user.id,
        target_type=EntityType.USER,
        target_id=new_user.id,
        request=request,
    )
    return token_response(new_user)


@router.post("/login", response_model=Token)
def login(payload: UserLogin, request: Request, db: Session = Depends(get_db)):
    user = db.query(User).filter(User.email == payload.email).first()
    if not user:
        raise HTTPException(status_code=401, detail="Invalid credentials")

    now = datetime.utcnow()
    if user.is_locked(now):
        AuditService.log_login(db, user.id, request, False, "Account is locked")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Account is temporarily locked. Please try again later or contact support.",
        )

    if not verify_password(payload.password, user.hashed_password):
        locked_now = user.register_failed_login(
            SecurityConfig.LOCKOUT['max_attempts'], SecurityConfig.lockout_duration(), now
        )
        db.commit()
        if locked_now:
            logger.warning("Account %s locked after repeated failed logins", user.id)
            AuditService.log_login(
                db, user.id, request, False,
                f"Account locked after {SecurityConfig.LOCKOUT['max_attempts']} failed login attempts",
            )
        else:
            AuditService.log_login(db, user.id, request, False, "Invalid password")
        raise HTTPException(status_code=401, detail="Invalid credentials")

    if not user.is_active or user.account_status != AccountStatus.ACTIVE:
        AuditService.log_login(db, user.id, request, False, "Account is not active")
        raise HTTPException(status_code=401, detail="Account is deactivated. Please contact support.")

    user.reset_login_attempts(now)
    db.commit()
    db.refresh(user)

    AuditService.log_login(db, user.id, request, True)
    return token_response(user)


@router.get("/me", response_model=UserOut)
def me(current_user: User = Depends(get_current_user)):
    return current_user


@router.post("/logout")
def logout(request: Request, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    AuditService.record(
        db,
        ActivityAction.USER_LOGOUT,
        performed_by_id=current_user.id,
        target_type=EntityType.USER,
        target_id=current_user.id,
        request=request,
    )
    return {"success": True, "message": "Logged out successfully"}


@router.put("/change-password")
def change_password(
    payload: ChangePasswordRequest,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    if not verify_password(payload.current_password, current_user.hashed_password):
        AuditService.record(
            db,
            ActivityAction.PASSWORD_CHANGE,
            performed_by_id=current_user.id,
            target_type=EntityType.USER,
            target_id=current_user.id,
            request=request,
            status=LogStatus.FAILED,
            error_message="Current password is incorrect",
        )
        raise HTTPException(status_code=400, detail="Current password is incorrect")

    current_user.hashed_password = hash_password(payload.new_password)
    current_user.last_password_change = datetime.utcnow()
    db.commit()

    AuditService.record(
        db,
        ActivityAction.PASSWORD_CHANGE,
        performed_by_id=current_user.id,
        target_type=EntityType.USER,
        target_id=current_user.id,
        request=request,
    )
    return {"success": True, "message": "Password changed successfully"}


@router.post("/forgot-password")
def forgot_password(payload: ForgotPasswordRequest, request: Request, db: Session = Depends(get_db)):
    user = db.query(User).filter(User.email == payload.email.lower()).first()
    if not user:
        return {"success": True, "message": GENERIC_RESET_MESSAGE}

    raw_token, token_hash, expires_at = generate_reset_token()
    user.reset_password_token = token_hash
    user.reset_password_expire = expires_at
    db.commit()

    reset_url = f"{SecurityConfig.PASSWORD_RESET['client_url'].rstrip('/')}/reset-password/{raw_token}"
    expire_minutes = SecurityConfig.PASSWORD_RESET['token_expire_minutes']

    if not email_service.is_email_configured():
        logger.warning("SMTP is not configured, returning reset token for %s in the response", user.email)
        AuditService.record(
            db,
            ActivityAction.PASSWORD_RESET_REQUESTED,
            performed_by_id=user.id,
            target_type=EntityType.USER,
            target_id=user.id,
            request=request,
            details="Email transport not configured",
        )
        return {
            "success": True,
            "message": "Email is not configured. Use the reset token below.",
            "reset_token": raw_token,
            "reset_url": reset_url,
        }

    try:
        email_service.send_password_reset_email(user.email, user.name, reset_url, expire_minutes)
    except email_service.EmailDeliveryError:
        user.reset_password_token = None
        user.reset_password_expire = None
        db.commit()
        raise HTTPException(status_code=500, detail="Email could not be sent")

    AuditService.record(
        db,
        ActivityAction.PASSWORD_RESET_REQUESTED,
        performed_by_id=user.id,
        target_type=EntityType.USER,
        target_id=user.id,
        request=request,
    )
    return {"success": True, "message": GENERIC_RESET_MESSAGE}


@router.post("/reset-password")
def reset_password(payload: ResetPasswordRequest, request: Request, db: Session = Depends(get_db)):
    now = datetime.utcnow()
    user = db.query(User).filter(
        User.reset_password_token == hash_reset_token(payload.token),
        User.reset_password_expire > now,
    ).first()
    if not user:
        raise HTTPException(status_code=400, detail="Invalid or expired reset token")

    user.hashed_password = hash_password(payload.new_password)
    user.reset_password_token = None
    user.reset_password_expire = None
    user.failed_login_attempts = 0
    user.lockout_until = None
    user.last_password_change = now
    db.commit()

    AuditService.record(
        db,
        ActivityAction.PASSWORD_RESET,
        performed_by_id=user.id,
        target_type=EntityType.USER,
        target_id=user.id,
        request=request,
    )
    return {"success": True, "message": "Password has been reset successfully"}
