# app/utils/security.py
from datetime import datetime, timedelta
from typing import Optional, Tuple
import hashlib
import secrets

from jose import jwt
from passlib.context import CryptContext

from app.config.security import SecurityConfig

pwd_context = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
    bcrypt__rounds=SecurityConfig.PASSWORDS['bcrypt_rounds'],
)


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


# Kept under both names, scripts use the longer one
get_password_hash = hash_password


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    to_encode = data.copy()
    expire = datetime.utcnow() + (expires_delta or timedelta(days=SecurityConfig.JWT['expire_days']))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, SecurityConfig.JWT['secret_key'], algorithm=SecurityConfig.JWT['algorithm'])


def decode_access_token(token: str) -> dict:
    """Decode a token, raising JWTError when it is invalid or expired"""
    return jwt.decode(token, SecurityConfig.JWT['secret_key'], algorithms=[SecurityConfig.JWT['algorithm']])


def hash_reset_token(raw_token: str) -> str:
    return hashlib.sha256(raw_token.encode("utf-8")).hexdigest()


def generate_reset_token() -> Tuple[str, str, datetime]:
    """Return the raw token to hand out, its stored hash and its expiry"""
    raw_token = secrets.token_hex(20)
    expires_at = datetime.utcnow() + SecurityConfig.reset_token_lifetime()
    return raw_token, hash_reset_token(raw_token), expires_at
