# app/config/security.py
# Security configuration for authentication, lockout and rate limiting

import os
from datetime import timedelta

USER_DELETION_TASK_POLICIES = ('delete', 'reassign')


def parse_task_policy(value: str) -> str:
    """Normalise USER_DELETION_TASK_POLICY, refusing anything but delete or reassign"""
    policy = value.strip().lower()
    if policy not in USER_DELETION_TASK_POLICIES:
        raise ValueError(
            f"USER_DELETION_TASK_POLICY must be one of {', '.join(USER_DELETION_TASK_POLICIES)}, got {value!r}"
        )
    return policy


class SecurityConfig:
    """Security configuration for the application"""

    # Token settings
    JWT = {
        'secret_key': os.getenv('SECRET_KEY', 'change-me-in-production'),
        'algorithm': os.getenv('ALGORITHM', 'HS256'),
        'expire_days': int(os.getenv('ACCESS_TOKEN_EXPIRE_DAYS', 7)),
    }

    # Password hashing
    PASSWORDS = {
        'bcrypt_rounds': int(os.getenv('BCRYPT_ROUNDS', 12)),
        'min_length': 6,
    }

    # Brute force protection
    LOCKOUT = {
        'max_attempts': int(os.getenv('MAX_LOGIN_ATTEMPTS', 5)),
        'lockout_minutes': int(os.getenv('LOCKOUT_MINUTES', 120)),
    }

    # Password reset flow
    PASSWORD_RESET = {
        'token_expire_minutes': int(os.getenv('RESET_TOKEN_EXPIRE_MINUTES', 10)),
        'client_url': os.getenv('CLIENT_URL', 'http://localhost:3000'),
    }

    # Rate limiting settings (max requests, window in seconds)
    RATE_LIMITS = {
        'admin_create_user': (5, 60),
        'admin_delete_user': (5, 60),
        'admin_reset_password': (10, 60),
        'bulk_delete': (5, 60),
        'bulk_update': (10, 60),
    }

    # What happens to a deleted user's assigned tasks: delete or reassign
    USER_DELETION = {
        'task_policy': parse_task_policy(os.getenv('USER_DELETION_TASK_POLICY', 'delete')),
    }

    ENVIRONMENT = os.getenv('ENVIRONMENT', 'development').lower()

    @classmethod
    def lockout_duration(cls) -> timedelta:
        """Get how long an account stays locked"""
        return timedelta(minutes=cls.LOCKOUT['lockout_minutes'])

    @classmethod
    def reset_token_lifetime(cls) -> timedelta:
        """Get how long a password reset token stays valid"""
        return timedelta(minutes=cls.PASSWORD_RESET['token_expire_minutes'])

    @classmethod
    def is_production(cls) -> bool:
        return cls.ENVIRONMENT == 'production'
