# app/config/email.py
# SMTP transport configuration for outgoing mail

import os


class EmailConfig:
    """Email configuration for the application"""

    SMTP = {
        'host': os.getenv('SMTP_HOST'),
        'port': int(os.getenv('SMTP_PORT', 587)),
        'user': os.getenv('SMTP_USER'),
        'password': os.getenv('SMTP_PASSWORD'),
        'use_tls': os.getenv('SMTP_USE_TLS', 'true').lower() == 'true',
        'timeout': int(os.getenv('SMTP_TIMEOUT', 10)),
    }

    SENDER = {
        'address': os.getenv('EMAIL_FROM', os.getenv('SMTP_USER') or 'no-reply@localhost'),
        'name': os.getenv('EMAIL_FROM_NAME', 'Task Manager'),
    }

    @classmethod
    def is_configured(cls) -> bool:
        """Check whether enough settings exist to talk to an SMTP server"""
        return bool(cls.SMTP['host'] and cls.SMTP['user'] and cls.SMTP['password'])
