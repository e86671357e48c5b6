from email.message import EmailMessage
import logging
import smtplib

from app.config.email import EmailConfig

logger = logging.getLogger(__name__)


class EmailDeliveryError(Exception):
    pass


def is_email_configured() -> bool:
    return EmailConfig.is_configured()


def send_email(to_address: str, subject: str, text_body: str, html_body: str = None):
    """Send a message through the configured SMTP server"""
    message = EmailMessage()
    message["Subject"] = subject
    message["From"] = f"{EmailConfig.SENDER['name']} <{EmailConfig.SENDER['address']}>"
    message["To"] = to_address
    message.set_content(text_body)
    if html_body:
        message.add_alternative(html_body, subtype="html")

    smtp = EmailConfig.SMTP
    try:
        with smtplib.SMTP(smtp['host'], smtp['port'], timeout=smtp['timeout']) as server:
            if smtp['use_tls']:
                server.starttls()
            server.login(smtp['user'], smtp['password'])
            server.send_message(message)
    except (smtplib.SMTPException, OSError) as e:
        logger.error("Failed to send email to %s: %s", to_address, e)
        raise EmailDeliveryError(str(e)) from e

    logger.info("Email '%s' sent to %s", subject, to_address)


def send_password_reset_email(to_address: str, name: str, reset_url: str, expire_minutes: int):
    subject = "Password reset request"
    text_body = (
        f"Hello {name},\n\n"
        f"You requested a password reset. Use the link below within {expire_minutes} minutes:\n\n"
        f"{reset_url}\n\n"
        "If you did not request this, you can ignore this email."
    )
    html_body = (
        f"<p>Hello {name},</p>"
        f"<p>You requested a password reset. Use the link below within {expire_minutes} minutes:</p>"
        f'<p><a href="{reset_url}">Reset your password</a></p>'
        "<p>If you did not request this, you can ignore this email.</p>"
    )
    send_email(to_address, subject, text_body, html_body)
