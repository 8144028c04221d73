import logging
import smtplib
from email.message import EmailMessage

from . import config

logger = logging.getLogger(__name__)


def fake_send_email(to_email: str, subject: str, body: str):
    logger.info("Email to=%s subject=%r: %s", to_email, subject, body)


def build_message(email_to: str, subject: str, body: str) -> EmailMessage:
    message = EmailMessage()
    message["From"] = config.SMTP_USER
    message["To"] = email_to
    message["Subject"] = subject
    message.set_content(body)
    return message


def send_email_smtp(email_to: str, subject: str, body: str):
    """Deliver one plain-text message over STARTTLS; errors propagate to the caller."""
    message = build_message(email_to, subject, body)
    with smtplib.SMTP(config.SMTP_SERVER, config.SMTP_PORT) as server:
        server.starttls()
        if config.SMTP_PASSWORD:
            server.login(config.SMTP_USER, config.SMTP_PASSWORD)
        server.send_message(message)
    logger.debug("Email to=%s subject=%r delivered via %s", email_to, subject, config.SMTP_SERVER)


def dispatch_email(email_to: str, subject: str, body: str):
    """Hand a message to the configured backend without waiting for delivery."""
    if config.EMAIL_BACKEND == "celery":
        from .celery_worker import send_email_async
        send_email_async.delay(email_to, subject, body)
    else:
        fake_send_email(email_to, subject, body)
