import logging
import smtplib
from email.message import EmailMessage

from devcamper.core import config

logger = logging.getLogger(__name__)

SMTP_TIMEOUT_SECONDS = 10


def send_email(*, to: str, subject: str, message: str) -> None:
    """Deliver a plain-text email. Raises ``smtplib.SMTPException`` or ``OSError`` on failure."""
    email = EmailMessage()
    email['From'] = f'{config.FROM_NAME} <{config.FROM_EMAIL}>'
    email['To'] = to
    email['Subject'] = subject
    email.set_content(message)

    with smtplib.SMTP(config.SMTP_HOST, config.SMTP_PORT, timeout=SMTP_TIMEOUT_SECONDS) as smtp:
        if config.SMTP_USE_TLS:
            smtp.starttls()
        if config.SMTP_USERNAME:
            smtp.login(config.SMTP_USERNAME, config.SMTP_PASSWORD)
        smtp.send_message(email)

    logger.info('Sent "%s" email to %s', subject, to)
