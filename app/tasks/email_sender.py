import re
import smtplib
import ssl
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

from app.celery import celery
from app.config.settings import settings
from app.utils.logging import get_logger

SENDER_NAME = "Al-Xorazmiy University"


def _plain_text(html: str) -> str:
    return re.sub(r"<[^>]*>", "", html).strip()


def _build_message(to: str, subject: str, html: str) -> MIMEMultipart:
    msg = MIMEMultipart("alternative")
    msg["Subject"] = subject
    msg["From"] = f'"{SENDER_NAME}" <{settings.SMTP_FROM or settings.SMTP_USER}>'
    msg["To"] = to
    msg.attach(MIMEText(_plain_text(html), "plain"))
    msg.attach(MIMEText(html, "html"))
    return msg


@celery.task(bind=True, max_retries=3, default_retry_delay=60)
def send_email_task(self, request_id: str, to: str, subject: str, html: str):
    """
    Celery task to deliver one HTML email over SMTP.

    Without SMTP credentials the email is written to the log instead
    (console mode), which keeps local setups working.

    Args:
        request_id: The request ID from the original HTTP request
        to: Recipient address
        subject: Subject line
        html: HTML body; a plain-text part is derived from it
    """
    logger = get_logger().bind(request_id=request_id)

    if not (settings.SMTP_HOST and settings.SMTP_USER and settings.SMTP_PASSWORD):
        logger.info(
            f"[EMAIL - CONSOLE MODE] To: {to} | Subject: {subject} | "
            f"Body: {_plain_text(html)}"
        )
        return {"success": True, "mode": "console", "request_id": request_id}

    msg = _build_message(to, subject, html)
    try:
        if settings.SMTP_PORT == 465:
            server = smtplib.SMTP_SSL(
                settings.SMTP_HOST, settings.SMTP_PORT, context=ssl.create_default_context()
            )
        else:
            server = smtplib.SMTP(settings.SMTP_HOST, settings.SMTP_PORT)
            server.starttls(context=ssl.create_default_context())

        with server:
            server.login(settings.SMTP_USER, settings.SMTP_PASSWORD)
            server.sendmail(msg["From"], [to], msg.as_string())

        logger.info(f"Email sent to {to}: {subject}")
        return {"success": True, "mode": "smtp", "request_id": request_id}

    except (smtplib.SMTPException, OSError) as e:
        logger.warning(f"Failed to send email to {to}, retrying: {str(e)}")
        raise self.retry(exc=e)
