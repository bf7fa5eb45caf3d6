"""
Transactional email delivery
Mail is always sent from a background task; failures are logged, never raised to the caller
"""

import logging
import smtplib
from email.message import EmailMessage
from typing import Optional

from fastapi import BackgroundTasks
from fastapi.concurrency import run_in_threadpool

logger = logging.getLogger(__name__)


class Mailer:
    """SMTP relay client constructed once at startup"""

    def __init__(
        self,
        host: str,
        port: int = 587,
        username: Optional[str] = None,
        password: Optional[str] = None,
        sender: str = "EduElevate <no-reply@eduelevate.app>",
        timeout: float = 20.0,
    ):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.sender = sender
        self.timeout = timeout

    def build_message(self, to: str, subject: str, html: str) -> EmailMessage:
        message = EmailMessage()
        message["From"] = self.sender
        message["To"] = to
        message["Subject"] = subject
        message.set_content("This message requires an HTML capable mail client.")
        message.add_alternative(html, subtype="html")
        return message

    def send(self, to: str, subject: str, html: str) -> None:
        message = self.build_message(to, subject, html)
        with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as smtp:
            smtp.starttls()
            if self.username:
                smtp.login(self.username, self.password or "")
            smtp.send_message(message)

    async def send_async(self, to: str, subject: str, html: str) -> None:
        await run_in_threadpool(self.send, to, subject, html)


async def deliver_safely(mailer: Optional[Mailer], to: str, subject: str, html: str) -> bool:
    """Send one email; any failure is logged and swallowed"""
    if mailer is None:
        logger.warning("Mail relay not configured, dropping '%s' for %s", subject, to)
        return False
    try:
        await mailer.send_async(to, subject, html)
    except Exception:
        logger.exception("Failed to deliver '%s' to %s", subject, to)
        return False
    logger.info("Email '%s' sent to %s", subject, to)
    return True


def queue_email(
    background_tasks: BackgroundTasks,
    mailer: Optional[Mailer],
    to: str,
    subject: str,
    html: str,
):
    """Detach delivery from the request that triggered it"""
    background_tasks.add_task(deliver_safely, mailer, to, subject, html)
