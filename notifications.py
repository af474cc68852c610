"""Email notifications.

The workflow never talks to SMTP directly: it hands a recipient, subject and
template to a ``NotificationDispatcher``, which renders the body with Jinja2
and delivers it after the response has been sent. Delivery is best-effort;
a failure is logged and never undoes the change that triggered it.
"""
from __future__ import annotations

import smtplib
import time
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from pathlib import Path
from typing import Optional

import structlog
from fastapi import BackgroundTasks, Depends
from jinja2 import Environment, FileSystemLoader, select_autoescape

from settings import Settings, get_settings

logger = structlog.get_logger(__name__)

TEMPLATE_DIR = Path(__file__).resolve().parent / "templates" / "email"

_env = Environment(
    loader=FileSystemLoader(str(TEMPLATE_DIR)),
    autoescape=select_autoescape(["html"]),
)


def render_template(name: str, **context) -> str:
    return _env.get_template(name).render(**context)


class EmailNotifier:
    """Sends HTML mail over SMTP (STARTTLS when credentials are configured)."""

    def __init__(self, settings: Settings):
        self.settings = settings

    @property
    def configured(self) -> bool:
        return bool(self.settings.smtp_host)

    def _build_message(self, recipient: str, subject: str, html: str) -> MIMEMultipart:
        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = self.settings.mail_sender
        msg["To"] = recipient
        msg.attach(MIMEText(html, "html"))
        return msg

    def _send_once(self, msg: MIMEMultipart) -> None:
        s = self.settings
        with smtplib.SMTP(s.smtp_host, s.smtp_port, timeout=s.smtp_timeout) as server:
            if s.smtp_user and s.smtp_password:
                server.starttls()
                server.login(s.smtp_user, s.smtp_password)
            server.send_message(msg)

    def send(self, recipient: str, subject: str, html: str) -> None:
        if not self.configured:
            logger.warning("SMTP not configured, skipping email", recipient=recipient, subject=subject)
            return

        msg = self._build_message(recipient, subject, html)
        attempts = max(1, self.settings.mail_retry_attempts)
        for attempt in range(1, attempts + 1):
            try:
                self._send_once(msg)
                logger.info("Email sent", recipient=recipient, subject=subject, attempt=attempt)
                return
            except (smtplib.SMTPException, OSError) as exc:
                if attempt == attempts:
                    raise
                delay = 2 ** (attempt - 1)
                logger.warning(
                    "Email attempt failed, retrying",
                    recipient=recipient,
                    attempt=attempt,
                    error=str(exc),
                    retry_in=delay,
                )
                time.sleep(delay)


def deliver(notifier: EmailNotifier, recipient: str, subject: str, html: str) -> None:
    """Send one email; failures are logged, not raised."""
    try:
        notifier.send(recipient, subject, html)
    except Exception as exc:
        logger.error("Email delivery failed", recipient=recipient, subject=subject, error=str(exc), exc_info=True)


class NotificationDispatcher:
    """Renders notification templates and queues their delivery."""

    def __init__(self, notifier: EmailNotifier, background_tasks: Optional[BackgroundTasks] = None):
        self.notifier = notifier
        self.background_tasks = background_tasks

    def notify(self, recipient: str, subject: str, template: str, **context) -> None:
        html = render_template(template, **context)
        if self.background_tasks is not None:
            self.background_tasks.add_task(deliver, self.notifier, recipient, subject, html)
        else:
            deliver(self.notifier, recipient, subject, html)


def get_notifier(settings: Settings = Depends(get_settings)) -> EmailNotifier:
    return EmailNotifier(settings)


def get_dispatcher(
    background_tasks: BackgroundTasks,
    notifier: EmailNotifier = Depends(get_notifier),
) -> NotificationDispatcher:
    return NotificationDispatcher(notifier, background_tasks)
