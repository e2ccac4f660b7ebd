# itasks/integrations/mailer.py
"""SMTP email delivery with Jinja2 templates and retry"""
import asyncio
import smtplib
from dataclasses import dataclass
from email.message import EmailMessage
from typing import Any, Dict, Iterable, Optional

import backoff
from jinja2 import Environment, DictLoader, select_autoescape
from loguru import logger

from itasks.core.config import settings
from itasks.exceptions.domain import DependencyFailure

TEMPLATES = {
    "task_created.subject": "[{{ app_name }}] New task assigned: {{ task_title }}",
    "task_created.html": (
        "<p>A new task has been assigned to you.</p>"
        "<p><strong>{{ task_title }}</strong> (priority {{ priority }})</p>"
        "<p><a href=\"{{ task_url }}\">Open task</a></p>"
    ),
    "task_updated.subject": "[{{ app_name }}] Task updated: {{ task_title }}",
    "task_updated.html": (
        "<p><strong>{{ task_title }}</strong> was updated{% if actor_name %} by {{ actor_name }}{% endif %}.</p>"
        "<p>{{ message }}</p>"
        "<p><a href=\"{{ task_url }}\">Open task</a></p>"
    ),
    "task_commented.subject": "[{{ app_name }}] New comment on: {{ task_title }}",
    "task_commented.html": (
        "<p>{{ actor_name or 'Someone' }} commented on <strong>{{ task_title }}</strong>:</p>"
        "<blockquote>{{ excerpt }}</blockquote>"
        "<p><a href=\"{{ task_url }}\">Open task</a></p>"
    ),
    "user_mentioned.subject": "[{{ app_name }}] You were mentioned on: {{ task_title }}",
    "user_mentioned.html": (
        "<p>{{ actor_name or 'Someone' }} mentioned you on <strong>{{ task_title }}</strong>:</p>"
        "<blockquote>{{ excerpt }}</blockquote>"
        "<p><a href=\"{{ task_url }}\">Open task</a></p>"
    ),
    "recurring_generated.subject": "[{{ app_name }}] Recurring task created: {{ task_title }}",
    "recurring_generated.html": (
        "<p>The recurring schedule <em>{{ config_name }}</em> created <strong>{{ task_title }}</strong>.</p>"
        "<p><a href=\"{{ task_url }}\">Open task</a></p>"
    ),
}


@dataclass(frozen=True)
class SmtpSettings:
    enabled: bool
    host: str
    port: int
    user: Optional[str]
    password: Optional[str]
    sender: str
    use_tls: bool
    app_name: str

    @classmethod
    def from_settings(cls) -> "SmtpSettings":
        return cls(
            enabled=settings.SMTP_ENABLED,
            host=settings.SMTP_HOST,
            port=settings.SMTP_PORT,
            user=settings.SMTP_USER or None,
            password=settings.SMTP_PASSWORD.get_secret_value() or None,
            sender=settings.SMTP_FROM,
            use_tls=settings.SMTP_USE_TLS,
            app_name=settings.APP_NAME,
        )

    @classmethod
    def from_system_config(cls, config) -> "SmtpSettings":
        """Values from the system_config row, each falling back to the environment"""
        defaults = cls.from_settings()
        if config is None:
            return defaults
        return cls(
            enabled=bool(config.smtp_enabled),
            host=config.smtp_host or defaults.host,
            port=config.smtp_port or defaults.port,
            user=config.smtp_user or defaults.user,
            password=config.smtp_password or defaults.password,
            sender=config.smtp_from or defaults.sender,
            use_tls=bool(config.smtp_use_tls),
            app_name=config.app_name or defaults.app_name,
        )


class Mailer:
    """Renders a template pair (subject + html) and sends it over SMTP"""

    def __init__(self, smtp: SmtpSettings):
        self.smtp = smtp
        self.jinja_env = Environment(
            loader=DictLoader(TEMPLATES),
            autoescape=select_autoescape(['html', 'xml']),
        )

    def render(self, template: str, context: Dict[str, Any]) -> tuple:
        context = {"app_name": self.smtp.app_name, **context}
        subject = self.jinja_env.get_template(f"{template}.subject").render(**context)
        body = self.jinja_env.get_template(f"{template}.html").render(**context)
        return subject.strip(), body

    def build_message(self, recipients: Iterable[str], subject: str, body: str) -> EmailMessage:
        message = EmailMessage()
        message["Subject"] = subject
        message["From"] = self.smtp.sender
        message["To"] = ", ".join(recipients)
        message.set_content("This message requires an HTML capable mail client.")
        message.add_alternative(body, subtype="html")
        return message

    @backoff.on_exception(
        backoff.expo,
        (smtplib.SMTPException, OSError),
        max_tries=lambda: settings.SMTP_MAX_RETRIES,
        max_time=60,
    )
    def _deliver(self, message: EmailMessage) -> None:
        with smtplib.SMTP(self.smtp.host, self.smtp.port, timeout=10) as client:
            if self.smtp.use_tls:
                client.starttls()
            if self.smtp.user and self.smtp.password:
                client.login(self.smtp.user, self.smtp.password)
            client.send_message(message)

    async def send(self, recipients: Iterable[str], template: str, context: Dict[str, Any]) -> bool:
        """Render and deliver; returns False when email is disabled or nobody to send to"""
        recipients = [address for address in dict.fromkeys(recipients) if address]
        if not self.smtp.enabled or not recipients:
            return False

        subject, body = self.render(template, context)
        message = self.build_message(recipients, subject, body)
        try:
            await asyncio.to_thread(self._deliver, message)
        except (smtplib.SMTPException, OSError) as e:
            raise DependencyFailure("smtp", f"delivery to {len(recipients)} recipient(s) failed: {e}")

        logger.info(f"Email '{template}' sent to {len(recipients)} recipient(s)")
        return True
