"""
Outbound email.

A Mailer renders Jinja2 templates (``templates/email/<name>.html``) and hands
the result to a transport. Transports share one method:

    send(to, subject, html, text) -> None

and raise UpstreamError when delivery fails.
"""

import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from pathlib import Path
from typing import Any, Dict, Optional

import requests
from jinja2 import Environment, FileSystemLoader, select_autoescape
from tenacity import RetryError, retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from ..utils.config import EmailSettings
from ..utils.exceptions import ConfigError, UpstreamError
from ..utils.logger import get_logger

logger = get_logger(__name__)

EMAIL_TEMPLATES_DIR = Path(__file__).resolve().parent.parent.parent / "web" / "templates" / "email"
SENDGRID_URL = "https://api.sendgrid.com/v3/mail/send"


class _TransientSendError(Exception):
    pass


class ConsoleTransport:
    """Log emails instead of sending them (development)"""

    def __init__(self, from_address: str):
        self.from_address = from_address

    def send(self, to: str, subject: str, html: str, text: str) -> None:
        logger.info("Email (console)", to=to, sender=self.from_address, subject=subject, body=text)


class SmtpTransport:
    def __init__(self, settings: EmailSettings):
        self.settings = settings

    def send(self, to: str, subject: str, html: str, text: str) -> None:
        s = self.settings
        message = MIMEMultipart("alternative")
        message["Subject"] = subject
        message["From"] = f"{s.from_name} <{s.from_address}>"
        message["To"] = to
        message.attach(MIMEText(text, "plain", "utf-8"))
        message.attach(MIMEText(html, "html", "utf-8"))
        try:
            with smtplib.SMTP(s.smtp_host, s.smtp_port, timeout=s.timeout_seconds) as server:
                if s.smtp_use_tls:
                    server.starttls()
                if s.smtp_username:
                    server.login(s.smtp_username, s.smtp_password or "")
                server.sendmail(s.from_address, [to], message.as_string())
        except (smtplib.SMTPException, OSError) as e:
            logger.error("SMTP delivery failed", to=to, error=str(e))
            raise UpstreamError(f"Email delivery failed: {str(e)}")


class SendGridTransport:
    """SendGrid v3 HTTP API"""

    def __init__(self, settings: EmailSettings, session: Optional[requests.Session] = None):
        if not settings.sendgrid_api_key:
            raise ConfigError("SENDGRID_API_KEY is required for the sendgrid email backend")
        self.settings = settings
        self.session = session or requests.Session()
        self.session.headers.update({"Authorization": f"Bearer {settings.sendgrid_api_key}"})

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=8),
        retry=retry_if_exception_type(_TransientSendError),
    )
    def _post(self, body: Dict[str, Any]) -> None:
        try:
            response = self.session.post(SENDGRID_URL, json=body, timeout=self.settings.timeout_seconds)
        except requests.exceptions.RequestException as e:
            raise _TransientSendError(str(e))
        if response.status_code == 429 or response.status_code >= 500:
            raise _TransientSendError(f"SendGrid returned {response.status_code}")
        if response.status_code >= 400:
            raise UpstreamError(f"SendGrid rejected the message: {response.text[:200]}")

    def send(self, to: str, subject: str, html: str, text: str) -> None:
        body = {
            "personalizations": [{"to": [{"email": to}]}],
            "from": {"email": self.settings.from_address, "name": self.settings.from_name},
            "subject": subject,
            "content": [{"type": "text/plain", "value": text}, {"type": "text/html", "value": html}],
        }
        try:
            self._post(body)
        except RetryError as e:
            logger.error("SendGrid delivery failed", to=to, error=str(e.last_attempt.exception()))
            raise UpstreamError("Email delivery failed after retries")


def build_transport(settings: EmailSettings):
    if settings.backend == "smtp":
        return SmtpTransport(settings)
    if settings.backend == "sendgrid":
        return SendGridTransport(settings)
    if settings.backend == "console":
        return ConsoleTransport(settings.from_address)
    raise ConfigError(f"Unknown email backend: {settings.backend}")


class Mailer:
    """Renders and sends the application's emails"""

    def __init__(self, transport, templates_dir: Path = EMAIL_TEMPLATES_DIR):
        self.transport = transport
        self.env = Environment(
            loader=FileSystemLoader(str(templates_dir)),
            autoescape=select_autoescape(["html"]),
        )

    def _render(self, template: str, **context: Any) -> str:
        return self.env.get_template(template).render(**context)

    def send_template(self, to: str, template: str, subject: str, **context: Any) -> None:
        html = self._render(f"{template}.html", subject=subject, **context)
        text = self._render(f"{template}.txt", subject=subject, **context)
        self.transport.send(to, subject, html, text)
        logger.info("Email sent", to=to, template=template)

    def send_welcome(self, user: Dict[str, Any], url: str) -> None:
        self.send_template(
            user["email"], "welcome", "Welcome to the Tourhub family!",
            first_name=user["name"].split(" ")[0], url=url,
        )

    def send_password_reset(self, user: Dict[str, Any], url: str) -> None:
        self.send_template(
            user["email"], "password_reset", "Your password reset token (valid for only 10 minutes)",
            first_name=user["name"].split(" ")[0], url=url,
        )
