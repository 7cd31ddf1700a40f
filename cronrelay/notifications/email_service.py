"""
Outcome notifications for webhook calls.

send_email never raises: a body that is not the expected error payload is
rendered with the fallback template, and transport failures are logged.
"""
import smtplib
from dataclasses import dataclass
from email.message import Message
from email.mime.text import MIMEText
from typing import Optional, Protocol

from pydantic import ValidationError

from cronrelay.common.config import settings
from cronrelay.common.logging import get_logger
from cronrelay.schemas.schemas import ErrorPayload

logger = get_logger(__name__)

SUCCESS = "success"
PARSED = "parsed"
FALLBACK = "fallback"

MAX_BODY_CHARS = 4000

ERROR_TEMPLATE = """Job call to {path} returned an error.

Status:    {status}
Message:   {message}
Path:      {path}
Timestamp: {timestamp}

---
This is an automated notification from cronrelay.
"""

SUCCESS_TEMPLATE = """Job call to {path} completed successfully.

Status:    {status}

Response:
{body}

---
This is an automated notification from cronrelay.
"""

FALLBACK_TEMPLATE = """Job call to {path} returned a response that could not be parsed.

Raw response:
{body}

---
This is an automated notification from cronrelay.
"""


class EmailTransport(Protocol):
    def send(self, message: Message) -> None: ...


@dataclass
class RenderedNotification:
    kind: str  # SUCCESS | PARSED | FALLBACK
    text: str


@dataclass
class NotificationResult:
    rendered: RenderedNotification
    delivered: bool
    error: Optional[str] = None


def parse_error_payload(body) -> Optional[ErrorPayload]:
    if not isinstance(body, (str, bytes)):
        return None
    try:
        return ErrorPayload.model_validate_json(body)
    except ValidationError:
        return None


def _as_text(body) -> str:
    if body is None:
        return ""
    if isinstance(body, bytes):
        return body.decode("utf-8", errors="replace")
    return str(body)


def render_notification(body, path, ok: bool = False, status_code: Optional[int] = None) -> RenderedNotification:
    """Success template when ok; otherwise the parsed error template, or the raw-body fallback."""
    if ok:
        return RenderedNotification(
            kind=SUCCESS,
            text=SUCCESS_TEMPLATE.format(
                path=path,
                status=status_code if status_code is not None else "n/a",
                body=_as_text(body)[:MAX_BODY_CHARS],
            ),
        )
    payload = parse_error_payload(body)
    if payload is not None:
        return RenderedNotification(
            kind=PARSED,
            text=ERROR_TEMPLATE.format(
                status=payload.status,
                message=payload.message,
                path=payload.path,
                timestamp=payload.timestamp,
            ),
        )
    return RenderedNotification(
        kind=FALLBACK,
        text=FALLBACK_TEMPLATE.format(path=path, body=_as_text(body)),
    )


class SmtpTransport:
    def __init__(
        self,
        host: str,
        port: int,
        username: str = "",
        password: str = "",
        use_tls: bool = False,
        timeout: float = 10.0,
    ):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.use_tls = use_tls
        self.timeout = timeout

    def send(self, message: Message) -> None:
        with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as server:
            if self.use_tls:
                server.starttls()
            if self.username and self.password:
                server.login(self.username, self.password)
            server.send_message(message)


class EmailService:
    def __init__(self, transport: EmailTransport):
        self.transport = transport

    @classmethod
    def from_settings(cls) -> "EmailService":
        return cls(
            SmtpTransport(
                settings.smtp_host,
                settings.smtp_port,
                username=settings.smtp_username,
                password=settings.smtp_password,
                use_tls=settings.smtp_use_tls,
                timeout=settings.smtp_timeout_seconds,
            )
        )

    def send_email(
        self, from_addr, to_addr, subject, body, path, ok: bool = False, status_code: Optional[int] = None
    ) -> NotificationResult:
        rendered = render_notification(body, path, ok=ok, status_code=status_code)
        if rendered.kind == FALLBACK:
            logger.warning("Unparseable response payload from %s, using fallback template", path)
        try:
            message = MIMEText(rendered.text, "plain", "utf-8")
            message["From"] = str(from_addr)
            message["To"] = str(to_addr)
            message["Subject"] = str(subject)
            self.transport.send(message)
        except Exception as exc:
            logger.exception("Failed to send notification email to %s for %s", to_addr, path)
            return NotificationResult(rendered=rendered, delivered=False, error=str(exc))
        logger.info("Notification email sent to %s for %s (%s)", to_addr, path, rendered.kind)
        return NotificationResult(rendered=rendered, delivered=True)
