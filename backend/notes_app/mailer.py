"""Delivery of one-time passcodes by email.

Two backends are available and selected with `EMAIL_BACKEND`:

- `resend`: sends through the Resend transactional email API
- `console`: logs the message (including the code) for local development

Message bodies are rendered from the Jinja2 templates in `templates/`.
Routes obtain the mailer through the `get_mailer` dependency so tests can
swap in an in-memory outbox.
"""

import logging
from pathlib import Path
from typing import Dict, Optional, Tuple

import resend
from jinja2 import Environment, FileSystemLoader, select_autoescape

from .config import settings
from .errors import EmailDeliveryError
from .models import OtpType

logger = logging.getLogger("notes_app.mailer")

TEMPLATE_DIR = Path(__file__).resolve().parent / "templates"
_template_env = Environment(
    loader=FileSystemLoader(str(TEMPLATE_DIR)),
    autoescape=select_autoescape(["html"]),
)

SUBJECTS = {
    OtpType.SIGNUP: "Welcome! Verify your account",
    OtpType.SIGNIN: "Sign In Verification",
}


def render_otp_email(code: str, otp_type: OtpType) -> Tuple[str, str, str]:
    """Return `(subject, html, text)` for an OTP message."""
    context = {
        "app_name": settings.APP_NAME,
        "code": code,
        "purpose": "signup" if otp_type == OtpType.SIGNUP else "signin",
        "ttl_minutes": settings.OTP_TTL_MINUTES,
    }
    html = _template_env.get_template("otp_email.html").render(**context)
    text = _template_env.get_template("otp_email.txt").render(**context)
    return SUBJECTS[otp_type], html, text


class OTPMailer:
    """Base mailer; subclasses implement `send`."""

    def send(self, to_email: str, subject: str, html: str, text: str, code: str) -> Optional[str]:
        raise NotImplementedError

    def send_otp(self, to_email: str, code: str, otp_type: OtpType) -> Optional[str]:
        """Render and deliver an OTP message, returning the provider message id."""
        subject, html, text = render_otp_email(code, otp_type)
        return self.send(to_email, subject, html, text, code)


class ResendMailer(OTPMailer):
    """Send messages through the Resend API."""

    def __init__(self, api_key: str, from_email: str):
        self.from_email = from_email
        resend.api_key = api_key

    def send(self, to_email, subject, html, text, code):
        params: Dict = {
            "from": self.from_email,
            "to": [to_email],
            "subject": subject,
            "html": html,
            "text": text,
        }
        try:
            result = resend.Emails.send(params)
        except Exception as exc:
            logger.error("resend delivery to %s failed: %s", to_email, exc)
            raise EmailDeliveryError("Failed to send OTP email") from exc
        message_id = result.get("id") if isinstance(result, dict) else None
        logger.info("sent %r to %s via resend (id=%s)", subject, to_email, message_id)
        return message_id


class ConsoleMailer(OTPMailer):
    """Log messages instead of sending them."""

    def send(self, to_email, subject, html, text, code):
        logger.warning("console email backend: %r to %s, code %s", subject, to_email, code)
        return None


def get_mailer() -> OTPMailer:
    """FastAPI dependency returning the configured mailer."""
    if settings.EMAIL_BACKEND == "resend":
        return ResendMailer(settings.RESEND_API_KEY, settings.EMAIL_FROM)
    return ConsoleMailer()
