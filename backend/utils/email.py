import smtplib
from email.message import EmailMessage
from email.utils import formataddr
from typing import Optional
from core.config import settings
from config import config
import logging

logger = logging.getLogger(__name__)


def smtp_configured() -> bool:
    return bool(settings.SMTP_HOST and settings.SMTP_FROM_EMAIL)


def _html(title: str, *paragraphs: str) -> str:
    body = "".join(f"<p>{p}</p>" for p in paragraphs)
    return (
        "<div style='font-family: Arial, sans-serif; line-height: 1.5;'>"
        f"<h2>{title}</h2>{body}<p>{settings.SMTP_FROM_NAME} Team</p>"
        "</div>"
    )


def _build_message(subject: str, to_email: str, text_body: str, html_body: str) -> EmailMessage:
    msg = EmailMessage()
    msg["Subject"] = subject
    msg["From"] = formataddr((settings.SMTP_FROM_NAME or "", settings.SMTP_FROM_EMAIL))
    msg["To"] = to_email
    msg.set_content(text_body)
    msg.add_alternative(html_body, subtype="html")
    return msg


def _open() -> smtplib.SMTP:
    """Unauthenticated connection: implicit SSL or plain."""
    smtp_class = smtplib.SMTP_SSL if settings.SMTP_USE_SSL else smtplib.SMTP
    return smtp_class(settings.SMTP_HOST, settings.SMTP_PORT, timeout=settings.SMTP_TIMEOUT)


def send_email(subject: str, to_email: str, text_body: str, html_body: str) -> bool:
    """Deliver one message. Returns False instead of raising; callers decide whether that matters."""
    if not smtp_configured():
        logger.warning(f"SMTP not configured; '{subject}' not sent to {to_email}")
        return False
    try:
        with _open() as server:
            server.set_debuglevel(1 if settings.SMTP_DEBUG else 0)
            if settings.SMTP_USE_TLS and not settings.SMTP_USE_SSL:
                server.starttls()
            if settings.SMTP_USERNAME and settings.SMTP_PASSWORD:
                server.login(settings.SMTP_USERNAME, settings.SMTP_PASSWORD)
            server.send_message(_build_message(subject, to_email, text_body, html_body))
    except (smtplib.SMTPException, OSError) as exc:
        logger.error(f"Failed to send '{subject}' to {to_email}: {exc}")
        return False
    logger.info(f"Sent '{subject}' to {to_email}")
    return True


def send_password_reset_email(to_email: str, otp_code: str) -> bool:
    minutes = config.get_otp_expires_minutes()
    return send_email(
        "Your Eco Pulse password reset code",
        to_email,
        f"Your password reset code is {otp_code}. It expires in {minutes} minutes.\n\n"
        "If you did not request a password reset, you can ignore this email.",
        _html(
            "Reset your password",
            f"Enter this code in the app to choose a new password. It expires in <strong>{minutes} minutes</strong>.",
            f"<span style='font-size: 24px; font-weight: bold; letter-spacing: 4px;'>{otp_code}</span>",
            "If you did not request a password reset, you can ignore this email.",
        ),
    )


def send_welcome_email(to_email: str, name: Optional[str] = None) -> bool:
    greeting = f"Hi {name}," if name else "Hi,"
    return send_email(
        "Welcome to Eco Pulse",
        to_email,
        f"{greeting}\n\nYour Eco Pulse account is ready. You can now register bins and book collections.",
        _html(
            "Welcome to Eco Pulse",
            greeting,
            "Your account is ready. You can now register bins and book waste collections from the app.",
        ),
    )


def send_account_creation_email(to_email: str, name: Optional[str], temporary_password: str) -> bool:
    """Sent when a manager creates an account on someone's behalf."""
    greeting = f"Hi {name}," if name else "Hi,"
    return send_email(
        "Your Eco Pulse account has been created",
        to_email,
        f"{greeting}\n\nAn account was created for you.\n"
        f"Email: {to_email}\nTemporary password: {temporary_password}\n\n"
        "Please sign in and change your password.",
        _html(
            "Your account has been created",
            greeting,
            f"Email: <strong>{to_email}</strong>",
            f"Temporary password: <strong>{temporary_password}</strong>",
            "Please sign in and change your password.",
        ),
    )
