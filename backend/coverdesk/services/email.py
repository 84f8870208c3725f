from __future__ import annotations

from email.message import EmailMessage
import smtplib
import ssl
import time

from coverdesk.core.config import get_settings


class EmailDeliveryError(RuntimeError):
    pass


def _classify_smtp_data_error(exc: smtplib.SMTPDataError) -> str:
    smtp_error = exc.smtp_error
    if isinstance(smtp_error, bytes):
        message = smtp_error.decode("utf-8", errors="ignore").lower()
    else:
        message = str(smtp_error).lower()

    if "sending limit" in message or "quota" in message or "rate limit" in message:
        return "SMTP sender rate limited"
    if "recipient" in message and "rejected" in message:
        return "SMTP recipient rejected"
    return "SMTP data rejected"


def _build_message(*, settings, to_email: str, subject: str, text_content: str, html_content: str | None) -> EmailMessage:
    message = EmailMessage()
    if settings.smtp_from_name:
        message["From"] = f"{settings.smtp_from_name} <{settings.smtp_from_email}>"
    else:
        message["From"] = settings.smtp_from_email
    message["To"] = to_email
    message["Subject"] = subject
    message.set_content(text_content)
    if html_content:
        message.add_alternative(html_content, subtype="html")
    return message


def _is_connection_issue(exc: Exception) -> bool:
    return isinstance(
        exc,
        (
            smtplib.SMTPConnectError,
            smtplib.SMTPServerDisconnected,
            smtplib.SMTPHeloError,
            OSError,
            TimeoutError,
        ),
    )


def _deliver(settings, message: EmailMessage, *, timeout: int) -> None:
    if settings.smtp_use_ssl:
        with smtplib.SMTP_SSL(settings.smtp_host, settings.smtp_port, timeout=timeout) as smtp:
            if settings.smtp_username:
                smtp.login(settings.smtp_username, settings.smtp_password or "")
            smtp.send_message(message)
        return

    with smtplib.SMTP(settings.smtp_host, settings.smtp_port, timeout=timeout) as smtp:
        if settings.smtp_use_tls:
            smtp.starttls(context=ssl.create_default_context())
        if settings.smtp_username:
            smtp.login(settings.smtp_username, settings.smtp_password or "")
        smtp.send_message(message)


def send_email(*, to_email: str, subject: str, text_content: str, html_content: str | None = None) -> None:
    """Deliver one message, retrying only on connection failures.

    Raises ``EmailDeliveryError`` with a short classification of the last failure.
    """
    settings = get_settings()
    if not settings.smtp_host or not settings.smtp_from_email:
        raise EmailDeliveryError("SMTP is not configured")

    timeout = max(1, settings.smtp_timeout_seconds)
    retry_attempts = max(1, settings.smtp_retry_attempts)
    retry_backoff_seconds = max(0.0, settings.smtp_retry_backoff_seconds)
    try:
        message = _build_message(
            settings=settings,
            to_email=to_email,
            subject=subject,
            text_content=text_content,
            html_content=html_content,
        )
    except ValueError as exc:
        # Header values with CR/LF are rejected by the email policy.
        raise EmailDeliveryError("Invalid email header") from exc

    last_error: Exception | None = None
    last_error_message = "Unable to deliver email"
    for attempt in range(1, retry_attempts + 1):
        try:
            _deliver(settings, message, timeout=timeout)
            return
        except smtplib.SMTPAuthenticationError as exc:
            last_error = exc
            last_error_message = "SMTP authentication failed"
            break
        except smtplib.SMTPDataError as exc:
            last_error = exc
            last_error_message = _classify_smtp_data_error(exc)
            break
        except smtplib.SMTPRecipientsRefused as exc:
            last_error = exc
            last_error_message = "SMTP recipient rejected"
            break
        except Exception as exc:  # pragma: no cover - transport-specific behavior
            last_error = exc
            if not _is_connection_issue(exc):
                last_error_message = "Unable to deliver email"
                break
            last_error_message = "SMTP connection failed"
            if attempt < retry_attempts and retry_backoff_seconds > 0:
                time.sleep(retry_backoff_seconds * attempt)

    raise EmailDeliveryError(last_error_message) from last_error
