"""Outbound email for HarmonyDesk messages.

SMTP settings are read from the settings store (password from the encrypted
secret store) and cached for a few minutes; messages go out on a small thread
pool so request handlers only wait as long as they choose to.
"""

from __future__ import annotations

import logging
import smtplib
import time
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from email.message import EmailMessage
from threading import RLock
from typing import Iterable, Optional, Union

from services.settings import settings_manager

logger = logging.getLogger("harmonydesk.email")

DEFAULT_SMTP_PORT = 587
DEFAULT_TIMEOUT_SECONDS = 10.0
_CACHE_TTL_SECONDS = 300


class EmailConfigError(RuntimeError):
    """Raised when the SMTP configuration is incomplete."""


@dataclass(frozen=True)
class SMTPConfig:
    host: str
    port: int
    username: Optional[str]
    password: Optional[str]
    use_tls: bool
    from_email: str
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS


_config_lock = RLock()
_cached: Optional[tuple[float, SMTPConfig]] = None
_EMAIL_EXECUTOR = ThreadPoolExecutor(max_workers=2, thread_name_prefix="harmonydesk-email")


def _parse_port(value, error_cls=ValueError) -> int:
    try:
        port = int(value)
    except (TypeError, ValueError):
        raise error_cls(f"Invalid SMTP port value: {value!r}") from None
    if port <= 0:
        raise error_cls("SMTP port must be a positive integer.")
    return port


def clear_email_cache() -> None:
    """Forget the cached SMTP configuration; the next send reloads it."""
    global _cached
    with _config_lock:
        _cached = None


def save_smtp_settings(
    host: str,
    port: int | str,
    username: Optional[str],
    password: Optional[str],
    use_tls: bool,
    from_email: str,
) -> None:
    host = (host or "").strip()
    from_email = (from_email or "").strip()
    if not host or not from_email:
        raise ValueError("SMTP host and from-address are required.")

    settings_manager.update(
        {
            "smtp_host": host,
            "smtp_port": _parse_port(port),
            "smtp_username": (username or "").strip() or None,
            "smtp_use_tls": bool(use_tls),
            "smtp_from_email": from_email,
        }
    )
    if password:
        settings_manager.set_secret("smtp_password", password)
    clear_email_cache()
    logger.info("SMTP settings saved for %s", host)


def _read_smtp_config() -> SMTPConfig:
    host = settings_manager.get("smtp_host")
    from_email = settings_manager.get("smtp_from_email")
    if not host or not from_email:
        raise EmailConfigError("SMTP host and from-address must be configured before sending email.")

    username = settings_manager.get("smtp_username") or None
    try:
        password = settings_manager.get_secret("smtp_password")
    except RuntimeError as exc:
        raise EmailConfigError("SMTP password could not be decrypted.") from exc
    if username and not password:
        raise EmailConfigError("SMTP password is not available. Update the email settings.")

    try:
        timeout = float(settings_manager.get("smtp_timeout_seconds", DEFAULT_TIMEOUT_SECONDS))
    except (TypeError, ValueError):
        timeout = DEFAULT_TIMEOUT_SECONDS

    return SMTPConfig(
        host=host,
        port=_parse_port(settings_manager.get("smtp_port", DEFAULT_SMTP_PORT), EmailConfigError),
        username=username,
        password=password or None,
        use_tls=bool(settings_manager.get("smtp_use_tls", True)),
        from_email=from_email,
        timeout_seconds=timeout if timeout > 0 else DEFAULT_TIMEOUT_SECONDS,
    )


def load_smtp_config(force: bool = False) -> SMTPConfig:
    """Return the SMTP configuration, cached to avoid repeated key derivation."""
    global _cached
    with _config_lock:
        now = time.monotonic()
        if not force and _cached is not None and now - _cached[0] < _CACHE_TTL_SECONDS:
            return _cached[1]
        config = _read_smtp_config()
        _cached = (now, config)
        return config


def sender_address() -> Optional[str]:
    try:
        return load_smtp_config().from_email
    except EmailConfigError:
        return None


def _as_list(recipient: Union[str, Iterable[str]]) -> list[str]:
    if isinstance(recipient, str):
        return [recipient]
    return [r for r in recipient if r]


def send_email(
    recipient: Union[str, Iterable[str]],
    subject: str,
    body: str,
    config: Optional[SMTPConfig] = None,
) -> None:
    config = config or load_smtp_config()
    recipients = _as_list(recipient)
    if not recipients:
        raise ValueError("At least one recipient must be provided")

    msg = EmailMessage()
    msg["Subject"] = subject
    msg["From"] = config.from_email
    msg["To"] = ", ".join(recipients)
    msg.set_content(body)

    started = time.perf_counter()
    try:
        with smtplib.SMTP(config.host, config.port, timeout=config.timeout_seconds) as smtp:
            if config.use_tls:
                smtp.starttls()
            if config.username and config.password:
                smtp.login(config.username, config.password)
            smtp.send_message(msg)
    except Exception as exc:
        logger.error("Failed to send message to %s: %s", recipients, exc)
        raise
    logger.info(
        "Email sent to %s in %dms",
        recipients,
        int((time.perf_counter() - started) * 1000),
    )


def _log_async_result(future: Future) -> None:
    exc = future.exception()
    if exc is not None:
        logger.debug("Background email finished with error: %s", exc)


def send_email_async(
    recipient: Union[str, Iterable[str]],
    subject: str,
    body: str,
) -> Future:
    """Queue a message; configuration errors are raised here, delivery errors on the future."""
    recipients = _as_list(recipient)
    if not recipients:
        raise ValueError("At least one recipient must be provided")

    config = load_smtp_config()
    future = _EMAIL_EXECUTOR.submit(send_email, recipients, subject, body, config)
    future.add_done_callback(_log_async_result)
    return future
