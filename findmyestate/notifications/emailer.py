"""
Email sending: file mode (write to outbox) or SMTP mode.
Config-driven via findmyestate.core.config (EMAIL_MODE, EMAIL_*).
"""
import logging
import os
import smtplib
from datetime import datetime, timezone
from email.mime.text import MIMEText
from pathlib import Path
from typing import Optional

from findmyestate.core.config import settings

logger = logging.getLogger(__name__)

DEFAULT_FROM = "noreply@findmyestate.local"


def _outbox_dir() -> Path:
    """Resolve outbox dir; EMAIL_OUTBOX_DIR from env wins at call time (for tests)."""
    raw = os.environ.get("EMAIL_OUTBOX_DIR") or settings.email_outbox_dir
    p = Path(raw)
    if not p.is_absolute():
        p = Path.cwd() / p
    return p


def _email_mode() -> str:
    """Parse EMAIL_MODE ('file # outbox' -> 'file'); default 'file'."""
    raw = settings.email_mode or os.environ.get("EMAIL_MODE") or "file"
    mode = str(raw).split("#")[0].strip().lower()
    return mode or "file"


def send_email(
    to: str,
    subject: str,
    body: str,
    from_addr: Optional[str] = None,
    html: bool = False,
) -> Optional[Path]:
    """
    Send an email via the configured mode.
    File mode returns the written outbox path; SMTP mode returns None.
    """
    from_addr = from_addr or settings.email_from or DEFAULT_FROM
    subtype = "html" if html else "plain"
    if _email_mode() == "file":
        return _write_email_to_outbox(to=to, subject=subject, body=body, from_addr=from_addr, subtype=subtype)
    _send_email_smtp(to=to, subject=subject, body=body, from_addr=from_addr, subtype=subtype)
    return None


def _write_email_to_outbox(to: str, subject: str, body: str, from_addr: str, subtype: str) -> Path:
    """Write email to outbox as a timestamped file (headers + body)."""
    outbox = _outbox_dir()
    outbox.mkdir(parents=True, exist_ok=True)
    now = datetime.now(timezone.utc)
    ts = now.strftime("%Y-%m-%dT%H-%M-%S-") + f"{now.microsecond:06d}Z"
    ext = "html" if subtype == "html" else "txt"
    path = outbox / f"email_{ts}.{ext}"
    content = (
        f"From: {from_addr}\nTo: {to}\nSubject: {subject}\n"
        f"Content-Type: text/{subtype}; charset=utf-8\n\n{body}"
    )
    path.write_text(content, encoding="utf-8")
    logger.info("Email to=%s written to outbox %s", to, path.name)
    return path


def _send_email_smtp(to: str, subject: str, body: str, from_addr: str, subtype: str = "plain") -> None:
    """Send email via SMTP (STARTTLS if configured)."""
    host = settings.email_smtp_host
    port = settings.email_smtp_port or (587 if settings.email_smtp_use_tls else 25)
    if not host:
        raise ValueError("EMAIL_SMTP_HOST is required when EMAIL_MODE=smtp")
    msg = MIMEText(body, subtype, "utf-8")
    msg["Subject"] = subject
    msg["From"] = from_addr
    msg["To"] = to
    with smtplib.SMTP(host, port) as server:
        if settings.email_smtp_use_tls:
            server.starttls()
        if settings.email_smtp_username and settings.email_smtp_password:
            server.login(settings.email_smtp_username, settings.email_smtp_password)
        server.sendmail(from_addr, [to], msg.as_string())
    logger.info("Email to=%s sent via SMTP %s:%s", to, host, port)
