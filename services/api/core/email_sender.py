# services/api/core/email_sender.py
from __future__ import annotations
import aiosmtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from html import escape
from typing import List, Optional
import logging

from core.errors import NotificationFailure

logger = logging.getLogger(__name__)


def _clean_recipients(recipients: List[str]) -> List[str]:
    """Trim, drop blanks, dedupe case-insensitively (first spelling wins)."""
    seen = set()
    out: List[str] = []
    for addr in recipients or []:
        if not addr or not addr.strip():
            continue
        a = addr.strip()
        if a.lower() in seen:
            continue
        seen.add(a.lower())
        out.append(a)
    return out


async def send_email(
    *,
    recipients: List[str],
    subject: str,
    body_text: str,
    smtp_host: str,
    smtp_port: int,
    smtp_user: str,
    smtp_password: str,
    from_email: str,
    from_name: str,
    use_tls: bool = True,
    timeout: Optional[float] = None,
) -> None:
    """
    Send one plain-text + HTML email to every recipient via SMTP.

    Recipients are put in BCC-style delivery (envelope only) so departments
    don't see each other's addresses; the To header shows the sender.

    Raises:
        NotificationFailure: on any SMTP/transport error
    """
    clean = _clean_recipients(recipients)

    msg = MIMEMultipart("alternative")
    msg['From'] = f"{from_name} <{from_email}>"
    msg['To'] = from_email
    msg['Subject'] = subject

    msg.attach(MIMEText(body_text, 'plain'))
    html = "<br>".join(escape(line) for line in body_text.splitlines())
    msg.attach(MIMEText(f"<div>{html}</div>", 'html'))

    try:
        await aiosmtplib.send(
            msg,
            hostname=smtp_host,
            port=smtp_port,
            username=smtp_user or None,
            password=smtp_password or None,
            start_tls=use_tls,
            recipients=clean,   # ✅ envelope recipients
            timeout=timeout,
        )
    except aiosmtplib.SMTPException as e:
        logger.error(f"✗ Email send failed to {len(clean)} recipient(s): {e}")
        raise NotificationFailure(f"transport-error: {e}") from e
    except OSError as e:
        logger.error(f"✗ SMTP connection failed ({smtp_host}:{smtp_port}): {e}")
        raise NotificationFailure(f"transport-error: {e}") from e

    logger.info(f"✓ Email '{subject}' sent to {len(clean)} recipient(s)")
