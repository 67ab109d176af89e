# mailer.py
# Outbound SMTP transport.

import logging
import smtplib
from email.message import EmailMessage
from email.utils import formatdate, make_msgid
from typing import Optional

from .config import SmtpConfig
from .errors import TransportError

log = logging.getLogger(__name__)


def _domain(address: str) -> Optional[str]:
    if "@" in address:
        return address.rsplit("@", 1)[-1].strip(">") or None
    return None


class SmtpTransport:
    def __init__(self, config: Optional[SmtpConfig] = None):
        self.config = config or SmtpConfig.from_env()

    @property
    def sender(self) -> str:
        return self.config.sender

    def _connect(self) -> smtplib.SMTP:
        cfg = self.config
        if not cfg.host:
            raise TransportError("SMTP_HOST is not configured")
        if cfg.secure:
            server = smtplib.SMTP_SSL(cfg.host, cfg.port, timeout=cfg.timeout)
        else:
            server = smtplib.SMTP(cfg.host, cfg.port, timeout=cfg.timeout)
            server.ehlo()
            if server.has_extn("starttls"):
                server.starttls()
                server.ehlo()
        if cfg.user and cfg.password:
            server.login(cfg.user, cfg.password)
        return server

    def send(self, from_addr: str, to: str, subject: str, text: str, html: str) -> str:
        """Send a text+HTML message and return its Message-ID."""
        msg = EmailMessage()
        msg["From"] = from_addr
        msg["To"] = to
        msg["Subject"] = subject
        msg["Date"] = formatdate(localtime=True)
        message_id = make_msgid(domain=_domain(from_addr))
        msg["Message-ID"] = message_id
        msg.set_content(text)
        msg.add_alternative(html, subtype="html")

        try:
            with self._connect() as server:
                server.send_message(msg)
        except (smtplib.SMTPException, OSError) as e:
            log.error("Error sending email to %s: %s", to, e)
            raise TransportError(f"Failed to send email: {e}") from e
        log.info("RFP email sent to %s: %s", to, message_id)
        return message_id

    def verify(self) -> bool:
        try:
            with self._connect() as server:
                server.noop()
            return True
        except (smtplib.SMTPException, OSError, TransportError) as e:
            log.error("Email connection test failed: %s", e)
            return False
