# mailbox.py
# IMAP access for the poller. A session lives for exactly one poll cycle.

import imaplib
import logging
import threading
from contextlib import contextmanager
from typing import Iterator, List

from .config import MailboxConfig
from .errors import MailboxError

log = logging.getLogger(__name__)


class MailboxSession:
    def __init__(self, conn: imaplib.IMAP4, mailbox: str):
        self._conn = conn
        self.mailbox = mailbox
        self._closed = False
        self._lock = threading.Lock()

    def list_unseen(self) -> List[bytes]:
        try:
            status, data = self._conn.search(None, "UNSEEN")
        except (imaplib.IMAP4.error, OSError) as e:
            raise MailboxError(f"IMAP search failed: {e}") from e
        if status != "OK":
            raise MailboxError(f"IMAP search returned {status}")
        if not data or not data[0]:
            return []
        return data[0].split()

    def fetch(self, seqno: bytes) -> bytes:
        # RFC822 fetch marks the message \Seen, nothing else is changed
        try:
            status, data = self._conn.fetch(seqno, "(RFC822)")
        except (imaplib.IMAP4.error, OSError) as e:
            raise MailboxError(f"IMAP fetch {seqno!r} failed: {e}") from e
        if status != "OK":
            raise MailboxError(f"IMAP fetch {seqno!r} returned {status}")
        for part in data or []:
            if isinstance(part, tuple) and len(part) >= 2 and isinstance(part[1], bytes):
                return part[1]
        raise MailboxError(f"IMAP fetch {seqno!r} returned no message body")

    def close(self):
        with self._lock:
            if self._closed:
                return
            self._closed = True
        try:
            self._conn.close()
        except (imaplib.IMAP4.error, OSError):
            pass
        try:
            self._conn.logout()
        except (imaplib.IMAP4.error, OSError) as e:
            log.debug("IMAP logout failed: %s", e)

    def abort(self):
        """Drop the socket without the IMAP logout handshake. Safe to call from another thread."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
        try:
            self._conn.shutdown()
        except OSError as e:
            log.debug("IMAP socket shutdown failed: %s", e)


def connect(cfg: MailboxConfig) -> MailboxSession:
    try:
        if cfg.use_tls:
            conn = imaplib.IMAP4_SSL(cfg.host, cfg.port, timeout=cfg.timeout)
        else:
            conn = imaplib.IMAP4(cfg.host, cfg.port, timeout=cfg.timeout)
    except (imaplib.IMAP4.error, OSError) as e:
        raise MailboxError(f"Could not connect to {cfg.host}:{cfg.port}: {e}") from e

    try:
        conn.login(cfg.user, cfg.password)
        status, _ = conn.select(cfg.mailbox)
        if status != "OK":
            raise MailboxError(f"Could not open mailbox {cfg.mailbox}")
    except (imaplib.IMAP4.error, OSError) as e:
        _shutdown(conn)
        raise MailboxError(f"IMAP login/select failed for {cfg.user}@{cfg.host}: {e}") from e
    except MailboxError:
        _shutdown(conn)
        raise
    log.debug("Connected to %s:%s as %s", cfg.host, cfg.port, cfg.user)
    return MailboxSession(conn, cfg.mailbox)


def _shutdown(conn: imaplib.IMAP4):
    try:
        conn.logout()
    except (imaplib.IMAP4.error, OSError):
        pass


@contextmanager
def open_mailbox(cfg: MailboxConfig) -> Iterator[MailboxSession]:
    session = connect(cfg)
    try:
        yield session
    finally:
        session.close()
