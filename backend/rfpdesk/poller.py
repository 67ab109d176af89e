# poller.py
# Background inbox poller. One worker thread runs a cycle, waits the interval, repeats,
# so cycles never overlap. Each cycle opens and closes its own IMAP session.

import logging
import threading
from dataclasses import dataclass
from typing import Callable, ContextManager, Optional

from . import mailbox
from .config import MailboxConfig, PollerConfig
from .errors import MailboxError, MessageParseError
from .ingestion import Outcome, ingest_message
from .storage import JsonStore, get_store

log = logging.getLogger(__name__)

SessionFactory = Callable[[MailboxConfig], ContextManager[mailbox.MailboxSession]]


@dataclass
class PollSummary:
    fetched: int = 0
    ingested: int = 0
    proposals: int = 0
    skipped: int = 0
    failed: int = 0
    error: Optional[str] = None


class EmailPoller:
    def __init__(self, mailbox_config: MailboxConfig, poller_config: PollerConfig,
                 store: Optional[JsonStore] = None,
                 session_factory: SessionFactory = mailbox.open_mailbox):
        self.mailbox_config = mailbox_config
        self.poller_config = poller_config
        self._store = store
        self._session_factory = session_factory
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._lock = threading.Lock()
        self._cycle_lock = threading.Lock()
        self._session: Optional[mailbox.MailboxSession] = None

    @property
    def store(self) -> JsonStore:
        return self._store or get_store()

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> bool:
        if not self.mailbox_config.is_configured:
            log.warning("IMAP not configured, skipping email polling")
            return False
        with self._lock:
            if self.running:
                return True
            self._stop_event.clear()
            self._thread = threading.Thread(target=self._run_loop, name="rfpdesk-email-poller", daemon=True)
            self._thread.start()
        log.info("Email polling started (interval: %sms)", self.poller_config.interval_ms)
        return True

    def stop(self, timeout: float = 5.0):
        self._stop_event.set()
        with self._lock:
            session = self._session
            thread = self._thread
        # closing the socket unblocks a cycle stuck in a slow IMAP call
        if session is not None:
            session.abort()
        if thread is not None and thread.is_alive() and thread is not threading.current_thread():
            thread.join(timeout=timeout)
            if thread.is_alive():
                log.warning("Email poller thread did not exit within %.1fs", timeout)
        with self._lock:
            self._thread = None
        log.info("Email polling stopped")

    def _run_loop(self):
        while not self._stop_event.is_set():
            try:
                self.poll_once()
            except Exception:
                log.exception("Unexpected error in email poll cycle")
            if self._stop_event.wait(self.poller_config.interval_seconds):
                break

    def poll_once(self, blocking: bool = True) -> Optional[PollSummary]:
        """Run one cycle. Returns None when another cycle holds the lock and ``blocking`` is False."""
        if not self._cycle_lock.acquire(blocking=blocking):
            return None
        try:
            return self._cycle()
        finally:
            self._cycle_lock.release()

    def _cycle(self) -> PollSummary:
        summary = PollSummary()
        store = self.store
        try:
            with self._session_factory(self.mailbox_config) as session:
                with self._lock:
                    self._session = session
                seqnos = session.list_unseen()
                if not seqnos:
                    log.debug("No new emails found")
                    return summary
                log.info("Found %d new email(s)", len(seqnos))
                for seqno in seqnos:
                    if self._stop_event.is_set():
                        break
                    self._process(session, store, seqno, summary)
        except MailboxError as e:
            summary.error = str(e)
            log.error("Error in email polling: %s", e)
        finally:
            with self._lock:
                self._session = None
        return summary

    def _process(self, session, store: JsonStore, seqno, summary: PollSummary):
        try:
            raw = session.fetch(seqno)
        except MailboxError as e:
            summary.failed += 1
            log.error("Could not fetch message %s: %s", seqno, e, extra={"seqno": seqno})
            return
        summary.fetched += 1
        try:
            outcome = ingest_message(store, raw)
        except MessageParseError as e:
            summary.failed += 1
            log.warning("Could not parse message %s: %s", seqno, e, extra={"seqno": seqno})
            return
        except Exception:
            summary.failed += 1
            log.exception("Error processing email message %s", seqno, extra={"seqno": seqno})
            return
        if outcome is Outcome.SKIPPED:
            summary.skipped += 1
        else:
            summary.ingested += 1
            if outcome is Outcome.PROPOSAL_CREATED:
                summary.proposals += 1


_poller: Optional[EmailPoller] = None
_poller_lock = threading.Lock()


def get_poller() -> EmailPoller:
    global _poller
    with _poller_lock:
        if _poller is None:
            _poller = EmailPoller(MailboxConfig.from_env(), PollerConfig.from_env())
        return _poller


def start_email_polling() -> bool:
    return get_poller().start()


def stop_email_polling():
    global _poller
    with _poller_lock:
        poller, _poller = _poller, None
    if poller is not None:
        poller.stop()
