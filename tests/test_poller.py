import threading
from contextlib import contextmanager

from conftest import FakeSession, build_email, make_rfp, make_vendor, record_outbound, session_factory
from rfpdesk import poller as poller_module
from rfpdesk.config import MailboxConfig, PollerConfig
from rfpdesk.errors import MailboxError
from rfpdesk.poller import EmailPoller

CONFIGURED = MailboxConfig(host="imap.test", user="buyer@procurement.example", password="secret")


def test_start_without_credentials_is_noop(store, caplog):
    p = EmailPoller(MailboxConfig(host=None), PollerConfig(enabled=True), store=store)
    assert p.start() is False
    assert p.running is False
    assert "IMAP not configured" in caplog.text
    p.stop()


def test_cycle_isolates_message_failures(store, extraction):
    vendor = make_vendor(store)
    rfp = make_rfp(store)
    record_outbound(store, rfp["id"], vendor)
    extraction.payload = {"pricing": {"total": 10}, "terms": {}, "compliance": {"meetsRequirements": True}}

    session = FakeSession({
        b"1": build_email(subject="Newsletter"),
        b"2": b"",
        b"3": MailboxError("fetch timed out"),
        b"4": build_email(sender="stranger@nowhere.example"),
        b"5": build_email(),
    })
    p = EmailPoller(CONFIGURED, PollerConfig(), store=store, session_factory=session_factory(session))

    summary = p.poll_once()

    assert session.closed
    assert summary.fetched == 4
    assert summary.skipped == 1
    assert summary.failed == 2
    assert summary.ingested == 2
    assert summary.proposals == 1
    assert summary.error is None
    assert len(store.read_json("proposals")) == 1
    assert len(store.list("emails", direction="inbound")) == 2


def test_search_error_is_logged_and_session_closed(store, caplog):
    session = FakeSession(search_error=MailboxError("SEARCH failed"))
    p = EmailPoller(CONFIGURED, PollerConfig(), store=store, session_factory=session_factory(session))

    summary = p.poll_once()

    assert summary.error == "SEARCH failed"
    assert session.closed
    assert "SEARCH failed" in caplog.text


def test_connect_error_does_not_raise(store):
    @contextmanager
    def failing(cfg):
        raise MailboxError("connection refused")
        yield  # pragma: no cover

    p = EmailPoller(CONFIGURED, PollerConfig(), store=store, session_factory=failing)
    assert p.poll_once().error == "connection refused"


def test_failed_cycle_does_not_stop_schedule(store):
    calls = []
    second_cycle = threading.Event()

    @contextmanager
    def flaky(cfg):
        calls.append(cfg)
        if len(calls) == 1:
            raise MailboxError("first cycle fails")
        second_cycle.set()
        yield FakeSession()

    p = EmailPoller(CONFIGURED, PollerConfig(enabled=True, interval_ms=10), store=store, session_factory=flaky)
    assert p.start() is True
    try:
        assert second_cycle.wait(timeout=5)
    finally:
        p.stop()
    assert len(calls) >= 2
    assert p.running is False


def test_start_twice_keeps_one_thread(store):
    started = threading.Event()

    @contextmanager
    def idle(cfg):
        started.set()
        yield FakeSession()

    p = EmailPoller(CONFIGURED, PollerConfig(interval_ms=60000), store=store, session_factory=idle)
    try:
        p.start()
        thread = p._thread
        p.start()
        assert p._thread is thread
        assert started.wait(timeout=5)
    finally:
        p.stop()
    assert not thread.is_alive()


def test_stop_aborts_open_session(store):
    in_cycle = threading.Event()
    release = threading.Event()

    class BlockingSession(FakeSession):
        def list_unseen(self):
            in_cycle.set()
            release.wait(timeout=5)
            if self.closed:
                raise MailboxError("socket closed")
            return []

        def abort(self):
            super().abort()
            release.set()

    session = BlockingSession()
    p = EmailPoller(CONFIGURED, PollerConfig(interval_ms=60000), store=store,
                    session_factory=session_factory(session))
    p.start()
    assert in_cycle.wait(timeout=5)
    p.stop(timeout=5)
    assert session.closed
    assert p.running is False


def test_busy_cycle_returns_none(store):
    p = EmailPoller(CONFIGURED, PollerConfig(), store=store, session_factory=session_factory(FakeSession()))
    p._cycle_lock.acquire()
    try:
        assert p.poll_once(blocking=False) is None
    finally:
        p._cycle_lock.release()


def test_singleton_helpers(monkeypatch):
    monkeypatch.setattr(poller_module, "_poller", None)
    first = poller_module.get_poller()
    assert poller_module.get_poller() is first
    assert poller_module.start_email_polling() is False
    poller_module.stop_email_polling()
    assert poller_module._poller is None
