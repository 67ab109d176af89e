import json
import logging

from conftest import build_email, make_rfp, make_vendor, record_outbound
from rfpdesk.ingestion import ingest_message
from rfpdesk.logging_config import JSONFormatter


def test_json_formatter_includes_record_ids():
    record = logging.LogRecord("rfpdesk.poller", logging.ERROR, __file__, 10,
                               "Could not fetch message %s", (b"7",), None)
    record.seqno = b"7"
    entry = json.loads(JSONFormatter().format(record))
    assert entry["level"] == "ERROR"
    assert entry["msg"] == "Could not fetch message b'7'"
    assert entry["seqno"] == "b'7'"
    assert "rfp_id" not in entry


def test_ingestion_logs_carry_ids(store, extraction, caplog):
    vendor = make_vendor(store)
    rfp = make_rfp(store)
    record_outbound(store, rfp["id"], vendor)
    extraction.payload = {"pricing": {"total": 1000}}

    with caplog.at_level(logging.INFO, logger="rfpdesk"):
        ingest_message(store, build_email())

    created = [r for r in caplog.records if r.getMessage().startswith("Created proposal")]
    assert len(created) == 1
    assert created[0].rfp_id == rfp["id"]
    assert created[0].proposal_id == store.read_json("proposals")[0]["id"]
