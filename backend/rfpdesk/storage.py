# storage.py
# JSON file storage: one file per collection under the data dir.
# Every call re-reads the file so the poller and the API always see each other's writes.

import json
import logging
import os
import threading
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from . import config

log = logging.getLogger(__name__)

COLLECTIONS = ("rfps", "vendors", "emails", "proposals")

Record = Dict[str, Any]


def utcnow() -> str:
    return datetime.now(timezone.utc).isoformat()


def _matches(record: Record, filters: Dict[str, Any]) -> bool:
    for key, expected in filters.items():
        value = record.get(key)
        if isinstance(expected, (list, tuple, set)):
            if value not in expected:
                return False
        elif value != expected:
            return False
    return True


class JsonStore:
    def __init__(self, data_dir: Path):
        self.data_dir = Path(data_dir)
        self.data_dir.mkdir(parents=True, exist_ok=True)
        self._lock = threading.RLock()
        for name in COLLECTIONS:
            path = self._path(name)
            if not path.exists():
                path.write_text("[]")

    def _path(self, collection: str) -> Path:
        if collection not in COLLECTIONS:
            raise KeyError(f"Unknown collection: {collection}")
        return self.data_dir / f"{collection}.json"

    def read_json(self, collection: str) -> List[Record]:
        p = self._path(collection)
        with self._lock:
            try:
                return json.loads(p.read_text())
            except FileNotFoundError:
                return []

    def write_json(self, collection: str, rows: List[Record]):
        p = self._path(collection)
        tmp = p.with_suffix(".json.tmp")
        with self._lock:
            tmp.write_text(json.dumps(rows, indent=2, default=str))
            os.replace(tmp, p)

    # --- generic CRUD ---

    def insert(self, collection: str, record: Record) -> Record:
        now = utcnow()
        row = {"id": str(uuid.uuid4()), **record, "created_at": now}
        if collection in ("rfps", "vendors"):
            row["updated_at"] = now
        with self._lock:
            rows = self.read_json(collection)
            rows.append(row)
            self.write_json(collection, rows)
        return row

    def get(self, collection: str, record_id: str) -> Optional[Record]:
        return next((r for r in self.read_json(collection) if r.get("id") == record_id), None)

    def list(self, collection: str, newest_first: bool = False, **filters) -> List[Record]:
        rows = [r for r in self.read_json(collection) if _matches(r, filters)]
        if newest_first:
            rows = sorted(rows, key=lambda r: r.get("created_at") or "")
            rows.reverse()
        return rows

    def find_one(self, collection: str, **filters) -> Optional[Record]:
        return next((r for r in self.read_json(collection) if _matches(r, filters)), None)

    def update(self, collection: str, record_id: str, changes: Record) -> Optional[Record]:
        with self._lock:
            rows = self.read_json(collection)
            for row in rows:
                if row.get("id") == record_id:
                    row.update(changes)
                    if collection in ("rfps", "vendors"):
                        row["updated_at"] = utcnow()
                    self.write_json(collection, rows)
                    return row
        return None

    def update_where(self, collection: str, changes: Record, **filters) -> int:
        with self._lock:
            rows = self.read_json(collection)
            count = 0
            for row in rows:
                if _matches(row, filters):
                    row.update(changes)
                    count += 1
            if count:
                self.write_json(collection, rows)
        return count

    def delete(self, collection: str, record_id: str) -> bool:
        with self._lock:
            rows = self.read_json(collection)
            kept = [r for r in rows if r.get("id") != record_id]
            if len(kept) == len(rows):
                return False
            self.write_json(collection, kept)
        return True

    def delete_where(self, collection: str, predicate: Callable[[Record], bool]) -> int:
        with self._lock:
            rows = self.read_json(collection)
            kept = [r for r in rows if not predicate(r)]
            removed = len(rows) - len(kept)
            if removed:
                self.write_json(collection, kept)
        return removed

    # --- entity helpers ---

    def vendor_by_email(self, email: str) -> Optional[Record]:
        # exact match, no case folding
        return self.find_one("vendors", email=email)

    def latest_outbound_rfp_email(self, vendor_id: str) -> Optional[Record]:
        """Most recent outbound email to ``vendor_id`` that is linked to an RFP."""
        rows = [
            r for r in self.list("emails", vendor_id=vendor_id, direction="outbound")
            if r.get("rfp_id")
        ]
        if not rows:
            return None
        # stable sort keeps insertion order for equal timestamps, so the last row is the newest
        rows.sort(key=lambda r: r.get("created_at") or "")
        return rows[-1]

    def delete_rfp(self, rfp_id: str) -> bool:
        with self._lock:
            if not self.delete("rfps", rfp_id):
                return False
            self.delete_where("proposals", lambda r: r.get("rfp_id") == rfp_id)
            self.update_where("emails", {"rfp_id": None}, rfp_id=rfp_id)
        return True

    def delete_vendor(self, vendor_id: str) -> bool:
        with self._lock:
            if not self.delete("vendors", vendor_id):
                return False
            self.delete_where("proposals", lambda r: r.get("vendor_id") == vendor_id)
            self.update_where("emails", {"vendor_id": None}, vendor_id=vendor_id)
        return True


_store: Optional[JsonStore] = None
_store_lock = threading.Lock()


def get_store() -> JsonStore:
    global _store
    with _store_lock:
        if _store is None:
            _store = JsonStore(config.data_dir())
            log.info("Using JSON store at %s", _store.data_dir)
        return _store
