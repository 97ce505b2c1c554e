"""
Quote and template stores.

Two interchangeable backends:
    FileStorage   — DATA_DIR/quotes.json + DATA_DIR/saved-quotes.json
    MemoryStorage — process-local dicts (tests, demos)

Row shape (both backends):
    {id, serviceOrder, date, companyWhatsapp, clientName, clientPhone,
     equipmentType, equipmentModel, equipmentAccessories, equipmentPassword,
     diagnostics[], services (JSON text), total ("225.50"), technicianName,
     createdAt}
Templates carry `name` instead of `total`.

Every read-modify-write cycle holds the store's lock; file writes go to a
temp file first and are swapped in with os.replace.
"""

import os
import json
import logging
import tempfile
import threading
from copy import deepcopy
from datetime import datetime

from orcamento.core import paths
from orcamento.forms.quote_record import FIELD_MAP, encode_services
from orcamento.forms.quote_utils import calculate_total

log = logging.getLogger("orcamento.storage")

_WIRE_KEYS = [key for _, key in FIELD_MAP]


def _now() -> str:
    return datetime.now().isoformat()


def _total_str(services) -> str:
    return f"{calculate_total(services):.2f}"


def _quote_row(row_id: int, data: dict) -> dict:
    row = {"id": row_id}
    row.update({k: data.get(k, "") for k in _WIRE_KEYS})
    row["diagnostics"] = list(data.get("diagnostics", []))
    row["services"] = encode_services(data.get("services", []))
    row["total"] = _total_str(data.get("services", []))
    row["createdAt"] = _now()
    return row


def _template_row(row_id: int, data: dict) -> dict:
    row = {"id": row_id, "name": data.get("name", "")}
    row.update({k: data.get(k, "") for k in _WIRE_KEYS})
    row["diagnostics"] = list(data.get("diagnostics", []))
    row["services"] = encode_services(data.get("services", []))
    row["createdAt"] = _now()
    return row


def _apply_update(row: dict, changes: dict) -> dict:
    updated = dict(row)
    for k in _WIRE_KEYS:
        if k in changes:
            updated[k] = changes[k]
    if "diagnostics" in changes:
        updated["diagnostics"] = list(changes["diagnostics"])
    if "services" in changes:
        updated["services"] = encode_services(changes["services"])
        updated["total"] = _total_str(changes["services"])
    updated["updatedAt"] = _now()
    return updated


class QuoteStorage:
    """Shared CRUD logic. Subclasses provide _load(kind) / _save(kind, rows, next_id)."""

    backend = "base"

    def __init__(self):
        self._lock = threading.Lock()

    # ── backend hooks ─────────────────────────────────────────────────────────
    def _load(self, kind: str):
        raise NotImplementedError

    def _save(self, kind: str, rows: list, next_id: int):
        raise NotImplementedError

    # ── Quotes ────────────────────────────────────────────────────────────────
    def create_quote(self, data: dict) -> dict:
        with self._lock:
            rows, next_id = self._load("quotes")
            row = _quote_row(next_id, data)
            rows.append(row)
            self._save("quotes", rows, next_id + 1)
        log.info("Quote #%d created (OS %s, total %s)", row["id"], row["serviceOrder"], row["total"],
                 extra={"quote_id": row["id"], "service_order": row["serviceOrder"],
                        "total": row["total"]})
        return deepcopy(row)

    def get_quote(self, quote_id: int):
        rows, _ = self._load("quotes")
        for row in rows:
            if row.get("id") == quote_id:
                return row
        return None

    def get_all_quotes(self) -> list:
        rows, _ = self._load("quotes")
        return rows

    def update_quote(self, quote_id: int, changes: dict):
        with self._lock:
            rows, next_id = self._load("quotes")
            for i, row in enumerate(rows):
                if row.get("id") == quote_id:
                    rows[i] = _apply_update(row, changes)
                    self._save("quotes", rows, next_id)
                    log.info("Quote #%d updated (%s)", quote_id, ", ".join(sorted(changes)),
                             extra={"quote_id": quote_id, "service_order": rows[i]["serviceOrder"],
                                    "total": rows[i]["total"]})
                    return deepcopy(rows[i])
        return None

    def delete_quote(self, quote_id: int) -> bool:
        with self._lock:
            rows, next_id = self._load("quotes")
            kept = [r for r in rows if r.get("id") != quote_id]
            if len(kept) == len(rows):
                return False
            self._save("quotes", kept, next_id)
        log.info("Quote #%d deleted", quote_id, extra={"quote_id": quote_id})
        return True

    # ── Saved templates ───────────────────────────────────────────────────────
    def create_saved_quote(self, data: dict) -> dict:
        with self._lock:
            rows, next_id = self._load("saved")
            row = _template_row(next_id, data)
            rows.append(row)
            self._save("saved", rows, next_id + 1)
        log.info("Template #%d %r saved", row["id"], row["name"])
        return deepcopy(row)

    def get_all_saved_quotes(self) -> list:
        rows, _ = self._load("saved")
        return rows

    def delete_saved_quote(self, template_id: int) -> bool:
        with self._lock:
            rows, next_id = self._load("saved")
            kept = [r for r in rows if r.get("id") != template_id]
            if len(kept) == len(rows):
                return False
            self._save("saved", kept, next_id)
        log.info("Template #%d deleted", template_id)
        return True


class MemoryStorage(QuoteStorage):
    """Transient store; everything is lost when the process exits."""

    backend = "memory"

    def __init__(self):
        super().__init__()
        self._data = {"quotes": ([], 1), "saved": ([], 1)}

    def _load(self, kind):
        rows, next_id = self._data[kind]
        return deepcopy(rows), next_id

    def _save(self, kind, rows, next_id):
        self._data[kind] = (deepcopy(rows), next_id)


class FileStorage(QuoteStorage):
    """JSON-file store: {"quotes": [...], "nextId": n} per file."""

    backend = "file"
    _FILES = {"quotes": ("quotes.json", "quotes"), "saved": ("saved-quotes.json", "savedQuotes")}

    def __init__(self, data_dir: str = None):
        super().__init__()
        self.data_dir = data_dir or paths.DATA_DIR
        os.makedirs(self.data_dir, exist_ok=True)

    def _path(self, kind):
        return os.path.join(self.data_dir, self._FILES[kind][0])

    def _load(self, kind):
        path = self._path(kind)
        key = self._FILES[kind][1]
        try:
            with open(path, encoding="utf-8") as f:
                parsed = json.load(f)
        except FileNotFoundError:
            return [], 1
        except (json.JSONDecodeError, OSError) as e:
            log.warning("Store %s unreadable, treating as empty: %s", path, e)
            return [], 1
        if not isinstance(parsed, dict):
            log.warning("Store %s holds %s, not an object; treating as empty",
                        path, type(parsed).__name__)
            return [], 1
        return parsed.get(key) or [], parsed.get("nextId") or 1

    def _save(self, kind, rows, next_id):
        path = self._path(kind)
        key = self._FILES[kind][1]
        os.makedirs(self.data_dir, exist_ok=True)
        fd, tmp = tempfile.mkstemp(prefix=".store-", suffix=".json", dir=self.data_dir)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump({key: rows, "nextId": next_id}, f, indent=2, ensure_ascii=False, default=str)
            os.replace(tmp, path)
        except Exception:
            if os.path.exists(tmp):
                os.remove(tmp)
            raise


def create_storage(backend: str = "file", data_dir: str = None) -> QuoteStorage:
    """Factory keyed by the `storage` setting."""
    if backend == "memory":
        return MemoryStorage()
    if backend == "file":
        return FileStorage(data_dir)
    raise ValueError(f"Unknown storage backend: {backend!r}")
