"""Budget-request e-mail workflow for orders waiting on a quote (status ``ORÇAR``).

Holds the pieces around the e-mail provider: payload formatting, destination
resolution, the persisted set of already-dispatched orders and the
workshop e-mail overrides.
"""

from __future__ import annotations

import json
import logging
import os
import re
import tempfile
import threading
from datetime import date
from pathlib import Path
from typing import Any, Container, Dict, Iterable, List, Mapping, Optional

import requests

from core.constants import (
    DEFAULT_EMAIL_DOMAIN,
    DEFAULT_EMAIL_PREFIX,
    EMAILJS_SEND_URL,
    STATUS_BUDGET,
    WORKSHOP_EMAILS,
)
from core.data import ServiceOrder

logger = logging.getLogger(__name__)

# Serializes read-modify-write cycles on the dispatch state file across request threads.
_STATE_LOCK = threading.Lock()


class DispatchError(RuntimeError):
    """Raised when the e-mail provider rejects or never receives a send request."""


def format_ps_number(ps: int, entry_date: Optional[date] = None, today: Optional[date] = None) -> str:
    """Format a PS number as ``NNN/YY``, e.g. PS 5 entered in 2024 -> ``005/24``."""
    ref = entry_date or today or date.today()
    return f"{ps:03d}/{ref.year % 100:02d}"


def format_entry_date(value: Optional[date]) -> str:
    return value.strftime("%d/%m/%Y") if value is not None else "---"


def default_destination(workshop: str) -> str:
    slug = re.sub(r"\s", "", workshop.lower())
    return f"{DEFAULT_EMAIL_PREFIX}{slug}@{DEFAULT_EMAIL_DOMAIN}"


def resolve_destination(workshop: str, emails: Mapping[str, str]) -> str:
    return emails.get(workshop) or default_destination(workshop)


def build_email_payload(record: ServiceOrder, emails: Mapping[str, str], today: Optional[date] = None) -> Dict[str, str]:
    return {
        "ps_number": format_ps_number(record.ps, record.entry_date, today=today),
        "om_name": record.om,
        "workshop_name": record.workshop,
        "description": record.description,
        "entry_date": format_entry_date(record.entry_date),
        "to_email": resolve_destination(record.workshop, emails),
    }


def budget_queue(
    records: Iterable[ServiceOrder],
    workshop: Optional[str],
    dispatched: Container[str],
) -> Dict[str, Any]:
    awaiting = [r for r in records if r.status == STATUS_BUDGET]
    selected = [r for r in awaiting if workshop is None or r.workshop == workshop]
    return {
        "total": len(awaiting),
        "filtered": len(selected),
        "pending": [r for r in selected if r.key not in dispatched],
        "dispatched": [r for r in selected if r.key in dispatched],
    }


class JsonFileStore:
    """Durable JSON document with ``load()``/``save()``.

    A missing or unreadable file loads as ``default``.
    """

    def __init__(self, path: Path, default: Any):
        self.path = Path(path)
        self.default = default

    def load(self) -> Any:
        if not self.path.exists():
            return json.loads(json.dumps(self.default))
        try:
            return json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            logger.exception("Could not read %s; using defaults", self.path)
            return json.loads(json.dumps(self.default))

    def save(self, data: Any) -> bool:
        """Write to a temp file in the same directory, then swap it in with ``os.replace``."""
        tmp_name = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                "w", encoding="utf-8", dir=self.path.parent, prefix=self.path.name, suffix=".tmp", delete=False
            ) as fh:
                tmp_name = fh.name
                json.dump(data, fh, ensure_ascii=False, indent=2)
            os.replace(tmp_name, self.path)
        except OSError:
            if tmp_name is not None and os.path.exists(tmp_name):
                os.remove(tmp_name)
            logger.exception("Could not write %s", self.path)
            return False
        return True


def load_workshop_emails(store: JsonFileStore) -> Dict[str, str]:
    emails = dict(WORKSHOP_EMAILS)
    overrides = store.load()
    if isinstance(overrides, dict):
        emails.update({str(k): str(v) for k, v in overrides.items() if v is not None})
    return emails


def save_workshop_emails(store: JsonFileStore, emails: Mapping[str, str]) -> bool:
    return store.save({name: email.strip() for name, email in emails.items()})


class DispatchState:
    """Keys (``"<ps>-<om>"``) of orders whose budget request was already sent."""

    def __init__(self, store: JsonFileStore):
        self.store = store
        self._keys = self._load()

    def _load(self) -> set:
        loaded = self.store.load()
        return {str(k) for k in loaded} if isinstance(loaded, list) else set()

    def __contains__(self, key: object) -> bool:
        return key in self._keys

    def __len__(self) -> int:
        return len(self._keys)

    @property
    def keys(self) -> List[str]:
        return sorted(self._keys)

    def is_dispatched(self, record: ServiceOrder) -> bool:
        return record.key in self._keys

    def _update(self, key: str, add: bool) -> bool:
        # Re-read under the lock so concurrent writers never drop each other's keys.
        with _STATE_LOCK:
            keys = self._load()
            if add:
                keys.add(key)
            else:
                keys.discard(key)
            self._keys = keys
            return self.store.save(sorted(keys))

    def mark(self, key: str) -> bool:
        return self._update(key, add=True)

    def revert(self, key: str) -> bool:
        return self._update(key, add=False)


class EmailJSClient:
    def __init__(
        self,
        service_id: str,
        template_id: str,
        public_key: str,
        *,
        timeout: float = 20.0,
        session: Optional[requests.Session] = None,
    ):
        self.service_id = service_id
        self.template_id = template_id
        self.public_key = public_key
        self.timeout = timeout
        self.session = session or requests.Session()

    def send(self, template_params: Mapping[str, str]) -> None:
        body = {
            "service_id": self.service_id,
            "template_id": self.template_id,
            "user_id": self.public_key,
            "template_params": dict(template_params),
        }
        try:
            response = self.session.post(EMAILJS_SEND_URL, json=body, timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as exc:
            raise DispatchError(f"E-mail provider request failed: {exc}") from exc


def dispatch_budget_request(
    record: ServiceOrder,
    client: EmailJSClient,
    state: DispatchState,
    emails: Mapping[str, str],
) -> Dict[str, str]:
    """Send the budget request for ``record`` and mark it as dispatched.

    The dispatch state is only updated after the provider accepted the request.
    """
    payload = build_email_payload(record, emails)
    client.send(payload)
    state.mark(record.key)
    logger.info("Budget request %s sent to %s", payload["ps_number"], payload["to_email"])
    return payload
