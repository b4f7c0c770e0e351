"""Budget-request payloads, persisted dispatch state and the e-mail client."""
import json
from datetime import date

import pytest
import requests

from core.constants import WORKSHOP_EMAILS
from core.dispatch import (
    DispatchError,
    DispatchState,
    EmailJSClient,
    JsonFileStore,
    budget_queue,
    build_email_payload,
    default_destination,
    dispatch_budget_request,
    format_entry_date,
    format_ps_number,
    load_workshop_emails,
    resolve_destination,
    save_workshop_emails,
)


class RecordingClient:
    def __init__(self, fail: bool = False):
        self.sent = []
        self.fail = fail

    def send(self, template_params):
        if self.fail:
            raise DispatchError("provider down")
        self.sent.append(dict(template_params))


class FakeResponse:
    def __init__(self, status_code: int):
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")


class FakeSession:
    def __init__(self, status_code: int = 200):
        self.status_code = status_code
        self.calls = []

    def post(self, url, json=None, timeout=None):
        self.calls.append((url, json))
        return FakeResponse(self.status_code)


def test_format_ps_number():
    assert format_ps_number(5, date(2024, 3, 1)) == "005/24"
    assert format_ps_number(1234, date(2023, 3, 1)) == "1234/23"
    assert format_ps_number(7, None, today=date(2026, 10, 17)) == "007/26"


def test_format_entry_date():
    assert format_entry_date(date(2024, 3, 5)) == "05/03/2024"
    assert format_entry_date(None) == "---"


def test_resolve_destination():
    assert default_destination("Motores Navais") == "oficina.motoresnavais@marinha.mil.br"
    assert resolve_destination("MECÂNICA", WORKSHOP_EMAILS) == WORKSHOP_EMAILS["MECÂNICA"]
    assert resolve_destination("CASCO", {"CASCO": ""}) == "oficina.casco@marinha.mil.br"


def test_build_email_payload(records):
    payload = build_email_payload(records[0], {"MECÂNICA": "mec@example.com"})
    assert payload == {
        "ps_number": "001/24",
        "om_name": "NAvPaFlu",
        "workshop_name": "MECÂNICA",
        "description": "Reparo de bomba, eixo e selo",
        "entry_date": "15/03/2024",
        "to_email": "mec@example.com",
    }


def test_budget_queue_splits_by_dispatch_state(records):
    queue = budget_queue(records, None, {"1-NAvPaFlu"})
    assert queue["total"] == 1
    assert queue["pending"] == []
    assert [r.key for r in queue["dispatched"]] == ["1-NAvPaFlu"]

    other = budget_queue(records, "ELÉTRICA", set())
    assert other["total"] == 1
    assert other["filtered"] == 0


def test_json_file_store_roundtrip_and_defaults(tmp_path):
    store = JsonFileStore(tmp_path / "nested" / "state.json", default=[])
    assert store.load() == []
    assert store.save(["1-A"])
    assert store.load() == ["1-A"]


def test_json_file_store_unreadable_file_uses_default(tmp_path, caplog):
    path = tmp_path / "state.json"
    path.write_text("{broken", encoding="utf-8")
    caplog.set_level("ERROR")
    assert JsonFileStore(path, default={}).load() == {}
    assert "Could not read" in caplog.text


def test_workshop_emails_merge_defaults(tmp_path):
    store = JsonFileStore(tmp_path / "emails.json", default={})
    emails = load_workshop_emails(store)
    assert emails == WORKSHOP_EMAILS

    assert save_workshop_emails(store, {"CASCO": " casco@example.com "})
    emails = load_workshop_emails(store)
    assert emails["CASCO"] == "casco@example.com"
    assert emails["MECÂNICA"] == WORKSHOP_EMAILS["MECÂNICA"]


def test_dispatch_state_persists(tmp_path):
    path = tmp_path / "dispatched.json"
    state = DispatchState(JsonFileStore(path, default=[]))
    assert state.mark("1-A")
    assert state.mark("2-B")
    assert "1-A" in state
    assert json.loads(path.read_text(encoding="utf-8")) == ["1-A", "2-B"]

    reloaded = DispatchState(JsonFileStore(path, default=[]))
    assert len(reloaded) == 2
    reloaded.revert("1-A")
    assert DispatchState(JsonFileStore(path, default=[])).keys == ["2-B"]


def test_dispatch_state_interleaved_writers_keep_each_others_keys(tmp_path):
    path = tmp_path / "dispatched.json"
    a = DispatchState(JsonFileStore(path, default=[]))
    b = DispatchState(JsonFileStore(path, default=[]))

    assert a.mark("1-A")
    assert b.mark("2-B")
    assert json.loads(path.read_text(encoding="utf-8")) == ["1-A", "2-B"]

    assert a.revert("2-B")
    assert b.mark("3-C")
    assert DispatchState(JsonFileStore(path, default=[])).keys == ["1-A", "3-C"]


def test_json_file_store_save_leaves_no_temp_files(tmp_path):
    store = JsonFileStore(tmp_path / "state" / "dispatched.json", default=[])
    assert store.save(["1-A"])
    assert store.save(["1-A", "2-B"])

    assert [p.name for p in (tmp_path / "state").iterdir()] == ["dispatched.json"]
    assert store.load() == ["1-A", "2-B"]


def test_json_file_store_failed_save_keeps_previous_file(tmp_path, monkeypatch, caplog):
    path = tmp_path / "dispatched.json"
    store = JsonFileStore(path, default=[])
    assert store.save(["1-A"])

    def broken_replace(src, dst):
        raise OSError("disk full")

    monkeypatch.setattr("core.dispatch.os.replace", broken_replace)
    assert store.save(["1-A", "2-B"]) is False
    assert json.loads(path.read_text(encoding="utf-8")) == ["1-A"]
    assert [p.name for p in tmp_path.iterdir()] == ["dispatched.json"]
    assert "Could not write" in caplog.text


def test_dispatch_budget_request_marks_after_send(tmp_path, records):
    state = DispatchState(JsonFileStore(tmp_path / "d.json", default=[]))
    client = RecordingClient()

    payload = dispatch_budget_request(records[0], client, state, {})
    assert client.sent == [payload]
    assert state.is_dispatched(records[0])


def test_dispatch_budget_request_failure_leaves_state(tmp_path, records):
    state = DispatchState(JsonFileStore(tmp_path / "d.json", default=[]))
    with pytest.raises(DispatchError):
        dispatch_budget_request(records[0], RecordingClient(fail=True), state, {})
    assert not state.is_dispatched(records[0])


def test_emailjs_client_posts_template_params():
    session = FakeSession()
    client = EmailJSClient("svc", "tpl", "key", session=session)
    client.send({"ps_number": "001/24"})

    url, body = session.calls[0]
    assert url.endswith("/email/send")
    assert body == {
        "service_id": "svc",
        "template_id": "tpl",
        "user_id": "key",
        "template_params": {"ps_number": "001/24"},
    }


def test_emailjs_client_wraps_http_errors():
    client = EmailJSClient("svc", "tpl", "key", session=FakeSession(status_code=400))
    with pytest.raises(DispatchError):
        client.send({})
