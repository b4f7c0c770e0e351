from __future__ import annotations

import logging
import math
from dataclasses import asdict
from typing import Optional

import numpy as np
import pandas as pd
from fastapi import FastAPI, Query
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

from api.schemas import FilterSpecModel, WorkshopEmailsModel
from core.config import configure_logging, load_settings
from core.data import ServiceOrder, load_dashboard_data, records_to_frame, refresh_dashboard_data
from core.dispatch import (
    DispatchError,
    DispatchState,
    EmailJSClient,
    JsonFileStore,
    budget_queue,
    build_email_payload,
    dispatch_budget_request,
    load_workshop_emails,
    save_workshop_emails,
)
from core.filters import FilterSpec, normalize_filters
from core.metrics import prepare_context
from core.metrics_overview import compute_overview
from core.report import EmptyReportError, build_report_pdf, report_filename


configure_logging()
app = FastAPI(title="PS Control Dashboard API", version="0.1.0")
logger = logging.getLogger(__name__)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000", "http://127.0.0.1:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def get_email_store() -> JsonFileStore:
    return JsonFileStore(load_settings().workshop_emails_path, default={})


def get_dispatch_state() -> DispatchState:
    return DispatchState(JsonFileStore(load_settings().dispatch_state_path, default=[]))


def get_email_client() -> EmailJSClient:
    s = load_settings()
    return EmailJSClient(s.emailjs_service_id, s.emailjs_template_id, s.emailjs_public_key, timeout=s.fetch_timeout)


def _filters_from_model(model: FilterSpecModel) -> FilterSpec:
    return normalize_filters(model.model_dump())


def _find_record(key: str) -> Optional[ServiceOrder]:
    records = load_dashboard_data().get("records", ())
    return next((r for r in records if r.key == key), None)


def _error(exc: Exception, status_code: int = 500) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": str(exc), "type": type(exc).__name__})


def _json(data: object) -> JSONResponse:
    """Return JSON with safe encoding for pandas/numpy objects."""

    def _safe_float(value: object) -> float | None:
        try:
            out = float(value)  # type: ignore[arg-type]
        except Exception:
            return None
        if math.isnan(out) or math.isinf(out):
            return None
        return out

    return JSONResponse(
        content=jsonable_encoder(
            data,
            custom_encoder={
                type(pd.NA): lambda _: None,
                np.integer: int,
                float: _safe_float,
                np.floating: _safe_float,
                np.bool_: bool,
                np.ndarray: lambda arr: arr.tolist(),
                pd.Timestamp: lambda ts: ts.isoformat(),
            },
        )
    )


@app.get("/meta/options")
def meta_options():
    try:
        ctx = prepare_context(FilterSpec(), load_dashboard_data())
        return _json(ctx["options"])
    except Exception as exc:
        logger.exception("meta_options failed")
        return _error(exc)


@app.post("/overview")
def overview(filters: FilterSpecModel):
    try:
        f = _filters_from_model(filters)
        ctx = prepare_context(f, load_dashboard_data())
        return _json(compute_overview(f, ctx))
    except Exception as exc:
        logger.exception("overview failed")
        return _error(exc)


@app.post("/refresh")
def refresh():
    try:
        data_ctx = refresh_dashboard_data()
        return _json({"records": len(data_ctx.get("records", ())), "loaded_at": data_ctx.get("loaded_at")})
    except Exception as exc:
        logger.exception("refresh failed")
        return _error(exc)


@app.get("/budget-queue")
def budget_queue_view(workshop: str = Query(default="TODAS")):
    try:
        records = load_dashboard_data().get("records", ())
        state = get_dispatch_state()
        emails = load_workshop_emails(get_email_store())
        selected = normalize_filters({"workshop": workshop}).workshop
        queue = budget_queue(records, selected, state)

        def row(r: ServiceOrder) -> dict:
            return {"key": r.key, "record": asdict(r), "email": build_email_payload(r, emails)}

        return _json(
            {
                "total": queue["total"],
                "filtered": queue["filtered"],
                "pending": [row(r) for r in queue["pending"]],
                "dispatched": [row(r) for r in queue["dispatched"]],
            }
        )
    except Exception as exc:
        logger.exception("budget_queue failed")
        return _error(exc)


@app.post("/dispatch/{key:path}")
def dispatch(key: str):
    record = _find_record(key)
    if record is None:
        return JSONResponse(status_code=404, content={"error": f"Unknown order {key}", "type": "NotFound"})
    try:
        payload = dispatch_budget_request(
            record, get_email_client(), get_dispatch_state(), load_workshop_emails(get_email_store())
        )
        return _json({"key": key, "dispatched": True, "email": payload})
    except DispatchError as exc:
        logger.exception("dispatch failed for %s", key)
        return _error(exc, status_code=502)
    except Exception as exc:
        logger.exception("dispatch failed for %s", key)
        return _error(exc)


@app.delete("/dispatch/{key:path}")
def revert_dispatch(key: str):
    try:
        saved = get_dispatch_state().revert(key)
        return _json({"key": key, "dispatched": False, "saved": saved})
    except Exception as exc:
        logger.exception("revert failed for %s", key)
        return _error(exc)


@app.get("/settings/workshop-emails")
def get_workshop_emails():
    try:
        return _json({"emails": load_workshop_emails(get_email_store())})
    except Exception as exc:
        logger.exception("get_workshop_emails failed")
        return _error(exc)


@app.put("/settings/workshop-emails")
def put_workshop_emails(body: WorkshopEmailsModel):
    try:
        store = get_email_store()
        emails = load_workshop_emails(store)
        emails.update(body.emails)
        if not save_workshop_emails(store, emails):
            return JSONResponse(status_code=500, content={"error": "Could not save settings", "type": "StoreError"})
        return _json({"emails": emails})
    except Exception as exc:
        logger.exception("put_workshop_emails failed")
        return _error(exc)


@app.post("/export/report")
def export_report(filters: FilterSpecModel):
    try:
        f = _filters_from_model(filters)
        ctx = prepare_context(f, load_dashboard_data())
        pdf = build_report_pdf(ctx["filtered"], f)
    except EmptyReportError as exc:
        return _error(exc, status_code=404)
    except Exception as exc:
        logger.exception("export_report failed")
        return _error(exc)
    return Response(
        content=pdf,
        media_type="application/pdf",
        headers={"Content-Disposition": f"attachment; filename={report_filename()}"},
    )


@app.post("/export/csv")
def export_csv(filters: FilterSpecModel):
    try:
        f = _filters_from_model(filters)
        ctx = prepare_context(f, load_dashboard_data())
        csv_bytes = records_to_frame(ctx["filtered"]).to_csv(index=False).encode("utf-8")
    except Exception as exc:
        logger.exception("export_csv failed")
        return _error(exc)
    return Response(content=csv_bytes, media_type="text/csv", headers={"Content-Disposition": "attachment; filename=ps.csv"})
