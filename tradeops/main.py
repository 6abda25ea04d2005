from fastapi import Body, FastAPI, File, Form, HTTPException, UploadFile
from fastapi.responses import JSONResponse, StreamingResponse
from typing import Any, Dict, List, Optional
import io
import logging
import uuid
import time
from openpyxl import Workbook

from . import config
from .parsing.classifier import resolve_data_type
from .parsing.mapper import FLEXIBLE, MappingError, MappingSession
from .parsing.reader import analyze_rows, read_rows
from .parsing.schema import EQUITY, FX, get_field_set, normalize_data_type
from .core.anomalies import annotate_disputes, detect_anomalies
from .core.engine import compute_kpis, compute_kris, compute_summary
from .core.normalizer import normalize_rows
from .reports.export import (
    dataframes_to_csv_bytes,
    dataframes_to_excel_bytes,
)

logging.basicConfig(level=config.LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
LOGGER = logging.getLogger(__name__)

app = FastAPI(title="Trade Ops Cost Analytics", version="1.0.0")

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

# In-memory upload sessions keyed by token
SESSIONS: Dict[str, Dict[str, Any]] = {}


def _cleanup_sessions() -> None:
    now = time.time()
    expired = [k for k, v in SESSIONS.items() if now - v.get("ts", now) > config.RESULT_TTL_SECONDS]
    for k in expired:
        SESSIONS.pop(k, None)


def _get_session(token: str) -> Dict[str, Any]:
    data = SESSIONS.get(token)
    if not data:
        raise HTTPException(status_code=404, detail="Token not found or expired")
    data["ts"] = time.time()
    return data


def _get_results(token: str) -> Dict[str, Any]:
    data = _get_session(token)
    if "results" not in data:
        raise HTTPException(status_code=404, detail="Upload has not been processed yet")
    return data["results"]


def _error(message: str, status_code: int = 400) -> JSONResponse:
    return JSONResponse({"ok": False, "error": message}, status_code=status_code)


def _mapping_payload(session: MappingSession) -> Dict[str, Any]:
    status = session.status
    return {
        "data_type": session.data_type,
        "mapping": dict(session.mapping),
        "status": {
            "mapped": status.mapped,
            "required": status.required,
            "total": status.total,
            "missing_required": status.missing_required,
        },
        "can_submit": session.can_submit,
    }


@app.post("/api/upload")
async def upload(file: UploadFile = File(...), data_type: Optional[str] = Form(None)):
    try:
        content = await file.read()
        rows = read_rows(io.BytesIO(content), file.filename)
        analysis = analyze_rows(rows)
        session = MappingSession(analysis.headers, resolve_data_type(rows, data_type))

        token = str(uuid.uuid4())
        SESSIONS[token] = {"ts": time.time(), "rows": rows, "session": session}
        _cleanup_sessions()
        LOGGER.info("Upload %s: %d rows, %d headers, %s", token, analysis.row_count, len(analysis.headers), session.data_type)
        return {
            "ok": True,
            "token": token,
            "headers": analysis.headers,
            "row_count": analysis.row_count,
            "sample": analysis.sample,
            **_mapping_payload(session),
        }
    except ValueError as ve:
        return _error(str(ve))
    except Exception as e:
        LOGGER.exception("Upload failed")
        return _error(str(e), status_code=500)


@app.post("/api/upload/{token}/automap")
def automap(token: str, data_type: Optional[str] = None, strategy: str = FLEXIBLE):
    session: MappingSession = _get_session(token)["session"]
    try:
        if data_type and normalize_data_type(data_type) != session.data_type:
            session.switch_type(data_type, strategy)
        else:
            session.auto_map(strategy)
    except ValueError as ve:
        return _error(str(ve))
    return {"ok": True, **_mapping_payload(session)}


@app.put("/api/upload/{token}/mapping")
def update_mapping(token: str, changes: Dict[str, Optional[str]] = Body(...)):
    session: MappingSession = _get_session(token)["session"]
    before = dict(session.mapping)
    try:
        for key, header in changes.items():
            session.set_field(key, header or "")
    except MappingError as me:
        session.mapping = before
        return _error(str(me))
    return {"ok": True, **_mapping_payload(session)}


@app.post("/api/upload/{token}/process")
def process(token: str, enforce_required: bool = False, carry_unmapped: bool = False):
    data = _get_session(token)
    session: MappingSession = data["session"]
    if enforce_required and not session.can_submit:
        missing = [f.label for f in session.field_set if f.required and not session.mapping.get(f.key)]
        return _error(f"Required fields not mapped: {', '.join(missing)}")

    try:
        records = normalize_rows(data["rows"], session.mapping, session.data_type, carry_unmapped=carry_unmapped)
        results = {
            "records": records,
            "summary": compute_summary(records),
            "kpis": compute_kpis(records),
            "kris": compute_kris(records),
            "anomalies": detect_anomalies(records),
        }
    except ValueError as ve:
        return _error(str(ve))
    except Exception as e:
        LOGGER.exception("Processing %s failed", token)
        return _error(str(e), status_code=500)

    data["results"] = results
    disputes = [d.to_dict() for d in annotate_disputes(records) if d.disputed]
    LOGGER.info("Processed %s: %d records, %d anomalies", token, len(records), len(results["anomalies"]))
    return {"ok": True, "token": token, **_results_for_ui(results), "disputes": disputes}


def _results_for_ui(results: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "records": [r.to_dict() for r in results["records"]],
        "stub_rows": sum(1 for r in results["records"] if r.trade_id.startswith("ERROR-")),
        "summary": results["summary"].to_dict(),
        "kpis": results["kpis"].to_dict(),
        "kris": results["kris"].to_dict(),
        "anomalies": [a.to_dict() for a in results["anomalies"]],
    }


@app.get("/download/{token}/csv")
def download_csv(token: str):
    res = _get_results(token)
    bio = io.BytesIO(dataframes_to_csv_bytes(res))
    headers = {"Content-Disposition": f"attachment; filename=reports_{token}.zip"}
    return StreamingResponse(bio, media_type="application/zip", headers=headers)


@app.get("/download/{token}/excel")
def download_excel(token: str):
    res = _get_results(token)
    bio = io.BytesIO(dataframes_to_excel_bytes(res))
    headers = {"Content-Disposition": f"attachment; filename=reports_{token}.xlsx"}
    return StreamingResponse(bio, media_type=XLSX_MEDIA_TYPE, headers=headers)


@app.get("/healthz")
def healthz():
    return {"ok": True}


SAMPLE_VALUES: Dict[str, List[Dict[str, Any]]] = {
    EQUITY: [
        {"trade_id": "EQ-0001", "trade_date": "2024-05-02", "symbol": "AAPL", "quantity": 100, "price": 150,
         "trade_value": 15000, "currency": "USD", "counterparty": "Goldman Sachs", "commission": 45,
         "taxes": 12, "settlement_status": "Settled"},
        {"trade_id": "EQ-0002", "trade_date": "2024-06-14", "symbol": "MSFT", "quantity": 10, "price": 5000,
         "trade_value": 50000, "currency": "USD", "counterparty": "Morgan Stanley", "commission": 150,
         "taxes": 40, "settlement_status": "Pending"},
    ],
    FX: [
        {"trade_id": "FX-0001", "trade_date": "2024-05-03", "value_date": "2024-05-07", "currency_pair": "EUR/USD",
         "buy_sell": "Buy", "dealt_currency": "EUR", "notional_amount": 1000000, "fx_rate": 1.0825,
         "counterparty": "Deutsche Bank", "commission_amount": 250, "commission_currency": "USD",
         "brokerage_fee": 75, "cost_allocation_status": "Allocated"},
        {"trade_id": "FX-0002", "trade_date": "2024-06-11", "value_date": "2024-06-13", "currency_pair": "GBP/JPY",
         "buy_sell": "Sell", "dealt_currency": "GBP", "notional_amount": 500000, "fx_rate": 198.4,
         "counterparty": "HSBC", "commission_amount": 90, "commission_currency": "GBP",
         "brokerage_fee": 30, "cost_allocation_status": "Pending"},
    ],
}


@app.get("/sample/template.xlsx")
def sample_template(data_type: str = EQUITY):
    try:
        data_type = normalize_data_type(data_type)
    except ValueError as ve:
        return _error(str(ve))
    field_set = get_field_set(data_type)

    wb = Workbook()
    ws = wb.active
    ws.title = "Trades"
    ws.append([f.label for f in field_set])
    for sample in SAMPLE_VALUES[data_type]:
        ws.append([sample.get(f.key) for f in field_set])
    bio = io.BytesIO()
    wb.save(bio)
    bio.seek(0)
    headers = {"Content-Disposition": f"attachment; filename={data_type}_template.xlsx"}
    return StreamingResponse(bio, media_type=XLSX_MEDIA_TYPE, headers=headers)
