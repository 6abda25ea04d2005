from __future__ import annotations

import logging
import math
import numbers
import re
from datetime import date, datetime, timedelta
from typing import Any, Dict, List, Mapping, Optional, Sequence

import numpy as np
import pandas as pd

from .. import config
from ..parsing.classifier import header_row, resolve_data_type
from ..parsing.mapper import MappingError
from ..parsing.schema import DATE_FIELDS, EQUITY, NUMERIC_FIELDS
from .records import RECORD_FIELDS, TradeRecord

LOGGER = logging.getLogger(__name__)

_CURRENCY_NOISE = re.compile(r"[$€£¥₹,\s]")
# Leading float prefix, the way spreadsheet users expect "12.5 USD" to read
_FLOAT_PREFIX = re.compile(r"[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")


def is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        return False


def parse_numeric(value: Any) -> float:
    """``"$1,250.50"`` -> 1250.5, ``42`` -> 42.0; anything unreadable -> 0.0."""
    if isinstance(value, bool):
        return 0.0
    if isinstance(value, numbers.Number):
        number = float(value)
        return 0.0 if math.isnan(number) else number
    if isinstance(value, str):
        match = _FLOAT_PREFIX.match(_CURRENCY_NOISE.sub("", value))
        return float(match.group(0)) if match else 0.0
    return 0.0


def format_date(value: date) -> str:
    return value.strftime(config.DATE_FORMAT)


def parse_date(value: Any) -> Optional[date]:
    """Best-effort read of a normalized or raw date value; None when it is not a date."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not value.strip():
        return None
    parsed = pd.to_datetime(value.strip(), errors="coerce")
    if pd.isna(parsed):
        return None
    return parsed.date()


def excel_serial_to_date(serial: float) -> date:
    millis = (serial - config.EXCEL_EPOCH_OFFSET_DAYS) * 86400 * 1000
    return pd.to_datetime(millis, unit="ms").date()


def coerce_date(value: Any, today: date) -> str:
    """Render a cell as a date string.

    Dates format directly, strings that parse are reformatted and others pass
    through untouched, numbers are read as Excel serial days. Everything else,
    and any conversion failure, becomes ``today``.
    """
    if isinstance(value, (datetime, date)):
        return format_date(value)
    if isinstance(value, str):
        parsed = parse_date(value)
        return format_date(parsed) if parsed else value.strip()
    if isinstance(value, numbers.Number) and not isinstance(value, bool):
        try:
            return format_date(excel_serial_to_date(float(value)))
        except (OverflowError, ValueError, pd.errors.OutOfBoundsDatetime):
            LOGGER.debug("Excel serial %r out of range; using today", value)
    return format_date(today)


def _coerce(key: str, value: Any, today: date) -> Any:
    if key in NUMERIC_FIELDS:
        return parse_numeric(value)
    if key in DATE_FIELDS:
        return coerce_date(value, today)
    if isinstance(value, np.generic):
        return value.item()
    if isinstance(value, str):
        return value.strip()
    return value


def _default_settlement(data_type: str, values: Dict[str, Any], today: date) -> str:
    trade_date = values["trade_date"]
    if data_type == EQUITY:
        base = parse_date(trade_date) or today
        return format_date(base + timedelta(days=config.EQUITY_SETTLEMENT_LAG_DAYS))
    # FX value date is the settlement date when the upload carries one
    return values.get("value_date") or trade_date


def _normalize_row(
    row: Mapping[str, Any],
    index: int,
    mapping: Mapping[str, str],
    data_type: str,
    today: date,
    carry_unmapped: bool,
) -> TradeRecord:
    values: Dict[str, Any] = {}
    extras: Dict[str, Any] = {}

    for key, header in mapping.items():
        if not header:
            continue
        raw = row.get(header)
        if is_blank(raw):
            continue
        coerced = _coerce(key, raw, today)
        if key in RECORD_FIELDS:
            values[key] = coerced
        else:
            extras[key] = coerced

    if carry_unmapped:
        used = set(mapping.values())
        for header, raw in row.items():
            if header not in used and not is_blank(raw):
                extras.setdefault(str(header), _coerce("", raw, today))

    values.pop("data_source", None)
    if not values.get("trade_id"):
        values["trade_id"] = f"TRADE-{index + 1:06d}"
    values["trade_id"] = str(values["trade_id"])
    if not values.get("trade_date"):
        values["trade_date"] = format_date(today)
    if not values.get("settlement_date"):
        values["settlement_date"] = _default_settlement(data_type, values, today)

    return TradeRecord(data_source=data_type, extras=extras, **values)


def _error_stub(index: int, data_type: str, today: date) -> TradeRecord:
    stamp = format_date(today)
    return TradeRecord(
        data_source=data_type,
        trade_id=f"ERROR-{index + 1}",
        trade_date=stamp,
        settlement_date=stamp,
    )


def _check_headers(rows: Sequence[Mapping[str, Any]], mapping: Mapping[str, str]) -> None:
    first = header_row(rows)
    if first is None:
        return
    headers = set(first.keys())
    missing = sorted({h for h in mapping.values() if h and h not in headers})
    if missing:
        raise MappingError(f"Mapping refers to headers not in the dataset: {', '.join(missing)}")


def normalize_rows(
    rows: Sequence[Mapping[str, Any]],
    mapping: Mapping[str, str],
    data_type: Optional[str] = None,
    *,
    today: Optional[date] = None,
    carry_unmapped: bool = False,
) -> List[TradeRecord]:
    """Apply ``mapping`` to every row and return one TradeRecord per row, in order.

    A row that fails to coerce becomes an ``ERROR-<n>`` stub; the rest of the
    batch still normalizes. Only a mapping that names headers absent from the
    dataset raises.
    """
    _check_headers(rows, mapping)
    data_type = resolve_data_type(rows, data_type)
    today = today or date.today()

    records: List[TradeRecord] = []
    errors = 0
    for index, row in enumerate(rows):
        try:
            records.append(_normalize_row(row, index, mapping, data_type, today, carry_unmapped))
        except Exception:
            LOGGER.warning("Row %d could not be normalized; replaced with stub", index + 1, exc_info=True)
            records.append(_error_stub(index, data_type, today))
            errors += 1

    LOGGER.info("Normalized %d %s rows (%d stubs)", len(records), data_type, errors)
    return records
