from __future__ import annotations

import calendar
import logging
from dataclasses import asdict, dataclass, field
from datetime import date
from typing import Any, Dict, FrozenSet, List, Mapping, Optional, Sequence, Tuple, Union

import pandas as pd

from .. import config
from .normalizer import format_date, is_blank, parse_date, parse_numeric
from .records import TradeRecord

LOGGER = logging.getLogger(__name__)

RecordLike = Union[TradeRecord, Mapping[str, Any]]

UNKNOWN = "Unknown"

# Candidate names per metric: canonical key first, then raw header spellings
# that reach the engine through extras or records loaded from elsewhere.
COMMISSION_FIELDS: Tuple[str, ...] = (
    "commission",
    "commission_amount",
    "commissionAmount",
    "commissionAmt",
    "Commission",
    "CommissionAmount",
    "Commission Amount",
    "totalCommission",
    "commissionFee",
)
BROKERAGE_FIELDS: Tuple[str, ...] = (
    "brokerage_fee",
    "brokerage",
    "brokerageFee",
    "brokerageAmount",
    "BrokerageFee",
    "Brokerage",
    "BrokerageAmount",
    "Brokerage Fee",
    "brokerFee",
    "BrokerFee",
)
SETTLEMENT_COST_FIELDS: Tuple[str, ...] = (
    "settlement_cost",
    "settlement",
    "settlementCost",
    "SettlementCost",
    "Settlement Cost",
    "SettlementFee",
    "settlementFee",
    "Settlement Fee",
)
NOTIONAL_FIELDS: Tuple[str, ...] = (
    "notional_amount",
    "trade_value",
    "notional",
    "notionalAmount",
    "tradeValue",
    "NotionalAmount",
    "TradeValue",
    "amount",
)
BROKER_FIELDS: Tuple[str, ...] = (
    "counterparty",
    "broker",
    "Counterparty",
    "Broker",
    "execution_venue",
    "trading_venue",
    "executionVenue",
    "tradingVenue",
)
# Venues do not count as a broker identity for completeness checks
IDENTITY_FIELDS: Tuple[str, ...] = ("counterparty", "broker", "Counterparty", "Broker")
ALLOCATION_STATUS_FIELDS: Tuple[str, ...] = (
    "cost_allocation_status",
    "allocation_status",
    "settlement_status",
    "costAllocationStatus",
    "allocationStatus",
    "settlementStatus",
)
TRADE_DATE_FIELDS: Tuple[str, ...] = ("trade_date", "date", "value_date", "execution_date", "tradeDate", "valueDate")

BILLED_BROKER_FIELDS: Tuple[str, ...] = ("broker", "counterparty")
BILLED_COMMISSION_FIELDS: Tuple[str, ...] = ("commission_amount", "commission", "commissionAmt")
RATE_VALUE_FIELDS: Tuple[str, ...] = ("trade_value", "notional_amount", "notional")
COMMISSION_CURRENCY_FIELDS: Tuple[str, ...] = ("commission_currency", "currency", "dealt_currency", "base_currency")
TRADE_CURRENCY_FIELDS: Tuple[str, ...] = ("trade_currency", "dealt_currency", "base_currency", "currency")
RECONCILIATION_STATUS_FIELDS: Tuple[str, ...] = ("reconciliation_status", "settlement_status", "status")

COST_COLUMNS = [
    "trade_id",
    "broker",
    "commission",
    "brokerage",
    "settlement",
    "notional",
    "month",
    "billed_broker",
    "billed_commission",
]


# ---------------------------------------------------------------------------
# Field extraction
# ---------------------------------------------------------------------------


def numeric_value(record: RecordLike, candidates: Sequence[str]) -> float:
    """First candidate present on the record, parsed like a numeric cell; 0 when none is present."""
    for name in candidates:
        value = record.get(name)
        if not is_blank(value):
            return parse_numeric(value)
    return 0.0


def text_value(record: RecordLike, candidates: Sequence[str], default: Optional[str] = UNKNOWN) -> Optional[str]:
    for name in candidates:
        value = record.get(name)
        if is_blank(value):
            continue
        text = str(value).strip()
        if text:
            return text
    return default


def trade_date_of(record: RecordLike) -> Optional[date]:
    for name in TRADE_DATE_FIELDS:
        parsed = parse_date(record.get(name))
        if parsed:
            return parsed
    return None


def _trade_id(record: RecordLike) -> str:
    return text_value(record, ("trade_id", "tradeId", "tradeID"), "N/A")


def _pct(part: float, whole: float) -> float:
    return part / whole * 100 if whole else 0.0


def _clip_pct(value: float) -> float:
    return min(max(value, 0.0), 100.0)


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


@dataclass
class SummaryMetrics:
    total_trades: int = 0
    settled_trades: int = 0
    settlement_success_rate: float = 0.0
    total_trade_value: float = 0.0
    average_trade_value: float = 0.0
    active_trading_venues: int = 0
    active_counterparties: int = 0
    error_alerts: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class KPIResult:
    total_commission_fees: float = 0.0
    avg_commission_fee_per_trade: float = 0.0
    total_brokerage_paid: float = 0.0
    total_notional: float = 0.0
    commission_cost_as_percent_of_trade_notional: float = 0.0
    trades_per_broker: List[Dict[str, Any]] = field(default_factory=list)
    broker_expense: List[Dict[str, Any]] = field(default_factory=list)
    fees_over_time: List[Dict[str, Any]] = field(default_factory=list)
    high_commission_brokers: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class KRIResult:
    expected_commission_fee_benchmark: float = config.COST_OVERRUN_BENCHMARK
    commission_cost_overruns: int = 0
    unallocated_costs: int = 0
    percentage_unallocated_costs: float = 0.0
    missing_or_incomplete_data: int = 0
    radar: List[Dict[str, Any]] = field(default_factory=list)
    rate_outliers: List[Dict[str, Any]] = field(default_factory=list)
    currency_mismatches: Dict[str, Any] = field(default_factory=dict)
    reconciliation: Dict[str, Any] = field(default_factory=dict)
    volume_trend: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def rate_outlier_count(self) -> int:
        return sum(1 for r in self.rate_outliers if r["outlier"])

    def to_dict(self) -> Dict[str, Any]:
        out = asdict(self)
        out["rate_outlier_count"] = self.rate_outlier_count
        return out


# ---------------------------------------------------------------------------
# Summary
# ---------------------------------------------------------------------------


def compute_summary(records: Sequence[RecordLike]) -> SummaryMetrics:
    """Headline figures for the trades dashboard."""
    total = len(records)
    if not total:
        return SummaryMetrics()

    settled = 0
    errors = 0
    total_value = 0.0
    venues = set()
    counterparties = set()
    for r in records:
        if r.get("settlement_status") == "Settled":
            settled += 1
        if r.get("kyc_status") == "Failed" or r.get("kyc_check") == "Incomplete":
            errors += 1
        if r.get("confirmation_status") in ("Failed", "Disputed"):
            errors += 1

        source = r.get("data_source")
        if source == "equity" and r.get("trade_value"):
            total_value += parse_numeric(r.get("trade_value"))
        elif source == "fx" and r.get("notional_amount") and r.get("fx_rate"):
            total_value += parse_numeric(r.get("notional_amount")) * parse_numeric(r.get("fx_rate"))

        venue = r.get("trading_venue") or r.get("execution_venue")
        if venue:
            venues.add(venue)
        if r.get("counterparty"):
            counterparties.add(r.get("counterparty"))

    return SummaryMetrics(
        total_trades=total,
        settled_trades=settled,
        settlement_success_rate=_pct(settled, total),
        total_trade_value=total_value,
        average_trade_value=total_value / total,
        active_trading_venues=len(venues),
        active_counterparties=len(counterparties),
        error_alerts=errors,
    )


# ---------------------------------------------------------------------------
# KPIs
# ---------------------------------------------------------------------------


def _cost_frame(records: Sequence[RecordLike], today: date) -> pd.DataFrame:
    rows = []
    for r in records:
        traded = trade_date_of(r) or today
        rows.append(
            {
                "trade_id": _trade_id(r),
                "broker": text_value(r, BROKER_FIELDS),
                "commission": numeric_value(r, COMMISSION_FIELDS),
                "brokerage": numeric_value(r, BROKERAGE_FIELDS),
                "settlement": numeric_value(r, SETTLEMENT_COST_FIELDS),
                "notional": numeric_value(r, NOTIONAL_FIELDS),
                "month": traded.month,
                "billed_broker": text_value(r, BILLED_BROKER_FIELDS),
                "billed_commission": numeric_value(r, BILLED_COMMISSION_FIELDS),
            }
        )
    return pd.DataFrame(rows, columns=COST_COLUMNS)


def _broker_expense(df: pd.DataFrame, limit: int) -> List[Dict[str, Any]]:
    grouped = df.groupby("broker", sort=False)[["commission", "brokerage", "settlement"]].sum()
    grouped["total_expense"] = grouped["commission"] + grouped["brokerage"] + grouped["settlement"]
    grouped = grouped.sort_values("total_expense", ascending=False, kind="stable").head(limit)
    return [
        {
            "broker": broker,
            "commission_fee": float(row["commission"]),
            "brokerage_fee": float(row["brokerage"]),
            "settlement_cost": float(row["settlement"]),
            "total_expense": float(row["total_expense"]),
        }
        for broker, row in grouped.iterrows()
    ]


def _trades_per_broker(df: pd.DataFrame, limit: int) -> List[Dict[str, Any]]:
    counts = df.groupby("broker", sort=False).size().sort_values(ascending=False, kind="stable").head(limit)
    return [{"broker": broker, "count": int(n)} for broker, n in counts.items()]


def _fees_over_time(df: pd.DataFrame, months: Sequence[int], limit: int) -> List[Dict[str, Any]]:
    """Per-broker commission and brokerage for each trend month, pivoted into one row per broker."""
    trend = df[df["month"].isin(list(months))]
    grouped = trend.groupby(["broker", "month"], sort=False)[["commission", "brokerage"]].sum()

    per_broker: Dict[str, Dict[str, Any]] = {}
    for (broker, month), row in grouped.iterrows():
        if broker not in per_broker:
            entry: Dict[str, Any] = {"broker": broker}
            for m in months:
                abbr = calendar.month_abbr[m].lower()
                entry[f"{abbr}_commission"] = 0.0
                entry[f"{abbr}_brokerage"] = 0.0
            per_broker[broker] = entry
        abbr = calendar.month_abbr[int(month)].lower()
        per_broker[broker][f"{abbr}_commission"] = float(row["commission"])
        per_broker[broker][f"{abbr}_brokerage"] = float(row["brokerage"])

    out = list(per_broker.values())
    for entry in out:
        entry["total_fees"] = sum(v for k, v in entry.items() if k != "broker")
    out.sort(key=lambda e: e["total_fees"], reverse=True)
    return out[:limit]


def _high_commission_brokers(df: pd.DataFrame, limit: int) -> List[Dict[str, Any]]:
    totals = (
        df.groupby("billed_broker", sort=False)["billed_commission"]
        .sum()
        .sort_values(ascending=False, kind="stable")
        .head(limit)
    )
    return [{"broker": broker, "commission": float(total)} for broker, total in totals.items()]


def compute_kpis(
    records: Sequence[RecordLike],
    *,
    trend_months: Sequence[int] = config.TREND_MONTHS,
    today: Optional[date] = None,
) -> KPIResult:
    """Commission and cost KPIs, recomputed from scratch over ``records``.

    Trades without a readable date count towards ``today``'s month in the
    fees-over-time trend.
    """
    df = _cost_frame(records, today or date.today())
    count = len(df)
    total_commission = float(df["commission"].sum()) if count else 0.0
    total_brokerage = float(df["brokerage"].sum()) if count else 0.0
    total_notional = float(df["notional"].sum()) if count else 0.0

    result = KPIResult(
        total_commission_fees=total_commission,
        avg_commission_fee_per_trade=total_commission / count if count else 0.0,
        total_brokerage_paid=total_brokerage,
        total_notional=total_notional,
        commission_cost_as_percent_of_trade_notional=_pct(total_commission, total_notional),
    )
    if count:
        result.trades_per_broker = _trades_per_broker(df, config.TOP_BROKER_COUNTS)
        result.broker_expense = _broker_expense(df, config.TOP_BROKERS)
        result.fees_over_time = _fees_over_time(df, trend_months, config.TOP_TREND_BROKERS)
        result.high_commission_brokers = _high_commission_brokers(df, config.TOP_BROKERS)

    LOGGER.debug(
        "KPIs: commission=%.2f brokerage=%.2f notional=%.2f brokers=%d",
        total_commission,
        total_brokerage,
        total_notional,
        len(result.trades_per_broker),
    )
    return result


# ---------------------------------------------------------------------------
# KRIs
# ---------------------------------------------------------------------------


def _rate_outliers(records: Sequence[RecordLike]) -> List[Dict[str, Any]]:
    rows = []
    for r in records:
        value = numeric_value(r, RATE_VALUE_FIELDS)
        if value <= 0:
            continue
        rate = numeric_value(r, BILLED_COMMISSION_FIELDS) / value * 100
        rows.append(
            {
                "trade_id": _trade_id(r),
                "broker": text_value(r, BILLED_BROKER_FIELDS),
                "rate": rate,
                "outlier": rate > config.RATE_OUTLIER_HIGH or rate < config.RATE_OUTLIER_LOW,
            }
        )
    rows.sort(key=lambda e: e["rate"], reverse=True)
    return rows


def _currency_mismatches(records: Sequence[RecordLike]) -> Dict[str, Any]:
    counts: Dict[str, int] = {}
    details = []
    for r in records:
        commission_ccy = text_value(r, COMMISSION_CURRENCY_FIELDS, None)
        trade_ccy = text_value(r, TRADE_CURRENCY_FIELDS, None)
        if not commission_ccy or not trade_ccy or commission_ccy == trade_ccy:
            continue
        counts[commission_ccy] = counts.get(commission_ccy, 0) + 1
        details.append({"trade_id": _trade_id(r), "commission_currency": commission_ccy, "trade_currency": trade_ccy})
    return {"counts": counts, "details": details}


def _reconciliation(records: Sequence[RecordLike]) -> Dict[str, Any]:
    successful = failed = pending = 0
    details = []
    for r in records:
        status = text_value(r, RECONCILIATION_STATUS_FIELDS, "unknown").lower()
        if status in config.RECONCILED_STATUSES:
            successful += 1
            continue
        if status in config.FAILED_STATUSES:
            failed += 1
            label = "Failed"
        elif status in config.PENDING_STATUSES:
            pending += 1
            label = "Pending"
        else:
            pending += 1
            label = "Unknown"
        details.append({"trade_id": _trade_id(r), "status": label, "reason": status})
    return {"successful": successful, "failed": failed, "pending": pending, "details": details}


def _volume_trend(records: Sequence[RecordLike]) -> List[Dict[str, Any]]:
    daily: Dict[date, int] = {}
    for r in records:
        traded = trade_date_of(r)
        if traded:
            daily[traded] = daily.get(traded, 0) + 1
    if not daily:
        return []
    mean = sum(daily.values()) / len(daily)
    return [
        {
            "date": format_date(day),
            "count": n,
            "anomalous": n > mean * config.VOLUME_ANOMALY_HIGH or n < mean * config.VOLUME_ANOMALY_LOW,
        }
        for day, n in sorted(daily.items())
    ]


def compute_kris(
    records: Sequence[RecordLike],
    *,
    benchmark: float = config.COST_OVERRUN_BENCHMARK,
    allocated_statuses: FrozenSet[str] = config.ALLOCATED_STATUSES,
) -> KRIResult:
    """Risk indicators over ``records``.

    A trade overruns when its commission is strictly above ``benchmark``; it
    is unallocated when its allocation status is not one of
    ``allocated_statuses``; it is incomplete when commission, broker identity
    or notional is missing.
    """
    total = len(records)
    overruns = 0
    unallocated = 0
    incomplete = 0
    for r in records:
        commission = numeric_value(r, COMMISSION_FIELDS)
        if commission > benchmark:
            overruns += 1
        if text_value(r, ALLOCATION_STATUS_FIELDS) not in allocated_statuses:
            unallocated += 1
        has_broker = text_value(r, IDENTITY_FIELDS) != UNKNOWN
        if commission <= 0 or not has_broker or numeric_value(r, NOTIONAL_FIELDS) <= 0:
            incomplete += 1

    pct_unallocated = _pct(unallocated, total)
    radar = [
        {"subject": "Cost Overruns", "value": _clip_pct(_pct(overruns, total)), "full_mark": 100},
        {"subject": "Unallocated", "value": _clip_pct(pct_unallocated), "full_mark": 100},
        {"subject": "Incomplete Data", "value": _clip_pct(_pct(incomplete, total)), "full_mark": 100},
    ]

    LOGGER.debug("KRIs: overruns=%d unallocated=%d incomplete=%d of %d", overruns, unallocated, incomplete, total)
    return KRIResult(
        expected_commission_fee_benchmark=benchmark,
        commission_cost_overruns=overruns,
        unallocated_costs=unallocated,
        percentage_unallocated_costs=pct_unallocated,
        missing_or_incomplete_data=incomplete,
        radar=radar,
        rate_outliers=_rate_outliers(records),
        currency_mismatches=_currency_mismatches(records),
        reconciliation=_reconciliation(records),
        volume_trend=_volume_trend(records),
    )
