from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

from .. import config
from ..parsing.schema import EQUITY, FX
from .engine import RecordLike
from .normalizer import parse_numeric

LOGGER = logging.getLogger(__name__)

LARGE_TRADE = "Large Trade"
MISSING_DATA = "Missing Data"

DISPUTE_TYPES: Tuple[str, ...] = (
    "Overcharging",
    "Duplicate Charges",
    "Missing Trades",
    "Wrong Counterparty or Account",
    "Incorrect Tax Application",
    "Service Not Rendered",
    "Fail Charges Disputed",
    "Currency Conversion Error",
    "Wrong Rate Card Applied",
    "Incorrect Billing Period",
)
DISPUTE_RESIDUES = frozenset({3, 11})
DISPUTE_BATCH = 15
# Hash key for a trade without an id
UNNAMED_TRADE = "DEFAULT"

BILLING_AGENTS: Dict[str, Tuple[str, ...]] = {
    EQUITY: (
        "Barclays Capital",
        "Goldman Sachs Securities",
        "Morgan Stanley Capital",
        "JPMorgan Securities",
        "UBS Investment Bank",
    ),
    FX: (
        "Deutsche Bank AG",
        "Citibank N.A.",
        "HSBC Bank PLC",
        "BNP Paribas",
        "Credit Suisse AG",
    ),
}
WRONG_COUNTERPARTIES: Tuple[str, ...] = ("WRONG BANK LTD", "INCORRECT ENTITY", "MISMATCHED CORP", "WRONG ACCOUNT")

COST_KEYS: Tuple[str, ...] = ("commission", "taxes", "custody_fee", "settlement_cost", "brokerage_fee")

# Multiplicative perturbations, applied to a cost only when it is non-zero
_SCALE: Dict[str, Dict[str, float]] = {
    "Overcharging": {
        "commission": 1.35,
        "taxes": 1.25,
        "custody_fee": 1.45,
        "settlement_cost": 1.3,
        "brokerage_fee": 1.4,
    },
    "Currency Conversion Error": {k: 1.2 for k in COST_KEYS},
    "Wrong Rate Card Applied": {"commission": 1.75, "brokerage_fee": 1.65, "custody_fee": 1.55},
    "Incorrect Billing Period": {"commission": 1.3, "settlement_cost": 1.4},
}

# Flat charges added per trade type after scaling: {dispute: {data_type: (cost, amount)}}
_SURCHARGE: Dict[str, Dict[str, Tuple[str, float]]] = {
    "Missing Trades": {EQUITY: ("commission", 450.0), FX: ("brokerage_fee", 350.0)},
    "Incorrect Tax Application": {EQUITY: ("taxes", 500.0)},
    "Service Not Rendered": {EQUITY: ("commission", 300.0), FX: ("custody_fee", 750.0)},
    "Fail Charges Disputed": {EQUITY: ("commission", 200.0), FX: ("settlement_cost", 150.0)},
    "Incorrect Billing Period": {EQUITY: ("commission", 125.0), FX: ("brokerage_fee", 85.0)},
}


@dataclass
class Anomaly:
    type: str
    severity: str
    trade_id: Optional[str] = None
    value: Optional[float] = None
    threshold: Optional[float] = None
    count: Optional[int] = None
    description: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {k: v for k, v in self.__dict__.items() if v is not None}


@dataclass
class DisputeAnnotation:
    trade_id: str
    disputed: bool
    dispute_types: List[str] = field(default_factory=list)
    billing_agent: Optional[str] = None
    wrong_counterparty: Optional[str] = None
    actual_costs: Dict[str, Optional[float]] = field(default_factory=dict)
    billed_costs: Dict[str, Optional[float]] = field(default_factory=dict)

    @property
    def actual_total(self) -> float:
        return sum(v for v in self.actual_costs.values() if v)

    @property
    def billed_total(self) -> float:
        return sum(v for v in self.billed_costs.values() if v)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "trade_id": self.trade_id,
            "disputed": self.disputed,
            "dispute_types": list(self.dispute_types),
            "billing_agent": self.billing_agent,
            "wrong_counterparty": self.wrong_counterparty,
            "actual_costs": dict(self.actual_costs),
            "billed_costs": dict(self.billed_costs),
            "actual_total": self.actual_total,
            "billed_total": self.billed_total,
        }


# ---------------------------------------------------------------------------
# Anomalies
# ---------------------------------------------------------------------------


def _trade_value(record: RecordLike) -> float:
    return parse_numeric(record.get("trade_value") or record.get("notional_amount") or 0)


def detect_anomalies(
    records: Sequence[RecordLike], *, multiplier: float = config.LARGE_TRADE_MULTIPLIER
) -> List[Anomaly]:
    """Large trades against the batch mean plus one aggregate entry for incomplete trades."""
    anomalies: List[Anomaly] = []
    if not records:
        return anomalies

    values = [_trade_value(r) for r in records]
    threshold = sum(values) / len(values) * multiplier
    for record, value in zip(records, values):
        if value > threshold and value > 0:
            anomalies.append(
                Anomaly(
                    type=LARGE_TRADE,
                    severity="medium",
                    trade_id=record.get("trade_id"),
                    value=value,
                    threshold=threshold,
                )
            )

    missing = sum(
        1
        for r in records
        if not r.get("counterparty")
        or not r.get("trade_date")
        or (not r.get("trade_value") and not r.get("notional_amount"))
    )
    if missing:
        anomalies.append(
            Anomaly(
                type=MISSING_DATA,
                severity="high",
                count=missing,
                description="Trades with incomplete information detected",
            )
        )

    LOGGER.debug("Detected %d anomalies over %d records", len(anomalies), len(records))
    return anomalies


# ---------------------------------------------------------------------------
# Synthetic disputes
# ---------------------------------------------------------------------------


def char_code_hash(text: str) -> int:
    return sum(ord(ch) for ch in text)


def is_disputed(trade_id: str) -> bool:
    """Two positions out of every fifteen hash residues are disputed."""
    return char_code_hash(trade_id) % DISPUTE_BATCH in DISPUTE_RESIDUES


def dispute_types(trade_id: str) -> List[str]:
    if not is_disputed(trade_id):
        return []
    h = char_code_hash(trade_id)
    n = len(trade_id)
    picked = [DISPUTE_TYPES[abs(h * 7 + n * 13) % len(DISPUTE_TYPES)]]
    if h % 3 == 0:
        second = DISPUTE_TYPES[abs(h * 11 + n * 17) % len(DISPUTE_TYPES)]
        if second not in picked:
            picked.append(second)
    return picked


def billing_agent(trade_id: str, data_type: Optional[str]) -> str:
    """Equity trades bill through the equity desk; anything else through the FX desk."""
    pool = BILLING_AGENTS[EQUITY if data_type == EQUITY else FX]
    return pool[char_code_hash(trade_id) % len(pool)]


def actual_costs(record: RecordLike) -> Dict[str, Optional[float]]:
    def cost(*names: str) -> Optional[float]:
        for name in names:
            value = record.get(name)
            if value:
                return parse_numeric(value)
        return None

    if record.get("data_source") == FX:
        return {
            "commission": cost("commission_amount", "commission"),
            "taxes": None,
            "custody_fee": cost("custody_fee"),
            "settlement_cost": cost("settlement_cost"),
            "brokerage_fee": cost("brokerage_fee"),
        }
    return {
        "commission": cost("commission"),
        "taxes": cost("taxes"),
        "custody_fee": None,
        "settlement_cost": None,
        "brokerage_fee": None,
    }


def apply_dispute(costs: Dict[str, Optional[float]], dispute: str, data_type: str) -> Dict[str, Optional[float]]:
    """Return the costs an agent would bill for ``dispute``; ``costs`` is left untouched."""
    billed = dict(costs)
    for key, factor in _SCALE.get(dispute, {}).items():
        if billed.get(key):
            billed[key] *= factor

    if dispute == "Duplicate Charges":
        if billed.get("commission"):
            billed["commission"] *= 2
        elif billed.get("brokerage_fee"):
            billed["brokerage_fee"] *= 2
    elif dispute == "Wrong Counterparty or Account":
        if billed.get("commission"):
            billed["commission"] += 25
    elif dispute == "Incorrect Tax Application" and data_type == FX:
        billed["taxes"] = 275.0

    surcharge = _SURCHARGE.get(dispute, {}).get(data_type)
    if surcharge:
        key, amount = surcharge
        billed[key] = (billed.get(key) or 0.0) + amount
    return billed


def assign_dispute(record: RecordLike) -> DisputeAnnotation:
    trade_id = str(record.get("trade_id") or "")
    hash_key = trade_id or UNNAMED_TRADE
    data_type = FX if record.get("data_source") == FX else EQUITY
    costs = actual_costs(record)
    types = dispute_types(hash_key)

    billed = costs
    for dispute in types:
        billed = apply_dispute(billed, dispute, data_type)

    wrong = None
    if "Wrong Counterparty or Account" in types:
        wrong = WRONG_COUNTERPARTIES[char_code_hash(hash_key) % len(WRONG_COUNTERPARTIES)]

    return DisputeAnnotation(
        trade_id=trade_id,
        disputed=bool(types),
        dispute_types=types,
        billing_agent=billing_agent(hash_key, record.get("data_source")),
        wrong_counterparty=wrong,
        actual_costs=costs,
        billed_costs=billed,
    )


def annotate_disputes(records: Sequence[RecordLike]) -> List[DisputeAnnotation]:
    annotations = [assign_dispute(r) for r in records]
    LOGGER.debug("%d of %d trades carry a synthetic dispute", sum(a.disputed for a in annotations), len(annotations))
    return annotations
