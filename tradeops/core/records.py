from __future__ import annotations

from dataclasses import dataclass, field, fields
from typing import Any, Dict, FrozenSet, Optional


@dataclass(frozen=True)
class TradeRecord:
    """One normalized equity or FX trade.

    Canonical columns of both field sets are optional attributes. Anything
    else a mapping or upload carries lives in ``extras``.
    """

    data_source: str
    trade_id: str
    trade_date: str
    settlement_date: str

    # common
    order_id: Optional[str] = None
    client_id: Optional[str] = None
    trade_type: Optional[str] = None
    settlement_status: Optional[str] = None
    counterparty: Optional[str] = None
    trading_venue: Optional[str] = None
    confirmation_status: Optional[str] = None
    commission: Optional[float] = None
    taxes: Optional[float] = None
    total_cost: Optional[float] = None

    # equity
    isin: Optional[str] = None
    symbol: Optional[str] = None
    quantity: Optional[float] = None
    price: Optional[float] = None
    trade_value: Optional[float] = None
    currency: Optional[str] = None
    trader_name: Optional[str] = None
    kyc_status: Optional[str] = None
    reference_data_validated: Optional[str] = None
    country_of_trade: Optional[str] = None
    ops_team_notes: Optional[str] = None
    pricing_source: Optional[str] = None
    market_impact_cost: Optional[float] = None
    fx_rate_applied: Optional[float] = None
    net_amount: Optional[float] = None
    collateral_required: Optional[float] = None
    margin_type: Optional[str] = None
    margin_status: Optional[str] = None

    # fx
    value_date: Optional[str] = None
    trade_time: Optional[str] = None
    trader_id: Optional[str] = None
    portfolio: Optional[str] = None
    currency_pair: Optional[str] = None
    buy_sell: Optional[str] = None
    dealt_currency: Optional[str] = None
    base_currency: Optional[str] = None
    term_currency: Optional[str] = None
    notional_amount: Optional[float] = None
    fx_rate: Optional[float] = None
    product_type: Optional[str] = None
    trade_status: Optional[str] = None
    settlement_method: Optional[str] = None
    trade_version: Optional[str] = None
    cancellation_flag: Optional[str] = None
    amendment_flag: Optional[str] = None
    confirmation_method: Optional[str] = None
    confirmation_timestamp: Optional[str] = None
    broker: Optional[str] = None
    execution_venue: Optional[str] = None
    booking_location: Optional[str] = None
    maturity_date: Optional[str] = None
    risk_system_id: Optional[str] = None
    regulatory_reporting_status: Optional[str] = None
    trade_compliance_status: Optional[str] = None
    kyc_check: Optional[str] = None
    sanctions_screening: Optional[str] = None
    netting_eligibility: Optional[str] = None
    exception_flag: Optional[str] = None
    exception_notes: Optional[str] = None
    audit_trail_ref: Optional[str] = None
    trade_source_system: Optional[str] = None
    settlement_instructions: Optional[str] = None
    custodian: Optional[str] = None
    cost_booked_date: Optional[str] = None
    commission_amount: Optional[float] = None
    commission_currency: Optional[str] = None
    brokerage_fee: Optional[float] = None
    brokerage_currency: Optional[str] = None
    custody_fee: Optional[float] = None
    custody_currency: Optional[str] = None
    settlement_cost: Optional[float] = None
    settlement_currency: Optional[str] = None
    fx_gain_loss: Optional[float] = None
    pnl_calculated: Optional[float] = None
    cost_allocation_status: Optional[str] = None
    cost_center: Optional[str] = None
    expense_approval_status: Optional[str] = None

    extras: Dict[str, Any] = field(default_factory=dict)

    def get(self, name: str, default: Any = None) -> Any:
        if name in RECORD_FIELDS:
            value = getattr(self, name)
            return default if value is None else value
        return self.extras.get(name, default)

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {}
        for f in fields(self):
            if f.name == "extras":
                continue
            value = getattr(self, f.name)
            if value is not None:
                out[f.name] = value
        for k, v in self.extras.items():
            out.setdefault(k, v)
        return out


RECORD_FIELDS: FrozenSet[str] = frozenset(f.name for f in fields(TradeRecord) if f.name != "extras")
