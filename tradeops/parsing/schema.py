from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, FrozenSet, Tuple

EQUITY = "equity"
FX = "fx"
DATA_TYPES: Tuple[str, ...] = (EQUITY, FX)


@dataclass(frozen=True)
class CanonicalField:
    key: str
    label: str
    required: bool = False


# Labels are the exact column headers of the equity trade lifecycle export
EQUITY_FIELDS: Tuple[CanonicalField, ...] = (
    CanonicalField("trade_id", "Trade ID", True),
    CanonicalField("order_id", "Order ID"),
    CanonicalField("client_id", "Client ID", True),
    CanonicalField("isin", "ISIN"),
    CanonicalField("symbol", "Symbol", True),
    CanonicalField("trade_type", "Trade Type", True),
    CanonicalField("quantity", "Quantity", True),
    CanonicalField("price", "Price", True),
    CanonicalField("trade_value", "Trade Value"),
    CanonicalField("currency", "Currency"),
    CanonicalField("trade_date", "Trade Date"),
    CanonicalField("settlement_date", "Settlement Date"),
    CanonicalField("settlement_status", "Settlement Status"),
    CanonicalField("counterparty", "Counterparty"),
    CanonicalField("trading_venue", "Trading Venue"),
    CanonicalField("trader_name", "Trader Name"),
    CanonicalField("kyc_status", "KYC Status"),
    CanonicalField("reference_data_validated", "Reference Data Validated"),
    CanonicalField("commission", "Commission"),
    CanonicalField("taxes", "Taxes"),
    CanonicalField("total_cost", "Total Cost"),
    CanonicalField("confirmation_status", "Confirmation Status"),
    CanonicalField("country_of_trade", "Country of Trade"),
    CanonicalField("ops_team_notes", "Ops Team Notes"),
    CanonicalField("pricing_source", "Pricing Source"),
    CanonicalField("market_impact_cost", "Market Impact Cost"),
    CanonicalField("fx_rate_applied", "FX Rate Applied"),
    CanonicalField("net_amount", "Net Amount"),
    CanonicalField("collateral_required", "Collateral Required"),
    CanonicalField("margin_type", "Margin Type"),
    CanonicalField("margin_status", "Margin Status"),
)

# Labels are the exact column headers of the FX trade lifecycle export
FX_FIELDS: Tuple[CanonicalField, ...] = (
    # identification
    CanonicalField("trade_id", "TradeID", True),
    CanonicalField("trade_date", "TradeDate"),
    CanonicalField("value_date", "ValueDate"),
    CanonicalField("trade_time", "TradeTime"),
    CanonicalField("trader_id", "TraderID"),
    CanonicalField("counterparty", "Counterparty"),
    CanonicalField("portfolio", "Portfolio"),
    # currency and trade details
    CanonicalField("currency_pair", "CurrencyPair", True),
    CanonicalField("buy_sell", "BuySell", True),
    CanonicalField("dealt_currency", "DealtCurrency"),
    CanonicalField("base_currency", "BaseCurrency"),
    CanonicalField("term_currency", "TermCurrency"),
    CanonicalField("notional_amount", "NotionalAmount", True),
    CanonicalField("fx_rate", "FXRate", True),
    CanonicalField("product_type", "ProductType"),
    # status and processing
    CanonicalField("trade_status", "TradeStatus"),
    CanonicalField("settlement_status", "SettlementStatus"),
    CanonicalField("settlement_method", "SettlementMethod"),
    CanonicalField("trade_version", "TradeVersion"),
    CanonicalField("cancellation_flag", "CancellationFlag"),
    CanonicalField("amendment_flag", "AmendmentFlag"),
    CanonicalField("confirmation_status", "ConfirmationStatus"),
    CanonicalField("confirmation_method", "ConfirmationMethod"),
    CanonicalField("confirmation_timestamp", "ConfirmationTimestamp"),
    CanonicalField("settlement_date", "SettlementDate"),
    # execution and venue
    CanonicalField("broker", "Broker"),
    CanonicalField("execution_venue", "ExecutionVenue"),
    CanonicalField("booking_location", "BookingLocation"),
    CanonicalField("maturity_date", "MaturityDate"),
    # risk and compliance
    CanonicalField("risk_system_id", "RiskSystemID"),
    CanonicalField("regulatory_reporting_status", "RegulatoryReportingStatus"),
    CanonicalField("trade_compliance_status", "TradeComplianceStatus"),
    CanonicalField("kyc_check", "KYCCheck"),
    CanonicalField("sanctions_screening", "SanctionsScreening"),
    CanonicalField("netting_eligibility", "NettingEligibility"),
    CanonicalField("exception_flag", "ExceptionFlag"),
    CanonicalField("exception_notes", "ExceptionNotes"),
    CanonicalField("audit_trail_ref", "AuditTrailRef"),
    # operations and settlement
    CanonicalField("trade_source_system", "TradeSourceSystem"),
    CanonicalField("settlement_instructions", "SettlementInstructions"),
    CanonicalField("custodian", "Custodian"),
    CanonicalField("cost_booked_date", "CostBookedDate"),
    # fees and costs
    CanonicalField("commission_amount", "CommissionAmount"),
    CanonicalField("commission_currency", "CommissionCurrency"),
    CanonicalField("brokerage_fee", "BrokerageFee"),
    CanonicalField("brokerage_currency", "BrokerageCurrency"),
    CanonicalField("custody_fee", "CustodyFee"),
    CanonicalField("custody_currency", "CustodyCurrency"),
    CanonicalField("settlement_cost", "SettlementCost"),
    CanonicalField("settlement_currency", "SettlementCurrency"),
    CanonicalField("fx_gain_loss", "FXGainLoss"),
    CanonicalField("pnl_calculated", "PnlCalculated"),
    CanonicalField("cost_allocation_status", "CostAllocationStatus"),
    CanonicalField("cost_center", "CostCenter"),
    CanonicalField("expense_approval_status", "ExpenseApprovalStatus"),
)

FIELD_SETS: Dict[str, Tuple[CanonicalField, ...]] = {
    EQUITY: EQUITY_FIELDS,
    FX: FX_FIELDS,
}

NUMERIC_FIELDS: FrozenSet[str] = frozenset(
    {
        "quantity",
        "price",
        "trade_value",
        "commission",
        "taxes",
        "total_cost",
        "market_impact_cost",
        "fx_rate_applied",
        "net_amount",
        "collateral_required",
        "notional_amount",
        "fx_rate",
        "commission_amount",
        "brokerage_fee",
        "custody_fee",
        "settlement_cost",
        "fx_gain_loss",
        "pnl_calculated",
    }
)

DATE_FIELDS: FrozenSet[str] = frozenset(
    {"trade_date", "settlement_date", "maturity_date", "cost_booked_date", "value_date"}
)

# Lower-cased headers that only appear in FX exports
FX_INDICATORS: FrozenSet[str] = frozenset(
    {
        "tradeid",
        "currencypair",
        "buysell",
        "dealtcurrency",
        "basecurrency",
        "termcurrency",
        "notionalamount",
        "fxrate",
    }
)


def normalize_data_type(data_type: str) -> str:
    """Return ``"equity"`` or ``"fx"`` for a user-declared type, raising on anything else."""
    value = str(data_type).strip().lower()
    if value not in DATA_TYPES:
        raise ValueError(f"Unknown data type: {data_type!r}; expected one of {', '.join(DATA_TYPES)}")
    return value


def get_field_set(data_type: str) -> Tuple[CanonicalField, ...]:
    return FIELD_SETS[normalize_data_type(data_type)]
