from __future__ import annotations

import re
from types import MappingProxyType
from typing import Mapping, Tuple

_HEADER_NOISE = re.compile(r"[_\s-]")


def normalize_header(name: str) -> str:
    """Lower-case and drop underscores, hyphens and whitespace: ``"Notional_Amount"`` -> ``"notionalamount"``."""
    return _HEADER_NOISE.sub("", str(name).lower())


# Map canonical field -> ordered header synonyms tried by flexible matching.
# Order matters: the first synonym present in the upload wins. Entries cross
# the equity/FX boundary on purpose so equity-labelled data can fill FX fields
# and the other way round.
CROSS_TYPE_ALIASES: Mapping[str, Tuple[str, ...]] = MappingProxyType(
    {
        # identification
        "trade_id": ("tradeid", "trade_id", "id"),
        "order_id": ("orderid", "order_id"),
        "client_id": ("clientid", "client_id"),
        # amounts and values
        "trade_value": ("tradevalue", "trade_value", "notionalamount", "notional_amount", "amount", "value"),
        "notional_amount": ("notionalamount", "notional_amount", "tradevalue", "trade_value", "amount"),
        "price": ("price", "rate", "fxrate", "fx_rate"),
        "fx_rate": ("fxrate", "fx_rate", "rate", "price"),
        # currencies
        "currency": ("currency", "ccy", "dealtcurrency", "basecurrency", "termcurrency"),
        "base_currency": ("basecurrency", "base_currency", "currency", "ccy"),
        "term_currency": ("termcurrency", "term_currency", "currency", "ccy"),
        "dealt_currency": ("dealtcurrency", "dealt_currency", "currency", "ccy"),
        # dates
        "trade_date": ("tradedate", "trade_date", "date", "executiondate", "valuedate"),
        "value_date": ("valuedate", "value_date", "settlementdate", "settlement_date"),
        "settlement_date": ("settlementdate", "settlement_date", "valuedate", "value_date"),
        # counterparties and venues
        "counterparty": ("counterparty", "broker", "client", "party"),
        "trading_venue": ("tradingvenue", "trading_venue", "venue", "exchange", "executionvenue"),
        "execution_venue": ("executionvenue", "execution_venue", "tradingvenue", "trading_venue", "venue"),
        # fx
        "currency_pair": ("currencypair", "currency_pair", "pair", "symbol"),
        "buy_sell": ("buysell", "buy_sell", "side", "direction", "tradetype", "trade_type"),
        # equity
        "symbol": ("symbol", "ticker", "instrument", "isin", "currencypair"),
        "isin": ("isin", "symbol", "ticker", "instrument"),
        "quantity": ("quantity", "qty", "amount", "notionalamount", "volume"),
        # statuses
        "trade_status": ("tradestatus", "trade_status", "status"),
        "settlement_status": ("settlementstatus", "settlement_status", "status"),
        "confirmation_status": ("confirmationstatus", "confirmation_status", "status"),
        # fees and costs
        "commission": ("commission", "commissionamount", "commission_amount", "fee"),
        "commission_amount": ("commissionamount", "commission_amount", "commission", "fee"),
        "brokerage_fee": ("brokeragefee", "brokerage_fee", "brokerage", "fee", "commission"),
        "taxes": ("taxes", "tax", "fee"),
        "total_cost": ("totalcost", "total_cost", "cost", "amount"),
    }
)


def aliases_for(key: str, label: str) -> Tuple[str, ...]:
    """Synonyms for one field: its table entry (or the key itself), then its own label."""
    return CROSS_TYPE_ALIASES.get(key, (key,)) + (label,)
