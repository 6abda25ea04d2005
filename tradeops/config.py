from __future__ import annotations

import os
from typing import FrozenSet, Tuple

# Rendering for every normalized date field
DATE_FORMAT = "%Y-%m-%d"

# T+2 for equities
EQUITY_SETTLEMENT_LAG_DAYS = 2

# Excel serial day of 1970-01-01
EXCEL_EPOCH_OFFSET_DAYS = 25569

# KRI constants. Tests pin these values.
COST_OVERRUN_BENCHMARK = 100.0
ALLOCATED_STATUSES: FrozenSet[str] = frozenset({"Completed", "Allocated", "Settled"})

RECONCILED_STATUSES: FrozenSet[str] = frozenset({"completed", "settled", "reconciled", "success"})
FAILED_STATUSES: FrozenSet[str] = frozenset({"failed", "error", "rejected"})
PENDING_STATUSES: FrozenSet[str] = frozenset({"pending", "processing", "in_progress"})

RATE_OUTLIER_HIGH = 1.0
RATE_OUTLIER_LOW = 0.01

# Daily trade counts outside [low, high] x mean are flagged
VOLUME_ANOMALY_HIGH = 2.0
VOLUME_ANOMALY_LOW = 0.5

# KPI breakdown sizes
TOP_BROKERS = 10
TOP_TREND_BROKERS = 8
TOP_BROKER_COUNTS = 8

# Calendar months compared in the fees-over-time trend (May, June)
TREND_MONTHS: Tuple[int, ...] = (5, 6)

LARGE_TRADE_MULTIPLIER = 3.0

# In-memory upload sessions
RESULT_TTL_SECONDS = 60 * 30
SAMPLE_ROWS = 5

LOG_LEVEL = os.environ.get("TRADEOPS_LOG_LEVEL", "INFO").upper()
