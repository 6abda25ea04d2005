from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any, Optional, Sequence

from .schema import EQUITY, FX, FX_INDICATORS, normalize_data_type

LOGGER = logging.getLogger(__name__)


def header_row(rows: Sequence[Any]) -> Optional[Mapping]:
    """First row that is a header-keyed mapping; malformed leading rows are skipped."""
    return next((r for r in rows if isinstance(r, Mapping)), None)


def classify(rows: Sequence[Mapping[str, Any]]) -> str:
    """Guess ``"fx"`` or ``"equity"`` from the first row's headers.

    Any FX-only header (compared lower-cased, not otherwise normalized) makes
    the dataset FX. Unconventional FX headers fall through to equity; callers
    let the user override that.
    """
    first = header_row(rows)
    if first is None:
        return EQUITY
    headers = {str(h).lower() for h in first.keys()}
    return FX if headers & FX_INDICATORS else EQUITY


def resolve_data_type(rows: Sequence[Mapping[str, Any]], declared: Optional[str] = None) -> str:
    if declared:
        return normalize_data_type(declared)
    detected = classify(rows)
    LOGGER.debug("Detected data type %s from %d rows", detected, len(rows))
    return detected
