from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence

import pandas as pd

from .. import config
from .classifier import header_row

PREFERRED_SHEETS = ("Trades", "Transactions")


@dataclass
class RowAnalysis:
    headers: List[str]
    row_count: int
    sample: List[Dict[str, Any]] = field(default_factory=list)


def _unique_headers(columns: Sequence[Any]) -> List[str]:
    """Trimmed header names; a name that collides after trimming gets a ".n" suffix, as pandas does for repeats."""
    seen: Dict[str, int] = {}
    out = []
    for column in columns:
        name = base = str(column).strip()
        while name in seen:
            seen[base] += 1
            name = f"{base}.{seen[base]}"
        seen[name] = 0
        out.append(name)
    return out


def _frame_to_rows(df: pd.DataFrame) -> List[Dict[str, Any]]:
    df = df.dropna(how="all")
    df.columns = _unique_headers(df.columns)
    df = df.astype(object).where(df.notna(), None)
    return df.to_dict(orient="records")


def read_rows(fobj: Any, filename: Optional[str] = None) -> List[Dict[str, Any]]:
    """Read a CSV or Excel upload into header-keyed rows; blank cells become None.

    Cells keep the value the file holds: CSV cells stay strings and Excel cells
    keep their own type, so identifiers such as "007" are never reinterpreted.
    """
    if filename and filename.lower().endswith(".csv"):
        return _frame_to_rows(pd.read_csv(fobj, dtype=str))

    xls = pd.ExcelFile(fobj)
    sheet = next((s for s in PREFERRED_SHEETS if s in xls.sheet_names), xls.sheet_names[0])
    return _frame_to_rows(xls.parse(sheet, dtype=object))


def analyze_rows(rows: Sequence[Mapping[str, Any]]) -> RowAnalysis:
    first = header_row(rows)
    if first is None:
        return RowAnalysis(headers=[], row_count=len(rows))
    return RowAnalysis(
        headers=[str(h) for h in first.keys()],
        row_count=len(rows),
        sample=[dict(r) for r in rows[: config.SAMPLE_ROWS]],
    )
