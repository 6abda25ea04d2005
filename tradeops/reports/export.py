from __future__ import annotations

import io
import zipfile
from typing import Any, Dict

import pandas as pd
from openpyxl.chart import BarChart, RadarChart, Reference

SHEETS = {
    "trades": "Trades",
    "summary": "Summary",
    "broker_expense": "BrokerExpense",
    "fees_over_time": "FeesOverTime",
    "kri": "KRI",
    "rate_outliers": "RateOutliers",
    "anomalies": "Anomalies",
}


def results_to_frames(results: Dict[str, Any]) -> Dict[str, pd.DataFrame]:
    """Flatten processed results (records, summary, kpis, kris, anomalies) into report tables."""
    kpis = results["kpis"]
    kris = results["kris"]
    summary = results["summary"]

    headline = [
        ("Total Trades", summary.total_trades),
        ("Settled Trades", summary.settled_trades),
        ("Settlement Success Rate (%)", summary.settlement_success_rate),
        ("Average Trade Value", summary.average_trade_value),
        ("Total Commission Fees", kpis.total_commission_fees),
        ("Avg Commission Fee per Trade", kpis.avg_commission_fee_per_trade),
        ("Total Brokerage Paid", kpis.total_brokerage_paid),
        ("Commission Cost as % of Notional", kpis.commission_cost_as_percent_of_trade_notional),
        ("Expected Commission Fee Benchmark", kris.expected_commission_fee_benchmark),
        ("Commission Cost Overruns", kris.commission_cost_overruns),
        ("Unallocated Costs", kris.unallocated_costs),
        ("Unallocated Costs (%)", kris.percentage_unallocated_costs),
        ("Missing or Incomplete Data", kris.missing_or_incomplete_data),
        ("Commission Rate Outliers", kris.rate_outlier_count),
    ]

    return {
        "trades": pd.DataFrame([r.to_dict() for r in results["records"]]),
        "summary": pd.DataFrame(headline, columns=["Metric", "Value"]),
        "broker_expense": pd.DataFrame(
            kpis.broker_expense,
            columns=["broker", "commission_fee", "brokerage_fee", "settlement_cost", "total_expense"],
        ),
        "fees_over_time": pd.DataFrame(kpis.fees_over_time),
        "kri": pd.DataFrame(kris.radar, columns=["subject", "value", "full_mark"]),
        "rate_outliers": pd.DataFrame(kris.rate_outliers, columns=["trade_id", "broker", "rate", "outlier"]),
        "anomalies": pd.DataFrame(
            [a.to_dict() for a in results["anomalies"]],
            columns=["type", "severity", "trade_id", "value", "threshold", "count", "description"],
        ),
    }


def dataframes_to_csv_bytes(results: Dict[str, Any]) -> bytes:
    frames = results_to_frames(results)
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, mode="w", compression=zipfile.ZIP_DEFLATED) as zf:
        for key, df in frames.items():
            zf.writestr(f"{key}.csv", df.to_csv(index=False))
    return buf.getvalue()


def dataframes_to_excel_bytes(results: Dict[str, Any]) -> bytes:
    frames = results_to_frames(results)
    buf = io.BytesIO()
    with pd.ExcelWriter(buf, engine="openpyxl") as writer:
        for key, sheet in SHEETS.items():
            frames[key].to_excel(writer, index=False, sheet_name=sheet)

        workbook = writer.book
        _add_broker_expense_chart(workbook, frames["broker_expense"])
        _add_fees_chart(workbook, frames["fees_over_time"])
        _add_kri_radar(workbook, frames["kri"])

    return buf.getvalue()


def _add_broker_expense_chart(workbook, expense_df: pd.DataFrame):
    """Stacked commission/brokerage/settlement bars per broker"""
    if expense_df.empty:
        return

    ws = workbook[SHEETS["broker_expense"]]
    num_rows = len(expense_df)

    chart = BarChart()
    chart.type = "col"
    chart.grouping = "stacked"
    chart.overlap = 100
    chart.style = 10
    chart.title = "Expense by Broker"
    chart.y_axis.title = "Expense"
    chart.x_axis.title = "Broker"

    # broker in col A, the three fee columns in B..D
    data = Reference(ws, min_col=2, min_row=1, max_row=num_rows + 1, max_col=4)
    cats = Reference(ws, min_col=1, min_row=2, max_row=num_rows + 1)
    chart.add_data(data, titles_from_data=True)
    chart.set_categories(cats)

    ws.add_chart(chart, f"A{num_rows + 4}")


def _add_fees_chart(workbook, fees_df: pd.DataFrame):
    if fees_df.empty:
        return

    ws = workbook[SHEETS["fees_over_time"]]
    num_rows = len(fees_df)

    chart = BarChart()
    chart.type = "col"
    chart.style = 11
    chart.title = "Fees over Time by Broker"
    chart.y_axis.title = "Fees"
    chart.x_axis.title = "Broker"

    # every column between broker and total_fees is a month series
    data = Reference(ws, min_col=2, min_row=1, max_row=num_rows + 1, max_col=len(fees_df.columns) - 1)
    cats = Reference(ws, min_col=1, min_row=2, max_row=num_rows + 1)
    chart.add_data(data, titles_from_data=True)
    chart.set_categories(cats)

    ws.add_chart(chart, f"A{num_rows + 4}")


def _add_kri_radar(workbook, kri_df: pd.DataFrame):
    if kri_df.empty:
        return

    ws = workbook[SHEETS["kri"]]
    num_rows = len(kri_df)

    radar = RadarChart()
    radar.type = "marker"
    radar.style = 26
    radar.title = "Key Risk Indicators (%)"

    data = Reference(ws, min_col=2, min_row=1, max_row=num_rows + 1, max_col=3)
    labels = Reference(ws, min_col=1, min_row=2, max_row=num_rows + 1)
    radar.add_data(data, titles_from_data=True)
    radar.set_categories(labels)
    radar.y_axis.delete = True

    ws.add_chart(radar, "E2")
