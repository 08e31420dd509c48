"""HTML email rendering for report payloads."""

import json
from datetime import datetime
from html import escape
from typing import Any, Dict, Iterable, List, Optional

from src.core.config import settings
from src.reporting.generator import ReportPayload

_CELL_STYLE = "border: 1px solid #ddd; padding: 8px; text-align: left;"
_HEADER_STYLE = _CELL_STYLE + " background: #f7fafc; font-weight: 600;"

SUMMARY_LABELS = {
    "total_transactions": "Total Transactions",
    "total_volume": "Total Volume",
    "completed_transactions": "Completed",
    "pending_transactions": "Pending",
    "failed_transactions": "Failed",
    "average_transaction_value": "Average Value",
}


def resolve_columns(rows: Iterable[Dict[str, Any]], declared: Optional[List[str]] = None) -> List[str]:
    """
    Column headers for a list of row dicts.

    Declared columns win. Otherwise the union of keys over every row in
    first-seen order, which for rows sharing one shape is the first row's keys.
    """
    if declared:
        return list(declared)
    columns: Dict[str, None] = {}
    for row in rows:
        for key in row:
            columns.setdefault(key, None)
    return list(columns)


def format_value(value: Any) -> str:
    """Plain text for one table cell. None renders empty."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "Yes" if value else "No"
    if isinstance(value, float):
        return f"{value:,.2f}"
    if isinstance(value, datetime):
        return value.strftime("%Y-%m-%d %H:%M:%S")
    if isinstance(value, (dict, list)):
        return json.dumps(value, default=str, separators=(", ", ": "))
    return str(value)


class HTMLReportRenderer:
    """Render a ReportPayload as an email-safe HTML fragment (inline styles only)."""

    def render(self, payload: ReportPayload) -> str:
        sections = [
            f'<h2 style="margin: 0 0 4px;">{escape(payload.report_name)}</h2>',
            f'<p style="color: #718096; margin: 0;">Generated on: '
            f'{payload.generated_at.strftime("%Y-%m-%d %H:%M:%S")} UTC</p>',
        ]
        if payload.parameters:
            sections.append(self._render_parameters(payload.parameters))
        if payload.summary:
            sections.append(self._render_summary(payload.summary))
        if payload.daily_volume:
            sections.append(self._render_daily_volume(payload.daily_volume))
        sections.append(f'<div style="margin-top: 20px;">{self._render_data(payload)}</div>')

        body = "\n".join(sections)
        return f'<div style="font-family: Arial, sans-serif;">\n{body}\n</div>'

    def _render_parameters(self, parameters: Dict[str, Any]) -> str:
        chips = "".join(
            f'<span style="background: #edf2f7; padding: 4px 10px; border-radius: 6px; '
            f'margin-right: 6px; font-size: 12px;"><strong>{escape(str(key))}:</strong> '
            f'{escape(format_value(value))}</span>'
            for key, value in parameters.items()
        )
        return f'<p style="margin: 12px 0;">{chips}</p>'

    def _render_summary(self, summary: Dict[str, Any]) -> str:
        cells = []
        for key, label in SUMMARY_LABELS.items():
            if key in summary:
                cells.append(
                    f'<td style="{_CELL_STYLE}"><div style="font-size: 12px; color: #718096;">'
                    f'{label}</div><div style="font-size: 20px; font-weight: bold;">'
                    f'{escape(format_value(summary[key]))}</div></td>'
                )
        html = f'<table style="border-collapse: collapse; margin-top: 16px;"><tr>{"".join(cells)}</tr></table>'

        status_counts = summary.get("status_counts") or {}
        if status_counts:
            html += self._render_table(
                [{"status": status, "count": count} for status, count in status_counts.items()],
                ["status", "count"],
            )
        return html

    def _render_daily_volume(self, daily_volume: Dict[str, float]) -> str:
        rows = [{"date": day, "volume": volume} for day, volume in daily_volume.items()]
        return '<h3 style="margin: 20px 0 8px;">Daily Volume</h3>' + self._render_table(rows, ["date", "volume"])

    def _render_data(self, payload: ReportPayload) -> str:
        data = payload.data
        if isinstance(data, list):
            if not data:
                return '<p style="color: #718096;">No records matched this report.</p>'
            if all(isinstance(row, dict) for row in data):
                return self._render_table(data, resolve_columns(data, payload.columns))
        return f"<pre>{escape(json.dumps(data, default=str, indent=2))}</pre>"

    def _render_table(self, rows: List[Dict[str, Any]], columns: List[str]) -> str:
        header = "".join(f'<th style="{_HEADER_STYLE}">{escape(str(col))}</th>' for col in columns)
        body = "".join(
            "<tr>" + "".join(
                f'<td style="{_CELL_STYLE}">{escape(format_value(row.get(col)))}</td>'
                for col in columns
            ) + "</tr>"
            for row in rows
        )
        return (
            '<table style="border-collapse: collapse; width: 100%; margin-top: 8px;">'
            f"<thead><tr>{header}</tr></thead><tbody>{body}</tbody></table>"
        )


_renderer = HTMLReportRenderer()


def render_report_html(payload: ReportPayload) -> str:
    return _renderer.render(payload)


def render_subject(report_type: str) -> str:
    return f"{settings.report_subject_prefix}: {report_type}"
