"""
Reporting Module - scheduled report generation and email delivery.
"""

from src.reporting.service import (
    generate_report,
    run_scheduled_reports,
    run_report_now,
    report_generator,
    report_dispatcher,
)

__all__ = [
    "generate_report",
    "run_scheduled_reports",
    "run_report_now",
    "report_generator",
    "report_dispatcher",
]
