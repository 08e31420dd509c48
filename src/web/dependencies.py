"""Shared dependencies for the Escrowise admin API routers."""

import logging

from src.reporting.dispatcher import ReportDispatcher
from src.reporting.generator import ReportGenerator
from src.reporting.service import report_dispatcher, report_generator

logger = logging.getLogger(__name__)


# --- Reporting ---
# Overridden in tests through app.dependency_overrides.

def get_report_generator() -> ReportGenerator:
    return report_generator


def get_report_dispatcher() -> ReportDispatcher:
    return report_dispatcher
