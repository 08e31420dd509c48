"""Public service interface for the Reporting module.

Wires the generator and dispatcher to the application database and the
SendGrid email client. Tests build their own instances instead.
"""
from typing import Any, List, Mapping, Optional, Sequence

from src.core.database import async_session_factory
from src.core.notifications import email_client
from src.reporting.database import ScheduledReport
from src.reporting.dispatcher import ReportDispatcher, DispatchOutcome
from src.reporting.generator import ReportGenerator, ReportPayload

report_generator = ReportGenerator(async_session_factory)
report_dispatcher = ReportDispatcher(async_session_factory, report_generator, email_client)


async def generate_report(report_type: str, params: Optional[Mapping[str, Any]] = None) -> ReportPayload:
    return await report_generator.generate(report_type, params)


async def run_scheduled_reports(
    reports: Optional[Sequence[ScheduledReport]] = None,
) -> List[DispatchOutcome]:
    return await report_dispatcher.run_scheduled_reports(reports)


async def run_report_now(report_id: str) -> DispatchOutcome:
    return await report_dispatcher.run_report_now(report_id)
