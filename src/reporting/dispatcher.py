"""
Scheduled report dispatcher.

Selects due reports, generates and emails each one, then moves its
next_run_at forward. Reports are processed one at a time and each runs in
its own try block: a failing report is logged and left due (its
next_run_at is not advanced), so the next poll retries it.

Overlapping invocations (several app workers, a poll racing a manual run)
are kept apart by a lease on the row: a dispatcher only works on a report
after a conditional UPDATE sets ``locked_until`` on a row that had no live
lease. The lease never touches last_run_at / next_run_at.

The report timeout bounds generation and rendering only. Once the email
has been handed to the notifier the send is awaited to completion.
"""

import asyncio
import logging
from dataclasses import dataclass, asdict
from datetime import datetime, timedelta
from typing import Callable, List, Optional, Protocol, Sequence, Union

from sqlalchemy import select, update, or_, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.core.config import settings
from src.core.database import get_async_db
from src.core.utils import utc_now
from src.reporting.database import ScheduledReport
from src.reporting.exceptions import (
    ReportingError,
    ReportNotFound,
    ReportAlreadyRunning,
    ReportTimeout,
    InvalidSchedule,
    DataQueryFailure,
    NotifierFailure,
)
from src.reporting.generator import ReportGenerator
from src.reporting.renderer import render_report_html, render_subject
from src.reporting.schedule import compute_next_run

logger = logging.getLogger(__name__)


class Notifier(Protocol):
    async def send(self, to: Union[str, List[str]], subject: str, html: str) -> None:
        ...


@dataclass
class DispatchOutcome:
    """Result of one report's attempt within a dispatcher run."""
    report_id: str
    report_type: str
    status: str  # "sent", "failed" or "skipped"
    error: Optional[str] = None
    next_run_at: Optional[datetime] = None

    def to_dict(self):
        data = asdict(self)
        if self.next_run_at:
            data["next_run_at"] = self.next_run_at.isoformat()
        return data


def _recipient_list(recipients) -> List[str]:
    if not recipients:
        return []
    if isinstance(recipients, str):
        recipients = recipients.split(",")
    return [r.strip() for r in recipients if isinstance(r, str) and r.strip()]


class ReportDispatcher:
    """Runs scheduled reports. Store, generator, notifier and clock are all injected."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        generator: ReportGenerator,
        notifier: Notifier,
        clock: Callable[[], datetime] = utc_now,
        timeout_seconds: Optional[float] = None,
        lock_seconds: Optional[int] = None,
        max_failures: Optional[int] = None,
    ):
        self.session_factory = session_factory
        self.generator = generator
        self.notifier = notifier
        self.clock = clock
        self.timeout_seconds = settings.report_timeout_seconds if timeout_seconds is None else timeout_seconds
        self.lock_seconds = settings.report_lock_seconds if lock_seconds is None else lock_seconds
        self.max_failures = settings.report_max_failures if max_failures is None else max_failures

    # ──── Public entry points ────

    async def run_scheduled_reports(
        self, reports: Optional[Sequence[ScheduledReport]] = None
    ) -> List[DispatchOutcome]:
        """
        Dispatch reports and return one outcome per attempted report.

        With ``reports=None`` the active reports whose next_run_at has passed
        are fetched. An explicit list is processed as given, active or not,
        due or not. Never raises for a single report's failure.
        """
        now = self.clock()
        polling = reports is None
        if polling:
            try:
                reports = await self.fetch_due_reports(now)
            except SQLAlchemyError as e:
                logger.error(f"Failed to fetch due reports: {e}", exc_info=True)
                return []

        return await self._run_batch(reports, now, require_due=polling, raise_errors=False)

    async def run_report_now(self, report_id: str) -> DispatchOutcome:
        """
        Run one scheduled report immediately, ignoring is_active and next_run_at.

        Raises ReportNotFound, ReportAlreadyRunning, or the ReportingError that stopped
        the run (after the failure has been recorded on the row). Store errors
        surface as DataQueryFailure, anything else as a plain ReportingError.
        """
        report = await self.get_report(report_id)
        outcomes = await self._run_batch([report], self.clock(), require_due=False, raise_errors=True)
        return outcomes[0]

    async def fetch_due_reports(self, now: datetime) -> List[ScheduledReport]:
        async with self.session_factory() as session:
            stmt = (
                select(ScheduledReport)
                .where(
                    ScheduledReport.is_active == True,
                    ScheduledReport.next_run_at <= now,
                )
                .order_by(ScheduledReport.next_run_at)
            )
            result = await session.execute(stmt)
            return list(result.scalars().all())

    async def get_report(self, report_id: str) -> ScheduledReport:
        try:
            async with self.session_factory() as session:
                result = await session.execute(
                    select(ScheduledReport).where(ScheduledReport.id == report_id)
                )
                report = result.scalar_one_or_none()
        except SQLAlchemyError as e:
            raise DataQueryFailure("scheduled_report", e) from e
        if report is None:
            raise ReportNotFound(report_id)
        return report

    # ──── Per-report iteration ────

    async def _run_batch(
        self,
        reports: Sequence[ScheduledReport],
        now: datetime,
        require_due: bool,
        raise_errors: bool,
    ) -> List[DispatchOutcome]:
        if reports:
            logger.info(f"Dispatching {len(reports)} scheduled report(s)")

        outcomes = []
        for report in reports:
            outcomes.append(await self._dispatch(report, now, require_due, raise_errors))

        if outcomes:
            sent = sum(1 for o in outcomes if o.status == "sent")
            failed = sum(1 for o in outcomes if o.status == "failed")
            skipped = len(outcomes) - sent - failed
            logger.info(f"Scheduled report run complete: {sent} sent, {failed} failed, {skipped} skipped")
        return outcomes

    async def _dispatch(
        self,
        report: ScheduledReport,
        now: datetime,
        require_due: bool,
        raise_errors: bool,
    ) -> DispatchOutcome:
        try:
            claimed = await self._claim(report, now, require_due)
        except SQLAlchemyError as e:
            logger.error(f"Failed to claim report {report.id}: {e}", exc_info=True)
            if raise_errors:
                raise DataQueryFailure(report.report_type, e) from e
            return DispatchOutcome(report.id, report.report_type, "failed", error=str(e))

        if not claimed:
            logger.info(f"Report {report.id} skipped: claimed by another dispatcher or no longer due")
            if raise_errors:
                raise ReportAlreadyRunning(report.id)
            return DispatchOutcome(report.id, report.report_type, "skipped")

        try:
            recipients = _recipient_list(report.recipients)
            if not recipients:
                raise InvalidSchedule(report.id, "no recipients")
            try:
                next_run = compute_next_run(report.frequency, now)
            except ValueError:
                raise InvalidSchedule(report.id, f"unknown frequency {report.frequency!r}")

            html = await self._generate_and_render(report)
            await self._send(report, recipients, html)
            await self._mark_success(report, now, next_run)
        except Exception as e:
            logger.error(f"Failed to run report {report.id} ({report.report_type}): {e}", exc_info=True)
            await self._mark_failure(report, e)
            if raise_errors:
                if isinstance(e, ReportingError):
                    raise
                if isinstance(e, SQLAlchemyError):
                    raise DataQueryFailure(report.report_type, e) from e
                raise ReportingError(f"Report {report.id} failed: {e}") from e
            return DispatchOutcome(report.id, report.report_type, "failed", error=str(e))

        logger.info(
            f"Report {report.id} ({report.report_type}) sent to {len(recipients)} recipient(s), "
            f"next run {next_run.isoformat()}"
        )
        return DispatchOutcome(report.id, report.report_type, "sent", next_run_at=next_run)

    async def _generate_and_render(self, report: ScheduledReport) -> str:
        """Build the email body, bounded by the report timeout. The send is not covered by it."""
        if not self.timeout_seconds:
            return await self._render(report)
        try:
            return await asyncio.wait_for(self._render(report), timeout=self.timeout_seconds)
        except asyncio.TimeoutError:
            raise ReportTimeout(report.id, self.timeout_seconds)

    async def _render(self, report: ScheduledReport) -> str:
        payload = await self.generator.generate(report.report_type, report.parameters)
        return render_report_html(payload)

    async def _send(self, report: ScheduledReport, recipients: List[str], html: str) -> None:
        # Not covered by the report timeout; the email client bounds its own HTTP call.
        try:
            await self.notifier.send(recipients, render_subject(report.report_type), html)
        except ReportingError:
            raise
        except Exception as e:
            raise NotifierFailure(report.id, e) from e

    # ──── Row bookkeeping ────

    async def _claim(self, report: ScheduledReport, now: datetime, require_due: bool) -> bool:
        claim_time = self.clock()
        stmt = (
            update(ScheduledReport)
            .where(
                ScheduledReport.id == report.id,
                or_(
                    ScheduledReport.locked_until.is_(None),
                    ScheduledReport.locked_until <= claim_time,
                ),
            )
            .values(locked_until=claim_time + timedelta(seconds=self.lock_seconds))
            .execution_options(synchronize_session=False)
        )
        if require_due:
            stmt = stmt.where(
                ScheduledReport.is_active == True,
                ScheduledReport.next_run_at <= now,
            )

        async with get_async_db(self.session_factory) as session:
            result = await session.execute(stmt)
        return result.rowcount == 1

    async def _mark_success(self, report: ScheduledReport, now: datetime, next_run: datetime) -> None:
        async with get_async_db(self.session_factory) as session:
            await session.execute(
                update(ScheduledReport)
                .where(ScheduledReport.id == report.id)
                .values(
                    last_run_at=now,
                    next_run_at=next_run,
                    locked_until=None,
                    failure_count=0,
                    last_error=None,
                )
                .execution_options(synchronize_session=False)
            )

    async def _mark_failure(self, report: ScheduledReport, error: Exception) -> None:
        """Release the lease and count the failure. last_run_at / next_run_at stay as they were."""
        try:
            async with get_async_db(self.session_factory) as session:
                await session.execute(
                    update(ScheduledReport)
                    .where(ScheduledReport.id == report.id)
                    .values(
                        locked_until=None,
                        failure_count=func.coalesce(ScheduledReport.failure_count, 0) + 1,
                        last_error=str(error)[:1000],
                    )
                    .execution_options(synchronize_session=False)
                )
                if self.max_failures:
                    result = await session.execute(
                        select(ScheduledReport.failure_count).where(ScheduledReport.id == report.id)
                    )
                    failures = result.scalar() or 0
                    if failures >= self.max_failures:
                        await session.execute(
                            update(ScheduledReport)
                            .where(ScheduledReport.id == report.id)
                            .values(is_active=False)
                            .execution_options(synchronize_session=False)
                        )
                        logger.warning(
                            f"Report {report.id} deactivated after {failures} consecutive failures"
                        )
        except SQLAlchemyError as e:
            logger.error(f"Failed to record failure for report {report.id}: {e}", exc_info=True)
