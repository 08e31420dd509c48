"""Report generation: resolve a report type, run its query, wrap the result."""

import logging
from datetime import datetime
from typing import Any, Callable, Dict, List, Mapping, Optional, Union

from pydantic import BaseModel, Field
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.core.utils import utc_now
from src.reporting.exceptions import DataQueryFailure
from src.reporting.params import ReportParams
from src.reporting.registry import get_definition, parse_report_params
# Registers the built-in report types
import src.reporting.builtin_reports  # noqa: F401

logger = logging.getLogger(__name__)


class ReportPayload(BaseModel):
    """In-memory result of one report run, before rendering."""

    report_type: str
    report_name: str
    generated_at: datetime
    parameters: Dict[str, Any] = Field(default_factory=dict)
    total: int = 0
    columns: Optional[List[str]] = None
    data: Any = Field(default_factory=list)
    summary: Optional[Dict[str, Any]] = None
    daily_volume: Optional[Dict[str, float]] = None


class ReportGenerator:
    """
    Produces ReportPayloads for registered report types.

    The session factory is injected so the same generator runs against the
    application database or a test database.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        clock: Callable[[], datetime] = utc_now,
    ):
        self.session_factory = session_factory
        self.clock = clock

    async def generate(
        self,
        report_type: str,
        params: Union[ReportParams, Mapping[str, Any], None] = None,
    ) -> ReportPayload:
        """
        Generate a report.

        Raises:
            UnknownReportType: report_type is not registered (no query is made).
            InvalidReportParameters: params do not fit the report type.
            DataQueryFailure: the underlying query failed.
        """
        definition = get_definition(report_type)
        parsed = parse_report_params(report_type, params)

        try:
            async with self.session_factory() as session:
                result = await definition.handler(session, parsed)
        except (SQLAlchemyError, OSError) as e:
            logger.error(f"Error generating {report_type} report: {e}")
            raise DataQueryFailure(report_type, e) from e

        return ReportPayload(
            report_type=report_type,
            report_name=definition.report_name,
            generated_at=self.clock(),
            parameters=parsed.to_filters(),
            total=result.total,
            columns=result.columns or definition.columns,
            data=result.rows,
            summary=result.summary,
            daily_volume=result.daily_volume,
        )
