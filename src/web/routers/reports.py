"""Reports router — scheduled report management, on-demand runs, and ad-hoc generation."""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Union

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import HTMLResponse
from pydantic import BaseModel, Field, field_validator
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.audit.service import log_action
from src.core.database import get_db
from src.core.schemas import StandardResponse
from src.core.utils import utc_now, to_naive_utc
from src.reporting.database import ScheduledReport, ReportFrequency
from src.reporting.dispatcher import ReportDispatcher
from src.reporting.exceptions import (
    ReportingError,
    UnknownReportType,
    InvalidReportParameters,
    ReportNotFound,
    ReportAlreadyRunning,
    InvalidSchedule,
    ReportTimeout,
    DataQueryFailure,
    NotifierFailure,
)
from src.reporting.generator import ReportGenerator
from src.reporting.registry import parse_report_params
from src.reporting.renderer import render_report_html
from src.reporting.schedule import compute_next_run
from src.web.dependencies import get_report_dispatcher, get_report_generator

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/admin/reports",
    tags=["Reporting"]
)

ENTITY_TYPE = "scheduled_report"


# --- Schemas ---

def _split_recipients(value: Union[str, List[str], None]) -> Optional[List[str]]:
    if value is None:
        return None
    if isinstance(value, str):
        value = value.split(",")
    recipients = [r.strip() for r in value if r and r.strip()]
    if not recipients:
        raise ValueError("at least one recipient is required")
    for r in recipients:
        if "@" not in r:
            raise ValueError(f"invalid email address: {r}")
    return recipients


class ScheduledReportCreate(BaseModel):
    report_type: str
    parameters: Dict[str, Any] = Field(default_factory=dict)
    recipients: Union[List[str], str]
    frequency: ReportFrequency
    is_active: bool = True
    next_run_at: Optional[datetime] = None
    created_by: Optional[str] = None

    @field_validator("recipients")
    @classmethod
    def validate_recipients(cls, v):
        return _split_recipients(v)


class ScheduledReportUpdate(BaseModel):
    report_type: Optional[str] = None
    parameters: Optional[Dict[str, Any]] = None
    recipients: Optional[Union[List[str], str]] = None
    frequency: Optional[ReportFrequency] = None
    is_active: Optional[bool] = None
    next_run_at: Optional[datetime] = None

    @field_validator("recipients")
    @classmethod
    def validate_recipients(cls, v):
        return _split_recipients(v)


class GenerateReportRequest(BaseModel):
    report_type: str
    parameters: Dict[str, Any] = Field(default_factory=dict)


# --- Helpers ---

def _http_error(e: ReportingError) -> HTTPException:
    """Map a reporting error onto the HTTP status the admin UI expects."""
    if isinstance(e, UnknownReportType):
        return HTTPException(status_code=400, detail=str(e))
    if isinstance(e, InvalidReportParameters):
        return HTTPException(status_code=422, detail={"message": str(e), "errors": e.errors})
    if isinstance(e, InvalidSchedule):
        return HTTPException(status_code=400, detail=str(e))
    if isinstance(e, ReportNotFound):
        return HTTPException(status_code=404, detail=str(e))
    if isinstance(e, ReportAlreadyRunning):
        return HTTPException(status_code=409, detail=str(e))
    if isinstance(e, ReportTimeout):
        return HTTPException(status_code=504, detail=str(e))
    if isinstance(e, (DataQueryFailure, NotifierFailure)):
        return HTTPException(status_code=502, detail=str(e))
    return HTTPException(status_code=500, detail=str(e))


def _normalized_parameters(report_type: str, parameters: Dict[str, Any]) -> Dict[str, Any]:
    try:
        return parse_report_params(report_type, parameters).to_filters()
    except ReportingError as e:
        raise _http_error(e)


def _client_info(request: Request) -> Dict[str, Optional[str]]:
    return {
        "ip_address": request.client.host if request.client else None,
        "user_agent": request.headers.get("user-agent"),
    }


async def _get_or_404(session: AsyncSession, report_id: str) -> ScheduledReport:
    result = await session.execute(select(ScheduledReport).where(ScheduledReport.id == report_id))
    report = result.scalar_one_or_none()
    if report is None:
        raise HTTPException(status_code=404, detail=f"Scheduled report not found: {report_id}")
    return report


# --- Scheduled reports ---

@router.get("/scheduled", response_model=StandardResponse[list], summary="List Scheduled Reports")
async def list_scheduled_reports(
    active_only: bool = False,
    session: AsyncSession = Depends(get_db),
):
    """All scheduled reports, soonest next run first."""
    stmt = select(ScheduledReport).order_by(ScheduledReport.next_run_at)
    if active_only:
        stmt = stmt.where(ScheduledReport.is_active == True)
    result = await session.execute(stmt)
    return StandardResponse(data=[r.to_dict() for r in result.scalars().all()])


@router.post(
    "/scheduled",
    response_model=StandardResponse[dict],
    status_code=201,
    summary="Create Scheduled Report",
)
async def create_scheduled_report(
    body: ScheduledReportCreate,
    request: Request,
    session: AsyncSession = Depends(get_db),
):
    """
    Create a scheduled report.

    The report type and parameters are validated up front so a bad schedule
    is rejected here instead of failing on every dispatcher poll. Without an
    explicit next_run_at the first run is one period from now.
    """
    parameters = _normalized_parameters(body.report_type, body.parameters)
    now = utc_now()

    report = ScheduledReport(
        report_type=body.report_type,
        parameters=parameters,
        recipients=body.recipients,
        frequency=body.frequency.value,
        is_active=body.is_active,
        next_run_at=to_naive_utc(body.next_run_at) if body.next_run_at else compute_next_run(body.frequency, now),
        created_by=body.created_by,
        created_at=now,
    )
    session.add(report)
    await session.flush()
    await session.refresh(report)

    log_action(
        session, "create", ENTITY_TYPE, report.id,
        new_value=report.to_dict(), performed_by=body.created_by, **_client_info(request),
    )
    await session.commit()
    logger.info(f"Scheduled report {report.id} created ({report.report_type}, {report.frequency})")
    return StandardResponse(data=report.to_dict(), message="Scheduled report created")


@router.put("/scheduled/{report_id}", response_model=StandardResponse[dict], summary="Update Scheduled Report")
async def update_scheduled_report(
    report_id: str,
    body: ScheduledReportUpdate,
    request: Request,
    session: AsyncSession = Depends(get_db),
):
    """Partial update. Re-activating a report clears its failure count."""
    report = await _get_or_404(session, report_id)
    old_value = report.to_dict()
    changes = body.model_dump(exclude_unset=True)

    if "report_type" in changes or "parameters" in changes:
        report_type = changes.get("report_type") or report.report_type
        parameters = changes["parameters"] if changes.get("parameters") is not None else report.parameters
        changes["report_type"] = report_type
        changes["parameters"] = _normalized_parameters(report_type, parameters or {})

    for field in ("recipients", "frequency", "is_active", "next_run_at"):
        if field in changes and changes[field] is None:
            raise HTTPException(status_code=422, detail=f"{field} cannot be null")

    if "frequency" in changes:
        changes["frequency"] = ReportFrequency(changes["frequency"]).value
    if "next_run_at" in changes:
        changes["next_run_at"] = to_naive_utc(changes["next_run_at"])
    if changes.get("is_active") and not report.is_active:
        changes["failure_count"] = 0
        changes["last_error"] = None

    for key, value in changes.items():
        setattr(report, key, value)
    report.updated_at = utc_now()
    await session.flush()
    await session.refresh(report)

    log_action(
        session, "update", ENTITY_TYPE, report.id,
        old_value=old_value, new_value=report.to_dict(), **_client_info(request),
    )
    await session.commit()
    return StandardResponse(data=report.to_dict(), message="Scheduled report updated")


@router.delete("/scheduled/{report_id}", response_model=StandardResponse[dict], summary="Delete Scheduled Report")
async def delete_scheduled_report(
    report_id: str,
    request: Request,
    session: AsyncSession = Depends(get_db),
):
    report = await _get_or_404(session, report_id)
    old_value = report.to_dict()
    await session.delete(report)

    log_action(session, "delete", ENTITY_TYPE, report_id, old_value=old_value, **_client_info(request))
    await session.commit()
    logger.info(f"Scheduled report {report_id} deleted")
    return StandardResponse(data={"id": report_id, "deleted": True})


@router.post("/scheduled/{report_id}/run", response_model=StandardResponse[dict], summary="Run Scheduled Report Now")
async def run_scheduled_report(
    report_id: str,
    request: Request,
    session: AsyncSession = Depends(get_db),
    dispatcher: ReportDispatcher = Depends(get_report_dispatcher),
):
    """
    Generate and send one scheduled report immediately.

    Runs even when the report is inactive or not yet due. On success the
    report is rescheduled from now; on failure the error is returned and the
    schedule is left as it was.
    """
    try:
        outcome = await dispatcher.run_report_now(report_id)
    except ReportNotFound as e:
        raise _http_error(e)
    except ReportingError as e:
        log_action(
            session, "run", ENTITY_TYPE, report_id,
            new_value={"status": "failed", "error": str(e)}, **_client_info(request),
        )
        await session.commit()
        raise _http_error(e)

    log_action(session, "run", ENTITY_TYPE, report_id, new_value=outcome.to_dict(), **_client_info(request))
    await session.commit()
    return StandardResponse(data=outcome.to_dict(), message="Report sent")


# --- Ad-hoc generation ---

@router.post("/generate", summary="Generate Report")
async def generate_report(
    body: GenerateReportRequest,
    format: str = Query("json", pattern="^(json|html)$"),
    generator: ReportGenerator = Depends(get_report_generator),
):
    """Generate a report without saving or sending it. `format=html` returns the email body."""
    try:
        payload = await generator.generate(body.report_type, body.parameters)
    except ReportingError as e:
        raise _http_error(e)

    if format == "html":
        return HTMLResponse(render_report_html(payload))
    return StandardResponse(data=payload.model_dump(mode="json"))
