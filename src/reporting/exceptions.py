"""Errors raised by report generation and dispatch."""

from typing import Any, List, Optional


class ReportingError(Exception):
    """Base class for reporting failures."""


class UnknownReportType(ReportingError):
    """No generator is registered for the requested report type."""

    def __init__(self, report_type: str):
        super().__init__(f"Unknown report type: {report_type}")
        self.report_type = report_type


class InvalidReportParameters(ReportingError):
    """Parameters do not fit the report type's parameter model."""

    def __init__(self, report_type: str, errors: List[Any]):
        super().__init__(f"Invalid parameters for {report_type} report: {errors}")
        self.report_type = report_type
        self.errors = errors


class DataQueryFailure(ReportingError):
    """A data store read or write failed while producing a report."""

    def __init__(self, report_type: str, cause: Exception):
        super().__init__(f"Query failed for {report_type} report: {cause}")
        self.report_type = report_type
        self.cause = cause


class NotifierFailure(ReportingError):
    """The email transport did not accept the rendered report."""

    def __init__(self, report_id: Optional[str], cause: Exception):
        super().__init__(f"Delivery failed for report {report_id}: {cause}")
        self.report_id = report_id
        self.cause = cause


class ReportNotFound(ReportingError):
    def __init__(self, report_id: str):
        super().__init__(f"Scheduled report not found: {report_id}")
        self.report_id = report_id


class InvalidSchedule(ReportingError):
    """A scheduled report row cannot be run as stored (e.g. no recipients)."""

    def __init__(self, report_id: Optional[str], reason: str):
        super().__init__(f"Scheduled report {report_id} cannot run: {reason}")
        self.report_id = report_id
        self.reason = reason


class ReportTimeout(ReportingError):
    def __init__(self, report_id: Optional[str], seconds: float):
        super().__init__(f"Report {report_id} did not finish within {seconds:g}s")
        self.report_id = report_id
        self.seconds = seconds


class ReportAlreadyRunning(ReportingError):
    """Another dispatcher invocation holds the claim on this report."""

    def __init__(self, report_id: str):
        super().__init__(f"Report {report_id} is already being dispatched")
        self.report_id = report_id
