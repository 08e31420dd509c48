"""Report type registry.

Each report type maps to a ReportDefinition: a display name, the parameter
model, and an async handler ``(session, params) -> ReportData``. New report
types are added by decorating a handler with ``register_report``.
"""

from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Type

from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from src.reporting.exceptions import UnknownReportType, InvalidReportParameters
from src.reporting.params import DateRangeParams


@dataclass
class ReportData:
    """What a handler hands back to the generator."""
    rows: List[Dict[str, Any]]
    total: int
    columns: Optional[List[str]] = None
    summary: Optional[Dict[str, Any]] = None
    daily_volume: Optional[Dict[str, float]] = None


ReportHandler = Callable[[AsyncSession, Any], Awaitable[ReportData]]


@dataclass(frozen=True)
class ReportDefinition:
    report_type: str
    report_name: str
    params_model: Type[DateRangeParams]
    handler: ReportHandler
    columns: Optional[List[str]] = field(default=None)


_REGISTRY: Dict[str, ReportDefinition] = {}


def register_report(
    report_type: str,
    report_name: str,
    params_model: Type[DateRangeParams],
    columns: Optional[List[str]] = None,
):
    """Decorator registering ``handler`` as the generator for ``report_type``."""
    def decorator(handler: ReportHandler) -> ReportHandler:
        if report_type in _REGISTRY:
            raise ValueError(f"Report type already registered: {report_type}")
        _REGISTRY[report_type] = ReportDefinition(
            report_type=report_type,
            report_name=report_name,
            params_model=params_model,
            handler=handler,
            columns=columns,
        )
        return handler
    return decorator


def unregister_report(report_type: str) -> None:
    _REGISTRY.pop(report_type, None)


def get_definition(report_type: str) -> ReportDefinition:
    """Look up a report type. Raises UnknownReportType without touching any store."""
    definition = _REGISTRY.get(report_type) if isinstance(report_type, str) else None
    if definition is None:
        raise UnknownReportType(report_type)
    return definition


def available_report_types() -> List[str]:
    return sorted(_REGISTRY)


def parse_report_params(report_type: str, raw: Optional[Mapping[str, Any]] = None) -> DateRangeParams:
    """Validate a stored or submitted parameter bag against the report type's model."""
    definition = get_definition(report_type)
    if isinstance(raw, definition.params_model):
        return raw
    if raw is not None and not isinstance(raw, Mapping):
        raise InvalidReportParameters(report_type, ["parameters must be an object"])

    data = dict(raw or {})
    data["report_type"] = report_type
    try:
        return definition.params_model.model_validate(data)
    except ValidationError as e:
        errors = [
            {"loc": list(err["loc"]), "msg": err["msg"]}
            for err in e.errors(include_url=False)
        ]
        raise InvalidReportParameters(report_type, errors) from e
