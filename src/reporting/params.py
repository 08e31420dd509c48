"""Typed parameters for each report type.

Each report type has its own model carrying only the fields its generator
reads. The models form a union tagged by ``report_type``; stored schedules
keep the tag in their own column, see ``registry.parse_report_params``.
"""

from datetime import date, datetime, time
from typing import Annotated, Any, Dict, Literal, Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator

from src.core.utils import to_naive_utc


class DateRangeParams(BaseModel):
    """Inclusive created-at window shared by every report type."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    start_date: Optional[datetime] = Field(
        None, validation_alias=AliasChoices("start_date", "startDate"),
        description="Only include records on or after this instant"
    )
    end_date: Optional[datetime] = Field(
        None, validation_alias=AliasChoices("end_date", "endDate"),
        description="Only include records on or before this instant; a bare date includes the whole day"
    )

    @field_validator("end_date", mode="before")
    @classmethod
    def widen_date_only_end(cls, v: Any) -> Any:
        # A bare date as the upper bound covers that whole day.
        if isinstance(v, str) and len(v.strip()) == 10:
            v = date.fromisoformat(v.strip())
        if isinstance(v, date) and not isinstance(v, datetime):
            return datetime.combine(v, time.max)
        return v

    @field_validator("start_date", "end_date")
    @classmethod
    def normalize_timezone(cls, v: Optional[datetime]) -> Optional[datetime]:
        return to_naive_utc(v) if v is not None else None

    @model_validator(mode="after")
    def check_range(self):
        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise ValueError("end_date must be on or after start_date")
        return self

    def to_filters(self) -> Dict[str, Any]:
        """Plain JSON-friendly dict of the filters that were set."""
        return self.model_dump(mode="json", exclude_none=True, exclude={"report_type"})


class TransactionsParams(DateRangeParams):
    report_type: Literal["transactions"] = "transactions"
    status: Optional[str] = None


class UsersParams(DateRangeParams):
    report_type: Literal["users"] = "users"
    role: Optional[str] = None


class DisputesParams(DateRangeParams):
    report_type: Literal["disputes"] = "disputes"
    status: Optional[str] = None


class FinancialParams(DateRangeParams):
    report_type: Literal["financial"] = "financial"
    status: Optional[str] = None


class DisputeAnalysisParams(DateRangeParams):
    report_type: Literal["dispute_analysis"] = "dispute_analysis"


class UserActivityParams(DateRangeParams):
    """Window applies to last_sign_in_at rather than created_at."""
    report_type: Literal["user_activity"] = "user_activity"


class RevenueAnalysisParams(DateRangeParams):
    report_type: Literal["revenue_analysis"] = "revenue_analysis"


class PayoutsParams(DateRangeParams):
    """Withdrawals; the window applies to completed_at."""
    report_type: Literal["payouts"] = "payouts"


class FeesParams(DateRangeParams):
    """Transactions that carried a fee; the window applies to completed_at."""
    report_type: Literal["fees"] = "fees"


ReportParams = Annotated[
    Union[
        TransactionsParams,
        UsersParams,
        DisputesParams,
        FinancialParams,
        DisputeAnalysisParams,
        UserActivityParams,
        RevenueAnalysisParams,
        PayoutsParams,
        FeesParams,
    ],
    Field(discriminator="report_type"),
]
