"""Database models for scheduled report definitions."""

import uuid
from datetime import datetime
from enum import Enum as PyEnum
from typing import Any, Dict, List, Optional

from sqlalchemy import String, Boolean, DateTime, Integer, Text, JSON, Index
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from src.core.database import Base


class ReportFrequency(str, PyEnum):
    """How often a scheduled report is sent"""
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


class ScheduledReport(Base):
    """
    A recurring report job: what to generate, for whom, and when next.

    last_run_at / next_run_at are written only by the dispatcher (and by
    admin edits). locked_until is the dispatcher's claim lease; failure_count
    and last_error record consecutive failed runs.
    """
    __tablename__ = "scheduled_reports"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    report_type: Mapped[str] = mapped_column(String(50), nullable=False)
    parameters: Mapped[Dict[str, Any]] = mapped_column(JSON, default=dict)
    recipients: Mapped[List[str]] = mapped_column(JSON, default=list)
    frequency: Mapped[str] = mapped_column(String(10), nullable=False)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    last_run_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    next_run_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    locked_until: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    failure_count: Mapped[int] = mapped_column(Integer, default=0)
    last_error: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_by: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime, onupdate=func.now())

    __table_args__ = (
        Index('idx_scheduled_reports_due', 'is_active', 'next_run_at'),
    )

    def __repr__(self):
        return f"<ScheduledReport(id={self.id}, type='{self.report_type}', frequency='{self.frequency}')>"
