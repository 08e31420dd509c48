"""
Shared pytest fixtures for the Escrowise reports test suite.
"""
import os

# Settings are read at import time; point them at SQLite before importing src.
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("SCHEDULER_ENABLED", "false")

import asyncio
from datetime import datetime, timedelta
from decimal import Decimal

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool

from src.core.database import Base
from src.core.notifications import EmailDeliveryError
from src.escrow.database import Profile, EscrowTransaction, Dispute
from src.reporting.database import ScheduledReport
import src.audit.database  # noqa: F401


NOW = datetime(2024, 1, 31, 9, 0, 0)


# --- Database Fixtures ---

@pytest.fixture
async def engine():
    """Async in-memory SQLite engine. StaticPool lets every session see the same database."""
    engine = create_async_engine("sqlite+aiosqlite://", poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def async_db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def clock():
    """Frozen clock for the dispatcher and generator."""
    return lambda: NOW


# --- Fakes ---

class FakeNotifier:
    """Records sent emails. Fails for any recipient in ``fail_for``; sleeps ``delay`` seconds first."""

    def __init__(self, fail_for=(), delay=0):
        self.sent = []
        self.fail_for = set(fail_for)
        self.delay = delay

    async def send(self, to, subject, html):
        if self.delay:
            await asyncio.sleep(self.delay)
        recipients = [to] if isinstance(to, str) else list(to)
        if self.fail_for.intersection(recipients):
            raise EmailDeliveryError("SendGrid returned status 500", 500)
        self.sent.append({"to": recipients, "subject": subject, "html": html})


@pytest.fixture
def notifier():
    return FakeNotifier()


@pytest.fixture
def make_notifier():
    return FakeNotifier


# --- Mock Data Fixtures ---

@pytest.fixture
def sample_profile(session_factory):
    """Factory fixture for creating test profiles."""
    async def _create_profile(
        email="seller@example.com",
        full_name="Sam Seller",
        role="user",
        created_at=datetime(2024, 1, 2, 10, 0),
        last_sign_in_at=None,
    ):
        async with session_factory() as session:
            profile = Profile(
                email=email,
                full_name=full_name,
                role=role,
                created_at=created_at,
                last_sign_in_at=last_sign_in_at,
            )
            session.add(profile)
            await session.commit()
            await session.refresh(profile)
            return profile

    return _create_profile


@pytest.fixture
def sample_transaction(session_factory):
    """Factory fixture for creating test transactions."""
    async def _create_transaction(
        seller_id,
        amount=Decimal("100.00"),
        status="completed",
        created_at=datetime(2024, 1, 10, 12, 0),
        fee_amount=None,
        buyer_id=None,
        item_title="Vintage camera",
        transaction_type="purchase",
        completed_at=None,
    ):
        async with session_factory() as session:
            tx = EscrowTransaction(
                seller_id=seller_id,
                buyer_id=buyer_id,
                item_title=item_title,
                amount=amount,
                fee_amount=fee_amount,
                status=status,
                transaction_type=transaction_type,
                completed_at=completed_at,
                created_at=created_at,
            )
            session.add(tx)
            await session.commit()
            await session.refresh(tx)
            return tx

    return _create_transaction


@pytest.fixture
def sample_dispute(session_factory):
    """Factory fixture for creating test disputes."""
    async def _create_dispute(
        transaction_id,
        initiator_id,
        status="open",
        reason="Item not as described",
        created_at=datetime(2024, 1, 12, 8, 30),
    ):
        async with session_factory() as session:
            dispute = Dispute(
                transaction_id=transaction_id,
                initiator_id=initiator_id,
                status=status,
                reason=reason,
                created_at=created_at,
            )
            session.add(dispute)
            await session.commit()
            await session.refresh(dispute)
            return dispute

    return _create_dispute


@pytest.fixture
def sample_scheduled_report(session_factory):
    """Factory fixture for creating scheduled reports (due one hour before NOW by default)."""
    async def _create_report(
        report_type="transactions",
        parameters=None,
        recipients=("ops@example.com",),
        frequency="daily",
        is_active=True,
        next_run_at=NOW - timedelta(hours=1),
        locked_until=None,
    ):
        async with session_factory() as session:
            report = ScheduledReport(
                report_type=report_type,
                parameters=parameters or {},
                recipients=list(recipients),
                frequency=frequency,
                is_active=is_active,
                next_run_at=next_run_at,
                locked_until=locked_until,
                created_at=NOW - timedelta(days=30),
            )
            session.add(report)
            await session.commit()
            await session.refresh(report)
            return report

    return _create_report


@pytest.fixture
def reload_report(session_factory):
    """Fetch a scheduled report row fresh from the database."""
    async def _reload(report_id):
        async with session_factory() as session:
            result = await session.execute(select(ScheduledReport).where(ScheduledReport.id == report_id))
            return result.scalar_one_or_none()

    return _reload
