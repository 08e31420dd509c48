"""
Unit tests for the report generator and the built-in report types.
"""
import pytest
from datetime import datetime
from decimal import Decimal
from types import SimpleNamespace
from typing import Literal
from unittest.mock import MagicMock

from sqlalchemy.exc import OperationalError

from src.reporting.builtin_reports import summarize_transactions
from src.reporting.exceptions import UnknownReportType, InvalidReportParameters, DataQueryFailure
from src.reporting.generator import ReportGenerator
from src.reporting.params import DateRangeParams
from src.reporting.registry import register_report, unregister_report


def _tx(amount, status="completed", created_at=datetime(2024, 1, 10, 12, 0)):
    return SimpleNamespace(amount=amount, status=status, created_at=created_at)


class TestSummarizeTransactions:

    def test_empty_set_average_is_zero(self):
        result = summarize_transactions([])
        summary = result["summary"]
        assert summary["total_transactions"] == 0
        assert summary["total_volume"] == 0
        assert summary["average_transaction_value"] == 0
        assert summary["status_counts"] == {}
        assert result["daily_volume"] == {}

    def test_mixed_amount_representations(self):
        transactions = [
            _tx(Decimal("100.50")),
            _tx("1,200.25", status="pending"),
            _tx(None, status="failed"),
            _tx(49, status="completed"),
        ]
        summary = summarize_transactions(transactions)["summary"]
        assert summary["total_volume"] == pytest.approx(1349.75)
        assert summary["completed_transactions"] == 2
        assert summary["pending_transactions"] == 1
        assert summary["failed_transactions"] == 1

    def test_average_is_volume_over_count(self):
        transactions = [_tx(10), _tx(20), _tx(45)]
        summary = summarize_transactions(transactions)["summary"]
        assert summary["average_transaction_value"] == summary["total_volume"] / summary["total_transactions"]
        assert summary["average_transaction_value"] == pytest.approx(25.0)

    def test_status_counts_sum_to_total(self):
        statuses = ["completed", "pending", "disputed", "disputed", "cancelled", "funded"]
        summary = summarize_transactions([_tx(1, status=s) for s in statuses])["summary"]
        assert sum(summary["status_counts"].values()) == summary["total_transactions"] == 6
        assert summary["status_counts"]["disputed"] == 2

    def test_daily_volume_keyed_by_date(self):
        transactions = [
            _tx(10, created_at=datetime(2024, 1, 2, 23, 59)),
            _tx(5.5, created_at=datetime(2024, 1, 2, 0, 1)),
            _tx(7, created_at=datetime(2024, 1, 1, 8, 0)),
        ]
        daily = summarize_transactions(transactions)["daily_volume"]
        assert list(daily) == ["2024-01-01", "2024-01-02"]
        assert daily["2024-01-02"] == 15.5

    def test_daily_volume_not_rounded(self):
        transactions = [_tx("0.105"), _tx("0.105"), _tx("0.105")]
        result = summarize_transactions(transactions)
        assert result["daily_volume"]["2024-01-10"] == result["summary"]["total_volume"]
        assert result["daily_volume"]["2024-01-10"] != 0.32

    def test_unparseable_amount_raises(self):
        with pytest.raises(ValueError):
            summarize_transactions([_tx("twelve")])


class TestReportGenerator:

    @pytest.mark.asyncio
    async def test_unknown_type_makes_no_query(self):
        factory = MagicMock()
        generator = ReportGenerator(factory)

        with pytest.raises(UnknownReportType):
            await generator.generate("chargebacks", {})
        factory.assert_not_called()

    @pytest.mark.asyncio
    async def test_invalid_parameters_make_no_query(self):
        factory = MagicMock()
        generator = ReportGenerator(factory)

        with pytest.raises(InvalidReportParameters):
            await generator.generate("transactions", {"limit": 5})
        factory.assert_not_called()

    @pytest.mark.asyncio
    async def test_transactions_report(self, session_factory, clock, sample_profile, sample_transaction):
        seller = await sample_profile()
        await sample_transaction(seller.id, amount=Decimal("10.00"), status="completed",
                                 created_at=datetime(2024, 1, 5))
        await sample_transaction(seller.id, amount=Decimal("20.00"), status="pending",
                                 created_at=datetime(2024, 1, 6))
        await sample_transaction(seller.id, amount=Decimal("30.00"), status="completed",
                                 created_at=datetime(2024, 2, 6))

        generator = ReportGenerator(session_factory, clock=clock)
        payload = await generator.generate("transactions", {
            "start_date": "2024-01-01T00:00:00",
            "end_date": "2024-01-31T23:59:59",
        })

        assert payload.report_name == "Transactions Report"
        assert payload.generated_at == clock()
        assert payload.total == 2
        assert [row["amount"] for row in payload.data] == [20.0, 10.0]
        assert payload.parameters == {"start_date": "2024-01-01T00:00:00", "end_date": "2024-01-31T23:59:59"}

        completed = await generator.generate("transactions", {"status": "completed"})
        assert completed.total == 2
        assert all(row["status"] == "completed" for row in completed.data)

    @pytest.mark.asyncio
    async def test_users_report_role_filter(self, session_factory, sample_profile):
        await sample_profile(email="a@example.com", role="user")
        await sample_profile(email="b@example.com", role="admin")

        payload = await ReportGenerator(session_factory).generate("users", {"role": "admin"})
        assert payload.total == 1
        assert payload.data[0]["email"] == "b@example.com"

    @pytest.mark.asyncio
    async def test_financial_report_summary(self, session_factory, sample_profile, sample_transaction):
        seller = await sample_profile()
        await sample_transaction(seller.id, amount=Decimal("100.00"), status="completed",
                                 created_at=datetime(2024, 1, 3, 9))
        await sample_transaction(seller.id, amount=Decimal("50.00"), status="failed",
                                 created_at=datetime(2024, 1, 3, 18))
        await sample_transaction(seller.id, amount=Decimal("25.50"), status="pending",
                                 created_at=datetime(2024, 1, 4, 7))

        payload = await ReportGenerator(session_factory).generate("financial", {})

        summary = payload.summary
        assert summary["total_transactions"] == 3
        assert summary["total_volume"] == pytest.approx(175.5)
        assert summary["completed_transactions"] == 1
        assert summary["failed_transactions"] == 1
        assert summary["pending_transactions"] == 1
        assert summary["average_transaction_value"] == pytest.approx(58.5)
        assert sum(summary["status_counts"].values()) == 3
        assert payload.daily_volume == {"2024-01-03": 150.0, "2024-01-04": 25.5}

    @pytest.mark.asyncio
    async def test_financial_report_empty_range(self, session_factory):
        payload = await ReportGenerator(session_factory).generate("financial", {
            "startDate": "2030-01-01T00:00:00",
        })
        assert payload.total == 0
        assert payload.data == []
        assert payload.summary["average_transaction_value"] == 0

    @pytest.mark.asyncio
    async def test_disputes_report_nests_related_rows(
        self, session_factory, sample_profile, sample_transaction, sample_dispute
    ):
        seller = await sample_profile(email="seller@example.com")
        buyer = await sample_profile(email="buyer@example.com", full_name="Bea Buyer")
        tx = await sample_transaction(seller.id, buyer_id=buyer.id)
        await sample_dispute(tx.id, buyer.id, status="open")
        await sample_dispute(tx.id, buyer.id, status="resolved")

        payload = await ReportGenerator(session_factory).generate("disputes", {"status": "open"})

        assert payload.total == 1
        row = payload.data[0]
        assert row["transaction"]["id"] == tx.id
        assert row["initiator"]["email"] == "buyer@example.com"
        assert row["admin"] is None

    @pytest.mark.asyncio
    async def test_dispute_analysis_columns(
        self, session_factory, sample_profile, sample_transaction, sample_dispute
    ):
        seller = await sample_profile(email="seller@example.com")
        buyer = await sample_profile(email="buyer@example.com", full_name="Bea Buyer")
        tx = await sample_transaction(seller.id, amount=Decimal("80.00"), status="disputed")
        await sample_dispute(tx.id, buyer.id, created_at=datetime(2024, 1, 20))

        payload = await ReportGenerator(session_factory).generate("dispute_analysis", {})

        assert payload.columns[0] == "id"
        row = payload.data[0]
        assert set(row) == set(payload.columns)
        assert row["transaction_amount"] == 80.0
        assert row["transaction_status"] == "disputed"
        assert row["initiator_name"] == "Bea Buyer"

    @pytest.mark.asyncio
    async def test_user_activity_counts_sales(self, session_factory, sample_profile, sample_transaction):
        active = await sample_profile(email="active@example.com", last_sign_in_at=datetime(2024, 1, 20))
        await sample_profile(email="dormant@example.com", last_sign_in_at=None)
        await sample_transaction(active.id, amount=Decimal("10.00"))
        await sample_transaction(active.id, amount=Decimal("15.25"))

        payload = await ReportGenerator(session_factory).generate("user_activity", {})

        assert payload.total == 1
        row = payload.data[0]
        assert row["email"] == "active@example.com"
        assert row["transaction_count"] == 2
        assert row["transaction_total"] == 25.25

    @pytest.mark.asyncio
    async def test_revenue_analysis_groups_by_day(self, session_factory, sample_profile, sample_transaction):
        seller = await sample_profile()
        await sample_transaction(seller.id, amount=Decimal("10.00"), fee_amount=Decimal("1.00"),
                                 created_at=datetime(2024, 1, 2, 9))
        await sample_transaction(seller.id, amount=Decimal("30.00"), fee_amount=Decimal("3.00"),
                                 created_at=datetime(2024, 1, 2, 17))
        await sample_transaction(seller.id, amount=Decimal("5.00"), created_at=datetime(2024, 1, 1, 12))

        payload = await ReportGenerator(session_factory).generate("revenue_analysis", {})

        assert [row["date"] for row in payload.data] == ["2024-01-01", "2024-01-02"]
        assert payload.data[1] == {
            "date": "2024-01-02",
            "transaction_count": 2,
            "total_amount": 40.0,
            "total_fees": 4.0,
        }
        assert payload.data[0]["total_fees"] == 0

    @pytest.mark.asyncio
    async def test_payouts_report_lists_withdrawals(self, session_factory, sample_profile, sample_transaction):
        seller = await sample_profile(email="seller@example.com", full_name="Sam Seller")
        await sample_transaction(seller.id, amount=Decimal("40.00"), transaction_type="withdrawal",
                                 completed_at=datetime(2024, 1, 20, 15))
        await sample_transaction(seller.id, amount=Decimal("60.00"), transaction_type="withdrawal",
                                 completed_at=datetime(2024, 1, 31, 18))
        await sample_transaction(seller.id, amount=Decimal("99.00"), transaction_type="withdrawal",
                                 completed_at=datetime(2024, 2, 1, 0, 5))
        await sample_transaction(seller.id, amount=Decimal("500.00"), completed_at=datetime(2024, 1, 22))

        payload = await ReportGenerator(session_factory).generate("payouts", {
            "start_date": "2024-01-01", "end_date": "2024-01-31",
        })

        assert payload.report_name == "Payout Activity Report"
        assert payload.total == 2
        assert [row["amount"] for row in payload.data] == [60.0, 40.0]
        assert payload.data[0]["user_email"] == "seller@example.com"
        assert payload.data[0]["user_name"] == "Sam Seller"
        assert payload.columns == ["id", "amount", "status", "completed_at", "user_name", "user_email"]

    @pytest.mark.asyncio
    async def test_fees_report_skips_fee_free_transactions(self, session_factory, sample_profile, sample_transaction):
        seller = await sample_profile()
        charged = await sample_transaction(seller.id, amount=Decimal("200.00"), fee_amount=Decimal("6.00"),
                                           completed_at=datetime(2024, 1, 15))
        await sample_transaction(seller.id, amount=Decimal("80.00"), completed_at=datetime(2024, 1, 16))
        await sample_transaction(seller.id, amount=Decimal("90.00"), fee_amount=Decimal("2.70"),
                                 completed_at=datetime(2023, 12, 20))

        payload = await ReportGenerator(session_factory).generate("fees", {"startDate": "2024-01-01T00:00:00"})

        assert payload.report_name == "Fee Collection Report"
        assert payload.total == 1
        assert payload.data == [{
            "id": charged.id,
            "amount": 200.0,
            "fee_amount": 6.0,
            "status": "completed",
            "completed_at": "2024-01-15T00:00:00",
        }]

    @pytest.mark.asyncio
    async def test_query_failure_is_wrapped(self, session_factory):
        class BrokenParams(DateRangeParams):
            report_type: Literal["broken_source"] = "broken_source"

        @register_report("broken_source", "Broken Source", BrokenParams)
        async def broken_report(session, params):
            raise OperationalError("SELECT 1", {}, Exception("database is locked"))

        try:
            with pytest.raises(DataQueryFailure) as exc_info:
                await ReportGenerator(session_factory).generate("broken_source", {})
            assert exc_info.value.report_type == "broken_source"
            assert "database is locked" in str(exc_info.value)
        finally:
            unregister_report("broken_source")
