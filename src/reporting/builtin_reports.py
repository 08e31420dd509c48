"""Built-in report types over the escrow platform tables."""

from collections import defaultdict
from typing import Any, Dict, List

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from src.core.utils import parse_amount
from src.escrow.database import Profile, EscrowTransaction, Dispute, TransactionStatus, TransactionType
from src.reporting.registry import ReportData, register_report
from src.reporting.params import (
    TransactionsParams,
    UsersParams,
    DisputesParams,
    FinancialParams,
    DisputeAnalysisParams,
    UserActivityParams,
    RevenueAnalysisParams,
    PayoutsParams,
    FeesParams,
    DateRangeParams,
)


def _apply_date_range(stmt, column, params: DateRangeParams):
    if params.start_date is not None:
        stmt = stmt.where(column >= params.start_date)
    if params.end_date is not None:
        stmt = stmt.where(column <= params.end_date)
    return stmt


def _iso(value):
    if value is None:
        return None
    return value.isoformat() if hasattr(value, "isoformat") else str(value)


async def _filtered_transactions(session: AsyncSession, params) -> List[EscrowTransaction]:
    stmt = _apply_date_range(select(EscrowTransaction), EscrowTransaction.created_at, params)
    if params.status:
        stmt = stmt.where(EscrowTransaction.status == params.status)
    stmt = stmt.order_by(EscrowTransaction.created_at.desc())
    result = await session.execute(stmt)
    return list(result.scalars().all())


@register_report("transactions", "Transactions Report", TransactionsParams)
async def transactions_report(session: AsyncSession, params: TransactionsParams) -> ReportData:
    transactions = await _filtered_transactions(session, params)
    rows = [tx.to_dict() for tx in transactions]
    return ReportData(rows=rows, total=len(rows))


@register_report("users", "Users Report", UsersParams)
async def users_report(session: AsyncSession, params: UsersParams) -> ReportData:
    stmt = _apply_date_range(select(Profile), Profile.created_at, params)
    if params.role:
        stmt = stmt.where(Profile.role == params.role)
    stmt = stmt.order_by(Profile.created_at.desc())

    result = await session.execute(stmt)
    rows = [profile.to_dict() for profile in result.scalars().all()]
    return ReportData(rows=rows, total=len(rows))


@register_report("disputes", "Disputes Report", DisputesParams)
async def disputes_report(session: AsyncSession, params: DisputesParams) -> ReportData:
    stmt = (
        select(Dispute)
        .options(
            selectinload(Dispute.transaction),
            selectinload(Dispute.initiator),
            selectinload(Dispute.admin),
        )
    )
    stmt = _apply_date_range(stmt, Dispute.created_at, params)
    if params.status:
        stmt = stmt.where(Dispute.status == params.status)
    stmt = stmt.order_by(Dispute.created_at.desc())

    result = await session.execute(stmt)
    rows = []
    for dispute in result.scalars().all():
        row = dispute.to_dict()
        row["transaction"] = dispute.transaction.to_dict() if dispute.transaction else None
        row["initiator"] = dispute.initiator.to_dict() if dispute.initiator else None
        row["admin"] = dispute.admin.to_dict() if dispute.admin else None
        rows.append(row)
    return ReportData(rows=rows, total=len(rows))


def summarize_transactions(transactions: List[EscrowTransaction]) -> Dict[str, Any]:
    """
    Aggregate a transaction set into the financial summary and per-day volume.

    Amounts may be Decimals, floats or strings. The average is 0 for an
    empty set.
    """
    total_transactions = len(transactions)
    total_volume = 0.0
    status_counts: Dict[str, int] = defaultdict(int)
    daily_volume: Dict[str, float] = defaultdict(float)

    for tx in transactions:
        amount = parse_amount(tx.amount)
        total_volume += amount
        status_counts[tx.status] += 1
        if tx.created_at is not None:
            daily_volume[tx.created_at.date().isoformat()] += amount

    summary = {
        "total_transactions": total_transactions,
        "total_volume": total_volume,
        "completed_transactions": status_counts.get(TransactionStatus.COMPLETED.value, 0),
        "pending_transactions": status_counts.get(TransactionStatus.PENDING.value, 0),
        "failed_transactions": status_counts.get(TransactionStatus.FAILED.value, 0),
        "average_transaction_value": total_volume / total_transactions if total_transactions > 0 else 0,
        "status_counts": dict(status_counts),
    }
    return {
        "summary": summary,
        "daily_volume": dict(sorted(daily_volume.items())),
    }


@register_report("financial", "Financial Report", FinancialParams)
async def financial_report(session: AsyncSession, params: FinancialParams) -> ReportData:
    transactions = await _filtered_transactions(session, params)
    aggregates = summarize_transactions(transactions)
    rows = [tx.to_dict() for tx in transactions]
    return ReportData(
        rows=rows,
        total=len(rows),
        summary=aggregates["summary"],
        daily_volume=aggregates["daily_volume"],
    )


DISPUTE_ANALYSIS_COLUMNS = [
    "id", "status", "reason", "created_at", "resolved_at",
    "transaction_amount", "transaction_status", "initiator_name", "initiator_email",
]


@register_report(
    "dispute_analysis", "Dispute Analysis Report", DisputeAnalysisParams,
    columns=DISPUTE_ANALYSIS_COLUMNS,
)
async def dispute_analysis_report(session: AsyncSession, params: DisputeAnalysisParams) -> ReportData:
    stmt = (
        select(
            Dispute,
            EscrowTransaction.amount,
            EscrowTransaction.status,
            Profile.full_name,
            Profile.email,
        )
        .outerjoin(EscrowTransaction, Dispute.transaction_id == EscrowTransaction.id)
        .outerjoin(Profile, Dispute.initiator_id == Profile.id)
    )
    stmt = _apply_date_range(stmt, Dispute.created_at, params)
    stmt = stmt.order_by(Dispute.created_at.desc())

    result = await session.execute(stmt)
    rows = [
        {
            "id": dispute.id,
            "status": dispute.status,
            "reason": dispute.reason,
            "created_at": _iso(dispute.created_at),
            "resolved_at": _iso(dispute.resolved_at),
            "transaction_amount": parse_amount(amount) if amount is not None else None,
            "transaction_status": tx_status,
            "initiator_name": full_name,
            "initiator_email": email,
        }
        for dispute, amount, tx_status, full_name, email in result.all()
    ]
    return ReportData(rows=rows, total=len(rows), columns=DISPUTE_ANALYSIS_COLUMNS)


USER_ACTIVITY_COLUMNS = [
    "id", "full_name", "email", "last_sign_in_at", "transaction_count", "transaction_total",
]


@register_report(
    "user_activity", "User Activity Report", UserActivityParams,
    columns=USER_ACTIVITY_COLUMNS,
)
async def user_activity_report(session: AsyncSession, params: UserActivityParams) -> ReportData:
    tx_count = func.count(EscrowTransaction.id)
    tx_total = func.coalesce(func.sum(EscrowTransaction.amount), 0)
    stmt = (
        select(
            Profile.id,
            Profile.full_name,
            Profile.email,
            Profile.last_sign_in_at,
            tx_count.label("transaction_count"),
            tx_total.label("transaction_total"),
        )
        .outerjoin(EscrowTransaction, EscrowTransaction.seller_id == Profile.id)
        .where(Profile.last_sign_in_at.is_not(None))
        .group_by(Profile.id, Profile.full_name, Profile.email, Profile.last_sign_in_at)
    )
    stmt = _apply_date_range(stmt, Profile.last_sign_in_at, params)
    stmt = stmt.order_by(Profile.last_sign_in_at.desc())

    result = await session.execute(stmt)
    rows = [
        {
            "id": row.id,
            "full_name": row.full_name,
            "email": row.email,
            "last_sign_in_at": _iso(row.last_sign_in_at),
            "transaction_count": row.transaction_count,
            "transaction_total": round(parse_amount(row.transaction_total), 2),
        }
        for row in result.all()
    ]
    return ReportData(rows=rows, total=len(rows), columns=USER_ACTIVITY_COLUMNS)


REVENUE_ANALYSIS_COLUMNS = ["date", "transaction_count", "total_amount", "total_fees"]


@register_report(
    "revenue_analysis", "Revenue Analysis Report", RevenueAnalysisParams,
    columns=REVENUE_ANALYSIS_COLUMNS,
)
async def revenue_analysis_report(session: AsyncSession, params: RevenueAnalysisParams) -> ReportData:
    day = func.date(EscrowTransaction.created_at)
    stmt = select(
        day.label("date"),
        func.count(EscrowTransaction.id).label("transaction_count"),
        func.coalesce(func.sum(EscrowTransaction.amount), 0).label("total_amount"),
        func.coalesce(func.sum(EscrowTransaction.fee_amount), 0).label("total_fees"),
    )
    stmt = _apply_date_range(stmt, EscrowTransaction.created_at, params)
    stmt = stmt.group_by(day).order_by(day)

    result = await session.execute(stmt)
    rows = [
        {
            "date": _iso(row.date),
            "transaction_count": row.transaction_count,
            "total_amount": round(parse_amount(row.total_amount), 2),
            "total_fees": round(parse_amount(row.total_fees), 2),
        }
        for row in result.all()
    ]
    return ReportData(rows=rows, total=len(rows), columns=REVENUE_ANALYSIS_COLUMNS)


PAYOUT_COLUMNS = ["id", "amount", "status", "completed_at", "user_name", "user_email"]


@register_report("payouts", "Payout Activity Report", PayoutsParams, columns=PAYOUT_COLUMNS)
async def payouts_report(session: AsyncSession, params: PayoutsParams) -> ReportData:
    stmt = (
        select(EscrowTransaction, Profile.full_name, Profile.email)
        .outerjoin(Profile, EscrowTransaction.seller_id == Profile.id)
        .where(EscrowTransaction.transaction_type == TransactionType.WITHDRAWAL.value)
    )
    stmt = _apply_date_range(stmt, EscrowTransaction.completed_at, params)
    stmt = stmt.order_by(EscrowTransaction.completed_at.desc())

    result = await session.execute(stmt)
    rows = [
        {
            "id": tx.id,
            "amount": parse_amount(tx.amount),
            "status": tx.status,
            "completed_at": _iso(tx.completed_at),
            "user_name": full_name,
            "user_email": email,
        }
        for tx, full_name, email in result.all()
    ]
    return ReportData(rows=rows, total=len(rows), columns=PAYOUT_COLUMNS)


FEE_COLUMNS = ["id", "amount", "fee_amount", "status", "completed_at"]


@register_report("fees", "Fee Collection Report", FeesParams, columns=FEE_COLUMNS)
async def fees_report(session: AsyncSession, params: FeesParams) -> ReportData:
    stmt = select(EscrowTransaction).where(EscrowTransaction.fee_amount.is_not(None))
    stmt = _apply_date_range(stmt, EscrowTransaction.completed_at, params)
    stmt = stmt.order_by(EscrowTransaction.completed_at.desc())

    result = await session.execute(stmt)
    rows = [
        {
            "id": tx.id,
            "amount": parse_amount(tx.amount),
            "fee_amount": parse_amount(tx.fee_amount),
            "status": tx.status,
            "completed_at": _iso(tx.completed_at),
        }
        for tx in result.scalars().all()
    ]
    return ReportData(rows=rows, total=len(rows), columns=FEE_COLUMNS)
