"""
Database models for the escrow platform tables.

Profiles, transactions and disputes are owned by the platform's admin and
transaction workflows. The reporting module only reads them.
"""
import uuid
from datetime import datetime
from decimal import Decimal
from enum import Enum as PyEnum
from typing import List, Optional

from sqlalchemy import String, DateTime, ForeignKey, Text, Numeric, Index
from sqlalchemy.orm import relationship, Mapped, mapped_column
from sqlalchemy.sql import func

from src.core.database import Base


def new_id() -> str:
    return str(uuid.uuid4())


class ProfileRole(str, PyEnum):
    """Role of a platform profile"""
    USER = "user"
    ADMIN = "admin"
    SUPER_ADMIN = "super_admin"


class TransactionStatus(str, PyEnum):
    """Lifecycle status of an escrow transaction"""
    PENDING = "pending"
    FUNDED = "funded"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"
    DISPUTED = "disputed"


class TransactionType(str, PyEnum):
    PURCHASE = "purchase"
    WITHDRAWAL = "withdrawal"


class DisputeStatus(str, PyEnum):
    """Status of a dispute. Transitions are driven by the admin dashboard."""
    OPEN = "open"
    UNDER_REVIEW = "under_review"
    RESOLVED = "resolved"
    CLOSED = "closed"


class Profile(Base):
    """A platform user or administrator."""
    __tablename__ = "profiles"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    full_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    role: Mapped[str] = mapped_column(String(20), default=ProfileRole.USER.value, index=True)
    status: Mapped[str] = mapped_column(String(20), default="active")
    last_sign_in_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now(), index=True)

    sales: Mapped[List["EscrowTransaction"]] = relationship(
        "EscrowTransaction",
        back_populates="seller",
        foreign_keys="EscrowTransaction.seller_id",
    )

    def __repr__(self):
        return f"<Profile(id={self.id}, email='{self.email}', role='{self.role}')>"


class EscrowTransaction(Base):
    """An escrow transaction between a seller and a buyer."""
    __tablename__ = "transactions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    seller_id: Mapped[str] = mapped_column(String(36), ForeignKey("profiles.id"), nullable=False, index=True)
    buyer_id: Mapped[Optional[str]] = mapped_column(String(36), ForeignKey("profiles.id"), nullable=True)

    item_title: Mapped[str] = mapped_column(String(255), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), default="USD")
    amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    fee_amount: Mapped[Optional[Decimal]] = mapped_column(Numeric(14, 2), nullable=True)

    status: Mapped[str] = mapped_column(String(20), default=TransactionStatus.PENDING.value, index=True)
    transaction_type: Mapped[str] = mapped_column(String(20), default=TransactionType.PURCHASE.value)

    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now(), index=True)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    seller: Mapped["Profile"] = relationship("Profile", back_populates="sales", foreign_keys=[seller_id])
    buyer: Mapped[Optional["Profile"]] = relationship("Profile", foreign_keys=[buyer_id])

    __table_args__ = (
        Index('idx_transactions_status_created', 'status', 'created_at'),
    )

    def __repr__(self):
        return f"<EscrowTransaction(id={self.id}, amount={self.amount}, status='{self.status}')>"


class Dispute(Base):
    """A dispute raised on a transaction, optionally handled by an admin."""
    __tablename__ = "disputes"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    transaction_id: Mapped[str] = mapped_column(String(36), ForeignKey("transactions.id"), nullable=False, index=True)
    initiator_id: Mapped[str] = mapped_column(String(36), ForeignKey("profiles.id"), nullable=False)
    admin_id: Mapped[Optional[str]] = mapped_column(String(36), ForeignKey("profiles.id"), nullable=True)

    status: Mapped[str] = mapped_column(String(20), default=DisputeStatus.OPEN.value, index=True)
    reason: Mapped[str] = mapped_column(Text, nullable=False)
    resolution: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now(), index=True)
    resolved_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    transaction: Mapped["EscrowTransaction"] = relationship("EscrowTransaction")
    initiator: Mapped["Profile"] = relationship("Profile", foreign_keys=[initiator_id])
    admin: Mapped[Optional["Profile"]] = relationship("Profile", foreign_keys=[admin_id])

    def __repr__(self):
        return f"<Dispute(id={self.id}, status='{self.status}')>"
