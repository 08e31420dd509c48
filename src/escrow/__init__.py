"""
Escrow Module - Platform tables read by reports.
"""

from src.escrow.database import (
    Profile,
    EscrowTransaction,
    Dispute,
    ProfileRole,
    TransactionStatus,
    TransactionType,
    DisputeStatus,
)

__all__ = [
    "Profile",
    "EscrowTransaction",
    "Dispute",
    "ProfileRole",
    "TransactionStatus",
    "TransactionType",
    "DisputeStatus",
]
