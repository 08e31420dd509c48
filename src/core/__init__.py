"""
Core Module - Shared Infrastructure.
"""

from src.core.config import settings, Settings
from src.core.database import Base, get_db, get_async_db, async_session_factory
from src.core.notifications import email_client, EmailClient, EmailDeliveryError

__all__ = [
    "settings",
    "Settings",
    "Base",
    "get_db",
    "get_async_db",
    "async_session_factory",
    "email_client",
    "EmailClient",
    "EmailDeliveryError",
]
