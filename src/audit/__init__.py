"""
Audit Module - Insert-after-mutation audit trail.
"""

from src.audit.service import log_action, list_audit_logs, audit_stats

__all__ = [
    "log_action",
    "list_audit_logs",
    "audit_stats",
]
