"""Public service interface for the Audit module.

Other modules should import from here, not from audit.database directly.
"""
import logging
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from src.audit.database import AuditLog
from src.core.utils import utc_now

logger = logging.getLogger(__name__)


def log_action(
    session: AsyncSession,
    action: str,
    entity_type: str,
    entity_id: Optional[str],
    old_value: Any = None,
    new_value: Any = None,
    performed_by: Optional[str] = None,
    ip_address: Optional[str] = None,
    user_agent: Optional[str] = None,
) -> AuditLog:
    """
    Record an audit entry in the caller's transaction.

    The entry is committed together with the mutation it describes, so a
    rolled back change leaves no audit row behind.
    """
    entry = AuditLog(
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        old_value=old_value,
        new_value=new_value,
        performed_by=performed_by,
        ip_address=ip_address,
        user_agent=user_agent,
        created_at=utc_now(),
    )
    session.add(entry)
    logger.debug(f"Audit: {action} {entity_type}:{entity_id}")
    return entry


async def list_audit_logs(
    session: AsyncSession,
    entity_type: Optional[str] = None,
    action: Optional[str] = None,
    limit: int = 50,
    offset: int = 0,
) -> Tuple[List[Dict[str, Any]], int]:
    """Get audit entries newest first. Returns (rows as dicts, total matching)."""
    stmt = select(AuditLog)
    count_stmt = select(func.count(AuditLog.id))
    if entity_type:
        stmt = stmt.where(AuditLog.entity_type == entity_type)
        count_stmt = count_stmt.where(AuditLog.entity_type == entity_type)
    if action:
        stmt = stmt.where(AuditLog.action == action)
        count_stmt = count_stmt.where(AuditLog.action == action)

    stmt = stmt.order_by(AuditLog.created_at.desc(), AuditLog.id.desc()).limit(limit).offset(offset)

    result = await session.execute(stmt)
    total = (await session.execute(count_stmt)).scalar() or 0
    return [entry.to_dict() for entry in result.scalars().all()], total


async def audit_stats(session: AsyncSession) -> Dict[str, Any]:
    """Entry counts grouped by action and by entity type."""
    actions = await session.execute(
        select(AuditLog.action, func.count(AuditLog.id)).group_by(AuditLog.action)
    )
    entities = await session.execute(
        select(AuditLog.entity_type, func.count(AuditLog.id)).group_by(AuditLog.entity_type)
    )
    action_counts = {action: count for action, count in actions.all()}
    entity_counts = {entity: count for entity, count in entities.all()}
    return {
        "actions": action_counts,
        "entities": entity_counts,
        "total": sum(action_counts.values()),
    }
