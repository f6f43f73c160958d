"""
Audit trail for payment records.

Rows are added to the caller's session and never committed here: an audit
entry is persisted together with the change it describes, or not at all.
"""
from datetime import date, datetime
from decimal import Decimal
from typing import Optional, Dict, Any, List, Literal

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, and_, desc

from tenantpay.audit.models import AuditLog


EntityType = Literal["obligation"]
ActionType = Literal["create", "update", "reconcile"]
SourceType = Literal["api", "system", "script"]


def _jsonable(value: Any) -> Any:
    """JSONB columns only take plain JSON values."""
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    if isinstance(value, dict):
        return {k: _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    return value


class AuditService:
    """
    Records who changed which payment record, how, and from where.

    Usage:
        audit = AuditService(db, user_id=current_user.id)
        await audit.log_create("obligation", obligation.id, {"amount": "300.00"})
        await audit.log_update("obligation", obligation.id, {"status": ("pending", "paid")})
    """

    def __init__(self, db: AsyncSession, user_id: Optional[str] = None, source: SourceType = "api"):
        self.db = db
        self.user_id = user_id
        self.source = source

    async def log(
        self,
        entity_type: EntityType,
        entity_id: str,
        action: ActionType,
        field_name: Optional[str] = None,
        old_value: Optional[Any] = None,
        new_value: Optional[Any] = None,
        extra_data: Optional[Dict[str, Any]] = None,
        notes: Optional[str] = None,
    ) -> AuditLog:
        """
        Add one audit row to the session.

        ``old_value``, ``new_value`` and ``extra_data`` may contain Decimal
        and date values; they are stored as strings.
        """
        entry = AuditLog(
            entity_type=entity_type,
            entity_id=entity_id,
            action=action,
            field_name=field_name,
            old_value=_jsonable(old_value),
            new_value=_jsonable(new_value),
            user_id=self.user_id,
            source=self.source,
            extra_data=_jsonable(extra_data),
            notes=notes,
        )
        self.db.add(entry)
        return entry

    async def log_create(
        self,
        entity_type: EntityType,
        entity_id: str,
        new_value: Dict[str, Any],
        notes: Optional[str] = None,
    ) -> AuditLog:
        return await self.log(entity_type, entity_id, "create", new_value=new_value, notes=notes)

    async def log_update(
        self,
        entity_type: EntityType,
        entity_id: str,
        changes: Dict[str, tuple],
        notes: Optional[str] = None,
    ) -> List[AuditLog]:
        """
        One row per field whose value actually changed.

        ``changes`` maps field name to ``(old, new)``; unchanged pairs are skipped.
        """
        entries = []
        for field_name, (before, after) in changes.items():
            if before == after:
                continue
            entries.append(await self.log(
                entity_type,
                entity_id,
                "update",
                field_name=field_name,
                old_value=before,
                new_value=after,
                notes=notes,
            ))
        return entries

    async def log_reconcile(
        self,
        entity_type: EntityType,
        entity_id: str,
        old_value: Dict[str, Any],
        kept_id: str,
    ) -> AuditLog:
        """Log removal of a duplicate in favour of ``kept_id``."""
        return await self.log(
            entity_type,
            entity_id,
            "reconcile",
            old_value=old_value,
            extra_data={"kept_id": kept_id},
            notes=f"Duplicate of {kept_id} removed",
        )

    async def get_entity_history(
        self,
        entity_type: EntityType,
        entity_id: str,
        limit: int = 100,
    ) -> List[AuditLog]:
        """Newest first."""
        result = await self.db.execute(
            select(AuditLog)
            .where(and_(AuditLog.entity_type == entity_type, AuditLog.entity_id == entity_id))
            .order_by(desc(AuditLog.created_at))
            .limit(limit)
        )
        return list(result.scalars().all())
