"""Audit Log Repository Layer"""
from typing import Any, Dict, Optional
from uuid import UUID

from evv_service.db.models import AuditLog
from evv_service.db.repository import BaseRepository


class AuditLogRepository(BaseRepository):
    """Writes entries to the activity/audit trail"""

    async def add_audit_log(
        self,
        company_id: UUID,
        user_id: Optional[UUID],
        action: str,
        entity_type: str,
        entity_id: str,
        changes: Optional[Dict[str, Any]] = None,
    ) -> AuditLog:
        """Stage an audit entry in the current transaction (caller commits)"""
        entry = AuditLog(
            company_id=company_id,
            user_id=user_id,
            action=action,
            entity_type=entity_type,
            entity_id=str(entity_id),
            changes=changes,
        )
        self.db.add(entry)
        await self.db.flush()
        return entry
