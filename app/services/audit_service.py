import json
from typing import Any, List, Optional

from fastapi import Depends
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.db.models import AdminLog
from app.db.session import get_async_session
from app.schemas.audit_schemas import AuditLogItem
from app.utils.logging import get_logger

logger = get_logger()

DEFAULT_LOG_LIMIT = 200


class AuditService:
    """Append-only record of staff actions"""

    def __init__(self, db_session: AsyncSession):
        self.db = db_session

    async def record(
        self,
        actor_id: str,
        case_id: Optional[str],
        action: str,
        details: Any = None,
    ) -> AdminLog:
        """Write and commit one audit entry; ``details`` is stored as JSON text"""
        entry = AdminLog(
            admin_id=actor_id,
            application_id=case_id,
            action=action,
            details=json.dumps(details, default=str) if details is not None else None,
        )
        self.db.add(entry)
        await self.db.commit()
        logger.info(f"Audit: {action} by {actor_id} on application {case_id}")
        return entry

    async def list_logs(self, limit: int = DEFAULT_LOG_LIMIT) -> List[AuditLogItem]:
        """Most recent entries first"""
        result = await self.db.execute(
            select(AdminLog)
            .options(selectinload(AdminLog.admin))
            .order_by(AdminLog.created_at.desc())
            .limit(limit)
        )
        return [self._to_item(entry) for entry in result.scalars().all()]

    @staticmethod
    def _to_item(entry: AdminLog) -> AuditLogItem:
        try:
            details = json.loads(entry.details) if entry.details else None
        except ValueError:
            details = entry.details
        return AuditLogItem(
            id=entry.id,
            admin_id=entry.admin_id,
            admin_email=entry.admin.email if entry.admin else None,
            application_id=entry.application_id,
            action=entry.action,
            details=details,
            created_at=entry.created_at,
        )


def get_audit_service(
    db_session: AsyncSession = Depends(get_async_session),
) -> AuditService:
    """Dependency function to get AuditService instance"""
    return AuditService(db_session)
