"""
Platform security API endpoints.

WHY: The platform admin reviews cross-tenant anomalies flagged from the
audit log (repeated failed access, unusually many reads).
"""

from datetime import timedelta
from typing import List

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from tenantguard.core.deps import get_current_principal
from tenantguard.db.session import get_db
from tenantguard.schemas.security import SuspiciousActivityResponse
from tenantguard.services.audit import AuditService


router = APIRouter(prefix="/security", tags=["security"])


@router.get(
    "/suspicious-activity",
    response_model=List[SuspiciousActivityResponse],
    summary="Suspicious activity alerts (platform admin)",
)
async def get_suspicious_activity(
    lookback_hours: int | None = Query(None, ge=1, le=24 * 90),
    failed_access_threshold: int | None = Query(None, ge=0),
    high_volume_read_threshold: int | None = Query(None, ge=0),
    principal: str = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
) -> List[SuspiciousActivityResponse]:
    """
    Raises:
        PermissionDenied (403): If the caller is not the platform admin
    """
    lookback = timedelta(hours=lookback_hours) if lookback_hours else None
    alerts = await AuditService(db).detect_suspicious_activity(
        principal,
        lookback=lookback,
        failed_access_threshold=failed_access_threshold,
        high_volume_read_threshold=high_volume_read_threshold,
    )
    return [SuspiciousActivityResponse.model_validate(alert) for alert in alerts]
