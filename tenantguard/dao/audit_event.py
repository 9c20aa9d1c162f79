"""
Audit Event Data Access Object (DAO).

WHAT: Data access layer for the append-only audit event log.

WHY: The audit log is the forensic record of privileged operations and
the input to the security metrics and anomaly heuristics. This DAO:
- Only ever inserts (update and delete raise)
- Provides the aggregation queries the security read surface needs

HOW: Plain async SQLAlchemy; aggregations are GROUP BY queries so the
database does the counting.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional, List, Dict, Any
from sqlalchemy import select, func, or_
from sqlalchemy.ext.asyncio import AsyncSession

from tenantguard.core.exceptions import AuditLogImmutableError
from tenantguard.models.audit_event import AuditEvent, AuditAction


@dataclass(frozen=True)
class ActivityAggregate:
    """Event count for one (organization, user) pair within a window."""

    organization_id: Optional[int]
    user_id: Optional[str]
    event_count: int
    first_seen: datetime
    last_seen: datetime


class AuditEventDAO:
    """
    Data Access Object for audit events.

    Does not extend BaseDAO: the generic update/delete it would inherit
    are exactly what the log must not offer.
    """

    def __init__(self, session: AsyncSession):
        """
        Args:
            session: Async database session
        """
        self.session = session

    async def create(
        self,
        action: str,
        resource_type: str,
        organization_id: Optional[int] = None,
        user_id: Optional[str] = None,
        resource_id: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> AuditEvent:
        """
        Append an audit event.

        Args:
            action: AuditAction value or business-layer action name
            resource_type: Category of affected resource
            organization_id: Tenant context (None for platform-level events)
            user_id: Acting principal
            resource_id: Affected resource identifier
            metadata: Event detail
            ip_address: Client IP address
            user_agent: Client user agent

        Returns:
            The created AuditEvent
        """
        event = AuditEvent(
            action=_action_value(action),
            resource_type=resource_type,
            organization_id=organization_id,
            user_id=user_id,
            resource_id=str(resource_id) if resource_id is not None else None,
            event_metadata=dict(metadata or {}),
            ip_address=ip_address,
            user_agent=user_agent,
        )
        self.session.add(event)
        await self.session.flush()
        await self.session.refresh(event)
        return event

    async def get_by_id(self, event_id: int) -> Optional[AuditEvent]:
        result = await self.session.execute(select(AuditEvent).where(AuditEvent.id == event_id))
        return result.scalar_one_or_none()

    async def get_by_organization(
        self,
        organization_id: int,
        action: Optional[str] = None,
        skip: int = 0,
        limit: int = 100,
    ) -> List[AuditEvent]:
        """
        Events for one organization, newest first.

        Args:
            organization_id: Organization ID
            action: Optional action filter
            skip: Pagination offset
            limit: Maximum records to return
        """
        query = select(AuditEvent).where(AuditEvent.organization_id == organization_id)
        if action is not None:
            query = query.where(AuditEvent.action == _action_value(action))
        result = await self.session.execute(
            query.order_by(AuditEvent.created_at.desc(), AuditEvent.id.desc())
            .offset(skip)
            .limit(limit)
        )
        return list(result.scalars().all())

    async def count_since(self, organization_id: int, since: datetime) -> int:
        """Number of events recorded for an organization since a cutoff."""
        result = await self.session.execute(
            select(func.count(AuditEvent.id)).where(
                AuditEvent.organization_id == organization_id,
                AuditEvent.created_at >= since,
            )
        )
        return result.scalar() or 0

    async def aggregate_failed_access(self, since: datetime, threshold: int) -> List[ActivityAggregate]:
        """
        (organization, user) pairs with more than `threshold` failed-access events.

        A failed access is an access_denied event or any event whose
        metadata carries status "failed".
        """
        failed = or_(
            AuditEvent.action == AuditAction.ACCESS_DENIED.value,
            AuditEvent.event_metadata["status"].as_string() == "failed",
        )
        return await self._aggregate(failed, since, threshold)

    async def aggregate_reads(self, since: datetime, threshold: int) -> List[ActivityAggregate]:
        """(organization, user) pairs with more than `threshold` read events."""
        return await self._aggregate(AuditEvent.action == AuditAction.READ.value, since, threshold)

    async def _aggregate(self, condition, since: datetime, threshold: int) -> List[ActivityAggregate]:
        event_count = func.count(AuditEvent.id)
        result = await self.session.execute(
            select(
                AuditEvent.organization_id,
                AuditEvent.user_id,
                event_count,
                func.min(AuditEvent.created_at),
                func.max(AuditEvent.created_at),
            )
            .where(condition, AuditEvent.created_at >= since)
            .group_by(AuditEvent.organization_id, AuditEvent.user_id)
            .having(event_count > threshold)
            .order_by(event_count.desc())
        )
        return [
            ActivityAggregate(
                organization_id=row[0],
                user_id=row[1],
                event_count=row[2],
                first_seen=row[3],
                last_seen=row[4],
            )
            for row in result.all()
        ]

    async def update(self, event_id: int, **kwargs: Any) -> None:
        """
        Attempt to update an audit event (BLOCKED).

        Raises:
            AuditLogImmutableError: Always raised - updates not allowed
        """
        raise AuditLogImmutableError("Audit events are immutable and cannot be updated")

    async def delete(self, event_id: int) -> None:
        """
        Attempt to delete an audit event (BLOCKED).

        Raises:
            AuditLogImmutableError: Always raised - deletions not allowed
        """
        raise AuditLogImmutableError("Audit events cannot be deleted")


def _action_value(action) -> str:
    return action.value if isinstance(action, AuditAction) else action
