"""
Audit logging service.

WHAT: Writes audit events for privileged operations and serves the
security read surface (per-organization metrics and suspicious-activity
detection).

WHY: Every role change, membership removal and organization lifecycle
transition leaves an immutable trace. Writing that trace is best-effort:
a failed audit write must not undo the business operation that was
already allowed, but it must not go unnoticed either.

HOW: Writes go through AuditEventDAO inside a savepoint, so a failing
insert rolls back only itself. Failures are logged at ERROR with
extra={"alert": "audit_log_write_failed"} for log-based alerting.
Request IP, user agent and principal are taken from the request context.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from tenantguard.core.config import settings
from tenantguard.core.exceptions import PermissionDenied
from tenantguard.dao.audit_event import AuditEventDAO
from tenantguard.dao.membership import MembershipDAO
from tenantguard.middleware.request_context import get_request_context
from tenantguard.models.audit_event import AuditAction, AuditEvent
from tenantguard.models.base import as_utc, utcnow
from tenantguard.models.membership import MembershipRole
from tenantguard.services.guard import Action, ResourceGuard, ResourceType, registered_tenant_resources


# Logger for audit service errors (not audit events themselves)
logger = logging.getLogger(__name__)

AUDIT_WRITE_FAILED_ALERT = "audit_log_write_failed"


@dataclass(frozen=True)
class SecurityMetric:
    metric_name: str
    metric_value: int
    last_updated: datetime


@dataclass(frozen=True)
class SuspiciousActivity:
    """One flagged (organization, user) pair."""

    alert_type: str
    organization_id: Optional[int]
    user_id: Optional[str]
    event_count: int
    first_seen: datetime
    last_seen: datetime


class AuditService:
    """
    Service for creating audit events and reading security summaries.

    Example:
        audit = AuditService(session)
        await audit.log_event(AuditAction.REMOVE_MEMBER, org_id,
                              {"target_user_id": user_id})
    """

    def __init__(self, session: AsyncSession, guard: Optional[ResourceGuard] = None):
        """
        Args:
            session: Async database session for audit persistence
            guard: Resource Guard used by the admin-only read surface
        """
        self._session = session
        self.dao = AuditEventDAO(session)
        self.guard = guard or ResourceGuard(session)

    def _get_context(self) -> tuple[Optional[str], Optional[str], Optional[str]]:
        """(ip_address, user_agent, principal) of the current request, if any."""
        ctx = get_request_context()
        if ctx:
            return ctx.ip_address, ctx.user_agent, ctx.principal
        return None, None, None

    # =========================================================================
    # Writes
    # =========================================================================

    async def log_event(
        self,
        action: str,
        organization_id: Optional[int] = None,
        metadata: Optional[Dict[str, Any]] = None,
        user_id: Optional[str] = None,
        resource_type: Optional[str] = None,
        resource_id: Optional[Any] = None,
    ) -> Optional[int]:
        """
        Append an audit event.

        Args:
            action: AuditAction (or a business-layer action name)
            organization_id: Tenant context, None for platform-level events
            metadata: Event detail
            user_id: Acting principal (defaults to the request's principal)
            resource_type: Defaults to "organization" or "platform"
            resource_id: Affected resource (defaults to the organization id)

        Returns:
            The new event id, or None if the write failed

        Raises:
            SQLAlchemyError: If flushing the caller's own pending changes
                fails; those are not audit failures

        Note:
            Never raises for a failure of the audit insert itself. That
            failure is rolled back to a savepoint, logged at ERROR and
            flagged for alerting.
        """
        ip_address, user_agent, ctx_principal = self._get_context()
        if user_id is None:
            user_id = ctx_principal
        if resource_type is None:
            resource_type = "organization" if organization_id is not None else "platform"
        if resource_id is None and resource_type == "organization":
            resource_id = organization_id

        # The caller's pending writes flush here so their errors propagate
        await self._session.flush()

        try:
            async with self._session.begin_nested():
                event = await self.dao.create(
                    action=action,
                    resource_type=resource_type,
                    organization_id=organization_id,
                    user_id=user_id,
                    resource_id=resource_id,
                    metadata=metadata,
                    ip_address=ip_address,
                    user_agent=user_agent,
                )
        except SQLAlchemyError:
            logger.error(
                "Failed to write audit event %s (organization_id=%s, user_id=%s)",
                getattr(action, "value", action),
                organization_id,
                user_id,
                exc_info=True,
                extra={"alert": AUDIT_WRITE_FAILED_ALERT},
            )
            return None

        return event.id

    async def log_access_denied(
        self,
        user_id: Optional[str],
        organization_id: Optional[int],
        resource_type: str,
        attempted_action: str,
        resource_id: Optional[Any] = None,
    ) -> Optional[int]:
        """
        Record a rejected access attempt.

        These are the failed-access events detect_suspicious_activity
        aggregates. The denial reason is not recorded.
        """
        return await self.log_event(
            AuditAction.ACCESS_DENIED,
            organization_id,
            {"status": "failed", "attempted_action": attempted_action},
            user_id=user_id,
            resource_type=resource_type,
            resource_id=resource_id,
        )

    async def log_read_access(
        self,
        user_id: Optional[str],
        organization_id: int,
        resource_type: str,
        resource_id: Optional[Any] = None,
        record_count: Optional[int] = None,
    ) -> Optional[int]:
        """
        Record a read of tenant data.

        Apart from audit-log listings (list_events) the core does not log
        reads itself: the business layer calls this after each guarded
        read of its tenant resources (uploads, reports, ...). These events
        are the only input of the high_volume_reads heuristic in
        detect_suspicious_activity, so a read path that skips this call
        is invisible to it.

        Args:
            user_id: Reading principal
            organization_id: Organization whose data was read
            resource_type: Registered resource name, e.g. "uploads"
            resource_id: Single record read, if any
            record_count: Number of rows returned, for list reads
        """
        metadata: Dict[str, Any] = {"status": "success"}
        if record_count is not None:
            metadata["record_count"] = record_count
        return await self.log_event(
            AuditAction.READ,
            organization_id,
            metadata,
            user_id=user_id,
            resource_type=resource_type,
            resource_id=resource_id,
        )

    # =========================================================================
    # Security read surface
    # =========================================================================

    async def list_events(
        self,
        principal: str,
        organization_id: int,
        skip: int = 0,
        limit: int = 100,
        action: Optional[str] = None,
    ) -> List[AuditEvent]:
        """
        Audit events of one organization, newest first.

        Organization admins and the platform admin only; empty when
        denied. The listing is itself recorded as a read of the audit log.
        """
        decision = await self.guard.authorize(
            principal, organization_id, Action.READ, ResourceType.AUDIT_EVENT
        )
        if not decision:
            return []

        events = await self.dao.get_by_organization(
            organization_id, action=action, skip=skip, limit=limit
        )
        await self.log_read_access(
            principal, organization_id, "audit_events", record_count=len(events)
        )
        return events

    async def get_organization_security_metrics(
        self,
        principal: str,
        organization_id: int,
        window_days: Optional[int] = None,
    ) -> List[SecurityMetric]:
        """
        Security metrics for one organization. Admin-only.

        Metrics: total_members, total_admins, total_viewers,
        security_events_<N>d, and total_<name> for every registered
        tenant resource.

        Args:
            principal: Acting principal
            organization_id: Organization to summarize
            window_days: Window for recent events (default from settings)

        Raises:
            PermissionDenied: If the principal is neither an admin of the
                organization nor the platform admin
        """
        decision = await self.guard.authorize(
            principal, organization_id, Action.READ, ResourceType.AUDIT_EVENT
        )
        if not decision:
            raise PermissionDenied(
                "Organization admin access required",
                organization_id=organization_id,
            )

        window_days = window_days or settings.SECURITY_METRICS_WINDOW_DAYS
        now = utcnow()

        role_counts = await MembershipDAO(self._session).count_by_role(organization_id)
        recent_events = await self.dao.count_since(organization_id, now - timedelta(days=window_days))

        values: List[tuple[str, int]] = [
            ("total_members", sum(role_counts.values())),
            ("total_admins", role_counts[MembershipRole.ADMIN]),
            ("total_viewers", role_counts[MembershipRole.VIEWER]),
            (f"security_events_{window_days}d", recent_events),
        ]

        for name, model in sorted(registered_tenant_resources().items()):
            result = await self._session.execute(
                select(func.count()).select_from(model).where(model.organization_id == organization_id)
            )
            values.append((f"total_{name}", result.scalar() or 0))

        return [SecurityMetric(name, value, now) for name, value in values]

    async def detect_suspicious_activity(
        self,
        principal: str,
        lookback: Optional[timedelta] = None,
        failed_access_threshold: Optional[int] = None,
        high_volume_read_threshold: Optional[int] = None,
    ) -> List[SuspiciousActivity]:
        """
        Flag (organization, user) pairs with unusual activity. Platform admin only.

        WHAT: Two heuristics over the audit log within the lookback window:
        - multiple_failed_access: more than N failed-access events
        - high_volume_reads: more than M read events

        Args:
            principal: Acting principal
            lookback: Window to inspect (default SUSPICIOUS_LOOKBACK_HOURS)
            failed_access_threshold: Override of the configured threshold
            high_volume_read_threshold: Override of the configured threshold

        Returns:
            Alerts, failed-access alerts first, each sorted by count

        Raises:
            PermissionDenied: If the principal is not the platform admin
        """
        if not await self.guard.evaluator.is_platform_admin(principal):
            raise PermissionDenied("Platform admin access required")

        if lookback is None:
            lookback = timedelta(hours=settings.SUSPICIOUS_LOOKBACK_HOURS)
        if failed_access_threshold is None:
            failed_access_threshold = settings.SUSPICIOUS_FAILED_ACCESS_THRESHOLD
        if high_volume_read_threshold is None:
            high_volume_read_threshold = settings.SUSPICIOUS_HIGH_VOLUME_READ_THRESHOLD

        since = utcnow() - lookback
        alerts: List[SuspiciousActivity] = []

        for alert_type, aggregates in (
            ("multiple_failed_access", await self.dao.aggregate_failed_access(since, failed_access_threshold)),
            ("high_volume_reads", await self.dao.aggregate_reads(since, high_volume_read_threshold)),
        ):
            for aggregate in aggregates:
                alerts.append(
                    SuspiciousActivity(
                        alert_type=alert_type,
                        organization_id=aggregate.organization_id,
                        user_id=aggregate.user_id,
                        event_count=aggregate.event_count,
                        first_seen=as_utc(aggregate.first_seen),
                        last_seen=as_utc(aggregate.last_seen),
                    )
                )

        if alerts:
            logger.warning("Suspicious activity detected: %d alert(s)", len(alerts))
        return alerts
