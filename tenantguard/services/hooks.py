"""
Domain hooks executed inside the triggering transaction.

WHAT: A small registry mapping domain events to async handlers that run
before the triggering operation returns, in the same session.

WHY: Invariants such as "an organization always keeps one admin", and
follow-on provisioning such as creating a billing trial when an
organization is created, are explicit application code here. A handler
that raises aborts the operation and the caller's transaction.

HOW: Handlers receive the session plus keyword payload. The last-admin
guard is registered on both membership events by default.
"""

import enum
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from tenantguard.core.exceptions import InvariantViolation
from tenantguard.dao.membership import MembershipDAO
from tenantguard.models.membership import Membership, MembershipRole


logger = logging.getLogger(__name__)


class DomainEvent(str, enum.Enum):
    """
    Payloads:
    - ORGANIZATION_CREATED: organization, admin_user_id
    - MEMBERSHIP_REMOVING: membership
    - MEMBERSHIP_ROLE_CHANGING: membership, new_role
    """

    ORGANIZATION_CREATED = "organization_created"
    MEMBERSHIP_REMOVING = "membership_removing"
    MEMBERSHIP_ROLE_CHANGING = "membership_role_changing"


Hook = Callable[..., Awaitable[None]]


class HookRegistry:
    """
    Event -> ordered list of handlers.

    Example:
        @hook_registry.on(DomainEvent.ORGANIZATION_CREATED)
        async def start_trial(session, organization, **payload):
            ...
    """

    def __init__(self):
        self._hooks: Dict[DomainEvent, List[Hook]] = {event: [] for event in DomainEvent}

    def register(self, event: DomainEvent, hook: Hook) -> None:
        if hook not in self._hooks[event]:
            self._hooks[event].append(hook)

    def unregister(self, event: DomainEvent, hook: Hook) -> None:
        if hook in self._hooks[event]:
            self._hooks[event].remove(hook)

    def on(self, event: DomainEvent) -> Callable[[Hook], Hook]:
        """Decorator form of register()."""

        def decorator(hook: Hook) -> Hook:
            self.register(event, hook)
            return hook

        return decorator

    def hooks_for(self, event: DomainEvent) -> List[Hook]:
        return list(self._hooks[event])

    async def run(self, event: DomainEvent, session: AsyncSession, **payload: Any) -> None:
        """
        Run every handler for `event` in registration order.

        Raises:
            Whatever a handler raises; later handlers do not run
        """
        for hook in self._hooks[event]:
            logger.debug("Running %s hook %s", event.value, getattr(hook, "__name__", hook))
            await hook(session, **payload)


async def ensure_not_last_admin(
    session: AsyncSession,
    membership: Membership,
    new_role: Optional[MembershipRole] = None,
    **payload: Any,
) -> None:
    """
    Refuse to remove or demote an organization's last admin.

    WHY: The admin rows are locked (SELECT ... FOR UPDATE) before they
    are counted, so the check and the mutation that follows are atomic
    with respect to a concurrent removal of another admin.

    Raises:
        InvariantViolation: If `membership` is the only admin left
    """
    if membership.role != MembershipRole.ADMIN:
        return
    if new_role == MembershipRole.ADMIN:
        return

    admins = await MembershipDAO(session).lock_admins(membership.organization_id)
    admin_ids = {admin.id for admin in admins}

    # Demoted concurrently; nothing to protect
    if membership.id not in admin_ids:
        return

    if len(admin_ids) <= 1:
        raise InvariantViolation(
            "cannot remove last admin",
            organization_id=membership.organization_id,
            user_id=membership.user_id,
        )


def create_default_registry() -> HookRegistry:
    """Registry with the built-in invariant hooks installed."""
    registry = HookRegistry()
    registry.register(DomainEvent.MEMBERSHIP_REMOVING, ensure_not_last_admin)
    registry.register(DomainEvent.MEMBERSHIP_ROLE_CHANGING, ensure_not_last_admin)
    return registry


hook_registry = create_default_registry()
