"""
Quota Management Service

Enforces the per-tenant message quota for chat turns. The counter is
incremented with a single UPDATE statement so concurrent turns for the
same tenant cannot lose increments.
"""

from typing import Any, Dict, Optional
from sqlalchemy.orm import Session
from agentdesk.config import settings
from agentdesk.core.exceptions import LimitReached
from agentdesk.database import utcnow
from agentdesk.models.tenant import Tenant
import logging

logger = logging.getLogger(__name__)


def plan_message_limit(plan: str) -> int:
    """Default message limit for a plan (0 = unlimited)"""
    return settings.PLAN_MESSAGE_LIMITS.get(plan, settings.PLAN_MESSAGE_LIMITS.get(settings.DEFAULT_PLAN, 0))


class QuotaService:
    """
    Track and enforce tenant message quotas

    A limit of 0 means unlimited. A tenant with no record is not
    enforced; its increments are logged and dropped.
    """

    def __init__(self, db: Session):
        self.db = db

    def _get_tenant(self, tenant_id: str) -> Optional[Tenant]:
        return self.db.query(Tenant).filter(Tenant.id == tenant_id).first()

    def ensure_tenant(self, tenant_id: str, plan: Optional[str] = None, name: Optional[str] = None) -> Tenant:
        """Return the tenant, creating it with its plan's default limit if missing"""
        tenant = self._get_tenant(tenant_id)
        if tenant is not None:
            return tenant

        plan = plan or settings.DEFAULT_PLAN
        tenant = Tenant(
            id=tenant_id,
            name=name,
            plan=plan,
            messages_used=0,
            message_limit=plan_message_limit(plan),
        )
        self.db.add(tenant)
        self.db.commit()
        self.db.refresh(tenant)
        logger.info(f"Created tenant {tenant_id} on plan '{plan}'")
        return tenant

    def check_quota(self, tenant_id: str) -> bool:
        """
        Reject when the tenant has used its whole allowance

        Raises:
            LimitReached: messages_used >= message_limit on a limited plan
        """
        tenant = self._get_tenant(tenant_id)
        if tenant is None:
            logger.warning(f"No tenant record for {tenant_id}; quota not enforced")
            return True

        if tenant.message_limit > 0 and tenant.messages_used >= tenant.message_limit:
            logger.warning(
                f"Quota exceeded for tenant {tenant_id}: "
                f"{tenant.messages_used}/{tenant.message_limit} ({tenant.plan})"
            )
            raise LimitReached(
                messages_used=tenant.messages_used,
                message_limit=tenant.message_limit,
                plan=tenant.plan,
            )

        logger.debug(f"Quota check PASSED for tenant {tenant_id}")
        return True

    def increment_usage(self, tenant_id: str) -> bool:
        """
        Atomically add one message to the tenant's usage

        Returns:
            True if a tenant row was updated
        """
        updated = (
            self.db.query(Tenant)
            .filter(Tenant.id == tenant_id)
            .update(
                {Tenant.messages_used: Tenant.messages_used + 1},
                synchronize_session=False,
            )
        )
        self.db.commit()

        if not updated:
            logger.info(f"Usage increment skipped, no tenant record for {tenant_id}")
            return False
        return True

    def get_usage(self, tenant_id: str) -> Dict[str, Any]:
        tenant = self._get_tenant(tenant_id)
        if tenant is None:
            return {"messagesUsed": 0, "messageLimit": 0, "plan": None, "unlimited": True}

        return {
            "messagesUsed": tenant.messages_used,
            "messageLimit": tenant.message_limit,
            "plan": tenant.plan,
            "unlimited": tenant.message_limit == 0,
        }

    def reset_usage(self, tenant_id: str) -> bool:
        """Period rollover: zero the counter and restart the period"""
        updated = (
            self.db.query(Tenant)
            .filter(Tenant.id == tenant_id)
            .update(
                {Tenant.messages_used: 0, Tenant.period_started_at: utcnow()},
                synchronize_session=False,
            )
        )
        self.db.commit()
        logger.info(f"Reset usage for tenant {tenant_id}")
        return bool(updated)
