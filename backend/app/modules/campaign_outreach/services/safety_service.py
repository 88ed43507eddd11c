"""
Safety Service (Rate Limiter)
Rolling-window caps on automated LinkedIn / email actions.

The quota is counted from automation_logs rows with event_type='phantom_launched'
written by log_action(), one row per dispatch that actually reached the provider.
Failed or vetoed attempts are never logged as consumed quota.

Check-then-act is not atomic: two concurrent checks can both pass and overshoot
a cap by a small margin. The per-lead locks do not cover this (they are per lead,
not per action type). Caps exist to prevent gross abuse, not for exact enforcement.
"""
import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, Optional
from sqlalchemy.ext.asyncio import AsyncSession

from app.shared.core.config import settings
from app.modules.campaign_outreach.constants import StepType, LogEventType, LogStatus
from app.modules.campaign_outreach.repositories.automation_log_repository import AutomationLogRepository

logger = logging.getLogger("safety_service")


def default_limits() -> Dict[str, int]:
    """Per-step-type daily caps from settings."""
    return {
        StepType.CONNECTION_REQUEST.value: settings.SAFETY_LIMIT_CONNECTION_REQUEST,
        StepType.MESSAGE.value: settings.SAFETY_LIMIT_MESSAGE,
        StepType.EMAIL.value: settings.SAFETY_LIMIT_EMAIL,
    }


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class SafetyService:
    """
    Injectable limiter: limits, window and clock can be overridden (tests use a fake clock).
    Action types with no configured limit are always blocked.
    """

    def __init__(
        self,
        db: AsyncSession,
        limits: Optional[Dict[str, int]] = None,
        window: Optional[timedelta] = None,
        clock: Callable[[], datetime] = utc_now
    ):
        self.db = db
        self.log_repo = AutomationLogRepository(db)
        self.limits = limits if limits is not None else default_limits()
        self.window = window or timedelta(hours=settings.SAFETY_WINDOW_HOURS)
        self.clock = clock

    async def get_usage(self, action_type: str) -> int:
        """Quota entries of this type inside the current window."""
        since = self.clock() - self.window
        return await self.log_repo.count_launches_since(_value(action_type), since)

    async def is_safe_to_proceed(self, action_type: str) -> bool:
        """
        True while the rolling count is below the cap.
        Any error while counting blocks the action (when uncertain, don't send).
        """
        action = _value(action_type)
        limit = self.limits.get(action)
        if limit is None:
            logger.warning(f"No safety limit configured for '{action}', blocking")
            return False

        try:
            used = await self.get_usage(action)
        except Exception as e:
            logger.error(f"Safety check failed for '{action}', blocking: {e}")
            return False

        if used >= limit:
            logger.info(f"🛑 Safety limit reached for {action}: {used}/{limit} in the last {self.window}")
            return False
        return True

    async def log_action(
        self,
        action_type: str,
        details: Optional[dict] = None,
        campaign_id: Optional[int] = None,
        lead_id: Optional[int] = None
    ) -> dict:
        """
        Record one consumed unit of quota. Call ONLY after a successful dispatch.
        Does not commit; the caller's transaction does.
        """
        action = _value(action_type)
        payload = {**(details or {}), "step_type": action}
        return await self.log_repo.create_log(
            event_type=LogEventType.PHANTOM_LAUNCHED.value,
            action=action,
            status=LogStatus.SUCCESS.value,
            details=payload,
            campaign_id=campaign_id,
            lead_id=lead_id
        )

    async def get_status(self) -> Dict[str, dict]:
        """Usage vs. limit for every configured action type."""
        status = {}
        for action, limit in self.limits.items():
            used = await self.get_usage(action)
            status[action] = {"used": used, "limit": limit, "remaining": max(limit - used, 0)}
        return status


def _value(action_type) -> str:
    return action_type.value if isinstance(action_type, StepType) else action_type
