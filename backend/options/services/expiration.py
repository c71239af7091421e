"""
Daily expiration sweep.

Run by an external scheduler (``manage.py expire_stale_grants``). Each grant is
expired in its own transaction; the ACTIVE -> EXPIRED transition is the only
guard against processing a grant twice, so re-running the sweep is safe.
"""
import logging

from django.conf import settings
from django.db import transaction
from django.db.models import F
from django.utils import timezone

from activity.sinks import log_event, notify
from backoffice.decimals import decimal_str

from ..models import OptionGrant, OptionPlan
from .exercises import grantee_user_id
from .grants import cancel_pending_exercises, vested_at

logger = logging.getLogger(__name__)


def _expire_one(grant_id, today):
    """Expire one grant; returns the grant, or None if another run got there first."""
    with transaction.atomic():
        grant = (
            OptionGrant.objects
            .select_for_update()
            .filter(pk=grant_id, status="ACTIVE", expiration_date__lt=today)
            .first()
        )
        if grant is None:
            return None

        now = timezone.now()
        returned = grant.unexercised
        grant.vested_at_termination = vested_at(grant, now)
        grant.status = "EXPIRED"
        grant.terminated_at = now
        grant.save(update_fields=["status", "terminated_at", "vested_at_termination", "updated_at"])

        if returned > 0:
            OptionPlan.objects.filter(pk=grant.plan_id).update(
                total_granted=F("total_granted") - returned,
                updated_at=now,
            )
        cancelled_requests = cancel_pending_exercises(grant.pk, now)
        user_id = grantee_user_id(grant.shareholder_id)

    # committed; from here on nothing may fail the grant
    try:
        notify(
            user_id=user_id,
            notification_type="OPTION_GRANT_EXPIRED",
            subject="Your option grant has expired",
            related_entity_type="OptionGrant",
            related_entity_id=grant.pk,
            company_id=grant.company_id,
        )
        log_event(
            action="OPTION_GRANT_EXPIRED",
            resource_type="OptionGrant",
            resource_id=grant.pk,
            company_id=grant.company_id,
            actor_type="SYSTEM",
            changes={"before": {"status": "ACTIVE"}, "after": {"status": "EXPIRED"}},
            metadata={
                "quantityReturned": decimal_str(returned),
                "vestedAtTermination": decimal_str(grant.vested_at_termination),
                "exerciseRequestsCancelled": cancelled_requests,
            },
        )
    except Exception:
        logger.warning("Expiry side effects failed for option grant %s", grant.pk, exc_info=True)
    return grant


def expire_stale_grants(batch_size=None, today=None) -> int:
    """
    Expire up to ``batch_size`` ACTIVE grants whose expiration date has passed.
    Returns how many were expired.
    """
    if today is None:
        today = timezone.localdate()
    if batch_size is None:
        batch_size = getattr(settings, "OPTIONS_EXPIRATION_BATCH_SIZE", 100)

    stale_ids = list(
        OptionGrant.objects
        .filter(status="ACTIVE", expiration_date__lt=today)
        .order_by("expiration_date", "pk")
        .values_list("pk", flat=True)[:batch_size]
    )
    if not stale_ids:
        return 0

    expired = 0
    for grant_id in stale_ids:
        try:
            if _expire_one(grant_id, today) is not None:
                expired += 1
        except Exception:
            logger.exception("Failed to expire option grant %s", grant_id)

    logger.info("Expired %s of %s stale option grants", expired, len(stale_ids))
    return expired
