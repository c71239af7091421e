import logging
from decimal import ROUND_HALF_UP, Decimal

from django.db import transaction
from django.db.models import F
from django.utils import timezone

from activity.sinks import log_event
from backoffice.decimals import CENT, decimal_str, safe_dec
from backoffice.errors import BusinessRuleError, NotFoundError
from backoffice.sorting import parse_sort
from captable.models import Shareholder

from ..models import OptionExerciseRequest, OptionGrant, OptionPlan
from ..vesting import calculate_vesting, generate_vesting_schedule
from .common import actor_pk, audit_state
from .plans import live_pool_usage

logger = logging.getLogger(__name__)

GRANT_SORTABLE_FIELDS = ["grantDate", "createdAt", "quantity", "status", "employeeName"]

AUDITED_FIELDS = ("status", "quantity", "exercised", "strike_price", "plan_id", "shareholder_id")


def cliff_percentage(cliff_months: int, vesting_duration_months: int) -> Decimal:
    if not vesting_duration_months:
        return Decimal("0.00")
    return (Decimal(cliff_months) / Decimal(vesting_duration_months) * 100).quantize(CENT, rounding=ROUND_HALF_UP)


def list_grants(company_id, status=None, plan_id=None, shareholder_id=None, sort=None):
    qs = OptionGrant.objects.filter(company_id=company_id).select_related("plan", "shareholder")
    if status:
        qs = qs.filter(status=status)
    if plan_id:
        qs = qs.filter(plan_id=plan_id)
    if shareholder_id:
        qs = qs.filter(shareholder_id=shareholder_id)
    return qs.order_by(*parse_sort(sort, GRANT_SORTABLE_FIELDS, "-grantDate"))


def get_grant(company_id, grant_id) -> OptionGrant:
    grant = (
        OptionGrant.objects
        .filter(pk=grant_id, company_id=company_id)
        .select_related("plan", "shareholder")
        .first()
    )
    if grant is None:
        raise NotFoundError("optionGrant", grant_id)
    return grant


def locked_grant(company_id, grant_id) -> OptionGrant:
    grant = OptionGrant.objects.select_for_update().filter(pk=grant_id, company_id=company_id).first()
    if grant is None:
        raise NotFoundError("optionGrant", grant_id)
    return grant


def grant_vesting_schedule(company_id, grant_id, on_date=None) -> dict:
    grant = get_grant(company_id, grant_id)
    vesting = calculate_vesting(grant, on_date)
    return {
        "grantId": grant.pk,
        "shareholderName": grant.shareholder.name if grant.shareholder else grant.employee_name,
        "totalOptions": decimal_str(grant.quantity),
        "vestedOptions": decimal_str(vesting.vested_quantity),
        "unvestedOptions": decimal_str(vesting.unvested_quantity),
        "exercisedOptions": decimal_str(grant.exercised),
        "exercisableOptions": decimal_str(vesting.exercisable_quantity),
        "vestingPercentage": str(vesting.vesting_percentage),
        "cliffDate": vesting.cliff_date.isoformat(),
        "cliffMet": vesting.cliff_met,
        "nextVestingDate": vesting.next_vesting_date.isoformat() if vesting.next_vesting_date else None,
        "nextVestingAmount": decimal_str(vesting.next_vesting_amount),
        "schedule": [event.as_dict() for event in generate_vesting_schedule(grant)],
    }


def create_grant(company_id, data: dict, actor=None) -> OptionGrant:
    """
    Issue a grant against a plan's pool. The plan row is locked for the whole
    check-and-reserve so concurrent grants cannot oversubscribe it.
    """
    plan_id = data["plan_id"]
    quantity = safe_dec(data.get("quantity"))
    strike_price = safe_dec(data.get("strike_price"))

    with transaction.atomic():
        plan = OptionPlan.objects.select_for_update().filter(pk=plan_id, company_id=company_id).first()
        if plan is None:
            raise NotFoundError("optionPlan", plan_id)
        if plan.status != "ACTIVE":
            raise BusinessRuleError("OPT_PLAN_CLOSED", "errors.opt.planClosed")

        if quantity <= 0:
            raise BusinessRuleError("OPT_INVALID_QUANTITY", "errors.opt.invalidQuantity")
        if strike_price <= 0:
            raise BusinessRuleError("OPT_INVALID_STRIKE_PRICE", "errors.opt.invalidStrikePrice")

        available = plan.total_pool_size - live_pool_usage(plan.pk)
        if quantity > available:
            raise BusinessRuleError(
                "OPT_PLAN_EXHAUSTED",
                "errors.opt.planExhausted",
                {"optionsAvailable": decimal_str(available), "quantityRequested": decimal_str(quantity)},
            )

        shareholder_id = data.get("shareholder_id")
        if shareholder_id and not Shareholder.objects.filter(pk=shareholder_id, company_id=company_id).exists():
            raise NotFoundError("shareholder", shareholder_id)

        cliff_months = data.get("cliff_months")
        if cliff_months is None:
            cliff_months = plan.default_cliff_months
        duration = data.get("vesting_duration_months")
        if duration is None:
            duration = plan.default_vesting_months
        frequency = data.get("vesting_frequency") or plan.default_vesting_frequency

        if cliff_months > duration:
            raise BusinessRuleError(
                "OPT_CLIFF_EXCEEDS_VESTING",
                "errors.opt.cliffExceedsVesting",
                {"cliffMonths": cliff_months, "vestingDurationMonths": duration},
            )

        grant_date = data["grant_date"]
        expiration_date = data["expiration_date"]
        if expiration_date <= grant_date:
            raise BusinessRuleError("OPT_INVALID_EXPIRATION", "errors.opt.invalidExpiration")

        grant = OptionGrant.objects.create(
            company_id=company_id,
            plan=plan,
            shareholder_id=shareholder_id or None,
            employee_name=data["employee_name"],
            employee_email=data["employee_email"],
            quantity=quantity,
            strike_price=strike_price,
            grant_date=grant_date,
            expiration_date=expiration_date,
            cliff_months=cliff_months,
            vesting_duration_months=duration,
            vesting_frequency=frequency,
            cliff_percentage=cliff_percentage(cliff_months, duration),
            acceleration_on_coc=bool(data.get("acceleration_on_coc", False)),
            notes=data.get("notes") or "",
            created_by_id=actor_pk(actor),
        )
        OptionPlan.objects.filter(pk=plan.pk).update(
            total_granted=F("total_granted") + quantity,
            updated_at=timezone.now(),
        )

        log_event(
            action="OPTION_GRANT_CREATED",
            resource_type="OptionGrant",
            resource_id=grant.pk,
            company_id=company_id,
            actor_id=actor_pk(actor),
            changes={"before": None, "after": audit_state(grant, AUDITED_FIELDS)},
        )

    logger.info("Option grant %s issued on plan %s (%s options)", grant.pk, plan.pk, quantity)
    return grant


def vested_at(grant, now=None) -> Decimal:
    """Vested quantity to freeze on a grant that is leaving ACTIVE."""
    if grant.status != "ACTIVE":
        return safe_dec(grant.vested_at_termination)
    today = timezone.localdate(now) if now else None
    return calculate_vesting(grant, today).vested_quantity


def cancel_pending_exercises(grant_id, now) -> int:
    return (
        OptionExerciseRequest.objects
        .filter(grant_id=grant_id, status="PENDING_PAYMENT")
        .update(status="CANCELLED", cancelled_at=now, updated_at=now)
    )


def cancel_grant(company_id, grant_id, actor=None) -> OptionGrant:
    with transaction.atomic():
        grant = locked_grant(company_id, grant_id)
        if grant.status == "CANCELLED":
            raise BusinessRuleError("OPT_GRANT_ALREADY_CANCELLED", "errors.opt.grantAlreadyCancelled")
        if grant.status == "EXERCISED":
            raise BusinessRuleError("OPT_GRANT_TERMINATED", "errors.opt.grantTerminated")

        now = timezone.now()
        before = audit_state(grant, AUDITED_FIELDS)
        # an expired grant already returned its remainder to the pool
        released = grant.unexercised if grant.status == "ACTIVE" else Decimal("0")

        grant.vested_at_termination = vested_at(grant, now)
        grant.status = "CANCELLED"
        grant.terminated_at = grant.terminated_at or now
        grant.save(update_fields=["status", "terminated_at", "vested_at_termination", "updated_at"])

        if released > 0:
            OptionPlan.objects.filter(pk=grant.plan_id).update(
                total_granted=F("total_granted") - released,
                updated_at=now,
            )
        cancelled_requests = cancel_pending_exercises(grant.pk, now)

        log_event(
            action="OPTION_GRANT_CANCELLED",
            resource_type="OptionGrant",
            resource_id=grant.pk,
            company_id=company_id,
            actor_id=actor_pk(actor),
            changes={"before": before, "after": audit_state(grant, AUDITED_FIELDS)},
            metadata={
                "quantityReturned": decimal_str(released),
                "vestedAtTermination": decimal_str(grant.vested_at_termination),
                "exerciseRequestsCancelled": cancelled_requests,
            },
        )

    logger.info("Option grant %s cancelled, %s options returned to plan %s", grant.pk, released, grant.plan_id)
    return grant
