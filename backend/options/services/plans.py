import logging
from decimal import Decimal

from django.conf import settings
from django.db import transaction
from django.db.models import Count, DecimalField, Q, Sum, Value
from django.db.models.functions import Coalesce
from django.utils import timezone

from accounts.services import get_company
from activity.sinks import log_event
from backoffice.decimals import decimal_str, safe_dec
from backoffice.errors import BusinessRuleError, NotFoundError
from backoffice.sorting import parse_sort
from captable.models import ShareClass

from ..models import OptionGrant, OptionPlan
from .common import actor_pk, audit_state

logger = logging.getLogger(__name__)

PLAN_SORTABLE_FIELDS = ["createdAt", "name", "totalPoolSize", "status"]

# cancelled grants already gave their quantity back to the pool
LIVE_STATUSES = ("ACTIVE", "EXERCISED", "EXPIRED")

EDITABLE_FIELDS = (
    "name",
    "notes",
    "termination_policy",
    "exercise_window_days",
    "board_approval_date",
    "total_pool_size",
)

AUDITED_FIELDS = ("name", "status", "total_pool_size", "termination_policy", "exercise_window_days")

_QUANTITY = DecimalField(max_digits=20, decimal_places=0)


def live_pool_usage(plan_id) -> Decimal:
    """Sum of quantity over the plan's non-cancelled grants."""
    total = (
        OptionGrant.objects
        .filter(plan_id=plan_id, status__in=LIVE_STATUSES)
        .aggregate(total=Sum("quantity"))["total"]
    )
    return safe_dec(total)


def _with_usage(queryset):
    live = Q(grants__status__in=LIVE_STATUSES)
    return queryset.annotate(
        granted_sum=Coalesce(Sum("grants__quantity", filter=live), Value(Decimal("0")), output_field=_QUANTITY),
        exercised_sum=Coalesce(Sum("grants__exercised", filter=live), Value(Decimal("0")), output_field=_QUANTITY),
        active_grant_count=Count("grants", filter=Q(grants__status="ACTIVE")),
    )


def list_plans(company_id, status=None, sort=None):
    qs = OptionPlan.objects.filter(company_id=company_id).select_related("share_class")
    if status:
        qs = qs.filter(status=status)
    return _with_usage(qs).order_by(*parse_sort(sort, PLAN_SORTABLE_FIELDS, "-createdAt"))


def find_plan_by_id(company_id, plan_id) -> OptionPlan:
    plan = (
        _with_usage(OptionPlan.objects.filter(pk=plan_id, company_id=company_id))
        .select_related("share_class")
        .first()
    )
    if plan is None:
        raise NotFoundError("optionPlan", plan_id)
    return plan


def _locked_plan(company_id, plan_id) -> OptionPlan:
    plan = OptionPlan.objects.select_for_update().filter(pk=plan_id, company_id=company_id).first()
    if plan is None:
        raise NotFoundError("optionPlan", plan_id)
    return plan


def create_plan(company_id, data: dict, actor=None) -> OptionPlan:
    company = get_company(company_id)
    if not company.is_active:
        raise BusinessRuleError("OPT_COMPANY_NOT_ACTIVE", "errors.opt.companyNotActive")

    share_class_id = data["share_class_id"]
    if not ShareClass.objects.filter(pk=share_class_id, company_id=company_id).exists():
        raise NotFoundError("shareClass", share_class_id)

    pool = safe_dec(data.get("total_pool_size"))
    if pool <= 0:
        raise BusinessRuleError("OPT_INVALID_POOL_SIZE", "errors.opt.invalidPoolSize")

    optional = {
        key: data[key]
        for key in (
            "notes",
            "termination_policy",
            "exercise_window_days",
            "board_approval_date",
            "default_cliff_months",
            "default_vesting_months",
            "default_vesting_frequency",
        )
        if data.get(key) is not None
    }
    optional.setdefault("exercise_window_days", getattr(settings, "OPTIONS_DEFAULT_EXERCISE_WINDOW_DAYS", 90))

    with transaction.atomic():
        plan = OptionPlan.objects.create(
            company_id=company_id,
            share_class_id=share_class_id,
            name=data["name"],
            total_pool_size=pool,
            created_by_id=actor_pk(actor),
            **optional,
        )
        log_event(
            action="OPTION_PLAN_CREATED",
            resource_type="OptionPlan",
            resource_id=plan.pk,
            company_id=company_id,
            actor_id=actor_pk(actor),
            changes={"before": None, "after": audit_state(plan, AUDITED_FIELDS)},
        )

    logger.info("Option plan %s created for company %s (pool %s)", plan.pk, company_id, pool)
    return plan


def update_plan(company_id, plan_id, data: dict, actor=None) -> OptionPlan:
    with transaction.atomic():
        plan = _locked_plan(company_id, plan_id)
        if plan.status != "ACTIVE":
            raise BusinessRuleError("OPT_PLAN_CLOSED", "errors.opt.planClosed")

        if data.get("total_pool_size") is not None:
            pool = safe_dec(data["total_pool_size"])
            if pool <= 0:
                raise BusinessRuleError("OPT_INVALID_POOL_SIZE", "errors.opt.invalidPoolSize")
            # expired grants keep their reservation in the live sum
            in_use = max(plan.total_granted, live_pool_usage(plan.pk))
            if pool < in_use:
                raise BusinessRuleError(
                    "OPT_POOL_CANNOT_SHRINK",
                    "errors.opt.poolCannotShrink",
                    {"currentGranted": decimal_str(in_use), "requested": decimal_str(pool)},
                )

        before = audit_state(plan, AUDITED_FIELDS)
        changed = [f for f in EDITABLE_FIELDS if f in data]
        for field in changed:
            setattr(plan, field, data[field])
        if changed:
            plan.save(update_fields=changed + ["updated_at"])

        log_event(
            action="OPTION_PLAN_UPDATED",
            resource_type="OptionPlan",
            resource_id=plan.pk,
            company_id=company_id,
            actor_id=actor_pk(actor),
            changes={"before": before, "after": audit_state(plan, AUDITED_FIELDS)},
        )
    return plan


def close_plan(company_id, plan_id, actor=None) -> OptionPlan:
    with transaction.atomic():
        plan = _locked_plan(company_id, plan_id)
        if plan.status != "ACTIVE":
            raise BusinessRuleError("OPT_PLAN_ALREADY_CLOSED", "errors.opt.planAlreadyClosed")

        plan.status = "CLOSED"
        plan.closed_at = timezone.now()
        plan.save(update_fields=["status", "closed_at", "updated_at"])

        log_event(
            action="OPTION_PLAN_CLOSED",
            resource_type="OptionPlan",
            resource_id=plan.pk,
            company_id=company_id,
            actor_id=actor_pk(actor),
            changes={"before": {"status": "ACTIVE"}, "after": {"status": "CLOSED"}},
        )

    logger.info("Option plan %s closed", plan.pk)
    return plan
