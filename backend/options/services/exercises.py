import logging
import secrets
from datetime import timedelta

from django.conf import settings
from django.db import IntegrityError, transaction
from django.db.models import F
from django.utils import timezone

from activity.sinks import log_event, notify
from backoffice.decimals import decimal_str, safe_dec
from backoffice.errors import BusinessRuleError, NotFoundError
from backoffice.sorting import parse_sort
from captable.ledger import create_snapshot, increment_share_class_issued, recalculate_ownership, upsert_holding
from captable.models import Shareholder

from ..models import OptionExerciseRequest, OptionPlan
from ..policies import grantee_or_admin
from ..vesting import calculate_vesting
from .common import actor_pk
from .grants import locked_grant

logger = logging.getLogger(__name__)

EXERCISE_SORTABLE_FIELDS = ["createdAt", "status", "quantity"]


def payment_reference(year: int) -> str:
    """``EX-2026-4F0A9C``: year plus six random uppercase hex characters."""
    return f"EX-{year}-{secrets.token_hex(3).upper()}"


def _has_pending(grant_id) -> bool:
    return OptionExerciseRequest.objects.filter(grant_id=grant_id, status="PENDING_PAYMENT").exists()


def grantee_user_id(shareholder_id):
    if not shareholder_id:
        return None
    return Shareholder.objects.filter(pk=shareholder_id).values_list("user_id", flat=True).first()


def list_exercises(company_id, status=None, grant_id=None, sort=None):
    qs = (
        OptionExerciseRequest.objects
        .filter(grant__company_id=company_id)
        .select_related("grant", "grant__plan", "grant__shareholder")
    )
    if status:
        qs = qs.filter(status=status)
    if grant_id:
        qs = qs.filter(grant_id=grant_id)
    return qs.order_by(*parse_sort(sort, EXERCISE_SORTABLE_FIELDS, "-createdAt"))


def get_exercise(company_id, exercise_id) -> OptionExerciseRequest:
    exercise = (
        OptionExerciseRequest.objects
        .filter(pk=exercise_id, grant__company_id=company_id)
        .select_related("grant", "grant__plan", "grant__shareholder")
        .first()
    )
    if exercise is None:
        raise NotFoundError("optionExercise", exercise_id)
    return exercise


def _locked_exercise(company_id, exercise_id) -> OptionExerciseRequest:
    exercise = (
        OptionExerciseRequest.objects
        .select_for_update(of=("self",))
        .filter(pk=exercise_id, grant__company_id=company_id)
        .first()
    )
    if exercise is None:
        raise NotFoundError("optionExercise", exercise_id)
    return exercise


def _lock_grant_then_exercise(company_id, exercise_id):
    """
    Grant row first, exercise row second. cancel_grant and the expiration sweep
    lock in the same order, so they never deadlock with confirm or cancel.
    """
    grant_id = (
        OptionExerciseRequest.objects
        .filter(pk=exercise_id, grant__company_id=company_id)
        .values_list("grant_id", flat=True)
        .first()
    )
    if grant_id is None:
        raise NotFoundError("optionExercise", exercise_id)
    grant = locked_grant(company_id, grant_id)
    return grant, _locked_exercise(company_id, exercise_id)


def create_exercise_request(company_id, grant_id, quantity, actor, authorize=grantee_or_admin) -> OptionExerciseRequest:
    with transaction.atomic():
        # grant row stays locked until the request is inserted
        grant = locked_grant(company_id, grant_id)
        authorize(company_id, actor, grant.shareholder_id)

        if grant.status != "ACTIVE":
            raise BusinessRuleError("OPT_GRANT_NOT_ACTIVE", "errors.opt.grantNotActive")

        now = timezone.now()
        if grant.terminated_at:
            window_end = grant.terminated_at + timedelta(days=grant.plan.exercise_window_days)
            if now > window_end:
                raise BusinessRuleError(
                    "OPT_EXERCISE_WINDOW_CLOSED",
                    "errors.opt.exerciseWindowClosed",
                    {"exerciseWindowDays": grant.plan.exercise_window_days},
                )

        quantity = safe_dec(quantity)
        if quantity <= 0:
            raise BusinessRuleError("OPT_INVALID_QUANTITY", "errors.opt.invalidQuantity")

        vesting = calculate_vesting(grant, timezone.localdate(now))
        if quantity > vesting.exercisable_quantity:
            raise BusinessRuleError(
                "OPT_INSUFFICIENT_VESTED",
                "errors.opt.insufficientVested",
                {
                    "exercisableOptions": decimal_str(vesting.exercisable_quantity),
                    "requestedQuantity": decimal_str(quantity),
                },
            )

        if _has_pending(grant.pk):
            raise BusinessRuleError("OPT_EXERCISE_PENDING", "errors.opt.exercisePending")

        total_cost = quantity * grant.strike_price
        attempts = getattr(settings, "OPTIONS_PAYMENT_REFERENCE_ATTEMPTS", 5)

        # the partial unique index settles racing requests; the reference index settles collisions
        for attempt in range(1, attempts + 1):
            reference = payment_reference(now.year)
            try:
                with transaction.atomic():
                    exercise = OptionExerciseRequest.objects.create(
                        grant=grant,
                        quantity=quantity,
                        total_cost=total_cost,
                        payment_reference=reference,
                        created_by_id=actor_pk(actor),
                    )
                break
            except IntegrityError:
                if _has_pending(grant.pk):
                    raise BusinessRuleError("OPT_EXERCISE_PENDING", "errors.opt.exercisePending")
                if attempt == attempts:
                    raise
                logger.warning("Payment reference %s already taken, retrying", reference)

        log_event(
            action="OPTION_EXERCISE_REQUESTED",
            resource_type="OptionExerciseRequest",
            resource_id=exercise.pk,
            company_id=company_id,
            actor_id=actor_pk(actor),
            changes={
                "before": None,
                "after": {
                    "status": exercise.status,
                    "quantity": decimal_str(quantity),
                    "totalCost": decimal_str(total_cost),
                    "paymentReference": reference,
                },
            },
        )
    return exercise


def _refresh_cap_table(company_id, reference):
    # reporting only; pool and grant state are already committed
    try:
        recalculate_ownership(company_id)
    except Exception:
        logger.warning("Ownership recalculation failed for company %s", company_id, exc_info=True)
    try:
        create_snapshot(company_id, "exercise_confirmed", f"Option exercise {reference} confirmed")
    except Exception:
        logger.warning("Cap table snapshot failed for company %s", company_id, exc_info=True)


def confirm_exercise_payment(company_id, exercise_id, actor) -> OptionExerciseRequest:
    """
    Mark the payment received and issue the shares: exercise, grant, plan,
    holding and share class all move in one transaction.
    """
    with transaction.atomic():
        grant, exercise = _lock_grant_then_exercise(company_id, exercise_id)
        if exercise.status == "COMPLETED":
            raise BusinessRuleError("OPT_EXERCISE_ALREADY_CONFIRMED", "errors.opt.exerciseAlreadyConfirmed")
        if exercise.status == "CANCELLED":
            raise BusinessRuleError("OPT_EXERCISE_ALREADY_CANCELLED", "errors.opt.exerciseAlreadyCancelled")
        if exercise.status != "PENDING_PAYMENT":
            raise BusinessRuleError("OPT_EXERCISE_NOT_PENDING", "errors.opt.exerciseNotPending")

        if not grant.shareholder_id:
            raise BusinessRuleError("OPT_NO_SHAREHOLDER_LINKED", "errors.opt.noShareholderLinked")
        if grant.status != "ACTIVE":
            raise BusinessRuleError("OPT_GRANT_NOT_ACTIVE", "errors.opt.grantNotActive")

        now = timezone.now()
        quantity = exercise.quantity
        new_exercised = grant.exercised + quantity
        vesting = calculate_vesting(grant, timezone.localdate(now))
        if new_exercised > vesting.vested_quantity:
            raise BusinessRuleError(
                "OPT_INSUFFICIENT_VESTED",
                "errors.opt.insufficientVested",
                {
                    "exercisableOptions": decimal_str(vesting.exercisable_quantity),
                    "requestedQuantity": decimal_str(quantity),
                },
            )

        share_class_id = OptionPlan.objects.values_list("share_class_id", flat=True).get(pk=grant.plan_id)

        exercise.status = "COMPLETED"
        exercise.confirmed_by_id = actor_pk(actor)
        exercise.confirmed_at = now
        exercise.save(update_fields=["status", "confirmed_by", "confirmed_at", "updated_at"])

        grant.exercised = new_exercised
        fields = ["exercised", "updated_at"]
        if new_exercised >= grant.quantity:
            grant.status = "EXERCISED"
            fields.append("status")
        grant.save(update_fields=fields)

        OptionPlan.objects.filter(pk=grant.plan_id).update(
            total_exercised=F("total_exercised") + quantity,
            updated_at=now,
        )
        upsert_holding(company_id, grant.shareholder_id, share_class_id, quantity)
        increment_share_class_issued(share_class_id, quantity)

        reference = exercise.payment_reference
        transaction.on_commit(lambda: _refresh_cap_table(company_id, reference))

        notify(
            user_id=grantee_user_id(grant.shareholder_id),
            notification_type="OPTION_EXERCISE_CONFIRMED",
            subject=f"Your exercise of {decimal_str(quantity)} options was confirmed",
            related_entity_type="OptionExerciseRequest",
            related_entity_id=exercise.pk,
            company_id=company_id,
        )
        log_event(
            action="OPTION_EXERCISE_CONFIRMED",
            resource_type="OptionExerciseRequest",
            resource_id=exercise.pk,
            company_id=company_id,
            actor_id=actor_pk(actor),
            changes={"before": {"status": "PENDING_PAYMENT"}, "after": {"status": "COMPLETED"}},
            metadata={
                "grantId": grant.pk,
                "quantity": decimal_str(quantity),
                "grantExercised": decimal_str(new_exercised),
                "grantStatus": grant.status,
            },
        )

    logger.info("Exercise %s confirmed: %s shares issued to shareholder %s", exercise.pk, quantity, grant.shareholder_id)
    return exercise


def cancel_exercise(company_id, exercise_id, actor, authorize=grantee_or_admin) -> OptionExerciseRequest:
    with transaction.atomic():
        grant, exercise = _lock_grant_then_exercise(company_id, exercise_id)
        authorize(company_id, actor, grant.shareholder_id)

        if exercise.status == "CANCELLED":
            raise BusinessRuleError("OPT_EXERCISE_ALREADY_CANCELLED", "errors.opt.exerciseAlreadyCancelled")
        if exercise.status != "PENDING_PAYMENT":
            raise BusinessRuleError("OPT_EXERCISE_NOT_PENDING", "errors.opt.exerciseNotPending")

        exercise.status = "CANCELLED"
        exercise.cancelled_at = timezone.now()
        exercise.save(update_fields=["status", "cancelled_at", "updated_at"])

        log_event(
            action="OPTION_EXERCISE_CANCELLED",
            resource_type="OptionExerciseRequest",
            resource_id=exercise.pk,
            company_id=company_id,
            actor_id=actor_pk(actor),
            changes={"before": {"status": "PENDING_PAYMENT"}, "after": {"status": "CANCELLED"}},
        )
    return exercise
