from datetime import timedelta
from decimal import Decimal

from django.db.models import Sum
from django.test import TestCase
from django.utils import timezone

from activity.models import AuditEvent
from backoffice.errors import BusinessRuleError, NotFoundError
from options.models import OptionExerciseRequest, OptionGrant
from options.services import cancel_grant, create_grant, grant_vesting_schedule, list_grants

from .factories import (
    make_company,
    make_grant,
    make_plan,
    make_share_class,
    make_shareholder,
    make_user,
    months_ago,
)


class Grant_Issuance_Test(TestCase):
    def setUp(self):
        self.admin = make_user("admin")
        self.company = make_company()
        self.share_class = make_share_class(self.company)
        self.plan = make_plan(self.company, self.share_class, pool=100000)

    def grant_data(self, **overrides):
        today = timezone.localdate()
        data = {
            "plan_id": self.plan.pk,
            "employee_name": "Ana Souza",
            "employee_email": "ana@example.com",
            "quantity": Decimal("10000"),
            "strike_price": Decimal("1.50"),
            "grant_date": today,
            "expiration_date": today + timedelta(days=3650),
            "cliff_months": 12,
            "vesting_duration_months": 48,
            "vesting_frequency": "MONTHLY",
        }
        data.update(overrides)
        return data

    def test_create_grant_reserves_pool(self):
        with self.captureOnCommitCallbacks(execute=True):
            grant = create_grant(self.company.pk, self.grant_data(), actor=self.admin)
        self.plan.refresh_from_db()
        self.assertEqual(self.plan.total_granted, Decimal("10000"))
        self.assertEqual(grant.status, "ACTIVE")
        self.assertEqual(grant.cliff_percentage, Decimal("25.00"))
        self.assertEqual(grant.exercised, Decimal("0"))
        self.assertTrue(AuditEvent.objects.filter(action="OPTION_GRANT_CREATED", resource_id=str(grant.pk)).exists())

    def test_create_grant_uses_plan_defaults(self):
        self.plan.default_cliff_months = 6
        self.plan.default_vesting_months = 24
        self.plan.default_vesting_frequency = "QUARTERLY"
        self.plan.save()
        data = self.grant_data()
        for key in ("cliff_months", "vesting_duration_months", "vesting_frequency"):
            del data[key]
        grant = create_grant(self.company.pk, data)
        self.assertEqual(grant.cliff_months, 6)
        self.assertEqual(grant.vesting_duration_months, 24)
        self.assertEqual(grant.vesting_frequency, "QUARTERLY")

    def test_pool_exhausted(self):
        make_grant(self.plan, quantity=95000)
        with self.assertRaises(BusinessRuleError) as ctx:
            create_grant(self.company.pk, self.grant_data(quantity=Decimal("10000")))
        self.assertEqual(ctx.exception.code, "OPT_PLAN_EXHAUSTED")
        self.assertEqual(ctx.exception.message_key, "errors.opt.planExhausted")
        self.assertEqual(ctx.exception.details, {"optionsAvailable": "5000", "quantityRequested": "10000"})
        self.plan.refresh_from_db()
        self.assertEqual(self.plan.total_granted, Decimal("95000"))
        self.assertEqual(OptionGrant.objects.count(), 1)

    def test_pool_can_be_filled_exactly(self):
        make_grant(self.plan, quantity=95000)
        create_grant(self.company.pk, self.grant_data(quantity=Decimal("5000")))
        self.plan.refresh_from_db()
        self.assertEqual(self.plan.total_granted, Decimal("100000"))

    def test_cancelled_grants_free_the_pool(self):
        make_grant(self.plan, quantity=95000, status="CANCELLED")
        create_grant(self.company.pk, self.grant_data(quantity=Decimal("10000")))

    def test_closed_plan(self):
        self.plan.status = "CLOSED"
        self.plan.save()
        with self.assertRaises(BusinessRuleError) as ctx:
            create_grant(self.company.pk, self.grant_data())
        self.assertEqual(ctx.exception.code, "OPT_PLAN_CLOSED")

    def test_plan_of_other_company(self):
        other = make_company(name="Other Co")
        with self.assertRaises(NotFoundError) as ctx:
            create_grant(other.pk, self.grant_data())
        self.assertEqual(ctx.exception.code, "OPTIONPLAN_NOT_FOUND")

    def test_invalid_terms(self):
        today = timezone.localdate()
        cases = [
            ({"quantity": Decimal("0")}, "OPT_INVALID_QUANTITY"),
            ({"strike_price": Decimal("0")}, "OPT_INVALID_STRIKE_PRICE"),
            ({"cliff_months": 60}, "OPT_CLIFF_EXCEEDS_VESTING"),
            ({"expiration_date": today}, "OPT_INVALID_EXPIRATION"),
        ]
        for overrides, code in cases:
            with self.assertRaises(BusinessRuleError) as ctx:
                create_grant(self.company.pk, self.grant_data(**overrides))
            self.assertEqual(ctx.exception.code, code)
        self.assertFalse(OptionGrant.objects.exists())
        self.plan.refresh_from_db()
        self.assertEqual(self.plan.total_granted, Decimal("0"))

    def test_cliff_error_details(self):
        with self.assertRaises(BusinessRuleError) as ctx:
            create_grant(self.company.pk, self.grant_data(cliff_months=60))
        self.assertEqual(ctx.exception.details, {"cliffMonths": 60, "vestingDurationMonths": 48})

    def test_shareholder_must_belong_to_company(self):
        stranger = make_shareholder(make_company(name="Other Co"))
        with self.assertRaises(NotFoundError) as ctx:
            create_grant(self.company.pk, self.grant_data(shareholder_id=stranger.pk))
        self.assertEqual(ctx.exception.code, "SHAREHOLDER_NOT_FOUND")

        holder = make_shareholder(self.company)
        grant = create_grant(self.company.pk, self.grant_data(shareholder_id=holder.pk))
        self.assertEqual(grant.shareholder_id, holder.pk)

    def test_pool_never_oversubscribed(self):
        for quantity in ("40000", "40000", "40000", "20000", "20000"):
            try:
                create_grant(self.company.pk, self.grant_data(quantity=Decimal(quantity)))
            except BusinessRuleError:
                pass
        live = OptionGrant.objects.exclude(status="CANCELLED").aggregate(total=Sum("quantity"))["total"]
        self.assertEqual(live, Decimal("100000"))
        self.plan.refresh_from_db()
        self.assertEqual(self.plan.total_granted, Decimal("100000"))

    def test_list_grants_filters(self):
        holder = make_shareholder(self.company)
        make_grant(self.plan, quantity=100, shareholder=holder)
        make_grant(self.plan, quantity=200, status="CANCELLED")
        self.assertEqual(list_grants(self.company.pk).count(), 2)
        self.assertEqual(list_grants(self.company.pk, status="CANCELLED").count(), 1)
        self.assertEqual(list_grants(self.company.pk, shareholder_id=holder.pk).count(), 1)
        quantities = [g.quantity for g in list_grants(self.company.pk, sort="-quantity")]
        self.assertEqual(quantities, [Decimal("200"), Decimal("100")])

    def test_vesting_schedule_view(self):
        grant = make_grant(self.plan, quantity=48000, exercised=1000, grant_date=months_ago(60))
        data = grant_vesting_schedule(self.company.pk, grant.pk)
        self.assertEqual(data["totalOptions"], "48000")
        self.assertEqual(data["vestedOptions"], "48000")
        self.assertEqual(data["exercisableOptions"], "47000")
        self.assertEqual(data["exercisedOptions"], "1000")
        self.assertEqual(data["shareholderName"], "John Roe")
        self.assertEqual(data["schedule"][0]["type"], "CLIFF")
        self.assertEqual(data["schedule"][-1]["cumulative"], "48000")


class Grant_Cancellation_Test(TestCase):
    def setUp(self):
        self.company = make_company()
        self.plan = make_plan(self.company, make_share_class(self.company))

    def test_cancel_returns_unexercised_remainder(self):
        grant = make_grant(self.plan, quantity=10000, exercised=8000)
        self.plan.refresh_from_db()
        before = self.plan.total_granted

        cancel_grant(self.company.pk, grant.pk)

        self.plan.refresh_from_db()
        self.assertEqual(before - self.plan.total_granted, Decimal("2000"))
        grant.refresh_from_db()
        self.assertEqual(grant.status, "CANCELLED")
        self.assertIsNotNone(grant.terminated_at)
        self.assertEqual(grant.exercised, Decimal("8000"))

    def test_cancel_snapshots_vested_quantity(self):
        grant = make_grant(self.plan, quantity=48000, grant_date=months_ago(60))
        cancel_grant(self.company.pk, grant.pk)
        grant.refresh_from_db()
        self.assertEqual(grant.vested_at_termination, Decimal("48000"))

    def test_cancel_twice(self):
        grant = make_grant(self.plan)
        cancel_grant(self.company.pk, grant.pk)
        with self.assertRaises(BusinessRuleError) as ctx:
            cancel_grant(self.company.pk, grant.pk)
        self.assertEqual(ctx.exception.code, "OPT_GRANT_ALREADY_CANCELLED")

    def test_cannot_cancel_exercised_grant(self):
        grant = make_grant(self.plan, quantity=1000, exercised=1000, status="EXERCISED")
        with self.assertRaises(BusinessRuleError) as ctx:
            cancel_grant(self.company.pk, grant.pk)
        self.assertEqual(ctx.exception.code, "OPT_GRANT_TERMINATED")

    def test_cancel_expired_grant_does_not_release_twice(self):
        grant = make_grant(self.plan, quantity=10000, exercised=2000, status="EXPIRED")
        self.plan.refresh_from_db()
        before = self.plan.total_granted
        cancel_grant(self.company.pk, grant.pk)
        self.plan.refresh_from_db()
        self.assertEqual(self.plan.total_granted, before)

    def test_cancel_also_cancels_pending_exercise(self):
        grant = make_grant(self.plan, quantity=1000)
        exercise = OptionExerciseRequest.objects.create(
            grant=grant, quantity=Decimal("100"), total_cost=Decimal("100"), payment_reference="EX-2026-ABC123"
        )
        cancel_grant(self.company.pk, grant.pk)
        exercise.refresh_from_db()
        self.assertEqual(exercise.status, "CANCELLED")
        self.assertIsNotNone(exercise.cancelled_at)

    def test_cancel_unknown_grant(self):
        with self.assertRaises(NotFoundError) as ctx:
            cancel_grant(self.company.pk, 424242)
        self.assertEqual(ctx.exception.code, "OPTIONGRANT_NOT_FOUND")
