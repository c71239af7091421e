from datetime import timedelta
from decimal import Decimal
from io import StringIO
from unittest import mock

from django.core.management import call_command
from django.test import TestCase
from django.utils import timezone

from activity.models import AuditEvent, Notification
from options.models import OptionExerciseRequest, OptionGrant
from options.services import expire_stale_grants

from .factories import make_company, make_grant, make_plan, make_share_class, make_shareholder, make_user


class Expiration_Sweep_Test(TestCase):
    def setUp(self):
        self.company = make_company()
        self.plan = make_plan(self.company, make_share_class(self.company))
        self.today = timezone.localdate()
        self.yesterday = self.today - timedelta(days=1)

    def stale_grant(self, **kwargs):
        kwargs.setdefault("expiration_date", self.yesterday)
        kwargs.setdefault("grant_date", self.today - timedelta(days=3650))
        return make_grant(self.plan, **kwargs)

    def test_expires_and_returns_remainder(self):
        grant = self.stale_grant(quantity=10000, exercised=2000)
        pending = OptionExerciseRequest.objects.create(
            grant=grant, quantity=Decimal("500"), total_cost=Decimal("500"), payment_reference="EX-2026-0A0B0C"
        )
        self.plan.refresh_from_db()
        before = self.plan.total_granted

        self.assertEqual(expire_stale_grants(), 1)

        grant.refresh_from_db()
        self.assertEqual(grant.status, "EXPIRED")
        self.assertIsNotNone(grant.terminated_at)
        self.assertEqual(grant.vested_at_termination, Decimal("10000"))
        self.plan.refresh_from_db()
        self.assertEqual(before - self.plan.total_granted, Decimal("8000"))
        pending.refresh_from_db()
        self.assertEqual(pending.status, "CANCELLED")
        self.assertIsNotNone(pending.cancelled_at)

    def test_rerun_is_a_no_op(self):
        self.stale_grant(quantity=1000)
        self.assertEqual(expire_stale_grants(), 1)
        self.plan.refresh_from_db()
        after_first = self.plan.total_granted
        self.assertEqual(expire_stale_grants(), 0)
        self.plan.refresh_from_db()
        self.assertEqual(self.plan.total_granted, after_first)

    def test_leaves_current_and_terminated_grants_alone(self):
        due_today = self.stale_grant(expiration_date=self.today)
        cancelled = self.stale_grant(status="CANCELLED")
        exercised = self.stale_grant(quantity=100, exercised=100, status="EXERCISED")
        self.assertEqual(expire_stale_grants(), 0)
        for grant, status in ((due_today, "ACTIVE"), (cancelled, "CANCELLED"), (exercised, "EXERCISED")):
            grant.refresh_from_db()
            self.assertEqual(grant.status, status)

    def test_fully_exercised_remainder_is_zero(self):
        self.stale_grant(quantity=300, exercised=300)
        self.plan.refresh_from_db()
        before = self.plan.total_granted
        self.assertEqual(expire_stale_grants(), 1)
        self.plan.refresh_from_db()
        self.assertEqual(self.plan.total_granted, before)

    def test_batch_size_bounds_the_run(self):
        for _ in range(3):
            self.stale_grant(quantity=100)
        self.assertEqual(expire_stale_grants(batch_size=2), 2)
        self.assertEqual(OptionGrant.objects.filter(status="ACTIVE").count(), 1)
        self.assertEqual(expire_stale_grants(batch_size=2), 1)

    def test_one_failure_does_not_stop_the_batch(self):
        first = self.stale_grant(quantity=100, expiration_date=self.today - timedelta(days=10))
        second = self.stale_grant(quantity=200)
        with mock.patch(
            "options.services.expiration.cancel_pending_exercises",
            side_effect=[RuntimeError("boom"), 0],
        ), self.assertLogs("options.services.expiration", level="ERROR"):
            self.assertEqual(expire_stale_grants(), 1)

        first.refresh_from_db()
        second.refresh_from_db()
        self.assertEqual(first.status, "ACTIVE")
        self.assertEqual(second.status, "EXPIRED")

    def test_side_effect_failure_still_counts_the_expiry(self):
        grant = self.stale_grant(quantity=100, shareholder=make_shareholder(self.company, user=make_user("grantee")))
        with mock.patch(
            "options.services.expiration.notify", side_effect=RuntimeError("notification store down")
        ), self.assertLogs("options.services.expiration", level="WARNING") as logs:
            self.assertEqual(expire_stale_grants(), 1)

        grant.refresh_from_db()
        self.assertEqual(grant.status, "EXPIRED")
        self.assertFalse(any("Failed to expire" in line for line in logs.output))

    def test_grantee_lookup_failure_rolls_the_grant_back(self):
        grant = self.stale_grant(quantity=100)
        self.plan.refresh_from_db()
        before = self.plan.total_granted
        with mock.patch(
            "options.services.expiration.grantee_user_id", side_effect=RuntimeError("db blip")
        ), self.assertLogs("options.services.expiration", level="ERROR"):
            self.assertEqual(expire_stale_grants(), 0)

        grant.refresh_from_db()
        self.plan.refresh_from_db()
        self.assertEqual(grant.status, "ACTIVE")
        self.assertEqual(self.plan.total_granted, before)

    def test_zero_batch_size_expires_nothing(self):
        grant = self.stale_grant(quantity=100)
        self.assertEqual(expire_stale_grants(batch_size=0), 0)
        grant.refresh_from_db()
        self.assertEqual(grant.status, "ACTIVE")

    def test_notifies_linked_grantee_and_audits(self):
        user = make_user("grantee")
        grant = self.stale_grant(quantity=10000, exercised=2000, shareholder=make_shareholder(self.company, user=user))
        with self.captureOnCommitCallbacks(execute=True):
            expire_stale_grants()
        self.assertTrue(Notification.objects.filter(user=user, notification_type="OPTION_GRANT_EXPIRED").exists())
        event = AuditEvent.objects.get(action="OPTION_GRANT_EXPIRED", resource_id=str(grant.pk))
        self.assertEqual(event.actor_type, "SYSTEM")
        self.assertEqual(event.changes, {"before": {"status": "ACTIVE"}, "after": {"status": "EXPIRED"}})
        self.assertEqual(event.metadata["quantityReturned"], "8000")

    def test_management_command(self):
        self.stale_grant()
        out = StringIO()
        call_command("expire_stale_grants", "--batch-size", "10", stdout=out)
        self.assertIn("Expired 1 option grant(s).", out.getvalue())
