from decimal import Decimal

from django.contrib.auth import get_user_model
from django.test import TestCase

from accounts.models import Company

from .ledger import (
    create_snapshot,
    current_cap_table,
    increment_share_class_issued,
    recalculate_ownership,
    shareholder_linked_to_user,
    upsert_holding,
)
from .models import CapTableSnapshot, ShareClass, Shareholder, Shareholding


# Capitalization ledger
class Ledger_Test(TestCase):
    def setUp(self):
        self.company = Company.objects.create(name="Acme Inc")
        self.common = ShareClass.objects.create(company=self.company, class_name="Common")
        self.preferred = ShareClass.objects.create(
            company=self.company, class_name="Series A", share_type="PREFERRED", votes_per_share=2
        )
        self.alice = Shareholder.objects.create(company=self.company, name="Alice")
        self.bob = Shareholder.objects.create(company=self.company, name="Bob")

    def test_upsert_creates_then_increments(self):
        upsert_holding(self.company.pk, self.alice.pk, self.common.pk, Decimal("100"))
        holding = upsert_holding(self.company.pk, self.alice.pk, self.common.pk, Decimal("50"))
        self.assertEqual(holding.quantity, Decimal("150"))
        self.assertEqual(Shareholding.objects.count(), 1)

    def test_increment_issued(self):
        increment_share_class_issued(self.common.pk, Decimal("250"))
        increment_share_class_issued(self.common.pk, Decimal("250"))
        self.common.refresh_from_db()
        self.assertEqual(self.common.total_issued, Decimal("500"))

    def test_recalculate_ownership_and_votes(self):
        upsert_holding(self.company.pk, self.alice.pk, self.common.pk, Decimal("3000"))
        upsert_holding(self.company.pk, self.bob.pk, self.preferred.pk, Decimal("1000"))
        recalculate_ownership(self.company.pk)

        alice = Shareholding.objects.get(shareholder=self.alice)
        bob = Shareholding.objects.get(shareholder=self.bob)
        self.assertEqual(alice.ownership_pct, Decimal("75"))
        self.assertEqual(bob.ownership_pct, Decimal("25"))
        self.assertEqual(alice.voting_power_pct, Decimal("60"))
        self.assertEqual(bob.voting_power_pct, Decimal("40"))

    def test_recalculate_without_holdings(self):
        recalculate_ownership(self.company.pk)
        self.assertFalse(Shareholding.objects.exists())

    def test_current_cap_table(self):
        upsert_holding(self.company.pk, self.alice.pk, self.common.pk, Decimal("3000"))
        upsert_holding(self.company.pk, self.bob.pk, self.common.pk, Decimal("0"))
        recalculate_ownership(self.company.pk)
        table = current_cap_table(self.company.pk)
        self.assertEqual(table["totalShares"], "3000")
        self.assertEqual(table["totalShareholders"], 1)
        self.assertEqual(table["entries"][0]["shares"], "3000")
        self.assertEqual(table["entries"][0]["ownershipPercentage"], "100")

    def test_snapshot_stores_table(self):
        upsert_holding(self.company.pk, self.alice.pk, self.common.pk, Decimal("10"))
        snapshot = create_snapshot(self.company.pk, "exercise_confirmed", "EX-2026-000001 confirmed")
        stored = CapTableSnapshot.objects.get(pk=snapshot.pk)
        self.assertEqual(stored.reason, "exercise_confirmed")
        self.assertEqual(stored.data["trigger"], "exercise_confirmed")
        self.assertEqual(stored.data["totalShares"], "10")

    def test_shareholder_linked_to_user(self):
        user = get_user_model().objects.create_user(username="alice", password="password")
        self.alice.user = user
        self.alice.save()
        self.assertTrue(shareholder_linked_to_user(self.alice.pk, user.pk))
        self.assertFalse(shareholder_linked_to_user(self.bob.pk, user.pk))
        self.assertFalse(shareholder_linked_to_user(None, user.pk))
