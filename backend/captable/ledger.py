"""
Capitalization ledger
---------------------
The operations the option engine needs from the cap table:

  • upsert_holding / increment_share_class_issued   (inside the caller's transaction)
  • recalculate_ownership / create_snapshot          (after commit, for reporting)
  • shareholder_linked_to_user                       (grantee lookup)
"""
from __future__ import annotations

import logging
from decimal import Decimal

from django.db import transaction
from django.db.models import F, Sum

from backoffice.decimals import decimal_str

from .models import CapTableSnapshot, ShareClass, Shareholder, Shareholding

logger = logging.getLogger(__name__)

PCT_PLACES = Decimal("0.000001")
OWNERSHIP_TOLERANCE = Decimal("0.02")


def shareholder_linked_to_user(shareholder_id, user_id) -> bool:
    if not shareholder_id or not user_id:
        return False
    return Shareholder.objects.filter(pk=shareholder_id, user_id=user_id).exists()


def upsert_holding(company_id, shareholder_id, share_class_id, delta: Decimal) -> Shareholding:
    """Add ``delta`` to the (shareholder, class) holding, creating it if needed."""
    updated = (
        Shareholding.objects
        .filter(shareholder_id=shareholder_id, share_class_id=share_class_id)
        .update(quantity=F("quantity") + delta)
    )
    if not updated:
        return Shareholding.objects.create(
            company_id=company_id,
            shareholder_id=shareholder_id,
            share_class_id=share_class_id,
            quantity=delta,
        )
    return Shareholding.objects.get(shareholder_id=shareholder_id, share_class_id=share_class_id)


def increment_share_class_issued(share_class_id, delta: Decimal) -> None:
    ShareClass.objects.filter(pk=share_class_id).update(total_issued=F("total_issued") + delta)


def recalculate_ownership(company_id) -> None:
    holdings = list(
        Shareholding.objects
        .filter(company_id=company_id)
        .select_related("share_class")
    )
    if not holdings:
        return

    total_shares = sum((h.quantity for h in holdings), Decimal("0"))
    total_votes = sum((h.quantity * h.share_class.votes_per_share for h in holdings), Decimal("0"))

    with transaction.atomic():
        for h in holdings:
            votes = h.quantity * h.share_class.votes_per_share
            h.ownership_pct = (
                (h.quantity / total_shares * 100).quantize(PCT_PLACES) if total_shares else Decimal("0")
            )
            h.voting_power_pct = (
                (votes / total_votes * 100).quantize(PCT_PLACES) if total_votes else Decimal("0")
            )
            h.save(update_fields=["ownership_pct", "voting_power_pct", "updated_at"])

    total_pct = sum((h.ownership_pct for h in holdings), Decimal("0"))
    diff = abs(total_pct - 100)
    if total_shares and diff > OWNERSHIP_TOLERANCE:
        logger.warning(
            "Ownership discrepancy for company %s: total=%s%% (diff=%s%%)",
            company_id, total_pct, diff,
        )


def current_cap_table(company_id) -> dict:
    holdings = (
        Shareholding.objects
        .filter(company_id=company_id, quantity__gt=0)
        .select_related("shareholder", "share_class")
        .order_by("-quantity", "shareholder__name")
    )
    rows = [
        {
            "shareholderId": h.shareholder_id,
            "shareholderName": h.shareholder.name,
            "shareClassId": h.share_class_id,
            "className": h.share_class.class_name,
            "shareType": h.share_class.share_type,
            "shares": decimal_str(h.quantity),
            "ownershipPercentage": decimal_str(h.ownership_pct),
            "votingPercentage": decimal_str(h.voting_power_pct),
        }
        for h in holdings
    ]
    total = holdings.aggregate(total=Sum("quantity"))["total"] or 0
    return {
        "companyId": company_id,
        "totalShares": decimal_str(total),
        "totalShareholders": len({r["shareholderId"] for r in rows}),
        "entries": rows,
    }


def create_snapshot(company_id, reason: str, note: str = "") -> CapTableSnapshot:
    data = current_cap_table(company_id)
    data["trigger"] = reason
    snapshot = CapTableSnapshot.objects.create(
        company_id=company_id,
        reason=reason,
        notes=note or "",
        data=data,
    )
    logger.info("Auto-snapshot %s created for company %s (trigger: %s)", snapshot.pk, company_id, reason)
    return snapshot
