from __future__ import annotations

from django.conf import settings
from django.db import models
from django.utils import timezone

from accounts.models import Company

SHARE_TYPE_CHOICES = [
    ('COMMON', 'Common Stock'),
    ('PREFERRED', 'Preferred Stock'),
]

QUANTITY = dict(max_digits=20, decimal_places=0)
PERCENT = dict(max_digits=9, decimal_places=6)


class ShareClass(models.Model):
    company = models.ForeignKey(
        Company,
        on_delete=models.CASCADE,
        related_name="share_classes",
    )
    class_name       = models.CharField(max_length=128)
    share_type       = models.CharField(max_length=16, choices=SHARE_TYPE_CHOICES, default="COMMON")
    votes_per_share  = models.DecimalField(max_digits=10, decimal_places=2, default=1)
    total_authorized = models.DecimalField(default=0, **QUANTITY)
    total_issued     = models.DecimalField(default=0, **QUANTITY)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        unique_together = [("company", "class_name")]
        ordering = ["company_id", "class_name"]

    def __str__(self) -> str:
        return f"{self.company.name} · {self.class_name}"


class Shareholder(models.Model):
    company = models.ForeignKey(
        Company,
        on_delete=models.CASCADE,
        related_name="shareholders",
    )
    # set when the shareholder has a platform account (grantee link)
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="shareholder_records",
    )
    name  = models.CharField(max_length=200)
    email = models.EmailField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self) -> str:
        return self.name


class Shareholding(models.Model):
    company = models.ForeignKey(Company, on_delete=models.CASCADE, related_name="shareholdings")
    shareholder = models.ForeignKey(Shareholder, on_delete=models.CASCADE, related_name="holdings")
    share_class = models.ForeignKey(ShareClass, on_delete=models.CASCADE, related_name="holdings")

    quantity         = models.DecimalField(default=0, **QUANTITY)
    ownership_pct    = models.DecimalField(default=0, **PERCENT)
    voting_power_pct = models.DecimalField(default=0, **PERCENT)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=["shareholder", "share_class"],
                name="unique_holding_per_class",
            )
        ]

    def __str__(self) -> str:
        return f"{self.shareholder.name}: {self.quantity}@{self.share_class.class_name}"


class CapTableSnapshot(models.Model):
    company = models.ForeignKey(Company, on_delete=models.CASCADE, related_name="snapshots")
    snapshot_date = models.DateTimeField(default=timezone.now)
    reason = models.CharField(max_length=64)
    notes  = models.TextField(blank=True)
    data   = models.JSONField(default=dict)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-snapshot_date"]
