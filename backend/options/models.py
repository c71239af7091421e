from __future__ import annotations

from django.conf import settings
from django.db import models
from django.db.models import Q

from accounts.models import Company
from captable.models import ShareClass, Shareholder

QUANTITY = dict(max_digits=20, decimal_places=0)
MONEY = dict(max_digits=20, decimal_places=6)

VESTING_FREQUENCIES = [
    ('MONTHLY',   'Monthly'),
    ('QUARTERLY', 'Quarterly'),
    ('ANNUALLY',  'Annually'),
]


class OptionPlan(models.Model):
    STATUS_CHOICES = [
        ('ACTIVE', 'Active'),
        ('CLOSED', 'Closed'),
    ]
    TERMINATION_POLICIES = [
        ('FORFEITURE',   'Forfeiture'),
        ('ACCELERATION', 'Acceleration'),
        ('PRO_RATA',     'Pro rata'),
    ]

    company = models.ForeignKey(
        Company,
        on_delete=models.CASCADE,
        related_name='option_plans'
    )
    share_class = models.ForeignKey(
        ShareClass,
        on_delete=models.PROTECT,
        related_name='option_plans'
    )
    name = models.CharField(max_length=200)

    total_pool_size = models.DecimalField(**QUANTITY)
    total_granted   = models.DecimalField(default=0, **QUANTITY)
    total_exercised = models.DecimalField(default=0, **QUANTITY)

    status               = models.CharField(max_length=16, choices=STATUS_CHOICES, default='ACTIVE')
    termination_policy   = models.CharField(max_length=16, choices=TERMINATION_POLICIES, default='FORFEITURE')
    exercise_window_days = models.PositiveIntegerField(default=90)
    board_approval_date  = models.DateField(null=True, blank=True)

    # vesting terms applied to grants that don't carry their own
    default_cliff_months      = models.PositiveIntegerField(default=12)
    default_vesting_months    = models.PositiveIntegerField(default=48)
    default_vesting_frequency = models.CharField(max_length=16, choices=VESTING_FREQUENCIES, default='MONTHLY')

    notes      = models.TextField(blank=True)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL,
        null=True, blank=True, related_name='+'
    )
    closed_at  = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at']
        constraints = [
            models.CheckConstraint(condition=Q(total_pool_size__gt=0), name='plan_pool_positive'),
        ]

    def __str__(self) -> str:
        return f"{self.company.name} · {self.name}"


class OptionGrant(models.Model):
    STATUS_CHOICES = [
        ('ACTIVE',    'Active'),
        ('EXERCISED', 'Exercised'),
        ('CANCELLED', 'Cancelled'),
        ('EXPIRED',   'Expired'),
    ]
    VESTING_FREQUENCIES = VESTING_FREQUENCIES

    company = models.ForeignKey(
        Company,
        on_delete=models.CASCADE,
        related_name='option_grants'
    )
    plan = models.ForeignKey(
        OptionPlan,
        on_delete=models.PROTECT,
        related_name='grants'
    )
    shareholder = models.ForeignKey(
        Shareholder,
        on_delete=models.SET_NULL,
        null=True, blank=True,
        related_name='option_grants'
    )
    employee_name  = models.CharField(max_length=200)
    employee_email = models.EmailField()

    quantity     = models.DecimalField(**QUANTITY)
    strike_price = models.DecimalField(**MONEY)
    exercised    = models.DecimalField(default=0, **QUANTITY)
    status       = models.CharField(max_length=16, choices=STATUS_CHOICES, default='ACTIVE')

    grant_date      = models.DateField()
    expiration_date = models.DateField()
    cliff_months            = models.PositiveIntegerField()
    vesting_duration_months = models.PositiveIntegerField()
    vesting_frequency = models.CharField(max_length=16, choices=VESTING_FREQUENCIES, default='MONTHLY')
    # display only: cliff_months / vesting_duration_months * 100
    cliff_percentage    = models.DecimalField(max_digits=7, decimal_places=2, default=0)
    acceleration_on_coc = models.BooleanField(default=False)

    terminated_at = models.DateTimeField(null=True, blank=True)
    # frozen at CANCELLED/EXPIRED for audit; the calculator reports 0 afterwards
    vested_at_termination = models.DecimalField(null=True, blank=True, **QUANTITY)

    notes      = models.TextField(blank=True)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL,
        null=True, blank=True, related_name='+'
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-grant_date', '-created_at']
        constraints = [
            models.CheckConstraint(condition=Q(exercised__gte=0), name='grant_exercised_non_negative'),
            models.CheckConstraint(condition=Q(exercised__lte=models.F('quantity')), name='grant_exercised_within_quantity'),
            models.CheckConstraint(
                condition=Q(cliff_months__lte=models.F('vesting_duration_months')),
                name='grant_cliff_within_vesting',
            ),
        ]
        indexes = [
            models.Index(fields=['status', 'expiration_date'], name='grant_status_expiry_idx'),
        ]

    def __str__(self) -> str:
        return f"{self.employee_name}: {self.quantity}@{self.strike_price}"

    @property
    def unexercised(self):
        return self.quantity - self.exercised


class OptionExerciseRequest(models.Model):
    STATUS_CHOICES = [
        ('PENDING_PAYMENT', 'Pending payment'),
        ('COMPLETED',       'Completed'),
        ('CANCELLED',       'Cancelled'),
    ]

    grant = models.ForeignKey(
        OptionGrant,
        on_delete=models.CASCADE,
        related_name='exercise_requests'
    )
    quantity          = models.DecimalField(**QUANTITY)
    total_cost        = models.DecimalField(max_digits=32, decimal_places=6)
    payment_reference = models.CharField(max_length=32, unique=True)
    status            = models.CharField(max_length=16, choices=STATUS_CHOICES, default='PENDING_PAYMENT')

    created_by   = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL,
        null=True, blank=True, related_name='+'
    )
    confirmed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL,
        null=True, blank=True, related_name='+'
    )
    confirmed_at = models.DateTimeField(null=True, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)
    created_at   = models.DateTimeField(auto_now_add=True)
    updated_at   = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at']
        constraints = [
            # at most one request awaiting payment per grant
            models.UniqueConstraint(
                fields=['grant'],
                condition=Q(status='PENDING_PAYMENT'),
                name='one_pending_exercise_per_grant',
            ),
        ]

    def __str__(self) -> str:
        return f"{self.payment_reference} ({self.status})"
