from django.conf import settings
from django.db import models


class Company(models.Model):
    STATUS_CHOICES = [
        ('DRAFT', 'Draft'),
        ('ACTIVE', 'Active'),
        ('INACTIVE', 'Inactive'),
        ('DISSOLVED', 'Dissolved'),
    ]

    name       = models.CharField(max_length=200)
    status     = models.CharField(max_length=16, choices=STATUS_CHOICES, default='ACTIVE')
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["name"]

    def __str__(self):
        return self.name

    @property
    def is_active(self) -> bool:
        return self.status == 'ACTIVE'


class CompanyMember(models.Model):
    ROLE_CHOICES = [
        ('ADMIN', 'Admin'),
        ('FINANCE', 'Finance'),
        ('LEGAL', 'Legal'),
        ('INVESTOR', 'Investor'),
        ('EMPLOYEE', 'Employee'),
    ]
    STATUS_CHOICES = [
        ('PENDING', 'Pending'),
        ('ACTIVE', 'Active'),
        ('REMOVED', 'Removed'),
    ]

    company = models.ForeignKey(
        Company,
        on_delete=models.CASCADE,
        related_name='members'
    )
    user    = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='memberships'
    )
    role    = models.CharField(max_length=16, choices=ROLE_CHOICES)
    status  = models.CharField(max_length=16, choices=STATUS_CHOICES, default='ACTIVE')
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=['company', 'user'],
                name='unique_company_member'
            )
        ]

    def __str__(self):
        display = self.user.first_name or self.user.username
        return f"{display} ({self.role} of {self.company.name})"
