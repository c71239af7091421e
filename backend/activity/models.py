from django.conf import settings
from django.db import models

from accounts.models import Company


class AuditEvent(models.Model):
    company  = models.ForeignKey(Company, on_delete=models.CASCADE, related_name='audit_events', null=True, blank=True)
    actor    = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, related_name='audit_events',
        null=True, blank=True
    )
    # SYSTEM for scheduled jobs, USER otherwise
    actor_type    = models.CharField(max_length=16, default='USER')
    action        = models.CharField(max_length=64)
    resource_type = models.CharField(max_length=64)
    resource_id   = models.CharField(max_length=64)
    changes       = models.JSONField(default=dict, blank=True)
    metadata      = models.JSONField(default=dict, blank=True)
    created_at    = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.action} {self.resource_type}:{self.resource_id}"


class Notification(models.Model):
    user    = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='notifications')
    company = models.ForeignKey(Company, on_delete=models.CASCADE, related_name='notifications', null=True, blank=True)
    notification_type   = models.CharField(max_length=64)
    subject             = models.CharField(max_length=255)
    body                = models.TextField(blank=True)
    related_entity_type = models.CharField(max_length=64, blank=True)
    related_entity_id   = models.CharField(max_length=64, blank=True)
    read       = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.notification_type} → {self.user_id}"
