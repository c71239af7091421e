"""
Best-effort audit and notification sinks.

Both run after the surrounding transaction commits (immediately when there is
none) and never raise into the caller: a failed write is logged and dropped.
"""
import logging

from django.db import transaction

from .models import AuditEvent, Notification

logger = logging.getLogger(__name__)


def _after_commit(label, fn, **kwargs):
    def run():
        try:
            fn(**kwargs)
        except Exception:
            logger.warning("%s failed", label, exc_info=True)

    transaction.on_commit(run)


def log_event(*, action, resource_type, resource_id, company_id=None, actor_id=None,
              actor_type='USER', changes=None, metadata=None):
    _after_commit(
        f"Audit log {action}",
        AuditEvent.objects.create,
        company_id=company_id,
        actor_id=actor_id,
        actor_type=actor_type,
        action=action,
        resource_type=resource_type,
        resource_id=str(resource_id),
        changes=changes or {},
        metadata=metadata or {},
    )


def notify(*, user_id, notification_type, subject, related_entity_type, related_entity_id,
           company_id=None, body=''):
    if not user_id:
        return
    _after_commit(
        f"Notification {notification_type}",
        Notification.objects.create,
        user_id=user_id,
        company_id=company_id,
        notification_type=notification_type,
        subject=subject,
        body=body,
        related_entity_type=related_entity_type,
        related_entity_id=str(related_entity_id),
    )
