from unittest import mock

from django.contrib.auth import get_user_model
from django.test import TestCase

from accounts.models import Company

from .models import AuditEvent, Notification
from .sinks import log_event, notify


class Sinks_Test(TestCase):
    def setUp(self):
        self.company = Company.objects.create(name="Acme Inc")
        self.user = get_user_model().objects.create_user(username="jane", password="password")

    def test_written_after_commit(self):
        with self.captureOnCommitCallbacks(execute=False) as callbacks:
            log_event(action="OPTION_PLAN_CLOSED", resource_type="OptionPlan", resource_id=7,
                      company_id=self.company.pk, actor_id=self.user.pk)
        self.assertEqual(len(callbacks), 1)
        self.assertFalse(AuditEvent.objects.exists())

        callbacks[0]()
        event = AuditEvent.objects.get()
        self.assertEqual(event.resource_id, "7")
        self.assertEqual(event.actor, self.user)

    def test_notify_without_user_is_skipped(self):
        with self.captureOnCommitCallbacks(execute=True) as callbacks:
            notify(user_id=None, notification_type="OPTION_GRANT_EXPIRED", subject="Expired",
                   related_entity_type="OptionGrant", related_entity_id=1)
        self.assertEqual(callbacks, [])
        self.assertFalse(Notification.objects.exists())

    def test_notify(self):
        with self.captureOnCommitCallbacks(execute=True):
            notify(user_id=self.user.pk, notification_type="OPTION_GRANT_EXPIRED", subject="Expired",
                   related_entity_type="OptionGrant", related_entity_id=1, company_id=self.company.pk)
        self.assertEqual(Notification.objects.get().related_entity_id, "1")

    def test_failures_are_logged_not_raised(self):
        with mock.patch.object(AuditEvent.objects, "create", side_effect=RuntimeError("disk full")):
            with self.assertLogs("activity.sinks", level="WARNING"):
                with self.captureOnCommitCallbacks(execute=True):
                    log_event(action="X", resource_type="OptionGrant", resource_id=1)
