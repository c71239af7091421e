from datetime import timedelta

from django.test import override_settings
from django.urls import reverse
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APITestCase

from options.models import OptionPlan

from .factories import (
    add_member,
    make_company,
    make_grant,
    make_plan,
    make_share_class,
    make_shareholder,
    make_user,
    months_ago,
)


class OptionApiFixtures:
    def setUp(self):
        self.company = make_company()
        self.admin = make_user("admin")
        self.finance = make_user("finance")
        self.employee = make_user("employee")
        self.outsider = make_user("outsider")
        add_member(self.company, self.admin, "ADMIN")
        add_member(self.company, self.finance, "FINANCE")
        add_member(self.company, self.employee, "EMPLOYEE")
        self.share_class = make_share_class(self.company)

    def url(self, name, **kwargs):
        return reverse(name, kwargs={"company_id": self.company.pk, **kwargs})


# Option plans over HTTP
class Option_Plan_Api_Test(OptionApiFixtures, APITestCase):
    def test_admin_creates_plan(self):
        self.client.force_authenticate(self.admin)
        data = {"name": "ESOP", "shareClassId": self.share_class.pk, "totalPoolSize": "100000"}
        response = self.client.post(self.url("option-plan-list"), data, format="json")
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        body = response.json()
        self.assertTrue(body["success"])
        self.assertEqual(body["data"]["totalPoolSize"], "100000")
        self.assertEqual(body["data"]["optionsAvailable"], "100000")
        self.assertEqual(body["data"]["status"], "ACTIVE")
        self.assertTrue(OptionPlan.objects.filter(pk=body["data"]["id"]).exists())

    def test_finance_cannot_create_plan(self):
        self.client.force_authenticate(self.finance)
        data = {"name": "ESOP", "shareClassId": self.share_class.pk, "totalPoolSize": "100000"}
        response = self.client.post(self.url("option-plan-list"), data, format="json")
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertFalse(response.json()["success"])

    def test_outsider_cannot_list(self):
        self.client.force_authenticate(self.outsider)
        response = self.client.get(self.url("option-plan-list"))
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_anonymous_is_rejected(self):
        response = self.client.get(self.url("option-plan-list"))
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_invalid_input(self):
        self.client.force_authenticate(self.admin)
        response = self.client.post(self.url("option-plan-list"), {"name": "ESOP"}, format="json")
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        error = response.json()["error"]
        self.assertEqual(error["code"], "VAL_INVALID_INPUT")
        self.assertIn("shareClassId", error["details"])

    def test_list_is_paginated(self):
        for i in range(3):
            make_plan(self.company, self.share_class, name=f"Plan {i}")
        self.client.force_authenticate(self.finance)
        response = self.client.get(self.url("option-plan-list"), {"limit": 2, "sort": "name"})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        body = response.json()
        self.assertEqual([p["name"] for p in body["data"]], ["Plan 0", "Plan 1"])
        self.assertEqual(body["meta"], {"total": 3, "page": 1, "limit": 2, "totalPages": 2})

    def test_update_and_close(self):
        plan = make_plan(self.company, self.share_class)
        make_grant(plan, quantity=60000)
        self.client.force_authenticate(self.admin)

        response = self.client.put(self.url("option-plan-detail", plan_id=plan.pk), {"totalPoolSize": "50000"}, format="json")
        self.assertEqual(response.status_code, status.HTTP_422_UNPROCESSABLE_ENTITY)
        self.assertEqual(response.json()["error"]["code"], "OPT_POOL_CANNOT_SHRINK")

        response = self.client.post(self.url("option-plan-close", plan_id=plan.pk))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.json()["data"]["status"], "CLOSED")

        response = self.client.post(self.url("option-plan-close", plan_id=plan.pk))
        self.assertEqual(response.json()["error"]["messageKey"], "errors.opt.planAlreadyClosed")

    def test_detail_of_missing_plan(self):
        self.client.force_authenticate(self.admin)
        response = self.client.get(self.url("option-plan-detail", plan_id=999))
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.json()["error"]["code"], "OPTIONPLAN_NOT_FOUND")


# Grants and exercises over HTTP
class Option_Grant_Api_Test(OptionApiFixtures, APITestCase):
    def setUp(self):
        super().setUp()
        self.plan = make_plan(self.company, self.share_class, pool=100000)
        self.holder = make_shareholder(self.company, user=self.employee)

    def test_create_grant_exhausted(self):
        make_grant(self.plan, quantity=95000)
        self.client.force_authenticate(self.admin)
        today = timezone.localdate()
        data = {
            "optionPlanId": self.plan.pk,
            "employeeName": "Ana Souza",
            "employeeEmail": "ana@example.com",
            "quantity": "10000",
            "strikePrice": "1.00",
            "grantDate": today.isoformat(),
            "expirationDate": (today + timedelta(days=3650)).isoformat(),
        }
        response = self.client.post(self.url("option-grant-list"), data, format="json")
        self.assertEqual(response.status_code, status.HTTP_422_UNPROCESSABLE_ENTITY)
        self.assertEqual(response.json(), {
            "success": False,
            "error": {
                "code": "OPT_PLAN_EXHAUSTED",
                "messageKey": "errors.opt.planExhausted",
                "message": "Not enough options available in the plan pool",
                "details": {"optionsAvailable": "5000", "quantityRequested": "10000"},
            },
        })

        data["quantity"] = "5000"
        response = self.client.post(self.url("option-grant-list"), data, format="json")
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        grant = response.json()["data"]
        self.assertEqual(grant["quantity"], "5000")
        self.assertEqual(grant["strikePrice"], "1")
        self.assertEqual(grant["cliffPercentage"], "25")
        self.assertEqual(grant["vesting"]["vestedQuantity"], "0")

    def test_grant_detail_and_schedule(self):
        grant = make_grant(self.plan, quantity=48000, shareholder=self.holder, grant_date=months_ago(60))
        self.client.force_authenticate(self.finance)
        response = self.client.get(self.url("option-grant-detail", grant_id=grant.pk))
        self.assertEqual(response.json()["data"]["vesting"]["vestingPercentage"], "100.00")

        response = self.client.get(self.url("option-grant-vesting", grant_id=grant.pk))
        data = response.json()["data"]
        self.assertEqual(data["shareholderName"], "Jane Doe")
        self.assertEqual(len(data["schedule"]), 37)

    def test_employee_cannot_read_a_colleagues_schedule(self):
        colleague = make_user("colleague")
        add_member(self.company, colleague, "EMPLOYEE")
        grant = make_grant(self.plan, quantity=48000, shareholder=self.holder, grant_date=months_ago(60))
        self.client.force_authenticate(colleague)
        response = self.client.get(self.url("option-grant-vesting", grant_id=grant.pk))
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertNotIn("data", response.json())

    def test_grant_of_other_company_is_not_found(self):
        other = make_company(name="Other Co")
        foreign = make_grant(make_plan(other, make_share_class(other)))
        self.client.force_authenticate(self.admin)
        response = self.client.get(self.url("option-grant-detail", grant_id=foreign.pk))
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_cancel_grant(self):
        grant = make_grant(self.plan, quantity=10000, exercised=8000)
        self.client.force_authenticate(self.admin)
        response = self.client.post(self.url("option-grant-cancel", grant_id=grant.pk))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.json()["data"]["status"], "CANCELLED")
        self.plan.refresh_from_db()
        self.assertEqual(str(self.plan.total_granted), "8000")

    @override_settings(OPTIONS_PAYMENT_REFERENCE_ATTEMPTS=1)
    def test_exercise_flow(self):
        grant = make_grant(self.plan, quantity=10000, strike_price="5.00", shareholder=self.holder,
                           grant_date=months_ago(60))

        self.client.force_authenticate(self.employee)
        response = self.client.post(self.url("option-grant-exercise", grant_id=grant.pk), {"quantity": "2000"}, format="json")
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        exercise = response.json()["data"]
        self.assertEqual(exercise["totalCost"], "10000")
        self.assertRegex(exercise["paymentReference"], r"^EX-\d{4}-[A-F0-9]{6}$")
        self.assertEqual(exercise["status"], "PENDING_PAYMENT")

        # employees cannot confirm their own payment
        response = self.client.post(self.url("option-exercise-confirm", exercise_id=exercise["id"]))
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        self.client.force_authenticate(self.admin)
        with self.captureOnCommitCallbacks(execute=True):
            response = self.client.post(self.url("option-exercise-confirm", exercise_id=exercise["id"]))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.json()["data"]["status"], "COMPLETED")

        response = self.client.get(self.url("cap-table"))
        table = response.json()["data"]
        self.assertEqual(table["totalShares"], "2000")
        self.assertEqual(table["entries"][0]["shareholderName"], "Jane Doe")
        self.assertEqual(table["entries"][0]["ownershipPercentage"], "100")

        response = self.client.get(self.url("option-exercise-list"), {"status": "COMPLETED"})
        self.assertEqual(response.json()["meta"]["total"], 1)

    def test_employee_cancels_own_exercise(self):
        grant = make_grant(self.plan, quantity=1000, shareholder=self.holder, grant_date=months_ago(60))
        self.client.force_authenticate(self.employee)
        created = self.client.post(self.url("option-grant-exercise", grant_id=grant.pk), {"quantity": "10"}, format="json")
        exercise_id = created.json()["data"]["id"]
        response = self.client.post(self.url("option-exercise-cancel", exercise_id=exercise_id))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.json()["data"]["status"], "CANCELLED")

    def test_fractional_exercise_is_invalid_input(self):
        grant = make_grant(self.plan, quantity=1000, shareholder=self.holder, grant_date=months_ago(60))
        self.client.force_authenticate(self.employee)
        response = self.client.post(self.url("option-grant-exercise", grant_id=grant.pk), {"quantity": "1.5"}, format="json")
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.json()["error"]["code"], "VAL_INVALID_INPUT")
