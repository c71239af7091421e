from django.contrib.auth import get_user_model
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APITestCase

from backoffice.errors import NotFoundError

from .models import Company, CompanyMember
from .services import get_company, is_admin, member_role


# Company membership lookups
class Membership_Test(APITestCase):
    def setUp(self):
        User = get_user_model()
        self.company = Company.objects.create(name="Acme Inc")
        self.admin = User.objects.create_user(username="admin", password="password")
        self.investor = User.objects.create_user(username="investor", password="password")
        self.former = User.objects.create_user(username="former", password="password")
        CompanyMember.objects.create(company=self.company, user=self.admin, role="ADMIN")
        CompanyMember.objects.create(company=self.company, user=self.investor, role="INVESTOR")
        CompanyMember.objects.create(company=self.company, user=self.former, role="ADMIN", status="REMOVED")

    def test_member_role(self):
        self.assertEqual(member_role(self.company.pk, self.admin.pk), "ADMIN")
        self.assertEqual(member_role(self.company.pk, self.investor.pk), "INVESTOR")
        self.assertIsNone(member_role(self.company.pk, self.former.pk))

    def test_is_admin(self):
        self.assertTrue(is_admin(self.company.pk, self.admin.pk))
        self.assertFalse(is_admin(self.company.pk, self.investor.pk))
        self.assertFalse(is_admin(self.company.pk, self.former.pk))

    def test_get_company_missing(self):
        with self.assertRaises(NotFoundError):
            get_company(424242)

    # the cap table is open to investors but not to removed members
    def test_role_gate_pass(self):
        self.client.force_authenticate(self.investor)
        response = self.client.get(reverse('cap-table', kwargs={'company_id': self.company.pk}))
        self.assertEqual(response.status_code, status.HTTP_200_OK)

    def test_role_gate_fail(self):
        self.client.force_authenticate(self.former)
        response = self.client.get(reverse('cap-table', kwargs={'company_id': self.company.pk}))
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(response.json()["error"]["code"], "SYS_HTTP_ERROR")

    def test_jwt_login(self):
        response = self.client.post(reverse('token_obtain_pair'), {'username': 'admin', 'password': 'password'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        token = response.json()['access']
        self.client.credentials(HTTP_AUTHORIZATION=f'Bearer {token}')
        response = self.client.get(reverse('cap-table', kwargs={'company_id': self.company.pk}))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
