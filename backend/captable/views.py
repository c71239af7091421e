from rest_framework.response import Response
from rest_framework.views import APIView
from rest_framework import permissions

from accounts.permissions import HasCompanyRole, READ_ROLES
from accounts.services import get_company

from .ledger import current_cap_table


#Allow user to view the current cap table (holdings per shareholder and class)
class CapTableView(APIView):
    permission_classes = [permissions.IsAuthenticated, HasCompanyRole]
    allowed_roles = {"GET": READ_ROLES + ("INVESTOR",)}

    def get(self, request, company_id):
        company = get_company(company_id)
        return Response({"success": True, "data": current_cap_table(company.pk)})
