from rest_framework import permissions

from .services import member_role

READ_ROLES = ('ADMIN', 'FINANCE', 'LEGAL')


class HasCompanyRole(permissions.BasePermission):
    """
    Allows access only if request.user holds an ACTIVE membership of the
    company in the URL (``company_id`` kwarg) with one of the roles the view
    lists for the request method in ``allowed_roles``.
    """
    message = "You do not have the required role in this company."

    def has_permission(self, request, view):
        user = request.user
        if not (user and user.is_authenticated):
            return False
        company_id = view.kwargs.get('company_id')
        roles = getattr(view, 'allowed_roles', {}).get(request.method, ())
        if company_id is None or not roles:
            return False
        return member_role(company_id, user.pk) in roles
