from typing import Optional

from backoffice.errors import NotFoundError

from .models import Company, CompanyMember


def get_company(company_id) -> Company:
    try:
        return Company.objects.get(pk=company_id)
    except (Company.DoesNotExist, ValueError):
        raise NotFoundError("company", company_id)


def member_role(company_id, user_id) -> Optional[str]:
    """Role of an ACTIVE membership, or None."""
    return (
        CompanyMember.objects
        .filter(company_id=company_id, user_id=user_id, status='ACTIVE')
        .values_list('role', flat=True)
        .first()
    )


def is_admin(company_id, user_id) -> bool:
    return member_role(company_id, user_id) == 'ADMIN'
