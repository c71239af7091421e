from accounts.services import is_admin
from backoffice.errors import BusinessRuleError
from captable.ledger import shareholder_linked_to_user


def grantee_or_admin(company_id, user, shareholder_id) -> None:
    """
    The caller must be the grantee (the grant's shareholder is linked to their
    account) or an ADMIN of the company.
    """
    user_id = getattr(user, "pk", user)
    if shareholder_id and shareholder_linked_to_user(shareholder_id, user_id):
        return
    if user_id and is_admin(company_id, user_id):
        return
    raise BusinessRuleError("OPT_NOT_GRANTEE", "errors.opt.notGrantee")
