from datetime import date, datetime
from decimal import Decimal

from backoffice.decimals import decimal_str


def actor_pk(actor):
    return getattr(actor, "pk", actor)


def audit_state(instance, fields) -> dict:
    """JSON-safe ``{field: value}`` of a model instance for audit payloads."""
    state = {}
    for name in fields:
        value = getattr(instance, name)
        if isinstance(value, Decimal):
            value = decimal_str(value)
        elif isinstance(value, (date, datetime)):
            value = value.isoformat()
        state[name] = value
    return state
