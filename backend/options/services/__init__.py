"""
Option-plan engine services.

Each function validates first and mutates second; every multi-row write runs
inside one ``transaction.atomic`` block. Views call these and never touch the
pool counters directly.
"""
from .exercises import (
    EXERCISE_SORTABLE_FIELDS,
    cancel_exercise,
    confirm_exercise_payment,
    create_exercise_request,
    get_exercise,
    list_exercises,
)
from .expiration import expire_stale_grants
from .grants import (
    GRANT_SORTABLE_FIELDS,
    cancel_grant,
    create_grant,
    get_grant,
    grant_vesting_schedule,
    list_grants,
)
from .plans import (
    PLAN_SORTABLE_FIELDS,
    close_plan,
    create_plan,
    find_plan_by_id,
    list_plans,
    live_pool_usage,
    update_plan,
)

__all__ = [
    "EXERCISE_SORTABLE_FIELDS",
    "GRANT_SORTABLE_FIELDS",
    "PLAN_SORTABLE_FIELDS",
    "cancel_exercise",
    "cancel_grant",
    "close_plan",
    "confirm_exercise_payment",
    "create_exercise_request",
    "create_grant",
    "create_plan",
    "expire_stale_grants",
    "find_plan_by_id",
    "get_exercise",
    "get_grant",
    "grant_vesting_schedule",
    "list_exercises",
    "list_grants",
    "list_plans",
    "live_pool_usage",
    "update_plan",
]
