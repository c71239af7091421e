import re
from typing import Dict, List, Optional

MAX_SORT_FIELDS = 3


def _snake(name: str) -> str:
    return re.sub(r"(?<!^)(?=[A-Z])", "_", name).lower()


def parse_sort(sort: Optional[str], allowed: List[str], default: str = "-createdAt") -> List[str]:
    """
    Turn ``"-createdAt,name"`` into ``["-created_at", "name"]``, keeping only
    whitelisted camelCase fields (at most three). Falls back to ``default``.
    """
    mapping: Dict[str, str] = {f: _snake(f) for f in allowed}
    order = []
    for raw in (sort or "").split(",")[:MAX_SORT_FIELDS]:
        raw = raw.strip()
        descending = raw.startswith("-")
        name = raw[1:] if descending else raw
        if name in mapping:
            order.append(("-" if descending else "") + mapping[name])
    if order:
        return order
    descending = default.startswith("-")
    name = default.lstrip("-")
    return [("-" if descending else "") + _snake(name)]
