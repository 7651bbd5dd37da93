"""SQL clause builders.

Values are always parameterized. Field names are interpolated and must come
from trusted code (model fields or fixed param maps), never from requests.
"""

from typing import Any


def build_where_clause(
    conditions: dict[str, Any],
    param_map: dict[str, str] | None = None
) -> tuple[str, list[Any]]:
    """Build a WHERE clause from non-None conditions.

    Args:
        conditions: Field name to value; None values are skipped
        param_map: Optional field name to SQL fragment (with one ``?``)
                   replacing the default ``field = ?``

    Returns:
        Tuple of (clause, params). Clause is "1=1" when nothing applies.
    """
    param_map = param_map or {}
    fragments = []
    params = []

    for field, value in conditions.items():
        if value is None:
            continue
        fragments.append(param_map.get(field, f"{field} = ?"))
        params.append(value)

    if not fragments:
        return "1=1", []

    return " AND ".join(fragments), params


def build_update_clause(
    data: dict[str, Any],
    exclude: set[str] | None = None
) -> tuple[str, list[Any]]:
    """Build a SET clause from non-None fields.

    Args:
        data: Field name to new value; None values are skipped
        exclude: Field names never written (e.g. primary keys)

    Returns:
        Tuple of (clause, params). Clause is "" when nothing applies.
    """
    exclude = exclude or set()
    fragments = []
    params = []

    for field, value in data.items():
        if field in exclude or value is None:
            continue
        fragments.append(f"{field} = ?")
        params.append(value)

    return ", ".join(fragments), params
