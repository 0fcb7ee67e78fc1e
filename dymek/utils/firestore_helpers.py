"""
Firestore query helpers: chained where() clauses from equality filter maps.
"""

from typing import Any, Dict, Optional


def where_filter(query, field_path: str, op_string: str, value):
    """
    Helper function for Firestore queries.

    Usage:
        query = where_filter(collection, "user_id", "==", "u1")
        query = where_filter(query, "type", "in", ["DOG_POOP", "CHIMNEY_SMOKE"])
    """
    return query.where(field_path, op_string, value)


def apply_filters(query, filters: Optional[Dict[str, Any]]):
    """
    Translate an equality filter map into chained where() clauses.

    List/tuple/set values become an "in" clause (Firestore allows at most
    30 values per "in").
    """
    for field_path, value in (filters or {}).items():
        if isinstance(value, (list, tuple, set, frozenset)):
            query = where_filter(query, field_path, "in", list(value))
        else:
            query = where_filter(query, field_path, "==", value)
    return query
