"""
Firestore query and document helpers.

NOTE: For firebase_admin SDK, we use positional arguments for where(), which
still work. The deprecation warning is just a warning.
"""

from typing import Any, Dict, Iterable, Optional


def where_filter(query, field_path: str, op_string: str, value):
    """
    Helper function for Firestore queries.

    Usage:
        query = where_filter(collection, "user_id", "==", uid)
    """
    return query.where(field_path, op_string, value)


def document_to_dict(doc) -> Optional[Dict[str, Any]]:
    """Snapshot → dict with the document id under "id", or None when missing."""
    if doc is None or not getattr(doc, "exists", False):
        return None
    data = doc.to_dict() or {}
    data["id"] = doc.id
    return data


def first_present(data: Dict[str, Any], keys: Iterable[str], default=None):
    """Value of the first key present with a non-None value."""
    for key in keys:
        if data.get(key) is not None:
            return data[key]
    return default
