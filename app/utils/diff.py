# app/utils/diff.py
import enum
from datetime import date, datetime
from typing import Any, Dict


def _plain(value: Any) -> Any:
    if isinstance(value, enum.Enum):
        return value.value
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


def field_changes(instance: Any, updates: Dict[str, Any]) -> Dict[str, Dict[str, Any]]:
    """Diff requested updates against the current attribute values.

    Only fields whose value actually changes are reported, as
    {field: {"from": old, "to": new}} with JSON-safe values.
    """
    changes = {}
    for field, new_value in updates.items():
        old_value = _plain(getattr(instance, field, None))
        new_value = _plain(new_value)
        if old_value != new_value:
            changes[field] = {"from": old_value, "to": new_value}
    return changes
