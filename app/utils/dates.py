# app/utils/dates.py
from datetime import datetime, time, timezone
from typing import Optional

from fastapi import HTTPException, status


def parse_date_param(value: Optional[str], name: str, end_of_day: bool = False) -> Optional[datetime]:
    """Parse an ISO date or datetime query parameter into naive UTC.

    A bare date used as an upper bound covers the whole day.
    """
    if value is None or value == "":
        return None
    raw = value.strip()
    try:
        if len(raw) == 10:
            day = datetime.strptime(raw, "%Y-%m-%d").date()
            return datetime.combine(day, time.max if end_of_day else time.min)
        parsed = datetime.fromisoformat(raw.replace("Z", "+00:00"))
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid {name}: expected an ISO date such as 2024-01-31",
        )
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed
