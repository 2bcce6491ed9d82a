"""Small helpers shared by the model modules (not part of the public surface)."""

from __future__ import annotations

from datetime import UTC, date, datetime


def utcnow() -> datetime:
    return datetime.now(tz=UTC)


def parse_date(value: object) -> date:
    """Parse an ISO-8601 date or datetime into a calendar date.

    Raises ``ValueError`` when the value is blank or unparseable.
    """

    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"not a date: {value!r}")
    text = value.strip()
    if len(text) == 10:
        return date.fromisoformat(text)
    return datetime.fromisoformat(text.replace("Z", "+00:00")).date()


def parse_optional_date(value: object) -> date | None:
    if value is None or value == "":
        return None
    return parse_date(value)


def parse_datetime(value: object) -> datetime:
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and value.strip():
        parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    else:
        raise ValueError(f"not a datetime: {value!r}")
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)


def isoformat(value: date | datetime | None) -> str | None:
    return value.isoformat() if value is not None else None
