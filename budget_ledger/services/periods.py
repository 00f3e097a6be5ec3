"""Time range utilities for the MCP server."""
from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from typing import Literal, Optional

from ..errors import ValidationError

_END_OF_DAY = time.max.replace(tzinfo=timezone.utc)
_START_OF_DAY = time.min.replace(tzinfo=timezone.utc)


def _parse_day(value: str) -> date:
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except ValueError as exc:  # noqa: TRY003
        raise ValidationError("date must be formatted as YYYY-MM-DD") from exc


def parse_date_from(value: Optional[str]) -> Optional[datetime]:
    """Parse an optional ``YYYY-MM-DD`` lower bound as 00:00 UTC of that day."""

    if value is None or not value.strip():
        return None
    return datetime.combine(_parse_day(value.strip()), _START_OF_DAY)


def parse_date_to(value: Optional[str]) -> Optional[datetime]:
    """Parse an optional ``YYYY-MM-DD`` upper bound as the last instant of that day."""

    if value is None or not value.strip():
        return None
    return datetime.combine(_parse_day(value.strip()), _END_OF_DAY)


def parse_occurred_at(value: Optional[str]) -> datetime:
    """Parse the required date of a transaction (midnight UTC)."""

    parsed = parse_date_from(value)
    if parsed is None:
        raise ValidationError("occurred_at is required")
    return parsed


def parse_period(
    period: Literal["day", "week", "month", "year"],
    reference: str,
) -> tuple[datetime, datetime, str]:
    """Convert a period and reference string into an inclusive UTC range and label."""

    ref = (reference or "").strip()
    if not ref:
        raise ValidationError("a reference value is required to resolve the period")

    if period == "day":
        target_date = _parse_day(ref)
        start_date = target_date
        next_date = target_date + timedelta(days=1)
        label = target_date.strftime("%Y-%m-%d")
    elif period == "week":
        try:
            year_part, week_part = ref.split("-W", maxsplit=1)
            target_year = int(year_part)
            target_week = int(week_part)
            start_date = date.fromisocalendar(target_year, target_week, 1)
        except ValueError as exc:  # noqa: TRY003
            raise ValidationError("week must be formatted as YYYY-Www, e.g. 2024-W09") from exc
        next_date = start_date + timedelta(days=7)
        label = f"{target_year:04d}-W{target_week:02d}"
    elif period == "month":
        try:
            start_date = datetime.strptime(ref, "%Y-%m").date().replace(day=1)
        except ValueError as exc:  # noqa: TRY003
            raise ValidationError("month must be formatted as YYYY-MM") from exc
        next_month_base = start_date.replace(day=28) + timedelta(days=4)
        next_date = next_month_base.replace(day=1)
        label = start_date.strftime("%Y-%m")
    elif period == "year":
        try:
            target_year = int(ref)
            start_date = date(target_year, 1, 1)
        except ValueError as exc:  # noqa: TRY003
            raise ValidationError("year must be formatted as YYYY") from exc
        next_date = date(target_year + 1, 1, 1)
        label = f"{target_year:04d}"
    else:
        raise ValidationError(f"unsupported period: {period}")

    start = datetime.combine(start_date, _START_OF_DAY)
    end = datetime.combine(next_date, _START_OF_DAY) - timedelta(microseconds=1)
    return start, end, label
