from __future__ import annotations

from datetime import date, datetime, timezone


def now_utc() -> datetime:
    return datetime.now(timezone.utc)


def validate_month(year: int, month: int) -> tuple[int, int]:
    if not 1 <= month <= 12:
        raise ValueError("month must be between 1 and 12")
    if not 2000 <= year <= 2100:
        raise ValueError("year must be between 2000 and 2100")
    return year, month


def available_months(today: date | None = None, count: int = 12) -> list[dict[str, str]]:
    current = (today or now_utc().date()).replace(day=1)
    months: list[dict[str, str]] = []
    year, month = current.year, current.month
    for _ in range(count):
        first = date(year, month, 1)
        months.append({"value": first.strftime("%Y-%m"), "label": first.strftime("%B %Y")})
        month -= 1
        if month == 0:
            year, month = year - 1, 12
    return months
