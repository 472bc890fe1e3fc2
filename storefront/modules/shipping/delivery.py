"""
Delivery date projection.

Only the landing date is moved off a weekend; the transit days in between
are plain calendar days. This is a known approximation and is kept as is.
"""
from datetime import date, timedelta
from typing import Optional

SATURDAY = 5
SUNDAY = 6


def project_delivery_date(estimated_days: int, today: Optional[date] = None) -> date:
    """
    today + estimated_days, shifted to Monday when it lands on a weekend.

    Saturday moves +2 days, Sunday +1 day, weekdays are unchanged.
    """
    start = today or date.today()
    delivery = start + timedelta(days=estimated_days)

    weekday = delivery.weekday()
    if weekday == SUNDAY:
        delivery += timedelta(days=1)
    elif weekday == SATURDAY:
        delivery += timedelta(days=2)

    return delivery
