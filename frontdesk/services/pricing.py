"""Stay length and amount calculations."""

from datetime import datetime, timedelta
from decimal import Decimal

_ONE_DAY = timedelta(days=1)


def billable_days(check_in: datetime, check_out: datetime) -> int:
    """Whole days billed for a stay: partial days round up, minimum one."""
    days, remainder = divmod(check_out - check_in, _ONE_DAY)
    if remainder:
        days += 1
    return max(days, 1)


def compute_total_amount(check_in: datetime, check_out: datetime | None, rent: Decimal) -> Decimal:
    """``billable_days × rent``; zero while the guest is still in-house."""
    if check_out is None:
        return Decimal("0")
    return Decimal(billable_days(check_in, check_out)) * Decimal(rent)
