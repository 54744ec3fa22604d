"""
Class credit arithmetic.

Credits are the paid class sessions a student still has. They are bought per
instrument through a payment plan (monthly, quarterly, ...) and consumed by
attendance.
"""
import calendar
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, Mapping, Optional

CREDITS_PER_FREQUENCY = {
    "monthly": 8,
    "quarterly": 24,
    "half_yearly": 48,
    "yearly": 96,
}

MONTHS_PER_FREQUENCY = {
    "monthly": 1,
    "quarterly": 3,
    "half_yearly": 6,
    "yearly": 12,
}


def normalize_frequency(freq: Optional[str]) -> Optional[str]:
    if not freq:
        return None
    value = str(freq).strip().lower().replace("-", "_").replace(" ", "_")
    if value == "halfyearly":
        value = "half_yearly"
    return value


def credits_for_frequency(freq: Optional[str]) -> int:
    return CREDITS_PER_FREQUENCY.get(normalize_frequency(freq) or "", 0)


def initial_batch_credits(freq: Optional[str]) -> int:
    """Opening balance for a new batch link; only monthly and quarterly plans are seeded."""
    if normalize_frequency(freq) in ("monthly", "quarterly"):
        return credits_for_frequency(freq)
    return 0


def total_credits_for_batches(batches: Iterable[Mapping[str, Any]]) -> int:
    """
    Total credits for a set of batch selections.

    Only one payment plan counts per instrument, so two batches of the same
    instrument do not double the credits. Selections without an instrument
    are keyed by their batch id. The last selection for a key wins.
    """
    per_instrument: Dict[str, Optional[str]] = {}
    for item in batches:
        key = item.get("instrument_id") or item.get("batch_id")
        if not key:
            continue
        per_instrument[str(key)] = item.get("payment_frequency")
    return sum(credits_for_frequency(freq) for freq in per_instrument.values())


def remaining_credits(
    total_credits: Optional[int],
    present: int,
    absent: int,
    batch_balances: Iterable[Optional[int]] = (),
) -> int:
    # Absences are charged like attended classes
    if total_credits is not None:
        return int(total_credits) - (present + absent)
    return sum(int(b or 0) for b in batch_balances)


def attendance_credit_delta(old_status: Optional[str], new_status: str) -> int:
    """Change to apply to a batch balance when an attendance mark is written."""
    was_present = _status_value(old_status) == "present"
    is_present = _status_value(new_status) == "present"
    if is_present and not was_present:
        return -1
    if was_present and not is_present:
        return 1
    return 0


def _status_value(status: Any) -> Optional[str]:
    if status is None:
        return None
    return status.value if hasattr(status, "value") else str(status)


def infer_payment_frequency(
    metadata: Optional[Mapping[str, Any]], package_name: Optional[str]
) -> Optional[str]:
    explicit = normalize_frequency((metadata or {}).get("payment_frequency"))
    if explicit:
        return explicit
    name = (package_name or "").lower()
    if "monthly" in name:
        return "monthly"
    if "quarterly" in name:
        return "quarterly"
    if "half" in name:
        return "half_yearly"
    if "yearly" in name or "annual" in name:
        return "yearly"
    return None


def add_months(value: datetime, months: int) -> datetime:
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)


def next_payment_date(last_paid_at: Optional[datetime], frequency: Optional[str]) -> Optional[datetime]:
    months = MONTHS_PER_FREQUENCY.get(normalize_frequency(frequency) or "")
    if last_paid_at is None or months is None:
        return None
    return add_months(last_paid_at, months)


def is_overdue(next_due: Optional[datetime], now: Optional[datetime] = None) -> bool:
    if next_due is None:
        return False
    now = now or datetime.utcnow()
    return _naive(now) > _naive(next_due)


def _naive(value: datetime) -> datetime:
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value
