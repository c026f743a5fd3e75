# Overview: Quote date rules: validity window, expiry warnings and expiry status.

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta

from ..time_utils import ceil_days, normalize_datetime, start_of_day, utcnow


DEFAULT_MIN_VALIDITY_DAYS = 7
DEFAULT_MAX_VALIDITY_DAYS = 90
DEFAULT_SUGGESTED_VALIDITY_DAYS = 30

EXPIRY_EXPIRED = "expired"
EXPIRY_EXPIRING_SOON = "expiring_soon"          # 3 days or less
EXPIRY_EXPIRING_WARNING = "expiring_warning"    # 7 days or less
EXPIRY_VALID = "valid"


@dataclass(frozen=True)
class QuoteDateOptions:
    allow_past_quote_dates: bool = False
    min_validity_days: int = DEFAULT_MIN_VALIDITY_DAYS
    max_validity_days: int = DEFAULT_MAX_VALIDITY_DAYS
    business_days_only: bool = False


@dataclass
class DateValidationResult:
    is_valid: bool
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "isValid": self.is_valid,
            "errors": list(self.errors),
            "warnings": list(self.warnings),
        }


def _parse(value) -> datetime | None:
    try:
        return normalize_datetime(value)
    except ValueError:
        return None


def _plural(days: int) -> str:
    return "day" if days == 1 else "days"


def days_until_expiry(valid_until: datetime, now: datetime | None = None) -> int:
    now = now or utcnow()
    return ceil_days((valid_until - now).total_seconds())


def validate_quote_dates(
    quote_date,
    valid_until,
    options: QuoteDateOptions | None = None,
    now: datetime | None = None,
) -> DateValidationResult:
    """
    Check a quote's dates.

    Errors: unparseable dates, quote_date before today (unless past dates are
    allowed), valid_until not after quote_date, validity shorter than the
    minimum, already expired.
    Warnings: validity longer than the maximum, expiring within 7 / 3 days,
    weekend dates when business_days_only is set.
    """
    opts = options or QuoteDateOptions()
    now = now or utcnow()
    errors: list[str] = []
    warnings: list[str] = []

    q_date = _parse(quote_date)
    v_date = _parse(valid_until)
    if q_date is None:
        errors.append("Invalid quote date")
    if v_date is None:
        errors.append("Invalid valid-until date")
    if errors:
        return DateValidationResult(is_valid=False, errors=errors, warnings=warnings)

    if not opts.allow_past_quote_dates and q_date < start_of_day(now):
        errors.append("Quote date cannot be earlier than today")

    if v_date <= q_date:
        errors.append("Valid-until date must be after the quote date")

    validity_days = ceil_days((v_date - q_date).total_seconds())
    if opts.min_validity_days and validity_days < opts.min_validity_days:
        errors.append(f"Quote must be valid for at least {opts.min_validity_days} days")
    if opts.max_validity_days and validity_days > opts.max_validity_days:
        warnings.append(
            f"Quote will be valid for {validity_days} days "
            f"(recommended maximum: {opts.max_validity_days})"
        )

    if opts.business_days_only:
        if q_date.weekday() >= 5:
            warnings.append("Quote date falls on a weekend")
        if v_date.weekday() >= 5:
            warnings.append("Valid-until date falls on a weekend")

    days_left = days_until_expiry(v_date, now)
    if days_left <= 0:
        errors.append("Quote has already expired")
    elif days_left <= 3:
        warnings.append(f"Quote expires in {days_left} {_plural(days_left)}")
    elif days_left <= 7:
        warnings.append(f"Quote expires soon ({days_left} days)")

    return DateValidationResult(is_valid=not errors, errors=errors, warnings=warnings)


def is_quote_expired(valid_until: datetime, now: datetime | None = None) -> bool:
    return (now or utcnow()) > valid_until


def get_expiry_status(valid_until: datetime, now: datetime | None = None) -> dict:
    """Expiry bucket of a quote: expired, expiring_soon, expiring_warning or valid."""
    days_left = days_until_expiry(valid_until, now)
    if days_left <= 0:
        status, message = EXPIRY_EXPIRED, "Quote expired"
    elif days_left <= 3:
        status, message = EXPIRY_EXPIRING_SOON, f"Expires in {days_left} {_plural(days_left)}"
    elif days_left <= 7:
        status, message = EXPIRY_EXPIRING_WARNING, f"Expires in {days_left} days"
    else:
        status, message = EXPIRY_VALID, f"Valid for {days_left} days"
    return {"status": status, "message": message, "daysLeft": days_left}


def suggest_valid_until(quote_date, days: int = DEFAULT_SUGGESTED_VALIDITY_DAYS) -> datetime:
    q_date = normalize_datetime(quote_date)
    return q_date + timedelta(days=days)
