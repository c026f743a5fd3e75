# Overview: Quote lifecycle, quote-to-sale conversion and the expiration sweep.

"""
Quote Engine

LIFECYCLE (terminal states marked *):
- draft -> sent
- sent -> accepted | rejected* | expired*
- accepted -> converted* (only through convert_quote_to_sale) | expired* (only
  through the expiration sweep, once valid_until has passed)
- rejected*, expired*, converted*: no further transitions

Quotes are edited only while draft or sent, and converted quotes are never
deleted. Conversion writes the sale, its items, the stock decrements and the
quote's new status in one transaction.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from flask import current_app
from sqlalchemy import func, update

from ..errors import Expired, InvalidInput, InvalidState, LedgerError, NotFound, line_context
from ..extensions import db
from ..models import InventoryItem, Quote, QuoteItem, Sale
from ..models.sales import (
    QUOTE_STATUS_ACCEPTED,
    QUOTE_STATUS_CONVERTED,
    QUOTE_STATUS_DRAFT,
    QUOTE_STATUS_EXPIRED,
    QUOTE_STATUS_REJECTED,
    QUOTE_STATUS_SENT,
    QUOTE_STATUSES,
)
from ..money import ZERO, line_total, money_str, quantize
from ..time_utils import utcnow
from ..validation import QuoteRequest
from .concurrency import atomic, lock_for_update
from .document_service import next_quote_number, next_sale_number
from .quote_dates import DateValidationResult, QuoteDateOptions, validate_quote_dates
from .sales_service import compute_totals, record_sale
from .stock_ledger_service import REASON_SALE_FROM_QUOTE


# Manual status changes. Accepted quotes leave only through conversion or the sweep.
ALLOWED_TRANSITIONS: dict[str, frozenset[str]] = {
    QUOTE_STATUS_DRAFT: frozenset({QUOTE_STATUS_SENT}),
    QUOTE_STATUS_SENT: frozenset({QUOTE_STATUS_ACCEPTED, QUOTE_STATUS_REJECTED, QUOTE_STATUS_EXPIRED}),
    QUOTE_STATUS_ACCEPTED: frozenset(),
    QUOTE_STATUS_REJECTED: frozenset(),
    QUOTE_STATUS_EXPIRED: frozenset(),
    QUOTE_STATUS_CONVERTED: frozenset(),
}

EDITABLE_STATUSES = frozenset({QUOTE_STATUS_DRAFT, QUOTE_STATUS_SENT})
EXPIRABLE_STATUSES = (QUOTE_STATUS_SENT, QUOTE_STATUS_ACCEPTED)

DEFAULT_CONVERSION_PAYMENT_METHOD = "cash"


def can_transition(current: str, target: str) -> bool:
    return target in ALLOWED_TRANSITIONS.get(current, frozenset())


def date_options(allow_past_quote_dates: bool = False) -> QuoteDateOptions:
    """Validation options from app config."""
    return QuoteDateOptions(
        allow_past_quote_dates=allow_past_quote_dates,
        min_validity_days=current_app.config.get("QUOTE_MIN_VALIDITY_DAYS", 7),
        max_validity_days=current_app.config.get("QUOTE_MAX_VALIDITY_DAYS", 90),
    )


def _check_dates(request: QuoteRequest, options: QuoteDateOptions, now: datetime | None) -> DateValidationResult:
    result = validate_quote_dates(request.quote_date, request.valid_until, options, now=now)
    if not result.is_valid:
        raise InvalidInput(
            "; ".join(result.errors),
            {"field": "validUntil", "errors": result.errors, "warnings": result.warnings},
        )
    return result


def _check_inventory_refs(request: QuoteRequest) -> None:
    for index, line in enumerate(request.items):
        if db.session.get(InventoryItem, line.inventory_id) is None:
            raise NotFound(
                f"Inventory item {line.inventory_id} not found",
                {**line_context(index, line.product_name), "inventory_id": line.inventory_id},
            )


def _apply_request(quote: Quote, request: QuoteRequest) -> None:
    totals = compute_totals(request.items, request.tax_rate, request.discount_amount)

    quote.customer_name = request.customer_name
    quote.customer_email = request.customer_email
    quote.customer_phone = request.customer_phone
    quote.customer_address = request.customer_address
    quote.quote_date = request.quote_date
    quote.valid_until = request.valid_until
    quote.subtotal = totals.subtotal
    quote.tax_rate = quantize(request.tax_rate)
    quote.tax_amount = totals.tax_amount
    quote.discount_amount = quantize(request.discount_amount)
    quote.total = totals.total
    quote.notes = request.notes
    quote.terms = request.terms

    quote.items = [
        QuoteItem(
            inventory_id=line.inventory_id,
            product_name=line.product_name,
            description=line.description,
            quantity=quantize(line.quantity),
            unit_price=quantize(line.unit_price),
            subtotal=line_total(line.quantity, line.unit_price),
        )
        for line in request.items
    ]


def create_quote(request: QuoteRequest, now: datetime | None = None) -> tuple[Quote, DateValidationResult]:
    """
    Create a draft quote.

    Dates must pass validation (past quote dates rejected) and every line must
    reference an existing inventory item. Returns the quote together with the
    date validation result so callers can surface its warnings.
    """
    validation = _check_dates(request, date_options(), now)

    def _op():
        _check_inventory_refs(request)
        quote = Quote(quote_number=next_quote_number(now), status=QUOTE_STATUS_DRAFT)
        _apply_request(quote, request)
        db.session.add(quote)
        db.session.flush()
        return quote

    return atomic(_op), validation


def update_quote(quote_id: int, request: QuoteRequest, now: datetime | None = None) -> tuple[Quote, DateValidationResult]:
    """Replace a draft/sent quote's fields and items. Past quote dates are allowed."""
    validation = _check_dates(request, date_options(allow_past_quote_dates=True), now)

    def _op():
        quote = _get_quote_for_update(quote_id)
        if quote.status not in EDITABLE_STATUSES:
            raise InvalidState(
                f"Quote {quote.quote_number} is {quote.status} and can no longer be edited",
                {"quote_id": quote_id, "status": quote.status},
            )
        _check_inventory_refs(request)
        _apply_request(quote, request)
        db.session.flush()
        return quote

    return atomic(_op), validation


def delete_quote(quote_id: int) -> None:
    def _op():
        quote = _get_quote_for_update(quote_id)
        if quote.status == QUOTE_STATUS_CONVERTED:
            raise InvalidState(
                f"Quote {quote.quote_number} was converted to a sale and cannot be deleted",
                {"quote_id": quote_id, "sale_id": quote.sale_id},
            )
        db.session.delete(quote)

    atomic(_op)


def get_quote(quote_id: int) -> Quote | None:
    return db.session.get(Quote, quote_id)


def list_quotes(status: str | None = None) -> list[Quote]:
    query = db.session.query(Quote)
    if status:
        if status not in QUOTE_STATUSES:
            raise InvalidInput(f"Unknown quote status {status!r}", {"field": "status"})
        query = query.filter(Quote.status == status)
    return query.order_by(Quote.created_at.desc(), Quote.id.desc()).all()


def get_quote_stats() -> dict:
    """Quote counts and amounts per status, plus the conversion rate."""
    rows = (
        db.session.query(
            Quote.status,
            func.count(Quote.id),
            func.coalesce(func.sum(Quote.total), 0),
        )
        .group_by(Quote.status)
        .all()
    )
    by_status = {status: {"count": 0, "amount": money_str(ZERO)} for status in QUOTE_STATUSES}
    total_count = 0
    total_amount = ZERO
    for status, count, amount in rows:
        by_status[status] = {"count": count, "amount": money_str(Decimal(amount))}
        total_count += count
        total_amount += Decimal(amount)

    converted = by_status[QUOTE_STATUS_CONVERTED]["count"]
    decided = converted + by_status[QUOTE_STATUS_REJECTED]["count"] + by_status[QUOTE_STATUS_EXPIRED]["count"]
    return {
        "totalQuotes": total_count,
        "totalAmount": money_str(total_amount),
        "byStatus": by_status,
        "conversionRate": round(converted * 100 / decided, 2) if decided else 0.0,
    }


def _get_quote_for_update(quote_id: int) -> Quote:
    query = db.session.query(Quote).filter_by(id=quote_id).populate_existing()
    quote = lock_for_update(query).first()
    if quote is None:
        raise NotFound(f"Quote {quote_id} not found", {"quote_id": quote_id})
    return quote


def update_quote_status(quote_id: int, status: str) -> Quote:
    """
    Move a quote along the lifecycle.

    Raises InvalidState for any transition outside ALLOWED_TRANSITIONS and for
    "converted", which only convert_quote_to_sale may set.
    """
    if status not in QUOTE_STATUSES:
        raise InvalidInput(f"Unknown quote status {status!r}", {"field": "status"})

    def _op():
        quote = _get_quote_for_update(quote_id)
        if status == QUOTE_STATUS_CONVERTED:
            raise InvalidState(
                "A quote becomes converted only through conversion to a sale",
                {"quote_id": quote_id, "from": quote.status, "to": status},
            )
        if not can_transition(quote.status, status):
            raise InvalidState(
                f"Cannot change quote status from {quote.status} to {status}",
                {"quote_id": quote_id, "from": quote.status, "to": status},
            )
        quote.status = status
        db.session.flush()
        return quote

    return atomic(_op)


def convert_quote_to_sale(
    quote_id: int,
    now: datetime | None = None,
    payment_method: str = DEFAULT_CONVERSION_PAYMENT_METHOD,
) -> Sale:
    """
    Turn an accepted quote into a sale, decrementing stock once.

    Raises:
        NotFound: quote missing, or a line's inventory item missing
        InvalidState: quote is not accepted
        Expired: now is past valid_until
        InsufficientStock: a line exceeds available stock
    """
    def _op():
        at = now or utcnow()
        quote = _get_quote_for_update(quote_id)
        if quote.status != QUOTE_STATUS_ACCEPTED:
            raise InvalidState(
                f"Only accepted quotes can be converted (quote {quote.quote_number} is {quote.status})",
                {"quote_id": quote_id, "status": quote.status},
            )
        if at > quote.valid_until:
            raise Expired(
                f"Quote {quote.quote_number} expired and cannot be converted",
                {"quote_id": quote_id, "valid_until": quote.valid_until.isoformat()},
            )

        sale = record_sale(
            sale_number=next_sale_number(at),
            customer_name=quote.customer_name,
            customer_email=quote.customer_email,
            customer_phone=quote.customer_phone,
            sale_date=at,
            payment_method=payment_method,
            lines=list(quote.items),
            tax_rate=Decimal(quote.tax_rate),
            discount_amount=Decimal(quote.discount_amount),
            notes=f"Converted from quote {quote.quote_number}",
            quote_id=quote.id,
            reason=REASON_SALE_FROM_QUOTE,
        )

        quote.status = QUOTE_STATUS_CONVERTED
        quote.sale_id = sale.id
        db.session.flush()
        return sale

    return atomic(_op)


# =============================================================================
# EXPIRATION SWEEP
# =============================================================================

@dataclass
class SweepResult:
    checked: int = 0
    expired: int = 0
    successful: int = 0
    failed: int = 0

    def to_dict(self) -> dict:
        return {
            "checked": self.checked,
            "expired": self.expired,
            "successful": self.successful,
            "failed": self.failed,
        }


def _expire_one(quote_id: int, at: datetime) -> bool:
    """Conditionally expire one quote; False when it already left sent/accepted."""
    def _op():
        stmt = (
            update(Quote)
            .where(
                Quote.id == quote_id,
                Quote.status.in_(EXPIRABLE_STATUSES),
                Quote.valid_until < at,
            )
            .values(status=QUOTE_STATUS_EXPIRED, version_id=Quote.version_id + 1, updated_at=at)
            .execution_options(synchronize_session=False)
        )
        return db.session.execute(stmt).rowcount == 1

    return atomic(_op)


def expire_quotes(now: datetime | None = None) -> SweepResult:
    """
    Expire every sent/accepted quote whose valid_until has passed.

    Each quote is updated in its own transaction and guarded by its status, so
    re-running the sweep (or running two at once) never touches a terminal
    quote. Failures are counted and logged, never raised.
    """
    at = now or utcnow()
    result = SweepResult()

    candidates = (
        db.session.query(Quote.id, Quote.quote_number, Quote.valid_until)
        .filter(Quote.status.in_(EXPIRABLE_STATUSES))
        .order_by(Quote.id.asc())
        .all()
    )
    result.checked = len(candidates)

    for quote_id, quote_number, valid_until in candidates:
        if not at > valid_until:
            continue
        result.expired += 1
        try:
            if _expire_one(quote_id, at):
                result.successful += 1
        except LedgerError:
            result.failed += 1
            current_app.logger.exception("Failed to expire quote %s", quote_number)

    if result.expired:
        current_app.logger.info(
            "Quote expiration sweep: checked=%d expired=%d successful=%d failed=%d",
            result.checked, result.expired, result.successful, result.failed,
        )
    return result
