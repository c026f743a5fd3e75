# Overview: Monthly document numbering for sales, quotes and invoices.

from __future__ import annotations

import time
from datetime import datetime

from flask import current_app
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ..extensions import db
from ..models import DocumentSequence
from ..time_utils import utcnow


DOC_TYPE_SALE = "sale"
DOC_TYPE_QUOTE = "quote"
DOC_TYPE_INVOICE = "invoice"


class DocumentSequenceError(Exception):
    """Raised when document sequence operations fail."""
    pass


def _period(now: datetime) -> str:
    return f"{now.year:04d}{now.month:02d}"


def _current_value(document_type: str, period: str) -> int:
    return (
        db.session.query(DocumentSequence.next_number)
        .filter_by(document_type=document_type, period=period)
        .scalar()
    )


def allocate_number(document_type: str, period: str) -> int:
    """
    Allocate the next number for (document_type, period).

    Runs inside the caller's transaction, so a rolled-back sale also gives its
    number back. The first allocation of a period inserts the counter row under
    a savepoint; losing that insert race falls back to the UPDATE path without
    disturbing the caller's pending work.
    """
    if not document_type:
        raise DocumentSequenceError("document_type is required")
    if not period:
        raise DocumentSequenceError("period is required")

    stmt = (
        update(DocumentSequence)
        .where(
            DocumentSequence.document_type == document_type,
            DocumentSequence.period == period,
        )
        .values(next_number=DocumentSequence.next_number + 1)
        .execution_options(synchronize_session=False)
    )

    result = db.session.execute(stmt)
    if result.rowcount:
        return _current_value(document_type, period) - 1

    try:
        with db.session.begin_nested():
            db.session.add(DocumentSequence(document_type=document_type, period=period, next_number=2))
        return 1
    except IntegrityError:
        result = db.session.execute(stmt)
        if not result.rowcount:
            raise
        return _current_value(document_type, period) - 1


def peek_number(document_type: str, period: str) -> int:
    """Number the next allocation would return, without allocating it."""
    current = _current_value(document_type, period)
    return current or 1


def _fallback_suffix() -> str:
    # Millisecond clock, last 6 digits
    return f"{int(time.time() * 1000) % 1_000_000:06d}"


def _with_fallback(document_type: str, now: datetime, render, fallback: str) -> str:
    try:
        with db.session.begin_nested():
            number = allocate_number(document_type, _period(now))
        return render(number)
    except (SQLAlchemyError, DocumentSequenceError):
        current_app.logger.warning(
            "Document sequence for %s unavailable, using fallback number %s",
            document_type,
            fallback,
            exc_info=True,
        )
        return fallback


def next_sale_number(now: datetime | None = None) -> str:
    """
    Allocate a sale number "V{YYYY}{MM}{seq:04d}".

    If the sequence cannot be allocated the sale still proceeds with a
    timestamp-derived number "V{YYYY}{MM}-{6 digits}". Two fallbacks in the same
    millisecond window can collide; the unique constraint on sale_number then
    rejects the second sale.
    """
    now = now or utcnow()
    return _with_fallback(
        DOC_TYPE_SALE,
        now,
        lambda n: f"V{_period(now)}{n:04d}",
        f"V{_period(now)}-{_fallback_suffix()}",
    )


def next_quote_number(now: datetime | None = None) -> str:
    """Allocate a quote number "COT{YYYY}{MM}{seq:04d}" (same fallback rule as sales)."""
    now = now or utcnow()
    return _with_fallback(
        DOC_TYPE_QUOTE,
        now,
        lambda n: f"COT{_period(now)}{n:04d}",
        f"COT{_period(now)}-{_fallback_suffix()}",
    )


def next_invoice_number(now: datetime | None = None) -> str:
    """Allocate an invoice number "YYYY-MM-NNN"."""
    now = now or utcnow()
    return _with_fallback(
        DOC_TYPE_INVOICE,
        now,
        lambda n: f"{now.year:04d}-{now.month:02d}-{n:03d}",
        f"{now.year:04d}-{now.month:02d}-T{_fallback_suffix()}",
    )


def preview_sale_number(now: datetime | None = None) -> str:
    """Sale number the next sale would receive; nothing is reserved."""
    now = now or utcnow()
    return f"V{_period(now)}{peek_number(DOC_TYPE_SALE, _period(now)):04d}"
