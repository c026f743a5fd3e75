# Overview: Resolves free-text supplier names to canonical Supplier rows.

from __future__ import annotations

from sqlalchemy.exc import IntegrityError

from ..errors import InvalidInput
from ..extensions import db
from ..models import Supplier


def normalize_supplier_name(name: str | None) -> str:
    return " ".join((name or "").split())


def resolve_supplier(name: str) -> Supplier:
    """
    Find the supplier with exactly this name or create it (active).

    Joins the caller's transaction. A concurrent purchase creating the same
    supplier loses the unique-name race inside a savepoint and then reads the
    winner's row.
    """
    clean = normalize_supplier_name(name)
    if not clean:
        raise InvalidInput("Supplier name is required", {"field": "supplier"})

    supplier = db.session.query(Supplier).filter_by(name=clean).first()
    if supplier is not None:
        return supplier

    try:
        with db.session.begin_nested():
            supplier = Supplier(name=clean, is_active=True)
            db.session.add(supplier)
    except IntegrityError:
        supplier = db.session.query(Supplier).filter_by(name=clean).one()
    return supplier


def get_supplier_by_name(name: str) -> Supplier | None:
    return db.session.query(Supplier).filter_by(name=normalize_supplier_name(name)).first()
