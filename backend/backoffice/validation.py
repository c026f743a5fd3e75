"""
Request parsing for the ledger engines.

Routes hand raw JSON (camelCase keys) to the parse_* functions below and get
back frozen dataclasses with Decimal amounts and UTC-naive datetimes. Parsing
only checks shape and types; business rules (stock, balances, lifecycle) live
in the services. Every problem raises InvalidInput naming the field, plus the
line index for multi-line requests.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any

from .errors import InvalidInput
from .models.purchases import PRODUCT_TYPE_INVENTORY, PRODUCT_TYPES
from .models.receivables import PAYMENT_METHODS
from .money import ZERO, to_decimal
from .time_utils import normalize_datetime


# Maximum amount: 9,999,999,999.99 fits Numeric(12, 2)
MAX_AMOUNT = Decimal("9999999999.99")


@dataclass(frozen=True)
class PurchaseLineRequest:
    product: str
    unit: str
    quantity: Decimal
    unit_price: Decimal
    category: str
    product_type: str
    is_new_product: bool = False
    inventory_id: int | None = None
    sale_price: Decimal | None = None
    reorder_point: Decimal | None = None
    useful_life: int | None = None
    depreciation_rate: Decimal | None = None
    serial_number: str | None = None
    location: str | None = None


@dataclass(frozen=True)
class PurchaseRequest:
    purchase_date: datetime
    supplier: str
    payment_method: str
    items: tuple[PurchaseLineRequest, ...]
    invoice_number: str | None = None
    notes: str | None = None
    # Optional client-computed total, checked against the lines
    total_amount: Decimal | None = None


@dataclass(frozen=True)
class SaleLineRequest:
    inventory_id: int
    product_name: str
    quantity: Decimal
    unit_price: Decimal
    subtotal: Decimal | None = None


@dataclass(frozen=True)
class SaleRequest:
    customer_name: str
    sale_date: datetime
    payment_method: str
    items: tuple[SaleLineRequest, ...]
    tax_rate: Decimal = ZERO
    discount_amount: Decimal = ZERO
    customer_email: str | None = None
    customer_phone: str | None = None
    notes: str | None = None


@dataclass(frozen=True)
class QuoteLineRequest:
    inventory_id: int
    product_name: str
    quantity: Decimal
    unit_price: Decimal
    description: str | None = None
    subtotal: Decimal | None = None


@dataclass(frozen=True)
class QuoteRequest:
    customer_name: str
    quote_date: datetime
    valid_until: datetime
    items: tuple[QuoteLineRequest, ...]
    tax_rate: Decimal = ZERO
    discount_amount: Decimal = ZERO
    customer_email: str | None = None
    customer_phone: str | None = None
    customer_address: str | None = None
    notes: str | None = None
    terms: str | None = None


@dataclass(frozen=True)
class PaymentRequest:
    invoice_id: int
    payment_amount: Decimal
    payment_date: datetime | None
    payment_method: str
    reference_number: str | None = None
    notes: str | None = None


@dataclass(frozen=True)
class InvoiceLineRequest:
    description: str
    quantity: Decimal
    unit_price: Decimal


@dataclass(frozen=True)
class InvoiceRequest:
    client_name: str
    issue_date: datetime
    due_date: datetime
    items: tuple[InvoiceLineRequest, ...]
    tax_rate: Decimal = ZERO
    discount_amount: Decimal = ZERO
    client_email: str | None = None
    client_phone: str | None = None
    client_address: str | None = None
    notes: str | None = None


# =============================================================================
# FIELD HELPERS
# =============================================================================

def _fail(message: str, field: str, line: int | None = None, product: str | None = None):
    details: dict[str, Any] = {"field": field}
    if line is not None:
        details["line_index"] = line
        details["product_name"] = product
    raise InvalidInput(message, details)


def _str(data: dict, key: str, *, line: int | None = None, product: str | None = None) -> str:
    value = data.get(key)
    if not isinstance(value, str) or not value.strip():
        _fail(f"{key} is required", key, line, product)
    return value.strip()


def _opt_str(data: dict, key: str) -> str | None:
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        _fail(f"{key} must be a string", key)
    return value.strip() or None


def _decimal(data: dict, key: str, *, line: int | None = None, product: str | None = None,
             positive: bool = False, allow_negative: bool = False) -> Decimal:
    if data.get(key) is None:
        _fail(f"{key} is required", key, line, product)
    try:
        value = to_decimal(data[key], key)
    except ValueError as exc:
        _fail(str(exc), key, line, product)
    if positive and value <= 0:
        _fail(f"{key} must be greater than zero", key, line, product)
    if not allow_negative and value < 0:
        _fail(f"{key} cannot be negative", key, line, product)
    if abs(value) > MAX_AMOUNT:
        _fail(f"{key} exceeds the maximum amount", key, line, product)
    return value


def _opt_decimal(data: dict, key: str, default: Decimal | None = None, **kwargs) -> Decimal | None:
    if data.get(key) is None or data.get(key) == "":
        return default
    return _decimal(data, key, **kwargs)


def _int(data: dict, key: str, *, line: int | None = None, product: str | None = None) -> int:
    value = data.get(key)
    if isinstance(value, bool):
        _fail(f"{key} must be an integer", key, line, product)
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    _fail(f"{key} must be an integer", key, line, product)


def _opt_int(data: dict, key: str, **kwargs) -> int | None:
    if data.get(key) is None or data.get(key) == "":
        return None
    return _int(data, key, **kwargs)


def _datetime(data: dict, key: str) -> datetime:
    try:
        value = normalize_datetime(data.get(key))
    except ValueError:
        _fail(f"{key} must be an ISO-8601 date", key)
    if value is None:
        _fail(f"{key} is required", key)
    return value


def _bool(data: dict, key: str) -> bool:
    value = data.get(key, False)
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "on"}
    return bool(value)


def _items(data: dict) -> list[dict]:
    items = data.get("items")
    if not isinstance(items, list) or not items:
        _fail("items must be a non-empty list", "items")
    for index, raw in enumerate(items):
        if not isinstance(raw, dict):
            _fail("each item must be an object", "items", index, None)
    return items


def _require_object(data: Any) -> dict:
    if not isinstance(data, dict):
        raise InvalidInput("Request body must be a JSON object", {})
    return data


# =============================================================================
# PARSERS
# =============================================================================

def parse_purchase_line(raw: dict, index: int) -> PurchaseLineRequest:
    product = raw.get("product") if isinstance(raw.get("product"), str) else None
    ctx = {"line": index, "product": product}

    product = _str(raw, "product", **ctx)
    product_type = raw.get("productType") or PRODUCT_TYPE_INVENTORY
    if product_type not in PRODUCT_TYPES:
        _fail(f"productType must be one of {', '.join(PRODUCT_TYPES)}", "productType", index, product)

    is_new = _bool(raw, "isNewProduct")
    inventory_id = _opt_int(raw, "inventoryId", **ctx)
    if product_type == PRODUCT_TYPE_INVENTORY and not is_new and inventory_id is None:
        _fail("inventoryId is required for an existing inventory product", "inventoryId", index, product)

    return PurchaseLineRequest(
        product=product,
        unit=_opt_str(raw, "unit") or "unidades",
        quantity=_decimal(raw, "quantity", positive=True, **ctx),
        unit_price=_decimal(raw, "unitPrice", **ctx),
        category=_opt_str(raw, "category") or "General",
        product_type=product_type,
        is_new_product=is_new,
        inventory_id=inventory_id,
        sale_price=_opt_decimal(raw, "salePrice", **ctx),
        reorder_point=_opt_decimal(raw, "reorderPoint", **ctx),
        useful_life=_opt_int(raw, "usefulLife", **ctx),
        depreciation_rate=_opt_decimal(raw, "depreciationRate", **ctx),
        serial_number=_opt_str(raw, "serialNumber"),
        location=_opt_str(raw, "location"),
    )


def parse_purchase_request(data: Any) -> PurchaseRequest:
    data = _require_object(data)
    items = tuple(parse_purchase_line(raw, i) for i, raw in enumerate(_items(data)))
    return PurchaseRequest(
        purchase_date=_datetime(data, "purchaseDate"),
        supplier=_str(data, "supplier"),
        payment_method=_str(data, "paymentMethod"),
        items=items,
        invoice_number=_opt_str(data, "invoiceNumber"),
        notes=_opt_str(data, "notes"),
        total_amount=_opt_decimal(data, "totalAmount"),
    )


def _parse_sale_line(raw: dict, index: int) -> SaleLineRequest:
    name = raw.get("productName") if isinstance(raw.get("productName"), str) else None
    ctx = {"line": index, "product": name}
    return SaleLineRequest(
        inventory_id=_int(raw, "inventoryId", **ctx),
        product_name=_str(raw, "productName", **ctx),
        quantity=_decimal(raw, "quantity", positive=True, **ctx),
        unit_price=_decimal(raw, "unitPrice", **ctx),
        subtotal=_opt_decimal(raw, "subtotal", **ctx),
    )


def parse_sale_request(data: Any) -> SaleRequest:
    data = _require_object(data)
    items = tuple(_parse_sale_line(raw, i) for i, raw in enumerate(_items(data)))
    return SaleRequest(
        customer_name=_str(data, "customerName"),
        sale_date=_datetime(data, "saleDate"),
        payment_method=_str(data, "paymentMethod"),
        items=items,
        tax_rate=_opt_decimal(data, "taxRate", ZERO),
        discount_amount=_opt_decimal(data, "discountAmount", ZERO),
        customer_email=_opt_str(data, "customerEmail"),
        customer_phone=_opt_str(data, "customerPhone"),
        notes=_opt_str(data, "notes"),
    )


def _parse_quote_line(raw: dict, index: int) -> QuoteLineRequest:
    name = raw.get("productName") if isinstance(raw.get("productName"), str) else None
    ctx = {"line": index, "product": name}
    return QuoteLineRequest(
        inventory_id=_int(raw, "inventoryId", **ctx),
        product_name=_str(raw, "productName", **ctx),
        quantity=_decimal(raw, "quantity", positive=True, **ctx),
        unit_price=_decimal(raw, "unitPrice", **ctx),
        description=_opt_str(raw, "description"),
        subtotal=_opt_decimal(raw, "subtotal", **ctx),
    )


def parse_quote_request(data: Any) -> QuoteRequest:
    data = _require_object(data)
    items = tuple(_parse_quote_line(raw, i) for i, raw in enumerate(_items(data)))
    return QuoteRequest(
        customer_name=_str(data, "customerName"),
        quote_date=_datetime(data, "quoteDate"),
        valid_until=_datetime(data, "validUntil"),
        items=items,
        tax_rate=_opt_decimal(data, "taxRate", ZERO),
        discount_amount=_opt_decimal(data, "discountAmount", ZERO),
        customer_email=_opt_str(data, "customerEmail"),
        customer_phone=_opt_str(data, "customerPhone"),
        customer_address=_opt_str(data, "customerAddress"),
        notes=_opt_str(data, "notes"),
        terms=_opt_str(data, "terms"),
    )


def parse_payment_request(data: Any) -> PaymentRequest:
    """
    Parse a receivables payment.

    The amount is only parsed here, not range-checked: non-positive amounts and
    overpayments are InvalidAmount, decided by the receivables engine.
    """
    data = _require_object(data)
    method = _str(data, "paymentMethod")
    if method not in PAYMENT_METHODS:
        _fail(f"paymentMethod must be one of {', '.join(PAYMENT_METHODS)}", "paymentMethod")

    payment_date = data.get("paymentDate")
    return PaymentRequest(
        invoice_id=_int(data, "invoiceId"),
        payment_amount=_decimal(data, "paymentAmount", allow_negative=True),
        payment_date=_datetime(data, "paymentDate") if payment_date else None,
        payment_method=method,
        reference_number=_opt_str(data, "referenceNumber"),
        notes=_opt_str(data, "notes"),
    )


def parse_invoice_request(data: Any) -> InvoiceRequest:
    data = _require_object(data)
    lines = []
    for index, raw in enumerate(_items(data)):
        name = raw.get("description") if isinstance(raw.get("description"), str) else None
        ctx = {"line": index, "product": name}
        lines.append(InvoiceLineRequest(
            description=_str(raw, "description", **ctx),
            quantity=_decimal(raw, "quantity", positive=True, **ctx),
            unit_price=_decimal(raw, "unitPrice", **ctx),
        ))

    return InvoiceRequest(
        client_name=_str(data, "clientName"),
        issue_date=_datetime(data, "issueDate"),
        due_date=_datetime(data, "dueDate"),
        items=tuple(lines),
        tax_rate=_opt_decimal(data, "taxRate", ZERO),
        discount_amount=_opt_decimal(data, "discountAmount", ZERO),
        client_email=_opt_str(data, "clientEmail"),
        client_phone=_opt_str(data, "clientPhone"),
        client_address=_opt_str(data, "clientAddress"),
        notes=_opt_str(data, "notes"),
    )
