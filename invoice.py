# invoice.py
from __future__ import annotations

import base64
import binascii
import random
import re
from dataclasses import dataclass, field, replace
from datetime import date, timedelta
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Optional

from config import Config
from errors import InvalidInvoice

CURRENCIES = ("USD", "EUR", "GBP")
STATUSES = ("draft", "sent", "paid")

CENTS = Decimal("0.01")
# Largest quantity, rate or tax rate accepted from input
MAX_INPUT = Decimal("1000000000")


# -----------------------------
# Value types
# -----------------------------
@dataclass(frozen=True)
class Party:
    name: str = ""
    address: str = ""
    email: str = ""
    phone: str = ""

    def lines(self) -> list[str]:
        """Printable lines, skipping empty values instead of leaving blanks."""
        address = ", ".join(ln.strip() for ln in re.split(r"[\r\n]+", self.address or "") if ln.strip())
        out = [
            (self.name or "").strip(),
            address,
            f"Email: {self.email.strip()}" if (self.email or "").strip() else "",
            f"Phone: {self.phone.strip()}" if (self.phone or "").strip() else "",
        ]
        return [ln for ln in out if ln]


@dataclass(frozen=True)
class LineItem:
    id: str
    description: str = ""
    quantity: str = "1"
    rate: str = ""
    amount: str = "0.00"


@dataclass(frozen=True)
class InvoiceDocument:
    """
    Everything the form collects. subtotal / tax_amount / total_amount and each
    item's amount are derived: build documents through recalculate() or the
    helpers below so they never drift from the items.
    """
    invoice_number: str
    date: str
    due_date: str
    status: str = "draft"

    business: Party = field(default_factory=Party)
    client: Party = field(default_factory=Party)

    project_title: str = ""
    description: str = ""

    items: tuple[LineItem, ...] = ()
    currency: str = "USD"
    tax_rate: str = "0"
    subtotal: str = "0.00"
    tax_amount: str = "0.00"
    total_amount: str = "0.00"

    payment_method: str = ""
    notes: str = ""
    terms: str = ""
    logo: Optional[bytes] = None


# -----------------------------
# Numbers
# -----------------------------
def _to_decimal(s, default="0") -> Decimal:
    try:
        s = str(s if s is not None else "").strip()
        return Decimal(s) if s else Decimal(default)
    except (InvalidOperation, ValueError):
        return Decimal(default)


def _round2(x: Decimal) -> Decimal:
    return x.quantize(CENTS, rounding=ROUND_HALF_UP)


def format_amount(x) -> str:
    """Always two fraction digits, whatever precision came in."""
    return f"{_round2(_to_decimal(x)):.2f}"


def recalculate(doc: InvoiceDocument) -> InvoiceDocument:
    try:
        items = tuple(
            replace(it, amount=f"{_round2(_to_decimal(it.quantity) * _to_decimal(it.rate)):.2f}")
            for it in doc.items
        )
        subtotal = sum((Decimal(it.amount) for it in items), Decimal("0"))
        tax_amount = _round2(subtotal * _to_decimal(doc.tax_rate) / Decimal(100))
        total = subtotal + tax_amount
        _round2(total)
    except InvalidOperation as e:
        # quantize() fails once a figure needs more digits than the decimal context holds
        raise InvalidInvoice("Invoice amounts are too large to calculate") from e
    return replace(
        doc,
        items=items,
        subtotal=f"{_round2(subtotal):.2f}",
        tax_amount=f"{tax_amount:.2f}",
        total_amount=f"{_round2(total):.2f}",
    )


# -----------------------------
# Edits (each returns a recalculated copy)
# The routes rebuild a whole document with invoice_from_mapping on every post;
# these are for callers holding a document already (render_invoice --tax-rate).
# -----------------------------
def _next_item_id(doc: InvoiceDocument) -> str:
    used = [int(it.id) for it in doc.items if str(it.id).isdigit()]
    return str(max(used, default=0) + 1)


def add_item(doc: InvoiceDocument, description: str = "", quantity: str = "1", rate: str = "") -> InvoiceDocument:
    item = LineItem(id=_next_item_id(doc), description=description, quantity=quantity, rate=rate)
    return recalculate(replace(doc, items=doc.items + (item,)))


def update_item(doc: InvoiceDocument, item_id: str, **changes) -> InvoiceDocument:
    allowed = {"description", "quantity", "rate"}
    unknown = set(changes) - allowed
    if unknown:
        raise InvalidInvoice(f"Cannot edit line item field(s): {', '.join(sorted(unknown))}")
    if not any(it.id == item_id for it in doc.items):
        raise InvalidInvoice(f"Line item not found: id={item_id}")
    items = tuple(replace(it, **changes) if it.id == item_id else it for it in doc.items)
    return recalculate(replace(doc, items=items))


def remove_item(doc: InvoiceDocument, item_id: str) -> InvoiceDocument:
    return recalculate(replace(doc, items=tuple(it for it in doc.items if it.id != item_id)))


def with_tax_rate(doc: InvoiceDocument, tax_rate: str) -> InvoiceDocument:
    return recalculate(replace(doc, tax_rate=_non_negative(tax_rate, "Tax rate") or "0"))


# -----------------------------
# Defaults
# -----------------------------
def default_invoice_number() -> str:
    return f"INV-{random.randint(0, 9999):04d}"


def default_due_date(issue: date | None = None) -> date:
    return (issue or date.today()) + timedelta(days=Config.DEFAULT_DUE_DAYS)


def new_invoice(today: date | None = None) -> InvoiceDocument:
    """A blank invoice as the form starts out: one empty item, default terms."""
    today = today or date.today()
    doc = InvoiceDocument(
        invoice_number=default_invoice_number(),
        date=today.isoformat(),
        due_date=default_due_date(today).isoformat(),
        items=(LineItem(id="1"),),
        currency=Config.DEFAULT_CURRENCY,
        payment_method=Config.DEFAULT_PAYMENT_METHOD,
        terms=Config.DEFAULT_TERMS,
    )
    return recalculate(doc)


# -----------------------------
# Parsing (JSON body / form fields)
# -----------------------------
def _text(data: dict, key: str, default: str = "") -> str:
    val = data.get(key)
    if val is None:
        return default
    return str(val)


def _non_negative(value, label: str) -> str:
    raw = str(value if value is not None else "").strip()
    if not raw:
        return ""
    try:
        num = Decimal(raw)
    except InvalidOperation:
        raise InvalidInvoice(f"{label} must be a number, got {raw!r}")
    if not num.is_finite() or num < 0:
        raise InvalidInvoice(f"{label} must be a non-negative number, got {raw!r}")
    if num > MAX_INPUT:
        raise InvalidInvoice(f"{label} must not exceed {MAX_INPUT:,}, got {raw!r}")
    return raw


def _logo_too_large(max_bytes: int) -> InvalidInvoice:
    return InvalidInvoice(f"Logo is too large (max {max_bytes // 1024} KB)")


def decode_logo_field(value, max_bytes: int | None = None) -> Optional[bytes]:
    """Accept raw bytes, a data: URL, or bare base64 text, up to max_bytes once decoded."""
    if value is None or value == "" or value == b"":
        return None
    if isinstance(value, (bytes, bytearray)):
        blob = bytes(value)
    else:
        text = str(value).strip()
        if text.startswith("data:"):
            _, _, text = text.partition(",")
        # base64 is 4 chars per 3 bytes; refuse before decoding anything oversized
        if max_bytes is not None and len(text) > (max_bytes + 2) // 3 * 4:
            raise _logo_too_large(max_bytes)
        try:
            blob = base64.b64decode(text, validate=True)
        except (binascii.Error, ValueError):
            raise InvalidInvoice("Logo must be base64 encoded image data")
    if max_bytes is not None and len(blob) > max_bytes:
        raise _logo_too_large(max_bytes)
    return blob


def invoice_from_mapping(data: dict, today: date | None = None,
                         max_logo_bytes: int | None = None) -> InvoiceDocument:
    """
    Build a recalculated InvoiceDocument from the field names the create form
    uses (businessName, clientEmail, taxRate, items[...] and so on).
    Missing fields fall back to the form defaults.
    """
    if not isinstance(data, dict):
        raise InvalidInvoice("Invoice data must be an object")
    if max_logo_bytes is None:
        max_logo_bytes = Config.MAX_LOGO_BYTES

    base = new_invoice(today)

    currency = _text(data, "currency", base.currency).strip().upper() or base.currency
    if currency not in CURRENCIES:
        raise InvalidInvoice(f"Unsupported currency: {currency}")

    status = _text(data, "status", base.status).strip().lower() or base.status
    if status not in STATUSES:
        raise InvalidInvoice(f"Unknown status: {status}")

    raw_items = data.get("items")
    if raw_items is None:
        items = base.items
    else:
        if not isinstance(raw_items, list):
            raise InvalidInvoice("items must be a list")
        items = []
        seen = set()
        for i, raw in enumerate(raw_items, start=1):
            if not isinstance(raw, dict):
                raise InvalidInvoice(f"Line item {i} must be an object")
            item_id = str(raw.get("id") or i)
            if item_id in seen:
                raise InvalidInvoice(f"Duplicate line item id: {item_id}")
            seen.add(item_id)
            items.append(LineItem(
                id=item_id,
                description=_text(raw, "description"),
                quantity=_non_negative(raw.get("quantity"), f"Line item {i} quantity"),
                rate=_non_negative(raw.get("rate"), f"Line item {i} rate"),
            ))
        items = tuple(items)

    date_text = _text(data, "date").strip() or base.date
    due_text = _text(data, "dueDate").strip()
    if not due_text:
        try:
            due_text = default_due_date(date.fromisoformat(date_text)).isoformat()
        except ValueError:
            due_text = base.due_date

    doc = InvoiceDocument(
        invoice_number=_text(data, "invoiceNumber").strip() or base.invoice_number,
        date=date_text,
        due_date=due_text,
        status=status,
        business=Party(
            name=_text(data, "businessName"),
            address=_text(data, "businessAddress"),
            email=_text(data, "businessEmail"),
            phone=_text(data, "businessPhone"),
        ),
        client=Party(
            name=_text(data, "clientName"),
            address=_text(data, "clientAddress"),
            email=_text(data, "clientEmail"),
            phone=_text(data, "clientPhone"),
        ),
        project_title=_text(data, "projectTitle"),
        description=_text(data, "description"),
        items=items,
        currency=currency,
        tax_rate=_non_negative(data.get("taxRate"), "Tax rate") or "0",
        payment_method=_text(data, "paymentMethod", base.payment_method),
        notes=_text(data, "notes"),
        terms=_text(data, "terms", base.terms),
        logo=decode_logo_field(data.get("logo"), max_logo_bytes),
    )
    return recalculate(doc)


# -----------------------------
# Download name
# -----------------------------
def _slug(text: str) -> str:
    return re.sub(r"[^A-Za-z0-9]+", "_", text or "").strip("_")


def download_filename(doc: InvoiceDocument) -> str:
    parts = ["Invoice", _slug(doc.invoice_number), _slug(doc.client.name)]
    return "_".join(p for p in parts if p) + ".pdf"
