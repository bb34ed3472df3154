"""
Line items -- validated, immutable entries of the invoice being built.

Responsibility:
    Turns untrusted raw field values (as typed into a form) into
    ``LineItem`` values and keeps them in insertion order for the current
    invoice.

Invariants enforced:
    - Every stored item has a non-blank name and strictly positive, finite
      quantity and unit price.
    - A rejected candidate never mutates the store.
    - Item ids are unique within the store (uuid4).

Failure modes:
    - ValidationError listing every failing field at once.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable, Iterator
from uuid import UUID, uuid4

from invoice_kernel.exceptions import ValidationError
from invoice_kernel.logging_config import get_logger

logger = get_logger("domain.line_items")

# Accepted amounts have at most 12 integer digits and 12 decimal places.
MAX_INTEGER_DIGITS = 12
MAX_FRACTION_DIGITS = 12


@dataclass(frozen=True, slots=True)
class LineItem:
    """One billable entry. Immutable once added."""

    id: UUID
    name: str
    quantity: Decimal
    unit_price: Decimal

    @property
    def line_total(self) -> Decimal:
        return self.quantity * self.unit_price

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": str(self.id),
            "name": self.name,
            "quantity": self.quantity,
            "unit_price": self.unit_price,
        }


@dataclass(frozen=True, slots=True)
class LineItemCandidate:
    """Raw, unvalidated values received from the rendering collaborator."""

    name: Any
    quantity: Any
    unit_price: Any


def _parse_decimal(raw: Any) -> Decimal | None:
    if raw is None or isinstance(raw, bool):
        return None
    if isinstance(raw, Decimal):
        return raw
    text = str(raw).strip()
    if not text:
        return None
    try:
        return Decimal(text)
    except InvalidOperation:
        return None


def amount_within_bounds(value: Decimal) -> bool:
    """True if ``value`` fits MAX_INTEGER_DIGITS / MAX_FRACTION_DIGITS."""
    if not value.is_finite():
        return False
    if value.is_zero():
        return True
    _, digits, exponent = value.as_tuple()
    significant = "".join(map(str, digits)).rstrip("0")
    # exponent of the last non-zero digit
    exponent += len(digits) - len(significant)
    return value.adjusted() < MAX_INTEGER_DIGITS and exponent >= -MAX_FRACTION_DIGITS


def parse_positive_decimal(raw: Any) -> Decimal | None:
    """
    Parse a user-entered amount.

    Returns None unless ``raw`` is a finite number strictly greater than 0
    and within the accepted digit bounds.  Booleans are rejected; floats
    go through ``str()`` so that ``0.1`` becomes ``Decimal("0.1")``.
    """
    value = _parse_decimal(raw)
    if value is None or not value.is_finite() or value <= 0:
        return None
    if not amount_within_bounds(value):
        return None
    return value


def _amount_message(label: str, raw: Any) -> str:
    value = _parse_decimal(raw)
    if value is not None and value.is_finite() and value > 0:
        return f"{label} is out of range"
    return f"{label} must be greater than 0"


def is_encodable(text: str) -> bool:
    """False for strings holding lone surrogates, which UTF-8 cannot carry."""
    try:
        text.encode("utf-8")
    except UnicodeEncodeError:
        return False
    return True


def validate_candidate(candidate: LineItemCandidate) -> tuple[str, Decimal, Decimal]:
    """
    Validate all fields of a candidate.

    Returns:
        ``(name, quantity, unit_price)`` normalized.

    Raises:
        ValidationError: With one entry per failing field.
    """
    errors: list[dict] = []

    name = candidate.name.strip() if isinstance(candidate.name, str) else ""
    if not name:
        errors.append({
            "field": "name",
            "message": "Item name is required",
            "value": candidate.name,
        })
    elif not is_encodable(name):
        errors.append({
            "field": "name",
            "message": "Item name contains invalid characters",
            "value": candidate.name,
        })

    quantity = parse_positive_decimal(candidate.quantity)
    if quantity is None:
        errors.append({
            "field": "quantity",
            "message": _amount_message("Quantity", candidate.quantity),
            "value": candidate.quantity,
        })

    unit_price = parse_positive_decimal(candidate.unit_price)
    if unit_price is None:
        errors.append({
            "field": "unit_price",
            "message": _amount_message("Price", candidate.unit_price),
            "value": candidate.unit_price,
        })

    if errors:
        raise ValidationError(errors)

    assert quantity is not None and unit_price is not None
    return name, quantity, unit_price


class LineItemStore:
    """
    Ordered collection of the pending line items.

    Contract:
        ``add`` validates and appends; ``remove`` drops by id (no-op when
        absent); ``list`` returns a snapshot tuple in insertion order;
        ``clear`` empties the store.

    Non-goals:
        - No locking.  The owning InvoiceSession serializes access.
    """

    def __init__(self, items: Iterable[LineItem] = ()):
        self._items: list[LineItem] = []
        self.replace_all(items)

    def add(self, candidate: LineItemCandidate) -> LineItem:
        """
        Validate ``candidate`` and append it.

        Raises:
            ValidationError: If any field is invalid. The store is unchanged.
        """
        try:
            name, quantity, unit_price = validate_candidate(candidate)
        except ValidationError as exc:
            logger.info(
                "item_rejected",
                extra={"fields": list(exc.fields)},
            )
            raise

        item = LineItem(id=self._mint_id(), name=name, quantity=quantity, unit_price=unit_price)
        self._items.append(item)
        logger.debug(
            "item_added",
            extra={"item_id": str(item.id), "item_count": len(self._items)},
        )
        return item

    def remove(self, item_id: UUID | str) -> None:
        """Remove the item with ``item_id``; absent ids are ignored."""
        target = _coerce_id(item_id)
        if target is None:
            return
        before = len(self._items)
        self._items = [item for item in self._items if item.id != target]
        if len(self._items) != before:
            logger.debug(
                "item_removed",
                extra={"item_id": str(target), "item_count": len(self._items)},
            )

    def get(self, item_id: UUID | str) -> LineItem | None:
        target = _coerce_id(item_id)
        for item in self._items:
            if item.id == target:
                return item
        return None

    def list(self) -> tuple[LineItem, ...]:
        return tuple(self._items)

    def clear(self) -> None:
        self._items = []

    def replace_all(self, items: Iterable[LineItem]) -> None:
        """Overwrite the store with ``items``, keeping their ids."""
        replacement = list(items)
        ids = [item.id for item in replacement]
        if len(set(ids)) != len(ids):
            raise ValueError("Line item ids must be unique")
        self._items = replacement

    @property
    def is_empty(self) -> bool:
        return not self._items

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[LineItem]:
        return iter(tuple(self._items))

    def _mint_id(self) -> UUID:
        existing = {item.id for item in self._items}
        new_id = uuid4()
        while new_id in existing:
            new_id = uuid4()
        return new_id


def _coerce_id(item_id: UUID | str) -> UUID | None:
    if isinstance(item_id, UUID):
        return item_id
    try:
        return UUID(str(item_id))
    except ValueError:
        return None
