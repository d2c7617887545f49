from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, Optional, Sequence

from .domain import (
    LineItem,
    MoneyAmount,
    PrimaryAction,
    SelectedVariant,
    UpdatedTotals,
)

CENTS = Decimal("0.01")


def effective_quantity(item: LineItem, overrides: Dict[str, int]) -> int:
    if item.id in overrides:
        return overrides[item.id]
    return item.quantity


def _fixed(value: Decimal, currency_code: str) -> MoneyAmount:
    return MoneyAmount(amount=str(value.quantize(CENTS, rounding=ROUND_HALF_UP)), currency_code=currency_code)


def compute_totals(
    line_items: Sequence[LineItem],
    overrides: Dict[str, int],
    selected: Sequence[SelectedVariant],
    original_subtotal: Decimal,
    original_tax: Decimal,
    currency_code: Optional[str],
    default_currency: str = "BDT",
) -> UpdatedTotals:
    currency = currency_code or default_currency

    subtotal = Decimal("0")
    for item in line_items:
        subtotal += item.unit_price.amount * effective_quantity(item, overrides)
    for entry in selected:
        subtotal += entry.variant.price.amount * entry.quantity

    original_subtotal = Decimal(original_subtotal)
    original_tax = Decimal(original_tax)
    tax_rate = original_tax / original_subtotal if original_subtotal > 0 else Decimal("0")
    tax = subtotal * tax_rate
    total = subtotal + tax

    return UpdatedTotals(
        subtotal=_fixed(subtotal, currency),
        tax=_fixed(tax, currency),
        total=_fixed(total, currency),
    )


def has_changes(
    line_items: Sequence[LineItem],
    overrides: Dict[str, int],
    selected: Sequence[SelectedVariant],
) -> bool:
    if selected:
        return True
    return any(effective_quantity(item, overrides) != item.quantity for item in line_items)


def all_quantities_zero(
    line_items: Sequence[LineItem],
    overrides: Dict[str, int],
    selected: Sequence[SelectedVariant],
) -> bool:
    """True when the edit would leave the order empty, i.e. a cancellation."""
    if selected:
        return False
    return all(effective_quantity(item, overrides) == 0 for item in line_items)


def primary_action_label(
    line_items: Sequence[LineItem],
    overrides: Dict[str, int],
    selected: Sequence[SelectedVariant],
) -> Optional[PrimaryAction]:
    if not has_changes(line_items, overrides, selected):
        return None
    if all_quantities_zero(line_items, overrides, selected):
        return PrimaryAction.CANCEL
    return PrimaryAction.UPDATE

