from __future__ import annotations

from typing import Dict, List, Sequence

from .calculator import effective_quantity
from .domain import (
    AddLineItem,
    EditableLine,
    EditPayload,
    ExistingLine,
    LineItem,
    NewLine,
    SelectedVariant,
    UpdateLineItem,
)
from .logging import ServiceLogger

logger = ServiceLogger("payload")


def editable_lines(
    line_items: Sequence[LineItem],
    overrides: Dict[str, int],
    selected: Sequence[SelectedVariant],
) -> List[EditableLine]:
    lines: List[EditableLine] = [
        ExistingLine(line_item=item, quantity=effective_quantity(item, overrides)) for item in line_items
    ]
    lines.extend(NewLine(selected=entry) for entry in selected)
    return lines


def build_payload(
    order_gid: str,
    line_items: Sequence[LineItem],
    overrides: Dict[str, int],
    selected: Sequence[SelectedVariant],
) -> EditPayload:
    """Diff the draft against the order into the backend's edit request.

    Quantities are the new cumulative values, not deltas. Empty sections are
    left unset so they are dropped from the request body.
    """
    updates: List[UpdateLineItem] = []
    additions: List[AddLineItem] = []

    for line in editable_lines(line_items, overrides, selected):
        if isinstance(line, ExistingLine):
            if not line.changed:
                continue
            if not line.line_item.variant_gid:
                logger.warning("Dropping line item without variant GID", line_item_id=line.line_item.id)
                continue
            updates.append(
                UpdateLineItem(id=line.line_item.id, variant_gid=line.line_item.variant_gid, quantity=line.quantity)
            )
        elif line.quantity > 0:
            additions.append(AddLineItem(variant_gid=line.selected.variant.variant_id, quantity=line.quantity))

    return EditPayload(
        order_gid=order_gid,
        update_line_items=updates or None,
        add_line_items=additions or None,
    )
