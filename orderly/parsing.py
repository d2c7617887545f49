"""Normalizers for the loosely shaped JSON served by the host and the backend."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Mapping, Optional

from .domain import LineItem, MerchantSettings, Money, OrderStatus, sanitize_quantity
from .errors import ValidationError
from .validation import derive_fulfillment_status


def extract_id_from_gid(gid: str) -> str:
    """``gid://shopify/Order/123`` -> ``123``."""
    return gid.rstrip("/").split("/")[-1]


def _dig(data: Mapping[str, Any], *path: str) -> Any:
    current: Any = data
    for key in path:
        if not isinstance(current, Mapping):
            return None
        current = current.get(key)
    return current


def _decimal(value: Any) -> Decimal:
    try:
        return Decimal(str(value)) if value not in (None, "") else Decimal("0")
    except InvalidOperation:
        return Decimal("0")


def resolve_variant_gid(raw: Mapping[str, Any]) -> Optional[str]:
    return _dig(raw, "merchandise", "id") or _dig(raw, "variant", "id") or raw.get("variantId") or None


def line_item_from_payload(raw: Mapping[str, Any], default_currency: str = "BDT") -> LineItem:
    if not raw.get("id"):
        raise ValidationError("Line item is missing an id")
    price = raw.get("price") or _dig(raw, "cost", "totalAmount") or {}
    title = _dig(raw, "merchandise", "title") or raw.get("title") or raw.get("name")
    return LineItem(
        id=raw["id"],
        quantity=sanitize_quantity(raw.get("quantity")),
        unit_price=Money(
            amount=_decimal(price.get("amount")),
            currency_code=price.get("currencyCode") or default_currency,
        ),
        variant_gid=resolve_variant_gid(raw),
        title=title,
    )


def _parse_timestamp(value: Any) -> Optional[datetime]:
    if not value:
        return None
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value).replace("Z", "+00:00"))


def order_status_from_payload(order: Mapping[str, Any]) -> OrderStatus:
    """Build the order status from ``GET /orders``.

    The backend does not always report a financial status; when it is missing
    the financial rule is skipped. Fulfillment status is derived from the line
    items unless the order carries one directly.
    """
    fulfillment = order.get("fulfillmentStatus")
    if not fulfillment:
        line_items = order.get("lineItems") or []
        if isinstance(line_items, Mapping):
            line_items = line_items.get("nodes") or []
        fulfillment = derive_fulfillment_status(item.get("fulfillmentStatus") for item in line_items)
    return OrderStatus(
        financial_status=order.get("financialStatus") or None,
        fulfillment_status=fulfillment,
        created_at=_parse_timestamp(order.get("createdAt")),
    )


def settings_from_payload(data: Dict[str, Any]) -> MerchantSettings:
    raw = data.get("settings") or {}
    return MerchantSettings.model_validate({key: value for key, value in raw.items() if value is not None})
