"""Order edit eligibility rules.

Everything here is a pure function of the merchant settings, the order status
and the current time, so the same rules can run in the API, in tests, or in
any other consumer without touching the backend.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import AsyncIterator, Awaitable, Callable, Iterable, List, Optional

from .clock import Clock
from .domain import (
    DerivedFulfillmentStatus,
    EditType,
    EditWindowState,
    EditWindowStatus,
    MerchantSettings,
    OrderStatus,
    ValidationResult,
)

DISABLED_MESSAGE = "Order editing is currently disabled."
DEFAULT_WARNING_SECONDS = 1800


def format_edit_window(minutes: int) -> str:
    """Render a window length as ``"2 hours 30 minutes"`` or ``"45 minutes"``."""
    hours, remainder = divmod(minutes, 60)
    if hours > 0:
        text = f"{hours} hour{'s' if hours > 1 else ''}"
        if remainder > 0:
            text += f" {remainder} minutes"
        return text
    return f"{remainder} minutes"


def humanize_status(status: str) -> str:
    return status.replace("_", " ").strip().lower()


def _as_utc(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment


def _status_allowed(status: str, safe_statuses: Iterable[str]) -> bool:
    return status.lower() in {safe.lower() for safe in safe_statuses}


def validate_eligibility(settings: MerchantSettings, order: OrderStatus, now: datetime) -> ValidationResult:
    errors: List[str] = []

    if not settings.enable_order_editing:
        errors.append(DISABLED_MESSAGE)

    if settings.edit_time_window and order.created_at:
        elapsed = _as_utc(now) - _as_utc(order.created_at)
        minutes_passed = elapsed.total_seconds() / 60
        if minutes_passed > settings.edit_time_window:
            window_text = format_edit_window(settings.edit_time_window)
            errors.append(f"Orders can only be edited within {window_text} of placement.")

    if settings.safe_financial_statuses and order.financial_status:
        if not _status_allowed(order.financial_status, settings.safe_financial_statuses):
            errors.append(
                f'Orders with "{humanize_status(order.financial_status)}" financial status cannot be edited.'
            )

    if settings.safe_fulfillment_statuses and order.fulfillment_status:
        if not _status_allowed(order.fulfillment_status, settings.safe_fulfillment_statuses):
            errors.append(
                f'Orders with "{humanize_status(order.fulfillment_status)}" fulfillment status cannot be edited.'
            )

    return ValidationResult(
        errors=errors,
        can_edit=not errors,
        can_edit_items=EditType.ITEMS.value in settings.allowed_edit_types,
        can_edit_shipping=EditType.SHIPPING.value in settings.allowed_edit_types,
    )


def derive_fulfillment_status(statuses: Iterable[Optional[str]]) -> Optional[str]:
    """Collapse per-line fulfillment statuses into an order-level status.

    Returns ``None`` for an empty listing so the fulfillment rule is skipped.
    """
    normalized = [(status or "").lower() for status in statuses]
    if not normalized:
        return None
    if all(status == DerivedFulfillmentStatus.FULFILLED.value for status in normalized):
        return DerivedFulfillmentStatus.FULFILLED.value
    if all(status == DerivedFulfillmentStatus.UNFULFILLED.value for status in normalized):
        return DerivedFulfillmentStatus.UNFULFILLED.value
    return DerivedFulfillmentStatus.PARTIAL.value


def _format_remaining(seconds: int) -> str:
    hours, remainder = divmod(seconds, 3600)
    minutes, secs = divmod(remainder, 60)
    if hours > 0:
        return f"{hours}h {minutes}m {secs}s"
    if minutes > 0:
        return f"{minutes}m {secs}s"
    return f"{secs}s"


def edit_window_status(
    settings: MerchantSettings,
    created_at: Optional[datetime],
    now: datetime,
    warning_seconds: int = DEFAULT_WARNING_SECONDS,
) -> EditWindowStatus:
    if not settings.edit_time_window or not created_at:
        return EditWindowStatus(state=EditWindowState.UNLIMITED)

    elapsed = (_as_utc(now) - _as_utc(created_at)).total_seconds()
    remaining = int(settings.edit_time_window * 60 - elapsed)
    if remaining <= 0:
        return EditWindowStatus(
            state=EditWindowState.EXPIRED,
            remaining_seconds=0,
            message="The time to edit this order has expired.",
        )
    state = EditWindowState.WARNING if remaining < warning_seconds else EditWindowState.OPEN
    return EditWindowStatus(
        state=state,
        remaining_seconds=remaining,
        message=f"Time remaining to edit this order: {_format_remaining(remaining)}",
    )


async def watch_edit_window(
    settings: MerchantSettings,
    created_at: Optional[datetime],
    clock: Clock,
    interval: float = 1.0,
    warning_seconds: int = DEFAULT_WARNING_SECONDS,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> AsyncIterator[EditWindowStatus]:
    """Yield the edit window status once per ``interval`` until it expires.

    A window without a limit yields a single ``unlimited`` status. Closing the
    generator stops the timer.
    """
    while True:
        status = edit_window_status(settings, created_at, clock.now(), warning_seconds)
        yield status
        if status.state in (EditWindowState.EXPIRED, EditWindowState.UNLIMITED):
            return
        await sleep(interval)
