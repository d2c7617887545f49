from datetime import timedelta

import pytest

from conftest import NOW
from orderly.clock import FixedClock
from orderly.domain import EditWindowState, MerchantSettings, OrderStatus
from orderly.validation import (
    DISABLED_MESSAGE,
    derive_fulfillment_status,
    edit_window_status,
    format_edit_window,
    humanize_status,
    validate_eligibility,
    watch_edit_window,
)


def make_settings(**overrides) -> MerchantSettings:
    values = {
        "enable_order_editing": True,
        "edit_time_window": 60,
        "safe_financial_statuses": ["paid"],
        "safe_fulfillment_statuses": ["unfulfilled"],
        "allowed_edit_types": ["items", "shipping"],
    }
    values.update(overrides)
    return MerchantSettings(**values)


class TestValidateEligibility:
    def test_editable_order_has_no_errors(self):
        order = OrderStatus(financial_status="PAID", fulfillment_status="UNFULFILLED", created_at=NOW)
        result = validate_eligibility(make_settings(), order, NOW)
        assert result.errors == []
        assert result.can_edit is True
        assert result.can_edit_items is True
        assert result.can_edit_shipping is True

    def test_disabled_editing_yields_single_error(self):
        order = OrderStatus(financial_status="paid", fulfillment_status="unfulfilled", created_at=NOW)
        result = validate_eligibility(make_settings(enable_order_editing=False), order, NOW)
        assert result.errors == [DISABLED_MESSAGE]
        assert result.can_edit is False

    def test_time_window_exceeded_mentions_window(self):
        order = OrderStatus(created_at=NOW - timedelta(minutes=90))
        result = validate_eligibility(make_settings(), order, NOW)
        assert len(result.errors) == 1
        assert "1 hour" in result.errors[0]
        assert result.can_edit is False

    def test_within_time_window_has_no_error(self):
        order = OrderStatus(created_at=NOW - timedelta(minutes=30))
        result = validate_eligibility(make_settings(), order, NOW)
        assert result.errors == []

    def test_zero_window_disables_time_check(self):
        order = OrderStatus(created_at=NOW - timedelta(days=30))
        result = validate_eligibility(make_settings(edit_time_window=0), order, NOW)
        assert result.errors == []

    def test_naive_created_at_is_treated_as_utc(self):
        order = OrderStatus(created_at=(NOW - timedelta(minutes=90)).replace(tzinfo=None))
        result = validate_eligibility(make_settings(), order, NOW)
        assert len(result.errors) == 1

    def test_unsafe_financial_status_is_humanized(self):
        order = OrderStatus(financial_status="PARTIALLY_REFUNDED")
        result = validate_eligibility(make_settings(), order, NOW)
        assert result.errors == ['Orders with "partially refunded" financial status cannot be edited.']

    def test_missing_financial_status_skips_check(self):
        order = OrderStatus(financial_status=None, fulfillment_status="unfulfilled")
        result = validate_eligibility(make_settings(), order, NOW)
        assert result.can_edit is True

    def test_empty_safe_list_skips_check(self):
        order = OrderStatus(fulfillment_status="fulfilled")
        result = validate_eligibility(make_settings(safe_fulfillment_statuses=[]), order, NOW)
        assert result.can_edit is True

    def test_rules_accumulate_in_order(self):
        order = OrderStatus(
            financial_status="refunded",
            fulfillment_status="fulfilled",
            created_at=NOW - timedelta(hours=5),
        )
        result = validate_eligibility(make_settings(enable_order_editing=False), order, NOW)
        assert len(result.errors) == 4
        assert result.errors[0] == DISABLED_MESSAGE
        assert "within 1 hour" in result.errors[1]
        assert "financial status" in result.errors[2]
        assert "fulfillment status" in result.errors[3]

    def test_capabilities_follow_allowed_edit_types(self):
        result = validate_eligibility(make_settings(allowed_edit_types=["shipping"]), OrderStatus(), NOW)
        assert result.can_edit is True
        assert result.can_edit_items is False
        assert result.can_edit_shipping is True


@pytest.mark.parametrize(
    "minutes, expected",
    [
        (45, "45 minutes"),
        (60, "1 hour"),
        (120, "2 hours"),
        (150, "2 hours 30 minutes"),
    ],
)
def test_format_edit_window(minutes, expected):
    assert format_edit_window(minutes) == expected


def test_humanize_status():
    assert humanize_status("PARTIALLY_PAID") == "partially paid"


class TestDeriveFulfillmentStatus:
    def test_all_fulfilled(self):
        assert derive_fulfillment_status(["FULFILLED", "fulfilled"]) == "fulfilled"

    def test_all_unfulfilled(self):
        assert derive_fulfillment_status(["unfulfilled", "unfulfilled"]) == "unfulfilled"

    def test_mixed_is_partial(self):
        assert derive_fulfillment_status(["fulfilled", "unfulfilled"]) == "partial"

    def test_missing_status_counts_as_mixed(self):
        assert derive_fulfillment_status(["fulfilled", None]) == "partial"

    def test_empty_listing(self):
        assert derive_fulfillment_status([]) is None


class TestEditWindowStatus:
    def test_unlimited_without_window(self):
        status = edit_window_status(make_settings(edit_time_window=None), NOW, NOW)
        assert status.state == EditWindowState.UNLIMITED

    def test_open_with_plenty_of_time(self):
        status = edit_window_status(make_settings(edit_time_window=120), NOW - timedelta(minutes=10), NOW)
        assert status.state == EditWindowState.OPEN
        assert status.remaining_seconds == 110 * 60

    def test_warning_under_threshold(self):
        status = edit_window_status(make_settings(), NOW - timedelta(minutes=40), NOW)
        assert status.state == EditWindowState.WARNING
        assert status.remaining_seconds == 20 * 60
        assert "20m 0s" in status.message

    def test_expired(self):
        status = edit_window_status(make_settings(), NOW - timedelta(minutes=61), NOW)
        assert status.state == EditWindowState.EXPIRED
        assert status.remaining_seconds == 0


@pytest.mark.asyncio
async def test_watch_edit_window_ticks_until_expired():
    clock = FixedClock(NOW)
    sleeps = []

    async def fake_sleep(seconds):
        sleeps.append(seconds)
        clock.advance(seconds)

    created_at = NOW - timedelta(minutes=60) + timedelta(seconds=3)
    states = [
        status.state
        async for status in watch_edit_window(make_settings(), created_at, clock, interval=1.0, sleep=fake_sleep)
    ]

    assert states == [
        EditWindowState.WARNING,
        EditWindowState.WARNING,
        EditWindowState.WARNING,
        EditWindowState.EXPIRED,
    ]
    assert sleeps == [1.0, 1.0, 1.0]


@pytest.mark.asyncio
async def test_watch_edit_window_stops_when_closed():
    clock = FixedClock(NOW)

    async def fake_sleep(seconds):
        clock.advance(seconds)

    updates = watch_edit_window(make_settings(), NOW, clock, sleep=fake_sleep)
    first = await updates.__anext__()
    await updates.aclose()

    assert first.state == EditWindowState.OPEN
    with pytest.raises(StopAsyncIteration):
        await updates.__anext__()
