from __future__ import annotations

import re
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, BeforeValidator, Field, conint

_LEADING_INTEGER = re.compile(r"\s*([+-]?\d+)")


def sanitize_quantity(raw: Union[int, str, None]) -> int:
    """Turn free-form quantity input into a non-negative integer.

    Only the leading integer counts, so ``"1.5"`` is 1 and ``"2-1"`` is 2.
    Input without one becomes 0.
    """
    if isinstance(raw, int):
        return max(0, raw)
    match = _LEADING_INTEGER.match(str(raw or ""))
    return max(0, int(match.group(1))) if match else 0


# Customer-entered quantities are clamped, never rejected
Quantity = Annotated[int, BeforeValidator(sanitize_quantity)]
QuantityOverrides = Dict[str, Quantity]


class EditType(str, Enum):
    ITEMS = "items"
    SHIPPING = "shipping"


class DerivedFulfillmentStatus(str, Enum):
    FULFILLED = "fulfilled"
    UNFULFILLED = "unfulfilled"
    PARTIAL = "partial"


class EditWindowState(str, Enum):
    UNLIMITED = "unlimited"
    OPEN = "open"
    WARNING = "warning"
    EXPIRED = "expired"


class AddressUpdateState(str, Enum):
    PENDING = "pending"
    APPLIED = "applied"
    ROLLED_BACK = "rolled_back"


class AddressKind(str, Enum):
    SHIPPING = "shipping"
    BILLING = "billing"


class PrimaryAction(str, Enum):
    UPDATE = "Update"
    CANCEL = "Cancel"


class MerchantSettings(BaseModel):
    """Merchant-level edit policy as served by ``GET /settings``."""

    enable_order_editing: bool = False
    edit_time_window: Optional[int] = None
    safe_financial_statuses: List[str] = Field(default_factory=list)
    safe_fulfillment_statuses: List[str] = Field(default_factory=list)
    allowed_edit_types: List[str] = Field(default_factory=list)
    who_can_edit: List[str] = Field(default_factory=list)
    notify_on_edit: bool = False


class OrderStatus(BaseModel):
    financial_status: Optional[str] = None
    fulfillment_status: Optional[str] = None
    created_at: Optional[datetime] = None


class Money(BaseModel):
    amount: Decimal
    currency_code: str = Field(min_length=3, max_length=3)


class LineItem(BaseModel):
    id: str
    quantity: conint(ge=0)
    unit_price: Money
    variant_gid: Optional[str] = None
    title: Optional[str] = None


class VariantWithProduct(BaseModel):
    variant_id: str
    variant_title: Optional[str] = None
    product_id: str
    product_title: Optional[str] = None
    price: Money
    available_for_sale: bool = True
    sku: Optional[str] = None
    image_url: Optional[str] = None


class SelectedVariant(BaseModel):
    variant: VariantWithProduct
    quantity: Quantity


class ExistingLine(BaseModel):
    kind: Literal["existing"] = "existing"
    line_item: LineItem
    quantity: int

    @property
    def changed(self) -> bool:
        return self.quantity != self.line_item.quantity


class NewLine(BaseModel):
    kind: Literal["new"] = "new"
    selected: SelectedVariant

    @property
    def quantity(self) -> int:
        return self.selected.quantity


EditableLine = Annotated[Union[ExistingLine, NewLine], Field(discriminator="kind")]


class MoneyAmount(BaseModel):
    amount: str
    currency_code: str


class UpdatedTotals(BaseModel):
    subtotal: MoneyAmount
    tax: MoneyAmount
    total: MoneyAmount


class ValidationResult(BaseModel):
    errors: List[str] = Field(default_factory=list)
    can_edit: bool
    can_edit_items: bool
    can_edit_shipping: bool


class EditWindowStatus(BaseModel):
    state: EditWindowState
    remaining_seconds: Optional[int] = None
    message: Optional[str] = None


class UpdateLineItem(BaseModel):
    id: str
    variant_gid: str
    quantity: int


class AddLineItem(BaseModel):
    variant_gid: str
    quantity: int


class EditPayload(BaseModel):
    order_gid: str
    update_line_items: Optional[List[UpdateLineItem]] = None
    add_line_items: Optional[List[AddLineItem]] = None

    @property
    def is_empty(self) -> bool:
        return not self.update_line_items and not self.add_line_items

    def to_body(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)


class AddressInput(BaseModel):
    first_name: str = ""
    last_name: str = ""
    address1: str = ""
    address2: str = ""
    city: str = ""
    province: str = ""
    country: str = ""
    zip: str = ""
    phone: str = ""
    company: str = ""


class AddressUpdateResult(BaseModel):
    kind: AddressKind
    state: AddressUpdateState
    address: Optional[AddressInput] = None
    previous: Optional[AddressInput] = None
    error: Optional[str] = None


class EditContext(BaseModel):
    settings: MerchantSettings
    status: OrderStatus


class EligibilityResponse(BaseModel):
    order_gid: str
    validation: ValidationResult
    status: OrderStatus
    edit_window: EditWindowStatus


class EditDraft(BaseModel):
    """Pending edit state for one order as held by the customer's page.

    ``host_lines`` takes order lines as the host runtime serves them; they are
    normalized and appended to ``line_items``.
    """

    order_gid: str
    line_items: List[LineItem] = Field(default_factory=list)
    host_lines: List[Dict[str, Any]] = Field(default_factory=list)
    overrides: QuantityOverrides = Field(default_factory=dict)
    selected: List[SelectedVariant] = Field(default_factory=list)


class EditPreviewRequest(EditDraft):
    original_subtotal: Decimal = Decimal("0")
    original_tax: Decimal = Decimal("0")
    currency_code: Optional[str] = None


class EditPreview(BaseModel):
    totals: UpdatedTotals
    lines: List[EditableLine]
    has_changes: bool
    all_quantities_zero: bool
    primary_action: Optional[PrimaryAction] = None


class EditSubmitResult(BaseModel):
    payload: EditPayload
    action: PrimaryAction
    backend_response: Dict[str, Any] = Field(default_factory=dict)


class AddressUpdateRequest(BaseModel):
    order_gid: str
    address: AddressInput
    current_address: Optional[AddressInput] = None


class OrderCancelRequest(BaseModel):
    order_gid: str


class OrderCancelResult(BaseModel):
    order_gid: str
    cancelled: bool


class OnboardingStepResult(BaseModel):
    step_number: int
    completed: bool


class HealthStatus(BaseModel):
    status: str
    time: datetime
