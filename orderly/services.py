from __future__ import annotations

import asyncio
from typing import AsyncIterator, Awaitable, Callable, List, Optional, Set

from .backend import BackendClient
from .calculator import all_quantities_zero, compute_totals, has_changes, primary_action_label
from .clock import Clock
from .domain import (
    AddressInput,
    AddressKind,
    AddressUpdateRequest,
    AddressUpdateResult,
    AddressUpdateState,
    EditContext,
    EditDraft,
    EditPayload,
    EditPreview,
    EditPreviewRequest,
    EditSubmitResult,
    EditWindowStatus,
    EligibilityResponse,
    LineItem,
    OnboardingStepResult,
    OrderCancelResult,
    PrimaryAction,
    ValidationResult,
)
from .errors import BackendError, EditNotAllowedError, ValidationError
from .logging import ServiceLogger
from .parsing import line_item_from_payload
from .payload import build_payload, editable_lines
from .settings import Settings
from .validation import edit_window_status, validate_eligibility, watch_edit_window

ITEMS_NOT_ALLOWED = "Items on this order cannot be edited."
SHIPPING_NOT_ALLOWED = "The shipping address on this order cannot be edited."


class OrderEditService:
    def __init__(self, backend: BackendClient, clock: Clock, settings: Settings) -> None:
        self._backend = backend
        self._clock = clock
        self._settings = settings
        self._logger = ServiceLogger("edits")

    async def load_context(self, order_gid: str) -> EditContext:
        merchant_settings, status = await asyncio.gather(
            self._backend.fetch_settings(),
            self._backend.fetch_order_status(order_gid),
        )
        return EditContext(settings=merchant_settings, status=status)

    def validate(self, context: EditContext) -> ValidationResult:
        return validate_eligibility(context.settings, context.status, self._clock.now())

    async def eligibility(self, order_gid: str) -> EligibilityResponse:
        context = await self.load_context(order_gid)
        return EligibilityResponse(
            order_gid=order_gid,
            validation=self.validate(context),
            status=context.status,
            edit_window=edit_window_status(
                context.settings,
                context.status.created_at,
                self._clock.now(),
                self._settings.edit_window_warning_seconds,
            ),
        )

    async def edit_window_updates(self, order_gid: str) -> AsyncIterator[EditWindowStatus]:
        context = await self.load_context(order_gid)
        return watch_edit_window(
            context.settings,
            context.status.created_at,
            self._clock,
            interval=self._settings.edit_window_tick_seconds,
            warning_seconds=self._settings.edit_window_warning_seconds,
        )

    def line_items(self, draft: EditDraft) -> List[LineItem]:
        """Order lines of a draft, host-shaped ones normalized and appended."""
        hosted = [line_item_from_payload(raw, self._settings.default_currency) for raw in draft.host_lines]
        return [*draft.line_items, *hosted]

    def preview(self, request: EditPreviewRequest) -> EditPreview:
        line_items = self.line_items(request)
        totals = compute_totals(
            line_items,
            request.overrides,
            request.selected,
            request.original_subtotal,
            request.original_tax,
            request.currency_code,
            default_currency=self._settings.default_currency,
        )
        return EditPreview(
            totals=totals,
            lines=editable_lines(line_items, request.overrides, request.selected),
            has_changes=has_changes(line_items, request.overrides, request.selected),
            all_quantities_zero=all_quantities_zero(line_items, request.overrides, request.selected),
            primary_action=primary_action_label(line_items, request.overrides, request.selected),
        )

    def build_payload(self, draft: EditDraft) -> EditPayload:
        return build_payload(draft.order_gid, self.line_items(draft), draft.overrides, draft.selected)

    async def submit(self, draft: EditDraft) -> EditSubmitResult:
        validation = self.validate(await self.load_context(draft.order_gid))
        if not validation.can_edit:
            raise EditNotAllowedError(validation.errors)
        if not validation.can_edit_items:
            raise EditNotAllowedError([ITEMS_NOT_ALLOWED])

        payload = self.build_payload(draft)
        if payload.is_empty:
            raise ValidationError("No changes to submit")

        action = (
            PrimaryAction.CANCEL
            if all_quantities_zero(self.line_items(draft), draft.overrides, draft.selected)
            else PrimaryAction.UPDATE
        )
        self._logger.info(
            "Submitting order edit",
            order_gid=draft.order_gid,
            updates=len(payload.update_line_items or []),
            additions=len(payload.add_line_items or []),
            action=action.value,
        )
        response = await self._backend.submit_edit(payload)
        return EditSubmitResult(payload=payload, action=action, backend_response=response)

    async def cancel_order(self, order_gid: str) -> OrderCancelResult:
        validation = self.validate(await self.load_context(order_gid))
        if not validation.can_edit:
            raise EditNotAllowedError(validation.errors)
        await self._backend.cancel_order(order_gid)
        self._logger.info("Order cancelled", order_gid=order_gid)
        return OrderCancelResult(order_gid=order_gid, cancelled=True)


class OptimisticAddress:
    """Address shown to the customer while an update is in flight.

    ``apply`` shows the new address immediately and restores the previous one
    if the commit fails.
    """

    def __init__(self, kind: AddressKind, current: Optional[AddressInput]) -> None:
        self.kind = kind
        self.address = current
        self.state: Optional[AddressUpdateState] = None

    async def apply(
        self,
        new_address: AddressInput,
        commit: Callable[[AddressInput], Awaitable[object]],
    ) -> AddressUpdateResult:
        previous = self.address
        self.address = new_address
        self.state = AddressUpdateState.PENDING
        try:
            await commit(new_address)
        except BackendError:
            self.address = previous
            self.state = AddressUpdateState.ROLLED_BACK
            return AddressUpdateResult(
                kind=self.kind,
                state=self.state,
                address=previous,
                previous=previous,
                error=f"Failed to update {self.kind.value} address",
            )
        self.state = AddressUpdateState.APPLIED
        return AddressUpdateResult(kind=self.kind, state=self.state, address=new_address, previous=previous)


class AddressService:
    def __init__(self, backend: BackendClient, edits: OrderEditService) -> None:
        self._backend = backend
        self._edits = edits
        self._logger = ServiceLogger("addresses")

    async def update(self, kind: AddressKind, request: AddressUpdateRequest) -> AddressUpdateResult:
        validation = self._edits.validate(await self._edits.load_context(request.order_gid))
        if not validation.can_edit:
            raise EditNotAllowedError(validation.errors)
        if kind == AddressKind.SHIPPING and not validation.can_edit_shipping:
            raise EditNotAllowedError([SHIPPING_NOT_ALLOWED])

        log = self._logger.bind(order_gid=request.order_gid, kind=kind.value)
        holder = OptimisticAddress(kind, request.current_address)

        async def commit(address: AddressInput) -> object:
            return await self._backend.update_address(kind, request.order_gid, address)

        result = await holder.apply(request.address, commit)
        if result.state == AddressUpdateState.ROLLED_BACK:
            log.error("Address update rolled back", error=result.error)
        else:
            log.info("Address updated")
        return result


class OnboardingService:
    """Reports onboarding progress to the backend, once per step."""

    def __init__(self, backend: BackendClient, completed_steps: Set[int]) -> None:
        self._backend = backend
        self._completed = completed_steps
        self._logger = ServiceLogger("onboarding")

    async def complete_step(self, step_number: int) -> OnboardingStepResult:
        if step_number in self._completed:
            return OnboardingStepResult(step_number=step_number, completed=True)
        try:
            await self._backend.complete_onboarding_step(step_number)
        except BackendError as exc:
            self._logger.warning("Onboarding step not recorded", step_number=step_number, error=exc.detail)
            return OnboardingStepResult(step_number=step_number, completed=False)
        self._completed.add(step_number)
        self._logger.info("Onboarding step completed", step_number=step_number)
        return OnboardingStepResult(step_number=step_number, completed=True)
