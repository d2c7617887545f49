from __future__ import annotations

import json

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse, StreamingResponse

from ..clock import Clock
from ..deps import get_address_service, get_container, get_onboarding_service, get_order_edit_service
from ..domain import (
    AddressKind,
    AddressUpdateRequest,
    AddressUpdateResult,
    AddressUpdateState,
    EditDraft,
    EditPayload,
    EditPreview,
    EditPreviewRequest,
    EditSubmitResult,
    EligibilityResponse,
    HealthStatus,
    OnboardingStepResult,
    OrderCancelRequest,
    OrderCancelResult,
)
from ..services import AddressService, OnboardingService, OrderEditService

router = APIRouter()


def get_clock(container=Depends(get_container)) -> Clock:
    return container.clock


@router.get("/health", response_model=HealthStatus)
async def health(clock: Clock = Depends(get_clock)):
    return HealthStatus(status="ok", time=clock.now())


@router.get("/orders/eligibility", response_model=EligibilityResponse)
async def order_eligibility(order_gid: str, service: OrderEditService = Depends(get_order_edit_service)):
    return await service.eligibility(order_gid)


@router.get("/orders/edit-window/stream")
async def stream_edit_window(order_gid: str, service: OrderEditService = Depends(get_order_edit_service)):
    updates = await service.edit_window_updates(order_gid)

    async def event_stream():
        try:
            async for status in updates:
                yield f"event: edit_window\ndata: {json.dumps(status.model_dump(mode='json'))}\n\n"
        finally:
            await updates.aclose()

    return StreamingResponse(event_stream(), media_type="text/event-stream")


@router.post("/edits/preview", response_model=EditPreview)
async def preview_edit(payload: EditPreviewRequest, service: OrderEditService = Depends(get_order_edit_service)):
    return service.preview(payload)


@router.post("/edits/payload", response_model=EditPayload, response_model_exclude_none=True)
async def edit_payload(payload: EditDraft, service: OrderEditService = Depends(get_order_edit_service)):
    return service.build_payload(payload)


@router.post("/edits", response_model=EditSubmitResult, response_model_exclude_none=True)
async def submit_edit(payload: EditDraft, service: OrderEditService = Depends(get_order_edit_service)):
    return await service.submit(payload)


async def _address_response(result: AddressUpdateResult):
    if result.state == AddressUpdateState.ROLLED_BACK:
        return JSONResponse(status_code=502, content=result.model_dump(mode="json"))
    return result


@router.post("/orders/shipping-address", response_model=AddressUpdateResult)
async def update_shipping_address(
    payload: AddressUpdateRequest,
    service: AddressService = Depends(get_address_service),
):
    return await _address_response(await service.update(AddressKind.SHIPPING, payload))


@router.post("/orders/billing-address", response_model=AddressUpdateResult)
async def update_billing_address(
    payload: AddressUpdateRequest,
    service: AddressService = Depends(get_address_service),
):
    return await _address_response(await service.update(AddressKind.BILLING, payload))


@router.post("/orders/cancel", response_model=OrderCancelResult)
async def cancel_order(payload: OrderCancelRequest, service: OrderEditService = Depends(get_order_edit_service)):
    return await service.cancel_order(payload.order_gid)


@router.post("/onboarding/steps/{step_number}", response_model=OnboardingStepResult)
async def complete_onboarding_step(
    step_number: int,
    service: OnboardingService = Depends(get_onboarding_service),
):
    return await service.complete_step(step_number)
