from __future__ import annotations

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from .backend import BackendClient, StaticTokenProvider
from .container import Container
from .services import AddressService, OnboardingService, OrderEditService

security = HTTPBearer()


def get_container(request: Request) -> Container:
    return request.app.state.container


def get_settings(container: Container = Depends(get_container)):
    return container.settings


def get_backend(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    container: Container = Depends(get_container),
) -> BackendClient:
    # The customer's session token is forwarded to the merchant backend as-is
    return BackendClient(container.http, StaticTokenProvider(credentials.credentials))


def get_order_edit_service(
    backend: BackendClient = Depends(get_backend),
    container: Container = Depends(get_container),
) -> OrderEditService:
    return OrderEditService(backend, container.clock, container.settings)


def get_address_service(
    backend: BackendClient = Depends(get_backend),
    edits: OrderEditService = Depends(get_order_edit_service),
) -> AddressService:
    return AddressService(backend, edits)


def get_onboarding_service(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    backend: BackendClient = Depends(get_backend),
    container: Container = Depends(get_container),
) -> OnboardingService:
    completed = container.completed_onboarding_steps.setdefault(credentials.credentials, set())
    return OnboardingService(backend, completed)
