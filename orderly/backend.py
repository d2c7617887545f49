"""
Client for the merchant backend that owns settings and performs order mutations.
Every call is a single attempt; failures surface as ``BackendError``.
"""

from __future__ import annotations

from typing import Any, Dict, Optional, Protocol

import httpx

from .domain import AddressInput, AddressKind, EditPayload, MerchantSettings, OrderStatus
from .errors import BackendError, NotFoundError
from .logging import ServiceLogger
from .parsing import extract_id_from_gid, order_status_from_payload, settings_from_payload


class TokenProvider(Protocol):
    async def get(self) -> str: ...


class StaticTokenProvider:
    def __init__(self, token: str) -> None:
        self._token = token

    async def get(self) -> str:
        return self._token


ADDRESS_ENDPOINTS = {
    AddressKind.SHIPPING: "/orders/shipping-address",
    AddressKind.BILLING: "/orders/billing-address",
}


def build_http_client(
    base_url: str,
    timeout: float = 15.0,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> httpx.AsyncClient:
    """Shared async client so connections are pooled across requests."""
    return httpx.AsyncClient(base_url=base_url.rstrip("/"), timeout=timeout, transport=transport)


class BackendClient:
    def __init__(self, http: httpx.AsyncClient, tokens: TokenProvider) -> None:
        self._http = http
        self._tokens = tokens
        self._logger = ServiceLogger("backend")

    async def fetch_settings(self) -> MerchantSettings:
        data = await self._request("GET", "/settings")
        return settings_from_payload(data)

    async def fetch_order_status(self, order_gid: str) -> OrderStatus:
        data = await self._request("GET", "/orders", params={"order_gid": order_gid})
        order = data.get("order")
        if not data.get("success", True) or not order:
            raise NotFoundError()
        return order_status_from_payload(order)

    async def submit_edit(self, payload: EditPayload) -> Dict[str, Any]:
        return await self._request("POST", "/orders", json=payload.to_body())

    async def update_address(self, kind: AddressKind, order_gid: str, address: AddressInput) -> Dict[str, Any]:
        body = {"order_gid": order_gid, **address.model_dump()}
        return await self._request("POST", ADDRESS_ENDPOINTS[kind], json=body)

    async def update_shipping_address(self, order_gid: str, address: AddressInput) -> Dict[str, Any]:
        return await self.update_address(AddressKind.SHIPPING, order_gid, address)

    async def update_billing_address(self, order_gid: str, address: AddressInput) -> Dict[str, Any]:
        return await self.update_address(AddressKind.BILLING, order_gid, address)

    async def cancel_order(self, order_gid: str) -> Dict[str, Any]:
        return await self._request("DELETE", f"/orders/{extract_id_from_gid(order_gid)}")

    async def complete_onboarding_step(self, step_number: int) -> Dict[str, Any]:
        return await self._request("POST", "/onboarding/complete-step", json={"step_number": step_number})

    async def _headers(self) -> Dict[str, str]:
        token = await self._tokens.get()
        return {
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    async def _request(self, method: str, path: str, **kwargs: Any) -> Dict[str, Any]:
        headers = await self._headers()
        try:
            resp = await self._http.request(method, path, headers=headers, **kwargs)
        except httpx.HTTPError as exc:
            self._logger.error("Backend request failed", method=method, path=path, error=exc)
            raise BackendError(f"Backend request failed: {exc}") from exc

        if resp.is_error:
            self._logger.error(
                "Backend returned an error",
                method=method,
                path=path,
                status=resp.status_code,
                body=resp.text[:500],
            )
            raise BackendError(
                f"Backend returned {resp.status_code} for {method} {path}",
                status_code=resp.status_code,
            )

        # Mutations may answer with an empty or non-JSON body
        try:
            result = resp.json()
        except ValueError:
            return {}
        if not isinstance(result, dict):
            return {"data": result}
        return result
