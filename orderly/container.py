from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Optional, Set

import httpx

from .backend import build_http_client
from .clock import Clock, SystemClock
from .id_provider import IdProvider, RequestIdProvider
from .settings import Settings


@dataclass
class Container:
    settings: Settings
    http: httpx.AsyncClient
    clock: Clock
    id_provider: IdProvider
    # keyed by the caller's session token, one set per shop install
    completed_onboarding_steps: Dict[str, Set[int]] = field(default_factory=dict)


def build_container(
    settings: Settings,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    clock: Optional[Clock] = None,
) -> Container:
    http = build_http_client(
        settings.api_base_url,
        timeout=settings.backend_timeout_seconds,
        transport=transport,
    )
    return Container(
        settings=settings,
        http=http,
        clock=clock or SystemClock(),
        id_provider=RequestIdProvider(),
    )
