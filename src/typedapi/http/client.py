# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""HTTP client abstraction and factory."""

from __future__ import annotations

import threading
from typing import Protocol

from ..config import HttpSettings, load_http_settings
from .models import HttpRequest, HttpResponse, ProgressCallback


class HttpClient(Protocol):
    """
    Minimal protocol for issuing HTTP requests.

    Implementations never raise for transport failures; they return an
    HttpResponse with `ok=False` instead. `cancel_event` is checked between body
    chunks and `progress` receives (bytes_done, bytes_total_or_None).
    """

    def request(
        self,
        request: HttpRequest,
        *,
        cancel_event: threading.Event | None = None,
        progress: ProgressCallback | None = None,
    ) -> HttpResponse: ...

    def close(self) -> None:  # pragma: no cover - optional for adapters
        ...


def create_default_http_client(settings: HttpSettings | None = None) -> HttpClient:
    """Factory for the default httpx-backed client."""
    from .httpx_client import HttpxClient

    return HttpxClient(settings or load_http_settings())
