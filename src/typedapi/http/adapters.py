# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""In-process HttpClient implementations."""

from __future__ import annotations

import threading

from ..errors import TransportCancelled
from .client import HttpClient
from .models import HttpRequest, HttpResponse, ProgressCallback


class StubHttpClient(HttpClient):
    """
    Deterministic, programmable HttpClient for tests.

    Responses are looked up by full URL. When `gate` is given, every request
    blocks until the gate is set, which lets tests cancel requests mid-flight.
    """

    def __init__(
        self,
        responses: dict[str, HttpResponse] | None = None,
        *,
        default: HttpResponse | None = None,
        gate: threading.Event | None = None,
    ):
        self._responses = responses or {}
        self._default = default
        self._lock = threading.Lock()
        self.gate = gate
        self.requests: list[HttpRequest] = []
        self.closed = False

    @property
    def calls(self) -> int:
        with self._lock:
            return len(self.requests)

    def add(self, url: str, response: HttpResponse) -> None:
        self._responses[url] = response

    def request(
        self,
        request: HttpRequest,
        *,
        cancel_event: threading.Event | None = None,
        progress: ProgressCallback | None = None,
    ) -> HttpResponse:
        with self._lock:
            self.requests.append(request)
        if self.gate is not None:
            self.gate.wait()
        if cancel_event is not None and cancel_event.is_set():
            return HttpResponse.failure(TransportCancelled(), url=request.url)
        response = self._responses.get(request.url, self._default)
        if response is None:
            return HttpResponse(ok=False, status_code=None, url=request.url, error_message="No stubbed response configured")
        if progress is not None and response.content:
            progress(len(response.content), len(response.content))
        return response

    def close(self) -> None:
        self.closed = True
