# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""HTTP request/response data models shared by transports and the request pipeline."""

from __future__ import annotations

import json
import os
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any, Union

Headers = dict[str, str]
ProgressCallback = Callable[[int, Union[int, None]], None]
DownloadDestination = Union[str, os.PathLike, Callable[[str, "HttpResponse"], Union[str, os.PathLike]]]


@dataclass
class HttpRequest:
    """
    Normalized request representation consumed by HttpClient implementations.

    At most one body source is used, checked in this order: `upload_file`,
    `upload_stream`, `body`, `json`, `form`. When `download_to` is set the
    response body is written to that destination instead of being kept in memory.
    `allow_redirects` left as None follows the client settings.
    """

    url: str
    method: str = "GET"
    headers: Headers | None = None
    body: bytes | str | None = None
    timeout: float | None = None
    allow_redirects: bool | None = None
    params: Mapping[str, Any] | None = None
    json: Any = None
    form: Mapping[str, Any] | None = None
    upload_file: str | os.PathLike | None = None
    upload_stream: Any = None
    download_to: DownloadDestination | None = None
    resume_data: bytes | None = None


@dataclass
class HttpResponse:
    """Normalized HTTP response, or a transport failure when `ok` is False."""

    ok: bool
    status_code: int | None = None
    headers: Headers = field(default_factory=dict)
    text: str = ""
    content: bytes = b""
    url: str | None = None
    error_message: str | None = None
    error_type: str | None = None
    error: BaseException | None = None
    meta: dict[str, Any] = field(default_factory=dict)

    @property
    def body_snippet(self) -> str:
        return self.text or ""

    def json(self) -> Any:
        """Decode the body as JSON; an empty body decodes to None."""
        if not self.content and not self.text:
            return None
        raw = self.content if self.content else self.text.encode("utf-8")
        return json.loads(raw)

    @classmethod
    def failure(cls, exc: BaseException, *, url: str | None = None) -> HttpResponse:
        """Build a transport-failure response that keeps the original exception."""
        return cls(
            ok=False,
            url=url,
            error_message=str(exc),
            error_type=type(exc).__name__,
            error=exc,
        )

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> HttpResponse:
        """Helper to normalize dictionary-like responses (e.g. recorded fixtures)."""
        raw_headers: Any = data.get("headers") or {}
        if raw_headers and not isinstance(raw_headers, Mapping):
            try:
                raw_headers = dict(raw_headers)
            except (TypeError, ValueError):
                raw_headers = {}
        headers: Headers = {}
        if isinstance(raw_headers, Mapping):
            for key, value in raw_headers.items():
                if key is None:
                    continue
                headers[str(key).lower()] = "" if value is None else str(value)

        raw_body = data.get("body")
        content: bytes = b""
        text: str = ""
        if isinstance(raw_body, (bytes, bytearray, memoryview)):
            content = bytes(raw_body)
            text = content.decode("utf-8", errors="replace")
        elif isinstance(raw_body, str):
            text = raw_body
            content = raw_body.encode("utf-8")
        elif raw_body is not None:
            text = json.dumps(raw_body)
            content = text.encode("utf-8")

        return cls(
            ok=bool(data.get("ok", True)),
            status_code=data.get("status_code"),
            headers=headers,
            text=text,
            content=content,
            url=data.get("url"),
            error_message=data.get("error_message"),
            error_type=data.get("error_type"),
            meta={k: v for k, v in data.items() if k not in {"ok", "status_code", "headers", "body", "url", "error_message", "error_type"}},
        )
