# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""httpx-backed HttpClient implementation."""

from __future__ import annotations

import logging
import os
import threading
from collections.abc import Iterable, Iterator
from contextlib import ExitStack
from typing import Any, BinaryIO

import httpx

from ..config import HttpSettings, load_http_settings
from ..errors import TransportCancelled
from .client import HttpClient
from .headers import header_value
from .models import DownloadDestination, HttpRequest, HttpResponse, ProgressCallback

logger = logging.getLogger(__name__)


def _check_cancelled(cancel_event: threading.Event | None) -> None:
    if cancel_event is not None and cancel_event.is_set():
        raise TransportCancelled()


def _iter_readable(
    handle: BinaryIO,
    chunk_size: int,
    *,
    total: int | None,
    cancel_event: threading.Event | None,
    progress: ProgressCallback | None,
) -> Iterator[bytes]:
    sent = 0
    while True:
        _check_cancelled(cancel_event)
        chunk = handle.read(chunk_size)
        if not chunk:
            break
        if isinstance(chunk, str):
            chunk = chunk.encode("utf-8")
        sent += len(chunk)
        if progress is not None:
            progress(sent, total)
        yield chunk


def _iter_chunks(
    chunks: Iterable[bytes],
    *,
    cancel_event: threading.Event | None,
    progress: ProgressCallback | None,
) -> Iterator[bytes]:
    sent = 0
    for chunk in chunks:
        _check_cancelled(cancel_event)
        if isinstance(chunk, str):
            chunk = chunk.encode("utf-8")
        sent += len(chunk)
        if progress is not None:
            progress(sent, None)
        yield chunk


def _content_length(headers: httpx.Headers) -> int | None:
    raw = headers.get("content-length")
    if raw is None:
        return None
    try:
        return int(raw)
    except ValueError:
        return None


def _resolve_destination(destination: DownloadDestination, url: str, response: HttpResponse) -> str:
    if callable(destination):
        destination = destination(url, response)
    return os.fspath(destination)


class HttpxClient(HttpClient):
    """Synchronous httpx client wrapper supporting uploads, downloads and cancellation."""

    def __init__(self, settings: HttpSettings | None = None, client: httpx.Client | None = None):
        self.settings = settings or load_http_settings()
        self._client = client or httpx.Client(
            follow_redirects=self.settings.allow_redirects,
            timeout=self.settings.timeout,
            verify=self.settings.verify_ssl,
        )

    def request(
        self,
        request: HttpRequest,
        *,
        cancel_event: threading.Event | None = None,
        progress: ProgressCallback | None = None,
    ) -> HttpResponse:
        headers = dict(request.headers or {})
        if not header_value(headers, "User-Agent"):
            headers["User-Agent"] = self.settings.user_agent
        timeout = request.timeout if request.timeout is not None else self.settings.timeout
        follow_redirects = (
            request.allow_redirects if request.allow_redirects is not None else self.settings.allow_redirects
        )

        try:
            with ExitStack() as stack:
                _check_cancelled(cancel_event)
                body_kwargs = self._body_kwargs(request, headers, stack, cancel_event, progress)
                if request.resume_data and request.download_to is not None:
                    headers["Range"] = f"bytes={len(request.resume_data)}-"
                resp = stack.enter_context(
                    self._client.stream(
                        request.method,
                        request.url,
                        headers=headers,
                        params=request.params,
                        timeout=timeout,
                        follow_redirects=follow_redirects,
                        **body_kwargs,
                    )
                )
                if request.download_to is not None and resp.status_code < 400:
                    return self._write_download(request, resp, cancel_event, progress)
                return self._read_body(resp, cancel_event, progress)
        except Exception as exc:  # noqa: BLE001
            logger.debug("%s %s failed: %s", request.method, request.url, exc)
            return HttpResponse.failure(exc, url=request.url)

    def _body_kwargs(
        self,
        request: HttpRequest,
        headers: dict[str, str],
        stack: ExitStack,
        cancel_event: threading.Event | None,
        progress: ProgressCallback | None,
    ) -> dict[str, Any]:
        chunk_size = self.settings.chunk_size
        if request.upload_file is not None:
            path = os.fspath(request.upload_file)
            total = os.path.getsize(path)
            handle = stack.enter_context(open(path, "rb"))
            if not header_value(headers, "Content-Length"):
                headers["Content-Length"] = str(total)
            return {
                "content": _iter_readable(handle, chunk_size, total=total, cancel_event=cancel_event, progress=progress)
            }
        if request.upload_stream is not None:
            stream = request.upload_stream
            if hasattr(stream, "read"):
                return {
                    "content": _iter_readable(stream, chunk_size, total=None, cancel_event=cancel_event, progress=progress)
                }
            if isinstance(stream, (bytes, bytearray, memoryview)):
                return {"content": bytes(stream)}
            return {"content": _iter_chunks(stream, cancel_event=cancel_event, progress=progress)}
        if request.body is not None:
            return {"content": request.body}
        if request.json is not None:
            return {"json": request.json}
        if request.form is not None:
            return {"data": dict(request.form)}
        return {}

    def _read_body(
        self,
        resp: httpx.Response,
        cancel_event: threading.Event | None,
        progress: ProgressCallback | None,
    ) -> HttpResponse:
        max_body_bytes = self.settings.max_body_bytes
        total = _content_length(resp.headers)
        content = bytearray()
        truncated = False
        for chunk in resp.iter_bytes(chunk_size=self.settings.chunk_size):
            _check_cancelled(cancel_event)
            if not chunk:
                continue
            remaining = max_body_bytes - len(content)
            if remaining <= 0:
                truncated = True
                break
            if len(chunk) > remaining:
                content.extend(chunk[:remaining])
                truncated = True
                break
            content.extend(chunk)
            if progress is not None:
                progress(len(content), total)

        encoding = resp.encoding or "utf-8"
        try:
            text = bytes(content).decode(encoding, errors="replace")
        except LookupError:
            text = bytes(content).decode("utf-8", errors="replace")

        return HttpResponse(
            ok=True,
            status_code=resp.status_code,
            headers=dict(resp.headers),
            text=text,
            content=bytes(content),
            url=str(resp.url),
            meta={
                "body_truncated": truncated,
                "body_bytes_read": len(content),
                "body_bytes_limit": max_body_bytes,
            },
        )

    def _write_download(
        self,
        request: HttpRequest,
        resp: httpx.Response,
        cancel_event: threading.Event | None,
        progress: ProgressCallback | None,
    ) -> HttpResponse:
        response = HttpResponse(
            ok=True,
            status_code=resp.status_code,
            headers=dict(resp.headers),
            url=str(resp.url),
        )
        path = _resolve_destination(request.download_to, request.url, response)
        resume_data = request.resume_data or b""
        # 206 means the server honoured the Range header; anything else restarts from zero.
        resumed = bool(resume_data) and resp.status_code == 206
        total = _content_length(resp.headers)
        written = 0
        with open(path, "wb") as fh:
            if resumed:
                fh.write(resume_data)
                written = len(resume_data)
                if total is not None:
                    total += written
            for chunk in resp.iter_bytes(chunk_size=self.settings.chunk_size):
                _check_cancelled(cancel_event)
                if not chunk:
                    continue
                fh.write(chunk)
                written += len(chunk)
                if progress is not None:
                    progress(written, total)

        response.meta.update(
            {
                "download_path": path,
                "bytes_written": written,
                "resumed": resumed,
            }
        )
        return response

    def close(self) -> None:
        self._client.close()
