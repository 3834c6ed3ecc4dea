# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""
Callback-based transport provider.

`Transport` runs a synchronous HttpClient on an I/O executor and hands the
response to a completion callback. Every operation returns a TransportTask
that can be cancelled while the request is in flight.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from concurrent.futures import Executor, Future
from dataclasses import replace
from typing import IO, Any

from ..config import HttpSettings, load_http_settings
from ..dispatch import create_worker_pool
from .client import HttpClient, create_default_http_client
from .headers import merge_headers
from .models import DownloadDestination, HttpRequest, HttpResponse, ProgressCallback
from .multipart import EncodedMultipart

logger = logging.getLogger(__name__)

Completion = Callable[[HttpResponse], None]


class TransportTask:
    """Handle for one in-flight transport operation."""

    def __init__(self, request: HttpRequest):
        self.request = request
        self.cancel_event = threading.Event()
        self._finished = threading.Event()
        self._future: Future[Any] | None = None

    @property
    def cancelled(self) -> bool:
        return self.cancel_event.is_set()

    @property
    def done(self) -> bool:
        return self._finished.is_set()

    def cancel(self) -> None:
        """Abort the operation if still running. Safe to call repeatedly."""
        if self.cancel_event.is_set() or self._finished.is_set():
            return
        self.cancel_event.set()
        future = self._future
        if future is not None:
            future.cancel()

    def wait(self, timeout: float | None = None) -> bool:
        return self._finished.wait(timeout)

    def bind(self, future: Future[Any]) -> None:
        """Attach the executor future running this task so `cancel` can drop queued work."""
        self._future = future
        if self.cancel_event.is_set():
            future.cancel()

    def finish(self) -> None:
        self._finished.set()


Responder = Callable[[TransportTask], HttpResponse]


class Transport:
    """
    Issues HttpRequests on an I/O executor.

    The HttpClient must tolerate concurrent use; httpx.Client does.
    """

    def __init__(
        self,
        client: HttpClient | None = None,
        *,
        executor: Executor | None = None,
        settings: HttpSettings | None = None,
    ):
        self.settings = settings or load_http_settings()
        self._owns_client = client is None
        self.client = client or create_default_http_client(self.settings)
        self._owns_executor = executor is None
        self._executor = executor or create_worker_pool("io", self.settings.io_workers)

    def submit(
        self,
        request: HttpRequest,
        completion: Completion,
        *,
        progress: ProgressCallback | None = None,
        cleanup: Callable[[], Any] | None = None,
        respond: Responder | None = None,
    ) -> TransportTask:
        """
        Run `request` and call `completion` with the response unless the task was cancelled.

        `respond(task)` replaces the HTTP client call when given.
        """
        task = TransportTask(request)

        def _progress(done: int, total: int | None) -> None:
            if progress is not None and not task.cancelled:
                progress(done, total)

        def _run() -> None:
            try:
                if task.cancelled:
                    return
                try:
                    if respond is not None:
                        response = respond(task)
                    else:
                        response = self.client.request(
                            request,
                            cancel_event=task.cancel_event,
                            progress=_progress if progress is not None else None,
                        )
                except Exception as exc:  # noqa: BLE001
                    response = HttpResponse.failure(exc, url=request.url)
                if task.cancelled:
                    logger.debug("Dropping response for cancelled %s %s", request.method, request.url)
                    return
                completion(response)
            except Exception:  # noqa: BLE001
                logger.exception("Transport completion failed for %s %s", request.method, request.url)
            finally:
                task.finish()
                if cleanup is not None:
                    cleanup()

        future = self._executor.submit(_run)
        future.add_done_callback(lambda fut: _on_future_cancelled(fut, task, cleanup))
        task.bind(future)
        return task

    def request(self, request: HttpRequest, completion: Completion, *, progress: ProgressCallback | None = None) -> TransportTask:
        return self.submit(request, completion, progress=progress)

    def synthesize(self, request: HttpRequest, respond: Responder, completion: Completion) -> TransportTask:
        """Produce the response with `respond(task)` on the I/O executor instead of the HTTP client."""
        return self.submit(request, completion, respond=respond)

    def upload_file(
        self,
        request: HttpRequest,
        path: str,
        completion: Completion,
        *,
        progress: ProgressCallback | None = None,
    ) -> TransportTask:
        return self.submit(replace(request, upload_file=path), completion, progress=progress)

    def upload_data(
        self,
        request: HttpRequest,
        data: bytes,
        completion: Completion,
        *,
        progress: ProgressCallback | None = None,
    ) -> TransportTask:
        return self.submit(replace(request, body=data), completion, progress=progress)

    def upload_stream(
        self,
        request: HttpRequest,
        stream: IO[bytes] | Any,
        completion: Completion,
        *,
        progress: ProgressCallback | None = None,
    ) -> TransportTask:
        return self.submit(replace(request, upload_stream=stream), completion, progress=progress)

    def download(
        self,
        request: HttpRequest,
        destination: DownloadDestination,
        completion: Completion,
        *,
        resume_data: bytes | None = None,
        progress: ProgressCallback | None = None,
    ) -> TransportTask:
        return self.submit(
            replace(request, download_to=destination, resume_data=resume_data),
            completion,
            progress=progress,
        )

    def upload_multipart(
        self,
        request: HttpRequest,
        encoded: EncodedMultipart,
        completion: Completion,
        *,
        progress: ProgressCallback | None = None,
    ) -> TransportTask:
        multipart_request = replace(
            request,
            headers=merge_headers(request.headers, encoded.headers),
            upload_stream=encoded.body,
        )
        return self.submit(multipart_request, completion, progress=progress, cleanup=encoded.close)

    def close(self) -> None:
        if self._owns_executor:
            self._executor.shutdown(wait=True)
        if self._owns_client:
            self.client.close()

    def __enter__(self) -> Transport:
        return self

    def __exit__(self, _exc_type, _exc, _tb) -> None:  # noqa: ANN001
        self.close()


def _on_future_cancelled(future: Future[None], task: TransportTask, cleanup: Callable[[], Any] | None) -> None:
    # A future cancelled before it started never runs `_run`, so finish the task here.
    if future.cancelled() and not task.done:
        task.finish()
        if cleanup is not None:
            cleanup()


__all__ = ["Completion", "Responder", "Transport", "TransportTask"]
