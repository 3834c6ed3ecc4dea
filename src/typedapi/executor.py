# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""
Typed request execution.

A RequestCall turns one descriptor into one transport operation and exactly one
terminal callback:

    CREATED -> SENT -> PARSING -> DELIVERED
                  \\-------\\-----> CANCELLED

Parsing runs on the descriptor's processing queue. Terminal callbacks, progress
callbacks and `did_receive_response` hooks run on its delivery queue.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from enum import Enum
from typing import TYPE_CHECKING, Any, Generic, TypeVar

from .errors import APIError, EncodingError, HTTPStatusError, ParseError, TransportError
from .http.models import HttpRequest, HttpResponse
from .http.multipart import EncodedMultipart, MultipartEncodingResult, MultipartFormData
from .http.transport import TransportTask
from .parsing import parse_model
from .plugins import notify_did_receive, notify_will_send
from .request import (
    APIRequest,
    DefaultRequest,
    Download,
    DownloadResuming,
    ParameterEncoding,
    UploadData,
    UploadFromFile,
    UploadStream,
)
from .result import Failure, Result, Success

if TYPE_CHECKING:
    from .request import EncodingCompletion, _RequestBase

logger = logging.getLogger(__name__)

M = TypeVar("M")

_BODYLESS_METHODS = {"GET", "HEAD", "DELETE"}


class RequestState(str, Enum):
    CREATED = "created"
    SENT = "sent"
    PARSING = "parsing"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class RequestToken:
    """
    Cancellation handle returned by `perform`.

    The transport task is owned by the call only until a result is delivered,
    so a token kept around afterwards does not keep the transport request alive.
    """

    def __init__(self, call: RequestCall[Any]):
        self._call = call

    @property
    def state(self) -> RequestState:
        return self._call.state

    @property
    def cancelled(self) -> bool:
        return self._call.state is RequestState.CANCELLED

    def cancel(self) -> None:
        """Best-effort abort. Idempotent and safe from any thread."""
        self._call.cancel()


class RequestCall(Generic[M]):
    """One `perform` of a request descriptor."""

    def __init__(
        self,
        request: _RequestBase[M, Any],
        success: Callable[[M], None],
        failure: Callable[[APIError], None] | None = None,
        *,
        progress: Callable[[int, int | None], None] | None = None,
    ):
        self.request = request
        self._success = success
        self._failure = failure
        self._progress = progress
        self._lock = threading.Lock()
        self._task: TransportTask | None = None
        self.state = RequestState.CREATED
        self.token = RequestToken(self)

    # -- sending ---------------------------------------------------------------

    def send(self) -> RequestToken:
        try:
            http_request = self._build_http_request()
        except Exception as exc:  # noqa: BLE001
            return self._fail_before_send(exc)

        notify_will_send(self.request.plugins, self.request)
        self._mark_sent()
        self._attach(self._dispatch(http_request))
        return self.token

    def send_multipart(
        self,
        *,
        memory_threshold: int,
        encoding_completion: EncodingCompletion | None = None,
    ) -> RequestToken:
        try:
            http_request = self._build_http_request()
        except Exception as exc:  # noqa: BLE001
            return self._fail_before_send(exc)

        notify_will_send(self.request.plugins, self.request)
        try:
            encoded = self._encode_form(memory_threshold)
        except EncodingError as exc:
            logger.debug("Multipart encoding failed for %s: %s", self.request.path, exc)
            self._report_encoding(encoding_completion, MultipartEncodingResult(error=exc))
            return self.token

        self._report_encoding(encoding_completion, MultipartEncodingResult(encoded=encoded))
        self._mark_sent()
        if self.request.stubbing_enabled:
            encoded.close()
            task = self._dispatch_stub(http_request)
        else:
            task = self.request.transport.upload_multipart(
                http_request,
                encoded,
                self._on_transport_complete,
                progress=self._on_progress if self._progress is not None else None,
            )
        self._attach(task)
        return self.token

    def _build_http_request(self) -> HttpRequest:
        request = self.request
        url = request.url_builder.url_for(request.path)
        headers = request.header_builder.headers_for(request.headers)
        method = request.method.upper()

        params: dict[str, Any] | None = None
        json_body: Any = None
        form: dict[str, Any] | None = None
        if request.parameters:
            carries_body = isinstance(request, APIRequest) and isinstance(request.request_type, DefaultRequest)
            if carries_body and request.encoding is ParameterEncoding.JSON:
                json_body = dict(request.parameters)
            elif carries_body and method not in _BODYLESS_METHODS:
                form = dict(request.parameters)
            else:
                params = dict(request.parameters)

        return HttpRequest(
            url=url,
            method=method,
            headers=headers,
            timeout=request.timeout,
            params=params,
            json=json_body,
            form=form,
        )

    def _dispatch(self, http_request: HttpRequest) -> TransportTask:
        if self.request.stubbing_enabled:
            return self._dispatch_stub(http_request)

        request = self.request
        transport = request.transport
        completion = self._on_transport_complete
        progress = self._on_progress if self._progress is not None else None
        request_type = request.request_type if isinstance(request, APIRequest) else DefaultRequest()

        if isinstance(request_type, UploadFromFile):
            return transport.upload_file(http_request, request_type.path, completion, progress=progress)
        if isinstance(request_type, UploadData):
            return transport.upload_data(http_request, request_type.data, completion, progress=progress)
        if isinstance(request_type, UploadStream):
            return transport.upload_stream(http_request, request_type.stream, completion, progress=progress)
        if isinstance(request_type, Download):
            return transport.download(http_request, request_type.destination, completion, progress=progress)
        if isinstance(request_type, DownloadResuming):
            return transport.download(
                http_request,
                request_type.destination,
                completion,
                resume_data=request_type.resume_data,
                progress=progress,
            )
        return transport.request(http_request, completion, progress=progress)

    def _dispatch_stub(self, http_request: HttpRequest) -> TransportTask:
        stub = self.request.stub

        def _respond(task: TransportTask) -> HttpResponse:
            if stub is None:
                return HttpResponse(ok=True, status_code=200, url=http_request.url, meta={"stubbed": True})
            if stub.delay > 0:
                task.cancel_event.wait(stub.delay)
            return stub.to_response(http_request.url)

        return self.request.transport.synthesize(http_request, _respond, self._on_transport_complete)

    def _encode_form(self, memory_threshold: int) -> EncodedMultipart:
        form = MultipartFormData()
        try:
            self.request.form_data(form)  # type: ignore[attr-defined]
        except Exception as exc:  # noqa: BLE001
            raise EncodingError(f"Multipart form builder failed: {exc}", cause=exc) from exc
        return form.encode(memory_threshold=memory_threshold)

    def _report_encoding(self, encoding_completion: EncodingCompletion | None, result: MultipartEncodingResult) -> None:
        if encoding_completion is None:
            return
        try:
            encoding_completion(result)
        except Exception:  # noqa: BLE001
            logger.exception("encoding_completion raised for %s", self.request.path)

    def _fail_before_send(self, exc: Exception) -> RequestToken:
        # Nothing reached the transport, so plugins are not notified.
        logger.debug("Could not prepare %s: %s", self.request.path, exc)
        self._mark_sent()
        result = Failure(APIError(transport_error=exc))
        self._submit_delivery(result, notify_plugins=False)
        return self.token

    def _mark_sent(self) -> None:
        with self._lock:
            if self.state is RequestState.CREATED:
                self.state = RequestState.SENT

    def _attach(self, task: TransportTask) -> None:
        with self._lock:
            cancelled = self.state is RequestState.CANCELLED
            if self.state is not RequestState.DELIVERED:
                self._task = task
        if cancelled:
            task.cancel()

    # -- cancellation ----------------------------------------------------------

    def cancel(self) -> None:
        with self._lock:
            if self.state not in (RequestState.SENT, RequestState.PARSING):
                return
            self.state = RequestState.CANCELLED
            task = self._task
            self._task = None
        logger.debug("Cancelled %s %s", self.request.method, self.request.path)
        if task is not None:
            task.cancel()

    def _is_cancelled(self) -> bool:
        with self._lock:
            return self.state is RequestState.CANCELLED

    # -- processing ------------------------------------------------------------

    def _on_transport_complete(self, response: HttpResponse) -> None:
        with self._lock:
            if self.state is not RequestState.SENT:
                return
            self.state = RequestState.PARSING
        try:
            self.request.processing_queue.submit(self._process, response)
        except RuntimeError as exc:
            # processing queue already shut down
            logger.debug("Could not schedule parsing for %s: %s", self.request.path, exc)
            self._submit_delivery(Failure(APIError(transport_error=exc, response=response)))

    def _on_progress(self, done: int, total: int | None) -> None:
        self.request.delivery_queue.submit(self._deliver_progress, done, total)

    def _process(self, response: HttpResponse) -> None:
        if self._is_cancelled():
            return
        try:
            result = self._parse(response)
        except Exception as exc:  # noqa: BLE001
            logger.exception("Unexpected error while processing %s", self.request.path)
            result = Failure(APIError(parse_error=exc, response=response))
        self._submit_delivery(result)

    def _parse(self, response: HttpResponse) -> Result:
        # Transport-level failures take precedence over anything found in the body.
        if not response.ok:
            transport_error = response.error or TransportError(
                response.error_message or "Transport failure",
                error_type=response.error_type,
            )
            return self._build_failure(response, transport_error=transport_error)
        if response.status_code is not None and response.status_code >= 400:
            return self._build_failure(
                response,
                transport_error=HTTPStatusError(response.status_code, url=response.url),
            )
        try:
            value = parse_model(self.request.model, response)
        except ParseError as exc:
            return self._build_failure(response, parse_error=exc)
        return Success(value, response)

    def _build_failure(
        self,
        response: HttpResponse,
        *,
        transport_error: BaseException | None = None,
        parse_error: BaseException | None = None,
    ) -> Failure:
        error_model = None
        try:
            error_model = parse_model(self.request.error_model, response)
        except ParseError as exc:
            logger.debug("Could not build error model for %s: %s", self.request.path, exc)
        return Failure(
            APIError(
                error_model=error_model,
                transport_error=transport_error,
                parse_error=parse_error,
                response=response,
            )
        )

    # -- delivery --------------------------------------------------------------

    def _submit_delivery(self, result: Result, *, notify_plugins: bool = True) -> None:
        try:
            self.request.delivery_queue.submit(self._deliver, result, notify_plugins)
        except RuntimeError as exc:
            logger.debug("Delivery queue unavailable for %s, delivering inline: %s", self.request.path, exc)
            self._deliver(result, notify_plugins)

    def _deliver(self, result: Result, notify_plugins: bool) -> None:
        with self._lock:
            if self.state in (RequestState.CANCELLED, RequestState.DELIVERED):
                return
            self.state = RequestState.DELIVERED
            self._task = None

        try:
            if isinstance(result, Success):
                self._success(result.value)
            elif self._failure is not None:
                self._failure(result.error)
            else:
                logger.debug("Unhandled failure for %s: %r", self.request.path, result.error)
        except Exception:  # noqa: BLE001
            logger.exception("Result callback raised for %s", self.request.path)

        if notify_plugins:
            notify_did_receive(self.request.plugins, self.request, result)

    def _deliver_progress(self, done: int, total: int | None) -> None:
        with self._lock:
            if self.state in (RequestState.CANCELLED, RequestState.DELIVERED):
                return
        try:
            self._progress(done, total)  # type: ignore[misc]
        except Exception:  # noqa: BLE001
            logger.exception("Progress callback raised for %s", self.request.path)


__all__ = ["RequestCall", "RequestState", "RequestToken"]
