# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Request descriptors created by an EndpointProvider."""

from __future__ import annotations

import os
import weakref
from collections.abc import Callable, Mapping
from concurrent.futures import Executor
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import IO, TYPE_CHECKING, Any, Generic, TypeVar, Union

from .builders import HeaderBuildable, URLBuildable
from .config import DEFAULT_MULTIPART_MEMORY_THRESHOLD
from .http.headers import merge_headers
from .http.models import DownloadDestination, HttpResponse, ProgressCallback
from .http.multipart import MultipartEncodingResult, MultipartFormData
from .http.transport import Transport
from .plugins import Plugin

if TYPE_CHECKING:
    from .errors import APIError
    from .executor import RequestToken
    from .provider import EndpointProvider
    from .reactive import Single

M = TypeVar("M")
E = TypeVar("E")

SuccessCallback = Callable[[M], None]
FailureCallback = Callable[["APIError"], None]
FormDataBuilder = Callable[[MultipartFormData], None]
EncodingCompletion = Callable[[MultipartEncodingResult], None]


@dataclass(frozen=True)
class DefaultRequest:
    """Plain request; parameters go to the query string or body per ParameterEncoding."""


@dataclass(frozen=True)
class UploadFromFile:
    path: str | os.PathLike


@dataclass(frozen=True)
class UploadData:
    data: bytes


@dataclass(frozen=True)
class UploadStream:
    """Upload from a readable binary handle or an iterable of bytes. Single use."""

    stream: IO[bytes] | Any


@dataclass(frozen=True)
class Download:
    destination: DownloadDestination


@dataclass(frozen=True)
class DownloadResuming:
    resume_data: bytes
    destination: DownloadDestination


RequestType = Union[DefaultRequest, UploadFromFile, UploadData, UploadStream, Download, DownloadResuming]


class ParameterEncoding(str, Enum):
    URL = "url"
    JSON = "json"


@dataclass(frozen=True)
class APIStub:
    """Canned response used instead of the transport when stubbing is enabled."""

    status_code: int = 200
    body: Any = None
    headers: Mapping[str, str] = field(default_factory=dict)
    transport_error: BaseException | None = None
    delay: float = 0.0

    def to_response(self, url: str | None) -> HttpResponse:
        if self.transport_error is not None:
            return HttpResponse.failure(self.transport_error, url=url)
        return HttpResponse.from_mapping(
            {
                "ok": True,
                "status_code": self.status_code,
                "headers": dict(self.headers),
                "body": self.body,
                "url": url,
                "stubbed": True,
            }
        )


@dataclass(frozen=True, kw_only=True)
class _RequestBase(Generic[M, E]):
    path: str
    model: type[M]
    error_model: type[E]
    header_builder: HeaderBuildable
    url_builder: URLBuildable
    processing_queue: Executor
    delivery_queue: Executor
    transport: Transport
    method: str = "GET"
    headers: Mapping[str, str] = field(default_factory=dict)
    parameters: Mapping[str, Any] = field(default_factory=dict)
    encoding: ParameterEncoding = ParameterEncoding.URL
    timeout: float | None = None
    plugins: tuple[Plugin, ...] = ()
    stubbing_enabled: bool = False
    stub: APIStub | None = None
    provider_ref: weakref.ReferenceType[EndpointProvider] | None = field(default=None, repr=False, compare=False)

    @property
    def provider(self) -> EndpointProvider | None:
        """The provider that created this request, if it is still alive."""
        return self.provider_ref() if self.provider_ref is not None else None

    def with_method(self, method: str):
        return replace(self, method=method.upper())

    def with_headers(self, headers: Mapping[str, str]):
        return replace(self, headers=merge_headers(self.headers, headers))

    def with_parameters(self, parameters: Mapping[str, Any], *, encoding: ParameterEncoding | None = None):
        merged = dict(self.parameters)
        merged.update(parameters)
        return replace(self, parameters=merged, encoding=encoding or self.encoding)

    def with_plugins(self, *plugins: Plugin):
        return replace(self, plugins=self.plugins + tuple(plugins))

    def with_stub(self, stub: APIStub | None, *, enabled: bool = True):
        return replace(self, stub=stub, stubbing_enabled=enabled)

    def with_builders(self, *, header_builder: HeaderBuildable | None = None, url_builder: URLBuildable | None = None):
        return replace(
            self,
            header_builder=header_builder or self.header_builder,
            url_builder=url_builder or self.url_builder,
        )


@dataclass(frozen=True, kw_only=True)
class APIRequest(_RequestBase[M, E]):
    """
    One pending network operation producing a `model` or an `error_model`.

    Immutable: `with_*` helpers return a new descriptor. Builders, plugins,
    queues and the transport were captured from the provider at creation time.
    """

    request_type: RequestType = field(default_factory=DefaultRequest)

    def perform(
        self,
        success: SuccessCallback[M],
        failure: FailureCallback | None = None,
        *,
        progress: ProgressCallback | None = None,
    ) -> RequestToken:
        """Send the request. Exactly one of `success` / `failure` runs unless cancelled."""
        from .executor import RequestCall

        return RequestCall(self, success, failure, progress=progress).send()

    def stream(self) -> Single[M]:
        """Cold single-value stream; each subscription sends the request again."""
        from .reactive import Single

        def _subscribe(observer):  # noqa: ANN001, ANN202
            return self.perform(observer.on_success, observer.on_error)

        return Single(_subscribe)


@dataclass(frozen=True, kw_only=True)
class MultipartAPIRequest(_RequestBase[M, E]):
    """Multipart upload whose body is populated by `form_data` at send time."""

    form_data: FormDataBuilder
    memory_threshold: int = DEFAULT_MULTIPART_MEMORY_THRESHOLD
    method: str = "POST"

    def perform_multipart(
        self,
        success: SuccessCallback[M],
        failure: FailureCallback | None = None,
        *,
        encoding_memory_threshold: int | None = None,
        encoding_completion: EncodingCompletion | None = None,
        progress: ProgressCallback | None = None,
    ) -> RequestToken:
        """
        Build and encode the form, then send it.

        Encoding failures are reported only through `encoding_completion`; in that
        case nothing is sent and neither `success` nor `failure` runs.
        """
        from .executor import RequestCall

        threshold = self.memory_threshold if encoding_memory_threshold is None else encoding_memory_threshold
        call = RequestCall(self, success, failure, progress=progress)
        return call.send_multipart(memory_threshold=threshold, encoding_completion=encoding_completion)

    def stream(self, memory_threshold: int | None = None) -> Single[M]:
        """Cold single-value stream; encoding failures surface as `EncodingError`."""
        from .reactive import Single

        def _subscribe(observer):  # noqa: ANN001, ANN202
            def _encoded(result: MultipartEncodingResult) -> None:
                if result.error is not None:
                    observer.on_error(result.error)

            return self.perform_multipart(
                observer.on_success,
                observer.on_error,
                encoding_memory_threshold=memory_threshold,
                encoding_completion=_encoded,
            )

        return Single(_subscribe)


__all__ = [
    "APIRequest",
    "APIStub",
    "DefaultRequest",
    "Download",
    "DownloadResuming",
    "MultipartAPIRequest",
    "ParameterEncoding",
    "RequestType",
    "UploadData",
    "UploadFromFile",
    "UploadStream",
]
