# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Endpoint provider: the root object that configures and creates requests."""

from __future__ import annotations

import weakref
from collections.abc import Iterable, Mapping
from concurrent.futures import Executor, ThreadPoolExecutor
from contextlib import suppress
from typing import IO, Any, TypeVar

from .builders import HeaderBuildable, HeaderBuilder, URLBuildable, URLBuilder
from .config import HttpSettings, load_http_settings
from .dispatch import create_serial_queue, create_worker_pool
from .http.client import HttpClient
from .http.models import DownloadDestination
from .http.transport import Transport
from .parsing import EmptyResponse
from .plugins import Plugin
from .request import (
    APIRequest,
    DefaultRequest,
    Download,
    DownloadResuming,
    FormDataBuilder,
    MultipartAPIRequest,
    ParameterEncoding,
    RequestType,
    UploadData,
    UploadFromFile,
    UploadStream,
)

M = TypeVar("M")
E = TypeVar("E")


class EndpointProvider:
    """
    Creates requests against a single API endpoint.

    Configuration (builders, plugins, stubbing flag, queues) may be reassigned at
    any time; requests capture it when they are created, so changes only affect
    requests created afterwards. Keep the provider alive while its requests run,
    and call `close()` (or use it as a context manager) to release the queues
    and transport it created.

    Example:
        ```python
        with EndpointProvider("https://api.example.com/v1") as api:
            api.request("users/1", User, ApiError).perform(
                lambda user: print(user.name),
                lambda error: print(error.error_model),
            )
        ```
    """

    def __init__(
        self,
        base_url: str,
        *,
        transport: Transport | None = None,
        http_client: HttpClient | None = None,
        plugins: Iterable[Plugin] | None = None,
        header_builder: HeaderBuildable | None = None,
        url_builder: URLBuildable | None = None,
        processing_queue: Executor | None = None,
        delivery_queue: Executor | None = None,
        settings: HttpSettings | None = None,
    ):
        self.settings = settings or load_http_settings()
        self.base_url = base_url
        self.header_builder: HeaderBuildable = header_builder or HeaderBuilder()
        self.url_builder: URLBuildable = url_builder or URLBuilder(base_url)
        self.plugins: list[Plugin] = list(plugins or [])
        self.stubbing_enabled = self.settings.stubbing_enabled
        self.multipart_memory_threshold = self.settings.multipart_memory_threshold

        self._owned_transport: Transport | None = None
        if transport is None:
            transport = Transport(http_client, settings=self.settings)
            self._owned_transport = transport
        self.transport = transport

        self._owned_queues: list[ThreadPoolExecutor] = []
        if processing_queue is None:
            processing_queue = create_worker_pool("processing", self.settings.processing_workers)
            self._owned_queues.append(processing_queue)
        if delivery_queue is None:
            delivery_queue = create_serial_queue("delivery")
            self._owned_queues.append(delivery_queue)
        self.processing_queue: Executor = processing_queue
        self.delivery_queue: Executor = delivery_queue

    def _capture(
        self,
        path: str,
        model: type[Any],
        error_model: type[Any],
        *,
        method: str,
        headers: Mapping[str, str] | None,
        parameters: Mapping[str, Any] | None,
        encoding: ParameterEncoding,
        timeout: float | None,
    ) -> dict[str, Any]:
        return {
            "path": path,
            "model": model,
            "error_model": error_model,
            "method": method.upper(),
            "headers": dict(headers or {}),
            "parameters": dict(parameters or {}),
            "encoding": encoding,
            "timeout": timeout,
            "header_builder": self.header_builder,
            "url_builder": self.url_builder,
            "plugins": tuple(self.plugins),
            "stubbing_enabled": self.stubbing_enabled,
            "processing_queue": self.processing_queue,
            "delivery_queue": self.delivery_queue,
            "transport": self.transport,
            "provider_ref": weakref.ref(self),
        }

    def _api_request(
        self,
        path: str,
        model: type[M],
        error_model: type[E],
        request_type: RequestType,
        *,
        method: str,
        headers: Mapping[str, str] | None,
        parameters: Mapping[str, Any] | None,
        encoding: ParameterEncoding,
        timeout: float | None,
    ) -> APIRequest[M, E]:
        captured = self._capture(
            path,
            model,
            error_model,
            method=method,
            headers=headers,
            parameters=parameters,
            encoding=encoding,
            timeout=timeout,
        )
        return APIRequest(request_type=request_type, **captured)

    def request(
        self,
        path: str,
        model: type[M],
        error_model: type[E] = EmptyResponse,
        *,
        method: str = "GET",
        headers: Mapping[str, str] | None = None,
        parameters: Mapping[str, Any] | None = None,
        encoding: ParameterEncoding = ParameterEncoding.URL,
        timeout: float | None = None,
    ) -> APIRequest[M, E]:
        """Plain request; `path` is resolved against the URL builder at send time."""
        return self._api_request(
            path,
            model,
            error_model,
            DefaultRequest(),
            method=method,
            headers=headers,
            parameters=parameters,
            encoding=encoding,
            timeout=timeout,
        )

    def upload(
        self,
        path: str,
        model: type[M],
        error_model: type[E] = EmptyResponse,
        *,
        file: str | None = None,
        data: bytes | None = None,
        stream: IO[bytes] | Any = None,
        method: str = "POST",
        headers: Mapping[str, str] | None = None,
        parameters: Mapping[str, Any] | None = None,
        timeout: float | None = None,
    ) -> APIRequest[M, E]:
        """Upload from a file path, in-memory bytes or a readable stream (exactly one)."""
        sources = [source for source in (file, data, stream) if source is not None]
        if len(sources) != 1:
            raise ValueError("upload() needs exactly one of file=, data= or stream=")
        request_type: RequestType
        if file is not None:
            request_type = UploadFromFile(file)
        elif data is not None:
            request_type = UploadData(bytes(data))
        else:
            request_type = UploadStream(stream)
        return self._api_request(
            path,
            model,
            error_model,
            request_type,
            method=method,
            headers=headers,
            parameters=parameters,
            encoding=ParameterEncoding.URL,
            timeout=timeout,
        )

    def upload_multipart(
        self,
        path: str,
        model: type[M],
        error_model: type[E] = EmptyResponse,
        *,
        form_data: FormDataBuilder,
        method: str = "POST",
        headers: Mapping[str, str] | None = None,
        parameters: Mapping[str, Any] | None = None,
        timeout: float | None = None,
    ) -> MultipartAPIRequest[M, E]:
        """Multipart upload; `form_data` fills a MultipartFormData when the request is sent."""
        captured = self._capture(
            path,
            model,
            error_model,
            method=method,
            headers=headers,
            parameters=parameters,
            encoding=ParameterEncoding.URL,
            timeout=timeout,
        )
        return MultipartAPIRequest(
            form_data=form_data,
            memory_threshold=self.multipart_memory_threshold,
            **captured,
        )

    def download(
        self,
        path: str,
        model: type[M] = EmptyResponse,
        error_model: type[E] = EmptyResponse,
        *,
        destination: DownloadDestination,
        resume_data: bytes | None = None,
        method: str = "GET",
        headers: Mapping[str, str] | None = None,
        parameters: Mapping[str, Any] | None = None,
        timeout: float | None = None,
    ) -> APIRequest[M, E]:
        """
        Download to `destination`, a path or a callable `(url, response) -> path`.

        With `resume_data` the transport asks for the remaining bytes only and
        writes the prior data first when the server honours the range.
        """
        request_type: RequestType
        if resume_data:
            request_type = DownloadResuming(resume_data=bytes(resume_data), destination=destination)
        else:
            request_type = Download(destination)
        return self._api_request(
            path,
            model,
            error_model,
            request_type,
            method=method,
            headers=headers,
            parameters=parameters,
            encoding=ParameterEncoding.URL,
            timeout=timeout,
        )

    def close(self) -> None:
        """Wait for in-flight work on owned resources, then release them."""
        if self._owned_transport is not None:
            with suppress(Exception):
                self._owned_transport.close()
        for queue in self._owned_queues:
            queue.shutdown(wait=True)

    def __enter__(self) -> EndpointProvider:
        return self

    def __exit__(self, _exc_type, _exc, _tb) -> None:  # noqa: ANN001
        self.close()


__all__ = ["EndpointProvider"]
