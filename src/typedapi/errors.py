# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Error taxonomy and exception helpers."""

from __future__ import annotations

import socket
import ssl as ssl_module
from enum import Enum
from typing import TYPE_CHECKING, Any, Optional

import httpx

if TYPE_CHECKING:
    from .http.models import HttpResponse


class ErrorCategory(str, Enum):
    TIMEOUT = "TIMEOUT"
    SSL_ERROR = "SSL_ERROR"
    CONNECTION_ERROR = "CONNECTION_ERROR"
    DNS_ERROR = "DNS_ERROR"
    HTTP_STATUS = "HTTP_STATUS"
    CANCELLED = "CANCELLED"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"
    NONE = "NONE"


class TypedApiError(Exception):
    """Base class for all errors raised or delivered by typedapi."""


class TransportError(TypedApiError):
    """Transport-level failure: the request produced no usable HTTP response."""

    def __init__(self, message: str, *, cause: BaseException | None = None, error_type: str | None = None):
        super().__init__(message)
        self.cause = cause
        self.error_type = error_type or (type(cause).__name__ if cause is not None else None)

    @property
    def category(self) -> ErrorCategory:
        if self.cause is not None and isinstance(self.cause, Exception):
            return categorize_exception(self.cause)
        return ErrorCategory.UNKNOWN_ERROR


class HTTPStatusError(TransportError):
    """The server answered with a status code outside the acceptable range."""

    def __init__(self, status_code: int, *, url: str | None = None):
        super().__init__(f"Unacceptable status code {status_code} for {url or '<unknown url>'}")
        self.status_code = status_code
        self.url = url

    @property
    def category(self) -> ErrorCategory:
        return ErrorCategory.HTTP_STATUS


class TransportCancelled(TransportError):
    """Raised inside the transport when a task was cancelled mid-flight."""

    def __init__(self, message: str = "Request cancelled"):
        super().__init__(message)

    @property
    def category(self) -> ErrorCategory:
        return ErrorCategory.CANCELLED


class ParseError(TypedApiError):
    """The response body could not be turned into the expected model."""

    def __init__(self, message: str, *, model: Any = None, cause: BaseException | None = None):
        super().__init__(message)
        self.model = model
        self.cause = cause


class EncodingError(TypedApiError):
    """Multipart body assembly failed before anything was sent."""

    def __init__(self, message: str, *, cause: BaseException | None = None):
        super().__init__(message)
        self.cause = cause


class URLBuildError(TypedApiError):
    """A request URL could not be built from the base URL and path."""


class APIError(TypedApiError):
    """
    Composite failure delivered to `failure` callbacks and stream subscribers.

    `error_model` is the parsed error body, or None when it could not be built.
    At least one of `transport_error` / `parse_error` is always set.
    """

    def __init__(
        self,
        *,
        error_model: Any = None,
        transport_error: BaseException | None = None,
        parse_error: BaseException | None = None,
        response: HttpResponse | None = None,
    ):
        cause = transport_error or parse_error
        super().__init__(str(cause) if cause is not None else "Request failed")
        self.error_model = error_model
        self.transport_error = transport_error
        self.parse_error = parse_error
        self.response = response

    @property
    def status_code(self) -> int | None:
        return self.response.status_code if self.response is not None else None

    @property
    def category(self) -> ErrorCategory:
        if isinstance(self.transport_error, TransportError):
            return self.transport_error.category
        if isinstance(self.transport_error, Exception):
            return categorize_exception(self.transport_error)
        return ErrorCategory.NONE

    def __repr__(self) -> str:
        return (
            f"APIError(status_code={self.status_code!r}, error_model={self.error_model!r}, "
            f"transport_error={self.transport_error!r}, parse_error={self.parse_error!r})"
        )


def categorize_exception(exc: Exception) -> ErrorCategory:
    """
    Map Python/httpx exceptions to ErrorCategory.
    """
    if isinstance(exc, TransportError) and exc.cause is None:
        return exc.category
    if isinstance(exc, TransportError) and isinstance(exc.cause, Exception):
        return categorize_exception(exc.cause)

    if isinstance(exc, httpx.TimeoutException):
        return ErrorCategory.TIMEOUT

    if isinstance(exc, (ssl_module.SSLError, ssl_module.CertificateError)):
        return ErrorCategory.SSL_ERROR

    if isinstance(exc, (socket.gaierror, socket.herror)):
        return ErrorCategory.DNS_ERROR

    if isinstance(exc, (httpx.ConnectError, httpx.RemoteProtocolError, httpx.NetworkError, httpx.ProxyError)):
        return ErrorCategory.CONNECTION_ERROR

    if isinstance(exc, (ConnectionError, ConnectionRefusedError, ConnectionResetError)):
        return ErrorCategory.CONNECTION_ERROR

    if isinstance(exc, httpx.HTTPStatusError):
        return ErrorCategory.HTTP_STATUS

    return ErrorCategory.UNKNOWN_ERROR


def error_category_to_reason(category: Optional[ErrorCategory]) -> str:
    """User-facing reason string."""
    mapping = {
        ErrorCategory.TIMEOUT: "Network timeout",
        ErrorCategory.SSL_ERROR: "TLS/certificate issue",
        ErrorCategory.CONNECTION_ERROR: "Network connectivity issue",
        ErrorCategory.DNS_ERROR: "DNS resolution failure",
        ErrorCategory.HTTP_STATUS: "Server returned an error status",
        ErrorCategory.CANCELLED: "Request cancelled",
        ErrorCategory.UNKNOWN_ERROR: "Network error",
        ErrorCategory.NONE: "",
        None: "",
    }
    return mapping.get(category, "Request failed due to network error")


__all__ = [
    "APIError",
    "EncodingError",
    "ErrorCategory",
    "HTTPStatusError",
    "ParseError",
    "TransportCancelled",
    "TransportError",
    "TypedApiError",
    "URLBuildError",
    "categorize_exception",
    "error_category_to_reason",
]
