# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""
typedapi package entrypoint.

This package provides a typed request/response layer over httpx: an
EndpointProvider creates immutable request descriptors, performing one parses
the response into a model class on a processing queue and delivers exactly one
terminal callback on a delivery queue. Requests can also be consumed as cold,
cancellable single-value streams.
"""

from .builders import HeaderBuilder, URLBuilder
from .config import HttpSettings, load_http_settings
from .dispatch import ImmediateExecutor
from .errors import (
    APIError,
    EncodingError,
    ErrorCategory,
    HTTPStatusError,
    ParseError,
    TransportError,
    URLBuildError,
)
from .executor import RequestState, RequestToken
from .http import (
    HttpClient,
    HttpRequest,
    HttpResponse,
    HttpxClient,
    MultipartEncodingResult,
    MultipartFormData,
    StubHttpClient,
    Transport,
    create_default_http_client,
)
from .log import setup_logging
from .parsing import EmptyResponse, ResponseParseable
from .plugins import NetworkLoggerPlugin, Plugin
from .provider import EndpointProvider
from .reactive import Disposable, Single
from .request import (
    APIRequest,
    APIStub,
    DefaultRequest,
    Download,
    DownloadResuming,
    MultipartAPIRequest,
    ParameterEncoding,
    UploadData,
    UploadFromFile,
    UploadStream,
)
from .result import Failure, Success
from .version import __version__

__all__ = [
    "APIError",
    "APIRequest",
    "APIStub",
    "DefaultRequest",
    "Disposable",
    "Download",
    "DownloadResuming",
    "EmptyResponse",
    "EncodingError",
    "EndpointProvider",
    "ErrorCategory",
    "Failure",
    "HTTPStatusError",
    "HeaderBuilder",
    "HttpClient",
    "HttpRequest",
    "HttpResponse",
    "HttpSettings",
    "HttpxClient",
    "ImmediateExecutor",
    "MultipartAPIRequest",
    "MultipartEncodingResult",
    "MultipartFormData",
    "NetworkLoggerPlugin",
    "ParameterEncoding",
    "ParseError",
    "Plugin",
    "RequestState",
    "RequestToken",
    "ResponseParseable",
    "Single",
    "StubHttpClient",
    "Success",
    "Transport",
    "TransportError",
    "URLBuildError",
    "URLBuilder",
    "UploadData",
    "UploadFromFile",
    "UploadStream",
    "create_default_http_client",
    "load_http_settings",
    "setup_logging",
    "__version__",
]
