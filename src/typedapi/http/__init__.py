# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Transport provider exports."""

from .adapters import StubHttpClient
from .client import HttpClient, create_default_http_client
from .headers import header_value, merge_headers, normalize_headers
from .httpx_client import HttpxClient
from .models import Headers, HttpRequest, HttpResponse
from .multipart import EncodedMultipart, MultipartEncodingResult, MultipartFormData
from .transport import Transport, TransportTask

__all__ = [
    "EncodedMultipart",
    "Headers",
    "HttpClient",
    "HttpxClient",
    "HttpRequest",
    "HttpResponse",
    "MultipartEncodingResult",
    "MultipartFormData",
    "StubHttpClient",
    "Transport",
    "TransportTask",
    "create_default_http_client",
    "header_value",
    "merge_headers",
    "normalize_headers",
]
