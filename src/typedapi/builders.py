# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Header and URL builders used when a request is sent."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Protocol
from urllib.parse import urljoin, urlparse

from .errors import URLBuildError
from .http.headers import merge_headers

DEFAULT_HEADERS = {"Accept": "application/json"}


class HeaderBuildable(Protocol):
    def headers_for(self, request_headers: Mapping[str, str]) -> dict[str, str]: ...


class URLBuildable(Protocol):
    def url_for(self, path: str) -> str: ...


class HeaderBuilder:
    """Default headers overlaid with request-specific ones (request headers win)."""

    def __init__(self, default_headers: Mapping[str, str] | None = None):
        self.default_headers = dict(DEFAULT_HEADERS if default_headers is None else default_headers)

    def headers_for(self, request_headers: Mapping[str, str]) -> dict[str, str]:
        return merge_headers(self.default_headers, request_headers)

    def __repr__(self) -> str:
        return f"HeaderBuilder(default_headers={self.default_headers!r})"


def build_base_dir_url(base_url: str) -> str:
    """
    Convert a base URL into a "directory" URL suitable for relative `urljoin()` calls.

    Example:
      http://host/api/v1 -> http://host/api/v1/
    """
    parsed = urlparse(str(base_url or ""))
    path = parsed.path.rstrip("/") + "/"
    return parsed._replace(path=path, params="", fragment="").geturl()


class URLBuilder:
    """
    Appends a relative path to a base URL.

    Paths are always resolved below the base path, so `/users` against
    `http://host/api` gives `http://host/api/users`. Absolute URLs are rejected.
    """

    def __init__(self, base_url: str):
        self.base_url = base_url

    def url_for(self, path: str) -> str:
        base = urlparse(str(self.base_url or ""))
        if base.scheme not in {"http", "https"} or not base.netloc:
            raise URLBuildError(f"Invalid base URL: {self.base_url!r}")
        raw_path = str(path or "")
        if urlparse(raw_path).scheme:
            raise URLBuildError(f"Expected a relative path, got {raw_path!r}")
        if base.query:
            raise URLBuildError(f"Base URL must not carry a query string: {self.base_url!r}")
        return urljoin(build_base_dir_url(self.base_url), raw_path.lstrip("/"))

    def __repr__(self) -> str:
        return f"URLBuilder(base_url={self.base_url!r})"


__all__ = [
    "DEFAULT_HEADERS",
    "HeaderBuildable",
    "HeaderBuilder",
    "URLBuildable",
    "URLBuilder",
    "build_base_dir_url",
]
