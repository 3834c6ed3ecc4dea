# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Configuration helpers for typedapi."""

import os
from dataclasses import dataclass

from .version import __version__

DEFAULT_USER_AGENT = f"typedapi/{__version__}"
DEFAULT_MULTIPART_MEMORY_THRESHOLD = 10_000_000


def _float_env(name: str, default: float) -> float:
    try:
        value = os.getenv(name)
        return float(value) if value is not None else default
    except ValueError:
        return default


def _int_env(name: str, default: int) -> int:
    try:
        value = os.getenv(name)
        return int(value) if value is not None else default
    except ValueError:
        return default


def _bool_env(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _positive_int_env(name: str, default: int) -> int:
    value = _int_env(name, default)
    return value if value > 0 else default


@dataclass
class HttpSettings:
    """Transport and provider defaults."""

    timeout: float = 30.0
    user_agent: str = DEFAULT_USER_AGENT
    allow_redirects: bool = True
    verify_ssl: bool = True
    max_body_bytes: int = 16 * 1024 * 1024
    chunk_size: int = 64 * 1024
    io_workers: int = 8
    processing_workers: int = 4
    multipart_memory_threshold: int = DEFAULT_MULTIPART_MEMORY_THRESHOLD
    stubbing_enabled: bool = False

    @classmethod
    def from_env(cls) -> "HttpSettings":
        """Create settings from environment variables (evaluated at call time)."""
        return cls(
            timeout=_float_env("TYPEDAPI_HTTP_TIMEOUT", cls.timeout),
            user_agent=os.getenv("TYPEDAPI_USER_AGENT", cls.user_agent),
            allow_redirects=_bool_env("TYPEDAPI_HTTP_REDIRECTS", cls.allow_redirects),
            verify_ssl=_bool_env("TYPEDAPI_HTTP_VERIFY_SSL", cls.verify_ssl),
            max_body_bytes=_positive_int_env("TYPEDAPI_HTTP_MAX_BODY_BYTES", cls.max_body_bytes),
            chunk_size=_positive_int_env("TYPEDAPI_HTTP_CHUNK_SIZE", cls.chunk_size),
            io_workers=_positive_int_env("TYPEDAPI_IO_WORKERS", cls.io_workers),
            processing_workers=_positive_int_env("TYPEDAPI_PROCESSING_WORKERS", cls.processing_workers),
            multipart_memory_threshold=_positive_int_env(
                "TYPEDAPI_MULTIPART_MEMORY_THRESHOLD", cls.multipart_memory_threshold
            ),
            stubbing_enabled=_bool_env("TYPEDAPI_STUBBING", cls.stubbing_enabled),
        )


def load_http_settings() -> HttpSettings:
    """Load HTTP settings from environment with sensible defaults."""
    return HttpSettings.from_env()
