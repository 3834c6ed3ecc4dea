# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Model construction from response bodies."""

from __future__ import annotations

from typing import Any, Protocol, TypeVar, runtime_checkable

from .errors import ParseError
from .http.models import HttpResponse

M = TypeVar("M")


@runtime_checkable
class ResponseParseable(Protocol):
    """
    A model that can build itself from a decoded response body.

    `data` is the JSON-decoded body (dicts, lists, scalars), or None for an
    empty body. Raising any exception signals a parse error.
    """

    @classmethod
    def from_json(cls, data: Any) -> Any: ...


class EmptyResponse:
    """Accepts any body. Useful for downloads and 204 responses."""

    def __init__(self, data: Any = None):
        self.data = data

    @classmethod
    def from_json(cls, data: Any) -> EmptyResponse:
        return cls(data)

    def __repr__(self) -> str:
        return f"EmptyResponse(data={self.data!r})"


def _truncation_note(response: HttpResponse) -> str:
    if not response.meta.get("body_truncated"):
        return ""
    limit = response.meta.get("body_bytes_limit")
    return f" (body truncated at {limit} bytes)" if limit is not None else " (body truncated)"


def decode_body(response: HttpResponse) -> Any:
    """Decode a response body to a JSON-like tree. Raises ParseError on malformed JSON."""
    try:
        return response.json()
    except (ValueError, UnicodeDecodeError) as exc:
        raise ParseError(f"Response body is not valid JSON: {exc}{_truncation_note(response)}", cause=exc) from exc


def parse_model(model: type[M], response: HttpResponse) -> M:
    """Build `model` from the response body, wrapping any failure in ParseError."""
    data = decode_body(response)
    try:
        return model.from_json(data)  # type: ignore[attr-defined]
    except Exception as exc:  # noqa: BLE001
        name = getattr(model, "__name__", repr(model))
        raise ParseError(
            f"Could not build {name} from response: {exc}{_truncation_note(response)}",
            model=model,
            cause=exc,
        ) from exc


__all__ = ["EmptyResponse", "ResponseParseable", "decode_body", "parse_model"]
