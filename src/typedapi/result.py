# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Parsed request outcome: a success model or a composite APIError, never both."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Generic, TypeVar, Union

from .errors import APIError
from .http.models import HttpResponse

M = TypeVar("M")


@dataclass(frozen=True)
class Success(Generic[M]):
    value: M
    response: HttpResponse | None = None

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Failure:
    error: APIError

    @property
    def ok(self) -> bool:
        return False

    @property
    def error_model(self) -> Any:
        return self.error.error_model

    @property
    def response(self) -> HttpResponse | None:
        return self.error.response


Result = Union[Success[Any], Failure]

__all__ = ["Failure", "Result", "Success"]
