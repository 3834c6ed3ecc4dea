# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Lifecycle observers attached to providers and requests."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import TYPE_CHECKING, Any

from .errors import error_category_to_reason
from .result import Failure, Result

if TYPE_CHECKING:
    from .request import APIRequest

logger = logging.getLogger(__name__)


class Plugin:
    """
    Base observer with no-op hooks.

    `will_send_request` runs synchronously on the sending thread right before the
    transport call. `did_receive_response` runs on the delivery queue after the
    terminal callback. Return values are ignored.
    """

    def will_send_request(self, request: APIRequest[Any, Any]) -> None:
        return None

    def did_receive_response(self, request: APIRequest[Any, Any], result: Result) -> None:
        return None


class NetworkLoggerPlugin(Plugin):
    """Logs request start, success and failure."""

    def __init__(self, log: logging.Logger | None = None, *, log_success: bool = True, log_failures: bool = True):
        self.log = log or logger
        self.log_success = log_success
        self.log_failures = log_failures

    def will_send_request(self, request: APIRequest[Any, Any]) -> None:
        self.log.debug("Sending %s %s", request.method, request.path)

    def did_receive_response(self, request: APIRequest[Any, Any], result: Result) -> None:
        if isinstance(result, Failure):
            if not self.log_failures:
                return
            error = result.error
            reason = error_category_to_reason(error.category) or "Response could not be parsed"
            self.log.warning(
                "Request %s %s failed (status=%s): %s: %s",
                request.method,
                request.path,
                error.status_code,
                reason,
                error,
            )
            return
        if self.log_success:
            status = result.response.status_code if result.response is not None else None
            self.log.info("Request %s %s succeeded (status=%s)", request.method, request.path, status)


def notify_will_send(plugins: Iterable[Plugin], request: APIRequest[Any, Any]) -> None:
    for plugin in plugins:
        try:
            plugin.will_send_request(request)
        except Exception:  # noqa: BLE001
            logger.exception("Plugin %r failed in will_send_request", plugin)


def notify_did_receive(plugins: Iterable[Plugin], request: APIRequest[Any, Any], result: Result) -> None:
    for plugin in plugins:
        try:
            plugin.did_receive_response(request, result)
        except Exception:  # noqa: BLE001
            logger.exception("Plugin %r failed in did_receive_response", plugin)


__all__ = ["NetworkLoggerPlugin", "Plugin", "notify_did_receive", "notify_will_send"]
