# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""
Cold single-value streams over callback-based requests.

A Single does nothing until subscribed. Each subscription performs the request
again and ends with either one value followed by completion, or one error.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from concurrent.futures import Future, InvalidStateError
from typing import TYPE_CHECKING, Any, Generic, TypeVar

if TYPE_CHECKING:
    from .executor import RequestToken

logger = logging.getLogger(__name__)

T = TypeVar("T")


class SingleObserver(Generic[T]):
    """Forwards at most one terminal event to the subscriber's callbacks."""

    def __init__(
        self,
        on_next: Callable[[T], None] | None = None,
        on_error: Callable[[BaseException], None] | None = None,
        on_completed: Callable[[], None] | None = None,
    ):
        self._on_next = on_next
        self._on_error = on_error
        self._on_completed = on_completed
        self._lock = threading.Lock()
        self._terminated = False

    @property
    def terminated(self) -> bool:
        return self._terminated

    def _terminate(self) -> bool:
        with self._lock:
            if self._terminated:
                return False
            self._terminated = True
            return True

    def on_success(self, value: T) -> None:
        if not self._terminate():
            return
        if self._on_next is not None:
            self._on_next(value)
        if self._on_completed is not None:
            self._on_completed()

    def on_error(self, error: BaseException) -> None:
        if not self._terminate():
            return
        if self._on_error is None:
            logger.warning("Unhandled stream error: %r", error)
            return
        self._on_error(error)


class Disposable:
    """Subscription handle; `dispose()` cancels the request unless it already finished."""

    def __init__(self, observer: SingleObserver[Any]):
        self._observer = observer
        self._lock = threading.Lock()
        self._token: RequestToken | None = None
        self._disposed = False

    @property
    def disposed(self) -> bool:
        return self._disposed

    def _attach(self, token: RequestToken | None) -> None:
        with self._lock:
            self._token = token
            disposed = self._disposed
        if disposed and token is not None:
            token.cancel()

    def dispose(self) -> None:
        with self._lock:
            if self._disposed:
                return
            self._disposed = True
            token = self._token
        # Terminating here drops any event that races with the cancel.
        if not self._observer._terminate():
            return
        if token is not None:
            token.cancel()


class Single(Generic[T]):
    """Cold, cancellable stream of exactly one value or one error."""

    def __init__(self, subscribe: Callable[[SingleObserver[T]], RequestToken | None]):
        self._subscribe = subscribe

    def subscribe(
        self,
        on_next: Callable[[T], None] | None = None,
        on_error: Callable[[BaseException], None] | None = None,
        on_completed: Callable[[], None] | None = None,
    ) -> Disposable:
        observer = SingleObserver(on_next, on_error, on_completed)
        disposable = Disposable(observer)
        try:
            token = self._subscribe(observer)
        except Exception as exc:  # noqa: BLE001
            observer.on_error(exc)
            return disposable
        disposable._attach(token)
        return disposable

    def to_future(self) -> Future[T]:
        """
        Subscribe and expose the outcome as a concurrent.futures.Future.

        Cancelling the future disposes the subscription. Use
        `asyncio.wrap_future` to await it from a coroutine.
        """
        future: Future[T] = Future()

        def _resolve(value: T) -> None:
            try:
                future.set_result(value)
            except InvalidStateError:
                # cancelled by the caller
                pass

        def _reject(error: BaseException) -> None:
            try:
                future.set_exception(error)
            except InvalidStateError:
                # cancelled by the caller
                pass

        disposable = self.subscribe(on_next=_resolve, on_error=_reject)

        def _on_done(done: Future[T]) -> None:
            if done.cancelled():
                disposable.dispose()

        future.add_done_callback(_on_done)
        return future


__all__ = ["Disposable", "Single", "SingleObserver"]
