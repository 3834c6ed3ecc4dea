# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""
Execution contexts used by the request pipeline.

Queues are plain `concurrent.futures.Executor` instances: transport I/O,
response processing and result delivery each run on their own executor.
"""

from __future__ import annotations

from collections.abc import Callable
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from typing import Any, TypeVar

T = TypeVar("T")


class ImmediateExecutor(Executor):
    """Run submitted work inline on the submitting thread."""

    def submit(self, fn: Callable[..., T], /, *args: Any, **kwargs: Any) -> Future[T]:
        future: Future[T] = Future()
        if not future.set_running_or_notify_cancel():  # pragma: no cover - fresh futures are never cancelled
            return future
        try:
            result = fn(*args, **kwargs)
        except BaseException as exc:  # noqa: BLE001
            future.set_exception(exc)
        else:
            future.set_result(result)
        return future


def create_worker_pool(name: str, workers: int) -> ThreadPoolExecutor:
    """Thread pool whose threads are named `typedapi-<name>-N`."""
    return ThreadPoolExecutor(max_workers=max(1, workers), thread_name_prefix=f"typedapi-{name}")


def create_serial_queue(name: str) -> ThreadPoolExecutor:
    """Single-thread executor: work runs in submission order."""
    return create_worker_pool(name, 1)


__all__ = ["ImmediateExecutor", "create_serial_queue", "create_worker_pool"]
