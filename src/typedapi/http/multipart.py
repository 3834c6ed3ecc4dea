# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Multipart form-data assembly on top of httpx's multipart encoder."""

from __future__ import annotations

import os
import tempfile
from contextlib import ExitStack
from dataclasses import dataclass
from typing import IO, Any

import httpx

from ..config import DEFAULT_MULTIPART_MEMORY_THRESHOLD
from ..errors import EncodingError

_ENCODE_URL = "http://multipart.invalid/"


@dataclass(frozen=True)
class _Part:
    name: str
    source: Any
    filename: str | None = None
    mime_type: str | None = None
    is_path: bool = False


class MultipartFormData:
    """
    Collects form fields and file parts for a multipart upload, in order.

    Files given by path are opened only while the body is being encoded.
    """

    def __init__(self) -> None:
        self._parts: list[_Part] = []

    def __len__(self) -> int:
        return len(self._parts)

    def append(self, name: str, value: str | bytes | int | float) -> None:
        """Append a plain form field."""
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            value = str(value)
        if not isinstance(value, (str, bytes)):
            raise TypeError(f"Unsupported form field value for {name!r}: {type(value).__name__}")
        if isinstance(value, str):
            value = value.encode("utf-8")
        self._parts.append(_Part(name=name, source=value))

    def append_data(self, name: str, data: bytes, *, filename: str, mime_type: str | None = None) -> None:
        self._parts.append(_Part(name=name, source=bytes(data), filename=filename, mime_type=mime_type))

    def append_file(
        self,
        name: str,
        path: str | os.PathLike,
        *,
        filename: str | None = None,
        mime_type: str | None = None,
    ) -> None:
        path = os.fspath(path)
        self._parts.append(
            _Part(
                name=name,
                source=path,
                filename=filename or os.path.basename(path),
                mime_type=mime_type,
                is_path=True,
            )
        )

    def append_stream(self, name: str, stream: IO[bytes], *, filename: str, mime_type: str | None = None) -> None:
        self._parts.append(_Part(name=name, source=stream, filename=filename, mime_type=mime_type))

    def encode(self, *, memory_threshold: int = DEFAULT_MULTIPART_MEMORY_THRESHOLD) -> EncodedMultipart:
        """
        Encode the form into a spooled file.

        The body stays in memory up to `memory_threshold` bytes and spills to a
        temporary file beyond that. Raises EncodingError on any failure.
        """
        if not self._parts:
            raise EncodingError("Multipart form has no parts")

        spool = tempfile.SpooledTemporaryFile(max_size=max(0, memory_threshold))
        try:
            with ExitStack() as stack:
                files = []
                for part in self._parts:
                    source = stack.enter_context(open(part.source, "rb")) if part.is_path else part.source
                    if part.mime_type:
                        files.append((part.name, (part.filename, source, part.mime_type)))
                    else:
                        files.append((part.name, (part.filename, source)))
                request = httpx.Request("POST", _ENCODE_URL, files=files)
                size = 0
                for chunk in request.stream:
                    spool.write(chunk)
                    size += len(chunk)
                content_type = request.headers.get("Content-Type", "")
        except Exception as exc:  # noqa: BLE001
            spool.close()
            raise EncodingError(f"Failed to encode multipart body: {exc}", cause=exc) from exc

        spool.seek(0)
        return EncodedMultipart(
            body=spool,
            content_type=content_type,
            content_length=size,
            streaming_from_disk=size > memory_threshold,
        )


@dataclass
class EncodedMultipart:
    """An encoded multipart body ready for upload."""

    body: IO[bytes]
    content_type: str
    content_length: int
    streaming_from_disk: bool

    @property
    def headers(self) -> dict[str, str]:
        return {"Content-Type": self.content_type, "Content-Length": str(self.content_length)}

    def close(self) -> None:
        self.body.close()


@dataclass
class MultipartEncodingResult:
    """Outcome of multipart body encoding, reported before any network activity."""

    encoded: EncodedMultipart | None = None
    error: EncodingError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.encoded is not None

    @property
    def streaming_from_disk(self) -> bool:
        return bool(self.encoded and self.encoded.streaming_from_disk)


__all__ = ["EncodedMultipart", "MultipartEncodingResult", "MultipartFormData"]
