# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

import io

import pytest

from typedapi.config import HttpSettings
from typedapi.dispatch import ImmediateExecutor
from typedapi.errors import EncodingError
from typedapi.executor import RequestState
from typedapi.http.adapters import StubHttpClient
from typedapi.http.models import HttpResponse
from typedapi.http.multipart import MultipartFormData
from typedapi.http.transport import Transport
from typedapi.plugins import Plugin
from typedapi.provider import EndpointProvider


class Created:
    def __init__(self, ident):
        self.ident = ident

    @classmethod
    def from_json(cls, data):
        return cls(data["id"])


class ApiError:
    def __init__(self, message):
        self.message = message

    @classmethod
    def from_json(cls, data):
        return cls(data["error"])


class RecordingPlugin(Plugin):
    def __init__(self):
        self.events = []

    def will_send_request(self, request):
        self.events.append("will_send")

    def did_receive_response(self, request, result):
        self.events.append("did_receive")


def _provider(client, **kwargs):
    immediate = ImmediateExecutor()
    return EndpointProvider(
        "http://api.test/v1",
        transport=Transport(client, executor=immediate, settings=HttpSettings()),
        processing_queue=immediate,
        delivery_queue=immediate,
        settings=HttpSettings(),
        **kwargs,
    )


def test_encode_orders_parts_and_sets_boundary(tmp_path):
    attachment = tmp_path / "notes.txt"
    attachment.write_bytes(b"file body")
    form = MultipartFormData()
    form.append("title", "hello")
    form.append("count", 3)
    form.append_data("blob", b"\x00\x01", filename="blob.bin", mime_type="application/octet-stream")
    form.append_file("notes", attachment)
    form.append_stream("stream", io.BytesIO(b"streamed"), filename="s.txt")

    encoded = form.encode(memory_threshold=1_000_000)
    body = encoded.body.read()
    encoded.close()

    assert len(form) == 5
    assert encoded.content_type.startswith("multipart/form-data; boundary=")
    assert encoded.content_length == len(body)
    assert encoded.streaming_from_disk is False
    assert body.index(b'name="title"') < body.index(b'name="count"') < body.index(b'name="blob"')
    assert b'filename="notes.txt"' in body
    assert b"file body" in body
    assert b"streamed" in body
    assert b'name="title"; filename' not in body


def test_encode_spills_to_disk_above_threshold():
    form = MultipartFormData()
    form.append_data("blob", b"x" * 2048, filename="big.bin")
    encoded = form.encode(memory_threshold=512)
    try:
        assert encoded.streaming_from_disk is True
        assert encoded.content_length > 2048
    finally:
        encoded.close()


def test_encode_empty_form_fails():
    with pytest.raises(EncodingError):
        MultipartFormData().encode(memory_threshold=10)


def test_encode_missing_file_fails(tmp_path):
    form = MultipartFormData()
    form.append_file("missing", tmp_path / "nope.bin")
    with pytest.raises(EncodingError) as excinfo:
        form.encode(memory_threshold=10)
    assert isinstance(excinfo.value.cause, FileNotFoundError)


def test_append_rejects_unsupported_values():
    with pytest.raises(TypeError):
        MultipartFormData().append("obj", object())


def test_builder_failure_reports_encoding_error_only():
    client = StubHttpClient(default=HttpResponse(ok=True, status_code=200, text='{"id": 1}'))
    plugin = RecordingPlugin()
    api = _provider(client, plugins=[plugin])
    outcomes = []
    encoding_results = []

    def build(form):
        raise ValueError("cannot read attachment")

    token = api.upload_multipart("files", Created, ApiError, form_data=build).perform_multipart(
        lambda value: outcomes.append(("success", value)),
        lambda error: outcomes.append(("failure", error)),
        encoding_completion=encoding_results.append,
    )

    assert len(encoding_results) == 1
    assert encoding_results[0].ok is False
    assert isinstance(encoding_results[0].error, EncodingError)
    assert outcomes == []
    assert client.calls == 0
    assert token.state is RequestState.CREATED


def test_multipart_upload_succeeds_through_transport():
    client = StubHttpClient(default=HttpResponse(ok=True, status_code=201, text='{"id": 9}', content=b'{"id": 9}'))
    api = _provider(client)
    outcomes = []
    encoding_results = []

    def build(form):
        form.append("name", "avatar")
        form.append_data("file", b"png-bytes", filename="a.png", mime_type="image/png")

    token = api.upload_multipart("files", Created, ApiError, form_data=build).perform_multipart(
        lambda value: outcomes.append(value.ident),
        lambda error: outcomes.append(error),
        encoding_memory_threshold=4,
        encoding_completion=encoding_results.append,
    )

    assert outcomes == [9]
    assert encoding_results[0].ok is True
    assert encoding_results[0].streaming_from_disk is True
    sent = client.requests[0]
    assert sent.method == "POST"
    assert sent.url == "http://api.test/v1/files"
    assert sent.headers["Content-Type"].startswith("multipart/form-data")
    assert token.state is RequestState.DELIVERED


def test_multipart_uses_provider_threshold():
    client = StubHttpClient(default=HttpResponse(ok=True, status_code=200, text='{"id": 1}'))
    api = _provider(client)
    api.multipart_memory_threshold = 1
    encoding_results = []

    request = api.upload_multipart("files", Created, ApiError, form_data=lambda form: form.append("a", "b"))
    request.perform_multipart(lambda value: None, encoding_completion=encoding_results.append)

    assert request.memory_threshold == 1
    assert encoding_results[0].streaming_from_disk is True
