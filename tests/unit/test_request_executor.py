# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

import threading

from typedapi.config import HttpSettings
from typedapi.dispatch import ImmediateExecutor, create_serial_queue, create_worker_pool
from typedapi.errors import APIError, HTTPStatusError, ParseError, TransportError, URLBuildError
from typedapi.executor import RequestState
from typedapi.http.adapters import StubHttpClient
from typedapi.http.models import HttpResponse
from typedapi.http.transport import Transport
from typedapi.plugins import Plugin
from typedapi.provider import EndpointProvider
from typedapi.request import APIStub, ParameterEncoding


class User:
    def __init__(self, ident, name=None):
        self.ident = ident
        self.name = name

    @classmethod
    def from_json(cls, data):
        return cls(data["id"], data.get("name"))


class ApiError:
    def __init__(self, message):
        self.message = message

    @classmethod
    def from_json(cls, data):
        return cls(data["error"])


class RecordingPlugin(Plugin):
    def __init__(self, events, label="plugin"):
        self.events = events
        self.label = label

    def will_send_request(self, request):
        self.events.append(f"{self.label}.will_send")

    def did_receive_response(self, request, result):
        self.events.append(f"{self.label}.did_receive:{'ok' if result.ok else 'error'}")


class RecordingClient(StubHttpClient):
    def __init__(self, events, response):
        super().__init__(default=response)
        self.events = events

    def request(self, request, **kwargs):
        self.events.append("transport")
        return super().request(request, **kwargs)


def _json(status: int, body: str) -> HttpResponse:
    return HttpResponse(ok=True, status_code=status, text=body, content=body.encode())


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


def _perform(request, **kwargs):
    outcomes = []
    token = request.perform(
        lambda value: outcomes.append(("success", value)),
        lambda error: outcomes.append(("failure", error)),
        **kwargs,
    )
    return token, outcomes


def test_success_builds_model():
    client = StubHttpClient({"http://api.test/v1/users/1": _json(200, '{"id": 1, "name": "ada"}')})
    token, outcomes = _perform(_provider(client).request("users/1", User, ApiError))

    assert len(outcomes) == 1
    kind, user = outcomes[0]
    assert kind == "success"
    assert (user.ident, user.name) == (1, "ada")
    assert token.state is RequestState.DELIVERED


def test_error_status_builds_error_model():
    client = StubHttpClient(default=_json(500, '{"error": "bad"}'))
    _, outcomes = _perform(_provider(client).request("users/1", User, ApiError))

    kind, error = outcomes[0]
    assert kind == "failure"
    assert isinstance(error, APIError)
    assert error.error_model.message == "bad"
    assert isinstance(error.transport_error, HTTPStatusError)
    assert error.status_code == 500
    assert error.parse_error is None


def test_missing_field_reports_parse_error():
    client = StubHttpClient(default=_json(200, '{"name": "no id"}'))
    _, outcomes = _perform(_provider(client).request("users/1", User, ApiError))

    kind, error = outcomes[0]
    assert kind == "failure"
    assert isinstance(error.parse_error, ParseError)
    assert isinstance(error.parse_error.cause, KeyError)
    assert error.transport_error is None
    assert error.error_model is None


def test_malformed_json_reports_parse_error():
    client = StubHttpClient(default=_json(200, "<html>"))
    _, outcomes = _perform(_provider(client).request("users/1", User, ApiError))
    assert isinstance(outcomes[0][1].parse_error, ParseError)


def test_transport_failure_wins_over_parse_failure():
    client = StubHttpClient(default=HttpResponse(ok=False, error_message="connection reset", error_type="ConnectionResetError"))
    _, outcomes = _perform(_provider(client).request("users/1", User, ApiError))

    kind, error = outcomes[0]
    assert kind == "failure"
    assert isinstance(error.transport_error, TransportError)
    assert error.transport_error.error_type == "ConnectionResetError"
    assert error.parse_error is None
    assert error.error_model is None


def test_url_build_failure_is_delivered_without_plugins():
    plugin = RecordingPlugin([])
    client = StubHttpClient(default=_json(200, '{"id": 1}'))
    api = _provider(client, plugins=[plugin])
    api.url_builder.base_url = "not a url"

    token, outcomes = _perform(api.request("users/1", User, ApiError))

    kind, error = outcomes[0]
    assert kind == "failure"
    assert isinstance(error.transport_error, URLBuildError)
    assert client.calls == 0
    assert plugin.events == []
    assert token.state is RequestState.DELIVERED


def test_plugin_hooks_run_in_order_around_delivery():
    events = []
    client = RecordingClient(events, _json(200, '{"id": 1}'))
    api = _provider(client, plugins=[RecordingPlugin(events, "a"), RecordingPlugin(events, "b")])

    api.request("users/1", User, ApiError).perform(lambda user: events.append("success"))

    assert events == [
        "a.will_send",
        "b.will_send",
        "transport",
        "success",
        "a.did_receive:ok",
        "b.did_receive:ok",
    ]


def test_failing_plugin_does_not_break_delivery(caplog):
    class Broken(Plugin):
        def will_send_request(self, request):
            raise RuntimeError("plugin bug")

    client = StubHttpClient(default=_json(200, '{"id": 1}'))
    with caplog.at_level("ERROR", logger="typedapi.plugins"):
        _, outcomes = _perform(_provider(client, plugins=[Broken()]).request("users/1", User, ApiError))
    assert outcomes[0][0] == "success"
    assert "will_send_request" in caplog.text


def test_failure_callback_is_optional():
    client = StubHttpClient(default=_json(404, '{"error": "missing"}'))
    token = _provider(client).request("users/1", User, ApiError).perform(lambda user: None)
    assert token.state is RequestState.DELIVERED


def test_error_model_that_cannot_be_built_is_none():
    client = StubHttpClient(default=_json(502, "gateway exploded"))
    _, outcomes = _perform(_provider(client).request("users/1", User, ApiError))

    error = outcomes[0][1]
    assert error.error_model is None
    assert isinstance(error.transport_error, HTTPStatusError)


def test_stubbing_bypasses_transport():
    client = StubHttpClient(default=_json(200, '{"id": 1}'))
    api = _provider(client)
    api.stubbing_enabled = True
    request = api.request("users/1", User, ApiError).with_stub(APIStub(status_code=200, body={"id": 42}))

    _, outcomes = _perform(request)

    assert outcomes[0][1].ident == 42
    assert client.calls == 0


def test_stubbed_transport_error():
    client = StubHttpClient()
    request = _provider(client).request("users/1", User, ApiError).with_stub(
        APIStub(transport_error=ConnectionRefusedError("stubbed refusal"))
    )
    _, outcomes = _perform(request)

    kind, error = outcomes[0]
    assert kind == "failure"
    assert isinstance(error.transport_error, ConnectionRefusedError)
    assert client.calls == 0


def test_parameters_follow_encoding_and_method():
    client = StubHttpClient(default=_json(200, '{"id": 1}'))
    api = _provider(client)

    api.request("search", User, parameters={"q": "ada"}).perform(lambda user: None)
    api.request("users", User, method="POST", parameters={"name": "ada"}).perform(lambda user: None)
    api.request(
        "users", User, method="POST", parameters={"name": "ada"}, encoding=ParameterEncoding.JSON
    ).perform(lambda user: None)

    query, form, json_body = client.requests
    assert query.params == {"q": "ada"} and query.form is None
    assert form.form == {"name": "ada"} and form.params is None
    assert json_body.json == {"name": "ada"} and json_body.form is None
    assert query.headers["Accept"] == "application/json"


def test_upload_data_reaches_transport():
    client = StubHttpClient(default=_json(201, '{"id": 5}'))
    _, outcomes = _perform(_provider(client).upload("blobs", User, data=b"payload"))
    assert outcomes[0][1].ident == 5
    assert client.requests[0].body == b"payload"
    assert client.requests[0].method == "POST"


def test_progress_is_reported_before_result():
    events = []
    client = StubHttpClient(default=_json(200, '{"id": 1}'))
    _provider(client).request("users/1", User, ApiError).perform(
        lambda user: events.append("success"),
        progress=lambda done, total: events.append(("progress", done, total)),
    )
    assert events == [("progress", 9, 9), "success"]


def test_exactly_one_callback_and_cancel_after_delivery_is_noop():
    client = StubHttpClient(default=_json(200, '{"id": 1}'))
    token, outcomes = _perform(_provider(client).request("users/1", User, ApiError))
    token.cancel()
    token.cancel()
    assert len(outcomes) == 1
    assert token.state is RequestState.DELIVERED
    assert token.cancelled is False


def test_callback_exception_is_logged(caplog):
    client = StubHttpClient(default=_json(200, '{"id": 1}'))

    def explode(user):
        raise RuntimeError("caller bug")

    with caplog.at_level("ERROR", logger="typedapi.executor"):
        token = _provider(client).request("users/1", User, ApiError).perform(explode)
    assert token.state is RequestState.DELIVERED
    assert "Result callback raised" in caplog.text


def test_cancel_in_flight_suppresses_callbacks():
    gate = threading.Event()
    client = StubHttpClient(default=_json(200, '{"id": 1}'), gate=gate)
    processing = create_worker_pool("processing-test", 2)
    delivery = create_serial_queue("delivery-test")
    api = EndpointProvider(
        "http://api.test/v1",
        http_client=client,
        processing_queue=processing,
        delivery_queue=delivery,
        settings=HttpSettings(),
    )
    events = []
    plugin = RecordingPlugin(events)
    api.plugins.append(plugin)

    token = api.request("users/1", User, ApiError).perform(
        lambda user: events.append("success"),
        lambda error: events.append("failure"),
    )
    assert token.state is RequestState.SENT
    token.cancel()
    token.cancel()
    gate.set()

    api.close()
    processing.shutdown(wait=True)
    delivery.shutdown(wait=True)

    assert token.state is RequestState.CANCELLED
    assert token.cancelled is True
    assert events == ["plugin.will_send"]


def test_real_queues_deliver_once():
    client = StubHttpClient(default=_json(200, '{"id": 7}'))
    done = threading.Event()
    outcomes = []

    def on_success(user):
        outcomes.append((user.ident, threading.current_thread().name))
        done.set()

    def on_failure(error):
        outcomes.append(error)
        done.set()

    with EndpointProvider("http://api.test/v1", http_client=client, settings=HttpSettings()) as api:
        api.request("users/7", User, ApiError).perform(on_success, on_failure)
        assert done.wait(timeout=5)

    assert len(outcomes) == 1
    ident, thread_name = outcomes[0]
    assert ident == 7
    assert thread_name.startswith("typedapi-delivery")


def test_close_waits_for_delayed_stub_and_delivers():
    client = StubHttpClient()
    outcomes = []

    api = EndpointProvider("http://api.test/v1", http_client=client, settings=HttpSettings())
    request = api.request("users/1", User, ApiError).with_stub(APIStub(body={"id": 1}, delay=0.3))
    token = request.perform(lambda user: outcomes.append(user.ident), outcomes.append)
    api.close()

    assert outcomes == [1]
    assert token.state is RequestState.DELIVERED
    assert client.calls == 0


def test_processing_queue_shut_down_still_delivers_failure():
    io = create_worker_pool("io-stub-test", 1)
    processing = create_worker_pool("processing-closed-test", 1)
    api = EndpointProvider(
        "http://api.test/v1",
        transport=Transport(StubHttpClient(), executor=io, settings=HttpSettings()),
        processing_queue=processing,
        delivery_queue=ImmediateExecutor(),
        settings=HttpSettings(),
    )
    request = api.request("users/1", User, ApiError).with_stub(APIStub(body={"id": 1}, delay=0.2))

    token, outcomes = _perform(request)
    processing.shutdown(wait=True)
    io.shutdown(wait=True)

    assert len(outcomes) == 1
    kind, error = outcomes[0]
    assert kind == "failure"
    assert isinstance(error.transport_error, RuntimeError)
    assert token.state is RequestState.DELIVERED


def test_parsing_runs_on_processing_queue():
    threads = {}

    class ThreadRecordingUser(User):
        @classmethod
        def from_json(cls, data):
            threads["parse"] = threading.current_thread().name
            return super().from_json(data)

    def on_success(user):
        threads["deliver"] = threading.current_thread().name

    client = StubHttpClient(default=_json(200, '{"id": 1}'))
    with EndpointProvider("http://api.test/v1", http_client=client, settings=HttpSettings()) as api:
        api.request("users/1", ThreadRecordingUser, ApiError).perform(on_success)

    assert threads["parse"].startswith("typedapi-processing")
    assert threads["deliver"].startswith("typedapi-delivery")
    assert threads["parse"] != threading.current_thread().name
