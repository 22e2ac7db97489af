import json
import threading
import time
from typing import Iterator, Optional

import httpx
import pytest

from rights_helper.core import fetcher as fetcher_module
from rights_helper.core.fetcher import NO_BODY_MESSAGE, StreamingAnswerFetcher


class RecordingBody:
    """Response body that records whether anything was read."""

    def __init__(self, chunks: list[bytes]) -> None:
        self._chunks = chunks
        self.read_started = False
        self.consumed = 0

    def __iter__(self) -> Iterator[bytes]:
        self.read_started = True
        for chunk in self._chunks:
            self.consumed += 1
            yield chunk


def _fetcher(handler, **kwargs) -> StreamingAnswerFetcher:
    return StreamingAnswerFetcher(
        base_url="http://qa.test",
        transport=httpx.MockTransport(handler),
        **kwargs,
    )


def _collect(fetcher: StreamingAnswerFetcher, query: str = "q", language: str = "English") -> list[str]:
    deltas: list[str] = []
    fetcher.fetch(query, language, deltas.append)
    return deltas


def test_streaming_happy_path_excludes_marker() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=iter([b"Hello ", b"World[[END_OF_STREAM]]"]))

    assert _collect(_fetcher(handler)) == ["Hello ", "World"]


def test_request_shape() -> None:
    seen: dict = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["method"] = request.method
        seen["url"] = str(request.url)
        seen["content_type"] = request.headers.get("content-type")
        seen["body"] = request.read()
        return httpx.Response(200, content=iter([b"ok[[END_OF_STREAM]]"]))

    _collect(_fetcher(handler), query="Can I record the police?", language="Russian")

    assert seen["method"] == "POST"
    assert seen["url"] == "http://qa.test/ask"
    assert seen["content_type"] == "application/json"
    assert json.loads(seen["body"]) == {
        "query": "Can I record the police?",
        "language": "Russian",
    }


def test_no_marker_ends_normally() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=iter([b"Hello World"]))

    assert _collect(_fetcher(handler)) == ["Hello World"]


def test_blank_chunk_produces_no_delta() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=iter([b"A", b"  \n ", b"B[[END_OF_STREAM]]"]))

    assert _collect(_fetcher(handler)) == ["A", "B"]


def test_http_error_short_circuits_without_reading_body() -> None:
    body = RecordingBody([b"should not be read"])

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, content=body)

    assert _collect(_fetcher(handler)) == ["Error: HTTP 500"]
    assert body.read_started is False


def test_success_without_body() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(204)

    assert _collect(_fetcher(handler)) == [NO_BODY_MESSAGE]


def test_transport_error_becomes_single_error_delta() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    assert _collect(_fetcher(handler)) == ["Error: connection refused"]


def test_read_error_mid_stream_keeps_earlier_deltas() -> None:
    def broken() -> Iterator[bytes]:
        yield b"partial "
        raise httpx.ReadError("connection reset")

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=broken())

    assert _collect(_fetcher(handler)) == ["partial ", "Error: connection reset"]


def test_invalid_utf8_is_reported_as_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=iter([b"ok ", b"\xff\xfe bad"]))

    deltas = _collect(_fetcher(handler))
    assert deltas[0] == "ok "
    assert len(deltas) == 2
    assert deltas[1].startswith("Error: ")


def test_chunk_size_splits_large_reads_in_order() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=iter([b"abcdefghij"]))

    assert _collect(_fetcher(handler, chunk_size=4)) == ["abcd", "efgh", "ij"]


def test_marker_spanning_sub_chunks_is_detected() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=iter([b"Yes.[[END_OF_STREAM]]junk"]))

    assert _collect(_fetcher(handler, chunk_size=6)) == ["Yes."]


def test_reading_stops_at_marker() -> None:
    body = RecordingBody([b"one ", b"two[[END_OF_STREAM]]", b"never"])

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=body)

    assert _collect(_fetcher(handler)) == ["one ", "two"]
    assert body.consumed == 2


def test_blank_query_is_reported_not_raised() -> None:
    def handler(request: httpx.Request) -> httpx.Response:  # pragma: no cover - never called
        raise AssertionError("request must not be sent")

    deltas = _collect(_fetcher(handler), query="   ")
    assert len(deltas) == 1
    assert deltas[0].startswith("Error: invalid request")


def test_stream_is_lazy_until_iterated() -> None:
    calls: list[int] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(1)
        return httpx.Response(200, content=iter([b"x"]))

    stream = _fetcher(handler).stream("q", "English")
    assert calls == []
    assert list(stream) == ["x"]
    assert calls == [1]


def test_cancel_before_first_read_yields_nothing() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=iter([b"never shown"]))

    stream = _fetcher(handler).stream("q", "English")
    stream.cancel()
    assert list(stream) == []
    assert stream.cancelled


def test_invalid_chunk_size_rejected() -> None:
    with pytest.raises(ValueError):
        StreamingAnswerFetcher(base_url="http://qa.test", chunk_size=0)


def test_whitespace_next_to_marker_prefix_is_forwarded() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=iter([b"see", b" [", b"1] now"]))

    assert "".join(_collect(_fetcher(handler))) == "see [1] now"


def test_cancel_unblocks_read_waiting_on_silent_server(silent_answer_server) -> None:
    fetcher = StreamingAnswerFetcher(
        base_url=silent_answer_server.base_url,
        transport=httpx.HTTPTransport(),
    )
    stream = fetcher.stream("q", "English")
    assert next(stream) == "Hello "

    results: list[Optional[str]] = []
    reader = threading.Thread(target=lambda: results.append(next(stream, None)), daemon=True)
    reader.start()
    time.sleep(0.2)
    assert reader.is_alive()

    stream.cancel()
    reader.join(timeout=2.0)

    assert not reader.is_alive()
    assert results == [None]
    assert stream.cancelled
    stream.close()


@pytest.fixture
def built_clients(monkeypatch) -> list[httpx.Client]:
    clients: list[httpx.Client] = []
    original = fetcher_module.build_client

    def _build(timeouts, transport=None):
        client = original(timeouts, transport=transport)
        clients.append(client)
        return client

    monkeypatch.setattr(fetcher_module, "build_client", _build)
    return clients


def _recording_handler(responses: list[httpx.Response], status: int = 200, chunks: Optional[list[bytes]] = None):
    def handler(request: httpx.Request) -> httpx.Response:
        if chunks is None:
            response = httpx.Response(status)
        else:
            response = httpx.Response(status, content=iter(chunks))
        responses.append(response)
        return response

    return handler


@pytest.mark.parametrize(
    ("status", "chunks"),
    [
        (200, [b"done[[END_OF_STREAM]]", b"never"]),
        (200, [b"no marker at all"]),
        (503, [b"unavailable"]),
        (204, None),
    ],
)
def test_response_and_client_closed_after_fetch(built_clients, status, chunks) -> None:
    responses: list[httpx.Response] = []
    _collect(_fetcher(_recording_handler(responses, status=status, chunks=chunks)))

    assert len(responses) == 1
    assert responses[0].is_closed
    assert built_clients[0].is_closed


def test_client_closed_after_transport_error(built_clients) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    _collect(_fetcher(handler))
    assert built_clients[0].is_closed


def test_close_before_iteration_releases_client(built_clients) -> None:
    responses: list[httpx.Response] = []
    stream = _fetcher(_recording_handler(responses, chunks=[b"x"])).stream("q", "English")

    stream.close()

    assert responses == []
    assert built_clients[0].is_closed
    assert list(stream) == []


def test_close_mid_stream_releases_response(built_clients) -> None:
    responses: list[httpx.Response] = []
    stream = _fetcher(_recording_handler(responses, chunks=[b"one ", b"two"])).stream("q", "English")

    assert next(stream) == "one "
    stream.close()

    assert responses[0].is_closed
    assert built_clients[0].is_closed
