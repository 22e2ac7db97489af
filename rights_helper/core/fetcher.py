"""Streaming answer fetcher.

One call issues one ``POST /ask`` and turns the response body into an ordered
sequence of text deltas. Failures never escape: they become a single
``"Error: ..."`` delta and the stream ends.
"""

from __future__ import annotations

import logging
from typing import Callable, Iterator, Optional

import httpx
from pydantic import ValidationError

from rights_helper.adapters.answer_stream_http import (
    AnswerStreamError,
    StreamTimeouts,
    build_client,
    describe_error,
    has_body,
    interrupt_response,
    iter_body_chunks,
    join_url,
    open_answer_stream,
)
from rights_helper.config.settings import AppConfig
from rights_helper.core.stream_reader import END_OF_STREAM_MARKER, MarkerScanner
from rights_helper.models.ask import AskRequest

LOGGER = logging.getLogger(__name__)

NO_BODY_MESSAGE = "Error: No response body."
DEFAULT_CHUNK_SIZE = 1024


def http_error_message(status_code: int) -> str:
    return f"Error: HTTP {status_code}"


def error_message(detail: str) -> str:
    return f"Error: {detail}"


class AnswerStream:
    """Lazy, finite iterator of deltas for a single request.

    ``cancel`` may be called from any thread and unblocks a pending read by
    shutting the connection down. ``close`` releases everything and must be called from
    the consuming thread.
    """

    def __init__(
        self,
        *,
        client: httpx.Client,
        url: str,
        query: str,
        language: str,
        chunk_size: int,
        scanner: MarkerScanner,
    ) -> None:
        self._client = client
        self._url = url
        self._query = query
        self._language = language
        self._chunk_size = chunk_size
        self._scanner = scanner
        self._response: Optional[httpx.Response] = None
        self._gen: Optional[Iterator[str]] = None
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def __iter__(self) -> "AnswerStream":
        return self

    def __next__(self) -> str:
        if self._gen is None:
            self._gen = self._run()
        return next(self._gen)

    def cancel(self) -> None:
        self._cancelled = True
        response = self._response
        if response is not None:
            interrupt_response(response)

    def close(self) -> None:
        if self._gen is None:
            # Never started: nothing was sent, only the client needs releasing.
            self._gen = iter(())
            self._client.close()
            return
        close_gen = getattr(self._gen, "close", None)
        if close_gen is not None and not getattr(self._gen, "gi_running", False):
            close_gen()

    def _run(self) -> Iterator[str]:
        try:
            try:
                payload = AskRequest(query=self._query, language=self._language)
            except ValidationError as exc:
                yield error_message(f"invalid request: {exc.errors()[0].get('msg', 'invalid')}")
                return

            with open_answer_stream(self._client, self._url, payload) as response:
                self._response = response
                if self._cancelled:
                    return
                if not response.is_success:
                    LOGGER.warning("answer request failed status=%s url=%s", response.status_code, self._url)
                    yield http_error_message(response.status_code)
                    return
                if not has_body(response):
                    LOGGER.warning("answer response has no body status=%s", response.status_code)
                    yield NO_BODY_MESSAGE
                    return

                chunks = 0
                for raw in iter_body_chunks(response, self._chunk_size):
                    if self._cancelled:
                        break
                    chunks += 1
                    result = self._scanner.feed(raw)
                    if result.delta is not None:
                        yield result.delta
                    if result.finished:
                        LOGGER.info("answer stream reached end marker chunks=%s", chunks)
                        return

                if self._cancelled:
                    LOGGER.info("answer stream cancelled url=%s", self._url)
                    return
                tail = self._scanner.flush()
                if tail is not None:
                    yield tail
                LOGGER.info("answer stream ended without marker chunks=%s", chunks)
        except (AnswerStreamError, UnicodeDecodeError) as exc:
            if self._cancelled:
                LOGGER.info("answer stream cancelled url=%s", self._url)
                return
            LOGGER.warning("answer stream failed: %s", exc)
            yield error_message(describe_error(exc))
        except Exception as exc:
            if self._cancelled:
                LOGGER.info("answer stream cancelled url=%s", self._url)
                return
            LOGGER.exception("answer stream failed unexpectedly")
            yield error_message(describe_error(exc))
        finally:
            self._response = None
            self._client.close()


class StreamingAnswerFetcher:
    def __init__(
        self,
        base_url: str,
        ask_path: str = "/ask",
        timeouts: StreamTimeouts = StreamTimeouts(),
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        end_marker: str = END_OF_STREAM_MARKER,
        flush_before_marker: bool = True,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        if chunk_size <= 0:
            raise ValueError("chunk_size must be > 0")
        if not end_marker:
            raise ValueError("end_marker must not be empty")
        self.url = join_url(base_url, ask_path)
        self._timeouts = timeouts
        self._chunk_size = chunk_size
        self._end_marker = end_marker
        self._flush_before_marker = flush_before_marker
        self._transport = transport

    @classmethod
    def from_config(
        cls,
        config: AppConfig,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> "StreamingAnswerFetcher":
        return cls(
            base_url=config.server.base_url,
            ask_path=config.server.ask_path,
            timeouts=StreamTimeouts(
                connect_seconds=config.server.connect_timeout_seconds,
                write_seconds=config.server.write_timeout_seconds,
                pool_seconds=config.server.connect_timeout_seconds,
            ),
            chunk_size=config.stream.chunk_size,
            end_marker=config.stream.end_marker,
            flush_before_marker=config.stream.flush_before_marker,
            transport=transport,
        )

    def stream(self, query: str, language: str) -> AnswerStream:
        LOGGER.info("answer requested url=%s language=%s query_len=%s", self.url, language, len(query or ""))
        return AnswerStream(
            client=build_client(self._timeouts, transport=self._transport),
            url=self.url,
            query=query,
            language=language,
            chunk_size=self._chunk_size,
            scanner=MarkerScanner(marker=self._end_marker, flush_before_marker=self._flush_before_marker),
        )

    def fetch(self, query: str, language: str, on_delta: Callable[[str], None]) -> None:
        deltas = self.stream(query, language)
        try:
            for delta in deltas:
                on_delta(delta)
        finally:
            deltas.close()
