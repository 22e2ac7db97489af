"""HTTP helper for the streamed ``/ask`` endpoint (httpx, read timeout disabled)."""

from __future__ import annotations

import logging
import socket
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator, Optional

import httpx

from rights_helper.models.ask import AskRequest

LOGGER = logging.getLogger(__name__)

_NO_BODY_STATUSES = {204, 205, 304}


class AnswerStreamError(RuntimeError):
    """Raised when the answer stream cannot be opened or read."""


@dataclass(frozen=True)
class StreamTimeouts:
    connect_seconds: float = 60.0
    write_seconds: float = 60.0
    pool_seconds: float = 60.0

    def to_httpx(self) -> httpx.Timeout:
        # The body is an open-ended stream; only the end marker terminates it.
        return httpx.Timeout(
            connect=self.connect_seconds,
            read=None,
            write=self.write_seconds,
            pool=self.pool_seconds,
        )


def describe_error(exc: BaseException) -> str:
    detail = str(exc).strip()
    if detail:
        return detail
    return type(exc).__name__


def build_client(
    timeouts: StreamTimeouts,
    transport: Optional[httpx.BaseTransport] = None,
) -> httpx.Client:
    return httpx.Client(timeout=timeouts.to_httpx(), transport=transport)


def join_url(base_url: str, path: str) -> str:
    return base_url.rstrip("/") + "/" + path.lstrip("/")


@contextmanager
def open_answer_stream(client: httpx.Client, url: str, payload: AskRequest) -> Iterator[httpx.Response]:
    """POST the question and yield the response with its body still unread."""
    try:
        request = client.build_request(
            "POST",
            url,
            content=payload.to_json_bytes(),
            headers={"content-type": "application/json"},
        )
        response = client.send(request, stream=True)
    except httpx.HTTPError as exc:
        raise AnswerStreamError(describe_error(exc)) from exc
    except Exception as exc:
        raise AnswerStreamError(f"request failed: {describe_error(exc)}") from exc

    try:
        yield response
    finally:
        response.close()


def has_body(response: httpx.Response) -> bool:
    if response.status_code in _NO_BODY_STATUSES:
        return False
    return response.headers.get("content-length", "").strip() != "0"


def iter_body_chunks(response: httpx.Response, chunk_size: int) -> Iterator[bytes]:
    """Yield body bytes as they arrive, split into reads of at most chunk_size."""
    if chunk_size <= 0:
        raise ValueError("chunk_size must be > 0")
    try:
        for piece in response.iter_bytes():
            for start in range(0, len(piece), chunk_size):
                yield piece[start : start + chunk_size]
    except (httpx.HTTPError, httpx.StreamError) as exc:
        raise AnswerStreamError(describe_error(exc)) from exc


def interrupt_response(response: httpx.Response) -> None:
    """Wake a read blocked on this response from another thread.

    Closing a socket does not interrupt a ``recv`` already waiting on it, so the
    connection is shut down instead; the reader then sees end of stream.
    Responses without a socket (in-memory transports) are simply closed.
    """
    network_stream = response.extensions.get("network_stream")
    sock = network_stream.get_extra_info("socket") if network_stream is not None else None
    if sock is None:
        response.close()
        return
    try:
        sock.shutdown(socket.SHUT_RDWR)
    except OSError as exc:
        LOGGER.debug("answer socket already closed: %s", exc)
