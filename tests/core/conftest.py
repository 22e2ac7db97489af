import socket
import threading

import pytest


def _read_request(conn: socket.socket) -> None:
    data = b""
    while b"\r\n\r\n" not in data:
        part = conn.recv(4096)
        if not part:
            return
        data += part
    head, _, body = data.partition(b"\r\n\r\n")
    length = 0
    for line in head.split(b"\r\n")[1:]:
        name, _, value = line.partition(b":")
        if name.strip().lower() == b"content-length":
            length = int(value.strip())
    while len(body) < length:
        part = conn.recv(4096)
        if not part:
            return
        body += part


class SilentAnswerServer:
    """Answers one request with a single chunk, then holds the connection open."""

    def __init__(self, first_chunk: bytes) -> None:
        self._listener = socket.create_server(("127.0.0.1", 0))
        self._listener.settimeout(10)
        self.base_url = f"http://127.0.0.1:{self._listener.getsockname()[1]}"
        self.release = threading.Event()
        self._first_chunk = first_chunk
        self._thread = threading.Thread(target=self._serve, daemon=True)
        self._thread.start()

    def _serve(self) -> None:
        try:
            conn, _ = self._listener.accept()
        except OSError:
            return
        with conn:
            _read_request(conn)
            conn.sendall(
                b"HTTP/1.1 200 OK\r\n"
                b"Content-Type: text/plain; charset=utf-8\r\n"
                b"Transfer-Encoding: chunked\r\n"
                b"\r\n"
                + b"%x\r\n%s\r\n" % (len(self._first_chunk), self._first_chunk)
            )
            self.release.wait(timeout=10)

    def close(self) -> None:
        self.release.set()
        self._thread.join(timeout=5)
        self._listener.close()


@pytest.fixture
def silent_answer_server():
    server = SilentAnswerServer(first_chunk=b"Hello ")
    yield server
    server.close()
