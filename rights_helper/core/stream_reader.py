"""Chunk-level scanning of the answer stream for the end marker."""

from __future__ import annotations

import codecs
from dataclasses import dataclass, field
from typing import Optional

END_OF_STREAM_MARKER = "[[END_OF_STREAM]]"


def _marker_prefix_len(text: str, marker: str) -> int:
    """Length of the longest suffix of text that is a proper prefix of marker."""
    upper = min(len(text), len(marker) - 1)
    for size in range(upper, 0, -1):
        if marker.startswith(text[-size:]):
            return size
    return 0


@dataclass
class ScanResult:
    delta: Optional[str]
    finished: bool


@dataclass
class MarkerScanner:
    """Turns raw body reads into forwardable deltas.

    Blank reads are dropped as a whole. A tail that could be the start of the
    marker is carried into the next read, so a marker split across two reads
    is still found; text carried that way is forwarded verbatim later.
    """

    marker: str = END_OF_STREAM_MARKER
    flush_before_marker: bool = True
    finished: bool = False
    _carry: str = ""
    _decoder: codecs.IncrementalDecoder = field(
        default_factory=lambda: codecs.getincrementaldecoder("utf-8")(errors="strict")
    )

    def feed(self, raw: bytes) -> ScanResult:
        if self.finished:
            return ScanResult(delta=None, finished=True)

        text = self._decoder.decode(raw)
        if not text.strip():
            return ScanResult(delta=None, finished=False)

        chunk = self._carry + text
        self._carry = ""

        index = chunk.find(self.marker)
        if index >= 0:
            self.finished = True
            head = chunk[:index] if self.flush_before_marker else ""
            return ScanResult(delta=head or None, finished=True)

        hold = _marker_prefix_len(chunk, self.marker)
        if hold:
            released = chunk[:-hold]
            if not released.strip():
                # Whitespace ahead of a held prefix travels with it.
                self._carry = chunk
                return ScanResult(delta=None, finished=False)
            self._carry = chunk[-hold:]
            chunk = released
        return ScanResult(delta=chunk, finished=False)

    def flush(self) -> Optional[str]:
        """Return whatever is still held once the body ends without a marker."""
        if self.finished:
            return None
        self.finished = True
        tail = self._carry + self._decoder.decode(b"", final=True)
        self._carry = ""
        return tail or None
