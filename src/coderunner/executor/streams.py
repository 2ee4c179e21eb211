"""
Stdout/stderr collection and the performance-marker micro-protocol.

An instrumented run stage reports its own measurements by ending stdout with
exactly this block (the leading newline is part of the block, so output that
does not end in a newline is preserved as written)::

    \\nPerformance Metrics:
    Execution Time: <seconds> s
    Memory Usage: <megabytes> MB

The block is only honoured at the very end of stdout; anything else that looks
like it is left alone as ordinary user output.
"""
from __future__ import annotations

import asyncio
import re
from typing import Optional, Tuple

from ..core.models import PerformanceMarkers

CHUNK_SIZE = 64 * 1024
TRUNCATION_NOTICE = "\n[output truncated]"

MARKER_BLOCK = re.compile(
    r"\r?\nPerformance Metrics:\r?\n"
    r"Execution Time: (?P<time>\d+(?:\.\d+)?) s\r?\n"
    r"Memory Usage: (?P<mem>\d+(?:\.\d+)?) MB\r?\n?\Z"
)


class StreamBuffer:
    """Ordered byte buffer for one stream of one running stage."""

    def __init__(self, limit: int = 0):
        self.limit = limit   # 0 = unbounded
        self._buf = bytearray()
        self.truncated = False

    def feed(self, chunk: bytes) -> None:
        if not chunk:
            return
        if self.limit and len(self._buf) + len(chunk) > self.limit:
            room = self.limit - len(self._buf)
            if room > 0:
                self._buf += chunk[:room]
            self.truncated = True
            return
        self._buf += chunk

    def __len__(self) -> int:
        return len(self._buf)

    def getvalue(self) -> bytes:
        return bytes(self._buf)

    def text(self) -> str:
        # decoded once, so multi-byte characters split across chunks survive
        return self._buf.decode("utf-8", errors="replace")


async def pump(reader: Optional[asyncio.StreamReader], buf: StreamBuffer) -> None:
    """Drain ``reader`` into ``buf`` until EOF."""
    if reader is None:
        return
    while True:
        chunk = await reader.read(CHUNK_SIZE)
        if not chunk:
            return
        buf.feed(chunk)


def extract_markers(stdout: str) -> Tuple[str, Optional[PerformanceMarkers]]:
    """Split the trailing marker block off ``stdout``.

    Returns the user-visible output and the parsed markers, or the untouched
    output and None when the block is absent or malformed.
    """
    m = MARKER_BLOCK.search(stdout)
    if not m:
        return stdout, None
    markers = PerformanceMarkers(elapsed_s=float(m.group("time")), memory_mb=float(m.group("mem")))
    return stdout[: m.start()], markers
