from __future__ import annotations

import asyncio

from coderunner.executor.streams import StreamBuffer, extract_markers, pump

from conftest import run

BLOCK = "\nPerformance Metrics:\nExecution Time: 0.125000 s\nMemory Usage: 9.50 MB\n"


def test_buffer_reassembles_multibyte_split_across_chunks() -> None:
    data = "héllo wörld ✓".encode("utf-8")
    buf = StreamBuffer()
    for i in range(len(data)):
        buf.feed(data[i : i + 1])
    assert buf.getvalue() == data
    assert buf.text() == "héllo wörld ✓"


def test_buffer_limit_truncates_and_flags() -> None:
    buf = StreamBuffer(limit=10)
    buf.feed(b"12345678")
    buf.feed(b"abcdef")
    buf.feed(b"more")
    assert buf.getvalue() == b"12345678ab"
    assert buf.truncated


def test_pump_drains_reader_in_order() -> None:
    async def go() -> bytes:
        reader = asyncio.StreamReader()
        payload = bytes(range(256)) * 1000
        for i in range(0, len(payload), 777):
            reader.feed_data(payload[i : i + 777])
        reader.feed_eof()
        buf = StreamBuffer()
        await pump(reader, buf)
        assert buf.getvalue() == payload
        return buf.getvalue()

    run(go())


def test_pump_tolerates_missing_reader() -> None:
    buf = StreamBuffer()
    run(pump(None, buf))
    assert len(buf) == 0


def test_markers_are_parsed_and_stripped() -> None:
    output, markers = extract_markers("5\n" + BLOCK)
    assert output == "5\n"
    assert markers is not None
    assert markers.elapsed_s == 0.125
    assert markers.memory_mb == 9.5


def test_markers_keep_output_without_trailing_newline() -> None:
    output, markers = extract_markers("5" + BLOCK)
    assert output == "5"
    assert markers is not None


def test_markers_on_empty_output() -> None:
    output, markers = extract_markers(BLOCK)
    assert output == ""
    assert markers is not None


def test_markers_tolerate_crlf() -> None:
    output, markers = extract_markers("ok\r\n" + BLOCK.replace("\n", "\r\n"))
    assert output == "ok\r\n"
    assert markers is not None


def test_marker_block_not_at_end_is_user_output() -> None:
    text = "a" + BLOCK + "trailing user text\n"
    output, markers = extract_markers(text)
    assert output == text
    assert markers is None


def test_malformed_markers_are_left_alone() -> None:
    text = "x\nPerformance Metrics:\nExecution Time: fast s\nMemory Usage: 1 MB\n"
    output, markers = extract_markers(text)
    assert output == text
    assert markers is None


def test_no_markers() -> None:
    assert extract_markers("plain\n") == ("plain\n", None)
