"""
Tests for event persistence: EventBuffer counters, EventBufferWriter's
incremental msgpack output and the framed reader used by `tracegate inspect`.
"""

import struct
from unittest.mock import patch

import msgspec
import pytest

from tracegate.database.event_buffer import EventBuffer
from tracegate.database.event_buffer_writer import read_framed_records, write_frames
from tracegate.events.schema import (
    AllocationInBuffer,
    EventRecord,
    SocketRead,
    SocketWrite,
)


def _rec(seq, payload=None):
    payload = payload or SocketRead(host="db", address="a", port=5432, bytes_read=seq)
    return EventRecord(seq=seq, timestamp=float(seq), owning_thread="executor-thread_0", payload=payload)


class TestEventBuffer:

    def test_append_and_snapshot(self):
        buf = EventBuffer(name="t")
        for i in range(3):
            buf.append(_rec(i))
        assert [r.seq for r in buf.snapshot()] == [0, 1, 2]
        assert buf.get_append_count() == 3
        assert len(buf) == 3

    def test_reset_keeps_append_count(self):
        buf = EventBuffer(name="t")
        buf.append(_rec(0))
        epoch = buf.reset()
        assert epoch == 1
        assert buf.snapshot() == ()
        assert buf.get_append_count() == 1

    def test_snapshot_since_across_reset(self):
        buf = EventBuffer(name="t")
        for i in range(3):
            buf.append(_rec(i))
        buf.reset()
        buf.append(_rec(3))
        count, rows = buf.snapshot_since(1)
        assert count == 4
        assert [r.seq for r in rows] == [3]

    def test_overflow_is_counted_not_stored(self):
        buf = EventBuffer(name="t", max_events=2)
        results = [buf.append(_rec(i)) for i in range(4)]
        assert results == [True, True, False, False]
        assert buf.overflow == 2
        assert len(buf) == 2
        buf.reset()
        assert buf.overflow == 0


class TestEventBufferWriter:

    def _writer(self, buf, tmp_path):
        writer = buf.writer
        writer.logs_dir = tmp_path / "data" / buf.name
        return writer

    def test_disabled_by_default(self, tmp_path):
        buf = EventBuffer(name="t")
        buf.append(_rec(0))
        writer = self._writer(buf, tmp_path)
        with patch("tracegate.database.event_buffer_writer.config") as mock_cfg:
            mock_cfg.enable_logging = False
            assert writer.flush() == 0
        assert not writer.path.exists()

    def test_incremental_write(self, tmp_path):
        buf = EventBuffer(name="t")
        writer = self._writer(buf, tmp_path)
        with patch("tracegate.database.event_buffer_writer.config") as mock_cfg:
            mock_cfg.enable_logging = True
            for i in range(3):
                buf.append(_rec(i))
            assert writer.flush() == 3
            buf.append(_rec(3))
            buf.append(_rec(4))
            assert writer.flush() == 2
            assert writer.flush() == 0

        records = read_framed_records(writer.path)
        assert [r.seq for r in records] == [0, 1, 2, 3, 4]

    def test_reset_between_flushes(self, tmp_path):
        buf = EventBuffer(name="t")
        writer = self._writer(buf, tmp_path)
        with patch("tracegate.database.event_buffer_writer.config") as mock_cfg:
            mock_cfg.enable_logging = True
            buf.append(_rec(0))
            writer.flush()
            buf.append(_rec(1))  # discarded by reset before being written
            buf.reset()
            buf.append(_rec(2))
            writer.flush()

        assert [r.seq for r in read_framed_records(writer.path)] == [0, 2]

    def test_channel_flush_persists(self, tmp_path, channel):
        channel.buffer.writer.logs_dir = tmp_path / "data" / "test"
        channel.enable_source("socket-read")
        with patch("tracegate.database.event_buffer_writer.config") as mock_cfg:
            mock_cfg.enable_logging = True
            for i in range(4):
                channel.emit(SocketRead(host="db", address="a", port=1, bytes_read=i))
            channel.flush()
        assert len(read_framed_records(channel.buffer.writer.path)) == 4


class TestFraming:

    def test_tagged_payloads_round_trip(self, tmp_path):
        path = tmp_path / "events.msgpack"
        originals = [
            _rec(0, AllocationInBuffer(object_class="T", allocation_size=8, buffer_size=512)),
            _rec(1, SocketWrite(host="db", address="a", port=5432, bytes_written=60)),
            EventRecord(
                seq=2,
                timestamp=2.0,
                owning_thread="vert.x-eventloop-thread-0",
                payload=SocketRead(host="db", address="a", port=5432, bytes_read=50),
                stack_trace=("app.py:10 in query", "app.py:3 in handle"),
            ),
        ]
        with open(path, "ab") as f:
            write_frames(f, originals)

        result = read_framed_records(path)
        assert result == originals
        assert [r.kind for r in result] == ["allocation-in-buffer", "socket-write", "socket-read"]

    def test_frame_header_is_big_endian_length(self, tmp_path):
        path = tmp_path / "events.msgpack"
        with open(path, "ab") as f:
            write_frames(f, [_rec(0)])
        data = path.read_bytes()
        (length,) = struct.unpack("!I", data[:4])
        assert length == len(data) - 4
        assert msgspec.msgpack.decode(data[4:])["payload"]["type"] == "socket-read"

    def test_empty_file(self, tmp_path):
        path = tmp_path / "events.msgpack"
        path.write_bytes(b"")
        assert read_framed_records(path) == []

    def test_truncated_header(self, tmp_path):
        path = tmp_path / "events.msgpack"
        path.write_bytes(b"\x00\x01")
        with pytest.raises(ValueError, match="Truncated frame header"):
            read_framed_records(path)

    def test_truncated_payload(self, tmp_path):
        path = tmp_path / "events.msgpack"
        path.write_bytes(struct.pack("!I", 100) + b"\x80")
        with pytest.raises(ValueError, match="Truncated frame payload"):
            read_framed_records(path)
