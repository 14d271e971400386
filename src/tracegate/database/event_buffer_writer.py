import os
import struct
from pathlib import Path
from typing import BinaryIO, Iterable, List, Union

import msgspec

from tracegate.config import config
from tracegate.events.schema import EventRecord
from tracegate.runtime.session import get_session_id

_HEADER = struct.Struct("!I")


def write_frames(f: BinaryIO, records: Iterable[EventRecord], encoder=None) -> int:
    """Write records as 4-byte big-endian length-prefixed msgpack frames."""
    encoder = encoder or msgspec.msgpack.Encoder()
    n = 0
    for r in records:
        payload = encoder.encode(r)
        f.write(_HEADER.pack(len(payload)))
        f.write(payload)
        n += 1
    return n


def read_framed_records(path: Union[str, Path]) -> List[EventRecord]:
    """Read back a file produced by EventBufferWriter."""
    decoder = msgspec.msgpack.Decoder(EventRecord)
    records = []
    with open(path, "rb") as f:
        while True:
            header = f.read(_HEADER.size)
            if not header:
                break
            if len(header) != _HEADER.size:
                raise ValueError(f"Truncated frame header in {path}")
            (length,) = _HEADER.unpack(header)
            payload = f.read(length)
            if len(payload) != length:
                raise ValueError(f"Truncated frame payload in {path}")
            records.append(decoder.decode(payload))
    return records


class EventBufferWriter:
    """
    Writes incremental updates from an EventBuffer to a msgpack file.

    Progress is tracked with the buffer's monotonic append counter rather
    than list offsets, so a reset between two flushes neither re-writes
    nor shifts records.
    """

    def __init__(self, buffer, name: str):
        self.buffer = buffer
        self.name = name
        self.logs_dir = None
        self._last_written = 0
        self._encoder = msgspec.msgpack.Encoder()

    def _resolve_dir(self) -> Path:
        if self.logs_dir is None:
            self.logs_dir = Path(config.logs_dir) / get_session_id() / "data" / self.name
        return Path(self.logs_dir)

    @property
    def path(self) -> Path:
        return self._resolve_dir() / "events.msgpack"

    def flush(self) -> int:
        """Append records not yet written. Returns the number written."""
        if not config.enable_logging:
            return 0

        count, rows = self.buffer.snapshot_since(self._last_written)
        self._last_written = count
        if not rows:
            return 0

        os.makedirs(self._resolve_dir(), exist_ok=True)
        with open(self.path, "ab") as f:
            return write_frames(f, rows, self._encoder)
