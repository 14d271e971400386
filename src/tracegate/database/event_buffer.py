import threading
from typing import Tuple

from tracegate.database.event_buffer_writer import EventBufferWriter
from tracegate.events.schema import EventRecord


class EventBuffer:
    """
    Append-only, insertion-ordered store of captured events for one channel.

    The buffer never evicts. Once `max_events` is reached further appends
    are counted as overflow instead of stored, and the owning channel
    refuses to flush: a buffer that silently lost records would undercount
    every metric computed from it.

    Counters
    --------
    - append count: monotonic number of records ever appended (survives reset)
    - epoch start:  append count at the last reset; the buffer holds exactly
                    the records appended since then
    """

    def __init__(self, name: str, max_events: int = 1_000_000):
        self.name = name
        self.max_events = int(max_events)
        self._lock = threading.Lock()
        self._records = []
        self._append_count = 0
        self._epoch_start = 0
        self._epoch = 0
        self._overflow = 0
        self.writer = EventBufferWriter(self, name=name)

    def append(self, record: EventRecord) -> bool:
        """Append one record. Returns False if the buffer is full."""
        with self._lock:
            if len(self._records) >= self.max_events:
                self._overflow += 1
                return False
            self._records.append(record)
            self._append_count += 1
            return True

    def snapshot(self) -> Tuple[EventRecord, ...]:
        """Return an immutable view of the current epoch's records."""
        with self._lock:
            return tuple(self._records)

    def snapshot_since(self, count: int) -> Tuple[int, Tuple[EventRecord, ...]]:
        """
        Return (append_count, records appended after `count`).

        Records discarded by a reset before being read are not returned.
        """
        with self._lock:
            start = max(int(count), self._epoch_start)
            rows = tuple(self._records[start - self._epoch_start :])
            return self._append_count, rows

    def reset(self) -> int:
        """Discard all records and start a new epoch. Returns the new epoch id."""
        with self._lock:
            self._records = []
            self._epoch_start = self._append_count
            self._overflow = 0
            self._epoch += 1
            return self._epoch

    def get_append_count(self) -> int:
        return self._append_count

    @property
    def epoch(self) -> int:
        return self._epoch

    @property
    def overflow(self) -> int:
        return self._overflow

    def __len__(self) -> int:
        return len(self._records)
