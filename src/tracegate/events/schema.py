"""
Event Record Schema (Shared Contract)

This module defines the **data contract** between event producers
(instrumentation publishing onto an EventChannel) and the consumers
downstream of the buffer (filters, metric extraction, persistence).

Concept
-------
Every captured occurrence is an immutable `EventRecord`. What happened is
carried by a *tagged payload*: one msgspec Struct per event kind, each with
its own typed fields. The tag doubles as the record's `kind`, so kind
dispatch is a type dispatch and records survive a msgpack round trip
without losing their variant.

Kinds
-----
- allocation-in-buffer       object allocated in a fresh thread-local buffer
- allocation-outside-buffer  object allocated directly, outside any buffer
- socket-read / socket-write socket I/O, with remote host/address/port
- file-read / file-write     file I/O

Design guarantees
-----------------
- Records are immutable once captured
- Flat, wire-friendly payloads (ints, strings, bools)
- `seq` is assigned at emission and is unique per channel
"""

from typing import Any, Dict, Optional, Tuple, Union

import msgspec


class AllocationInBuffer(msgspec.Struct, frozen=True, tag="allocation-in-buffer"):
    """Allocation that required a new thread-local buffer of `buffer_size` bytes."""

    object_class: str
    allocation_size: int
    buffer_size: int


class AllocationOutsideBuffer(
    msgspec.Struct, frozen=True, tag="allocation-outside-buffer"
):
    """Allocation served outside of any thread-local buffer."""

    object_class: str
    allocation_size: int


class SocketRead(msgspec.Struct, frozen=True, tag="socket-read"):
    host: str
    address: str
    port: int
    bytes_read: int
    end_of_stream: bool = False


class SocketWrite(msgspec.Struct, frozen=True, tag="socket-write"):
    host: str
    address: str
    port: int
    bytes_written: int


class FileRead(msgspec.Struct, frozen=True, tag="file-read"):
    path: str
    bytes_read: int


class FileWrite(msgspec.Struct, frozen=True, tag="file-write"):
    path: str
    bytes_written: int


EventPayload = Union[
    AllocationInBuffer,
    AllocationOutsideBuffer,
    SocketRead,
    SocketWrite,
    FileRead,
    FileWrite,
]


def payload_kind(payload: msgspec.Struct) -> str:
    """Return the kind tag of a payload struct."""
    return payload.__struct_config__.tag


class EventRecord(msgspec.Struct, frozen=True):
    """
    Canonical captured event.

    `owning_thread` is the name of the thread that emitted the event and
    `timestamp` is a monotonic capture time in seconds.
    """

    seq: int
    timestamp: float
    owning_thread: str
    payload: EventPayload
    stack_trace: Optional[Tuple[str, ...]] = None

    @property
    def kind(self) -> str:
        return payload_kind(self.payload)

    @property
    def fields(self) -> Dict[str, Any]:
        return msgspec.structs.asdict(self.payload)

    def get(self, name: str, default: Any = None) -> Any:
        """Return a payload field by name, or `default` if this kind lacks it."""
        return getattr(self.payload, name, default)
