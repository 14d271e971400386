"""
Per-kind metric extraction.

Each payload type maps to the one field that represents its cost:

    allocation-in-buffer       -> buffer_size       (bytes)
    allocation-outside-buffer  -> allocation_size   (bytes)
    socket-read                -> bytes_read
    socket-write               -> bytes_written

Dispatch is on the payload type. A kind without a registered rule raises
UnknownKindError; the filter in front of the extractor is expected to let
only extractable kinds through, so this is a programming error and is
never recovered from.
"""

from functools import singledispatch

from tracegate.errors import UnknownKindError
from tracegate.events.schema import (
    AllocationInBuffer,
    AllocationOutsideBuffer,
    EventRecord,
    SocketRead,
    SocketWrite,
    payload_kind,
)


@singledispatch
def contribution(payload) -> int:
    kind = payload_kind(payload) if hasattr(payload, "__struct_config__") else type(payload).__name__
    raise UnknownKindError(kind)


@contribution.register
def _(payload: AllocationInBuffer) -> int:
    return payload.buffer_size


@contribution.register
def _(payload: AllocationOutsideBuffer) -> int:
    return payload.allocation_size


@contribution.register
def _(payload: SocketRead) -> int:
    return payload.bytes_read


@contribution.register
def _(payload: SocketWrite) -> int:
    return payload.bytes_written


def extract(record: EventRecord) -> int:
    """Return the numeric metric contribution of one record."""
    return int(contribution(record.payload))


def register_rule(payload_type, fn) -> None:
    """Register an extraction rule for an additional payload type."""
    contribution.register(payload_type)(fn)
