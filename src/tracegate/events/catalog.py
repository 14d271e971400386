"""
Catalog of event kinds known to the event subsystem.

Each kind belongs to a family. Configuring a session enables the requested
kinds and disables the rest of their family, so one session's allocation
sources never share the buffer with a stale allocation source from an
earlier configuration.
"""

from dataclasses import dataclass
from typing import Dict, List, Type

import msgspec

from tracegate.errors import ConfigurationError
from tracegate.events.schema import (
    AllocationInBuffer,
    AllocationOutsideBuffer,
    FileRead,
    FileWrite,
    SocketRead,
    SocketWrite,
    payload_kind,
)
from tracegate.loggers.error_log import get_error_logger

ALLOCATION_FAMILY = "allocation"
SOCKET_FAMILY = "socket"
FILE_FAMILY = "file"

_logger = get_error_logger("catalog")


@dataclass(frozen=True)
class EventKindInfo:
    kind: str
    family: str
    payload_type: Type[msgspec.Struct]
    # payload field compared against a source threshold
    quantity_field: str


def _info(payload_type, family: str, quantity_field: str) -> EventKindInfo:
    return EventKindInfo(
        kind=payload_type.__struct_config__.tag,
        family=family,
        payload_type=payload_type,
        quantity_field=quantity_field,
    )


KNOWN_KINDS: Dict[str, EventKindInfo] = {
    info.kind: info
    for info in (
        _info(AllocationInBuffer, ALLOCATION_FAMILY, "buffer_size"),
        _info(AllocationOutsideBuffer, ALLOCATION_FAMILY, "allocation_size"),
        _info(SocketRead, SOCKET_FAMILY, "bytes_read"),
        _info(SocketWrite, SOCKET_FAMILY, "bytes_written"),
        _info(FileRead, FILE_FAMILY, "bytes_read"),
        _info(FileWrite, FILE_FAMILY, "bytes_written"),
    )
}

ALLOCATION_IN_BUFFER = payload_kind(AllocationInBuffer)
ALLOCATION_OUTSIDE_BUFFER = payload_kind(AllocationOutsideBuffer)
SOCKET_READ = payload_kind(SocketRead)
SOCKET_WRITE = payload_kind(SocketWrite)
FILE_READ = payload_kind(FileRead)
FILE_WRITE = payload_kind(FileWrite)


def lookup_kind(kind: str) -> EventKindInfo:
    """Return catalog info for `kind`, raising ConfigurationError if unknown."""
    info = KNOWN_KINDS.get(kind)
    if info is None:
        msg = f"Unknown event kind '{kind}'. Choose from {sorted(KNOWN_KINDS)}"
        _logger.error(f"[TraceGate] {msg}")
        raise ConfigurationError(msg)
    return info


def kinds_in_family(family: str) -> List[str]:
    return [k for k, info in KNOWN_KINDS.items() if info.family == family]
