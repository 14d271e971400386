from dataclasses import dataclass
from enum import Enum
from typing import List, Protocol, Sequence

from tracegate.errors import ConfigurationError
from tracegate.events.catalog import (
    ALLOCATION_IN_BUFFER,
    ALLOCATION_OUTSIDE_BUFFER,
    SOCKET_READ,
    SOCKET_WRITE,
    EventKindInfo,
    lookup_kind,
)
from tracegate.events.schema import EventRecord
from tracegate.loggers.error_log import get_error_logger


class StackPolicy(str, Enum):
    CAPTURED = "captured"
    NOT_CAPTURED = "not_captured"


@dataclass(frozen=True)
class EventSourceSpec:
    """
    Configuration of a single event source for one capture session.

    `threshold` suppresses events whose quantitative field is below it at
    the source; 0 captures everything.
    """

    kind: str
    enabled: bool = True
    threshold: int = 0
    stack_policy: StackPolicy = StackPolicy.NOT_CAPTURED

    def validate(self) -> EventKindInfo:
        info = lookup_kind(self.kind)
        if self.threshold < 0:
            msg = f"Threshold for '{self.kind}' must be >= 0, got {self.threshold}"
            get_error_logger("EventSourceSpec").error(f"[TraceGate] {msg}")
            raise ConfigurationError(msg)
        return info


class EventSource(Protocol):
    """The capability set the harness needs from a runtime event subsystem."""

    def enable_source(
        self, kind: str, threshold: int, stack_policy: StackPolicy
    ) -> None: ...

    def disable_source(self, kind: str) -> None: ...

    def current_buffer(self) -> Sequence[EventRecord]: ...

    def flush(self) -> None: ...


def allocation_sources(threshold: int = 0) -> List[EventSourceSpec]:
    return [
        EventSourceSpec(kind=ALLOCATION_IN_BUFFER, threshold=threshold),
        EventSourceSpec(kind=ALLOCATION_OUTSIDE_BUFFER, threshold=threshold),
    ]


def socket_io_sources(
    threshold: int = 0, stack_policy: StackPolicy = StackPolicy.CAPTURED
) -> List[EventSourceSpec]:
    return [
        EventSourceSpec(
            kind=SOCKET_READ, threshold=threshold, stack_policy=stack_policy
        ),
        EventSourceSpec(
            kind=SOCKET_WRITE, threshold=threshold, stack_policy=stack_policy
        ),
    ]
