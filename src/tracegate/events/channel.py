"""
TraceGate event channel (in-process runtime event subsystem).

Instrumentation publishes typed payloads with `emit()` from whatever
thread does the work (request handlers, pool workers). The channel stamps
them into `EventRecord`s, applies the source configuration (enabled kinds,
thresholds, stack capture) and hands them to a dedicated drain thread that
appends them to the channel's EventBuffer.

Flush barrier
-------------
Publishing and draining are decoupled by a bounded FIFO queue, so a record
published just before the workload's response may not be in the buffer
yet. `flush()` enqueues a barrier marker behind everything already
published and blocks until the drain thread reaches it. After `flush()`
returns, every record published before the call is visible in the buffer;
records published afterwards belong to the next epoch.

Failure behavior
----------------
A closed channel, a dead drain thread or an overflowed buffer makes
`flush()` raise SourceUnavailableError. Publishers never see an error:
when the channel is down their events are dropped and the next flush
reports the channel as unavailable.
"""

import itertools
import queue
import threading
import time
import traceback
from typing import Optional, Sequence, Tuple

import msgspec

from tracegate.database.event_buffer import EventBuffer
from tracegate.errors import (
    FlushTimeoutError,
    SessionConflictError,
    SourceUnavailableError,
)
from tracegate.events.catalog import lookup_kind
from tracegate.events.schema import EventRecord, payload_kind
from tracegate.events.source import EventSourceSpec, StackPolicy
from tracegate.loggers.error_log import get_error_logger
from tracegate.runtime.settings import ChannelSettings, HarnessSettings

# How often a waiting flush re-checks the drain thread's health
_BARRIER_POLL_SEC = 0.05


class _Barrier:
    __slots__ = ("reached",)

    def __init__(self) -> None:
        self.reached = threading.Event()


_STOP = object()


def _capture_stack(skip: int = 2) -> Tuple[str, ...]:
    frames = traceback.extract_stack()[:-skip]
    return tuple(f"{fr.filename}:{fr.lineno} in {fr.name}" for fr in reversed(frames))


class EventChannel:
    """
    Bounded, append-only event log with a flush-synchronized read barrier.

    Implements the EventSource protocol (enable_source, disable_source,
    current_buffer, flush) plus `emit()` for producers and exclusive
    acquisition for capture sessions.
    """

    def __init__(
        self,
        settings: Optional[ChannelSettings] = None,
        name: str = "events",
    ) -> None:
        self._settings = settings or ChannelSettings()
        self.name = name
        self._logger = get_error_logger(f"EventChannel({name})")

        self.buffer = EventBuffer(
            name=name, max_events=self._settings.max_buffered_events
        )
        self._queue: "queue.Queue" = queue.Queue(
            maxsize=int(self._settings.queue_size)
        )

        self._sources_lock = threading.Lock()
        self._sources = {}
        self._seq = itertools.count()
        self._seq_lock = threading.Lock()

        self._owner = None
        self._owner_lock = threading.Lock()

        self._closed = False
        self._failure: Optional[BaseException] = None
        self._dropped = 0
        self._thread = threading.Thread(
            target=self._drain_loop,
            name=f"TraceGateDrain({name})",
            daemon=True,
        )
        self._thread.start()

    @classmethod
    def from_settings(cls, settings: HarnessSettings, name: str = "events") -> "EventChannel":
        return cls(settings.channel, name=name)

    # Source configuration

    def enable_source(
        self,
        kind: str,
        threshold: int = 0,
        stack_policy: StackPolicy = StackPolicy.NOT_CAPTURED,
    ) -> None:
        spec = EventSourceSpec(
            kind=kind, threshold=threshold, stack_policy=StackPolicy(stack_policy)
        )
        spec.validate()
        with self._sources_lock:
            self._sources[kind] = spec
        self._logger.debug(
            f"[TraceGate] enabled {kind} threshold={threshold} stack={spec.stack_policy.value}"
        )

    def disable_source(self, kind: str) -> None:
        lookup_kind(kind)
        with self._sources_lock:
            self._sources.pop(kind, None)

    def enabled_sources(self) -> Tuple[EventSourceSpec, ...]:
        with self._sources_lock:
            return tuple(self._sources.values())

    # Exclusive acquisition

    def acquire(self, owner: object) -> None:
        """Acquire the channel for `owner`; a second owner is rejected."""
        with self._owner_lock:
            if self._owner is not None and self._owner is not owner:
                self._raise(
                    SessionConflictError(
                        f"Event channel '{self.name}' is already held by {self._owner!r}"
                    )
                )
            self._owner = owner

    def release(self, owner: object) -> None:
        with self._owner_lock:
            if self._owner is owner:
                self._owner = None

    @property
    def owner(self) -> object:
        return self._owner

    # Producer side

    def emit(self, payload: msgspec.Struct, thread_name: Optional[str] = None) -> bool:
        """
        Publish one event payload.

        Returns True if the event was accepted, False if its kind is
        disabled, it was below the source threshold, or the channel is down.
        Blocks while the queue is full.
        """
        kind = payload_kind(payload)
        with self._sources_lock:
            spec = self._sources.get(kind)
        if spec is None or not spec.enabled:
            return False

        info = lookup_kind(kind)
        if getattr(payload, info.quantity_field) < spec.threshold:
            return False

        if self._closed or self._failure is not None:
            self._dropped += 1
            return False

        stack = None
        if spec.stack_policy is StackPolicy.CAPTURED:
            stack = _capture_stack()

        with self._seq_lock:
            seq = next(self._seq)

        record = EventRecord(
            seq=seq,
            timestamp=time.monotonic(),
            owning_thread=thread_name or threading.current_thread().name,
            payload=payload,
            stack_trace=stack,
        )
        self._queue.put(record)
        return True

    # Drain side

    def _drain_loop(self) -> None:
        try:
            while True:
                item = self._queue.get()
                if item is _STOP:
                    break
                if isinstance(item, _Barrier):
                    item.reached.set()
                    continue
                if not self.buffer.append(item) and self.buffer.overflow == 1:
                    self._logger.error(
                        f"[TraceGate] buffer '{self.name}' full at "
                        f"{self.buffer.max_events} events, dropping {item.kind}"
                    )
        except Exception as e:
            self._failure = e
            self._logger.error(f"[TraceGate] drain loop failed: {e}")

    def _raise(self, exc: Exception) -> None:
        self._logger.error(f"[TraceGate] {exc}")
        raise exc

    def _check_available(self) -> None:
        if self._closed:
            self._raise(SourceUnavailableError(f"Event channel '{self.name}' is closed"))
        if self._failure is not None:
            self._raise(
                SourceUnavailableError(
                    f"Event channel '{self.name}' drain failed: {self._failure}"
                )
            )
        if not self._thread.is_alive():
            self._raise(
                SourceUnavailableError(
                    f"Event channel '{self.name}' drain thread is not running"
                )
            )

    def _await_barrier(self, check_overflow: bool = True) -> None:
        self._check_available()
        barrier = _Barrier()
        self._queue.put(barrier)

        timeout = self._settings.flush_timeout_sec
        deadline = None if timeout is None else time.monotonic() + float(timeout)
        while not barrier.reached.wait(_BARRIER_POLL_SEC):
            self._check_available()
            if deadline is not None and time.monotonic() >= deadline:
                self._raise(
                    FlushTimeoutError(
                        f"Event channel '{self.name}' flush did not complete within {timeout}s"
                    )
                )

        if check_overflow and self.buffer.overflow:
            self._raise(
                SourceUnavailableError(
                    f"Event buffer '{self.name}' overflowed, "
                    f"{self.buffer.overflow} events were not recorded"
                )
            )

    def flush(self) -> None:
        """
        Block until every event published before this call is in the buffer.

        Non-destructive and idempotent.
        """
        self._await_barrier()
        self.buffer.writer.flush()

    def reset(self) -> None:
        """
        Discard all buffered events and start a new capture epoch.

        Events still in flight are drained first so they cannot leak
        into the new epoch.
        """
        self._await_barrier(check_overflow=False)
        self.buffer.writer.flush()
        epoch = self.buffer.reset()
        self._logger.debug(f"[TraceGate] buffer '{self.name}' reset, epoch={epoch}")

    def current_buffer(self) -> Sequence[EventRecord]:
        return self.buffer.snapshot()

    # Lifecycle

    @property
    def dropped(self) -> int:
        return self._dropped

    def close(self, timeout_sec: float = 5.0) -> None:
        """Stop the drain thread after it has consumed everything queued."""
        if self._closed:
            return
        self._closed = True
        self._queue.put(_STOP)
        self._thread.join(timeout=float(timeout_sec))
        if self._thread.is_alive():
            self._logger.error("[TraceGate] WARNING: drain thread did not terminate")

    def __enter__(self) -> "EventChannel":
        return self

    def __exit__(self, *exc) -> None:
        self.close()
