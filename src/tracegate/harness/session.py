"""
Capture session (session-scoped source configuration).

A CaptureSession owns an EventChannel for its lifetime: it validates the
requested sources, acquires the channel exclusively, enables the requested
kinds and disables every other kind of the same family. Closing the session
disables its sources and releases the channel.

Usage
-----
    with configure(channel, allocation_sources()) as session:
        run_workload()
        session.flush()
        total = session.events().filter(kind_is(SOCKET_READ)).sum(extract)
"""

from typing import Iterable, List, Optional, Set

from tracegate.events.catalog import kinds_in_family
from tracegate.events.channel import EventChannel
from tracegate.events.filters import EventStream, FilterPredicate
from tracegate.events.source import EventSourceSpec
from tracegate.loggers.error_log import get_error_logger


class CaptureSession:

    def __init__(self, channel: EventChannel, sources: Iterable[EventSourceSpec]):
        self.channel = channel
        self.sources: List[EventSourceSpec] = list(sources)
        self._logger = get_error_logger("CaptureSession")
        self._open = False
        self._paused = False
        self._families: Set[str] = set()

        # Validate everything before touching global state
        for spec in self.sources:
            self._families.add(spec.validate().family)

    def open(self) -> "CaptureSession":
        if self._open:
            return self
        self.channel.acquire(self)
        try:
            self._disable_families()
            self._enable_sources()
        except Exception:
            self.channel.release(self)
            raise
        self._open = True
        self._logger.info(
            f"[TraceGate] session opened on '{self.channel.name}': "
            f"{[s.kind for s in self.sources if s.enabled]}"
        )
        return self

    def _disable_families(self) -> None:
        for family in sorted(self._families):
            for kind in kinds_in_family(family):
                self.channel.disable_source(kind)

    def _enable_sources(self) -> None:
        for spec in self.sources:
            if spec.enabled:
                self.channel.enable_source(
                    spec.kind, threshold=spec.threshold, stack_policy=spec.stack_policy
                )

    def pause(self) -> None:
        """Stop capturing without releasing the channel (e.g. during warm-up)."""
        for spec in self.sources:
            self.channel.disable_source(spec.kind)
        self._paused = True

    def resume(self) -> None:
        if self._paused:
            self._enable_sources()
            self._paused = False

    def reset(self) -> None:
        self.channel.reset()

    def flush(self) -> None:
        self.channel.flush()

    def events(self, predicate: Optional[FilterPredicate] = None) -> EventStream:
        """
        Lazy view over the current buffer snapshot.

        Only meaningful after `flush()`; reading earlier may observe an
        incomplete epoch.
        """
        stream = EventStream(self.channel.current_buffer())
        return stream if predicate is None else stream.filter(predicate)

    def close(self) -> None:
        if not self._open:
            return
        try:
            for spec in self.sources:
                self.channel.disable_source(spec.kind)
        finally:
            self.channel.release(self)
            self._open = False
            self._logger.info(f"[TraceGate] session closed on '{self.channel.name}'")

    @property
    def is_open(self) -> bool:
        return self._open

    def __enter__(self) -> "CaptureSession":
        return self.open()

    def __exit__(self, *exc) -> None:
        self.close()


def configure(channel: EventChannel, sources: Iterable[EventSourceSpec]) -> CaptureSession:
    """Validate `sources`, then open and return a session holding `channel`."""
    return CaptureSession(channel, sources).open()
