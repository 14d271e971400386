"""
Measurement scenarios.

A Scenario bundles what to capture (sources), what to keep (predicate) and
what to require (threshold). `run_scenario` opens a capture session for it
and drives one RegressionGate pass; `run_baseline` reports windowed
aggregates over a long run without gating, for establishing thresholds.
"""

from dataclasses import dataclass, field
from typing import Callable, Iterator, List, Optional, Tuple

from tracegate.events.catalog import (
    ALLOCATION_IN_BUFFER,
    ALLOCATION_OUTSIDE_BUFFER,
    SOCKET_READ,
    SOCKET_WRITE,
)
from tracegate.events.channel import EventChannel
from tracegate.events.filters import (
    FilterPredicate,
    field_equals,
    kind_in,
    thread_name_startswith,
)
from tracegate.events.schema import EventRecord
from tracegate.events.source import (
    EventSourceSpec,
    allocation_sources,
    socket_io_sources,
)
from tracegate.harness.gate import BelowThreshold, CountEquals, RegressionGate, Verdict, Workload
from tracegate.harness.session import configure
from tracegate.loggers.error_log import get_error_logger
from tracegate.metrics.aggregate import AggregateResult, reduce_events
from tracegate.metrics.extractor import extract
from tracegate.runtime.launcher import load_settings
from tracegate.runtime.settings import HarnessSettings

# Thread name prefixes of the request-handling threads in the service under test
REQUEST_THREAD_PREFIXES: Tuple[str, ...] = ("vert.x-eventloop", "executor-thread")


@dataclass(frozen=True)
class Scenario:
    name: str
    sources: Tuple[EventSourceSpec, ...]
    predicate: FilterPredicate
    threshold: object
    extractor: Callable[[EventRecord], int] = field(default=extract, compare=False)


def allocation_scenario(
    max_bytes_per_unit: int = 33_000,
    thread_prefixes: Tuple[str, ...] = REQUEST_THREAD_PREFIXES,
    threshold: int = 0,
    name: str = "allocation",
) -> Scenario:
    """Bytes allocated per request on the request-handling threads."""
    return Scenario(
        name=name,
        sources=tuple(allocation_sources(threshold)),
        predicate=kind_in(ALLOCATION_IN_BUFFER, ALLOCATION_OUTSIDE_BUFFER)
        & thread_name_startswith(*thread_prefixes),
        threshold=BelowThreshold(max_bytes_per_unit, unit="bytes"),
    )


def database_io_predicate(port: int) -> FilterPredicate:
    return kind_in(SOCKET_READ, SOCKET_WRITE) & field_equals("port", int(port))


def database_io_count_scenario(
    port: int, expected_ops_per_unit: int = 4, name: str = "database-io-count"
) -> Scenario:
    """Socket round trips to one downstream port per request (statement + commit)."""
    return Scenario(
        name=name,
        sources=tuple(socket_io_sources(threshold=0)),
        predicate=database_io_predicate(port),
        threshold=CountEquals(expected_ops_per_unit),
    )


def database_io_bytes_scenario(
    port: int, max_bytes_per_unit: int = 480, name: str = "database-io-bytes"
) -> Scenario:
    """Bytes read and written to one downstream port per request."""
    return Scenario(
        name=name,
        sources=tuple(socket_io_sources(threshold=0)),
        predicate=database_io_predicate(port),
        threshold=BelowThreshold(max_bytes_per_unit, unit="bytes"),
    )


def run_scenario(
    channel: EventChannel,
    workload: Workload,
    scenario: Scenario,
    settings: Optional[HarnessSettings] = None,
) -> Verdict:
    """
    Open a session for `scenario`, run one gate pass and close the session.

    `settings` (or, when omitted, the TRACEGATE_* environment) is applied to
    the process config first, so logging and event persistence follow it.
    """
    settings = load_settings(settings)
    with configure(channel, scenario.sources) as session:
        gate = RegressionGate(
            session=session,
            workload=workload,
            predicate=scenario.predicate,
            threshold=scenario.threshold,
            iterations=settings.iterations,
            warmup_iterations=settings.warmup_iterations,
            capture_during_warmup=settings.capture_during_warmup,
            extractor=scenario.extractor,
            progress_interval=settings.progress_interval,
            name=scenario.name,
        )
        return gate.run()


def run_baseline(
    channel: EventChannel,
    workload: Workload,
    sources: List[EventSourceSpec],
    predicate: FilterPredicate,
    total_iterations: int,
    window: int,
    extractor: Callable[[EventRecord], int] = extract,
) -> Iterator[Tuple[int, AggregateResult]]:
    """
    Yield (iterations executed, window aggregate) every `window` units.

    Each window is flushed, reduced and reset independently, so early
    windows show warm-up cost and later ones approach steady state.
    """
    if window <= 0:
        raise ValueError(f"window must be positive, got {window}")
    logger = get_error_logger("Baseline")
    with configure(channel, sources) as session:
        session.reset()
        for i in range(1, total_iterations + 1):
            workload(i)
            if i % window == 0:
                session.flush()
                result = reduce_events(session.events(predicate), window, extractor)
                logger.info(
                    f"[TraceGate] Requests executed: {i}, {result.per_unit} per request"
                )
                session.reset()
                yield i, result
