"""
Regression gate.

Drives one measurement pass through the phases

    IDLE -> WARMING_UP -> MEASURING -> REDUCED -> GATED

- warm_up():  runs the warm-up units; their events are discarded
- measure():  resets the buffer, runs exactly N measured units, flushes
- reduce():   filters the snapshot and reduces it to an AggregateResult
- gate():     compares the result to the threshold and returns a Verdict

A pass is definitive: nothing is retried, and any fault (flush failure,
workload failure) propagates and leaves the gate unusable. Exceeding the
threshold is a failed verdict, not an exception.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from tracegate.errors import PhaseError
from tracegate.events.filters import FilterPredicate
from tracegate.events.schema import EventRecord
from tracegate.harness.session import CaptureSession
from tracegate.loggers.error_log import get_error_logger
from tracegate.metrics.aggregate import AggregateResult, reduce_events
from tracegate.metrics.extractor import extract

Workload = Callable[[int], None]


class Phase(str, Enum):
    IDLE = "idle"
    WARMING_UP = "warming_up"
    MEASURING = "measuring"
    REDUCED = "reduced"
    GATED = "gated"
    FAILED = "failed"


@dataclass(frozen=True)
class BelowThreshold:
    """Passes if the per-unit metric is strictly below `limit`."""

    limit: int
    unit: str = "bytes"

    def observe(self, result: AggregateResult) -> int:
        return result.per_unit

    def check(self, result: AggregateResult) -> bool:
        return self.observe(result) < self.limit

    def describe(self) -> str:
        return f"{self.unit}/unit < {self.limit}"


@dataclass(frozen=True)
class CountEquals:
    """Passes if the per-unit event count is exactly `expected`."""

    expected: int

    def observe(self, result: AggregateResult) -> int:
        return result.count_per_unit

    def check(self, result: AggregateResult) -> bool:
        return self.observe(result) == self.expected

    def describe(self) -> str:
        return f"events/unit == {self.expected}"


@dataclass(frozen=True)
class Verdict:
    name: str
    result: AggregateResult
    threshold: object
    observed: int
    passed: bool

    @property
    def failed(self) -> bool:
        return not self.passed


class RegressionGate:

    def __init__(
        self,
        session: CaptureSession,
        workload: Workload,
        predicate: FilterPredicate,
        threshold,
        iterations: int,
        warmup_iterations: int = 0,
        capture_during_warmup: bool = False,
        extractor: Callable[[EventRecord], int] = extract,
        progress_interval: int = 0,
        name: str = "gate",
    ) -> None:
        if iterations <= 0:
            raise ValueError(f"iterations must be positive, got {iterations}")
        if warmup_iterations < 0:
            raise ValueError(f"warmup_iterations must be >= 0, got {warmup_iterations}")

        self.session = session
        self.workload = workload
        self.predicate = predicate
        self.threshold = threshold
        self.iterations = int(iterations)
        self.warmup_iterations = int(warmup_iterations)
        self.capture_during_warmup = capture_during_warmup
        self.extractor = extractor
        self.progress_interval = int(progress_interval)
        self.name = name

        self.phase = Phase.IDLE
        self.result: Optional[AggregateResult] = None
        self.verdict: Optional[Verdict] = None
        self._logger = get_error_logger("RegressionGate")

    def _expect(self, *phases: Phase) -> None:
        if self.phase not in phases:
            raise PhaseError(
                f"[{self.name}] cannot leave phase '{self.phase.value}' here, "
                f"expected one of {[p.value for p in phases]}"
            )

    def _drive(self, count: int, label: str) -> None:
        for i in range(1, count + 1):
            self.workload(i)
            if self.progress_interval and i % self.progress_interval == 0:
                self._logger.info(f"[TraceGate] {self.name} {label}: {i}/{count}")

    def _run_phase(self, fn: Callable[[], None]) -> None:
        try:
            fn()
        except BaseException:
            self.phase = Phase.FAILED
            raise

    def warm_up(self) -> None:
        self._expect(Phase.IDLE)
        self.phase = Phase.WARMING_UP

        def run():
            if not self.capture_during_warmup:
                self.session.pause()
            self._drive(self.warmup_iterations, "warm-up")

        self._run_phase(run)

    def measure(self) -> None:
        self._expect(Phase.WARMING_UP)
        self.phase = Phase.MEASURING

        def run():
            # reset() drains in-flight warm-up events before clearing
            self.session.reset()
            self.session.resume()
            self._drive(self.iterations, "measure")
            self.session.flush()

        self._run_phase(run)

    def reduce(self) -> AggregateResult:
        self._expect(Phase.MEASURING)

        def run():
            events = self.session.events(self.predicate)
            self.result = reduce_events(events, self.iterations, self.extractor)

        self._run_phase(run)
        self.phase = Phase.REDUCED
        self._logger.info(
            f"[TraceGate] {self.name}: {self.result.event_count} events, "
            f"sum={self.result.sum}, per_unit={self.result.per_unit}"
        )
        return self.result

    def gate(self) -> Verdict:
        self._expect(Phase.REDUCED)
        observed = self.threshold.observe(self.result)
        passed = self.threshold.check(self.result)
        self.verdict = Verdict(
            name=self.name,
            result=self.result,
            threshold=self.threshold,
            observed=observed,
            passed=passed,
        )
        self.phase = Phase.GATED
        if not passed:
            self._logger.warning(
                f"[TraceGate] {self.name}: regression, observed {observed}, "
                f"required {self.threshold.describe()}"
            )
        return self.verdict

    def run(self) -> Verdict:
        self.warm_up()
        self.measure()
        self.reduce()
        return self.gate()
