from dataclasses import dataclass
from typing import Callable, Iterable

from tracegate.events.schema import EventRecord
from tracegate.metrics.extractor import extract


@dataclass(frozen=True)
class AggregateResult:
    """
    Reduction of one measurement phase.

    Per-unit values use floor division, matching how thresholds are stated.
    """

    total_units: int
    sum: int
    event_count: int

    @property
    def per_unit(self) -> int:
        return self.sum // self.total_units

    @property
    def count_per_unit(self) -> int:
        return self.event_count // self.total_units

    def to_dict(self):
        return {
            "total_units": self.total_units,
            "sum": self.sum,
            "event_count": self.event_count,
            "per_unit": self.per_unit,
            "count_per_unit": self.count_per_unit,
        }


def reduce_events(
    events: Iterable[EventRecord],
    total_units: int,
    extractor: Callable[[EventRecord], int] = extract,
) -> AggregateResult:
    """Sum metric contributions over `events` in a single pass."""
    if total_units <= 0:
        raise ValueError(f"total_units must be positive, got {total_units}")

    total = 0
    count = 0
    for record in events:
        total += extractor(record)
        count += 1
    return AggregateResult(total_units=int(total_units), sum=total, event_count=count)
