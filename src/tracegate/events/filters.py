"""
Event filtering.

Predicates are small composable objects over EventRecord; `&` combines
them conjunctively. `EventStream` is a lazy, restartable view over an
immutable buffer snapshot: chaining `.filter()` composes predicates instead
of copying records, and every iteration streams over the snapshot once.
"""

from typing import Any, Callable, Iterable, Iterator, List, Sequence, Tuple

from tracegate.events.schema import EventRecord

_MISSING = object()


class FilterPredicate:
    """A named boolean test over an EventRecord."""

    def __init__(self, fn: Callable[[EventRecord], bool], description: str):
        self._fn = fn
        self.description = description

    def __call__(self, record: EventRecord) -> bool:
        return bool(self._fn(record))

    def __and__(self, other: "FilterPredicate") -> "FilterPredicate":
        return all_of(self, other)

    def __repr__(self) -> str:
        return f"FilterPredicate({self.description})"


def all_of(*predicates: FilterPredicate) -> FilterPredicate:
    preds = tuple(predicates)
    return FilterPredicate(
        lambda r: all(p(r) for p in preds),
        " and ".join(p.description for p in preds) or "any",
    )


def kind_is(kind: str) -> FilterPredicate:
    return FilterPredicate(lambda r: r.kind == kind, f"kind == {kind!r}")


def kind_in(*kinds: str) -> FilterPredicate:
    """Match any of several kinds, e.g. both socket directions as one 'I/O' concept."""
    wanted = frozenset(kinds)
    return FilterPredicate(lambda r: r.kind in wanted, f"kind in {sorted(wanted)}")


def thread_name_startswith(*prefixes: str) -> FilterPredicate:
    prefixes = tuple(prefixes)
    return FilterPredicate(
        lambda r: r.owning_thread.startswith(prefixes),
        f"thread startswith {list(prefixes)}",
    )


def field_equals(name: str, value: Any) -> FilterPredicate:
    """
    Match a payload field by value. Records whose kind has no such field
    never match.
    """
    return FilterPredicate(
        lambda r: r.get(name, _MISSING) == value, f"{name} == {value!r}"
    )


class EventStream:
    """
    Lazy, restartable sequence of records matching a chain of predicates.

    The underlying snapshot is never mutated; iterating twice yields the
    same records in the same order.
    """

    def __init__(
        self,
        snapshot: Sequence[EventRecord],
        predicates: Tuple[FilterPredicate, ...] = (),
    ):
        self._snapshot = snapshot
        self._predicates = tuple(predicates)

    def filter(self, predicate: FilterPredicate) -> "EventStream":
        return EventStream(self._snapshot, self._predicates + (predicate,))

    def __iter__(self) -> Iterator[EventRecord]:
        preds = self._predicates
        for record in self._snapshot:
            if all(p(record) for p in preds):
                yield record

    def count(self) -> int:
        return sum(1 for _ in self)

    def map(self, fn: Callable[[EventRecord], Any]) -> Iterable[Any]:
        return (fn(r) for r in self)

    def sum(self, fn: Callable[[EventRecord], int]) -> int:
        return sum(fn(r) for r in self)

    def to_list(self) -> List[EventRecord]:
        return list(self)

    @property
    def predicates(self) -> Tuple[FilterPredicate, ...]:
        return self._predicates
