"""
Ordered range lookup shared by rate tiers and graduated pricing.

Both configurations are "a list of [start, end] spans, looked up by key, with a
contiguity rule between neighbours":

- rate tiers: half-open `time` windows per day, gaps allowed, overlaps rejected
- pricing ranges: inclusive integer unit ranges, gaps and overlaps rejected

`SpanKeys` describes how to read a span from an item; the functions below never
look at anything else.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Generic, Iterable, Literal, Sequence, TypeVar

T = TypeVar("T")

SpanIssueKind = Literal["gap", "overlap"]


@dataclass(frozen=True)
class SpanKeys(Generic[T]):
    """
    Accessors for a span.

    - end may return None for an unbounded span (only meaningful for the last one)
    - inclusive_end: True for [start, end], False for [start, end)
    - next_start: first key after an inclusive end (e.g. `end + 1`); ignored
      for half-open spans, where the next span starts exactly at `end`
    """

    start: Callable[[T], Any]
    end: Callable[[T], Any]
    inclusive_end: bool = False
    next_start: Callable[[Any], Any] | None = None

    def contains(self, item: T, key: Any) -> bool:
        start = self.start(item)
        end = self.end(item)
        if key < start:
            return False
        if end is None:
            return True
        return key <= end if self.inclusive_end else key < end

    def boundary_after(self, item: T) -> Any:
        end = self.end(item)
        if end is None:
            return None
        if self.inclusive_end and self.next_start is not None:
            return self.next_start(end)
        return end


@dataclass(frozen=True)
class SpanIssue(Generic[T]):
    """A gap or overlap between two neighbouring spans (sorted order)."""

    kind: SpanIssueKind
    before_index: int
    after_index: int
    before: T
    after: T


def sort_spans(items: Iterable[T], keys: SpanKeys[T]) -> list[T]:
    return sorted(items, key=keys.start)


def find_containing(items: Iterable[T], key: Any, keys: SpanKeys[T]) -> T | None:
    """First span (in iteration order) containing `key`, or None."""
    for item in items:
        if keys.contains(item, key):
            return item
    return None


def adjacency_issues(sorted_items: Sequence[T], keys: SpanKeys[T]) -> list[SpanIssue[T]]:
    """
    Compare each span with its predecessor.

    `sorted_items` must already be ordered by start. An unbounded span followed by
    anything is reported as an overlap.
    """
    issues: list[SpanIssue[T]] = []
    for i in range(1, len(sorted_items)):
        prev = sorted_items[i - 1]
        cur = sorted_items[i]
        expected = keys.boundary_after(prev)
        cur_start = keys.start(cur)
        if expected is None or cur_start < expected:
            issues.append(SpanIssue("overlap", i - 1, i, prev, cur))
        elif cur_start > expected:
            issues.append(SpanIssue("gap", i - 1, i, prev, cur))
    return issues


__all__ = [
    "SpanIssue",
    "SpanIssueKind",
    "SpanKeys",
    "adjacency_issues",
    "find_containing",
    "sort_spans",
]
