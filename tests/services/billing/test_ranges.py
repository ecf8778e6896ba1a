from dataclasses import dataclass

from src.services.billing.ranges import SpanKeys, adjacency_issues, find_containing, sort_spans


@dataclass(frozen=True)
class Span:
    start: int
    end: int | None


INCLUSIVE = SpanKeys[Span](
    start=lambda s: s.start,
    end=lambda s: s.end,
    inclusive_end=True,
    next_start=lambda end: end + 1,
)
HALF_OPEN = SpanKeys[Span](start=lambda s: s.start, end=lambda s: s.end)


class TestSpanKeys:
    def test_inclusive_contains_end(self) -> None:
        assert INCLUSIVE.contains(Span(1, 5), 5)
        assert not INCLUSIVE.contains(Span(1, 5), 6)

    def test_half_open_excludes_end(self) -> None:
        assert HALF_OPEN.contains(Span(1, 5), 4)
        assert not HALF_OPEN.contains(Span(1, 5), 5)

    def test_unbounded(self) -> None:
        assert INCLUSIVE.contains(Span(3, None), 10_000)
        assert not INCLUSIVE.contains(Span(3, None), 2)


class TestAdjacency:
    def test_contiguous_sets_have_no_issues(self) -> None:
        assert adjacency_issues([Span(1, 2), Span(3, 10)], INCLUSIVE) == []
        assert adjacency_issues([Span(1, 2), Span(2, 10)], HALF_OPEN) == []

    def test_gap_and_overlap(self) -> None:
        spans = sort_spans([Span(8, 9), Span(1, 2), Span(5, 8)], INCLUSIVE)
        kinds = [(i.kind, i.before_index, i.after_index) for i in adjacency_issues(spans, INCLUSIVE)]
        assert kinds == [("gap", 0, 1), ("overlap", 1, 2)]

    def test_find_containing_first_match(self) -> None:
        spans = [Span(1, 2), Span(3, 10)]
        assert find_containing(spans, 3, INCLUSIVE) == Span(3, 10)
        assert find_containing(spans, 11, INCLUSIVE) is None
