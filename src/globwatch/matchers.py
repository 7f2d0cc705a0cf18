"""
Composable matchers over path strings.

Matchers form an immutable tree. Every node yields the end positions it can
reach from a start position, earliest first. A sequence carries the whole
set of reachable positions from one element to the next, which explores
every alternative without backtracking. Glob patterns compile into these trees and
the registration code combines them into coarse per-directory filters.

Operators:
    a | b   union (either operand matches)
    a + b   sequence (a's span immediately followed by b's span)
    a - b   difference (a, provided b does not match at the same position)
"""

import functools
import operator
from dataclasses import dataclass
from typing import Iterable, Iterator, Tuple

PATH_SEPARATOR = "/"


class Matcher:
    """Base class of all matchers."""

    def ends(self, text: str, pos: int) -> Iterator[int]:
        """
        Yield every position where a match starting at ``pos`` can end.

        Args:
            text: The candidate string
            pos: Index in ``text`` where matching starts

        Returns:
            Iterator of end positions, shortest match first
        """
        raise NotImplementedError

    def matches(self, text: str) -> bool:
        """Return True if the matcher spans the whole of ``text``."""
        size = len(text)
        return any(end == size for end in self.ends(text, 0))

    def __or__(self, other: "Matcher") -> "Matcher":
        return union(self, other)

    def __add__(self, other: "Matcher") -> "Matcher":
        return sequence(self, other)

    def __sub__(self, other: "Matcher") -> "Matcher":
        return Difference(self, other)


@dataclass(frozen=True)
class Never(Matcher):
    """Matches nothing. Identity element of union."""

    def ends(self, text: str, pos: int) -> Iterator[int]:
        return iter(())


@dataclass(frozen=True)
class Empty(Matcher):
    """Matches the empty string."""

    def ends(self, text: str, pos: int) -> Iterator[int]:
        yield pos


@dataclass(frozen=True)
class End(Matcher):
    """Matches only at the end of the text."""

    def ends(self, text: str, pos: int) -> Iterator[int]:
        if pos == len(text):
            yield pos


@dataclass(frozen=True)
class Literal(Matcher):
    """Matches exactly ``text``."""
    text: str

    def ends(self, text: str, pos: int) -> Iterator[int]:
        if text.startswith(self.text, pos):
            yield pos + len(self.text)


@dataclass(frozen=True)
class AnyChar(Matcher):
    """Matches one character, the path separator only if ``cross_separator``."""
    cross_separator: bool = False

    def ends(self, text: str, pos: int) -> Iterator[int]:
        if pos < len(text) and (self.cross_separator or text[pos] != PATH_SEPARATOR):
            yield pos + 1


@dataclass(frozen=True)
class CharRanges(Matcher):
    """Matches one character inside any of the inclusive ``(lo, hi)`` ranges."""
    ranges: Tuple[Tuple[str, str], ...]

    def ends(self, text: str, pos: int) -> Iterator[int]:
        if pos >= len(text):
            return
        char = text[pos]
        if any(lo <= char <= hi for lo, hi in self.ranges):
            yield pos + 1


@dataclass(frozen=True)
class Difference(Matcher):
    """Matches what ``matcher`` matches where ``excluded`` does not match."""
    matcher: Matcher
    excluded: Matcher

    def ends(self, text: str, pos: int) -> Iterator[int]:
        if any(True for _ in self.excluded.ends(text, pos)):
            return
        yield from self.matcher.ends(text, pos)


@dataclass(frozen=True)
class Repeat(Matcher):
    """
    Lazy repetition of ``matcher``, at least ``minimum`` times.

    The shortest repetition is yielded first, so a repetition followed by
    more elements in a sequence stops as soon as the rest matches. The
    repeated matcher must consume input on every step.
    """
    matcher: Matcher
    minimum: int = 0

    def ends(self, text: str, pos: int) -> Iterator[int]:
        frontier = [pos]
        seen = {pos}
        count = 0
        while frontier:
            if count >= self.minimum:
                yield from frontier
            step = []
            for start in frontier:
                for end in self.matcher.ends(text, start):
                    if end not in seen:
                        seen.add(end)
                        step.append(end)
            frontier = step
            count += 1


@dataclass(frozen=True)
class Sequence(Matcher):
    """
    Concatenation: each element starts where the previous one ended.

    Elements are applied to the set of positions reached so far rather than
    one path at a time, so a run of stars costs one pass per element
    instead of one pass per combination of star lengths.
    """
    matchers: Tuple[Matcher, ...]

    def ends(self, text: str, pos: int) -> Iterator[int]:
        positions = [pos]
        for matcher in self.matchers:
            reached = set()
            for start in positions:
                reached.update(matcher.ends(text, start))
            if not reached:
                return iter(())
            positions = sorted(reached)
        return iter(positions)


@dataclass(frozen=True)
class Union(Matcher):
    """Ordered alternation: operands are tried in declaration order."""
    matchers: Tuple[Matcher, ...]

    def ends(self, text: str, pos: int) -> Iterator[int]:
        seen = set()
        for matcher in self.matchers:
            for end in matcher.ends(text, pos):
                if end not in seen:
                    seen.add(end)
                    yield end


NEVER = Never()
EMPTY = Empty()
END = End()


def union(*matchers: Matcher) -> Matcher:
    """Build the union of ``matchers``, flattening nested unions and dropping NEVER."""
    operands = []
    for matcher in matchers:
        if isinstance(matcher, Union):
            operands.extend(matcher.matchers)
        elif not isinstance(matcher, Never):
            operands.append(matcher)
    if not operands:
        return NEVER
    if len(operands) == 1:
        return operands[0]
    return Union(tuple(operands))


def sequence(*matchers: Matcher) -> Matcher:
    """Build the concatenation of ``matchers``, merging adjacent literals."""
    elements = []
    for matcher in matchers:
        parts = matcher.matchers if isinstance(matcher, Sequence) else (matcher,)
        for part in parts:
            if isinstance(part, Never):
                return NEVER
            if isinstance(part, Empty):
                continue
            if isinstance(part, Literal) and elements and isinstance(elements[-1], Literal):
                elements[-1] = Literal(elements[-1].text + part.text)
            else:
                elements.append(part)
    if not elements:
        return EMPTY
    if len(elements) == 1:
        return elements[0]
    return Sequence(tuple(elements))


def union_all(matchers: Iterable[Matcher]) -> Matcher:
    """Fold ``matchers`` into one union, starting from NEVER."""
    return functools.reduce(operator.or_, matchers, NEVER)
