"""
Glob pattern compiler.

Implements the pattern syntax of the workspace file watching protocol:

    *         zero or more characters within one path segment
    **/       zero or more complete path segments
    **        (at the end of a pattern) everything that remains
    ?         one character within a path segment
    [a-z]     one character inside the ranges, [!a-z] outside them
    {a,b}     any of the comma separated conditions

Patterns compile into matcher trees (see ``matchers``) anchored at both
ends of the candidate string.
"""

import logging
from typing import List, Union

from .exceptions import PatternSyntaxError
from .matchers import (
    EMPTY,
    END,
    PATH_SEPARATOR,
    AnyChar,
    CharRanges,
    Literal,
    Matcher,
    Repeat,
    sequence,
    union,
)

logger = logging.getLogger(__name__)

_SEGMENT_CHAR = AnyChar()
_ANY_CHAR = AnyChar(cross_separator=True)

STAR = Repeat(_SEGMENT_CHAR)
DOUBLE_STAR = Repeat(_ANY_CHAR)
DOUBLE_STAR_SEGMENTS = union(EMPTY, sequence(DOUBLE_STAR, Literal(PATH_SEPARATOR)))


class _GlobParser:
    """Recursive descent parser producing one matcher per glob."""

    def __init__(self, pattern: str):
        self.pattern = pattern
        self.pos = 0

    def parse(self) -> Matcher:
        elements: List[Matcher] = []
        while not self._at_end():
            elements.append(self._element())
        elements.append(END)
        return sequence(*elements)

    def _at_end(self) -> bool:
        return self.pos >= len(self.pattern)

    def _peek(self) -> str:
        return self.pattern[self.pos] if self.pos < len(self.pattern) else ""

    def _error(self, message: str, position: int) -> PatternSyntaxError:
        return PatternSyntaxError(self.pattern, message, position)

    def _element(self) -> Matcher:
        char = self._peek()
        if char == "*":
            return self._stars()
        if char == "?":
            self.pos += 1
            return _SEGMENT_CHAR
        if char == "[":
            return self._char_class()
        if char == "{":
            return self._brace_group()
        self.pos += 1
        return Literal(char)

    def _stars(self) -> Matcher:
        start = self.pos
        while self._peek() == "*":
            self.pos += 1
        # Only an exact "**" that ends the pattern or a segment crosses separators.
        if self.pos - start == 2:
            if self._at_end():
                return DOUBLE_STAR
            if self._peek() == PATH_SEPARATOR:
                self.pos += 1
                return DOUBLE_STAR_SEGMENTS
        return STAR

    def _char_class(self) -> Matcher:
        start = self.pos
        self.pos += 1
        negated = self._peek() == "!"
        if negated:
            self.pos += 1

        ranges = []
        while True:
            if self._at_end():
                raise self._error("unclosed character class", start)
            if self._peek() == "]":
                if not ranges:
                    raise self._error("empty character class", start)
                self.pos += 1
                break
            lo = self._peek()
            self.pos += 1
            if self._at_end():
                raise self._error("unclosed character class", start)
            if self._peek() != "-":
                raise self._error("character class entries must be ranges such as a-z", self.pos - 1)
            self.pos += 1
            hi = self._peek()
            if hi == "":
                raise self._error("unclosed character class", start)
            if hi == "]":
                raise self._error("range is missing its upper bound", self.pos)
            self.pos += 1
            if lo > hi:
                raise self._error(f"invalid range {lo}-{hi}", self.pos - 3)
            ranges.append((lo, hi))

        matcher: Matcher = CharRanges(tuple(ranges))
        if negated:
            matcher = _ANY_CHAR - matcher
        return matcher

    def _brace_group(self) -> Matcher:
        start = self.pos
        self.pos += 1
        conditions = [self._condition()]
        while self._peek() == ",":
            self.pos += 1
            conditions.append(self._condition())
        if self._peek() != "}":
            raise self._error("unclosed brace group", start)
        self.pos += 1
        return union(*conditions)

    def _condition(self) -> Matcher:
        # TODO: give '*' its wildcard meaning inside braces. The star would have to stop
        # at the text following the closing brace, not at the next condition.
        elements: List[Matcher] = []
        while not self._at_end() and self._peek() not in ",}":
            char = self._peek()
            if char == "?":
                self.pos += 1
                elements.append(_SEGMENT_CHAR)
            elif char == "[":
                elements.append(self._char_class())
            elif char == "{":
                elements.append(self._brace_group())
            else:
                self.pos += 1
                elements.append(Literal(char))
        return sequence(*elements)


def parse(pattern: str) -> Matcher:
    """
    Compile a glob pattern into a matcher.

    Args:
        pattern: The raw glob pattern

    Returns:
        A matcher that tests whole strings against the pattern

    Raises:
        PatternSyntaxError: If the pattern is malformed
    """
    matcher = _GlobParser(pattern).parse()
    logger.debug(f"Compiled glob {pattern!r}")
    return matcher


def match(pattern: Union[str, Matcher], text: str) -> bool:
    """
    Check whether ``text`` matches a glob.

    Args:
        pattern: Raw glob pattern or an already compiled matcher
        text: The string to test

    Returns:
        True if the whole of ``text`` matches
    """
    if isinstance(pattern, str):
        pattern = parse(pattern)
    return pattern.matches(text)


# Same directories as the files.watcherExclude default of VS Code.
DEFAULT_EXCLUDE_PATTERNS = (
    "**/.git/{objects,subtree-cache}/**",
    "**/node_modules/*/**",
    "**/.hg/store/**",
)

DEFAULT_EXCLUDE = union(*(parse(p) for p in DEFAULT_EXCLUDE_PATTERNS))
