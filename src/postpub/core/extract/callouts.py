"""Callout marker and callout description list parsing"""

import re
from typing import Optional


# Trailing run of <n> markers, optionally behind a line comment leader: `foo(); // <1> <2>`
MARKER_RUN_RE = re.compile(r'(?:[ \t]*(?://|#|--|;;)[ \t]*)?((?:[ \t]*<\d+>)+)[ \t]*$')
MARKER_RE = re.compile(r'<(\d+)>')
DESCRIPTION_RE = re.compile(r'^<(\d+)>[ \t]+(.*\S)[ \t]*$')


def split_markers(line: str) -> tuple[str, list[int]]:
    """Return (line without trailing markers, marker numbers in order)."""
    m = MARKER_RUN_RE.search(line)
    if not m:
        return line, []
    return line[:m.start()].rstrip(), [int(n) for n in MARKER_RE.findall(m.group(1))]


def strip_markers(code: str) -> tuple[list[str], list[list[int]]]:
    """Split code into lines, returning (stripped lines, markers per line)."""
    lines, markers = [], []
    for line in code.splitlines():
        text, nums = split_markers(line)
        lines.append(text)
        markers.append(nums)
    return lines, markers


def parse_descriptions(content: str) -> Optional[list[tuple[int, str]]]:
    """Parse a paragraph of `<n> text` lines; None if any line is not a description."""
    items = []
    for line in content.splitlines():
        m = DESCRIPTION_RE.match(line.strip())
        if not m:
            return None
        items.append((int(m.group(1)), m.group(2)))
    return items or None


def _numbering_problem(numbers: list[int]) -> Optional[str]:
    """Describe the first violation of 1..N strictly increasing numbering, if any."""
    expected = 1
    seen: set[int] = set()
    for n in numbers:
        if n in seen:
            return f"callout <{n}> is repeated"
        if n != expected:
            return f"expected callout <{expected}>, found <{n}>"
        seen.add(n)
        expected += 1
    return None


def validate_callouts(markers: list[int], descriptions: Optional[list[tuple[int, str]]]) -> Optional[str]:
    """Return a reason the markers/descriptions pair is malformed, or None if valid.

    A block with neither markers nor descriptions is valid.
    """
    if not markers and not descriptions:
        return None
    if not markers:
        return "callout descriptions without markers in the code block"
    problem = _numbering_problem(markers)
    if problem:
        return problem
    if not descriptions:
        return f"no callout descriptions follow the code block (markers {markers})"
    numbers = [n for n, _ in descriptions]
    if numbers != markers:
        return f"callout descriptions {numbers} do not match markers {markers}"
    return None
