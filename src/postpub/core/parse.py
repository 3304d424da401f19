"""markdown-it parser construction and line-level fence tracking"""

import re
from typing import Optional

from markdown_it import MarkdownIt


FENCE_RE = re.compile(r'^ {0,3}(`{3,}|~{3,})')


def make_parser(preset: str = 'gfm-like') -> MarkdownIt:
    """Build a MarkdownIt instance for the given preset name."""
    return MarkdownIt(preset, options_update={"linkify": False})


def track_fence(line: str, fence: Optional[str]) -> Optional[str]:
    """Return the open fence string after line, or None when outside a fenced block.

    fence is the state before line: the opening run of backticks/tildes, or None.
    """
    m = FENCE_RE.match(line)
    if fence is None:
        if m and not (m.group(1)[0] == '`' and '`' in line[m.end():]):
            return m.group(1)
        return None
    if m and m.group(1)[0] == fence[0] and len(m.group(1)) >= len(fence) and not line[m.end():].strip():
        return None
    return fence
