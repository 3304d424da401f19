"""Shared markdown-it token utilities"""

from typing import Iterator, Optional


def fence_language(token) -> Optional[str]:
    """Return the language tag of a fence token (first word of its info string), else None."""
    info = (token.info or '').strip()
    if not info:
        return None
    return info.split()[0].strip('{}.') or None


def iter_inline(tokens: list) -> Iterator[tuple[object, object]]:
    """Yield (block_inline_token, child) for every child of every inline token."""
    for tok in tokens:
        if tok.type == 'inline' and tok.children:
            for child in tok.children:
                yield tok, child
