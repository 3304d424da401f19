"""Code block extraction from the markdown-it token stream"""

from dataclasses import dataclass
from typing import Optional

from postpub.core.extract.callouts import parse_descriptions, strip_markers
from postpub.core.models import CodeBlock
from postpub.core.utils.tokens import fence_language


CODE_TOKENS = ('fence', 'code_block')


@dataclass
class ExtractedCode:
    """A code block located in the token stream, with its callout description list if one follows."""
    index:        int                   # token index of the fence
    block:        CodeBlock
    lines:        list[str]             # code lines, markers stripped
    markers:      list[list[int]]       # markers per line
    descriptions: Optional[list[tuple[int, str]]] = None
    list_index:   Optional[int] = None  # token index of the description paragraph_open

    @property
    def flat_markers(self) -> list[int]:
        return [n for nums in self.markers for n in nums]


def _description_paragraph(tokens: list, i: int) -> tuple[Optional[int], Optional[list[tuple[int, str]]]]:
    """Return (paragraph_open index, descriptions) if the block after token i is a callout list."""
    if i + 2 < len(tokens) and tokens[i + 1].type == 'paragraph_open' and tokens[i + 2].type == 'inline':
        items = parse_descriptions(tokens[i + 2].content)
        if items:
            return i + 1, items
    return None, None


def extract_code_blocks(tokens: list) -> list[ExtractedCode]:
    """Return every fenced or indented code block in document order."""
    found: list[ExtractedCode] = []
    for i, tok in enumerate(tokens):
        if tok.type not in CODE_TOKENS:
            continue
        lines, markers = strip_markers(tok.content)
        list_index, descriptions = _description_paragraph(tokens, i)
        block = CodeBlock(
            position=len(found),
            text="\n".join(lines),
            language=fence_language(tok) if tok.type == 'fence' else None,
            callouts=tuple(n for nums in markers for n in nums),
        )
        found.append(ExtractedCode(i, block, lines, markers, descriptions, list_index))
    return found
