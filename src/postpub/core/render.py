"""Markup-to-HTML rendering with Pygments highlighting and callout annotations"""

import html
import logging
import posixpath
from pathlib import Path
from typing import Optional

from markdown_it.token import Token
from pygments import highlight
from pygments.formatters import HtmlFormatter
from pygments.lexers import TextLexer, get_lexer_by_name
from pygments.util import ClassNotFound

from postpub.core.errors import MalformedCalloutError
from postpub.core.extract.blocks import ExtractedCode, extract_code_blocks
from postpub.core.extract.callouts import validate_callouts
from postpub.core.models import CodeBlock, Reference, ReferenceKind, ReferenceStatus, RenderedDocument, ResolvedDocument
from postpub.core.parse import make_parser
from postpub.core.resolve import LinkIndex, split_target, output_relpath
from postpub.core.utils.hashing import sha256
from postpub.core.utils.tokens import iter_inline


logger = logging.getLogger(__name__)


def get_lexer(language: Optional[str]):
    """Return a Pygments lexer for the language tag, or a plain-text lexer if unknown."""
    if language:
        try:
            return get_lexer_by_name(language, stripnl=False)
        except ClassNotFound:
            logger.debug("No lexer for '%s', rendering as plain text", language)
    return TextLexer(stripnl=False)


def highlight_lines(lines: list[str], language: Optional[str]) -> list[str]:
    """Highlight code and return one HTML fragment per input line."""
    if not lines:
        return []
    out = highlight("\n".join(lines) + "\n", get_lexer(language), HtmlFormatter(nowrap=True))
    result = out.split("\n")[:len(lines)]
    # Pygments closes spans per line, so lines map one-to-one
    result.extend(html.escape(ln) for ln in lines[len(result):])
    return result


def callout_anchor(slug: str, block: int, n: int) -> str:
    return f"{slug}-callout-{block}-{n}"


class Renderer:
    """Renders resolved documents to HTML.

    Handles:
    - Syntax highlighting of fenced code blocks
    - Callout marker substitution and callout description lists
    - Rewriting links to other documents and images under the asset root
    """

    def __init__(
        self,
        link_index: Optional[LinkIndex] = None,
        content_root: Optional[Path] = None,
        asset_root: Optional[Path] = None,
        image_url_prefix: str = "/images",
        ):
        """Initialize Renderer.

        Args:
            link_index: Index mapping source paths to output pages, for link rewriting
            content_root: Root the output page paths are relative to
            asset_root: Images resolved under this root are rewritten to image_url_prefix
            image_url_prefix: URL prefix for asset images in output
        """
        self.link_index = link_index or LinkIndex({})
        self.content_root = Path(content_root) if content_root else None
        self.asset_root = Path(asset_root).resolve() if asset_root else None
        self.image_url_prefix = image_url_prefix.rstrip('/')
        self._md = make_parser()

    def render(self, resolved: ResolvedDocument) -> RenderedDocument:
        """Render a document body. Malformed callouts are recorded, never raised."""
        doc = resolved.document
        env: dict = {}
        tokens = self._md.parse(resolved.body, env)

        errors: list[MalformedCalloutError] = []
        blocks: list[CodeBlock] = []
        # Replace from the end so earlier token indices stay valid
        for code in reversed(extract_code_blocks(tokens)):
            error = self._render_code(tokens, code, doc.slug, env)
            if error:
                errors.append(MalformedCalloutError(doc.path, error, code.block.position, code.block.callouts))
                logger.warning("%s; rendering without callouts", errors[-1])
            blocks.append(code.block)

        self._rewrite_targets(tokens, resolved)
        body = self._md.renderer.render(tokens, self._md.options, env)
        return RenderedDocument(
            document=doc,
            html=body,
            hash=sha256(body),
            references=resolved.references,
            code_blocks=tuple(reversed(blocks)),
            callout_errors=tuple(reversed(errors)),
        )

    def _render_code(self, tokens: list, code: ExtractedCode, slug: str, env: dict) -> Optional[str]:
        """Swap the code token (and its description paragraph) for rendered HTML. Returns the callout error, if any."""
        token = tokens[code.index]
        problem = validate_callouts(code.flat_markers, code.descriptions)
        language = code.block.language

        if problem:
            lines = token.content.splitlines()
            annotated = highlight_lines(lines, language)
        else:
            annotated = []
            for line, nums in zip(highlight_lines(code.lines, language), code.markers):
                conums = "".join(
                    f' <a class="conum" href="#{callout_anchor(slug, code.block.position, n)}" data-value="{n}">({n})</a>'
                    for n in nums
                )
                annotated.append(line + conums)

        lang_attr = f' class="language-{html.escape(language)}" data-lang="{html.escape(language)}"' if language else ''
        code_html = f'<pre class="highlight"><code{lang_attr}>' + "\n".join(annotated) + "\n</code></pre>\n"

        if not problem and code.list_index is not None:
            items = "\n".join(
                f'<li id="{callout_anchor(slug, code.block.position, n)}" value="{n}">'
                f'{self._md.renderInline(text, env)}</li>'
                for n, text in code.descriptions
            )
            # paragraph_open, inline, paragraph_close
            tokens[code.list_index:code.list_index + 3] = [_html_token(f'<ol class="callout-list">\n{items}\n</ol>\n')]

        tokens[code.index] = _html_token(code_html)
        return problem

    def _rewrite_targets(self, tokens: list, resolved: ResolvedDocument) -> None:
        refs: dict[tuple[ReferenceKind, str], Reference] = {
            (r.kind, r.target): r for r in resolved.references if r.status is ReferenceStatus.resolved
        }
        for _, child in iter_inline(tokens):
            if child.type == 'image':
                ref = refs.get((ReferenceKind.image, child.attrGet('src') or ''))
                url = self._image_url(ref) if ref else None
                if url:
                    child.attrSet('src', url)
            elif child.type == 'link_open':
                target = child.attrGet('href') or ''
                ref = refs.get((ReferenceKind.link, target))
                url = self._link_url(resolved, ref, target) if ref else None
                if url:
                    child.attrSet('href', url)

    def _image_url(self, ref: Reference) -> Optional[str]:
        if self.asset_root is None or ref.path is None:
            return None
        try:
            rel = ref.path.resolve().relative_to(self.asset_root)
        except ValueError:
            return None
        return f"{self.image_url_prefix}/{rel.as_posix()}"

    def _link_url(self, resolved: ResolvedDocument, ref: Reference, target: str) -> Optional[str]:
        dest = self.link_index.get_output(ref.path)
        if dest is None:
            return None
        source = output_relpath(resolved.document, self.content_root or resolved.document.path.parent)
        _, fragment = split_target(target)
        return posixpath.relpath(dest, posixpath.dirname(source) or '.') + fragment


def _html_token(content: str) -> Token:
    token = Token('html_block', '', 0)
    token.content = content
    token.block = True
    return token
