"""Reference resolution: include expansion, image and inter-document link lookup"""

import logging
import posixpath
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Optional
from urllib.parse import unquote

from postpub.core.errors import BrokenReferenceWarning
from postpub.core.load import DEFAULT_EXTENSIONS
from postpub.core.models import Document, Reference, ReferenceKind, ReferenceStatus, ResolvedDocument
from postpub.core.parse import make_parser, track_fence
from postpub.core.utils.tokens import iter_inline


logger = logging.getLogger(__name__)

INCLUDE_RE = re.compile(r'^[ \t]*include::(?P<target>[^\[\s]+)\[(?P<attrs>[^\]]*)\][ \t]*$')
IMAGE_MACRO_RE = re.compile(r'^image::(?P<target>[^\[\s]+)\[(?P<alt>[^\]]*)\][ \t]*$')
TAG_MARKER_RE = re.compile(r'\b(?P<kind>tag|end)::(?P<name>[\w-]+)\[\]')
EXTERNAL_RE = re.compile(r'^(?:[a-zA-Z][a-zA-Z0-9+.-]*:|//)')


def output_relpath(doc: Document, content_root: Path) -> str:
    """Return the POSIX output path of a document's page, mirroring its source directory."""
    try:
        parent = doc.path.parent.relative_to(content_root)
    except ValueError:
        parent = Path()
    return posixpath.join(parent.as_posix(), f"{doc.slug}.html").removeprefix("./")


@dataclass
class LinkIndex:
    """Index mapping resolved source paths to their output page paths."""

    path_to_output: dict[Path, str]

    @classmethod
    def from_documents(cls, docs: Iterable[Document], content_root: Path) -> "LinkIndex":
        """Build a link index from loaded documents."""
        root = Path(content_root)
        root = root.parent if root.is_file() else root
        return cls({d.path.resolve(): output_relpath(d, root) for d in docs})

    def get_output(self, path: Optional[Path]) -> Optional[str]:
        """Get the output page path for a resolved source path."""
        if path is None:
            return None
        return self.path_to_output.get(path.resolve())


def split_target(target: str) -> tuple[str, str]:
    """Split 'file.md#frag' into ('file.md', '#frag'); query strings are dropped."""
    base, _, fragment = target.partition('#')
    base = base.partition('?')[0]
    return unquote(base), f"#{fragment}" if fragment else ""


def _parse_include_attrs(attrs: str) -> dict[str, str]:
    result = {}
    for item in attrs.split(','):
        key, sep, value = item.partition('=')
        if sep:
            result[key.strip()] = value.strip().strip('"')
    return result


def _select_lines(lines: list[str], spec: str) -> list[str]:
    """Keep 1-based inclusive ranges like '2..5;9' ('-1' as end means last line).

    A start below 1 is clamped to 1; a range whose end precedes its start is skipped.
    """
    keep: list[str] = []
    for part in re.split(r'[;\s]+', spec.strip()):
        if not part:
            continue
        start, _, end = part.partition('..')
        try:
            first = int(start)
            last = int(end) if end else first
        except ValueError:
            logger.warning("Ignoring invalid include line range '%s'", part)
            continue
        if last == -1:
            last = len(lines)
        first = max(first, 1)
        if last < first:
            logger.warning("Ignoring empty include line range '%s'", part)
            continue
        keep.extend(lines[first - 1:last])
    return keep


def _select_tags(lines: list[str], names: set[str]) -> list[str]:
    """Keep only lines inside the named tag regions; drop all tag marker lines."""
    active: set[str] = set()
    keep: list[str] = []
    for line in lines:
        markers = list(TAG_MARKER_RE.finditer(line))
        if markers:
            for m in markers:
                if m.group('kind') == 'tag':
                    active.add(m.group('name'))
                else:
                    active.discard(m.group('name'))
            continue
        if active & names:
            keep.append(line)
    return keep


def select_snippet(text: str, attrs: dict[str, str]) -> str:
    """Apply include attributes (tag/tags, lines) to snippet text."""
    lines = text.splitlines(keepends=True)
    tags = attrs.get('tags') or attrs.get('tag')
    if tags:
        lines = _select_tags(lines, {t for t in re.split(r'[;,]', tags) if t})
    elif 'lines' in attrs:
        lines = _select_lines(lines, attrs['lines'])
    else:
        lines = [ln for ln in lines if not TAG_MARKER_RE.search(ln)]
    return ''.join(lines)


class ReferenceResolver:
    """Resolves image, include, and link references of documents against the filesystem.

    Unresolvable targets are recorded as broken references, never raised.
    """

    def __init__(
        self,
        content_root: Path,
        asset_root: Path,
        snippets_root: Optional[Path] = None,
        extensions: Iterable[str] = DEFAULT_EXTENSIONS,
        ):
        self.content_root = Path(content_root)
        self.asset_root = Path(asset_root)
        self.snippets_root = Path(snippets_root) if snippets_root else None
        self.extensions = {e.lower() for e in extensions}
        self._parser = make_parser()

    def resolve(self, doc: Document) -> ResolvedDocument:
        """Expand includes, normalize image macros, and attach one Reference per directive."""
        body, origins, references = self._expand(doc)
        references.extend(self._scan_tokens(doc, body, origins))
        return ResolvedDocument(document=doc, body=body, references=tuple(references))

    def _find(self, target: str, roots: list[Optional[Path]]) -> Optional[Path]:
        for root in roots:
            if root is None:
                continue
            candidate = root / target
            try:
                if candidate.is_file():
                    return candidate
            except OSError as e:
                # e.g. ENAMETOOLONG; the target cannot exist
                logger.debug("Cannot stat '%s': %s", candidate, e)
        return None

    def _expand(self, doc: Document) -> tuple[str, list[int], list[Reference]]:
        """Line pass over the body. Returns (body, source line of each output line, include refs)."""
        out: list[str] = []
        origins: list[int] = []
        refs: list[Reference] = []
        fence = None

        for lineno, line in enumerate(doc.body.splitlines(keepends=True), start=1):
            m = INCLUDE_RE.match(line)
            if m:
                ref, text = self._include(doc, m, lineno)
                refs.append(ref)
                if text is None:
                    text = line
                elif line.endswith('\n') and text and not text.endswith('\n'):
                    text += '\n'
                chunk = text.splitlines(keepends=True)
                out.extend(chunk)
                origins.extend([lineno] * len(chunk))
                continue

            m = IMAGE_MACRO_RE.match(line) if fence is None else None
            if m:
                line = f"![{m.group('alt')}]({m.group('target')})\n"
            fence = track_fence(line, fence)
            out.append(line)
            origins.append(lineno)

        return ''.join(out), origins, refs

    def _include(self, doc: Document, m: re.Match, lineno: int) -> tuple[Reference, Optional[str]]:
        target = m.group('target')
        path = self._find(target, [self.snippets_root, doc.path.parent])
        if path is None:
            logger.debug("Broken include '%s' in %s:%d", target, doc.path, lineno)
            return Reference(ReferenceKind.include, target, ReferenceStatus.broken, None, lineno), None
        try:
            raw = path.read_text(encoding='utf-8')
        except (OSError, UnicodeDecodeError) as e:
            logger.warning("Unreadable include '%s' in %s:%d: %s", target, doc.path, lineno, e)
            return Reference(ReferenceKind.include, target, ReferenceStatus.broken, None, lineno), None
        text = select_snippet(raw, _parse_include_attrs(m.group('attrs')))
        return Reference(ReferenceKind.include, target, ReferenceStatus.resolved, path, lineno), text

    def resolve_image(self, doc: Document, target: str) -> Optional[Path]:
        """Absolute targets resolve under the asset root only; relative ones try the document directory too."""
        base, _ = split_target(target)
        if base.startswith('/'):
            return self._find(base.lstrip('/'), [self.asset_root])
        return self._find(base, [self.asset_root, doc.path.parent])

    def resolve_link(self, doc: Document, target: str) -> Optional[Path]:
        base, _ = split_target(target)
        if base.startswith('/'):
            return self._find(base.lstrip('/'), [self.content_root])
        return self._find(base, [doc.path.parent, self.content_root])

    def _is_document_link(self, target: str) -> bool:
        base, _ = split_target(target)
        return bool(base) and Path(base).suffix.lower() in self.extensions

    def _scan_tokens(self, doc: Document, body: str, origins: list[int]) -> list[Reference]:
        refs: list[Reference] = []
        for block, child in iter_inline(self._parser.parse(body)):
            if child.type == 'image':
                target = child.attrGet('src') or ''
                kind = ReferenceKind.image
            elif child.type == 'link_open':
                target = child.attrGet('href') or ''
                if not self._is_document_link(target):
                    continue
                kind = ReferenceKind.link
            else:
                continue
            if not target or target.startswith('#') or EXTERNAL_RE.match(target):
                continue

            path = self.resolve_image(doc, target) if kind is ReferenceKind.image else self.resolve_link(doc, target)
            line = origins[block.map[0]] if block.map and block.map[0] < len(origins) else None
            status = ReferenceStatus.resolved if path else ReferenceStatus.broken
            if path is None:
                logger.debug("Broken %s '%s' in %s", kind.value, target, doc.path)
            refs.append(Reference(kind, target, status, path, line))
        return refs


def broken_reference_warnings(resolved: ResolvedDocument) -> list[BrokenReferenceWarning]:
    """Return a BrokenReferenceWarning for every broken reference of a document."""
    return [
        BrokenReferenceWarning(resolved.document.path, r.kind.value, r.target, r.line)
        for r in resolved.references
        if r.status is ReferenceStatus.broken
    ]
