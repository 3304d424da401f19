"""Export: wrap rendered bodies in a page layout and write HTML, sidecar JSON, and the run report"""

import html
import json
from functools import lru_cache
from pathlib import Path

from pygments.formatters import HtmlFormatter

from postpub.core.models import RenderedDocument
from postpub.core.report import RunReport
from postpub.core.resolve import output_relpath


REPORT_FILE = "report.json"

PAGE_TEMPLATE = """\
<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="utf-8">
<title>{title} | {site_title}</title>
<style>
{css}
</style>
</head>
<body>
<article>
<header>
<h1>{title}</h1>
<time datetime="{date_iso}">{date}</time>
{tags}
</header>
{body}
</article>
</body>
</html>
"""


@lru_cache(maxsize=8)
def highlight_css(style: str = "default") -> str:
    """Pygments CSS rules for the given style, scoped to pre.highlight."""
    return HtmlFormatter(style=style).get_style_defs('pre.highlight')


def build_page(rendered: RenderedDocument, site_title: str = "postpub", style: str = "default") -> str:
    """Return a complete HTML page for a rendered document."""
    doc = rendered.document
    tags = ""
    if doc.tags:
        items = "".join(f'<li class="tag">{html.escape(t)}</li>' for t in doc.tags)
        tags = f'<ul class="tags">{items}</ul>'
    return PAGE_TEMPLATE.format(
        title=html.escape(doc.title),
        site_title=html.escape(site_title),
        css=highlight_css(style),
        date_iso=doc.date.isoformat(),
        date=doc.date.strftime("%Y-%m-%d"),
        tags=tags,
        body=rendered.html.rstrip("\n"),
    )


def build_sidecar(rendered: RenderedDocument) -> dict:
    """Build the sidecar JSON dict: slug, path, title, date, tags, hash, references, code blocks."""
    doc = rendered.document
    return {
        "slug": doc.slug,
        "path": str(doc.path),
        "title": doc.title,
        "date": doc.date.isoformat(),
        "tags": list(doc.tags),
        "hash": rendered.hash,
        "references": [
            {
                "kind": r.kind.value,
                "target": r.target,
                "status": r.status.value,
                "path": str(r.path) if r.path else None,
                "line": r.line,
            }
            for r in rendered.references
        ],
        "code_blocks": [
            {"position": b.position, "language": b.language, "callouts": list(b.callouts)}
            for b in rendered.code_blocks
        ],
    }


def write_doc(
    rendered: RenderedDocument,
    output_dir: Path,
    content_root: Path,
    site_title: str = "postpub",
    style: str = "default",
    ) -> tuple[Path, Path]:
    """Write HTML + sidecar JSON for a single document.

    Output path mirrors the source directory structure:
      output_dir / <source dir relative to content_root> / slug.{html|json}

    Returns (html_path, json_path).
    """
    html_path = output_dir / output_relpath(rendered.document, content_root)
    json_path = html_path.with_suffix(".json")
    html_path.parent.mkdir(parents=True, exist_ok=True)

    html_path.write_text(build_page(rendered, site_title, style), encoding='utf-8')
    json_path.write_text(json.dumps(build_sidecar(rendered), indent=2, ensure_ascii=False), encoding='utf-8')
    return html_path, json_path


def write_report(report: RunReport, output_dir: Path) -> Path:
    """Write the run report as JSON. Returns its path."""
    output_dir.mkdir(parents=True, exist_ok=True)
    path = output_dir / REPORT_FILE
    path.write_text(report.model_dump_json(indent=2), encoding='utf-8')
    return path
