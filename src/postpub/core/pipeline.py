"""Pipeline orchestration: load -> resolve -> render (parallel) -> filter -> export"""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from postpub.config import Settings
from postpub.core.errors import BrokenReferenceWarning, OutputConflictError, PostpubError, RenderError
from postpub.core.export import write_doc, write_report
from postpub.core.load import check_root, load_documents
from postpub.core.models import Document, RenderedDocument
from postpub.core.publish import filter_published, publish_status
from postpub.core.render import Renderer
from postpub.core.report import ExcludedEntry, RunReport
from postpub.core.resolve import LinkIndex, ReferenceResolver, broken_reference_warnings, output_relpath


logger = logging.getLogger(__name__)


@dataclass
class BuildResult:
    """Outcome of a run: every rendered document, the eligible subset, and the report."""
    rendered:  list[RenderedDocument] = field(default_factory=list)
    published: list[RenderedDocument] = field(default_factory=list)
    report:    RunReport = field(default_factory=RunReport)
    base_dir:  Path = Path(".")


@dataclass
class _Outcome:
    """What one per-document task produced. Tasks share nothing; the caller aggregates."""
    rendered: Optional[RenderedDocument] = None
    broken:   list[BrokenReferenceWarning] = field(default_factory=list)
    error:    Optional[PostpubError] = None


def _base_dir(root: Path) -> Path:
    return root.parent if root.is_file() else root


def _drop_conflicts(published: list[RenderedDocument], base_dir: Path, report: RunReport) -> list[RenderedDocument]:
    """Keep the first document per output page (discovery order); report the rest as failures."""
    claimed: dict[str, Path] = {}
    kept = []
    for rendered in published:
        doc = rendered.document
        dest = output_relpath(doc, base_dir)
        if dest in claimed:
            error = OutputConflictError(doc.path, f"output page {dest} already written for {claimed[dest]}")
            logger.warning("Skipping %s", error)
            report.add_failure(error)
            continue
        claimed[dest] = doc.path
        kept.append(rendered)
    return kept


def process_document(
    doc: Document,
    resolver: ReferenceResolver,
    renderer: Renderer,
    cancel: Optional[threading.Event] = None,
    ) -> Optional[_Outcome]:
    """Resolve and render one document. Returns None if the run was cancelled before it started."""
    if cancel is not None and cancel.is_set():
        return None
    resolved = resolver.resolve(doc)
    rendered = renderer.render(resolved)
    logger.debug("Rendered %s", doc.path)
    return _Outcome(rendered=rendered, broken=broken_reference_warnings(resolved))


def run_build(
    settings: Settings,
    now: Optional[datetime] = None,
    cancel: Optional[threading.Event] = None,
    ) -> BuildResult:
    """Run load, resolve, render, and filter over settings.content_dir.

    Raises ContentRootError if the content root cannot be read; every other
    failure is per-document and ends up in the report.
    """
    now = now or datetime.now(timezone.utc)
    root = check_root(Path(settings.content_dir))
    base_dir = _base_dir(root)
    report = RunReport()

    docs = list(load_documents(
        root, settings.extensions, settings.front_matter_marker, on_error=report.add_failure,
    ))
    report.loaded = len(docs)
    logger.info("Loaded %d document(s) from %s", len(docs), root)

    resolver = ReferenceResolver(
        content_root=base_dir,
        asset_root=Path(settings.asset_dir),
        snippets_root=Path(settings.snippets_dir) if settings.snippets_dir else None,
        extensions=settings.extensions,
    )
    renderer = Renderer(
        link_index=LinkIndex.from_documents(docs, base_dir),
        content_root=base_dir,
        asset_root=Path(settings.asset_dir),
        image_url_prefix=settings.image_url_prefix,
    )

    with ThreadPoolExecutor(max_workers=settings.workers, thread_name_prefix="postpub") as pool:
        futures = [pool.submit(process_document, d, resolver, renderer, cancel) for d in docs]
        outcomes = []
        for doc, future in zip(docs, futures):
            try:
                outcomes.append(future.result())
            except PostpubError as e:
                logger.warning("Skipping %s", e)
                outcomes.append(_Outcome(error=e))
            except Exception as e:
                logger.exception("Unexpected failure processing %s", doc.path)
                outcomes.append(_Outcome(error=RenderError(doc.path, f"{type(e).__name__}: {e}")))

    result = BuildResult(report=report, base_dir=base_dir)
    for outcome in outcomes:
        if outcome is None:
            report.cancelled = True
            continue
        if outcome.error is not None:
            report.add_failure(outcome.error)
            continue
        result.rendered.append(outcome.rendered)
        for warning in outcome.broken:
            report.add_broken_reference(warning)
        for error in outcome.rendered.callout_errors:
            report.add_callout_error(error)

    result.published = _drop_conflicts(filter_published(result.rendered, now), base_dir, report)
    for rendered in result.rendered:
        eligible, reason = publish_status(rendered.document, now)
        if not eligible:
            report.excluded.append(ExcludedEntry(path=str(rendered.document.path), slug=rendered.slug, reason=reason))

    report.rendered = len(result.rendered)
    report.published = len(result.published)
    if report.cancelled:
        logger.warning("Run cancelled: %d of %d document(s) rendered", report.rendered, report.loaded)
    return result


def run_export(
    result: BuildResult,
    output_dir: Path,
    site_title: str = "postpub",
    highlight_style: str = "default",
    ) -> list[tuple[str, Path]]:
    """Write published pages + sidecars and the run report. Returns (slug, html_path) pairs."""
    output_dir.mkdir(parents=True, exist_ok=True)
    results = []
    for rendered in result.published:
        html_path, _ = write_doc(rendered, output_dir, result.base_dir, site_title, highlight_style)
        results.append((rendered.slug, html_path))
    write_report(result.report, output_dir)
    return results
