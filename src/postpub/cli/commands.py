"""CLI command implementations"""

import logging
import signal
import threading
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Annotated, Iterator, Optional

import typer

from postpub.config import Settings, load_config
from postpub.core.errors import ContentRootError
from postpub.core.load import check_root, load_documents
from postpub.core.pipeline import BuildResult, run_build, run_export
from postpub.core.publish import as_aware, publish_status
from postpub.core.report import RunReport

ContentArg = Annotated[Optional[str], typer.Argument(help="Content directory or single file (default: content_dir setting)")]
NowOpt = Annotated[Optional[str], typer.Option("--now", help="Reference time (ISO-8601) for scheduled posts")]
StrictOpt = Annotated[bool, typer.Option("--strict", help="Exit 1 if the report lists any problem")]
VerboseOpt = Annotated[bool, typer.Option("--verbose", "-v", help="Enable debug logging")]


def _fail(msg: str, cause: Exception = None) -> None:
    """Print a user-friendly error to stderr and exit 1."""
    typer.echo(f"Error: {msg}", err=True)
    if cause:
        typer.echo(f"  {cause}", err=True)
    raise typer.Exit(1)


def _settings(overrides: dict = None) -> Settings:
    """Load config with standard CLI error handling."""
    try:
        return load_config(overrides=overrides)
    except ValueError as e:
        _fail("Invalid configuration", e)


def _configure_logging(settings: Settings, verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else getattr(logging, settings.log_level),
        format="%(levelname)s %(name)s: %(message)s",
    )


def _now(value: Optional[str]) -> Optional[datetime]:
    if value is None:
        return None
    try:
        return as_aware(datetime.fromisoformat(value))
    except ValueError as e:
        _fail(f"Invalid --now value '{value}'", e)


@contextmanager
def _cancel_on_interrupt() -> Iterator[threading.Event]:
    """Turn Ctrl-C into a cancellation request: unstarted documents are skipped, in-flight ones finish."""
    cancel = threading.Event()

    def _handler(signum, frame):
        typer.echo("Cancelling: waiting for in-flight documents...", err=True)
        cancel.set()

    try:
        previous = signal.signal(signal.SIGINT, _handler)
    except ValueError:
        # not the main thread; no handler to install
        yield cancel
        return
    try:
        yield cancel
    finally:
        signal.signal(signal.SIGINT, previous)


def _build(settings: Settings, now: Optional[datetime]) -> BuildResult:
    with _cancel_on_interrupt() as cancel:
        try:
            return run_build(settings, now=now, cancel=cancel)
        except ContentRootError as e:
            _fail("Cannot read content", e)


def _echo_report(report: RunReport) -> None:
    """Print problems and a summary line."""
    for line in report.summary_lines():
        typer.echo(f"  {line}")
    for entry in report.excluded:
        typer.echo(f"  held back: {entry.slug} ({entry.reason})")
    typer.echo(
        f"{report.loaded} loaded, "
        f"{report.rendered} rendered, "
        f"{report.published} published, "
        f"{len(report.failures)} failed, "
        f"{len(report.broken_references)} broken reference(s), "
        f"{len(report.malformed_callouts)} malformed callout(s)"
    )


def build_cmd(
    path: ContentArg = None,
    out: Annotated[Optional[str], typer.Option("--out-dir", help="Output directory")] = None,
    assets: Annotated[Optional[str], typer.Option("--asset-dir", help="Image asset root")] = None,
    snippets: Annotated[Optional[str], typer.Option("--snippets-dir", help="Include snippet root")] = None,
    workers: Annotated[Optional[int], typer.Option("--workers", help="Documents processed in parallel")] = None,
    now: NowOpt = None,
    strict: StrictOpt = False,
    verbose: VerboseOpt = False,
    ):
    """Run the full pipeline: load -> resolve -> render -> filter -> export."""
    settings = _settings(overrides={
        "content_dir": path, "output_dir": out, "asset_dir": assets,
        "snippets_dir": snippets, "workers": workers,
    })
    _configure_logging(settings, verbose)
    result = _build(settings, _now(now))

    if result.report.cancelled:
        typer.echo("Build cancelled; nothing written.", err=True)
        raise typer.Exit(130)

    output_dir = Path(settings.output_dir)
    try:
        written = run_export(result, output_dir, settings.site_title, settings.highlight_style)
    except OSError as e:
        _fail("Export failed", e)
    for slug, html_path in written:
        typer.echo(f"  {slug} -> {html_path}")
    _echo_report(result.report)
    typer.echo(f"Exported {len(written)} document(s) to {output_dir}/")

    if strict and result.report.has_problems:
        raise typer.Exit(1)


def check_cmd(
    path: ContentArg = None,
    assets: Annotated[Optional[str], typer.Option("--asset-dir", help="Image asset root")] = None,
    snippets: Annotated[Optional[str], typer.Option("--snippets-dir", help="Include snippet root")] = None,
    now: NowOpt = None,
    strict: StrictOpt = False,
    verbose: VerboseOpt = False,
    ):
    """Run the pipeline without writing anything and print the report."""
    settings = _settings(overrides={"content_dir": path, "asset_dir": assets, "snippets_dir": snippets})
    _configure_logging(settings, verbose)
    result = _build(settings, _now(now))
    _echo_report(result.report)
    if strict and result.report.has_problems:
        raise typer.Exit(1)


def list_cmd(
    path: ContentArg = None,
    now: NowOpt = None,
    ):
    """List documents with their publish status (published, draft, scheduled)."""
    settings = _settings(overrides={"content_dir": path})
    reference = _now(now) or datetime.now(timezone.utc)
    try:
        docs = list(load_documents(
            check_root(Path(settings.content_dir)), settings.extensions, settings.front_matter_marker,
            on_error=lambda e: typer.echo(f"  invalid    {e.path}: {e.reason}"),
        ))
    except ContentRootError as e:
        _fail("Cannot read content", e)
    if not docs:
        typer.echo("No documents found.")
        raise typer.Exit(1)
    for doc in sorted(docs, key=lambda d: d.date, reverse=True):
        eligible, _ = publish_status(doc, reference)
        status = "published" if eligible else ("draft" if doc.draft else "scheduled")
        typer.echo(f"  {status:<10} {doc.date:%Y-%m-%d}  {doc.slug}  {doc.title}")
