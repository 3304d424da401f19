"""Unit tests for core/pipeline.py"""

import threading
from datetime import datetime, timezone
from pathlib import Path

import pytest

from postpub.config import Settings
from postpub.core.errors import ContentRootError
from postpub.core.load import load_document
from postpub.core.pipeline import process_document, run_build
from postpub.core.render import Renderer
from postpub.core.resolve import ReferenceResolver


NOW = datetime(2024, 6, 1, tzinfo=timezone.utc)


def _settings(content_dir, asset_dir, **kwargs) -> Settings:
    return Settings(content_dir=str(content_dir), asset_dir=str(asset_dir), **kwargs)


def test_process_document_returns_rendered(content_dir, asset_dir, write_post):
    doc = load_document(write_post("a.md", body="![x](gone.png)\n"))
    outcome = process_document(doc, ReferenceResolver(content_dir, asset_dir), Renderer())
    assert outcome.rendered.slug == "a"
    assert [w.target for w in outcome.broken] == ["gone.png"]
    assert outcome.error is None


def test_process_document_skips_when_cancelled(content_dir, asset_dir, write_post):
    doc = load_document(write_post("a.md"))
    cancel = threading.Event()
    cancel.set()
    assert process_document(doc, ReferenceResolver(content_dir, asset_dir), Renderer(), cancel) is None


def test_missing_title_excluded_with_one_error(content_dir, asset_dir, write_post):
    """A document without a title is reported once, by path, and renders nowhere."""
    write_post("good.md", title="Good")
    bad = write_post("bad.md", text="---\ndate: 2024-01-01\n---\nBody\n")

    result = run_build(_settings(content_dir, asset_dir), now=NOW)

    assert [r.slug for r in result.rendered] == ["good"]
    assert len(result.report.failures) == 1
    failure = result.report.failures[0]
    assert failure.path == str(bad)
    assert failure.error == "MalformedFrontMatterError"
    assert "title" in failure.reason
    assert result.report.loaded == 1


def test_broken_image_does_not_block_rendering(content_dir, asset_dir, write_post):
    (asset_dir / "ok.png").write_bytes(b"png")
    write_post("post.md", body="![ok](ok.png)\n\n![bad](bad.png)\n")

    result = run_build(_settings(content_dir, asset_dir), now=NOW)

    [rendered] = result.rendered
    statuses = {r.target: r.status.value for r in rendered.references}
    assert statuses == {"ok.png": "resolved", "bad.png": "broken"}
    assert '<img src="/images/ok.png"' in rendered.html
    assert 'src="bad.png"' in rendered.html
    assert [(b.kind, b.target) for b in result.report.broken_references] == [("image", "bad.png")]
    assert result.report.published == 1


def test_drafts_and_scheduled_posts_are_held_back(content_dir, asset_dir, write_post):
    write_post("live.md", date="2024-01-01")
    write_post("draft.md", date="2024-01-01", draft="true")
    write_post("later.md", date="2024-12-01")

    result = run_build(_settings(content_dir, asset_dir), now=NOW)

    assert {r.slug for r in result.rendered} == {"live", "draft", "later"}
    assert [r.slug for r in result.published] == ["live"]
    reasons = {e.slug: e.reason for e in result.report.excluded}
    assert reasons["draft"] == "draft"
    assert reasons["later"].startswith("scheduled for 2024-12-01")


def test_callout_errors_collected(content_dir, asset_dir, write_post):
    write_post("gap.md", body="```java\na(); // <1>\nc(); // <3>\n```\n\n<1> A\n<3> C\n")
    result = run_build(_settings(content_dir, asset_dir), now=NOW)
    assert len(result.report.malformed_callouts) == 1
    assert result.report.malformed_callouts[0].markers == [1, 3]
    assert result.report.rendered == 1


def test_output_order_follows_discovery(content_dir, asset_dir, write_post):
    for name in ["c.md", "a.md", "b/z.md", "b/a.md"]:
        write_post(name)
    result = run_build(_settings(content_dir, asset_dir, workers=3), now=NOW)
    assert [r.document.path.relative_to(content_dir).as_posix() for r in result.rendered] == [
        "a.md", "b/a.md", "b/z.md", "c.md",
    ]


def test_cancelled_run_renders_nothing(content_dir, asset_dir, write_post):
    write_post("a.md")
    write_post("b.md")
    cancel = threading.Event()
    cancel.set()

    result = run_build(_settings(content_dir, asset_dir), now=NOW, cancel=cancel)

    assert result.report.cancelled
    assert result.rendered == []
    assert result.report.loaded == 2


def test_missing_root_raises(tmp_path):
    with pytest.raises(ContentRootError):
        run_build(Settings(content_dir=str(tmp_path / "nope")), now=NOW)


def test_single_file_root(content_dir, asset_dir, write_post):
    path = write_post("solo.md")
    result = run_build(_settings(path, asset_dir), now=NOW)
    assert [r.slug for r in result.rendered] == ["solo"]
    assert result.base_dir == Path(content_dir)


def test_same_output_page_keeps_first_and_reports_the_rest(content_dir, asset_dir, write_post):
    """post.md and post.adoc both map to post.html: only the first is published."""
    write_post("post.adoc", title="From adoc")
    write_post("post.md", title="From md")
    write_post("zz.md", slug="post")
    write_post("sub/post.md")

    result = run_build(_settings(content_dir, asset_dir), now=NOW)

    assert [r.document.path.name for r in result.published] == ["post.adoc", "post.md"]
    assert [r.document.path.parent.name for r in result.published] == ["content", "sub"]
    conflicts = [f for f in result.report.failures if f.error == "OutputConflictError"]
    assert sorted(Path(f.path).name for f in conflicts) == ["post.md", "zz.md"]
    assert all("post.html" in f.reason for f in conflicts)
    assert result.report.published == 2
    assert result.report.has_problems


def test_draft_does_not_claim_an_output_page(content_dir, asset_dir, write_post):
    write_post("post.adoc", draft="true")
    write_post("post.md")
    result = run_build(_settings(content_dir, asset_dir), now=NOW)
    assert [r.document.path.name for r in result.published] == ["post.md"]
    assert result.report.failures == []


def test_unexpected_error_excludes_only_that_document(content_dir, asset_dir, write_post, monkeypatch):
    write_post("good.md")
    write_post("bad.md")
    original = Renderer.render

    def _render(self, resolved):
        if resolved.document.slug == "bad":
            raise RuntimeError("boom")
        return original(self, resolved)

    monkeypatch.setattr(Renderer, "render", _render)
    result = run_build(_settings(content_dir, asset_dir), now=NOW)

    assert [r.slug for r in result.rendered] == ["good"]
    [failure] = result.report.failures
    assert failure.error == "RenderError"
    assert failure.reason == "RuntimeError: boom"
    assert Path(failure.path).name == "bad.md"


def test_overlong_image_name_is_a_broken_reference(content_dir, asset_dir, write_post):
    write_post("long.md", body=f"![x]({'a' * 300}.png)\n")
    write_post("fine.md")
    result = run_build(_settings(content_dir, asset_dir), now=NOW)
    assert result.report.rendered == 2
    assert result.report.failures == []
    assert [b.kind for b in result.report.broken_references] == ["image"]
