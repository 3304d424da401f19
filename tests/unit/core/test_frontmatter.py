"""Unit tests for core/frontmatter.py"""

import datetime
from pathlib import Path

import pytest

from postpub.core.errors import MalformedFrontMatterError
from postpub.core.frontmatter import build_document, parse_front_matter, split_front_matter


UTC = datetime.timezone.utc


def test_split_front_matter():
    """split_front_matter separates the header block from the body."""
    header, body = split_front_matter("---\ntitle: Hi\n---\n# Body\n")
    assert header == "title: Hi\n"
    assert body == "# Body\n"


def test_split_front_matter_custom_marker():
    header, body = split_front_matter("~~~\ntitle: Hi\n~~~\nBody\n", marker="~~~")
    assert header == "title: Hi\n"
    assert body == "Body\n"


def test_split_front_matter_body_hr_not_confused():
    """Only the first closing marker ends the header; later '---' lines stay in the body."""
    _, body = split_front_matter("---\ntitle: Hi\n---\nA\n\n---\n\nB\n")
    assert body == "A\n\n---\n\nB\n"


def test_split_front_matter_unbalanced():
    with pytest.raises(MalformedFrontMatterError, match="unbalanced"):
        split_front_matter("---\ntitle: Hi\n# Body\n", path=Path("post.md"))


def test_split_front_matter_missing():
    with pytest.raises(MalformedFrontMatterError, match="missing front matter"):
        split_front_matter("# Just a body\n")


def test_parse_front_matter_coerces_fields():
    """date becomes an aware datetime, tags an ordered tuple, draft a bool."""
    meta, body = parse_front_matter(
        "---\ntitle: Error handling\ndate: 2024-03-01\ntags: [spring, errors]\ndraft: 'no'\n---\nBody\n"
    )
    assert meta["title"] == "Error handling"
    assert meta["date"] == datetime.datetime(2024, 3, 1, tzinfo=UTC)
    assert meta["tags"] == ("spring", "errors")
    assert meta["draft"] is False
    assert body == "Body\n"


@pytest.mark.parametrize("raw,expected", [
    ("2024-03-01", datetime.datetime(2024, 3, 1, tzinfo=UTC)),
    ("2024-03-01 10:30:00", datetime.datetime(2024, 3, 1, 10, 30, tzinfo=UTC)),
    ("'2024-03-01T10:30:00+02:00'", datetime.datetime(2024, 3, 1, 8, 30, tzinfo=UTC)),
])
def test_parse_front_matter_date_forms(raw, expected):
    meta, _ = parse_front_matter(f"---\ntitle: T\ndate: {raw}\n---\n")
    assert meta["date"] == expected
    assert meta["date"].tzinfo is not None


def test_parse_front_matter_comma_tags():
    """A comma-separated tag string keeps order and drops blanks."""
    meta, _ = parse_front_matter("---\ntitle: T\ndate: 2024-01-01\ntags: b, a, , c\n---\n")
    assert meta["tags"] == ("b", "a", "c")


def test_parse_front_matter_defaults():
    meta, _ = parse_front_matter("---\ntitle: T\ndate: 2024-01-01\n---\n")
    assert meta["tags"] == ()
    assert meta["draft"] is False


@pytest.mark.parametrize("header,match", [
    ("date: 2024-01-01\n", "missing required key\\(s\\): title"),
    ("title: T\n", "missing required key\\(s\\): date"),
    ("title: ''\ndate: 2024-01-01\n", "title"),
    ("title: 42\ndate: 2024-01-01\n", "non-empty string"),
    ("title: T\ndate: yesterday\n", "invalid date"),
    ("title: T\ndate: 2024-01-01\ndraft: maybe\n", "invalid boolean"),
    ("title: T\ndate: 2024-01-01\ntags: {a: 1}\n", "invalid tags"),
    ("- just\n- a list\n", "must be a mapping"),
    ("title: [unclosed\n", "invalid YAML"),
])
def test_parse_front_matter_malformed(header, match):
    with pytest.raises(MalformedFrontMatterError, match=match):
        parse_front_matter(f"---\n{header}---\nBody\n", Path("bad.md"))


def test_malformed_error_carries_path():
    with pytest.raises(MalformedFrontMatterError) as info:
        parse_front_matter("---\ndate: 2024-01-01\n---\n", Path("posts/no-title.md"))
    assert info.value.path == Path("posts/no-title.md")


def test_build_document_slug_from_filename():
    doc = build_document(Path("Spring Errors.md"), "---\ntitle: T\ndate: 2024-01-01\n---\nBody\n")
    assert doc.slug == "spring-errors"
    assert doc.title == "T"
    assert doc.body == "Body\n"


def test_build_document_slug_from_frontmatter():
    doc = build_document(Path("x.md"), "---\ntitle: T\ndate: 2024-01-01\nslug: Custom Slug\n---\n")
    assert doc.slug == "custom-slug"


def test_build_document_keeps_extra_keys():
    """Extra keys such as author remain available on the document."""
    doc = build_document(Path("x.md"), "---\ntitle: T\ndate: 2024-01-01\nauthor: Wim\n---\n")
    assert doc.frontmatter["author"] == "Wim"


def test_document_is_immutable():
    doc = build_document(Path("x.md"), "---\ntitle: T\ndate: 2024-01-01\n---\n")
    with pytest.raises(AttributeError):
        doc.title = "changed"


def test_frontmatter_is_read_only():
    doc = build_document(Path("x.md"), "---\ntitle: T\ndate: 2024-01-01\nauthor: Wim\n---\n")
    with pytest.raises(TypeError):
        doc.frontmatter["author"] = "someone else"


def test_build_document_non_ascii_stem_gets_stable_slug():
    """A stem with no ASCII letters still yields a usable, repeatable slug."""
    text = "---\ntitle: T\ndate: 2024-01-01\n---\n"
    first = build_document(Path("日本語.md"), text)
    again = build_document(Path("other/日本語.md"), text)
    assert first.slug.startswith("post-")
    assert len(first.slug) == len("post-") + 8
    assert first.slug == again.slug
    assert build_document(Path("中文.md"), text).slug != first.slug


def test_build_document_unusable_frontmatter_slug_falls_back_to_stem():
    doc = build_document(Path("intro.md"), "---\ntitle: T\ndate: 2024-01-01\nslug: 日本\n---\n")
    assert doc.slug == "intro"
