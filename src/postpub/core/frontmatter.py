"""Front matter splitting, parsing, and coercion into a Document"""

import datetime
from pathlib import Path
from types import MappingProxyType
from typing import Any

import yaml

from postpub.core.errors import MalformedFrontMatterError
from postpub.core.models import Document
from postpub.core.utils.hashing import sha256
from postpub.core.utils.slug import slugify


REQUIRED_KEYS = ("title", "date")
TRUE_STRINGS = {"true", "yes", "on", "1"}
FALSE_STRINGS = {"false", "no", "off", "0", ""}


def split_front_matter(text: str, marker: str = "---", path: Path = Path("<string>")) -> tuple[str, str]:
    """Return (header_text, body) for text whose first line is the marker.

    Raises MalformedFrontMatterError when the header is absent or its closing
    marker is missing.
    """
    lines = text.lstrip("\ufeff").splitlines(keepends=True)
    if not lines or lines[0].rstrip() != marker:
        raise MalformedFrontMatterError(path, f"missing front matter (expected '{marker}' on the first line)")
    for i, line in enumerate(lines[1:], start=1):
        if line.rstrip() == marker:
            return "".join(lines[1:i]), "".join(lines[i + 1:])
    raise MalformedFrontMatterError(path, f"unbalanced front matter: no closing '{marker}'")


def _coerce_date(value: Any, path: Path) -> datetime.datetime:
    """Coerce a YAML date/datetime or ISO string to an aware datetime (naive -> UTC)."""
    if isinstance(value, str):
        try:
            value = datetime.datetime.fromisoformat(value.strip())
        except ValueError as e:
            raise MalformedFrontMatterError(path, f"invalid date '{value}'") from e
    if isinstance(value, datetime.datetime):
        dt = value
    elif isinstance(value, datetime.date):
        dt = datetime.datetime(value.year, value.month, value.day)
    else:
        raise MalformedFrontMatterError(path, f"invalid date {value!r}")
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=datetime.timezone.utc)
    return dt


def _coerce_tags(value: Any, path: Path) -> tuple[str, ...]:
    """Accept a list or a comma-separated string; keep order, drop blanks."""
    if value is None:
        return ()
    if isinstance(value, str):
        items = value.split(",")
    elif isinstance(value, (list, tuple)):
        items = [str(v) for v in value if v is not None]
    else:
        raise MalformedFrontMatterError(path, f"invalid tags {value!r}")
    return tuple(t.strip() for t in items if t.strip())


def _coerce_bool(value: Any, key: str, path: Path) -> bool:
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    text = str(value).strip().lower()
    if text in TRUE_STRINGS:
        return True
    if text in FALSE_STRINGS:
        return False
    raise MalformedFrontMatterError(path, f"invalid boolean for '{key}': {value!r}")


def parse_front_matter(text: str, path: Path = Path("<string>"), marker: str = "---") -> tuple[dict[str, Any], str]:
    """Return (metadata, body) with title/date validated and date/tags/draft coerced."""
    header, body = split_front_matter(text, marker, path)
    try:
        fm = yaml.safe_load(header) or {}
    except yaml.YAMLError as e:
        raise MalformedFrontMatterError(path, f"invalid YAML front matter: {e}") from e
    if not isinstance(fm, dict):
        raise MalformedFrontMatterError(path, f"front matter must be a mapping, got {type(fm).__name__}")

    missing = [k for k in REQUIRED_KEYS if fm.get(k) in (None, "")]
    if missing:
        raise MalformedFrontMatterError(path, f"missing required key(s): {', '.join(missing)}")
    if not isinstance(fm["title"], str) or not fm["title"].strip():
        raise MalformedFrontMatterError(path, "title must be a non-empty string")

    meta = dict(fm)
    meta["title"] = fm["title"].strip()
    meta["date"] = _coerce_date(fm["date"], path)
    meta["tags"] = _coerce_tags(fm.get("tags"), path)
    meta["draft"] = _coerce_bool(fm.get("draft"), "draft", path)
    return meta, body


def build_document(path: Path, text: str, marker: str = "---") -> Document:
    """Parse a source file's text into a Document."""
    meta, body = parse_front_matter(text, path, marker)
    # stems with no ASCII letters (e.g. 日本語.md) slugify to ""
    slug = slugify(str(meta.get("slug") or "")) or slugify(path.stem) or f"post-{sha256(path.stem)[:8]}"
    return Document(
        path=path,
        slug=slug,
        title=meta["title"],
        date=meta["date"],
        draft=meta["draft"],
        tags=meta["tags"],
        body=body,
        frontmatter=MappingProxyType(dict(meta)),
    )
