"""Publish filter: drafts and future-dated documents are not eligible for output"""

from datetime import datetime, timezone
from typing import Iterable

from postpub.core.models import Document, RenderedDocument


def as_aware(now: datetime) -> datetime:
    """Treat a naive timestamp as UTC."""
    return now if now.tzinfo is not None else now.replace(tzinfo=timezone.utc)


def publish_status(doc: Document, now: datetime) -> tuple[bool, str]:
    """Check if a document is eligible for output at the reference time.

    Returns:
        Tuple of (is_eligible, reason)
    """
    if doc.draft:
        return False, "draft"
    if doc.date > as_aware(now):
        return False, f"scheduled for {doc.date.isoformat()}"
    return True, "OK"


def filter_published(rendered: Iterable[RenderedDocument], now: datetime) -> list[RenderedDocument]:
    """Return the eligible documents, in input order."""
    return [r for r in rendered if publish_status(r.document, now)[0]]
