"""Slugs for output file names and callout anchors"""

import re
import unicodedata

MAX_SLUG_LENGTH = 80


def slugify(text: str, max_length: int = MAX_SLUG_LENGTH) -> str:
    """Return an ASCII, lowercase, hyphen-separated slug safe for file names and HTML ids.

    Accented letters are folded to their base letter ("Café" -> "cafe"); a
    slug longer than max_length is cut back to the last whole word.
    """
    text = unicodedata.normalize('NFKD', text).encode('ascii', 'ignore').decode('ascii')
    text = re.sub(r'[^a-z0-9\s_-]', '', text.lower())
    slug = re.sub(r'[\s_-]+', '-', text).strip('-')
    if len(slug) > max_length:
        cut = slug[:max_length + 1].rsplit('-', 1)[0] if '-' in slug[:max_length + 1] else slug[:max_length]
        slug = cut.strip('-')
    return slug
