"""Source discovery and lazy document loading with per-file failure isolation"""

import logging
import os
from pathlib import Path
from typing import Callable, Iterable, Iterator, Optional

from postpub.core.errors import ContentRootError, LoadError, MalformedFrontMatterError, PostpubError
from postpub.core.frontmatter import build_document
from postpub.core.models import Document


logger = logging.getLogger(__name__)

DEFAULT_EXTENSIONS = (".md", ".markdown", ".adoc")

ErrorHandler = Callable[[PostpubError], None]


def check_root(root: Path) -> Path:
    """Return root if it is an existing, readable file or directory, else raise ContentRootError."""
    root = Path(root)
    if not root.exists():
        raise ContentRootError(root, "content root does not exist")
    if not os.access(root, os.R_OK | (os.X_OK if root.is_dir() else 0)):
        raise ContentRootError(root, "content root is not readable")
    return root


def discover_files(path: Path, extensions: Iterable[str] = DEFAULT_EXTENSIONS) -> list[Path]:
    """Return sorted source files under path, or [path] if a single recognized file.

    Hidden files and anything under a hidden directory are skipped.
    """
    suffixes = {e.lower() for e in extensions}
    if path.is_file():
        return [path] if path.suffix.lower() in suffixes else []
    return sorted(
        p for p in path.rglob('*')
        if p.is_file()
        and p.suffix.lower() in suffixes
        and not any(part.startswith('.') for part in p.relative_to(path).parts)
    )


def read_source(path: Path) -> str:
    """Read a source file as UTF-8, converting I/O and decoding failures to LoadError."""
    try:
        return path.read_text(encoding='utf-8')
    except UnicodeDecodeError as e:
        raise LoadError(path, f"invalid UTF-8 encoding: {e.reason}") from e
    except OSError as e:
        raise LoadError(path, e.strerror or str(e)) from e


def load_document(path: Path, marker: str = "---") -> Document:
    """Read and parse one source file. Raises LoadError or MalformedFrontMatterError."""
    return build_document(path, read_source(path), marker)


def load_documents(
    root: Path,
    extensions: Iterable[str] = DEFAULT_EXTENSIONS,
    marker: str = "---",
    on_error: Optional[ErrorHandler] = None,
    ) -> Iterator[Document]:
    """Lazily yield one Document per recognized file under root.

    A file that fails to load or parse is logged and handed to on_error;
    loading continues with the remaining files.
    """
    root = check_root(root)
    for path in discover_files(root, extensions):
        try:
            doc = load_document(path, marker)
        except (LoadError, MalformedFrontMatterError) as e:
            logger.warning("Skipping %s", e)
            if on_error:
                on_error(e)
            continue
        logger.debug("Loaded %s (%s)", path, doc.slug)
        yield doc
