"""Error taxonomy for the publishing pipeline"""

from pathlib import Path
from typing import Optional


class PostpubError(Exception):
    """Base error carrying the source path it concerns."""

    def __init__(self, path: Path, reason: str):
        self.path = Path(path)
        self.reason = reason
        super().__init__(f"{self.path}: {reason}")


class ContentRootError(PostpubError):
    """The content root is missing or unreadable. Fatal for the whole run."""


class LoadError(PostpubError):
    """A source file could not be read or decoded."""


class MalformedFrontMatterError(PostpubError):
    """Front matter markers are unbalanced or required metadata is missing/invalid."""


class MalformedCalloutError(PostpubError):
    """Callout markers in a code block are not numbered 1..N, or do not match their descriptions."""

    def __init__(self, path: Path, reason: str, block: int, markers: tuple[int, ...] = ()):
        self.block = block
        self.markers = tuple(markers)
        super().__init__(path, f"code block {block}: {reason}")


class RenderError(PostpubError):
    """Resolving or rendering a document failed unexpectedly. Excludes only that document."""


class OutputConflictError(PostpubError):
    """A publishable document maps to an output page already claimed by an earlier one."""


class BrokenReferenceWarning(UserWarning):
    """A reference whose target could not be located. Collected, never raised."""

    def __init__(self, path: Path, kind: str, target: str, line: Optional[int] = None):
        self.path = Path(path)
        self.kind = kind
        self.target = target
        self.line = line
        where = f"{self.path}:{line}" if line else str(self.path)
        super().__init__(f"{where}: broken {kind} reference '{target}'")
