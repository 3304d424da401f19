"""Immutable records passed between pipeline stages"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from types import MappingProxyType
from typing import Any, Mapping, Optional

from postpub.core.errors import MalformedCalloutError


class ReferenceKind(str, Enum):
    image = "image"
    include = "include"
    link = "link"


class ReferenceStatus(str, Enum):
    resolved = "resolved"
    broken = "broken"


@dataclass(frozen=True)
class Document:
    """A loaded source document. Identity is the source path."""
    path:        Path
    slug:        str
    title:       str
    date:        datetime           # always timezone-aware
    draft:       bool
    tags:        tuple[str, ...]
    body:        str                # markup without the front matter block
    frontmatter: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}), compare=False)  # read-only view


@dataclass(frozen=True)
class CodeBlock:
    """A fenced code block with its callout markers, in source order."""
    position: int
    text:     str                   # code with callout markers stripped
    language: Optional[str] = None
    callouts: tuple[int, ...] = ()


@dataclass(frozen=True)
class Reference:
    """A pointer from a document to an image, snippet, or another document."""
    kind:   ReferenceKind
    target: str                     # as written in the source
    status: ReferenceStatus
    path:   Optional[Path] = None   # resolved location; None when broken
    line:   Optional[int] = None    # 1-based line in the body, when known


@dataclass(frozen=True)
class ResolvedDocument:
    """Document with includes expanded and references attached."""
    document:   Document
    body:       str
    references: tuple[Reference, ...] = ()


@dataclass(frozen=True)
class RenderedDocument:
    """Final per-document artifact: HTML body plus what was found while rendering."""
    document:       Document
    html:           str
    hash:           str
    references:     tuple[Reference, ...] = ()
    code_blocks:    tuple[CodeBlock, ...] = ()
    callout_errors: tuple[MalformedCalloutError, ...] = ()

    @property
    def slug(self) -> str:
        return self.document.slug
