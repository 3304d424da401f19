"""End-of-run resolution report: failures, broken references, malformed callouts"""

from typing import Optional

from pydantic import BaseModel, Field

from postpub.core.errors import BrokenReferenceWarning, MalformedCalloutError, PostpubError


class FailureEntry(BaseModel):
    """A document excluded from output because it failed to load or parse."""
    path:   str
    error:  str
    reason: str


class BrokenReferenceEntry(BaseModel):
    path:   str
    kind:   str
    target: str
    line:   Optional[int] = None


class CalloutEntry(BaseModel):
    path:    str
    block:   int
    markers: list[int] = Field(default_factory=list)
    reason:  str


class ExcludedEntry(BaseModel):
    """A rendered document held back by the publish filter."""
    path:   str
    slug:   str
    reason: str


class RunReport(BaseModel):
    loaded:             int = 0
    rendered:           int = 0
    published:          int = 0
    cancelled:          bool = False
    failures:           list[FailureEntry] = Field(default_factory=list)
    broken_references:  list[BrokenReferenceEntry] = Field(default_factory=list)
    malformed_callouts: list[CalloutEntry] = Field(default_factory=list)
    excluded:           list[ExcludedEntry] = Field(default_factory=list)

    def add_failure(self, error: PostpubError) -> None:
        self.failures.append(FailureEntry(path=str(error.path), error=type(error).__name__, reason=error.reason))

    def add_broken_reference(self, warning: BrokenReferenceWarning) -> None:
        self.broken_references.append(BrokenReferenceEntry(
            path=str(warning.path), kind=warning.kind, target=warning.target, line=warning.line,
        ))

    def add_callout_error(self, error: MalformedCalloutError) -> None:
        self.malformed_callouts.append(CalloutEntry(
            path=str(error.path), block=error.block, markers=list(error.markers), reason=error.reason,
        ))

    @property
    def has_problems(self) -> bool:
        """True when anything needs fixing in the content; drafts and scheduled posts do not count."""
        return bool(self.failures or self.broken_references or self.malformed_callouts)

    def summary_lines(self) -> list[str]:
        """Human-readable report lines, one per problem."""
        lines = [f"FAILED  {f.path}: {f.error}: {f.reason}" for f in self.failures]
        lines += [
            f"BROKEN  {r.path}{f':{r.line}' if r.line else ''}: {r.kind} '{r.target}'"
            for r in self.broken_references
        ]
        lines += [f"CALLOUT {c.path}: {c.reason}" for c in self.malformed_callouts]
        return lines
