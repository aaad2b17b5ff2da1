"""Data types passed between the packing, review and reconciliation stages."""

from __future__ import annotations

import hashlib
from dataclasses import dataclass, field
from datetime import datetime, timezone


@dataclass
class ChangedFile:
    """One file touched by the pull request.

    Created per review run from the PR file list, then enriched in place with
    the old/current contents and the token length of its rendered patch.
    ``old_contents`` is None for new files, ``current_contents`` is None for
    deleted files.
    """

    filename: str
    patch: str = ""
    status: str = "modified"
    old_contents: str | None = None
    current_contents: str | None = None
    patch_token_length: int = 0

    @property
    def extension(self) -> str:
        basename = self.filename.rsplit("/", 1)[-1]
        if "." not in basename:
            return ""
        return basename.rsplit(".", 1)[-1].lower()


@dataclass(frozen=True)
class Turn:
    """A single role-tagged message in a model conversation."""

    role: str  # "system" | "user" | "assistant"
    content: str


@dataclass(frozen=True)
class Suggestion:
    """A structured review suggestion parsed from model output."""

    describe: str
    type: str
    comment: str
    code: str
    filename: str

    @property
    def identity(self) -> str:
        # Two suggestions on the same file with the same comment and code are
        # the same suggestion, whatever the model called them.
        digest = hashlib.sha256()
        for part in (self.filename, self.comment, self.code):
            digest.update(part.encode("utf-8"))
            digest.update(b"\x00")
        return digest.hexdigest()


@dataclass(frozen=True)
class InlineFix:
    """A concrete replacement for lines [line_start, line_end] of a file."""

    filename: str
    line_start: int
    line_end: int
    correction: str
    comment: str


@dataclass
class BuilderResponse:
    """Output of a response builder: the aggregate comment plus any structure it recovered."""

    comment: str
    suggestions: list[Suggestion] = field(default_factory=list)
    skipped_files: list[str] = field(default_factory=list)


@dataclass
class ReviewResult:
    """What the pipeline hands back for posting.

    ``review`` is None when every file was filtered out, so nothing was sent
    to the model at all.
    """

    review: BuilderResponse | None
    fixes: list[InlineFix] = field(default_factory=list)

    @classmethod
    def nothing_to_review(cls) -> ReviewResult:
        return cls(review=None, fixes=[])

    @property
    def is_empty(self) -> bool:
        return self.review is None


@dataclass
class ReviewSummary:
    """Result returned by run_review for the CLI to report."""

    repo: str
    pr_number: int
    head_sha: str
    reviewed_files: list[str] = field(default_factory=list)
    skipped_files: list[str] = field(default_factory=list)
    total_suggestions: int = 0
    total_fixes: int = 0
    posted: bool = False
    reviewed_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
