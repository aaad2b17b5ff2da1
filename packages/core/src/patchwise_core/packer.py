"""Packing changed files into token-bounded review conversations.

A review conversation is the fixed scaffolding (system prompt and review
instructions) around the joined patches of a group of files. The packer
splits the files into as few groups as it reasonably can while keeping every
group's conversation within the model's token budget:

1. Files that fit on their own are packed together. The whole set is tried
   first, then one extension at a time, and when an extension still does not
   fit its files are accumulated smallest-first until the next one would
   overflow.
2. Files that do not fit even on their own lose their deletion lines and are
   re-classified. The ones that now fit go through step 1; the rest are
   skipped for this run and reported back to the caller.
"""

from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass, field
from typing import Callable

from patchwise_core.models import ChangedFile, Turn
from patchwise_core.prompts import render_patch, strip_removed_lines
from patchwise_core.utils.tokens import estimate_conversation_tokens, estimate_tokens

logger = logging.getLogger(__name__)

ConvoBuilder = Callable[[str], list[Turn]]
PatchBuilder = Callable[[ChangedFile], str]


@dataclass
class PackResult:
    groups: list[list[ChangedFile]] = field(default_factory=list)
    skipped: list[ChangedFile] = field(default_factory=list)


class PromptPacker:
    def __init__(
        self,
        convo_builder: ConvoBuilder,
        token_budget: int,
        patch_builder: PatchBuilder = render_patch,
        estimator: Callable[[list[Turn]], int] = estimate_conversation_tokens,
        patch_estimator: Callable[[str], int] = estimate_tokens,
    ):
        self.convo_builder = convo_builder
        self.token_budget = token_budget
        self.patch_builder = patch_builder
        self.estimator = estimator
        self.patch_estimator = patch_estimator

    # ------------------------------------------------------------------ #
    # Conversation measurement                                           #
    # ------------------------------------------------------------------ #

    def build_conversation(self, files: list[ChangedFile]) -> list[Turn]:
        return self.convo_builder("\n".join(self.patch_builder(f) for f in files))

    def fits(self, files: list[ChangedFile]) -> bool:
        return self.estimator(self.build_conversation(files)) <= self.token_budget

    def measure(self, file: ChangedFile) -> ChangedFile:
        """Cache the token length of the file's rendered patch on the file."""
        file.patch_token_length = self.patch_estimator(self.patch_builder(file))
        return file

    def split_by_limit(self, files: list[ChangedFile]) -> tuple[list[ChangedFile], list[ChangedFile]]:
        within: list[ChangedFile] = []
        outside: list[ChangedFile] = []
        for file in files:
            (within if self.fits([file]) else outside).append(file)
        return within, outside

    # ------------------------------------------------------------------ #
    # Packing                                                              #
    # ------------------------------------------------------------------ #

    def pack(self, files: list[ChangedFile]) -> PackResult:
        """Partition files into groups that each fit the token budget."""
        for file in files:
            self.measure(file)
        within, outside = self.split_by_limit(files)

        result = PackResult(groups=self.pack_within_limit(within))
        outside_result = self.pack_outside_limit(outside)
        result.groups.extend(outside_result.groups)
        result.skipped.extend(outside_result.skipped)

        logger.info("%d file(s) packed into %d group(s).", len(files) - len(result.skipped), len(result.groups))
        if result.skipped:
            logger.warning(
                "%d file(s) exceed the %d token budget even without removed lines, skipping them: %s",
                len(result.skipped),
                self.token_budget,
                ", ".join(f.filename for f in result.skipped),
            )
        return result

    def pack_within_limit(self, files: list[ChangedFile]) -> list[list[ChangedFile]]:
        """Group files that each fit the budget on their own."""
        if not files:
            return []
        if self.fits(files):
            return [list(files)]

        groups: list[list[ChangedFile]] = []
        for extension, bucket in group_by_extension(files).items():
            if self.fits(bucket):
                groups.append(bucket)
                continue

            logger.debug("Splitting %d .%s file(s) into smaller groups.", len(bucket), extension or "<none>")
            current: list[ChangedFile] = []
            # sorted() is stable, so equal-length files keep their original order.
            for file in sorted(bucket, key=lambda f: f.patch_token_length):
                if self.fits([*current, file]):
                    current.append(file)
                    continue
                if current:
                    groups.append(current)
                current = [file]
            if current:
                groups.append(current)
        return groups

    def pack_outside_limit(self, files: list[ChangedFile]) -> PackResult:
        """Group files that do not fit on their own, after dropping their deletion lines."""
        if not files:
            return PackResult()

        stripped = [self.measure(strip_file(file)) for file in files]
        if self.fits(stripped):
            return PackResult(groups=[stripped])

        within, still_outside = self.split_by_limit(stripped)
        # TODO: split single oversized patches hunk by hunk instead of skipping them.
        return PackResult(groups=self.pack_within_limit(within), skipped=still_outside)


def group_by_extension(files: list[ChangedFile]) -> dict[str, list[ChangedFile]]:
    """Bucket files by lower-cased extension, in order of first appearance."""
    buckets: dict[str, list[ChangedFile]] = {}
    for file in files:
        buckets.setdefault(file.extension, []).append(file)
    return buckets


def strip_file(file: ChangedFile) -> ChangedFile:
    """Return a copy of file whose patch has no deletion lines."""
    return dataclasses.replace(file, patch=strip_removed_lines(file.patch))
