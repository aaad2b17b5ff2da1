"""Concrete code fixes for structured suggestions.

Fix generation is best-effort: every failure mode (no function call, bad
arguments, a line range outside the file, a fix identical to the current
code, a provider error) ends in ``None`` for that one suggestion, so callers
always deal with "no fix" explicitly and one bad fix never aborts a review.
"""

from __future__ import annotations

import logging
import re
from typing import Callable

from patchwise_core.models import ChangedFile, InlineFix, Suggestion
from patchwise_core.prompts import INLINE_FIX_FUNCTION, build_inline_fix_conversation
from patchwise_core.providers.base import BaseProvider
from patchwise_core.utils.syntax import EnclosingContext, find_enclosing_context

logger = logging.getLogger(__name__)

_LEADING_WHITESPACE_RE = re.compile(r"^\s*")


def indent_code_fix(contents: str, code: str, line_start: int) -> str:
    """Prefix every line of code with the indentation of line ``line_start`` of contents."""
    lines = contents.split("\n")
    if not 1 <= line_start <= len(lines):
        raise ValueError(f"lineStart {line_start} is outside the file (1-{len(lines)})")
    indentation = _LEADING_WHITESPACE_RE.match(lines[line_start - 1]).group(0)
    return "\n".join(indentation + line for line in code.split("\n"))


def is_code_fix_new(contents: str, fix: InlineFix) -> bool:
    """False when the fix, trimmed, equals the trimmed lines it would replace."""
    target = "\n".join(contents.split("\n")[fix.line_start - 1 : fix.line_end])
    return target.strip() != fix.correction.strip()


async def generate_inline_fix(
    provider: BaseProvider,
    suggestion: Suggestion,
    file: ChangedFile,
    context_lookup: Callable[[str, int, int], EnclosingContext] = find_enclosing_context,
) -> InlineFix | None:
    """Ask the model for a replacement of a line range that resolves the suggestion."""
    contents = file.current_contents
    if contents is None:
        logger.debug("No current contents for %s; skipping inline fix.", file.filename)
        return None

    try:
        turns = build_inline_fix_conversation(contents, suggestion, context_lookup)
        completion = await provider.complete(turns, function=INLINE_FIX_FUNCTION)
        call = completion.function_call
        if call is None or call.name != INLINE_FIX_FUNCTION["name"]:
            raise ValueError("Model did not call the fix function")

        args = call.arguments
        line_start = int(args["lineStart"])
        line_end = int(args["lineEnd"])
        if line_end < line_start:
            raise ValueError(f"lineEnd {line_end} is before lineStart {line_start}")

        fix = InlineFix(
            filename=suggestion.filename,
            line_start=line_start,
            line_end=line_end,
            correction=indent_code_fix(contents, str(args["code"]), line_start),
            comment=str(args["comment"]),
        )
    except Exception as e:
        logger.warning("Could not generate inline fix for %s: %s", suggestion.filename, e)
        return None

    if not is_code_fix_new(contents, fix):
        logger.debug("Discarding inline fix for %s:%d-%d, it matches the current code.", fix.filename, line_start, line_end)
        return None
    return fix
