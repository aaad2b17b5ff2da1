"""Prompt scaffolding, patch rendering and the inline-fix function schema.

Everything here is pure string building: no network calls, and the same input
always renders the same text, so token estimates taken while packing still
hold when the conversation is finally sent.
"""

from __future__ import annotations

import re
from typing import Callable

from patchwise_core.models import ChangedFile, Suggestion, Turn
from patchwise_core.utils.syntax import EnclosingContext, find_enclosing_context

_HUNK_HEADER_RE = re.compile(r"^@@ -\d+(?:,\d+)? \+(\d+)(?:,(\d+))? @@")

# Extra unchanged lines pulled from the current file around each hunk.
_CONTEXT_LINES = 3

DEFAULT_GUIDELINES = """\
- Look for bugs, unhandled edge cases and incorrect error handling first.
- Flag security problems: injection, unsafe deserialization, leaked secrets, missing auth checks.
- Point out performance traps such as repeated work inside loops or unbounded memory use.
- Mention readability issues only when they make the change harder to maintain.
- Do not comment on code that already follows best practices."""

_SYSTEM_PROMPT = """You are a strict and precise senior code reviewer.
You review pull request patches and give concise, actionable feedback.

Guidelines:
{guidelines}

Rules:
- Focus on added lines (starting with '+') for direct violations.
- Removed lines (starting with '-') matter only for what their removal breaks.
- Avoid assumptions when context is unclear."""

_XML_REVIEW_INSTRUCTIONS = """Review the following patches.

{diff}

Respond with **only** an XML document in exactly this shape:

<review>
  <suggestion>
    <describe>a short title for the problem</describe>
    <type>one of: bug, security, performance, readability, style</type>
    <comment>the explanation and how to fix it, in GitHub-flavored markdown</comment>
    <code>the existing code the suggestion refers to, copied from the patch without diff markers</code>
    <filename>the path of the file, exactly as written in its patch header</filename>
  </suggestion>
</review>

Use one <suggestion> element per problem. If there are no problems return <review></review>.
Do not write anything outside the <review> element."""

_PLAIN_REVIEW_INSTRUCTIONS = """Review the following patches.

{diff}

Write the review in GitHub-flavored markdown. Group your feedback by file with a
`## <filename>` heading per file, and only mention files that need changes. If
nothing needs to change, say so in one sentence."""

SUGGESTION_TEMPLATE = """{comment}

```
{code}
```
{issue_link}
"""

INLINE_FIX_FUNCTION = {
    "name": "fix",
    "description": "The code fix that addresses the review suggestion.",
    "parameters": {
        "type": "object",
        "properties": {
            "code": {
                "type": "string",
                "description": "Replacement code for the selected lines, without line numbers or diff markers.",
            },
            "lineStart": {
                "type": "integer",
                "description": "First line (1-based, inclusive) of the current file the code replaces.",
            },
            "lineEnd": {
                "type": "integer",
                "description": "Last line (1-based, inclusive) of the current file the code replaces.",
            },
            "comment": {
                "type": "string",
                "description": "One or two sentences explaining the fix.",
            },
        },
        "required": ["code", "lineStart", "lineEnd", "comment"],
    },
}

_INLINE_FIX_PROMPT = """A reviewer left this suggestion on `{filename}`:

{comment}

The code it refers to:
```
{code}
```

Here is the relevant part of the current file, with line numbers:
```
{excerpt}
```

Call the `{function}` function with the smallest replacement that resolves the
suggestion. lineStart and lineEnd select the lines being replaced; the code
you return replaces them entirely. Keep the indentation relative to the first
replaced line and do not include the line numbers."""


# ---------------------------------------------------------------------- #
# Patch rendering                                                         #
# ---------------------------------------------------------------------- #


def _raw_patch(file: ChangedFile) -> str:
    return f"## {file.filename}\n\n{file.patch}"


def _contextual_patch(file: ChangedFile) -> str:
    current_lines = (file.current_contents or "").splitlines()
    rendered: list[str] = []
    hunk: list[str] = []
    first = last = 0

    def flush():
        if not hunk:
            return
        before = current_lines[max(0, first - 1 - _CONTEXT_LINES) : max(0, first - 1)]
        after = current_lines[last : last + _CONTEXT_LINES]
        rendered.append(hunk[0])
        rendered.extend(" " + line for line in before)
        rendered.extend(hunk[1:])
        rendered.extend(" " + line for line in after)

    for line in file.patch.split("\n"):
        match = _HUNK_HEADER_RE.match(line)
        if match:
            flush()
            new_start = int(match.group(1))
            new_count = int(match.group(2)) if match.group(2) is not None else 1
            # A zero-length range is anchored on the line *before* it.
            first = new_start if new_count else new_start + 1
            last = first + new_count - 1
            hunk = [line]
        elif hunk:
            hunk.append(line)
        else:
            rendered.append(line)
    flush()

    return f"## {file.filename}\n\n" + "\n".join(rendered)


def render_patch(file: ChangedFile) -> str:
    """Render one file's change as the patch text embedded in review prompts.

    New and deleted files have only one side to draw context from, so they are
    sent as the raw hunk; modified files get a few extra lines of surrounding
    code from the current version around every hunk.
    """
    if file.old_contents is None or file.current_contents is None:
        return _raw_patch(file)
    return _contextual_patch(file)


def strip_removed_lines(patch: str) -> str:
    """Drop every deletion line from a patch, keeping additions and context."""
    return "\n".join(line for line in patch.split("\n") if not line.startswith("-"))


# ---------------------------------------------------------------------- #
# Review conversations                                                    #
# ---------------------------------------------------------------------- #


def _system_turn(guidelines: str) -> Turn:
    return Turn(role="system", content=_SYSTEM_PROMPT.format(guidelines=guidelines or DEFAULT_GUIDELINES))


def build_xml_review_conversation(diff: str, guidelines: str = DEFAULT_GUIDELINES) -> list[Turn]:
    return [
        _system_turn(guidelines),
        Turn(role="user", content=_XML_REVIEW_INSTRUCTIONS.format(diff=diff)),
    ]


def build_review_conversation(diff: str, guidelines: str = DEFAULT_GUIDELINES) -> list[Turn]:
    return [
        _system_turn(guidelines),
        Turn(role="user", content=_PLAIN_REVIEW_INSTRUCTIONS.format(diff=diff)),
    ]


# ---------------------------------------------------------------------- #
# Inline fixes                                                            #
# ---------------------------------------------------------------------- #


def _locate_code(lines: list[str], code: str) -> tuple[int, int] | None:
    code_lines = [line for line in code.split("\n") if line.strip()]
    if not code_lines:
        return None
    anchor = code_lines[0].strip()
    for index, line in enumerate(lines):
        if line.strip() == anchor:
            start = index + 1
            return start, min(start + len(code_lines) - 1, len(lines))
    return None


def _numbered_excerpt(lines: list[str], start: int, end: int) -> str:
    return "\n".join(f"{number:>4} | {lines[number - 1]}" for number in range(start, end + 1))


def build_inline_fix_conversation(
    contents: str,
    suggestion: Suggestion,
    context_lookup: Callable[[str, int, int], EnclosingContext] = find_enclosing_context,
) -> list[Turn]:
    """Build the fix-seeking conversation for one suggestion.

    When the suggestion's code can be found in the file, only its enclosing
    function/class is shown; otherwise the model sees the whole file.
    """
    lines = contents.split("\n")
    start, end = 1, len(lines)
    located = _locate_code(lines, suggestion.code)
    if located is not None:
        context = context_lookup(contents, *located)
        start, end = max(1, context.start), min(len(lines), context.end)

    return [
        Turn(role="system", content="You are an expert programmer who writes minimal, correct code fixes."),
        Turn(
            role="user",
            content=_INLINE_FIX_PROMPT.format(
                filename=suggestion.filename,
                comment=suggestion.comment,
                code=suggestion.code,
                excerpt=_numbered_excerpt(lines, start, end),
                function=INLINE_FIX_FUNCTION["name"],
            ),
        ),
    ]
