"""Turning raw model feedback into deduplicated, per-file review comments.

Two response builders are provided, matching the two review strategies:

- ``build_xml_response`` parses the ``<review><suggestion>...`` documents the
  structured prompt asks for. Anything it cannot parse raises
  SuggestionParseError so the caller can fall back to the next strategy.
- ``build_plain_response`` simply concatenates the narrative feedback.
"""

from __future__ import annotations

import logging
import xml.etree.ElementTree as ET
from urllib.parse import quote

from patchwise_core.errors import SuggestionParseError
from patchwise_core.models import BuilderResponse, Suggestion
from patchwise_core.prompts import SUGGESTION_TEMPLATE

logger = logging.getLogger(__name__)

# Browsers and GitHub start refusing issue links somewhere past this length.
MAX_ISSUE_URL_LENGTH = 2048

_SUGGESTION_FIELDS = ("describe", "type", "comment", "code", "filename")


def _encode(value: str) -> str:
    # Same escaping as JavaScript's encodeURIComponent.
    return quote(value, safe="-_.!~*'()")


def _wrap_code_in_cdata(feedback: str) -> str:
    # Code payloads routinely contain '<' and '&'; CDATA keeps them literal.
    return feedback.replace("<code>", "<code><![CDATA[").replace("</code>", "]]></code>")


def _extract_review_document(feedback: str) -> str:
    start = feedback.find("<review")
    end = feedback.rfind("</review>")
    if start == -1 or end == -1:
        raise SuggestionParseError("No <review> element found in model response")
    return feedback[start : end + len("</review>")]


def _trim_code(code: str) -> str:
    # Only the outer lines are trimmed; indentation inside the block is code structure.
    lines = code.strip().split("\n")
    lines[0] = lines[0].strip()
    lines[-1] = lines[-1].strip()
    return "\n".join(lines)


def parse_xml_suggestions(feedbacks: list[str]) -> list[Suggestion]:
    """Parse every group's XML feedback and flatten the suggestions, in group order."""
    suggestions: list[Suggestion] = []
    for feedback in feedbacks:
        document = _wrap_code_in_cdata(_extract_review_document(feedback))
        try:
            root = ET.fromstring(document)
        except ET.ParseError as e:
            raise SuggestionParseError(f"Malformed review XML: {e}") from e

        for element in root.iter("suggestion"):
            values = {}
            for name in _SUGGESTION_FIELDS:
                child = element.find(name)
                if child is None:
                    raise SuggestionParseError(f"Suggestion is missing <{name}>")
                values[name] = child.text or ""
            suggestions.append(
                Suggestion(
                    describe=values["describe"].strip(),
                    type=values["type"].strip(),
                    comment=values["comment"].strip(),
                    code=_trim_code(values["code"]),
                    filename=values["filename"].strip(),
                )
            )
    return suggestions


def dedup_suggestions(suggestions: list[Suggestion]) -> list[Suggestion]:
    """Collapse suggestions with the same identity; the last one seen wins."""
    by_identity: dict[str, Suggestion] = {}
    for suggestion in suggestions:
        by_identity[suggestion.identity] = suggestion
    return list(by_identity.values())


def generate_issue_url(owner: str, repo_name: str, title: str, body: str, codeblock: str | None = None) -> str:
    """Return a markdown "Create Issue" link prefilled with the suggestion.

    The code block is dropped from the link when it would push the URL past
    MAX_ISSUE_URL_LENGTH; title and body are always kept.
    """
    base = f"https://github.com/{owner}/{repo_name}/issues/new?title={_encode(title)}&body={_encode(body)}"
    url = base
    if codeblock:
        url = base + _encode(f"\n{codeblock}\n")
        if len(url) > MAX_ISSUE_URL_LENGTH:
            url = base
    return f"[Create Issue]({url})"


def render_file_comments(owner: str, repo_name: str, suggestions: list[Suggestion]) -> list[str]:
    """Render one markdown block per file, files in order of first appearance."""
    by_file: dict[str, list[Suggestion]] = {}
    for suggestion in suggestions:
        by_file.setdefault(suggestion.filename, []).append(suggestion)

    comments = []
    for filename, file_suggestions in by_file.items():
        parts = [f"## {filename}\n"]
        for suggestion in file_suggestions:
            issue_link = generate_issue_url(
                owner, repo_name, suggestion.describe, suggestion.comment, suggestion.code
            )
            parts.append(
                SUGGESTION_TEMPLATE.format(comment=suggestion.comment, code=suggestion.code, issue_link=issue_link)
            )
        comments.append("\n".join(parts))
    return comments


def build_xml_response(owner: str, repo_name: str, feedbacks: list[str]) -> BuilderResponse:
    suggestions = dedup_suggestions(parse_xml_suggestions(feedbacks))
    logger.debug("Parsed %d unique suggestion(s) from %d response(s).", len(suggestions), len(feedbacks))
    comment = "\n".join(render_file_comments(owner, repo_name, suggestions))
    return BuilderResponse(comment=comment, suggestions=suggestions)


def build_plain_response(feedbacks: list[str]) -> BuilderResponse:
    return BuilderResponse(comment="\n".join(feedbacks), suggestions=[])
