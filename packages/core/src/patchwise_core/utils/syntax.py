"""Smallest enclosing function/class lookup, used to size inline-fix excerpts."""

from __future__ import annotations

import ast
from dataclasses import dataclass


@dataclass(frozen=True)
class EnclosingContext:
    kind: str  # "class" | "function" | "module"
    name: str
    start: int  # 1-based, inclusive
    end: int


def _module_context(text: str) -> EnclosingContext:
    return EnclosingContext(kind="module", name="module", start=1, end=max(len(text.split("\n")), 1))


def find_enclosing_context(text: str, line_start: int, line_end: int) -> EnclosingContext:
    """Return the innermost def/class that spans [line_start, line_end].

    Only Python source is understood; anything that does not parse yields the
    whole module.
    """
    try:
        tree = ast.parse(text)
    except (SyntaxError, ValueError):
        return _module_context(text)

    best: EnclosingContext | None = None
    for node in ast.walk(tree):
        if not isinstance(node, (ast.FunctionDef, ast.AsyncFunctionDef, ast.ClassDef)):
            continue
        start = node.lineno
        if node.decorator_list:
            start = min(d.lineno for d in node.decorator_list)
        end = node.end_lineno or start
        if start <= line_start and end >= line_end:
            if best is None or (end - start) < (best.end - best.start):
                kind = "class" if isinstance(node, ast.ClassDef) else "function"
                best = EnclosingContext(kind=kind, name=node.name, start=start, end=end)

    return best or _module_context(text)
