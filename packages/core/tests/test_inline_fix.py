"""Tests for inline fix generation."""

import pytest

from patchwise_core.inline_fix import generate_inline_fix, indent_code_fix, is_code_fix_new
from patchwise_core.models import ChangedFile, InlineFix, Suggestion
from patchwise_core.providers.base import Completion, FunctionCall

CONTENTS = "def f():\n    pass\n"

SUGGESTION = Suggestion(describe="Empty body", type="bug", comment="Return a value", code="pass", filename="a.py")


def fix_call(code, line_start, line_end, comment="Return one instead"):
    return Completion(
        function_call=FunctionCall(
            name="fix",
            arguments={"code": code, "lineStart": line_start, "lineEnd": line_end, "comment": comment},
        )
    )


def changed(contents=CONTENTS):
    return ChangedFile(filename="a.py", patch="@@ -1 +1,2 @@", current_contents=contents)


class TestIndentCodeFix:
    def test_single_line(self):
        assert indent_code_fix(CONTENTS, "return 1", 2) == "    return 1"

    def test_every_line_gets_the_indentation(self):
        assert indent_code_fix(CONTENTS, "if x:\n    y()", 2) == "    if x:\n        y()"

    def test_unindented_target(self):
        assert indent_code_fix(CONTENTS, "def g():", 1) == "def g():"

    @pytest.mark.parametrize("line_start", [0, 4])
    def test_out_of_range(self, line_start):
        with pytest.raises(ValueError):
            indent_code_fix(CONTENTS, "x", line_start)


class TestIsCodeFixNew:
    def test_identical_after_trimming_is_not_new(self):
        fix = InlineFix(filename="a.py", line_start=2, line_end=2, correction="pass", comment="c")
        assert is_code_fix_new(CONTENTS, fix) is False

    def test_changed_code_is_new(self):
        fix = InlineFix(filename="a.py", line_start=2, line_end=2, correction="    return 1", comment="c")
        assert is_code_fix_new(CONTENTS, fix) is True


class TestGenerateInlineFix:
    @pytest.mark.asyncio
    async def test_returns_indented_fix(self, stub_provider):
        provider = stub_provider([fix_call("return 1", 2, 2)])
        fix = await generate_inline_fix(provider, SUGGESTION, changed())
        assert fix == InlineFix(
            filename="a.py", line_start=2, line_end=2, correction="    return 1", comment="Return one instead"
        )
        _, function = provider.calls[0]
        assert function["name"] == "fix"

    @pytest.mark.asyncio
    async def test_redundant_fix_discarded(self, stub_provider):
        provider = stub_provider([fix_call("pass", 2, 2)])
        assert await generate_inline_fix(provider, SUGGESTION, changed()) is None

    @pytest.mark.asyncio
    async def test_no_function_call_gives_none(self, stub_provider):
        provider = stub_provider(["I would return 1 here."])
        assert await generate_inline_fix(provider, SUGGESTION, changed()) is None

    @pytest.mark.asyncio
    async def test_provider_failure_gives_none(self, stub_provider):
        provider = stub_provider([RuntimeError("rate limited")])
        assert await generate_inline_fix(provider, SUGGESTION, changed()) is None

    @pytest.mark.asyncio
    async def test_line_range_outside_file_gives_none(self, stub_provider):
        provider = stub_provider([fix_call("return 1", 40, 41)])
        assert await generate_inline_fix(provider, SUGGESTION, changed()) is None

    @pytest.mark.asyncio
    async def test_inverted_range_gives_none(self, stub_provider):
        provider = stub_provider([fix_call("return 1", 2, 1)])
        assert await generate_inline_fix(provider, SUGGESTION, changed()) is None

    @pytest.mark.asyncio
    async def test_missing_argument_gives_none(self, stub_provider):
        call = Completion(function_call=FunctionCall(name="fix", arguments={"code": "return 1"}))
        assert await generate_inline_fix(stub_provider([call]), SUGGESTION, changed()) is None

    @pytest.mark.asyncio
    async def test_deleted_file_skipped_without_calling_model(self, stub_provider):
        provider = stub_provider()
        file = ChangedFile(filename="a.py", patch="", current_contents=None)
        assert await generate_inline_fix(provider, SUGGESTION, file) is None
        assert provider.calls == []
