"""Tests for the token estimation and truncation module."""

from __future__ import annotations

import pytest

from axiomate.core.tokens import (
    FileContent,
    estimate_tokens,
    fits_in_context,
    truncate_files_proportionally,
    truncate_to_fit,
)


class TestEstimateTokens:
    """Tests for the script-aware estimator."""

    def test_empty_string_is_zero(self) -> None:
        assert estimate_tokens("") == 0

    @pytest.mark.parametrize("text", ["a", "hello world", "中文", "Ünïcödé", "🙂", "\n\t "])
    def test_never_negative(self, text: str) -> None:
        assert estimate_tokens(text) >= 0

    def test_ascii_density(self) -> None:
        assert estimate_tokens("abcd") == 1
        assert estimate_tokens("abcde") == 2  # ceiling
        assert estimate_tokens("a" * 400) == 100

    def test_cjk_costs_more_than_ascii_of_equal_length(self) -> None:
        for length in (1, 3, 10, 57):
            cjk = "漢" * length
            ascii_text = "x" * length
            assert estimate_tokens(cjk) >= estimate_tokens(ascii_text)

    def test_kana_and_hangul_count_as_cjk(self) -> None:
        assert estimate_tokens("ひらがな") == estimate_tokens("漢字漢字")
        assert estimate_tokens("한국어요") == estimate_tokens("漢字漢字")

    def test_other_unicode_is_intermediate(self) -> None:
        other = estimate_tokens("é" * 100)
        assert estimate_tokens("e" * 100) < other < estimate_tokens("漢" * 100)


class TestFitsInContext:
    def test_fits_with_default_reserve(self) -> None:
        assert fits_in_context("a" * 400, 4096 + 100)
        assert not fits_in_context("a" * 404, 4096 + 100)

    def test_custom_reserve(self) -> None:
        assert fits_in_context("a" * 40, 20, reserve_tokens=10)
        assert not fits_in_context("a" * 44, 20, reserve_tokens=10)


class TestTruncateToFit:
    def test_within_budget_is_untouched(self) -> None:
        text = "line one\nline two"
        result = truncate_to_fit(text, 1000)
        assert result.content == text
        assert result.was_truncated is False
        assert result.original_lines == result.kept_lines == 2

    def test_keeps_leading_lines_and_appends_notice(self) -> None:
        text = "\n".join(f"line {i:03d} " + "x" * 30 for i in range(100))
        result = truncate_to_fit(text, 50)

        assert result.was_truncated is True
        assert result.original_lines == 100
        assert 0 < result.kept_lines < 100
        assert result.content.startswith("line 000")
        assert f"showing {result.kept_lines} of 100 lines" in result.content

    def test_empty_input_is_one_line(self) -> None:
        result = truncate_to_fit("", 10)
        assert result.was_truncated is False
        assert result.original_lines == 1

    def test_single_oversized_line(self) -> None:
        result = truncate_to_fit("x" * 400, 10)
        assert result.was_truncated is True
        assert result.original_lines == 1
        assert result.kept_lines == 0
        assert "showing 0 of 1 lines" in result.content


class TestTruncateFilesProportionally:
    def _file(self, path: str, lines: int) -> FileContent:
        return FileContent(path, "\n".join("y" * 39 for _ in range(lines)))

    def test_under_limit_nothing_truncated(self) -> None:
        files = [self._file("a.py", 5), self._file("b.py", 5)]
        result = truncate_files_proportionally(files, 10_000)
        assert [f.was_truncated for f in result] == [False, False]
        assert [f.content for f in result] == [f.content for f in files]

    def test_equal_files_truncated_equally(self) -> None:
        files = [self._file("a.py", 100), self._file("b.py", 100)]
        result = truncate_files_proportionally(files, 500)

        assert all(f.was_truncated for f in result)
        kept = [f.content.count("\n") for f in result]
        assert abs(kept[0] - kept[1]) <= 1

    def test_larger_file_loses_more(self) -> None:
        small, large = self._file("small.py", 20), self._file("large.py", 200)
        result = {f.path: f for f in truncate_files_proportionally([small, large], 1100)}

        assert result["large.py"].was_truncated is True
        assert estimate_tokens(result["large.py"].content) < estimate_tokens(large.content)
        assert estimate_tokens(result["small.py"].content) >= estimate_tokens(small.content) // 2
