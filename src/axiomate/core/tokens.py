"""Script-aware token estimation and budget-driven truncation.

Counts are heuristic: no tokenizer is loaded, so estimates are available
for any model and never touch the network.
"""

from __future__ import annotations

import math
from dataclasses import dataclass

# Tokens per character by script
CJK_TOKENS_PER_CHAR = 0.67  # ~1.5 chars per token
ASCII_TOKENS_PER_CHAR = 0.25  # ~4 chars per token
OTHER_TOKENS_PER_CHAR = 0.5  # ~2 chars per token

DEFAULT_RESERVE_TOKENS = 4096

TRUNCATION_NOTICE = "\n... [Content truncated: showing {kept} of {total} lines]"


def _is_cjk(code: int) -> bool:
    return (
        0x4E00 <= code <= 0x9FFF  # CJK Unified Ideographs
        or 0x3040 <= code <= 0x30FF  # Hiragana + Katakana
        or 0xAC00 <= code <= 0xD7AF  # Hangul Syllables
    )


def estimate_tokens(text: str) -> int:
    """Estimate the token cost of `text`.

    Args:
        text: Any text; the empty string costs 0.

    Returns:
        Ceiling of the per-character density sum.
    """
    total = 0.0
    for char in text:
        code = ord(char)
        if _is_cjk(code):
            total += CJK_TOKENS_PER_CHAR
        elif code < 128:
            total += ASCII_TOKENS_PER_CHAR
        else:
            total += OTHER_TOKENS_PER_CHAR
    return math.ceil(total)


def fits_in_context(
    text: str,
    context_window: int,
    reserve_tokens: int = DEFAULT_RESERVE_TOKENS,
) -> bool:
    """True if `text` fits in the window after reserving room for the reply."""
    return estimate_tokens(text) <= context_window - reserve_tokens


@dataclass(slots=True)
class TruncateResult:
    """Outcome of truncate_to_fit."""

    content: str
    was_truncated: bool
    original_lines: int
    kept_lines: int


@dataclass(slots=True)
class FileContent:
    """A file body waiting to be inlined into a message."""

    path: str
    content: str


@dataclass(slots=True)
class TruncatedFile:
    """A file body after proportional truncation."""

    path: str
    content: str
    was_truncated: bool


def truncate_to_fit(text: str, token_limit: int) -> TruncateResult:
    """Keep the leading lines of `text` that fit in `token_limit`.

    A notice with the kept and total line counts is appended when anything
    is dropped. Text already within the limit is returned untouched.
    """
    lines = text.split("\n")
    original_lines = len(lines)

    if estimate_tokens(text) <= token_limit:
        return TruncateResult(text, False, original_lines, original_lines)

    kept: list[str] = []
    used = 0
    for line in lines:
        line_tokens = estimate_tokens(line + "\n")
        if used + line_tokens > token_limit:
            break
        kept.append(line + "\n")
        used += line_tokens

    notice = TRUNCATION_NOTICE.format(kept=len(kept), total=original_lines)
    return TruncateResult("".join(kept) + notice, True, original_lines, len(kept))


def truncate_files_proportionally(
    files: list[FileContent],
    token_limit: int,
) -> list[TruncatedFile]:
    """Shrink a group of files so their combined estimate fits `token_limit`.

    Each file gets a share of the limit proportional to its own size, so
    large files lose more lines than small ones. Nothing is truncated when
    the group already fits.
    """
    sizes = [estimate_tokens(f.content) for f in files]
    total = sum(sizes)

    if total <= token_limit:
        return [TruncatedFile(f.path, f.content, False) for f in files]

    ratio = max(token_limit, 0) / total
    result: list[TruncatedFile] = []
    for file, size in zip(files, sizes):
        quota = math.floor(size * ratio)
        truncated = truncate_to_fit(file.content, quota)
        result.append(TruncatedFile(file.path, truncated.content, truncated.was_truncated))
    return result
