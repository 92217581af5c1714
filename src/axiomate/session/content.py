"""Assemble a user message with its attached files.

`@path` mentions are rewritten to plain text and the referenced files are
inlined as XML blocks ahead of the message, truncated proportionally when
they do not fit the remaining context budget.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from pathlib import Path, PurePath
from typing import Protocol, runtime_checkable
from xml.sax.saxutils import escape

from axiomate.core.tokens import FileContent, estimate_tokens, truncate_files_proportionally
from axiomate.logging import get_logger

log = get_logger("content")

# Tokens kept back from the file budget for message framing
FILE_BUDGET_HOLDBACK = 500

CONTENT_OMITTED = "[Content omitted: not enough context space]"

_ATTR_ENTITIES = {'"': "&quot;"}


@dataclass(frozen=True, slots=True)
class FileReference:
    """A file or directory the user attached with `@path`."""

    path: str
    is_directory: bool = False


@dataclass(slots=True)
class FileReadResult:
    path: str
    content: str = ""
    is_directory: bool = False
    error: str | None = None


@runtime_checkable
class FileReader(Protocol):
    """Reads attached files relative to the working directory."""

    async def read_files(self, refs: list[FileReference], cwd: str) -> list[FileReadResult]: ...


class LocalFileReader:
    """Reads UTF-8 text files and lists directories one level deep.

    Failures are reported per file rather than raised.
    """

    def _read_one(self, ref: FileReference, cwd: str) -> FileReadResult:
        path = Path(ref.path)
        if not path.is_absolute():
            path = Path(cwd) / path
        try:
            if ref.is_directory or path.is_dir():
                names = sorted(p.name for p in path.iterdir())
                return FileReadResult(ref.path, ", ".join(names), is_directory=True)
            return FileReadResult(ref.path, path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return FileReadResult(ref.path, is_directory=ref.is_directory, error="File not found")
        except (OSError, UnicodeDecodeError) as e:
            return FileReadResult(ref.path, is_directory=ref.is_directory, error=str(e))

    async def read_files(self, refs: list[FileReference], cwd: str) -> list[FileReadResult]:
        return await asyncio.to_thread(lambda: [self._read_one(ref, cwd) for ref in refs])


def format_files_as_xml(files: list[FileReadResult]) -> str:
    """Render read results as `<file>` / `<directory>` blocks."""
    blocks = []
    for f in files:
        tag = "directory" if f.is_directory else "file"
        path = escape(f.path, _ATTR_ENTITIES)
        if f.error:
            blocks.append(f'<{tag} path="{path}" error="true">{escape(f.error)}</{tag}>')
        else:
            blocks.append(f'<{tag} path="{path}">\n{escape(f.content)}\n</{tag}>')
    return "\n\n".join(blocks)


def transform_user_message(message: str, files: list[FileReference]) -> str:
    """Replace each `@path` mention with `file path` or `directory path`."""
    result = message
    for ref in files:
        kind = "directory" if ref.is_directory else "file"
        result = result.replace(f"@{ref.path}", f"{kind} {ref.path}", 1)
    return result


@dataclass(slots=True)
class ContentBuildResult:
    """Outcome of building message content.

    Attributes:
        content: Final text to send as the user message
        file_summary: Short description of the attachments, empty without files
        was_truncated: Whether any attachment was cut or omitted
        truncation_notice: Human-readable note about truncation
        exceeds_available: Content still does not fit the available budget
        estimated_tokens: Estimated cost of `content`
    """

    content: str
    file_summary: str = ""
    was_truncated: bool = False
    truncation_notice: str = ""
    exceeds_available: bool = False
    estimated_tokens: int = 0


def _file_summary(files: list[FileReference]) -> str:
    names = ", ".join(PurePath(f.path.replace("\\", "/")).name or f.path for f in files)
    noun = "file" if len(files) == 1 else "files"
    return f"Attached {len(files)} {noun}: {names}"


async def build_message_content(
    user_message: str,
    files: list[FileReference],
    cwd: str,
    available_tokens: int,
    reader: FileReader | None = None,
) -> ContentBuildResult:
    """Inline attached files into the user message within a token budget.

    Args:
        user_message: Text as typed, possibly with `@path` mentions
        files: Attachments referenced by the message
        cwd: Directory relative paths are resolved against
        available_tokens: Context budget left for this message
        reader: File reading collaborator, LocalFileReader by default

    Returns:
        The content plus truncation details. `exceeds_available` is set when
        even the truncated content cannot fit.
    """
    read = await (reader or LocalFileReader()).read_files(files, cwd) if files else []
    return assemble_message_content(user_message, files, read, available_tokens)


def assemble_message_content(
    user_message: str,
    files: list[FileReference],
    read: list[FileReadResult],
    available_tokens: int,
) -> ContentBuildResult:
    """Fit already-read attachments into the message, as build_message_content does.

    Lets a caller size the same reads against more than one budget without
    touching the disk again.
    """
    if not files:
        tokens = estimate_tokens(user_message)
        return ContentBuildResult(
            content=user_message,
            estimated_tokens=tokens,
            exceeds_available=tokens > available_tokens,
        )

    message = transform_user_message(user_message, files)
    budget = available_tokens - estimate_tokens(message) - FILE_BUDGET_HOLDBACK

    readable = [FileContent(f.path, f.content) for f in read if not f.error]
    total = sum(estimate_tokens(f.content) for f in readable)

    was_truncated = False
    notice = ""
    if budget <= 0:
        was_truncated = True
        notice = f"Not enough context space: omitted content of {len(files)} file(s)"
        read = [
            FileReadResult(f.path, CONTENT_OMITTED, f.is_directory, f.error) for f in read
        ]
    elif total > budget:
        truncated = {t.path: t for t in truncate_files_proportionally(readable, budget)}
        cut = [t for t in truncated.values() if t.was_truncated]
        if cut:
            was_truncated = True
            notice = f"Truncated {len(cut)} file(s) to fit the context window"
        read = [
            f if f.error or f.path not in truncated
            else FileReadResult(f.path, truncated[f.path].content, f.is_directory)
            for f in read
        ]

    if was_truncated:
        log.info(notice)

    content = f"{format_files_as_xml(read)}\n\n{message}"
    tokens = estimate_tokens(content)
    return ContentBuildResult(
        content=content,
        file_summary=_file_summary(files),
        was_truncated=was_truncated,
        truncation_notice=notice,
        exceeds_available=tokens > available_tokens,
        estimated_tokens=tokens,
    )
