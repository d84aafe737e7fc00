"""Generation and parsing of unified diffs."""

from __future__ import annotations

import difflib
import os
import re
from dataclasses import dataclass, field
from enum import IntEnum

_HUNK_HEADER = re.compile(r"^@@ -(\d+),?(\d*) \+(\d+),?(\d*) @@")
_LINE_PIECES = re.compile(r"[^\n]*\n|[^\n]+")
_NO_NEWLINE = "\\ No newline at end of file"


class LineType(IntEnum):
    """Kind of a line inside a diff hunk."""

    CONTEXT = 0
    ADDED = 1
    REMOVED = 2


@dataclass
class DiffLine:
    """One line of a hunk with its position in the old and new file."""

    old_line_no: int = 0
    new_line_no: int = 0
    kind: LineType = LineType.CONTEXT
    content: str = ""


@dataclass
class Hunk:
    """A hunk header together with its lines."""

    header: str
    lines: list[DiffLine] = field(default_factory=list)


@dataclass
class DiffResult:
    """A parsed unified diff for a single file."""

    old_file: str = ""
    new_file: str = ""
    hunks: list[Hunk] = field(default_factory=list)


def parse_unified_diff(diff_text: str) -> DiffResult:
    """Parse the text of a unified diff into files, hunks and numbered lines."""
    result = DiffResult()
    current: Hunk | None = None
    old_line = new_line = 0
    in_file_header = True

    for line in diff_text.split("\n"):
        if in_file_header:
            if line.startswith("--- a/"):
                result.old_file = line[len("--- a/"):]
                continue
            if line.startswith("+++ b/"):
                result.new_file = line[len("+++ b/"):]
                in_file_header = False
                continue

        match = _HUNK_HEADER.match(line)
        if match:
            if current is not None:
                result.hunks.append(current)
            current = Hunk(header=line)
            old_line = int(match.group(1))
            new_line = int(match.group(3))
            continue

        if line.startswith(_NO_NEWLINE) or current is None:
            continue

        if line.startswith("+"):
            current.lines.append(
                DiffLine(new_line_no=new_line, kind=LineType.ADDED, content=line[1:])
            )
            new_line += 1
        elif line.startswith("-"):
            current.lines.append(
                DiffLine(old_line_no=old_line, kind=LineType.REMOVED, content=line[1:])
            )
            old_line += 1
        else:
            current.lines.append(
                DiffLine(old_line_no=old_line, new_line_no=new_line, content=line)
            )
            old_line += 1
            new_line += 1

    if current is not None:
        result.hunks.append(current)
    return result


def _display_name(file_name: str, cwd: str) -> str:
    base = cwd or os.curdir
    rel: str | None = None
    if os.path.isabs(file_name) == os.path.isabs(base):
        try:
            rel = os.path.relpath(file_name, base)
        except ValueError:
            rel = None
    if rel is not None and rel != ".." and not rel.startswith(".." + os.sep):
        name = rel
    else:
        name = file_name[len(cwd):] if cwd and file_name.startswith(cwd) else file_name
    name = name.replace(os.sep, "/")
    return name[1:] if name.startswith("/") else name


def _unified(old_label: str, new_label: str, before: str, after: str) -> str:
    diff_lines = difflib.unified_diff(
        _LINE_PIECES.findall(before),
        _LINE_PIECES.findall(after),
        fromfile=old_label,
        tofile=new_label,
        n=3,
    )
    parts = []
    for piece in diff_lines:
        if piece.endswith("\n"):
            parts.append(piece)
        else:
            parts.append(piece + "\n" + _NO_NEWLINE + "\n")
    return "".join(parts)


def generate_diff(
    before_content: str, after_content: str, file_name: str, cwd: str
) -> tuple[str, int, int]:
    """Return a unified diff with a/ and b/ paths, and its added and removed line counts."""
    name = _display_name(file_name, cwd)
    unified = _unified("a/" + name, "b/" + name, before_content, after_content)

    additions = removals = 0
    for line in unified.split("\n"):
        if line.startswith("+") and not line.startswith("+++"):
            additions += 1
        elif line.startswith("-") and not line.startswith("---"):
            removals += 1
    return unified, additions, removals