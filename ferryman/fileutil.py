"""File discovery helpers: external search tool commands and glob walking."""

from __future__ import annotations

import logging
import os
import re
import shutil
from dataclasses import dataclass
from typing import Iterator, Optional

_log = logging.getLogger(__name__)

_rg_path: Optional[str] = shutil.which("rg")
if _rg_path is None:
    _log.warning("Ripgrep (rg) not found in $PATH. Some features might be limited or slower.")

_fzf_path: Optional[str] = shutil.which("fzf")
if _fzf_path is None:
    _log.warning("FZF not found in $PATH. Some features might be limited or slower.")

_IGNORED_DIRS = frozenset(
    {
        ".ferryer",
        "node_modules",
        "vendor",
        "dist",
        "build",
        "target",
        ".git",
        ".idea",
        ".vscode",
        "__pycache__",
        "bin",
        "obj",
        "out",
        "coverage",
        "tmp",
        "temp",
        "logs",
        "generated",
        "bower_components",
        "jspm_packages",
    }
)


@dataclass
class FileInfo:
    """A matched path and its modification time in nanoseconds."""

    path: str
    mod_time: int


def get_rg_cmd(glob_pattern: str) -> Optional[list[str]]:
    """Return the argv listing files with ripgrep, or None when rg is unavailable."""
    if not _rg_path:
        return None
    args = [_rg_path, "--files", "-L", "--null"]
    if glob_pattern:
        if not os.path.isabs(glob_pattern) and not glob_pattern.startswith("/"):
            glob_pattern = "/" + glob_pattern
        args += ["--glob", glob_pattern]
    return args


def get_fzf_cmd(query: str) -> Optional[list[str]]:
    """Return the argv filtering NUL-separated input with fzf, or None when unavailable."""
    if not _fzf_path:
        return None
    return [_fzf_path, "--filter", query, "--read0", "--print0"]


def skip_hidden(path: str) -> bool:
    """Tell whether a path is hidden or lies inside a commonly ignored directory."""
    base = os.path.basename(path.rstrip(os.sep)) or path
    if base != "." and base.startswith("."):
        return True
    return any(part in _IGNORED_DIRS for part in path.split(os.sep))


def _split_alternatives(body: str) -> list[str]:
    alternatives, depth, current = [], 0, []
    for char in body:
        if char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
        if char == "," and depth == 0:
            alternatives.append("".join(current))
            current = []
        else:
            current.append(char)
    alternatives.append("".join(current))
    return alternatives


def _matching_brace(segment: str, start: int) -> int:
    depth = 0
    for pos in range(start, len(segment)):
        if segment[pos] == "{":
            depth += 1
        elif segment[pos] == "}":
            depth -= 1
            if depth == 0:
                return pos
    return -1


def _translate_segment(segment: str) -> str:
    out: list[str] = []
    i = 0
    while i < len(segment):
        char = segment[i]
        if char == "\\" and i + 1 < len(segment):
            out.append(re.escape(segment[i + 1]))
            i += 2
            continue
        if char == "*":
            out.append("[^/]*")
        elif char == "?":
            out.append("[^/]")
        elif char == "[":
            negate = segment[i + 1 : i + 2] in ("!", "^")
            body_start = i + 2 if negate else i + 1
            end = segment.find("]", body_start + 1)
            if end == -1:
                out.append(re.escape(char))
            else:
                body = segment[body_start:end].replace("\\", "\\\\")
                out.append(f"[^/{body}]" if negate else f"[{body}]")
                i = end
        elif char == "{":
            end = _matching_brace(segment, i)
            if end == -1:
                out.append(re.escape(char))
            else:
                alternatives = _split_alternatives(segment[i + 1 : end])
                out.append("(?:" + "|".join(map(_translate_segment, alternatives)) + ")")
                i = end
        else:
            out.append(re.escape(char))
        i += 1
    return "".join(out)


def _compile_glob(pattern: str) -> re.Pattern[str]:
    segments: list[str] = []
    for segment in pattern.split("/"):
        if segment == "**" and segments and segments[-1] == "**":
            continue
        segments.append(segment)
    parts = []
    for position, segment in enumerate(segments):
        last = position == len(segments) - 1
        if segment == "**":
            parts.append(".*" if last else "(?:[^/]*/)*")
        else:
            parts.append(_translate_segment(segment) + ("" if last else "/"))
    return re.compile("".join(parts), re.DOTALL)


def _walk_files(root: str) -> Iterator[str]:
    for current, dirnames, filenames in os.walk(root):
        dirnames.sort()
        for name in sorted(filenames):
            full = os.path.join(current, name)
            yield os.path.relpath(full, root).replace(os.sep, "/")


def glob_with_doublestar(
    pattern: str, search_path: str, limit: int
) -> tuple[list[str], bool]:
    """Find files under search_path matching a ** glob, newest first.

    Returns the matching paths and whether the result was cut to limit.
    """
    if not os.path.isdir(search_path):
        raise FileNotFoundError(f"glob walk error: no such directory: {search_path}")

    matcher = _compile_glob(pattern.removeprefix("/") if hasattr(str, "removeprefix") else pattern.lstrip("/"))
    matches: list[FileInfo] = []

    for rel in _walk_files(search_path):
        if not matcher.fullmatch(rel) or skip_hidden(rel):
            continue
        try:
            info = os.lstat(os.path.join(search_path, rel))
        except OSError:
            continue
        if search_path != "." and not rel.startswith(search_path):
            path = os.path.normpath(os.path.join(search_path, rel))
        elif search_path == "." and not rel.startswith("/"):
            path = os.path.normpath(os.path.join(search_path, rel))
        else:
            path = rel
        matches.append(FileInfo(path=path, mod_time=info.st_mtime_ns))
        if limit > 0 and len(matches) >= limit * 2:
            break

    matches.sort(key=lambda item: item.mod_time, reverse=True)

    truncated = limit > 0 and len(matches) > limit
    if truncated:
        matches = matches[:limit]
    return [item.path for item in matches], truncated