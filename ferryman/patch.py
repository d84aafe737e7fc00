"""Parsing and applying patches in the "*** Begin Patch" envelope format."""

from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from enum import Enum
from pathlib import Path
from typing import Callable, Optional

_END_PATCH = "*** End Patch"
_UPDATE_FILE = "*** Update File: "
_DELETE_FILE = "*** Delete File: "
_ADD_FILE = "*** Add File: "
_MOVE_TO = "*** Move to: "
_END_OF_FILE = "*** End of File"

_ADD_END_PREFIXES = (_END_PATCH, "*** Update File:", "*** Delete File:", "*** Add File:")
_UPDATE_END_PREFIXES = _ADD_END_PREFIXES + (_END_OF_FILE,)


class ActionType(str, Enum):
    """What a patch does to a file."""

    ADD = "add"
    DELETE = "delete"
    UPDATE = "update"


@dataclass
class FileChange:
    """The resolved change to one file."""

    type: ActionType
    old_content: Optional[str] = None
    new_content: Optional[str] = None
    move_path: Optional[str] = None


@dataclass
class Commit:
    """All file changes produced by a patch, keyed by path."""

    changes: dict[str, FileChange] = field(default_factory=dict)


@dataclass
class Chunk:
    """Lines to delete and insert at a line index of the original file."""

    orig_index: int
    del_lines: list[str] = field(default_factory=list)
    ins_lines: list[str] = field(default_factory=list)


@dataclass
class PatchAction:
    """The parsed instruction for one file."""

    type: ActionType
    new_file: Optional[str] = None
    chunks: list[Chunk] = field(default_factory=list)
    move_path: Optional[str] = None


@dataclass
class Patch:
    """Parsed actions keyed by path."""

    actions: dict[str, PatchAction] = field(default_factory=dict)


class DiffError(Exception):
    """Raised when a patch cannot be parsed or applied."""


def _file_error(action: str, reason: str, path: str) -> DiffError:
    return DiffError(f"{action} File Error: {reason}: {path}")


def _context_error(index: int, context: str, is_eof: bool) -> DiffError:
    prefix = "Invalid EOF Context" if is_eof else "Invalid Context"
    return DiffError(f"{prefix} {index}:\n{context}")


def _exact(a: str, b: str) -> bool:
    return a == b


def _rstrip_equal(a: str, b: str) -> bool:
    return a.rstrip(" \t") == b.rstrip(" \t")


def _strip_equal(a: str, b: str) -> bool:
    return a.strip() == b.strip()


_MATCHERS = ((_exact, 0), (_rstrip_equal, 1), (_strip_equal, 1))


def _try_find_match(
    lines: list[str], context: list[str], start: int, matcher: Callable[[str, str], bool]
) -> int:
    width = len(context)
    for i in range(max(start, 0), len(lines) - width + 1):
        if all(matcher(a, b) for a, b in zip(lines[i : i + width], context)):
            return i
    return -1


def _find_context_core(lines: list[str], context: list[str], start: int) -> tuple[int, int]:
    if not context:
        return start, 0
    for matcher, fuzz in _MATCHERS:
        idx = _try_find_match(lines, context, start, matcher)
        if idx >= 0:
            return idx, fuzz
    return -1, 0


def _find_context(
    lines: list[str], context: list[str], start: int, eof: bool
) -> tuple[int, int]:
    if eof:
        idx, fuzz = _find_context_core(lines, context, len(lines) - len(context))
        if idx != -1:
            return idx, fuzz
        idx, fuzz = _find_context_core(lines, context, start)
        return idx, fuzz + 10000
    return _find_context_core(lines, context, start)


def _peek_next_section(
    lines: list[str], initial_index: int
) -> tuple[list[str], list[Chunk], int, bool]:
    index = initial_index
    old: list[str] = []
    del_lines: list[str] = []
    ins_lines: list[str] = []
    chunks: list[Chunk] = []
    mode = "keep"

    def flush() -> None:
        if ins_lines or del_lines:
            chunks.append(Chunk(len(old) - len(del_lines), del_lines, ins_lines))

    while index < len(lines):
        raw = lines[index]
        if raw.startswith(("@@", "***")):
            break
        index += 1
        last_mode = mode
        if raw.startswith("+"):
            mode, line = "add", raw[1:]
        elif raw.startswith("-"):
            mode, line = "delete", raw[1:]
        elif raw.startswith(" "):
            mode, line = "keep", raw[1:]
        else:
            mode, line = "keep", raw

        if mode == "keep" and last_mode != mode:
            flush()
            del_lines, ins_lines = [], []

        if mode == "delete":
            del_lines.append(line)
            old.append(line)
        elif mode == "add":
            ins_lines.append(line)
        else:
            old.append(line)

    flush()

    if index < len(lines) and lines[index] == _END_OF_FILE:
        return old, chunks, index + 1, True
    return old, chunks, index, False


class Parser:
    """Reads patch lines into a Patch, checking them against the current files."""

    def __init__(self, current_files: dict[str, str], lines: list[str], index: int = 0):
        self.current_files = current_files
        self.lines = list(lines)
        self.index = index
        self.patch = Patch()
        self.fuzz = 0

    def _is_done(self, prefixes: tuple[str, ...]) -> bool:
        return self.index >= len(self.lines) or self.lines[self.index].startswith(prefixes)

    def _read_str(self, prefix: str, return_everything: bool = False) -> str:
        if self.index >= len(self.lines):
            return ""
        line = self.lines[self.index]
        if not line.startswith(prefix):
            return ""
        self.index += 1
        return line if return_everything else line[len(prefix):]

    def parse(self) -> Patch:
        """Parse up to and including the end marker; return the resulting patch."""
        actions = self.patch.actions
        while not self._is_done((_END_PATCH,)):
            path = self._read_str(_UPDATE_FILE)
            if path:
                if path in actions:
                    raise _file_error("Update", "Duplicate Path", path)
                move_to = self._read_str(_MOVE_TO)
                if path not in self.current_files:
                    raise _file_error("Update", "Missing File", path)
                action = self._parse_update_file(self.current_files[path])
                if move_to:
                    action.move_path = move_to
                actions[path] = action
                continue

            path = self._read_str(_DELETE_FILE)
            if path:
                if path in actions:
                    raise _file_error("Delete", "Duplicate Path", path)
                if path not in self.current_files:
                    raise _file_error("Delete", "Missing File", path)
                actions[path] = PatchAction(ActionType.DELETE)
                continue

            path = self._read_str(_ADD_FILE)
            if path:
                if path in actions:
                    raise _file_error("Add", "Duplicate Path", path)
                if path in self.current_files:
                    raise _file_error("Add", "File already exists", path)
                actions[path] = self._parse_add_file()
                continue

            raise DiffError(f"Unknown Line: {self.lines[self.index]}")

        if self.index >= len(self.lines) or not self.lines[self.index].startswith(_END_PATCH):
            raise DiffError("Missing End Patch")
        self.index += 1
        return self.patch

    def _seek_definition(self, file_lines: list[str], def_str: str, index: int) -> int:
        before = file_lines[:index]
        if def_str in before:
            return index
        for i, line in enumerate(file_lines[index:], start=index):
            if line == def_str:
                return i + 1
        stripped = def_str.strip()
        if any(line.strip() == stripped for line in before):
            return index
        for i, line in enumerate(file_lines[index:], start=index):
            if line.strip() == stripped:
                self.fuzz += 1
                return i + 1
        return index

    def _parse_update_file(self, text: str) -> PatchAction:
        action = PatchAction(ActionType.UPDATE)
        file_lines = text.split("\n")
        index = 0

        while not self._is_done(_UPDATE_END_PREFIXES):
            def_str = self._read_str("@@ ")
            section_str = ""
            if not def_str and self.index < len(self.lines) and self.lines[self.index] == "@@":
                section_str = self.lines[self.index]
                self.index += 1
            if not def_str and not section_str and index != 0:
                raise DiffError(f"Invalid Line:\n{self.lines[self.index]}")
            if def_str.strip():
                index = self._seek_definition(file_lines, def_str, index)

            context, chunks, end_index, eof = _peek_next_section(self.lines, self.index)
            new_index, fuzz = _find_context(file_lines, context, index, eof)
            if new_index == -1:
                raise _context_error(index, "\n".join(context), eof)
            self.fuzz += fuzz
            action.chunks.extend(
                replace(chunk, orig_index=chunk.orig_index + new_index) for chunk in chunks
            )
            index = new_index + len(context)
            self.index = end_index
        return action

    def _parse_add_file(self) -> PatchAction:
        lines = []
        while not self._is_done(_ADD_END_PREFIXES):
            line = self._read_str("", return_everything=True)
            if not line.startswith("+"):
                raise DiffError(f"Invalid Add File Line: {line}")
            lines.append(line[1:])
        return PatchAction(ActionType.ADD, new_file="\n".join(lines))


def text_to_patch(text: str, orig: dict[str, str]) -> tuple[Patch, int]:
    """Parse patch text against the original files; return the patch and its fuzz."""
    lines = text.strip().split("\n")
    if len(lines) < 2 or not lines[0].startswith("*** Begin Patch") or lines[-1] != _END_PATCH:
        raise DiffError("Invalid patch text")
    parser = Parser(orig, lines, index=1)
    patch = parser.parse()
    return patch, parser.fuzz


def _paths_with_prefixes(text: str, prefixes: tuple[str, ...]) -> list[str]:
    found: dict[str, None] = {}
    for line in text.strip().split("\n"):
        for prefix in prefixes:
            if line.startswith(prefix):
                found[line[len(prefix):]] = None
    return list(found)


def identify_files_needed(text: str) -> list[str]:
    """Return the distinct paths the patch updates or deletes."""
    return _paths_with_prefixes(text, (_UPDATE_FILE, _DELETE_FILE))


def identify_files_added(text: str) -> list[str]:
    """Return the distinct paths the patch adds."""
    return _paths_with_prefixes(text, (_ADD_FILE,))


def _updated_file(text: str, action: PatchAction, path: str) -> str:
    if action.type is not ActionType.UPDATE:
        raise DiffError("expected UPDATE action")
    orig_lines = text.split("\n")
    dest_lines: list[str] = []
    orig_index = 0

    for chunk in action.chunks:
        if chunk.orig_index > len(orig_lines):
            raise DiffError(
                f"{path}: chunk.orig_index {chunk.orig_index} > len(lines) {len(orig_lines)}"
            )
        if orig_index > chunk.orig_index:
            raise DiffError(
                f"{path}: orig_index {orig_index} > chunk.orig_index {chunk.orig_index}"
            )
        dest_lines.extend(orig_lines[orig_index : chunk.orig_index])
        orig_index = chunk.orig_index
        dest_lines.extend(chunk.ins_lines)
        orig_index += len(chunk.del_lines)

    dest_lines.extend(orig_lines[orig_index:])
    return "\n".join(dest_lines)


def patch_to_commit(patch: Patch, orig: dict[str, str]) -> Commit:
    """Resolve a parsed patch into concrete file contents."""
    commit = Commit()
    for path, action in patch.actions.items():
        old_content = orig.get(path, "")
        if action.type is ActionType.DELETE:
            commit.changes[path] = FileChange(ActionType.DELETE, old_content=old_content)
        elif action.type is ActionType.ADD:
            commit.changes[path] = FileChange(ActionType.ADD, new_content=action.new_file)
        elif action.type is ActionType.UPDATE:
            commit.changes[path] = FileChange(
                ActionType.UPDATE,
                old_content=old_content,
                new_content=_updated_file(old_content, action, path),
                move_path=action.move_path,
            )
    return commit


def assemble_changes(orig: dict[str, str], updated_files: dict[str, str]) -> Commit:
    """Build a commit from before/after contents; empty new content means deletion."""
    commit = Commit()
    for path, new_content in updated_files.items():
        exists = path in orig
        old_content = orig.get(path)
        if exists and old_content == new_content:
            continue
        if exists and new_content:
            commit.changes[path] = FileChange(
                ActionType.UPDATE, old_content=old_content, new_content=new_content
            )
        elif new_content:
            commit.changes[path] = FileChange(ActionType.ADD, new_content=new_content)
        elif exists:
            commit.changes[path] = FileChange(ActionType.DELETE, old_content=old_content)
        else:
            return commit
    return commit


def load_files(paths: list[str], open_fn: Callable[[str], str]) -> dict[str, str]:
    """Read every path with open_fn; a failure becomes a DiffError."""
    orig = {}
    for path in paths:
        try:
            orig[path] = open_fn(path)
        except Exception as exc:
            raise _file_error("Open", "File not found", path) from exc
    return orig


def apply_commit(
    commit: Commit,
    write_fn: Callable[[str, str], None],
    remove_fn: Callable[[str], None],
) -> None:
    """Carry out a commit through the given write and remove callables."""
    for path, change in commit.changes.items():
        if change.type is ActionType.DELETE:
            remove_fn(path)
        elif change.type is ActionType.ADD:
            if change.new_content is None:
                raise DiffError(f"Add action for {path} has no new_content")
            write_fn(path, change.new_content)
        elif change.type is ActionType.UPDATE:
            if change.new_content is None:
                raise DiffError(f"Update action for {path} has no new_content")
            if change.move_path is not None:
                write_fn(change.move_path, change.new_content)
                remove_fn(path)
            else:
                write_fn(path, change.new_content)


def process_patch(
    text: str,
    open_fn: Callable[[str], str],
    write_fn: Callable[[str, str], None],
    remove_fn: Callable[[str], None],
) -> str:
    """Parse and apply a patch; fuzzy matches are refused."""
    if not text.startswith("*** Begin Patch"):
        raise DiffError("Patch must start with *** Begin Patch")
    orig = load_files(identify_files_needed(text), open_fn)
    patch, fuzz = text_to_patch(text, orig)
    if fuzz > 0:
        raise DiffError(f"Patch contains fuzzy matches (fuzz level: {fuzz})")
    commit = patch_to_commit(patch, orig)
    apply_commit(commit, write_fn, remove_fn)
    return "Patch applied successfully"


def open_file(path: str) -> str:
    """Read a file's text unchanged."""
    with open(path, encoding="utf-8", newline="") as handle:
        return handle.read()


def write_file(path: str, content: str) -> None:
    """Write text to a relative path, creating parent directories."""
    if os.path.isabs(path):
        raise DiffError("We do not support absolute paths.")
    parent = os.path.dirname(path)
    if parent and parent != ".":
        os.makedirs(parent, mode=0o755, exist_ok=True)
    with open(path, "w", encoding="utf-8", newline="") as handle:
        handle.write(content)


def remove_file(path: str) -> None:
    """Delete a file."""
    Path(path).unlink()


def validate_patch(patch_text: str, files: dict[str, str]) -> tuple[bool, str]:
    """Check a patch against in-memory files; return (valid, message)."""
    if not patch_text.startswith("*** Begin Patch"):
        return False, "Patch must start with *** Begin Patch"
    for path in identify_files_needed(patch_text):
        if path not in files:
            return False, f"File not found: {path}"
    try:
        patch, fuzz = text_to_patch(patch_text, files)
    except DiffError as exc:
        return False, str(exc)
    if fuzz > 0:
        return False, f"Patch contains fuzzy matches (fuzz level: {fuzz})"
    try:
        patch_to_commit(patch, files)
    except DiffError as exc:
        return False, str(exc)
    return True, "Patch is valid"