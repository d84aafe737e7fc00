# ferryman

Helpers for tools that read and change source trees on a user's behalf:

- `ferryman.unidiff` builds unified diffs and parses them into hunks with line numbers.
- `ferryman.patch` reads and applies patches in the `*** Begin Patch` format.
- `ferryman.fileutil` finds files by `**` glob, newest first. It skips hidden files and common build and vendor
  directories.
- `ferryman.filestate` records when each file was last read or written.
- `ferryman.shell` keeps one login shell running, so later commands see the working directory that earlier ones left.

The package needs nothing beyond the standard library.

## Installing

```
pip install .
```

To run the tests as well:

```
pip install .[test]
pytest
```

## Diffs

```python
from ferryman.unidiff import generate_diff, parse_unified_diff

text, additions, removals = generate_diff("one\ntwo\n", "one\nthree\n", "/work/file.txt", "/work")
result = parse_unified_diff(text)
print(result.old_file, result.new_file, len(result.hunks))
```

A path inside `cwd` appears relative to it, as `a/file.txt` and `b/file.txt`. The diff has three lines of context.
A last line with no newline is marked with `\ No newline at end of file`. `parse_unified_diff` returns a
`DiffResult`. Each of its `Hunk`s holds `DiffLine`s. A `DiffLine` has a `kind` (`LineType.CONTEXT`, `ADDED` or
`REMOVED`), its old and new line numbers, and its content.

## Patches

```python
from ferryman.patch import text_to_patch, patch_to_commit, apply_commit, validate_patch

patch_text = """*** Begin Patch
*** Update File: file.txt
@@
 hello
-old
+new
 bye
*** End Patch"""
files = {"file.txt": "hello\nold\nbye"}

ok, message = validate_patch(patch_text, files)       # (True, "Patch is valid")
patch, fuzz = text_to_patch(patch_text, files)
commit = patch_to_commit(patch, files)
apply_commit(commit, write_fn=lambda path, content: print(path, content), remove_fn=print)
```

A patch can hold `*** Add File:`, `*** Delete File:` and `*** Update File:` sections. An update can have a
`*** Move to:` line, and its last section can end with `*** End of File`. Context is matched exactly first. If that
fails, trailing whitespace is ignored, and then all surrounding whitespace. Each such looser match raises the
reported fuzz.

`process_patch(text, open_fn, write_fn, remove_fn)` loads the files it needs, parses the patch and applies it in one
call. It refuses any patch with a fuzz above zero. `open_file`, `write_file` and `remove_file` are ready-made
callables for the local file system. `write_file` creates parent directories and rejects absolute paths. Errors are
raised as `DiffError`. `validate_patch` returns `(False, message)` instead of raising. `identify_files_needed` and
`identify_files_added` list the paths a patch touches. `assemble_changes` builds a `Commit` from before and after
contents.

## Finding files

```python
from ferryman.fileutil import glob_with_doublestar, skip_hidden

paths, truncated = glob_with_doublestar("**/*.py", ".", 100)
```

Patterns support `*`, `?`, `[...]`, `{a,b}` and `**`. A `limit` of 0 means no limit. `truncated` tells whether
results were cut to `limit`. A `search_path` that is not a directory raises `FileNotFoundError`.

`get_rg_cmd(glob_pattern)` and `get_fzf_cmd(query)` return argument lists for `rg` and `fzf`. They return `None`
when the tool is not on `PATH`. They only build the list: running it is up to the caller. When the module is
imported it logs a warning for each tool it cannot find.

## File access records

```python
from ferryman.filestate import record_file_read, record_file_write, get_last_read_time

record_file_read("main.py")
print(get_last_read_time("main.py"))   # a datetime, or None if never read
```

The records are kept in memory, behind a lock, for the life of the process.

## A persistent shell

```python
from ferryman.shell import get_persistent_shell

sh = get_persistent_shell(".")
result = sh.exec("cd /tmp && ls", 5000)
print(result.stdout, result.exit_code, sh.cwd)
sh.close()
```

The shell is `$SHELL`, or `/bin/bash` if that is not set. It is started with `-l` and `GIT_EDITOR=true`. Commands run
one at a time. `exec` takes a timeout in milliseconds (0 for none) and an optional `threading.Event` for
cancelling. If the timeout passes or the event is set, the shell's child processes are killed and the result is
marked `interrupted`. If the command left no status behind, the exit code is 143. `exec` on a closed or dead shell
raises `RuntimeError`. `PersistentShell` can also be used as a context manager. `get_persistent_shell` returns one
shared shell. If that shell has died, it starts a new one in the old shell's last directory.

## What it does not do

This is a library only. It has no command-line program, does not itself run `rg` or `fzf`, and keeps nothing on disk
between runs.