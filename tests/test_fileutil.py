import os

import pytest

from ferryman import fileutil
from ferryman.fileutil import get_fzf_cmd, get_rg_cmd, glob_with_doublestar, skip_hidden


def _touch(path, mtime):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text("x")
    os.utime(path, (mtime, mtime))


@pytest.fixture
def tree(tmp_path):
    _touch(tmp_path / "a.txt", 1_000_000)
    _touch(tmp_path / "sub" / "b.txt", 2_000_000)
    _touch(tmp_path / "sub" / "deep" / "c.txt", 3_000_000)
    _touch(tmp_path / "d.md", 4_000_000)
    _touch(tmp_path / "node_modules" / "e.txt", 5_000_000)
    _touch(tmp_path / ".hidden.txt", 6_000_000)
    return tmp_path


@pytest.mark.parametrize(
    "path, expected",
    [
        (".env", True),
        ("src/main.go", False),
        ("node_modules/pkg/index.js", True),
        ("a/.git/config", True),
        (".", False),
        ("project/build/out.o", True),
        ("src/builder.go", False),
    ],
)
def test_skip_hidden(path, expected):
    assert skip_hidden(path) is expected


def test_recursive_glob_newest_first(tree):
    results, truncated = glob_with_doublestar("**/*.txt", str(tree), 0)
    assert truncated is False
    assert results == [
        str(tree / "sub" / "deep" / "c.txt"),
        str(tree / "sub" / "b.txt"),
        str(tree / "a.txt"),
    ]


def test_glob_excludes_ignored_and_hidden(tree):
    results, _ = glob_with_doublestar("**/*.txt", str(tree), 0)
    assert str(tree / "node_modules" / "e.txt") not in results
    assert str(tree / ".hidden.txt") not in results


def test_limit_truncates_to_newest(tree):
    results, truncated = glob_with_doublestar("**/*.txt", str(tree), 2)
    assert truncated is True
    assert results == [str(tree / "sub" / "deep" / "c.txt"), str(tree / "sub" / "b.txt")]


def test_brace_alternatives(tree):
    results, _ = glob_with_doublestar("*.{txt,md}", str(tree), 0)
    assert results == [str(tree / "d.md"), str(tree / "a.txt")]


def test_leading_slash_is_ignored(tree):
    with_slash, _ = glob_with_doublestar("/*.txt", str(tree), 0)
    without, _ = glob_with_doublestar("*.txt", str(tree), 0)
    assert with_slash == without == [str(tree / "a.txt")]


def test_single_star_does_not_cross_directories(tree):
    results, _ = glob_with_doublestar("sub/*.txt", str(tree), 0)
    assert results == [str(tree / "sub" / "b.txt")]


def test_current_directory_gives_relative_paths(tree, monkeypatch):
    monkeypatch.chdir(tree)
    results, _ = glob_with_doublestar("**/b.txt", ".", 0)
    assert results == [os.path.join("sub", "b.txt")]


def test_missing_directory_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        glob_with_doublestar("*.txt", str(tmp_path / "absent"), 0)


def test_rg_cmd_prefixes_relative_glob(monkeypatch):
    monkeypatch.setattr(fileutil, "_rg_path", "/usr/bin/rg")
    assert get_rg_cmd("*.go") == ["/usr/bin/rg", "--files", "-L", "--null", "--glob", "/*.go"]


def test_rg_cmd_without_glob(monkeypatch):
    monkeypatch.setattr(fileutil, "_rg_path", "/usr/bin/rg")
    assert get_rg_cmd("") == ["/usr/bin/rg", "--files", "-L", "--null"]


def test_rg_cmd_keeps_absolute_glob(monkeypatch):
    monkeypatch.setattr(fileutil, "_rg_path", "/usr/bin/rg")
    assert get_rg_cmd("/src/*.go")[-1] == "/src/*.go"


def test_commands_absent_without_tools(monkeypatch):
    monkeypatch.setattr(fileutil, "_rg_path", None)
    monkeypatch.setattr(fileutil, "_fzf_path", None)
    assert get_rg_cmd("*.go") is None
    assert get_fzf_cmd("main") is None


def test_fzf_cmd(monkeypatch):
    monkeypatch.setattr(fileutil, "_fzf_path", "/usr/bin/fzf")
    assert get_fzf_cmd("main") == ["/usr/bin/fzf", "--filter", "main", "--read0", "--print0"]