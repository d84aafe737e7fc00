import os
import shlex
import threading
import time

import pytest

from ferryman.shell import PersistentShell, get_persistent_shell, shell_quote


@pytest.fixture
def shell(tmp_path, monkeypatch):
    monkeypatch.setenv("SHELL", "/bin/sh")
    with PersistentShell(str(tmp_path)) as sh:
        yield sh


def test_shell_quote_escapes_single_quote():
    assert shell_quote("it's") == "'it'\\''s'"


@pytest.mark.parametrize("text", ["plain", "it's", "a b  c", "$HOME `x` \"q\"", ""])
def test_shell_quote_round_trips(text):
    assert shlex.split(shell_quote(text)) == [text]


def test_exec_captures_stdout(shell):
    result = shell.exec("echo hello")
    assert result.stdout == "hello\n"
    assert result.exit_code == 0
    assert result.interrupted is False


def test_exec_captures_stderr(shell):
    result = shell.exec("echo oops 1>&2")
    assert result.stderr == "oops\n"
    assert result.stdout == ""


def test_exec_reports_exit_code(shell):
    result = shell.exec("sh -c 'exit 3'")
    assert result.exit_code == 3


def test_starts_in_working_directory(shell, tmp_path):
    result = shell.exec("pwd")
    assert os.path.realpath(result.stdout.strip()) == os.path.realpath(tmp_path)


def test_cd_persists_between_commands(shell, tmp_path):
    target = tmp_path / "inner"
    target.mkdir()
    shell.exec(f"cd {shell_quote(str(target))}")
    result = shell.exec("pwd")
    assert result.stdout.strip() == str(target)
    assert shell.cwd == str(target)


def test_environment_sets_git_editor(shell):
    result = shell.exec("echo $GIT_EDITOR")
    assert result.stdout.strip() == "true"


def test_timeout_interrupts(shell):
    start = time.monotonic()
    result = shell.exec("sleep 5", timeout_ms=200)
    assert result.interrupted is True
    assert time.monotonic() - start < 4.5


def test_cancel_event_interrupts(shell):
    cancel = threading.Event()
    cancel.set()
    result = shell.exec("sleep 5", cancel=cancel)
    assert result.interrupted is True


def test_exec_after_close_raises(tmp_path, monkeypatch):
    monkeypatch.setenv("SHELL", "/bin/sh")
    sh = PersistentShell(str(tmp_path))
    sh.close()
    assert sh.is_alive is False
    with pytest.raises(RuntimeError):
        sh.exec("echo hi")


def test_get_persistent_shell_is_shared_and_restarts(tmp_path, monkeypatch):
    monkeypatch.setenv("SHELL", "/bin/sh")
    first = get_persistent_shell(str(tmp_path))
    try:
        assert get_persistent_shell(str(tmp_path)) is first
        first.close()
        second = get_persistent_shell(str(tmp_path))
        assert second is not first
        assert second.is_alive is True
        assert second.exec("echo again").stdout == "again\n"
    finally:
        get_persistent_shell(str(tmp_path)).close()