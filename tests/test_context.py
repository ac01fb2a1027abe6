"""Tests for the environment context sent with each request."""

import subprocess

from shai.config import SessionConfig, TaskMode
from shai.context import Context, get_directory_tree
from shai.prompts import build_context_request


def test_empty_context_renders_nothing():
    assert str(Context()) == ""


def test_sections_in_fixed_order():
    ctx = Context(
        os_label="Arch Linux",
        shell_label="zsh",
        pwd="/home/me",
        tree=".\n└── a\n",
        environment="HOME,EDITOR",
        programs="fd,rg",
    )
    text = str(ctx)
    lines = [line for line in text.split("\n") if line.startswith(("The", "You"))]
    assert lines[0] == "The operating system is: Arch Linux"
    assert lines[1] == "The shell in use is: zsh"
    assert lines[2] == "You are currently in folder: /home/me"
    assert text.index("tree command") < text.index("environment variables") < text.index("programs")
    assert text.endswith("accomplish the <task>: fd,rg\n")


def test_context_request_wrapping():
    assert build_context_request("list files", "The shell in use is: zsh\n") == (
        "The shell in use is: zsh\nHere is your <task>: \n <task>list files</task>"
    )


class TestFromConfig:

    def test_ask_includes_programs_and_environment(self, preset):
        config = SessionConfig(mode=TaskMode.ASK, preset=preset, environment=["HOME", "PATH"],
                               programs=["fd", "rg"])
        ctx = Context.from_config(config)
        assert ctx.environment == "HOME,PATH"
        assert ctx.programs == "fd,rg"
        assert ctx.pwd is None
        assert ctx.tree is None

    def test_explain_never_lists_programs(self, preset):
        ctx = Context.from_config(SessionConfig(mode=TaskMode.EXPLAIN, preset=preset))
        assert ctx.programs is None

    def test_pwd_from_environment(self, preset, monkeypatch):
        monkeypatch.setenv("PWD", "/work/project")
        ctx = Context.from_config(SessionConfig(mode=TaskMode.ASK, preset=preset, pwd=True))
        assert ctx.pwd == "/work/project"

    def test_depth_runs_tree(self, preset, monkeypatch):
        calls = []

        def fake_run(args, **kwargs):
            calls.append(args)
            return subprocess.CompletedProcess(args, 0, stdout=b".\n`-- src\n", stderr=b"")

        monkeypatch.setattr("shai.context.subprocess.run", fake_run)
        ctx = Context.from_config(SessionConfig(mode=TaskMode.ASK, preset=preset, depth=2))
        assert calls == [["tree", "-L", "2"]]
        assert ctx.tree == ".\n`-- src\n"


class TestDirectoryTree:

    def test_missing_binary(self, monkeypatch):
        def fake_run(args, **kwargs):
            raise FileNotFoundError("tree")

        monkeypatch.setattr("shai.context.subprocess.run", fake_run)
        assert get_directory_tree(1) is None

    def test_non_utf8_output(self, monkeypatch):
        monkeypatch.setattr(
            "shai.context.subprocess.run",
            lambda args, **kwargs: subprocess.CompletedProcess(args, 0, stdout=b"\xff\xfe", stderr=b""),
        )
        assert get_directory_tree(1) is None

    def test_timeout(self, monkeypatch):
        def fake_run(args, **kwargs):
            raise subprocess.TimeoutExpired(args, kwargs.get("timeout"))

        monkeypatch.setattr("shai.context.subprocess.run", fake_run)
        assert get_directory_tree(3) is None
