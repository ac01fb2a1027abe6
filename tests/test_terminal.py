"""Tests for keyboard polling on top of prompt_toolkit's VT100 input."""

import time

import pytest
from prompt_toolkit.input import create_pipe_input
from prompt_toolkit.keys import Keys

from shai.errors import InputClosedError
from shai.terminal import Terminal


@pytest.fixture
def pipe():
    with create_pipe_input() as inp:
        yield inp


def test_poll_times_out_without_input(pipe):
    term = Terminal(input=pipe)
    started = time.monotonic()
    assert term.poll_key(0.05) is None
    assert time.monotonic() - started < 1


def test_plain_characters(pipe):
    term = Terminal(input=pipe)
    pipe.send_text("ls")
    assert term.poll_key(1).key == "l"
    assert term.poll_key(1).key == "s"


def test_control_keys_and_sequences(pipe):
    term = Terminal(input=pipe)
    pipe.send_text("\x01\r\x1b[A")
    assert term.poll_key(1).key == Keys.ControlA
    assert term.poll_key(1).key == Keys.ControlM
    assert term.poll_key(1).key == Keys.Up


def test_lone_escape_is_not_held_back(pipe):
    term = Terminal(input=pipe)
    pipe.send_text("\x1b")
    assert term.poll_key(1).key == Keys.Escape


def test_read_key_blocks_until_input(pipe):
    term = Terminal(input=pipe)
    pipe.send_text("x")
    assert term.read_key().key == "x"


def test_draw_requires_active_terminal():
    with pytest.raises(RuntimeError):
        Terminal().draw("hello")


def test_end_of_input_raises(pipe):
    term = Terminal(input=pipe)
    pipe.send_text("a")
    pipe.close()  # closes the writing end only
    assert term.read_key().key == "a"
    with pytest.raises(InputClosedError):
        term.read_key()
    with pytest.raises(InputClosedError):
        term.poll_key(0)
