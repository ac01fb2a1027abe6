"""Shared fixtures for shai tests."""

import io
import logging
import os
from collections import deque

import pytest
import yaml
from prompt_toolkit.key_binding import KeyPress
from prompt_toolkit.keys import Keys
from rich.console import Console

from shai.config import ModelPreset, SessionConfig, TaskMode
from shai.errors import StreamError
from shai.session import Session


@pytest.fixture(autouse=True)
def isolated_home(tmp_path, monkeypatch):
    """Keep every test away from the real ~/.shai and shai environment variables."""
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setattr("shai.config.CONFIG_DIR", home / ".shai")
    monkeypatch.setattr("shai.config.CONFIG_FILE", home / ".shai" / "config.yml")
    monkeypatch.setattr("shai.logger.DEFAULT_LOG_FILE", home / ".shai" / "logs" / "shai.log")
    for var in ("SHAI_MODEL", "SHAI_THEME", "SHAI_VERBOSE", "NO_COLOR", "OPENAI_API_KEY"):
        monkeypatch.delenv(var, raising=False)
    return home


@pytest.fixture
def tmp_dir(tmp_path):
    """Provide a temporary project directory and cd into it."""
    project = tmp_path / "project"
    project.mkdir()
    orig = os.getcwd()
    os.chdir(project)
    yield project
    os.chdir(orig)


@pytest.fixture
def sample_config_data():
    """Minimal .shai.yml data dict."""
    return {
        "active-model": "local",
        "theme": "github_light",
        "verbose": False,
        "request-timeout": 30,
        "poll-interval-ms": 50,
        "main-pane-height": 8,
        "models": {
            "local": {
                "provider": "openai",
                "model": "llama3",
                "api-base": "http://localhost:8080/v1",
                "api-key-env": "LOCAL_API_KEY",
                "description": "Local test model",
            }
        },
    }


@pytest.fixture
def config_yaml_file(tmp_dir, sample_config_data):
    """Write a .shai.yml to tmp_dir and return its Path."""
    path = tmp_dir / ".shai.yml"
    with open(path, "w") as f:
        yaml.dump(sample_config_data, f, default_flow_style=False)
    return path


@pytest.fixture
def preset():
    return ModelPreset(name="test", model="gpt-test", api_base="http://model.test/v1",
                       api_key_env="SHAI_TEST_KEY")


# -- keyboard helpers -------------------------------------------------------

def key(k, data=None):
    return KeyPress(k, data)


def type_text(text):
    return [KeyPress(ch) for ch in text]


def wait(n=1):
    """Polls during which no key arrives."""
    return [None] * n


ENTER = KeyPress(Keys.ControlM, "\r")
ESC = KeyPress(Keys.Escape)
CTRL_C = KeyPress(Keys.ControlC)
CTRL_A = KeyPress(Keys.ControlA)
CTRL_R = KeyPress(Keys.ControlR)
CTRL_E = KeyPress(Keys.ControlE)
CTRL_U = KeyPress(Keys.ControlU)
CTRL_D = KeyPress(Keys.ControlD)
TAB = KeyPress(Keys.ControlI, "\t")
BACKSPACE = KeyPress(Keys.ControlH)


class FakeTerminal:
    """Scripted terminal: ``None`` entries are polls that see no key."""

    def __init__(self, keys=(), height=24):
        self.keys = deque(keys)
        self.height = height
        self.frames = []
        self.entered = False
        self.exited = False
        self.poll_timeouts = []

    def __enter__(self):
        self.entered = True
        return self

    def __exit__(self, exc_type, exc, tb):
        self.exited = True

    def draw(self, renderable):
        self.frames.append(renderable)

    def read_key(self):
        while self.keys:
            k = self.keys.popleft()
            if k is not None:
                return k
        raise AssertionError("key script exhausted")

    def poll_key(self, timeout):
        self.poll_timeouts.append(timeout)
        return self.keys.popleft() if self.keys else None


class FakeHandle:
    """Deterministic stand-in for RequestHandle; ``None`` items mean nothing arrived yet."""

    def __init__(self, items):
        self.items = deque(items)
        self.started = False
        self.cancelled = False
        self.finished = False

    def start(self):
        self.started = True
        return self

    @property
    def pending(self):
        return False

    def poll(self):
        if self.finished:
            return None
        if not self.items:
            self.finished = True
            return None
        item = self.items.popleft()
        if isinstance(item, StreamError):
            self.finished = True
        return item

    def cancel(self):
        self.cancelled = True
        self.finished = True


class FakeClient:
    """Hands out one scripted FakeHandle per request."""

    def __init__(self, *scripts, error=None):
        self.scripts = deque(scripts)
        self.error = error
        self.calls = []
        self.handles = []

    def open_stream(self, message, context, task):
        self.calls.append((message, context, task))
        if self.error is not None:
            raise self.error
        handle = FakeHandle(self.scripts.popleft() if self.scripts else [])
        self.handles.append(handle)
        return handle


@pytest.fixture
def make_session(preset, tmp_path):
    """Build a Session wired to a FakeTerminal and FakeClient."""

    def _make(keys=(), scripts=(), mode=TaskMode.ASK, seed="", error=None, height=24, **config):
        session_config = SessionConfig(mode=mode, preset=preset, **config)
        client = FakeClient(*scripts, error=error)
        terminal = FakeTerminal(keys, height=height)
        out = Console(file=io.StringIO(), width=120, color_system=None)
        return Session(session_config, client, terminal, seed_text=seed, stdout=out)

    return _make


@pytest.fixture(autouse=True)
def reset_shai_logger():
    """CLI tests configure the ``shai`` logger; detach its handlers afterwards."""
    yield
    logger = logging.getLogger("shai")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.propagate = True
