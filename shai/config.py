"""
Configuration: model presets plus per-user and per-project settings.

Loading priority:
  1. Project dir .shai.yml
  2. Git root .shai.yml
  3. Global ~/.shai/config.yml

Credentials never live in the YAML: each preset names the environment
variable holding its bearer key, and ``.env`` files are loaded first.
"""

import os
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional, Dict, List

import yaml
from dotenv import load_dotenv

from .errors import ConfigError
from .logger import get_logger
from .themes import DEFAULT_THEME, list_themes

log = get_logger(__name__)

CONFIG_DIR = Path.home() / ".shai"
CONFIG_FILE = CONFIG_DIR / "config.yml"
PROJECT_CONFIG_NAME = ".shai.yml"

DEFAULT_MODEL = "gpt-3.5-turbo"
DEFAULT_API_BASE = "https://api.openai.com/v1"
PROVIDERS = {"openai"}

MIN_PANE_HEIGHT = 3


class TaskMode(str, Enum):
    """Which kind of session is running."""

    ASK = "ask"
    EXPLAIN = "explain"


@dataclass
class ModelPreset:
    name: str
    model: str
    provider: str = "openai"
    api_base: str = DEFAULT_API_BASE
    api_key_env: str = "OPENAI_API_KEY"
    description: str = ""

    def resolve_api_key(self) -> Optional[str]:
        return os.environ.get(self.api_key_env) or None

    @property
    def endpoint(self) -> str:
        return self.api_base.rstrip("/") + "/chat/completions"


@dataclass
class SessionConfig:
    """Resolved settings for one interactive session.

    ``mode`` is the discriminant: ``programs`` only makes sense when asking
    for a command, so it is rejected in explain mode.
    """

    mode: TaskMode
    preset: ModelPreset
    os_label: str = ""
    shell_label: str = ""
    pwd: bool = False
    depth: Optional[int] = None
    environment: List[str] = field(default_factory=list)
    programs: List[str] = field(default_factory=list)
    write_stdout: bool = False
    edit_file: Optional[Path] = None
    main_pane_height: int = 6
    poll_interval: float = 0.1

    def __post_init__(self):
        if self.mode is TaskMode.EXPLAIN and self.programs:
            raise ConfigError("--programs is only available in ask mode")
        if self.depth is not None and self.depth < 0:
            raise ConfigError("--depth must be zero or positive")
        self.main_pane_height = max(MIN_PANE_HEIGHT, self.main_pane_height)


@dataclass
class Config:
    active_model: str = DEFAULT_MODEL
    models: Dict[str, ModelPreset] = field(default_factory=dict)
    theme: str = DEFAULT_THEME
    verbose: bool = False
    log_file: Optional[str] = None
    request_timeout: int = 60
    poll_interval_ms: int = 100
    main_pane_height: int = 6
    project_root: Optional[str] = None
    _config_source: str = ""

    @classmethod
    def load(cls, project_dir: str = ".") -> "Config":
        config = cls()
        project_path = Path(project_dir).resolve()

        for env_path in [CONFIG_DIR / ".env", project_path / ".env"]:
            if env_path.exists():
                load_dotenv(env_path, override=False)

        git_root = cls._find_git_root(project_path)
        for candidate in [
            project_path / PROJECT_CONFIG_NAME,
            (git_root / PROJECT_CONFIG_NAME) if git_root and git_root != project_path else None,
            CONFIG_FILE,
        ]:
            if candidate and candidate.exists():
                config._load_yaml(candidate)
                config._config_source = str(candidate)
                break

        if not config.models:
            config._add_default_presets()

        config._apply_env()
        config.project_root = str(project_path)
        return config

    @classmethod
    def get_default_presets(cls) -> Dict[str, ModelPreset]:
        return {
            "gpt-3.5-turbo": ModelPreset(
                name="gpt-3.5-turbo", model="gpt-3.5-turbo",
                description="OpenAI GPT-3.5 Turbo",
            ),
            "gpt-3.5-turbo-16k": ModelPreset(
                name="gpt-3.5-turbo-16k", model="gpt-3.5-turbo-16k",
                description="OpenAI GPT-3.5 Turbo, 16k context",
            ),
        }

    def _add_default_presets(self):
        self.models = self.get_default_presets()

    def _load_yaml(self, filepath: Path):
        try:
            with open(filepath) as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            log.warning("Ignoring unreadable config %s: %s", filepath, e)
            return
        if not isinstance(data, dict):
            log.warning("Ignoring config %s: top level is not a mapping", filepath)
            return

        self.active_model = str(data.get("active-model", DEFAULT_MODEL))
        self.theme = self._normalize_theme(data.get("theme", DEFAULT_THEME))
        self.verbose = self._coerce_bool(data.get("verbose", False), default=False)
        self.log_file = data.get("log-file")
        self.request_timeout = self._coerce_positive_int(
            data.get("request-timeout", 60), default=60, min_value=5, max_value=600
        )
        self.poll_interval_ms = self._coerce_positive_int(
            data.get("poll-interval-ms", 100), default=100, min_value=10, max_value=1000
        )
        self.main_pane_height = self._coerce_positive_int(
            data.get("main-pane-height", 6), default=6, min_value=MIN_PANE_HEIGHT, max_value=200
        )

        self.models = {}
        for name, m in (data.get("models") or {}).items():
            m = m or {}
            provider = str(m.get("provider", "openai")).lower()
            if provider not in PROVIDERS:
                log.warning("Skipping preset %s: unsupported provider %r", name, provider)
                continue
            self.models[name] = ModelPreset(
                name=name,
                model=m.get("model", name),
                provider=provider,
                api_base=m.get("api-base", DEFAULT_API_BASE),
                api_key_env=m.get("api-key-env", "OPENAI_API_KEY"),
                description=m.get("description", ""),
            )

    def _apply_env(self):
        env_map = {
            "SHAI_MODEL": ("active_model", str),
            "SHAI_THEME": ("theme", self._normalize_theme),
            "SHAI_VERBOSE": ("verbose", lambda v: self._coerce_bool(v, default=self.verbose)),
        }
        for env_var, (attr, conv) in env_map.items():
            val = os.environ.get(env_var)
            if val:
                setattr(self, attr, conv(val))

    def get_preset(self, name: Optional[str] = None) -> ModelPreset:
        """Return the named preset (or the active one).

        An unknown name is treated as a raw model identifier on the default
        endpoint, so ``--model gpt-4o`` works without editing the YAML.
        """
        name = name or self.active_model
        if name in self.models:
            return self.models[name]
        if not name:
            raise ConfigError("No model selected")
        return ModelPreset(name=name, model=name, description="(ad hoc)")

    def summary(self) -> dict:
        return {
            "active-model": self.active_model,
            "theme": self.theme,
            "verbose": self.verbose,
            "log-file": self.log_file or "~/.shai/logs/shai.log",
            "request-timeout": self.request_timeout,
            "poll-interval-ms": self.poll_interval_ms,
            "main-pane-height": self.main_pane_height,
            "source": self._config_source or "(built-in defaults)",
        }

    @staticmethod
    def _normalize_theme(value) -> str:
        name = str(value or "").strip().lower()
        return name if name in list_themes() or name in ("dark", "light") else DEFAULT_THEME

    @staticmethod
    def _coerce_bool(value, default: bool) -> bool:
        if isinstance(value, bool):
            return value
        if isinstance(value, str):
            text = value.strip().lower()
            if text in ("1", "true", "yes", "on"):
                return True
            if text in ("0", "false", "no", "off"):
                return False
        if isinstance(value, (int, float)):
            return bool(value)
        return default

    @staticmethod
    def _coerce_positive_int(value, default: int, min_value: int = 1, max_value: int = 100000) -> int:
        try:
            parsed = int(value)
        except (TypeError, ValueError):
            return default
        if parsed < min_value:
            return min_value
        if parsed > max_value:
            return max_value
        return parsed

    @staticmethod
    def _find_git_root(path: Path) -> Optional[Path]:
        current = path
        while current != current.parent:
            if (current / ".git").exists():
                return current
            current = current.parent
        return None
