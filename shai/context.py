"""Environment context sent along with every request.

Each section is optional and rendered as one sentence per line, in a fixed
order: operating system, shell, working directory, directory tree,
environment variables, allowed programs.
"""

from __future__ import annotations

import os
import subprocess
from dataclasses import dataclass
from typing import Optional, TYPE_CHECKING

from .logger import get_logger

if TYPE_CHECKING:
    from .config import SessionConfig

log = get_logger(__name__)

TREE_TIMEOUT = 10


@dataclass
class Context:
    os_label: Optional[str] = None
    shell_label: Optional[str] = None
    pwd: Optional[str] = None
    tree: Optional[str] = None
    environment: Optional[str] = None
    programs: Optional[str] = None

    @classmethod
    def from_config(cls, config: "SessionConfig") -> "Context":
        from .config import TaskMode

        programs = None
        if config.mode is TaskMode.ASK and config.programs:
            programs = ",".join(config.programs)
        return cls(
            os_label=config.os_label or None,
            shell_label=config.shell_label or None,
            pwd=os.environ.get("PWD", os.getcwd()) if config.pwd else None,
            tree=get_directory_tree(config.depth) if config.depth is not None else None,
            environment=",".join(config.environment) if config.environment else None,
            programs=programs,
        )

    def __str__(self) -> str:
        lines = []
        if self.os_label:
            lines.append(f"The operating system is: {self.os_label}\n")
        if self.shell_label:
            lines.append(f"The shell in use is: {self.shell_label}\n")
        if self.pwd:
            lines.append(f"You are currently in folder: {self.pwd}\n")
        if self.tree:
            lines.append(f"The tree command run in the current folder gave this output: {self.tree}\n")
        if self.environment:
            lines.append(f"The following environment variables are defined: {self.environment}\n")
        if self.programs:
            lines.append(
                "You have the following programs installed in the system, "
                f"you should only use these programs to accomplish the <task>: {self.programs}\n"
            )
        return "".join(lines)


def get_directory_tree(depth: int) -> Optional[str]:
    """Run ``tree -L depth`` in the current directory; None if unavailable."""
    try:
        result = subprocess.run(
            ["tree", "-L", str(depth)],
            capture_output=True,
            timeout=TREE_TIMEOUT,
        )
    except (OSError, subprocess.TimeoutExpired) as e:
        log.warning("tree command failed: %s", e)
        return None
    try:
        return result.stdout.decode("utf-8")
    except UnicodeDecodeError:
        log.warning("tree output is not valid UTF-8, omitting it")
        return None
