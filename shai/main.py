"""
shai: turn intent into shell commands from your terminal.

Commands: shai ask | explain | query | shell-integration | config
"""

import sys
from pathlib import Path
from typing import Iterable, List, Optional

import click
from rich.console import Console
from rich.table import Table

from . import __version__
from .config import Config, SessionConfig, TaskMode
from .context import Context
from .errors import ShaiError
from .llm import ChatClient
from .logger import get_logger, setup_logger
from .prompts import Task
from .session import Session
from .terminal import Terminal
from .themes import get_theme, set_theme

console = Console()
log = get_logger(__name__)

BASH_INTEGRATION = """\
# shai: Alt-s asks for a command, Alt-e explains the current line
_shai_edit_line() {{
    local tmpf
    tmpf="$(mktemp)"
    printf '%s\\n' "$READLINE_LINE" > "$tmpf"
    shai "$1" --os "{os}" --shell bash --edit-file "$tmpf" </dev/tty
    READLINE_LINE="$(<"$tmpf")"
    READLINE_POINT="${{#READLINE_LINE}}"
    rm -f "$tmpf"
}}
_shai_ask() {{ _shai_edit_line ask; }}
_shai_explain() {{ _shai_edit_line explain; }}
bind -x '"\\es":_shai_ask'
bind -x '"\\ee":_shai_explain'
"""

ZSH_INTEGRATION = """\
# shai: Alt-s asks for a command, Alt-e explains the current line
autoload -U edit-command-line
shai-ask() {{
    VISUAL="shai ask --os \\"{os}\\" --shell zsh --edit-file" zle edit-command-line
}}
shai-explain() {{
    VISUAL="shai explain --os \\"{os}\\" --shell zsh --edit-file" zle edit-command-line
}}
zle -N shai-ask
zle -N shai-explain
bindkey '^[s' shai-ask
bindkey '^[e' shai-explain
"""

SHELL_INTEGRATIONS = {"bash": BASH_INTEGRATION, "zsh": ZSH_INTEGRATION}


def _split_names(values: Iterable[str]) -> List[str]:
    """Flatten repeated options that may also hold comma separated lists."""
    names = []
    for value in values:
        names.extend(part.strip() for part in value.split(",") if part.strip())
    return names


def _read_seed(edit_file: Optional[Path]) -> str:
    if edit_file is None:
        return ""
    try:
        return edit_file.read_text(encoding="utf-8").strip()
    except (OSError, UnicodeDecodeError) as e:
        log.warning("Cannot read %s: %s", edit_file, e)
        return ""


def _context_options(func):
    """Options shared by every command that sends a request."""
    options = [
        click.option("--pwd", is_flag=True, help="Tell the model the current directory"),
        click.option("--depth", type=click.IntRange(min=0), default=None,
                     help="Include `tree -L DEPTH` of the current directory"),
        click.option("--environment", "-e", multiple=True,
                     help="Environment variable names to disclose (repeatable, comma lists ok)"),
        click.option("--model", "-m", default=None, help="Model preset name or raw model id"),
        click.option("--os", "--operating-system", "os_label", default="",
                     help="Operating system label, e.g. 'Arch Linux'"),
        click.option("--shell", "shell_label", default="", help="Shell label, e.g. zsh"),
        click.option("--verbose", "-v", is_flag=True, help="Verbose logging"),
    ]
    for option in reversed(options):
        func = option(func)
    return func


def _session_options(func):
    options = [
        click.option("--write-stdout", is_flag=True, help="Print the answer after leaving"),
        click.option("--edit-file", type=click.Path(dir_okay=False, path_type=Path), default=None,
                     help="Seed the prompt from this file and write the accepted command back"),
    ]
    for option in reversed(options):
        func = option(func)
    return _context_options(func)


def _load_config(verbose: bool, console_logging: bool) -> Config:
    config = Config.load(".")
    if verbose:
        config.verbose = True
    setup_logger("shai", verbose=config.verbose, log_file=config.log_file, console=console_logging)
    set_theme(config.theme)
    return config


@click.group()
@click.version_option(__version__, prog_name="shai")
def cli():
    """shai: turn intent into shell commands from your terminal."""


def _start_session(mode: TaskMode, pwd, depth, environment, programs, model, os_label,
                   shell_label, verbose, write_stdout, edit_file):
    config = _load_config(verbose, console_logging=False)
    try:
        session_config = SessionConfig(
            mode=mode,
            preset=config.get_preset(model),
            os_label=os_label,
            shell_label=shell_label,
            pwd=pwd,
            depth=depth,
            environment=_split_names(environment),
            programs=_split_names(programs),
            write_stdout=write_stdout,
            edit_file=edit_file,
            main_pane_height=config.main_pane_height,
            poll_interval=config.poll_interval_ms / 1000,
        )
        client = ChatClient(session_config.preset, timeout=config.request_timeout)
        session = Session(session_config, client, Terminal(), seed_text=_read_seed(edit_file))
        log.info("Starting %s session with %s", mode.value, session_config.preset.name)
        disposition = session.run()
        log.info("Session ended: %s", disposition.value)
    except ShaiError as e:
        console.print(f"Error: {e}", style=get_theme().ERROR, markup=False, highlight=False)
        sys.exit(1)


@cli.command()
@click.option("--programs", "-p", multiple=True,
              help="Programs the command may use (repeatable, comma lists ok)")
@_session_options
def ask(programs, pwd, depth, environment, model, os_label, shell_label, verbose,
        write_stdout, edit_file):
    """Describe what you want and get a shell command back."""
    _start_session(TaskMode.ASK, pwd, depth, environment, programs, model, os_label,
                   shell_label, verbose, write_stdout, edit_file)


@cli.command()
@_session_options
def explain(pwd, depth, environment, model, os_label, shell_label, verbose,
            write_stdout, edit_file):
    """Paste a command and get it explained."""
    _start_session(TaskMode.EXPLAIN, pwd, depth, environment, (), model, os_label,
                   shell_label, verbose, write_stdout, edit_file)


@cli.command()
@click.argument("message", nargs=-1, required=True)
@click.option("--explain", "explain_mode", is_flag=True, help="Explain MESSAGE instead")
@click.option("--programs", "-p", multiple=True, help="Programs the command may use")
@_context_options
def query(message, explain_mode, programs, pwd, depth, environment, model, os_label,
          shell_label, verbose):
    """Run a single non-interactive request and print the answer."""
    config = _load_config(verbose, console_logging=True)
    mode = TaskMode.EXPLAIN if explain_mode else TaskMode.ASK
    try:
        session_config = SessionConfig(
            mode=mode,
            preset=config.get_preset(model),
            os_label=os_label,
            shell_label=shell_label,
            pwd=pwd,
            depth=depth,
            environment=_split_names(environment),
            programs=_split_names(programs),
        )
        client = ChatClient(session_config.preset, timeout=config.request_timeout)
        task = Task.EXPLAIN if explain_mode else Task.GENERATE_COMMAND
        answer = client.send(" ".join(message), str(Context.from_config(session_config)), task)
    except ShaiError as e:
        console.print(f"Error: {e}", style=get_theme().ERROR, markup=False, highlight=False)
        sys.exit(1)
    click.echo(answer)


@cli.command("shell-integration")
@click.argument("shell", type=click.Choice(sorted(SHELL_INTEGRATIONS)))
@click.option("--os", "--operating-system", "os_label", default="Linux",
              help="Operating system label baked into the snippet")
def shell_integration(shell, os_label):
    """Print key bindings to source from your shell rc file."""
    click.echo(SHELL_INTEGRATIONS[shell].format(os=os_label), nl=False)


@cli.command("config")
def show_config():
    """Show the resolved configuration and model presets."""
    config = _load_config(verbose=False, console_logging=True)
    theme = get_theme()

    settings = Table(title="Settings", title_justify="left", show_header=False,
                     border_style=theme.BORDER)
    settings.add_column(style=theme.KEY)
    settings.add_column()
    for key, value in config.summary().items():
        settings.add_row(key, str(value))
    console.print(settings)

    presets = Table(title="Models", title_justify="left", border_style=theme.BORDER)
    presets.add_column("Preset", style=theme.KEY)
    presets.add_column("Model")
    presets.add_column("Endpoint")
    presets.add_column("Key env")
    presets.add_column("Description", style=theme.DIM)
    for name, preset in config.models.items():
        marker = " *" if name == config.active_model else ""
        presets.add_row(name + marker, preset.model, preset.endpoint,
                        preset.api_key_env, preset.description)
    console.print(presets)


if __name__ == "__main__":
    cli()
