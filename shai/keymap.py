"""What the user sees, and which keys mean what in each situation.

The display state is never stored: it is derived from the task mode, which
panes hold text and whether a request is outstanding. Every binding lists
the states in which it is legal; a known control key pressed in any other
state does nothing.
"""

from dataclasses import dataclass
from enum import Enum
from typing import FrozenSet, List, Optional, Tuple

from prompt_toolkit.key_binding import KeyPress
from prompt_toolkit.keys import Keys

from .config import TaskMode


class DisplayState(Enum):
    STARTED = "started"
    PROCESSING = "processing"
    COMMAND_GENERATED = "command_generated"
    EXPLANATION_GENERATED = "explanation_generated"
    AUX_EXPLANATION_GENERATED = "aux_explanation_generated"


class Layout(Enum):
    INPUT_ONLY = "input_only"
    INPUT_WITH_AUXILIARY = "input_with_auxiliary"


class Focus(Enum):
    MAIN = "main"
    AUXILIARY = "auxiliary"


class UiIntent(Enum):
    SUBMIT = "submit"
    FORCE_EXIT = "force_exit"
    CANCEL = "cancel"
    ACCEPT = "accept"
    ACCEPT_RAW = "accept_raw"
    EXPLAIN = "explain"
    SCROLL_UP = "scroll_up"
    SCROLL_DOWN = "scroll_down"
    GROW_MAIN = "grow_main"
    SHRINK_MAIN = "shrink_main"
    TOGGLE_FOCUS = "toggle_focus"
    EDIT = "edit"


def derive_state(mode: TaskMode, main_empty: bool, aux_empty: bool, busy: bool) -> DisplayState:
    if busy:
        return DisplayState.PROCESSING
    if main_empty:
        return DisplayState.STARTED
    if mode is TaskMode.EXPLAIN:
        return DisplayState.EXPLANATION_GENERATED
    if aux_empty:
        return DisplayState.COMMAND_GENERATED
    return DisplayState.AUX_EXPLANATION_GENERATED


@dataclass(frozen=True)
class KeyBinding:
    keys: Tuple[str, ...]
    intent: UiIntent
    key_label: str
    label: str
    states: Optional[FrozenSet[DisplayState]] = None  # None: legal everywhere
    needs_auxiliary: bool = False

    def allows(self, state: DisplayState, layout: Layout) -> bool:
        if self.states is not None and state not in self.states:
            return False
        if self.needs_auxiliary and layout is not Layout.INPUT_WITH_AUXILIARY:
            return False
        return True


_ACCEPTABLE = frozenset({DisplayState.COMMAND_GENERATED, DisplayState.AUX_EXPLANATION_GENERATED})
_SCROLLABLE = frozenset({DisplayState.EXPLANATION_GENERATED, DisplayState.AUX_EXPLANATION_GENERATED})

BINDINGS: Tuple[KeyBinding, ...] = (
    KeyBinding((Keys.ControlM, Keys.ControlJ), UiIntent.SUBMIT, "Enter", "submit"),
    KeyBinding((Keys.Escape,), UiIntent.CANCEL, "Esc", "cancel",
               states=frozenset({DisplayState.PROCESSING})),
    KeyBinding((Keys.ControlA,), UiIntent.ACCEPT, "C-a", "accept", states=_ACCEPTABLE),
    KeyBinding((Keys.ControlR,), UiIntent.ACCEPT_RAW, "C-r", "accept raw", states=_ACCEPTABLE),
    KeyBinding((Keys.ControlE,), UiIntent.EXPLAIN, "C-e", "explain",
               states=frozenset({DisplayState.COMMAND_GENERATED})),
    KeyBinding((Keys.ControlU,), UiIntent.SCROLL_UP, "C-u", "scroll up", states=_SCROLLABLE),
    KeyBinding((Keys.ControlD,), UiIntent.SCROLL_DOWN, "C-d", "scroll down", states=_SCROLLABLE),
    KeyBinding((Keys.ShiftUp,), UiIntent.GROW_MAIN, "S-Up", "grow",
               states=frozenset({DisplayState.AUX_EXPLANATION_GENERATED})),
    KeyBinding((Keys.ShiftDown,), UiIntent.SHRINK_MAIN, "S-Down", "shrink",
               states=frozenset({DisplayState.AUX_EXPLANATION_GENERATED})),
    KeyBinding((Keys.ControlI,), UiIntent.TOGGLE_FOCUS, "Tab", "focus", needs_auxiliary=True),
    KeyBinding((Keys.ControlC,), UiIntent.FORCE_EXIT, "C-c", "quit"),
)

# Keys that edit or navigate the input field.
EDIT_KEYS = frozenset({
    Keys.ControlH,  # backspace
    Keys.Delete,
    Keys.Left,
    Keys.Right,
    Keys.Up,
    Keys.Down,
    Keys.Home,
    Keys.End,
    Keys.BracketedPaste,
})


def is_text_key(key: KeyPress) -> bool:
    """A plain printable character (the VT100 parser reports it as itself)."""
    k = key.key
    return not isinstance(k, Keys) and len(k) == 1 and k.isprintable()


def handle_key(key: KeyPress, state: DisplayState, layout: Layout) -> Optional[UiIntent]:
    """Map a key press to an intent, or None when it means nothing here."""
    for binding in BINDINGS:
        if key.key in binding.keys:
            return binding.intent if binding.allows(state, layout) else None
    if key.key in EDIT_KEYS or is_text_key(key):
        return UiIntent.EDIT
    return None


def legal_bindings(state: DisplayState, layout: Layout) -> List[KeyBinding]:
    return [b for b in BINDINGS if b.allows(state, layout)]
