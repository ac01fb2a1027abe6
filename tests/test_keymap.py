"""Tests for state derivation and the key binding table."""

import pytest
from prompt_toolkit.key_binding import KeyPress
from prompt_toolkit.keys import Keys

from shai.config import TaskMode
from shai.keymap import (
    BINDINGS,
    DisplayState,
    Layout,
    UiIntent,
    derive_state,
    handle_key,
    is_text_key,
    legal_bindings,
)

S = DisplayState
ONLY = Layout.INPUT_ONLY
BOTH = Layout.INPUT_WITH_AUXILIARY


class TestDeriveState:

    def test_ask_started(self):
        assert derive_state(TaskMode.ASK, main_empty=True, aux_empty=True, busy=False) is S.STARTED

    def test_ask_command_generated(self):
        assert derive_state(TaskMode.ASK, False, True, False) is S.COMMAND_GENERATED

    def test_ask_with_explanation(self):
        assert derive_state(TaskMode.ASK, False, False, False) is S.AUX_EXPLANATION_GENERATED

    def test_explain_generated(self):
        assert derive_state(TaskMode.EXPLAIN, False, True, False) is S.EXPLANATION_GENERATED

    @pytest.mark.parametrize("main_empty,aux_empty", [(True, True), (False, True), (False, False)])
    def test_busy_wins_regardless_of_text(self, main_empty, aux_empty):
        for mode in TaskMode:
            assert derive_state(mode, main_empty, aux_empty, busy=True) is S.PROCESSING


class TestHandleKey:

    @pytest.mark.parametrize("state", list(DisplayState))
    def test_enter_and_ctrl_c_always_legal(self, state):
        assert handle_key(KeyPress(Keys.ControlM), state, ONLY) is UiIntent.SUBMIT
        assert handle_key(KeyPress(Keys.ControlJ), state, ONLY) is UiIntent.SUBMIT
        assert handle_key(KeyPress(Keys.ControlC), state, ONLY) is UiIntent.FORCE_EXIT

    def test_escape_only_while_processing(self):
        assert handle_key(KeyPress(Keys.Escape), S.PROCESSING, ONLY) is UiIntent.CANCEL
        for state in (S.STARTED, S.COMMAND_GENERATED, S.AUX_EXPLANATION_GENERATED):
            assert handle_key(KeyPress(Keys.Escape), state, ONLY) is None

    def test_accept_states(self):
        for state in (S.COMMAND_GENERATED, S.AUX_EXPLANATION_GENERATED):
            assert handle_key(KeyPress(Keys.ControlA), state, ONLY) is UiIntent.ACCEPT
            assert handle_key(KeyPress(Keys.ControlR), state, ONLY) is UiIntent.ACCEPT_RAW
        for state in (S.STARTED, S.PROCESSING, S.EXPLANATION_GENERATED):
            assert handle_key(KeyPress(Keys.ControlA), state, ONLY) is None
            assert handle_key(KeyPress(Keys.ControlR), state, ONLY) is None

    def test_explain_only_after_command(self):
        assert handle_key(KeyPress(Keys.ControlE), S.COMMAND_GENERATED, ONLY) is UiIntent.EXPLAIN
        assert handle_key(KeyPress(Keys.ControlE), S.AUX_EXPLANATION_GENERATED, BOTH) is None
        assert handle_key(KeyPress(Keys.ControlE), S.PROCESSING, ONLY) is None

    def test_scroll_states(self):
        for state in (S.EXPLANATION_GENERATED, S.AUX_EXPLANATION_GENERATED):
            assert handle_key(KeyPress(Keys.ControlU), state, ONLY) is UiIntent.SCROLL_UP
            assert handle_key(KeyPress(Keys.ControlD), state, ONLY) is UiIntent.SCROLL_DOWN
        assert handle_key(KeyPress(Keys.ControlD), S.COMMAND_GENERATED, ONLY) is None

    def test_resize_only_with_both_answers(self):
        assert handle_key(KeyPress(Keys.ShiftUp), S.AUX_EXPLANATION_GENERATED, BOTH) is UiIntent.GROW_MAIN
        assert handle_key(KeyPress(Keys.ShiftDown), S.AUX_EXPLANATION_GENERATED, BOTH) is UiIntent.SHRINK_MAIN
        assert handle_key(KeyPress(Keys.ShiftUp), S.COMMAND_GENERATED, ONLY) is None

    def test_tab_needs_auxiliary_pane(self):
        assert handle_key(KeyPress(Keys.Tab), S.PROCESSING, BOTH) is UiIntent.TOGGLE_FOCUS
        assert handle_key(KeyPress(Keys.Tab), S.STARTED, ONLY) is None

    def test_text_and_edit_keys(self):
        assert handle_key(KeyPress("x"), S.PROCESSING, ONLY) is UiIntent.EDIT
        assert handle_key(KeyPress(Keys.Backspace), S.STARTED, ONLY) is UiIntent.EDIT
        assert handle_key(KeyPress(Keys.Left), S.COMMAND_GENERATED, ONLY) is UiIntent.EDIT
        assert handle_key(KeyPress(Keys.BracketedPaste, "ls"), S.STARTED, ONLY) is UiIntent.EDIT

    def test_unknown_control_keys_do_nothing(self):
        assert handle_key(KeyPress(Keys.ControlZ), S.STARTED, ONLY) is None
        assert handle_key(KeyPress(Keys.F5), S.STARTED, ONLY) is None


def test_is_text_key():
    assert is_text_key(KeyPress("a"))
    assert is_text_key(KeyPress(" "))
    assert is_text_key(KeyPress("é"))
    assert not is_text_key(KeyPress(Keys.ControlA))
    assert not is_text_key(KeyPress("\x07"))


def test_legal_bindings_follow_table_order():
    labels = [b.key_label for b in legal_bindings(S.COMMAND_GENERATED, ONLY)]
    assert labels == ["Enter", "C-a", "C-r", "C-e", "C-c"]


def test_bindings_have_unique_keys():
    seen = set()
    for binding in BINDINGS:
        for k in binding.keys:
            assert k not in seen
            seen.add(k)
