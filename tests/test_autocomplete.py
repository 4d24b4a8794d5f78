"""Tests for seesaw_cli.autocomplete — key handling, expansion and help."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from seesaw_cli.autocomplete import (
    CTRL_A,
    CTRL_C,
    CTRL_E,
    CTRL_U,
    CTRL_Z,
    HELP,
    PASS_THROUGH,
    TAB,
    AutoCompleter,
    PassThrough,
    Replace,
    join_chain,
)
from seesaw_cli.commands import Command, CommandRegistry

PROMPT = "ops@lab> "


@pytest.fixture()
def written() -> list[str]:
    return []


@pytest.fixture()
def completer(registry, written):
    return AutoCompleter(
        registry,
        PROMPT,
        write=written.append,
        on_interrupt=MagicMock(),
        on_suspend=MagicMock(),
    )


# ---------------------------------------------------------------------------
# join_chain
# ---------------------------------------------------------------------------


class TestJoinChain:
    def test_chain_without_args_ends_in_space(self) -> None:
        assert join_chain(["show", "status"], []) == "show status "

    def test_args_are_appended_without_trailing_space(self) -> None:
        assert join_chain(["show"], ["eth0"]) == "show eth0"

    def test_empty(self) -> None:
        assert join_chain([], []) == ""

    def test_args_only(self) -> None:
        assert join_chain([], ["bogus"]) == "bogus"


# ---------------------------------------------------------------------------
# Key dispatch
# ---------------------------------------------------------------------------


class TestKeys:
    def test_ctrl_a_moves_to_start_without_refresh(self, completer) -> None:
        assert completer("show", 3, CTRL_A) == Replace("show", 0, refresh=False)

    def test_ctrl_e_moves_to_end_without_refresh(self, completer) -> None:
        assert completer("show", 1, CTRL_E) == Replace("show", 4, refresh=False)

    def test_ctrl_u_clears_line(self, completer) -> None:
        assert completer("show ha", 7, CTRL_U) == Replace("", 0, refresh=True)

    def test_ctrl_c_requests_exit(self, completer) -> None:
        result = completer("sh", 2, CTRL_C)
        completer._on_interrupt.assert_called_once_with()
        assert result == Replace("sh", 2, refresh=False)

    def test_ctrl_z_requests_suspend(self, completer) -> None:
        result = completer("sh", 1, CTRL_Z)
        completer._on_suspend.assert_called_once_with()
        assert result == Replace("sh", 1, refresh=False)

    def test_printable_key_passes_through(self, completer, written) -> None:
        result = completer("sh", 2, "o")
        assert result is PASS_THROUGH
        assert isinstance(result, PassThrough)
        assert written == []

    def test_enter_passes_through(self, completer) -> None:
        assert completer("show", 4, "\r") is PASS_THROUGH


# ---------------------------------------------------------------------------
# Tab expansion
# ---------------------------------------------------------------------------


class TestExpand:
    def test_unique_prefix_expands_silently(self, completer, written) -> None:
        result = completer("sh ver", 6, TAB)
        assert result == Replace("show version ", len("show version "))
        assert written == []

    def test_group_prefix_expands_with_trailing_space(self, completer, written) -> None:
        assert completer("sh", 2, TAB) == Replace("show ", 5)
        assert written == []

    def test_ambiguous_prefix_keeps_line_and_lists_candidates(self, completer, written) -> None:
        result = completer("show st", 7, TAB)
        assert result == Replace("show st", 7)
        assert written == [f"{PROMPT}show st\n", " status\n", " stats\n"]

    def test_ambiguous_top_level_prefix(self, written) -> None:
        registry = CommandRegistry([Command("show"), Command("config"), Command("shutdown")])
        completer = AutoCompleter(registry, PROMPT, written.append, MagicMock(), MagicMock())
        result = completer("sh", 2, TAB)
        assert result == Replace("sh", 2)
        assert written == [f"{PROMPT}sh\n", " show\n", " shutdown\n"]

    def test_leaf_keeps_free_form_arguments(self, completer, written) -> None:
        assert completer("pi 10.0.0.1", 11, TAB) == Replace("ping 10.0.0.1", 13)
        assert written == []

    def test_unknown_prefix_left_alone(self, completer, written) -> None:
        assert completer("bogus", 5, TAB) == Replace("bogus", 5)
        assert written == []

    def test_only_text_left_of_cursor_is_expanded(self, completer) -> None:
        assert completer("sh ver extra", 6, TAB) == Replace("show version ", 13)


# ---------------------------------------------------------------------------
# Help
# ---------------------------------------------------------------------------


class TestHelp:
    def test_zero_match_prints_prompt_line_and_unknown(self, completer, written) -> None:
        result = completer("bogus", 5, HELP)
        assert written == [f"{PROMPT}bogus?\n", "Unknown command.\n"]
        assert result == Replace("bogus", 5)

    def test_group_lists_subcommands(self, completer, written) -> None:
        result = completer("sh ", 3, HELP)
        assert written == [f"{PROMPT}sh ?\n", " status\n", " stats\n", " version\n"]
        assert result == Replace("show ", 5)

    def test_empty_line_lists_top_level(self, completer, written) -> None:
        completer("", 0, HELP)
        assert written == [f"{PROMPT}?\n", " exit\n", " ping\n", " show\n", " config\n"]

    def test_ambiguous_lists_candidates_in_registry_order(self, completer, written) -> None:
        result = completer("show st", 7, HELP)
        assert written == [f"{PROMPT}show st?\n", " status\n", " stats\n"]
        assert result == Replace("show st", 7)

    def test_complete_command_prints_nothing(self, completer, written) -> None:
        result = completer("show version", 12, HELP)
        assert written == []
        assert result == Replace("show version ", 13)
