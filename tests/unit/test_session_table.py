"""Unit tests for SessionTable: symmetric pairing and generation numbering."""

from __future__ import annotations

import pytest

from pairlink.server.session_table import SessionTable


class TestSessionTable:
    def test_open_is_symmetric(self):
        table = SessionTable()
        session = table.open("a", "b", initiator_is_a=True)

        assert table.partner_of("a") == "b"
        assert table.partner_of("b") == "a"
        assert table.session_of("a") is table.session_of("b") is session
        assert session.initiator == "a"
        assert session.is_initiator("a")
        assert not session.is_initiator("b")
        assert len(table) == 1

    def test_initiator_can_be_b(self):
        table = SessionTable()
        session = table.open("a", "b", initiator_is_a=False)
        assert session.initiator == "b"

    def test_close_removes_both_directions(self):
        table = SessionTable()
        table.open("a", "b", initiator_is_a=True)

        assert table.close("b") == "a"
        assert table.partner_of("a") is None
        assert table.partner_of("b") is None
        assert len(table) == 0

    def test_close_unpaired_returns_none(self):
        table = SessionTable()
        assert table.close("nobody") is None

    def test_generations_increase_across_sessions(self):
        """Re-pairing the same two connections still yields a new generation."""
        table = SessionTable()
        first = table.open("a", "b", initiator_is_a=True)
        table.close("a")
        second = table.open("a", "b", initiator_is_a=True)

        assert second.generation > first.generation
        assert table.generation_of("a") == second.generation

    def test_open_rejects_already_paired_connection(self):
        table = SessionTable()
        table.open("a", "b", initiator_is_a=True)

        with pytest.raises(ValueError):
            table.open("a", "c", initiator_is_a=True)
        assert table.partner_of("c") is None
        assert table.partner_of("a") == "b"

    def test_open_rejects_self_pairing(self):
        table = SessionTable()
        with pytest.raises(ValueError):
            table.open("a", "a", initiator_is_a=True)

    def test_pairs_lists_each_session_once(self):
        table = SessionTable()
        table.open("a", "b", initiator_is_a=True)
        table.open("c", "d", initiator_is_a=False)

        pairs = table.pairs()
        assert [(p["a"], p["b"], p["initiator"]) for p in pairs] == [
            ("a", "b", "a"),
            ("c", "d", "d"),
        ]
