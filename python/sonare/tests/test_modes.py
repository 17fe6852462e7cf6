"""Tests for run mode resolution."""

import pytest

from sonare.modes import RunMode, MODE_ALIASES, resolve_mode, valid_mode_names


class TestResolveMode:
    """Tests for resolve_mode()."""

    @pytest.mark.parametrize("raw,expected", [
        ("serve-test", RunMode.TEST),
        ("test", RunMode.TEST),
        ("serve", RunMode.TEST),
        ("serve-http", RunMode.HTTP),
        ("http", RunMode.HTTP),
        ("serve-cfd", RunMode.TUNNEL),
        ("cfd", RunMode.TUNNEL),
        ("cloudflared", RunMode.TUNNEL),
        ("serve-prod", RunMode.PRODUCTION),
        ("prod", RunMode.PRODUCTION),
        ("view", RunMode.VIEW),
        ("tui", RunMode.VIEW),
    ])
    def test_aliases(self, raw, expected):
        assert resolve_mode(raw) is expected

    def test_case_and_whitespace_insensitive(self):
        """Every alias resolves regardless of case and surrounding whitespace."""
        for alias, mode in MODE_ALIASES.items():
            assert resolve_mode(f"  {alias.upper()}\t") is mode
            assert resolve_mode(f"\n{alias.title()} ") is mode

    @pytest.mark.parametrize("raw", [
        "", "   ", "production", "serve-tls", "htttp", "prod!", "serve test", "views", None,
    ])
    def test_unknown_values_are_invalid(self, raw):
        assert resolve_mode(raw) is None


class TestRunMode:
    """Tests for RunMode properties."""

    def test_tls_modes(self):
        assert RunMode.TEST.requires_tls
        assert RunMode.PRODUCTION.requires_tls
        assert not RunMode.HTTP.requires_tls
        assert not RunMode.TUNNEL.requires_tls
        assert not RunMode.VIEW.requires_tls

    def test_view_does_not_serve(self):
        assert not RunMode.VIEW.serves_network
        assert all(m.serves_network for m in RunMode if m is not RunMode.VIEW)

    def test_valid_mode_names_lists_canonical_values(self):
        names = valid_mode_names()
        for mode in RunMode:
            assert mode.value in names
