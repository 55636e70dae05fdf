"""Tests for configuration parsing."""

import pytest

from app.core import config


class TestScopePolicyConfig:
    """Test reading the editor scope policies from the environment."""

    def test_default(self, monkeypatch):
        monkeypatch.delenv("JOB_SCOPE_POLICY", raising=False)
        assert config.read_scope_policy("JOB_SCOPE_POLICY", "row") == "row"

    def test_value_is_case_insensitive(self, monkeypatch):
        monkeypatch.setenv("USER_SCOPE_POLICY", "SubTree")
        assert config.read_scope_policy("USER_SCOPE_POLICY", "row") == "subtree"

    def test_unknown_policy_is_rejected(self, monkeypatch):
        monkeypatch.setenv("JOB_SCOPE_POLICY", "rows")
        with pytest.raises(ValueError, match="JOB_SCOPE_POLICY"):
            config.read_scope_policy("JOB_SCOPE_POLICY", "row")

    def test_loaded_policies_are_known(self):
        assert config.JOB_SCOPE_POLICY in config.SCOPE_POLICIES
        assert config.USER_SCOPE_POLICY in config.SCOPE_POLICIES
