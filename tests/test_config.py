"""
Tests for config helpers and per-request Settings.
"""

import pytest

from app.core.config import Settings, env_float


class TestEnvFloat:
    def test_blank_value_uses_default(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("LLM_TEMPERATURE", "   ")
        assert env_float("LLM_TEMPERATURE", 0.1) == 0.1

    def test_unset_uses_default(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("LLM_TEMPERATURE", raising=False)
        assert env_float("LLM_TEMPERATURE", 0.1) == 0.1

    def test_value_is_stripped_and_parsed(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("LLM_TEMPERATURE", " 0.7 ")
        assert env_float("LLM_TEMPERATURE", 0.1) == 0.7


def test_settings_missing_lists_empty_values_in_order(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("MILVUS_URI", " ")
    monkeypatch.setenv("MILVUS_TOKEN", "tok")
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    assert Settings.from_env().missing() == ["MILVUS_URI", "OPENAI_API_KEY"]
