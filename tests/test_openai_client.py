"""Tests for the OpenAI client helper."""
from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

from workplace_pulse import openai_client as oc


@pytest.fixture(autouse=True)
def _fresh_client():
    oc.reset_client()
    yield
    oc.reset_client()


def _install_openai_stub(monkeypatch, content="hello"):
    """Make ``_load_openai`` return a fake module with an ``OpenAI`` class."""

    completion = SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content=content))]
    )
    client = MagicMock()
    client.chat.completions.create.return_value = completion
    fake_openai = SimpleNamespace(OpenAI=MagicMock(return_value=client))
    monkeypatch.setattr(oc, "_load_openai", lambda: fake_openai)
    return fake_openai, client


def test_missing_api_key_raises(monkeypatch):
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    _install_openai_stub(monkeypatch)

    with pytest.raises(oc.OpenAIClientError):
        oc.get_openai_client()


def test_client_is_created_once(monkeypatch):
    monkeypatch.setenv("OPENAI_API_KEY", "test-key")
    monkeypatch.setenv("OPENAI_ORG", "org-1")
    fake_openai, client = _install_openai_stub(monkeypatch)

    assert oc.get_openai_client() is client
    assert oc.get_openai_client() is client
    fake_openai.OpenAI.assert_called_once_with(api_key="test-key", organization="org-1")


def test_chat_completion_wrapper(monkeypatch):
    monkeypatch.setenv("OPENAI_API_KEY", "test-key")
    monkeypatch.delenv("OPENAI_ORG", raising=False)
    _, client = _install_openai_stub(monkeypatch, content="  insight  ")

    messages = [{"role": "user", "content": "hi"}]
    result = oc.chat_completion(messages, model="gpt-test", temperature=0.2)

    assert result == "insight"
    client.chat.completions.create.assert_called_once_with(
        model="gpt-test", messages=messages, temperature=0.2
    )


def test_chat_completion_rejects_malformed_response(monkeypatch):
    monkeypatch.setenv("OPENAI_API_KEY", "test-key")
    _, client = _install_openai_stub(monkeypatch)
    client.chat.completions.create.return_value = SimpleNamespace(choices=[])

    with pytest.raises(ValueError):
        oc.chat_completion([{"role": "user", "content": "hi"}])
