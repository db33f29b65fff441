"""Thin wrapper around the OpenAI chat API used for presenter insights.

The assistant is a black box to the rest of the package: callers hand over
chat messages and get back the text of the first choice.  Credentials come
from the environment (``OPENAI_API_KEY`` and optionally ``OPENAI_ORG``).
"""
from __future__ import annotations

import os
import types
from typing import Any, Dict, List, Optional


class OpenAIClientError(RuntimeError):
    """Raised when client configuration is invalid (e.g., missing API key)."""


_DEFAULT_MODEL = os.getenv("INSIGHTS_MODEL", "gpt-4.1")

_client: Optional[Any] = None


def _load_openai() -> types.ModuleType:
    """Import ``openai`` lazily so importing this module never needs a key."""

    import importlib

    return importlib.import_module("openai")


def _ensure_api_key_present() -> str:
    """Return the ``OPENAI_API_KEY`` env var or raise :class:`OpenAIClientError`."""

    api_key = os.getenv("OPENAI_API_KEY")
    if not api_key:
        raise OpenAIClientError("OPENAI_API_KEY environment variable is not set.")
    return api_key


def get_openai_client() -> Any:
    """Return a configured ``openai.OpenAI`` client, creating it once."""

    global _client
    if _client is not None:
        return _client

    openai = _load_openai()
    kwargs: Dict[str, Any] = {"api_key": _ensure_api_key_present()}
    org = os.getenv("OPENAI_ORG")
    if org:
        kwargs["organization"] = org
    _client = openai.OpenAI(**kwargs)
    return _client


def reset_client() -> None:
    """Forget the cached client (used after credentials change)."""

    global _client
    _client = None


def chat_completion(
    messages: List[Dict[str, str]],
    *,
    model: str = _DEFAULT_MODEL,
    **kwargs: Any,
) -> str:
    """Send *messages* and return the content of the first choice.

    Parameters
    ----------
    messages
        Chat messages in OpenAI format.
    model
        Model id to use (default from ``INSIGHTS_MODEL``, else ``gpt-4.1``).
    kwargs
        Additional parameters forwarded to ``chat.completions.create``.
    """

    client = get_openai_client()
    completion = client.chat.completions.create(
        model=model, messages=messages, **kwargs
    )
    try:
        content = completion.choices[0].message.content
    except (AttributeError, IndexError) as exc:
        raise ValueError("Model response missing expected fields") from exc
    return (content or "").strip()
