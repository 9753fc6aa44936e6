"""Thin LiteLLM gateway shared by answer generation, summaries and embeddings.

Provider keys come from the environment only. ``validate_api_key`` checks the
key for a model before any provider call, and every call passes
``num_retries`` so LiteLLM retries transient failures with backoff.
"""

from __future__ import annotations

import os
from collections.abc import Iterator
from typing import Any

import litellm

litellm.suppress_debug_info = True
litellm.set_verbose = False  # type: ignore[assignment]

DEFAULT_NUM_RETRIES = 3

# LiteLLM provider prefix → environment variable holding its key.
# None marks providers authenticated some other way.
_KEY_ENV_BY_PROVIDER: dict[str, str | None] = {
    "openai": "OPENAI_API_KEY",
    "anthropic": "ANTHROPIC_API_KEY",
    "azure": "AZURE_API_KEY",
    "cohere": "COHERE_API_KEY",
    "gemini": "GEMINI_API_KEY",
    "google": "GOOGLE_API_KEY",
    "mistral": "MISTRAL_API_KEY",
    "groq": "GROQ_API_KEY",
    "vertex_ai": None,  # application default credentials
    "ollama": None,  # local server
    "ollama_chat": None,
}


def provider_of(model: str) -> str:
    """Return the LiteLLM provider prefix of *model* ('openai' if none)."""
    return model.split("/")[0].lower() if "/" in model else "openai"


def validate_api_key(model: str) -> None:
    """Fail fast when the key for *model*'s provider is not in the environment.

    Providers missing from the table are expected under ``<PROVIDER>_API_KEY``.

    Raises:
        EnvironmentError: Naming the variable to export.
    """
    provider = provider_of(model)
    env_var = _KEY_ENV_BY_PROVIDER.get(provider, f"{provider.upper()}_API_KEY")
    if env_var is not None and not os.getenv(env_var):
        raise EnvironmentError(
            f"API key not found for provider '{provider}'. "
            f"Set the {env_var} environment variable."
        )


def _completion(model: str, messages: list[dict], num_retries: int, **params: Any) -> Any:
    return litellm.completion(
        model=model, messages=messages, num_retries=num_retries, **params
    )


def complete(
    model: str,
    messages: list[dict],
    max_tokens: int = 1024,
    temperature: float = 0.0,
    num_retries: int = DEFAULT_NUM_RETRIES,
) -> str:
    """Run one non-streamed chat completion and return its text ('' if none)."""
    response = _completion(
        model, messages, num_retries, max_tokens=max_tokens, temperature=temperature
    )
    return response.choices[0].message.content or ""


def stream(
    model: str,
    messages: list[dict],
    temperature: float = 0.3,
    num_retries: int = DEFAULT_NUM_RETRIES,
) -> Iterator[str]:
    """Run a streamed chat completion, yielding each non-empty text delta."""
    for part in _completion(model, messages, num_retries, temperature=temperature, stream=True):
        delta = part.choices[0].delta.content if part.choices else None
        if delta:
            yield delta
