"""LiteLLM client wrapper with API key validation.

Answer generation routes through this module. Retries are LiteLLM's own
(``num_retries``, 0 by default here); any provider failure surfaces as
UpstreamModelError.
"""

from __future__ import annotations

import logging
import os

import litellm

from lawcrawl.errors import UpstreamModelError

logger = logging.getLogger(__name__)

# Disable LiteLLM verbose logging unless explicitly enabled
litellm.suppress_debug_info = True


# ------------------------------------------------------------------
# Provider → env var mapping for API key validation
# ------------------------------------------------------------------

_PROVIDER_ENV: dict[str, str | None] = {
    "openai": "OPENAI_API_KEY",
    "anthropic": "ANTHROPIC_API_KEY",
    "azure": "AZURE_API_KEY",
    "cohere": "COHERE_API_KEY",
    "mistral": "MISTRAL_API_KEY",
    "groq": "GROQ_API_KEY",
    "huggingface": "HUGGINGFACE_API_KEY",
    "ollama": None,  # Local, no key required
    "ollama_chat": None,
}


class MissingApiKey(EnvironmentError):
    """The provider of a model needs an API key that is not set."""

    def __init__(self, provider: str, env_var: str) -> None:
        super().__init__(
            f"API key not found for provider '{provider}'. "
            f"Set the {env_var} environment variable."
        )
        self.provider = provider
        self.env_var = env_var


def validate_api_key(model: str) -> None:
    """Check that the required API key env var is set for *model*.

    Args:
        model: LiteLLM model string in 'provider/model' format.

    Raises:
        MissingApiKey: If the required key is missing from environment.
    """
    provider = model.split("/")[0].lower() if "/" in model else "openai"
    env_var = _PROVIDER_ENV.get(provider)

    if env_var is None:
        return  # No key required (e.g. ollama)

    if not os.getenv(env_var):
        raise MissingApiKey(provider, env_var)


def complete(
    model: str,
    messages: list[dict],
    max_tokens: int = 1024,
    temperature: float = 0.7,
    num_retries: int = 0,
) -> str:
    """Call litellm.completion(). Returns content string.

    Args:
        model: LiteLLM model string (provider/model format).
        messages: OpenAI-style message list.
        max_tokens: Maximum output tokens.
        temperature: Sampling temperature.
        num_retries: Number of retries on transient errors.

    Returns:
        The text content of the first choice.

    Raises:
        UpstreamModelError: On any provider failure.
    """
    try:
        response = litellm.completion(
            model=model,
            messages=messages,
            max_tokens=max_tokens,
            temperature=temperature,
            num_retries=num_retries,
        )
    except Exception as exc:
        raise UpstreamModelError(f"Language model call failed ({model}): {exc}") from exc
    return response.choices[0].message.content or ""
