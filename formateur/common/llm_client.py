"""
Provider-agnostic LLM client for Formateur pipelines.

Supports OpenAI, Anthropic, and Google Gemini with a shared chat-completion
interface. Reasoning models (OpenAI o-series) reject sampling parameters and
system messages; the client adapts the request instead of failing.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional

from .errors import LLMUnavailableError, TransientServiceError
from .retry import NO_RETRY, RetryPolicy, call_with_retries

logger = logging.getLogger("formateur.common.llm_client")

# Output budget used when the caller leaves it to the model but the
# provider requires one (Anthropic).
DEFAULT_MAX_TOKENS = 1024

REASONING_MODEL_PREFIXES = ("o1", "o3", "o4")


def is_reasoning_model(model: str) -> bool:
    """Models that manage their own output length and ignore temperature."""
    name = (model or "").lower()
    return name.startswith(REASONING_MODEL_PREFIXES)


class LLMClient:
    """Unified chat completion client across LLM providers."""

    def __init__(
        self,
        provider: str = "openai",
        model: str = "",
        anthropic_api_key: Optional[str] = None,
        openai_api_key: Optional[str] = None,
        google_api_key: Optional[str] = None,
        retry_policy: RetryPolicy = NO_RETRY,
    ) -> None:
        self.provider = (provider or "openai").lower()
        self.model = model
        self.retry_policy = retry_policy
        self._client = None
        self._transient_errors: tuple = ()

        if self.provider == "anthropic":
            if not anthropic_api_key:
                logger.info("%s API key not provided, LLM client unavailable", self.provider)
                return
            try:
                import anthropic

                self._client = anthropic.AsyncAnthropic(api_key=anthropic_api_key)
                self._transient_errors = (
                    anthropic.APIConnectionError,
                    anthropic.RateLimitError,
                    anthropic.InternalServerError,
                )
            except ImportError:
                logger.warning("anthropic package not installed")
            except Exception as e:
                logger.warning("Failed to initialize Anthropic client: %s", e)
            return

        if self.provider == "openai":
            if not openai_api_key:
                logger.info("%s API key not provided, LLM client unavailable", self.provider)
                return
            try:
                import openai

                self._client = openai.AsyncOpenAI(api_key=openai_api_key)
                self._transient_errors = (
                    openai.APIConnectionError,
                    openai.RateLimitError,
                    openai.InternalServerError,
                )
            except ImportError:
                logger.warning("openai package not installed")
            except Exception as e:
                logger.warning("Failed to initialize OpenAI client: %s", e)
            return

        if self.provider == "google":
            if not google_api_key:
                logger.info("%s API key not provided, LLM client unavailable", self.provider)
                return
            try:
                import google.generativeai as genai
                from google.api_core import exceptions as google_exceptions

                genai.configure(api_key=google_api_key)
                self._client = genai  # Store the module, not a model instance
                self._transient_errors = (
                    google_exceptions.ServiceUnavailable,
                    google_exceptions.ResourceExhausted,
                    google_exceptions.DeadlineExceeded,
                    google_exceptions.InternalServerError,
                )
            except ImportError:
                logger.warning("google-generativeai package not installed")
            except Exception as e:
                logger.warning("Failed to initialize Gemini client: %s", e)
            return

        logger.warning("Unsupported LLM provider: %s", self.provider)

    @property
    def is_available(self) -> bool:
        return self._client is not None

    @property
    def accepts_sampling_params(self) -> bool:
        return not (self.provider == "openai" and is_reasoning_model(self.model))

    async def complete(
        self,
        messages: List[Dict[str, str]],
        *,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> str:
        """
        Run one chat completion.

        Args:
            messages: Ordered {"role", "content"} dicts; roles are "system",
                "user" or "assistant"
            temperature: Sampling temperature, dropped for models that reject it
            max_tokens: Output budget, dropped for models that manage their own

        Returns:
            Stripped response text

        Raises:
            LLMUnavailableError: no provider client
            TransientServiceError: network/quota/timeout failure after retries
        """
        if not self.is_available:
            raise LLMUnavailableError("LLM client is not available")

        if not self.accepts_sampling_params:
            temperature = None
            max_tokens = None

        return await call_with_retries(
            lambda: self._complete_once(messages, temperature, max_tokens),
            self.retry_policy,
            service=f"llm:{self.provider}",
        )

    async def _complete_once(
        self,
        messages: List[Dict[str, str]],
        temperature: Optional[float],
        max_tokens: Optional[int],
    ) -> str:
        try:
            if self.provider == "anthropic":
                return await self._complete_anthropic(messages, temperature, max_tokens)
            if self.provider == "openai":
                return await self._complete_openai(messages, temperature, max_tokens)
            if self.provider == "google":
                return await self._complete_google(messages, temperature, max_tokens)
        except self._transient_errors as e:
            raise TransientServiceError(f"llm:{self.provider}", str(e)) from e

        raise LLMUnavailableError(f"Unsupported LLM provider: {self.provider}")

    async def _complete_anthropic(self, messages, temperature, max_tokens) -> str:
        system = "\n\n".join(m["content"] for m in messages if m["role"] == "system")
        kwargs = {
            "model": self.model,
            "max_tokens": max_tokens or DEFAULT_MAX_TOKENS,
            "messages": [m for m in messages if m["role"] != "system"],
        }
        if system:
            kwargs["system"] = system
        if temperature is not None:
            kwargs["temperature"] = temperature

        response = await self._client.messages.create(**kwargs)
        return response.content[0].text.strip()

    async def _complete_openai(self, messages, temperature, max_tokens) -> str:
        if not self.accepts_sampling_params:
            messages = _fold_system_messages(messages)

        kwargs = {"model": self.model, "messages": messages}
        if temperature is not None:
            kwargs["temperature"] = temperature
        if max_tokens is not None:
            kwargs["max_tokens"] = max_tokens

        response = await self._client.chat.completions.create(**kwargs)
        return (response.choices[0].message.content or "").strip()

    async def _complete_google(self, messages, temperature, max_tokens) -> str:
        system = "\n\n".join(m["content"] for m in messages if m["role"] == "system")
        model_kwargs = {"model_name": self.model}
        if system:
            model_kwargs["system_instruction"] = system
        model = self._client.GenerativeModel(**model_kwargs)

        contents = [
            {
                "role": "model" if m["role"] == "assistant" else "user",
                "parts": [m["content"]],
            }
            for m in messages
            if m["role"] != "system"
        ]
        generation_config = {}
        if temperature is not None:
            generation_config["temperature"] = temperature
        if max_tokens is not None:
            generation_config["max_output_tokens"] = max_tokens

        response = await model.generate_content_async(
            contents,
            generation_config=generation_config or None,
        )
        return response.text.strip()


def _fold_system_messages(messages: List[Dict[str, str]]) -> List[Dict[str, str]]:
    """Merge system messages into the first user turn (o-series models)."""
    system = "\n\n".join(m["content"] for m in messages if m["role"] == "system")
    folded = [dict(m) for m in messages if m["role"] != "system"]
    if not system:
        return folded
    for m in folded:
        if m["role"] == "user":
            m["content"] = f"{system}\n\n{m['content']}"
            return folded
    return [{"role": "user", "content": system}] + folded
