"""
LLM provider access for the generation context.

One LLMProvider interface over the OpenAI and Anthropic SDKs (selected with
LLM_PROVIDER), retrying only the provider's capacity errors, plus parsers that
recover JSON arrays and objects from chatty model output.
"""

import json
import os
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from functools import partial
from typing import Callable, Optional, TypeVar

from dotenv import load_dotenv
from loguru import logger

load_dotenv()

MAX_RETRIES = 5
BASE_DELAY = 1.0

# LaTeX documents are long; short completions truncate before \end{document}
DEFAULT_MAX_TOKENS = 4096

API_KEY_VARIABLES = {
    "anthropic": "ANTHROPIC_API_KEY",
    "openai": "OPENAI_API_KEY",
}

T = TypeVar("T")


def _retry_with_backoff(
    operation: Callable[[], T],
    retryable_exception: type[Exception],
    error_message: str,
) -> T:
    """Run operation, retrying retryable_exception with doubling delays (1s, 2s, 4s, ...)."""
    for attempt in range(1, MAX_RETRIES + 1):
        try:
            return operation()
        except retryable_exception:
            if attempt == MAX_RETRIES:
                raise
            delay = BASE_DELAY * 2 ** (attempt - 1)
            logger.warning(f"{error_message}, retry {attempt}/{MAX_RETRIES - 1} in {delay:.1f}s")
            time.sleep(delay)


def _require_api_key(provider_name: str) -> str:
    variable = API_KEY_VARIABLES[provider_name]
    api_key = os.getenv(variable)
    if not api_key:
        raise ValueError(f"{variable} environment variable not set")
    return api_key


@dataclass
class LLMResponse:
    """Completion text plus token usage."""

    content: str
    model: str
    input_tokens: int
    output_tokens: int


class LLMProvider(ABC):
    """
    Provider interface used by ContentCollaborator.

    Subclasses set _provider_prefix, _retryable_exception and _retry_message,
    call update_model() in __init__, and implement _call_api() as a single
    request without retries.
    """

    _provider_prefix: str
    _retryable_exception: type[Exception]
    _retry_message: str

    name: str
    model: str
    max_tokens: int = DEFAULT_MAX_TOKENS

    def update_model(self, model: str):
        self.model = model
        self.name = f"{self._provider_prefix}/{model}"

    @abstractmethod
    def _call_api(self, system_prompt: str, user_prompt: str) -> LLMResponse:
        pass

    def generate(self, system_prompt: str, user_prompt: str) -> LLMResponse:
        return _retry_with_backoff(
            partial(self._call_api, system_prompt, user_prompt),
            self._retryable_exception,
            self._retry_message,
        )


class AnthropicProvider(LLMProvider):
    """Claude models; retries on OverloadedError."""

    _provider_prefix = "anthropic"
    _retry_message = "Anthropic API overloaded"

    def __init__(self, model: str = "claude-sonnet-4-20250514", max_tokens: int = DEFAULT_MAX_TOKENS):
        # SDKs are imported only for the provider in use
        try:
            import anthropic
        except ImportError:
            raise ImportError("anthropic package required. Install with: pip install anthropic")

        self.client = anthropic.Anthropic(api_key=_require_api_key("anthropic"))
        self._retryable_exception = anthropic.OverloadedError
        self.max_tokens = max_tokens
        self.update_model(model)

    def _call_api(self, system_prompt: str, user_prompt: str) -> LLMResponse:
        response = self.client.messages.create(
            model=self.model,
            max_tokens=self.max_tokens,
            system=system_prompt,
            messages=[{"role": "user", "content": user_prompt}],
        )
        return LLMResponse(
            content=response.content[0].text,
            model=self.model,
            input_tokens=response.usage.input_tokens,
            output_tokens=response.usage.output_tokens,
        )


class OpenAIProvider(LLMProvider):
    """GPT models; retries on RateLimitError."""

    _provider_prefix = "openai"
    _retry_message = "OpenAI rate limit hit"

    def __init__(self, model: str = "gpt-4o", max_tokens: int = DEFAULT_MAX_TOKENS):
        try:
            import openai
        except ImportError:
            raise ImportError("openai package required. Install with: pip install openai")

        self.client = openai.OpenAI(api_key=_require_api_key("openai"))
        self._retryable_exception = openai.RateLimitError
        self.max_tokens = max_tokens
        self.update_model(model)

    def _call_api(self, system_prompt: str, user_prompt: str) -> LLMResponse:
        response = self.client.chat.completions.create(
            model=self.model,
            max_tokens=self.max_tokens,
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
        )
        return LLMResponse(
            content=response.choices[0].message.content or "",
            model=self.model,
            input_tokens=response.usage.prompt_tokens,
            output_tokens=response.usage.completion_tokens,
        )


PROVIDERS = {
    "anthropic": AnthropicProvider,
    "openai": OpenAIProvider,
}


def default_provider_name() -> str:
    """Provider selected through LLM_PROVIDER (default: openai)."""
    return os.getenv("LLM_PROVIDER", "openai").lower()


def api_key_configured(provider_name: Optional[str] = None) -> bool:
    variable = API_KEY_VARIABLES.get(provider_name or default_provider_name())
    return bool(variable and os.getenv(variable))


def get_provider(provider_name: Optional[str] = None, model: Optional[str] = None) -> LLMProvider:
    """
    Instantiate an LLM provider.

    Args:
        provider_name: "anthropic" or "openai" (default: LLM_PROVIDER)
        model: Model name (default: the provider's default)

    Raises:
        ValueError: Unknown provider or missing API key
        ImportError: Provider SDK not installed
    """
    provider_name = provider_name or default_provider_name()
    provider_class = PROVIDERS.get(provider_name)
    if provider_class is None:
        raise ValueError(f"Unknown provider: {provider_name}. Use one of: {', '.join(PROVIDERS)}")
    return provider_class(model=model) if model else provider_class()


def strip_code_fences(text: str) -> str:
    """Remove a surrounding markdown code fence (```json ... ```), if any."""
    text = text.strip()
    if text.startswith("```"):
        first_newline = text.find("\n")
        text = text[first_newline + 1 :] if first_newline != -1 else ""
        if text.rstrip().endswith("```"):
            text = text.rstrip()[:-3]
    return text.strip()


def _parse_json(text: str, expected_type: type, open_char: str, close_char: str):
    """Parse text as JSON of expected_type, else its outermost open..close span. None on failure."""
    text = strip_code_fences(text)
    candidates = [text]
    start, end = text.find(open_char), text.rfind(close_char)
    if start != -1 and end > start:
        candidates.append(text[start : end + 1])

    for candidate in candidates:
        try:
            result = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(result, expected_type):
            return result
    return None


def parse_array_response(text: str) -> list:
    """JSON array from an LLM response, or [] if none can be recovered."""
    result = _parse_json(text, list, "[", "]")
    return result if result is not None else []


def parse_dict_response(text: str, fallback_dict: Optional[dict] = None) -> dict:
    """JSON object from an LLM response, or fallback_dict ({} by default)."""
    result = _parse_json(text, dict, "{", "}")
    if result is not None:
        return result
    return fallback_dict if fallback_dict is not None else {}
