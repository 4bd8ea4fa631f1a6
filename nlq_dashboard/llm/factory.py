from typing import Callable, Dict
import logging

from ..config import Settings
from ..exceptions import ConfigurationError
from .base import LLMProvider
from .claude import ClaudeProvider
from .deepseek import DeepSeekProvider
from .openai_provider import OpenAIProvider

logger = logging.getLogger(__name__)


def _require(value, setting: str) -> str:
    if not value:
        raise ConfigurationError(f"{setting} environment variable must be set")
    return value


def _claude(settings: Settings) -> LLMProvider:
    return ClaudeProvider(
        api_key=_require(settings.claude_api_key, "CLAUDE_API_KEY"),
        model=settings.claude_model,
        endpoint=settings.claude_endpoint,
        timeout=settings.llm_timeout_seconds,
        max_tokens=settings.llm_max_tokens,
        result_sample_rows=settings.result_sample_rows,
    )


def _deepseek(settings: Settings) -> LLMProvider:
    return DeepSeekProvider(
        api_key=_require(settings.deepseek_api_key, "DEEPSEEK_API_KEY"),
        model=settings.deepseek_model,
        endpoint=settings.deepseek_endpoint,
        timeout=settings.llm_timeout_seconds,
        max_tokens=settings.llm_max_tokens,
        result_sample_rows=settings.result_sample_rows,
    )


def _openai(settings: Settings) -> LLMProvider:
    return OpenAIProvider(
        api_key=_require(settings.openai_api_key, "OPENAI_API_KEY"),
        model=settings.openai_model,
        timeout=settings.llm_timeout_seconds,
        max_tokens=settings.llm_max_tokens,
        result_sample_rows=settings.result_sample_rows,
    )


PROVIDER_REGISTRY: Dict[str, Callable[[Settings], LLMProvider]] = {
    "claude": _claude,
    "deepseek": _deepseek,
    "openai": _openai,
}


def create_llm_provider(settings: Settings) -> LLMProvider:
    """Create the configured provider. Raises ConfigurationError on misconfiguration."""
    name = (settings.llm_provider or "").strip().lower()
    constructor = PROVIDER_REGISTRY.get(name)
    if constructor is None:
        raise ConfigurationError(
            f"Unknown LLM provider '{settings.llm_provider}'. "
            f"Expected one of: {', '.join(sorted(PROVIDER_REGISTRY))}"
        )
    provider = constructor(settings)
    logger.info(f"Using {provider.name} LLM provider with model {provider.model}")
    return provider
