"""
LLM Package - Language Model Providers

Provider implementations behind a single capability interface, plus the
parsing of their replies.
"""

from .base import Degraded, LLMProvider, ParseOutcome, Parsed
from .claude import ClaudeProvider
from .deepseek import DeepSeekProvider
from .factory import PROVIDER_REGISTRY, create_llm_provider
from .openai_provider import OpenAIProvider
from .parsing import explanation_from_outcome, extract_sql_from_markdown, parse_explanation
from .prompted import PromptedLLMProvider

__all__ = [
    'LLMProvider',
    'PromptedLLMProvider',
    'Parsed',
    'Degraded',
    'ParseOutcome',
    'ClaudeProvider',
    'DeepSeekProvider',
    'OpenAIProvider',
    'PROVIDER_REGISTRY',
    'create_llm_provider',
    'parse_explanation',
    'explanation_from_outcome',
    'extract_sql_from_markdown',
]
