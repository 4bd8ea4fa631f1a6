"""Claude provider over the Anthropic Messages API."""

from typing import Optional
import logging

import httpx

from ..exceptions import ProviderCallError
from .http_client import post_json
from .prompted import PromptedLLMProvider

logger = logging.getLogger(__name__)

ANTHROPIC_VERSION = "2023-06-01"


class ClaudeProvider(PromptedLLMProvider):
    name = "Claude"

    def __init__(
        self,
        api_key: str,
        model: str = "claude-3-sonnet-20240229",
        endpoint: str = "https://api.anthropic.com/v1/messages",
        timeout: float = 150.0,
        max_tokens: int = 2000,
        result_sample_rows: int = 5,
        client: Optional[httpx.AsyncClient] = None,
    ):
        super().__init__(model, max_tokens, result_sample_rows)
        self.api_key = api_key
        self.endpoint = endpoint
        self.client = client or httpx.AsyncClient(timeout=timeout)

    async def _complete(self, system_prompt: str, user_prompt: str) -> str:
        payload = {
            "model": self.model,
            "system": [
                {
                    "type": "text",
                    "text": system_prompt,
                    "cache_control": {"type": "ephemeral"},
                }
            ],
            "messages": [{"role": "user", "content": user_prompt}],
            "temperature": 1,
            "max_tokens": self.max_tokens,
        }
        headers = {
            "x-api-key": self.api_key,
            "anthropic-version": ANTHROPIC_VERSION,
            "content-type": "application/json",
        }
        body = await post_json(self.client, self.name, self.endpoint, payload, headers)
        try:
            return body["content"][0]["text"]
        except (KeyError, IndexError, TypeError) as e:
            logger.error(f"Unexpected Claude response shape: {body}")
            raise ProviderCallError(self.name) from e

    async def aclose(self) -> None:
        await self.client.aclose()
