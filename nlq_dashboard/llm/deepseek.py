"""DeepSeek provider over its OpenAI-compatible chat completions endpoint."""

from typing import Optional
import logging

import httpx

from ..exceptions import ProviderCallError
from .http_client import post_json
from .prompted import PromptedLLMProvider

logger = logging.getLogger(__name__)


class DeepSeekProvider(PromptedLLMProvider):
    name = "DeepSeek"

    def __init__(
        self,
        api_key: str,
        model: str = "deepseek-chat",
        endpoint: str = "https://api.deepseek.com/v1/chat/completions",
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
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            "temperature": 0.7,
            "max_tokens": self.max_tokens,
        }
        headers = {"Authorization": f"Bearer {self.api_key}"}
        body = await post_json(self.client, self.name, self.endpoint, payload, headers)
        try:
            return body["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            logger.error(f"Unexpected DeepSeek response shape: {body}")
            raise ProviderCallError(self.name) from e

    async def aclose(self) -> None:
        await self.client.aclose()
