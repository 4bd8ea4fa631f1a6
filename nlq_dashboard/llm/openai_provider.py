"""OpenAI provider using the official async client."""

from typing import Optional
import logging

from openai import APIConnectionError, APIStatusError, APITimeoutError, AsyncOpenAI, OpenAIError

from ..exceptions import ProviderCallError, QueryTimeoutError
from .prompted import PromptedLLMProvider

logger = logging.getLogger(__name__)


class OpenAIProvider(PromptedLLMProvider):
    name = "OpenAI"

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-4o-mini",
        timeout: float = 150.0,
        max_tokens: int = 2000,
        result_sample_rows: int = 5,
        client: Optional[AsyncOpenAI] = None,
    ):
        super().__init__(model, max_tokens, result_sample_rows)
        self.client = client or AsyncOpenAI(api_key=api_key, timeout=timeout, max_retries=0)

    async def _complete(self, system_prompt: str, user_prompt: str) -> str:
        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_prompt},
                ],
                max_tokens=self.max_tokens,
            )
        except APITimeoutError as e:
            logger.error(f"OpenAI API request timed out: {str(e)}")
            raise QueryTimeoutError("OpenAI API request timed out") from e
        except APIStatusError as e:
            logger.error(f"OpenAI API error: {e.status_code} - {e.message}")
            raise ProviderCallError(self.name, e.status_code) from e
        except (APIConnectionError, OpenAIError) as e:
            logger.error(f"OpenAI API request failed: {str(e)}")
            raise ProviderCallError(self.name) from e

        content = response.choices[0].message.content if response.choices else None
        if content is None:
            logger.error("OpenAI API returned an empty completion")
            raise ProviderCallError(self.name)
        return content

    async def aclose(self) -> None:
        await self.client.close()
