from typing import Any, Dict
import logging

import httpx

from ..exceptions import ProviderCallError, QueryTimeoutError

logger = logging.getLogger(__name__)


async def post_json(
    client: httpx.AsyncClient,
    provider: str,
    url: str,
    payload: Dict[str, Any],
    headers: Dict[str, str],
) -> Dict[str, Any]:
    """POST a JSON payload to a provider endpoint and return the decoded body."""
    try:
        response = await client.post(url, json=payload, headers=headers)
    except httpx.TimeoutException as e:
        logger.error(f"{provider} API request timed out: {str(e)}")
        raise QueryTimeoutError(f"{provider} API request timed out") from e
    except httpx.HTTPError as e:
        logger.error(f"{provider} API request failed: {str(e)}")
        raise ProviderCallError(provider) from e

    if response.status_code < 200 or response.status_code >= 300:
        logger.error(f"{provider} API error: {response.status_code} - {response.text}")
        raise ProviderCallError(provider, response.status_code)

    try:
        return response.json()
    except ValueError as e:
        logger.error(f"{provider} API returned a non-JSON body: {response.text[:500]}")
        raise ProviderCallError(provider, response.status_code) from e
