from abc import abstractmethod
from typing import Any, Dict, List, Optional
import logging

from .. import prompts
from ..models import ExplanationResponse
from .base import LLMProvider
from .parsing import explanation_from_outcome, extract_sql_from_markdown, parse_explanation

logger = logging.getLogger(__name__)


class PromptedLLMProvider(LLMProvider):
    """
    Provider built on a single system+user completion call.

    Subclasses implement `_complete`; prompt construction and reply parsing
    are shared.
    """

    def __init__(self, model: str, max_tokens: int = 2000, result_sample_rows: int = prompts.RESULT_SAMPLE_ROWS):
        self.model = model
        self.max_tokens = max_tokens
        self.result_sample_rows = result_sample_rows

    @abstractmethod
    async def _complete(self, system_prompt: str, user_prompt: str) -> str:
        """Send one completion request and return the reply text."""

    async def generate_explanation(
        self,
        question: str,
        schema_text: str,
        admin_terms: Dict[str, str],
        dialect: str = "SQL Server",
    ) -> ExplanationResponse:
        logger.info(f"Generating explanation for question: {question}")
        reply = await self._complete(
            prompts.get_explanation_system_prompt(schema_text, admin_terms, dialect),
            prompts.get_explanation_user_prompt(question),
        )
        return explanation_from_outcome(parse_explanation(reply))

    async def generate_sql(
        self,
        question: str,
        confirmed_understanding: str,
        schema_text: str,
        resolved_ambiguities: Optional[Dict[str, str]] = None,
        adjusted_parameters: Optional[Dict[str, str]] = None,
        dialect: str = "SQL Server",
    ) -> str:
        logger.info(f"Generating SQL for question: {question}")
        reply = await self._complete(
            prompts.get_sql_system_prompt(schema_text, dialect),
            prompts.get_sql_user_prompt(
                question, confirmed_understanding, resolved_ambiguities, adjusted_parameters
            ),
        )
        sql = extract_sql_from_markdown(reply)
        logger.info(f"Generated SQL: {sql}")
        return sql

    async def generate_result_explanation(
        self, question: str, sql: str, rows: List[Dict[str, Any]]
    ) -> str:
        logger.info(f"Generating result explanation for question: {question}")
        reply = await self._complete(
            prompts.RESULT_EXPLANATION_SYSTEM_PROMPT,
            prompts.get_result_explanation_user_prompt(question, sql, rows, self.result_sample_rows),
        )
        return reply.strip()
