from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Union

from ..models import ExplanationResponse


@dataclass(frozen=True)
class Parsed:
    """The model's explanation text was valid structured output."""
    response: ExplanationResponse


@dataclass(frozen=True)
class Degraded:
    """The model's explanation text could not be parsed; the raw text is kept."""
    raw_text: str


ParseOutcome = Union[Parsed, Degraded]


class LLMProvider(ABC):
    """Capability interface every language model backend implements."""

    name: str = "llm"

    @abstractmethod
    async def generate_explanation(
        self,
        question: str,
        schema_text: str,
        admin_terms: Dict[str, str],
        dialect: str = "SQL Server",
    ) -> ExplanationResponse:
        """Explain how a question will be interpreted, with ambiguities and parameters."""

    @abstractmethod
    async def generate_sql(
        self,
        question: str,
        confirmed_understanding: str,
        schema_text: str,
        resolved_ambiguities: Optional[Dict[str, str]] = None,
        adjusted_parameters: Optional[Dict[str, str]] = None,
        dialect: str = "SQL Server",
    ) -> str:
        """Generate SQL for a confirmed understanding of the question."""

    @abstractmethod
    async def generate_result_explanation(
        self, question: str, sql: str, rows: List[Dict[str, Any]]
    ) -> str:
        """Summarise query results for a non-technical reader."""

    async def aclose(self) -> None:
        """Release any network resources held by the provider."""
        return None
