"""
NL Query Orchestrator

Drives the staged natural language query workflow:

    analyze -> (caller confirms) -> generate -> execute

Each stage is a separate call and the caller carries the state between them.
`process` chains all three for older clients. Every public operation is
fail-soft: errors are logged and returned as `success=False` responses.
"""

from typing import Awaitable, Optional, TypeVar
import asyncio
import logging

from .config import Settings, get_settings
from .connections import ConnectionProvider
from .exceptions import NLQueryError, QueryTimeoutError
from .llm.base import LLMProvider
from .metadata_store import MetadataStore
from .models import (
    AnalysisResponse,
    AnalyzeRequest,
    CombinedResponse,
    ExecuteRequest,
    GenerateRequest,
    QueryExecutionResponse,
    QueryParameter,
    SqlGenerationResponse,
    TemplateMatchInfo,
    WorkflowResponse,
)
from .result_classifier import classify
from .schema_context import SchemaContext, SchemaContextBuilder
from .utils.error_handling import describe_error, validate_required

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R", bound=WorkflowResponse)


def build_template_info(analysis: AnalysisResponse) -> TemplateMatchInfo:
    """Summarise an analysis in the template-match shape older clients expect."""
    info = TemplateMatchInfo(confidence_score=analysis.confidence_score)

    sql = (analysis.preview_sql or "").lower()
    if sql:
        if "count(" in sql:
            info.intent = "count"
        elif any(keyword in sql for keyword in ("sum(", "avg(", "min(", "max(")):
            info.intent = "aggregate"
        elif "select" in sql:
            info.intent = "retrieve"

        operations = {
            "filter": "where" in sql,
            "group": "group by" in sql,
            "sort": "order by" in sql,
            "limit": "top " in sql or "limit" in sql,
            "join": "join" in sql,
        }
        info.operations = [name for name, present in operations.items() if present]

    info.parameters = [
        QueryParameter(name=name, value=options.default_value, entity_type=options.parameter_type)
        for name, options in analysis.adjustable_parameters.items()
    ]
    return info


class NLQueryOrchestrator:
    """Coordinates schema context, the LLM provider and query execution."""

    def __init__(
        self,
        metadata_store: MetadataStore,
        provider: LLMProvider,
        connection_provider: ConnectionProvider,
        schema_builder: SchemaContextBuilder = None,
        settings: Settings = None,
    ):
        self.metadata_store = metadata_store
        self.provider = provider
        self.connection_provider = connection_provider
        self.schema_builder = schema_builder or SchemaContextBuilder(metadata_store)
        self.settings = settings or get_settings()

    async def _bounded(self, awaitable: Awaitable[T]) -> T:
        """Await under the per-call deadline, if one is configured."""
        timeout = self.settings.request_timeout_seconds
        if not timeout:
            return await awaitable
        try:
            return await asyncio.wait_for(awaitable, timeout=timeout)
        except asyncio.TimeoutError as e:
            raise QueryTimeoutError(f"Operation exceeded the {timeout} second deadline") from e

    async def _schema_context(self, database_id: int) -> SchemaContext:
        return await self._bounded(asyncio.to_thread(self.schema_builder.build, database_id))

    def _failure(self, response: R, error: Exception, action: str) -> R:
        message, error_type, retryable = describe_error(error)
        logger.error(f"Error {action} for database ID {response.database_id}: {str(error)}")
        response.success = False
        response.error_message = message
        response.error_type = error_type
        response.retryable = retryable
        return response

    async def analyze(self, request: AnalyzeRequest) -> AnalysisResponse:
        """Step 1: explain how the question will be understood."""
        response = AnalysisResponse(question=request.question, database_id=request.database_id)
        try:
            validate_required(request.question, "Question")
            validate_required(request.database_id, "Database ID")
            logger.info(f"Analyzing question for database ID {request.database_id}: {request.question}")

            context = await self._schema_context(request.database_id)
            explanation = await self._bounded(self.provider.generate_explanation(
                request.question, context.schema_text, context.admin_terms, context.dialect
            ))

            return AnalysisResponse(
                question=request.question,
                database_id=request.database_id,
                success=True,
                **explanation.model_dump(),
            )
        except Exception as e:
            return self._failure(response, e, "analyzing question")

    async def generate(self, request: GenerateRequest) -> SqlGenerationResponse:
        """Step 2: generate SQL from the confirmed understanding."""
        response = SqlGenerationResponse(
            original_question=request.original_question,
            database_id=request.database_id,
        )
        try:
            validate_required(request.original_question, "Original question")
            validate_required(request.database_id, "Database ID")
            validate_required(request.confirmed_understanding, "Confirmed understanding")
            logger.info(f"Generating SQL for database ID {request.database_id}: {request.original_question}")

            context = await self._schema_context(request.database_id)
            sql = await self._bounded(self.provider.generate_sql(
                request.original_question,
                request.confirmed_understanding,
                context.schema_text,
                request.resolved_ambiguities,
                request.adjusted_parameters,
                context.dialect,
            ))
            if not sql:
                raise NLQueryError("The language model returned an empty SQL query")

            response.generated_sql = sql
            response.success = True
            return response
        except Exception as e:
            return self._failure(response, e, "generating SQL")

    async def execute(self, request: ExecuteRequest) -> QueryExecutionResponse:
        """Step 3: run the SQL, explain and classify the results."""
        response = QueryExecutionResponse(
            original_question=request.original_question,
            database_id=request.database_id,
            sql=request.sql,
        )
        try:
            validate_required(request.sql, "SQL query")
            validate_required(request.database_id, "Database ID")
            logger.info(f"Executing SQL for database ID {request.database_id}")

            rows = await self._bounded(
                self.connection_provider.execute_query(request.database_id, request.sql)
            )

            explanation: Optional[str] = None
            if request.original_question:
                explanation = await self._bounded(self.provider.generate_result_explanation(
                    request.original_question, request.sql, rows
                ))

            classification = classify(rows, request.sql)
            response.results = rows
            response.row_count = len(rows)
            response.result_explanation = explanation
            response.recommended_data_viewing_type_id = classification.viewing_type_id
            response.recommended_data_viewing_type_name = classification.viewing_type_name
            response.formatted_result = classification.formatted_result
            response.success = True
            return response
        except Exception as e:
            return self._failure(response, e, "executing SQL query")

    async def process(self, request: AnalyzeRequest) -> CombinedResponse:
        """
        Legacy one-shot path: analyze, accept the explanation as confirmed,
        generate and execute.

        No ambiguity resolution happens here; callers that need it use the
        staged operations.
        """
        combined = CombinedResponse(question=request.question, database_id=request.database_id)
        try:
            analysis = await self.analyze(request)
            if not analysis.success:
                return self._copy_failure(combined, analysis)
            combined = self._with_analysis(combined, analysis)

            generation = await self.generate(GenerateRequest(
                original_question=request.question,
                database_id=request.database_id,
                confirmed_understanding=analysis.explanation or request.question,
            ))
            combined.sql = generation.generated_sql
            if not generation.success:
                return self._copy_failure(combined, generation)

            execution = await self.execute(ExecuteRequest(
                sql=generation.generated_sql,
                database_id=request.database_id,
                original_question=request.question,
            ))
            combined = combined.model_copy(update=execution.model_dump(exclude={"original_question"}))
            combined.original_question = request.question
            return combined
        except Exception as e:
            return self._failure(combined, e, "processing question")

    @staticmethod
    def _with_analysis(combined: CombinedResponse, analysis: AnalysisResponse) -> CombinedResponse:
        return combined.model_copy(update={
            "explanation": analysis.explanation,
            "has_ambiguities": analysis.has_ambiguities,
            "detected_ambiguities": analysis.detected_ambiguities,
            "adjustable_parameters": analysis.adjustable_parameters,
            "preview_sql": analysis.preview_sql,
            "confidence_score": analysis.confidence_score,
            "template_info": build_template_info(analysis),
        })

    @staticmethod
    def _copy_failure(combined: CombinedResponse, failed: WorkflowResponse) -> CombinedResponse:
        combined.success = False
        combined.error_message = failed.error_message
        combined.error_type = failed.error_type
        combined.retryable = failed.retryable
        return combined


__all__ = ['NLQueryOrchestrator', 'build_template_info']
