"""
Query API Endpoints

Staged natural language query workflow: analyze, generate, execute, plus the
one-shot legacy process endpoint.
"""

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
import logging

from ..config import get_settings
from ..models import (
    AnalysisResponse,
    AnalyzeRequest,
    CombinedResponse,
    ExecuteRequest,
    GenerateRequest,
    QueryExecutionResponse,
    SqlGenerationResponse,
    WorkflowResponse,
)
from ..security import limiter
from ..services import Services
from ..utils.error_handling import status_code_for
from .dependencies import get_services

logger = logging.getLogger(__name__)

# Create router for query endpoints
router = APIRouter(prefix="/api/nlquery", tags=["queries"])

RATE_LIMIT = get_settings().rate_limit


def _respond(response: WorkflowResponse) -> JSONResponse:
    """Successful responses are 200; failures keep their full body."""
    status_code = 200 if response.success else status_code_for(response.error_type)
    if not response.success:
        logger.warning(f"Returning failed {type(response).__name__} ({status_code}): {response.error_message}")
    return JSONResponse(
        status_code=status_code,
        content=response.model_dump(mode="json", by_alias=True),
    )


@router.post("/analyze", response_model=AnalysisResponse)
@limiter.limit(RATE_LIMIT)
async def analyze_question(request: Request, payload: AnalyzeRequest, services: Services = Depends(get_services)):
    """
    Step 1: explain how the question is understood.

    Returns the explanation, detected ambiguities and adjustable parameters
    so the caller can confirm or refine the understanding.
    """
    return _respond(await services.orchestrator.analyze(payload))


@router.post("/generate", response_model=SqlGenerationResponse)
@limiter.limit(RATE_LIMIT)
async def generate_sql(request: Request, payload: GenerateRequest, services: Services = Depends(get_services)):
    """Step 2: generate SQL from the confirmed understanding."""
    return _respond(await services.orchestrator.generate(payload))


@router.post("/execute", response_model=QueryExecutionResponse)
@limiter.limit(RATE_LIMIT)
async def execute_sql(request: Request, payload: ExecuteRequest, services: Services = Depends(get_services)):
    """Step 3: execute SQL and return classified results."""
    return _respond(await services.orchestrator.execute(payload))


@router.post("/process", response_model=CombinedResponse)
@limiter.limit(RATE_LIMIT)
async def process_question(request: Request, payload: AnalyzeRequest, services: Services = Depends(get_services)):
    """Legacy endpoint: analyze, generate and execute in one call."""
    return _respond(await services.orchestrator.process(payload))
