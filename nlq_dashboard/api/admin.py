"""
Admin API Endpoints

System status, the registered databases and runtime cache control.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional
from fastapi import APIRouter, Depends
from pydantic import BaseModel
import logging

from ..services import Services
from ..utils.error_handling import handle_error
from .dependencies import get_services

logger = logging.getLogger(__name__)

# Create router for admin endpoints
router = APIRouter(prefix="/admin", tags=["admin"])


class SystemStatusResponse(BaseModel):
    """Configuration summary and the state of shared services."""
    status: str
    configuration: Dict[str, Any]
    features: Dict[str, Any]


class DatabaseTargetSummary(BaseModel):
    database_id: int
    name: str
    type_name: str
    is_active: bool
    last_connection_status: Optional[bool] = None
    last_transaction_date: Optional[datetime] = None


class CacheClearResponse(BaseModel):
    success: bool
    message: str


@router.get("/status", response_model=SystemStatusResponse)
async def get_system_status(services: Services = Depends(get_services)):
    """
    Get current system status and configuration.

    Secrets are never included in the configuration summary.
    """
    try:
        settings = services.settings
        return SystemStatusResponse(
            status="healthy",
            configuration=settings.get_summary(),
            features={
                "llm_provider": services.provider.name,
                "cached_engine_types": len(services.metadata_store.type_names),
                "development_mode": settings.is_development_mode(),
            },
        )
    except Exception as e:
        logger.error(f"Error getting system status: {str(e)}")
        raise handle_error(e)


@router.get("/databases", response_model=List[DatabaseTargetSummary])
async def list_databases(include_inactive: bool = False, services: Services = Depends(get_services)):
    """List registered databases with the outcome of their last connection test."""
    try:
        store = services.metadata_store
        return [
            DatabaseTargetSummary(
                database_id=target.database_id,
                name=target.name,
                type_name=store.get_type_name(target.type_id),
                is_active=target.is_active,
                last_connection_status=target.last_connection_status,
                last_transaction_date=target.last_transaction_date,
            )
            for target in store.list_database_targets(include_inactive=include_inactive)
        ]
    except Exception as e:
        logger.error(f"Error listing databases: {str(e)}")
        raise handle_error(e)


@router.post("/connections/clear-cache", response_model=CacheClearResponse)
async def clear_connection_cache(services: Services = Depends(get_services)):
    """Forget cached connection info, e.g. after a database target was edited."""
    services.connection_provider.clear_cache()
    return CacheClearResponse(success=True, message="Connection info cache cleared")
