"""
Database Admin API Endpoints

Connection testing, schema synchronization and introspection, and suggested
relationships for registered databases.
"""

from typing import Any, Dict
from fastapi import APIRouter, Depends
from pydantic import BaseModel
import asyncio
import logging

from ..models import (
    ConnectionTestRequest,
    ConnectionTestResult,
    IncomingSchema,
    SuggestedRelationshipRequest,
    SyncReport,
)
from ..services import Services
from ..utils.error_handling import handle_error
from .dependencies import get_services

logger = logging.getLogger(__name__)

# Create router for database admin endpoints
router = APIRouter(prefix="/api/databases", tags=["databases"])


class SchemaTextResponse(BaseModel):
    database_id: int
    schema_text: str
    admin_terms: Dict[str, str]


class RelationshipResponse(BaseModel):
    relationship_id: int
    table_id: int
    column_id: int
    related_table_id: int
    related_column_id: int
    relationship_type: str
    is_enforced: bool


@router.post("/test-connection", response_model=ConnectionTestResult)
async def test_connection_parameters(payload: ConnectionTestRequest, services: Services = Depends(get_services)):
    """Test explicit connection parameters without registering them."""
    return await services.connection_provider.test_connection(payload)


@router.get("/{database_id}/test-connection", response_model=ConnectionTestResult)
async def test_registered_connection(database_id: int, services: Services = Depends(get_services)):
    """Test a registered database and record the outcome."""
    return await services.connection_provider.test_connection(database_id)


@router.post("/{database_id}/schema/sync", response_model=SyncReport)
async def sync_schema(database_id: int, payload: IncomingSchema, services: Services = Depends(get_services)):
    """Apply an administrator supplied schema to the metadata store."""
    try:
        return await services.synchronizer.sync(database_id, payload)
    except Exception as e:
        logger.error(f"Error synchronizing schema for database ID {database_id}: {str(e)}")
        raise handle_error(e)


@router.post("/{database_id}/schema/refresh", response_model=SyncReport)
async def refresh_schema(database_id: int, services: Services = Depends(get_services)):
    """
    Introspect the live database and synchronize the metadata store with it.

    Admin names, descriptions and suggested relationships are kept.
    """
    try:
        incoming = await services.schema_extractor.extract_incoming_schema(database_id)
        report = await services.synchronizer.sync(database_id, incoming, preserve_advisory=True)
        services.connection_provider.clear_cache()
        return report
    except Exception as e:
        logger.error(f"Error refreshing schema for database ID {database_id}: {str(e)}")
        raise handle_error(e)


@router.get("/{database_id}/schema", response_model=SchemaTextResponse)
async def get_schema_text(database_id: int, services: Services = Depends(get_services)):
    """Get the schema text and admin terms the LLM prompts are built from."""
    try:
        context = await asyncio.to_thread(services.schema_builder.build, database_id)
        return SchemaTextResponse(
            database_id=database_id,
            schema_text=context.schema_text,
            admin_terms=context.admin_terms,
        )
    except Exception as e:
        logger.error(f"Error building schema text for database ID {database_id}: {str(e)}")
        raise handle_error(e)


@router.post("/{database_id}/relationships", response_model=RelationshipResponse, status_code=201)
async def add_suggested_relationship(
    database_id: int,
    payload: SuggestedRelationshipRequest,
    services: Services = Depends(get_services),
) -> Any:
    """Add an advisory relationship between two columns, identified by name."""
    store = services.metadata_store

    def add() -> Any:
        store.get_database_target(database_id)
        return store.add_relationship_by_names(
            database_id,
            payload.source_table,
            payload.source_column,
            payload.target_table,
            payload.target_column,
            payload.relationship_type,
            payload.description,
        )

    try:
        relationship = await asyncio.to_thread(add)
        return RelationshipResponse(
            relationship_id=relationship.relationship_id,
            table_id=relationship.table_id,
            column_id=relationship.column_id,
            related_table_id=relationship.related_table_id,
            related_column_id=relationship.related_column_id,
            relationship_type=relationship.relationship_type,
            is_enforced=relationship.is_enforced,
        )
    except Exception as e:
        logger.error(f"Error adding relationship for database ID {database_id}: {str(e)}")
        raise handle_error(e)
