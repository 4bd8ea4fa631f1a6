from dataclasses import dataclass
import logging

from sqlalchemy.orm import sessionmaker

from .config import Settings
from .connections import ConnectionProvider
from .llm.base import LLMProvider
from .metadata_store import MetadataStore
from .orchestrator import NLQueryOrchestrator
from .schema_context import SchemaContextBuilder
from .schema_extractor import SchemaExtractor
from .synchronizer import SchemaSynchronizer

logger = logging.getLogger(__name__)


@dataclass
class Services:
    """Long-lived collaborators shared by all requests."""
    settings: Settings
    metadata_store: MetadataStore
    connection_provider: ConnectionProvider
    schema_builder: SchemaContextBuilder
    provider: LLMProvider
    orchestrator: NLQueryOrchestrator
    synchronizer: SchemaSynchronizer
    schema_extractor: SchemaExtractor


def build_services(settings: Settings, session_factory: sessionmaker, provider: LLMProvider) -> Services:
    metadata_store = MetadataStore(session_factory)
    connection_provider = ConnectionProvider(metadata_store, settings)
    schema_builder = SchemaContextBuilder(metadata_store)
    orchestrator = NLQueryOrchestrator(
        metadata_store,
        provider,
        connection_provider,
        schema_builder=schema_builder,
        settings=settings,
    )
    return Services(
        settings=settings,
        metadata_store=metadata_store,
        connection_provider=connection_provider,
        schema_builder=schema_builder,
        provider=provider,
        orchestrator=orchestrator,
        synchronizer=SchemaSynchronizer(session_factory),
        schema_extractor=SchemaExtractor(connection_provider),
    )
