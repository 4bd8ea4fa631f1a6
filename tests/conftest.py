import logging
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, text
from sqlalchemy.orm import sessionmaker

from nlq_dashboard.config import Settings
from nlq_dashboard.database import create_app_engine
from nlq_dashboard.metadata_store import MetadataStore
from nlq_dashboard.models import EngineKind, ExplanationResponse, ParameterOptions
from nlq_dashboard.security import limiter
from nlq_dashboard.server import create_app
from nlq_dashboard.services import build_services

logger = logging.getLogger(__name__)


@pytest.fixture
def settings(tmp_path):
    """Settings isolated from the developer's environment and .env file."""
    return Settings(
        _env_file=None,
        app_database_url=f"sqlite:///{tmp_path / 'app.db'}",
        llm_provider="claude",
        claude_api_key="test_key",
        deepseek_api_key=None,
        openai_api_key=None,
        request_timeout_seconds=None,
        query_timeout_seconds=10.0,
        connect_timeout_seconds=10,
        environment="test",
    )


@pytest.fixture
def session_factory(settings):
    engine = create_app_engine(settings.app_database_url)
    yield sessionmaker(bind=engine, expire_on_commit=False)
    engine.dispose()


@pytest.fixture
def metadata_store(session_factory):
    store = MetadataStore(session_factory)
    store.create_all()
    return store


@pytest.fixture
def target_db_url(tmp_path):
    """A small sales database standing in for a registered target."""
    url = f"sqlite:///{tmp_path / 'target.db'}"
    engine = create_engine(url)
    with engine.begin() as conn:
        conn.execute(text(
            "CREATE TABLE customers (id INTEGER PRIMARY KEY, name VARCHAR(100), country VARCHAR(2))"
        ))
        conn.execute(text(
            "CREATE TABLE orders ("
            "id INTEGER PRIMARY KEY, "
            "customer_id INTEGER NOT NULL REFERENCES customers(id), "
            "total NUMERIC(10, 2))"
        ))
        conn.execute(text(
            "INSERT INTO customers (id, name, country) VALUES "
            "(1, 'Ada', 'GB'), (2, 'Grace', 'US'), (3, 'Linus', 'FI')"
        ))
        conn.execute(text(
            "INSERT INTO orders (id, customer_id, total) VALUES "
            "(1, 1, 120.5), (2, 1, 80), (3, 2, 1500)"
        ))
    engine.dispose()
    return url


@pytest.fixture
def database_id(metadata_store, target_db_url):
    """A registered database with admin metadata for customers and orders."""
    target = metadata_store.add_database_target(
        name="Sales",
        type_id=int(EngineKind.MYSQL),
        connection_string=target_db_url,
        description="Sales data",
    )
    customers = metadata_store.add_table(
        target.database_id, "customers",
        admin_table_name="Clients", admin_description="People who buy",
    )
    orders = metadata_store.add_table(target.database_id, "orders")
    customer_id = metadata_store.add_column(customers.table_id, "id", data_type="INTEGER", is_primary_key=True)
    metadata_store.add_column(customers.table_id, "name", data_type="VARCHAR", admin_column_name="Client name")
    metadata_store.add_column(customers.table_id, "country", data_type="VARCHAR", admin_description="ISO country code")
    metadata_store.add_column(orders.table_id, "id", data_type="INTEGER", is_primary_key=True)
    order_customer = metadata_store.add_column(orders.table_id, "customer_id", data_type="INTEGER")
    metadata_store.add_column(orders.table_id, "total", data_type="NUMERIC")
    metadata_store.add_relationship(
        table_id=orders.table_id,
        column_id=order_customer.column_id,
        related_table_id=customers.table_id,
        related_column_id=customer_id.column_id,
        relationship_type="many-to-one",
        is_enforced=True,
    )
    return target.database_id


@pytest.fixture
def explanation():
    return ExplanationResponse(
        explanation="Count every client on record.",
        has_ambiguities=True,
        detected_ambiguities={"clients": ["All clients", "Clients with orders"]},
        adjustable_parameters={
            "country": ParameterOptions(default_value="All", alternatives=["GB", "US"], parameter_type="string"),
        },
        confidence_score=0.9,
        preview_sql="SELECT COUNT(*) FROM customers WHERE country IS NOT NULL",
        term_mapping={"customers": "Clients"},
    )


@pytest.fixture
def mock_provider(explanation):
    """Mock LLM provider with canned replies."""
    provider = MagicMock()
    provider.name = "Mock"
    provider.model = "mock-model"
    provider.generate_explanation = AsyncMock(return_value=explanation)
    provider.generate_sql = AsyncMock(return_value="SELECT COUNT(*) AS total FROM customers")
    provider.generate_result_explanation = AsyncMock(return_value="There are 3 clients.")
    provider.aclose = AsyncMock(return_value=None)
    return provider


@pytest.fixture
def services(settings, session_factory, metadata_store, mock_provider):
    return build_services(settings, session_factory, mock_provider)


@pytest.fixture
def test_client(settings, services):
    """Create a test client with rate limiting switched off."""
    limiter.enabled = False
    app = create_app(settings, services=services)
    client = TestClient(app)
    yield client
    limiter.enabled = True
