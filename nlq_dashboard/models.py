from enum import IntEnum
from typing import Any, Dict, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class EngineKind(IntEnum):
    """Supported target database engines, keyed by their type id."""
    UNKNOWN = 0
    SQLSERVER = 1
    MYSQL = 2
    ORACLE = 3
    SQLSERVER2 = 4

    @classmethod
    def parse(cls, value) -> "EngineKind":
        """Accept a type id, an enum member or a (case-insensitive) engine name."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str) and not value.strip().lstrip("-").isdigit():
            key = value.strip().upper().replace(" ", "")
            try:
                return cls[key]
            except KeyError:
                raise ValueError(f"Unknown database type: {value}")
        return cls(int(value))


class ViewingType(IntEnum):
    """Presentation modes a result set can be rendered with."""
    TABLE = 1
    LABEL = 2
    NUMBER = 3
    CHART = 4
    CARD = 5


class CamelModel(BaseModel):
    """Base model that speaks camelCase on the wire and snake_case in Python."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# LLM structures

class ParameterOptions(CamelModel):
    """Options for an adjustable parameter."""
    default_value: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("default_value", "defaultValue", "default"),
    )
    description: Optional[str] = None
    alternatives: List[str] = Field(default_factory=list)
    parameter_type: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("parameter_type", "parameterType", "type"),
    )

    @field_validator("default_value", mode="before")
    @classmethod
    def _stringify_default(cls, value):
        if value is None or isinstance(value, str):
            return value
        return str(value)

    @field_validator("alternatives", mode="before")
    @classmethod
    def _coerce_alternatives(cls, value):
        if value is None:
            return []
        if isinstance(value, (str, int, float)):
            return [str(value)]
        return [str(item) for item in value]


class ExplanationResponse(CamelModel):
    """How the system understood a natural language question."""
    explanation: str = ""
    has_ambiguities: bool = False
    detected_ambiguities: Dict[str, List[str]] = Field(default_factory=dict)
    adjustable_parameters: Dict[str, ParameterOptions] = Field(default_factory=dict)
    confidence_score: float = 0.0
    preview_sql: Optional[str] = None
    term_mapping: Dict[str, str] = Field(default_factory=dict)


# Workflow requests and responses

class WorkflowResponse(CamelModel):
    """Fields shared by every orchestrator response."""
    database_id: Optional[int] = None
    success: bool = False
    error_message: Optional[str] = None
    error_type: Optional[str] = Field(default=None, description="Error category when success is false")
    retryable: bool = False


class AnalyzeRequest(CamelModel):
    """Step 1 request: a question against a registered database."""
    question: Optional[str] = None
    database_id: Optional[int] = None


class AnalysisResponse(WorkflowResponse):
    question: Optional[str] = None
    explanation: Optional[str] = None
    has_ambiguities: bool = False
    detected_ambiguities: Dict[str, List[str]] = Field(default_factory=dict)
    adjustable_parameters: Dict[str, ParameterOptions] = Field(default_factory=dict)
    preview_sql: Optional[str] = None
    confidence_score: float = 0.0
    term_mapping: Dict[str, str] = Field(default_factory=dict)


class GenerateRequest(CamelModel):
    """Step 2 request: the caller's confirmed understanding and resolutions."""
    original_question: Optional[str] = None
    database_id: Optional[int] = None
    confirmed_understanding: Optional[str] = None
    resolved_ambiguities: Dict[str, str] = Field(default_factory=dict)
    adjusted_parameters: Dict[str, str] = Field(default_factory=dict)


class SqlGenerationResponse(WorkflowResponse):
    original_question: Optional[str] = None
    generated_sql: Optional[str] = None


class ExecuteRequest(CamelModel):
    """Step 3 request: SQL to run, optionally with the question it answers."""
    sql: Optional[str] = None
    database_id: Optional[int] = None
    original_question: Optional[str] = None


class QueryExecutionResponse(WorkflowResponse):
    original_question: Optional[str] = None
    sql: Optional[str] = None
    results: List[Dict[str, Any]] = Field(default_factory=list)
    row_count: int = 0
    result_explanation: Optional[str] = None
    recommended_data_viewing_type_id: Optional[int] = Field(
        default=None,
        serialization_alias="recommendedDataViewingTypeID",
    )
    recommended_data_viewing_type_name: Optional[str] = None
    formatted_result: Optional[str] = None


class QueryParameter(CamelModel):
    name: str
    value: Optional[str] = None
    entity_type: Optional[str] = None


class TemplateMatchInfo(CamelModel):
    """Backward compatible summary of the understood query."""
    intent: str = "dynamic_query"
    operations: List[str] = Field(default_factory=list)
    parameters: List[QueryParameter] = Field(default_factory=list)
    confidence_score: float = 0.0


class CombinedResponse(QueryExecutionResponse):
    """Legacy one-shot response: execution fields plus the analysis metadata."""
    question: Optional[str] = None
    explanation: Optional[str] = None
    has_ambiguities: bool = False
    detected_ambiguities: Dict[str, List[str]] = Field(default_factory=dict)
    adjustable_parameters: Dict[str, ParameterOptions] = Field(default_factory=dict)
    preview_sql: Optional[str] = None
    confidence_score: float = 0.0
    template_info: Optional[TemplateMatchInfo] = None


# Connection testing

class ConnectionTestRequest(CamelModel):
    """Explicit connection parameters for a connection test."""
    db_type: Any = Field(description="Engine kind id or name (SQLServer, MySQL, Oracle)")
    server: Optional[str] = None
    port: Optional[int] = None
    database: Optional[str] = None
    username: Optional[str] = None
    password: Optional[str] = None
    connection_string: Optional[str] = None


class ConnectionTestResult(CamelModel):
    success: bool
    message: str
    error_details: Optional[str] = None


# Schema synchronization input

class ColumnSchema(CamelModel):
    db_name: str = Field(validation_alias=AliasChoices("db_name", "dbName"))
    friendly_name: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("friendly_name", "friendlyName", "FriendlyName", "adminName"),
    )
    description: Optional[str] = None
    data_type: Optional[str] = Field(default=None, validation_alias=AliasChoices("data_type", "dataType"))
    is_nullable: bool = Field(default=True, validation_alias=AliasChoices("is_nullable", "isNullable"))
    is_primary_key: bool = Field(default=False, validation_alias=AliasChoices("is_primary_key", "isPrimaryKey"))
    # None leaves a stored flag untouched
    is_lookup: Optional[bool] = Field(default=None, validation_alias=AliasChoices("is_lookup", "isLookup"))


class TableSchema(CamelModel):
    db_name: str = Field(validation_alias=AliasChoices("db_name", "dbName"))
    friendly_name: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("friendly_name", "friendlyName", "FriendlyName", "adminName"),
    )
    description: Optional[str] = None
    columns: List[ColumnSchema] = Field(default_factory=list)


class RelationshipEndpoint(CamelModel):
    table: str
    column: str


class RelationshipSchema(CamelModel):
    source: RelationshipEndpoint
    target: RelationshipEndpoint
    type: str = "one-to-many"
    enforced: bool = False
    description: Optional[str] = None


class IncomingSchema(CamelModel):
    """A schema discovered by introspection or supplied by an administrator."""
    tables: List[TableSchema] = Field(default_factory=list)
    relationships: List[RelationshipSchema] = Field(default_factory=list)


class SyncReport(CamelModel):
    """Counts of the writes performed by one synchronization call."""
    tables_inserted: int = 0
    tables_updated: int = 0
    tables_deleted: int = 0
    columns_inserted: int = 0
    columns_updated: int = 0
    columns_deleted: int = 0
    relationships_inserted: int = 0
    relationships_updated: int = 0
    relationships_deleted: int = 0

    @property
    def total_changes(self) -> int:
        return sum(self.model_dump().values())


class SuggestedRelationshipRequest(CamelModel):
    source_table: str
    source_column: str
    target_table: str
    target_column: str
    relationship_type: str = "one-to-many"
    description: Optional[str] = None
