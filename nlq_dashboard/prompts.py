from typing import Any, Dict, List, Optional
import json

from langchain_core.prompts import PromptTemplate

RESULT_SAMPLE_ROWS = 5

# Prompt for explaining how a question will be interpreted
EXPLANATION_SYSTEM_TEMPLATE = """You are an AI assistant that helps users understand database queries. Your task is to explain natural language questions in terms of how they will be interpreted as database queries. Use friendly terminology from provided descriptions instead of technical database terms whenever possible.

When explaining queries:
1. Use natural, conversational language focused on business meaning
2. Explain what data will be retrieved and any filters or conditions
3. Identify any ambiguous terms that could have multiple interpretations
4. Highlight adjustable parameters (dates, thresholds, categories)
5. Use defined descriptions instead of technical database terms

For ambiguities, list each ambiguous term and the possible interpretations.
For adjustable parameters, provide the default value and reasonable alternatives.

Database schema ({dialect}):
{schema_text}
{admin_terms_section}
Your response should be structured as JSON with the following fields:
- explanation: A user-friendly explanation of the query's meaning
- hasAmbiguities: Boolean indicating if any ambiguities were detected
- detectedAmbiguities: Dictionary of ambiguous terms and their possible interpretations
- adjustableParameters: Dictionary of parameters that could be adjusted
- confidenceScore: Number between 0 and 1 indicating confidence in understanding
- previewSql: A preview of the SQL that would be generated (for reference only)
- termMapping: Dictionary mapping technical terms to friendly terms (from descriptions) used

IMPORTANT FORMAT REQUIREMENTS:
1. The 'alternatives' property inside 'adjustableParameters' MUST be an array of strings, even if there's only one alternative.
2. Use the format: "alternatives": ["option1", "option2"] NOT "alternatives": "Some text"
3. All arrays should be properly formatted with square brackets, even for single items.

Here's a complete example of the expected JSON format:
```json
{json_example}
```
"""

EXPLANATION_JSON_EXAMPLE = {
    "explanation": "This query will show the top 10 customers who have spent the most money on orders.",
    "hasAmbiguities": True,
    "detectedAmbiguities": {
        "top customers": [
            "Customers with highest total spending",
            "Customers with most frequent orders",
        ],
        "time period": ["All time", "Current year", "Last 12 months"],
    },
    "adjustableParameters": {
        "number of customers": {
            "default": 10,
            "alternatives": ["5", "20", "50", "100"],
        },
        "sort order": {
            "default": "Descending (highest first)",
            "alternatives": ["Ascending (lowest first)"],
        },
    },
    "confidenceScore": 0.9,
    "previewSql": (
        "SELECT c.FirstName + ' ' + c.LastName AS CustomerName, SUM(o.TotalAmount) AS TotalSpent "
        "FROM Customers c JOIN Orders o ON c.CustomerID = o.CustomerID "
        "GROUP BY c.CustomerID, c.FirstName, c.LastName ORDER BY TotalSpent DESC;"
    ),
    "termMapping": {
        "Customers": "Client accounts",
        "Orders": "Purchase transactions",
        "Total": "Purchase amount",
    },
}

EXPLANATION_USER_TEMPLATE = """Question: {question}

Please explain how you understand this question in user-friendly terms, identify any ambiguities, and list any adjustable parameters."""

# Prompt for SQL generation from a confirmed understanding
SQL_SYSTEM_TEMPLATE = """You are an AI assistant that generates SQL queries from natural language questions. Your task is to generate a valid SQL query that correctly answers the given question.

You will be provided with:
1. The original natural language question
2. A confirmed understanding of what the question means
3. Resolved ambiguities and adjusted parameters (if any)

Generate a SQL query that:
1. Is syntactically correct for {dialect}
2. Uses only table and column names from the provided schema structure
3. Favours accuracy over performance; work through complex queries step by step
4. Returns only the requested data

Database schema:
{schema_text}

Return ONLY the SQL query without any explanation or formatting."""

SQL_USER_TEMPLATE = """Original question: {question}
Confirmed understanding: {confirmed_understanding}
{resolutions}
Generate a SQL query that answers this question. Return ONLY the SQL with no explanations."""

# Prompt for explaining query results
RESULT_EXPLANATION_SYSTEM_PROMPT = (
    "You are a helpful assistant explaining database query results to non-technical users. "
    "Provide clear, concise explanations that focus on the business insights from the data."
)

RESULT_EXPLANATION_USER_TEMPLATE = """Original question: {question}
SQL query used: {sql}

Query results (first few rows):
{sample}

Total rows returned: {row_count}

Please provide a brief, user-friendly explanation of these results that highlights key insights and answers the original question. Keep it to 2-3 sentences."""


def _bullet_section(title: str, entries: Optional[Dict[str, Any]]) -> str:
    items = [f"- {key}: {value}" for key, value in (entries or {}).items() if key is not None and value is not None]
    if not items:
        return ""
    return f"\n{title}\n" + "\n".join(items) + "\n"


def get_explanation_system_prompt(schema_text: str, admin_terms: Dict[str, str], dialect: str = "SQL Server") -> str:
    """Get the system prompt for the explanation step."""
    prompt = PromptTemplate(
        input_variables=["dialect", "schema_text", "admin_terms_section", "json_example"],
        template=EXPLANATION_SYSTEM_TEMPLATE,
    )
    return prompt.format(
        dialect=dialect,
        schema_text=schema_text,
        admin_terms_section=_bullet_section(
            "Descriptions (use these terms instead of technical names):", admin_terms
        ),
        json_example=json.dumps(EXPLANATION_JSON_EXAMPLE, indent=2),
    )


def get_explanation_user_prompt(question: str) -> str:
    return PromptTemplate.from_template(EXPLANATION_USER_TEMPLATE).format(question=question)


def get_sql_system_prompt(schema_text: str, dialect: str = "SQL Server") -> str:
    """Get the dialect-aware system prompt for SQL generation."""
    return PromptTemplate.from_template(SQL_SYSTEM_TEMPLATE).format(dialect=dialect, schema_text=schema_text)


def get_sql_user_prompt(
    question: str,
    confirmed_understanding: str,
    resolved_ambiguities: Optional[Dict[str, str]] = None,
    adjusted_parameters: Optional[Dict[str, str]] = None,
) -> str:
    resolutions = _bullet_section("Resolved ambiguities:", resolved_ambiguities)
    resolutions += _bullet_section("Adjusted parameters:", adjusted_parameters)
    return PromptTemplate.from_template(SQL_USER_TEMPLATE).format(
        question=question,
        confirmed_understanding=confirmed_understanding,
        resolutions=resolutions,
    )


def get_result_explanation_user_prompt(
    question: str, sql: str, rows: List[Dict[str, Any]], sample_size: int = RESULT_SAMPLE_ROWS
) -> str:
    """Only the first rows are serialised; the total count is always given."""
    sample = json.dumps(rows[:sample_size], indent=2, default=str)
    return PromptTemplate.from_template(RESULT_EXPLANATION_USER_TEMPLATE).format(
        question=question,
        sql=sql,
        sample=sample,
        row_count=len(rows),
    )
