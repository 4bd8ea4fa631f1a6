import pytest

from nlq_dashboard.llm.base import Degraded, Parsed
from nlq_dashboard.llm.parsing import (
    DEGRADED_CONFIDENCE,
    explanation_from_outcome,
    extract_sql_from_markdown,
    parse_explanation,
)

CAMEL_CASE_REPLY = """Here is my analysis:
```json
{
  "explanation": "Shows the top 10 clients by spend.",
  "hasAmbiguities": true,
  "detectedAmbiguities": {"time period": ["All time", "Current year"]},
  "adjustableParameters": {
    "number of customers": {"default": 10, "alternatives": ["5", "20"]},
    "sort order": {"defaultValue": "Descending", "alternatives": "Ascending"}
  },
  "confidenceScore": 0.85,
  "previewSql": "SELECT TOP 10 * FROM Customers",
  "termMapping": {"Customers": "Clients"}
}
```
Let me know if that works."""


def test_parse_camel_case_reply_with_surrounding_prose():
    outcome = parse_explanation(CAMEL_CASE_REPLY)

    assert isinstance(outcome, Parsed)
    response = outcome.response
    assert response.explanation == "Shows the top 10 clients by spend."
    assert response.has_ambiguities is True
    assert response.detected_ambiguities == {"time period": ["All time", "Current year"]}
    assert response.confidence_score == pytest.approx(0.85)
    assert response.preview_sql == "SELECT TOP 10 * FROM Customers"
    assert response.term_mapping == {"Customers": "Clients"}


def test_parse_coerces_parameter_defaults_and_single_alternatives():
    response = parse_explanation(CAMEL_CASE_REPLY).response

    count = response.adjustable_parameters["number of customers"]
    assert count.default_value == "10"
    assert count.alternatives == ["5", "20"]

    order = response.adjustable_parameters["sort order"]
    assert order.default_value == "Descending"
    assert order.alternatives == ["Ascending"]


def test_parse_matches_keys_case_insensitively():
    outcome = parse_explanation('{"Explanation": "ok", "HASAMBIGUITIES": false, "ConfidenceScore": 1}')

    assert isinstance(outcome, Parsed)
    assert outcome.response.explanation == "ok"
    assert outcome.response.confidence_score == 1.0


@pytest.mark.parametrize("text", [
    "I could not understand the question.",
    "{not json at all}",
    "",
    None,
    '["a", "list"]',
])
def test_unparseable_reply_degrades(text):
    outcome = parse_explanation(text)

    assert isinstance(outcome, Degraded)
    assert outcome.raw_text == (text or "")


def test_degraded_outcome_keeps_raw_text_with_default_confidence():
    response = explanation_from_outcome(Degraded("  The question asks for totals.  "))

    assert response.explanation == "The question asks for totals."
    assert response.confidence_score == DEGRADED_CONFIDENCE
    assert response.has_ambiguities is False
    assert response.adjustable_parameters == {}


@pytest.mark.parametrize("text, expected", [
    ("```sql\nSELECT 1\n```", "SELECT 1"),
    ("```\nSELECT 2;\n```", "SELECT 2;"),
    ("  SELECT 3  ", "SELECT 3"),
    ("Here you go:\n```sql\nSELECT *\nFROM t\n```\nThis returns everything.", "SELECT *\nFROM t"),
    ("```sql\nSELECT 4", "SELECT 4"),
    ("", ""),
])
def test_extract_sql_from_markdown(text, expected):
    assert extract_sql_from_markdown(text) == expected
