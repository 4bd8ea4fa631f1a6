"""
Parsing of model output: structured explanations and SQL replies.
"""

from typing import Any, Dict, Optional
import json
import logging
import re

from pydantic import ValidationError

from ..models import ExplanationResponse
from .base import Degraded, ParseOutcome, Parsed

logger = logging.getLogger(__name__)

DEGRADED_CONFIDENCE = 0.5

# Lower-cased key -> ExplanationResponse field
_EXPLANATION_KEYS = {
    "explanation": "explanation",
    "hasambiguities": "has_ambiguities",
    "has_ambiguities": "has_ambiguities",
    "detectedambiguities": "detected_ambiguities",
    "detected_ambiguities": "detected_ambiguities",
    "adjustableparameters": "adjustable_parameters",
    "adjustable_parameters": "adjustable_parameters",
    "confidencescore": "confidence_score",
    "confidence_score": "confidence_score",
    "previewsql": "preview_sql",
    "preview_sql": "preview_sql",
    "termmapping": "term_mapping",
    "term_mapping": "term_mapping",
}

_PARAMETER_KEYS = {
    "default": "default_value",
    "defaultvalue": "default_value",
    "default_value": "default_value",
    "description": "description",
    "alternatives": "alternatives",
    "type": "parameter_type",
    "parametertype": "parameter_type",
    "parameter_type": "parameter_type",
}

_FENCED_BLOCK = re.compile(r"```(?:[a-zA-Z]+[ \t]*\n)?(.*?)```", re.DOTALL)


def _normalize_keys(data: Dict[str, Any], mapping: Dict[str, str]) -> Dict[str, Any]:
    normalized = {}
    for key, value in data.items():
        field = mapping.get(str(key).lower())
        if field is not None:
            normalized[field] = value
    return normalized


def _normalize_explanation(data: Dict[str, Any]) -> Dict[str, Any]:
    normalized = _normalize_keys(data, _EXPLANATION_KEYS)

    parameters = normalized.get("adjustable_parameters")
    if isinstance(parameters, dict):
        normalized["adjustable_parameters"] = {
            name: _normalize_keys(options, _PARAMETER_KEYS) if isinstance(options, dict)
            else {"default_value": options}
            for name, options in parameters.items()
        }

    ambiguities = normalized.get("detected_ambiguities")
    if isinstance(ambiguities, dict):
        normalized["detected_ambiguities"] = {
            term: [str(item) for item in options] if isinstance(options, list) else [str(options)]
            for term, options in ambiguities.items()
        }

    mapping = normalized.get("term_mapping")
    if isinstance(mapping, dict):
        normalized["term_mapping"] = {str(k): str(v) for k, v in mapping.items()}

    for key in ("explanation", "preview_sql"):
        if normalized.get(key) is not None and not isinstance(normalized[key], str):
            normalized[key] = str(normalized[key])

    return {key: value for key, value in normalized.items() if value is not None}


def parse_explanation(text: Optional[str]) -> ParseOutcome:
    """Parse the model's explanation reply. Never raises."""
    raw_text = text or ""
    start = raw_text.find("{")
    end = raw_text.rfind("}")
    if start == -1 or end <= start:
        logger.warning("No JSON object found in explanation response")
        return Degraded(raw_text)

    try:
        data = json.loads(raw_text[start:end + 1])
        if not isinstance(data, dict):
            return Degraded(raw_text)
        return Parsed(ExplanationResponse.model_validate(_normalize_explanation(data)))
    except (json.JSONDecodeError, ValidationError, TypeError, ValueError) as e:
        logger.warning(f"Error parsing explanation response: {str(e)}")
        return Degraded(raw_text)


def explanation_from_outcome(outcome: ParseOutcome) -> ExplanationResponse:
    """Turn a parse outcome into a response; degraded output keeps the raw text."""
    if isinstance(outcome, Parsed):
        return outcome.response
    return ExplanationResponse(
        explanation=outcome.raw_text.strip(),
        confidence_score=DEGRADED_CONFIDENCE,
    )


def extract_sql_from_markdown(text: Optional[str]) -> str:
    """Strip markdown code fences from a SQL reply."""
    if not text:
        return ""
    match = _FENCED_BLOCK.search(text)
    if match:
        return match.group(1).strip()
    # unterminated fence
    cleaned = text.strip()
    if cleaned.startswith("```"):
        cleaned = re.sub(r"^```(?:[a-zA-Z]+[ \t]*\n)?", "", cleaned)
    return cleaned.strip()


__all__ = [
    'DEGRADED_CONFIDENCE',
    'explanation_from_outcome',
    'extract_sql_from_markdown',
    'parse_explanation',
]
