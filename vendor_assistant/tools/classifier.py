"""
Query classification boundary.

In production, the classifier is a language model prompted to correct
spelling against the conversation history and return a structured
analysis. Whatever it returns (model, mapping with camelCase keys, or a
JSON string, possibly fenced in markdown) is validated into a
``QueryAnalysis`` here. Failures degrade to ``QueryAnalysis.safe_default``.
"""

import logging
import re
from collections.abc import Mapping
from typing import Any, Optional, Protocol, Union

from pydantic import ValidationError

from vendor_assistant.resilience import CollaboratorError, call_collaborator
from vendor_assistant.schemas.intent_schema import QueryAnalysis

logger = logging.getLogger(__name__)

ClassifierOutput = Union[QueryAnalysis, Mapping[str, Any], str]

_FENCE_OPEN = re.compile(r"^```\w*\s*", re.IGNORECASE)
_FENCE_CLOSE = re.compile(r"\s*```$")


class Classifier(Protocol):
    async def classify(self, query: str, history_text: str) -> ClassifierOutput: ...


def _strip_fences(text: str) -> str:
    cleaned = text.strip()
    cleaned = re.sub(r"^json\s+", "", cleaned, flags=re.IGNORECASE)
    cleaned = _FENCE_OPEN.sub("", cleaned)
    return _FENCE_CLOSE.sub("", cleaned).strip()


def parse_analysis(raw: ClassifierOutput) -> QueryAnalysis:
    """Validate raw classifier output. Raises ValidationError or ValueError."""
    if isinstance(raw, QueryAnalysis):
        return raw
    if isinstance(raw, str):
        return QueryAnalysis.model_validate_json(_strip_fences(raw) or "{}")
    if isinstance(raw, Mapping):
        return QueryAnalysis.model_validate(dict(raw))
    raise ValueError(f"Unsupported classifier output type: {type(raw).__name__}")


async def classify_safely(
    classifier: Classifier,
    query: str,
    history_text: str = "",
    max_retries: Optional[int] = None,
    initial_delay: Optional[float] = None,
) -> QueryAnalysis:
    """Classify a query, never raising: any failure yields the safe default."""
    try:
        raw = await call_collaborator(
            "classifier",
            lambda: classifier.classify(query, history_text),
            max_retries=max_retries,
            initial_delay=initial_delay,
        )
    except CollaboratorError as e:
        logger.error("Classifier unavailable, using safe default: %s", e)
        return QueryAnalysis.safe_default(query)

    try:
        analysis = parse_analysis(raw)
    except (ValidationError, ValueError) as e:
        logger.error("Classifier returned invalid output, using safe default: %s", e)
        return QueryAnalysis.safe_default(query)

    if not analysis.corrected_query:
        analysis = analysis.model_copy(update={"corrected_query": query})
    logger.info(
        "Query classified: type=%s cart=%s action=%s",
        analysis.query_type, analysis.is_cart_operation,
        analysis.cart_action.value if analysis.cart_action else None,
    )
    return analysis
