"""Tests for classifier output parsing and the safe default."""

import pytest

from vendor_assistant.resilience import TransientCollaboratorError
from vendor_assistant.schemas.intent_schema import CartAction, QueryAnalysis
from vendor_assistant.tools.classifier import classify_safely, parse_analysis
from tests.conftest import ScriptedClassifier


class TestParseAnalysis:
    def test_model_passthrough(self):
        analysis = QueryAnalysis(query_type="vendor search")
        assert parse_analysis(analysis) is analysis

    def test_mapping(self):
        analysis = parse_analysis({"isCartOperation": True, "cartAction": "view"})
        assert analysis.cart_action == CartAction.VIEW

    def test_fenced_json(self):
        raw = '```json\n{"correctedQuery": "pizza", "needsLocation": false}\n```'
        analysis = parse_analysis(raw)
        assert analysis.corrected_query == "pizza"
        assert analysis.needs_location is False

    def test_json_prefix(self):
        analysis = parse_analysis('json {"queryType": "vendor search"}')
        assert analysis.query_type == "vendor search"

    def test_unsupported_type(self):
        with pytest.raises(ValueError, match="Unsupported"):
            parse_analysis(42)


class TestClassifySafely:
    @pytest.mark.asyncio
    async def test_fills_missing_corrected_query(self):
        classifier = ScriptedClassifier({"queryType": "vendor search"})
        analysis = await classify_safely(classifier, "pizza places", max_retries=0)
        assert analysis.corrected_query == "pizza places"

    @pytest.mark.asyncio
    async def test_passes_history(self):
        classifier = ScriptedClassifier({"correctedQuery": "pizza"})
        await classify_safely(classifier, "piza", "User: hi\n\n", max_retries=0)
        assert classifier.calls == [("piza", "User: hi\n\n")]

    @pytest.mark.asyncio
    async def test_failure_gives_safe_default(self):
        classifier = ScriptedClassifier(RuntimeError("boom"))
        analysis = await classify_safely(classifier, "add naan", max_retries=0)
        assert analysis == QueryAnalysis.safe_default("add naan")

    @pytest.mark.asyncio
    async def test_invalid_output_gives_safe_default(self):
        classifier = ScriptedClassifier('{"cartAction": "checkout"}')
        analysis = await classify_safely(classifier, "checkout", max_retries=0)
        assert analysis.is_cart_operation is False
        assert analysis.needs_location is True

    @pytest.mark.asyncio
    async def test_transient_failure_is_retried(self):
        classifier = ScriptedClassifier(
            TransientCollaboratorError("busy", status=503), {"correctedQuery": "pizza"},
        )
        analysis = await classify_safely(classifier, "piza", max_retries=1, initial_delay=0)
        assert analysis.corrected_query == "pizza"
        assert len(classifier.calls) == 2
