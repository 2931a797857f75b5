"""Tests for name-similarity matching."""
import pytest

from sheetmapper.mapper.heuristic import HeuristicMatcher
from sheetmapper.schema.models import TargetField


@pytest.fixture
def matcher():
    return HeuristicMatcher()


class TestSimilarity:
    """Score computation."""

    def test_exact_match_case_and_space_insensitive(self, matcher):
        assert matcher.similarity("Invoice  No", " invoice no ") == 1.0

    def test_common_mapping_on_bilingual_header(self, matcher):
        assert matcher.similarity("发票号码", "发票号 (Invoice No)") == 0.95

    def test_containment(self, matcher):
        assert matcher.similarity("金额", "含税金额") >= 0.8

    def test_unrelated_names_score_low(self, matcher):
        assert matcher.similarity("发票号码", "Weight") < 0.3

    def test_blank_names(self, matcher):
        assert matcher.similarity("", "金额") == 0.0


class TestMatch:
    """Mapping suggestions."""

    def test_one_suggestion_per_target(self, matcher, source_fields):
        targets = [
            TargetField(id="t1", name="发票号码"),
            TargetField(id="t2", name="金额"),
            TargetField(id="t3", name="备注"),
            TargetField(id="t4", name="Weight"),
        ]

        mappings = matcher.match(source_fields, targets)
        by_target = {m["targetFieldId"]: m for m in mappings}

        assert [m["targetFieldId"] for m in mappings] == ["t1", "t2", "t3", "t4"]
        assert by_target["t1"]["sourceFieldId"] == "f1/field-1-1"
        assert by_target["t1"]["matchConfidence"] == 95
        assert by_target["t2"]["sourceFieldId"] == "f1/field-1-2"
        assert by_target["t2"]["matchConfidence"] == 100
        assert by_target["t3"]["sourceFieldId"] == "f2/field-1-1"
        assert by_target["t4"]["sourceFieldId"] is None
        assert by_target["t4"]["matchConfidence"] == 0

    def test_no_sources(self, matcher):
        mappings = matcher.match([], [TargetField(id="t1", name="金额")])

        assert mappings == [{"targetFieldId": "t1", "sourceFieldId": None, "matchConfidence": 0}]
