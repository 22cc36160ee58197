"""
Tests for the scoring engine: points math, degradation and summary.
"""

import threading
import time

import httpx
import pytest
from openai import APIConnectionError

from app.schemas.scoring import CriterionKind, CriterionStatus
from app.services.scoring_engine import (
    EVALUATION_FAILED,
    SUMMARY_UNAVAILABLE,
    ScoringEngine,
    criterion_points,
    format_reply_highlights,
    generate_summary,
    recommendation_for,
)
from tests.fakes import SAMPLE_RESUME, FakeLLM


def _criteria(*names):
    return [{"name": name, "type": "skill", "value": f"{name} required"} for name in names]


def _connection_error():
    return APIConnectionError(request=httpx.Request("POST", "https://api.openai.com/v1/chat/completions"))


class TestPointsMath:
    def test_two_excellent_essentials_give_70(self):
        llm = FakeLLM(statuses={"A": "excellent", "B": "excellent"})
        result = ScoringEngine(llm).score(SAMPLE_RESUME, [], _criteria("A", "B"), [])
        assert result.total_score == 70.0

    def test_excellent_and_insufficient_give_35(self):
        llm = FakeLLM(statuses={"A": "excellent", "B": "insufficient"})
        result = ScoringEngine(llm).score(SAMPLE_RESUME, [], _criteria("A", "B"), [])
        assert result.total_score == 35.0
        assert [d.points for d in result.details] == [35.0, 0.0]

    @pytest.mark.parametrize("status, points", [
        ("excellent", 70.0),
        ("good", 49.0),
        ("partial", 28.0),
        ("insufficient", 0.0),
    ])
    def test_essential_multipliers(self, status, points):
        llm = FakeLLM(statuses={"A": status})
        result = ScoringEngine(llm).score(SAMPLE_RESUME, [], _criteria("A"), [])
        assert result.total_score == points

    def test_partial_nice_to_have_earns_nothing(self):
        llm = FakeLLM(statuses={"A": "excellent", "N": "partial"})
        result = ScoringEngine(llm).score(SAMPLE_RESUME, [], _criteria("A"), _criteria("N"))
        nice = result.details[1]
        assert nice.kind == CriterionKind.NICE_TO_HAVE
        assert nice.points == 0.0
        assert nice.marker == "❌"
        assert result.total_score == 70.0

    def test_good_nice_to_have_earns_full_share(self):
        llm = FakeLLM(statuses={"A": "insufficient", "N1": "good", "N2": "insufficient"})
        result = ScoringEngine(llm).score(SAMPLE_RESUME, [], _criteria("A"), _criteria("N1", "N2"))
        assert result.details[1].points == 15.0
        assert result.total_score == 15.0

    def test_perfect_candidate_is_capped_at_100(self):
        llm = FakeLLM(statuses={"A": "excellent", "N": "excellent"})
        result = ScoringEngine(llm).score(SAMPLE_RESUME, [], _criteria("A"), _criteria("N"))
        assert result.total_score == 100.0
        assert result.max_score == 100.0

    def test_points_rounded_to_one_decimal(self):
        llm = FakeLLM(statuses={"A": "good", "B": "good", "C": "good"})
        result = ScoringEngine(llm).score(SAMPLE_RESUME, [], _criteria("A", "B", "C"), [])
        assert all(d.points == 16.3 for d in result.details)
        assert result.total_score == 49.0

    def test_no_criteria(self):
        result = ScoringEngine(FakeLLM()).score(None, [], [], [])
        assert result.total_score == 0.0
        assert result.details == []

    def test_criterion_points_helper(self):
        assert criterion_points(CriterionKind.ESSENTIAL, CriterionStatus.PARTIAL, 10) == pytest.approx(4.0)
        assert criterion_points(CriterionKind.NICE_TO_HAVE, CriterionStatus.EXCELLENT, 10) == 10
        assert criterion_points(CriterionKind.NICE_TO_HAVE, CriterionStatus.PARTIAL, 10) == 0


class TestDetails:
    def test_details_follow_criteria_order_with_markers(self):
        llm = FakeLLM(statuses={"A": "partial", "B": "excellent", "N": "good"})
        result = ScoringEngine(llm).score(SAMPLE_RESUME, [], _criteria("A", "B"), _criteria("N"))
        assert [d.criterion for d in result.details] == ["A", "B", "N"]
        assert [d.marker for d in result.details] == ["🔶", "✅", "✅"]
        assert result.details[0].evidence == "evidence for A"

    def test_failed_evaluation_degrades_to_insufficient(self):
        """One bad criterion does not block the overall score."""
        class FlakyLLM(FakeLLM):
            def complete_json(self, messages, temperature):
                if "- Name: B" in messages[-1]["content"]:
                    raise _connection_error()
                return super().complete_json(messages, temperature)

        llm = FlakyLLM(statuses={"A": "excellent"})
        result = ScoringEngine(llm).score(SAMPLE_RESUME, [], _criteria("A", "B"), [])
        assert result.total_score == 35.0
        assert result.details[1].status == CriterionStatus.INSUFFICIENT
        assert result.details[1].evidence == EVALUATION_FAILED.evidence

    def test_invalid_status_degrades_to_insufficient(self):
        llm = FakeLLM(statuses={"A": "brilliant"})
        result = ScoringEngine(llm).score(SAMPLE_RESUME, [], _criteria("A"), [])
        assert result.details[0].status == CriterionStatus.INSUFFICIENT

    def test_evaluations_run_concurrently_within_bound(self):
        """No more than max_concurrency evaluations are in flight."""
        in_flight = []
        peak = []
        guard = threading.Lock()

        class SlowLLM(FakeLLM):
            def complete_json(self, messages, temperature):
                with guard:
                    in_flight.append(1)
                    peak.append(len(in_flight))
                time.sleep(0.05)
                with guard:
                    in_flight.pop()
                return super().complete_json(messages, temperature)

        ScoringEngine(SlowLLM(), max_concurrency=2).score(SAMPLE_RESUME, [], _criteria("A", "B", "C", "D", "E"), [])
        assert max(peak) <= 2


class TestRecommendation:
    @pytest.mark.parametrize("score, prefix", [
        (100, "PRIORITÉ HAUTE"),
        (80, "PRIORITÉ HAUTE"),
        (79.9, "PRIORITÉ MOYENNE"),
        (60, "PRIORITÉ MOYENNE"),
        (40, "PRIORITÉ BASSE"),
        (39.9, "NON RECOMMANDÉ"),
        (0, "NON RECOMMANDÉ"),
    ])
    def test_tiers(self, score, prefix):
        assert recommendation_for(score).startswith(prefix)

    def test_result_carries_recommendation(self):
        llm = FakeLLM(statuses={"A": "excellent", "N": "excellent"})
        result = ScoringEngine(llm).score(SAMPLE_RESUME, [], _criteria("A"), _criteria("N"))
        assert result.recommendation.startswith("PRIORITÉ HAUTE")


class TestSummary:
    def test_reply_highlights_are_numbered_and_truncated(self):
        text = format_reply_highlights(["court", "x" * 300])
        lines = text.splitlines()
        assert lines[0] == "Q1: court"
        assert lines[1] == "Q2: " + "x" * 200

    def test_summary_from_model(self):
        llm = FakeLLM(summary="1. PROFIL ...")
        result = ScoringEngine(llm).score(SAMPLE_RESUME, ["Oui"], _criteria("A"), [])
        assert generate_summary(llm, {"name": "Jeanne"}, SAMPLE_RESUME, ["Oui"], result) == "1. PROFIL ..."

    def test_summary_failure_degrades(self):
        class BrokenLLM(FakeLLM):
            def complete(self, messages, temperature, max_tokens=None):
                raise _connection_error()

        llm = BrokenLLM()
        result = ScoringEngine(llm).score(SAMPLE_RESUME, [], _criteria("A"), [])
        assert generate_summary(llm, {}, SAMPLE_RESUME, [], result) == SUMMARY_UNAVAILABLE
