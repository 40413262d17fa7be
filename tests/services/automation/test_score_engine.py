"""
Compliance Score Engine Tests
=============================

Tests for sub-score math, risk tiers and evaluation persistence.
"""

from datetime import UTC, datetime, timedelta
from fractions import Fraction

import pytest

from services.automation.models import RiskLevel
from services.automation.services.score import (
    ComplianceScoreEngine,
    calculate_controls_score,
    calculate_evidence_score,
    calculate_overall_score,
    calculate_policies_score,
    calculate_tasks_score,
    determine_risk_level,
    evaluation_status,
    stored_risk_level,
)
from tests.fakes import FakeAutomationRepository


NOW = datetime(2025, 6, 1, 12, 0, tzinfo=UTC)

# (records, positive) pairs at the edges: none, one, all but one, all
BOUNDARY_COUNTS = [
    (total, positive)
    for total in (0, 1, 4)
    for positive in sorted({0, 1, total - 1, total})
    if 0 <= positive <= total
]


def half_up(value: Fraction) -> int:
    return int(value + Fraction(1, 2))


# ============================================================================
# Sub-score Tests
# ============================================================================


class TestSubScores:
    """Test the four category scores."""

    def test_empty_categories_use_defaults(self) -> None:
        """Test that empty categories score 100/50/100/50."""
        assert calculate_controls_score(0, 0, 0, 0) == 100
        assert calculate_evidence_score(0, 0, 0, 0) == 50
        assert calculate_tasks_score(0, 0, 0) == 100
        assert calculate_policies_score(0, 0) == 50

    def test_controls_weighting(self) -> None:
        """Test 7 compliant, 2 at risk, 1 non-compliant scores 80."""
        assert calculate_controls_score(10, 7, 2, 1) == 80

    def test_evidence_weighting(self) -> None:
        """Pending evidence counts 0.3; rejected counts nothing."""
        assert calculate_evidence_score(3, 1, 1, 1) == 43
        assert calculate_evidence_score(2, 2, 0, 0) == 100

    def test_tasks_overdue_penalty(self) -> None:
        """Test completion rate minus the overdue penalty."""
        assert calculate_tasks_score(4, 1, 2) == 15
        assert calculate_tasks_score(4, 4, 0) == 100

    def test_tasks_score_never_negative(self) -> None:
        assert calculate_tasks_score(5, 0, 5) == 0

    def test_half_up_rounding(self) -> None:
        """12.5 rounds up to 13."""
        assert calculate_policies_score(8, 1) == 13

    def test_overall_weights(self) -> None:
        """Test the 40/30/20/10 weighting."""
        assert calculate_overall_score(100, 50, 100, 50) == 80
        assert calculate_overall_score(0, 0, 0, 0) == 0
        assert calculate_overall_score(100, 100, 100, 100) == 100


# ============================================================================
# Risk Tier Tests
# ============================================================================


class TestRiskLevel:
    """Test risk tier rules in priority order."""

    def test_low_score_is_critical(self) -> None:
        assert determine_risk_level(35, 0, 0, 0) == RiskLevel.CRITICAL

    def test_many_failed_controls_is_critical(self) -> None:
        assert determine_risk_level(95, 0, 6, 0) == RiskLevel.CRITICAL

    def test_overdue_and_rejected_together_is_critical(self) -> None:
        assert determine_risk_level(95, 11, 0, 4) == RiskLevel.CRITICAL
        assert determine_risk_level(95, 11, 0, 3) == RiskLevel.HIGH

    def test_high_tier(self) -> None:
        assert determine_risk_level(55, 0, 0, 0) == RiskLevel.HIGH
        assert determine_risk_level(95, 0, 3, 0) == RiskLevel.HIGH
        assert determine_risk_level(95, 6, 0, 0) == RiskLevel.HIGH

    def test_medium_tier(self) -> None:
        assert determine_risk_level(79, 0, 0, 0) == RiskLevel.MEDIUM
        assert determine_risk_level(95, 3, 0, 0) == RiskLevel.MEDIUM

    def test_low_tier(self) -> None:
        assert determine_risk_level(85, 0, 0, 0) == RiskLevel.LOW
        assert determine_risk_level(80, 2, 2, 3) == RiskLevel.LOW

    def test_evaluation_status_mapping(self) -> None:
        assert evaluation_status(RiskLevel.LOW) == "compliant"
        assert evaluation_status(RiskLevel.MEDIUM) == "at_risk"
        assert evaluation_status(RiskLevel.HIGH) == "at_risk"
        assert evaluation_status(RiskLevel.CRITICAL) == "non_compliant"


# ============================================================================
# Engine Tests
# ============================================================================


class TestComplianceScoreEngine:
    """Test the engine against the in-memory repository."""

    @pytest.fixture
    def repo(self) -> FakeAutomationRepository:
        return FakeAutomationRepository()

    @pytest.mark.asyncio
    async def test_empty_organization(self, repo: FakeAutomationRepository) -> None:
        """Test an organization with no records scores 80, low risk."""
        result = await ComplianceScoreEngine(repo).calculate("org-1", now=NOW)

        assert result.overall_score == 80
        assert result.risk_level == RiskLevel.LOW
        assert result.details.total_controls == 0

    @pytest.mark.asyncio
    @pytest.mark.parametrize("total,positive", BOUNDARY_COUNTS)
    async def test_overall_is_weighted_sub_scores(
        self, repo: FakeAutomationRepository, total: int, positive: int
    ) -> None:
        """Overall is the 40/30/20/10 blend of the sub-scores, rounded half up."""
        for i in range(total):
            repo.add_control("org-1", "compliant" if i < positive else "non_compliant")
            repo.add_evidence(
                "org-1", verification_status="rejected" if i < positive else "verified"
            )
            repo.add_task("org-1", status="completed" if i < positive else "pending")
            repo.add_policy("org-1", status="draft" if i < positive else "approved")

        result = await ComplianceScoreEngine(repo).calculate("org-1", now=NOW)

        if total == 0:
            expected = (100, 50, 100, 50)
        else:
            share = Fraction(positive, total) * 100
            expected = (half_up(share), half_up(100 - share), half_up(share), half_up(100 - share))
        assert (
            result.controls_score,
            result.evidence_score,
            result.tasks_score,
            result.policies_score,
        ) == expected
        controls, evidence, tasks, policies = expected
        assert result.overall_score == half_up(
            Fraction(4, 10) * controls
            + Fraction(3, 10) * evidence
            + Fraction(2, 10) * tasks
            + Fraction(1, 10) * policies
        )
        assert 0 <= result.overall_score <= 100

    @pytest.mark.asyncio
    async def test_counts_overdue_tasks(self, repo: FakeAutomationRepository) -> None:
        """Overdue means not completed with a due date before now."""
        repo.add_task("org-1", status="pending", due_date=NOW - timedelta(days=1))
        repo.add_task("org-1", status="completed", due_date=NOW - timedelta(days=1))
        repo.add_task("org-1", status="pending", due_date=NOW + timedelta(days=1))
        repo.add_task("org-1", status="pending")

        result = await ComplianceScoreEngine(repo).calculate("org-1", now=NOW)

        assert result.details.total_tasks == 4
        assert result.details.completed_tasks == 1
        assert result.details.overdue_tasks == 1
        assert result.tasks_score == 20

    @pytest.mark.asyncio
    async def test_unset_evidence_status_counts_as_pending(
        self, repo: FakeAutomationRepository
    ) -> None:
        repo.add_evidence("org-1", verification_status=None)
        repo.add_evidence("org-1", verification_status="")

        result = await ComplianceScoreEngine(repo).calculate("org-1", now=NOW)

        assert result.details.pending_evidence == 2
        assert result.evidence_score == 30

    @pytest.mark.asyncio
    async def test_update_persists_and_bumps_version(
        self, repo: FakeAutomationRepository
    ) -> None:
        """Test every save increments the evaluation version."""
        repo.add_control("org-1", "compliant")
        repo.add_control("org-1", "non_compliant")
        engine = ComplianceScoreEngine(repo)

        await engine.update("org-1", now=NOW)
        await engine.update("org-1", now=NOW)

        evaluation = repo.evaluations["org-1"]
        assert evaluation["version"] == 2
        assert evaluation["total_controls"] == 2
        assert evaluation["satisfied_controls"] == 1
        assert evaluation["missing_controls"] == 1
        assert evaluation["details"]["controlsScore"] == 50
        assert evaluation["details"]["nonCompliantControls"] == 1
        assert stored_risk_level(evaluation) == RiskLevel(evaluation["details"]["riskLevel"])

    @pytest.mark.asyncio
    async def test_summary_computes_when_missing(self, repo: FakeAutomationRepository) -> None:
        summary = await ComplianceScoreEngine(repo).get_compliance_summary("org-1")

        assert summary["score"] == 80
        assert summary["risk_level"] == RiskLevel.LOW
        assert summary["breakdown"] == {
            "controls": 100,
            "evidence": 50,
            "tasks": 100,
            "policies": 50,
        }
        assert "org-1" in repo.evaluations

    @pytest.mark.asyncio
    async def test_summary_reads_stored_evaluation(
        self, repo: FakeAutomationRepository
    ) -> None:
        repo.evaluations["org-1"] = {
            "compliance_score": 42,
            "last_evaluated_at": NOW,
            "version": 3,
            "details": {
                "riskLevel": "high",
                "controlsScore": 40,
                "evidenceScore": 30,
                "tasksScore": 60,
                "policiesScore": 50,
            },
        }

        summary = await ComplianceScoreEngine(repo).get_compliance_summary("org-1")

        assert summary["score"] == 42
        assert summary["risk_level"] == RiskLevel.HIGH
        assert summary["breakdown"]["tasks"] == 60
        assert repo.evaluations["org-1"]["version"] == 3


class TestStoredRiskLevel:
    """Test reading the tier back off an evaluation row."""

    def test_missing(self) -> None:
        assert stored_risk_level(None) is None
        assert stored_risk_level({"details": {}}) is None

    def test_unknown_value(self) -> None:
        assert stored_risk_level({"details": {"riskLevel": "severe"}}) is None

    def test_known_value(self) -> None:
        assert stored_risk_level({"details": {"riskLevel": "critical"}}) == RiskLevel.CRITICAL
