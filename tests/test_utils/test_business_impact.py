"""
Tests for business impact estimation.
"""
import pytest

from collection_decisioning.models.scoring import RiskLevel
from collection_decisioning.utils.business_impact import BusinessImpactCalculator


class TestBusinessImpactCalculator:
    """Test revenue at risk, relationship risk and churn probability."""

    @pytest.fixture
    def calculator(self, test_settings):
        return BusinessImpactCalculator(test_settings)

    def test_low_risk_account(self, calculator, routine_context):
        impact = calculator.calculate(routine_context)

        # $5,000 invoice plus 10% of a $20,000 account
        assert impact.revenue_at_risk == 7000
        assert impact.relationship_risk == RiskLevel.LOW
        assert impact.churn_probability == 0.05

    def test_high_risk_account(self, calculator, sensitive_context):
        impact = calculator.calculate(sensitive_context)

        # $28,500 invoice plus 80% of a $95,000 account
        assert impact.revenue_at_risk == 104500
        assert impact.relationship_risk == RiskLevel.HIGH
        assert impact.churn_probability == 0.68

    def test_relationship_risk_uses_its_own_thresholds(self, calculator, strategic_context):
        """A score of 79 is medium collectability risk but a low relationship risk."""
        assert strategic_context.risk_level == RiskLevel.MEDIUM

        impact = calculator.calculate(strategic_context)

        assert impact.relationship_risk == RiskLevel.LOW

    @pytest.mark.parametrize(
        "score,expected",
        [(70, RiskLevel.LOW), (69, RiskLevel.MEDIUM), (50, RiskLevel.MEDIUM), (49, RiskLevel.HIGH)],
    )
    def test_relationship_risk_boundaries(self, calculator, score, expected):
        assert calculator.relationship_risk(score) == expected

    def test_churn_probability_is_capped(self):
        assert BusinessImpactCalculator.churn_probability(RiskLevel.HIGH, 400) == 0.8
        assert BusinessImpactCalculator.churn_probability(RiskLevel.HIGH, 120) <= 0.85

    def test_churn_probability_grows_with_days_past_due(self):
        early = BusinessImpactCalculator.churn_probability(RiskLevel.MEDIUM, 0)
        late = BusinessImpactCalculator.churn_probability(RiskLevel.MEDIUM, 90)

        assert early == 0.15
        assert late > early
