"""
Quality Score Calculator Tests
==============================

Covers:
    - Unreported dimensions fall back to 50
    - Per-dimension deductions and clamping
    - Family-specific logic penalties
    - Required-feature scaling of completeness
    - Production readiness and quality levels
"""
import pytest

from cadence_qa.completeness_validator import validate_functional_completeness
from cadence_qa.config import QualityRequirements
from cadence_qa.error_detector import detect_errors
from cadence_qa.models import ContractCategory, Severity, ValidationIssue, ValidationResult, ValidationType
from cadence_qa.quality_score import QualityScoreCalculator, build_validation_results, calculate_quality_score

from conftest import GOOD_CONTRACT


def _make_issue(severity=Severity.WARNING, type_="generic-issue", auto_fixable=False):
    return ValidationIssue(severity=severity, type=type_, message=type_, auto_fixable=auto_fixable)


def _make_result(kind, issues=None, score=100):
    issues = issues or []
    return ValidationResult(type=kind, passed=not issues, issues=issues, score=score)


def _perfect_results():
    return [_make_result(kind) for kind in ValidationType]


@pytest.fixture
def calculator():
    return QualityScoreCalculator()


# ===========================================================================
# 1. Dimensions
# ===========================================================================
class TestDimensions:

    def test_no_results_defaults_to_fifty(self, calculator):
        score = calculator.calculate([])
        assert (score.syntax, score.logic, score.completeness, score.best_practices) == (50, 50, 50, 50)
        # Below the minimum on syntax, so not production ready at all
        assert score.production_readiness == 0
        assert score.overall == 45

    def test_perfect_results(self, calculator):
        score = calculator.calculate(_perfect_results())
        assert score.to_dict() == {
            "overall": 100,
            "syntax": 100,
            "logic": 100,
            "completeness": 100,
            "best_practices": 100,
            "production_readiness": 100,
        }

    def test_syntax_deductions(self, calculator):
        issues = [_make_issue(Severity.CRITICAL), _make_issue(Severity.WARNING)]
        assert calculator.syntax_score([_make_result(ValidationType.SYNTAX, issues)]) == 65

    def test_syntax_clamped_at_zero(self, calculator):
        issues = [_make_issue(Severity.CRITICAL) for _ in range(6)]
        assert calculator.syntax_score([_make_result(ValidationType.SYNTAX, issues)]) == 0

    def test_nft_logic_penalty(self, calculator):
        issues = [_make_issue(Severity.CRITICAL, "missing-metadata")]
        results = [_make_result(ValidationType.LOGIC, issues)]
        assert calculator.logic_score(results, ContractCategory.NFT) == 65
        assert calculator.logic_score(results, ContractCategory.GENERIC) == 80

    def test_required_features_scale_completeness(self, calculator):
        results = [_make_result(ValidationType.COMPLETENESS, [_make_issue(type_="missing-mint")])]
        requirements = QualityRequirements(required_features=("mint", "burn"))
        assert calculator.completeness_score(results) == 100
        assert calculator.completeness_score(results, requirements) == 50

    def test_only_first_result_of_a_kind_counts(self, calculator):
        results = [
            _make_result(ValidationType.BEST_PRACTICES, score=90),
            _make_result(ValidationType.BEST_PRACTICES, score=10),
        ]
        assert calculator.best_practices_score(results) == 90


# ===========================================================================
# 2. Production readiness and levels
# ===========================================================================
class TestReadiness:

    def test_blocking_issue_costs_thirty(self, calculator):
        results = _perfect_results()
        results[0] = _make_result(ValidationType.SYNTAX, [_make_issue(Severity.CRITICAL)])
        score = calculator.calculate(results)
        assert score.syntax == 75
        assert score.production_readiness == 64
        assert not calculator.is_production_ready(score)

    def test_auto_fixable_critical_is_not_blocking(self, calculator):
        results = _perfect_results()
        results[0] = _make_result(ValidationType.SYNTAX, [_make_issue(Severity.CRITICAL, auto_fixable=True)])
        score = calculator.calculate(results)
        # average 93.75 is excellent
        assert score.production_readiness == 100

    @pytest.mark.parametrize("overall,level", [(95, "excellent"), (90, "excellent"), (80, "good"), (60, "fair"), (59, "poor")])
    def test_levels(self, calculator, overall, level):
        assert calculator.level(overall) == level

    def test_assess_clean(self, calculator):
        score = calculator.calculate(_perfect_results())
        assessment = calculator.assess(score, _perfect_results())
        assert assessment.level == "excellent"
        assert assessment.recommendations == []
        assert assessment.production_ready

    def test_assess_counts_critical_issues(self, calculator):
        results = [_make_result(ValidationType.SYNTAX, [_make_issue(Severity.CRITICAL)] * 2)]
        assessment = calculator.assess(calculator.calculate(results), results)
        assert "Resolve 2 critical issues before proceeding" in assessment.recommendations
        assert assessment.level == "poor"

    def test_threshold(self, calculator):
        score = calculator.calculate(_perfect_results())
        assert calculator.meets_threshold(score, 100)
        assert not calculator.meets_threshold(calculator.calculate([]), 80)


# ===========================================================================
# 3. Analyzer mapping
# ===========================================================================
class TestAnalyzerMapping:

    def test_clean_contract_scores_full_marks(self):
        results = build_validation_results(
            detect_errors(GOOD_CONTRACT), validate_functional_completeness(GOOD_CONTRACT)
        )
        assert [r.type for r in results] == list(ValidationType)
        assert calculate_quality_score(results).overall == 100

    def test_calculation_is_deterministic(self, calculator):
        results = [_make_result(ValidationType.SYNTAX, [_make_issue()]), _make_result(ValidationType.LOGIC, score=70)]
        assert calculator.calculate(results) == calculator.calculate(results)
