"""
Quality Score Calculator
========================

Reduces validation results to a five-dimension quality score with a
weighted overall value. Pure: the same inputs always give the same score.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional

from .config import QualityRequirements
from .models import (
    ContractCategory,
    ContractType,
    ErrorCategory,
    ErrorDetectionResult,
    FunctionalCompletenessResult,
    QualityScore,
    Severity,
    ValidationIssue,
    ValidationResult,
    ValidationType,
)


@dataclass(frozen=True)
class ScoreWeights:
    syntax: float = 0.25
    logic: float = 0.25
    completeness: float = 0.25
    best_practices: float = 0.15
    production_readiness: float = 0.10


@dataclass(frozen=True)
class ScoreThresholds:
    minimum: int = 60
    good: int = 75
    excellent: int = 90
    production_ready: int = 85


@dataclass
class QualityAssessment:
    level: str  # poor, fair, good, excellent
    recommendations: List[str] = field(default_factory=list)
    production_ready: bool = False

    def to_dict(self) -> Dict:
        return {
            "level": self.level,
            "recommendations": list(self.recommendations),
            "production_ready": self.production_ready,
        }


# Issue-type substrings that cost extra logic points, per contract family
_LOGIC_PENALTIES = {
    ContractCategory.NFT: [("metadata", 15), ("transfer", 20)],
    ContractCategory.FUNGIBLE_TOKEN: [("supply", 20), ("transfer", 20), ("balance", 15)],
    ContractCategory.DAO: [("voting", 25), ("governance", 20)],
    ContractCategory.MARKETPLACE: [("listing", 20), ("purchase", 20)],
}

_SYNTAX_DEDUCTIONS = {Severity.CRITICAL: 25, Severity.WARNING: 10, Severity.INFO: 2}
_BEST_PRACTICE_DEDUCTIONS = {Severity.CRITICAL: 15, Severity.WARNING: 8, Severity.INFO: 3}

# Score used for a dimension no analyzer reported on
_NOT_EVALUATED = 50


def _clamp(value: float) -> int:
    return int(max(0, min(100, round(value))))


def _first(results: List[ValidationResult], kind: ValidationType) -> Optional[ValidationResult]:
    for result in results:
        if result.type == kind:
            return result
    return None


class QualityScoreCalculator:
    """Weighted quality scoring over validation results"""

    def __init__(self, weights: Optional[ScoreWeights] = None, thresholds: Optional[ScoreThresholds] = None):
        self.weights = weights or ScoreWeights()
        self.thresholds = thresholds or ScoreThresholds()

    def calculate(
        self,
        validation_results: List[ValidationResult],
        contract_type=None,
        requirements: Optional[QualityRequirements] = None,
    ) -> QualityScore:
        """
        Calculate the quality score.

        Args:
            validation_results: Results from the analyzers; the first result of
                                each ValidationType feeds that dimension
            contract_type: ContractType or ContractCategory for
                           family-specific logic penalties
            requirements: Required features scale the completeness dimension

        Returns:
            QualityScore with every value in [0, 100]
        """
        category = contract_type.category if isinstance(contract_type, ContractType) else contract_type

        syntax = self.syntax_score(validation_results)
        logic = self.logic_score(validation_results, category)
        completeness = self.completeness_score(validation_results, requirements)
        best_practices = self.best_practices_score(validation_results)
        production = self.production_readiness(syntax, logic, completeness, best_practices, validation_results)

        overall = (
            syntax * self.weights.syntax
            + logic * self.weights.logic
            + completeness * self.weights.completeness
            + best_practices * self.weights.best_practices
            + production * self.weights.production_readiness
        )

        return QualityScore(
            overall=_clamp(overall),
            syntax=syntax,
            logic=logic,
            completeness=completeness,
            best_practices=best_practices,
            production_readiness=production,
        )

    def syntax_score(self, validation_results: List[ValidationResult]) -> int:
        result = _first(validation_results, ValidationType.SYNTAX)
        if result is None:
            return _NOT_EVALUATED
        if result.passed and not result.issues:
            return 100
        score = 100 - sum(_SYNTAX_DEDUCTIONS[i.severity] for i in result.issues)
        return _clamp(score)

    def logic_score(self, validation_results: List[ValidationResult], category: Optional[ContractCategory] = None) -> int:
        result = _first(validation_results, ValidationType.LOGIC)
        if result is None:
            return _NOT_EVALUATED

        score = result.score
        score -= 20 * sum(1 for i in result.issues if i.severity == Severity.CRITICAL)

        for needle, penalty in _LOGIC_PENALTIES.get(category, []):
            if any(needle in i.type for i in result.issues):
                score -= penalty

        return _clamp(score)

    def completeness_score(
        self, validation_results: List[ValidationResult], requirements: Optional[QualityRequirements] = None
    ) -> int:
        result = _first(validation_results, ValidationType.COMPLETENESS)
        if result is None:
            return _NOT_EVALUATED

        score = result.score
        score -= 15 * sum(
            1 for i in result.issues if "missing" in i.type and i.severity == Severity.CRITICAL
        )

        required = list(requirements.required_features) if requirements else []
        if required:
            score = max(0, score) * self._implemented_features(result.issues, required) / len(required)

        return _clamp(score)

    def best_practices_score(self, validation_results: List[ValidationResult]) -> int:
        result = _first(validation_results, ValidationType.BEST_PRACTICES)
        if result is None:
            return _NOT_EVALUATED
        score = result.score - sum(_BEST_PRACTICE_DEDUCTIONS[i.severity] for i in result.issues)
        return _clamp(score)

    def production_readiness(
        self,
        syntax: int,
        logic: int,
        completeness: int,
        best_practices: int,
        validation_results: List[ValidationResult],
    ) -> int:
        minimum = self.thresholds.minimum
        if syntax < minimum or logic < minimum or completeness < minimum:
            return 0

        average = (syntax + logic + completeness + best_practices) / 4
        blocking = sum(
            1 for r in validation_results for i in r.issues
            if i.severity == Severity.CRITICAL and not i.auto_fixable
        )
        if blocking:
            return _clamp(average - blocking * 30)

        if average >= self.thresholds.excellent:
            return 100
        if average >= self.thresholds.good:
            return 85
        if average >= minimum:
            return 70
        return _clamp(average - 10)

    def meets_threshold(self, score: QualityScore, threshold: int) -> bool:
        return score.overall >= threshold

    def is_production_ready(self, score: QualityScore) -> bool:
        return score.production_readiness >= self.thresholds.production_ready

    def level(self, overall: int) -> str:
        if overall >= self.thresholds.excellent:
            return "excellent"
        if overall >= self.thresholds.good:
            return "good"
        if overall >= self.thresholds.minimum:
            return "fair"
        return "poor"

    def assess(self, score: QualityScore, validation_results: List[ValidationResult]) -> QualityAssessment:
        """Quality level plus recommendations for the weak dimensions"""
        recommendations = []
        if score.syntax < 80:
            recommendations.append("Fix syntax errors and improve code structure")
        if score.logic < 70:
            recommendations.append("Enhance contract logic and add missing functionality")
        if score.completeness < 75:
            recommendations.append("Complete missing contract elements and required functions")
        if score.best_practices < 70:
            recommendations.append("Follow Cadence best practices and security patterns")
        if score.production_readiness < self.thresholds.production_ready:
            recommendations.append("Address production-blocking issues before deployment")

        critical = sum(1 for r in validation_results for i in r.issues if i.severity == Severity.CRITICAL)
        if critical:
            recommendations.append(f"Resolve {critical} critical issues before proceeding")

        return QualityAssessment(
            level=self.level(score.overall),
            recommendations=recommendations,
            production_ready=self.is_production_ready(score),
        )

    @staticmethod
    def _implemented_features(issues: List[ValidationIssue], required: List[str]) -> int:
        missing = [i.type.replace("missing-", "") for i in issues if "missing" in i.type]
        return sum(1 for feature in required if not any(feature in m for m in missing))


def build_validation_results(
    detection: ErrorDetectionResult, completeness: FunctionalCompletenessResult
) -> List[ValidationResult]:
    """
    Map analyzer output onto one ValidationResult per dimension.

    syntax         structural and syntax findings
    logic          functional findings, scored by function completeness
    completeness   completeness findings plus required functions the
                   validator could not find, scored by the detector
    best-practices best-practice and security findings, scored by event
                   and access-control coverage
    """
    def issues_for(*categories: ErrorCategory) -> List[ValidationIssue]:
        return [ValidationIssue.from_error(e) for e in detection.errors if e.category in categories]

    syntax_issues = issues_for(ErrorCategory.STRUCTURAL, ErrorCategory.SYNTAX)
    syntax_score = 100 - sum(_SYNTAX_DEDUCTIONS[i.severity] for i in syntax_issues)

    logic_issues = issues_for(ErrorCategory.FUNCTIONAL)

    completeness_issues = issues_for(ErrorCategory.COMPLETENESS)
    completeness_issues.extend(
        ValidationIssue(
            severity=Severity.CRITICAL,
            type="missing-required-function",
            message=f"Contract is missing required function: {name}",
            suggested_fix=f"Implement {name} function",
        )
        for name in completeness.missing_required_functions
    )

    practice_issues = issues_for(ErrorCategory.BEST_PRACTICES, ErrorCategory.SECURITY)
    practice_score = round(
        (completeness.event_emission.emission_completeness + completeness.access_control.access_control_score) / 2
    )

    return [
        ValidationResult(
            type=ValidationType.SYNTAX,
            passed=not any(i.severity == Severity.CRITICAL for i in syntax_issues),
            issues=syntax_issues,
            score=_clamp(syntax_score),
            message="Structure and syntax",
        ),
        ValidationResult(
            type=ValidationType.LOGIC,
            passed=not completeness.function_completeness.incomplete_functions and not logic_issues,
            issues=logic_issues,
            score=completeness.function_completeness.completeness_percentage,
            message="Function logic",
        ),
        ValidationResult(
            type=ValidationType.COMPLETENESS,
            passed=completeness.is_complete and not any(i.severity == Severity.CRITICAL for i in completeness_issues),
            issues=completeness_issues,
            score=detection.completeness_score,
            message="Required elements",
        ),
        ValidationResult(
            type=ValidationType.BEST_PRACTICES,
            passed=practice_score >= 70,
            issues=practice_issues,
            score=practice_score,
            message="Best practices and access control",
        ),
    ]


def calculate_quality_score(
    validation_results: List[ValidationResult],
    contract_type=None,
    requirements: Optional[QualityRequirements] = None,
) -> QualityScore:
    """Module-level wrapper around QualityScoreCalculator.calculate"""
    return QualityScoreCalculator().calculate(validation_results, contract_type, requirements)
