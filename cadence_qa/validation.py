"""
Code validation: runs both analyzers and the score calculator over a piece
of code and decides whether it clears the quality threshold.
"""

from typing import Optional

from .completeness_validator import FunctionalCompletenessValidator
from .config import QualityRequirements
from .error_detector import ErrorDetector
from .models import CodeValidation, ContractCategory
from .quality_score import QualityScoreCalculator, build_validation_results
from .telemetry import PipelineTelemetry


class CodeValidator:
    def __init__(
        self,
        detector: Optional[ErrorDetector] = None,
        completeness_validator: Optional[FunctionalCompletenessValidator] = None,
        calculator: Optional[QualityScoreCalculator] = None,
        telemetry: Optional[PipelineTelemetry] = None,
    ):
        self.telemetry = telemetry or PipelineTelemetry()
        self.detector = detector or ErrorDetector(telemetry=self.telemetry)
        self.completeness_validator = completeness_validator or FunctionalCompletenessValidator(telemetry=self.telemetry)
        self.calculator = calculator or QualityScoreCalculator()

    def validate(
        self,
        code: str,
        contract_type=None,
        threshold: int = 80,
        requirements: Optional[QualityRequirements] = None,
    ) -> CodeValidation:
        """
        Validate `code` against `threshold`.

        The contract family is resolved once by the detector (inferred from
        the code when `contract_type` is omitted) and reused by the other
        stages so all three agree.
        """
        with self.telemetry.step("validation"):
            detection = self.detector.detect(code, contract_type)
            category = ContractCategory.from_string(detection.contract_type)
            completeness = self.completeness_validator.validate(code, category)
            results = build_validation_results(detection, completeness)
            score = self.calculator.calculate(results, contract_type=category, requirements=requirements)

        self.telemetry.record_metric("quality.overall", score.overall, contract_type=category.value)
        return CodeValidation(
            is_valid=score.overall >= threshold,
            quality_score=score,
            detection=detection,
            completeness=completeness,
            validation_results=results,
            threshold=threshold,
        )


def validate_code(code: str, contract_type=None, threshold: int = 80) -> CodeValidation:
    return CodeValidator().validate(code, contract_type, threshold)
