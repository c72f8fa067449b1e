"""
Cadence QA Pipeline
===================

Quality assurance for LLM-generated Cadence 1.0 (Flow) smart contracts:
error detection, functional completeness validation, quality scoring,
auto-correction, template fallback and a retrying generation orchestrator.
"""

from .auto_correction import AutoCorrectionEngine, correct_code
from .completeness_validator import FunctionalCompletenessValidator, validate_functional_completeness
from .config import EnhancementOptions, PipelineConfig, QualityRequirements, load_config
from .error_detector import ErrorDetector, detect_errors
from .errors import ConfigError, GenerationError, QAError
from .fallback_generator import FallbackGenerator, generate_fallback_contract, validate_fallback_quality
from .llm_client import OpenAIGenerator, TextGenerator
from .models import (
    CodeValidation,
    ContractCategory,
    ContractType,
    CorrectionResult,
    ErrorDetectionResult,
    FallbackGenerationResult,
    FunctionalCompletenessResult,
    GenerationContext,
    QualityAssuredResult,
    QualityScore,
)
from .orchestrator import GenerationOrchestrator, OrchestratorState
from .quality_score import QualityScoreCalculator, calculate_quality_score
from .rejection import check_rejection
from .telemetry import PipelineTelemetry
from .validation import CodeValidator

__all__ = [
    "AutoCorrectionEngine",
    "correct_code",
    "FunctionalCompletenessValidator",
    "validate_functional_completeness",
    "EnhancementOptions",
    "PipelineConfig",
    "QualityRequirements",
    "load_config",
    "ErrorDetector",
    "detect_errors",
    "ConfigError",
    "GenerationError",
    "QAError",
    "FallbackGenerator",
    "generate_fallback_contract",
    "validate_fallback_quality",
    "OpenAIGenerator",
    "TextGenerator",
    "CodeValidation",
    "ContractCategory",
    "ContractType",
    "CorrectionResult",
    "ErrorDetectionResult",
    "FallbackGenerationResult",
    "FunctionalCompletenessResult",
    "GenerationContext",
    "QualityAssuredResult",
    "QualityScore",
    "GenerationOrchestrator",
    "OrchestratorState",
    "QualityScoreCalculator",
    "calculate_quality_score",
    "check_rejection",
    "PipelineTelemetry",
    "CodeValidator",
]
