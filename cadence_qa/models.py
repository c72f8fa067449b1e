"""
Data Models for the Cadence QA pipeline
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, FrozenSet, List, Optional

from .config import QualityRequirements


class ContractCategory(Enum):
    """Contract families with their own rule tables"""
    NFT = "nft"
    FUNGIBLE_TOKEN = "fungible-token"
    DAO = "dao"
    MARKETPLACE = "marketplace"
    DEFI = "defi"
    UTILITY = "utility"
    GENERIC = "generic"

    @classmethod
    def from_string(cls, s: Optional[str]) -> "ContractCategory":
        """Convert string to ContractCategory, defaulting to GENERIC"""
        if not s:
            return cls.GENERIC
        s_lower = s.strip().lower()
        for category in cls:
            if category.value == s_lower:
                return category
        if s_lower in ("token", "ft", "fungible"):
            return cls.FUNGIBLE_TOKEN
        return cls.GENERIC


class Complexity(Enum):
    SIMPLE = "simple"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"


class Severity(Enum):
    """Finding severity levels"""
    CRITICAL = "critical"
    WARNING = "warning"
    INFO = "info"


class ErrorCategory(Enum):
    STRUCTURAL = "structural"
    FUNCTIONAL = "functional"
    SYNTAX = "syntax"
    COMPLETENESS = "completeness"
    BEST_PRACTICES = "best-practices"
    SECURITY = "security"


class ErrorType(Enum):
    # Functions
    INCOMPLETE_FUNCTION_IMPLEMENTATION = "incomplete-function-implementation"
    MISSING_FUNCTION_BODY = "missing-function-body"
    MISSING_RETURN_STATEMENT = "missing-return-statement"
    INVALID_FUNCTION_SIGNATURE = "invalid-function-signature"
    MISSING_REQUIRED_FUNCTION = "missing-required-function"

    # Contract structure
    MISSING_INIT_FUNCTION = "missing-init-function"
    MISSING_CONTRACT_DECLARATION = "missing-contract-declaration"
    INVALID_CONTRACT_STRUCTURE = "invalid-contract-structure"
    MISSING_IMPORT_STATEMENTS = "missing-import-statements"

    # Resources and interfaces
    INCOMPLETE_RESOURCE_DEFINITION = "incomplete-resource-definition"
    MISSING_RESOURCE_INTERFACE = "missing-resource-interface"
    INVALID_RESOURCE_LIFECYCLE = "invalid-resource-lifecycle"
    MISSING_RESOURCE_METHODS = "missing-resource-methods"

    # Events
    MISSING_EVENT_DEFINITIONS = "missing-event-definitions"
    INVALID_EVENT_PARAMETERS = "invalid-event-parameters"
    MISSING_EVENT_EMISSION = "missing-event-emission"

    # Access control
    MISSING_ACCESS_MODIFIERS = "missing-access-modifiers"
    INVALID_ACCESS_CONTROL = "invalid-access-control"
    SECURITY_VULNERABILITY = "security-vulnerability"

    # Types and values
    TYPE_MISMATCH = "type-mismatch"
    MISSING_TYPE_ANNOTATIONS = "missing-type-annotations"
    UNDEFINED_VALUE = "undefined-value"

    # Completeness
    INCOMPLETE_IMPLEMENTATION = "incomplete-implementation"
    MISSING_ERROR_HANDLING = "missing-error-handling"

    # Best practices
    POOR_NAMING_CONVENTION = "poor-naming-convention"
    MISSING_DOCUMENTATION = "missing-documentation"


class ValidationType(Enum):
    SYNTAX = "syntax"
    LOGIC = "logic"
    COMPLETENESS = "completeness"
    BEST_PRACTICES = "best-practices"


@dataclass(frozen=True)
class ContractType:
    """Contract family inferred from a request; read-only once built"""
    category: ContractCategory = ContractCategory.GENERIC
    complexity: Complexity = Complexity.SIMPLE
    features: FrozenSet[str] = frozenset()

    def to_dict(self) -> Dict:
        return {
            "category": self.category.value,
            "complexity": self.complexity.value,
            "features": sorted(self.features),
        }


@dataclass(frozen=True)
class CodeLocation:
    """1-based line, 0-based column"""
    line: int
    column: int

    def to_dict(self) -> Dict:
        return {"line": self.line, "column": self.column}


@dataclass(frozen=True)
class DetectedError:
    """A single finding from the error detector"""
    id: str
    type: ErrorType
    category: ErrorCategory
    severity: Severity
    location: CodeLocation
    message: str
    description: str
    suggested_fix: str
    auto_fixable: bool
    confidence: int
    context: Dict = field(default_factory=dict, compare=False, hash=False)

    def to_dict(self) -> Dict:
        return {
            "id": self.id,
            "type": self.type.value,
            "category": self.category.value,
            "severity": self.severity.value,
            "location": self.location.to_dict(),
            "message": self.message,
            "description": self.description,
            "suggested_fix": self.suggested_fix,
            "auto_fixable": self.auto_fixable,
            "confidence": self.confidence,
            "context": dict(self.context),
        }


@dataclass
class ErrorClassification:
    """Per-category counters; always derived from a list of findings"""
    structural: int = 0
    functional: int = 0
    syntax: int = 0
    completeness: int = 0
    best_practices: int = 0
    security: int = 0

    @classmethod
    def from_errors(cls, errors: List[DetectedError]) -> "ErrorClassification":
        counts = cls()
        for error in errors:
            attr = error.category.value.replace("-", "_")
            setattr(counts, attr, getattr(counts, attr) + 1)
        return counts

    def to_dict(self) -> Dict:
        return {
            "structural": self.structural,
            "functional": self.functional,
            "syntax": self.syntax,
            "completeness": self.completeness,
            "best_practices": self.best_practices,
            "security": self.security,
        }


@dataclass
class ErrorDetectionResult:
    """Results from one detector run"""
    errors: List[DetectedError]
    classification: ErrorClassification
    completeness_score: int
    recommendations: List[str]
    contract_type: str = ContractCategory.GENERIC.value

    def get_by_severity(self, severity: Severity) -> List[DetectedError]:
        return [e for e in self.errors if e.severity == severity]

    def get_by_type(self, error_type: ErrorType) -> List[DetectedError]:
        return [e for e in self.errors if e.type == error_type]

    def auto_fixable(self) -> List[DetectedError]:
        return [e for e in self.errors if e.auto_fixable]

    @property
    def total_errors(self) -> int:
        return len(self.errors)

    @property
    def critical_errors(self) -> int:
        return len(self.get_by_severity(Severity.CRITICAL))

    @property
    def warning_errors(self) -> int:
        return len(self.get_by_severity(Severity.WARNING))

    @property
    def info_errors(self) -> int:
        return len(self.get_by_severity(Severity.INFO))

    def to_dict(self) -> Dict:
        return {
            "contract_type": self.contract_type,
            "total_errors": self.total_errors,
            "critical_errors": self.critical_errors,
            "warning_errors": self.warning_errors,
            "info_errors": self.info_errors,
            "errors": [e.to_dict() for e in self.errors],
            "classification": self.classification.to_dict(),
            "completeness_score": self.completeness_score,
            "recommendations": list(self.recommendations),
        }


@dataclass
class ValidationIssue:
    severity: Severity
    type: str
    message: str
    location: Optional[CodeLocation] = None
    suggested_fix: str = ""
    auto_fixable: bool = False

    @classmethod
    def from_error(cls, error: DetectedError) -> "ValidationIssue":
        return cls(
            severity=error.severity,
            type=error.type.value,
            message=error.message,
            location=error.location,
            suggested_fix=error.suggested_fix,
            auto_fixable=error.auto_fixable,
        )

    def to_dict(self) -> Dict:
        return {
            "severity": self.severity.value,
            "type": self.type,
            "message": self.message,
            "location": self.location.to_dict() if self.location else None,
            "suggested_fix": self.suggested_fix,
            "auto_fixable": self.auto_fixable,
        }


@dataclass
class ValidationResult:
    """Unit exchanged between analyzers and the score calculator"""
    type: ValidationType
    passed: bool
    issues: List[ValidationIssue]
    score: int
    message: str = ""

    def to_dict(self) -> Dict:
        return {
            "type": self.type.value,
            "passed": self.passed,
            "score": self.score,
            "message": self.message,
            "issues": [i.to_dict() for i in self.issues],
        }


# ---------------------------------------------------------------------------
# Functional completeness reports
# ---------------------------------------------------------------------------

@dataclass
class FunctionInfo:
    name: str
    location: CodeLocation
    has_access_modifier: bool
    has_body: bool
    has_return: bool
    has_error_handling: bool
    return_type: Optional[str] = None
    parameters: List[str] = field(default_factory=list)
    issues: List[str] = field(default_factory=list)

    @property
    def is_complete(self) -> bool:
        return not self.issues

    def to_dict(self) -> Dict:
        return {
            "name": self.name,
            "location": self.location.to_dict(),
            "has_access_modifier": self.has_access_modifier,
            "has_body": self.has_body,
            "has_return": self.has_return,
            "has_error_handling": self.has_error_handling,
            "return_type": self.return_type,
            "parameters": list(self.parameters),
            "issues": list(self.issues),
        }


@dataclass
class ResourceInfo:
    name: str
    location: CodeLocation
    has_access_modifier: bool
    has_init: bool
    has_destroy: bool

    @property
    def is_lifecycle_complete(self) -> bool:
        return self.has_init and self.has_destroy and self.has_access_modifier

    def to_dict(self) -> Dict:
        return {
            "name": self.name,
            "location": self.location.to_dict(),
            "has_access_modifier": self.has_access_modifier,
            "has_init": self.has_init,
            "has_destroy": self.has_destroy,
        }


@dataclass
class EventInfo:
    name: str
    location: CodeLocation
    parameters: List[str] = field(default_factory=list)
    emitted: bool = False

    def to_dict(self) -> Dict:
        return {
            "name": self.name,
            "location": self.location.to_dict(),
            "parameters": list(self.parameters),
            "emitted": self.emitted,
        }


@dataclass
class FunctionCompletenessReport:
    total_functions: int
    complete_functions: int
    incomplete_functions: List[FunctionInfo]
    missing_required_functions: List[str]
    completeness_percentage: int

    def to_dict(self) -> Dict:
        return {
            "total_functions": self.total_functions,
            "complete_functions": self.complete_functions,
            "incomplete_functions": [f.to_dict() for f in self.incomplete_functions],
            "missing_required_functions": list(self.missing_required_functions),
            "completeness_percentage": self.completeness_percentage,
        }


@dataclass
class LifecycleIssue:
    resource: str
    kind: str
    severity: Severity
    message: str

    def to_dict(self) -> Dict:
        return {
            "resource": self.resource,
            "kind": self.kind,
            "severity": self.severity.value,
            "message": self.message,
        }


@dataclass
class ResourceLifecycleReport:
    total_resources: int
    complete_lifecycles: int
    issues: List[LifecycleIssue]
    lifecycle_score: int

    def to_dict(self) -> Dict:
        return {
            "total_resources": self.total_resources,
            "complete_lifecycles": self.complete_lifecycles,
            "issues": [i.to_dict() for i in self.issues],
            "lifecycle_score": self.lifecycle_score,
        }


@dataclass
class EventEmissionReport:
    defined_events: List[str]
    emitted_events: List[str]
    unused_events: List[str]
    missing_emissions: List[str]
    emission_completeness: int

    def to_dict(self) -> Dict:
        return {
            "defined_events": list(self.defined_events),
            "emitted_events": list(self.emitted_events),
            "unused_events": list(self.unused_events),
            "missing_emissions": list(self.missing_emissions),
            "emission_completeness": self.emission_completeness,
        }


@dataclass
class AccessControlReport:
    total_elements: int
    elements_with_access: int
    missing_access: List[str]
    access_control_score: int

    def to_dict(self) -> Dict:
        return {
            "total_elements": self.total_elements,
            "elements_with_access": self.elements_with_access,
            "missing_access": list(self.missing_access),
            "access_control_score": self.access_control_score,
        }


@dataclass
class FunctionalCompletenessResult:
    is_complete: bool
    completeness_score: int
    function_completeness: FunctionCompletenessReport
    resource_lifecycle: ResourceLifecycleReport
    event_emission: EventEmissionReport
    access_control: AccessControlReport
    validation_results: List[ValidationResult] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)

    @property
    def missing_required_functions(self) -> List[str]:
        return self.function_completeness.missing_required_functions

    @property
    def unused_events(self) -> List[str]:
        return self.event_emission.unused_events

    @property
    def emitted_events(self) -> List[str]:
        return self.event_emission.emitted_events

    def to_dict(self) -> Dict:
        return {
            "is_complete": self.is_complete,
            "completeness_score": self.completeness_score,
            "function_completeness": self.function_completeness.to_dict(),
            "resource_lifecycle": self.resource_lifecycle.to_dict(),
            "event_emission": self.event_emission.to_dict(),
            "access_control": self.access_control.to_dict(),
            "validation_results": [v.to_dict() for v in self.validation_results],
            "recommendations": list(self.recommendations),
        }


# ---------------------------------------------------------------------------
# Scoring, correction, fallback, orchestration
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class QualityScore:
    overall: int
    syntax: int
    logic: int
    completeness: int
    best_practices: int
    production_readiness: int

    def to_dict(self) -> Dict:
        return {
            "overall": self.overall,
            "syntax": self.syntax,
            "logic": self.logic,
            "completeness": self.completeness,
            "best_practices": self.best_practices,
            "production_readiness": self.production_readiness,
        }


@dataclass(frozen=True)
class FailurePattern:
    """Why an attempt failed; shapes the next attempt's prompt"""
    type: str
    common_causes: tuple = ()
    suggested_solutions: tuple = ()
    frequency: int = 1

    def to_dict(self) -> Dict:
        return {
            "type": self.type,
            "frequency": self.frequency,
            "common_causes": list(self.common_causes),
            "suggested_solutions": list(self.suggested_solutions),
        }


@dataclass
class GenerationContext:
    """
    State carried across the attempts of one request.

    Only `previous_attempts` grows; everything else is fixed when the request
    starts. A context is never shared between requests.
    """
    user_prompt: str
    contract_type: ContractType
    quality_requirements: QualityRequirements = field(default_factory=QualityRequirements)
    previous_attempts: List[FailurePattern] = field(default_factory=list)
    user_experience: str = "intermediate"

    def to_dict(self) -> Dict:
        return {
            "user_prompt": self.user_prompt,
            "contract_type": self.contract_type.to_dict(),
            "previous_attempts": [p.to_dict() for p in self.previous_attempts],
            "user_experience": self.user_experience,
            "minimum_quality_score": self.quality_requirements.minimum_quality_score,
        }


@dataclass
class CorrectionRecord:
    """One rewrite applied by the auto-correction engine"""
    type: str
    location: CodeLocation
    original_value: str
    corrected_value: str
    reasoning: str
    confidence: int

    def to_dict(self) -> Dict:
        return {
            "type": self.type,
            "location": self.location.to_dict(),
            "original_value": self.original_value,
            "corrected_value": self.corrected_value,
            "reasoning": self.reasoning,
            "confidence": self.confidence,
        }


@dataclass
class CorrectionResult:
    success: bool
    corrected_code: str
    corrections_applied: List[CorrectionRecord]
    original_issue_count: int
    remaining_issue_count: int
    confidence: int = 0
    requires_regeneration: bool = False

    def to_dict(self) -> Dict:
        return {
            "success": self.success,
            "corrected_code": self.corrected_code,
            "corrections_applied": [c.to_dict() for c in self.corrections_applied],
            "original_issue_count": self.original_issue_count,
            "remaining_issue_count": self.remaining_issue_count,
            "confidence": self.confidence,
            "requires_regeneration": self.requires_regeneration,
        }


@dataclass(frozen=True)
class FallbackTemplate:
    id: str
    name: str
    description: str
    contract_type: ContractType
    contract_name: str
    code: str
    keywords: tuple = ()
    guaranteed_working: bool = True

    @property
    def complexity(self) -> Complexity:
        return self.contract_type.complexity

    def to_dict(self) -> Dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "contract_type": self.contract_type.to_dict(),
            "contract_name": self.contract_name,
            "keywords": list(self.keywords),
            "guaranteed_working": self.guaranteed_working,
        }


@dataclass
class FallbackGenerationResult:
    success: bool
    code: str
    contract_type: ContractType
    template_id: Optional[str] = None
    contract_name: str = ""
    confidence: float = 0.0
    reason: str = ""

    def to_dict(self) -> Dict:
        return {
            "success": self.success,
            "code": self.code,
            "contract_type": self.contract_type.to_dict(),
            "template_id": self.template_id,
            "contract_name": self.contract_name,
            "confidence": self.confidence,
            "reason": self.reason,
        }


@dataclass
class CodeValidation:
    """Combined verdict of the analyzers for one piece of code"""
    is_valid: bool
    quality_score: QualityScore
    detection: ErrorDetectionResult
    completeness: FunctionalCompletenessResult
    validation_results: List[ValidationResult]
    threshold: int

    @property
    def errors(self) -> List[str]:
        return [e.message for e in self.detection.errors if e.severity == Severity.CRITICAL]

    @property
    def warnings(self) -> List[str]:
        return [e.message for e in self.detection.errors if e.severity == Severity.WARNING]

    def to_dict(self) -> Dict:
        return {
            "is_valid": self.is_valid,
            "threshold": self.threshold,
            "quality_score": self.quality_score.to_dict(),
            "errors": self.errors,
            "warnings": self.warnings,
            "detection": self.detection.to_dict(),
            "completeness": self.completeness.to_dict(),
            "validation_results": [v.to_dict() for v in self.validation_results],
        }


@dataclass
class QualityAssuredResult:
    """
    What the orchestrator hands to its callers.

    `code`, `validation`, `rejected` and `rejection_reason` are the external
    contract; the remaining fields are diagnostics.
    """
    code: str
    validation: CodeValidation
    rejected: bool
    rejection_reason: Optional[str] = None
    fallback_used: bool = False
    attempts: int = 0
    final_state: str = ""
    correction_history: List[CorrectionResult] = field(default_factory=list)
    failure_patterns: List[FailurePattern] = field(default_factory=list)

    def to_dict(self) -> Dict:
        return {
            "code": self.code,
            "validation": self.validation.to_dict(),
            "rejected": self.rejected,
            "rejection_reason": self.rejection_reason,
            "fallback_used": self.fallback_used,
            "attempts": self.attempts,
            "final_state": self.final_state,
            "correction_history": [c.to_dict() for c in self.correction_history],
            "failure_patterns": [p.to_dict() for p in self.failure_patterns],
        }
