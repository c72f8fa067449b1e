"""
Generation Orchestrator
=======================

Drives the text-generation capability through an explicit state machine:

    REQUESTING -> VALIDATING -> ACCEPTED
                             -> CORRECTING -> VALIDATING
                             -> RETRYING   -> REQUESTING
                             -> FALLBACK

Every attempt tightens the prompt and lowers the temperature. When the
attempt budget runs out, or the generation call fails unrecoverably, the
fallback generator supplies a template contract, so callers always get code
back and never an exception.
"""

import time
from enum import Enum
from typing import Iterator, List, Optional

from .auto_correction import AutoCorrectionEngine
from .config import EnhancementOptions, PipelineConfig, QualityRequirements
from .errors import GenerationError
from .fallback_generator import FallbackGenerator
from .llm_client import TextGenerator
from .models import (
    CodeValidation,
    CorrectionResult,
    ErrorCategory,
    ErrorDetectionResult,
    ErrorType,
    FailurePattern,
    GenerationContext,
    QualityAssuredResult,
    Severity,
)
from .prompt_builder import build_explanation_prompt, build_generation_prompt, build_refinement_prompt
from .rejection import UNDEFINED_REASON, RejectionCheck, check_rejection
from .telemetry import PipelineTelemetry
from .validation import CodeValidator


class OrchestratorState(Enum):
    REQUESTING = "requesting"
    VALIDATING = "validating"
    ACCEPTED = "accepted"
    CORRECTING = "correcting"
    RETRYING = "retrying"
    FALLBACK = "fallback"


_INCOMPLETE_TYPES = {
    ErrorType.MISSING_FUNCTION_BODY,
    ErrorType.INCOMPLETE_FUNCTION_IMPLEMENTATION,
    ErrorType.MISSING_RETURN_STATEMENT,
    ErrorType.MISSING_REQUIRED_FUNCTION,
    ErrorType.INCOMPLETE_IMPLEMENTATION,
}
_SYNTAX_TYPES = {
    ErrorType.MISSING_CONTRACT_DECLARATION,
    ErrorType.INVALID_CONTRACT_STRUCTURE,
    ErrorType.INCOMPLETE_RESOURCE_DEFINITION,
    ErrorType.INVALID_FUNCTION_SIGNATURE,
}
_TYPE_TYPES = {
    ErrorType.TYPE_MISMATCH,
    ErrorType.MISSING_TYPE_ANNOTATIONS,
}

_FAILURE_PATTERNS = {
    "undefined-values": FailurePattern(
        type="undefined-values",
        common_causes=(
            "Incomplete variable initialization",
            "Missing default values",
            "Placeholder undefined literals",
            "Uninitialized optional types",
        ),
        suggested_solutions=(
            "Use concrete defaults: \"\" for String, 0 for numbers, false for Bool, [] and {} for collections",
            "Complete every declaration with a value",
            "Initialize all state in init()",
        ),
    ),
    "legacy-syntax": FailurePattern(
        type="legacy-syntax",
        common_causes=(
            "pub / pub(set) access modifiers",
            "AuthAccount parameters",
            "account.save / account.link / account.borrow storage calls",
        ),
        suggested_solutions=(
            "Use access(all) instead of pub",
            "Use self.account.storage.save() and borrow()",
            "Use account.capabilities instead of account.link",
        ),
    ),
    "incomplete-logic": FailurePattern(
        type="incomplete-logic",
        common_causes=(
            "Function signatures without bodies",
            "Empty or placeholder function bodies",
            "Missing required functions for the contract type",
        ),
        suggested_solutions=(
            "Implement every function fully",
            "Return a value of the declared type on every path",
        ),
    ),
    "syntax-errors": FailurePattern(
        type="syntax-errors",
        common_causes=(
            "Unmatched brackets",
            "Missing closing braces",
            "Incorrect nesting",
            "Malformed signatures",
        ),
        suggested_solutions=(
            "Count every opening bracket and match it",
            "Declare exactly one contract with a body",
        ),
    ),
    "type-errors": FailurePattern(
        type="type-errors",
        common_causes=("Missing type annotations", "Values that do not match their declared type"),
        suggested_solutions=("Annotate every field and parameter with a Cadence type",),
    ),
}

_BEGINNER_WORDS = ("beginner", "new to", "simple", "learning")
_EXPERT_WORDS = ("advanced", "expert", "production", "optimi")


def derive_failure_patterns(
    detection: Optional[ErrorDetectionResult],
    rejection: Optional[RejectionCheck] = None,
) -> List[FailurePattern]:
    """
    One FailurePattern per cause family found in a failed attempt.

    Families: undefined-values, legacy-syntax, incomplete-logic,
    syntax-errors, type-errors.
    """
    families = []

    def add(name: str) -> None:
        if name not in families:
            families.append(name)

    if rejection is not None and rejection.should_reject:
        if rejection.reason == UNDEFINED_REASON:
            add("undefined-values")
        else:
            add("legacy-syntax")
        reason = rejection.reason.lower()
        if "incomplete" in reason or "empty" in reason:
            add("incomplete-logic")

    if detection is not None:
        for error in detection.errors:
            if error.type == ErrorType.UNDEFINED_VALUE:
                add("undefined-values")
            elif error.type in _INCOMPLETE_TYPES:
                add("incomplete-logic")
            elif error.type in _SYNTAX_TYPES or (
                error.category == ErrorCategory.SYNTAX and error.severity == Severity.CRITICAL
            ):
                add("syntax-errors")
            elif error.type in _TYPE_TYPES:
                add("type-errors")

    return [_FAILURE_PATTERNS[name] for name in families]


def infer_user_experience(prompt: str) -> str:
    lowered = prompt.lower()
    if any(word in lowered for word in _BEGINNER_WORDS):
        return "beginner"
    if any(word in lowered for word in _EXPERT_WORDS):
        return "expert"
    return "intermediate"


class GenerationOrchestrator:
    """Quality-assured code generation over a TextGenerator"""

    def __init__(
        self,
        generator: TextGenerator,
        config: Optional[PipelineConfig] = None,
        telemetry: Optional[PipelineTelemetry] = None,
        validator: Optional[CodeValidator] = None,
        correction_engine: Optional[AutoCorrectionEngine] = None,
        fallback_generator: Optional[FallbackGenerator] = None,
    ):
        self.generator = generator
        self.config = config or PipelineConfig()
        self.telemetry = telemetry or PipelineTelemetry(self.config.telemetry)
        self.validator = validator or CodeValidator(telemetry=self.telemetry)
        self.correction_engine = correction_engine or AutoCorrectionEngine(
            detector=self.validator.detector, telemetry=self.telemetry
        )
        self.fallback_generator = fallback_generator or FallbackGenerator(telemetry=self.telemetry)

    # ------------------------------------------------------------------
    # Context
    # ------------------------------------------------------------------

    def build_context(self, prompt: str, requirements: Optional[QualityRequirements] = None) -> GenerationContext:
        """Fresh per-request context: inferred contract type and user experience"""
        detection = self.fallback_generator.detect_category(prompt or "")
        return GenerationContext(
            user_prompt=prompt,
            contract_type=detection.contract_type,
            quality_requirements=requirements or self.config.quality,
            user_experience=infer_user_experience(prompt or ""),
        )

    def _max_attempts(self, requirements: QualityRequirements) -> int:
        return max(1, min(self.config.orchestrator.max_attempts, 1 + requirements.performance.max_retry_attempts))

    # ------------------------------------------------------------------
    # Generation
    # ------------------------------------------------------------------

    def generate_code(self, prompt: str, context: Optional[GenerationContext] = None,
                      temperature: Optional[float] = None) -> str:
        return self.generate_code_with_validation(prompt, context, temperature).code

    def generate_code_with_validation(
        self,
        prompt: str,
        context: Optional[GenerationContext] = None,
        temperature: Optional[float] = None,
        strict_mode: bool = False,
    ) -> QualityAssuredResult:
        """
        Generate code that clears validation, or fall back to a template.

        Args:
            prompt: The user's request
            context: Per-request context; built from the prompt when omitted
            temperature: Base temperature for the first attempt
            strict_mode: Start at the strict enhancement level

        Returns:
            QualityAssuredResult. Never raises; `code` is never empty.
        """
        context = context or self.build_context(prompt)
        try:
            return self._run(prompt, context, temperature, strict_mode)
        except Exception as e:
            self.telemetry.error(f"Generation pipeline failed: {e}")
            return self._fallback(prompt, context, attempts=0, corrections=[], reason=f"pipeline error: {e}")

    def _run(self, prompt: str, context: GenerationContext, temperature: Optional[float],
             strict_mode: bool) -> QualityAssuredResult:
        settings = self.config.orchestrator
        requirements = context.quality_requirements
        threshold = requirements.minimum_quality_score
        max_attempts = self._max_attempts(requirements)
        base_temperature = self.config.llm.temperature if temperature is None else temperature

        state = OrchestratorState.REQUESTING
        attempt = 0
        code = ""
        corrected = False
        validation: Optional[CodeValidation] = None
        rejection: Optional[RejectionCheck] = None
        corrections: List[CorrectionResult] = []

        self.telemetry.info(
            f"[Orchestrator] {context.contract_type.category.value} contract, up to {max_attempts} attempt(s)",
            contract_type=context.contract_type.category.value,
        )

        while True:
            self.telemetry.increment(f"orchestrator.state.{state.value}")

            if state == OrchestratorState.REQUESTING:
                attempt += 1
                corrected = False
                validation, rejection = None, None
                options = EnhancementOptions(
                    attempt_number=attempt,
                    previous_failures=tuple(context.previous_attempts),
                    quality_requirements=requirements,
                    strict_mode=strict_mode or attempt >= 3,
                    temperature=base_temperature,
                )
                enhanced = build_generation_prompt(prompt, context, options, max_attempts)
                self.telemetry.info(f"[{attempt}/{max_attempts}] Requesting code ({enhanced.level}, temperature {enhanced.temperature:.2f})...")
                try:
                    with self.telemetry.step("generation", attempt=attempt):
                        code = self.generator.generate(
                            enhanced.system,
                            enhanced.user,
                            temperature=enhanced.temperature,
                            timeout=min(settings.timeout_for(attempt), requirements.performance.max_generation_time),
                            max_retries=settings.retries_for(attempt),
                        )
                    state = OrchestratorState.VALIDATING
                except GenerationError as e:
                    self.telemetry.warning(f"Attempt {attempt} failed: {e.message}")
                    context.previous_attempts.append(FailurePattern(
                        type="generation-error", common_causes=(e.message,)
                    ))
                    state = self._retry_or_fallback(attempt, max_attempts)
                except Exception as e:
                    self.telemetry.error(f"Unrecoverable generation error: {e}")
                    state = OrchestratorState.FALLBACK

            elif state == OrchestratorState.VALIDATING:
                rejection = check_rejection(code, requirements.prohibited_patterns)
                validation_started = time.time()
                validation = self.validator.validate(code, context.contract_type, threshold, requirements)
                if time.time() - validation_started > requirements.performance.max_validation_time:
                    self.telemetry.warning("Validation exceeded its time budget")

                if not rejection.should_reject and validation.is_valid:
                    state = OrchestratorState.ACCEPTED
                elif settings.enable_auto_correction and not corrected and validation.detection.auto_fixable():
                    state = OrchestratorState.CORRECTING
                else:
                    if rejection.should_reject:
                        self.telemetry.warning(f"Attempt {attempt} rejected: {rejection.reason}")
                    else:
                        self.telemetry.warning(
                            f"Attempt {attempt} scored {validation.quality_score.overall} (threshold {threshold})"
                        )
                    state = self._retry_or_fallback(attempt, max_attempts)

            elif state == OrchestratorState.CORRECTING:
                result = self.correction_engine.correct(code, context.contract_type)
                corrections.append(result)
                corrected = True
                if result.corrections_applied:
                    code = result.corrected_code
                    self.telemetry.info(f"Auto-corrected {len(result.corrections_applied)} issue(s)", attempt=attempt)
                state = OrchestratorState.VALIDATING

            elif state == OrchestratorState.RETRYING:
                detection = validation.detection if validation is not None else None
                for pattern in derive_failure_patterns(detection, rejection):
                    context.previous_attempts.append(pattern)
                state = OrchestratorState.REQUESTING

            elif state == OrchestratorState.ACCEPTED:
                self.telemetry.info(f"Accepted on attempt {attempt} (score {validation.quality_score.overall})")
                self.telemetry.increment("orchestrator.accepted")
                self.telemetry.record_metric("orchestrator.attempts", attempt)
                return QualityAssuredResult(
                    code=code,
                    validation=validation,
                    rejected=False,
                    attempts=attempt,
                    final_state=state.value,
                    correction_history=corrections,
                    failure_patterns=list(context.previous_attempts),
                )

            else:
                if not settings.enable_fallback and code.strip() and validation is not None:
                    reason = rejection.reason if rejection and rejection.should_reject else (
                        f"Quality score {validation.quality_score.overall} below threshold {threshold}"
                    )
                    return QualityAssuredResult(
                        code=code,
                        validation=validation,
                        rejected=True,
                        rejection_reason=reason,
                        attempts=attempt,
                        final_state=state.value,
                        correction_history=corrections,
                        failure_patterns=list(context.previous_attempts),
                    )
                return self._fallback(prompt, context, attempt, corrections, reason=f"{attempt} attempt(s) failed")

    @staticmethod
    def _retry_or_fallback(attempt: int, max_attempts: int) -> OrchestratorState:
        return OrchestratorState.FALLBACK if attempt >= max_attempts else OrchestratorState.RETRYING

    def _fallback(self, prompt: str, context: GenerationContext, attempts: int,
                  corrections: List[CorrectionResult], reason: str) -> QualityAssuredResult:
        self.telemetry.warning(f"Using fallback contract ({reason})")
        result = self.fallback_generator.generate(prompt, context)
        validation = self.validator.validate(
            result.code,
            result.contract_type,
            context.quality_requirements.minimum_quality_score,
            context.quality_requirements,
        )
        self.telemetry.increment("orchestrator.fallback")
        self.telemetry.record_metric("fallback.confidence", result.confidence, template=result.template_id or "")
        return QualityAssuredResult(
            code=result.code,
            validation=validation,
            rejected=False,
            fallback_used=True,
            attempts=attempts,
            final_state=OrchestratorState.FALLBACK.value,
            correction_history=corrections,
            failure_patterns=list(context.previous_attempts),
        )

    def stream_code(self, prompt: str, temperature: Optional[float] = None) -> Iterator[str]:
        """
        Stream a single first-attempt generation without validation.
        A failed stream yields the fallback contract instead.
        """
        context = self.build_context(prompt)
        options = EnhancementOptions(
            quality_requirements=context.quality_requirements,
            temperature=self.config.llm.temperature if temperature is None else temperature,
        )
        enhanced = build_generation_prompt(prompt, context, options, self.config.orchestrator.max_attempts)
        emitted = False
        try:
            for chunk in self.generator.stream(
                enhanced.system, enhanced.user,
                temperature=enhanced.temperature,
                timeout=self.config.orchestrator.timeout_for(1),
            ):
                emitted = True
                yield chunk
        except Exception as e:
            self.telemetry.error(f"Streaming generation failed: {e}")
            if not emitted:
                yield self.fallback_generator.generate(prompt, context).code

    # ------------------------------------------------------------------
    # Existing code
    # ------------------------------------------------------------------

    def validate_and_correct(self, code: str, context: Optional[GenerationContext] = None) -> QualityAssuredResult:
        """Validate user-supplied code, auto-correcting once when that helps"""
        requirements = context.quality_requirements if context else self.config.quality
        contract_type = context.contract_type if context else None
        threshold = requirements.minimum_quality_score
        corrections = []

        validation = self.validator.validate(code, contract_type, threshold, requirements)
        if not validation.is_valid and self.config.orchestrator.enable_auto_correction and validation.detection.auto_fixable():
            result = self.correction_engine.correct(code, contract_type)
            corrections.append(result)
            if result.corrections_applied:
                code = result.corrected_code
                validation = self.validator.validate(code, contract_type, threshold, requirements)

        rejection = check_rejection(code, requirements.prohibited_patterns)
        rejected = rejection.should_reject or not validation.is_valid
        reason = None
        if rejection.should_reject:
            reason = rejection.reason
        elif not validation.is_valid:
            reason = f"Quality score {validation.quality_score.overall} below threshold {threshold}"

        return QualityAssuredResult(
            code=code,
            validation=validation,
            rejected=rejected,
            rejection_reason=reason,
            attempts=0,
            final_state=OrchestratorState.VALIDATING.value if rejected else OrchestratorState.ACCEPTED.value,
            correction_history=corrections,
            failure_patterns=derive_failure_patterns(validation.detection, rejection) if rejected else [],
        )

    def refine_code(self, code: str, refinement_request: str) -> str:
        """
        Apply `refinement_request` to `code`.

        Starts strict and allows a limited number of maximum-strictness
        retries. Returns `code` unchanged when no refinement passes.
        """
        if not code or not code.strip() or not refinement_request or not refinement_request.strip():
            return code

        settings = self.config.orchestrator
        requirements = self.config.quality
        threshold = settings.refinement_quality_threshold
        previous_failure = None

        for attempt in range(1, settings.refinement_extra_attempts + 2):
            enhanced = build_refinement_prompt(code, refinement_request, previous_failure)
            try:
                with self.telemetry.step("refinement", attempt=attempt):
                    refined = self.generator.generate(
                        enhanced.system,
                        enhanced.user,
                        temperature=enhanced.temperature,
                        timeout=settings.timeout_for(attempt),
                        max_retries=settings.retries_for(attempt),
                    )
            except Exception as e:
                self.telemetry.error(f"Refinement failed, keeping original code: {e}")
                return code

            rejection = check_rejection(refined, requirements.prohibited_patterns)
            validation = self.validator.validate(refined, None, threshold, requirements)
            if not rejection.should_reject and validation.is_valid:
                self.telemetry.info(f"Refinement accepted on attempt {attempt}")
                return refined

            if rejection.should_reject:
                previous_failure = rejection.reason
            else:
                previous_failure = f"quality score {validation.quality_score.overall} below {threshold}"
                if validation.errors:
                    previous_failure += "; " + "; ".join(validation.errors[:3])
            self.telemetry.warning(f"Refinement attempt {attempt} failed: {previous_failure}")

        self.telemetry.increment("refinement.kept_original")
        return code

    def explain_code(self, code: str, question: Optional[str] = None) -> str:
        """Model explanation of `code`, or a findings summary when the model fails"""
        enhanced = build_explanation_prompt(code, question)
        settings = self.config.orchestrator
        for attempt in range(1, settings.explanation_attempts + 1):
            try:
                text = self.generator.generate(
                    enhanced.system,
                    enhanced.user,
                    temperature=enhanced.temperature,
                    timeout=settings.timeout_for(attempt),
                    max_retries=settings.retries_for(attempt),
                )
                if text and text.strip():
                    return text
            except Exception as e:
                self.telemetry.warning(f"Explanation attempt {attempt} failed: {e}")
        return self._static_explanation(code)

    def _static_explanation(self, code: str) -> str:
        detection = self.validator.detector.detect(code)
        lines = [
            f"Automatic explanation unavailable. Static analysis of this {detection.contract_type} contract:",
            f"- Completeness score: {detection.completeness_score}/100",
            f"- Findings: {detection.critical_errors} critical, {detection.warning_errors} warnings, "
            f"{detection.info_errors} info",
        ]
        for error in detection.errors[:10]:
            lines.append(f"- [{error.severity.value}] line {error.location.line}: {error.message}")
        for recommendation in detection.recommendations:
            lines.append(f"- {recommendation}")
        return "\n".join(lines)
