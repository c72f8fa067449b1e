"""
Generation Orchestrator Tests
=============================

Covers:
    - Acceptance on the first attempt
    - Retry escalation: failure corrections and lower temperature
    - Auto-correction inside an attempt
    - Fallback on exhausted attempts and unrecoverable errors
    - Attempt bounds from configuration
    - Streaming, refinement, explanation and validate_and_correct
    - Progress messages go through telemetry, not straight to stdout

The text generator is always a MagicMock; nothing touches the network.
"""
import pytest

from cadence_qa.config import OrchestratorConfig, PerformanceRequirements, PipelineConfig, QualityRequirements
from cadence_qa.error_detector import detect_errors
from cadence_qa.errors import GenerationError
from cadence_qa.orchestrator import (
    GenerationOrchestrator,
    OrchestratorState,
    derive_failure_patterns,
    infer_user_experience,
)
from cadence_qa.models import ContractCategory
from cadence_qa.rejection import check_rejection

from conftest import BARE_FUNCTION_CONTRACT, FIXABLE_CONTRACT, GOOD_CONTRACT, LEGACY_CONTRACT


COUNTER_PROMPT = "Create a simple counter"
TOKEN_PROMPT = "Create a fungible token"


def _make_orchestrator(generator, telemetry, **orchestrator_settings):
    config = PipelineConfig(orchestrator=OrchestratorConfig(**orchestrator_settings))
    return GenerationOrchestrator(generator, config=config, telemetry=telemetry)


@pytest.fixture
def orchestrator(generator, telemetry):
    return GenerationOrchestrator(generator, telemetry=telemetry)


def _user_prompt(generator, call_index):
    return generator.generate.call_args_list[call_index].args[1]


def _kwargs(generator, call_index):
    return generator.generate.call_args_list[call_index].kwargs


# ===========================================================================
# 1. Acceptance
# ===========================================================================
class TestAcceptance:

    def test_good_code_accepted_first_time(self, orchestrator, generator):
        result = orchestrator.generate_code_with_validation(COUNTER_PROMPT)

        assert result.code == GOOD_CONTRACT
        assert not result.rejected
        assert not result.fallback_used
        assert result.attempts == 1
        assert result.final_state == OrchestratorState.ACCEPTED.value
        assert result.validation.quality_score.overall == 100
        assert generator.generate.call_count == 1

    def test_first_attempt_settings(self, orchestrator, generator):
        orchestrator.generate_code_with_validation(COUNTER_PROMPT)
        kwargs = _kwargs(generator, 0)
        assert kwargs["temperature"] == pytest.approx(0.7)
        assert kwargs["timeout"] == 30.0
        assert kwargs["max_retries"] == 2

    def test_explicit_temperature(self, orchestrator, generator):
        orchestrator.generate_code_with_validation(COUNTER_PROMPT, temperature=0.4)
        assert _kwargs(generator, 0)["temperature"] == pytest.approx(0.4)

    def test_progress_goes_through_telemetry(self, orchestrator, telemetry, capsys):
        orchestrator.generate_code_with_validation(COUNTER_PROMPT)
        assert capsys.readouterr().out == ""
        messages = [entry["message"] for entry in telemetry.logs]
        assert any("Requesting code" in m for m in messages)
        assert "Accepted on attempt 1 (score 100)" in messages

    def test_generate_code_returns_text(self, orchestrator):
        assert orchestrator.generate_code(COUNTER_PROMPT) == GOOD_CONTRACT

    def test_auto_correction_within_attempt(self, orchestrator, generator):
        generator.generate.return_value = BARE_FUNCTION_CONTRACT
        result = orchestrator.generate_code_with_validation(COUNTER_PROMPT)

        assert result.code == GOOD_CONTRACT
        assert result.attempts == 1
        assert len(result.correction_history) == 1
        assert generator.generate.call_count == 1

    def test_correction_disabled_means_retry(self, generator, telemetry):
        generator.generate.side_effect = [BARE_FUNCTION_CONTRACT, GOOD_CONTRACT]
        orchestrator = _make_orchestrator(generator, telemetry, enable_auto_correction=False)
        result = orchestrator.generate_code_with_validation(COUNTER_PROMPT)

        assert result.attempts == 2
        assert result.correction_history == []


# ===========================================================================
# 2. Retries
# ===========================================================================
class TestRetries:

    def test_legacy_then_good(self, orchestrator, generator):
        generator.generate.side_effect = [LEGACY_CONTRACT, GOOD_CONTRACT]
        result = orchestrator.generate_code_with_validation(COUNTER_PROMPT)

        assert result.attempts == 2
        assert result.code == GOOD_CONTRACT
        assert "used legacy syntax" in _user_prompt(generator, 1)
        assert "RETRY ATTEMPT 2/4" in _user_prompt(generator, 1)
        assert _kwargs(generator, 1)["temperature"] < _kwargs(generator, 0)["temperature"]
        assert _kwargs(generator, 1)["timeout"] == 20.0
        assert "legacy-syntax" in [p.type for p in result.failure_patterns]

    def test_strict_from_third_attempt(self, orchestrator, generator):
        generator.generate.side_effect = [LEGACY_CONTRACT, LEGACY_CONTRACT, GOOD_CONTRACT]
        orchestrator.generate_code_with_validation(COUNTER_PROMPT)
        assert "STRICT MODE" not in _user_prompt(generator, 1)
        assert "STRICT MODE" in _user_prompt(generator, 2)
        assert _kwargs(generator, 2)["temperature"] == pytest.approx(0.35)

    def test_generation_error_is_retried(self, orchestrator, generator):
        generator.generate.side_effect = [GenerationError("timed out", code="TIMEOUT"), GOOD_CONTRACT]
        result = orchestrator.generate_code_with_validation(COUNTER_PROMPT)

        assert result.attempts == 2
        assert result.failure_patterns[0].type == "generation-error"

    def test_context_not_shared_between_requests(self, orchestrator, generator):
        generator.generate.side_effect = [LEGACY_CONTRACT, GOOD_CONTRACT, GOOD_CONTRACT]
        orchestrator.generate_code_with_validation(COUNTER_PROMPT)
        second = orchestrator.generate_code_with_validation(COUNTER_PROMPT)
        assert second.failure_patterns == []
        assert "FAILURE-SPECIFIC CORRECTIONS" not in _user_prompt(generator, 2)


# ===========================================================================
# 3. Fallback
# ===========================================================================
class TestFallback:

    def test_exhausted_attempts(self, orchestrator, generator):
        generator.generate.return_value = LEGACY_CONTRACT
        result = orchestrator.generate_code_with_validation(TOKEN_PROMPT)

        assert generator.generate.call_count == 4
        assert result.fallback_used
        assert not result.rejected
        assert result.final_state == OrchestratorState.FALLBACK.value
        assert result.attempts == 4
        assert "fallback template" in result.code
        assert not check_rejection(result.code).should_reject

    def test_generation_errors_every_time(self, orchestrator, generator):
        generator.generate.side_effect = GenerationError("rate limited")
        result = orchestrator.generate_code_with_validation(TOKEN_PROMPT)

        assert generator.generate.call_count == 4
        assert result.fallback_used
        assert [p.type for p in result.failure_patterns] == ["generation-error"] * 4

    def test_unexpected_error_falls_back_immediately(self, orchestrator, generator):
        generator.generate.side_effect = RuntimeError("socket closed")
        result = orchestrator.generate_code_with_validation(TOKEN_PROMPT)

        assert generator.generate.call_count == 1
        assert result.fallback_used
        assert result.attempts == 1
        assert result.code.strip()

    def test_retry_budget_from_requirements(self, generator, telemetry):
        generator.generate.side_effect = GenerationError("down")
        requirements = QualityRequirements(performance=PerformanceRequirements(max_retry_attempts=1))
        orchestrator = GenerationOrchestrator(generator, config=PipelineConfig(quality=requirements), telemetry=telemetry)
        orchestrator.generate_code_with_validation(TOKEN_PROMPT)
        assert generator.generate.call_count == 2

    def test_generation_timeout_capped_by_requirements(self, generator, telemetry):
        requirements = QualityRequirements(performance=PerformanceRequirements(max_generation_time=12.0))
        orchestrator = GenerationOrchestrator(generator, config=PipelineConfig(quality=requirements), telemetry=telemetry)
        orchestrator.generate_code_with_validation(COUNTER_PROMPT)
        assert _kwargs(generator, 0)["timeout"] == 12.0

    def test_fallback_disabled_returns_rejected_candidate(self, generator, telemetry):
        generator.generate.return_value = LEGACY_CONTRACT
        orchestrator = _make_orchestrator(generator, telemetry, enable_fallback=False, max_attempts=2)
        result = orchestrator.generate_code_with_validation(TOKEN_PROMPT)

        assert result.rejected
        assert result.rejection_reason == 'Contains legacy "pub" keyword'
        assert not result.fallback_used
        assert result.attempts == 2

    def test_pipeline_failure_still_returns_code(self, orchestrator, monkeypatch):
        def boom(*args, **kwargs):
            raise RuntimeError("state machine crashed")

        monkeypatch.setattr(orchestrator, "_run", boom)
        result = orchestrator.generate_code_with_validation(TOKEN_PROMPT)
        assert result.fallback_used
        assert result.attempts == 0
        assert not result.rejected


# ===========================================================================
# 4. Streaming, refinement and explanation
# ===========================================================================
class TestOtherOperations:

    def test_stream(self, orchestrator, generator):
        assert list(orchestrator.stream_code(COUNTER_PROMPT)) == [GOOD_CONTRACT]

    def test_stream_failure_yields_fallback(self, orchestrator, generator):
        generator.stream.side_effect = GenerationError("stream failed", code="STREAM_FAILED")
        chunks = list(orchestrator.stream_code(TOKEN_PROMPT))
        assert len(chunks) == 1
        assert "access(all) contract" in chunks[0]

    def test_refine_success(self, orchestrator, generator):
        assert orchestrator.refine_code(BARE_FUNCTION_CONTRACT, "Add the missing access modifier") == GOOD_CONTRACT
        assert _kwargs(generator, 0)["temperature"] == pytest.approx(0.2)

    def test_refine_error_keeps_original(self, orchestrator, generator):
        generator.generate.side_effect = GenerationError("down")
        assert orchestrator.refine_code(BARE_FUNCTION_CONTRACT, "anything") == BARE_FUNCTION_CONTRACT
        assert generator.generate.call_count == 1

    def test_refine_failing_twice_keeps_original(self, orchestrator, generator):
        generator.generate.return_value = LEGACY_CONTRACT
        assert orchestrator.refine_code(GOOD_CONTRACT, "Add a reset function") == GOOD_CONTRACT
        assert generator.generate.call_count == 2
        assert 'Previous refinement failed due to: Contains legacy "pub" keyword' in _user_prompt(generator, 1)
        assert _kwargs(generator, 1)["temperature"] == pytest.approx(0.1)

    @pytest.mark.parametrize("code,request_text", [("", "x"), (GOOD_CONTRACT, "  ")])
    def test_refine_nothing_to_do(self, orchestrator, generator, code, request_text):
        assert orchestrator.refine_code(code, request_text) == code
        generator.generate.assert_not_called()

    def test_explain(self, orchestrator, generator):
        generator.generate.return_value = "A counter with one event."
        assert orchestrator.explain_code(GOOD_CONTRACT, "What is emitted?") == "A counter with one event."
        assert "What is emitted?" in _user_prompt(generator, 0)

    def test_explain_falls_back_to_static_summary(self, orchestrator, generator):
        generator.generate.side_effect = GenerationError("down")
        text = orchestrator.explain_code(GOOD_CONTRACT)
        assert generator.generate.call_count == 2
        assert text.startswith("Automatic explanation unavailable. Static analysis of this generic contract:")
        assert "- Completeness score: 100/100" in text


# ===========================================================================
# 5. Existing code and helpers
# ===========================================================================
class TestValidateAndCorrect:

    def test_correctable_code_accepted(self, orchestrator, generator):
        result = orchestrator.validate_and_correct(BARE_FUNCTION_CONTRACT)
        assert not result.rejected
        assert result.code == GOOD_CONTRACT
        assert result.final_state == OrchestratorState.ACCEPTED.value
        assert result.attempts == 0
        generator.generate.assert_not_called()

    def test_legacy_code_rejected(self, orchestrator):
        result = orchestrator.validate_and_correct(LEGACY_CONTRACT)
        assert result.rejected
        assert result.rejection_reason == 'Contains legacy "pub" keyword'
        assert "legacy-syntax" in [p.type for p in result.failure_patterns]


class TestHelpers:

    def test_failure_patterns_from_findings(self):
        patterns = derive_failure_patterns(detect_errors(FIXABLE_CONTRACT), check_rejection(FIXABLE_CONTRACT))
        assert {p.type for p in patterns} == {"undefined-values", "incomplete-logic"}

    def test_no_failures(self):
        assert derive_failure_patterns(None, None) == []

    @pytest.mark.parametrize("prompt,experience", [
        ("I'm new to Cadence, make a token", "beginner"),
        ("A production-grade marketplace", "expert"),
        ("A token", "intermediate"),
    ])
    def test_user_experience(self, prompt, experience):
        assert infer_user_experience(prompt) == experience

    def test_build_context(self, orchestrator):
        context = orchestrator.build_context("Create an NFT contract")
        assert context.contract_type.category == ContractCategory.NFT
        assert context.previous_attempts == []
        assert context.quality_requirements.minimum_quality_score == 80
