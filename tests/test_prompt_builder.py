"""
Prompt Builder Tests
====================

Covers:
    - Enhancement level and temperature per attempt
    - Failure-specific corrections
    - Context-dependent sections of generation prompts
    - Refinement and explanation prompts
"""
import pytest

from cadence_qa.config import EnhancementOptions, QualityRequirements
from cadence_qa.models import Complexity, ContractCategory, ContractType, FailurePattern, GenerationContext
from cadence_qa.prompt_builder import (
    build_explanation_prompt,
    build_generation_prompt,
    build_refinement_prompt,
    calculate_temperature,
    determine_enhancement_level,
    failure_corrections,
)


def _make_context(category=ContractCategory.NFT, complexity=Complexity.INTERMEDIATE, experience="intermediate",
                  required_features=()):
    return GenerationContext(
        user_prompt="request",
        contract_type=ContractType(category=category, complexity=complexity),
        quality_requirements=QualityRequirements(required_features=required_features),
        user_experience=experience,
    )


# ===========================================================================
# 1. Escalation
# ===========================================================================
class TestEscalation:

    @pytest.mark.parametrize("attempt,strict,level", [
        (1, False, "basic"),
        (2, False, "moderate"),
        (3, False, "strict"),
        (4, False, "maximum"),
        (7, False, "maximum"),
        (1, True, "strict"),
        (2, True, "strict"),
        (3, True, "maximum"),
    ])
    def test_levels(self, attempt, strict, level):
        assert determine_enhancement_level(attempt, strict) == level

    @pytest.mark.parametrize("attempt,expected", [(1, 0.7), (2, 0.49), (3, 0.343), (4, 0.1), (6, 0.1)])
    def test_temperature_decays(self, attempt, expected):
        assert calculate_temperature(attempt, 0.7) == pytest.approx(expected)

    def test_strict_temperature_halves_base(self):
        assert calculate_temperature(4, 0.7, strict_mode=True) == pytest.approx(0.35)
        assert calculate_temperature(1, 0.1, strict_mode=True) == pytest.approx(0.1)

    def test_temperature_never_below_floor(self):
        assert calculate_temperature(3, 0.15) == pytest.approx(0.1)


# ===========================================================================
# 2. Generation prompts
# ===========================================================================
class TestGenerationPrompt:

    def test_first_attempt(self):
        prompt = build_generation_prompt("a counter")
        assert prompt.level == "basic"
        assert prompt.temperature == pytest.approx(0.7)
        assert prompt.user.startswith("Create a Cadence 1.0 smart contract for: a counter")
        assert "ENHANCEMENT LEVEL: BASIC (Attempt 1)" in prompt.system
        assert "FIRST ATTEMPT - HIGH QUALITY FOCUS" in prompt.user
        assert "RETRY ATTEMPT" not in prompt.user
        assert "QUALITY TARGET: the code must reach a quality score of 80+" in prompt.user
        assert "no undefined values" in prompt.constraints

    def test_retry_with_failures(self):
        failures = (
            FailurePattern("legacy-syntax", suggested_solutions=("Use access(all) instead of pub",)),
            FailurePattern("legacy-syntax"),
        )
        options = EnhancementOptions(attempt_number=2, previous_failures=failures)
        prompt = build_generation_prompt("a counter", options=options, max_attempts=4)

        assert prompt.level == "moderate"
        assert "RETRY ATTEMPT 2/4" in prompt.user
        assert "FAILURE-SPECIFIC CORRECTIONS:" in prompt.user
        assert prompt.user.count("used legacy syntax") == 1
        assert "CRITICAL FAILURE PREVENTION: Previous attempts failed due to: legacy-syntax" in prompt.system

    def test_strict_and_final_banner(self):
        options = EnhancementOptions(attempt_number=4, strict_mode=True)
        prompt = build_generation_prompt("a counter", options=options)
        assert prompt.level == "maximum"
        assert "STRICT MODE" in prompt.user
        assert "FINAL ATTEMPT - EXTREME QUALITY MEASURES" in prompt.user

    def test_context_sections(self):
        context = _make_context(
            category=ContractCategory.FUNGIBLE_TOKEN,
            complexity=Complexity.SIMPLE,
            experience="beginner",
            required_features=("burn",),
        )
        prompt = build_generation_prompt("a token", context=context)
        assert "FUNGIBLE TOKEN CONTRACT REQUIREMENTS:" in prompt.system
        assert "Add clear comments explaining each part of the contract." in prompt.user
        assert "Keep the contract minimal" in prompt.user
        assert "Required features: burn" in prompt.user

    def test_generic_contract_has_no_family_requirements(self):
        prompt = build_generation_prompt("x", context=_make_context(category=ContractCategory.GENERIC))
        assert "CONTRACT REQUIREMENTS" not in prompt.system

    def test_quality_target_follows_requirements(self):
        options = EnhancementOptions(quality_requirements=QualityRequirements(minimum_quality_score=90))
        assert "quality score of 90+" in build_generation_prompt("x", options=options).user


class TestFailureCorrections:

    def test_known_and_unknown_types(self):
        lines = failure_corrections([FailurePattern("undefined-values"), FailurePattern("timeout")])
        assert lines == [
            "CRITICAL: A previous attempt had undefined values. Give ALL variables concrete values.",
            "CRITICAL: A previous attempt failed due to timeout. Address this specific issue.",
        ]

    def test_empty(self):
        assert failure_corrections([]) == []


# ===========================================================================
# 3. Refinement and explanation
# ===========================================================================
class TestOtherPrompts:

    def test_refinement(self):
        prompt = build_refinement_prompt("access(all) contract A {}", "Add a burn function")
        assert prompt.temperature == pytest.approx(0.2)
        assert prompt.level == "strict"
        assert "Refinement Request: Add a burn function" in prompt.user
        assert prompt.user.endswith("Return only the refined Cadence code without explanations.")

    def test_refinement_after_failure(self):
        prompt = build_refinement_prompt("code", "req", previous_failure="quality score 40 below 80")
        assert prompt.temperature == pytest.approx(0.1)
        assert prompt.level == "maximum"
        assert "Previous refinement failed due to: quality score 40 below 80" in prompt.user

    def test_explanation(self):
        prompt = build_explanation_prompt("code", question="Who can mint?")
        assert prompt.temperature == pytest.approx(0.3)
        assert prompt.user.endswith("Focus on this question: Who can mint?")
        assert build_explanation_prompt("code").level == "explanation"
