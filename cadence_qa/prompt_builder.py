"""
Prompt construction for Cadence generation, refinement and explanation.

Each generation attempt gets a system/user prompt pair whose strictness grows
with the attempt number and whose corrections name the failures of earlier
attempts. Temperature drops alongside.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from .config import EnhancementOptions
from .models import Complexity, ContractCategory, FailurePattern, GenerationContext


@dataclass(frozen=True)
class EnhancementLevel:
    name: str
    strictness: str
    base_temperature: float
    rules: tuple


ENHANCEMENT_LEVELS: Dict[str, EnhancementLevel] = {
    "basic": EnhancementLevel("basic", "moderate", 0.7, (
        "Use modern Cadence 1.0 syntax",
        "Give every variable a concrete value",
        "Implement every function completely",
    )),
    "moderate": EnhancementLevel("moderate", "high", 0.5, (
        "Use modern Cadence 1.0 syntax exclusively",
        "Never leave a value undefined",
        "Implement every function with real logic",
        "Match every bracket and brace",
        "Initialize all state in init()",
    )),
    "strict": EnhancementLevel("strict", "maximum", 0.3, (
        "TRIPLE-CHECK every line for syntax errors",
        "VALIDATE that every variable has a concrete value",
        "VERIFY that every function is fully implemented",
        "CONFIRM that every bracket is matched",
        "ENSURE only Cadence 1.0 patterns are used",
        "REVIEW resource lifecycles and event emission",
    )),
    "maximum": EnhancementLevel("maximum", "extreme", 0.1, (
        "EXTREME VALIDATION: every character must be correct",
        "ZERO TOLERANCE: any undefined value causes rejection",
        "COMPLETE IMPLEMENTATION: no stubs, no placeholders",
        "PRODUCTION READY: the code must deploy as written",
        "PERFECT SYNTAX: every bracket matched, every statement terminated",
        "COMPREHENSIVE LOGIC: every code path handled",
        "CONCRETE VALUES: every variable initialized with a real value",
        "MODERN PATTERNS: Cadence 1.0 storage and capability APIs only",
    )),
}

FORBIDDEN_PATTERNS = """FORBIDDEN (the code is rejected if any appear):
- `pub` or `pub(set)`: use `access(all)` / `access(self)` / entitlements
- `AuthAccount`: use `auth(Storage, Capabilities) &Account`
- `account.save()`, `account.link()`, `account.borrow()`: use `account.storage` and `account.capabilities`
- the literal `undefined` anywhere in the code
- any other Cadence 0.x syntax"""

REQUIRED_PATTERNS = """REQUIRED:
- `access(all)` for public members, `access(self)` for private ones
- `self.account.storage.save()` / `self.account.storage.borrow()`
- `self.account.capabilities.storage.issue()` and `self.account.capabilities.publish()`
- explicit initialization of every field in `init()`"""

UNDEFINED_PREVENTION = """CONCRETE DEFAULTS (never `undefined`):
- String: "" or a meaningful value
- Int / UInt64 / UFix64: 0, 0 or 0.0
- Bool: true or false
- Arrays: []
- Dictionaries: {}
- Optionals: nil
- Address: 0x0"""

QUALITY_CONSTRAINTS = {
    "syntax": [
        "access(all) instead of pub",
        "account.storage API for storage",
        "capabilities API instead of account.link",
        "every bracket, brace and parenthesis matched",
        "complete function signatures with return types",
    ],
    "completeness": [
        "every function fully implemented",
        "every variable initialized",
        "every resource created, moved and destroyed correctly",
        "events defined for important state changes",
        "contract initialization in init()",
    ],
    "error_prevention": [
        "no undefined values",
        "no incomplete statements",
        "no missing return values",
        "no unmatched brackets",
        "no legacy syntax",
    ],
}

_CATEGORY_REQUIREMENTS = {
    ContractCategory.NFT: [
        "Implement the NonFungibleToken interface",
        "Support MetadataViews",
        "Provide a Collection resource with deposit, withdraw and getIDs",
        "Include complete minting logic",
    ],
    ContractCategory.FUNGIBLE_TOKEN: [
        "Implement the FungibleToken interface",
        "Provide a Vault resource with deposit and withdraw",
        "Track total supply",
        "Validate transfer amounts",
    ],
    ContractCategory.DAO: [
        "Model proposals with a status and voting deadline",
        "Prevent double voting",
        "Emit events for proposal creation and votes",
    ],
    ContractCategory.MARKETPLACE: [
        "Model listings with a price and seller",
        "Handle purchases and listing removal",
        "Emit events for listed, purchased and removed items",
    ],
    ContractCategory.UTILITY: [
        "Keep the public API small and documented",
        "Validate inputs with pre-conditions",
    ],
}

_EXPERIENCE_NOTES = {
    "beginner": "Add clear comments explaining each part of the contract.",
    "expert": "Favor efficient, idiomatic patterns; keep comments brief.",
    "intermediate": "Comment the non-obvious parts of the contract.",
}

_COMPLEXITY_NOTES = {
    Complexity.SIMPLE: "Keep the contract minimal: only what the request needs.",
    Complexity.ADVANCED: "Cover the advanced features fully, including admin controls and edge cases.",
}

_ATTEMPT_BANNERS = {
    1: ("FIRST ATTEMPT - HIGH QUALITY FOCUS", [
        "Generate complete, production-ready code immediately",
        "Use concrete values for all variables",
        "Follow Cadence 1.0 patterns exclusively",
    ]),
    2: ("SECOND ATTEMPT - ENHANCED QUALITY CONTROL", [
        "The previous attempt had quality issues",
        "DOUBLE-CHECK that no value is undefined",
        "VERIFY every function has a complete implementation",
        "ENSURE all brackets are matched",
    ]),
    3: ("THIRD ATTEMPT - MAXIMUM QUALITY ENFORCEMENT", [
        "This is the last attempt before a template is used instead",
        "TRIPLE-CHECK every line",
        "ZERO TOLERANCE for undefined values",
    ]),
}
_FINAL_BANNER = ("FINAL ATTEMPT - EXTREME QUALITY MEASURES", [
    "Perfection is required",
    "Complete, deployable implementation only",
])

# One line per failure type in the user prompt
_FAILURE_CORRECTIONS = {
    "undefined-values": "CRITICAL: A previous attempt had undefined values. Give ALL variables concrete values.",
    "syntax-errors": "CRITICAL: A previous attempt had syntax errors. Double-check all brackets and syntax.",
    "incomplete-logic": "CRITICAL: A previous attempt had incomplete logic. Implement ALL functions fully.",
    "legacy-syntax": "CRITICAL: A previous attempt used legacy syntax. Use only Cadence 1.0 patterns.",
    "validation-failures": "CRITICAL: A previous attempt failed validation. Follow ALL Cadence 1.0 requirements strictly.",
}


@dataclass
class EnhancedPrompt:
    system: str
    user: str
    temperature: float
    level: str
    constraints: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict:
        return {
            "system": self.system,
            "user": self.user,
            "temperature": self.temperature,
            "level": self.level,
            "constraints": list(self.constraints),
        }


def determine_enhancement_level(attempt_number: int, strict_mode: bool = False) -> str:
    if strict_mode:
        return "maximum" if attempt_number >= 3 else "strict"
    if attempt_number <= 1:
        return "basic"
    if attempt_number == 2:
        return "moderate"
    if attempt_number == 3:
        return "strict"
    return "maximum"


def calculate_temperature(attempt_number: int, base_temperature: float, strict_mode: bool = False) -> float:
    """
    Sampling temperature for an attempt.

    Strict mode halves the base; otherwise each retry multiplies it by 0.7
    and from the fourth attempt on it is pinned at 0.1. Never below 0.1.
    """
    if strict_mode:
        return max(0.1, base_temperature * 0.5)
    if attempt_number >= 4:
        return 0.1
    return max(0.1, base_temperature * 0.7 ** (max(attempt_number, 1) - 1))


def failure_corrections(failures: Sequence[FailurePattern]) -> List[str]:
    lines = []
    seen = set()
    for failure in failures:
        if failure.type in seen:
            continue
        seen.add(failure.type)
        lines.append(_FAILURE_CORRECTIONS.get(
            failure.type,
            f"CRITICAL: A previous attempt failed due to {failure.type}. Address this specific issue.",
        ))
        for solution in failure.suggested_solutions:
            lines.append(f"  - {solution}")
    return lines


def _bullets(items) -> str:
    return "\n".join(f"- {item}" for item in items)


def _constraint_list() -> List[str]:
    return [c for group in QUALITY_CONSTRAINTS.values() for c in group]


def _build_system_prompt(level: EnhancementLevel, options: EnhancementOptions, temperature: float,
                         context: Optional[GenerationContext]) -> str:
    sections = [
        "You are an expert Flow blockchain developer specializing in Cadence 1.0 smart contracts. "
        "Generate production-ready code with zero quality issues.",
        FORBIDDEN_PATTERNS,
        REQUIRED_PATTERNS,
        UNDEFINED_PREVENTION,
        f"ENHANCEMENT LEVEL: {level.name.upper()} (Attempt {options.attempt_number})\n"
        f"STRICTNESS: {level.strictness}\n"
        f"TEMPERATURE: {temperature:.2f}",
        "RULES:\n" + _bullets(level.rules),
        "QUALITY CONSTRAINTS:\n"
        + "\n".join(f"{name.replace('_', ' ').upper()}:\n{_bullets(items)}" for name, items in QUALITY_CONSTRAINTS.items()),
    ]

    if options.previous_failures:
        types = sorted({f.type for f in options.previous_failures})
        sections.append("CRITICAL FAILURE PREVENTION: Previous attempts failed due to: " + ", ".join(types))

    if context is not None:
        requirements = _CATEGORY_REQUIREMENTS.get(context.contract_type.category)
        if requirements:
            title = context.contract_type.category.value.replace("-", " ").upper()
            sections.append(f"{title} CONTRACT REQUIREMENTS:\n{_bullets(requirements)}")

    sections.append("Return only Cadence code, without explanations or markdown.")
    return "\n\n".join(sections)


def _build_user_prompt(prompt: str, options: EnhancementOptions, max_attempts: int,
                       context: Optional[GenerationContext]) -> str:
    title, banner_lines = _ATTEMPT_BANNERS.get(options.attempt_number, _FINAL_BANNER)
    sections = [
        f"Create a Cadence 1.0 smart contract for: {prompt}",
        "SYNTAX REQUIREMENTS:\n" + _bullets(QUALITY_CONSTRAINTS["syntax"]),
        f"{title}:\n{_bullets(banner_lines)}",
    ]

    corrections = failure_corrections(options.previous_failures)
    if corrections:
        sections.append("FAILURE-SPECIFIC CORRECTIONS:\n" + "\n".join(corrections))

    if context is not None:
        notes = [_EXPERIENCE_NOTES.get(context.user_experience, _EXPERIENCE_NOTES["intermediate"])]
        complexity_note = _COMPLEXITY_NOTES.get(context.contract_type.complexity)
        if complexity_note:
            notes.append(complexity_note)
        if context.quality_requirements.required_features:
            notes.append("Required features: " + ", ".join(context.quality_requirements.required_features))
        sections.append("\n".join(notes))

    if options.attempt_number > 1:
        sections.append(
            f"RETRY ATTEMPT {options.attempt_number}/{max_attempts}: "
            "Previous attempts failed quality validation. This attempt must pass."
        )
    if options.strict_mode:
        sections.append("STRICT MODE: the code is rejected for ANY quality issue.")

    sections.append(
        f"QUALITY TARGET: the code must reach a quality score of "
        f"{options.quality_requirements.minimum_quality_score}+ to be accepted."
    )
    return "\n\n".join(sections)


def build_generation_prompt(
    prompt: str,
    context: Optional[GenerationContext] = None,
    options: Optional[EnhancementOptions] = None,
    max_attempts: int = 4,
) -> EnhancedPrompt:
    """
    Build the prompt pair for one generation attempt.

    Args:
        prompt: The user's request
        context: Inferred contract type, experience and quality requirements
        options: Attempt number, earlier failures, strictness and base temperature
        max_attempts: Shown in retry banners

    Returns:
        EnhancedPrompt with the attempt's temperature already lowered
    """
    options = options or EnhancementOptions()
    level = ENHANCEMENT_LEVELS[determine_enhancement_level(options.attempt_number, options.strict_mode)]
    temperature = calculate_temperature(options.attempt_number, options.temperature, options.strict_mode)

    return EnhancedPrompt(
        system=_build_system_prompt(level, options, temperature, context),
        user=_build_user_prompt(prompt, options, max_attempts, context),
        temperature=temperature,
        level=level.name,
        constraints=_constraint_list(),
    )


def build_refinement_prompt(code: str, request: str, previous_failure: Optional[str] = None,
                            strict_mode: bool = True) -> EnhancedPrompt:
    """Prompt pair that asks for `code` rewritten to satisfy `request`"""
    level = ENHANCEMENT_LEVELS["maximum" if previous_failure else "strict"]
    system = "\n\n".join([
        "You are an expert Cadence 1.0 developer refining an existing Flow smart contract. "
        "Keep everything the request does not ask to change.",
        FORBIDDEN_PATTERNS,
        REQUIRED_PATTERNS,
        UNDEFINED_PREVENTION,
        "RULES:\n" + _bullets(level.rules),
    ])
    user = (
        "Refine this Cadence code based on the user's request:\n\n"
        f"Original Code:\n```cadence\n{code}\n```\n\n"
        f"Refinement Request: {request}\n\n"
    )
    if previous_failure:
        user += f"Previous refinement failed due to: {previous_failure}\n\n"
    if strict_mode:
        user += "STRICT MODE: the refined code is rejected for ANY quality issue.\n\n"
    user += "Return only the refined Cadence code without explanations."

    return EnhancedPrompt(
        system=system,
        user=user,
        temperature=0.1 if previous_failure else 0.2,
        level=level.name,
        constraints=_constraint_list(),
    )


def build_explanation_prompt(code: str, question: Optional[str] = None) -> EnhancedPrompt:
    system = (
        "You are an expert Cadence 1.0 developer. Explain Flow smart contracts clearly: "
        "what each resource, function and event does, how access control works, "
        "and any risks a reviewer should know about."
    )
    user = f"Explain this Cadence code:\n\n```cadence\n{code}\n```"
    if question:
        user += f"\n\nFocus on this question: {question}"
    return EnhancedPrompt(system=system, user=user, temperature=0.3, level="explanation")
