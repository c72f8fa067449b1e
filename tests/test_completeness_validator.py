"""
Functional Completeness Validator Tests
=======================================

Covers:
    - Clean contracts score 100
    - Per-family required functions
    - Function issues: body, return statement, pre/post conditions, access
    - Resource lifecycle issues
    - Event definitions versus emissions
    - Failure containment
"""
import pytest

from cadence_qa.completeness_validator import (
    ISSUE_ERROR_HANDLING,
    ISSUE_NO_ACCESS,
    FunctionalCompletenessValidator,
    validate_functional_completeness,
)
from cadence_qa.models import Severity

from conftest import BARE_FUNCTION_CONTRACT, GOOD_CONTRACT


@pytest.fixture
def validator(telemetry):
    return FunctionalCompletenessValidator(telemetry=telemetry)


def _make_contract(body: str, name: str = "Sample") -> str:
    return f"access(all) contract {name} {{\n{body}\n    init() {{}}\n}}\n"


def _function(result, name):
    return next(f for f in result.function_completeness.incomplete_functions if f.name == name)


# ===========================================================================
# 1. Overall scoring
# ===========================================================================
class TestScoring:

    def test_clean_contract(self, validator):
        result = validator.validate(GOOD_CONTRACT)
        assert result.completeness_score == 100
        assert result.is_complete
        assert result.recommendations == []
        assert result.function_completeness.total_functions == 2

    def test_nothing_to_evaluate_scores_zero(self, validator):
        result = validator.validate(_make_contract(""))
        assert result.completeness_score == 0
        assert not result.is_complete

    def test_bare_function_drops_below_threshold(self, validator):
        result = validator.validate(BARE_FUNCTION_CONTRACT)
        assert not result.is_complete
        assert result.access_control.missing_access == ["increment()"]
        assert result.access_control.access_control_score == 50

    def test_internal_failure_is_contained(self, validator, monkeypatch):
        def boom(code):
            raise RuntimeError("boom")

        monkeypatch.setattr(validator, "_extract_functions", boom)
        result = validator.validate(GOOD_CONTRACT)
        assert result.completeness_score == 0
        assert result.recommendations == ["Functional completeness validation failed - manual review required"]

    def test_module_wrapper(self):
        assert validate_functional_completeness(GOOD_CONTRACT).completeness_score == 100


# ===========================================================================
# 2. Functions
# ===========================================================================
class TestFunctions:

    def test_fungible_token_required_functions(self, validator):
        code = _make_contract(
            "    access(all) resource Vault {\n"
            "        access(all) var balance: UFix64\n"
            "        init(balance: UFix64) {\n"
            "            self.balance = balance\n"
            "        }\n"
            "    }\n",
            name="MyToken",
        )
        result = validator.validate(code, "fungible-token")
        assert result.function_completeness.missing_required_functions == ["mint", "withdraw", "deposit"]
        assert "Implement missing required functions: mint, withdraw, deposit" in result.recommendations

    def test_missing_return_statement(self, validator):
        code = _make_contract(
            "    access(all) fun total(): UInt64 {\n"
            "        let x = 1\n"
            "    }\n"
        )
        result = validator.validate(code)
        total = _function(result, "total")
        assert "Function declares return type 'UInt64' but has no return statement" in total.issues

    def test_critical_function_needs_conditions(self, validator):
        code = _make_contract(
            "    access(all) var balance: UFix64\n"
            "    access(all) fun withdraw(amount: UFix64) {\n"
            "        self.balance = self.balance - amount\n"
            "    }\n"
        )
        result = validator.validate(code)
        assert _function(result, "withdraw").issues == [ISSUE_ERROR_HANDLING]

    def test_critical_function_with_precondition_is_complete(self, validator):
        code = _make_contract(
            "    access(all) var balance: UFix64\n"
            "    access(all) fun withdraw(amount: UFix64) {\n"
            "        pre { amount > 0.0: \"positive amount\" }\n"
            "        self.balance = self.balance - amount\n"
            "    }\n"
        )
        result = validator.validate(code)
        assert result.function_completeness.incomplete_functions == []

    def test_missing_access_issue_is_auto_fixable(self, validator):
        result = validator.validate(BARE_FUNCTION_CONTRACT)
        increment = _function(result, "increment")
        assert increment.issues == [ISSUE_NO_ACCESS]

        issues = [i for v in result.validation_results for i in v.issues if i.type == "incomplete-function"]
        assert len(issues) == 1
        assert issues[0].auto_fixable
        assert issues[0].severity == Severity.CRITICAL


# ===========================================================================
# 3. Resources and events
# ===========================================================================
class TestResourcesAndEvents:

    def test_collection_without_init_or_destroy(self, validator):
        code = _make_contract(
            "    access(all) resource Collection {\n"
            "        access(all) fun count(): Int {\n"
            "            return 0\n"
            "        }\n"
            "    }\n"
        )
        result = validator.validate(code)
        kinds = [i.kind for i in result.resource_lifecycle.issues]
        assert kinds == ["missing-resource-init", "missing-resource-destroy"]
        assert result.resource_lifecycle.lifecycle_score == 0
        assert "Add missing resource lifecycle methods: Collection.init(), Collection.destroy()" in result.recommendations

    def test_unused_event(self, validator):
        code = GOOD_CONTRACT.replace(
            "    access(all) var count",
            "    access(all) event CounterReset()\n\n    access(all) var count",
        )
        result = validator.validate(code)
        assert result.event_emission.unused_events == ["CounterReset"]
        assert result.event_emission.emitted_events == ["CounterIncremented"]
        assert result.event_emission.emission_completeness == 50

    def test_expected_events_for_minting(self, validator):
        code = _make_contract(
            "    access(all) var supply: UInt64\n"
            "    access(all) fun mintToken(): UInt64 {\n"
            "        pre { self.supply < 100: \"cap reached\" }\n"
            "        self.supply = self.supply + 1\n"
            "        return self.supply\n"
            "    }\n"
        )
        result = validator.validate(code)
        assert result.event_emission.missing_emissions == ["Minted", "TokenMinted", "NFTMinted"]
