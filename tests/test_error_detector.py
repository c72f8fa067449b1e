"""
Error Detector Tests
====================

Covers:
    - Empty input scores 0
    - Missing init / body / access modifier / resource destroy findings
    - Required functions and events per contract family
    - Undefined placeholders, TODOs, naming
    - Interfaces are not treated as incomplete implementations
"""
import pytest

from cadence_qa.error_detector import ErrorDetector, detect_errors, infer_contract_category
from cadence_qa.models import ContractCategory, ErrorCategory, ErrorType, Severity

from conftest import FIXABLE_CONTRACT, GOOD_CONTRACT


@pytest.fixture
def detector(telemetry):
    return ErrorDetector(telemetry=telemetry)


def _types(result):
    return [e.type for e in result.errors]


# ===========================================================================
# 1. Basic contract shapes
# ===========================================================================
class TestBasicShapes:

    @pytest.mark.parametrize("code", ["", "   \n\t  ", None])
    def test_empty_code_scores_zero(self, detector, code):
        result = detector.detect(code)
        assert result.completeness_score == 0
        assert result.errors == []

    def test_clean_contract_has_no_findings(self, detector):
        result = detector.detect(GOOD_CONTRACT)
        assert result.errors == []
        assert result.completeness_score == 100
        assert result.contract_type == "generic"

    def test_contract_without_init(self, detector):
        result = detector.detect("access(all) contract Foo { }")
        init_errors = result.get_by_type(ErrorType.MISSING_INIT_FUNCTION)
        assert len(init_errors) == 1
        assert init_errors[0].severity == Severity.CRITICAL
        assert init_errors[0].confidence == 95
        assert init_errors[0].auto_fixable

    def test_missing_contract_declaration(self, detector):
        result = detector.detect("access(all) fun helper(): Int {\n    return 1\n}\ninit() {}")
        errors = result.get_by_type(ErrorType.MISSING_CONTRACT_DECLARATION)
        assert len(errors) == 1
        assert not errors[0].auto_fixable
        assert errors[0].confidence == 100

    def test_function_without_body(self, detector):
        result = detector.detect("access(all) fun getValue(): String")
        errors = result.get_by_type(ErrorType.MISSING_FUNCTION_BODY)
        assert len(errors) == 1
        assert errors[0].auto_fixable
        assert errors[0].category == ErrorCategory.STRUCTURAL
        assert errors[0].context["return_type"] == "String"

    def test_score_always_in_range(self, detector):
        messy = "\n".join(f"fun broken{i}()" for i in range(30))
        result = detector.detect(messy, "nft")
        assert 0 <= result.completeness_score <= 100


# ===========================================================================
# 2. Function and access findings
# ===========================================================================
class TestFunctions:

    def test_bare_function_missing_access(self, detector):
        result = detector.detect(FIXABLE_CONTRACT)
        errors = result.get_by_type(ErrorType.MISSING_ACCESS_MODIFIERS)
        assert [e.context["function_name"] for e in errors] == ["greet"]
        assert errors[0].severity == Severity.WARNING

    def test_access_modifier_on_previous_line(self, detector):
        code = GOOD_CONTRACT.replace("access(all) view fun getCount()", "access(all)\n    view fun getCount()")
        result = detector.detect(code)
        assert ErrorType.MISSING_ACCESS_MODIFIERS not in _types(result)

    def test_unclosed_parameter_list_is_not_auto_fixable(self, detector):
        code = (
            "access(all) contract Foo {\n"
            "    access(all) fun broken(a: Int\n"
            "    init() {}\n"
            "}\n"
        )
        errors = detector.detect(code).get_by_type(ErrorType.MISSING_FUNCTION_BODY)
        assert len(errors) == 1
        assert not errors[0].auto_fixable
        assert "insert_at" not in errors[0].context
        assert errors[0].suggested_fix == "Close the parameter list and add a body"

    def test_url_string_keeps_body_boundaries(self, detector):
        code = GOOD_CONTRACT.replace(
            "    init() {",
            '    access(all) view fun homepage(): String { return "https://example.com/counter" }\n\n'
            "    init() {",
        )
        result = detector.detect(code)
        assert result.errors == []

    def test_return_type_without_return_is_incomplete(self, detector):
        code = (
            "access(all) contract C {\n"
            "    access(all) fun total(): UInt64 {\n"
            "        let x = 1\n"
            "    }\n"
            "    init() {}\n"
            "}\n"
        )
        result = detector.detect(code)
        assert ErrorType.INCOMPLETE_FUNCTION_IMPLEMENTATION in _types(result)

    def test_todo_comment_flagged(self, detector):
        code = GOOD_CONTRACT.replace("self.count = 0", "self.count = 0 // TODO seed from storage")
        result = detector.detect(code)
        todo = result.get_by_type(ErrorType.INCOMPLETE_IMPLEMENTATION)
        assert len(todo) == 1
        assert todo[0].severity == Severity.WARNING

    def test_interface_functions_are_not_incomplete(self, detector):
        code = GOOD_CONTRACT.replace(
            "    access(all) var count: UInt64\n",
            "    access(all) resource interface Readable {\n"
            "        access(all) view fun read(): UInt64\n"
            "    }\n\n"
            "    access(all) var count: UInt64\n",
        )
        result = detector.detect(code)
        assert ErrorType.MISSING_FUNCTION_BODY not in _types(result)
        assert ErrorType.INCOMPLETE_FUNCTION_IMPLEMENTATION not in _types(result)


# ===========================================================================
# 3. Contract families
# ===========================================================================
class TestContractFamilies:

    def test_category_inference(self):
        assert infer_contract_category("import NonFungibleToken") == ContractCategory.NFT
        assert infer_contract_category("resource Vault {}") == ContractCategory.FUNGIBLE_TOKEN
        assert infer_contract_category("fun castVote()") == ContractCategory.DAO
        assert infer_contract_category("access(all) contract X {}") == ContractCategory.GENERIC

    def test_nft_requirements(self, detector):
        result = detector.detect(GOOD_CONTRACT, "nft")
        missing = {e.context["function_name"] for e in result.get_by_type(ErrorType.MISSING_REQUIRED_FUNCTION)}
        assert missing == {"createNFT", "mintNFT", "getMetadata"}
        events = {e.context["event_name"] for e in result.get_by_type(ErrorType.MISSING_EVENT_DEFINITIONS)}
        assert events == {"Minted", "Withdraw", "Deposit"}
        assert result.contract_type == "nft"

    def test_missing_requirements_weigh_heavily(self, detector):
        generic = detector.detect(GOOD_CONTRACT)
        nft = detector.detect(GOOD_CONTRACT, ContractCategory.NFT)
        assert nft.completeness_score < generic.completeness_score
        assert nft.completeness_score == 0

    def test_resource_without_destroy(self, detector):
        code = GOOD_CONTRACT.replace(
            "    init() {",
            "    access(all) resource Token {\n"
            "        access(all) let id: UInt64\n"
            "        init(id: UInt64) {\n"
            "            self.id = id\n"
            "        }\n"
            "    }\n\n"
            "    init() {",
        )
        result = detector.detect(code)
        errors = result.get_by_type(ErrorType.MISSING_RESOURCE_METHODS)
        assert len(errors) == 1
        assert errors[0].context["resource_name"] == "Token"

    def test_unused_event_is_info(self, detector):
        code = GOOD_CONTRACT.replace(
            "    access(all) var count",
            "    access(all) event CounterReset()\n\n    access(all) var count",
        )
        result = detector.detect(code)
        unused = result.get_by_type(ErrorType.MISSING_EVENT_EMISSION)
        assert [e.context["event_name"] for e in unused] == ["CounterReset"]
        assert unused[0].severity == Severity.INFO


# ===========================================================================
# 4. Placeholders and naming
# ===========================================================================
class TestPlaceholders:

    def test_undefined_literal(self, detector):
        result = detector.detect(FIXABLE_CONTRACT)
        errors = result.get_by_type(ErrorType.UNDEFINED_VALUE)
        assert len(errors) == 1
        assert errors[0].context["replacement"] == '""'
        assert errors[0].auto_fixable

    def test_undefined_inside_string_ignored(self, detector):
        code = GOOD_CONTRACT.replace("self.count = 0", 'self.count = 0\n        log("undefined behaviour")')
        result = detector.detect(code)
        assert ErrorType.UNDEFINED_VALUE not in _types(result)

    def test_mixed_naming_flagged(self, detector):
        code = GOOD_CONTRACT.replace("self.count = 0", "let my_Value = 1\n        self.count = 0")
        result = detector.detect(code)
        naming = result.get_by_type(ErrorType.POOR_NAMING_CONVENTION)
        assert [e.message for e in naming] == ["Poor naming convention: 'my_Value'"]

    def test_plain_snake_case_not_flagged(self, detector):
        code = GOOD_CONTRACT.replace("self.count = 0", "let my_value = 1\n        self.count = 0")
        result = detector.detect(code)
        assert ErrorType.POOR_NAMING_CONVENTION not in _types(result)


class TestRecommendations:

    def test_all_clear_message(self, detector):
        assert detector.detect(GOOD_CONTRACT).recommendations == [
            "Code quality looks good - consider reviewing best practices"
        ]

    def test_module_wrapper(self):
        result = detect_errors("access(all) contract Foo { }")
        assert result.critical_errors == 1
        assert "Add an init() function to properly initialize the contract" in result.recommendations
