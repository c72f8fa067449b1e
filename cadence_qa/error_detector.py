"""
Error Detector
==============

Pattern-based scan of generated Cadence source for structural, functional,
completeness, best-practice and security defects.

Works over raw text: every pass is an independent rule set and all passes
append to one flat list of findings (pass order, not line order). Findings
are scored into a 0-100 completeness score. Detection never raises; an
internal failure yields an empty result asking for manual review.
"""

import re
from typing import Dict, List, Optional, Union

from .models import (
    CodeLocation,
    ContractCategory,
    ContractType,
    DetectedError,
    ErrorCategory,
    ErrorClassification,
    ErrorDetectionResult,
    ErrorType,
    Severity,
)
from .telemetry import PipelineTelemetry
from .text_utils import (
    block_body,
    default_value_for_type,
    find_matching_paren,
    in_spans,
    interface_spans,
    line_at,
    location_at,
    mask_comments,
    next_non_space,
    scan_type_annotation,
    surrounding_lines,
)
from .undefined_values import UndefinedValueDetector


_REQUIREMENTS = {
    ContractCategory.NFT: {
        "functions": ["createNFT", "mintNFT", "getMetadata"],
        "events": ["Minted", "Withdraw", "Deposit"],
        "imports": ["NonFungibleToken", "MetadataViews"],
    },
    ContractCategory.FUNGIBLE_TOKEN: {
        "functions": ["createVault", "mintTokens", "getBalance"],
        "events": ["TokensMinted", "TokensWithdrawn", "TokensDeposited"],
        "imports": ["FungibleToken"],
    },
    ContractCategory.DAO: {
        "functions": ["createProposal", "vote", "executeProposal"],
        "events": ["ProposalCreated", "VoteCast", "ProposalExecuted"],
        "imports": [],
    },
    ContractCategory.MARKETPLACE: {
        "functions": ["listItem", "purchase", "cancelListing"],
        "events": ["ItemListed", "ItemPurchased", "ListingCanceled"],
        "imports": ["NonFungibleToken", "FungibleToken"],
    },
}

_FUNCTION_SIGNATURES = {
    "createNFT": "access(all) fun createNFT(): @NFT",
    "mintNFT": "access(all) fun mintNFT(recipient: &{NonFungibleToken.CollectionPublic})",
    "getMetadata": "access(all) view fun getMetadata(id: UInt64): {String: String}",
    "createVault": "access(all) fun createVault(): @Vault",
    "mintTokens": "access(all) fun mintTokens(amount: UFix64): @Vault",
    "getBalance": "access(all) view fun getBalance(): UFix64",
    "createProposal": "access(all) fun createProposal(title: String, description: String): UInt64",
    "vote": "access(all) fun vote(proposalId: UInt64, support: Bool)",
    "executeProposal": "access(all) fun executeProposal(proposalId: UInt64)",
    "listItem": "access(all) fun listItem(id: UInt64, price: UFix64)",
    "purchase": "access(all) fun purchase(id: UInt64, payment: @{FungibleToken.Vault}): @{NonFungibleToken.NFT}",
    "cancelListing": "access(all) fun cancelListing(id: UInt64)",
}

_EVENT_SIGNATURES = {
    "Minted": "access(all) event Minted(id: UInt64, to: Address?)",
    "Withdraw": "access(all) event Withdraw(id: UInt64, from: Address?)",
    "Deposit": "access(all) event Deposit(id: UInt64, to: Address?)",
    "TokensMinted": "access(all) event TokensMinted(amount: UFix64)",
    "TokensWithdrawn": "access(all) event TokensWithdrawn(amount: UFix64, from: Address?)",
    "TokensDeposited": "access(all) event TokensDeposited(amount: UFix64, to: Address?)",
    "ProposalCreated": "access(all) event ProposalCreated(id: UInt64, proposer: Address)",
    "VoteCast": "access(all) event VoteCast(proposalId: UInt64, voter: Address, vote: Bool)",
    "ProposalExecuted": "access(all) event ProposalExecuted(id: UInt64)",
    "ItemListed": "access(all) event ItemListed(id: UInt64, price: UFix64, seller: Address)",
    "ItemPurchased": "access(all) event ItemPurchased(id: UInt64, price: UFix64, buyer: Address)",
    "ListingCanceled": "access(all) event ListingCanceled(id: UInt64)",
}

_RECOMMENDATIONS = {
    ErrorType.MISSING_FUNCTION_BODY: "Complete all function implementations by adding proper function bodies",
    ErrorType.INCOMPLETE_FUNCTION_IMPLEMENTATION: "Finish every function body and return a value wherever a return type is declared",
    ErrorType.MISSING_REQUIRED_FUNCTION: "Implement all required functions for the contract type",
    ErrorType.MISSING_CONTRACT_DECLARATION: "Wrap the code in an access(all) contract declaration",
    ErrorType.MISSING_INIT_FUNCTION: "Add an init() function to properly initialize the contract",
    ErrorType.MISSING_IMPORT_STATEMENTS: "Import the standard interfaces this contract type depends on",
    ErrorType.INCOMPLETE_RESOURCE_DEFINITION: "Give every resource declaration a body",
    ErrorType.MISSING_RESOURCE_METHODS: "Define resource lifecycle methods so resources are cleaned up explicitly",
    ErrorType.MISSING_EVENT_DEFINITIONS: "Define the events expected for this contract type",
    ErrorType.MISSING_EVENT_EMISSION: "Emit every defined event from the functions that change state",
    ErrorType.MISSING_ACCESS_MODIFIERS: "Add explicit access modifiers to all functions and resources",
    ErrorType.INCOMPLETE_IMPLEMENTATION: "Remove TODO comments and complete all implementations",
    ErrorType.UNDEFINED_VALUE: "Replace undefined placeholders with concrete values of the declared type",
    ErrorType.POOR_NAMING_CONVENTION: "Use one naming convention (camelCase) for identifiers",
}

_ALL_CLEAR = "Code quality looks good - consider reviewing best practices"
_DETECTION_FAILED = "Error detection system failed - manual review required"
_NO_CODE = "No contract code provided - nothing to analyze"

_FUNCTION_DECL = re.compile(r'access\(([^)]*)\)\s+(?:view\s+)?fun\s+(\w+)\s*\(')
_RESOURCE_DECL = re.compile(r'access\(([^)]*)\)\s+resource\s+(?!interface\b)(\w+)')
_RESOURCE_OPENING = re.compile(r'\s*(?::[^{\n]*)?(\{)?')
_EVENT_DECL = re.compile(r'access\([^)]*\)\s+event\s+(\w+)\s*\(')
_BARE_FUNCTION = re.compile(r'^([ \t]*)((?:view\s+)?fun)\s+(\w+)', re.MULTILINE)
_TRAILING_ACCESS = re.compile(r'access\([^)]*\)\s*\Z')
_TODO_COMMENT = re.compile(r'//\s*TODO|/\*\s*TODO', re.IGNORECASE)
_EMPTY_FUNCTION = re.compile(r'access\([^)]+\)\s+(?:view\s+)?fun\s+(\w+)[^{]*\{\s*\}')
_MIXED_CASE_IDENTIFIER = re.compile(r'\b[a-z][A-Za-z0-9]*_[A-Za-z0-9_]*\b')
_CONTRACT_DECL = re.compile(r'access\(all\)\s+contract\b')
_INIT_DECL = re.compile(r'\binit\s*\(\s*\)\s*\{')
_RETURN_STATEMENT = re.compile(r'^\s*return\s+', re.MULTILINE)
_DESTROY_DECL = re.compile(r'\bdestroy\s*\(\s*\)')


def infer_contract_category(code: str) -> ContractCategory:
    """Guess the contract family from marker words in the source"""
    if "NonFungibleToken" in code or "NFT" in code:
        return ContractCategory.NFT
    if "FungibleToken" in code or "Vault" in code:
        return ContractCategory.FUNGIBLE_TOKEN
    lowered = code.lower()
    if "vote" in lowered or "proposal" in lowered:
        return ContractCategory.DAO
    if "marketplace" in lowered or "listing" in lowered:
        return ContractCategory.MARKETPLACE
    return ContractCategory.GENERIC


def resolve_contract_category(code: str, contract_type) -> ContractCategory:
    if contract_type is None:
        return infer_contract_category(code)
    if isinstance(contract_type, ContractType):
        return contract_type.category
    if isinstance(contract_type, ContractCategory):
        return contract_type
    return ContractCategory.from_string(str(contract_type))


class ErrorDetector:
    """Runs the detection passes and scores the findings"""

    def __init__(
        self,
        telemetry: Optional[PipelineTelemetry] = None,
        undefined_detector: Optional[UndefinedValueDetector] = None,
    ):
        self.telemetry = telemetry or PipelineTelemetry()
        self.undefined_detector = undefined_detector or UndefinedValueDetector()

    def detect(
        self,
        code: str,
        contract_type: Union[str, ContractCategory, ContractType, None] = None,
    ) -> ErrorDetectionResult:
        """
        Detect errors in `code`.

        Args:
            code: Cadence source
            contract_type: Category name, ContractCategory or ContractType;
                           inferred from the source when omitted

        Returns:
            ErrorDetectionResult (never raises)
        """
        category = ContractCategory.GENERIC
        try:
            code = code or ""
            category = resolve_contract_category(code, contract_type)

            if not code.strip():
                return ErrorDetectionResult(
                    errors=[],
                    classification=ErrorClassification(),
                    completeness_score=0,
                    recommendations=[_NO_CODE],
                    contract_type=category.value,
                )

            errors: List[DetectedError] = []
            errors.extend(self._detect_function_errors(code, category))
            errors.extend(self._detect_structural_errors(code, category))
            errors.extend(self._detect_resource_errors(code, category))
            errors.extend(self._detect_event_errors(code, category))
            errors.extend(self._detect_access_control_errors(code, category))
            errors.extend(self._detect_completeness_errors(code, category))
            errors.extend(self._detect_best_practice_violations(code))

            score = self._calculate_completeness_score(errors, category)

            self.telemetry.debug(
                f"Error detection: {len(errors)} findings, completeness {score}",
                contract_type=category.value,
            )
            self.telemetry.increment("detector.runs")

            return ErrorDetectionResult(
                errors=errors,
                classification=ErrorClassification.from_errors(errors),
                completeness_score=score,
                recommendations=self._generate_recommendations(errors),
                contract_type=category.value,
            )
        except Exception as e:
            self.telemetry.error(f"Error detection failed: {e}")
            return ErrorDetectionResult(
                errors=[],
                classification=ErrorClassification(),
                completeness_score=0,
                recommendations=[_DETECTION_FAILED],
                contract_type=category.value,
            )

    # ------------------------------------------------------------------
    # Passes
    # ------------------------------------------------------------------

    def _detect_function_errors(self, code: str, category: ContractCategory) -> List[DetectedError]:
        errors = []
        masked = mask_comments(code)
        interfaces = interface_spans(code)

        for match in _FUNCTION_DECL.finditer(masked):
            if in_spans(match.start(), interfaces):
                continue

            name = match.group(2)
            location = location_at(code, match.start())
            paren_close = find_matching_paren(masked, match.end() - 1)
            if paren_close == -1:
                return_type, signature_end = None, len(code)
            else:
                return_type, signature_end = scan_type_annotation(masked, paren_close + 1)
                if return_type is None:
                    signature_end = paren_close + 1

            body_open = next_non_space(masked, signature_end)
            has_body = body_open < len(masked) and masked[body_open] == "{"

            if not has_body:
                # an unclosed parameter list gives no place to put a body
                closed = paren_close != -1
                default = default_value_for_type(return_type) if return_type and return_type != "Void" else None
                if not closed:
                    fix = "Close the parameter list and add a body"
                elif default:
                    fix = f"Add a body: {{ return {default} }}"
                else:
                    fix = "Add a body: { }"
                errors.append(self._error(
                    code,
                    id=f"missing-body-{name}",
                    type=ErrorType.MISSING_FUNCTION_BODY,
                    category=ErrorCategory.STRUCTURAL,
                    severity=Severity.CRITICAL,
                    location=location,
                    message=f"Function '{name}' is missing its implementation body",
                    description=f"The function '{name}' is declared but has no body enclosed in braces.",
                    suggested_fix=fix,
                    auto_fixable=closed,
                    confidence=95,
                    contract_type=category,
                    function_name=name,
                    return_type=return_type,
                    insert_at=signature_end if closed else None,
                ))
                continue

            body, _ = block_body(code, body_open)
            if self._is_function_incomplete(body, return_type):
                errors.append(self._error(
                    code,
                    id=f"incomplete-impl-{name}",
                    type=ErrorType.INCOMPLETE_FUNCTION_IMPLEMENTATION,
                    category=ErrorCategory.FUNCTIONAL,
                    severity=Severity.CRITICAL,
                    location=location,
                    message=f"Function '{name}' has incomplete implementation",
                    description=(
                        f"The function '{name}' contains placeholder comments, an empty body, "
                        "or no return statement for its declared return type."
                    ),
                    suggested_fix=self._implementation_suggestion(name, return_type),
                    auto_fixable=False,
                    confidence=85,
                    contract_type=category,
                    function_name=name,
                    return_type=return_type,
                ))

        requirements = _REQUIREMENTS.get(category)
        if requirements:
            for required in requirements["functions"]:
                if not self._has_function(masked, required):
                    signature = _FUNCTION_SIGNATURES.get(required, f"access(all) fun {required}()")
                    errors.append(self._error(
                        code,
                        id=f"missing-required-{required}",
                        type=ErrorType.MISSING_REQUIRED_FUNCTION,
                        category=ErrorCategory.COMPLETENESS,
                        severity=Severity.CRITICAL,
                        location=CodeLocation(line=1, column=0),
                        message=f"Missing required function '{required}' for {category.value} contract",
                        description=(
                            f"{category.value} contracts must implement '{required}' to meet "
                            "their interface requirements."
                        ),
                        suggested_fix=f"Add {signature} {{ ... }} with the {category.value} logic",
                        auto_fixable=True,
                        confidence=90,
                        contract_type=category,
                        function_name=required,
                        with_surroundings=False,
                    ))

        return errors

    def _detect_structural_errors(self, code: str, category: ContractCategory) -> List[DetectedError]:
        errors = []
        masked = mask_comments(code)

        if not _CONTRACT_DECL.search(masked):
            errors.append(self._error(
                code,
                id="missing-contract-declaration",
                type=ErrorType.MISSING_CONTRACT_DECLARATION,
                category=ErrorCategory.STRUCTURAL,
                severity=Severity.CRITICAL,
                location=CodeLocation(line=1, column=0),
                message="Contract declaration is missing",
                description="Every Cadence contract must be declared with access(all) contract Name { ... }.",
                suggested_fix="Add contract declaration: access(all) contract YourContractName { ... }",
                auto_fixable=False,
                confidence=100,
                contract_type=category,
                with_surroundings=False,
            ))

        if not _INIT_DECL.search(masked):
            errors.append(self._error(
                code,
                id="missing-init-function",
                type=ErrorType.MISSING_INIT_FUNCTION,
                category=ErrorCategory.STRUCTURAL,
                severity=Severity.CRITICAL,
                location=CodeLocation(line=1, column=0),
                message="Contract is missing init() function",
                description="The contract has no initializer to set up its state.",
                suggested_fix="Add init() { ... } initializing every contract field",
                auto_fixable=True,
                confidence=95,
                contract_type=category,
                with_surroundings=False,
            ))

        requirements = _REQUIREMENTS.get(category)
        if requirements:
            for required_import in requirements["imports"]:
                if not re.search(rf'\bimport\s+"?{required_import}\b', masked):
                    errors.append(self._error(
                        code,
                        id=f"missing-import-{required_import}",
                        type=ErrorType.MISSING_IMPORT_STATEMENTS,
                        category=ErrorCategory.STRUCTURAL,
                        severity=Severity.WARNING,
                        location=CodeLocation(line=1, column=0),
                        message=f"Missing import for '{required_import}'",
                        description=f"{category.value} contracts normally depend on {required_import}.",
                        suggested_fix=f'Add import "{required_import}" at the top of the file',
                        auto_fixable=False,
                        confidence=80,
                        contract_type=category,
                        with_surroundings=False,
                    ))

        return errors

    def _detect_resource_errors(self, code: str, category: ContractCategory) -> List[DetectedError]:
        errors = []
        masked = mask_comments(code)

        for match in _RESOURCE_DECL.finditer(masked):
            name = match.group(2)
            location = location_at(code, match.start())
            opening = _RESOURCE_OPENING.match(masked, match.end())

            if opening.group(1) is None:
                errors.append(self._error(
                    code,
                    id=f"incomplete-resource-{name}",
                    type=ErrorType.INCOMPLETE_RESOURCE_DEFINITION,
                    category=ErrorCategory.STRUCTURAL,
                    severity=Severity.CRITICAL,
                    location=location,
                    message=f"Resource '{name}' has no body",
                    description=f"The resource '{name}' is declared without an opening brace.",
                    suggested_fix=f"Add a body to resource '{name}': {{ ... }}",
                    auto_fixable=True,
                    confidence=90,
                    contract_type=category,
                    resource_name=name,
                    insert_at=match.end() + len(opening.group(0).rstrip()),
                ))
                continue

            body_open = opening.start(1)
            body, body_close = block_body(masked, body_open)
            if not _DESTROY_DECL.search(body):
                errors.append(self._error(
                    code,
                    id=f"missing-destroy-{name}",
                    type=ErrorType.MISSING_RESOURCE_METHODS,
                    category=ErrorCategory.FUNCTIONAL,
                    severity=Severity.WARNING,
                    location=location,
                    message=f"Resource '{name}' has no destroy() method",
                    description=f"The resource '{name}' does not define a destructor for cleanup.",
                    suggested_fix="Add destroy() { } inside the resource body",
                    auto_fixable=True,
                    confidence=85,
                    contract_type=category,
                    resource_name=name,
                    insert_at=body_close if body_close != -1 else None,
                ))

        return errors

    def _detect_event_errors(self, code: str, category: ContractCategory) -> List[DetectedError]:
        errors = []
        masked = mask_comments(code)

        requirements = _REQUIREMENTS.get(category)
        if requirements:
            for event in requirements["events"]:
                if not re.search(rf'access\(all\)\s+event\s+{event}\b', masked):
                    definition = _EVENT_SIGNATURES.get(event, f"access(all) event {event}()")
                    errors.append(self._error(
                        code,
                        id=f"missing-event-{event}",
                        type=ErrorType.MISSING_EVENT_DEFINITIONS,
                        category=ErrorCategory.COMPLETENESS,
                        severity=Severity.WARNING,
                        location=CodeLocation(line=1, column=0),
                        message=f"Missing required event '{event}'",
                        description=f"{category.value} contracts are expected to define the '{event}' event.",
                        suggested_fix=f"Add event definition: {definition}",
                        auto_fixable=True,
                        confidence=85,
                        contract_type=category,
                        event_name=event,
                        definition=definition,
                        with_surroundings=False,
                    ))

        for match in _EVENT_DECL.finditer(masked):
            event = match.group(1)
            if not re.search(rf'\bemit\s+{event}\s*\(', masked):
                errors.append(self._error(
                    code,
                    id=f"unused-event-{event}",
                    type=ErrorType.MISSING_EVENT_EMISSION,
                    category=ErrorCategory.BEST_PRACTICES,
                    severity=Severity.INFO,
                    location=location_at(code, match.start()),
                    message=f"Event '{event}' is defined but never emitted",
                    description=f"No emit statement references the '{event}' event.",
                    suggested_fix=f"Emit {event}(...) where the corresponding state change happens",
                    auto_fixable=False,
                    confidence=75,
                    contract_type=category,
                    event_name=event,
                ))

        return errors

    def _detect_access_control_errors(self, code: str, category: ContractCategory) -> List[DetectedError]:
        errors = []
        masked = mask_comments(code)
        for match in _BARE_FUNCTION.finditer(masked):
            # modifier written on the line above
            if _TRAILING_ACCESS.search(masked, 0, match.start(2)):
                continue
            name = match.group(3)
            errors.append(self._error(
                code,
                id=f"missing-access-{name}",
                type=ErrorType.MISSING_ACCESS_MODIFIERS,
                category=ErrorCategory.SECURITY,
                severity=Severity.WARNING,
                location=location_at(code, match.start(2)),
                message=f"Function '{name}' is missing an access modifier",
                description="Cadence 1.0 requires an explicit access modifier on every function.",
                suggested_fix=f"Declare it as access(all) fun {name}(...) or a narrower access level",
                auto_fixable=True,
                confidence=90,
                contract_type=category,
                function_name=name,
                insert_at=match.start(2),
            ))
        return errors

    def _detect_completeness_errors(self, code: str, category: ContractCategory) -> List[DetectedError]:
        errors = []

        for match in _TODO_COMMENT.finditer(code):
            location = location_at(code, match.start())
            errors.append(self._error(
                code,
                id=f"todo-{location.line}-{location.column}",
                type=ErrorType.INCOMPLETE_IMPLEMENTATION,
                category=ErrorCategory.COMPLETENESS,
                severity=Severity.WARNING,
                location=location,
                message="Incomplete implementation detected (TODO comment)",
                description="Code contains TODO comments indicating unfinished implementation.",
                suggested_fix="Complete the implementation and remove TODO comments",
                auto_fixable=False,
                confidence=100,
                contract_type=category,
            ))

        masked = mask_comments(code)
        interfaces = interface_spans(code)
        for match in _EMPTY_FUNCTION.finditer(masked):
            if in_spans(match.start(), interfaces):
                continue
            name = match.group(1)
            errors.append(self._error(
                code,
                id=f"empty-function-{name}",
                type=ErrorType.INCOMPLETE_IMPLEMENTATION,
                category=ErrorCategory.COMPLETENESS,
                severity=Severity.CRITICAL,
                location=location_at(code, match.start()),
                message=f"Function '{name}' has empty implementation",
                description=f"The function '{name}' is declared but its body is empty.",
                suggested_fix=self._implementation_suggestion(name, None),
                auto_fixable=False,
                confidence=95,
                contract_type=category,
                function_name=name,
            ))

        for value in self.undefined_detector.scan(code):
            errors.append(self._error(
                code,
                id=f"undefined-{value.line}-{value.column}",
                type=ErrorType.UNDEFINED_VALUE,
                category=ErrorCategory.COMPLETENESS,
                severity=Severity.CRITICAL,
                location=CodeLocation(line=value.line, column=value.column),
                message=(
                    "Literal 'undefined' is not a Cadence value"
                    if value.kind == "literal-undefined"
                    else "Declaration is missing its initial value"
                ),
                description=f"Placeholder value in: {value.line_text}",
                suggested_fix=f"Use {value.suggested_value}",
                auto_fixable=True,
                confidence=95,
                contract_type=category,
                kind=value.kind,
                offset=value.offset,
                end=value.end,
                replacement=value.suggested_value,
            ))

        return errors

    def _detect_best_practice_violations(self, code: str) -> List[DetectedError]:
        errors = []
        seen = set()
        for match in _MIXED_CASE_IDENTIFIER.finditer(mask_comments(code)):
            name = match.group(0)
            if name in seen or not any(c.isupper() for c in name):
                continue
            seen.add(name)
            errors.append(self._error(
                code,
                id=f"poor-naming-{name}",
                type=ErrorType.POOR_NAMING_CONVENTION,
                category=ErrorCategory.BEST_PRACTICES,
                severity=Severity.INFO,
                location=location_at(code, match.start()),
                message=f"Poor naming convention: '{name}'",
                description="Identifier mixes snake_case and camelCase.",
                suggested_fix="Use consistent naming conventions (camelCase recommended)",
                auto_fixable=False,
                confidence=70,
                with_surroundings=False,
            ))
        return errors

    # ------------------------------------------------------------------
    # Scoring
    # ------------------------------------------------------------------

    def _calculate_completeness_score(self, errors: List[DetectedError], category: ContractCategory) -> int:
        """
        100 minus per-finding penalties. A missing required function or event
        is charged by severity, by category, and again by the contract-type
        penalty, so it weighs heavily on purpose.
        """
        score = 100
        for error in errors:
            if error.severity == Severity.CRITICAL:
                score -= 25
            elif error.severity == Severity.WARNING:
                score -= 10

            if error.category == ErrorCategory.STRUCTURAL:
                score -= 15
            elif error.category == ErrorCategory.COMPLETENESS:
                score -= 12

        if category in _REQUIREMENTS:
            missing = sum(
                1 for e in errors
                if e.type in (ErrorType.MISSING_REQUIRED_FUNCTION, ErrorType.MISSING_EVENT_DEFINITIONS)
            )
            score -= missing * 20

        return max(0, round(score))

    def _generate_recommendations(self, errors: List[DetectedError]) -> List[str]:
        recommendations = []
        seen = set()
        for error in errors:
            if error.type in seen:
                continue
            seen.add(error.type)
            text = _RECOMMENDATIONS.get(error.type)
            if text:
                recommendations.append(text)
        if not recommendations:
            recommendations.append(_ALL_CLEAR)
        return recommendations

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _is_function_incomplete(body: str, return_type: Optional[str]) -> bool:
        if "TODO" in body or "todo" in body:
            return True
        if not re.sub(r'[{}\s]', '', body):
            return True
        if return_type and return_type != "Void" and not _RETURN_STATEMENT.search(body):
            return True
        return False

    @staticmethod
    def _has_function(code: str, name: str) -> bool:
        return re.search(rf'access\([^)]*\)\s+(?:view\s+)?fun\s+{name}\s*\(', code) is not None

    @staticmethod
    def _implementation_suggestion(name: str, return_type: Optional[str]) -> str:
        if return_type and return_type != "Void":
            return f"Implement '{name}' and end it with: return {default_value_for_type(return_type)} (or the real value)"
        return f"Implement the body of '{name}' with the required state changes and event emissions"

    @staticmethod
    def _error(
        code: str,
        id: str,
        type: ErrorType,
        category: ErrorCategory,
        severity: Severity,
        location: CodeLocation,
        message: str,
        description: str,
        suggested_fix: str,
        auto_fixable: bool,
        confidence: int,
        contract_type: Optional[ContractCategory] = None,
        with_surroundings: bool = True,
        **context,
    ) -> DetectedError:
        details: Dict = {k: v for k, v in context.items() if v is not None}
        if contract_type is not None:
            details["contract_type"] = contract_type.value
        if with_surroundings:
            details["line_content"] = line_at(code, location.line)
            details["surrounding_code"] = surrounding_lines(code, location.line)
        return DetectedError(
            id=id,
            type=type,
            category=category,
            severity=severity,
            location=location,
            message=message,
            description=description,
            suggested_fix=suggested_fix,
            auto_fixable=auto_fixable,
            confidence=max(0, min(100, confidence)),
            context=details,
        )


def detect_errors(
    code: str,
    contract_type: Union[str, ContractCategory, ContractType, None] = None,
    telemetry: Optional[PipelineTelemetry] = None,
) -> ErrorDetectionResult:
    """Module-level wrapper around ErrorDetector.detect"""
    return ErrorDetector(telemetry=telemetry).detect(code, contract_type)
