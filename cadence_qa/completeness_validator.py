"""
Functional Completeness Validator
=================================

Checks that a contract is functionally whole: function bodies and return
statements, resource lifecycle methods, event definitions versus emissions,
and access modifiers on every function and resource.

Uses its own pattern set, independent of the error detector, so the two
analyzers can disagree; the score calculator reconciles them.
"""

import re
from typing import List, Optional, Tuple

from .error_detector import resolve_contract_category
from .models import (
    AccessControlReport,
    ContractCategory,
    EventEmissionReport,
    EventInfo,
    FunctionalCompletenessResult,
    FunctionCompletenessReport,
    FunctionInfo,
    LifecycleIssue,
    ResourceInfo,
    ResourceLifecycleReport,
    Severity,
    ValidationIssue,
    ValidationResult,
    ValidationType,
)
from .telemetry import PipelineTelemetry
from .text_utils import (
    block_body,
    find_matching_paren,
    in_spans,
    interface_spans,
    location_at,
    mask_comments,
    next_non_space,
    scan_type_annotation,
)


# (name, pattern, categories); "all" applies to every contract
_REQUIRED_FUNCTIONS = [
    ("init", re.compile(r'\binit\s*\(\s*\)\s*\{'), ("all",)),
    ("mint", re.compile(r'fun\s+mint\w*\s*\('), ("nft", "fungible-token")),
    ("withdraw", re.compile(r'fun\s+withdraw\s*\('), ("fungible-token",)),
    ("deposit", re.compile(r'fun\s+deposit\s*\('), ("nft", "fungible-token")),
    ("vote", re.compile(r'fun\s+vote\s*\(|fun\s+castVote\s*\('), ("dao",)),
    ("createProposal", re.compile(r'fun\s+createProposal\s*\(|fun\s+propose\s*\('), ("dao",)),
    ("purchase", re.compile(r'fun\s+purchase\s*\(|fun\s+buy\s*\('), ("marketplace",)),
    ("createListing", re.compile(r'fun\s+createListing\s*\(|fun\s+list\s*\('), ("marketplace",)),
]

_CRITICAL_FUNCTIONS = [
    "withdraw", "deposit", "mint", "burn", "transfer",
    "vote", "execute", "purchase", "createlisting",
]

_INIT_REQUIRED_RESOURCES = ["Collection", "Vault", "Minter", "Administrator"]

# keyword found in code -> events such code is expected to define or emit
_EXPECTED_EVENTS = [
    (("mint", "Mint"), ["Minted", "TokenMinted", "NFTMinted"]),
    (("withdraw", "deposit"), ["Withdraw", "Deposit", "Transfer"]),
    (("vote", "Vote"), ["VoteCast", "ProposalCreated"]),
    (("purchase", "buy"), ["Purchase", "Sale", "ListingCompleted"]),
]

_FUNCTION_PATTERN = re.compile(r'(access\([^)]+\)\s+)?(?:view\s+)?fun\s+(\w+)\s*\(')
_RESOURCE_PATTERN = re.compile(r'(access\([^)]+\)\s+)?resource\s+(?!interface\b)(\w+)\s*[:{]')
_EVENT_PATTERN = re.compile(r'(access\([^)]+\)\s+)?event\s+(\w+)\s*\(([^)]*)\)')
_EMIT_PATTERN = re.compile(r'\bemit\s+(\w+)\s*\(')
_RETURN_PATTERN = re.compile(r'\breturn\s+')
_CONDITION_PATTERN = re.compile(r'\bpre\s*\{|\bpost\s*\{')

ISSUE_NO_BODY = "Function has no implementation body"
ISSUE_EMPTY_BODY = "Function body is empty"
ISSUE_ERROR_HANDLING = "Critical function should include error handling (pre/post conditions)"
ISSUE_NO_ACCESS = "Function is missing access modifier"


def _issue_no_return(return_type: str) -> str:
    return f"Function declares return type '{return_type}' but has no return statement"


def _percentage(part: int, whole: int, empty: int) -> int:
    if whole == 0:
        return empty
    return round(part / whole * 100)


class FunctionalCompletenessValidator:
    """Scores functions, resource lifecycles, events and access control"""

    def __init__(self, telemetry: Optional[PipelineTelemetry] = None):
        self.telemetry = telemetry or PipelineTelemetry()

    def validate(self, code: str, contract_type=None) -> FunctionalCompletenessResult:
        """
        Validate functional completeness of `code`.

        Never raises; an internal failure yields a zero-score result whose
        only recommendation asks for manual review.
        """
        try:
            code = code or ""
            category = resolve_contract_category(code, contract_type)

            functions = self._extract_functions(code)
            resources = self._extract_resources(code)

            function_report = self._validate_functions(code, functions, category)
            lifecycle_report = self._validate_resource_lifecycle(resources)
            event_report = self._validate_event_emission(code)
            access_report = self._validate_access_control(functions, resources)

            score = self._overall_score(function_report, lifecycle_report, event_report, access_report)

            result = FunctionalCompletenessResult(
                is_complete=score >= 80,
                completeness_score=score,
                function_completeness=function_report,
                resource_lifecycle=lifecycle_report,
                event_emission=event_report,
                access_control=access_report,
                validation_results=self._validation_results(
                    function_report, lifecycle_report, event_report, access_report, functions, resources
                ),
                recommendations=self._recommendations(
                    function_report, lifecycle_report, event_report, functions, resources
                ),
            )

            self.telemetry.debug(
                f"Functional completeness: {score}% ({function_report.total_functions} functions, "
                f"{lifecycle_report.total_resources} resources)",
                contract_type=category.value,
            )
            return result

        except Exception as e:
            self.telemetry.error(f"Functional completeness validation failed: {e}")
            return FunctionalCompletenessResult(
                is_complete=False,
                completeness_score=0,
                function_completeness=FunctionCompletenessReport(0, 0, [], [], 0),
                resource_lifecycle=ResourceLifecycleReport(0, 0, [], 0),
                event_emission=EventEmissionReport([], [], [], [], 0),
                access_control=AccessControlReport(0, 0, [], 0),
                validation_results=[],
                recommendations=["Functional completeness validation failed - manual review required"],
            )

    # ------------------------------------------------------------------
    # Extraction
    # ------------------------------------------------------------------

    def _extract_functions(self, code: str) -> List[FunctionInfo]:
        masked = mask_comments(code)
        interfaces = interface_spans(code)
        functions = []

        for match in _FUNCTION_PATTERN.finditer(masked):
            if in_spans(match.start(), interfaces):
                continue

            paren_open = match.end() - 1
            paren_close = find_matching_paren(masked, paren_open)
            if paren_close == -1:
                params_text, return_type, signature_end = masked[paren_open + 1:], None, len(masked)
            else:
                params_text = masked[paren_open + 1:paren_close]
                return_type, signature_end = scan_type_annotation(masked, paren_close + 1)
                if return_type is None:
                    signature_end = paren_close + 1

            body_open = next_non_space(masked, signature_end)
            has_body = body_open < len(masked) and masked[body_open] == "{"
            body = block_body(masked, body_open)[0] if has_body else ""

            info = FunctionInfo(
                name=match.group(2),
                location=location_at(code, match.start()),
                has_access_modifier=match.group(1) is not None,
                has_body=has_body,
                has_return=bool(_RETURN_PATTERN.search(body)),
                has_error_handling=bool(_CONDITION_PATTERN.search(body)),
                return_type=return_type,
                parameters=[p.strip() for p in params_text.split(",") if p.strip()],
            )
            info.issues = self._function_issues(info, body)
            functions.append(info)

        return functions

    def _extract_resources(self, code: str) -> List[ResourceInfo]:
        masked = mask_comments(code)
        resources = []
        for match in _RESOURCE_PATTERN.finditer(masked):
            open_index = masked.find("{", match.start())
            body = block_body(masked, open_index)[0] if open_index != -1 else ""
            resources.append(ResourceInfo(
                name=match.group(2),
                location=location_at(code, match.start()),
                has_access_modifier=match.group(1) is not None,
                has_init=bool(re.search(r'\binit\s*\(', body)),
                has_destroy=bool(re.search(r'\bdestroy\s*\(', body)),
            ))
        return resources

    def _extract_events(self, masked: str, code: str) -> List[EventInfo]:
        events = []
        for match in _EVENT_PATTERN.finditer(masked):
            events.append(EventInfo(
                name=match.group(2),
                location=location_at(code, match.start()),
                parameters=[p.strip() for p in match.group(3).split(",") if p.strip()],
            ))
        return events

    # ------------------------------------------------------------------
    # Checks
    # ------------------------------------------------------------------

    @staticmethod
    def _function_issues(info: FunctionInfo, body: str) -> List[str]:
        issues = []
        if not info.has_body:
            issues.append(ISSUE_NO_BODY)
        elif not body.strip():
            issues.append(ISSUE_EMPTY_BODY)

        if info.return_type and info.return_type != "Void" and not info.has_return:
            issues.append(_issue_no_return(info.return_type))

        lowered = info.name.lower()
        if any(name in lowered for name in _CRITICAL_FUNCTIONS) and not info.has_error_handling:
            issues.append(ISSUE_ERROR_HANDLING)

        if not info.has_access_modifier:
            issues.append(ISSUE_NO_ACCESS)
        return issues

    def _validate_functions(
        self, code: str, functions: List[FunctionInfo], category: ContractCategory
    ) -> FunctionCompletenessReport:
        masked = mask_comments(code)
        incomplete = [f for f in functions if not f.is_complete]
        missing = [
            name for name, pattern, categories in _REQUIRED_FUNCTIONS
            if ("all" in categories or category.value in categories) and not pattern.search(masked)
        ]
        complete = len(functions) - len(incomplete)
        return FunctionCompletenessReport(
            total_functions=len(functions),
            complete_functions=complete,
            incomplete_functions=incomplete,
            missing_required_functions=missing,
            completeness_percentage=_percentage(complete, len(functions), empty=0),
        )

    def _validate_resource_lifecycle(self, resources: List[ResourceInfo]) -> ResourceLifecycleReport:
        issues = []
        for resource in resources:
            if not resource.has_init and any(r in resource.name for r in _INIT_REQUIRED_RESOURCES):
                issues.append(LifecycleIssue(
                    resource=resource.name,
                    kind="missing-resource-init",
                    severity=Severity.CRITICAL,
                    message=f"Resource '{resource.name}' is missing init() function",
                ))
            if not resource.has_destroy:
                issues.append(LifecycleIssue(
                    resource=resource.name,
                    kind="missing-resource-destroy",
                    severity=Severity.WARNING,
                    message=f"Resource '{resource.name}' should implement destroy() function",
                ))
            if not resource.has_access_modifier:
                issues.append(LifecycleIssue(
                    resource=resource.name,
                    kind="missing-resource-access",
                    severity=Severity.CRITICAL,
                    message=f"Resource '{resource.name}' is missing access modifier",
                ))

        complete = sum(1 for r in resources if r.is_lifecycle_complete)
        return ResourceLifecycleReport(
            total_resources=len(resources),
            complete_lifecycles=complete,
            issues=issues,
            lifecycle_score=_percentage(complete, len(resources), empty=100),
        )

    def _validate_event_emission(self, code: str) -> EventEmissionReport:
        masked = mask_comments(code)
        events = self._extract_events(masked, code)

        emitted = []
        for match in _EMIT_PATTERN.finditer(masked):
            if match.group(1) not in emitted:
                emitted.append(match.group(1))

        defined_names = [e.name for e in events]
        for event in events:
            event.emitted = event.name in emitted
        unused = [e.name for e in events if not e.emitted]

        expected = []
        for keywords, names in _EXPECTED_EVENTS:
            if any(k in masked for k in keywords):
                expected.extend(n for n in names if n not in expected)
        missing = [n for n in expected if n not in defined_names and n not in emitted]

        emitted_defined = sum(1 for e in events if e.emitted)
        return EventEmissionReport(
            defined_events=defined_names,
            emitted_events=emitted,
            unused_events=unused,
            missing_emissions=missing,
            emission_completeness=_percentage(emitted_defined, len(events), empty=100),
        )

    def _validate_access_control(
        self, functions: List[FunctionInfo], resources: List[ResourceInfo]
    ) -> AccessControlReport:
        missing = [f"{f.name}()" for f in functions if not f.has_access_modifier]
        missing.extend(r.name for r in resources if not r.has_access_modifier)
        total = len(functions) + len(resources)
        with_access = total - len(missing)
        return AccessControlReport(
            total_elements=total,
            elements_with_access=with_access,
            missing_access=missing,
            access_control_score=_percentage(with_access, total, empty=100),
        )

    @staticmethod
    def _overall_score(
        functions: FunctionCompletenessReport,
        lifecycle: ResourceLifecycleReport,
        events: EventEmissionReport,
        access: AccessControlReport,
    ) -> int:
        # Nothing to evaluate counts as incomplete
        if functions.total_functions == 0 and lifecycle.total_resources == 0:
            return 0
        return round(
            functions.completeness_percentage * 0.4
            + lifecycle.lifecycle_score * 0.3
            + events.emission_completeness * 0.15
            + access.access_control_score * 0.15
        )

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------

    @staticmethod
    def _function_severity(issues: List[str]) -> Severity:
        if any(i in (ISSUE_NO_BODY, ISSUE_NO_ACCESS) or "no return statement" in i for i in issues):
            return Severity.CRITICAL
        if any(i in (ISSUE_EMPTY_BODY, ISSUE_ERROR_HANDLING) for i in issues):
            return Severity.WARNING
        return Severity.INFO

    @staticmethod
    def _function_fix(issues: List[str]) -> str:
        fixes = []
        for issue in issues:
            if issue == ISSUE_NO_BODY:
                fixes.append("Add function implementation body with braces { }")
            elif issue == ISSUE_EMPTY_BODY:
                fixes.append("Add function logic inside the body")
            elif "no return statement" in issue:
                fixes.append("Add return statement matching the declared return type")
            elif issue == ISSUE_ERROR_HANDLING:
                fixes.append("Add pre/post conditions for validation")
            elif issue == ISSUE_NO_ACCESS:
                fixes.append("Add access(all) or appropriate access modifier")
        return "; ".join(fixes)

    def _validation_results(
        self,
        functions: FunctionCompletenessReport,
        lifecycle: ResourceLifecycleReport,
        events: EventEmissionReport,
        access: AccessControlReport,
        function_infos: List[FunctionInfo],
        resource_infos: List[ResourceInfo],
    ) -> List[ValidationResult]:
        function_issues = [
            ValidationIssue(
                severity=self._function_severity(f.issues),
                type="incomplete-function",
                message=f"Function '{f.name}' is incomplete: {', '.join(f.issues)}",
                location=f.location,
                suggested_fix=self._function_fix(f.issues),
                auto_fixable=ISSUE_NO_ACCESS in f.issues,
            )
            for f in functions.incomplete_functions
        ]
        function_issues.extend(
            ValidationIssue(
                severity=Severity.CRITICAL,
                type="missing-required-function",
                message=f"Contract is missing required function: {name}",
                suggested_fix=f"Implement {name} function",
            )
            for name in functions.missing_required_functions
        )

        resource_locations = {r.name: r.location for r in resource_infos}
        lifecycle_issues = [
            ValidationIssue(
                severity=i.severity,
                type=i.kind,
                message=i.message,
                location=resource_locations.get(i.resource),
                suggested_fix={
                    "missing-resource-init": "Add init() function to resource",
                    "missing-resource-destroy": "Add destroy() function to resource for proper cleanup",
                    "missing-resource-access": "Add access(all) or appropriate access modifier",
                }[i.kind],
                auto_fixable=i.kind == "missing-resource-access",
            )
            for i in lifecycle.issues
        ]

        event_issues = [
            ValidationIssue(
                severity=Severity.INFO,
                type="unused-event",
                message=f"Event '{name}' is defined but never emitted",
                suggested_fix=f"Add emit {name}() call or remove event definition",
            )
            for name in events.unused_events
        ]
        event_issues.extend(
            ValidationIssue(
                severity=Severity.WARNING,
                type="missing-event-emission",
                message=f"Expected event '{name}' is not defined or emitted",
                suggested_fix=f"Define and emit {name} event",
            )
            for name in events.missing_emissions
        )

        access_issues = [
            ValidationIssue(
                severity=Severity.WARNING,
                type="missing-function-access-modifier",
                message=f"Function '{f.name}' is missing access modifier",
                location=f.location,
                suggested_fix="Add appropriate access modifier (access(all), access(contract), etc.)",
                auto_fixable=True,
            )
            for f in function_infos if not f.has_access_modifier
        ]
        access_issues.extend(
            ValidationIssue(
                severity=Severity.CRITICAL,
                type="missing-resource-access-modifier",
                message=f"Resource '{r.name}' is missing access modifier",
                location=r.location,
                suggested_fix="Add access(all) or appropriate access modifier",
                auto_fixable=True,
            )
            for r in resource_infos if not r.has_access_modifier
        )

        return [
            ValidationResult(
                type=ValidationType.COMPLETENESS,
                passed=not functions.incomplete_functions and not functions.missing_required_functions,
                issues=function_issues,
                score=functions.completeness_percentage,
                message="Function completeness",
            ),
            ValidationResult(
                type=ValidationType.COMPLETENESS,
                passed=lifecycle.lifecycle_score >= 80,
                issues=lifecycle_issues,
                score=lifecycle.lifecycle_score,
                message="Resource lifecycle",
            ),
            ValidationResult(
                type=ValidationType.BEST_PRACTICES,
                passed=events.emission_completeness >= 70,
                issues=event_issues,
                score=events.emission_completeness,
                message="Event emission",
            ),
            ValidationResult(
                type=ValidationType.COMPLETENESS,
                passed=access.access_control_score >= 90,
                issues=access_issues,
                score=access.access_control_score,
                message="Access control",
            ),
        ]

    @staticmethod
    def _recommendations(
        functions: FunctionCompletenessReport,
        lifecycle: ResourceLifecycleReport,
        events: EventEmissionReport,
        function_infos: List[FunctionInfo],
        resource_infos: List[ResourceInfo],
    ) -> List[str]:
        recommendations = []

        if functions.incomplete_functions:
            names = ", ".join(f.name for f in functions.incomplete_functions)
            recommendations.append(
                f"Complete {len(functions.incomplete_functions)} incomplete function(s): {names}"
            )
        if functions.missing_required_functions:
            recommendations.append(
                f"Implement missing required functions: {', '.join(functions.missing_required_functions)}"
            )

        missing_methods = [
            f"{i.resource}.{'init' if i.kind == 'missing-resource-init' else 'destroy'}()"
            for i in lifecycle.issues if i.kind != "missing-resource-access"
        ]
        if missing_methods:
            recommendations.append(f"Add missing resource lifecycle methods: {', '.join(missing_methods)}")

        if events.unused_events:
            recommendations.append(
                f"Consider emitting or removing unused events: {', '.join(events.unused_events)}"
            )
        if events.missing_emissions:
            recommendations.append(f"Add expected event emissions: {', '.join(events.missing_emissions)}")

        functions_without, resources_without = _access_counts(function_infos, resource_infos)
        if functions_without:
            recommendations.append(f"Add access modifiers to {functions_without} function(s)")
        if resources_without:
            recommendations.append(f"Add access modifiers to {resources_without} resource(s)")

        return recommendations


def _access_counts(functions: List[FunctionInfo], resources: List[ResourceInfo]) -> Tuple[int, int]:
    return (
        sum(1 for f in functions if not f.has_access_modifier),
        sum(1 for r in resources if not r.has_access_modifier),
    )


def validate_functional_completeness(
    code: str, contract_type=None, telemetry: Optional[PipelineTelemetry] = None
) -> FunctionalCompletenessResult:
    """Module-level wrapper around FunctionalCompletenessValidator.validate"""
    return FunctionalCompletenessValidator(telemetry=telemetry).validate(code, contract_type)
