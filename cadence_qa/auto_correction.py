"""
Auto-Correction Engine
======================

Rewrites the mechanically fixable findings of the error detector: one rule
per finding type, applied as text edits at offsets the detector reported.

The engine re-runs detection after every pass and stops as soon as a pass
changes nothing. A pass whose edit leaves its finding in place is rolled
back, so correcting already-corrected code is a no-op. Findings
that need business logic (e.g. a missing required function) are left for
regeneration.
"""

import re
from collections import Counter
from dataclasses import dataclass
from typing import List, Optional, Tuple

from .error_detector import ErrorDetector
from .models import (
    CorrectionRecord,
    CorrectionResult,
    DetectedError,
    ErrorDetectionResult,
    ErrorType,
)
from .telemetry import PipelineTelemetry
from .text_utils import default_value_for_type, find_matching_brace, location_at, mask_comments


MAX_PASSES = 5
INDENT = "    "

_CONTRACT_OPENING = re.compile(r'access\(all\)\s+contract\s+(?!interface\b)\w+[^{]*\{')
_ANY_INIT = re.compile(r'\binit\s*\(')


@dataclass
class _Edit:
    start: int
    end: int
    text: str
    error: DetectedError
    reasoning: str


def _line_indent(code: str, offset: int) -> str:
    line_start = code.rfind("\n", 0, offset) + 1
    match = re.match(r'[ \t]*', code[line_start:])
    return match.group(0)


def _insert_before_closing(code: str, close_index: int, line: str) -> Tuple[int, str]:
    """
    Offset and text that put `line` on its own line just above the `}` at
    `close_index`, indented one level deeper than the brace.
    """
    line_start = code.rfind("\n", 0, close_index) + 1
    before = code[line_start:close_index]
    if before.strip() == "":
        return line_start, f"{before}{INDENT}{line}\n"
    indent = _line_indent(code, close_index)
    return close_index, f"\n{indent}{INDENT}{line}\n{indent}"


class AutoCorrectionEngine:
    """Applies deterministic rewrites for auto-fixable findings"""

    def __init__(self, detector: Optional[ErrorDetector] = None, telemetry: Optional[PipelineTelemetry] = None):
        self.telemetry = telemetry or PipelineTelemetry()
        self.detector = detector or ErrorDetector(telemetry=self.telemetry)

    def correct(self, code: str, contract_type=None) -> CorrectionResult:
        """
        Correct `code`.

        Returns:
            CorrectionResult; `requires_regeneration` is set when critical
            findings survive or confidence in the rewrites is low
        """
        code = code or ""
        original = self.detector.detect(code, contract_type)
        category = original.contract_type

        current = code
        detection = original
        applied: List[CorrectionRecord] = []
        stuck = set()
        passes = 0

        try:
            while passes < MAX_PASSES:
                edits = self._plan_edits(current, detection, stuck)
                if not edits:
                    break
                candidate, records, done = self._apply(current, edits)
                candidate_detection = self.detector.detect(candidate, category)
                persisting = self._persisting(detection, candidate_detection, done)
                if persisting:
                    # Roll the pass back and replan it without the edits that
                    # could not clear their finding
                    stuck.update(persisting)
                    continue
                current, detection = candidate, candidate_detection
                applied.extend(records)
                passes += 1
        except Exception as e:
            self.telemetry.error(f"Auto-correction failed: {e}")
            return CorrectionResult(
                success=False,
                corrected_code=code,
                corrections_applied=[],
                original_issue_count=original.total_errors,
                remaining_issue_count=original.total_errors,
                confidence=0,
                requires_regeneration=True,
            )

        confidence = min((r.confidence for r in applied), default=100)
        remaining_critical = detection.critical_errors > 0

        if applied:
            self.telemetry.info(
                f"Auto-correction applied {len(applied)} fix(es); "
                f"{original.total_errors} -> {detection.total_errors} findings"
            )
        self.telemetry.increment("correction.applied", len(applied))

        return CorrectionResult(
            success=bool(applied) or original.total_errors == 0,
            corrected_code=current,
            corrections_applied=applied,
            original_issue_count=original.total_errors,
            remaining_issue_count=detection.total_errors,
            confidence=confidence,
            requires_regeneration=confidence < 70 or remaining_critical,
        )

    # ------------------------------------------------------------------
    # Planning
    # ------------------------------------------------------------------

    def _plan_edits(self, code: str, detection: ErrorDetectionResult, stuck: set) -> List[_Edit]:
        masked = mask_comments(code)
        edits = []
        for error in detection.auto_fixable():
            if (error.type, error.id) in stuck:
                continue
            edit = self._plan_edit(code, masked, error)
            if edit is not None:
                edits.append(edit)
        return edits

    @staticmethod
    def _persisting(before: ErrorDetectionResult, after: ErrorDetectionResult, done: List[_Edit]) -> set:
        """Keys of applied edits whose finding is still reported as often as before"""
        counts_before = Counter((e.type, e.id) for e in before.errors)
        counts_after = Counter((e.type, e.id) for e in after.errors)
        keys = {(edit.error.type, edit.error.id) for edit in done}
        return {key for key in keys if counts_after[key] >= counts_before[key]}

    def _plan_edit(self, code: str, masked: str, error: DetectedError) -> Optional[_Edit]:
        ctx = error.context

        if error.type == ErrorType.MISSING_FUNCTION_BODY:
            insert_at = ctx.get("insert_at")
            if insert_at is None:
                return None
            indent = _line_indent(code, insert_at)
            return_type = ctx.get("return_type")
            if return_type and return_type != "Void":
                value = default_value_for_type(return_type)
                if value == "nil" and not return_type.strip().endswith("?"):
                    statement = f'panic("{ctx.get("function_name", "function")} is not implemented")'
                else:
                    statement = f"return {value}"
                body = f" {{\n{indent}{INDENT}{statement}\n{indent}}}"
            else:
                body = f" {{\n{indent}}}"
            return _Edit(insert_at, insert_at, body, error, "Added an implementation body with a type-correct default")

        if error.type == ErrorType.MISSING_ACCESS_MODIFIERS:
            insert_at = ctx.get("insert_at")
            if insert_at is None:
                return None
            return _Edit(insert_at, insert_at, "access(all) ", error, "Cadence 1.0 requires explicit access modifiers")

        if error.type == ErrorType.MISSING_RESOURCE_METHODS:
            close_index = ctx.get("insert_at")
            if close_index is None:
                return None
            offset, text = _insert_before_closing(code, close_index, "destroy() {}")
            return _Edit(offset, offset, text, error, "Added an explicit destroy() stub to the resource")

        if error.type == ErrorType.INCOMPLETE_RESOURCE_DEFINITION:
            insert_at = ctx.get("insert_at")
            if insert_at is None:
                return None
            indent = _line_indent(code, insert_at)
            return _Edit(insert_at, insert_at, f" {{\n{indent}}}", error, "Gave the resource an empty body")

        if error.type == ErrorType.MISSING_EVENT_DEFINITIONS:
            opening = _CONTRACT_OPENING.search(masked)
            definition = ctx.get("definition")
            if opening is None or not definition:
                return None
            indent = _line_indent(code, opening.start()) + INDENT
            return _Edit(opening.end(), opening.end(), f"\n{indent}{definition}", error, "Defined the event expected for this contract type")

        if error.type == ErrorType.MISSING_INIT_FUNCTION:
            opening = _CONTRACT_OPENING.search(masked)
            # An init with parameters already exists; nothing to stub
            if opening is None or _ANY_INIT.search(masked):
                return None
            close_index = find_matching_brace(masked, opening.end() - 1)
            if close_index == -1:
                return None
            offset, text = _insert_before_closing(code, close_index, "init() {}")
            return _Edit(offset, offset, text, error, "Added an initializer stub to the contract")

        if error.type == ErrorType.UNDEFINED_VALUE:
            start, end, replacement = ctx.get("offset"), ctx.get("end"), ctx.get("replacement", "nil")
            if start is None or end is None:
                return None
            if ctx.get("kind") == "incomplete-declaration":
                return _Edit(end, end, f" {replacement}", error, "Completed the declaration with its type default")
            return _Edit(start, end, replacement, error, "Replaced undefined with a concrete value of the declared type")

        # missing-required-function needs business logic; regeneration handles it
        return None

    # ------------------------------------------------------------------
    # Application
    # ------------------------------------------------------------------

    @staticmethod
    def _apply(code: str, edits: List[_Edit]) -> Tuple[str, List[CorrectionRecord], List[_Edit]]:
        """Apply edits back to front so earlier offsets stay valid"""
        ordered = sorted(enumerate(edits), key=lambda pair: (pair[1].start, pair[0]), reverse=True)
        records = []
        done = []
        boundary = len(code)
        for _, edit in ordered:
            if edit.end > boundary:
                continue
            original_value = code[edit.start:edit.end]
            code = code[:edit.start] + edit.text + code[edit.end:]
            boundary = edit.start
            done.append(edit)
            records.append(CorrectionRecord(
                type=edit.error.type.value,
                location=location_at(code, edit.start),
                original_value=original_value,
                corrected_value=edit.text.strip(),
                reasoning=edit.reasoning,
                confidence=edit.error.confidence,
            ))
        records.reverse()
        return code, records, done


def correct_code(code: str, contract_type=None, telemetry: Optional[PipelineTelemetry] = None) -> CorrectionResult:
    """Module-level wrapper around AutoCorrectionEngine.correct"""
    return AutoCorrectionEngine(telemetry=telemetry).correct(code, contract_type)
