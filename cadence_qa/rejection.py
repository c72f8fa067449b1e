"""
Hard rejection rules for generated Cadence.

A rejected snippet is discarded regardless of its quality score: it uses
pre-1.0 syntax or storage APIs, or still contains `undefined` placeholders.
Patterns are tried in order and the first hit decides the reason.
"""

import re
from dataclasses import dataclass
from typing import Dict, Iterable, Optional

from .config import DEFAULT_PROHIBITED_PATTERNS
from .text_utils import mask_comments
from .undefined_values import UndefinedValueDetector


_LEGACY_PATTERNS = [
    (re.compile(r'\bpub\s+'), 'Contains legacy "pub" keyword'),
    (re.compile(r'\bpub\(set\)\s+'), 'Contains legacy "pub(set)" keyword'),
    (re.compile(r'\baccount\.save\('), "Uses legacy storage API"),
    (re.compile(r'\baccount\.link\b'), "Uses legacy linking API"),
    (re.compile(r'\baccount\.borrow\b'), "Uses legacy borrow API"),
    (re.compile(r'\bAuthAccount\b'), "Uses legacy AuthAccount type"),
]

UNDEFINED_REASON = "Contains undefined placeholder values"


@dataclass(frozen=True)
class RejectionCheck:
    should_reject: bool
    reason: str = ""
    pattern: Optional[str] = None

    def to_dict(self) -> Dict:
        return {"should_reject": self.should_reject, "reason": self.reason, "pattern": self.pattern}


def check_rejection(
    code: str,
    extra_patterns: Iterable[str] = (),
    undefined_detector: Optional[UndefinedValueDetector] = None,
) -> RejectionCheck:
    """
    Decide whether `code` must be rejected outright.

    Args:
        code: Cadence source
        extra_patterns: Additional literal substrings to forbid; the default
                        prohibited patterns are already covered above
        undefined_detector: Detector used for `undefined` literals

    Returns:
        RejectionCheck with the first matching reason
    """
    masked = mask_comments(code or "")

    for pattern, reason in _LEGACY_PATTERNS:
        if pattern.search(masked):
            return RejectionCheck(True, reason, pattern.pattern)

    detector = undefined_detector or UndefinedValueDetector()
    if any(v.kind == "literal-undefined" for v in detector.scan(code or "")):
        return RejectionCheck(True, UNDEFINED_REASON, "undefined")

    for literal in extra_patterns:
        if literal and literal not in DEFAULT_PROHIBITED_PATTERNS and literal in masked:
            return RejectionCheck(True, f'Contains prohibited pattern "{literal}"', literal)

    return RejectionCheck(False)
