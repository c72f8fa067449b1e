"""
Undefined Value Detector
========================

Finds placeholder values a model leaves behind: the literal `undefined`
(which is not a Cadence value at all) and declarations cut off after `=`.
Each hit carries a type-appropriate replacement literal when the
surrounding declaration names a type.
"""

import re
from dataclasses import dataclass
from typing import List

from .text_utils import default_value_for_type, location_at, mask_comments


_LITERAL_UNDEFINED = re.compile(r'\bundefined\b')
_INCOMPLETE_DECLARATION = re.compile(r'^([ \t]*(?:var|let)\s+\w+\s*:\s*([^=\n]+?)\s*=)[ \t]*$', re.MULTILINE)
_DECLARED_TYPE = re.compile(r':\s*([^=,)\n]+?)\s*(?:=|<-)')


@dataclass(frozen=True)
class UndefinedValue:
    kind: str  # "literal-undefined" or "incomplete-declaration"
    offset: int
    end: int
    line: int
    column: int
    line_text: str
    suggested_value: str


def _inside_string(line: str, position: int) -> bool:
    in_string = False
    for i in range(position):
        if line[i] == '"' and (i == 0 or line[i - 1] != "\\"):
            in_string = not in_string
    return in_string


def infer_replacement(line: str) -> str:
    """Default literal for the type declared on `line`, else `nil`"""
    match = _DECLARED_TYPE.search(line)
    if match:
        return default_value_for_type(match.group(1))
    return "nil"


class UndefinedValueDetector:
    """Scan code for undefined placeholders"""

    def scan(self, code: str) -> List[UndefinedValue]:
        if not code:
            return []

        masked = mask_comments(code)
        found = []

        for match in _LITERAL_UNDEFINED.finditer(masked):
            location = location_at(code, match.start())
            line_text = code.split("\n")[location.line - 1]
            if _inside_string(line_text, location.column):
                continue
            found.append(UndefinedValue(
                kind="literal-undefined",
                offset=match.start(),
                end=match.end(),
                line=location.line,
                column=location.column,
                line_text=line_text.strip(),
                suggested_value=infer_replacement(line_text),
            ))

        for match in _INCOMPLETE_DECLARATION.finditer(masked):
            location = location_at(code, match.start())
            found.append(UndefinedValue(
                kind="incomplete-declaration",
                offset=match.start(),
                end=match.end(1),
                line=location.line,
                column=location.column,
                line_text=match.group(0).strip(),
                suggested_value=default_value_for_type(match.group(2)),
            ))

        found.sort(key=lambda v: v.offset)
        return found
