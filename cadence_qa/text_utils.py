"""
Low-level text helpers shared by the analyzers.

The analyzers work over raw Cadence source with regular expressions; these
helpers only provide offset arithmetic and brace-depth scanning. Each
analyzer keeps its own patterns and decides for itself what a match means.
"""

import re
from typing import List, Optional, Tuple

from .models import CodeLocation


_INTERFACE_PATTERN = re.compile(r'\b(?:resource|struct|contract)\s+interface\s+\w+[^{;]*\{')
# string literals are matched first so `//` inside them is not a comment
_COMMENT_PATTERN = re.compile(r'"(?:\\.|[^"\\\n])*"|//[^\n]*|/\*.*?\*/', re.DOTALL)

_INTEGER_TYPES = {
    "Int", "Int8", "Int16", "Int32", "Int64", "Int128", "Int256",
    "UInt", "UInt8", "UInt16", "UInt32", "UInt64", "UInt128", "UInt256",
    "Word8", "Word16", "Word32", "Word64",
}


def strip_markdown_fences(code: str) -> str:
    """Remove ```cadence / ``` fences a model may wrap around code"""
    code = code.strip()
    if code.startswith("```cadence"):
        code = code[len("```cadence"):]
    elif code.startswith("```"):
        code = code[len("```"):]
    if code.endswith("```"):
        code = code[:-len("```")]
    return code.strip()


def location_at(code: str, offset: int) -> CodeLocation:
    """Line (1-based) and column (0-based) of `offset`"""
    offset = max(0, min(offset, len(code)))
    line = code.count("\n", 0, offset) + 1
    column = offset - (code.rfind("\n", 0, offset) + 1)
    return CodeLocation(line=line, column=column)


def line_at(code: str, line: int) -> str:
    lines = code.split("\n")
    if 1 <= line <= len(lines):
        return lines[line - 1]
    return ""


def surrounding_lines(code: str, line: int, context: int = 2) -> str:
    lines = code.split("\n")
    start = max(0, line - context - 1)
    end = min(len(lines), line + context)
    return "\n".join(lines[start:end])


def find_matching_brace(code: str, open_index: int) -> int:
    """
    Index of the `}` closing the `{` at `open_index`, or -1 if the block
    never closes.
    """
    depth = 0
    for i in range(open_index, len(code)):
        ch = code[i]
        if ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return i
    return -1


def find_matching_paren(code: str, open_index: int) -> int:
    depth = 0
    for i in range(open_index, len(code)):
        ch = code[i]
        if ch == "(":
            depth += 1
        elif ch == ")":
            depth -= 1
            if depth == 0:
                return i
    return -1


def block_body(code: str, open_index: int) -> Tuple[str, int]:
    """
    Text between the `{` at `open_index` and its closing brace.

    Returns (body, close_index). An unterminated block runs to the end of
    the input and reports close_index == -1.
    """
    close = find_matching_brace(code, open_index)
    if close == -1:
        return code[open_index + 1:], -1
    return code[open_index + 1:close], close


def next_non_space(code: str, pos: int) -> int:
    """Index of the first non-whitespace character at or after `pos`"""
    while pos < len(code) and code[pos].isspace():
        pos += 1
    return pos


def scan_type_annotation(code: str, pos: int) -> Tuple[Optional[str], int]:
    """
    Read an optional `: Type` annotation that starts at `pos`.

    Composite types such as `@{NonFungibleToken.NFT}`, `{String: UInt64}`,
    `[UInt64]` or `Capability<&{Receiver}>` are read whole; a `{` that
    follows a complete type is treated as the start of a body.

    Returns (type_text, end) where `end` is just past the type, or
    (None, pos) when there is no annotation.
    """
    i = pos
    while i < len(code) and code[i] in " \t":
        i += 1
    if i >= len(code) or code[i] != ":":
        return None, pos

    i += 1
    while i < len(code) and code[i] in " \t":
        i += 1
    start = i
    depth = 0

    while i < len(code):
        ch = code[i]
        if ch in "([<":
            depth += 1
        elif ch in ")]>":
            if depth == 0:
                break
            depth -= 1
        elif ch == "{":
            so_far = code[start:i].strip()
            if depth == 0 and so_far and so_far[-1] not in "@&":
                break
            depth += 1
        elif ch == "}":
            if depth == 0:
                break
            depth -= 1
        elif ch == "\n" and depth == 0:
            break
        i += 1

    text = code[start:i].rstrip()
    if not text:
        return None, pos
    return text, start + len(text)


def interface_spans(code: str) -> List[Tuple[int, int]]:
    """(start, end) offsets of every `... interface Name { ... }` block"""
    spans = []
    masked = mask_comments(code)
    for match in _INTERFACE_PATTERN.finditer(masked):
        close = find_matching_brace(masked, match.end() - 1)
        spans.append((match.start(), close if close != -1 else len(code)))
    return spans


def in_spans(offset: int, spans: List[Tuple[int, int]]) -> bool:
    return any(start <= offset <= end for start, end in spans)


def mask_comments(code: str) -> str:
    """Blank out comments while keeping every offset unchanged"""
    return _COMMENT_PATTERN.sub(_blank_comment, code)


def _blank_comment(match: "re.Match") -> str:
    text = match.group(0)
    if text.startswith('"'):
        return text
    return re.sub(r"[^\n]", " ", text)


def default_value_for_type(type_name: Optional[str]) -> str:
    """A literal of the given Cadence type, `nil` when none is obvious"""
    if not type_name:
        return "nil"
    t = type_name.strip()
    if t.endswith("?"):
        return "nil"
    if t == "String":
        return '""'
    if t in _INTEGER_TYPES:
        return "0"
    if t in ("UFix64", "Fix64"):
        return "0.0"
    if t == "Bool":
        return "false"
    if t == "Address":
        return "self.account.address"
    if t.startswith("[") and t.endswith("]"):
        return "[]"
    if t.startswith("{") and ":" in t and t.endswith("}"):
        return "{}"
    return "nil"
