"""Locate function bodies by brace depth or indentation.

Nested functions belong to the function that encloses them; only top-most
functions are reported.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

from ..languages import LanguageProfile

_NAME_PATTERNS = (
    re.compile(r"\b(?:def|fn|func|function)\s*\*?\s+(?:\([^)]*\)\s*)?([A-Za-z_$][\w$]*)"),
    re.compile(r"([A-Za-z_$][\w$]*)\s*[:=]\s*(?:async\s*)?(?:function\b|\()"),
    re.compile(r"([A-Za-z_$][\w$]*)\s*(?:<[^>]*>)?\s*\("),
)


@dataclass
class FunctionBlock:
    name: str
    start_line: int  # 1-based
    lines: list[str] = field(default_factory=list)
    source_lines: int = 0  # non-blank, non-comment

    @property
    def end_line(self) -> int:
        return self.start_line + len(self.lines) - 1


def indent_width(line: str) -> int:
    """Leading whitespace width with tabs counted as 4 spaces."""
    expanded = line.expandtabs(4)
    return len(expanded) - len(expanded.lstrip())


def function_name(stripped: str) -> str:
    for pattern in _NAME_PATTERNS:
        match = pattern.search(stripped)
        if match:
            return match.group(1)
    return "<anonymous>"


def find_function_blocks(source: str, profile: LanguageProfile) -> list[FunctionBlock]:
    if not profile.known or not profile.function_patterns:
        return []
    lines = profile.masked_lines(source)
    if profile.block_style == "indent":
        return _indent_blocks(lines, profile)
    return _brace_blocks(lines, profile)


def _is_source_line(line: str, profile: LanguageProfile) -> bool:
    stripped = line.strip()
    return bool(stripped) and not profile.is_comment(stripped)


def _brace_blocks(lines: list[str], profile: LanguageProfile) -> list[FunctionBlock]:
    blocks: list[FunctionBlock] = []
    current: FunctionBlock | None = None
    depth = 0
    start_depth = 0

    for number, line in enumerate(lines, start=1):
        stripped = line.strip()
        code = profile.code_part(line)

        if (
            current is None
            and profile.is_function_declaration(stripped)
            and not code.rstrip().endswith(";")
        ):
            current = FunctionBlock(name=function_name(stripped), start_line=number)
            start_depth = depth

        closes = code.count("}")
        depth += code.count("{") - closes

        if current is not None:
            current.lines.append(line)
            if _is_source_line(line, profile):
                current.source_lines += 1
            if depth <= start_depth and closes > 0:
                blocks.append(current)
                current = None

    if current is not None:
        blocks.append(current)
    return blocks


def _indent_blocks(lines: list[str], profile: LanguageProfile) -> list[FunctionBlock]:
    blocks: list[FunctionBlock] = []
    current: FunctionBlock | None = None
    def_indent = 0
    open_parens = 0

    def close() -> None:
        # Trailing blank and comment lines belong to whatever follows.
        while current.lines and not _is_source_line(current.lines[-1], profile):
            current.lines.pop()
        blocks.append(current)

    for number, line in enumerate(lines, start=1):
        stripped = line.strip()

        if current is not None:
            if open_parens > 0:
                open_parens += _paren_balance(profile.code_part(line))
            elif _is_source_line(line, profile) and indent_width(line) <= def_indent:
                close()
                current = None

        if current is not None:
            current.lines.append(line)
            if _is_source_line(line, profile):
                current.source_lines += 1
            continue

        if profile.is_function_declaration(stripped):
            current = FunctionBlock(name=function_name(stripped), start_line=number, lines=[line])
            current.source_lines = 1
            def_indent = indent_width(line)
            open_parens = max(0, _paren_balance(profile.code_part(line)))

    if current is not None:
        close()
    return blocks


def _paren_balance(code: str) -> int:
    return code.count("(") - code.count(")")
