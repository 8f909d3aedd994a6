"""Line-based code smell heuristics.

Counters:
    god_function     function body longer than 60 source lines
    deep_nesting     line indented more than 4 levels
    long_param_list  declaration with more than 5 parameters
    empty_catch      catch/except block with an empty (or ``pass``) body
    todo_fixme       TODO/FIXME/HACK/XXX in a comment
    magic_number     numeric literal outside a declaration line

These are approximations from text scanning, not parsing.
"""

from __future__ import annotations

import re
from dataclasses import asdict, dataclass

from ..languages import LanguageProfile, get_profile
from .blocks import find_function_blocks, indent_width

GOD_FUNCTION_LINES = 60
MAX_NESTING_LEVEL = 4
MAX_PARAMETERS = 5
SMELL_DENSITY_SCALE = 5000

ALLOWED_NUMBERS = frozenset({0.0, 1.0, -1.0, 2.0, 100.0})

_TODO_RE = re.compile(r"\b(?:TODO|FIXME|HACK|XXX)\b", re.IGNORECASE)
_NUMBER_RE = re.compile(r"(?<![\w.])-?\d+(?:\.\d+)?(?![\w.])")
_EMPTY_BODIES = frozenset({"pass", "..."})
_OPENERS = {"(": ")", "[": "]", "{": "}", "<": ">"}


@dataclass
class FileSmells:
    loc: int = 0
    god_function: int = 0
    deep_nesting: int = 0
    long_param_list: int = 0
    empty_catch: int = 0
    todo_fixme: int = 0
    magic_number: int = 0

    @property
    def total(self) -> int:
        return (
            self.god_function
            + self.deep_nesting
            + self.long_param_list
            + self.empty_catch
            + self.todo_fixme
            + self.magic_number
        )

    def to_dict(self) -> dict[str, int]:
        data = asdict(self)
        data["total"] = self.total
        return data

    def summary(self) -> list[str]:
        """Non-zero counters as evidence strings."""
        labels = [
            ("god_function", "long functions"),
            ("deep_nesting", "deeply nested lines"),
            ("long_param_list", "long parameter lists"),
            ("empty_catch", "empty catch blocks"),
            ("todo_fixme", "TODO/FIXME markers"),
            ("magic_number", "magic numbers"),
        ]
        return [f"{getattr(self, attr)} {label}" for attr, label in labels if getattr(self, attr)]


def detect_smells(source: str, language: str, loc: int | None = None) -> FileSmells:
    """Count smells in one file's source text."""
    profile = get_profile(language)
    lines = profile.masked_lines(source)
    smells = FileSmells(loc=len(lines) if loc is None else loc)
    if not profile.known:
        return smells

    for block in find_function_blocks(source, profile):
        if block.source_lines > GOD_FUNCTION_LINES:
            smells.god_function += 1

    for index, line in enumerate(lines):
        stripped = line.strip()
        if not stripped:
            continue

        comment = profile.comment_part(line)
        if comment is not None and _TODO_RE.search(comment):
            smells.todo_fixme += 1

        if profile.is_comment(stripped):
            continue

        if nesting_level(line, profile) > MAX_NESTING_LEVEL:
            smells.deep_nesting += 1

        if profile.is_function_declaration(stripped) and count_parameters(stripped) > MAX_PARAMETERS:
            smells.long_param_list += 1

        code = profile.code_part(line)
        if not profile.is_declaration(stripped):
            smells.magic_number += count_magic_numbers(code)

        if profile.is_catch(code.strip()) and _catch_is_empty(lines, index, profile):
            smells.empty_catch += 1

    return smells


def compute_smell_score(smells: FileSmells, loc: int) -> float:
    """``min(100, total / loc * 5000)``; 0 for an empty file."""
    if loc <= 0:
        return 0.0
    return min(100.0, smells.total * SMELL_DENSITY_SCALE / loc)


def nesting_level(line: str, profile: LanguageProfile) -> int:
    """Approximate nesting level from indentation.

    Indentation-blocked languages use 4-space levels; brace languages accept
    either 2- or 4-space styles.
    """
    width = indent_width(line)
    if profile.block_style == "indent":
        return width // 4
    return width // 4 if width >= 4 else width // 2


def count_parameters(declaration: str) -> int:
    """Number of top-level comma separated entries in the first (...) group."""
    start = declaration.find("(")
    if start < 0:
        return 0

    params: list[str] = []
    stack: list[str] = []
    current = ""
    for i in range(start + 1, len(declaration)):
        ch = declaration[i]
        if ch == ")" and not stack:
            break
        if ch in _OPENERS and not (ch == "<" and declaration[i - 1] == " "):
            stack.append(_OPENERS[ch])
        elif stack and ch == stack[-1] and not (ch == ">" and declaration[i - 1] == "="):
            stack.pop()
        elif ch == "," and not stack:
            params.append(current)
            current = ""
            continue
        current += ch
    params.append(current)
    return sum(1 for p in params if p.strip())


def count_magic_numbers(code: str) -> int:
    count = 0
    for match in _NUMBER_RE.finditer(code):
        if float(match.group(0)) not in ALLOWED_NUMBERS:
            count += 1
    return count


def _catch_is_empty(lines: list[str], index: int, profile: LanguageProfile) -> bool:
    if profile.block_style == "indent":
        return _indented_handler_is_empty(lines, index, profile)

    code = profile.code_part(lines[index])
    match = re.search(r"\bcatch\b", code)
    brace = code.find("{", match.end() if match else 0)
    if brace >= 0:
        rest = code[brace + 1:].strip()
        if rest:
            return rest.startswith("}")

    for following in lines[index + 1:]:
        stripped = profile.code_part(following).strip()
        if not stripped:
            continue
        if brace < 0:
            # Opening brace on its own line.
            if not stripped.startswith("{"):
                return False
            brace = 0
            stripped = stripped[1:].strip()
            if not stripped:
                continue
        return stripped.startswith("}")
    return False


def _indented_handler_is_empty(lines: list[str], index: int, profile: LanguageProfile) -> bool:
    handler = profile.code_part(lines[index]).strip()
    inline = handler.split(":", 1)[1].strip() if ":" in handler else ""
    if inline:
        return inline in _EMPTY_BODIES

    handler_indent = indent_width(lines[index])
    body: list[str] = []
    for following in lines[index + 1:]:
        stripped = following.strip()
        if not stripped or profile.is_comment(stripped):
            continue
        if indent_width(following) <= handler_indent:
            break
        body.append(profile.code_part(following).strip())
    return all(statement in _EMPTY_BODIES for statement in body)
