"""Heuristic per-function cyclomatic complexity."""

from __future__ import annotations

import re
from dataclasses import dataclass, field

from ..languages import LanguageProfile, get_profile
from .blocks import find_function_blocks

# Average complexity at which the score saturates.
COMPLEXITY_CEILING = 20.0


@dataclass
class FunctionComplexity:
    name: str
    complexity: int
    start_line: int = 0


@dataclass
class FileComplexity:
    functions: list[FunctionComplexity] = field(default_factory=list)

    @property
    def average(self) -> float:
        if not self.functions:
            return 0.0
        return sum(f.complexity for f in self.functions) / len(self.functions)

    @property
    def most_complex(self) -> FunctionComplexity | None:
        return max(self.functions, key=lambda f: f.complexity, default=None)


def analyze_complexity(source: str, language: str) -> FileComplexity:
    """Base 1 per function plus one per branching keyword or operator."""
    profile = get_profile(language)
    if not profile.known:
        return FileComplexity()

    keyword_re = _keyword_regex(profile)
    functions = []
    for block in find_function_blocks(source, profile):
        complexity = 1
        for line in block.lines:
            complexity += branch_count(profile.code_part(line), profile, keyword_re)
        functions.append(
            FunctionComplexity(name=block.name, complexity=complexity, start_line=block.start_line)
        )
    return FileComplexity(functions=functions)


def branch_count(
    code: str, profile: LanguageProfile, keyword_re: re.Pattern[str] | None = None
) -> int:
    if keyword_re is None:
        keyword_re = _keyword_regex(profile)
    count = len(keyword_re.findall(code)) if keyword_re is not None else 0
    for operator in profile.branch_operators:
        count += code.count(operator)
    if profile.counts_ternary:
        count += code.count(" ? ")
    return count


def compute_complexity_score(average: float) -> float:
    """``min(100, average / 20 * 100)``; 0 when no functions were found."""
    if average <= 0:
        return 0.0
    return min(100.0, average / COMPLEXITY_CEILING * 100.0)


def _keyword_regex(profile: LanguageProfile) -> re.Pattern[str] | None:
    if not profile.branch_keywords:
        return None
    return re.compile(r"\b(?:" + "|".join(map(re.escape, profile.branch_keywords)) + r")\b")
