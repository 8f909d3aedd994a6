"""Language profiles: the single source of truth for per-language heuristics.

Every analyzer that needs to know something about a language (comment syntax,
where functions start, which keywords branch, how imports are written) asks
the profile selected by :func:`detect_language`. Adding a language means adding
one ``LanguageProfile`` entry to ``LANGUAGES``.

The ``unknown`` profile matches nothing, so language-specific detectors never
report anything for files they do not understand.
"""

import re as _re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional


@dataclass(frozen=True)
class LanguageProfile:
    """Everything the text-scanning analyzers need to know about a language."""

    name: str
    extensions: tuple[str, ...] = ()

    # False only for the catch-all profile.
    known: bool = True

    # Prefixes that make a whole (stripped) line a comment.
    comment_prefixes: tuple[str, ...] = ()

    # Marker that starts a trailing comment after code.
    inline_comment: Optional[str] = None

    # String literal patterns removed before keyword/number scanning.
    string_patterns: tuple[str, ...] = ()

    # Delimiters of string literals that may span lines.
    block_string_delimiters: tuple[str, ...] = ()

    # Function declaration regexes, matched against the stripped line.
    function_patterns: tuple[str, ...] = ()

    # Leading keywords that look like calls but are control flow.
    control_keywords: tuple[str, ...] = ()

    # "brace" (track {} depth) or "indent" (track indentation)
    block_style: str = "brace"

    # Branching keywords (word-boundary) and operators (literal). Each
    # occurrence adds 1 to a function's complexity.
    branch_keywords: tuple[str, ...] = ()
    branch_operators: tuple[str, ...] = ()
    counts_ternary: bool = False

    # Exception handler opener, matched against the stripped line.
    catch_pattern: Optional[str] = None

    # Lines declaring named values; numeric literals there are not magic.
    declaration_patterns: tuple[str, ...] = ()

    # Import regexes. Group 1 is captured as the imported module/path.
    import_patterns: tuple[str, ...] = ()

    # Grouped imports: (opening line regex, member regex). Closed by ")".
    import_block: Optional[tuple[str, str]] = None

    # Separator used to split an import path into segments.
    import_separator: str = "/"

    _compiled: dict = field(default_factory=dict, compare=False, repr=False)

    # ── Compiled pattern access ────────────────────────────────────

    def _regex(self, key: str, patterns: tuple[str, ...]) -> Optional["_re.Pattern[str]"]:
        if key not in self._compiled:
            self._compiled[key] = (
                _re.compile("|".join(f"(?:{p})" for p in patterns)) if patterns else None
            )
        return self._compiled[key]

    # ── Line classification ────────────────────────────────────────

    def is_comment(self, stripped: str) -> bool:
        return bool(self.comment_prefixes) and stripped.startswith(self.comment_prefixes)

    def is_function_declaration(self, stripped: str) -> bool:
        regex = self._regex("function", self.function_patterns)
        if regex is None or self.is_comment(stripped):
            return False
        if self.control_keywords:
            head = _re.match(r"[A-Za-z_]\w*", stripped)
            if head and head.group(0) in self.control_keywords:
                return False
        return regex.search(stripped) is not None

    def is_declaration(self, stripped: str) -> bool:
        regex = self._regex("declaration", self.declaration_patterns)
        return regex is not None and regex.search(stripped) is not None

    def is_catch(self, stripped: str) -> bool:
        if self.catch_pattern is None:
            return False
        return self._regex("catch", (self.catch_pattern,)).search(stripped) is not None

    # ── Text cleanup ───────────────────────────────────────────────

    def strip_strings(self, line: str) -> str:
        """Replace string literals with empty quotes."""
        regex = self._regex("string", self.string_patterns)
        return regex.sub('""', line) if regex is not None else line

    def code_part(self, line: str) -> str:
        """Return the line with strings and comments removed."""
        stripped = line.strip()
        if self.is_comment(stripped):
            return ""
        cleaned = self.strip_strings(line)
        if self.inline_comment is not None:
            pos = cleaned.find(self.inline_comment)
            if pos >= 0:
                cleaned = cleaned[:pos]
        return cleaned

    def comment_part(self, line: str) -> Optional[str]:
        """Return the comment text of a line, or None if it has none."""
        stripped = line.strip()
        if self.is_comment(stripped):
            return stripped
        if self.inline_comment is None:
            return None
        cleaned = self.strip_strings(line)
        pos = cleaned.find(self.inline_comment)
        return cleaned[pos:] if pos >= 0 else None

    def masked_lines(self, source: str) -> list[str]:
        """Split ``source`` into lines with multi-line string literals blanked.

        Lines wholly inside such a literal come back empty, and the lines that
        open or close one keep their code with the literal reduced to ``""``.
        The line count never changes, so line numbers stay valid.
        """
        lines = source.splitlines()
        if not self.block_string_delimiters:
            return lines

        masked: list[str] = []
        open_delimiter: Optional[str] = None
        for line in lines:
            if open_delimiter is not None:
                end = line.find(open_delimiter)
                if end < 0:
                    masked.append("")
                    continue
                indent = line[: len(line) - len(line.lstrip())]
                line = indent + '""' + line[end + len(open_delimiter):]
                open_delimiter = None
            line, open_delimiter = self._cut_open_string(line)
            masked.append(line)
        return masked

    def _cut_open_string(self, line: str) -> tuple[str, Optional[str]]:
        """Truncate a line at a string literal left open at its end."""
        if self.is_comment(line.strip()):
            return line, None
        for match in self._open_string_regex().finditer(line):
            if match.lastgroup == "comment":
                break
            if match.lastgroup == "open":
                return self.strip_strings(line[: match.start()]) + '""', match.group("open")
        return line, None

    def _open_string_regex(self) -> "_re.Pattern[str]":
        # A delimiter not repeated later on the line opens a literal; closed
        # literals and the inline comment marker are consumed first.
        if "open_string" not in self._compiled:
            opens = "|".join(
                f"{_re.escape(d)}(?!.*{_re.escape(d)})" for d in self.block_string_delimiters
            )
            parts = [f"(?P<open>{opens})"] + [f"(?:{p})" for p in self.string_patterns]
            if self.inline_comment is not None:
                parts.append(f"(?P<comment>{_re.escape(self.inline_comment)})")
            self._compiled["open_string"] = _re.compile("|".join(parts))
        return self._compiled["open_string"]

    # ── Imports ────────────────────────────────────────────────────

    def import_regex(self) -> Optional["_re.Pattern[str]"]:
        return self._regex("import", self.import_patterns)

    def import_candidates(self, module: str) -> list[str]:
        """Names an import may refer to, most specific first.

        ``./lib/parser.js`` -> ["parser"]; ``pkg.sub.mod`` -> ["mod", "sub", "pkg"].
        """
        module = module.strip().strip("'\"")
        if self.import_separator == "/":
            last = module.rstrip("/").rsplit("/", 1)[-1]
            if not last or last.startswith("."):
                return []
            return [Path(last).stem if Path(last).suffix.lower() in SOURCE_EXTENSIONS else last]
        segments = [s for s in module.split(self.import_separator) if s]
        ignored = {"crate", "self", "super", "*"}
        return [s for s in reversed(segments) if s not in ignored and not s.startswith("{")]


# ── Re-usable building blocks ──────────────────────────────────────

_DOUBLE_QUOTE_STR = r'"(?:\\.|[^"\\])*"'
_SINGLE_QUOTE_STR = r"'(?:\\.|[^'\\])*'"
_BACKTICK_STR = r"`[^`]*`"
_C_COMMENT_PREFIXES = ("//", "/*", "*")

_JS_FUNCTIONS = (
    r"\bfunction\b\s*\*?\s*[\w$]*\s*\(",
    r"=>\s*\{",
    r"^(?:(?:export|default|public|private|protected|static|async|readonly|override|get|set)\s+)*"
    r"[A-Za-z_$][\w$]*\s*(?:<[^>]*>)?\s*\([^;]*\)\s*(?::\s*[^{=;]+)?\{",
)
_C_CONTROL = ("if", "for", "while", "switch", "catch", "with", "return", "else", "do", "try", "new")
_JS_DECLARATIONS = (r"^(?:export\s+)?(?:declare\s+)?(?:const|let|var|enum)\s",)
_JS_IMPORTS = (
    r"^\s*import\s+(?:[^'\"]*?\s+from\s+)?['\"]([^'\"]+)['\"]",
    r"^\s*export\s+[^'\"]*?\s+from\s+['\"]([^'\"]+)['\"]",
    r"\brequire\(\s*['\"]([^'\"]+)['\"]\s*\)",
)
_JS_BRANCHES = ("if", "for", "while", "case", "catch")


# ── Language definitions ───────────────────────────────────────────

LANGUAGES: dict[str, LanguageProfile] = {
    "python": LanguageProfile(
        name="python",
        extensions=(".py",),
        comment_prefixes=("#",),
        inline_comment="#",
        string_patterns=(r'"""[^\n]*?"""', r"'''[^\n]*?'''", _DOUBLE_QUOTE_STR, _SINGLE_QUOTE_STR),
        block_string_delimiters=('"""', "'''"),
        function_patterns=(r"^(?:async\s+)?def\s+\w+",),
        block_style="indent",
        branch_keywords=("if", "elif", "for", "while", "except", "and", "or"),
        catch_pattern=r"^except\b[^:]*:",
        declaration_patterns=(r"^[A-Z][A-Z0-9_]*\s*(?::[^=]+)?=(?!=)",),
        import_patterns=(r"^\s*from\s+([\w.]+)\s+import\b", r"^\s*import\s+([\w.]+)"),
        import_separator=".",
    ),
    "javascript": LanguageProfile(
        name="javascript",
        extensions=(".js", ".jsx"),
        comment_prefixes=_C_COMMENT_PREFIXES,
        inline_comment="//",
        string_patterns=(_BACKTICK_STR, _DOUBLE_QUOTE_STR, _SINGLE_QUOTE_STR),
        block_string_delimiters=("`",),
        function_patterns=_JS_FUNCTIONS,
        control_keywords=_C_CONTROL,
        branch_keywords=_JS_BRANCHES,
        branch_operators=("&&", "||"),
        counts_ternary=True,
        catch_pattern=r"\bcatch\b",
        declaration_patterns=_JS_DECLARATIONS,
        import_patterns=_JS_IMPORTS,
    ),
    "typescript": LanguageProfile(
        name="typescript",
        extensions=(".ts", ".tsx"),
        comment_prefixes=_C_COMMENT_PREFIXES,
        inline_comment="//",
        string_patterns=(_BACKTICK_STR, _DOUBLE_QUOTE_STR, _SINGLE_QUOTE_STR),
        block_string_delimiters=("`",),
        function_patterns=_JS_FUNCTIONS,
        control_keywords=_C_CONTROL,
        branch_keywords=_JS_BRANCHES,
        branch_operators=("&&", "||"),
        counts_ternary=True,
        catch_pattern=r"\bcatch\b",
        declaration_patterns=_JS_DECLARATIONS,
        import_patterns=_JS_IMPORTS,
    ),
    "go": LanguageProfile(
        name="go",
        extensions=(".go",),
        comment_prefixes=_C_COMMENT_PREFIXES,
        inline_comment="//",
        string_patterns=(_BACKTICK_STR, _DOUBLE_QUOTE_STR),
        block_string_delimiters=("`",),
        function_patterns=(r"^func\s+",),
        branch_keywords=("if", "for", "case"),
        branch_operators=("&&", "||"),
        declaration_patterns=(r"^(?:const|var)\s", r"^\w+(?:\s*,\s*\w+)*\s*:="),
        import_patterns=(r'^\s*import\s+(?:[\w.]+\s+)?"([^"]+)"',),
        import_block=(r"^\s*import\s*\(\s*$", r'^\s*(?:[\w.]+\s+)?"([^"]+)"'),
    ),
    "rust": LanguageProfile(
        name="rust",
        extensions=(".rs",),
        comment_prefixes=_C_COMMENT_PREFIXES,
        inline_comment="//",
        string_patterns=(_DOUBLE_QUOTE_STR,),
        function_patterns=(
            r"^(?:pub(?:\([\w:\s]+\))?\s+)?(?:const\s+)?(?:async\s+)?(?:unsafe\s+)?"
            r"(?:extern\s+\"\w+\"\s+)?fn\s+\w+",
        ),
        branch_keywords=("if", "for", "while", "match"),
        branch_operators=("&&", "||"),
        declaration_patterns=(r"^(?:pub(?:\([\w:\s]+\))?\s+)?(?:const|static|let)\s",),
        import_patterns=(r"^\s*(?:pub(?:\([\w:\s]+\))?\s+)?use\s+([\w:]+)", r"^\s*(?:pub\s+)?mod\s+(\w+)\s*;"),
        import_separator="::",
    ),
    "java": LanguageProfile(
        name="java",
        extensions=(".java",),
        comment_prefixes=_C_COMMENT_PREFIXES,
        inline_comment="//",
        string_patterns=(_DOUBLE_QUOTE_STR, r"'(?:\\.|[^'\\])'"),
        function_patterns=(
            r"^(?:(?:public|private|protected|static|final|abstract|synchronized|native)\s+)+"
            r"[\w<>\[\],.?\s]*?\w+\s*\([^;]*\)\s*(?:throws\s+[\w.,\s]+)?\{",
        ),
        control_keywords=_C_CONTROL,
        branch_keywords=_JS_BRANCHES,
        branch_operators=("&&", "||"),
        counts_ternary=True,
        catch_pattern=r"\bcatch\b",
        declaration_patterns=(r"\bfinal\b",),
        import_patterns=(r"^\s*import\s+(?:static\s+)?([\w.]+)\s*;",),
        import_separator=".",
    ),
}

UNKNOWN = LanguageProfile(name="unknown", known=False)

_EXTENSION_MAP: dict[str, str] = {
    ext: profile.name for profile in LANGUAGES.values() for ext in profile.extensions
}

SOURCE_EXTENSIONS: frozenset[str] = frozenset(_EXTENSION_MAP)


def detect_language(path: str | Path) -> str:
    """Language tag for a path, derived from its extension alone."""
    return _EXTENSION_MAP.get(Path(path).suffix.lower(), UNKNOWN.name)


def get_profile(language: str) -> LanguageProfile:
    return LANGUAGES.get(language, UNKNOWN)


def is_source_file(path: str | Path) -> bool:
    return Path(path).suffix.lower() in SOURCE_EXTENSIONS
