"""Tests for heuristic cyclomatic complexity."""

import pytest

from debt_engine.analysis.complexity import analyze_complexity, compute_complexity_score


class TestAnalyzeComplexity:
    def test_simple_function_has_complexity_one(self):
        source = 'fn simple() {\n  println!("hello");\n}\n'
        result = analyze_complexity(source, "rust")
        assert len(result.functions) == 1
        assert result.functions[0].complexity == 1
        assert result.functions[0].name == "simple"

    def test_if_statement_adds_complexity(self):
        source = "function foo() {\n  if (x > 0) {\n    return x;\n  }\n}\n"
        result = analyze_complexity(source, "typescript")
        assert len(result.functions) == 1
        assert result.functions[0].complexity == 2

    def test_multiple_branches(self):
        source = (
            "function bar() {\n  if (a) {\n  } else if (b) {\n  }\n"
            "  for (let i=0; i<n; i++) {\n  }\n  while (c) {\n  }\n}\n"
        )
        result = analyze_complexity(source, "typescript")
        assert len(result.functions) == 1
        assert result.functions[0].complexity >= 4

    def test_boolean_operators_and_ternary(self):
        source = "function f(a, b) {\n  return a && b ? 1 : 2;\n}\n"
        result = analyze_complexity(source, "javascript")
        assert result.functions[0].complexity == 3

    def test_average_across_functions(self):
        source = "fn simple() {\n  42\n}\nfn complex() {\n  if true {\n  }\n  if false {\n  }\n}\n"
        result = analyze_complexity(source, "rust")
        assert len(result.functions) == 2
        assert result.average == pytest.approx(2.0)
        assert result.most_complex.name == "complex"

    def test_empty_source_has_no_functions(self):
        result = analyze_complexity("", "rust")
        assert result.functions == []
        assert result.average == 0.0

    def test_python_functions(self):
        source = "def foo():\n    if x:\n        pass\n"
        result = analyze_complexity(source, "python")
        assert len(result.functions) == 1
        assert result.functions[0].complexity == 2

    def test_python_boolean_keywords(self):
        source = "def ok(a, b):\n    return a and b or not a\n"
        result = analyze_complexity(source, "python")
        assert result.functions[0].complexity == 3

    def test_multiline_docstring_words_do_not_branch(self):
        source = 'def f(items):\n    """Sum items.\n\n    Returns 0 if empty or if None.\n    """\n    return sum(items)\n'
        result = analyze_complexity(source, "python")
        assert result.functions[0].complexity == 1

    def test_keywords_in_strings_and_comments_ignored(self):
        source = 'def f():\n    msg = "if this or that"  # while waiting\n    return msg\n'
        result = analyze_complexity(source, "python")
        assert result.functions[0].complexity == 1

    def test_unknown_language(self):
        assert analyze_complexity("function f() { if (a) {} }", "unknown").functions == []


class TestComplexityScore:
    def test_zero_without_functions(self):
        assert compute_complexity_score(0.0) == 0.0

    def test_linear_scale(self):
        assert compute_complexity_score(10.0) == pytest.approx(50.0)

    def test_saturates(self):
        assert compute_complexity_score(40.0) == 100.0

