from unittest.mock import patch

from repo_introspector.models import ComplexityPolicy
from repo_introspector.parsers.python_parser import PythonParser

SAMPLE_PYTHON = b'''"""Module docstring."""

import os
from pathlib import Path
from .utils import thing

try:
    import ujson as json
except ImportError:
    import json

MAX_SIZE: int = 1024
_PRIVATE_LIMIT = 3
lowercase_value = 5
__version__ = "1.0"


class Greeter(Base):
    """A sample class.

    More text.
    """

    def greet(self) -> str:
        return "hi"


def helper(x: int) -> int:
    """Helper function."""
    return x


async def fetch(url):
    pass


def _internal():
    pass


@decorator
def decorated(
    a,
    b,
):
    pass
'''


def line_of(source: bytes, prefix: bytes) -> int:
    for i, line in enumerate(source.split(b"\n"), start=1):
        if line.startswith(prefix):
            return i
    raise AssertionError(f"{prefix!r} not in source")


def make_result(source: bytes = SAMPLE_PYTHON, path: str = "sample.py"):
    return PythonParser().parse(source, path)


class TestExportExtraction:
    def test_top_level_names(self):
        result = make_result()
        names = [e.name for e in result.exports]
        assert names == [
            "MAX_SIZE",
            "_PRIVATE_LIMIT",
            "Greeter",
            "helper",
            "fetch",
            "_internal",
            "decorated",
        ]

    def test_nested_methods_not_exported(self):
        names = {e.name for e in make_result().exports}
        assert "greet" not in names

    def test_lowercase_and_dunder_assignments_skipped(self):
        names = {e.name for e in make_result().exports}
        assert "lowercase_value" not in names
        assert "__version__" not in names

    def test_kinds(self):
        by_name = {e.name: e for e in make_result().exports}
        assert by_name["MAX_SIZE"].kind == "constant"
        assert by_name["Greeter"].kind == "class"
        assert by_name["helper"].kind == "function"
        assert by_name["decorated"].kind == "function"

    def test_line_numbers(self):
        by_name = {e.name: e for e in make_result().exports}
        assert by_name["helper"].line_number == line_of(SAMPLE_PYTHON, b"def helper")
        assert by_name["Greeter"].line_number == line_of(SAMPLE_PYTHON, b"class Greeter")
        assert by_name["MAX_SIZE"].line_number == line_of(SAMPLE_PYTHON, b"MAX_SIZE")

    def test_exports_sorted_by_line(self):
        lines = [e.line_number for e in make_result().exports]
        assert lines == sorted(lines)


class TestSignatures:
    def test_function_signature_with_return_type(self):
        by_name = {e.name: e for e in make_result().exports}
        assert by_name["helper"].signature == "(x: int) -> int"

    def test_multiline_parameters_collapsed(self):
        by_name = {e.name: e for e in make_result().exports}
        assert by_name["decorated"].signature == "( a, b, )"

    def test_class_heritage(self):
        by_name = {e.name: e for e in make_result().exports}
        assert by_name["Greeter"].signature == "(Base)"

    def test_constant_annotation(self):
        by_name = {e.name: e for e in make_result().exports}
        assert by_name["MAX_SIZE"].signature == "int"
        assert by_name["_PRIVATE_LIMIT"].signature is None

    def test_async_flag(self):
        by_name = {e.name: e for e in make_result().exports}
        assert by_name["fetch"].is_async is True
        assert by_name["helper"].is_async is False


class TestDocstrings:
    def test_first_line_only(self):
        by_name = {e.name: e for e in make_result().exports}
        assert by_name["Greeter"].docstring == "A sample class."
        assert by_name["helper"].docstring == "Helper function."

    def test_missing_docstring(self):
        by_name = {e.name: e for e in make_result().exports}
        assert by_name["fetch"].docstring is None


class TestVisibility:
    def test_underscore_names_unexported(self):
        by_name = {e.name: e for e in make_result().exports}
        assert by_name["_internal"].is_exported is False
        assert by_name["_PRIVATE_LIMIT"].is_exported is False
        assert by_name["helper"].is_exported is True

    def test_dunder_all_wins(self):
        source = b'__all__ = ["helper"]\n\ndef helper():\n    pass\n\ndef other():\n    pass\n'
        by_name = {e.name: e for e in make_result(source).exports}
        assert by_name["helper"].is_exported is True
        assert by_name["other"].is_exported is False

    def test_dunder_all_extended(self):
        source = (
            b'__all__ = ["a"]\n__all__ += ["b"]\n\n'
            b"def a():\n    pass\n\ndef b():\n    pass\n\ndef c():\n    pass\n"
        )
        result = make_result(source)
        assert [e.name for e in result.exported()] == ["a", "b"]


class TestImports:
    def test_imports_sorted_and_unique(self):
        result = make_result()
        assert result.imports == (".utils", "json", "os", "pathlib", "ujson")

    def test_function_local_imports_ignored(self):
        source = b"def f():\n    import secret\n    return secret\n"
        assert make_result(source).imports == ()


class TestComplexity:
    @staticmethod
    def _functions(n: int) -> bytes:
        return "".join(f"def f{i}():\n    pass\n\n" for i in range(n)).encode()

    def test_boundaries(self):
        assert make_result(self._functions(5)).complexity_tier == "low"
        assert make_result(self._functions(6)).complexity_tier == "medium"
        assert make_result(self._functions(15)).complexity_tier == "medium"
        assert make_result(self._functions(16)).complexity_tier == "high"

    def test_custom_policy(self):
        policy = ComplexityPolicy(low_max=1, medium_max=2)
        result = PythonParser().parse(self._functions(3), "x.py", policy)
        assert result.complexity_tier == "high"


class TestResilience:
    def test_deterministic(self):
        assert make_result() == make_result()

    def test_str_source(self):
        assert make_result(SAMPLE_PYTHON.decode()) == make_result()

    def test_truncated_declaration(self):
        result = make_result(b"def broken(:\n")
        assert result.exports == ()
        assert result.path == "sample.py"

    def test_good_declarations_survive_bad_neighbour(self):
        source = b"class Ok:\n    pass\n\n\ndef broken(:\n    pass\n"
        names = {e.name for e in make_result(source).exports}
        assert "broken" not in names
        assert "Ok" in names

    def test_trailing_truncated_declaration_keeps_earlier_ones(self):
        source = b"def ok():\n    return 1\n\n\ndef broken(a, b\n"
        result = make_result(source)
        assert [e.name for e in result.exports] == ["ok"]

    def test_too_many_syntax_errors_degrades(self):
        with patch(
            "repo_introspector.parsers.python_parser.count_syntax_errors",
            return_value=11,
        ):
            result = make_result()
        assert result.exports == ()
        assert result.imports == ()
        assert result.complexity_tier == "low"

    def test_empty_source(self):
        result = make_result(b"")
        assert result.exports == ()
        assert result.imports == ()
