"""Language -> parser dispatch registry."""

import threading

from repo_introspector.constants import GRAMMAR_LANGUAGES
from repo_introspector.parsers.base import LanguageParser
from repo_introspector.parsers.python_parser import PythonParser
from repo_introspector.parsers.ts_js_parser import TSJSParser


def _create_parser(language: str) -> LanguageParser:
    if language == "python":
        return PythonParser()
    if language in ("typescript", "javascript"):
        return TSJSParser(language)
    raise ValueError(f"No parser for language: {language}")


class ParserRegistry:
    """Caller-owned cache of grammar parser variants.

    Parsers hold no per-file state, so one registry can be shared by the
    worker threads of a single analysis run.
    """

    def __init__(self) -> None:
        self._parsers: dict[str, LanguageParser] = {}
        self._lock = threading.Lock()

    def get(self, language: str) -> LanguageParser:
        """Get or create the parser for the given language."""
        with self._lock:
            parser = self._parsers.get(language)
            if parser is None:
                parser = _create_parser(language)
                self._parsers[language] = parser
            return parser

    def supports(self, language: str) -> bool:
        return language in GRAMMAR_LANGUAGES

    def clear(self) -> None:
        with self._lock:
            self._parsers.clear()

    def __len__(self) -> int:
        return len(self._parsers)
