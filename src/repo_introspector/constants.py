"""Centralized file extension / language / role constants."""

from pathlib import PurePosixPath

# Extensions with a grammar parser behind them.
LANGUAGE_MAP: dict[str, str] = {
    ".py": "python",
    ".ts": "typescript",
    ".tsx": "typescript",
    ".js": "javascript",
    ".jsx": "javascript",
    ".mjs": "javascript",
    ".cjs": "javascript",
}

# Recognized but not parsed: listed in the summary with language "other".
AUXILIARY_EXTENSIONS: frozenset[str] = frozenset({
    ".md",
    ".rst",
    ".txt",
    ".toml",
    ".json",
    ".yaml",
    ".yml",
    ".cfg",
    ".ini",
})

SOURCE_EXTENSIONS: frozenset[str] = frozenset(LANGUAGE_MAP)

OTHER_LANGUAGE = "other"
GRAMMAR_LANGUAGES: tuple[str, ...] = ("javascript", "python", "typescript")
VALID_LANGUAGES: tuple[str, ...] = GRAMMAR_LANGUAGES + (OTHER_LANGUAGE,)

VALID_ROLES = ("source", "test", "config", "docs")
VALID_EXPORT_KINDS = ("function", "class", "constant", "type")
VALID_COMPLEXITY_TIERS = ("low", "medium", "high")

# Role heuristics, applied to the lower-cased relative path.
TEST_DIR_NAMES: frozenset[str] = frozenset({"test", "tests", "__tests__", "spec", "specs"})
TEST_SUFFIXES: tuple[str, ...] = tuple(
    f".{marker}{ext}"
    for marker in ("test", "spec")
    for ext in (".ts", ".tsx", ".js", ".jsx", ".mjs", ".cjs")
)

CONFIG_FILENAMES: frozenset[str] = frozenset({
    "setup.py",
    "setup.cfg",
    "conftest.py",
    "pyproject.toml",
    "package.json",
    "tsconfig.json",
    "jsconfig.json",
    "tox.ini",
    "pytest.ini",
    "mypy.ini",
    "pyrightconfig.json",
    "noxfile.py",
})
CONFIG_KEYWORDS: tuple[str, ...] = ("config", "settings", "requirements")
CONFIG_EXTENSIONS: frozenset[str] = frozenset({".toml", ".json", ".yaml", ".yml", ".cfg", ".ini"})

DOCS_DIR_NAMES: frozenset[str] = frozenset({"docs", "doc"})
DOCS_PREFIXES: tuple[str, ...] = ("readme", "changelog", "contributing", "license")
DOCS_EXTENSIONS: frozenset[str] = frozenset({".md", ".rst", ".txt"})


def language_from_extension(file_path: str) -> str | None:
    """Map a path to its language via extension.

    Returns the grammar language, "other" for auxiliary extensions, or None
    when the extension is not recognized at all.
    """
    suffix = PurePosixPath(file_path).suffix.lower()
    language = LANGUAGE_MAP.get(suffix)
    if language is not None:
        return language
    if suffix in AUXILIARY_EXTENSIONS:
        return OTHER_LANGUAGE
    return None


def is_source_path(file_path: str) -> bool:
    """True when the path carries a grammar-backed source extension."""
    return PurePosixPath(file_path).suffix.lower() in SOURCE_EXTENSIONS
