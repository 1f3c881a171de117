"""Project manifest inspection: which ecosystems are present and how they test."""

import json
import logging
import tomllib
from pathlib import Path

from repo_introspector.models import ConfigInfo, PythonConfig, TypeScriptConfig

logger = logging.getLogger(__name__)

# Checked in order; first dependency present wins.
JS_TEST_FRAMEWORKS = ("vitest", "jest", "mocha")

_JS_DEPENDENCY_FIELDS = ("dependencies", "devDependencies", "peerDependencies", "optionalDependencies")

# Upper bound on test modules sniffed for `import unittest`.
_MAX_UNITTEST_PROBES = 20


def _read_text(path: Path) -> str | None:
    try:
        return path.read_text(encoding="utf-8", errors="replace")
    except OSError as e:
        logger.warning("Could not read %s: %s", path, e)
        return None


def _load_json(path: Path) -> dict | None:
    text = _read_text(path)
    if text is None:
        return None
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        logger.warning("Malformed %s: %s", path.name, e)
        return None
    if not isinstance(data, dict):
        logger.warning("%s is not a JSON object", path.name)
        return None
    return data


def _nested(data: dict, *keys: str) -> dict:
    """Walk nested tables, returning {} as soon as a level is missing."""
    current = data
    for key in keys:
        value = current.get(key)
        if not isinstance(value, dict):
            return {}
        current = value
    return current


# -- Python --


def _python_entry_points(pyproject: dict) -> list[str]:
    tables = (
        _nested(pyproject, "project", "scripts"),
        _nested(pyproject, "project", "gui-scripts"),
        _nested(pyproject, "tool", "poetry", "scripts"),
    )
    entry_points: list[str] = []
    for table in tables:
        for target in table.values():
            if isinstance(target, dict):
                # poetry's extended form: {reference = "...", type = "console"}
                target = target.get("reference") or target.get("callable")
            if isinstance(target, str) and target not in entry_points:
                entry_points.append(target)
    return entry_points


def _sniff_unittest(root: Path) -> bool:
    probes = 0
    for dirname in ("tests", "test"):
        test_dir = root / dirname
        if not test_dir.is_dir():
            continue
        for path in sorted(test_dir.glob("test*.py")):
            if probes >= _MAX_UNITTEST_PROBES:
                return False
            probes += 1
            text = _read_text(path)
            if text and ("import unittest" in text or "from unittest import TestCase" in text):
                return True
    return False


def _python_test_framework(
    root: Path,
    pyproject: dict | None,
    pyproject_text: str | None,
    requirement_texts: list[str],
) -> str:
    if pyproject is not None and _nested(pyproject, "tool", "pytest"):
        return "pytest"
    if (root / "pytest.ini").is_file() or (root / "conftest.py").is_file():
        return "pytest"
    if pyproject_text and "pytest" in pyproject_text:
        return "pytest"
    for name in ("setup.cfg", "tox.ini"):
        path = root / name
        if path.is_file():
            text = _read_text(path)
            if text and "pytest" in text:
                return "pytest"
    if any("pytest" in text for text in requirement_texts):
        return "pytest"
    if _sniff_unittest(root):
        return "unittest"
    return "none"


def _python_has_typing(root: Path, pyproject: dict | None, pyproject_text: str | None) -> bool:
    if pyproject is not None:
        tool = _nested(pyproject, "tool")
        if "mypy" in tool or "pyright" in tool:
            return True
    elif pyproject_text and ("[tool.mypy" in pyproject_text or "[tool.pyright" in pyproject_text):
        return True
    for name in ("mypy.ini", ".mypy.ini", "pyrightconfig.json"):
        if (root / name).is_file():
            return True
    setup_cfg = root / "setup.cfg"
    if setup_cfg.is_file():
        text = _read_text(setup_cfg)
        if text and "[mypy" in text:
            return True
    for pattern in ("*/py.typed", "src/*/py.typed"):
        if any(root.glob(pattern)):
            return True
    return False


def detect_python_config(root: Path) -> PythonConfig | None:
    """PythonConfig for root, or None when no Python manifest is present."""
    pyproject_path = root / "pyproject.toml"
    has_pyproject = pyproject_path.is_file()
    has_setup_py = (root / "setup.py").is_file()
    has_setup_cfg = (root / "setup.cfg").is_file()
    requirement_files = sorted(p for p in root.glob("requirements*.txt") if p.is_file())

    if not (has_pyproject or has_setup_py or has_setup_cfg or requirement_files):
        return None

    pyproject_text = _read_text(pyproject_path) if has_pyproject else None
    pyproject = None
    if pyproject_text is not None:
        try:
            pyproject = tomllib.loads(pyproject_text)
        except tomllib.TOMLDecodeError as e:
            logger.warning("Malformed pyproject.toml, falling back to text checks: %s", e)

    requirement_texts = [t for t in (_read_text(p) for p in requirement_files) if t]

    return PythonConfig(
        entry_points=tuple(_python_entry_points(pyproject)) if pyproject else (),
        test_framework=_python_test_framework(root, pyproject, pyproject_text, requirement_texts),
        has_typing=_python_has_typing(root, pyproject, pyproject_text),
        pyproject_toml=has_pyproject,
        setup_py=has_setup_py,
        requirements_txt=bool(requirement_files),
    )


# -- TypeScript / JavaScript --


def _js_dependencies(package: dict) -> set[str]:
    names: set[str] = set()
    for field_name in _JS_DEPENDENCY_FIELDS:
        deps = package.get(field_name)
        if isinstance(deps, dict):
            names.update(deps)
    return names


def _js_entry_points(package: dict) -> list[str]:
    entry_points: list[str] = []
    for key in ("main", "module", "types", "typings"):
        value = package.get(key)
        if isinstance(value, str) and value not in entry_points:
            entry_points.append(value)
    bin_field = package.get("bin")
    targets = [bin_field] if isinstance(bin_field, str) else (
        list(bin_field.values()) if isinstance(bin_field, dict) else []
    )
    for target in targets:
        if isinstance(target, str) and target not in entry_points:
            entry_points.append(target)
    return entry_points


def detect_typescript_config(root: Path) -> TypeScriptConfig | None:
    """TypeScriptConfig for root, or None when neither package.json nor tsconfig.json exists."""
    package_path = root / "package.json"
    has_package_json = package_path.is_file()
    has_tsconfig = (root / "tsconfig.json").is_file()
    if not (has_package_json or has_tsconfig):
        return None

    package = _load_json(package_path) if has_package_json else None
    if package is None:
        return TypeScriptConfig(
            has_types=has_tsconfig,
            package_json=has_package_json,
            tsconfig=has_tsconfig,
        )

    dependencies = _js_dependencies(package)
    test_framework = next((fw for fw in JS_TEST_FRAMEWORKS if fw in dependencies), "none")
    has_types = (
        has_tsconfig
        or "typescript" in dependencies
        or isinstance(package.get("types"), str)
        or isinstance(package.get("typings"), str)
    )
    return TypeScriptConfig(
        entry_points=tuple(_js_entry_points(package)),
        test_framework=test_framework,
        has_types=has_types,
        package_json=has_package_json,
        tsconfig=has_tsconfig,
    )


def detect_config(root: Path) -> ConfigInfo:
    """Inspect manifests at root. Never raises; unreadable pieces degrade to defaults."""
    python = typescript = None
    try:
        python = detect_python_config(root)
    except OSError as e:
        logger.warning("Python config detection failed at %s: %s", root, e)
    try:
        typescript = detect_typescript_config(root)
    except OSError as e:
        logger.warning("TypeScript config detection failed at %s: %s", root, e)
    return ConfigInfo(python=python, typescript=typescript)
