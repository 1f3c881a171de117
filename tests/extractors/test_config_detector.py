"""Tests for extractors/config_detector.py."""

import json

from repo_introspector.extractors.config_detector import (
    detect_config,
    detect_python_config,
    detect_typescript_config,
)


class TestPythonConfig:
    def test_absent(self, tmp_repo):
        assert detect_python_config(tmp_repo) is None

    def test_pyproject_with_pytest_and_scripts(self, tmp_repo, write_file):
        write_file("pyproject.toml", (
            '[project]\nname = "demo"\n\n'
            '[project.scripts]\ndemo = "demo.cli:main"\n\n'
            '[tool.pytest.ini_options]\ntestpaths = ["tests"]\n\n'
            '[tool.mypy]\nstrict = true\n'
        ))

        config = detect_python_config(tmp_repo)
        assert config.pyproject_toml is True
        assert config.setup_py is False
        assert config.test_framework == "pytest"
        assert config.entry_points == ("demo.cli:main",)
        assert config.has_typing is True

    def test_poetry_scripts(self, tmp_repo, write_file):
        write_file("pyproject.toml", '[tool.poetry.scripts]\nrun = "app.main:run"\n')
        assert detect_python_config(tmp_repo).entry_points == ("app.main:run",)

    def test_requirements_only(self, tmp_repo, write_file):
        write_file("requirements.txt", "requests\npytest>=8\n")

        config = detect_python_config(tmp_repo)
        assert config.requirements_txt is True
        assert config.pyproject_toml is False
        assert config.test_framework == "pytest"
        assert config.has_typing is False

    def test_unittest_sniffed(self, tmp_repo, write_file):
        write_file("setup.py", "from setuptools import setup\nsetup()\n")
        write_file("tests/test_core.py", "import unittest\n\nclass T(unittest.TestCase):\n    pass\n")

        config = detect_python_config(tmp_repo)
        assert config.setup_py is True
        assert config.test_framework == "unittest"

    def test_no_framework(self, tmp_repo, write_file):
        write_file("setup.py", "from setuptools import setup\nsetup()\n")
        assert detect_python_config(tmp_repo).test_framework == "none"

    def test_py_typed_marker(self, tmp_repo, write_file):
        write_file("setup.py", "")
        write_file("src/pkg/py.typed", "")
        assert detect_python_config(tmp_repo).has_typing is True

    def test_malformed_pyproject_falls_back_to_text(self, tmp_repo, write_file):
        write_file("pyproject.toml", "[project\npytest = broken")

        config = detect_python_config(tmp_repo)
        assert config is not None
        assert config.pyproject_toml is True
        assert config.entry_points == ()
        assert config.test_framework == "pytest"


class TestTypeScriptConfig:
    def test_absent(self, tmp_repo):
        assert detect_typescript_config(tmp_repo) is None

    def test_package_json(self, tmp_repo, write_file):
        write_file("package.json", json.dumps({
            "name": "demo",
            "main": "dist/index.js",
            "types": "dist/index.d.ts",
            "bin": {"demo": "bin/demo.js"},
            "devDependencies": {"jest": "^29.0.0", "vitest": "^1.0.0"},
        }))

        config = detect_typescript_config(tmp_repo)
        assert config.package_json is True
        assert config.tsconfig is False
        assert config.test_framework == "vitest"
        assert config.has_types is True
        assert config.entry_points == ("dist/index.js", "dist/index.d.ts", "bin/demo.js")

    def test_mocha(self, tmp_repo, write_file):
        write_file("package.json", json.dumps({"devDependencies": {"mocha": "10"}}))

        config = detect_typescript_config(tmp_repo)
        assert config.test_framework == "mocha"
        assert config.has_types is False

    def test_string_bin(self, tmp_repo, write_file):
        write_file("package.json", json.dumps({"bin": "cli.js"}))
        assert detect_typescript_config(tmp_repo).entry_points == ("cli.js",)

    def test_tsconfig_only(self, tmp_repo, write_file):
        write_file("tsconfig.json", "{}")

        config = detect_typescript_config(tmp_repo)
        assert config.tsconfig is True
        assert config.package_json is False
        assert config.has_types is True
        assert config.test_framework == "none"

    def test_malformed_package_json(self, tmp_repo, write_file):
        write_file("package.json", "{not json")

        config = detect_typescript_config(tmp_repo)
        assert config.package_json is True
        assert config.test_framework == "none"
        assert config.entry_points == ()


class TestDetectConfig:
    def test_empty_repo(self, tmp_repo):
        config = detect_config(tmp_repo)
        assert config.python is None
        assert config.typescript is None
        assert config.to_dict() == {}

    def test_both_ecosystems(self, tmp_repo, write_file):
        write_file("pyproject.toml", '[project]\nname = "x"\n')
        write_file("package.json", "{}")

        config = detect_config(tmp_repo)
        assert config.python is not None
        assert config.typescript is not None
