import pytest

from repo_introspector.parsers.ts_js_parser import TSJSParser

SAMPLE_TS = b'''import { readFile } from "fs";
import * as path from 'path';

/** Adds two numbers.
 * Second line.
 */
export function add(a: number, b: number): number {
  return a + b;
}

export async function load(url: string): Promise<string> {
  return "";
}

export class Service extends Base {
}

export interface Options {
  verbose: boolean;
}

export type Id = string;

export const MAX_RETRIES: number = 3;

export const double = (x: number): number => x * 2;

function internal(): void {}
'''

SAMPLE_JS = b'''const fs = require("fs");
const { join } = require("path");

function helper(a) {
  return a;
}

const VALUE = 42;

function hidden() {}

module.exports = { helper, VALUE };
exports.extra = function (x) {
  return x;
};
'''


def parse_ts(source: bytes = SAMPLE_TS, path: str = "src/sample.ts"):
    return TSJSParser("typescript").parse(source, path)


def parse_js(source: bytes = SAMPLE_JS, path: str = "lib/sample.js"):
    return TSJSParser("javascript").parse(source, path)


class TestTypeScriptExports:
    def test_names_in_order(self):
        names = [e.name for e in parse_ts().exports]
        assert names == [
            "add",
            "load",
            "Service",
            "Options",
            "Id",
            "MAX_RETRIES",
            "double",
            "internal",
        ]

    def test_kinds(self):
        by_name = {e.name: e for e in parse_ts().exports}
        assert by_name["add"].kind == "function"
        assert by_name["Service"].kind == "class"
        assert by_name["Options"].kind == "type"
        assert by_name["Id"].kind == "type"
        assert by_name["MAX_RETRIES"].kind == "constant"
        assert by_name["double"].kind == "function"

    def test_visibility(self):
        by_name = {e.name: e for e in parse_ts().exports}
        assert by_name["internal"].is_exported is False
        assert all(e.is_exported for e in parse_ts().exports if e.name != "internal")

    def test_signatures(self):
        by_name = {e.name: e for e in parse_ts().exports}
        assert by_name["add"].signature == "(a: number, b: number): number"
        assert by_name["double"].signature == "(x: number): number"
        assert by_name["MAX_RETRIES"].signature == "number"
        assert by_name["Service"].signature == "extends Base"

    def test_async(self):
        by_name = {e.name: e for e in parse_ts().exports}
        assert by_name["load"].is_async is True
        assert by_name["add"].is_async is False

    def test_jsdoc_first_line(self):
        by_name = {e.name: e for e in parse_ts().exports}
        assert by_name["add"].docstring == "Adds two numbers."
        assert by_name["load"].docstring is None

    def test_imports(self):
        assert parse_ts().imports == ("fs", "path")


class TestExportForms:
    def test_export_clause_marks_local_names(self):
        source = b"function helper() {}\nconst other = 1;\nexport { helper };\n"
        by_name = {e.name: e for e in parse_ts(source).exports}
        assert by_name["helper"].is_exported is True
        assert by_name["other"].is_exported is False

    def test_re_export_adds_import(self):
        source = b'export { a, b as c } from "./mod";\n'
        result = parse_ts(source)
        assert result.imports == ("./mod",)
        assert sorted(e.name for e in result.exports) == ["a", "c"]

    def test_export_default_identifier(self):
        source = b"function main() {}\nexport default main;\n"
        by_name = {e.name: e for e in parse_ts(source).exports}
        assert by_name["main"].is_exported is True

    def test_anonymous_default_function(self):
        source = b"export default function () {}\n"
        exports = parse_js(source, "index.js").exports
        assert len(exports) == 1
        assert exports[0].name == "default"
        assert exports[0].kind == "function"

    def test_tsx_component(self):
        source = b"export const App = () => <div>hello</div>;\n"
        exports = parse_ts(source, "src/App.tsx").exports
        assert [e.name for e in exports] == ["App"]
        assert exports[0].kind == "function"


class TestJavaScript:
    def test_require_becomes_import(self):
        assert parse_js().imports == ("fs", "path")

    def test_commonjs_exports(self):
        by_name = {e.name: e for e in parse_js().exports}
        assert by_name["helper"].is_exported is True
        assert by_name["VALUE"].is_exported is True
        assert by_name["hidden"].is_exported is False
        assert by_name["extra"].kind == "function"
        assert by_name["extra"].is_exported is True

    def test_require_bindings_not_exports(self):
        names = {e.name for e in parse_js().exports}
        assert "fs" not in names
        assert "join" not in names


class TestResilience:
    def test_deterministic(self):
        assert parse_ts() == parse_ts()

    def test_truncated_declaration(self):
        result = parse_ts(b"export function broken(a: number {\n")
        assert result.exports == ()

    def test_clean_declaration_survives_later_error(self):
        source = b"export function ok(): number {\n  return 1;\n}\n\nconst = ;\n"
        names = {e.name for e in parse_ts(source).exports}
        assert "ok" in names

    def test_unsupported_language(self):
        with pytest.raises(ValueError, match="Unsupported language"):
            TSJSParser("python")
