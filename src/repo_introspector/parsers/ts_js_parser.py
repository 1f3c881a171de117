"""Tree-sitter parser for TypeScript and JavaScript."""

from dataclasses import replace

import tree_sitter_javascript as tsjs
import tree_sitter_typescript as tsts
from tree_sitter import Language, Parser

from repo_introspector.models import (
    DEFAULT_COMPLEXITY_POLICY,
    ComplexityPolicy,
    ExportRecord,
    ModuleDescriptor,
)
from repo_introspector.parsers.base import (
    MAX_SYNTAX_ERRORS,
    MAX_TRAVERSAL_DEPTH,
    build_descriptor,
    count_syntax_errors,
    degraded_descriptor,
    first_docstring_line,
    is_clean,
    node_line,
    node_text,
    to_source_bytes,
)

TS_LANGUAGE = Language(tsts.language_typescript())
TSX_LANGUAGE = Language(tsts.language_tsx())
JS_LANGUAGE = Language(tsjs.language())

_FUNCTION_DECLARATIONS = frozenset({"function_declaration", "generator_function_declaration"})
_CLASS_DECLARATIONS = frozenset({"class_declaration", "abstract_class_declaration"})
_TYPE_DECLARATIONS = frozenset({"type_alias_declaration", "interface_declaration", "enum_declaration"})
_VARIABLE_DECLARATIONS = frozenset({"lexical_declaration", "variable_declaration"})
_FUNCTION_VALUES = frozenset({
    "arrow_function",
    "function_expression",
    "function",
    "generator_function",
})
_ANONYMOUS_DEFAULTS = {
    "function_expression": "function",
    "function": "function",
    "arrow_function": "function",
    "generator_function": "function",
    "class": "class",
}


def _collapse(text: str) -> str:
    return " ".join(text.split())


def _strip_quotes(text: str) -> str:
    return text.strip().strip("'\"`")


def _annotation_text(node, source: bytes) -> str:
    """Type annotation text without its leading colon."""
    text = _collapse(node_text(node, source))
    if text.startswith(":"):
        text = text[1:].strip()
    return text


class _Collector:
    """Per-parse accumulation state; one instance per parse call."""

    def __init__(self, source: bytes):
        self.source = source
        self.exports: list[ExportRecord] = []
        self.imports: list[str] = []
        self.exported_names: set[str] = set()


class TSJSParser:
    """Parser for TypeScript (.ts/.tsx) and JavaScript (.js/.jsx/.mjs/.cjs)."""

    def __init__(self, language: str):
        if language not in ("typescript", "javascript"):
            raise ValueError(f"Unsupported language: {language}")
        self.language = language

    def _get_parser(self, file_path: str) -> Parser:
        if self.language == "javascript":
            return Parser(JS_LANGUAGE)
        # TypeScript: choose TSX for .tsx files
        if file_path.endswith(".tsx"):
            return Parser(TSX_LANGUAGE)
        return Parser(TS_LANGUAGE)

    def parse(
        self,
        source: bytes | str,
        file_path: str,
        policy: ComplexityPolicy = DEFAULT_COMPLEXITY_POLICY,
    ) -> ModuleDescriptor:
        try:
            data = to_source_bytes(source)
            tree = self._get_parser(file_path).parse(data)
        except Exception as e:
            return degraded_descriptor(file_path, f"grammar failure: {e}")

        root = tree.root_node
        error_count = count_syntax_errors(root)
        if error_count > MAX_SYNTAX_ERRORS:
            return degraded_descriptor(file_path, f"too many syntax errors ({error_count})")

        collector = _Collector(data)
        try:
            self._walk(root, collector)
        except Exception as e:
            return degraded_descriptor(file_path, f"walk failure: {e}")

        exports = [
            replace(e, is_exported=True) if e.name in collector.exported_names else e
            for e in collector.exports
        ]
        return build_descriptor(file_path, exports, collector.imports, policy)

    # -- walk --

    def _walk(self, root, out: _Collector) -> None:
        """Visit top-level statements and the declarations inside export statements."""
        stack = [(child, False, 1) for child in reversed(root.children)]
        while stack:
            node, exported, depth = stack.pop()
            if depth > MAX_TRAVERSAL_DEPTH or node.type == "ERROR":
                continue
            t = node.type

            if t == "export_statement":
                self._handle_export_statement(node, out)
                for child in reversed(node.children):
                    stack.append((child, True, depth + 1))
            elif t == "ambient_declaration":
                for child in reversed(node.children):
                    stack.append((child, exported, depth + 1))
            elif t == "import_statement":
                source_node = node.child_by_field_name("source") or _find_child(node, "string")
                if source_node is not None:
                    out.imports.append(_strip_quotes(node_text(source_node, out.source)))
            elif t in _FUNCTION_DECLARATIONS and is_clean(node):
                self._add(out, self._function_record(node, node, out.source), exported)
            elif t in _CLASS_DECLARATIONS and is_clean(node):
                self._add(out, self._class_record(node, out.source), exported)
            elif t in _TYPE_DECLARATIONS and is_clean(node):
                self._add(out, self._type_record(node, out.source), exported)
            elif t in _VARIABLE_DECLARATIONS and is_clean(node):
                self._handle_variables(node, out, exported)
            elif t == "expression_statement" and is_clean(node):
                self._handle_commonjs_export(node, out)

    def _add(self, out: _Collector, record: ExportRecord | None, exported: bool) -> None:
        if record is None:
            return
        out.exports.append(replace(record, is_exported=exported))

    def _handle_export_statement(self, node, out: _Collector) -> None:
        """Re-export sources, `export { a, b }` clauses and anonymous defaults."""
        source_node = node.child_by_field_name("source")
        re_export_source = None
        if source_node is not None:
            re_export_source = _strip_quotes(node_text(source_node, out.source))
            out.imports.append(re_export_source)

        clause = _find_child(node, "export_clause")
        if clause is not None:
            for specifier in clause.children:
                if specifier.type != "export_specifier":
                    continue
                name_node = specifier.child_by_field_name("name")
                if name_node is None and specifier.named_children:
                    name_node = specifier.named_children[0]
                if name_node is None:
                    continue
                alias_node = specifier.child_by_field_name("alias")
                local_name = node_text(name_node, out.source)
                if re_export_source is not None:
                    public_name = node_text(alias_node, out.source) if alias_node is not None else local_name
                    out.exports.append(ExportRecord(
                        name=public_name,
                        kind="constant",
                        line_number=node_line(specifier),
                        is_exported=True,
                    ))
                else:
                    out.exported_names.add(local_name)

        value = node.child_by_field_name("value")
        if value is not None:
            if value.type == "identifier":
                out.exported_names.add(node_text(value, out.source))
            elif value.type in _ANONYMOUS_DEFAULTS and is_clean(value):
                value_name = value.child_by_field_name("name")
                name = node_text(value_name, out.source) if value_name is not None else "default"
                if _ANONYMOUS_DEFAULTS[value.type] == "function":
                    record = self._function_record(value, node, out.source, name=name)
                else:
                    record = self._class_record(value, out.source, name=name)
                self._add(out, record, True)

    # -- records --

    def _function_record(self, fn, anchor, source: bytes, name: str | None = None) -> ExportRecord | None:
        if name is None:
            name_node = fn.child_by_field_name("name")
            if name_node is None:
                return None
            name = node_text(name_node, source)
        return ExportRecord(
            name=name,
            kind="function",
            line_number=node_line(anchor),
            signature=self._signature(fn, source),
            docstring=self._jsdoc(anchor, source),
            is_async=any(c.type == "async" for c in fn.children),
        )

    def _class_record(self, node, source: bytes, name: str | None = None) -> ExportRecord | None:
        if name is None:
            name_node = node.child_by_field_name("name")
            if name_node is None:
                return None
            name = node_text(name_node, source)
        heritage = _find_child(node, "class_heritage")
        return ExportRecord(
            name=name,
            kind="class",
            line_number=node_line(node),
            signature=_collapse(node_text(heritage, source)) if heritage is not None else None,
            docstring=self._jsdoc(node, source),
        )

    def _type_record(self, node, source: bytes) -> ExportRecord | None:
        name_node = node.child_by_field_name("name")
        if name_node is None:
            return None
        return ExportRecord(
            name=node_text(name_node, source),
            kind="type",
            line_number=node_line(node),
            docstring=self._jsdoc(node, source),
        )

    def _handle_variables(self, node, out: _Collector, exported: bool) -> None:
        """`const`/`let`/`var` declarators; CommonJS require() bindings become imports."""
        for child in node.children:
            if child.type != "variable_declarator":
                continue
            name_node = child.child_by_field_name("name")
            if name_node is None:
                continue
            value = child.child_by_field_name("value")

            required = _required_module(value, out.source)
            if required is not None:
                out.imports.append(required)
                continue
            if name_node.type != "identifier":
                continue  # destructuring pattern

            name = node_text(name_node, out.source)
            if value is not None and value.type in _FUNCTION_VALUES:
                record = ExportRecord(
                    name=name,
                    kind="function",
                    line_number=node_line(child),
                    signature=self._signature(value, out.source),
                    docstring=self._jsdoc(node, out.source),
                    is_async=any(c.type == "async" for c in value.children),
                )
            else:
                type_node = child.child_by_field_name("type")
                record = ExportRecord(
                    name=name,
                    kind="constant",
                    line_number=node_line(child),
                    signature=_annotation_text(type_node, out.source) if type_node is not None else None,
                    docstring=self._jsdoc(node, out.source),
                )
            self._add(out, record, exported)

    def _handle_commonjs_export(self, node, out: _Collector) -> None:
        """`module.exports = {...}`, `module.exports = name`, `exports.name = ...`."""
        for expr in node.children:
            if expr.type != "assignment_expression":
                continue
            left = expr.child_by_field_name("left")
            right = expr.child_by_field_name("right")
            if left is None or right is None:
                continue
            target = node_text(left, out.source)

            if target == "module.exports":
                if right.type == "identifier":
                    out.exported_names.add(node_text(right, out.source))
                elif right.type == "object":
                    for prop in right.children:
                        if prop.type == "shorthand_property_identifier":
                            out.exported_names.add(node_text(prop, out.source))
                        elif prop.type == "pair":
                            prop_value = prop.child_by_field_name("value")
                            if prop_value is not None and prop_value.type == "identifier":
                                out.exported_names.add(node_text(prop_value, out.source))
                continue

            for prefix in ("module.exports.", "exports."):
                if not target.startswith(prefix):
                    continue
                name = target[len(prefix):]
                if not name.isidentifier():
                    break
                if right.type == "identifier":
                    out.exported_names.add(node_text(right, out.source))
                elif right.type in _FUNCTION_VALUES:
                    self._add(out, self._function_record(right, node, out.source, name=name), True)
                else:
                    self._add(out, ExportRecord(name=name, kind="constant", line_number=node_line(node)), True)
                break

    # -- text helpers --

    def _signature(self, fn, source: bytes) -> str | None:
        params = fn.child_by_field_name("parameters")
        if params is not None:
            signature = _collapse(node_text(params, source))
        else:
            single = fn.child_by_field_name("parameter")  # `x => ...`
            signature = f"({node_text(single, source)})" if single is not None else ""
        return_type = fn.child_by_field_name("return_type")
        if return_type is not None:
            signature += f": {_annotation_text(return_type, source)}"
        return signature or None

    def _jsdoc(self, node, source: bytes) -> str | None:
        """First line of a `/** ... */` block directly above the declaration.

        Declarations wrapped in an export statement carry the comment on the
        export statement instead.
        """
        anchor = node
        parent = node.parent
        while parent is not None and parent.type in ("export_statement", "ambient_declaration"):
            anchor = parent
            parent = parent.parent
        comment = anchor.prev_named_sibling
        if comment is None or comment.type != "comment":
            return None
        text = node_text(comment, source)
        if not text.startswith("/**"):
            return None
        if anchor.start_point[0] - comment.end_point[0] > 1:
            return None
        return first_docstring_line(text)


def _find_child(node, child_type: str):
    """Find the first child of a given type."""
    for child in node.children:
        if child.type == child_type:
            return child
    return None


def _required_module(value, source: bytes) -> str | None:
    """Module path of a `require("m")` call expression, else None."""
    if value is None or value.type != "call_expression":
        return None
    func_node = value.child_by_field_name("function")
    if func_node is None or node_text(func_node, source) != "require":
        return None
    args = value.child_by_field_name("arguments")
    if args is None:
        return None
    for arg in args.children:
        if arg.type == "string":
            return _strip_quotes(node_text(arg, source))
    return None
