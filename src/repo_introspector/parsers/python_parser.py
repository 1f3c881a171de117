from __future__ import annotations

import re
from dataclasses import replace

import tree_sitter_python as tspython
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

PY_LANGUAGE = Language(tspython.language())

_CONSTANT_NAME_RE = re.compile(r"^_*[A-Z][A-Z0-9_]*$")

# Module-level statements whose blocks may hold guarded imports.
_IMPORT_CONTAINERS = frozenset({
    "if_statement",
    "try_statement",
    "block",
    "else_clause",
    "elif_clause",
    "except_clause",
    "finally_clause",
})

# Keep local alias for the _node_text(node, source) call pattern
_node_text = node_text


def _collapse(text: str) -> str:
    """Collapse runs of whitespace (multi-line parameter lists) to one space."""
    return " ".join(text.split())


def _string_value(node, source: bytes) -> str | None:
    """Plain value of a simple string literal, None for f-strings/concatenations."""
    if node.type != "string":
        return None
    for child in node.children:
        if child.type == "interpolation":
            return None
    for child in node.children:
        if child.type == "string_content":
            return _node_text(child, source)
    text = _node_text(node, source)
    return text.strip("'\"") if text else None


class PythonParser:
    """Tree-sitter based Python parser implementing the LanguageParser protocol."""

    language = "python"

    def parse(
        self,
        source: bytes | str,
        file_path: str,
        policy: ComplexityPolicy = DEFAULT_COMPLEXITY_POLICY,
    ) -> ModuleDescriptor:
        try:
            data = to_source_bytes(source)
            tree = Parser(PY_LANGUAGE).parse(data)
        except Exception as e:
            return degraded_descriptor(file_path, f"grammar failure: {e}")

        root = tree.root_node
        error_count = count_syntax_errors(root)
        if error_count > MAX_SYNTAX_ERRORS:
            return degraded_descriptor(file_path, f"too many syntax errors ({error_count})")

        try:
            exports = self._extract_exports(root, data)
            imports = self._extract_imports(root, data)
        except Exception as e:
            return degraded_descriptor(file_path, f"walk failure: {e}")
        return build_descriptor(file_path, exports, imports, policy)

    # -- exports --

    def _extract_exports(self, root, source: bytes) -> list[ExportRecord]:
        public_names = self._literal_all(root, source)
        exports: list[ExportRecord] = []
        for child in root.children:
            definition = child
            if child.type == "decorated_definition":
                definition = child.child_by_field_name("definition")
                if definition is None:
                    continue
            if not is_clean(definition):
                continue

            record = None
            if definition.type == "function_definition":
                record = self._handle_function(definition, source)
            elif definition.type == "class_definition":
                record = self._handle_class(definition, source)
            elif definition.type == "type_alias_statement":
                record = self._handle_type_alias(definition, source)
            elif definition.type == "expression_statement":
                record = self._handle_module_assignment(definition, source)
            if record is None:
                continue

            if public_names is not None:
                is_exported = record.name in public_names
            else:
                is_exported = not record.name.startswith("_")
            exports.append(replace(record, is_exported=is_exported))
        return exports

    def _handle_function(self, node, source: bytes) -> ExportRecord | None:
        name_node = node.child_by_field_name("name")
        if name_node is None:
            return None
        params = node.child_by_field_name("parameters")
        return_type = node.child_by_field_name("return_type")

        signature = _collapse(_node_text(params, source)) if params is not None else ""
        if return_type is not None:
            signature += f" -> {_collapse(_node_text(return_type, source))}"

        return ExportRecord(
            name=_node_text(name_node, source),
            kind="function",
            line_number=node_line(node),
            signature=signature or None,
            docstring=self._docstring(node, source),
            is_async=any(c.type == "async" for c in node.children),
        )

    def _handle_class(self, node, source: bytes) -> ExportRecord | None:
        name_node = node.child_by_field_name("name")
        if name_node is None:
            return None
        superclasses = node.child_by_field_name("superclasses")
        signature = _collapse(_node_text(superclasses, source)) if superclasses is not None else None
        return ExportRecord(
            name=_node_text(name_node, source),
            kind="class",
            line_number=node_line(node),
            signature=signature,
            docstring=self._docstring(node, source),
        )

    def _handle_type_alias(self, node, source: bytes) -> ExportRecord | None:
        """`type Name[T] = ...` (PEP 695)."""
        left = node.child_by_field_name("left")
        if left is None:
            return None
        name = _node_text(left, source).split("[", 1)[0].strip()
        if not name.isidentifier():
            return None
        return ExportRecord(name=name, kind="type", line_number=node_line(node))

    def _handle_module_assignment(self, node, source: bytes) -> ExportRecord | None:
        """Module-level UPPER_CASE constants and `X: TypeAlias = ...` annotations."""
        for child in node.children:
            if child.type != "assignment":
                continue
            left = child.child_by_field_name("left")
            if left is None or left.type != "identifier":
                return None
            name = _node_text(left, source)
            annotation = child.child_by_field_name("type")
            annotation_text = _collapse(_node_text(annotation, source)) if annotation is not None else None
            if annotation_text in ("TypeAlias", "typing.TypeAlias", "typing_extensions.TypeAlias"):
                return ExportRecord(name=name, kind="type", line_number=node_line(node))
            if not _CONSTANT_NAME_RE.match(name) or (name.startswith("__") and name.endswith("__")):
                return None
            return ExportRecord(
                name=name,
                kind="constant",
                line_number=node_line(node),
                signature=annotation_text,
            )
        return None

    def _docstring(self, definition, source: bytes) -> str | None:
        """First line of the docstring if the body starts with a string expression."""
        body = definition.child_by_field_name("body")
        if body is None:
            return None
        for child in body.children:
            if child.type == "comment":
                continue
            if child.type != "expression_statement":
                return None
            for sub in child.children:
                if sub.type in ("string", "concatenated_string"):
                    return first_docstring_line(_node_text(sub, source))
            return None
        return None

    def _literal_all(self, root, source: bytes) -> set[str] | None:
        """Names listed in a literal module-level __all__, or None if there is none."""
        names: set[str] | None = None
        for child in root.children:
            if child.type != "expression_statement":
                continue
            for stmt in child.children:
                if stmt.type not in ("assignment", "augmented_assignment"):
                    continue
                left = stmt.child_by_field_name("left")
                right = stmt.child_by_field_name("right")
                if left is None or right is None or _node_text(left, source) != "__all__":
                    continue
                if right.type not in ("list", "tuple"):
                    continue
                # `__all__ = [...]` resets, `__all__ += [...]` extends
                if stmt.type == "assignment" or names is None:
                    names = set()
                for item in right.children:
                    value = _string_value(item, source)
                    if value:
                        names.add(value)
        return names

    # -- imports --

    def _extract_imports(self, root, source: bytes) -> list[str]:
        """Module-level imports, including those guarded by if/try blocks."""
        imports: list[str] = []
        stack = [(child, 1) for child in reversed(root.children)]
        while stack:
            node, depth = stack.pop()
            if node.type == "import_statement":
                self._handle_import(node, source, imports)
            elif node.type == "import_from_statement":
                module = node.child_by_field_name("module_name")
                if module is not None:
                    imports.append(_node_text(module, source))
            elif node.type in _IMPORT_CONTAINERS and depth < MAX_TRAVERSAL_DEPTH:
                for child in reversed(node.children):
                    stack.append((child, depth + 1))
        return imports

    def _handle_import(self, node, source: bytes, imports: list[str]) -> None:
        """Handle `import X` or `import X as Y, Z` statements."""
        for child in node.children:
            if child.type == "dotted_name":
                imports.append(_node_text(child, source))
            elif child.type == "aliased_import":
                name_node = child.child_by_field_name("name")
                if name_node is not None:
                    imports.append(_node_text(name_node, source))
