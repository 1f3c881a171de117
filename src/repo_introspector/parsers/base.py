from __future__ import annotations

import logging
from typing import Iterator, Protocol

from repo_introspector.models import (
    DEFAULT_COMPLEXITY_POLICY,
    ComplexityPolicy,
    ExportRecord,
    ModuleDescriptor,
)

logger = logging.getLogger(__name__)

# A tree with more ERROR/MISSING nodes than this is treated as unparseable.
MAX_SYNTAX_ERRORS = 10

# Walks stop descending below this many levels from the root.
MAX_TRAVERSAL_DEPTH = 50


class LanguageParser(Protocol):
    def parse(
        self,
        source: bytes | str,
        file_path: str,
        policy: ComplexityPolicy = DEFAULT_COMPLEXITY_POLICY,
    ) -> ModuleDescriptor: ...


# -- Shared parser utilities --


def node_text(node, source: bytes) -> str:
    """Extract the text of a tree-sitter node from the source bytes."""
    return source[node.start_byte:node.end_byte].decode("utf-8", errors="replace")


def node_line(node) -> int:
    """1-based start line of a node."""
    return node.start_point[0] + 1


def to_source_bytes(source: bytes | str) -> bytes:
    if isinstance(source, str):
        return source.encode("utf-8")
    return source


def iter_tree(root, max_depth: int = MAX_TRAVERSAL_DEPTH) -> Iterator:
    """Iterate nodes depth-first (pre-order) with an explicit stack.

    Nodes deeper than max_depth are not visited; the walk never recurses.
    """
    stack = [(root, 0)]
    while stack:
        node, depth = stack.pop()
        yield node
        if depth >= max_depth:
            continue
        children = node.children
        for child in reversed(children):
            stack.append((child, depth + 1))


def count_syntax_errors(root, limit: int = MAX_SYNTAX_ERRORS) -> int:
    """Count ERROR and MISSING nodes, stopping once the count exceeds limit."""
    if not root.has_error:
        return 0
    count = 0
    for node in iter_tree(root):
        if node.type == "ERROR" or node.is_missing:
            count += 1
            if count > limit:
                break
    return count


def is_clean(node) -> bool:
    """True when a declaration's subtree contains no syntax errors."""
    return node.type != "ERROR" and not node.has_error


def first_docstring_line(raw: str | None) -> str | None:
    """Reduce a raw docstring/JSDoc literal to its first non-empty line."""
    if not raw:
        return None
    text = raw.strip()
    for prefix in ('r"""', "r'''", '"""', "'''", '"', "'", "/**", "/*"):
        if text.lower().startswith(prefix):
            text = text[len(prefix):]
            break
    for suffix in ('"""', "'''", '"', "'", "*/"):
        if text.endswith(suffix):
            text = text[:-len(suffix)]
            break
    for line in text.splitlines():
        line = line.strip().lstrip("*").strip()
        if line:
            return line
    return None


def build_descriptor(
    file_path: str,
    exports: list[ExportRecord],
    imports: list[str],
    policy: ComplexityPolicy,
) -> ModuleDescriptor:
    """Assemble a descriptor in canonical order so equal input gives equal output."""
    ordered = tuple(sorted(exports, key=lambda e: (e.line_number, e.name)))
    unique_imports = tuple(sorted({imp for imp in imports if imp}))
    return ModuleDescriptor(
        path=file_path,
        exports=ordered,
        imports=unique_imports,
        complexity_tier=policy.tier_for(len(ordered)),
    )


def degraded_descriptor(file_path: str, reason: str) -> ModuleDescriptor:
    logger.warning("Could not parse %s: %s", file_path, reason)
    return ModuleDescriptor.empty(file_path)
