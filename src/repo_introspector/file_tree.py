"""Hierarchical file tree built from the flat file list, plus display helpers."""

import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import Iterable

from repo_introspector.models import FileRecord, FileTreeNode

logger = logging.getLogger(__name__)

ROLE_MARKERS = {"test": "[test]", "config": "[config]", "docs": "[docs]"}


@dataclass
class _DirBuilder:
    name: str
    path: str
    dirs: dict[str, "_DirBuilder"] = field(default_factory=dict)
    files: dict[str, FileRecord] = field(default_factory=dict)

    def freeze(self) -> FileTreeNode:
        children = [self.dirs[name].freeze() for name in sorted(self.dirs)]
        children.extend(
            FileTreeNode(
                name=name,
                path=record.path,
                type="file",
                language=record.language,
                role=record.role,
            )
            for name, record in sorted(self.files.items())
        )
        return FileTreeNode(name=self.name, path=self.path, type="directory", children=tuple(children))


def build_file_tree(files: Iterable[FileRecord], root_name: str = ".") -> FileTreeNode:
    """Build a directory tree with one node per path segment.

    Children sort directories first, then by name. Each input path becomes
    exactly one leaf; repeated paths are collapsed.
    """
    root = _DirBuilder(name=root_name, path="")

    for record in files:
        parts = [p for p in record.path.split("/") if p]
        if not parts:
            continue
        current = root
        for part in parts[:-1]:
            child = current.dirs.get(part)
            if child is None:
                child_path = f"{current.path}/{part}" if current.path else part
                child = _DirBuilder(name=part, path=child_path)
                current.dirs[part] = child
            current = child
        name = parts[-1]
        if name in current.dirs:
            logger.warning("Path %s is both a file and a directory; keeping the directory", record.path)
            continue
        current.files[name] = record

    return root.freeze()


def tree_to_string(node: FileTreeNode) -> str:
    """Render the tree with box-drawing connectors, one node per line."""
    lines = [_label(node)]
    # (node, prefix, is_last), reversed so children pop in order
    stack = [(child, "", i == len(node.children or ()) - 1) for i, child in enumerate(node.children or ())]
    stack.reverse()
    while stack:
        current, prefix, is_last = stack.pop()
        connector = "└── " if is_last else "├── "
        lines.append(f"{prefix}{connector}{_label(current)}")
        children = current.children or ()
        child_prefix = prefix + ("    " if is_last else "│   ")
        for i in range(len(children) - 1, -1, -1):
            stack.append((children[i], child_prefix, i == len(children) - 1))
    return "\n".join(lines)


def _label(node: FileTreeNode) -> str:
    if node.is_directory:
        return node.name if node.path == "" else f"{node.name}/"
    marker = ROLE_MARKERS.get(node.role or "")
    return f"{node.name} {marker}" if marker else node.name


@dataclass(frozen=True)
class TreeStats:
    directories: int
    files: int
    by_language: dict[str, int]
    by_role: dict[str, int]

    def to_dict(self) -> dict:
        return {
            "directories": self.directories,
            "files": self.files,
            "byLanguage": dict(self.by_language),
            "byRole": dict(self.by_role),
        }


def _iter_nodes(node: FileTreeNode):
    stack = [node]
    while stack:
        current = stack.pop()
        yield current
        if current.children:
            stack.extend(reversed(current.children))


def get_tree_stats(node: FileTreeNode) -> TreeStats:
    """Count directories (root included), files, and files per language/role."""
    directories = 0
    by_language: Counter[str] = Counter()
    by_role: Counter[str] = Counter()
    files = 0
    for current in _iter_nodes(node):
        if current.is_directory:
            directories += 1
            continue
        files += 1
        if current.language:
            by_language[current.language] += 1
        if current.role:
            by_role[current.role] += 1
    return TreeStats(
        directories=directories,
        files=files,
        by_language=dict(sorted(by_language.items())),
        by_role=dict(sorted(by_role.items())),
    )


def count_leaf_files(node: FileTreeNode) -> int:
    return sum(1 for current in _iter_nodes(node) if not current.is_directory)
