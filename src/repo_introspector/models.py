"""Summary document dataclasses and their JSON wire form."""

from __future__ import annotations

import json
from dataclasses import dataclass, fields as dataclass_fields
from datetime import datetime, timezone

from repo_introspector.constants import (
    VALID_COMPLEXITY_TIERS,
    VALID_EXPORT_KINDS,
    VALID_LANGUAGES,
    VALID_ROLES,
)

SUMMARY_FORMAT_VERSION = 1


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.title() for part in rest)


def _to_wire(value):
    if isinstance(value, (list, tuple)):
        return [_to_wire(item) for item in value]
    if isinstance(value, dict):
        return {key: _to_wire(item) for key, item in value.items()}
    if hasattr(value, "to_dict"):
        return value.to_dict()
    return value


class _SerializableMixin:
    """Auto-generate to_dict()/from_dict() for frozen dataclasses.

    Wire keys are the camelCase form of the field names. Fields holding None
    are omitted, so optional blocks are absent rather than null.

    Subclass class variables:
        _NESTED: {field_name: dataclass} for fields holding nested models
            (single values or lists of them)
    """

    _NESTED: dict[str, type] = {}

    def to_dict(self) -> dict:
        result = {}
        for f in dataclass_fields(self):
            val = getattr(self, f.name)
            if val is None:
                continue
            result[_camel(f.name)] = _to_wire(val)
        return result

    @classmethod
    def from_dict(cls, data: dict):
        if not isinstance(data, dict):
            raise ValueError(f"{cls.__name__}.from_dict expects a dict, got {type(data).__name__}")
        kwargs = {}
        for f in dataclass_fields(cls):
            key = _camel(f.name)
            if key not in data:
                continue
            val = data[key]
            nested = cls._NESTED.get(f.name)
            if nested is not None and val is not None:
                if isinstance(val, list):
                    kwargs[f.name] = tuple(nested.from_dict(item) for item in val)
                else:
                    kwargs[f.name] = nested.from_dict(val)
            elif isinstance(val, list):
                kwargs[f.name] = tuple(val)
            else:
                kwargs[f.name] = val
        return cls(**kwargs)


def _check_choice(owner: str, field_name: str, value: str, choices: tuple[str, ...]) -> None:
    if value not in choices:
        raise ValueError(f"{owner}.{field_name} must be one of {choices}, got {value!r}")


@dataclass(frozen=True)
class ComplexityPolicy:
    """Export-count thresholds for the complexity tier.

    A module with at most low_max exports is "low", at most medium_max is
    "medium", anything above is "high".
    """
    low_max: int = 5
    medium_max: int = 15

    def __post_init__(self):
        if self.low_max < 0:
            raise ValueError(f"low_max must be >= 0, got {self.low_max}")
        if self.medium_max < self.low_max:
            raise ValueError(
                f"medium_max ({self.medium_max}) must be >= low_max ({self.low_max})"
            )

    def tier_for(self, export_count: int) -> str:
        if export_count <= self.low_max:
            return "low"
        if export_count <= self.medium_max:
            return "medium"
        return "high"


DEFAULT_COMPLEXITY_POLICY = ComplexityPolicy()


@dataclass(frozen=True)
class FileRecord(_SerializableMixin):
    path: str  # relative to root, forward-slash separated
    language: str
    role: str
    size_bytes: int
    last_modified: str  # ISO 8601, UTC

    def __post_init__(self):
        _check_choice("FileRecord", "language", self.language, VALID_LANGUAGES)
        _check_choice("FileRecord", "role", self.role, VALID_ROLES)


@dataclass(frozen=True)
class ExportRecord(_SerializableMixin):
    name: str
    kind: str
    line_number: int  # 1-based
    signature: str | None = None
    docstring: str | None = None  # first line only
    is_async: bool = False
    is_exported: bool = True

    def __post_init__(self):
        _check_choice("ExportRecord", "kind", self.kind, VALID_EXPORT_KINDS)
        if self.line_number < 1:
            raise ValueError(f"ExportRecord.line_number must be >= 1, got {self.line_number}")


@dataclass(frozen=True)
class ModuleDescriptor(_SerializableMixin):
    path: str
    exports: tuple[ExportRecord, ...] = ()
    imports: tuple[str, ...] = ()
    complexity_tier: str = "low"

    _NESTED = {"exports": ExportRecord}

    def __post_init__(self):
        _check_choice("ModuleDescriptor", "complexity_tier", self.complexity_tier, VALID_COMPLEXITY_TIERS)

    @classmethod
    def empty(cls, path: str) -> ModuleDescriptor:
        """Descriptor for a file that is present but could not be parsed."""
        return cls(path=path, exports=(), imports=(), complexity_tier="low")

    def exported(self) -> tuple[ExportRecord, ...]:
        """Only the records visible outside the module."""
        return tuple(e for e in self.exports if e.is_exported)


@dataclass(frozen=True)
class CommitRecord(_SerializableMixin):
    hash: str
    short_hash: str
    author: str
    date: str  # ISO 8601 author date
    subject: str
    files_changed: int = 0


@dataclass(frozen=True)
class FileHistoryRecord(_SerializableMixin):
    path: str
    commit_count: int
    last_modified: str
    contributors: tuple[str, ...] = ()  # at most 5


@dataclass(frozen=True)
class RevisionInfo(_SerializableMixin):
    branch: str
    baseline_commit: str | None = None
    current_commit: str | None = None
    changed_since: tuple[str, ...] = ()
    recent_commits: tuple[CommitRecord, ...] = ()
    file_history: tuple[FileHistoryRecord, ...] = ()

    _NESTED = {"recent_commits": CommitRecord, "file_history": FileHistoryRecord}


@dataclass(frozen=True)
class PythonConfig(_SerializableMixin):
    entry_points: tuple[str, ...] = ()
    test_framework: str = "none"  # "pytest", "unittest", "none"
    has_typing: bool = False
    pyproject_toml: bool = False
    setup_py: bool = False
    requirements_txt: bool = False


@dataclass(frozen=True)
class TypeScriptConfig(_SerializableMixin):
    entry_points: tuple[str, ...] = ()
    test_framework: str = "none"  # "vitest", "jest", "mocha", "none"
    has_types: bool = False
    package_json: bool = False
    tsconfig: bool = False


@dataclass(frozen=True)
class ConfigInfo(_SerializableMixin):
    python: PythonConfig | None = None
    typescript: TypeScriptConfig | None = None

    _NESTED = {"python": PythonConfig, "typescript": TypeScriptConfig}


@dataclass(frozen=True)
class FileTreeNode(_SerializableMixin):
    name: str
    path: str
    type: str  # "file" or "directory"
    children: tuple[FileTreeNode, ...] | None = None  # directories only
    language: str | None = None  # files only
    role: str | None = None  # files only

    def __post_init__(self):
        _check_choice("FileTreeNode", "type", self.type, ("file", "directory"))

    @property
    def is_directory(self) -> bool:
        return self.type == "directory"


FileTreeNode._NESTED = {"children": FileTreeNode}


@dataclass(frozen=True)
class RepoSummary(_SerializableMixin):
    """Root aggregate produced by one analyze() call. Never mutated afterwards."""
    root_path: str
    analyzed_at: str  # ISO 8601, UTC
    languages_present: tuple[str, ...] = ()
    files: tuple[FileRecord, ...] = ()
    modules: tuple[ModuleDescriptor, ...] = ()
    config_info: ConfigInfo = ConfigInfo()
    revision_info: RevisionInfo | None = None
    file_tree: FileTreeNode | None = None
    format_version: int = SUMMARY_FORMAT_VERSION

    _NESTED = {
        "files": FileRecord,
        "modules": ModuleDescriptor,
        "config_info": ConfigInfo,
        "revision_info": RevisionInfo,
        "file_tree": FileTreeNode,
    }

    def module_for(self, path: str) -> ModuleDescriptor | None:
        for module in self.modules:
            if module.path == path:
                return module
        return None

    def file_for(self, path: str) -> FileRecord | None:
        for record in self.files:
            if record.path == path:
                return record
        return None

    def to_json(self, indent: int | None = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent, ensure_ascii=False)

    @classmethod
    def from_json(cls, text: str) -> RepoSummary:
        return cls.from_dict(json.loads(text))


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()
