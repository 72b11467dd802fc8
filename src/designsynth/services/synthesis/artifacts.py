"""Pipeline Artifacts
====================

Value types passed between pipeline stages. All are created, consumed and
discarded within a single synthesis request. ``GeneratedFile`` is frozen:
stages produce new values instead of mutating existing ones.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional, Tuple

from designsynth.constants import (
    MODEL_NAME_SUFFIXES,
    ROOT_MARKERS,
    FieldType,
    UnitKind,
)
from designsynth.utils.naming import to_pascal_case


def collapse_segments(path: str) -> str:
    """Resolve ``.`` and ``..`` segments without ever leaving the start directory.

    'a/./b' -> 'a/b'; 'a/../b' -> 'b'; '../../etc/x' -> 'etc/x'
    """
    parts: List[str] = []
    for segment in path.replace('\\', '/').split('/'):
        if segment in ('', '.'):
            continue
        if segment == '..':
            if parts:
                parts.pop()
            continue
        parts.append(segment)
    return '/'.join(parts)


def normalize_generated_path(filepath: str, root_markers: Tuple[str, ...] = ROOT_MARKERS) -> str:
    """Normalize a declared relative directory path.

    Backslashes become forward slashes, ``.``/``..`` segments are resolved
    inside the unit root, a single leading root marker (``lib/``,
    ``src/app/``) is stripped, and leading, trailing and repeated separators
    are dropped.

    'lib/widgets/foo' -> 'widgets/foo'; '/screens/' -> 'screens';
    '../../tmp/x' -> 'tmp/x'; '' -> ''
    """
    path = collapse_segments((filepath or '').strip())
    for marker in root_markers:
        if path == marker.rstrip('/') or path.startswith(marker):
            path = path[len(marker):]
            break
    return path.strip('/')


@dataclass(frozen=True)
class GeneratedFile:
    """A single generated source file.

    ``filepath`` is the directory relative to the unit root (may be empty).
    """
    filepath: str
    filename: str
    filecontent: str

    @property
    def relative_path(self) -> str:
        """Normalized path of the file relative to the unit root."""
        directory = normalize_generated_path(self.filepath)
        return collapse_segments(f"{directory}/{self.filename}" if directory else self.filename)

    @property
    def extension(self) -> str:
        return self.filename.rsplit('.', 1)[-1].lower() if '.' in self.filename else ''

    def with_content(self, content: str) -> 'GeneratedFile':
        """Return a copy carrying new content."""
        return replace(self, filecontent=content)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'GeneratedFile':
        """Build from the adapter payload shape ``{filepath, filename, filecontent}``.

        Raises:
            ValueError: When ``filename`` or ``filecontent`` is missing or not a string
        """
        if not isinstance(data, dict):
            raise ValueError(f"Expected an object, got {type(data).__name__}")
        filename = data.get('filename')
        content = data.get('filecontent')
        filepath = data.get('filepath') or ''
        if not isinstance(filename, str) or not filename.strip():
            raise ValueError("Missing 'filename'")
        if not isinstance(content, str):
            raise ValueError(f"Missing 'filecontent' for {filename}")
        if not isinstance(filepath, str):
            raise ValueError(f"Invalid 'filepath' for {filename}")
        # Some models put the directory into the file name
        if '/' in filename.strip('/'):
            directory, _, filename = filename.strip('/').rpartition('/')
            filepath = f"{filepath.rstrip('/')}/{directory}" if filepath else directory
        if filename.strip() in ('.', '..'):
            raise ValueError(f"Invalid 'filename': {filename!r}")
        return cls(filepath=filepath, filename=filename.strip(), filecontent=content)

    def to_dict(self) -> Dict[str, str]:
        return {'filepath': self.filepath, 'filename': self.filename, 'filecontent': self.filecontent}


@dataclass(frozen=True)
class UnitSpec:
    """One addressable generation target.

    Attributes:
        kind: component, service or route
        name: kebab-case unit name (``product-list``)
        category: design component category for components planned from the document
        is_page: Whether the component renders a whole page
        label: Visible text used to name the unit, if any
        path: Directory override (relative to the unit root) when the AI placed the unit elsewhere
    """
    kind: UnitKind
    name: str
    category: Optional[str] = None
    is_page: bool = False
    label: str = ''
    path: Optional[str] = None

    @property
    def class_name(self) -> str:
        suffix = 'Component' if self.kind == UnitKind.COMPONENT else 'Service'
        return f"{to_pascal_case(self.name)}{suffix}"

    @property
    def directory(self) -> str:
        """Directory relative to the unit root where the unit's files live."""
        if self.path is not None:
            return self.path
        if self.kind == UnitKind.SERVICE:
            return 'services'
        if self.kind == UnitKind.ROUTE:
            return ''
        return f"components/{self.name}"


@dataclass
class MergedUnit:
    """Scaffold file reconciled with its AI counterpart.

    Attributes:
        scaffold: Canonical boilerplate for the file
        ai: AI-produced counterpart, if any
        output: Resulting file
        scaffold_imports: Import lines the scaffold required
        ai_imports: Import lines the AI fragment required
        strategy: 'merged', 'scaffold' (no AI file), 'ai_replace' (non-code file)
            or 'ai_passthrough' (extraction failed)
    """
    scaffold: GeneratedFile
    ai: Optional[GeneratedFile]
    output: GeneratedFile
    scaffold_imports: List[str] = field(default_factory=list)
    ai_imports: List[str] = field(default_factory=list)
    strategy: str = 'scaffold'

    @property
    def required_imports(self) -> List[str]:
        seen: Dict[str, None] = {}
        for line in self.scaffold_imports + self.ai_imports:
            seen.setdefault(line, None)
        return list(seen)


@dataclass
class InferredModel:
    """Data shape recovered from generated source or declared explicitly.

    ``fields`` is ordered; ``id`` is always present and first.
    """
    name: str
    fields: Dict[str, FieldType] = field(default_factory=dict)
    explicit: bool = False
    source_unit: str = ''

    def __post_init__(self) -> None:
        if 'id' not in self.fields:
            self.fields = {'id': FieldType.NUMBER, **self.fields}
        elif next(iter(self.fields)) != 'id':
            id_type = self.fields.pop('id')
            self.fields = {'id': id_type, **self.fields}

    @property
    def field_names(self) -> List[str]:
        return list(self.fields)

    @property
    def non_id_field_count(self) -> int:
        return sum(1 for name in self.fields if name != 'id')

    @property
    def has_known_suffix(self) -> bool:
        return any(self.name.endswith(suffix) and self.name != suffix for suffix in MODEL_NAME_SUFFIXES)

    def similarity(self, other: 'InferredModel') -> float:
        """Dice coefficient over field names: 2*|common| / (|f1|+|f2|)."""
        mine, theirs = set(self.fields), set(other.fields)
        total = len(mine) + len(theirs)
        if total == 0:
            return 1.0
        return 2 * len(mine & theirs) / total

    def absorb(self, other: 'InferredModel') -> None:
        """Add the other model's fields not already present (keeps order)."""
        for name, field_type in other.fields.items():
            if name not in self.fields:
                self.fields[name] = field_type
            elif self.fields[name] == FieldType.OPAQUE and field_type != FieldType.OPAQUE:
                self.fields[name] = field_type

    def to_dict(self) -> Dict[str, Any]:
        return {
            'name': self.name,
            'fields': {k: v.value for k, v in self.fields.items()},
            'explicit': self.explicit,
            'source_unit': self.source_unit,
        }
