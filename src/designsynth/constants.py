"""Shared enums and constants for the synthesis pipeline."""

from __future__ import annotations

from enum import Enum
from typing import Dict, FrozenSet, Tuple


class TargetFramework(str, Enum):
    """Client framework the synthesized project targets."""
    ANGULAR = "angular"
    FLUTTER = "flutter"


class UnitKind(str, Enum):
    """Kinds of addressable generation targets."""
    COMPONENT = "component"
    SERVICE = "service"
    ROUTE = "route"


class FieldType(str, Enum):
    """Primitive types recoverable by model inference."""
    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    DATE = "date"
    OPAQUE = "opaque"


class ComponentCategory(str, Enum):
    """Closed set of design component categories."""
    TEXT = "text"
    BUTTON = "button"
    INPUT = "input"
    IMAGE = "image"
    LAYOUT = "layout"
    WRAPPER = "wrapper"
    RICH = "rich"


# Raw design-editor type tags -> category. Unknown tags are treated as rich types.
COMPONENT_TYPE_CATEGORIES: Dict[str, ComponentCategory] = {
    'text': ComponentCategory.TEXT,
    'textnode': ComponentCategory.TEXT,
    'label': ComponentCategory.TEXT,
    'link': ComponentCategory.TEXT,
    'button': ComponentCategory.BUTTON,
    'input': ComponentCategory.INPUT,
    'textarea': ComponentCategory.INPUT,
    'select': ComponentCategory.INPUT,
    'checkbox': ComponentCategory.INPUT,
    'radio': ComponentCategory.INPUT,
    'form': ComponentCategory.INPUT,
    'image': ComponentCategory.IMAGE,
    'video': ComponentCategory.IMAGE,
    'flex': ComponentCategory.LAYOUT,
    'row': ComponentCategory.LAYOUT,
    'cell': ComponentCategory.LAYOUT,
    'grid': ComponentCategory.LAYOUT,
    'wrapper': ComponentCategory.WRAPPER,
    'default': ComponentCategory.WRAPPER,
    '': ComponentCategory.WRAPPER,
}

# Rich plugin components configured in the design editor
KNOWN_RICH_TYPES: FrozenSet[str] = frozenset({
    'table', 'list-pages', 'fslightbox', 'lightgallery', 'swiper',
    'accordion', 'tinymce', 'sidebar', 'tabs', 'carousel', 'map',
})

# Directories never copied from the template tree
EXCLUDED_TEMPLATE_DIRS: FrozenSet[str] = frozenset({
    '.git', '.svn', '.hg',
    'node_modules', '.pub-cache', '.gradle',
    '.angular', '.dart_tool', 'build', 'dist', '__pycache__',
    '.idea', '.vscode',
})

# Unit root inside the project, per target; replaced wholesale by generated output
UNIT_ROOTS: Dict[TargetFramework, str] = {
    TargetFramework.ANGULAR: 'src/app',
    TargetFramework.FLUTTER: 'lib',
}

# Leading markers stripped from AI-declared paths before placing them under the unit root
ROOT_MARKERS: Tuple[str, ...] = ('lib/', 'src/app/')

# Project manifest per target (must exist in the template root)
PROJECT_MANIFESTS: Dict[TargetFramework, str] = {
    TargetFramework.ANGULAR: 'package.json',
    TargetFramework.FLUTTER: 'pubspec.yaml',
}

SIMILARITY_THRESHOLD = 0.7
MIN_INFERRED_FIELDS = 2
MODEL_NAME_SUFFIXES: Tuple[str, ...] = ('Item', 'Entity', 'Model', 'Dto', 'DTO')

CANONICAL_CRUD_OPERATIONS: Tuple[str, ...] = ('getAll', 'getById', 'create', 'update', 'delete')
CRUD_PRESERVE_THRESHOLD = 3

DEFAULT_API_ROOT = '/api'
DEFAULT_STYLE_OPTION = 'css'
