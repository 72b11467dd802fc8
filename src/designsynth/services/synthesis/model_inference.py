"""Model Inference
===============

Recovers data-model shapes from generated component templates and sources.

Scanning is done by independent rule objects, each recognizing one
structural pattern:

- ``IterationRule``: ``*ngFor="let item of items"`` and ``@for (item of items; ...)``
- ``InterpolationRule``: ``{{ item.field }}`` (pipes give type hints)
- ``PropertyBindingRule``: ``[prop]="item.field"``, ``*ngIf``, ``@if (...)``
- ``FormBindingRule``: ``[(ngModel)]`` and ``formControlName`` with the input kind
- ``ReactiveFormRule``: ``fb.group({...})`` and ``new FormGroup({...})`` initializers

Field types come from the structural signal when there is one; otherwise the
naming override table decides (``resolve_field_type``). ``id: number`` is
always present and first. A unit contributes a model only when it has at
least two fields besides ``id``.

Explicit models (``export interface|class X {...}`` in ``*.model.ts`` or
under ``models/``) are parsed as declared and win deduplication ties.
"""

import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence, Tuple, Union

from designsynth.constants import MIN_INFERRED_FIELDS, SIMILARITY_THRESHOLD, FieldType
from designsynth.utils.naming import singularize, split_words, to_pascal_case

from .artifacts import GeneratedFile, InferredModel
from .source_scanner import find_matching, mask_source, split_top_level

logger = logging.getLogger(__name__)

IDENT = r'[A-Za-z_$][\w$]*'

# Roots that are never data objects
IGNORED_ROOTS = frozenset({
    'this', '$event', 'event', 'Math', 'JSON', 'Object', 'Number', 'String', 'Date',
    'Array', 'window', 'document', 'console', 'router', 'route', 'environment', 'Validators',
})
# Members of forms, arrays and controls rather than model fields
IGNORED_FIELDS = frozenset({
    'length', 'controls', 'value', 'valid', 'invalid', 'errors', 'touched', 'untouched',
    'dirty', 'pristine', 'pending', 'status', 'submitted', 'nativeElement',
})
_ROOT_PREFIXES = ('selected', 'current', 'editing', 'edit', 'new', 'filtered', 'sorted',
                  'paged', 'visible', 'all', 'get', 'my')
_ROOT_SUFFIXES = ('FormGroup', 'Form', 'Group', 'List', 'Data', 'Array')
_UNIT_SUFFIX_WORDS = frozenset({'form', 'list', 'detail', 'details', 'edit', 'editor', 'create',
                                'new', 'add', 'page', 'view', 'table', 'card', 'component'})

_INPUT_TYPE_HINTS = {
    'number': FieldType.NUMBER,
    'range': FieldType.NUMBER,
    'checkbox': FieldType.BOOLEAN,
    'date': FieldType.DATE,
    'datetime-local': FieldType.DATE,
    'time': FieldType.DATE,
    'month': FieldType.DATE,
    'week': FieldType.DATE,
    'text': FieldType.STRING,
    'email': FieldType.STRING,
    'password': FieldType.STRING,
    'tel': FieldType.STRING,
    'url': FieldType.STRING,
    'search': FieldType.STRING,
    'color': FieldType.STRING,
}
_PIPE_HINTS = {
    'currency': FieldType.NUMBER,
    'number': FieldType.NUMBER,
    'percent': FieldType.NUMBER,
    'decimal': FieldType.NUMBER,
    'date': FieldType.DATE,
}
_TS_TYPES = {
    'string': FieldType.STRING,
    'number': FieldType.NUMBER,
    'bigint': FieldType.NUMBER,
    'boolean': FieldType.BOOLEAN,
    'Date': FieldType.DATE,
}

_FIELD_ACCESS_RE = re.compile(r'(?<![\w$.])(' + IDENT + r')\??\.(' + IDENT + r')\b(?!\s*\()')


@dataclass(frozen=True)
class FieldAccess:
    """``root.field`` observed in a unit; ``root`` '' means the unit's own form."""
    root: str
    field: str
    hint: Optional[FieldType] = None


@dataclass(frozen=True)
class IterationBinding:
    variable: str
    collection: str


Observation = Union[FieldAccess, IterationBinding]


def resolve_field_type(name: str, hint: Optional[FieldType] = None) -> FieldType:
    """Structural hint when unambiguous, else the naming override table, else string.

    Overrides: date/time -> date; price/amount/qty/quantity/count/id -> number;
    active/enabled/completed (and isX/hasX) -> boolean. ``id`` and ``count``
    match as whole words (``userId``, ``item_count``), not as substrings.
    """
    if hint is not None and hint != FieldType.OPAQUE:
        return hint
    lower = name.lower()
    if 'date' in lower or 'time' in lower:
        return FieldType.DATE
    words = split_words(name)
    if any(token in lower for token in ('price', 'amount', 'qty', 'quantity')):
        return FieldType.NUMBER
    if 'count' in words or 'id' in words:
        return FieldType.NUMBER
    if any(token in lower for token in ('active', 'enabled', 'completed')):
        return FieldType.BOOLEAN
    if re.match(r'(is|has)[A-Z]', name):
        return FieldType.BOOLEAN
    return hint or FieldType.STRING


def classify_literal(literal: str) -> Optional[FieldType]:
    """Type of an initializer literal; None when the literal says nothing (null, undefined)."""
    value = literal.strip()
    if not value:
        return None
    if value[0] in ('"', "'", '`'):
        return FieldType.STRING
    if re.fullmatch(r'-?\d+(\.\d+)?', value):
        return FieldType.NUMBER
    if value in ('true', 'false'):
        return FieldType.BOOLEAN
    if value.startswith('new Date'):
        return FieldType.DATE
    if value.startswith('[') or value.startswith('{'):
        return FieldType.OPAQUE
    return None


def _fields_in_expression(expression: str, hint: Optional[FieldType] = None) -> List[FieldAccess]:
    accesses = []
    for match in _FIELD_ACCESS_RE.finditer(expression):
        root, field = match.group(1), match.group(2)
        if root in IGNORED_ROOTS or field in IGNORED_FIELDS:
            continue
        field_hint = hint
        tail = expression[match.end():]
        head = expression[:match.start()]
        if re.match(r'\s*[<>]=?\s*-?\d', tail) or re.search(r'-?\d\s*[<>]=?\s*$', head):
            field_hint = FieldType.NUMBER
        accesses.append(FieldAccess(root, field, field_hint))
    return accesses


def _input_type_hint(text: str, position: int) -> Optional[FieldType]:
    """Hint from the ``type`` attribute of the tag enclosing ``position``."""
    start = text.rfind('<', 0, position)
    end = text.find('>', position)
    if start == -1:
        return None
    tag = text[start:end if end != -1 else len(text)]
    if tag.startswith('<textarea'):
        return FieldType.STRING
    match = re.search(r'\btype\s*=\s*["\']([\w-]+)["\']', tag)
    if not match:
        return None
    return _INPUT_TYPE_HINTS.get(match.group(1).lower())


class InferenceRule(ABC):
    """One structural pattern recognizer."""

    name = 'rule'

    @abstractmethod
    def scan(self, text: str) -> List[Observation]:
        """Return observations found in ``text``."""


class IterationRule(InferenceRule):
    name = 'iteration'

    NG_FOR = re.compile(r'\*ngFor\s*=\s*"\s*let\s+(' + IDENT + r')\s+of\s+([^";|]+)')
    CONTROL_FLOW_FOR = re.compile(r'@for\s*\(\s*(' + IDENT + r')\s+of\s+([^;)]+)')

    def scan(self, text: str) -> List[Observation]:
        bindings: List[Observation] = []
        for pattern in (self.NG_FOR, self.CONTROL_FLOW_FOR):
            for match in pattern.finditer(text):
                collection = match.group(2).strip().split('|')[0].strip()
                bindings.append(IterationBinding(match.group(1), collection))
        return bindings


class InterpolationRule(InferenceRule):
    name = 'interpolation'

    PATTERN = re.compile(r'\{\{(.*?)\}\}', re.DOTALL)

    def scan(self, text: str) -> List[Observation]:
        observations: List[Observation] = []
        for match in self.PATTERN.finditer(text):
            segments = re.split(r'(?<!\|)\|(?!\|)', match.group(1))
            expression, pipes = segments[0], segments[1:]
            hint = None
            for pipe in pipes:
                pipe_name = pipe.strip().split(':')[0].strip()
                if pipe_name in _PIPE_HINTS:
                    hint = _PIPE_HINTS[pipe_name]
            accesses = _fields_in_expression(expression)
            if hint is not None and len(accesses) == 1:
                accesses = [FieldAccess(accesses[0].root, accesses[0].field, accesses[0].hint or hint)]
            observations.extend(accesses)
        return observations


class PropertyBindingRule(InferenceRule):
    name = 'property_binding'

    BINDING = re.compile(r'\[(?!\()([\w.-]+)\]\s*=\s*"([^"]*)"')
    STRUCTURAL = re.compile(r'\*ngIf\s*=\s*"([^"]*)"|@if\s*\(([^)]*)\)')
    BOOLEAN_PROPERTIES = frozenset({'checked', 'disabled', 'hidden', 'readonly', 'required', 'selected'})

    def scan(self, text: str) -> List[Observation]:
        observations: List[Observation] = []
        for match in self.BINDING.finditer(text):
            prop = match.group(1)
            if prop in ('formGroup', 'formControl', 'ngModel'):
                continue
            expression = match.group(2)
            hint = None
            if prop in self.BOOLEAN_PROPERTIES and re.fullmatch(r'\s*!?\s*' + IDENT + r'\??\.' + IDENT + r'\s*', expression):
                hint = FieldType.BOOLEAN
            observations.extend(_fields_in_expression(expression, hint))
        for match in self.STRUCTURAL.finditer(text):
            expression = (match.group(1) or match.group(2) or '').split(';')[0]
            observations.extend(_fields_in_expression(expression))
        return observations


class FormBindingRule(InferenceRule):
    name = 'form_binding'

    NG_MODEL = re.compile(r'\[\(ngModel\)\]\s*=\s*"\s*(?:(' + IDENT + r')\??\.)?(' + IDENT + r')\s*"')
    FORM_CONTROL_NAME = re.compile(r'\bformControlName\s*=\s*"(' + IDENT + r')"')
    FORM_GROUP = re.compile(r'\[formGroup\]\s*=\s*"\s*(' + IDENT + r')\s*"')

    def scan(self, text: str) -> List[Observation]:
        observations: List[Observation] = []
        for match in self.NG_MODEL.finditer(text):
            root = match.group(1) or ''
            if root in IGNORED_ROOTS:
                continue
            observations.append(FieldAccess(root, match.group(2), _input_type_hint(text, match.start())))
        groups = [(m.start(), m.group(1)) for m in self.FORM_GROUP.finditer(text)]
        for match in self.FORM_CONTROL_NAME.finditer(text):
            root = ''
            for position, group in groups:
                if position < match.start():
                    root = group
            observations.append(FieldAccess(root, match.group(1), _input_type_hint(text, match.start())))
        return observations


class ReactiveFormRule(InferenceRule):
    name = 'reactive_form'

    GROUP = re.compile(
        r'(?:this\.)?(' + IDENT + r')\s*(?::[^=;]+)?=\s*'
        r'(?:(?:this\.)?' + IDENT + r'(?:\.nonNullable)?\.group|new\s+FormGroup)\s*(?:<[^>(]*>)?\s*\(\s*\{'
    )

    def scan(self, text: str) -> List[Observation]:
        observations: List[Observation] = []
        masked = mask_source(text)
        for match in self.GROUP.finditer(masked):
            open_brace = match.end() - 1
            close_brace = find_matching(masked, open_brace)
            if close_brace is None:
                continue
            root = match.group(1)
            for entry in split_top_level(text[open_brace + 1:close_brace]):
                key, sep, value = entry.partition(':')
                if not sep:
                    continue
                key = key.strip().strip('\'"')
                if not re.fullmatch(IDENT, key):
                    continue
                observations.append(FieldAccess(root, key, classify_literal(self._initializer(value))))
        return observations

    def _initializer(self, value: str) -> str:
        """First argument or array element of a control declaration."""
        value = value.strip()
        if value.startswith('['):
            elements = split_top_level(value[1:value.rfind(']')])
            value = elements[0] if elements else ''
        else:
            call = re.match(r'(?:new\s+FormControl|(?:this\.)?' + IDENT + r'\.control)\s*(?:<[^>(]*>)?\s*\(', value)
            if call:
                args = split_top_level(value[call.end():value.rfind(')')])
                value = args[0] if args else ''
        obj = re.match(r'\{\s*value\s*:\s*(.*?)\s*(?:,|\})', value, re.DOTALL)
        if obj:
            value = obj.group(1)
        return value


DEFAULT_RULES: Sequence[InferenceRule] = (
    IterationRule(), InterpolationRule(), PropertyBindingRule(), FormBindingRule(), ReactiveFormRule(),
)


def _strip_root_affixes(root: str) -> str:
    base = root.replace('$', '')
    for prefix in _ROOT_PREFIXES:
        if base.startswith(prefix) and len(base) > len(prefix) and base[len(prefix)].isupper():
            base = base[len(prefix)].lower() + base[len(prefix) + 1:]
            break
    for suffix in _ROOT_SUFFIXES:
        if base.endswith(suffix) and len(base) > len(suffix):
            base = base[:-len(suffix)]
            break
    return base


def _unit_base_name(unit_name: str) -> str:
    words = split_words(unit_name)
    while words and words[-1] in _UNIT_SUFFIX_WORDS:
        words.pop()
    return '-'.join(words)


class ModelInferenceEngine:
    """Runs the rule catalog over a unit's files and builds its models."""

    def __init__(self, rules: Optional[Sequence[InferenceRule]] = None, min_fields: int = MIN_INFERRED_FIELDS):
        self.rules = list(rules or DEFAULT_RULES)
        self.min_fields = min_fields

    def scan(self, text: str) -> List[Observation]:
        observations: List[Observation] = []
        for rule in self.rules:
            observations.extend(rule.scan(text))
        return observations

    def infer_unit(self, unit_name: str, files: Iterable[GeneratedFile]) -> List[InferredModel]:
        """Infer models from one unit's markup and source files."""
        observations: List[Observation] = []
        for generated in files:
            if generated.extension in ('html', 'ts'):
                observations.extend(self.scan(generated.filecontent))

        iterations = {o.variable: o.collection for o in observations if isinstance(o, IterationBinding)}
        grouped: Dict[str, Dict[str, List[Optional[FieldType]]]] = {}
        for access in observations:
            if not isinstance(access, FieldAccess):
                continue
            model_name = self._model_name(access.root, iterations, unit_name)
            if not model_name:
                continue
            grouped.setdefault(model_name, {}).setdefault(access.field, []).append(access.hint)

        models = []
        for model_name, field_hints in grouped.items():
            fields = {name: self._resolve(name, hints) for name, hints in field_hints.items()}
            model = InferredModel(model_name, fields, explicit=False, source_unit=unit_name)
            if model.non_id_field_count >= self.min_fields:
                models.append(model)
            else:
                logger.debug(f"Skipping {model_name} from {unit_name}: {model.non_id_field_count} field(s)")
        return models

    def _resolve(self, name: str, hints: List[Optional[FieldType]]) -> FieldType:
        concrete = [h for h in hints if h is not None and h != FieldType.OPAQUE]
        if concrete:
            return resolve_field_type(name, concrete[0])
        if hints and all(h == FieldType.OPAQUE for h in hints):
            return FieldType.OPAQUE
        return resolve_field_type(name, None)

    def _model_name(self, root: str, iterations: Dict[str, str], unit_name: str) -> str:
        if root in iterations:
            collection = iterations[root].split('.')[-1].strip()
            base = singularize(_strip_root_affixes(re.sub(r'\(.*$', '', collection)))
        elif root:
            base = _strip_root_affixes(root)
            if base.lower() in ('form', 'group', 'f', 'model'):
                base = _unit_base_name(unit_name)
        else:
            base = _unit_base_name(unit_name)
        return to_pascal_case(base) if base else ''

    def parse_explicit(self, files: Iterable[GeneratedFile]) -> List[InferredModel]:
        """Parse models declared in ``*.model.ts`` files or under ``models/``."""
        models = []
        for generated in files:
            path = generated.relative_path
            if generated.extension != 'ts':
                continue
            if not (generated.filename.endswith('.model.ts') or '/models/' in f"/{path}"):
                continue
            models.extend(parse_model_declarations(generated.filecontent, source_unit=path))
        return models


_DECLARATION_RE = re.compile(r'export\s+(?:interface|class)\s+(' + IDENT + r')[^{]*\{')
_PROPERTY_RE = re.compile(r'^\s*(?:readonly\s+|public\s+)?(' + IDENT + r')\??!?\s*:\s*([^;=]+?)\s*(?:[;=,]|$)')


def parse_model_declarations(text: str, source_unit: str = '') -> List[InferredModel]:
    """Explicit ``export interface|class`` declarations with their typed properties."""
    masked = mask_source(text)
    models = []
    for match in _DECLARATION_RE.finditer(masked):
        open_brace = match.end() - 1
        close_brace = find_matching(masked, open_brace)
        if close_brace is None:
            continue
        fields: Dict[str, FieldType] = {}
        for start, end in _top_level_statements(masked, open_brace + 1, close_brace):
            prop = _PROPERTY_RE.match(text[start:end])
            if prop and '(' not in prop.group(2):
                fields[prop.group(1)] = _ts_type(prop.group(2))
        if fields:
            models.append(InferredModel(match.group(1), fields, explicit=True, source_unit=source_unit))
    return models


def _top_level_statements(masked: str, start: int, end: int) -> List[Tuple[int, int]]:
    """Spans between ``start`` and ``end`` separated by newlines or ``;`` at depth zero."""
    spans = []
    depth = 0
    segment = start
    for i in range(start, end):
        ch = masked[i]
        if ch in '{([':
            depth += 1
        elif ch in '})]':
            depth = max(depth - 1, 0)
        elif depth == 0 and ch in ';\n':
            spans.append((segment, i + 1))
            segment = i + 1
    spans.append((segment, end))
    return spans


def _ts_type(annotation: str) -> FieldType:
    parts = [p.strip() for p in annotation.split('|') if p.strip() not in ('null', 'undefined')]
    if len(parts) != 1:
        return FieldType.OPAQUE
    return _TS_TYPES.get(parts[0], FieldType.OPAQUE)


def _preferred(first: InferredModel, second: InferredModel) -> InferredModel:
    """Winner of a collapse: explicit, then no known suffix, then shorter name, then first seen."""
    if first.explicit != second.explicit:
        return first if first.explicit else second
    if first.has_known_suffix != second.has_known_suffix:
        return second if first.has_known_suffix else first
    if len(first.name) != len(second.name):
        return first if len(first.name) < len(second.name) else second
    return first


def deduplicate_models(models: Iterable[InferredModel], threshold: float = SIMILARITY_THRESHOLD) -> List[InferredModel]:
    """Collapse models with similarity >= ``threshold`` (or the same name).

    Fields are unioned in winner order. Repeats until no pair collapses, so
    a union that becomes similar to another survivor is collapsed too.
    """
    survivors = [InferredModel(m.name, dict(m.fields), m.explicit, m.source_unit) for m in models]
    changed = True
    while changed:
        changed = False
        result: List[InferredModel] = []
        for model in survivors:
            for index, kept in enumerate(result):
                if kept.name == model.name or kept.similarity(model) >= threshold:
                    winner = _preferred(kept, model)
                    loser = model if winner is kept else kept
                    merged = InferredModel(winner.name, dict(winner.fields), winner.explicit, winner.source_unit)
                    merged.absorb(loser)
                    logger.debug(f"Collapsed model {loser.name} into {winner.name}")
                    result[index] = merged
                    changed = True
                    break
            else:
                result.append(model)
        survivors = result
    return survivors
