"""CRUD Service Synthesizer
========================

Emits one HttpClient-backed data-access service per surviving model:
``getAll``, ``getById``, ``create``, ``update``, ``delete`` and ``search``,
all routed to ``<apiRoot>/<lowercase plural>``, plus a shared ``handleError``
that tells client-side transport failures (``ErrorEvent``) apart from server
status failures. Inferred models also get ``models/<kebab>.model.ts``.

An existing service for the model that already exposes at least three of the
five canonical operations (aliases count) is left untouched. Otherwise the
missing operations are appended to the existing class and their imports
ensured; existing members are not modified.
"""

import logging
import posixpath
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from jinja2 import Environment

from designsynth.constants import (
    CANONICAL_CRUD_OPERATIONS,
    CRUD_PRESERVE_THRESHOLD,
    DEFAULT_API_ROOT,
    FieldType,
)
from designsynth.utils.naming import pluralize, split_words, to_camel_case, to_kebab_case

from .artifacts import GeneratedFile, InferredModel
from .source_scanner import SourceOutline, append_class_members, ensure_import
from .templating import get_template_environment, render_template

logger = logging.getLogger(__name__)

TS_FIELD_TYPES: Dict[FieldType, str] = {
    FieldType.STRING: 'string',
    FieldType.NUMBER: 'number',
    FieldType.BOOLEAN: 'boolean',
    FieldType.DATE: 'Date | string',
    FieldType.OPAQUE: 'any',
}

# Alternative method names counted as the canonical operation
OPERATION_ALIASES: Dict[str, tuple] = {
    'getAll': ('getAll', 'findAll', 'list', 'listAll', 'fetchAll', 'loadAll', 'getList', 'getItems'),
    'getById': ('getById', 'findById', 'findOne', 'getOne', 'get', 'fetchById', 'fetchOne', 'find'),
    'create': ('create', 'add', 'save', 'insert', 'post'),
    'update': ('update', 'edit', 'put', 'patch', 'modify'),
    'delete': ('delete', 'remove', 'destroy', 'deleteById', 'removeById'),
}


@dataclass
class CrudSynthesisResult:
    """Files produced for the models, keyed by path relative to the unit root."""
    files: Dict[str, GeneratedFile] = field(default_factory=dict)
    created: List[str] = field(default_factory=list)
    augmented: List[str] = field(default_factory=list)
    preserved: List[str] = field(default_factory=list)


def detect_operations(member_names: List[str], model_name: str) -> List[str]:
    """Canonical operations covered by ``member_names``, aliases included.

    Model-qualified names count too: ``getProducts`` -> getAll,
    ``getProduct`` -> getById, ``addProduct`` -> create.
    """
    singular = model_name
    plural = pluralize(model_name)
    present = set(member_names)
    found = []
    for operation in CANONICAL_CRUD_OPERATIONS:
        aliases = set(OPERATION_ALIASES[operation])
        if operation == 'getAll':
            aliases |= {f"get{plural}", f"getAll{plural}", f"load{plural}", f"fetch{plural}"}
        elif operation == 'getById':
            aliases |= {f"get{singular}", f"get{singular}ById", f"find{singular}"}
        else:
            verbs = OPERATION_ALIASES[operation]
            aliases |= {f"{verb}{singular}" for verb in verbs}
        if present & aliases:
            found.append(operation)
    return found


class CrudServiceSynthesizer:
    """Creates or completes data-access services for inferred and explicit models."""

    def __init__(self, api_root: str = DEFAULT_API_ROOT, env: Optional[Environment] = None):
        self.api_root = '/' + api_root.strip('/') if api_root.strip('/') else ''
        self.env = env or get_template_environment()

    def base_path(self, model: InferredModel) -> str:
        """``<apiRoot>/<lowercase plural>``: Product -> /api/products."""
        return f"{self.api_root}/{pluralize(''.join(split_words(model.name)))}"

    def synthesize(self, models: List[InferredModel], files: Dict[str, GeneratedFile]) -> CrudSynthesisResult:
        """Build services for ``models``.

        Args:
            models: Deduplicated models
            files: Current project files keyed by path relative to the unit root

        Returns:
            CrudSynthesisResult with new and rewritten files
        """
        result = CrudSynthesisResult()
        for model in models:
            kebab = to_kebab_case(model.name)
            service_path = f"services/{kebab}.service.ts"
            existing_path = self._find_existing_service(model, service_path, files)
            if existing_path is None:
                result.files.update(self._create(model, service_path, files))
                result.created.append(model.name)
                continue

            existing = files[existing_path]
            outline = SourceOutline(existing.filecontent)
            present = detect_operations(outline.member_names(), model.name)
            if len(present) >= CRUD_PRESERVE_THRESHOLD:
                logger.info(f"Keeping existing {existing_path}: exposes {', '.join(present)}")
                result.preserved.append(model.name)
                continue

            missing = [op for op in CANONICAL_CRUD_OPERATIONS if op not in present]
            logger.info(f"Completing {existing_path} with {', '.join(missing)}")
            result.files[existing_path] = self._augment(model, existing, missing, existing_path, files)
            result.augmented.append(model.name)
        return result

    def _find_existing_service(self, model: InferredModel, service_path: str,
                               files: Dict[str, GeneratedFile]) -> Optional[str]:
        if service_path in files:
            return service_path
        class_name = f"{model.name}Service"
        for path, generated in files.items():
            if path.endswith('.service.ts') and re.search(r'\bclass\s+' + class_name + r'\b', generated.filecontent):
                return path
        return None

    def _model_import_path(self, model: InferredModel, from_path: str, files: Dict[str, GeneratedFile]) -> str:
        """Relative module path of the model declaration, as seen from ``from_path``."""
        if model.explicit and model.source_unit.endswith('.ts'):
            target = model.source_unit[:-3]
        else:
            target = f"models/{to_kebab_case(model.name)}.model"
        relative = posixpath.relpath(target, posixpath.dirname(from_path) or '.')
        return relative if relative.startswith('.') else f"./{relative}"

    def _context(self, model: InferredModel, service_path: str, files: Dict[str, GeneratedFile]) -> dict:
        return {
            'model': model.name,
            'model_var': to_camel_case(model.name),
            'service_class': f"{model.name}Service",
            'base_path': self.base_path(model),
            'model_import': self._model_import_path(model, service_path, files),
            'fields': [(name, TS_FIELD_TYPES[field_type]) for name, field_type in model.fields.items()],
            'http': 'http',
        }

    def _create(self, model: InferredModel, service_path: str, files: Dict[str, GeneratedFile]) -> Dict[str, GeneratedFile]:
        created: Dict[str, GeneratedFile] = {}
        context = self._context(model, service_path, files)
        if not model.explicit:
            model_path = f"models/{to_kebab_case(model.name)}.model.ts"
            if model_path not in files:
                created[model_path] = GeneratedFile(
                    'models', posixpath.basename(model_path),
                    render_template(self.env, 'crud/model.ts.jinja2', **context),
                )
        created[service_path] = GeneratedFile(
            'services', posixpath.basename(service_path),
            render_template(
                self.env, 'crud/service.ts.jinja2',
                operations=[*CANONICAL_CRUD_OPERATIONS, 'search'], include_error_handler=True, **context,
            ),
        )
        return created

    def _augment(self, model: InferredModel, existing: GeneratedFile, missing: List[str],
                 service_path: str, files: Dict[str, GeneratedFile]) -> GeneratedFile:
        text = existing.filecontent
        outline = SourceOutline(text)
        members = outline.member_names()
        context = self._context(model, service_path, files)

        http_member = self._http_member(outline)
        extra_members = []
        if http_member is None:
            http_member = 'http'
            extra_members.append('  private http = inject(HttpClient);')
            text = ensure_import(text, 'inject', '@angular/core')
        context['http'] = http_member
        if 'baseUrl' not in members:
            extra_members.append(f"  private readonly baseUrl = '{context['base_path']}';")

        snippet = render_template(
            self.env, 'crud/operations.ts.jinja2',
            operations=missing, include_error_handler='handleError' not in members, **context,
        )
        if extra_members:
            snippet = '\n'.join(extra_members) + '\n\n' + snippet
        text = append_class_members(text, snippet)

        for name, module in (('HttpClient', '@angular/common/http'),
                             ('HttpErrorResponse', '@angular/common/http'),
                             ('Observable', 'rxjs'),
                             ('throwError', 'rxjs'),
                             ('catchError', 'rxjs/operators')):
            text = ensure_import(text, name, module)
        if not outline.declares(model.name):
            text = ensure_import(text, model.name, context['model_import'])
        return existing.with_content(text)

    def _http_member(self, outline: SourceOutline) -> Optional[str]:
        for member in outline.members():
            if member.type_annotation and 'HttpClient' in member.type_annotation:
                return member.name
        body = outline.body
        injected = re.search(r'(\w+)\s*=\s*inject\(\s*HttpClient\s*\)', body)
        if injected:
            return injected.group(1)
        param = re.search(r'(?:private|public|protected)\s+(?:readonly\s+)?(\w+)\s*:\s*HttpClient\b', body)
        if param:
            return param.group(1)
        return None
