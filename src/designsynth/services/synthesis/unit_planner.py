"""Unit planning: which components, services and routes a project gets."""

import logging
import posixpath
import re
from typing import Dict, Iterable, List

from designsynth.constants import KNOWN_RICH_TYPES, ComponentCategory, TargetFramework, UnitKind
from designsynth.utils.naming import to_kebab_case

from .artifacts import GeneratedFile, UnitSpec
from .config import SynthesisOptions
from .design_document import Component, DesignDocument

logger = logging.getLogger(__name__)

ROUTE_UNIT_NAME = 'app-routes'
PLANNED_CATEGORIES = (ComponentCategory.BUTTON, ComponentCategory.INPUT, ComponentCategory.RICH)
_UNIT_FILE_RE = re.compile(r'^(?P<name>[a-z0-9][a-z0-9-]*)\.(?P<kind>component|service)\.ts$')
_LABEL_ATTRIBUTES = ('title', 'aria-label', 'placeholder', 'name')
MAX_LABEL_WORDS = 4


class UnitPlanner:
    """Derives the unit list from the design document and the AI file list.

    - every page becomes a page component (``<page>-page``)
    - buttons, inputs and rich widgets become components when
      ``generate_components`` is set, named after their visible text,
      labelling attributes or type
    - ``*.component.ts`` / ``*.service.ts`` files from the AI become units,
      keeping the directory the AI chose
    - a route unit is added when ``include_routing`` is set
    """

    def plan(
        self,
        document: DesignDocument,
        options: SynthesisOptions,
        ai_files: Iterable[GeneratedFile] = (),
    ) -> List[UnitSpec]:
        if options.target != TargetFramework.ANGULAR:
            return []

        ai_units = self._ai_units(ai_files)
        units: Dict[str, UnitSpec] = {}

        for page in document.pages:
            name = self._unique(self._page_name(page.name), units)
            units[name] = UnitSpec(UnitKind.COMPONENT, name, ComponentCategory.WRAPPER.value,
                                   is_page=True, label=page.name, path=ai_units.pop(name, (None, None))[1])

        if options.generate_components:
            for page in document.pages:
                for component in page.components():
                    if component.category not in PLANNED_CATEGORIES:
                        continue
                    if component.category == ComponentCategory.RICH and component.type.lower() not in KNOWN_RICH_TYPES:
                        continue
                    label = self._label(component)
                    base = self._component_name(component, label)
                    if base in units and not units[base].is_page and units[base].category == component.category.value:
                        # Identical widgets share one component
                        continue
                    name = self._unique(base, units)
                    units[name] = UnitSpec(UnitKind.COMPONENT, name, component.category.value,
                                           label=label, path=ai_units.pop(name, (None, None))[1])

        for name, (kind, directory) in ai_units.items():
            if name == 'app' or name in units:
                continue
            units[name] = UnitSpec(kind, name, path=directory)

        if options.include_routing:
            units[ROUTE_UNIT_NAME] = UnitSpec(UnitKind.ROUTE, ROUTE_UNIT_NAME)

        planned = list(units.values())
        logger.info(
            f"Planned {len(planned)} units: "
            f"{sum(1 for u in planned if u.is_page)} pages, "
            f"{sum(1 for u in planned if u.kind == UnitKind.COMPONENT and not u.is_page)} components, "
            f"{sum(1 for u in planned if u.kind == UnitKind.SERVICE)} services"
        )
        return planned

    def _ai_units(self, ai_files: Iterable[GeneratedFile]) -> Dict[str, tuple]:
        """unit name -> (kind, directory) for unit files the AI produced."""
        found: Dict[str, tuple] = {}
        for generated in ai_files:
            match = _UNIT_FILE_RE.match(generated.filename)
            if not match:
                continue
            kind = UnitKind.COMPONENT if match.group('kind') == 'component' else UnitKind.SERVICE
            directory = posixpath.dirname(generated.relative_path)
            found.setdefault(match.group('name'), (kind, directory))
        return found

    def _page_name(self, page_name: str) -> str:
        base = to_kebab_case(page_name) or 'page'
        return base if base.endswith('page') else f"{base}-page"

    def _label(self, component: Component) -> str:
        text = component.text
        if not text:
            for attribute in _LABEL_ATTRIBUTES:
                value = component.attributes.get(attribute)
                if isinstance(value, str) and value.strip():
                    text = value.strip()
                    break
        # Strip markup that rich text nodes carry
        text = re.sub(r'<[^>]+>', ' ', text)
        return ' '.join(text.split())

    def _component_name(self, component: Component, label: str) -> str:
        category = component.category
        kind_word = category.value if category != ComponentCategory.RICH else to_kebab_case(component.type)
        words = to_kebab_case(label).split('-')[:MAX_LABEL_WORDS] if label else []
        base = '-'.join(w for w in words if w)
        if not base:
            return kind_word or 'widget'
        if kind_word and not base.endswith(kind_word):
            base = f"{base}-{kind_word}"
        if base[0].isdigit():
            base = f"{kind_word or 'widget'}-{base}"
        return base

    def _unique(self, base: str, taken: Dict[str, UnitSpec]) -> str:
        if base not in taken and base != ROUTE_UNIT_NAME:
            return base
        counter = 2
        while f"{base}-{counter}" in taken:
            counter += 1
        return f"{base}-{counter}"

