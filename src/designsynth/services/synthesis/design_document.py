"""Design Document
=================

Typed view of the visual editor's project data plus its shape validator.

Expected JSON:
    {
      "assets": [...],
      "styles": [{"selectors": ["#id", ".class"], "style": {"prop": "value"}}],
      "pages": [{"name": "Home", "frames": [{"component": {...}}]}]
    }

The validator never raises: it returns a ``ValidationOutcome`` and callers
decide how to degrade.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Tuple, Union

from designsynth.constants import COMPONENT_TYPE_CATEGORIES, ComponentCategory

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StyleRule:
    selectors: Tuple[str, ...]
    style: Dict[str, str]


@dataclass(frozen=True)
class Component:
    """Node of the component tree; built fresh from the document."""
    type: str
    attributes: Dict[str, Any] = field(default_factory=dict)
    children: Tuple['Component', ...] = ()
    content: str = ''
    tag_name: str = ''

    @property
    def category(self) -> ComponentCategory:
        return COMPONENT_TYPE_CATEGORIES.get(self.type.lower(), ComponentCategory.RICH)

    @property
    def text(self) -> str:
        """Visible text: own content plus text of descendant text nodes."""
        parts = [self.content.strip()] if self.content.strip() else []
        for child in self.children:
            if child.category == ComponentCategory.TEXT:
                child_text = child.text
                if child_text:
                    parts.append(child_text)
        return ' '.join(parts)

    def walk(self) -> Iterator['Component']:
        """Depth-first, pre-order traversal including self."""
        yield self
        for child in self.children:
            yield from child.walk()


@dataclass(frozen=True)
class Frame:
    component: Component


@dataclass(frozen=True)
class Page:
    name: str
    frames: Tuple[Frame, ...]

    def components(self) -> Iterator[Component]:
        for frame in self.frames:
            yield from frame.component.walk()


@dataclass(frozen=True)
class DesignDocument:
    assets: Tuple[Any, ...]
    styles: Tuple[StyleRule, ...]
    pages: Tuple[Page, ...]
    raw: Dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    def to_json(self) -> str:
        """Serialized form sent to the code generation adapter."""
        return json.dumps(self.raw, ensure_ascii=False)


@dataclass
class ValidationOutcome:
    """Typed validator result.

    ``document`` is set only when ``valid``; ``warnings`` lists dropped or
    patched parts of an otherwise valid document.
    """
    valid: bool
    document: Optional[DesignDocument] = None
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def error_message(self) -> str:
        return "; ".join(self.errors)


class DesignDocumentValidator:
    """Checks and parses raw design documents."""

    def validate(self, raw: Union[str, bytes, Dict[str, Any], None]) -> ValidationOutcome:
        """Validate the document shape and build the typed tree.

        Rejects when ``assets``, ``styles`` or ``pages`` are missing or not
        lists, when ``pages`` is empty, or when ``pages[0].frames`` is missing
        or not a list.
        """
        data, error = self._load(raw)
        if error:
            return ValidationOutcome(valid=False, errors=[error])

        errors: List[str] = []
        for key in ('assets', 'styles', 'pages'):
            if key not in data:
                errors.append(f"Missing '{key}'")
            elif not isinstance(data[key], list):
                errors.append(f"'{key}' must be an array")
        if not errors and not data['pages']:
            errors.append("'pages' must contain at least one page")
        if not errors:
            first_page = data['pages'][0]
            if not isinstance(first_page, dict) or 'frames' not in first_page:
                errors.append("'pages[0].frames' is missing")
            elif not isinstance(first_page['frames'], list):
                errors.append("'pages[0].frames' must be an array")

        if errors:
            logger.warning(f"Rejected design document: {'; '.join(errors)}")
            return ValidationOutcome(valid=False, errors=errors)

        warnings: List[str] = []
        document = DesignDocument(
            assets=tuple(data['assets']),
            styles=tuple(self._parse_styles(data['styles'], warnings)),
            pages=tuple(self._parse_pages(data['pages'], warnings)),
            raw=data,
        )
        if not any(page.frames for page in document.pages):
            return ValidationOutcome(valid=False, errors=["Document has no page with a frame"], warnings=warnings)

        for warning in warnings:
            logger.debug(f"Design document: {warning}")
        return ValidationOutcome(valid=True, document=document, warnings=warnings)

    def _load(self, raw: Union[str, bytes, Dict[str, Any], None]) -> Tuple[Dict[str, Any], Optional[str]]:
        if isinstance(raw, (str, bytes)):
            try:
                raw = json.loads(raw)
            except (json.JSONDecodeError, UnicodeDecodeError) as e:
                return {}, f"Document is not valid JSON: {e}"
        if not isinstance(raw, dict):
            return {}, "Document must be a JSON object"
        return raw, None

    def _parse_styles(self, styles: List[Any], warnings: List[str]) -> List[StyleRule]:
        rules = []
        for index, rule in enumerate(styles):
            if not isinstance(rule, dict):
                warnings.append(f"styles[{index}] dropped: not an object")
                continue
            selectors = rule.get('selectors', [])
            style = rule.get('style', {})
            if not isinstance(selectors, list) or not isinstance(style, dict):
                warnings.append(f"styles[{index}] dropped: malformed selectors or style")
                continue
            names = tuple(
                s if isinstance(s, str) else str(s.get('name', '')) if isinstance(s, dict) else str(s)
                for s in selectors
            )
            rules.append(StyleRule(
                selectors=tuple(n for n in names if n),
                style={str(k): str(v) for k, v in style.items()},
            ))
        return rules

    def _parse_pages(self, pages: List[Any], warnings: List[str]) -> List[Page]:
        parsed = []
        for index, page in enumerate(pages):
            if not isinstance(page, dict):
                warnings.append(f"pages[{index}] dropped: not an object")
                continue
            frames = page.get('frames') if isinstance(page.get('frames'), list) else []
            parsed_frames = []
            for frame_index, frame in enumerate(frames):
                component = frame.get('component') if isinstance(frame, dict) else None
                if not isinstance(component, dict):
                    warnings.append(f"pages[{index}].frames[{frame_index}] has no component; using empty wrapper")
                    component = {'type': 'wrapper'}
                parsed_frames.append(Frame(component=self._parse_component(component)))
            name = page.get('name') or page.get('id') or f"Page {index + 1}"
            parsed.append(Page(name=str(name), frames=tuple(parsed_frames)))
        return parsed

    def _parse_component(self, data: Dict[str, Any]) -> Component:
        children_raw = data.get('components', [])
        if isinstance(children_raw, str):
            # Editor shorthand: inner HTML/text given as a string
            children: Tuple[Component, ...] = (Component(type='textnode', content=children_raw),)
        elif isinstance(children_raw, list):
            children = tuple(self._parse_component(c) for c in children_raw if isinstance(c, dict))
        else:
            children = ()
        attributes = data.get('attributes') if isinstance(data.get('attributes'), dict) else {}
        content = data.get('content') if isinstance(data.get('content'), str) else ''
        return Component(
            type=str(data.get('type') or ''),
            attributes=dict(attributes),
            children=children,
            content=content,
            tag_name=str(data.get('tagName') or ''),
        )
