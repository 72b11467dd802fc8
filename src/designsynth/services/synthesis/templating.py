"""Jinja2 environment shared by prompt, stub, shell and CRUD rendering."""

import logging
from pathlib import Path
from typing import Any, Optional

from jinja2 import Environment, FileSystemLoader, TemplateNotFound, select_autoescape

from designsynth.paths import TEMPLATES_DIR
from designsynth.services.service_base import TemplateNotFoundError
from designsynth.utils.naming import pluralize, to_camel_case, to_kebab_case, to_pascal_case

logger = logging.getLogger(__name__)


def build_environment(templates_dir: Optional[Path] = None) -> Environment:
    """Create the template environment with the naming helpers as filters."""
    env = Environment(
        loader=FileSystemLoader(str(templates_dir or TEMPLATES_DIR)),
        autoescape=select_autoescape(['html', 'xml']),
        trim_blocks=True,
        lstrip_blocks=True,
        keep_trailing_newline=True,
    )
    env.filters['kebab'] = to_kebab_case
    env.filters['pascal'] = to_pascal_case
    env.filters['camel'] = to_camel_case
    env.filters['plural'] = pluralize
    return env


def render_template(env: Environment, template_name: str, /, **context: Any) -> str:
    """Render ``template_name`` or raise ``TemplateNotFoundError``.

    Positional-only so that ``name`` and ``env`` remain usable as context keys.
    """
    try:
        template = env.get_template(template_name)
    except TemplateNotFound as e:
        raise TemplateNotFoundError(f"Template not found: {template_name}") from e
    return template.render(**context)


_environment: Optional[Environment] = None


def get_template_environment() -> Environment:
    """Get shared template environment."""
    global _environment
    if _environment is None:
        _environment = build_environment()
    return _environment
