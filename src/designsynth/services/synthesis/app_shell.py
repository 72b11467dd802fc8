"""Application shell files.

Every archive must contain the app root files. The AI may already have
produced them; only the missing ones are rendered.
"""

import logging
from typing import Dict, List, Optional

from jinja2 import Environment

from designsynth.constants import TargetFramework
from designsynth.utils.naming import to_pascal_case

from .artifacts import GeneratedFile, UnitSpec
from .config import SynthesisOptions
from .templating import get_template_environment, render_template

logger = logging.getLogger(__name__)

ANGULAR_SHELL_FILES = ('app.component.ts', 'app.component.html', 'app.component.{style}', 'app.config.ts')


class AppShellWriter:
    """Renders missing app root files for the target framework."""

    def __init__(self, env: Optional[Environment] = None):
        self.env = env or get_template_environment()

    def write(
        self,
        options: SynthesisOptions,
        units: List[UnitSpec],
        files: Dict[str, GeneratedFile],
    ) -> Dict[str, GeneratedFile]:
        """Return shell files absent from ``files`` (keys relative to the unit root)."""
        if options.target == TargetFramework.FLUTTER:
            return self._flutter(options, files)
        return self._angular(options, units, files)

    def _angular(self, options: SynthesisOptions, units: List[UnitSpec],
                 files: Dict[str, GeneratedFile]) -> Dict[str, GeneratedFile]:
        style = options.style_extension
        context = {
            'title': options.name,
            'pages': [u for u in units if u.is_page],
            'routing': options.include_routing,
            'responsive': options.responsive_layout,
            'style_ext': style,
        }
        written = {}
        for pattern in ANGULAR_SHELL_FILES:
            filename = pattern.format(style=style)
            if filename in files:
                continue
            template = f"shell/{pattern.replace('.{style}', '.css')}.jinja2"
            written[filename] = GeneratedFile('', filename, render_template(self.env, template, **context))
        if written:
            logger.debug(f"Shell files rendered: {', '.join(sorted(written))}")
        return written

    def _flutter(self, options: SynthesisOptions, files: Dict[str, GeneratedFile]) -> Dict[str, GeneratedFile]:
        if 'main.dart' in files:
            return {}
        content = render_template(
            self.env, 'shell/main.dart.jinja2',
            title=options.name,
            class_name=f"{to_pascal_case(options.project_name) or 'Generated'}App",
        )
        logger.info("AI output has no main.dart; rendering a shell entry point")
        return {'main.dart': GeneratedFile('', 'main.dart', content)}
