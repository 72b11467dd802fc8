"""Scaffolding
===========

Materializes canonical per-unit boilerplate.

Two ``Scaffolder`` implementations:
- ``ExternalToolScaffolder`` runs the Angular CLI (``ng generate``) inside the
  request's staging copy of the template project and reads the generated
  files back from their deterministic path.
- ``DirectWriteScaffolder`` renders minimal self-contained files from the
  Jinja2 stubs under ``misc/templates/scaffold``.

``ScaffoldOrchestrator`` tries the tool first and switches to direct write
on any tool failure for that unit only. The failure is logged and recorded
on the outcome; it is never raised to the caller.
"""

import asyncio
import logging
import posixpath
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Sequence

from jinja2 import Environment

from designsynth.constants import ComponentCategory, UnitKind
from designsynth.services.service_base import ScaffoldToolFailure
from designsynth.utils.process import run_command

from .artifacts import GeneratedFile, UnitSpec
from .source_scanner import SourceOutline, append_class_members
from .templating import get_template_environment, render_template

logger = logging.getLogger(__name__)

CLICK_HANDLER = """  onClick(): void {
    // Default click handler
  }"""


@dataclass
class ScaffoldOutcome:
    """Scaffold result for one unit.

    Attributes:
        unit: The unit that was scaffolded
        files: Materialized files, paths relative to the unit root
        scaffolder: Name of the scaffolder that produced ``files``
        degraded: True when the external tool failed and direct write took over
        reason: Failure message of the external tool, if any
    """
    unit: UnitSpec
    files: List[GeneratedFile] = field(default_factory=list)
    scaffolder: str = ''
    degraded: bool = False
    reason: str = ''

    @property
    def success(self) -> bool:
        return bool(self.files)


class Scaffolder(ABC):
    """Capability: produce boilerplate files for one unit."""

    name = 'scaffolder'

    @abstractmethod
    async def scaffold(self, unit: UnitSpec, style_option: str) -> List[GeneratedFile]:
        """Return the unit's boilerplate files.

        Raises:
            ScaffoldToolFailure: When the files could not be produced
        """


class ExternalToolScaffolder(Scaffolder):
    """Runs ``ng generate`` in a staging copy of the template project."""

    name = 'external_tool'

    def __init__(
        self,
        project_dir: Path,
        command: Sequence[str] = ('npx', '--no-install', 'ng'),
        timeout: float = 60,
        standalone: bool = True,
        unit_root: str = 'src/app',
    ):
        self.project_dir = Path(project_dir)
        self.command = list(command)
        self.timeout = timeout
        self.standalone = standalone
        self.unit_root = unit_root

    def build_command(self, unit: UnitSpec, style_option: str) -> List[str]:
        if unit.kind == UnitKind.COMPONENT:
            # ng creates <path>/<basename>.component.*; --flat keeps files directly in the directory
            own_directory = posixpath.basename(unit.directory) == unit.name
            target = unit.directory if own_directory else posixpath.join(unit.directory, unit.name)
            command = [
                *self.command, 'generate', 'component', target,
                '--style', style_option,
                f"--standalone={'true' if self.standalone else 'false'}",
                '--skip-tests', '--skip-import', '--defaults',
            ]
            if not own_directory:
                command.append('--flat')
            return command
        if unit.kind == UnitKind.SERVICE:
            return [
                *self.command, 'generate', 'service', f"{unit.directory}/{unit.name}",
                '--skip-tests', '--defaults',
            ]
        raise ScaffoldToolFailure(f"No schematic for {unit.kind.value} units", unit_name=unit.name)

    def expected_files(self, unit: UnitSpec, style_option: str) -> List[str]:
        """File names the tool writes for ``unit`` (relative to the unit directory)."""
        if unit.kind == UnitKind.SERVICE:
            return [f"{unit.name}.service.ts"]
        style_ext = 'scss' if style_option in ('scss', 'sass') else 'css'
        return [f"{unit.name}.component.ts", f"{unit.name}.component.html", f"{unit.name}.component.{style_ext}"]

    async def scaffold(self, unit: UnitSpec, style_option: str) -> List[GeneratedFile]:
        command = self.build_command(unit, style_option)
        logger.debug(f"Scaffolding {unit.name}: {' '.join(command)}")
        result = await run_command(command, cwd=self.project_dir, timeout=self.timeout)
        if not result.ok:
            reason = 'timed out' if result.timed_out else f"exit code {result.returncode}"
            detail = result.output.strip().splitlines()[-1:] if result.output.strip() else []
            message = f"ng generate {unit.kind.value} {unit.name} failed ({reason})"
            if detail:
                message += f": {detail[0][:200]}"
            raise ScaffoldToolFailure(message, unit_name=unit.name, returncode=result.returncode)
        return await asyncio.get_running_loop().run_in_executor(
            None, self._read_outputs, unit, style_option
        )

    def _read_outputs(self, unit: UnitSpec, style_option: str) -> List[GeneratedFile]:
        unit_dir = self.project_dir / self.unit_root / unit.directory
        files = []
        for filename in self.expected_files(unit, style_option):
            path = unit_dir / filename
            try:
                content = path.read_text(encoding='utf-8')
            except (OSError, UnicodeDecodeError) as e:
                raise ScaffoldToolFailure(
                    f"Scaffold output missing for {unit.name}: {filename} ({e})", unit_name=unit.name
                ) from e
            files.append(GeneratedFile(filepath=unit.directory, filename=filename, filecontent=content))
        return files


class DirectWriteScaffolder(Scaffolder):
    """Renders minimal self-contained unit files from Jinja2 stubs."""

    name = 'direct_write'

    def __init__(self, env: Optional[Environment] = None, standalone: bool = True,
                 route_pages: Optional[Sequence[UnitSpec]] = None):
        self.env = env or get_template_environment()
        self.standalone = standalone
        self.route_pages = list(route_pages or [])

    async def scaffold(self, unit: UnitSpec, style_option: str) -> List[GeneratedFile]:
        style_ext = 'scss' if style_option in ('scss', 'sass') else 'css'
        context = {
            'unit': unit,
            'name': unit.name,
            'class_name': unit.class_name,
            'selector': f"app-{unit.name}",
            'label': unit.label,
            'is_button': unit.category == ComponentCategory.BUTTON.value,
            'is_input': unit.category == ComponentCategory.INPUT.value,
            'is_page': unit.is_page,
            'standalone': self.standalone,
            'style_ext': style_ext,
        }
        if unit.kind == UnitKind.ROUTE:
            context['pages'] = [p for p in self.route_pages if p.is_page]
            return [GeneratedFile('', 'app.routes.ts', render_template(self.env, 'scaffold/routes.ts.jinja2', **context))]
        if unit.kind == UnitKind.SERVICE:
            return [GeneratedFile(
                unit.directory, f"{unit.name}.service.ts",
                render_template(self.env, 'scaffold/service.ts.jinja2', **context),
            )]
        return [
            GeneratedFile(unit.directory, f"{unit.name}.component.ts",
                          render_template(self.env, 'scaffold/component.ts.jinja2', **context)),
            GeneratedFile(unit.directory, f"{unit.name}.component.html",
                          render_template(self.env, 'scaffold/component.html.jinja2', **context)),
            GeneratedFile(unit.directory, f"{unit.name}.component.{style_ext}",
                          render_template(self.env, 'scaffold/component.css.jinja2', **context)),
        ]


class ScaffoldOrchestrator:
    """Selects a scaffolder per unit; direct write takes over on tool failure."""

    def __init__(self, primary: Optional[Scaffolder], fallback: Scaffolder):
        self.primary = primary
        self.fallback = fallback

    async def scaffold(self, unit: UnitSpec, style_option: str) -> ScaffoldOutcome:
        reason = ''
        if self.primary is not None and unit.kind != UnitKind.ROUTE:
            try:
                files = await self.primary.scaffold(unit, style_option)
                return ScaffoldOutcome(unit, self._finish(unit, files), self.primary.name)
            except ScaffoldToolFailure as e:
                reason = str(e)
                logger.warning(f"Scaffold tool failed for {unit.name}, writing directly: {reason}")

        files = await self.fallback.scaffold(unit, style_option)
        return ScaffoldOutcome(
            unit, self._finish(unit, files), self.fallback.name,
            degraded=bool(reason), reason=reason,
        )

    def _finish(self, unit: UnitSpec, files: List[GeneratedFile]) -> List[GeneratedFile]:
        """Give button units a default click handler."""
        if unit.category != ComponentCategory.BUTTON.value:
            return files
        finished = []
        for generated in files:
            if generated.filename.endswith('.component.ts'):
                outline = SourceOutline(generated.filecontent)
                if outline.cls and 'onClick' not in outline.member_names():
                    generated = generated.with_content(append_class_members(generated.filecontent, CLICK_HANDLER))
            finished.append(generated)
        return finished
