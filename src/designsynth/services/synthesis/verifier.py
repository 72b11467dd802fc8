"""Post-generation Verifier
========================

Best-effort build check of the assembled project followed by text-level
auto-repair.

The check command (``tsc --noEmit`` for Angular, ``flutter analyze`` for
Flutter) runs against a staged materialization of the archive. When it fails,
the files named in its output (all TypeScript units when none can be
recognized) go through a fixed catalog of repair rules. Every rule checks
whether the file is already correct before rewriting, so applying the catalog
twice changes nothing. Repaired files replace their archive entries; scaffold
and merge are not re-run. A failed check never stops packaging.
"""

import asyncio
import logging
import os
import posixpath
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

from designsynth.constants import UNIT_ROOTS, TargetFramework
from designsynth.services.service_base import PackagingFailure, VerificationFailure
from designsynth.utils.process import CommandResult, run_command

from .packager import ProjectArchive
from .source_scanner import SourceOutline, add_implements, ensure_import, ensure_metadata_entry

logger = logging.getLogger(__name__)

# Dependency directories linked (not copied) into the verification tree
DEPENDENCY_DIRS: Dict[TargetFramework, Tuple[str, ...]] = {
    TargetFramework.ANGULAR: ('node_modules',),
    TargetFramework.FLUTTER: ('.dart_tool',),
}

_ERROR_PATH_RE = re.compile(r'((?:[\w.@-]+/)*[\w.@-]+\.(?:ts|html))(?:\(\d+,\d+\)|:\d+:\d+)')
_TEMPLATE_URL_RE = re.compile(r'templateUrl\s*:\s*[\'"]([^\'"]+)[\'"]')
_INLINE_TEMPLATE_RE = re.compile(r'template\s*:\s*`([^`]*)`', re.DOTALL)


class RepairRule(ABC):
    """One self-guarding text repair."""

    name = 'rule'

    @abstractmethod
    def apply(self, source: str, template: str = '') -> str:
        """Return the repaired source, or ``source`` itself when already correct."""


class CapabilityImportRule(RepairRule):
    """Import a capability (and list it in standalone metadata) when its usage is present.

    Args:
        symbol: Name to import
        module: Module to import it from
        usage: Pattern matched against the component template
        source_usage: Pattern matched against the TypeScript source
        metadata: Also add the symbol to the ``@Component`` ``imports`` array
        satisfied_by: Other symbols that already provide the capability
    """

    def __init__(self, symbol: str, module: str, usage: Optional[str] = None,
                 source_usage: Optional[str] = None, metadata: bool = False,
                 satisfied_by: Sequence[str] = ()):
        self.name = f"import_{symbol}"
        self.symbol = symbol
        self.module = module
        self.usage = re.compile(usage) if usage else None
        self.source_usage = re.compile(source_usage) if source_usage else None
        self.metadata = metadata
        self.satisfied_by = tuple(satisfied_by)

    def used(self, source: str, template: str) -> bool:
        markup = template + ''.join(_INLINE_TEMPLATE_RE.findall(source))
        if self.usage and self.usage.search(markup):
            return True
        if self.source_usage:
            body = '\n'.join(line for line in source.splitlines() if not line.lstrip().startswith('import '))
            return bool(self.source_usage.search(body))
        return False

    def apply(self, source: str, template: str = '') -> str:
        if not self.used(source, template):
            return source
        outline = SourceOutline(source)
        wants_metadata = self.metadata and self._standalone_component(outline)
        if wants_metadata:
            entries = outline.metadata_array('imports') or []
            if any(name in entries for name in (self.symbol, *self.satisfied_by)):
                return source
        elif self.symbol in outline.imported_names:
            return source
        repaired = ensure_import(source, self.symbol, self.module)
        if wants_metadata:
            repaired = ensure_metadata_entry(repaired, 'imports', self.symbol)
        return repaired

    def _standalone_component(self, outline: SourceOutline) -> bool:
        if not outline.decorator or outline.decorator.name != 'Component':
            return False
        return not re.search(r'\bstandalone\s*:\s*false\b', outline.metadata)


class FieldInitializerRule(RepairRule):
    """Give declared-but-uninitialized typed fields a default or a definite-assignment marker."""

    name = 'initialize_fields'

    DEFAULTS = {'string': "''", 'number': '0', 'boolean': 'false'}
    SKIPPED_MODIFIERS = frozenset({'static', 'declare', 'abstract'})

    def default_for(self, type_annotation: str) -> Optional[str]:
        """Initializer text, or None when a ``!`` marker is needed instead."""
        annotation = type_annotation.strip()
        if annotation in self.DEFAULTS:
            return self.DEFAULTS[annotation]
        if annotation.endswith('[]') or re.match(r'(Readonly)?Array<', annotation):
            return '[]'
        return None

    def apply(self, source: str, template: str = '') -> str:
        outline = SourceOutline(source)
        pending = []
        for member in outline.members():
            if member.kind != 'field' or member.initialized or member.marker:
                continue
            if self.SKIPPED_MODIFIERS.intersection(member.modifiers):
                continue
            if re.search(r'\bundefined\b', member.type_annotation or ''):
                continue
            pending.append(member)
        for member in sorted(pending, key=lambda m: m.line_start, reverse=True):
            default = self.default_for(member.type_annotation)
            if default is None:
                source = source[:member.name_end] + '!' + source[member.name_end:]
            else:
                source = source[:member.type_end] + f" = {default}" + source[member.type_end:]
        return source


class LifecycleHookRule(RepairRule):
    """A lifecycle hook method implies ``implements <Hook>`` and its import."""

    name = 'lifecycle_interfaces'

    HOOKS = {
        'ngOnInit': 'OnInit',
        'ngOnDestroy': 'OnDestroy',
        'ngOnChanges': 'OnChanges',
        'ngAfterViewInit': 'AfterViewInit',
        'ngAfterContentInit': 'AfterContentInit',
    }

    def apply(self, source: str, template: str = '') -> str:
        outline = SourceOutline(source)
        if not outline.cls:
            return source
        methods = [m.name for m in outline.members() if m.kind == 'method']
        for method, interface in self.HOOKS.items():
            if method not in methods:
                continue
            source = add_implements(source, interface)
            source = ensure_import(source, interface, '@angular/core')
        return source


DEFAULT_REPAIR_RULES: Sequence[RepairRule] = (
    CapabilityImportRule('FormsModule', '@angular/forms', usage=r'\[\(ngModel\)\]|\bngModel\b', metadata=True),
    CapabilityImportRule('ReactiveFormsModule', '@angular/forms',
                         usage=r'\[formGroup\]|\bformControlName\b|\[formControl\]', metadata=True),
    CapabilityImportRule('CommonModule', '@angular/common',
                         usage=r'\*ngIf|\*ngFor|\*ngSwitch|\[ngClass\]|\[ngStyle\]'
                               r'|\|\s*(?:async|date|currency|number|percent|json|uppercase|lowercase|titlecase|slice|keyvalue)\b',
                         metadata=True,
                         satisfied_by=('NgIf', 'NgFor', 'NgClass', 'NgStyle', 'AsyncPipe', 'DatePipe', 'CurrencyPipe')),
    CapabilityImportRule('RouterModule', '@angular/router', usage=r'\brouterLink\b|<router-outlet',
                         metadata=True, satisfied_by=('RouterLink', 'RouterOutlet', 'RouterLinkActive')),
    CapabilityImportRule('HttpClient', '@angular/common/http', source_usage=r'\bHttpClient\b'),
    CapabilityImportRule('HttpErrorResponse', '@angular/common/http', source_usage=r'\bHttpErrorResponse\b'),
    CapabilityImportRule('Observable', 'rxjs', source_usage=r'\bObservable\s*<'),
    CapabilityImportRule('Input', '@angular/core', source_usage=r'@Input\s*\('),
    CapabilityImportRule('Output', '@angular/core', source_usage=r'@Output\s*\('),
    CapabilityImportRule('EventEmitter', '@angular/core', source_usage=r'\bEventEmitter\s*<|new\s+EventEmitter\b'),
    CapabilityImportRule('FormBuilder', '@angular/forms', source_usage=r'\bFormBuilder\b'),
    CapabilityImportRule('FormGroup', '@angular/forms', source_usage=r'\bFormGroup\b'),
    CapabilityImportRule('Validators', '@angular/forms', source_usage=r'\bValidators\.'),
    FieldInitializerRule(),
    LifecycleHookRule(),
)


@dataclass
class VerificationReport:
    """Outcome of the build check and repairs.

    Attributes:
        ran: Whether the check command was executed
        passed: Whether the check succeeded
        output: Check command output (truncated)
        repaired: archive path -> names of rules that changed it
        error: Warning message when the check failed or could not run
    """
    ran: bool = False
    passed: bool = False
    output: str = ''
    repaired: Dict[str, List[str]] = field(default_factory=dict)
    error: str = ''

    def to_dict(self) -> dict:
        return {
            'ran': self.ran,
            'passed': self.passed,
            'repaired': self.repaired,
            'error': self.error,
        }


class PostGenerationVerifier:
    """Runs the check command and applies repair rules on failure."""

    MAX_OUTPUT = 4000

    def __init__(
        self,
        target: TargetFramework,
        command: Sequence[str],
        timeout: float = 180,
        template_dir: Optional[Path] = None,
        rules: Optional[Sequence[RepairRule]] = None,
    ):
        self.target = target
        self.command = list(command)
        self.timeout = timeout
        self.template_dir = Path(template_dir) if template_dir else None
        self.rules = list(rules if rules is not None else DEFAULT_REPAIR_RULES)
        self.unit_root = UNIT_ROOTS[target]

    async def verify(self, archive: ProjectArchive, work_dir: Path) -> VerificationReport:
        """Check the archive contents and repair affected files in place."""
        report = VerificationReport()
        try:
            result = await self._check(archive, work_dir)
            report.ran = True
            report.passed = True
            report.output = result.output[-self.MAX_OUTPUT:]
            logger.info("Post-generation check passed")
            return report
        except VerificationFailure as e:
            report.ran = e.ran
            report.output = e.output[-self.MAX_OUTPUT:]
            report.error = str(e)
            logger.warning(f"Post-generation check failed: {e}")
        except (OSError, PackagingFailure) as e:
            report.error = f"Could not stage project for the check: {e}"
            logger.warning(f"Post-generation check skipped: {report.error}")
            return report

        if not report.ran or self.target != TargetFramework.ANGULAR:
            return report

        affected = self.affected_files(report.output, archive)
        if not affected:
            affected = [p for p in archive.file_paths if p.startswith(f"{self.unit_root}/") and p.endswith('.ts')]
        report.repaired = self.repair(archive, affected)
        if report.repaired:
            logger.info(f"Auto-repaired {len(report.repaired)} file(s): {', '.join(sorted(report.repaired))}")
        return report

    async def _check(self, archive: ProjectArchive, work_dir: Path) -> CommandResult:
        loop = asyncio.get_running_loop()
        project_dir = work_dir / 'verify'
        await loop.run_in_executor(None, self._materialize, archive, project_dir)
        result = await run_command(self.command, cwd=project_dir, timeout=self.timeout)
        if result.returncode == 127:
            raise VerificationFailure(f"Check command not found: {self.command[0]}", output=result.output, ran=False)
        if not result.ok:
            if result.timed_out:
                message = f"{self.command[0]} timed out after {self.timeout}s"
            else:
                message = f"{' '.join(self.command)} exited with {result.returncode}"
            raise VerificationFailure(message, output=result.output)
        return result

    def _materialize(self, archive: ProjectArchive, project_dir: Path) -> None:
        project_dir.mkdir(parents=True, exist_ok=True)
        archive.write_to(project_dir)
        if self.template_dir is None:
            return
        for name in DEPENDENCY_DIRS.get(self.target, ()):
            source = self.template_dir / name
            link = project_dir / name
            if source.is_dir() and not link.exists():
                os.symlink(source, link, target_is_directory=True)

    def affected_files(self, output: str, archive: ProjectArchive) -> List[str]:
        """Archive paths of TypeScript units named in the tool output."""
        affected: List[str] = []
        known = set(archive.file_paths)
        for match in _ERROR_PATH_RE.finditer(output or ''):
            path = match.group(1)
            if '/verify/' in path:
                path = path.split('/verify/', 1)[1]
            path = path.lstrip('./')
            if path.endswith('.html'):
                path = path[:-5] + '.ts'
            if path in known and path not in affected:
                affected.append(path)
        return affected

    def repair(self, archive: ProjectArchive, paths: Sequence[str]) -> Dict[str, List[str]]:
        """Apply the rule catalog to ``paths``; rewritten files replace their entries."""
        repaired: Dict[str, List[str]] = {}
        for path in paths:
            if not path.endswith('.ts') or path not in archive:
                continue
            source = archive.read_text(path)
            template = self._companion_template(archive, path, source)
            fixed, applied = self.apply_rules(source, template)
            if applied:
                archive.replace_file(path, fixed)
                repaired[path] = applied
        return repaired

    def apply_rules(self, source: str, template: str = '') -> Tuple[str, List[str]]:
        applied = []
        for rule in self.rules:
            updated = rule.apply(source, template)
            if updated != source:
                applied.append(rule.name)
                source = updated
        return source, applied

    def _companion_template(self, archive: ProjectArchive, path: str, source: str) -> str:
        match = _TEMPLATE_URL_RE.search(source)
        if match:
            candidate = posixpath.normpath(posixpath.join(posixpath.dirname(path), match.group(1)))
        else:
            candidate = path[:-3] + '.html'
        return archive.read_text(candidate) if candidate in archive else ''
