"""Synthesis Service
=================

Main orchestration for one synthesis request:

    validate -> generate -> plan -> scaffold/merge/infer (per unit)
    -> deduplicate models -> CRUD services -> app shell -> assemble
    -> verify/repair -> serialize

Per-unit work runs concurrently under a worker limit. Recoverable failures
(scaffold tool, merge extraction, verification) degrade the affected unit and
are reported in ``SynthesisResult.degraded_units``; request-fatal failures
(invalid document, adapter unavailable or malformed, packaging) produce an
unsuccessful result without an archive. Each request owns a staging
directory that is removed before the result is returned.
"""

import asyncio
import logging
import os
import shutil
import tempfile
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Union

from jinja2 import Environment

from designsynth.config.config_manager import SynthesisSettings, get_settings
from designsynth.constants import (
    EXCLUDED_TEMPLATE_DIRS,
    SIMILARITY_THRESHOLD,
    UNIT_ROOTS,
    TargetFramework,
    UnitKind,
)
from designsynth.services.service_base import (
    AdapterUnavailable,
    InvalidDesignDocument,
    MalformedResponse,
    PackagingFailure,
    ServiceError,
    TemplateNotFoundError,
)
from designsynth.utils.async_utils import run_async_safely

from .app_shell import AppShellWriter
from .artifacts import GeneratedFile, InferredModel, MergedUnit, UnitSpec
from .code_generator import CodeGenerator, PromptConfig
from .code_merger import CodeMerger
from .config import SynthesisOptions, SynthesisResult
from .crud_synthesizer import CrudServiceSynthesizer
from .design_document import DesignDocument, DesignDocumentValidator
from .model_inference import ModelInferenceEngine, deduplicate_models
from .packager import ProjectArchive, ProjectAssembler
from .scaffolding import (
    DirectWriteScaffolder,
    ExternalToolScaffolder,
    ScaffoldOrchestrator,
    ScaffoldOutcome,
)
from .templating import get_template_environment
from .unit_planner import UnitPlanner
from .verifier import PostGenerationVerifier

logger = logging.getLogger(__name__)


@dataclass
class UnitResult:
    """Everything one unit worker produced."""
    unit: UnitSpec
    outcome: ScaffoldOutcome
    merged: List[MergedUnit] = field(default_factory=list)
    models: List[InferredModel] = field(default_factory=list)

    @property
    def files(self) -> List[GeneratedFile]:
        return [m.output for m in self.merged]


class SynthesisService:
    """Turns a design document into a packaged client project.

    Raises:
        TemplateNotFoundError: At construction, when a template project
            (``<template_root>/angular`` or ``<template_root>/flutter``) or its
            manifest is missing
    """

    def __init__(
        self,
        settings: Optional[SynthesisSettings] = None,
        generator: Optional[CodeGenerator] = None,
        env: Optional[Environment] = None,
    ):
        self.settings = settings or get_settings()
        self.template_root = Path(self.settings.template_root)
        if not self.template_root.is_dir():
            raise TemplateNotFoundError(f"Template root not found: {self.template_root}")
        self.assemblers: Dict[TargetFramework, ProjectAssembler] = {
            target: ProjectAssembler(self.template_root / target.value, target)
            for target in TargetFramework
        }

        self.env = env or get_template_environment()
        self.generator = generator or CodeGenerator(env=self.env, settings=self.settings)
        self.validator = DesignDocumentValidator()
        self.merger = CodeMerger()
        self.inference = ModelInferenceEngine()
        self.crud = CrudServiceSynthesizer(api_root=self.settings.api_root, env=self.env)
        self.shell = AppShellWriter(self.env)
        self.planner = UnitPlanner()

    async def synthesize(
        self,
        design: Union[str, bytes, Dict[str, Any], None],
        options: SynthesisOptions,
        prompt: Optional[PromptConfig] = None,
        bundle: Optional[Sequence[GeneratedFile]] = None,
    ) -> SynthesisResult:
        """Run one synthesis request.

        Args:
            design: Design document (JSON text or parsed mapping)
            options: Generation options
            prompt: Prompt override (target default when None)
            bundle: Existing files to regenerate from instead of the document

        Returns:
            SynthesisResult; ``archive`` is set only when ``success``
        """
        start_time = time.time()
        result = SynthesisResult(success=False, archive_name=options.archive_name)
        logger.info(f"Starting synthesis: {options.name} ({options.target.value})")

        outcome = self.validator.validate(design)
        if not outcome.valid:
            error = InvalidDesignDocument(outcome.error_message, outcome.errors)
            logger.error(f"Synthesis rejected: {error}")
            result.add_error(str(error))
            result.metrics = {'duration_seconds': time.time() - start_time}
            return result

        try:
            staging = self._create_staging_dir()
        except OSError as e:
            logger.error(f"Cannot create staging directory: {e}")
            result.add_error(f"Cannot create staging directory: {e}")
            result.metrics = {'duration_seconds': time.time() - start_time}
            return result

        try:
            archive = await self._run(outcome.document, options, prompt, bundle, staging, result)
            loop = asyncio.get_running_loop()
            result.archive = await loop.run_in_executor(None, archive.serialize)
            result.success = True
        except (AdapterUnavailable, MalformedResponse, PackagingFailure) as e:
            logger.error(f"Synthesis failed: {e}")
            result.archive = None
            result.add_error(str(e))
        except (ServiceError, OSError) as e:
            logger.exception(f"Synthesis aborted: {e}")
            result.archive = None
            result.add_error(str(e))
        finally:
            shutil.rmtree(staging, ignore_errors=True)

        elapsed = time.time() - start_time
        result.metrics['duration_seconds'] = elapsed
        if result.success:
            logger.info(
                f"Synthesis complete in {elapsed:.1f}s: {result.archive_name} "
                f"({len(result.archive)} bytes, {len(result.degraded_units)} degraded)"
            )
        return result

    def _create_staging_dir(self) -> Path:
        root = Path(self.settings.staging_root)
        root.mkdir(parents=True, exist_ok=True)
        return Path(tempfile.mkdtemp(prefix='synth_', dir=str(root)))

    async def _run(
        self,
        document: DesignDocument,
        options: SynthesisOptions,
        prompt: Optional[PromptConfig],
        bundle: Optional[Sequence[GeneratedFile]],
        staging: Path,
        result: SynthesisResult,
    ) -> ProjectArchive:
        metrics = result.metrics
        prompt = prompt or PromptConfig.for_target(options.target, self.settings)

        step = time.time()
        if bundle:
            ai_output = await self.generator.generate_from_bundle(bundle, options, prompt)
        else:
            ai_output = await self.generator.generate(document.to_json(), options, prompt)
        metrics['generation_seconds'] = time.time() - step
        ai_files = self._index_files(ai_output)
        metrics['ai_files'] = len(ai_files)

        step = time.time()
        if options.target == TargetFramework.ANGULAR:
            generated = await self._synthesize_angular(document, options, ai_files, staging, result)
        else:
            generated = dict(ai_files)
            generated.update(self.shell.write(options, [], generated))
        metrics['synthesis_seconds'] = time.time() - step

        assembler = self.assemblers[options.target]
        archive = await assembler.assemble(options.project_name, generated.values())
        metrics['files'] = len(archive)

        if self.settings.verify_enabled:
            step = time.time()
            command = (self.settings.angular_verify_command if options.target == TargetFramework.ANGULAR
                       else self.settings.flutter_verify_command)
            verifier = PostGenerationVerifier(
                options.target, command,
                timeout=self.settings.verify_timeout,
                template_dir=assembler.template_dir,
            )
            report = await verifier.verify(archive, staging)
            metrics['verification'] = report.to_dict()
            metrics['verification_seconds'] = time.time() - step
        return archive

    def _index_files(self, files: Sequence[GeneratedFile]) -> Dict[str, GeneratedFile]:
        """AI files keyed by path relative to the unit root; later duplicates win."""
        indexed: Dict[str, GeneratedFile] = {}
        for generated in files:
            path = generated.relative_path
            if path in indexed:
                logger.warning(f"Duplicate generated file {path}; keeping the later one")
            indexed[path] = generated
        return indexed

    async def _synthesize_angular(
        self,
        document: DesignDocument,
        options: SynthesisOptions,
        ai_files: Dict[str, GeneratedFile],
        staging: Path,
        result: SynthesisResult,
    ) -> Dict[str, GeneratedFile]:
        units = self.planner.plan(document, options, ai_files.values())
        orchestrator = await self._orchestrator(options, units, staging)
        semaphore = asyncio.Semaphore(self.settings.max_workers)

        async def process(unit: UnitSpec) -> UnitResult:
            async with semaphore:
                outcome = await orchestrator.scaffold(unit, options.style_extension)
                merged, _ = self.merger.merge_files(outcome.files, ai_files)
                unit_result = UnitResult(unit, outcome, merged)
                if unit.kind == UnitKind.COMPONENT:
                    unit_result.models = self.inference.infer_unit(unit.name, unit_result.files)
                return unit_result

        gathered = await asyncio.gather(*(process(unit) for unit in units), return_exceptions=True)

        files: Dict[str, GeneratedFile] = {}
        consumed = set()
        models: List[InferredModel] = []
        for unit, unit_result in zip(units, gathered):
            if isinstance(unit_result, BaseException):
                logger.error(f"Unit {unit.name} failed: {unit_result}")
                result.record_degradation(unit.name, f"unit failed: {unit_result}")
                continue
            if unit_result.outcome.degraded:
                result.record_degradation(unit.name, unit_result.outcome.reason)
            for merged in unit_result.merged:
                if merged.strategy == 'ai_passthrough':
                    result.record_degradation(unit.name, f"merge extraction failed for {merged.output.filename}")
                if merged.ai is not None:
                    consumed.add(merged.ai.relative_path)
                files[merged.output.relative_path] = merged.output
            models.extend(unit_result.models)

        for path, generated in ai_files.items():
            if path not in consumed and path not in files:
                files[path] = generated

        models.extend(self.inference.parse_explicit(files.values()))
        models = deduplicate_models(models, SIMILARITY_THRESHOLD)
        crud = self.crud.synthesize(models, files)
        files.update(crud.files)
        files.update(self.shell.write(options, units, files))

        result.metrics.update({
            'units': len(units),
            'pages': sum(1 for u in units if u.is_page),
            'components': sum(1 for u in units if u.kind == UnitKind.COMPONENT),
            'services': sum(1 for u in units if u.kind == UnitKind.SERVICE),
            'models': [m.name for m in models],
            'crud': {'created': crud.created, 'augmented': crud.augmented, 'preserved': crud.preserved},
        })
        logger.info(
            f"Synthesized {len(files)} files: {len(units)} units, {len(models)} models, "
            f"{len(crud.created)} services created, {len(crud.augmented)} completed"
        )
        return files

    async def _orchestrator(self, options: SynthesisOptions, units: List[UnitSpec],
                            staging: Path) -> ScaffoldOrchestrator:
        fallback = DirectWriteScaffolder(self.env, standalone=options.standalone, route_pages=units)
        if not self.settings.scaffold_enabled:
            return ScaffoldOrchestrator(None, fallback)

        assembler = self.assemblers[options.target]
        loop = asyncio.get_running_loop()
        try:
            project_dir = await loop.run_in_executor(None, self._stage_template, assembler.template_dir, staging)
        except OSError as e:
            logger.warning(f"Could not stage template for the scaffold tool, writing directly: {e}")
            return ScaffoldOrchestrator(None, fallback)

        primary = ExternalToolScaffolder(
            project_dir,
            command=self.settings.scaffold_command,
            timeout=self.settings.scaffold_timeout,
            standalone=options.standalone,
            unit_root=UNIT_ROOTS[options.target],
        )
        return ScaffoldOrchestrator(primary, fallback)

    def _stage_template(self, template_dir: Path, staging: Path) -> Path:
        """Copy the template into staging; dependency folders are linked, not copied."""
        project_dir = staging / 'scaffold'
        shutil.copytree(template_dir, project_dir, ignore=shutil.ignore_patterns(*EXCLUDED_TEMPLATE_DIRS))
        node_modules = template_dir / 'node_modules'
        if node_modules.is_dir():
            os.symlink(node_modules, project_dir / 'node_modules', target_is_directory=True)
        (project_dir / UNIT_ROOTS[TargetFramework.ANGULAR]).mkdir(parents=True, exist_ok=True)
        return project_dir


_service: Optional[SynthesisService] = None


def get_synthesis_service() -> SynthesisService:
    """Get shared synthesis service instance."""
    global _service
    if _service is None:
        _service = SynthesisService()
    return _service


async def synthesize_project(
    design: Union[str, bytes, Dict[str, Any]],
    name: str,
    target: str = 'angular',
    **options: Any,
) -> SynthesisResult:
    """Synthesize with minimal configuration.

    Args:
        design: Design document
        name: Project name
        target: 'angular' or 'flutter'
        **options: Further ``SynthesisOptions`` payload keys (camelCase accepted)
    """
    synthesis_options = SynthesisOptions.from_dict({'name': name, 'target': target, **options})
    return await get_synthesis_service().synthesize(design, synthesis_options)


def synthesize_sync(
    design: Union[str, bytes, Dict[str, Any]],
    options: SynthesisOptions,
    service: Optional[SynthesisService] = None,
    bundle: Optional[Sequence[GeneratedFile]] = None,
) -> SynthesisResult:
    """Blocking wrapper for synchronous callers."""
    service = service or get_synthesis_service()
    return run_async_safely(service.synthesize(design, options, bundle=bundle))
