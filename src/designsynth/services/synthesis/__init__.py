"""Design-to-Project Synthesis
=============================

Turns a visual design document plus AI-authored source fragments into a
packaged Angular or Flutter project.

Components:
- design_document.py: DesignDocument model and validator
- code_generator.py: Code generation adapter (PromptConfig, CodeGenerator)
- api_client.py: OpenRouter API client
- unit_planner.py: Components, services and routes for a project
- scaffolding.py: External-tool and direct-write scaffolders
- code_merger.py: Scaffold/AI source reconciliation
- model_inference.py: Data model recovery from templates and sources
- crud_synthesizer.py: CRUD data services per model
- app_shell.py: App root files
- packager.py: Archive assembly and serialization
- verifier.py: Post-generation build check and auto-repair
- service.py: SynthesisService orchestration
"""

from .config import SynthesisOptions, SynthesisResult
from .artifacts import GeneratedFile, InferredModel, MergedUnit, UnitSpec
from .design_document import DesignDocument, DesignDocumentValidator, ValidationOutcome
from .api_client import OpenRouterClient, get_api_client
from .code_generator import CodeGenerator, PromptConfig
from .scaffolding import DirectWriteScaffolder, ExternalToolScaffolder, ScaffoldOrchestrator, ScaffoldOutcome
from .code_merger import CodeMerger
from .model_inference import ModelInferenceEngine, deduplicate_models
from .crud_synthesizer import CrudServiceSynthesizer
from .packager import ProjectArchive, ProjectAssembler
from .verifier import PostGenerationVerifier, VerificationReport
from .service import SynthesisService, get_synthesis_service, synthesize_project, synthesize_sync

__all__ = [
    # Config
    'SynthesisOptions',
    'SynthesisResult',
    # Artifacts
    'GeneratedFile',
    'InferredModel',
    'MergedUnit',
    'UnitSpec',
    'DesignDocument',
    'DesignDocumentValidator',
    'ValidationOutcome',
    # Service
    'SynthesisService',
    'get_synthesis_service',
    'synthesize_project',
    'synthesize_sync',
    # Components
    'OpenRouterClient',
    'get_api_client',
    'CodeGenerator',
    'PromptConfig',
    'DirectWriteScaffolder',
    'ExternalToolScaffolder',
    'ScaffoldOrchestrator',
    'ScaffoldOutcome',
    'CodeMerger',
    'ModelInferenceEngine',
    'deduplicate_models',
    'CrudServiceSynthesizer',
    'ProjectArchive',
    'ProjectAssembler',
    'PostGenerationVerifier',
    'VerificationReport',
]
