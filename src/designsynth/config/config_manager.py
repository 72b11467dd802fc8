"""
Centralized Configuration Manager
=================================

Loads pipeline settings from built-in defaults, an optional JSON file
(``misc/synthesis_config.json``) and environment variables, in that order of
precedence (environment wins). A ``.env`` file at the project root is loaded
first so ``OPENROUTER_API_KEY`` and friends are present.
"""

import json
import logging
import os
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict, List, Optional

from dotenv import load_dotenv

from designsynth.constants import DEFAULT_API_ROOT
from designsynth.paths import PROJECT_ROOT, PROJECT_TEMPLATES_DIR, STAGING_ROOT, SYNTHESIS_CONFIG_JSON

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SynthesisSettings:
    """Resolved settings for the synthesis pipeline.

    Attributes:
        api_key: OpenRouter API key (empty = adapter unavailable)
        model: Model id used for code generation
        template_root: Directory holding one template project per target
        staging_root: Parent of request-scoped staging directories
        max_workers: Concurrent per-unit workers
        scaffold_timeout: Seconds allowed per scaffold tool invocation
        verify_timeout: Seconds allowed for the post-generation build check
        generation_timeout: Seconds allowed for the code generation call
        api_root: Base URL prefix for synthesized CRUD services
        scaffold_enabled: Whether to try the external scaffold tool at all
        verify_enabled: Whether to run the post-generation build check
    """
    api_key: str = ''
    model: str = 'openai/o1-mini'
    template_root: Path = PROJECT_TEMPLATES_DIR
    staging_root: Path = STAGING_ROOT
    max_workers: int = 4
    scaffold_timeout: int = 60
    verify_timeout: int = 180
    generation_timeout: int = 300
    temperature: float = 0.3
    max_tokens: int = 32000
    api_root: str = DEFAULT_API_ROOT
    scaffold_enabled: bool = True
    verify_enabled: bool = True
    scaffold_command: List[str] = field(default_factory=lambda: ['npx', '--no-install', 'ng'])
    angular_verify_command: List[str] = field(
        default_factory=lambda: ['npx', '--no-install', 'tsc', '--noEmit', '-p', 'tsconfig.json']
    )
    flutter_verify_command: List[str] = field(default_factory=lambda: ['flutter', 'analyze'])


# Environment variable -> settings attribute
ENV_OVERRIDES: Dict[str, str] = {
    'OPENROUTER_API_KEY': 'api_key',
    'DESIGNSYNTH_MODEL': 'model',
    'DESIGNSYNTH_TEMPLATE_ROOT': 'template_root',
    'DESIGNSYNTH_STAGING_DIR': 'staging_root',
    'DESIGNSYNTH_MAX_WORKERS': 'max_workers',
    'DESIGNSYNTH_SCAFFOLD_TIMEOUT': 'scaffold_timeout',
    'DESIGNSYNTH_VERIFY_TIMEOUT': 'verify_timeout',
    'DESIGNSYNTH_GENERATION_TIMEOUT': 'generation_timeout',
    'DESIGNSYNTH_API_ROOT': 'api_root',
    'DESIGNSYNTH_SCAFFOLD_ENABLED': 'scaffold_enabled',
    'DESIGNSYNTH_VERIFY_ENABLED': 'verify_enabled',
}


class ConfigManager:
    """Centralized configuration manager."""

    def __init__(self, config_path: Optional[Path] = None, load_env_file: bool = True):
        self.config_path = Path(config_path or SYNTHESIS_CONFIG_JSON)
        if load_env_file:
            env_path = PROJECT_ROOT / '.env'
            if env_path.exists():
                load_dotenv(env_path, override=False)
        self._settings = self._load()

    @property
    def settings(self) -> SynthesisSettings:
        return self._settings

    def _load(self) -> SynthesisSettings:
        settings = SynthesisSettings()
        if self.config_path.exists():
            try:
                data = json.loads(self.config_path.read_text(encoding='utf-8'))
                settings = self._apply(settings, data, source=self.config_path.name)
            except (json.JSONDecodeError, OSError) as e:
                logger.warning(f"Could not load configuration from {self.config_path}: {e}")

        env_values = {
            attr: os.environ[var]
            for var, attr in ENV_OVERRIDES.items()
            if os.environ.get(var, '').strip()
        }
        return self._apply(settings, env_values, source='environment')

    def _apply(self, settings: SynthesisSettings, values: Dict[str, Any], source: str) -> SynthesisSettings:
        """Return a copy of settings with recognized keys coerced and applied."""
        known = {f.name: f for f in fields(SynthesisSettings)}
        changes: Dict[str, Any] = {}
        for key, raw in values.items():
            if key not in known:
                logger.debug(f"Ignoring unknown setting '{key}' from {source}")
                continue
            current = getattr(settings, key)
            try:
                changes[key] = self._coerce(raw, current)
            except (TypeError, ValueError) as e:
                logger.warning(f"Invalid value for '{key}' from {source}: {e}")
        return replace(settings, **changes) if changes else settings

    @staticmethod
    def _coerce(raw: Any, current: Any) -> Any:
        if isinstance(current, bool):
            if isinstance(raw, bool):
                return raw
            return str(raw).strip().lower() in ('1', 'true', 'yes', 'on')
        if isinstance(current, int):
            value = int(raw)
            if value < 1:
                raise ValueError(f"expected a positive integer, got {raw!r}")
            return value
        if isinstance(current, float):
            return float(raw)
        if isinstance(current, Path):
            return Path(raw).expanduser()
        if isinstance(current, list):
            if isinstance(raw, str):
                return raw.split()
            return [str(part) for part in raw]
        return str(raw)


_manager: Optional[ConfigManager] = None


def get_config_manager() -> ConfigManager:
    """Get shared configuration manager instance."""
    global _manager
    if _manager is None:
        _manager = ConfigManager()
    return _manager


def get_settings() -> SynthesisSettings:
    """Shortcut for the resolved settings."""
    return get_config_manager().settings
