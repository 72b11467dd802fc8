"""Centralized path constants for templates and staging directories.

All code should import from here instead of hardcoding paths.
"""
from __future__ import annotations
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[2]  # .../src/designsynth -> project root
# misc/ lives at project root for templates and configs
MISC_DIR = PROJECT_ROOT / 'misc'

# Jinja2 templates (prompts, direct-write stubs, app shell, CRUD services)
TEMPLATES_DIR = MISC_DIR / 'templates'

# Template projects copied into every archive, one per target framework
PROJECT_TEMPLATES_DIR = MISC_DIR / 'project_templates'

SYNTHESIS_CONFIG_JSON = MISC_DIR / 'synthesis_config.json'

# Request-scoped staging directories are created below this root
STAGING_ROOT = PROJECT_ROOT / 'generated' / 'staging'

LOGS_DIR = PROJECT_ROOT / 'logs'
