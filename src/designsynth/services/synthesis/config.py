"""Synthesis Configuration
==========================

Per-request options and the result handed back to callers.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from designsynth.constants import DEFAULT_STYLE_OPTION, TargetFramework
from designsynth.utils.naming import archive_file_name, sanitize_project_name

TRUE_STRINGS = ('1', 'true', 'yes', 'on')
FALSE_STRINGS = ('0', 'false', 'no', 'off', '')


def _flag(value: Any, default: bool) -> bool:
    """Read a payload flag; JSON booleans pass through, strings are parsed."""
    if value is None:
        return default
    if isinstance(value, str):
        text = value.strip().lower()
        if text in TRUE_STRINGS:
            return True
        if text in FALSE_STRINGS:
            return False
        raise ValueError(f"Not a boolean flag: {value!r}")
    return bool(value)


@dataclass
class SynthesisOptions:
    """Generation options for one synthesis request.

    Attributes:
        name: Human project name (sanitized for manifests and archive names)
        target: Target framework variant
        style: Stylesheet flavour passed to the scaffolder (css, scss, ...)
        include_routing: Emit a route table for page components
        responsive_layout: Ask the generator for responsive layouts
        generate_components: Split pages into reusable components
        standalone: Scaffold standalone components instead of module-bound ones
    """
    name: str
    target: TargetFramework = TargetFramework.ANGULAR
    style: str = DEFAULT_STYLE_OPTION
    include_routing: bool = True
    responsive_layout: bool = True
    generate_components: bool = True
    standalone: bool = True

    @property
    def project_name(self) -> str:
        """Manifest-safe project name."""
        return sanitize_project_name(self.name)

    @property
    def archive_name(self) -> str:
        """File name for the downloadable archive."""
        return archive_file_name(self.name)

    @property
    def style_extension(self) -> str:
        """File extension for component stylesheets."""
        return 'scss' if self.style in ('scss', 'sass') else 'css'

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'SynthesisOptions':
        """Build options from the camelCase payload used by the export endpoint.

        Flags accept JSON booleans or the strings true/false, yes/no, on/off, 1/0.

        Raises:
            ValueError: Unknown target or unreadable flag value
        """
        target = data.get('target') or data.get('framework') or TargetFramework.ANGULAR.value
        return cls(
            name=data.get('name') or data.get('projectName') or 'app',
            target=TargetFramework(str(target).lower()),
            style=data.get('style') or data.get('cssFramework') or DEFAULT_STYLE_OPTION,
            include_routing=_flag(data.get('includeRouting', data.get('include_routing')), True),
            responsive_layout=_flag(data.get('responsiveLayout', data.get('responsive_layout')), True),
            generate_components=_flag(data.get('generateComponents', data.get('generate_components')), True),
            standalone=_flag(data.get('standalone'), True),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'name': self.name,
            'target': self.target.value,
            'style': self.style,
            'includeRouting': self.include_routing,
            'responsiveLayout': self.responsive_layout,
            'generateComponents': self.generate_components,
            'standalone': self.standalone,
        }


@dataclass
class SynthesisResult:
    """Result from a synthesis request.

    Attributes:
        success: Whether a complete archive was produced
        archive: Archive bytes (None unless success)
        archive_name: Suggested download file name
        errors: Request-level error messages (empty if success)
        degraded_units: unit name -> reason for units that took a fallback path
        metrics: Timings and counts
    """
    success: bool
    archive: Optional[bytes] = None
    archive_name: str = ''
    errors: List[str] = field(default_factory=list)
    degraded_units: Dict[str, str] = field(default_factory=dict)
    metrics: Dict[str, Any] = field(default_factory=dict)

    @property
    def error_message(self) -> str:
        """Get combined error message."""
        return "; ".join(self.errors) if self.errors else ""

    def add_error(self, error: str) -> None:
        self.errors.append(error)

    def record_degradation(self, unit_name: str, reason: str) -> None:
        self.degraded_units[unit_name] = reason

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization (archive excluded)."""
        return {
            'success': self.success,
            'archive_name': self.archive_name,
            'archive_size': len(self.archive) if self.archive else 0,
            'errors': self.errors,
            'degraded_units': self.degraded_units,
            'metrics': self.metrics,
        }
