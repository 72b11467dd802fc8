"""Service Base Utilities
=========================

Shared exception hierarchy for the synthesis services.

Usage Pattern:
    from designsynth.services.service_base import ValidationError, OperationError

Request-fatal errors (``InvalidDesignDocument``, ``AdapterUnavailable``,
``MalformedResponse``, ``PackagingFailure``) abort a synthesis request.
Per-unit errors (``ScaffoldToolFailure``, ``MergeExtractionFailure``,
``VerificationFailure``) are logged and the unit continues degraded.
"""
from __future__ import annotations

from typing import List, Optional

__all__ = [
    'ServiceError', 'ValidationError', 'OperationError',
    'InvalidDesignDocument', 'AdapterUnavailable', 'MalformedResponse',
    'ScaffoldToolFailure', 'MergeExtractionFailure', 'VerificationFailure',
    'PackagingFailure', 'TemplateNotFoundError',
]


class ServiceError(Exception):
    """Base class for all service layer errors."""


class ValidationError(ServiceError):
    """Invalid input or failed validation rules."""


class OperationError(ServiceError):
    """Generic failure performing an operation (e.g., external dependency)."""


class InvalidDesignDocument(ValidationError):
    """Design document failed shape validation."""

    def __init__(self, message: str, errors: Optional[List[str]] = None):
        super().__init__(message)
        self.errors = list(errors or [])


class AdapterUnavailable(OperationError):
    """Code generation service cannot be reached or is not configured."""


class MalformedResponse(OperationError):
    """Code generation payload is not a recoverable file list."""

    def __init__(self, message: str, raw: str = ''):
        super().__init__(message)
        self.raw = raw


class ScaffoldToolFailure(OperationError):
    """External scaffolding tool failed for a single unit."""

    def __init__(self, message: str, unit_name: str = '', returncode: Optional[int] = None):
        super().__init__(message)
        self.unit_name = unit_name
        self.returncode = returncode


class MergeExtractionFailure(OperationError):
    """Class body or metadata block could not be isolated."""


class VerificationFailure(OperationError):
    """Post-generation build check failed."""

    def __init__(self, message: str, output: str = '', ran: bool = True):
        super().__init__(message)
        self.output = output
        self.ran = ran


class PackagingFailure(OperationError):
    """Archive could not be assembled or serialized."""


class TemplateNotFoundError(ServiceError):
    """Template project root missing; the pipeline cannot start."""
