"""
Conversion diagnostics.

Collects the non-fatal recoveries made while converting brushes.
"""

from .core import Severity, ValidationIssue, ValidationResult, ValidationError

__all__ = [
    'Severity',
    'ValidationIssue',
    'ValidationResult',
    'ValidationError',
]
