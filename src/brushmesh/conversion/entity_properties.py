"""
Typed reads of entity key/value properties.

Map entities carry every property as a string. Malformed values never abort
a conversion: the failure is logged, optionally recorded on a
ValidationResult, and the caller's default is used.
"""

from __future__ import annotations

import logging
import math
from typing import Dict, Optional, Tuple

from brushmesh.validation.core import Severity, ValidationIssue, ValidationResult

logger = logging.getLogger(__name__)

CONFIG_ISSUE_CODE = "CFG-001"

_TRUE_STRINGS = {"1", "true", "yes", "on"}
_FALSE_STRINGS = {"0", "false", "no", "off", ""}


def _report(key: str, value: str, expected: str,
            issues: Optional[ValidationResult], location: Optional[str]) -> None:
    message = f"Could not parse property '{key}'={value!r} as {expected}; ignoring it"
    logger.warning(message)
    if issues is not None:
        issues.add_issue(ValidationIssue(
            severity=Severity.WARN,
            code=CONFIG_ISSUE_CODE,
            message=message,
            location=location,
        ))


def parse_float(properties: Dict[str, str], key: str, default: float,
                issues: Optional[ValidationResult] = None,
                location: Optional[str] = None) -> float:
    """Float property, or default when missing or malformed."""
    if key not in properties:
        return default
    value = properties[key]
    try:
        return float(value.strip())
    except (ValueError, AttributeError):
        _report(key, value, "a number", issues, location)
        return default


def parse_int(properties: Dict[str, str], key: str, default: int,
              issues: Optional[ValidationResult] = None,
              location: Optional[str] = None) -> int:
    """Integer property; accepts float strings and truncates them."""
    if key not in properties:
        return default
    value = properties[key]
    try:
        return int(value.strip())
    except (ValueError, AttributeError):
        pass
    try:
        return int(float(value.strip()))
    except (ValueError, AttributeError, OverflowError):
        _report(key, value, "an integer", issues, location)
        return default


def parse_bool(properties: Dict[str, str], key: str, default: bool,
               issues: Optional[ValidationResult] = None,
               location: Optional[str] = None) -> bool:
    """Boolean property: 1/0, true/false, yes/no, on/off."""
    if key not in properties:
        return default
    value = properties[key]
    lowered = str(value).strip().lower()
    if lowered in _TRUE_STRINGS:
        return True
    if lowered in _FALSE_STRINGS:
        return False
    _report(key, value, "a boolean", issues, location)
    return default


def parse_vector(properties: Dict[str, str], key: str,
                 default: Tuple[float, float, float],
                 issues: Optional[ValidationResult] = None,
                 location: Optional[str] = None) -> Tuple[float, float, float]:
    """Space separated "x y z" property."""
    if key not in properties:
        return default
    value = properties[key]
    parts = str(value).split()
    if len(parts) != 3:
        _report(key, value, "three space separated numbers", issues, location)
        return default
    try:
        vector = (float(parts[0]), float(parts[1]), float(parts[2]))
    except ValueError:
        _report(key, value, "three space separated numbers", issues, location)
        return default
    if not all(math.isfinite(c) for c in vector):
        _report(key, value, "three finite numbers", issues, location)
        return default
    return vector


def parse_color(properties: Dict[str, str], key: str,
                default: Tuple[float, float, float] = (1.0, 1.0, 1.0),
                issues: Optional[ValidationResult] = None,
                location: Optional[str] = None) -> Tuple[float, float, float]:
    """"R G B" property in 0-255, returned clamped and scaled to 0-1."""
    if key not in properties:
        return default
    rgb = parse_vector(properties, key, None, issues, location)
    if rgb is None:
        return default
    return tuple(min(max(int(c), 0), 255) / 255.0 for c in rgb)
