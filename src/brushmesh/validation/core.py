"""
Diagnostics collected during a conversion.

A conversion never aborts on bad input. Skipped faces and ignored entity
properties are recorded as issues instead, so a caller can show them or
turn FAIL issues into an exception with ValidationError.

Issue codes:
    GEOM-001  degenerate face (fewer than 3 vertices), skipped
    CFG-001   entity property or config value could not be parsed, ignored
"""

from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterator, List, Optional


class Severity(Enum):
    INFO = 0
    WARN = 1
    FAIL = 2

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True)
class ValidationIssue:
    """One recorded recovery.

    Attributes:
        severity: INFO, WARN or FAIL
        code: Stable issue code, e.g. "GEOM-001"
        message: What happened
        location: Where, as "group:brushN:faceM" or an entity/group name
    """
    severity: Severity
    code: str
    message: str
    location: Optional[str] = None

    def format(self) -> str:
        where = f" @ {self.location}" if self.location else ""
        return f"{self.severity.name:<4} {self.code}{where}: {self.message}"

    def __str__(self) -> str:
        return self.format()


@dataclass
class ValidationResult:
    """Ordered list of issues; passes while nothing is FAIL."""
    issues: List[ValidationIssue] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.issues)

    def __iter__(self) -> Iterator[ValidationIssue]:
        return iter(self.issues)

    def _with_severity(self, severity: Severity) -> List[ValidationIssue]:
        return [issue for issue in self.issues if issue.severity is severity]

    @property
    def passed(self) -> bool:
        return not self._with_severity(Severity.FAIL)

    @property
    def failed(self) -> bool:
        return not self.passed

    @property
    def infos(self) -> List[ValidationIssue]:
        return self._with_severity(Severity.INFO)

    @property
    def warnings(self) -> List[ValidationIssue]:
        return self._with_severity(Severity.WARN)

    @property
    def errors(self) -> List[ValidationIssue]:
        return self._with_severity(Severity.FAIL)

    def add_issue(self, issue: ValidationIssue) -> None:
        self.issues.append(issue)

    def merge(self, other: 'ValidationResult') -> 'ValidationResult':
        """Append another result's issues; returns self."""
        self.issues.extend(other.issues)
        return self

    def by_code(self, code: str) -> List[ValidationIssue]:
        return [issue for issue in self.issues if issue.code == code]

    def code_counts(self) -> Dict[str, int]:
        return dict(Counter(issue.code for issue in self.issues))

    def report(self) -> str:
        """Multi-line summary, most severe issues first."""
        if not self.issues:
            return "Validation passed: No issues found"

        status = "PASSED" if self.passed else "FAILED"
        lines = [f"Validation {status}: {len(self.issues)} issue(s)"]
        for severity in sorted(Severity, key=lambda s: s.value, reverse=True):
            matching = self._with_severity(severity)
            if not matching:
                continue
            lines.append(f"{severity.name} ({len(matching)}):")
            lines.extend(f"  {issue.format()}" for issue in matching)
        return "\n".join(lines)

    def to_dict(self) -> dict:
        """JSON-friendly summary."""
        return {
            'passed': self.passed,
            'issue_count': len(self.issues),
            'fail_count': len(self.errors),
            'warn_count': len(self.warnings),
            'info_count': len(self.infos),
            'codes': self.code_counts(),
            'issues': [
                {
                    'severity': issue.severity.name,
                    'code': issue.code,
                    'message': issue.message,
                    'location': issue.location,
                }
                for issue in self.issues
            ],
        }


class ValidationError(Exception):
    """Raised by callers that treat FAIL issues as fatal."""

    def __init__(self, result: ValidationResult):
        super().__init__(result.report())
        self.result = result

    @classmethod
    def raise_if_failed(cls, result: ValidationResult) -> None:
        if result.failed:
            raise cls(result)
