"""
Error taxonomy shared by the ledger, costing and menu modules.

Core functions never raise for bad rows or degenerate arithmetic. They
return their best-effort value and attach EngineIssue records so the
dashboard keeps rendering when one historical row is broken.
"""

from dataclasses import dataclass
from enum import Enum
import math


class ErrorKind(str, Enum):
    INVALID_ENTRY = "invalid_entry"
    DEGENERATE_RATIO = "degenerate_ratio"
    MISSING_COLLABORATOR_DATA = "missing_collaborator_data"


@dataclass(frozen=True)
class EngineIssue:
    """
    A single problem found while computing a result.

    Attributes:
        kind: One of the ErrorKind values
        subject: What the issue is about (entry id, ingredient name, sku)
        field: Offending field name, empty when the whole record is affected
        message: Human-readable explanation
    """
    kind: ErrorKind
    subject: str
    message: str
    field: str = ""

    def __str__(self) -> str:
        prefix = "WARNING" if self.kind != ErrorKind.MISSING_COLLABORATOR_DATA else "INFO"
        where = f"{self.subject}.{self.field}" if self.field else self.subject
        return f"{prefix}: [{self.kind.value}] {where} - {self.message}"


class InvalidEntryError(ValueError):
    """Raised by strict validation when a record cannot be committed."""

    def __init__(self, issues: list):
        self.issues = list(issues)
        super().__init__("; ".join(str(i) for i in self.issues))


def check_amount(value, subject: str, field: str) -> EngineIssue | None:
    """Return an INVALID_ENTRY issue unless value is a finite number >= 0."""
    if value is None or isinstance(value, bool):
        return EngineIssue(ErrorKind.INVALID_ENTRY, subject, "value is missing", field)
    try:
        number = float(value)
    except (TypeError, ValueError):
        return EngineIssue(ErrorKind.INVALID_ENTRY, subject, f"not a number: {value!r}", field)
    if not math.isfinite(number):
        return EngineIssue(ErrorKind.INVALID_ENTRY, subject, f"not finite: {value!r}", field)
    if number < 0:
        return EngineIssue(ErrorKind.INVALID_ENTRY, subject, f"negative value: {number}", field)
    return None
