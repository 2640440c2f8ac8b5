from __future__ import annotations

from typing import Any, Iterable, Mapping

from patchy.errors import ErrorRecord, Violation


def filter_errors(violations: Iterable[Violation], presence: Mapping[str, Any]) -> ErrorRecord:
    """Reduce full-object validation output to partial-update validation.

    Global violations always survive. Field violations survive only when the
    field key was present in the payload, whatever its value.
    """
    return ErrorRecord.of(
        v for v in violations
        if v.is_global or v.field in presence
    )
