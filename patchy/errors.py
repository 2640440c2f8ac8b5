from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable, Optional

GLOBAL = "global"


class ErrorKind(str, Enum):
    BINDING = "binding"
    VALIDATION = "validation"


@dataclass(frozen=True)
class Violation:
    """One failed binding or validation rule.

    ``field`` is the top-level field the failure belongs to, or ``None`` for
    object-level (global) failures. ``location`` keeps the full path for
    failures inside nested values.
    """

    message: str
    field: Optional[str] = None
    kind: ErrorKind = ErrorKind.VALIDATION
    code: Optional[str] = None
    location: tuple[Any, ...] = ()

    @property
    def is_global(self) -> bool:
        return self.field is None

    def to_dict(self) -> dict[str, Any]:
        return {
            "field": GLOBAL if self.field is None else self.field,
            "message": self.message,
            "type": self.code,
            "kind": self.kind.value,
            "loc": list(self.location),
        }


@dataclass(frozen=True)
class ErrorRecord:
    """Ordered, immutable set of violations surfaced to the caller."""

    violations: tuple[Violation, ...] = field(default_factory=tuple)

    @classmethod
    def of(cls, violations: Iterable[Violation]) -> "ErrorRecord":
        return cls(tuple(violations))

    @property
    def has_errors(self) -> bool:
        return bool(self.violations)

    @property
    def global_errors(self) -> tuple[Violation, ...]:
        return tuple(v for v in self.violations if v.is_global)

    @property
    def fields(self) -> tuple[str, ...]:
        seen: dict[str, None] = {}
        for v in self.violations:
            if v.field is not None:
                seen.setdefault(v.field, None)
        return tuple(seen)

    def field_errors(self, name: str) -> tuple[Violation, ...]:
        return tuple(v for v in self.violations if v.field == name)

    def to_list(self) -> list[dict[str, Any]]:
        return [v.to_dict() for v in self.violations]

    def __len__(self) -> int:
        return len(self.violations)

    def __iter__(self):
        return iter(self.violations)

    def __bool__(self) -> bool:
        return self.has_errors


EMPTY_RECORD = ErrorRecord()


# =========================
# Exceptions
# =========================

class PatchyError(Exception):
    pass


class DecodeError(PatchyError):
    """Payload is not a decodable key/value document. Client error."""


class ConstructionError(PatchyError):
    """Target type cannot be instantiated. Server configuration error."""

    def __init__(self, target_type: Any, reason: str):
        self.target_type = target_type
        name = getattr(target_type, "__qualname__", repr(target_type))
        super().__init__(f"Cannot construct {name}: {reason}")


class PatchRejected(PatchyError):
    """Raised when the filtered error record of a resolution is not empty."""

    def __init__(self, errors: ErrorRecord, target: Any = None):
        self.errors = errors
        self.target = target
        fields = ", ".join(errors.fields) or GLOBAL
        super().__init__(f"Patch rejected with {len(errors)} error(s) ({fields})")
