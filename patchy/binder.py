from __future__ import annotations

import json
from typing import Any, Mapping

from pydantic import TypeAdapter, ValidationError

from patchy.errors import ErrorKind, Violation
from patchy.fields import field_adapters, is_model_type


class FieldBinder:
    """Copies supplied payload values onto a target's declared fields.

    Values are coerced to each field's declared type only; constraints such
    as ``max_length`` are left to the validator. A value that cannot be
    coerced is reported and the field keeps its default.
    """

    def __init__(self, strict: bool = False):
        self.strict = strict

    def bind(self, target: Any, presence: Mapping[str, Any]) -> list[Violation]:
        target_type = type(target)
        adapters = field_adapters(target_type)
        track_fields_set = is_model_type(target_type)
        violations: list[Violation] = []

        for key, raw in presence.items():
            adapter = adapters.get(key)
            if adapter is None:
                continue

            if raw is None:
                value = None
            else:
                try:
                    value = self._coerce(adapter, raw)
                except ValidationError as e:
                    violations.append(_binding_violation(key, e))
                    continue

            # bypass validate_assignment and frozen models/dataclasses
            object.__setattr__(target, key, value)
            if track_fields_set:
                target.__pydantic_fields_set__.add(key)

        return violations

    def _coerce(self, adapter: TypeAdapter, raw: Any) -> Any:
        if not self.strict:
            return adapter.validate_python(raw)
        # strict JSON rules: ISO dates, UUIDs and enum values may arrive as strings
        try:
            document = json.dumps(raw)
        except (TypeError, ValueError):
            # mapping payloads may carry objects that have no JSON form
            return adapter.validate_python(raw, strict=True)
        return adapter.validate_json(document, strict=True)


def _binding_violation(field: str, error: ValidationError) -> Violation:
    first = error.errors()[0]
    return Violation(
        message=first["msg"],
        field=field,
        kind=ErrorKind.BINDING,
        code=first["type"],
        location=(field, *first["loc"]),
    )
