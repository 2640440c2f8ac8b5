from __future__ import annotations

from functools import lru_cache
from typing import Any, Callable, Iterable, Mapping, Optional, Protocol, Union

from pydantic import TypeAdapter, ValidationError

from patchy.errors import ErrorKind, Violation
from patchy.fields import declared_fields, field_adapters, is_dataclass_type, is_model_type


class Validator(Protocol):
    def __call__(self, target: Any) -> Iterable[Violation]: ...


RuleResult = Union[Violation, Iterable[Violation], None]
Rule = Callable[[Any], RuleResult]


@lru_cache(maxsize=None)
def _type_adapter(target_type: Any) -> TypeAdapter:
    return TypeAdapter(target_type)


class PydanticValidator:
    """Validates a bound target as if it were a complete object.

    Knows nothing about which fields were supplied, so required fields the
    client never mentioned fail here too. Those are dropped later by
    presence filtering.
    """

    def __call__(self, target: Any) -> list[Violation]:
        target_type = type(target)
        fields = declared_fields(target_type)

        if not (is_model_type(target_type) or is_dataclass_type(target_type)):
            return self._validate_fields(target)

        data = {spec.input_key: getattr(target, name, None) for name, spec in fields.items()}
        try:
            if is_model_type(target_type):
                target_type.model_validate(data)
            else:
                _type_adapter(target_type).validate_python(data)
        except ValidationError as e:
            key_to_field = {spec.input_key: name for name, spec in fields.items()}
            return [_to_violation(err, key_to_field) for err in e.errors()]
        return []

    def _validate_fields(self, target: Any) -> list[Violation]:
        violations: list[Violation] = []
        for name, adapter in field_adapters(type(target)).items():
            try:
                adapter.validate_python(getattr(target, name, None))
            except ValidationError as e:
                for err in e.errors():
                    violations.append(_to_violation({**err, "loc": (name, *err["loc"])}, {}))
        return violations


def _to_violation(err: Mapping[str, Any], key_to_field: Mapping[str, str]) -> Violation:
    loc = tuple(err.get("loc") or ())
    field: Optional[str] = None
    if loc and isinstance(loc[0], str):
        field = key_to_field.get(loc[0], loc[0])
        loc = (field, *loc[1:])
    return Violation(
        message=err["msg"],
        field=field,
        kind=ErrorKind.VALIDATION,
        code=err.get("type"),
        location=loc,
    )


class RuleValidator:
    """Runs plain rule callables for checks pydantic cannot express.

    A rule returns a Violation, an iterable of them, or None when it passes.
    """

    def __init__(self, *rules: Rule):
        self.rules = tuple(rules)

    def __call__(self, target: Any) -> list[Violation]:
        violations: list[Violation] = []
        for rule in self.rules:
            result = rule(target)
            if result is None:
                continue
            if isinstance(result, Violation):
                violations.append(result)
            else:
                violations.extend(result)
        return violations


class CompositeValidator:
    def __init__(self, *validators: Validator):
        self.validators = tuple(validators)

    def __call__(self, target: Any) -> list[Violation]:
        violations: list[Violation] = []
        for validator in self.validators:
            violations.extend(validator(target))
        return violations


def merge_violations(
    binding: Iterable[Violation],
    validation: Iterable[Violation],
) -> list[Violation]:
    """Binding errors first, then validation errors for fields that bound.

    A field whose value could not be coerced was left at its default, so any
    validation error for it describes the default rather than the input.
    """
    merged = list(binding)
    unbound = {v.field for v in merged if v.field is not None}
    merged.extend(v for v in validation if v.field is None or v.field not in unbound)
    return merged
