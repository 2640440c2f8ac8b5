from dataclasses import dataclass
from typing import Optional

from pydantic import BaseModel, Field, model_validator

from patchy.binder import FieldBinder
from patchy.construct import TargetConstructor
from patchy.errors import ErrorKind, Violation
from patchy.presence import PresenceMap
from patchy.validation import (
    CompositeValidator,
    PydanticValidator,
    RuleValidator,
    merge_violations,
)


class Address(BaseModel):
    street: str
    city: str


class CustomerUpdate(BaseModel):
    name: str = Field(..., min_length=1)
    phone: Optional[str] = Field(None, alias="phoneNumber", max_length=10)
    address: Optional[Address] = None


class RouteUpdate(BaseModel):
    pickup_address: Optional[str] = None
    dropoff_address: Optional[str] = None

    @model_validator(mode="after")
    def require_both_addresses(self):
        if (self.pickup_address is None) != (self.dropoff_address is None):
            raise ValueError("pickup_address and dropoff_address are required together")
        return self


@dataclass
class JobUpdate:
    status: str
    crew_size: int = 1


class PlainUpdate:
    crew_size: int
    label: Optional[str] = None


def _bound(target_type, payload):
    target = TargetConstructor().construct(target_type)
    FieldBinder().bind(target, PresenceMap(payload))
    return target


def test_validation_ignores_presence_and_flags_unsupplied_required_fields():
    violations = PydanticValidator()(_bound(CustomerUpdate, {}))

    assert [v.field for v in violations] == ["name"]
    assert violations[0].kind is ErrorKind.VALIDATION


def test_valid_target_has_no_violations():
    assert PydanticValidator()(_bound(CustomerUpdate, {"name": "Pat"})) == []


def test_aliased_field_errors_are_reported_by_field_name():
    violations = PydanticValidator()(_bound(CustomerUpdate, {"name": "Pat", "phone": "555-0101-9999"}))

    assert [v.field for v in violations] == ["phone"]
    assert violations[0].code == "string_too_long"
    assert violations[0].location == ("phone",)


def test_nested_errors_belong_to_the_top_level_field():
    target = _bound(CustomerUpdate, {"name": "Pat"})
    object.__setattr__(target, "address", {"street": "123 Main St"})

    violations = PydanticValidator()(target)

    assert [v.field for v in violations] == ["address"]
    assert violations[0].location == ("address", "city")


def test_object_level_errors_are_global():
    violations = PydanticValidator()(_bound(RouteUpdate, {"pickup_address": "123 Main St"}))

    assert len(violations) == 1
    assert violations[0].is_global
    assert violations[0].to_dict()["field"] == "global"


def test_dataclass_targets_are_validated():
    violations = PydanticValidator()(_bound(JobUpdate, {"crew_size": 2}))

    assert [v.field for v in violations] == ["status"]


def test_plain_class_targets_are_validated_field_by_field():
    violations = PydanticValidator()(_bound(PlainUpdate, {"label": "x"}))

    assert [v.field for v in violations] == ["crew_size"]


def test_rule_validator_accepts_single_many_or_no_violations():
    single = Violation("Too many crew members.", field="crew_size")
    many = [Violation("Bad status.", field="status"), Violation("Not schedulable.")]

    validator = RuleValidator(lambda t: single, lambda t: many, lambda t: None)

    assert validator(object()) == [single, *many]


def test_composite_validator_runs_every_validator_in_order():
    first = RuleValidator(lambda t: Violation("first"))
    second = RuleValidator(lambda t: Violation("second"))

    violations = CompositeValidator(first, second)(object())

    assert [v.message for v in violations] == ["first", "second"]


def test_merge_drops_validation_errors_for_fields_that_failed_to_bind():
    binding = [Violation("Input should be a valid integer", field="age", kind=ErrorKind.BINDING)]
    validation = [
        Violation("Input should be a valid integer", field="age"),
        Violation("Field required", field="name"),
        Violation("Inconsistent patch"),
    ]

    merged = merge_violations(binding, validation)

    assert merged == [binding[0], validation[1], validation[2]]
