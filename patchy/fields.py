from __future__ import annotations

import dataclasses
import typing
from dataclasses import dataclass
from functools import lru_cache
from types import MappingProxyType
from typing import Any, Callable, Mapping, Optional

from pydantic import BaseModel, ConfigDict, PydanticUserError, TypeAdapter

from patchy.errors import ConstructionError


class _Missing:
    __slots__ = ()

    def __repr__(self) -> str:
        return "<MISSING>"


MISSING = _Missing()


@dataclass(frozen=True)
class FieldSpec:
    name: str
    annotation: Any
    default: Any = MISSING
    default_factory: Optional[Callable[[], Any]] = None
    # key the validator expects for this field (alias or name)
    input_key: str = ""

    @property
    def required(self) -> bool:
        return self.default is MISSING and self.default_factory is None

    def default_value(self) -> Any:
        if self.default_factory is not None:
            return self.default_factory()
        if self.default is not MISSING:
            return self.default
        return None


def is_model_type(target_type: Any) -> bool:
    return isinstance(target_type, type) and issubclass(target_type, BaseModel)


def is_dataclass_type(target_type: Any) -> bool:
    return isinstance(target_type, type) and dataclasses.is_dataclass(target_type)


@lru_cache(maxsize=None)
def declared_fields(target_type: type) -> Mapping[str, FieldSpec]:
    """Fields a payload key can bind to, in declaration order."""
    try:
        if is_model_type(target_type):
            specs = _model_fields(target_type)
        elif is_dataclass_type(target_type):
            specs = _dataclass_fields(target_type)
        else:
            specs = _annotated_fields(target_type)
    except (NameError, TypeError) as e:
        raise ConstructionError(target_type, f"unresolvable field annotations ({e})") from e
    return MappingProxyType({spec.name: spec for spec in specs})


def _model_fields(target_type: type[BaseModel]) -> list[FieldSpec]:
    specs = []
    for name, info in target_type.model_fields.items():
        input_key = name
        if isinstance(info.validation_alias, str):
            input_key = info.validation_alias
        elif isinstance(info.alias, str):
            input_key = info.alias
        specs.append(
            FieldSpec(
                name=name,
                annotation=info.annotation,
                default=MISSING if info.is_required() or info.default_factory else info.default,
                default_factory=info.default_factory,
                input_key=input_key,
            )
        )
    return specs


def _dataclass_fields(target_type: type) -> list[FieldSpec]:
    hints = typing.get_type_hints(target_type)
    specs = []
    for f in dataclasses.fields(target_type):
        if not f.init:
            continue
        specs.append(
            FieldSpec(
                name=f.name,
                annotation=hints.get(f.name, Any),
                default=MISSING if f.default is dataclasses.MISSING else f.default,
                default_factory=None if f.default_factory is dataclasses.MISSING else f.default_factory,
                input_key=f.name,
            )
        )
    return specs


def _annotated_fields(target_type: type) -> list[FieldSpec]:
    specs = []
    for name, annotation in typing.get_type_hints(target_type).items():
        if name.startswith("_") or typing.get_origin(annotation) is typing.ClassVar:
            continue
        specs.append(
            FieldSpec(
                name=name,
                annotation=annotation,
                default=getattr(target_type, name, MISSING),
                input_key=name,
            )
        )
    return specs


@lru_cache(maxsize=None)
def field_adapters(target_type: type) -> Mapping[str, TypeAdapter]:
    """One adapter per declared field, honouring the owner's type config."""
    config = _adapter_config(target_type)
    adapters = {}
    for name, spec in declared_fields(target_type).items():
        try:
            if config is None or _has_own_config(spec.annotation):
                adapters[name] = TypeAdapter(spec.annotation)
            else:
                adapters[name] = TypeAdapter(spec.annotation, config=config)
        except PydanticUserError as e:
            raise ConstructionError(target_type, f"no schema for field {name!r} ({e})") from e
    return MappingProxyType(adapters)


def _adapter_config(target_type: type) -> Optional[ConfigDict]:
    if is_model_type(target_type):
        owner_config = target_type.model_config
    else:
        owner_config = getattr(target_type, "__pydantic_config__", None) or {}
    if owner_config.get("arbitrary_types_allowed"):
        return ConfigDict(arbitrary_types_allowed=True)
    return None


def _has_own_config(annotation: Any) -> bool:
    # pydantic refuses an adapter config for types that carry their own
    if typing.get_origin(annotation) is typing.Annotated:
        annotation = typing.get_args(annotation)[0]
    if not isinstance(annotation, type):
        return False
    if is_model_type(annotation) or dataclasses.is_dataclass(annotation):
        return True
    return issubclass(annotation, dict) and hasattr(annotation, "__total__")
