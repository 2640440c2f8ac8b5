from __future__ import annotations

import inspect
from functools import lru_cache
from types import MappingProxyType
from typing import Any, Callable, Mapping, Optional

from patchy.errors import ConstructionError
from patchy.fields import declared_fields, is_dataclass_type, is_model_type

Factory = Callable[[], Any]


class TargetConstructor:
    """Creates empty patch targets without calling their normal constructor.

    A factory registered for a type always wins. Otherwise the type's kind
    (pydantic model, dataclass, plain annotated class) decides the default
    strategy, which is resolved once per type and cached.
    """

    def __init__(self, factories: Optional[Mapping[type, Factory]] = None):
        self._factories = MappingProxyType(dict(factories or {}))

    def with_factory(self, target_type: type, factory: Factory) -> "TargetConstructor":
        return TargetConstructor({**self._factories, target_type: factory})

    def construct(self, target_type: Any) -> Any:
        try:
            factory = self._factories.get(target_type)
            if factory is None:
                factory = default_factory(target_type)
        except TypeError as e:
            # registry and strategy cache are keyed by the type descriptor
            raise ConstructionError(target_type, "unhashable type descriptor") from e

        try:
            instance = factory()
        except ConstructionError:
            raise
        except Exception as e:
            raise ConstructionError(target_type, f"factory failed ({e})") from e

        if instance is None:
            raise ConstructionError(target_type, "factory returned None")
        return instance


@lru_cache(maxsize=None)
def default_factory(target_type: Any) -> Factory:
    if not isinstance(target_type, type):
        raise ConstructionError(target_type, "not a class")
    if inspect.isabstract(target_type):
        raise ConstructionError(target_type, "abstract type")

    fields = declared_fields(target_type)

    if is_model_type(target_type):
        required = tuple(name for name, spec in fields.items() if spec.required)

        def build_model():
            instance = target_type.model_construct()
            for name in required:
                object.__setattr__(instance, name, None)
            # only fields bound from the payload count as set
            object.__setattr__(instance, "__pydantic_fields_set__", set())
            return instance

        return build_model

    if is_dataclass_type(target_type):
        return lambda: _allocate(target_type, fields)

    def build_plain():
        try:
            instance = target_type()
        except TypeError:
            return _allocate(target_type, fields)
        for name, spec in fields.items():
            if not hasattr(instance, name):
                setattr(instance, name, spec.default_value())
        return instance

    return build_plain


def _allocate(target_type: type, fields) -> Any:
    instance = target_type.__new__(target_type)
    for name, spec in fields.items():
        object.__setattr__(instance, name, spec.default_value())
    return instance
