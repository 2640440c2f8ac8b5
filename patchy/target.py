from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Generic, Protocol, TypeVar, runtime_checkable

from patchy.errors import EMPTY_RECORD, ErrorKind, ErrorRecord
from patchy.fields import declared_fields
from patchy.presence import PresenceMap

T = TypeVar("T")


@runtime_checkable
class PresenceAware(Protocol):
    """Domain types implement this to answer presence queries themselves.

    The resolver hands over the request's PresenceMap right after the object
    is constructed; a typical implementation stores it in a private attribute
    and delegates ``was_supplied`` to it.
    """

    def attach_presence(self, presence: PresenceMap) -> None: ...


@dataclass(frozen=True)
class PatchTarget(Generic[T]):
    """A bound update object paired with the payload keys it came from."""

    value: T
    presence: PresenceMap
    errors: ErrorRecord = EMPTY_RECORD

    def was_supplied(self, name: str) -> bool:
        return self.presence.was_supplied(name)

    @property
    def supplied_fields(self) -> frozenset[str]:
        return self.presence.supplied_fields

    def changes(self) -> dict[str, Any]:
        """Bound values of the declared fields the client supplied.

        Fields whose value could not be bound are left out.
        """
        fields = declared_fields(type(self.value))
        unbound = {v.field for v in self.errors if v.kind is ErrorKind.BINDING}
        return {
            name: getattr(self.value, name)
            for name in self.presence
            if name in fields and name not in unbound
        }
