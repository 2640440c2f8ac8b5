from __future__ import annotations

import json
from collections.abc import Mapping
from types import MappingProxyType
from typing import Any, Callable, Iterator, Optional, Union

from patchy.errors import DecodeError

RawPayload = Union[bytes, bytearray, str, Mapping, None]


class PresenceMap(Mapping):
    """Read-only view of the keys a client actually sent.

    Key membership is the only "was supplied" signal: ``{"name": None}``
    supplies ``name`` with a null value, ``{}`` supplies nothing.
    """

    __slots__ = ("_data",)

    def __init__(self, data: Optional[Mapping[str, Any]] = None):
        self._data = MappingProxyType(dict(data or {}))

    def __getitem__(self, key: str) -> Any:
        return self._data[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __repr__(self) -> str:
        return f"PresenceMap({dict(self._data)!r})"

    def was_supplied(self, name: str) -> bool:
        return name in self._data

    @property
    def supplied_fields(self) -> frozenset[str]:
        return frozenset(self._data)


def decode_presence_map(
    raw: RawPayload,
    loads: Callable[[str], Any] = json.loads,
) -> PresenceMap:
    """Decode a raw patch payload into a PresenceMap.

    Absent, blank or ``null`` payloads mean "update nothing" and decode to an
    empty map. Anything that is not a key/value document raises DecodeError.
    """
    if raw is None:
        return PresenceMap()

    if isinstance(raw, Mapping):
        return PresenceMap(_checked_keys(raw))

    if isinstance(raw, (bytes, bytearray)):
        try:
            text = bytes(raw).decode("utf-8")
        except UnicodeDecodeError as e:
            raise DecodeError(f"Payload is not valid UTF-8: {e}") from e
    elif isinstance(raw, str):
        text = raw
    else:
        raise DecodeError(f"Unsupported payload type {type(raw).__name__}")

    if not text.strip():
        return PresenceMap()

    try:
        decoded = loads(text)
    except (ValueError, TypeError, RecursionError) as e:
        raise DecodeError(f"Malformed payload: {e}") from e

    if decoded is None:
        return PresenceMap()
    if not isinstance(decoded, Mapping):
        raise DecodeError(f"Payload must be an object, got {type(decoded).__name__}")

    return PresenceMap(_checked_keys(decoded))


def _checked_keys(mapping: Mapping) -> Mapping[str, Any]:
    for key in mapping:
        if not isinstance(key, str):
            raise DecodeError(f"Payload keys must be strings, got {key!r}")
    return mapping
