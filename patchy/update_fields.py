from __future__ import annotations

from typing import Any, Iterable, Mapping

from patchy.target import PatchTarget


def _supplied_fields(body: Any) -> frozenset[str]:
    """Field names the client actually sent.

    A PatchTarget answers from its presence map. Plain pydantic models fall
    back to field tracking:
      - Pydantic v2: body.model_fields_set
      - Pydantic v1: body.__fields_set__
    """
    if isinstance(body, PatchTarget):
        return body.supplied_fields
    provided_fields = getattr(body, "model_fields_set", None)
    if provided_fields is None:
        provided_fields = getattr(body, "__fields_set__", set())
    return frozenset(provided_fields)


def include_supplied_fields(
    body: Any,
    update_kwargs: dict[str, Any],
    field_names: Iterable[str],
) -> None:
    """Include supplied fields in update kwargs even when explicitly set to null.

    For Optional[...] request fields, parsing maps both an omitted field and an
    explicit JSON null to `None`. Only fields the client sent are copied, so
    `None` in the kwargs always means "clear" and a missing key "leave as is".
    """
    provided_fields = _supplied_fields(body)
    values = body.value if isinstance(body, PatchTarget) else body

    for field_name in field_names:
        if field_name in provided_fields:
            update_kwargs[field_name] = getattr(values, field_name)


def apply_patch(existing: Mapping[str, Any], patch: Any) -> dict[str, Any]:
    """Return a copy of `existing` with the patch's supplied fields applied.

    Keys the patch did not supply keep their current value; supplied nulls
    clear the stored value.
    """
    updated: dict[str, Any] = dict(existing)
    if isinstance(patch, PatchTarget):
        updated.update(patch.changes())
    else:
        include_supplied_fields(patch, updated, _supplied_fields(patch))
    return updated
