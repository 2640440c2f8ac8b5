from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional

from patchy.binder import FieldBinder
from patchy.config import PatchySettings
from patchy.construct import TargetConstructor
from patchy.errors import (
    EMPTY_RECORD,
    ConstructionError,
    DecodeError,
    ErrorRecord,
    PatchRejected,
    PatchyError,
)
from patchy.filtering import filter_errors
from patchy.presence import RawPayload, decode_presence_map
from patchy.target import PatchTarget, PresenceAware
from patchy.validation import PydanticValidator, Validator, merge_violations

logger = logging.getLogger("patchy")


class ResolutionState(str, Enum):
    DECODING = "decoding"
    CONSTRUCTING = "constructing"
    BINDING = "binding"
    VALIDATING = "validating"
    FILTERING = "filtering"
    DECIDED = "decided"


class Decision(str, Enum):
    ACCEPT = "accept"
    REJECT = "reject"


class RejectReason(str, Enum):
    DECODE = "decode"
    CONSTRUCTION = "construction"
    VALIDATION = "validation"


@dataclass(frozen=True)
class Resolution:
    """Outcome of one resolution.

    ``reached`` is the last state entered before the pipeline was decided.
    """

    decision: Decision
    reached: ResolutionState
    target: Optional[PatchTarget] = None
    errors: ErrorRecord = EMPTY_RECORD
    reason: Optional[RejectReason] = None
    failure: Optional[PatchyError] = None

    @property
    def accepted(self) -> bool:
        return self.decision is Decision.ACCEPT

    def unwrap(self) -> PatchTarget:
        """Return the target, or raise what made the resolution reject."""
        if self.accepted:
            return self.target
        if self.failure is not None:
            raise self.failure
        raise PatchRejected(self.errors, self.target)


class PatchResolver:
    """Turns one patch payload into a bound, presence-filtered PatchTarget.

    Holds configuration only; every call allocates its own presence map,
    target and error lists, so one resolver serves concurrent requests.
    """

    def __init__(
        self,
        constructor: Optional[TargetConstructor] = None,
        binder: Optional[FieldBinder] = None,
        validator: Optional[Validator] = None,
        loads: Optional[Callable[[str], Any]] = None,
    ):
        self.constructor = constructor or TargetConstructor()
        self.binder = binder or FieldBinder()
        self.validator = validator or PydanticValidator()
        self.loads = loads or json.loads

    @classmethod
    def from_settings(cls, settings: PatchySettings, **kwargs: Any) -> "PatchResolver":
        kwargs.setdefault("binder", FieldBinder(strict=settings.strict_coercion))
        return cls(**kwargs)

    def resolve(self, raw: RawPayload, target_type: Any) -> Resolution:
        type_name = getattr(target_type, "__name__", repr(target_type))
        state = ResolutionState.DECODING

        try:
            presence = decode_presence_map(raw, self.loads)
        except DecodeError as e:
            logger.warning(json.dumps({"event": "patch_decode_failed", "target": type_name, "error": str(e)}))
            return Resolution(
                decision=Decision.REJECT,
                reached=state,
                reason=RejectReason.DECODE,
                failure=e,
            )

        state = ResolutionState.CONSTRUCTING
        try:
            value = self.constructor.construct(target_type)
            if isinstance(value, PresenceAware):
                value.attach_presence(presence)

            # field adapters are built on first bind and can fail for the type
            state = ResolutionState.BINDING
            binding_errors = self.binder.bind(value, presence)
        except ConstructionError as e:
            logger.error(
                json.dumps({"event": "patch_construction_failed", "target": type_name}),
                exc_info=e,
            )
            return Resolution(
                decision=Decision.REJECT,
                reached=state,
                reason=RejectReason.CONSTRUCTION,
                failure=e,
            )

        state = ResolutionState.VALIDATING
        validation_errors = self.validator(value)

        state = ResolutionState.FILTERING
        errors = filter_errors(merge_violations(binding_errors, validation_errors), presence)
        target = PatchTarget(value=value, presence=presence, errors=errors)

        return self._decide(target, type_name, state)

    def resolve_or_raise(self, raw: RawPayload, target_type: Any) -> PatchTarget:
        return self.resolve(raw, target_type).unwrap()

    def _decide(self, target: PatchTarget, type_name: str, reached: ResolutionState) -> Resolution:
        decision = Decision.REJECT if target.errors else Decision.ACCEPT
        logger.info(
            json.dumps(
                {
                    "event": "patch_resolved",
                    "target": type_name,
                    "decision": decision.value,
                    "supplied_count": len(target.presence),
                    "error_count": len(target.errors),
                }
            )
        )
        return Resolution(
            decision=decision,
            reached=reached,
            target=target,
            errors=target.errors,
            reason=RejectReason.VALIDATION if target.errors else None,
        )


def resolve_patch(raw: RawPayload, target_type: Any) -> PatchTarget:
    """Resolve with default collaborators; raises on any rejection."""
    return PatchResolver().resolve_or_raise(raw, target_type)
