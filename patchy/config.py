from __future__ import annotations

import os
from dataclasses import dataclass

from dotenv import load_dotenv

PATCHY_STRICT_COERCION_ENV = "PATCHY_STRICT_COERCION"
PATCHY_REJECT_ON_ERRORS_ENV = "PATCHY_REJECT_ON_ERRORS"
PATCHY_MAX_BODY_BYTES_ENV = "PATCHY_MAX_BODY_BYTES"

DEFAULT_MAX_BODY_BYTES = 1_000_000
MIN_MAX_BODY_BYTES = 1024


@dataclass(frozen=True)
class PatchySettings:
    strict_coercion: bool = False
    reject_on_errors: bool = True
    max_body_bytes: int = DEFAULT_MAX_BODY_BYTES


def _flag(name: str, default: bool) -> bool:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    return raw == "1"


def _max_body_bytes() -> int:
    raw = os.getenv(PATCHY_MAX_BODY_BYTES_ENV, "").strip()
    if not raw:
        return DEFAULT_MAX_BODY_BYTES
    try:
        return max(MIN_MAX_BODY_BYTES, int(raw))
    except ValueError:
        return DEFAULT_MAX_BODY_BYTES


def load_settings() -> PatchySettings:
    # .env never overrides variables already set in the environment
    load_dotenv()
    return PatchySettings(
        strict_coercion=_flag(PATCHY_STRICT_COERCION_ENV, False),
        reject_on_errors=_flag(PATCHY_REJECT_ON_ERRORS_ENV, True),
        max_body_bytes=_max_body_bytes(),
    )
