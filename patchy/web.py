from __future__ import annotations

from typing import Any, Optional

from fastapi import Depends, HTTPException, Request

from patchy.config import PatchySettings, load_settings
from patchy.resolver import PatchResolver, RejectReason
from patchy.target import PatchTarget


def patch_body(
    model: Any,
    resolver: Optional[PatchResolver] = None,
    settings: Optional[PatchySettings] = None,
):
    """FastAPI dependency resolving the request body as a patch of `model`.

        @app.patch("/items/{item_id}")
        def update_item(item_id: str, patch: PatchTarget = patch_body(ItemUpdate)):
            ...

    Malformed bodies are a 400, an unconstructible model a 500, and relevant
    validation errors a 422 listing every error at once.
    """
    settings = settings or load_settings()
    resolver = resolver or PatchResolver.from_settings(settings)

    async def resolve_patch_body(request: Request) -> PatchTarget:
        declared = request.headers.get("content-length", "")
        if declared.isdigit() and int(declared) > settings.max_body_bytes:
            raise _too_large(settings)

        raw = await request.body()
        if len(raw) > settings.max_body_bytes:
            raise _too_large(settings)

        resolution = resolver.resolve(raw, model)

        if resolution.reason is RejectReason.DECODE:
            raise HTTPException(status_code=400, detail=str(resolution.failure))
        if resolution.reason is RejectReason.CONSTRUCTION:
            # configuration defect; details are in the server log
            raise HTTPException(status_code=500, detail="Patch target could not be constructed.")
        if resolution.reason is RejectReason.VALIDATION and settings.reject_on_errors:
            raise HTTPException(status_code=422, detail=resolution.errors.to_list())

        return resolution.target

    return Depends(resolve_patch_body)


def _too_large(settings: PatchySettings) -> HTTPException:
    return HTTPException(status_code=413, detail=f"Patch body too large (max {settings.max_body_bytes} bytes).")
