"""/modules routes: thin JSON adapter over ModuleResolver.

Every state change goes through the resolver; domain failures come back as
the serialized OperationResult with a mapped status code.
"""
from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from core.modules.resolver import ModuleResolver, get_module_resolver
from core.modules.results import OperationResult
from core.modules.transfer import export_filename

router = APIRouter(prefix="/modules", tags=["modules"])

_STATUS_BY_ERROR = {
    "unknown-module": 404,
    "unknown-preset": 404,
    "core-module-protected": 409,
    "missing-dependencies": 409,
    "dependents-exist": 409,
    "invalid-format": 422,
}


class ToggleRequest(BaseModel):  # noqa: D401
    auto_resolve: bool = False


def _respond(result: OperationResult) -> JSONResponse:
    status = 200 if result.ok else _STATUS_BY_ERROR.get(
        result.error_type or "", 400
    )
    return JSONResponse(status_code=status, content=result.to_dict())


def _preset_payload(resolver: ModuleResolver) -> list[dict]:
    return [
        {
            "key": p.key,
            "name": p.name,
            "description": p.description,
            "modules": list(p.modules),
        }
        for p in resolver.presets()
    ]


@router.get("")
def list_modules(
    category: str | None = None,
    resolver: ModuleResolver = Depends(get_module_resolver),
):  # noqa: D401
    views = (
        resolver.list_by_category(category)
        if category and category != "all"
        else resolver.list_all()
    )
    return {
        "modules": [v.to_dict() for v in views],
        "stats": resolver.stats().to_dict(),
    }


@router.get("/enabled")
def enabled_modules(
    resolver: ModuleResolver = Depends(get_module_resolver),
):  # noqa: D401
    enabled = resolver.list_enabled()
    return {"enabled": [v.id for v in resolver.list_all() if v.id in enabled]}


@router.get("/stats")
def module_stats(
    resolver: ModuleResolver = Depends(get_module_resolver),
):  # noqa: D401
    return resolver.stats().to_dict()


@router.get("/presets")
def module_presets(
    resolver: ModuleResolver = Depends(get_module_resolver),
):  # noqa: D401
    return {"presets": _preset_payload(resolver)}


@router.get("/export")
def export_modules(
    resolver: ModuleResolver = Depends(get_module_resolver),
):  # noqa: D401
    exported = resolver.export_config()
    filename = export_filename(exported.timestamp)
    return JSONResponse(
        content=exported.model_dump(mode="json"),
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.post("/import")
async def import_modules(
    request: Request,
    resolver: ModuleResolver = Depends(get_module_resolver),
):  # noqa: D401
    # raw body so malformed JSON still yields an OperationResult
    return _respond(resolver.import_document(await request.body()))


@router.post("/reset")
def reset_modules(
    resolver: ModuleResolver = Depends(get_module_resolver),
):  # noqa: D401
    return _respond(resolver.reset_to_default())


@router.post("/presets/{preset_key}/apply")
def apply_preset(
    preset_key: str,
    resolver: ModuleResolver = Depends(get_module_resolver),
):  # noqa: D401
    return _respond(resolver.apply_preset(preset_key))


@router.get("/{module_id}/checks")
def module_checks(
    module_id: str,
    resolver: ModuleResolver = Depends(get_module_resolver),
):  # noqa: D401
    desc = resolver.get(module_id)
    if desc is None:
        return _respond(
            OperationResult.failure(
                "unknown-module", f"unknown module '{module_id}'"
            )
        )
    enable = resolver.can_enable(module_id)
    disable = resolver.can_disable(module_id)
    return {
        "id": module_id,
        "enabled": resolver.is_enabled(module_id),
        "can_enable": {
            "allowed": enable.allowed,
            "missing": [m.id for m in enable.missing],
            "reason": enable.reason.value if enable.reason else None,
        },
        "can_disable": {
            "allowed": disable.allowed,
            "blockers": [m.id for m in disable.blockers],
            "reason": disable.reason.value if disable.reason else None,
        },
        "dependents": [m.id for m in resolver.dependents_of(module_id)],
    }


@router.post("/{module_id}/enable")
def enable_module(
    module_id: str,
    req: ToggleRequest | None = None,
    resolver: ModuleResolver = Depends(get_module_resolver),
):  # noqa: D401
    auto = req.auto_resolve if req else False
    return _respond(resolver.enable(module_id, auto))


@router.post("/{module_id}/disable")
def disable_module(
    module_id: str,
    req: ToggleRequest | None = None,
    resolver: ModuleResolver = Depends(get_module_resolver),
):  # noqa: D401
    auto = req.auto_resolve if req else False
    return _respond(resolver.disable(module_id, auto))


@router.post("/{module_id}/toggle")
def toggle_module(
    module_id: str,
    req: ToggleRequest | None = None,
    resolver: ModuleResolver = Depends(get_module_resolver),
):  # noqa: D401
    auto = req.auto_resolve if req else False
    return _respond(resolver.toggle(module_id, auto))
