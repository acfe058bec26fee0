"""
Main API router. Mounts all sub-routers.
"""

from fastapi import APIRouter, Request

router = APIRouter()


# ── Health (no auth) ─────────────────────────────────────────────────

@router.get("/health")
async def health():
    return {"status": "ok", "service": "fnb-assistant"}


# ── Auth config (no auth) ───────────────────────────────────────────

@router.get("/auth/config")
async def auth_config(request: Request):
    flags = request.app.state.flags
    if not flags.use_auth:
        return {"auth_enabled": False, "message": "Dev mode, no auth required"}

    settings = request.app.state.settings
    return {
        "auth_enabled": True,
        "provider": "supabase",
        "url": settings.supabase_url,
        "local_verification": bool(settings.supabase_jwt_secret),
    }


# ── V1 routes (auth required) ───────────────────────────────────────

from .chat import chat_router

router.include_router(chat_router, prefix="/v1")
