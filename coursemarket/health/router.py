from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from coursemarket.health.service import health_supabase_info
from coursemarket.utils.rate_limit import rate_limit_health_info

router = APIRouter(prefix="/health", tags=["Health"])


@router.get("")
def health_root(request: Request):
    container = request.app.state.container
    return {"ok": True, "storage": container.storage, "gateway": container.gateway.name}


@router.get("/supabase")
def health_supabase(request: Request):
    return JSONResponse(health_supabase_info(request.app.state.container))


@router.get("/rate-limit")
def health_rate_limit(request: Request):
    return rate_limit_health_info(request)
