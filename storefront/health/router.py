from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from storefront.config import Settings, get_app_settings
from storefront.health.service import health_config_info, health_rate_limit_info

router = APIRouter(prefix="/health", tags=["Health"])

@router.get("")
def health_root():
    return {"ok": True}

@router.get("/config")
def health_config(settings: Settings = Depends(get_app_settings)):
    return JSONResponse(health_config_info(settings))

@router.get("/rate-limit")
def health_rate_limit(request: Request):
    return JSONResponse(health_rate_limit_info(request))
