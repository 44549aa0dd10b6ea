"""健康检查路由

GET /health: Liveness 检查，永远返回 200。
GET /ready: Readiness 检查，至少一个 provider 配置了 API Key 时就绪。
"""

import structlog
from fastapi import APIRouter, Depends
from novelstudio.provider import AISettings, ProviderRegistry
from starlette.responses import JSONResponse

from ..deps import get_registry, get_settings

log = structlog.get_logger()

router = APIRouter()


@router.get("/health")
async def health():
    """Liveness 检查 -- 永远返回 200"""
    return {"status": "ok"}


@router.get("/ready")
async def ready(
    settings: AISettings = Depends(get_settings),
    registry: ProviderRegistry = Depends(get_registry),
):
    """Readiness 检查 -- 列出每个已注册 provider 的凭证状态（不输出 Key）"""
    configured = set(settings.configured_providers(registry))
    checks = {
        provider.provider_id: "configured" if provider.provider_id in configured else "missing_key"
        for provider in registry.list_all()
    }
    all_ok = any(status == "configured" for status in checks.values())

    return JSONResponse(
        status_code=200 if all_ok else 503,
        content={
            "status": "ready" if all_ok else "not_ready",
            "checks": checks,
        },
    )
