"""FastAPI 应用主文件

app 创建 + lifespan 管理：加载 AI 配置、初始化 provider 注册表与任务服务、注册路由。
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from novelstudio.provider import create_default_registry, load_ai_settings

from .middleware.logging_config import setup_logging
from .middleware.logging_mw import LoggingMiddleware
from .routes import ai, health, tasks
from .routes.errors import error_response
from .services.ai_request import AIRequestService
from .services.event_hub import TaskEventHub
from .services.task_store import ActiveTaskStore

log = structlog.get_logger()


def init_services(app: FastAPI, registry=None, settings=None) -> None:
    """初始化 app.state 上的服务实例；测试可传入自定义 registry / settings"""
    settings = settings or load_ai_settings(registry)
    registry = registry or create_default_registry(timeout_s=settings.timeout_s)

    event_hub = TaskEventHub()
    task_store = ActiveTaskStore(hub=event_hub, debug_mode=settings.debug_mode)

    app.state.ai_settings = settings
    app.state.registry = registry
    app.state.event_hub = event_hub
    app.state.task_store = task_store
    app.state.ai_service = AIRequestService(task_store, registry, settings)

    log.info(
        "ai_services_initialized",
        providers=[p.provider_id for p in registry.list_all()],
        configured=settings.configured_providers(registry),
        timeout_s=settings.timeout_s,
        debug_mode=settings.debug_mode,
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """应用生命周期管理：启动时初始化服务，关闭时取消进行中的请求"""
    if not hasattr(app.state, "ai_service"):
        init_services(app)

    yield

    await app.state.ai_service.stop_request()
    await app.state.ai_service.wait_idle()


async def _validation_error_handler(request: Request, exc: RequestValidationError):
    message = "; ".join(
        f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in exc.errors()
    )
    return error_response(400, "VALIDATION_ERROR", message)


def create_app() -> FastAPI:
    """创建 FastAPI 应用实例"""
    app = FastAPI(
        title="NovelStudio AI Gateway",
        version="0.1.0",
        description="小说编辑器 AI 任务编排与流式输出 API",
        lifespan=lifespan,
    )

    app.add_middleware(LoggingMiddleware)
    app.add_exception_handler(RequestValidationError, _validation_error_handler)

    # 初始化日志
    setup_logging()

    # 注册路由
    app.include_router(ai.router, tags=["ai"])
    app.include_router(tasks.router, tags=["tasks"])
    app.include_router(health.router, tags=["health"])

    return app


# 默认 app 实例（uvicorn 入口）
app = create_app()
