"""依赖注入模块 -- 通过 FastAPI Depends 注入服务实例

服务实例通过 app.state 管理，在 lifespan 中初始化。
"""

from fastapi import Request
from novelstudio.provider import AISettings, ProviderRegistry

from .services.ai_request import AIRequestService
from .services.event_hub import TaskEventHub
from .services.task_store import ActiveTaskStore


def get_registry(request: Request) -> ProviderRegistry:
    """从 app.state 获取 ProviderRegistry 实例"""
    return request.app.state.registry


def get_settings(request: Request) -> AISettings:
    return request.app.state.ai_settings


def get_task_store(request: Request) -> ActiveTaskStore:
    return request.app.state.task_store


def get_event_hub(request: Request) -> TaskEventHub:
    return request.app.state.event_hub


def get_ai_service(request: Request) -> AIRequestService:
    return request.app.state.ai_service
