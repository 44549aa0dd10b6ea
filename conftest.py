"""全局 pytest 配置 -- 隔离 structlog 上下文、NOVELSTUDIO_ 环境变量与 SSE 退出信号"""

import os

import pytest
import structlog
from sse_starlette.sse import AppStatus


@pytest.fixture(autouse=True)
def _isolate_log_context():
    """请求中间件绑定的 request_id 等字段不跨测试泄漏"""
    structlog.contextvars.clear_contextvars()
    yield
    structlog.contextvars.clear_contextvars()


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch):
    """本机设置的 Key / 模型配置不影响测试"""
    for name in list(os.environ):
        if name.startswith("NOVELSTUDIO_"):
            monkeypatch.delenv(name, raising=False)


@pytest.fixture(autouse=True)
def _reset_sse_exit_event():
    """EventSourceResponse 的退出事件绑定首个事件循环，每个测试使用新的事件循环"""
    if hasattr(AppStatus, "should_exit_event"):
        AppStatus.should_exit_event = None
    yield
    if hasattr(AppStatus, "should_exit_event"):
        AppStatus.should_exit_event = None
