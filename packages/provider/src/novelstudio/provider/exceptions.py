"""Provider 异常体系

配置错误在发起网络请求前抛出；传输错误携带状态码与响应正文；
取消使用独立的 RequestAbortedError，与普通错误区分。
"""


class ProviderError(Exception):
    """Provider 包基础异常"""

    def __init__(self, message: str, recoverable: bool = True) -> None:
        """
        Args:
            message: 错误描述
            recoverable: 是否可由调用方重试恢复
        """
        super().__init__(message)
        self.recoverable = recoverable


class ProviderConfigError(ProviderError):
    """没有可用的 provider / 凭证（未发起任何网络请求）"""

    def __init__(self, message: str = "未找到可用的 AI 服务商，请先配置 API Key") -> None:
        super().__init__(message, recoverable=False)


class UnknownProviderError(ProviderConfigError):
    """注册表中不存在的 provider 标识"""

    def __init__(self, provider_id: str) -> None:
        super().__init__(f"未知的 AI 服务商: {provider_id}")
        self.provider_id = provider_id


class ProviderHTTPError(ProviderError):
    """provider 返回非 2xx 状态码"""

    def __init__(self, status_code: int, body: str) -> None:
        """
        Args:
            status_code: HTTP 状态码
            body: 响应正文（原样保留，供界面展示）
        """
        super().__init__(
            f"Chat request failed: {status_code} - {body}",
            recoverable=status_code >= 500 or status_code == 429,
        )
        self.status_code = status_code
        self.body = body


class InvalidResponseError(ProviderError):
    """2xx 响应的正文不是预期的 JSON 对象"""

    def __init__(self, body: str) -> None:
        preview = body[:200]
        super().__init__(f"Invalid response body: {preview}", recoverable=True)
        self.body = body


class NoResponseBodyError(ProviderError):
    """流式请求未返回任何响应体"""

    def __init__(self) -> None:
        super().__init__("No response body", recoverable=True)


class RequestAbortedError(ProviderError):
    """请求被取消令牌中止

    取消不是错误：调用方捕获后应将任务置为 cancelled，且不设置 error。
    """

    def __init__(self, message: str = "请求已取消") -> None:
        super().__init__(message, recoverable=False)
