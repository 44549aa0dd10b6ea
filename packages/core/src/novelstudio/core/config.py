"""配置常量模块 -- 可通过环境变量覆盖

包含上下文切片长度、整节点内容上限、默认采样温度、SSE 心跳间隔等可配置常量。
"""

import os

# 修改类任务：选区前后各截取的字符数
CONTEXT_MAX_LENGTH: int = int(os.environ.get("NOVELSTUDIO_CONTEXT_MAX_LENGTH", "200"))

# 整节点正文（参考上下文、续写前文、总结正文）的字符上限
NODE_CONTENT_MAX_CHARS: int = int(
    os.environ.get("NOVELSTUDIO_NODE_CONTENT_MAX_CHARS", "6000")
)

# 默认采样温度
DEFAULT_TEMPERATURE: float = float(os.environ.get("NOVELSTUDIO_DEFAULT_TEMPERATURE", "0.7"))

# SSE 心跳间隔（秒）
SSE_HEARTBEAT_INTERVAL: int = int(
    os.environ.get("NOVELSTUDIO_SSE_HEARTBEAT_INTERVAL", "15")
)

# 截断时保留的头部 / 尾部比例
TRUNCATION_HEAD_RATIO: float = 0.6
TRUNCATION_TAIL_RATIO: float = 0.3

# 截断标记
TRUNCATION_MARKER: str = "\n……（中间内容已省略）……\n"

# 粗略的每 token 字符数（中文为主的文本）
CHARS_PER_TOKEN: float = 1.5
