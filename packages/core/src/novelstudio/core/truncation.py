"""文本截断 -- 按字符数的粗略预算

保留头部 60% + 标记 + 尾部 30%。结果长度不超过预算，
因此对已截断文本按同一预算再次截断是 no-op。
"""

import math

from .config import (
    CHARS_PER_TOKEN,
    TRUNCATION_HEAD_RATIO,
    TRUNCATION_MARKER,
    TRUNCATION_TAIL_RATIO,
)


def truncate_text(text: str, max_chars: int, marker: str = TRUNCATION_MARKER) -> str:
    """把文本截断到 max_chars 个字符以内

    Args:
        text: 原文
        max_chars: 字符预算
        marker: 插入在头尾之间的省略标记

    Returns:
        预算内的原文原样返回；否则返回 头部 + marker + 尾部。
        预算小到放不下标记时直接截取前 max_chars 个字符。
    """
    if max_chars <= 0:
        return ""
    if len(text) <= max_chars:
        return text

    head_len = int(max_chars * TRUNCATION_HEAD_RATIO)
    tail_len = int(max_chars * TRUNCATION_TAIL_RATIO)
    if head_len + len(marker) + tail_len > max_chars or tail_len == 0:
        return text[:max_chars]

    return text[:head_len] + marker + text[-tail_len:]


def estimate_tokens(text: str) -> int:
    """粗略估算 token 数，仅用于日志"""
    return math.ceil(len(text) / CHARS_PER_TOKEN)
