"""SSEDecoder -- OpenAI 兼容流式响应的增量解码

字节 -> 增量 UTF-8 解码（多字节字符可跨块）-> 行缓冲（保留末尾不完整行）
-> `data: {json}` 行解析 -> choices[0].delta.content 文本片段。

单行 JSON 解析失败只跳过该行，不中断整个流。
"""

import codecs
import json

import structlog

log = structlog.get_logger()

DATA_PREFIX = "data:"
DONE_SENTINEL = "[DONE]"


def extract_delta_content(payload: object) -> str | None:
    """从一个流式事件 JSON 中提取 choices[0].delta.content"""
    if not isinstance(payload, dict):
        return None
    choices = payload.get("choices")
    if not isinstance(choices, list) or not choices:
        return None
    first = choices[0]
    if not isinstance(first, dict):
        return None
    delta = first.get("delta")
    if not isinstance(delta, dict):
        return None
    content = delta.get("content")
    if isinstance(content, str) and content:
        return content
    return None


class SSEDecoder:
    """有状态的事件流解码器，每个响应使用一个实例"""

    def __init__(self) -> None:
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._buffer = ""
        self.done = False
        self.skipped_lines = 0

    def feed(self, data: bytes) -> list[str]:
        """喂入一块原始字节，返回这块数据补全的所有文本片段"""
        self._buffer += self._decoder.decode(data)
        lines = self._buffer.split("\n")
        # 最后一段可能是半行，留到下一次
        self._buffer = lines.pop()
        return self._parse_lines(lines)

    def flush(self) -> list[str]:
        """响应体结束：冲刷解码器并处理残留的最后一行"""
        self._buffer += self._decoder.decode(b"", final=True)
        remaining, self._buffer = self._buffer, ""
        return self._parse_lines(remaining.split("\n"))

    def _parse_lines(self, lines: list[str]) -> list[str]:
        fragments: list[str] = []
        for raw in lines:
            fragment = self._parse_line(raw)
            if fragment:
                fragments.append(fragment)
        return fragments

    def _parse_line(self, raw: str) -> str | None:
        line = raw.strip()
        if not line or not line.startswith(DATA_PREFIX):
            # 空行、注释行（":" 开头）、event:/id: 字段都不携带内容
            return None

        data = line[len(DATA_PREFIX):].lstrip()
        if data == DONE_SENTINEL:
            self.done = True
            return None

        try:
            payload = json.loads(data)
        except json.JSONDecodeError:
            self.skipped_lines += 1
            log.debug("sse_line_skipped", line_preview=data[:80])
            return None

        return extract_delta_content(payload)
