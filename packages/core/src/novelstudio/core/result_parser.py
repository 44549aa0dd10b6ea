"""Structured Result Parser -- 从模型自由文本中恢复结构化结果

回退链：
1. 整段文本按 JSON 解析，且包含预期的顶层字段
2. 提取 ``` 代码块（可带 json 标签）再按 JSON 解析
3. 纯文本：result = text.strip()，无 explanation / children

解析函数从不抛出异常。
"""

import json
import re
from collections.abc import Callable, Iterable
from typing import Any, TypeVar

import structlog
from pydantic import ValidationError

from .models.results import PlannedChild, PlanResult, TextResult

log = structlog.get_logger()

_FENCE_RE = re.compile(r"```(?:json)?\s*([\s\S]*?)```")

T = TypeVar("T")


def _load_json(text: str) -> Any:
    try:
        return json.loads(text)
    except (json.JSONDecodeError, ValueError):
        return None


def _candidates(text: str) -> Iterable[Any]:
    yield _load_json(text.strip())
    match = _FENCE_RE.search(text)
    if match:
        yield _load_json(match.group(1).strip())


def _first_match(text: str, build: Callable[[dict[str, Any]], T | None]) -> T | None:
    for candidate in _candidates(text):
        if not isinstance(candidate, dict):
            continue
        built = build(candidate)
        if built is not None:
            return built
    return None


def _optional_str(value: Any) -> str | None:
    return value if isinstance(value, str) and value else None


def _build_text_result(data: dict[str, Any]) -> TextResult | None:
    result = data.get("result")
    if not isinstance(result, str) or not result:
        return None
    return TextResult(result=result, explanation=_optional_str(data.get("explanation")))


def parse_text_result(text: str) -> TextResult:
    """解析 {result, explanation} 形状的输出（修改 / 续写 / 总结）"""
    parsed = _first_match(text, _build_text_result)
    if parsed is not None:
        return parsed
    log.debug("result_parse_fallback_plain_text", kind="text", length=len(text))
    return TextResult(result=text.strip())


def _build_child(raw: Any) -> PlannedChild | None:
    if not isinstance(raw, dict):
        return None
    title = raw.get("title")
    summary = raw.get("summary")
    try:
        return PlannedChild(
            title=title.strip() if isinstance(title, str) else title,
            summary=summary if isinstance(summary, str) else "",
            type=raw.get("type"),
        )
    except ValidationError:
        return None


def _build_plan_result(data: dict[str, Any]) -> PlanResult | None:
    raw_children = data.get("children")
    if not isinstance(raw_children, list):
        return None

    children = [c for c in (_build_child(raw) for raw in raw_children) if c is not None]
    if not children:
        return None

    dropped = len(raw_children) - len(children)
    if dropped:
        log.debug("plan_children_dropped", dropped=dropped, kept=len(children))
    return PlanResult(children=children, explanation=_optional_str(data.get("explanation")))


def parse_plan_result(text: str) -> PlanResult:
    """解析 {children, explanation} 形状的输出

    子节点必须有非空标题且类型为 FOLDER / FILE，不合法的条目被丢弃；
    缺少摘要时置为空字符串。没有任何合法子节点时降级为纯文本。
    """
    parsed = _first_match(text, _build_plan_result)
    if parsed is not None:
        return parsed
    log.debug("result_parse_fallback_plain_text", kind="plan", length=len(text))
    return PlanResult(text=text.strip())


def _normalize_title(title: str) -> str:
    return title.strip().lower()


def filter_new_children(
    children: Iterable[PlannedChild],
    existing_titles: Iterable[str],
) -> tuple[list[PlannedChild], list[str]]:
    """剔除与已有子节点重名（去空白、大小写不敏感）的规划结果

    Returns:
        (保留的子节点, 被跳过的标题)
    """
    seen = {_normalize_title(t) for t in existing_titles}
    kept: list[PlannedChild] = []
    skipped: list[str] = []
    for child in children:
        key = _normalize_title(child.title)
        if key in seen:
            skipped.append(child.title)
            continue
        seen.add(key)
        kept.append(child)
    return kept, skipped
