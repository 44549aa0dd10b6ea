"""Prompt Formatter -- 任务 -> 有序消息列表

用户消息的拼接顺序：
任务指令 -> 项目信息 -> 参考上下文 -> 任务载荷 -> 额外要求 -> 结束语，
各块之间以分隔线连接。
"""

from collections.abc import Sequence

from novelstudio.provider.models import ChatMessage

from ..models.context import (
    AncestorInfo,
    ContextItem,
    ContinueContext,
    EntityBrief,
    EntityContextItem,
    ModifyEnhancedContext,
    NodeContextItem,
    PlanContext,
    ProjectInfo,
    SelectionContextItem,
    SummarizeContext,
)
from ..models.enums import NodeType
from ..models.task import ChatTask, ContinueTask, ModifyTask, PlanTask, SummarizeTask, TaskBase
from .system import UNIFIED_SYSTEM_PROMPT
from .templates import CLOSING_DIRECTIVE, get_task_instruction

SECTION_SEPARATOR = "\n\n---\n\n"


# ---------- 参考上下文 ----------


def _format_node_item(item: NodeContextItem) -> str:
    if item.node_type == NodeType.FILE:
        text = f"### 📄 {item.title}"
        if item.timestamp:
            text += f"\n**故事时间**：{item.timestamp}"
        if item.summary:
            text += f"\n**摘要**：{item.summary}"
        if item.content:
            text += f"\n**内容**：\n{item.content}"
        return text

    text = f"### 📁 {item.title}"
    if item.summary:
        text += f"\n**大纲**：{item.summary}"
    if item.children_names:
        text += "\n**子节点**：\n" + "\n".join(item.children_names)
    return text


def _format_entity_item(item: EntityContextItem) -> str:
    text = f"### 👤 {item.name} ({item.entity_type.value})"
    if item.aliases:
        text += f"\n**别名**：{'、'.join(item.aliases)}"
    if item.description:
        text += f"\n**描述**：{item.description}"
    if item.attributes:
        attrs = "\n".join(f"- {k}: {v}" for k, v in item.attributes.items())
        text += f"\n**属性**：\n{attrs}"
    return text


def format_context_items(items: Sequence[ContextItem]) -> str:
    """把参考上下文渲染为 Markdown 小节，空列表返回空字符串"""
    sections: list[str] = []
    for item in items:
        if isinstance(item, NodeContextItem):
            sections.append(_format_node_item(item))
        elif isinstance(item, SelectionContextItem):
            sections.append(f"### ✂️ 选中文本\n{item.text}")
        elif isinstance(item, EntityContextItem):
            sections.append(_format_entity_item(item))
    return "\n\n".join(sections)


def format_project(project: ProjectInfo) -> str:
    text = f"【当前项目】\n**项目名称**：{project.title}"
    if project.description:
        text += f"\n**项目简介**：{project.description}"
    return text


# ---------- 任务载荷 ----------


def _format_entity_briefs(entities: Sequence[EntityBrief]) -> str:
    return "\n".join(f"- **{e.name}** ({e.type.value}): {e.description}" for e in entities)


def _format_ancestor_chain(chain: Sequence[AncestorInfo]) -> str:
    lines = []
    for depth, node in enumerate(chain):
        indent = "  " * depth
        line = f"{indent}📁 {node.name}"
        if node.summary:
            line += f"\n{indent}  摘要：{node.summary}"
        lines.append(line)
    return "\n".join(lines)


def format_modify_payload(selected_text: str, context: ModifyEnhancedContext | None) -> str:
    parts: list[str] = []
    if context is not None and context.text_before:
        parts.append(f"【前文】\n{context.text_before}")
    parts.append(f"【需要处理的文本】\n{selected_text}")
    if context is not None:
        if context.text_after:
            parts.append(f"【后文】\n{context.text_after}")
        if context.scene_summary:
            parts.append(f"【当前场景摘要】\n{context.scene_summary}")
        if context.chapter_summary:
            parts.append(f"【当前章节摘要】\n{context.chapter_summary}")
        if context.related_entities:
            parts.append(f"【相关角色/设定】\n{_format_entity_briefs(context.related_entities)}")
    return SECTION_SEPARATOR.join(parts)


def format_plan_payload(context: PlanContext) -> str:
    parts: list[str] = []
    if context.ancestor_chain:
        parts.append(f"【故事结构】\n{_format_ancestor_chain(context.ancestor_chain)}")

    parts.append(f"【当前节点】\n**名称**：{context.node_name}\n\n**大纲**：\n{context.node_outline}")

    if context.existing_children:
        children = "\n\n".join(
            f"{index}. **{child.title}** ({'章节' if child.type == NodeType.FOLDER else '场景'})\n"
            f"   摘要：{child.summary or '无'}"
            for index, child in enumerate(context.existing_children, start=1)
        )
        parts.append(f"【已有子节点】\n{children}\n\n请在已有子节点的基础上，规划还需要添加的子节点。")

    if context.parent_node is not None:
        parts.append(
            f"【上级节点信息】\n**名称**：{context.parent_node.name}\n**大纲**：{context.parent_node.outline}"
        )

    if context.related_entities:
        parts.append(f"【相关角色/设定】\n{_format_entity_briefs(context.related_entities)}")

    return SECTION_SEPARATOR.join(parts)


def format_continue_payload(context: ContinueContext) -> str:
    parts: list[str] = []
    if context.ancestor_chain:
        parts.append(f"【故事结构】\n{_format_ancestor_chain(context.ancestor_chain)}")

    node_info = f"【当前场景】\n**名称**：{context.node_name}"
    if context.node_summary:
        node_info += f"\n**摘要**：{context.node_summary}"
    parts.append(node_info)

    if context.related_entities:
        parts.append(f"【相关角色/设定】\n{_format_entity_briefs(context.related_entities)}")

    parts.append(f"【光标前的内容】\n{context.content_before}")

    if context.content_after and context.content_after.strip():
        parts.append(f"【光标后的内容（续写需要衔接到此处）】\n{context.content_after}")

    parts.append("请从【光标前的内容】末尾开始续写。")
    return SECTION_SEPARATOR.join(parts)


def format_summarize_payload(context: SummarizeContext) -> str:
    is_file = context.node_type == NodeType.FILE
    parts = [f"【{'场景' if is_file else '章节'}名称】\n{context.node_name}"]
    if context.current_summary and context.current_summary.strip():
        parts.append(f"【当前摘要】\n{context.current_summary}")
    parts.append(f"【{'场景正文' if is_file else '子内容列表'}】\n{context.content}")
    return SECTION_SEPARATOR.join(parts)


def _format_payload(task: TaskBase) -> str:
    if isinstance(task, ModifyTask):
        return format_modify_payload(task.selected_text, task.enhanced_context)
    if isinstance(task, PlanTask):
        return format_plan_payload(task.context)
    if isinstance(task, ContinueTask):
        return format_continue_payload(task.context)
    if isinstance(task, SummarizeTask):
        return format_summarize_payload(task.context)
    raise TypeError(f"不支持的任务类型: {type(task).__name__}")


# ---------- 消息组装 ----------


def build_task_user_message(task: TaskBase) -> str:
    """组装特殊功能（非 chat）的用户消息"""
    parts = [get_task_instruction(task.function)]

    # 规划与续写的祖先链已以项目开头
    if task.project is not None and not isinstance(task, (PlanTask, ContinueTask)):
        parts.append(format_project(task.project))

    contexts = list(task.user_contexts)
    if isinstance(task, ModifyTask):
        # 选中文本已在载荷中
        contexts = [c for c in contexts if not isinstance(c, SelectionContextItem)]
    if contexts:
        parts.append(f"【参考上下文】\n{format_context_items(contexts)}")

    parts.append(_format_payload(task))

    if task.user_input and task.user_input.strip():
        parts.append(f"【额外要求】\n{task.user_input}")

    parts.append(CLOSING_DIRECTIVE)
    return SECTION_SEPARATOR.join(parts)


def build_chat_user_message(
    message: str,
    contexts: Sequence[ContextItem] = (),
    project: ProjectInfo | None = None,
) -> str:
    """普通对话的用户消息；有参考上下文时加上【参考上下文】与【我的问题】标题"""
    sections: list[str] = []
    if project is not None:
        sections.append(format_project(project))
    if contexts:
        sections.append(f"【参考上下文】\n{format_context_items(contexts)}")
    if not sections:
        return message
    sections.append(f"【我的问题】\n{message}")
    return SECTION_SEPARATOR.join(sections)


def build_messages(task: TaskBase) -> list[ChatMessage]:
    """任务 -> [system, (历史轮次), user]"""
    messages = [ChatMessage(role="system", content=UNIFIED_SYSTEM_PROMPT)]
    if isinstance(task, ChatTask):
        messages.extend(m for m in task.history if m.role != "system")
        content = build_chat_user_message(task.message, task.user_contexts, task.project)
    else:
        content = build_task_user_message(task)
    messages.append(ChatMessage(role="user", content=content))
    return messages
