"""提示词：统一 System Prompt、任务指令模板与消息组装"""

from .formatter import (
    SECTION_SEPARATOR,
    build_chat_user_message,
    build_messages,
    build_task_user_message,
    format_context_items,
)
from .system import UNIFIED_SYSTEM_PROMPT
from .templates import CLOSING_DIRECTIVE, TASK_INSTRUCTIONS, get_task_instruction

__all__ = [
    "UNIFIED_SYSTEM_PROMPT",
    "TASK_INSTRUCTIONS",
    "CLOSING_DIRECTIVE",
    "SECTION_SEPARATOR",
    "get_task_instruction",
    "format_context_items",
    "build_task_user_message",
    "build_chat_user_message",
    "build_messages",
]
