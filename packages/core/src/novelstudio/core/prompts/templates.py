"""任务指令模板 -- 每种功能一份，包含输出 JSON 结构与行为规则"""

from novelstudio.provider.models import AIFunction

_TEXT_RESULT_SCHEMA = """【输出格式】
请以 JSON 格式输出，包含以下字段：
```json
{{
  "result": "{result_hint}",
  "explanation": "{explanation_hint}"
}}
```"""


def _text_schema(result_hint: str, explanation_hint: str = "简短的修改说明（可选）") -> str:
    return _TEXT_RESULT_SCHEMA.format(result_hint=result_hint, explanation_hint=explanation_hint)


_POLISH = f"""【任务类型】文本润色

你需要对提供的文本进行润色优化：
- 提升文学性和可读性
- 优化句式结构和节奏感
- 增强语言的表现力和感染力
- 修正语法和用词问题
- 保持原文的情感基调和叙事风格
- **不要增加或删除内容**，只优化表达

{_text_schema("润色后的完整文本")}"""

_EXPAND = f"""【任务类型】文本扩写

你需要对提供的文本进行扩写：
- 丰富细节描写（环境、动作、心理等）
- 增加感官描写（视觉、听觉、触觉等）
- 深化人物情感和内心活动
- 扩展对话和互动
- 保持原文的情节走向和风格
- 扩写后的内容应该是原文的 **1.5-2 倍**长度

{_text_schema("扩写后的完整文本")}"""

_COMPRESS = f"""【任务类型】文本缩写

你需要对提供的文本进行缩写：
- 精简冗余的描写和修饰
- 保留核心情节和关键信息
- 删除不必要的重复和赘述
- 保持文章的连贯性和可读性
- 保留原文的情感基调
- 缩写后的内容应该是原文的 **50-70%** 长度

{_text_schema("缩写后的完整文本")}"""

_PLAN = """【任务类型】结构规划

你需要根据提供的章节/卷大纲，规划其子内容结构：

**规则**：
1. 理解层级：
   - 如果当前是"卷"级别，子内容应该是"章节"（FOLDER 类型）
   - 如果当前是"章节"级别，子内容应该是"场景"（FILE 类型）
   - 用户可能会指定子节点类型，请遵循用户指示

2. 保留已有内容：
   - 如果已有子节点，不要重复规划相同内容
   - 新规划的内容应该与已有内容形成完整的故事结构

3. 规划原则：
   - 每个子节点需要有明确的标题和简短摘要（50-100字）
   - 保持故事的连贯性和节奏感
   - 标题要简洁有力，能体现内容核心

【输出格式】
请以 JSON 格式输出：
```json
{
  "children": [
    {
      "title": "子节点标题",
      "summary": "子节点摘要（50-100字）",
      "type": "FOLDER 或 FILE"
    }
  ],
  "explanation": "规划说明（可选）"
}
```"""

_CONTINUE = f"""【任务类型】内容续写

你需要接续当前内容继续创作。

**要求**：
- 保持与前文一致的写作风格和语气
- 延续当前的情节发展和叙事节奏
- 保持人物性格和行为的一致性
- 注意情节的连贯性和逻辑性
- 如果提供了光标后的内容，续写需要自然地衔接到后文
- 续写长度适中，约 200-500 字

**注意**：
- 仔细阅读提供的上下文信息（父节点链、场景摘要、关联角色等）
- 续写内容应该符合故事的整体设定和发展方向

**重要**：
- **不要重复已有内容**：直接从光标位置开始续写新内容，不要复述或重复【光标前的内容】中已有的任何文字
- 输出的 result 应该是纯粹的新增内容，可以直接插入到光标位置

{_text_schema("续写的内容（纯文本，不含任何标记，不要包含已有内容）", "续写思路说明（可选）")}"""

_SUMMARIZE = f"""【任务类型】内容总结

你需要为提供的内容生成摘要。

**要求**：
- 概括主要情节、事件和核心内容
- 提取关键信息和重要细节
- 保持摘要的简洁性和可读性
- 摘要长度控制在 50-150 字
- 使用第三人称客观描述

**注意**：
- 如果是场景（文档），重点概括情节发展和人物行为
- 如果是章节（文件夹），重点概括各子内容的整体脉络
- 不要添加原文没有的信息

{_text_schema("生成的摘要（50-150字）", "总结思路说明（可选）")}"""

TASK_INSTRUCTIONS: dict[AIFunction, str] = {
    AIFunction.POLISH: _POLISH,
    AIFunction.EXPAND: _EXPAND,
    AIFunction.COMPRESS: _COMPRESS,
    AIFunction.PLAN: _PLAN,
    AIFunction.CONTINUE: _CONTINUE,
    AIFunction.SUMMARIZE: _SUMMARIZE,
}

CLOSING_DIRECTIVE = "请根据以上信息，按指定格式输出结果。"


def get_task_instruction(function: AIFunction) -> str:
    """获取功能对应的任务指令；chat 没有任务指令

    Raises:
        KeyError: function 为 chat
    """
    return TASK_INSTRUCTIONS[function]
