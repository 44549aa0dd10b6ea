"""结构化结果模型 -- 从模型自由文本中恢复出的类型化结果"""

from pydantic import BaseModel, Field

from .enums import NodeType


class TextResult(BaseModel):
    """{result, explanation} 形状的结果（修改 / 续写 / 总结）"""

    result: str = Field(description="结果文本")
    explanation: str | None = Field(default=None, description="修改说明，纯文本降级时为 None")


class PlannedChild(BaseModel):
    """规划出的子节点"""

    title: str = Field(min_length=1, description="标题")
    summary: str = Field(default="", description="摘要")
    type: NodeType = Field(description="FOLDER / FILE")


class PlanResult(BaseModel):
    """{children, explanation} 形状的结果

    解析降级为纯文本时 children 为空，原文保留在 text 中。
    """

    children: list[PlannedChild] = Field(default_factory=list, description="合法的子节点")
    explanation: str | None = Field(default=None, description="规划说明")
    text: str | None = Field(default=None, description="纯文本降级时的原始输出")
