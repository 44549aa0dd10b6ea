"""上下文数据模型

宿主输入（NodeInfo / EntityRecord / ProjectInfo）是只读的纯数据；
ContextItem 自包含，格式化时不再回查文档存储；
各任务上下文（Modify / Plan / Continue / Summarize）由 context_builder 组装。
"""

from typing import Annotated, Literal

from pydantic import BaseModel, Field

from .enums import EntityType, NodeType

# ---------- 宿主输入 ----------


class ProjectInfo(BaseModel):
    """项目信息"""

    title: str = Field(description="项目名称")
    description: str | None = Field(default=None, description="项目简介")


class NodeInfo(BaseModel):
    """文档树节点（宿主提供的只读快照）"""

    node_id: str = Field(description="节点 ID")
    title: str = Field(description="节点标题")
    node_type: NodeType = Field(description="FOLDER / FILE")
    parent_id: str | None = Field(default=None, description="父节点 ID")
    content: str = Field(default="", description="正文（FILE）")
    summary: str = Field(default="", description="摘要")
    outline: str = Field(default="", description="大纲（FOLDER）")
    timestamp: str | None = Field(default=None, description="故事内时间")
    system_root: bool = Field(default=False, description="是否为系统生成的根节点（不参与祖先链）")


class EntityRecord(BaseModel):
    """设定实体（角色 / 地点 / 物品）"""

    entity_id: str = Field(description="实体 ID")
    entity_type: EntityType = Field(description="实体类型")
    name: str = Field(description="名称")
    aliases: list[str] = Field(default_factory=list, description="别名")
    description: str = Field(default="", description="描述")
    attributes: dict[str, str] = Field(default_factory=dict, description="自定义属性")


# ---------- ContextItem 联合类型 ----------


class NodeContextItem(BaseModel):
    """节点参考"""

    type: Literal["node"] = "node"
    node_id: str
    title: str
    node_type: NodeType
    content: str = ""
    summary: str = ""
    timestamp: str | None = None
    children_names: list[str] = Field(default_factory=list)


class SelectionContextItem(BaseModel):
    """选中文本参考"""

    type: Literal["selection"] = "selection"
    text: str


class EntityContextItem(BaseModel):
    """实体参考"""

    type: Literal["entity"] = "entity"
    entity_id: str
    entity_type: EntityType
    name: str
    aliases: list[str] = Field(default_factory=list)
    description: str = ""
    attributes: dict[str, str] = Field(default_factory=dict)


ContextItem = Annotated[
    NodeContextItem | SelectionContextItem | EntityContextItem,
    Field(discriminator="type"),
]


# ---------- 任务上下文 ----------


class AncestorInfo(BaseModel):
    """祖先链条目，根在前"""

    name: str
    summary: str = ""


class EntityBrief(BaseModel):
    """提示词中使用的实体摘要"""

    name: str
    type: EntityType
    description: str = ""


class ChildBrief(BaseModel):
    """已有子节点摘要"""

    title: str
    summary: str = ""
    type: NodeType


class ParentBrief(BaseModel):
    """上级节点摘要"""

    name: str
    outline: str = ""


class ModifyEnhancedContext(BaseModel):
    """修改类任务的增强上下文；全部为空时由组装器返回 None"""

    text_before: str | None = Field(default=None, description="选区前文")
    text_after: str | None = Field(default=None, description="选区后文")
    scene_summary: str | None = Field(default=None, description="当前场景摘要")
    chapter_summary: str | None = Field(default=None, description="当前章节摘要")
    related_entity_ids: list[str] = Field(default_factory=list, description="选区中提及的实体")
    related_entities: list[EntityBrief] = Field(
        default_factory=list, description="提及实体的名称 / 类型 / 描述，按 related_entity_ids 顺序"
    )


class PlanContext(BaseModel):
    """结构规划上下文"""

    node_id: str
    node_name: str
    node_outline: str = ""
    existing_children: list[ChildBrief] = Field(default_factory=list)
    parent_node: ParentBrief | None = None
    ancestor_chain: list[AncestorInfo] = Field(default_factory=list)
    related_entities: list[EntityBrief] = Field(default_factory=list)


class ContinueContext(BaseModel):
    """续写上下文"""

    node_id: str
    node_name: str
    node_summary: str | None = None
    content_before: str = ""
    content_after: str | None = None
    ancestor_chain: list[AncestorInfo] = Field(default_factory=list)
    related_entities: list[EntityBrief] = Field(default_factory=list)


class SummarizeContext(BaseModel):
    """总结上下文：FILE 为场景正文，FOLDER 为子内容列表"""

    node_id: str
    node_name: str
    node_type: NodeType
    current_summary: str | None = None
    content: str = ""
