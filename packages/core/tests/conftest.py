"""packages/core 测试配置 -- 文档树与设定实体 fixture"""

import pytest
from novelstudio.core.models import EntityRecord, EntityType, NodeInfo, NodeType, ProjectInfo


@pytest.fixture
def project() -> ProjectInfo:
    return ProjectInfo(title="长夜将明", description="一部关于守夜人的奇幻小说")


@pytest.fixture
def nodes() -> list[NodeInfo]:
    """系统根 -> 第一卷 -> 第一章 -> 两个场景"""
    return [
        NodeInfo(node_id="root", title="根目录", node_type=NodeType.FOLDER, system_root=True),
        NodeInfo(
            node_id="vol1",
            title="第一卷",
            node_type=NodeType.FOLDER,
            parent_id="root",
            outline="林夜初入守夜人营地",
        ),
        NodeInfo(
            node_id="ch1",
            title="第一章 雪夜",
            node_type=NodeType.FOLDER,
            parent_id="vol1",
            summary="林夜在雪夜中抵达营地",
            outline="雪夜抵达，结识老陈",
        ),
        NodeInfo(
            node_id="s1",
            title="抵达",
            node_type=NodeType.FILE,
            parent_id="ch1",
            content="她走进了房间。林夜抬头看向窗外。",
            summary="林夜抵达营地",
            timestamp="第一天夜",
        ),
        NodeInfo(
            node_id="s2",
            title="初遇",
            node_type=NodeType.FILE,
            parent_id="ch1",
        ),
    ]


@pytest.fixture
def entities() -> list[EntityRecord]:
    return [
        EntityRecord(
            entity_id="e1",
            entity_type=EntityType.CHARACTER,
            name="林夜",
            aliases=["小夜"],
            description="年轻的守夜人",
            attributes={"年龄": "十七"},
        ),
        EntityRecord(
            entity_id="e2",
            entity_type=EntityType.LOCATION,
            name="北境营地",
            description="守夜人的驻地",
        ),
        EntityRecord(
            entity_id="e3",
            entity_type=EntityType.ITEM,
            name="Lantern",
            description="一盏旧灯",
        ),
    ]
