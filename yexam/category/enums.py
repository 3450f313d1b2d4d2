"""分类树枚举定义"""

from enum import Enum, IntEnum


class CategoryType(IntEnum):
    """分类类型（业务分类，与树深度无关）"""
    SUBJECT = 1     # 学科
    CHAPTER = 2     # 章
    TOPIC = 3       # 主题
    SUBTOPIC = 4    # 子主题
    SKILL = 5       # 技能
    OBJECTIVE = 6   # 学习目标


class CategoryLevel(IntEnum):
    """分类级别（业务级别，与树深度无关）"""
    LEVEL1 = 1
    LEVEL2 = 2
    LEVEL3 = 3
    LEVEL4 = 4
    LEVEL5 = 5
    LEVEL6 = 6


class LifecycleState(str, Enum):
    """节点生命周期状态

    - ACTIVE: 正常节点，参与遍历与变更
    - DELETED: 已软删除，对所有遍历和变更不可见
    """
    ACTIVE = "active"
    DELETED = "deleted"


class ChildHandlingStrategy(str, Enum):
    """删除分类时子节点的处理策略"""
    PREVENT = "prevent"                                   # 有子节点时拒绝删除
    MOVE_CHILDREN_TO_PARENT = "move_children_to_parent"   # 子节点上移到被删节点的父节点
    MOVE_CHILDREN_TO_ROOT = "move_children_to_root"       # 子节点变为根节点
    CASCADE_DELETE = "cascade_delete"                     # 整棵子树一起删除


class MergeStrategy(str, Enum):
    """导入时编码冲突的合并策略"""
    SKIP = "skip"               # 复用已有节点，不写入
    OVERWRITE = "overwrite"     # 覆盖已有节点的名称/描述
    CREATE_NEW = "create_new"   # 忽略冲突，新建同编码节点


class IssueSeverity(str, Enum):
    """完整性问题严重级别"""
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class IssueType(str, Enum):
    """完整性问题类型"""
    ORPHAN = "orphan"
    CYCLE = "cycle"
    INVALID_PATH = "invalid_path"
    INVALID_CLOSURE = "invalid_closure"
    MISSING_CLOSURE = "missing_closure"
