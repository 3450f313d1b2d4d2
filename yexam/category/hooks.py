"""外部协作方钩子

分类下挂载的叶子内容（如试题）由其他服务管理。删除分类前通过钩子确认没有挂载内容，
重新挂接子节点的删除策略可以借助钩子迁移内容。
"""

from typing import Callable, Optional, Protocol, runtime_checkable


@runtime_checkable
class AttachedContentHooks(Protocol):
    """挂载内容钩子协议

    使用示例:
        class QuestionContentHooks:
            def has_attached_content(self, category_id: int) -> bool:
                return question_repo.count_by_category(category_id) > 0

            def reassign_attached_content(self, from_category_id: int, to_category_id: int) -> int:
                return question_repo.move_category(from_category_id, to_category_id)

        service = CategoryTreeService(content_hooks=QuestionContentHooks())
    """

    def has_attached_content(self, category_id: int) -> bool: ...


class NoAttachedContent:
    """默认钩子：不存在挂载内容"""

    def has_attached_content(self, category_id: int) -> bool:
        return False


def get_reassign_hook(hooks) -> Optional[Callable[[int, int], int]]:
    """取得可选的 reassign_attached_content 钩子，未实现返回 None"""
    func = getattr(hooks, "reassign_attached_content", None)
    return func if callable(func) else None
