"""树形结构工具函数

物化路径编解码与扁平列表/嵌套树之间的转换。

路径编码：祖先 ID 从根到父节点依次排列，用分隔符包裹，
根节点为 "/"，节点 7（父 4，祖父 1）为 "/1/4/"。
前后都有分隔符，前缀匹配 "/1/" 不会误中 "/10/"。

使用示例:
    from yexam.category.tree_utils import encode_path, decode_path, build_tree_list

    encode_path([1, 4])        # "/1/4/"
    decode_path("/1/4/")       # [1, 4]
    child_path("/1/", 4)       # "/1/4/"
"""

from typing import Any, Callable, Dict, Iterable, List, Optional

PATH_SEPARATOR = "/"
ROOT_PATH = PATH_SEPARATOR


def encode_path(ancestor_ids: Iterable[int]) -> str:
    """祖先 ID 列表编码为路径字符串"""
    ids = [str(i) for i in ancestor_ids]
    if not ids:
        return ROOT_PATH
    return PATH_SEPARATOR + PATH_SEPARATOR.join(ids) + PATH_SEPARATOR


def decode_path(path: Optional[str]) -> List[int]:
    """路径字符串解码为祖先 ID 列表"""
    if not path:
        return []
    return [int(part) for part in path.strip(PATH_SEPARATOR).split(PATH_SEPARATOR) if part]


def child_path(parent_path: Optional[str], parent_id: int) -> str:
    """父节点路径 + 父节点 ID = 子节点路径"""
    return (parent_path or ROOT_PATH) + f"{parent_id}{PATH_SEPARATOR}"


def build_tree_list(
    nodes: List[Dict[str, Any]],
    id_field: str = "id",
    parent_field: str = "parent_id",
    children_field: str = "children",
    sort_key: Optional[Callable[[Dict], Any]] = None,
) -> List[Dict[str, Any]]:
    """将扁平列表构建为嵌套树结构

    父节点不在列表中的节点视为根，用于把一棵子树的扁平查询结果还原为嵌套结构。

    Args:
        nodes: 扁平的节点列表，每个节点是一个字典
        id_field: ID 字段名
        parent_field: 父节点 ID 字段名
        children_field: 子节点列表字段名（输出中使用）
        sort_key: 排序函数，用于对同级节点排序

    Returns:
        嵌套的树形结构列表
    """
    if not nodes:
        return []

    node_map: Dict[Any, Dict[str, Any]] = {}
    for node in nodes:
        # 复制节点，避免修改原始数据
        node_copy = dict(node)
        node_copy[children_field] = []
        node_map[node_copy[id_field]] = node_copy

    roots: List[Dict[str, Any]] = []
    for node in node_map.values():
        parent_id = node.get(parent_field)
        if parent_id is not None and parent_id in node_map:
            node_map[parent_id][children_field].append(node)
        else:
            roots.append(node)

    if sort_key:
        _sort_tree_recursive(roots, children_field, sort_key)

    return roots


def _sort_tree_recursive(
    nodes: List[Dict[str, Any]],
    children_field: str,
    sort_key: Callable[[Dict], Any],
):
    """递归排序树节点"""
    nodes.sort(key=sort_key)
    for node in nodes:
        children = node.get(children_field, [])
        if children:
            _sort_tree_recursive(children, children_field, sort_key)


def flatten_tree(
    tree: List[Dict[str, Any]],
    children_field: str = "children",
) -> List[Dict[str, Any]]:
    """将嵌套树结构按先序展平为列表（不含 children 字段）"""
    result: List[Dict[str, Any]] = []
    for node in tree:
        node_copy = {k: v for k, v in node.items() if k != children_field}
        result.append(node_copy)
        children = node.get(children_field) or []
        if children:
            result.extend(flatten_tree(children, children_field=children_field))
    return result


def calculate_tree_depth(
    tree: List[Dict[str, Any]],
    children_field: str = "children",
    _current_depth: int = 1,
) -> int:
    """计算嵌套树的层数（空树为 0）"""
    if not tree:
        return _current_depth - 1

    max_depth = _current_depth
    for node in tree:
        children = node.get(children_field, [])
        if children:
            child_depth = calculate_tree_depth(
                children,
                children_field=children_field,
                _current_depth=_current_depth + 1,
            )
            max_depth = max(max_depth, child_depth)
    return max_depth


__all__ = [
    "PATH_SEPARATOR",
    "ROOT_PATH",
    "encode_path",
    "decode_path",
    "child_path",
    "build_tree_list",
    "flatten_tree",
    "calculate_tree_depth",
]
