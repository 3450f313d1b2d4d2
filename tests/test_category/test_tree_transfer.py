"""TreeTransfer 测试

测试导出为嵌套结构、按合并策略导入以及导出再导入的往返。
"""

import json
import threading

import pytest

from yexam.category import CategoryTreeExport, MergeStrategy
from yexam.exceptions import ErrorCode, OperationCancelledException, ResourceNotFoundException, ValidationException

from tests.helpers import assert_tree_consistent


def shape(node):
    """(名称, 编码, [子节点形状]) 形式的树形状"""
    return (node.name, node.code, [shape(child) for child in node.children])


class TestExport:
    """导出测试"""

    def test_export_subtree(self, service, sample_tree):
        export = service.export_tree("MATH")

        assert export.version == "1.0"
        assert export.count_nodes() == 5
        assert len(export.categories) == 1
        math = export.categories[0]
        assert math.code == "MATH"
        assert [c.code for c in math.children] == ["MATH-ALG", "MATH-GEO"]
        assert [c.code for c in math.children[0].children] == ["MATH-ALG-LIN", "MATH-ALG-QUAD"]

    def test_export_forest(self, service, sample_tree):
        export = service.export_tree()

        assert [c.code for c in export.categories] == ["MATH", "SCI"]
        assert export.count_nodes() == 7

    def test_export_has_no_internal_ids(self, service, sample_tree):
        data = json.loads(service.export_tree().model_dump_json())

        def walk(nodes):
            for node in nodes:
                assert "id" not in node
                assert "parent_id" not in node
                walk(node["children"])

        walk(data["categories"])

    def test_export_missing_root(self, service, sample_tree):
        assert service.export_tree(999).categories == []


class TestImport:
    """导入测试"""

    def test_import_into_empty_tree(self, service, session_scope):
        data = {
            "categories": [{
                "name": "语文",
                "code": "CHN",
                "children": [
                    {"name": "阅读", "code": "CHN-READ"},
                    {"name": "写作", "code": "CHN-WRITE", "category_type": 2},
                ],
            }]
        }

        result = service.import_tree(data)

        assert result.created == 3
        assert set(result.code_to_id) == {"CHN", "CHN-READ", "CHN-WRITE"}
        write = service.get_category(result.code_to_id["CHN-WRITE"])
        assert write.parent_id == result.code_to_id["CHN"]
        assert write.category_type == 2
        assert_tree_consistent(session_scope)

    def test_round_trip_create_new(self, service, session_scope, sample_tree):
        """导出后以 CREATE_NEW 导入，得到同构的新子树"""
        export = service.export_tree("MATH")
        text = export.model_dump_json()

        result = service.import_tree(text, merge_strategy=MergeStrategy.CREATE_NEW)

        assert result.created == 5
        new_root_id = result.code_to_id["MATH"]
        assert new_root_id != sample_tree["MATH"]
        assert shape(service.get_subtree(new_root_id)) == shape(service.get_subtree(sample_tree["MATH"]))
        assert service.validate().is_valid
        assert_tree_consistent(session_scope)

    def test_skip_existing(self, service, sample_tree):
        export = service.export_tree("MATH")

        result = service.import_tree(export, merge_strategy=MergeStrategy.SKIP)

        assert result.created == 0
        assert result.skipped == 5
        assert result.warnings == []
        assert result.code_to_id["MATH-ALG"] == sample_tree["MATH-ALG"]
        assert service.navigator.get_statistics().total_categories == 7

    def test_skip_reuses_node_for_new_children(self, service, sample_tree):
        data = [{
            "name": "数学",
            "code": "MATH",
            "children": [{"name": "概率", "code": "MATH-PROB"}],
        }]

        result = service.import_tree(data)

        assert result.skipped == 1
        assert result.created == 1
        assert service.get_category_by_code("MATH-PROB").parent_id == sample_tree["MATH"]

    def test_skip_warns_when_located_elsewhere(self, service, sample_tree):
        result = service.import_tree([{"name": "物理", "code": "SCI-PHY"}], parent_id=sample_tree["MATH"])

        assert result.skipped == 1
        assert len(result.warnings) == 1

    def test_overwrite(self, service, sample_tree):
        data = {"name": "数学（新）", "code": "MATH", "description": "新描述"}

        result = service.import_tree(data, merge_strategy="overwrite")

        assert result.updated == 1
        math = service.get_category(sample_tree["MATH"])
        assert math.name == "数学（新）"
        assert math.description == "新描述"

    def test_import_under_parent(self, service, session_scope, sample_tree):
        result = service.import_tree([{"name": "化学", "code": "SCI-CHEM"}], parent_id=sample_tree["SCI"])

        chem = service.get_category(result.code_to_id["SCI-CHEM"])
        assert chem.parent_id == sample_tree["SCI"]
        assert chem.depth == 1
        assert_tree_consistent(session_scope)

    def test_import_sort_order_collision(self, service, session_scope, sample_tree):
        """导入节点的排序号与已有同级冲突时，已有节点后移"""
        data = [
            {"name": "统计", "code": "MATH-STAT", "sort_order": 1},
            {"name": "概率", "code": "MATH-PROB", "sort_order": 2},
        ]

        service.import_tree(data, parent_id=sample_tree["MATH"])

        children = service.get_children("MATH")
        assert [c.code for c in children] == ["MATH-STAT", "MATH-PROB", "MATH-ALG", "MATH-GEO"]
        assert [c.sort_order for c in children] == [1, 2, 3, 4]
        assert_tree_consistent(session_scope)

    def test_import_missing_parent(self, service):
        with pytest.raises(ResourceNotFoundException):
            service.import_tree([{"name": "化学", "code": "CHEM"}], parent_id=999)

    @pytest.mark.parametrize("data", [
        "not json",
        b'{"name": "\xff\xfe", "code": "X"}',
        [{"code": "NO-NAME"}],
        {"categories": [{"name": "缺编码"}]},
        42,
    ])
    def test_invalid_data(self, service, data):
        with pytest.raises(ValidationException):
            service.import_tree(data)

    def test_undecodable_bytes(self, service):
        """非 UTF-8 字节按数据格式错误处理"""
        with pytest.raises(ValidationException) as exc_info:
            service.import_tree(b'[{"name": "\xe6", "code": "X"}]')

        assert exc_info.value.code == ErrorCode.VALIDATION_ERROR
        assert exc_info.value.details

    def test_import_cancelled_rolls_back(self, service, sample_tree):
        export = service.export_tree("MATH")
        cancel = threading.Event()
        cancel.set()

        with pytest.raises(OperationCancelledException):
            service.import_tree(export, merge_strategy=MergeStrategy.CREATE_NEW, cancel_event=cancel)

        assert service.navigator.get_statistics().total_categories == 7

    def test_export_model_accepts_dump(self, service, sample_tree):
        dumped = service.export_tree().model_dump(mode="json")
        restored = CategoryTreeExport.model_validate(dumped)

        assert restored.count_nodes() == 7
