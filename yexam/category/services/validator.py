"""
分类树服务 - 完整性校验与修复

检查项：
- 孤儿节点：parent_id 指向不存在或已删除的节点
- 循环引用：沿 parent_id 回溯回到自身
- 路径错误：path/depth 与祖先链不符
- 闭包表：多余的行与缺失的行

修复只处理孤儿、路径和闭包表；循环引用只报告，不自动修复。
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set, Tuple

from yexam.config import CategoryTreeSettings
from yexam.exceptions import Err
from yexam.orm import transaction_manager

from ..enums import IssueSeverity, IssueType
from ..schemas import TreeRepairResult, TreeValidationIssue, TreeValidationReport
from ..tree_utils import ROOT_PATH, encode_path
from .base import TreeComponent
from .closure import ClosureMaintainer
from .store import CategoryStore

ClosureRow = Tuple[int, int, int]


@dataclass
class _TreeAnalysis:
    """一次完整扫描的中间结果"""
    orphans: List[int] = field(default_factory=list)
    cycles: List[int] = field(default_factory=list)
    invalid_paths: List[int] = field(default_factory=list)
    invalid_closure: List[ClosureRow] = field(default_factory=list)
    missing_closure: List[ClosureRow] = field(default_factory=list)
    codes: Dict[int, str] = field(default_factory=dict)


class IntegrityValidator(TreeComponent):
    """分类树完整性校验

    使用示例:
        validator = IntegrityValidator()
        report = validator.validate_tree_integrity()
        if not report.is_valid:
            for issue in report.issues:
                print(issue.severity, issue.description)

        validator.ensure_valid()   # 存在孤儿或循环时抛出 IntegrityViolationException
        validator.repair()
    """

    def __init__(
        self,
        closure: ClosureMaintainer = None,
        store: CategoryStore = None,
        settings: CategoryTreeSettings = None,
        logger=None,
    ):
        super().__init__(settings, logger)
        self.closure = closure or ClosureMaintainer(settings=self.settings)
        self.store = store or CategoryStore(closure=self.closure, settings=self.settings)

    # ==================== 校验 ====================

    def validate_tree_integrity(self) -> TreeValidationReport:
        """完整扫描并生成校验报告"""
        analysis = self._analyze()
        report = TreeValidationReport(
            orphaned_categories=analysis.orphans,
            circular_references=analysis.cycles,
            invalid_paths=analysis.invalid_paths,
            invalid_closure_entries=analysis.invalid_closure,
            missing_closure_entries=analysis.missing_closure,
        )

        for node_id in analysis.orphans:
            report.issues.append(TreeValidationIssue(
                issue_type=IssueType.ORPHAN,
                description=f"分类 {analysis.codes[node_id]} 的父分类不存在或已删除",
                category_id=node_id,
                severity=IssueSeverity.ERROR,
            ))
        for node_id in analysis.cycles:
            report.issues.append(TreeValidationIssue(
                issue_type=IssueType.CYCLE,
                description=f"分类 {analysis.codes[node_id]} 处于循环引用中",
                category_id=node_id,
                severity=IssueSeverity.CRITICAL,
            ))
        for node_id in analysis.invalid_paths:
            report.issues.append(TreeValidationIssue(
                issue_type=IssueType.INVALID_PATH,
                description=f"分类 {analysis.codes[node_id]} 的路径或深度与祖先链不符",
                category_id=node_id,
                severity=IssueSeverity.ERROR,
            ))
        if analysis.invalid_closure:
            report.issues.append(TreeValidationIssue(
                issue_type=IssueType.INVALID_CLOSURE,
                description=f"闭包表存在 {len(analysis.invalid_closure)} 条多余或错误的行",
                severity=IssueSeverity.WARNING,
            ))
        if analysis.missing_closure:
            report.issues.append(TreeValidationIssue(
                issue_type=IssueType.MISSING_CLOSURE,
                description=f"闭包表缺少 {len(analysis.missing_closure)} 条行",
                severity=IssueSeverity.WARNING,
            ))

        report.is_valid = not report.issues
        if report.is_valid:
            self.logger.info("分类树完整性校验通过")
        else:
            self.logger.warning(
                f"分类树完整性校验发现 {report.issue_count} 个问题: "
                f"孤儿 {len(analysis.orphans)}，循环 {len(analysis.cycles)}，"
                f"路径 {len(analysis.invalid_paths)}，"
                f"闭包多余 {len(analysis.invalid_closure)}，闭包缺失 {len(analysis.missing_closure)}"
            )
        return report

    def ensure_valid(self) -> TreeValidationReport:
        """校验并在发现孤儿或循环引用时抛出异常

        Raises:
            IntegrityViolationException: 存在孤儿节点或循环引用
        """
        report = self.validate_tree_integrity()
        if report.orphaned_categories or report.circular_references:
            raise Err.integrity(
                details=[
                    issue.description for issue in report.issues
                    if issue.issue_type in (IssueType.ORPHAN, IssueType.CYCLE)
                ],
                orphaned_categories=report.orphaned_categories,
                circular_references=report.circular_references,
            )
        return report

    # ==================== 修复 ====================

    def repair(self) -> TreeRepairResult:
        """修复孤儿、路径与闭包表

        孤儿节点挂到根级；循环引用保持原样，只记录警告。
        """
        result = TreeRepairResult()
        with transaction_manager.transaction(session=self.session):
            analysis = self._analyze()

            for node_id in analysis.orphans:
                node = self.store.find_by_id(node_id)
                node.parent_id = None
                node.path = ROOT_PATH
                node.depth = 0
                node.sort_order = self.store.next_sort_order(None)
                self.session.flush()
                result.orphans_reparented += 1
                self.logger.warning(f"孤儿分类 {node.code} 已挂到根级")

            result.paths_fixed = self.store.rebuild_all_paths()

            analysis = self._analyze()
            result.closure_rows_purged = self.closure.remove_rows(analysis.invalid_closure)
            result.closure_rows_added = self.closure.insert_rows(analysis.missing_closure)

            for node_id in analysis.cycles:
                result.warnings.append(f"分类 {analysis.codes[node_id]} 处于循环引用中，需要人工处理")

        self.logger.info(
            f"分类树修复完成: 孤儿 {result.orphans_reparented}，路径 {result.paths_fixed}，"
            f"闭包删除 {result.closure_rows_purged}，闭包新增 {result.closure_rows_added}"
        )
        return result

    # ==================== 内部方法 ====================

    def _analyze(self) -> _TreeAnalysis:
        self.session.flush()
        model = self.category_model
        rows = self.session.execute(
            self.query().columns_statement(model.id, model.parent_id, model.path, model.depth, model.code)
        ).all()
        nodes = {row.id: row for row in rows}
        analysis = _TreeAnalysis(codes={row.id: row.code for row in rows})

        analysis.orphans = sorted(
            row.id for row in rows
            if row.parent_id is not None and row.parent_id not in nodes
        )
        cycles = self._find_cycles(nodes)
        analysis.cycles = sorted(cycles)

        # 祖先链（根在前）；链顶为孤儿时 rooted=False，循环中的节点为 None
        chains: Dict[int, Optional[Tuple[List[int], bool]]] = {}
        for node_id in nodes:
            chains[node_id] = self._ancestor_chain(node_id, nodes, cycles)

        expected: Set[ClosureRow] = set()
        for node_id, chain in chains.items():
            expected.add((node_id, node_id, 0))
            if chain is None:
                continue
            ancestors, rooted = chain
            count = len(ancestors)
            for index, ancestor_id in enumerate(ancestors):
                expected.add((ancestor_id, node_id, count - index))
            if rooted:
                row = nodes[node_id]
                if row.path != encode_path(ancestors) or row.depth != count:
                    analysis.invalid_paths.append(node_id)
        analysis.invalid_paths.sort()

        stored = set(self.closure.get_rows())
        analysis.invalid_closure = sorted(
            item for item in stored - expected
            if item[0] not in cycles and item[1] not in cycles
        )
        analysis.missing_closure = sorted(expected - stored)
        return analysis

    def _find_cycles(self, nodes: dict) -> Set[int]:
        cycles: Set[int] = set()
        max_hops = self.settings.max_cycle_hops
        for node_id in nodes:
            current = nodes[node_id].parent_id
            hops = 0
            while current is not None and current in nodes and hops <= max_hops:
                if current == node_id:
                    cycles.add(node_id)
                    break
                current = nodes[current].parent_id
                hops += 1
        return cycles

    @staticmethod
    def _ancestor_chain(node_id: int, nodes: dict, cycles: Set[int]) -> Optional[Tuple[List[int], bool]]:
        if node_id in cycles:
            return None
        ancestors: List[int] = []
        seen = {node_id}
        current = nodes[node_id].parent_id
        while current is not None and current in nodes:
            if current in seen or current in cycles:
                return None
            seen.add(current)
            ancestors.append(current)
            current = nodes[current].parent_id
        ancestors.reverse()
        top = ancestors[0] if ancestors else node_id
        return ancestors, nodes[top].parent_id is None
