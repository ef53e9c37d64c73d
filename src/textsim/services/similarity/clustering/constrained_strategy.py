"""带大小上限的贪心凝聚聚类

按相似度从高到低依次尝试合并候选对，任何一次合并都不能让聚类超过上限。
超限的候选对被永久跳过，之后即使聚类发生变化也不会重新尝试。
"""

from __future__ import annotations

import numpy as np
import structlog

from textsim.services.similarity.clustering.strategy import Cluster, MergeCheckpoint
from textsim.services.similarity.clustering.union_find import UnionFind

logger = structlog.get_logger()

# 每尝试这么多次合并调用一次 checkpoint
MERGE_CHECKPOINT_INTERVAL = 100


class ConstrainedGreedyStrategy:
    """带大小上限的贪心聚类策略

    这是启发式算法：结果依赖候选顺序，不保证全局最优，
    相似度超过阈值的两个条目也可能因为上限而被分开。
    """

    def __init__(
        self,
        similarity_threshold: float = 0.8,
        max_cluster_size: int = 50,
        checkpoint_interval: int = MERGE_CHECKPOINT_INTERVAL,
    ) -> None:
        """初始化聚类策略

        Args:
            similarity_threshold: 候选对的最低相似度（含）
            max_cluster_size: 单个聚类的最大成员数
            checkpoint_interval: 两次 checkpoint 之间的合并尝试次数
        """
        if max_cluster_size < 1:
            raise ValueError("max_cluster_size must be >= 1")
        self.similarity_threshold = similarity_threshold
        self.max_cluster_size = max_cluster_size
        self.checkpoint_interval = checkpoint_interval

    def candidate_pairs(self, matrix: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
        """找出所有 i<j 且相似度不低于阈值的候选对

        Returns:
            (rows, cols)，按相似度降序排列，相似度相同时保持行优先顺序
        """
        mask = np.triu(matrix >= self.similarity_threshold, k=1)
        rows, cols = np.nonzero(mask)
        order = np.argsort(-matrix[rows, cols], kind="stable")
        return rows[order], cols[order]

    def cluster(
        self,
        matrix: np.ndarray,
        checkpoint: MergeCheckpoint | None = None,
    ) -> list[Cluster]:
        """对相似度矩阵进行聚类

        Args:
            matrix: n×n 对称相似度矩阵
            checkpoint: 每 checkpoint_interval 次合并尝试后调用，
                参数为 (已尝试数, 候选总数, 当前聚类数)

        Returns:
            按 arena 顺序编号的聚类列表
        """
        n = int(matrix.shape[0])
        if n == 0:
            return []

        forest = UnionFind(n)
        cluster_count = n
        rows, cols = self.candidate_pairs(matrix)
        total = len(rows)
        skipped = 0

        for attempt, (i, j) in enumerate(zip(rows.tolist(), cols.tolist(), strict=True), start=1):
            root_i = forest.find(i)
            root_j = forest.find(j)
            if root_i != root_j:
                if forest.size(root_i) + forest.size(root_j) > self.max_cluster_size:
                    skipped += 1
                else:
                    forest.union(root_i, root_j)
                    cluster_count -= 1

            if checkpoint is not None and attempt % self.checkpoint_interval == 0:
                checkpoint(attempt, total, cluster_count)

        if checkpoint is not None and total % self.checkpoint_interval != 0:
            checkpoint(total, total, cluster_count)

        clusters = [
            Cluster(cluster_id=cluster_id, member_indices=list(members))
            for cluster_id, members in enumerate(forest.groups())
        ]
        logger.debug(
            "constrained_clustering_done",
            items=n,
            candidates=total,
            skipped_by_size=skipped,
            clusters=len(clusters),
        )
        return clusters
