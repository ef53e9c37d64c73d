"""聚类策略协议

定义基于相似度矩阵的聚类接口。
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    import numpy as np

# (已尝试合并数, 候选总数, 当前聚类数)
MergeCheckpoint = Callable[[int, int, int], None]


@dataclass
class Cluster:
    """聚类结果

    Attributes:
        cluster_id: 聚类 ID，在单次结果内从 0 连续编号
        member_indices: 成员在语料中的下标，按合并顺序排列，首个成员作为代表文本
    """

    cluster_id: int
    member_indices: list[int]

    @property
    def size(self) -> int:
        return len(self.member_indices)


class ClusteringStrategy(Protocol):
    """聚类策略协议"""

    def cluster(
        self,
        matrix: np.ndarray,
        checkpoint: MergeCheckpoint | None = None,
    ) -> list[Cluster]:
        """对相似度矩阵进行聚类

        Args:
            matrix: n×n 对称相似度矩阵
            checkpoint: 周期性回调，用于报告进度和检查取消

        Returns:
            聚类结果列表，覆盖全部 n 个条目
        """
        ...
