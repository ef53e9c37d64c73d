"""聚类模块

提供聚类策略协议和实现。
"""

from textsim.services.similarity.clustering.constrained_strategy import ConstrainedGreedyStrategy
from textsim.services.similarity.clustering.strategy import Cluster, ClusteringStrategy
from textsim.services.similarity.clustering.union_find import UnionFind

__all__ = ["Cluster", "ClusteringStrategy", "ConstrainedGreedyStrategy", "UnionFind"]
