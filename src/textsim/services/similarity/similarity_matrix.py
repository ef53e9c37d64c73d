"""相似度矩阵构建

计算全部向量两两之间的余弦相似度。时间和内存均为 O(n²)，
调用方需要通过抽样预先限制 n。
"""

from __future__ import annotations

from collections.abc import Callable, Sequence

import numpy as np
import structlog

from textsim.services.similarity.estimates import pair_count

logger = structlog.get_logger()

# 每处理这么多对向量调用一次 checkpoint
PAIR_CHUNK_SIZE = 1000

# (已处理对数, 总对数)
PairCheckpoint = Callable[[int, int], None]


class SimilarityMatrixBuilder:
    """余弦相似度矩阵构建器"""

    def __init__(self, chunk_size: int = PAIR_CHUNK_SIZE, dtype: type = np.float32) -> None:
        """初始化构建器

        Args:
            chunk_size: 两次 checkpoint 之间处理的向量对数
            dtype: 矩阵元素类型，float32 使内存减半
        """
        if chunk_size < 1:
            raise ValueError("chunk_size must be >= 1")
        self.chunk_size = chunk_size
        self.dtype = dtype

    def build(
        self,
        embeddings: Sequence[Sequence[float]],
        checkpoint: PairCheckpoint | None = None,
    ) -> np.ndarray:
        """构建对称相似度矩阵

        零向量与任何向量的相似度记为 0，对角线固定为 1。

        Args:
            embeddings: 向量列表，维度一致
            checkpoint: 每处理约 chunk_size 对后调用，可抛出异常中止构建

        Returns:
            n×n 对称矩阵
        """
        n = len(embeddings)
        matrix = np.zeros((n, n), dtype=self.dtype)
        if n == 0:
            return matrix

        normed = normalize_rows(np.asarray(embeddings, dtype=np.float64))
        total_pairs = pair_count(n)
        processed = 0
        since_checkpoint = 0

        for i in range(n):
            matrix[i, i] = 1.0
            for start in range(i + 1, n, self.chunk_size):
                stop = min(start + self.chunk_size, n)
                sims = normed[start:stop] @ normed[i]
                sims = np.nan_to_num(np.clip(sims, -1.0, 1.0), nan=0.0)
                matrix[i, start:stop] = sims
                matrix[start:stop, i] = sims

                count = stop - start
                processed += count
                since_checkpoint += count
                if checkpoint is not None and (
                    since_checkpoint >= self.chunk_size or processed == total_pairs
                ):
                    since_checkpoint = 0
                    checkpoint(processed, total_pairs)

        logger.debug("similarity_matrix_built", items=n, pairs=total_pairs)
        return matrix


def normalize_rows(vectors: np.ndarray) -> np.ndarray:
    """按行做 L2 归一化，零向量（或非有限值）保持为零向量

    Args:
        vectors: 二维数组

    Returns:
        归一化后的新数组
    """
    vectors = np.nan_to_num(vectors, nan=0.0, posinf=0.0, neginf=0.0)
    norms = np.linalg.norm(vectors, axis=1, keepdims=True)
    safe = np.where(norms > 1e-12, norms, 1.0)
    result: np.ndarray = np.where(norms > 1e-12, vectors / safe, 0.0)
    return result
