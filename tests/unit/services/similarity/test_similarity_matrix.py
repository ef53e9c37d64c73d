"""相似度矩阵构建测试"""

import math

import numpy as np
import pytest
from textsim.services.similarity.exceptions import RunCancelled
from textsim.services.similarity.similarity_matrix import SimilarityMatrixBuilder, normalize_rows


class TestSimilarityMatrixBuilder:
    """SimilarityMatrixBuilder 测试"""

    def test_cosine_values(self):
        """测试余弦相似度计算"""
        builder = SimilarityMatrixBuilder()

        matrix = builder.build([[1.0, 0.0], [1.0, 1.0], [0.0, 2.0], [-1.0, 0.0]])

        assert matrix.shape == (4, 4)
        assert matrix[0, 1] == pytest.approx(1 / math.sqrt(2), abs=1e-6)
        assert matrix[0, 2] == pytest.approx(0.0, abs=1e-6)
        assert matrix[0, 3] == pytest.approx(-1.0, abs=1e-6)
        assert matrix[1, 2] == pytest.approx(1 / math.sqrt(2), abs=1e-6)

    def test_symmetric_with_unit_diagonal(self):
        """测试矩阵对称且对角线为 1"""
        rng = np.random.default_rng(0)
        builder = SimilarityMatrixBuilder()

        matrix = builder.build(rng.normal(size=(12, 5)).tolist())

        assert np.array_equal(matrix, matrix.T)
        assert np.all(np.diag(matrix) == 1.0)
        assert matrix.min() >= -1.0
        assert matrix.max() <= 1.0

    def test_scale_invariant(self):
        """测试向量长度不影响相似度"""
        builder = SimilarityMatrixBuilder()

        matrix = builder.build([[3.0, 4.0], [0.3, 0.4]])

        assert matrix[0, 1] == pytest.approx(1.0, abs=1e-6)

    def test_zero_vector_yields_zero_similarity(self):
        """测试零向量的相似度为 0 而不是 NaN"""
        builder = SimilarityMatrixBuilder()

        matrix = builder.build([[0.0, 0.0], [1.0, 0.0], [0.0, 0.0]])

        assert not np.isnan(matrix).any()
        assert matrix[0, 1] == 0.0
        assert matrix[0, 2] == 0.0
        assert matrix[0, 0] == 1.0

    def test_non_finite_values_yield_zero_similarity(self):
        """测试非有限值不会传播为 NaN"""
        builder = SimilarityMatrixBuilder()

        matrix = builder.build([[math.nan, math.nan], [1.0, 0.0]])

        assert not np.isnan(matrix).any()
        assert matrix[0, 1] == 0.0

    def test_empty_and_single(self):
        """测试空输入和单个向量"""
        builder = SimilarityMatrixBuilder()

        assert builder.build([]).shape == (0, 0)
        assert builder.build([[0.5, 0.5]]).tolist() == [[1.0]]

    def test_dtype(self):
        """测试矩阵元素类型"""
        assert SimilarityMatrixBuilder().build([[1.0], [1.0]]).dtype == np.float32
        assert SimilarityMatrixBuilder(dtype=np.float64).build([[1.0], [1.0]]).dtype == np.float64

    def test_checkpoint_called_per_chunk(self):
        """测试按块调用 checkpoint，最终报告全部向量对"""
        calls = []
        builder = SimilarityMatrixBuilder(chunk_size=3)
        rng = np.random.default_rng(1)

        builder.build(
            rng.normal(size=(6, 3)).tolist(),
            checkpoint=lambda processed, total: calls.append((processed, total)),
        )

        # 每行分块计算，累计满 3 对才报告一次，最后一块总会报告
        assert calls == [(3, 15), (8, 15), (12, 15), (15, 15)]

    def test_checkpoint_exception_aborts(self):
        """测试 checkpoint 抛出的异常中止构建"""
        builder = SimilarityMatrixBuilder(chunk_size=1)

        def cancel(_processed, _total):
            raise RunCancelled("cancelled")

        with pytest.raises(RunCancelled):
            builder.build([[1.0, 0.0], [0.0, 1.0], [1.0, 1.0]], checkpoint=cancel)

    def test_invalid_chunk_size(self):
        """测试非法 chunk_size"""
        with pytest.raises(ValueError):
            SimilarityMatrixBuilder(chunk_size=0)


class TestNormalizeRows:
    """normalize_rows 测试"""

    def test_unit_rows(self):
        """测试非零行被归一化为单位向量"""
        result = normalize_rows(np.array([[3.0, 4.0], [0.0, 0.0]]))

        assert result[0].tolist() == pytest.approx([0.6, 0.8])
        assert result[1].tolist() == [0.0, 0.0]
