"""Pytest 全局配置和 fixtures"""

import math

import pytest


@pytest.fixture
def hello_world_corpus():
    """两条近似重复文本 + 一条无关文本"""
    return ["hello world", "hello world!", "totally different"]


@pytest.fixture
def hello_world_vectors():
    """hello_world_corpus 的向量

    前两条的余弦相似度为 0.95，第三条与前两条的相似度均为 0.1。
    """
    y1 = math.sqrt(1 - 0.95**2)
    y2 = (0.1 - 0.95 * 0.1) / y1
    z2 = math.sqrt(1 - 0.1**2 - y2**2)
    return {
        "hello world": [1.0, 0.0, 0.0],
        "hello world!": [0.95, y1, 0.0],
        "totally different": [0.1, y2, z2],
    }


@pytest.fixture
def stub_vectors():
    """为任意文本生成确定性向量的函数：相同文本得到相同向量"""

    def vector_for(text: str) -> list[float]:
        seed = sum(ord(ch) * (i + 1) for i, ch in enumerate(text))
        return [math.sin(seed + k) for k in range(4)]

    return vector_for
