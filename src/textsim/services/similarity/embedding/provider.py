"""Embedding 提供者协议

定义 Embedding 模型的统一接口。
"""

from __future__ import annotations

from typing import Protocol


class EmbeddingProvider(Protocol):
    """Embedding 提供者协议

    流水线按 batch_size 切分语料，逐批调用 embed_documents，
    在批次之间报告进度并检查取消。
    """

    def load(self) -> None:
        """准备模型或客户端

        在 modelLoading 阶段调用一次。失败时应抛出异常，整次运行随之终止。
        """
        ...

    def embed_documents(self, texts: list[str]) -> list[list[float]]:
        """批量嵌入文本

        Args:
            texts: 文本列表

        Returns:
            向量列表，与输入一一对应且保持顺序
        """
        ...

    @property
    def dimension(self) -> int:
        """向量维度"""
        ...

    @property
    def batch_size(self) -> int:
        """建议的单批文本数"""
        ...
