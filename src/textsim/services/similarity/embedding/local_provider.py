"""本地 Embedding Provider 实现

在进程内运行 sentence-transformers 模型。相同模型和输入得到相同向量。
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import structlog

if TYPE_CHECKING:
    from sentence_transformers import SentenceTransformer

logger = structlog.get_logger()


class LocalEmbeddingProvider:
    """基于 sentence-transformers 的本地 Embedding 提供者

    模型在 load() 中加载（通常耗时数秒），默认每批 32 条以保持调用方响应。
    """

    def __init__(
        self,
        model: str = "sentence-transformers/all-MiniLM-L6-v2",
        device: str | None = None,
        batch_size: int = 32,
        normalize: bool = False,
    ) -> None:
        """初始化本地 Embedding Provider

        Args:
            model: 模型名称或本地路径
            device: 推理设备，None 表示由 sentence-transformers 自动选择
            batch_size: 批处理大小
            normalize: 是否输出单位向量
        """
        self._model_name = model
        self._device = device
        self._batch_size = batch_size
        self._normalize = normalize
        self._model: SentenceTransformer | None = None
        self._dimension: int | None = None

    @property
    def model(self) -> str:
        """模型名称"""
        return self._model_name

    @property
    def batch_size(self) -> int:
        """批处理大小"""
        return self._batch_size

    @property
    def dimension(self) -> int:
        """向量维度（模型加载后可用）"""
        if self._dimension is None:
            raise RuntimeError("Embedding model is not loaded")
        return self._dimension

    def load(self) -> None:
        """加载模型

        Raises:
            ImportError: 未安装 sentence-transformers（pip install "textsim[local]"）
        """
        if self._model is not None:
            return

        from sentence_transformers import SentenceTransformer

        logger.info("local_embedding_model_loading", model=self._model_name, device=self._device)
        self._model = SentenceTransformer(self._model_name, device=self._device)
        self._dimension = int(self._model.get_sentence_embedding_dimension() or 0)
        logger.info(
            "local_embedding_model_loaded",
            model=self._model_name,
            dimension=self._dimension,
        )

    def embed_documents(self, texts: list[str]) -> list[list[float]]:
        """批量嵌入文本

        Args:
            texts: 文本列表

        Returns:
            向量列表，每个向量对应一个文本
        """
        if not texts:
            return []

        self.load()
        assert self._model is not None
        vectors: Any = self._model.encode(
            texts,
            batch_size=self._batch_size,
            convert_to_numpy=True,
            normalize_embeddings=self._normalize,
            show_progress_bar=False,
        )
        return vectors.tolist()
