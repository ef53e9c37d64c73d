"""OpenAI 兼容 Embedding Provider 实现

支持 OpenAI API 和兼容 API（如 Azure OpenAI、DeepSeek、阿里云 DashScope）。
"""

from __future__ import annotations

import re

import structlog
from openai import (
    APIConnectionError,
    APITimeoutError,
    BadRequestError,
    InternalServerError,
    OpenAI,
    RateLimitError,
)
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

logger = structlog.get_logger()

# 批处理大小错误的正则匹配
BATCH_SIZE_ERROR_PATTERN = re.compile(
    r"batch size.*(?:should not be larger than|maximum is|limit is|exceeds)\s*(\d+)",
    re.IGNORECASE,
)

# 传输层临时错误，由 provider 自己重试
RETRYABLE_EXCEPTIONS = (
    APIConnectionError,
    APITimeoutError,
    RateLimitError,
    InternalServerError,
)


class OpenAIEmbeddingProvider:
    """基于 OpenAI API 的 Embedding 提供者

    远程批量接口受速率限制，默认每批 100 条。
    """

    def __init__(
        self,
        api_key: str,
        base_url: str,
        model: str = "text-embedding-3-small",
        dimension: int = 1536,
        batch_size: int = 100,
        timeout: float = 60.0,
    ) -> None:
        """初始化 OpenAI Embedding Provider

        Args:
            api_key: API 密钥
            base_url: API 基础 URL
            model: Embedding 模型名称
            dimension: 向量维度
            batch_size: 批处理大小
            timeout: 请求超时时间（秒）
        """
        self._api_key = api_key
        self._base_url = base_url
        self._model = model
        self._dimension = dimension
        self._batch_size = batch_size
        self._effective_batch_size = batch_size  # 服务端报告上限后会被下调
        self._timeout = timeout
        self._client: OpenAI | None = None

    @property
    def model(self) -> str:
        """模型名称"""
        return self._model

    @property
    def dimension(self) -> int:
        """向量维度"""
        return self._dimension

    @property
    def batch_size(self) -> int:
        """批处理大小"""
        return self._batch_size

    def load(self) -> None:
        """创建 API 客户端"""
        if self._client is not None:
            return
        self._client = OpenAI(
            api_key=self._api_key,
            base_url=self._base_url,
            timeout=self._timeout,
        )
        logger.info("openai_embedding_client_ready", model=self._model, base_url=self._base_url)

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
        all_embeddings: list[list[float]] = []

        # 批处理大小可能在循环中被下调，步长取实际处理的条数
        i = 0
        while i < len(texts):
            batch = texts[i : i + self._effective_batch_size]
            all_embeddings.extend(self._embed_batch_with_fallback(batch))
            i += len(batch)

        return all_embeddings

    def _embed_batch_with_fallback(self, texts: list[str]) -> list[list[float]]:
        """嵌入一批文本，支持批处理大小自动降级

        Args:
            texts: 文本列表

        Returns:
            向量列表
        """
        try:
            return self._embed_batch(texts)
        except BadRequestError as exc:
            match = BATCH_SIZE_ERROR_PATTERN.search(str(exc))
            if match:
                max_size = int(match.group(1))
                logger.warning(
                    "embedding_batch_size_limit_detected",
                    model=self._model,
                    requested_size=len(texts),
                    max_size=max_size,
                )
                self._effective_batch_size = max_size

                if len(texts) > max_size:
                    all_embeddings: list[list[float]] = []
                    for i in range(0, len(texts), max_size):
                        all_embeddings.extend(self._embed_batch(texts[i : i + max_size]))
                    return all_embeddings
            raise

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        retry=retry_if_exception_type(RETRYABLE_EXCEPTIONS),
        reraise=True,
    )
    def _embed_batch(self, texts: list[str]) -> list[list[float]]:
        """嵌入一批文本

        Args:
            texts: 文本列表

        Returns:
            向量列表
        """
        assert self._client is not None
        try:
            response = self._client.embeddings.create(
                input=texts,
                model=self._model,
            )
            return [item.embedding for item in response.data]
        except BadRequestError:
            # 交由上层判断是否为批处理大小错误
            raise
        except Exception as exc:
            logger.error(
                "embedding_api_error",
                model=self._model,
                batch_size=len(texts),
                error=str(exc),
            )
            raise
