"""Embedding 模块

提供 Embedding 提供者协议和实现。
"""

from textsim.services.similarity.embedding.local_provider import LocalEmbeddingProvider
from textsim.services.similarity.embedding.openai_provider import OpenAIEmbeddingProvider
from textsim.services.similarity.embedding.provider import EmbeddingProvider

__all__ = [
    "EmbeddingProvider",
    "LocalEmbeddingProvider",
    "OpenAIEmbeddingProvider",
]
