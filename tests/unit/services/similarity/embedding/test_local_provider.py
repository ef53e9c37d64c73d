"""本地 Embedding Provider 测试

用 sys.modules 注入假的 sentence_transformers 模块，不下载任何模型。
"""

import sys
from types import ModuleType
from unittest.mock import MagicMock, patch

import numpy as np
import pytest
from textsim.services.similarity.embedding import LocalEmbeddingProvider


@pytest.fixture
def fake_sentence_transformers():
    """假的 sentence_transformers 模块"""
    model = MagicMock()
    model.get_sentence_embedding_dimension.return_value = 4
    model.encode.side_effect = lambda texts, **kwargs: np.ones((len(texts), 4))

    module = ModuleType("sentence_transformers")
    module.SentenceTransformer = MagicMock(return_value=model)  # type: ignore[attr-defined]

    with patch.dict(sys.modules, {"sentence_transformers": module}):
        yield module, model


class TestLocalEmbeddingProvider:
    """LocalEmbeddingProvider 测试"""

    def test_default_parameters(self):
        """测试默认参数"""
        provider = LocalEmbeddingProvider()

        assert provider.model == "sentence-transformers/all-MiniLM-L6-v2"
        assert provider.batch_size == 32

    def test_dimension_requires_load(self):
        """测试加载前访问维度报错"""
        with pytest.raises(RuntimeError):
            _ = LocalEmbeddingProvider().dimension

    def test_load_builds_model_once(self, fake_sentence_transformers):
        """测试 load 只加载一次模型，并读取维度"""
        module, _model = fake_sentence_transformers
        provider = LocalEmbeddingProvider(model="my-model", device="cpu")

        provider.load()
        provider.load()

        module.SentenceTransformer.assert_called_once_with("my-model", device="cpu")
        assert provider.dimension == 4

    def test_embed_documents(self, fake_sentence_transformers):
        """测试 embed_documents 返回 Python 列表"""
        _module, model = fake_sentence_transformers
        provider = LocalEmbeddingProvider(batch_size=8, normalize=True)

        result = provider.embed_documents(["a", "b"])

        assert result == [[1.0, 1.0, 1.0, 1.0], [1.0, 1.0, 1.0, 1.0]]
        kwargs = model.encode.call_args.kwargs
        assert kwargs["batch_size"] == 8
        assert kwargs["normalize_embeddings"] is True
        assert kwargs["show_progress_bar"] is False

    def test_embed_empty_input(self, fake_sentence_transformers):
        """测试空输入不加载模型"""
        module, _model = fake_sentence_transformers
        provider = LocalEmbeddingProvider()

        assert provider.embed_documents([]) == []
        module.SentenceTransformer.assert_not_called()
