"""OpenAI 兼容 Embedding Provider 测试"""

from unittest.mock import MagicMock, patch

import pytest
from openai import APIConnectionError, BadRequestError
from textsim.services.similarity.embedding.openai_provider import OpenAIEmbeddingProvider


def _make_mock_request() -> MagicMock:
    """创建模拟的 HTTP 请求对象"""
    request = MagicMock()
    request.url = "https://api.test.com/v1/embeddings"
    return request


def _make_mock_response(status_code: int) -> MagicMock:
    """创建模拟的 HTTP 响应对象"""
    response = MagicMock()
    response.status_code = status_code
    response.headers = {}
    return response


def _bad_request(message: str) -> BadRequestError:
    return BadRequestError(message, response=_make_mock_response(400), body=None)


def _create_response(input, **kwargs):
    mock_response = MagicMock()
    mock_response.data = [MagicMock(embedding=[float(len(text)), 0.0, 1.0]) for text in input]
    return mock_response


class TestOpenAIEmbeddingProvider:
    """OpenAI Embedding Provider 测试"""

    def test_default_parameters(self):
        """测试默认参数"""
        provider = OpenAIEmbeddingProvider(
            api_key="test-key",
            base_url="https://api.openai.com/v1",
        )

        assert provider.model == "text-embedding-3-small"
        assert provider.dimension == 1536
        assert provider.batch_size == 100

    def test_custom_parameters(self):
        """测试自定义参数"""
        provider = OpenAIEmbeddingProvider(
            api_key="test-key",
            base_url="https://api.deepseek.com/v1",
            model="text-embedding-ada-002",
            dimension=768,
            batch_size=50,
        )

        assert provider.model == "text-embedding-ada-002"
        assert provider.dimension == 768
        assert provider.batch_size == 50

    @patch("textsim.services.similarity.embedding.openai_provider.OpenAI")
    def test_load_creates_client_once(self, mock_openai_class):
        """测试 load 只创建一次客户端"""
        provider = OpenAIEmbeddingProvider(
            api_key="test-key",
            base_url="https://api.test.com/v1",
            timeout=12.0,
        )

        provider.load()
        provider.load()

        mock_openai_class.assert_called_once_with(
            api_key="test-key",
            base_url="https://api.test.com/v1",
            timeout=12.0,
        )

    @patch("textsim.services.similarity.embedding.openai_provider.OpenAI")
    def test_embed_documents_calls_api(self, mock_openai_class):
        """测试 embed_documents 调用 API 并保持顺序"""
        mock_client = MagicMock()
        mock_openai_class.return_value = mock_client
        mock_client.embeddings.create.side_effect = _create_response

        provider = OpenAIEmbeddingProvider(
            api_key="test-key",
            base_url="https://api.openai.com/v1",
            dimension=3,
        )

        result = provider.embed_documents(["hi", "hello"])

        assert result == [[2.0, 0.0, 1.0], [5.0, 0.0, 1.0]]
        mock_client.embeddings.create.assert_called_once_with(
            input=["hi", "hello"], model="text-embedding-3-small"
        )

    @patch("textsim.services.similarity.embedding.openai_provider.OpenAI")
    def test_embed_documents_handles_empty_input(self, mock_openai_class):
        """测试 embed_documents 处理空输入"""
        provider = OpenAIEmbeddingProvider(
            api_key="test-key",
            base_url="https://api.openai.com/v1",
        )

        assert provider.embed_documents([]) == []
        mock_openai_class.assert_not_called()

    @patch("textsim.services.similarity.embedding.openai_provider.OpenAI")
    def test_embed_documents_batches_large_input(self, mock_openai_class):
        """测试 embed_documents 对大量输入进行批处理"""
        mock_client = MagicMock()
        mock_openai_class.return_value = mock_client
        mock_client.embeddings.create.side_effect = _create_response

        provider = OpenAIEmbeddingProvider(
            api_key="test-key",
            base_url="https://api.openai.com/v1",
            dimension=3,
            batch_size=2,
        )

        # 5 个文本，batch_size=2，应该调用 3 次
        result = provider.embed_documents(["text1", "text2", "text3", "text4", "text5"])

        assert len(result) == 5
        assert mock_client.embeddings.create.call_count == 3

    @patch("textsim.services.similarity.embedding.openai_provider.OpenAI")
    def test_batch_size_downgrade(self, mock_openai_class):
        """测试服务端报告批处理上限后自动降级"""
        mock_client = MagicMock()
        mock_openai_class.return_value = mock_client

        def create(input, **kwargs):
            if len(input) > 2:
                raise _bad_request("batch size should not be larger than 2")
            return _create_response(input)

        mock_client.embeddings.create.side_effect = create

        provider = OpenAIEmbeddingProvider(
            api_key="test-key",
            base_url="https://api.openai.com/v1",
            batch_size=10,
        )

        result = provider.embed_documents(["a", "bb", "ccc", "dddd", "eeeee"])

        assert [vector[0] for vector in result] == [1.0, 2.0, 3.0, 4.0, 5.0]
        # 1 次失败 + 3 次按上限重新切分
        assert mock_client.embeddings.create.call_count == 4
        assert provider._effective_batch_size == 2

    @patch("textsim.services.similarity.embedding.openai_provider.OpenAI")
    def test_other_bad_request_propagates(self, mock_openai_class):
        """测试与批处理大小无关的 400 错误直接抛出"""
        mock_client = MagicMock()
        mock_openai_class.return_value = mock_client
        mock_client.embeddings.create.side_effect = _bad_request("invalid model")

        provider = OpenAIEmbeddingProvider(api_key="test-key", base_url="https://api.test.com/v1")

        with pytest.raises(BadRequestError):
            provider.embed_documents(["hello"])
        assert mock_client.embeddings.create.call_count == 1

    @patch("time.sleep")
    @patch("textsim.services.similarity.embedding.openai_provider.OpenAI")
    def test_retries_transient_errors(self, mock_openai_class, _mock_sleep):
        """测试网络错误会重试"""
        mock_client = MagicMock()
        mock_openai_class.return_value = mock_client
        mock_client.embeddings.create.side_effect = [
            APIConnectionError(request=_make_mock_request()),
            _create_response(["hello"]),
        ]

        provider = OpenAIEmbeddingProvider(api_key="test-key", base_url="https://api.test.com/v1")

        assert provider.embed_documents(["hello"]) == [[5.0, 0.0, 1.0]]
        assert mock_client.embeddings.create.call_count == 2

    @patch("time.sleep")
    @patch("textsim.services.similarity.embedding.openai_provider.OpenAI")
    def test_retries_exhausted(self, mock_openai_class, _mock_sleep):
        """测试重试耗尽后抛出原始异常"""
        mock_client = MagicMock()
        mock_openai_class.return_value = mock_client
        mock_client.embeddings.create.side_effect = APIConnectionError(request=_make_mock_request())

        provider = OpenAIEmbeddingProvider(api_key="test-key", base_url="https://api.test.com/v1")

        with pytest.raises(APIConnectionError):
            provider.embed_documents(["hello"])
        assert mock_client.embeddings.create.call_count == 3
