"""聚类服务配置测试"""

import pytest
from pydantic import ValidationError
from textsim.services.similarity.config import (
    ClusteringConfig,
    EmbeddingBackend,
    SimilaritySettings,
)


@pytest.fixture
def clean_env(monkeypatch):
    """清除 API Key 相关的环境变量"""
    for name in ("EMBEDDING_API_KEY", "LLM_API_KEY", "OPENAI_API_KEY"):
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


class TestClusteringConfig:
    """ClusteringConfig 测试"""

    def test_defaults(self):
        """测试默认值"""
        config = ClusteringConfig()

        assert config.similarity_threshold == 0.8
        assert config.max_cluster_size == 50
        assert config.sample_percentage == 100.0
        assert config.embedding_backend == EmbeddingBackend.LOCAL
        assert config.use_generated_labels is True
        assert config.random_seed is None

    @pytest.mark.parametrize(
        "field,value",
        [
            ("similarity_threshold", 0.0),
            ("similarity_threshold", 1.0),
            ("max_cluster_size", 0),
            ("sample_percentage", 0),
            ("sample_percentage", 100.5),
            ("embedding_backend", "tensorflow"),
        ],
    )
    def test_rejects_invalid_values(self, field, value):
        """测试越界值被拒绝"""
        with pytest.raises(ValidationError):
            ClusteringConfig(**{field: value})

    def test_backend_from_string(self):
        assert ClusteringConfig(embedding_backend="openai").embedding_backend == EmbeddingBackend.OPENAI

    def test_frozen(self):
        """测试运行参数不可变"""
        config = ClusteringConfig()

        with pytest.raises(ValidationError):
            config.max_cluster_size = 3  # type: ignore[misc]


class TestSimilaritySettings:
    """SimilaritySettings 测试"""

    def test_load_from_yaml(self, tmp_path, clean_env):
        """测试从 YAML 加载配置"""
        config_file = tmp_path / "textsim.yaml"
        config_file.write_text(
            """
clustering:
  similarity_threshold: 0.9
  max_cluster_size: 20
  embedding_backend: openai
remote_embedding:
  api_key: sk-file
  batch_size: 50
unknown_section:
  ignored: true
""",
            encoding="utf-8",
        )

        settings = SimilaritySettings.load_from_yaml(config_file)

        assert settings.clustering.similarity_threshold == 0.9
        assert settings.clustering.max_cluster_size == 20
        assert settings.clustering.embedding_backend == EmbeddingBackend.OPENAI
        assert settings.remote_embedding.api_key == "sk-file"
        assert settings.remote_embedding.batch_size == 50
        assert settings.local_embedding.batch_size == 32

    def test_empty_yaml_uses_defaults(self, tmp_path, clean_env):
        """测试空文件使用默认值"""
        config_file = tmp_path / "empty.yaml"
        config_file.write_text("", encoding="utf-8")

        settings = SimilaritySettings.load_from_yaml(config_file)

        assert settings.clustering == ClusteringConfig()
        assert settings.labeling.enabled is False

    def test_missing_file(self, tmp_path):
        """测试文件不存在"""
        with pytest.raises(FileNotFoundError):
            SimilaritySettings.load_from_yaml(tmp_path / "missing.yaml")

    def test_invalid_yaml(self, tmp_path):
        """测试 YAML 格式错误"""
        config_file = tmp_path / "bad.yaml"
        config_file.write_text("clustering: [unclosed", encoding="utf-8")

        with pytest.raises(ValueError):
            SimilaritySettings.load_from_yaml(config_file)

    def test_remote_api_key_from_env(self, clean_env):
        """测试远程 API Key 按优先级读取环境变量"""
        clean_env.setenv("OPENAI_API_KEY", "sk-openai")
        assert SimilaritySettings.from_dict({}).remote_embedding.api_key == "sk-openai"

        clean_env.setenv("EMBEDDING_API_KEY", "sk-embedding")
        assert SimilaritySettings.from_dict({}).remote_embedding.api_key == "sk-embedding"

    def test_file_api_key_wins_over_env(self, clean_env):
        """测试配置文件中的 API Key 优先"""
        clean_env.setenv("EMBEDDING_API_KEY", "sk-env")

        settings = SimilaritySettings.from_dict({"remote_embedding": {"api_key": "sk-file"}})

        assert settings.remote_embedding.api_key == "sk-file"

    def test_labeling_key_only_when_enabled(self, clean_env):
        """测试仅在启用命名时读取 LLM API Key"""
        clean_env.setenv("LLM_API_KEY", "sk-llm")

        assert SimilaritySettings.from_dict({}).labeling.api_key is None
        enabled = SimilaritySettings.from_dict({"labeling": {"enabled": True}})
        assert enabled.labeling.api_key == "sk-llm"
