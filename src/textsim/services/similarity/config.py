"""聚类服务配置加载模块"""

import os
from enum import Enum
from pathlib import Path
from typing import Any

import yaml  # type: ignore[import-untyped]
from pydantic import BaseModel, Field


class EmbeddingBackend(str, Enum):
    """Embedding 后端"""

    LOCAL = "local"  # 进程内 sentence-transformers 模型
    OPENAI = "openai"  # OpenAI 兼容的远程批量 API


class ClusteringConfig(BaseModel):
    """单次聚类运行的参数"""

    similarity_threshold: float = Field(default=0.8, gt=0.0, lt=1.0, description="合并相似度阈值")
    max_cluster_size: int = Field(default=50, ge=1, description="单个聚类的最大文本数")
    sample_percentage: float = Field(default=100.0, gt=0.0, le=100.0, description="抽样百分比")
    embedding_backend: EmbeddingBackend = Field(
        default=EmbeddingBackend.LOCAL, description="Embedding 后端 (local / openai)"
    )
    use_generated_labels: bool = Field(default=True, description="多成员聚类是否交给 LLM 命名")
    random_seed: int | None = Field(default=None, description="抽样随机种子，便于复现")

    model_config = {"extra": "ignore", "frozen": True}


class RetryConfig(BaseModel):
    """重试配置"""

    max_attempts: int = Field(default=3, ge=1, le=10, description="最大重试次数")
    backoff_factor: float = Field(default=1.0, ge=0, le=10.0, description="退避因子")


class LocalEmbeddingConfig(BaseModel):
    """本地 Embedding 模型配置"""

    model: str = Field(
        default="sentence-transformers/all-MiniLM-L6-v2", description="sentence-transformers 模型"
    )
    device: str | None = Field(default=None, description="推理设备 (cpu / cuda)，None 为自动")
    batch_size: int = Field(default=32, ge=1, le=1024, description="批处理大小")
    normalize: bool = Field(default=False, description="是否输出单位向量")


class RemoteEmbeddingConfig(BaseModel):
    """远程 Embedding 配置"""

    base_url: str = Field(default="https://api.openai.com/v1", description="API 基础 URL")
    api_key: str | None = Field(default=None, description="API Key (可通过环境变量设置)")
    model: str = Field(default="text-embedding-3-small", description="Embedding 模型名称")
    dimension: int = Field(default=1536, ge=1, description="向量维度")
    batch_size: int = Field(default=100, ge=1, le=2048, description="批处理大小")
    timeout: float = Field(default=60.0, ge=1.0, le=300.0, description="请求超时(秒)")


class LabelingConfig(BaseModel):
    """聚类命名 LLM 配置"""

    enabled: bool = Field(default=False, description="是否启用 LLM 命名")
    base_url: str = Field(default="https://api.openai.com/v1", description="API 基础 URL")
    api_key: str | None = Field(default=None, description="API Key")
    model: str = Field(default="gpt-4o-mini", description="模型名称")
    temperature: float = Field(default=0.2, ge=0, le=2.0, description="采样温度")
    max_tokens: int = Field(default=32, ge=1, description="最大输出 token 数")
    sample_size: int = Field(default=5, ge=1, le=5, description="送给 LLM 的样本文本数")
    timeout: float = Field(default=60.0, ge=1.0, le=600.0, description="请求超时(秒)")
    retry: RetryConfig = Field(default_factory=RetryConfig, description="重试配置")


class SimilaritySettings(BaseModel):
    """聚类服务配置"""

    clustering: ClusteringConfig = Field(default_factory=ClusteringConfig)
    local_embedding: LocalEmbeddingConfig = Field(default_factory=LocalEmbeddingConfig)
    remote_embedding: RemoteEmbeddingConfig = Field(default_factory=RemoteEmbeddingConfig)
    labeling: LabelingConfig = Field(default_factory=LabelingConfig)

    model_config = {"extra": "ignore"}

    @classmethod
    def load_from_yaml(cls, config_path: str | Path) -> "SimilaritySettings":
        """从 YAML 文件加载配置

        API Key 未写在文件里时，按优先级从环境变量读取。

        Args:
            config_path: 配置文件路径

        Returns:
            SimilaritySettings 实例

        Raises:
            FileNotFoundError: 配置文件不存在
            ValueError: YAML 格式无效
        """
        config_path = Path(config_path)
        if not config_path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")
        try:
            with open(config_path, encoding="utf-8") as f:
                config_data: dict[str, Any] = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML: {e}") from e

        return cls.from_dict(config_data)

    @classmethod
    def from_dict(cls, config_data: dict[str, Any]) -> "SimilaritySettings":
        """从字典构建配置，并补全环境变量中的 API Key"""
        config_data = dict(config_data)

        remote = dict(config_data.get("remote_embedding") or {})
        if not remote.get("api_key"):
            api_key = _first_env("EMBEDDING_API_KEY", "OPENAI_API_KEY")
            if api_key:
                remote["api_key"] = api_key
        config_data["remote_embedding"] = remote

        labeling = dict(config_data.get("labeling") or {})
        if labeling.get("enabled") and not labeling.get("api_key"):
            api_key = _first_env("LLM_API_KEY", "OPENAI_API_KEY")
            if api_key:
                labeling["api_key"] = api_key
        config_data["labeling"] = labeling

        return cls(**config_data)


def _first_env(*names: str) -> str | None:
    """返回第一个已设置的环境变量值"""
    for name in names:
        value = os.getenv(name)
        if value:
            return value
    return None
