"""文本相似度聚类服务

提供 Embedding、相似度矩阵、受限贪心聚类、聚类命名，以及带进度和取消的
流水线与后台 worker。
"""

from textsim.services.similarity.cancellation import CancellationToken
from textsim.services.similarity.cluster_labeler import ClusterLabeler, LabelDelegate
from textsim.services.similarity.config import (
    ClusteringConfig,
    EmbeddingBackend,
    SimilaritySettings,
)
from textsim.services.similarity.estimates import (
    estimate_processing_time,
    pair_count,
    recommend_sample_percentage,
)
from textsim.services.similarity.exceptions import (
    ClusteringError,
    ConfigurationError,
    EmbeddingError,
    LLMError,
    LLMNonRetryableError,
    LLMRetryableError,
    PipelineStageError,
    ProviderInitError,
    RunCancelled,
    RunInProgressError,
)
from textsim.services.similarity.pipeline import ClusteringPipeline, sample_corpus
from textsim.services.similarity.worker import (
    ClusteringWorker,
    ErrorMessage,
    ProgressMessage,
    ResultMessage,
)

__all__ = [
    "CancellationToken",
    "ClusterLabeler",
    "LabelDelegate",
    "ClusteringConfig",
    "EmbeddingBackend",
    "SimilaritySettings",
    "estimate_processing_time",
    "pair_count",
    "recommend_sample_percentage",
    "ClusteringError",
    "ConfigurationError",
    "EmbeddingError",
    "LLMError",
    "LLMNonRetryableError",
    "LLMRetryableError",
    "PipelineStageError",
    "ProviderInitError",
    "RunCancelled",
    "RunInProgressError",
    "ClusteringPipeline",
    "sample_corpus",
    "ClusteringWorker",
    "ErrorMessage",
    "ProgressMessage",
    "ResultMessage",
]
