"""聚类服务异常定义

区分配置错误、各阶段的致命错误，以及标签生成（LLM 调用）的可恢复错误。
取消不是错误：RunCancelled 不继承 ClusteringError。
"""

from __future__ import annotations


class ClusteringError(Exception):
    """聚类服务基础异常"""

    pass


class ConfigurationError(ClusteringError, ValueError):
    """配置错误

    包括：
    - 语料为空
    - 配置值越界
    - 远程 Embedding 缺少 API Key

    在任何阶段开始之前同步抛出给调用方。
    """

    pass


class ProviderInitError(ClusteringError):
    """Embedding 提供者初始化失败（模型或服务不可用）"""

    pass


class EmbeddingError(ClusteringError):
    """Embedding 批处理失败，或返回的向量数量/维度不一致"""

    pass


class PipelineStageError(ClusteringError):
    """流水线阶段失败

    所有致命错误最终都以此异常的形式终止整次运行，并标明失败的阶段。
    """

    def __init__(self, stage: str, message: str) -> None:
        """初始化阶段错误

        Args:
            stage: 失败的阶段名称（如 embedding）
            message: 人类可读的错误原因
        """
        super().__init__(f"[{stage}] {message}")
        self.stage = stage
        self.message = message


class RunInProgressError(ClusteringError):
    """同一个 worker 上已有运行中的任务"""

    pass


class RunCancelled(Exception):  # noqa: N818
    """运行已被取消

    协作式取消的控制流信号，流水线在检查点观察到取消请求时抛出。
    """

    pass


class LLMError(Exception):
    """LLM 服务基础异常"""

    pass


class LLMRetryableError(LLMError):
    """可重试的 LLM 错误

    包括：
    - 网络连接错误
    - 超时错误
    - 速率限制错误
    - 服务端临时错误 (5xx)
    """

    pass


class LLMNonRetryableError(LLMError):
    """不可重试的 LLM 错误

    包括：
    - 认证错误 (401)
    - 权限错误 (403)
    - 请求格式错误 (400)
    - 模型不存在 (404)
    """

    pass
