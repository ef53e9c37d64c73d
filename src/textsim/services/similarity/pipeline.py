"""文本聚类流水线

整合 Embedding、相似度矩阵、受限聚类和命名，提供完整的单次运行流程：
modelLoading → embedding → similarity → clustering → labeling → complete。
"""

from __future__ import annotations

import random
import time
from collections.abc import Callable, Iterator, Sequence
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any

import structlog

from textsim.models.clustering import ClusteringProgress, ClusteringResult, ProgressStage
from textsim.services.similarity.cancellation import CancellationToken
from textsim.services.similarity.cluster_labeler import ClusterLabeler
from textsim.services.similarity.clustering import ConstrainedGreedyStrategy
from textsim.services.similarity.config import (
    ClusteringConfig,
    EmbeddingBackend,
    SimilaritySettings,
)
from textsim.services.similarity.embedding import (
    EmbeddingProvider,
    LocalEmbeddingProvider,
    OpenAIEmbeddingProvider,
)
from textsim.services.similarity.estimates import (
    estimate_processing_time,
    pair_count,
    recommend_sample_percentage,
    sampled_size,
)
from textsim.services.similarity.exceptions import (
    ClusteringError,
    ConfigurationError,
    EmbeddingError,
    PipelineStageError,
    ProviderInitError,
    RunCancelled,
)
from textsim.services.similarity.similarity_matrix import SimilarityMatrixBuilder

if TYPE_CHECKING:
    from textsim.services.similarity.cluster_labeler import LabelDelegate

logger = structlog.get_logger()

ProgressCallback = Callable[[ClusteringProgress], None]


def sample_corpus(
    texts: Sequence[str], sample_percentage: float, rng: random.Random | None = None
) -> list[str]:
    """均匀无放回抽样

    抽样数为 max(10, floor(n * p / 100))，不小于语料时返回全部。
    样本保持原始文本和语料顺序。

    Args:
        texts: 语料
        sample_percentage: 抽样百分比 (0, 100]
        rng: 随机数生成器，None 时使用新的 Random()

    Returns:
        抽样后的文本列表
    """
    n = len(texts)
    size = sampled_size(n, sample_percentage)
    if size >= n:
        return list(texts)
    rng = rng or random.Random()
    indices = sorted(rng.sample(range(n), size))
    return [texts[index] for index in indices]


class ClusteringPipeline:
    """文本聚类流水线

    同一实例可以顺序执行多次运行，已加载的 Embedding 提供者会被复用；
    并发运行的互斥由 ClusteringWorker 负责。
    """

    def __init__(
        self,
        settings: SimilaritySettings | None = None,
        embedding_provider: EmbeddingProvider | None = None,
        label_delegate: LabelDelegate | None = None,
        similarity_builder: SimilarityMatrixBuilder | None = None,
    ) -> None:
        """初始化流水线

        Args:
            settings: 服务配置，None 时使用默认值
            embedding_provider: 注入的 Embedding 提供者，None 时按运行配置的后端创建
            label_delegate: 注入的命名委托，None 时在 settings.labeling.enabled 下创建 LLM 委托
            similarity_builder: 相似度矩阵构建器
        """
        self.settings = settings or SimilaritySettings()
        self._injected_provider = embedding_provider
        self._providers: dict[EmbeddingBackend, EmbeddingProvider] = {}
        self._label_delegate = label_delegate
        self.similarity_builder = similarity_builder or SimilarityMatrixBuilder()

    def prepare(self, corpus: Sequence[str], config: ClusteringConfig) -> EmbeddingProvider:
        """校验输入并解析 Embedding 提供者

        在任何阶段开始前同步执行，不发出进度事件。

        Args:
            corpus: 语料
            config: 运行参数

        Returns:
            本次运行使用的 Embedding 提供者（尚未加载）

        Raises:
            ConfigurationError: 语料为空、含非字符串条目，或缺少远程/命名 API Key
        """
        if isinstance(corpus, str):
            raise ConfigurationError("Corpus must be a sequence of strings, not a single string")
        if len(corpus) == 0:
            raise ConfigurationError("Corpus is empty")
        if not all(isinstance(text, str) for text in corpus):
            raise ConfigurationError("Corpus items must all be strings")
        provider = self._resolve_provider(config.embedding_backend)
        if config.use_generated_labels:
            self._resolve_label_delegate()
        return provider

    def run(
        self,
        corpus: Sequence[str],
        config: ClusteringConfig | None = None,
        on_progress: ProgressCallback | None = None,
        cancel_token: CancellationToken | None = None,
    ) -> ClusteringResult:
        """执行一次完整的聚类运行

        Args:
            corpus: 语料（不会被修改）
            config: 运行参数，None 时使用 settings.clustering
            on_progress: 进度回调，在运行线程中按阶段顺序调用
            cancel_token: 取消令牌

        Returns:
            聚类结果

        Raises:
            ConfigurationError: 输入无效（未发出任何进度之前）
            PipelineStageError: 某个阶段失败
            RunCancelled: 观察到取消请求
        """
        config = config or self.settings.clustering
        token = cancel_token or CancellationToken()
        provider = self.prepare(corpus, config)
        token.checkpoint()

        def emit(stage: ProgressStage, percent: float, message: str, **counters: Any) -> None:
            token.raise_if_cancelled()
            if on_progress is not None:
                on_progress(
                    ClusteringProgress(
                        stage=stage,
                        percent=min(100.0, max(0.0, percent)),
                        message=message,
                        **counters,
                    )
                )

        run_start = time.perf_counter()
        rng = random.Random(config.random_seed)
        texts = sample_corpus(tuple(corpus), config.sample_percentage, rng)
        n = len(texts)
        logger.info(
            "clustering_run_started",
            corpus_size=len(corpus),
            sample_size=n,
            backend=config.embedding_backend.value,
            threshold=config.similarity_threshold,
            max_cluster_size=config.max_cluster_size,
            estimate=estimate_processing_time(n, config.embedding_backend),
        )

        with self._stage(ProgressStage.MODEL_LOADING):
            emit(ProgressStage.MODEL_LOADING, 0, "Loading embedding model...")
            try:
                provider.load()
            except Exception as exc:
                raise ProviderInitError(f"Embedding provider unavailable: {exc}") from exc
            token.checkpoint()
            emit(ProgressStage.MODEL_LOADING, 100, "Embedding model ready")

        with self._stage(ProgressStage.EMBEDDING):
            embeddings = self._embed(texts, provider, token, emit)

        with self._stage(ProgressStage.SIMILARITY):
            total_pairs = pair_count(n)
            if recommend_sample_percentage(n) < 100:
                logger.warning(
                    "similarity_pair_count_high",
                    items=n,
                    pairs=total_pairs,
                    recommended_sample_percentage=recommend_sample_percentage(n),
                )
            emit(
                ProgressStage.SIMILARITY,
                0,
                "Computing similarity matrix...",
                current_item=0,
                total_items=total_pairs,
            )

            def on_pairs(processed: int, total: int) -> None:
                token.checkpoint()
                emit(
                    ProgressStage.SIMILARITY,
                    processed / total * 100,
                    f"Computed {processed} of {total} pairs",
                    current_item=processed,
                    total_items=total,
                )

            matrix = self.similarity_builder.build(embeddings, checkpoint=on_pairs)
            del embeddings

        with self._stage(ProgressStage.CLUSTERING):
            emit(ProgressStage.CLUSTERING, 0, "Clustering texts...", cluster_count=n)

            def on_merges(attempted: int, total: int, cluster_count: int) -> None:
                token.checkpoint()
                emit(
                    ProgressStage.CLUSTERING,
                    attempted / total * 100,
                    f"Processed {attempted} of {total} candidate merges",
                    current_item=attempted,
                    total_items=total,
                    cluster_count=cluster_count,
                )

            strategy = ConstrainedGreedyStrategy(
                similarity_threshold=config.similarity_threshold,
                max_cluster_size=config.max_cluster_size,
            )
            clusters = strategy.cluster(matrix, checkpoint=on_merges)
            del matrix

        with self._stage(ProgressStage.LABELING):
            emit(
                ProgressStage.LABELING,
                0,
                "Generating cluster labels...",
                current_item=0,
                total_items=len(clusters),
            )

            def on_labeled(done: int, total: int) -> None:
                token.checkpoint()
                emit(
                    ProgressStage.LABELING,
                    done / total * 100,
                    "Generating cluster labels...",
                    current_item=done,
                    total_items=total,
                )

            labeler = ClusterLabeler(
                delegate=self._label_delegate,
                use_delegate=config.use_generated_labels,
                sample_size=self.settings.labeling.sample_size,
            )
            labeled = labeler.label(clusters, texts, checkpoint=on_labeled)
            result = ClusteringResult.from_clusters(labeled)

        emit(
            ProgressStage.COMPLETE,
            100,
            "Clustering complete",
            cluster_count=result.stats.total_clusters,
        )
        logger.info(
            "clustering_run_completed",
            total_texts=result.stats.total_texts,
            total_clusters=result.stats.total_clusters,
            singleton_count=result.stats.singleton_count,
            largest_cluster_size=result.stats.largest_cluster_size,
            elapsed_ms=round((time.perf_counter() - run_start) * 1000, 1),
        )
        return result

    def _embed(
        self,
        texts: list[str],
        provider: EmbeddingProvider,
        token: CancellationToken,
        emit: Callable[..., None],
    ) -> list[list[float]]:
        """按批次生成向量，批次之间报告进度并检查取消"""
        n = len(texts)
        batch_size = max(1, provider.batch_size)
        embeddings: list[list[float]] = []
        dimension: int | None = None

        emit(
            ProgressStage.EMBEDDING,
            0,
            "Generating embeddings...",
            current_item=0,
            total_items=n,
        )
        for start in range(0, n, batch_size):
            token.checkpoint()
            batch = texts[start : start + batch_size]
            try:
                vectors = provider.embed_documents(batch)
            except Exception as exc:
                logger.error(
                    "embedding_batch_failed",
                    batch_start=start,
                    batch_size=len(batch),
                    error=str(exc),
                    error_type=type(exc).__name__,
                )
                raise EmbeddingError(f"Embedding batch failed: {exc}") from exc

            if len(vectors) != len(batch):
                raise EmbeddingError(
                    f"Provider returned {len(vectors)} vectors for a batch of {len(batch)} texts"
                )
            for vector in vectors:
                if dimension is None:
                    dimension = len(vector)
                if len(vector) != dimension or dimension == 0:
                    raise EmbeddingError(
                        f"Inconsistent embedding dimension: expected {dimension}, got {len(vector)}"
                    )
            embeddings.extend(vectors)

            token.checkpoint()
            done = len(embeddings)
            emit(
                ProgressStage.EMBEDDING,
                done / n * 100,
                f"Embedded {done} of {n} texts",
                current_item=done,
                total_items=n,
            )
        return embeddings

    @contextmanager
    def _stage(self, stage: ProgressStage) -> Iterator[None]:
        """阶段边界：记录耗时，并把阶段内的异常统一包装为 PipelineStageError"""
        start_time = time.perf_counter()
        logger.info("clustering_stage_started", stage=stage.value)
        try:
            yield
        except (RunCancelled, PipelineStageError):
            raise
        except ClusteringError as exc:
            logger.error(
                "clustering_stage_failed",
                stage=stage.value,
                error=str(exc),
                error_type=type(exc).__name__,
            )
            raise PipelineStageError(stage.value, str(exc)) from exc
        except Exception as exc:
            logger.error(
                "clustering_stage_failed",
                stage=stage.value,
                error=str(exc),
                error_type=type(exc).__name__,
            )
            raise PipelineStageError(stage.value, f"{type(exc).__name__}: {exc}") from exc
        logger.info(
            "clustering_stage_finished",
            stage=stage.value,
            elapsed_ms=round((time.perf_counter() - start_time) * 1000, 1),
        )

    def _resolve_provider(self, backend: EmbeddingBackend) -> EmbeddingProvider:
        if self._injected_provider is not None:
            return self._injected_provider
        if backend not in self._providers:
            self._providers[backend] = self._create_provider(backend)
        return self._providers[backend]

    def _create_provider(self, backend: EmbeddingBackend) -> EmbeddingProvider:
        """根据后端创建 Embedding 提供者

        Raises:
            ConfigurationError: 远程后端未配置 API Key
        """
        if backend is EmbeddingBackend.OPENAI:
            remote = self.settings.remote_embedding
            if not remote.api_key:
                raise ConfigurationError(
                    "Remote embedding requires an API key (EMBEDDING_API_KEY or OPENAI_API_KEY)"
                )
            return OpenAIEmbeddingProvider(
                api_key=remote.api_key,
                base_url=remote.base_url,
                model=remote.model,
                dimension=remote.dimension,
                batch_size=remote.batch_size,
                timeout=remote.timeout,
            )

        local = self.settings.local_embedding
        return LocalEmbeddingProvider(
            model=local.model,
            device=local.device,
            batch_size=local.batch_size,
            normalize=local.normalize,
        )

    def _resolve_label_delegate(self) -> LabelDelegate | None:
        if self._label_delegate is None and self.settings.labeling.enabled:
            from textsim.services.similarity.llm_client import LLMLabelDelegate

            self._label_delegate = LLMLabelDelegate.from_config(self.settings.labeling)
        return self._label_delegate
