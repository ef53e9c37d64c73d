"""后台聚类 worker

在独立线程中执行流水线，通过有序、有界的消息通道与调用方通信。
调用方只会收到不可变的消息值：若干 ProgressMessage，随后恰好一个
ResultMessage 或 ErrorMessage；取消后不再投递任何消息。
"""

from __future__ import annotations

import queue
import threading
import time
from collections.abc import Iterator, Sequence
from dataclasses import dataclass

import structlog

from textsim.models.clustering import ClusteringProgress, ClusteringResult
from textsim.services.similarity.cancellation import CancellationToken
from textsim.services.similarity.config import ClusteringConfig
from textsim.services.similarity.exceptions import (
    PipelineStageError,
    RunCancelled,
    RunInProgressError,
)
from textsim.services.similarity.pipeline import ClusteringPipeline

logger = structlog.get_logger()

# 通道容量，消费者跟不上时运行线程会在投递处等待
DEFAULT_CHANNEL_SIZE = 1024
POLL_INTERVAL = 0.05


@dataclass(frozen=True)
class ProgressMessage:
    progress: ClusteringProgress


@dataclass(frozen=True)
class ResultMessage:
    result: ClusteringResult


@dataclass(frozen=True)
class ErrorMessage:
    """运行失败

    Attributes:
        stage: 失败的阶段名称
        error: 人类可读的错误原因
    """

    stage: str
    error: str


WorkerMessage = ProgressMessage | ResultMessage | ErrorMessage

# 通道关闭标记，不会交给调用方
_CLOSED = object()


class ClusteringWorker:
    """后台聚类 worker

    同一时间只允许一个运行：运行未结束时再次 start() 会被拒绝。

    Example:
        worker = ClusteringWorker()
        worker.start(texts, ClusteringConfig(similarity_threshold=0.85))
        for message in worker.messages():
            if isinstance(message, ResultMessage):
                ...
    """

    def __init__(
        self,
        pipeline: ClusteringPipeline | None = None,
        channel_size: int = DEFAULT_CHANNEL_SIZE,
    ) -> None:
        """初始化 worker

        Args:
            pipeline: 聚类流水线，None 时使用默认配置创建
            channel_size: 消息通道容量
        """
        self.pipeline = pipeline or ClusteringPipeline()
        self.channel_size = channel_size
        self._lock = threading.Lock()
        self._thread: threading.Thread | None = None
        self._token: CancellationToken | None = None
        self._channel: queue.Queue[object] | None = None

    @property
    def is_active(self) -> bool:
        """是否有运行中的任务"""
        return self._thread is not None and self._thread.is_alive()

    def start(self, corpus: Sequence[str], config: ClusteringConfig | None = None) -> None:
        """启动一次后台运行，立即返回

        输入校验在调用线程中同步完成，失败时不会发出任何消息。

        Args:
            corpus: 语料（会被复制，调用方之后的修改不影响本次运行）
            config: 运行参数，None 时使用流水线配置中的默认值

        Raises:
            RunInProgressError: 已有运行中的任务
            ConfigurationError: 输入无效
        """
        config = config or self.pipeline.settings.clustering
        with self._lock:
            if self.is_active:
                raise RunInProgressError("A clustering run is already active on this worker")

            snapshot = corpus if isinstance(corpus, str) else tuple(corpus)
            self.pipeline.prepare(snapshot, config)

            token = CancellationToken()
            channel: queue.Queue[object] = queue.Queue(maxsize=self.channel_size)
            thread = threading.Thread(
                target=self._run,
                args=(snapshot, config, token, channel),
                name="textsim-clustering",
                daemon=True,
            )
            self._token = token
            self._channel = channel
            self._thread = thread
            thread.start()

        logger.info("clustering_worker_started", corpus_size=len(snapshot))

    def messages(self, timeout: float | None = None) -> Iterator[WorkerMessage]:
        """按顺序迭代当前运行的消息，运行结束或取消后迭代停止

        Args:
            timeout: 等待下一条消息的最长秒数，None 表示一直等待

        Raises:
            TimeoutError: 超时仍未收到消息
        """
        channel, token = self._channel, self._token
        if channel is None or token is None:
            return

        deadline = None if timeout is None else time.monotonic() + timeout
        while not token.cancelled:
            try:
                item = channel.get(timeout=POLL_INTERVAL)
            except queue.Empty:
                if deadline is not None and time.monotonic() >= deadline:
                    raise TimeoutError("No clustering message received in time") from None
                continue

            if item is _CLOSED or token.cancelled:
                return
            yield item  # type: ignore[misc]
            if timeout is not None:
                deadline = time.monotonic() + timeout

    def cancel(self) -> None:
        """请求取消当前运行（协作式，正在进行的批次或合并会先完成）"""
        if self._token is not None and not self._token.cancelled:
            self._token.cancel()
            logger.info("clustering_worker_cancel_requested")

    def wait(self, timeout: float | None = None) -> bool:
        """等待运行线程结束

        Returns:
            运行线程是否已经结束
        """
        thread = self._thread
        if thread is None:
            return True
        thread.join(timeout)
        return not thread.is_alive()

    def dispose(self, timeout: float | None = None) -> None:
        """取消当前运行并等待线程退出"""
        self.cancel()
        self.wait(timeout)

    def _run(
        self,
        corpus: Sequence[str],
        config: ClusteringConfig,
        token: CancellationToken,
        channel: queue.Queue[object],
    ) -> None:
        def on_progress(progress: ClusteringProgress) -> None:
            self._send(channel, token, ProgressMessage(progress))

        try:
            result = self.pipeline.run(
                corpus, config, on_progress=on_progress, cancel_token=token
            )
        except RunCancelled:
            logger.info("clustering_run_cancelled")
        except PipelineStageError as exc:
            self._send(channel, token, ErrorMessage(stage=exc.stage, error=exc.message))
        except Exception as exc:
            logger.exception("clustering_worker_unexpected_error", error=str(exc))
            self._send(channel, token, ErrorMessage(stage="unknown", error=str(exc)))
        else:
            self._send(channel, token, ResultMessage(result))
        finally:
            self._send(channel, token, _CLOSED)

    @staticmethod
    def _send(channel: queue.Queue[object], token: CancellationToken, item: object) -> None:
        """投递一条消息；通道已满时等待，期间一旦取消就丢弃该消息"""
        while not token.cancelled:
            try:
                channel.put(item, timeout=POLL_INTERVAL)
                return
            except queue.Full:
                continue
