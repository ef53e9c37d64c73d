"""协作式取消

取消请求只设置一个标志；流水线在固定的工作块边界调用 checkpoint()
检查该标志，不会打断正在进行的原子操作（单个批次、单个合并）。
"""

from __future__ import annotations

import threading
import time

from textsim.services.similarity.exceptions import RunCancelled


class CancellationToken:
    """取消令牌

    调用方线程调用 cancel()，后台线程在检查点调用 checkpoint()。
    """

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        """请求取消（幂等）"""
        self._event.set()

    @property
    def cancelled(self) -> bool:
        """是否已请求取消"""
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        """已请求取消时抛出 RunCancelled"""
        if self._event.is_set():
            raise RunCancelled("clustering run cancelled")

    def checkpoint(self) -> None:
        """挂起点：检查取消并让出 GIL，使调用方线程不被长计算饿死"""
        self.raise_if_cancelled()
        time.sleep(0)
