"""聚类命名

单成员聚类直接截取文本；多成员聚类默认用高频词命名，
也可以交给外部委托（如 LLM）生成，委托失败时回退到高频词。
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Callable, Sequence
from typing import TYPE_CHECKING, Protocol

import structlog

from textsim.models.clustering import TextCluster
from textsim.utils.security import hash_text

if TYPE_CHECKING:
    from textsim.services.similarity.clustering import Cluster

logger = structlog.get_logger()

SINGLETON_LABEL_LENGTH = 50
MIN_KEYWORD_LENGTH = 4
KEYWORD_COUNT = 3
DELEGATE_SAMPLE_SIZE = 5
STOPWORDS = frozenset({"that", "this", "with", "from", "have", "what"})

# (已命名聚类数, 聚类总数)
LabelCheckpoint = Callable[[int, int], None]


class LabelDelegate(Protocol):
    """外部命名能力"""

    def label_sample(self, texts: list[str]) -> str:
        """根据样本文本返回一个简短标签"""
        ...


def truncate_text(text: str, max_length: int = SINGLETON_LABEL_LENGTH) -> str:
    """截取前 max_length 个字符，被截断时追加省略号"""
    if len(text) <= max_length:
        return text
    return text[:max_length] + "..."


def frequency_label(cluster_id: int, texts: Sequence[str]) -> str:
    """基于词频的标签

    空白切分并转小写，丢弃长度不超过 3 的词和停用词，取出现次数最多的
    3 个词（次数相同按首次出现顺序）。

    Args:
        cluster_id: 聚类 ID，无可用词时用于生成 "Cluster {id}"
        texts: 聚类成员文本

    Returns:
        形如 "[word1, word2, word3...]" 的标签
    """
    counts: Counter[str] = Counter(
        word
        for text in texts
        for word in text.lower().split()
        if len(word) >= MIN_KEYWORD_LENGTH and word not in STOPWORDS
    )
    top_words = [word for word, _ in counts.most_common(KEYWORD_COUNT)]
    if not top_words:
        return f"Cluster {cluster_id}"
    return "[" + ", ".join(top_words) + "...]"


class ClusterLabeler:
    """聚类命名器"""

    def __init__(
        self,
        delegate: LabelDelegate | None = None,
        use_delegate: bool = True,
        sample_size: int = DELEGATE_SAMPLE_SIZE,
    ) -> None:
        """初始化命名器

        Args:
            delegate: 外部命名委托，None 表示只用词频命名
            use_delegate: 为 False 时即使提供了委托也不调用
            sample_size: 交给委托的样本数，不超过 5
        """
        self.delegate = delegate
        self.use_delegate = use_delegate
        self.sample_size = max(1, min(sample_size, DELEGATE_SAMPLE_SIZE))

    def label(
        self,
        clusters: Sequence[Cluster],
        texts: Sequence[str],
        checkpoint: LabelCheckpoint | None = None,
    ) -> list[TextCluster]:
        """为每个聚类生成标签

        Args:
            clusters: 聚类引擎输出
            texts: 参与聚类的文本，下标与 member_indices 对应
            checkpoint: 每个聚类命名完成后调用

        Returns:
            带标签的聚类列表，顺序与输入一致
        """
        labeled: list[TextCluster] = []
        total = len(clusters)
        for done, cluster in enumerate(clusters, start=1):
            member_texts = [texts[index] for index in cluster.member_indices]
            labeled.append(
                TextCluster(
                    id=cluster.cluster_id,
                    label=self.label_texts(cluster.cluster_id, member_texts),
                    texts=member_texts,
                    representative_text=member_texts[0],
                )
            )
            if checkpoint is not None:
                checkpoint(done, total)
        return labeled

    def label_texts(self, cluster_id: int, texts: list[str]) -> str:
        """为一组成员文本生成标签"""
        if len(texts) == 1:
            return truncate_text(texts[0])
        if self.delegate is not None and self.use_delegate:
            generated = self._delegated_label(cluster_id, texts[: self.sample_size])
            if generated:
                return generated
        return frequency_label(cluster_id, texts)

    def _delegated_label(self, cluster_id: int, sample: list[str]) -> str | None:
        assert self.delegate is not None
        try:
            generated = self.delegate.label_sample(sample).strip()
        except Exception as exc:  # noqa: BLE001
            logger.warning(
                "cluster_label_delegate_failed",
                cluster_id=cluster_id,
                sample_hash=hash_text("\n".join(sample)),
                error=str(exc),
                error_type=type(exc).__name__,
            )
            return None
        if not generated:
            logger.warning("cluster_label_delegate_empty", cluster_id=cluster_id)
            return None
        return generated
