"""工作量估算

根据语料规模给出抽样建议和粗略耗时，供调用方在启动运行前展示。
"""

from textsim.services.similarity.config import EmbeddingBackend

# 超过该条目数时建议抽样
LARGE_CORPUS_ITEMS = 5000
VERY_LARGE_CORPUS_ITEMS = 10000

# 本地后端按向量对数估算：(下限, 描述)，从大到小匹配
LOCAL_TIME_BRACKETS: list[tuple[int, str]] = [
    (10_000_000, "several hours"),
    (1_000_000, "30-60 minutes"),
    (100_000, "5-15 minutes"),
    (10_000, "1-5 minutes"),
]

# 远程后端按条目数估算，受 API 速率限制
REMOTE_TIME_BRACKETS: list[tuple[int, str]] = [
    (5000, "10-20 minutes (API rate limits)"),
    (1000, "2-5 minutes"),
]

FAST_ESTIMATE = "less than a minute"


def pair_count(n: int) -> int:
    """n 个条目的无序对数量"""
    return n * (n - 1) // 2


def recommend_sample_percentage(n: int) -> int:
    """建议的抽样百分比

    Args:
        n: 语料条目数

    Returns:
        30（超过 10,000 条）、50（超过 5,000 条）或 100
    """
    if n > VERY_LARGE_CORPUS_ITEMS:
        return 30
    if n > LARGE_CORPUS_ITEMS:
        return 50
    return 100


def estimate_processing_time(n: int, backend: EmbeddingBackend | str) -> str:
    """粗略估算处理耗时

    Args:
        n: 实际参与聚类的条目数（抽样之后）
        backend: Embedding 后端

    Returns:
        人类可读的耗时描述
    """
    if EmbeddingBackend(backend) is EmbeddingBackend.OPENAI:
        measure, brackets = n, REMOTE_TIME_BRACKETS
    else:
        measure, brackets = pair_count(n), LOCAL_TIME_BRACKETS

    for floor, description in brackets:
        if measure > floor:
            return description
    return FAST_ESTIMATE


def sampled_size(n: int, sample_percentage: float) -> int:
    """抽样后的条目数，不少于 10 条（语料本身不足 10 条时取全部）"""
    if sample_percentage >= 100:
        return n
    return min(n, max(10, int(n * sample_percentage / 100)))
