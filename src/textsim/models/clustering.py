"""
文本聚类结果数据模型

定义进度事件与最终聚类结果的数据结构。所有模型均为不可变值对象，
可以安全地跨线程传递。
"""

from enum import Enum

from pydantic import BaseModel, Field


class ProgressStage(str, Enum):
    """流水线阶段"""

    MODEL_LOADING = "modelLoading"
    EMBEDDING = "embedding"
    SIMILARITY = "similarity"
    CLUSTERING = "clustering"
    LABELING = "labeling"
    COMPLETE = "complete"


class ClusteringProgress(BaseModel):
    """单个进度事件"""

    stage: ProgressStage = Field(..., description="当前阶段")
    percent: float = Field(..., ge=0.0, le=100.0, description="阶段内完成百分比")
    message: str = Field(..., description="人类可读的进度描述")
    current_item: int | None = Field(default=None, ge=0, description="已处理条目数")
    total_items: int | None = Field(default=None, ge=0, description="条目总数")
    cluster_count: int | None = Field(default=None, ge=0, description="当前聚类数")

    model_config = {"frozen": True}


class TextCluster(BaseModel):
    """带标签的聚类"""

    id: int = Field(..., ge=0, description="聚类 ID，仅在单个结果内有效")
    label: str = Field(..., description="聚类标签")
    texts: list[str] = Field(..., min_length=1, description="成员文本，按合并顺序")
    representative_text: str = Field(..., description="代表文本（第一个成员）")

    model_config = {"frozen": True}

    @property
    def size(self) -> int:
        return len(self.texts)


class ClusteringStats(BaseModel):
    """聚类统计"""

    total_texts: int = Field(..., ge=0, description="参与聚类的文本数")
    total_clusters: int = Field(..., ge=0, description="聚类数")
    average_cluster_size: float = Field(..., ge=0.0, description="平均聚类大小")
    largest_cluster_size: int = Field(..., ge=0, description="最大聚类大小")
    singleton_count: int = Field(..., ge=0, description="单成员聚类数")

    model_config = {"frozen": True}


class ClusteringResult(BaseModel):
    """聚类最终结果"""

    clusters: list[TextCluster] = Field(default_factory=list, description="非空聚类列表")
    mapping: dict[str, int] = Field(default_factory=dict, description="原始文本 -> 聚类 ID")
    stats: ClusteringStats = Field(..., description="统计信息")

    model_config = {
        "frozen": True,
        "json_schema_extra": {
            "example": {
                "clusters": [
                    {
                        "id": 0,
                        "label": "[hello, world...]",
                        "texts": ["hello world", "hello world!"],
                        "representative_text": "hello world",
                    }
                ],
                "mapping": {"hello world": 0, "hello world!": 0},
                "stats": {
                    "total_texts": 2,
                    "total_clusters": 1,
                    "average_cluster_size": 2.0,
                    "largest_cluster_size": 2,
                    "singleton_count": 0,
                },
            }
        },
    }

    @classmethod
    def from_clusters(cls, clusters: list[TextCluster]) -> "ClusteringResult":
        """由带标签的聚类构建结果，计算映射与统计

        Args:
            clusters: 带标签的聚类列表

        Returns:
            ClusteringResult 实例
        """
        mapping: dict[str, int] = {}
        for cluster in clusters:
            for text in cluster.texts:
                mapping[text] = cluster.id

        sizes = [cluster.size for cluster in clusters]
        total_texts = sum(sizes)
        stats = ClusteringStats(
            total_texts=total_texts,
            total_clusters=len(clusters),
            average_cluster_size=total_texts / len(clusters) if clusters else 0.0,
            largest_cluster_size=max(sizes, default=0),
            singleton_count=sum(1 for size in sizes if size == 1),
        )
        return cls(clusters=clusters, mapping=mapping, stats=stats)
