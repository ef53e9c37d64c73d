"""textsim CLI 工具

把一行一条的文本文件聚类为近似重复组，或估算一次运行的工作量。

用法:
    textsim cluster posts.txt -o clusters.json
    textsim cluster posts.txt --threshold 0.85 --max-cluster-size 20 --sample 30
    textsim estimate 12000 --backend openai
"""

import sys
from pathlib import Path
from typing import TextIO

import click
import structlog
from pydantic import ValidationError

from textsim.config import get_log_level, get_settings_path
from textsim.services.similarity import (
    ClusteringConfig,
    ClusteringError,
    ClusteringPipeline,
    ClusteringWorker,
    EmbeddingBackend,
    ErrorMessage,
    ProgressMessage,
    ResultMessage,
    SimilaritySettings,
    estimate_processing_time,
    pair_count,
    recommend_sample_percentage,
)
from textsim.services.similarity.estimates import sampled_size
from textsim.utils import configure_logging, sanitize_dict

logger = structlog.get_logger()

LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR"]


def load_settings(config_path: Path | None) -> SimilaritySettings:
    """加载服务配置

    指定了路径时必须存在；未指定时使用默认路径，默认文件不存在则使用内置默认值。
    """
    if config_path is not None:
        return SimilaritySettings.load_from_yaml(config_path)
    default_path = get_settings_path()
    if default_path.exists():
        return SimilaritySettings.load_from_yaml(default_path)
    return SimilaritySettings.from_dict({})


def read_corpus(source: TextIO, keep_duplicates: bool = False) -> list[str]:
    """读取一行一条的语料，跳过空行，默认按首次出现顺序去重"""
    texts = [line.strip() for line in source]
    texts = [text for text in texts if text]
    if keep_duplicates:
        return texts
    return list(dict.fromkeys(texts))


@click.group()
@click.version_option(version="0.1.0", prog_name="textsim")
def cli():
    """textsim - 短文本近似重复聚类工具"""
    pass


@cli.command()
@click.argument("input_file", metavar="INPUT", type=click.File("r", encoding="utf-8"))
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="配置文件路径 (默认: config/textsim.yaml 或 TEXTSIM_CONFIG)",
)
@click.option("--threshold", "-t", type=float, help="合并相似度阈值 (0-1)")
@click.option("--max-cluster-size", "-m", type=int, help="单个聚类的最大文本数")
@click.option("--sample", "-s", "sample_percentage", type=float, help="抽样百分比 (0-100]")
@click.option(
    "--backend",
    "-b",
    type=click.Choice([backend.value for backend in EmbeddingBackend]),
    help="Embedding 后端",
)
@click.option(
    "--generated-labels/--no-generated-labels",
    default=None,
    help="多成员聚类是否使用 LLM 命名",
)
@click.option("--seed", type=int, help="抽样随机种子")
@click.option("--keep-duplicates", is_flag=True, help="保留重复行 (默认去重)")
@click.option(
    "--output",
    "-o",
    type=click.Path(dir_okay=False, writable=True, path_type=Path),
    help="结果 JSON 输出路径 (默认: stdout)",
)
@click.option("--quiet", "-q", is_flag=True, help="不输出进度")
@click.option(
    "--log-level",
    "-l",
    type=click.Choice(LOG_LEVELS, case_sensitive=False),
    help="日志级别 (默认: TEXTSIM_LOG_LEVEL 或 INFO)",
)
@click.option("--json-logs", is_flag=True, help="以 JSON 格式输出日志")
def cluster(
    input_file: TextIO,
    config_path: Path | None,
    threshold: float | None,
    max_cluster_size: int | None,
    sample_percentage: float | None,
    backend: str | None,
    generated_labels: bool | None,
    seed: int | None,
    keep_duplicates: bool,
    output: Path | None,
    quiet: bool,
    log_level: str | None,
    json_logs: bool,
):
    """对文本文件聚类

    INPUT 为一行一条的文本文件，"-" 表示标准输入。进度写到 stderr，
    结果 JSON 写到 stdout 或 --output。

    示例:
        textsim cluster posts.txt
        textsim cluster posts.txt -t 0.9 -m 20 -o clusters.json
        cat posts.txt | textsim cluster - --backend openai
    """
    configure_logging(level=(log_level or get_log_level()).upper(), json_format=json_logs)

    try:
        settings = load_settings(config_path)
    except (FileNotFoundError, ValueError) as e:
        click.secho(f"❌ 配置文件加载失败: {e}", fg="red", err=True)
        sys.exit(1)
    logger.debug("cli_settings_loaded", settings=sanitize_dict(settings.model_dump(mode="json")))

    overrides = {
        "similarity_threshold": threshold,
        "max_cluster_size": max_cluster_size,
        "sample_percentage": sample_percentage,
        "embedding_backend": backend,
        "use_generated_labels": generated_labels,
        "random_seed": seed,
    }
    try:
        config = ClusteringConfig(
            **{
                **settings.clustering.model_dump(),
                **{key: value for key, value in overrides.items() if value is not None},
            }
        )
    except ValidationError as e:
        click.secho(f"❌ 参数无效: {e}", fg="red", err=True)
        sys.exit(2)

    texts = read_corpus(input_file, keep_duplicates=keep_duplicates)
    if not quiet:
        effective = sampled_size(len(texts), config.sample_percentage)
        eta = estimate_processing_time(effective, config.embedding_backend)
        click.echo(f"📄 {len(texts)} texts ({effective} after sampling), estimated time: {eta}", err=True)

    worker = ClusteringWorker(ClusteringPipeline(settings))
    try:
        worker.start(texts, config)
    except ClusteringError as e:
        click.secho(f"❌ {e}", fg="red", err=True)
        sys.exit(1)

    try:
        for message in worker.messages():
            if isinstance(message, ProgressMessage):
                if not quiet:
                    progress = message.progress
                    click.echo(
                        f"[{progress.stage.value}] {progress.percent:5.1f}% {progress.message}",
                        err=True,
                    )
            elif isinstance(message, ErrorMessage):
                click.secho(f"❌ [{message.stage}] {message.error}", fg="red", err=True)
                sys.exit(1)
            elif isinstance(message, ResultMessage):
                _write_result(message, output, quiet)
    except KeyboardInterrupt:
        worker.dispose(timeout=5)
        click.secho("⚠️  已取消", fg="yellow", err=True)
        sys.exit(130)
    finally:
        worker.wait(timeout=5)


def _write_result(message: ResultMessage, output: Path | None, quiet: bool) -> None:
    result = message.result
    payload = result.model_dump_json(indent=2)
    if output is None:
        click.echo(payload)
    else:
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_text(payload + "\n", encoding="utf-8")

    if not quiet:
        stats = result.stats
        click.secho(
            f"✅ {stats.total_texts} texts → {stats.total_clusters} clusters "
            f"(largest {stats.largest_cluster_size}, singletons {stats.singleton_count})",
            fg="green",
            err=True,
        )
        if output is not None:
            click.echo(f"💾 已保存到: {output}", err=True)


@cli.command()
@click.argument("items", type=click.IntRange(min=0))
@click.option(
    "--backend",
    "-b",
    type=click.Choice([backend.value for backend in EmbeddingBackend]),
    default=EmbeddingBackend.LOCAL.value,
    show_default=True,
    help="Embedding 后端",
)
@click.option(
    "--sample",
    "-s",
    "sample_percentage",
    type=click.FloatRange(0, 100, min_open=True),
    help="抽样百分比",
)
def estimate(items: int, backend: str, sample_percentage: float | None):
    """估算聚类 ITEMS 条文本的工作量

    示例:
        textsim estimate 8000
        textsim estimate 20000 --backend openai --sample 30
    """
    recommended = recommend_sample_percentage(items)
    percentage = sample_percentage if sample_percentage is not None else 100.0
    effective = sampled_size(items, percentage)

    click.echo(f"Items:                {items}")
    click.echo(f"Items after sampling: {effective} ({percentage:g}%)")
    click.echo(f"Similarity pairs:     {pair_count(effective)}")
    click.echo(f"Recommended sample:   {recommended}%")
    click.echo(f"Estimated time:       {estimate_processing_time(effective, backend)}")
    if recommended < 100 and percentage > recommended:
        click.secho(
            f"⚠️  Large corpus: consider --sample {recommended} to bound memory and time",
            fg="yellow",
        )


if __name__ == "__main__":
    cli()
