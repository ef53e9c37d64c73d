"""LLM 客户端模块

为聚类命名提供 LLM 调用的抽象层，支持 Protocol 注入不同的实现。
"""

from __future__ import annotations

import time
from typing import TYPE_CHECKING, Any, Protocol

import structlog
from langchain_core.prompts import ChatPromptTemplate
from langchain_openai import ChatOpenAI
from openai import (
    APIConnectionError,
    APITimeoutError,
    AuthenticationError,
    BadRequestError,
    InternalServerError,
    NotFoundError,
    PermissionDeniedError,
    RateLimitError,
)
from tenacity import (
    RetryCallState,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from textsim.services.similarity.exceptions import (
    ConfigurationError,
    LLMNonRetryableError,
    LLMRetryableError,
)
from textsim.services.similarity.prompts import (
    LABEL_MAX_LENGTH,
    LABEL_SYSTEM_PROMPT,
    LABEL_USER_PROMPT,
)

if TYPE_CHECKING:
    from textsim.services.similarity.config import LabelingConfig

logger = structlog.get_logger()

# 可重试的异常类型：网络错误、超时、速率限制、服务端错误
RETRYABLE_EXCEPTIONS = (
    APIConnectionError,
    APITimeoutError,
    RateLimitError,
    InternalServerError,
)

# 不可重试的异常类型：认证错误、权限错误、请求格式错误、资源不存在
NON_RETRYABLE_EXCEPTIONS = (
    AuthenticationError,
    PermissionDeniedError,
    BadRequestError,
    NotFoundError,
)


class LLMProvider(Protocol):
    """LLM 提供者协议"""

    def invoke(self, messages: list[Any]) -> tuple[str, dict[str, Any]]:
        """调用 LLM 并返回响应文本

        Args:
            messages: 提示消息列表

        Returns:
            (LLM 响应文本, 元数据字典)
        """
        ...


class LangChainProvider:
    """基于 LangChain ChatOpenAI 的 LLM 提供者，兼容任何 OpenAI 风格的 Chat API"""

    def __init__(self, config: LabelingConfig) -> None:
        """初始化 LangChain 提供者

        Args:
            config: 命名 LLM 配置

        Raises:
            ConfigurationError: 未配置 API Key
        """
        if not config.api_key:
            raise ConfigurationError("Labeling LLM requires an API key (LLM_API_KEY)")
        self.config = config
        self.llm = ChatOpenAI(
            model=config.model,
            temperature=config.temperature,
            max_tokens=config.max_tokens,
            api_key=config.api_key,
            base_url=config.base_url,
            timeout=config.timeout,
        )

    def invoke(self, messages: list[Any]) -> tuple[str, dict[str, Any]]:
        """调用 LLM

        Args:
            messages: 提示消息列表

        Returns:
            (LLM 响应文本, 元数据字典)
        """
        response = self.llm.invoke(messages)
        content = str(response.content) if hasattr(response, "content") else str(response)

        metadata: dict[str, Any] = {}
        resp_meta = getattr(response, "response_metadata", None) or {}
        usage = resp_meta.get("token_usage") or resp_meta.get("usage")
        if usage:
            metadata["prompt_tokens"] = usage.get("prompt_tokens")
            metadata["completion_tokens"] = usage.get("completion_tokens")
            metadata["total_tokens"] = usage.get("total_tokens")
        if "model_name" in resp_meta:
            metadata["model"] = resp_meta["model_name"]

        return content, metadata


class LLMClient:
    """LLM 客户端

    封装重试逻辑，支持依赖注入不同的 LLM 提供者。
    """

    def __init__(self, config: LabelingConfig, provider: LLMProvider | None = None) -> None:
        """初始化 LLM 客户端

        Args:
            config: 命名 LLM 配置
            provider: LLM 提供者，为 None 时使用 LangChainProvider
        """
        self.config = config
        self.provider = provider or LangChainProvider(config)

    def _log_retry(self, retry_state: RetryCallState) -> None:
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        logger.warning(
            "llm_call_retry",
            attempt=retry_state.attempt_number,
            error=str(exc) if exc else "unknown",
            error_type=type(exc).__name__ if exc else "unknown",
        )

    def invoke_with_retry(self, prompt_messages: list[Any], *, prompt_name: str = "unknown") -> str:
        """带重试的 LLM 调用

        - 可重试异常（网络错误、超时、速率限制、5xx）：按指数退避重试
        - 不可重试异常（认证错误、权限错误、请求格式错误）：立即抛出

        Args:
            prompt_messages: 提示消息列表
            prompt_name: 提示词名称（用于日志）

        Returns:
            LLM 响应文本

        Raises:
            LLMRetryableError: 可重试错误耗尽重试次数
            LLMNonRetryableError: 不可重试错误或未预期错误
        """
        max_attempts = self.config.retry.max_attempts
        backoff_factor = self.config.retry.backoff_factor
        model_name = self.config.model

        @retry(
            stop=stop_after_attempt(max_attempts),
            wait=wait_exponential(multiplier=backoff_factor, min=backoff_factor, max=60),
            retry=retry_if_exception_type(RETRYABLE_EXCEPTIONS),
            before_sleep=self._log_retry,
            reraise=True,
        )
        def _invoke() -> tuple[str, dict[str, Any]]:
            try:
                return self.provider.invoke(prompt_messages)
            except NON_RETRYABLE_EXCEPTIONS as exc:
                logger.error(
                    "llm_call_non_retryable_error",
                    error=str(exc),
                    error_type=type(exc).__name__,
                    model=model_name,
                    prompt=prompt_name,
                )
                raise LLMNonRetryableError(f"LLM call failed (not retryable): {exc}") from exc

        start_time = time.perf_counter()

        try:
            content, metadata = _invoke()
        except RETRYABLE_EXCEPTIONS as exc:
            logger.error(
                "llm_call_failed",
                model=model_name,
                prompt=prompt_name,
                error=str(exc),
                error_type=type(exc).__name__,
                elapsed_ms=round((time.perf_counter() - start_time) * 1000, 1),
                retries_exhausted=True,
            )
            raise LLMRetryableError(
                f"LLM call failed after {max_attempts} attempts: {exc}"
            ) from exc
        except LLMNonRetryableError:
            raise
        except Exception as exc:
            logger.error(
                "llm_call_unexpected_error",
                model=model_name,
                prompt=prompt_name,
                error=str(exc),
                error_type=type(exc).__name__,
            )
            raise LLMNonRetryableError(f"Unexpected LLM error: {exc}") from exc

        logger.info(
            "llm_call",
            model=metadata.get("model", model_name),
            prompt=prompt_name,
            prompt_tokens=metadata.get("prompt_tokens"),
            completion_tokens=metadata.get("completion_tokens"),
            total_tokens=metadata.get("total_tokens"),
            elapsed_ms=round((time.perf_counter() - start_time) * 1000, 1),
        )
        return content


class LLMLabelDelegate:
    """用 LLM 为聚类生成短标签"""

    def __init__(self, client: LLMClient) -> None:
        self.client = client
        self.prompt = ChatPromptTemplate.from_messages(
            [("system", LABEL_SYSTEM_PROMPT), ("human", LABEL_USER_PROMPT)]
        )

    @classmethod
    def from_config(cls, config: LabelingConfig) -> LLMLabelDelegate:
        """由配置创建委托（使用默认的 LangChainProvider）"""
        return cls(LLMClient(config))

    def label_sample(self, texts: list[str]) -> str:
        """为样本文本生成标签

        Args:
            texts: 聚类中的样本文本（不超过 5 条）

        Returns:
            清理后的标签，模型未给出内容时为空字符串
        """
        messages = self.prompt.format_messages(texts="\n".join(f"- {text}" for text in texts))
        content = self.client.invoke_with_retry(messages, prompt_name="cluster_label")
        return clean_label(content)


def clean_label(content: str) -> str:
    """取响应第一行非空内容，去掉包裹的引号并限制长度"""
    for line in content.splitlines():
        line = line.strip().strip("\"'`").strip()
        if line:
            return line[:LABEL_MAX_LENGTH]
    return ""
