"""LangChain chat model 팩토리.

provider 별 생성자 인자 차이를 여기서 흡수한다. API 키는 환경 변수를 건드리지 않고
모델 생성자에 직접 넘긴다. 키가 비어 있으면 각 SDK 의 기본 환경 변수를 따른다.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Self

from langchain_core.language_models.chat_models import BaseChatModel
from langchain_google_genai import ChatGoogleGenerativeAI
from langchain_ollama import ChatOllama
from langchain_openai import ChatOpenAI


OLLAMA_DEFAULT_BASE_URL = "http://localhost:11434"
OPENROUTER_DEFAULT_BASE_URL = "https://openrouter.ai/api/v1"


class LlmProvider(str, Enum):
    GOOGLE = "google"
    OPENAI = "openai"
    OLLAMA = "ollama"
    OPENROUTER = "openrouter"

    @classmethod
    def from_str(cls, value: str) -> Self:
        try:
            return cls(value.strip().lower())
        except ValueError as exc:
            raise ValueError(f"unsupported LLM provider: {value}") from exc


@dataclass(slots=True)
class ChatModelConfig:
    provider: LlmProvider
    model: str
    temperature: float = 1.0
    api_key: str | None = None
    base_url: str | None = None
    max_retries: int = 0
    timeout: float | None = None


def _common_kwargs(cfg: ChatModelConfig) -> dict[str, Any]:
    kwargs: dict[str, Any] = {
        "model": cfg.model,
        "temperature": cfg.temperature,
        "max_retries": cfg.max_retries,
        "timeout": cfg.timeout,
    }
    if cfg.api_key:
        kwargs["api_key"] = cfg.api_key
    return kwargs


def _google(cfg: ChatModelConfig) -> BaseChatModel:
    return ChatGoogleGenerativeAI(**_common_kwargs(cfg))


def _openai(cfg: ChatModelConfig) -> BaseChatModel:
    return ChatOpenAI(base_url=cfg.base_url, **_common_kwargs(cfg))


def _openrouter(cfg: ChatModelConfig) -> BaseChatModel:
    # OpenRouter 는 OpenAI 호환 API 다.
    return ChatOpenAI(base_url=cfg.base_url or OPENROUTER_DEFAULT_BASE_URL, **_common_kwargs(cfg))


def _ollama(cfg: ChatModelConfig) -> BaseChatModel:
    client_kwargs = {"timeout": cfg.timeout} if cfg.timeout else {}
    return ChatOllama(
        model=cfg.model,
        temperature=cfg.temperature,
        base_url=cfg.base_url or OLLAMA_DEFAULT_BASE_URL,
        client_kwargs=client_kwargs,
    )


_BUILDERS: dict[LlmProvider, Callable[[ChatModelConfig], BaseChatModel]] = {
    LlmProvider.GOOGLE: _google,
    LlmProvider.OPENAI: _openai,
    LlmProvider.OPENROUTER: _openrouter,
    LlmProvider.OLLAMA: _ollama,
}


def create_chat_model(config: ChatModelConfig) -> BaseChatModel:
    builder = _BUILDERS.get(config.provider)
    if builder is None:
        raise ValueError(f"unsupported chat provider: {config.provider}")
    return builder(config)
