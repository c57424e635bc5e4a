from __future__ import annotations

import base64
import logging
from dataclasses import replace
from functools import lru_cache
from typing import Any, Protocol

from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.messages import BaseMessage, HumanMessage, SystemMessage
from langchain_core.output_parsers import PydanticOutputParser
from pydantic import BaseModel

from common.llm.factory import ChatModelConfig, create_chat_model

from .config import load_chat_model_config
from .models.study import DocumentHandle


logger = logging.getLogger(__name__)


class GenerationEngine(Protocol):
    """외부 생성 엔진 계약.

    output_schema 가 주어지면 해당 Pydantic 모델로 검증된 객체를, 아니면 텍스트를 반환한다.
    출력이 비었거나 스키마를 만족하지 못하면 예외를 던진다.
    """

    async def complete(
        self,
        instruction: str,
        prompt: str,
        document: DocumentHandle,
        *,
        temperature: float,
        output_schema: type[BaseModel] | None = None,
    ) -> Any:  # pragma: no cover - Protocol
        ...


def _document_block(document: DocumentHandle) -> dict[str, Any]:
    if document.data is not None:
        return {
            "type": "file",
            "base64": base64.b64encode(document.data).decode("ascii"),
            "mime_type": document.mime_type,
        }
    if not document.url:
        raise ValueError("document handle has neither url nor data")
    return {"type": "file", "url": document.url, "mime_type": document.mime_type}


def _message_text(message: BaseMessage) -> str:
    # provider 에 따라 content 가 str 이거나 content block 리스트다.
    content = message.content
    if isinstance(content, str):
        return content
    parts: list[str] = []
    for block in content:
        if isinstance(block, str):
            parts.append(block)
        elif isinstance(block, dict) and block.get("type") == "text":
            parts.append(str(block.get("text", "")))
    return "".join(parts)


class LangChainGenerationEngine:
    """LangChain chat model 기반 생성 엔진.

    작업마다 temperature 가 고정이므로 temperature 별로 chat model 을 하나씩 만들어 재사용한다.
    """

    def __init__(self, config: ChatModelConfig) -> None:
        self._config = config
        self._models: dict[float, BaseChatModel] = {}

    def _model_for(self, temperature: float) -> BaseChatModel:
        model = self._models.get(temperature)
        if model is None:
            model = create_chat_model(replace(self._config, temperature=temperature))
            self._models[temperature] = model
        return model

    async def complete(
        self,
        instruction: str,
        prompt: str,
        document: DocumentHandle,
        *,
        temperature: float,
        output_schema: type[BaseModel] | None = None,
    ) -> Any:
        parser = (
            PydanticOutputParser(pydantic_object=output_schema)
            if output_schema is not None
            else None
        )

        system_text = instruction
        if parser is not None:
            system_text = instruction + "\n\n" + parser.get_format_instructions()

        messages = [
            SystemMessage(content=system_text),
            HumanMessage(
                content=[
                    {"type": "text", "text": prompt},
                    _document_block(document),
                ]
            ),
        ]

        response = await self._model_for(temperature).ainvoke(messages)
        text = _message_text(response).strip()
        if not text:
            raise RuntimeError("generation engine returned an empty response")

        if parser is None:
            return text
        # OutputParserException 은 호출자에서 엔진 실패로 처리된다.
        return parser.parse(text)


@lru_cache(maxsize=1)
def get_generation_engine() -> GenerationEngine:
    """FastAPI DI용 생성 엔진 팩토리. 설정은 첫 호출 시 한 번만 읽는다."""

    config = load_chat_model_config()
    logger.info(
        "generation engine configured (provider=%s, model=%s)",
        config.provider.value,
        config.model,
    )
    return LangChainGenerationEngine(config)
