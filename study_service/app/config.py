from __future__ import annotations

import os
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path

import yaml

from common.llm.factory import ChatModelConfig, LlmProvider

from .models.credit import DEFAULT_CREDIT_COST, CreditSetting


STUDY_LLM_PROVIDER = "STUDY_LLM_PROVIDER"
STUDY_LLM_MODEL_NAME = "STUDY_LLM_MODEL_NAME"
STUDY_LLM_API_KEY = "STUDY_LLM_API_KEY"
STUDY_LLM_BASE_URL = "STUDY_LLM_BASE_URL"
STUDY_LLM_MAX_RETRIES = "STUDY_LLM_MAX_RETRIES"
STUDY_LLM_TIMEOUT_SECONDS = "STUDY_LLM_TIMEOUT_SECONDS"
COUPON_RESPONSE_DELAY_SECONDS = "COUPON_RESPONSE_DELAY_SECONDS"
COUPON_RATE_LIMIT_MAX_FAILURES = "COUPON_RATE_LIMIT_MAX_FAILURES"
COUPON_RATE_LIMIT_WINDOW_MINUTES = "COUPON_RATE_LIMIT_WINDOW_MINUTES"
DEFAULT_CREDIT_COST_ENV = "DEFAULT_CREDIT_COST"

DEFAULT_CONFIG_FILE_NAME = "config.yaml"


@dataclass(slots=True)
class CouponConfig:
    """쿠폰 사용 시 brute force 방어 설정."""

    response_delay_seconds: float = 1.5
    rate_limit_max_failures: int = 5
    rate_limit_window_minutes: int = 15


@dataclass(slots=True)
class CreditConfig:
    default_cost: int = DEFAULT_CREDIT_COST
    # config.yaml 의 pricing 섹션. 시작 시 존재하지 않는 항목만 DB 에 넣는다.
    initial_pricing: list[CreditSetting] = field(default_factory=list)


@dataclass(slots=True)
class AppConfig:
    """study-service 전체 설정 루트."""

    llm: ChatModelConfig
    coupon: CouponConfig
    credit: CreditConfig


def _env_int(name: str, default: int, minimum: int = 0) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        raise RuntimeError(f"{name} must be an integer if set, got: {raw!r}") from exc
    if value < minimum:
        raise RuntimeError(f"{name} must be >= {minimum}, got: {value}")
    return value


def _env_float(name: str, default: float | None) -> float | None:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = float(raw)
    except ValueError as exc:
        raise RuntimeError(f"{name} must be a float if set, got: {raw!r}") from exc
    if value < 0:
        raise RuntimeError(f"{name} must be >= 0, got: {value}")
    return value


def load_chat_model_config() -> ChatModelConfig:
    """생성 엔진(LLM) 설정을 로드한다.

    temperature 는 작업별로 고정(요약 0.0, 퀴즈 0.4)이므로 여기서는 읽지 않는다.
    """

    provider_raw = os.getenv(STUDY_LLM_PROVIDER) or "google"
    provider = LlmProvider.from_str(provider_raw)

    model = os.getenv(STUDY_LLM_MODEL_NAME)
    if not model:
        raise RuntimeError(
            f"{STUDY_LLM_MODEL_NAME} environment variable is required for study-service",
        )

    return ChatModelConfig(
        provider=provider,
        model=model,
        api_key=os.getenv(STUDY_LLM_API_KEY) or None,
        base_url=os.getenv(STUDY_LLM_BASE_URL) or None,
        max_retries=_env_int(STUDY_LLM_MAX_RETRIES, 1),
        timeout=_env_float(STUDY_LLM_TIMEOUT_SECONDS, 120.0),
    )


def load_coupon_config() -> CouponConfig:
    delay = _env_float(COUPON_RESPONSE_DELAY_SECONDS, 1.5)
    return CouponConfig(
        response_delay_seconds=delay if delay is not None else 1.5,
        rate_limit_max_failures=_env_int(COUPON_RATE_LIMIT_MAX_FAILURES, 5, minimum=1),
        rate_limit_window_minutes=_env_int(COUPON_RATE_LIMIT_WINDOW_MINUTES, 15, minimum=1),
    )


def _find_config_path() -> Path | None:
    """현재 작업 디렉토리 기준으로 상위로 올라가며 config.yaml 을 찾는다. 없으면 None."""

    current = Path.cwd()
    for directory in (current, *current.parents):
        candidate = directory / DEFAULT_CONFIG_FILE_NAME
        if candidate.is_file():
            return candidate
    return None


def load_initial_pricing(path: Path | None = None) -> list[CreditSetting]:
    path = path or _find_config_path()
    if path is None:
        return []

    with path.open("r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    pricing_raw = data.get("pricing") or {}
    if not isinstance(pricing_raw, dict):
        raise RuntimeError(f"invalid pricing section in {path}: expected a mapping")

    settings: list[CreditSetting] = []
    for action_key, item in pricing_raw.items():
        if isinstance(item, dict):
            raw_cost = item.get("credit_cost")
            description = item.get("description")
        else:
            raw_cost = item
            description = None
        try:
            cost = int(raw_cost)
        except (TypeError, ValueError) as exc:  # noqa: TRY003
            raise RuntimeError(
                f"invalid pricing.{action_key}.credit_cost in {path}: {raw_cost!r}",
            ) from exc
        if cost < 0:
            raise RuntimeError(f"pricing.{action_key}.credit_cost must be >= 0 in {path}")
        settings.append(
            CreditSetting(
                action_key=str(action_key).strip(),
                credit_cost=cost,
                description=str(description) if description else None,
            )
        )
    return settings


def load_credit_config() -> CreditConfig:
    return CreditConfig(
        default_cost=_env_int(DEFAULT_CREDIT_COST_ENV, DEFAULT_CREDIT_COST),
        initial_pricing=load_initial_pricing(),
    )


def load_config() -> AppConfig:
    """study-service 설정을 로드하여 AppConfig 로 반환한다."""

    return AppConfig(
        llm=load_chat_model_config(),
        coupon=load_coupon_config(),
        credit=load_credit_config(),
    )


@lru_cache(maxsize=1)
def get_coupon_config() -> CouponConfig:
    return load_coupon_config()


@lru_cache(maxsize=1)
def get_credit_config() -> CreditConfig:
    return load_credit_config()
