"""JSON 구조화 로깅 설정.

모든 로그는 stdout 으로 한 줄짜리 JSON 을 출력한다. 모듈은 logging.getLogger(__name__) 을
쓰고, 요청 추적/원장 관련 값은 extra 로 넘긴다.
"""

import json
import logging
import os
import sys
from datetime import datetime, timezone


LOG_LEVEL_ENV = "LOG_LEVEL"
SERVICE_NAME_ENV = "SERVICE_NAME"

# JSON 에 그대로 옮기는 extra 필드
TRACE_FIELDS = ("request_id", "span_id", "method", "path", "status", "duration")
DOMAIN_FIELDS = ("user_id", "action_key", "transaction_id", "reason")

# 요청마다 INFO 로그를 쏟아내는 라이브러리 로거
_CHATTY_LOGGERS = ("pymongo", "httpx", "httpcore", "uvicorn.access")


class JsonFormatter(logging.Formatter):
    def __init__(self, service_name: str | None = None) -> None:
        super().__init__()
        self._service_name = service_name

    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        payload: dict[str, object] = {
            "datetime": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(
                timespec="milliseconds"
            ),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if self._service_name:
            payload["service_name"] = self._service_name
        for key in TRACE_FIELDS + DOMAIN_FIELDS:
            value = getattr(record, key, None)
            if value is not None:
                payload[key] = value
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


def setup_logger(name: str = "awn-study", level: str | None = None) -> logging.Logger:
    """루트 로거에 JSON 핸들러를 한 번만 설치하고 서비스 로거를 돌려준다.

    여러 번 호출해도 핸들러가 중복되지 않는다 (테스트에서 create_app 을 반복 호출한다).
    """

    level_name = (level or os.getenv(LOG_LEVEL_ENV) or "INFO").upper()
    log_level = getattr(logging, level_name, logging.INFO)
    service_name = os.getenv(SERVICE_NAME_ENV) or name

    root = logging.getLogger()
    root.setLevel(log_level)
    if not any(isinstance(h.formatter, JsonFormatter) for h in root.handlers):
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(JsonFormatter(service_name))
        root.addHandler(handler)

    for chatty in _CHATTY_LOGGERS:
        logging.getLogger(chatty).setLevel(max(log_level, logging.WARNING))

    return logging.getLogger(service_name)
