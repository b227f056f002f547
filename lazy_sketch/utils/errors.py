from __future__ import annotations

import json
from collections.abc import Mapping
from enum import Enum
from typing import Any

from .log import summarize_log_value


class PluginErrorCode(str, Enum):
    PERMISSION_DENIED = "PERMISSION_DENIED"
    NETWORK_ERROR = "NETWORK_ERROR"
    TIMEOUT = "TIMEOUT"
    UPSTREAM_ERROR = "UPSTREAM_ERROR"


class PluginException(Exception):
    """生成流程中的可分类错误，`message` 直接面向用户展示。"""

    def __init__(
        self,
        code: PluginErrorCode,
        message: str,
        retryable: bool,
        detail: Mapping[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.retryable = retryable
        self.detail = dict(detail) if detail else {}

    def to_dict(self) -> dict[str, Any]:
        return {
            "code": self.code.value,
            "message": self.message,
            "retryable": self.retryable,
            "detail": summarize_log_value(self.detail),
        }

    def __str__(self) -> str:
        base = f"[{self.code.value}] {self.message} (retryable={self.retryable})"
        if not self.detail:
            return base
        detail_json = json.dumps(
            summarize_log_value(self.detail), ensure_ascii=False, default=str
        )
        return f"{base} detail={detail_json}"


def error_message_of(exc: BaseException) -> str:
    """提取适合展示给用户的错误文本，不包含 detail。"""
    if isinstance(exc, PluginException):
        return exc.message
    text = str(exc).strip()
    return text or "Unknown error occurred."
