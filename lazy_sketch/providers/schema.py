from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from ..utils.dicts import get_str_value


@dataclass(slots=True)
class ProviderConfig:
    provider: str
    """供应商标识"""
    base_url: str
    """供应商 API 基础地址"""
    api_token: str
    """供应商 API token"""
    timeout_sec: int
    """单次 HTTP 请求超时时间（秒）"""
    model: str
    """模型版本标识"""
    lora_weights: str
    """LoRA 权重地址"""
    poll_interval_sec: float
    """两次状态查询之间的固定间隔（秒）"""
    max_poll_attempts: int
    """状态查询次数上限"""


@dataclass(slots=True)
class SketchGenerateInput:
    prompt: str
    """已套用模板的完整提示词"""
    width: int
    height: int


class PredictionStatus(str, Enum):
    STARTING = "starting"
    PROCESSING = "processing"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELED = "canceled"

    @property
    def is_terminal(self) -> bool:
        return self in _TERMINAL_STATUSES

    @classmethod
    def parse(cls, raw: object) -> PredictionStatus:
        """解析上游状态；未知状态按 processing 处理，继续轮询。"""
        if isinstance(raw, str):
            try:
                return cls(raw.strip().lower())
            except ValueError:
                pass
        return cls.PROCESSING


_TERMINAL_STATUSES = frozenset(
    {
        PredictionStatus.SUCCEEDED,
        PredictionStatus.FAILED,
        PredictionStatus.CANCELED,
    }
)


@dataclass(slots=True)
class PredictionJob:
    id: str
    status: PredictionStatus
    get_url: str
    """状态轮询地址（`urls.get`）"""
    output: list[str] = field(default_factory=list)
    error: str = ""
    metrics: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_response(cls, data: Mapping[str, Any]) -> PredictionJob:
        job = cls(
            id="",
            status=PredictionStatus.STARTING,
            get_url="",
        )
        job.merge(data)
        return job

    def merge(self, data: Mapping[str, Any]) -> None:
        """用轮询响应原地更新任务，只覆盖响应中出现的字段。"""
        if "id" in data and isinstance(data["id"], str):
            self.id = data["id"]
        if "status" in data:
            self.status = PredictionStatus.parse(data["status"])
        get_url = get_str_value(data, "urls", "get")
        if get_url:
            self.get_url = get_url
        if "output" in data:
            self.output = _normalize_output(data["output"])
        if "error" in data:
            self.error = _normalize_error(data["error"])
        metrics = data.get("metrics")
        if isinstance(metrics, Mapping):
            self.metrics = dict(metrics)

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    @property
    def first_output(self) -> str:
        return self.output[0] if self.output else ""


def _normalize_output(raw: object) -> list[str]:
    """输出可能是单个 URL 或 URL 列表，统一为列表。"""
    if isinstance(raw, str):
        return [raw] if raw.strip() else []
    if isinstance(raw, list):
        return [item for item in raw if isinstance(item, str) and item.strip()]
    return []


def _normalize_error(raw: object) -> str:
    if raw is None:
        return ""
    if isinstance(raw, str):
        return raw.strip()
    return str(raw)


@dataclass(slots=True)
class InferenceMetadata:
    provider: str
    """供应商标识。"""
    model: str
    """实际请求使用的模型名。"""
    prediction_id: str = ""
    elapsed_ms: int | None = None
    """从提交任务到拿到终态的耗时（毫秒）。"""
    poll_attempts: int = 0
    """实际发起的状态查询次数。"""


@dataclass(slots=True)
class SketchGenerateOutput:
    image_url: str
    prediction: PredictionJob
    metadata: InferenceMetadata
