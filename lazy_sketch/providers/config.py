from __future__ import annotations

from collections.abc import Mapping
from dataclasses import fields
from typing import Any

from ..settings.schema import LazySketchSettings
from .schema import ProviderConfig


def _require_mapping(raw_config: Any) -> Mapping[str, Any]:
    """确保原始配置是键值映射。"""
    if not isinstance(raw_config, Mapping):
        raise TypeError("Provider config must be a mapping object.")
    return raw_config


def _require_keys(cfg: Mapping[str, Any], required: tuple[str, ...]) -> None:
    """仅校验必填字段是否存在。"""
    missing = [key for key in required if key not in cfg]
    if missing:
        raise KeyError(f"Missing required provider config keys: {', '.join(missing)}")


def read_provider_config(raw_config: Any) -> ProviderConfig:
    """读取并返回供应商配置；当前仅校验字段存在性。"""
    cfg = _require_mapping(raw_config)
    required = tuple(f.name for f in fields(ProviderConfig))
    _require_keys(cfg, required)
    payload = {key: cfg[key] for key in required}
    return ProviderConfig(**payload)


def provider_config_from_settings(
    settings: LazySketchSettings,
    *,
    provider: str = "replicate",
) -> ProviderConfig:
    """从插件设置构造供应商配置。"""
    return read_provider_config(
        {
            "provider": provider,
            "base_url": settings.base_url,
            "api_token": settings.api_token,
            "timeout_sec": settings.timeout_sec,
            "model": settings.model,
            "lora_weights": settings.lora_weights,
            "poll_interval_sec": settings.poll_interval_sec,
            "max_poll_attempts": settings.max_poll_attempts,
        }
    )
