from __future__ import annotations

import pytest

from lazy_sketch.providers.config import (
    provider_config_from_settings,
    read_provider_config,
)
from lazy_sketch.providers.schema import ProviderConfig
from lazy_sketch.settings import LazySketchSettings


def _valid_raw_config() -> dict[str, object]:
    return {
        "provider": "replicate",
        "base_url": "https://api.replicate.com/v1",
        "api_token": "r8_test",
        "timeout_sec": 30,
        "model": "owner/model:version",
        "lora_weights": "https://example.com/lora.safetensors",
        "poll_interval_sec": 1.0,
        "max_poll_attempts": 120,
    }


def test_read_provider_config_success() -> None:
    """验证：合法映射可以成功构造 ProviderConfig。"""
    config = read_provider_config(_valid_raw_config())

    assert isinstance(config, ProviderConfig)
    assert config.provider == "replicate"
    assert config.api_token == "r8_test"
    assert config.timeout_sec == 30
    assert config.model == "owner/model:version"
    assert config.max_poll_attempts == 120


def test_read_provider_config_ignores_extra_keys() -> None:
    """验证：额外字段会被忽略，仅保留必需字段。"""
    raw_config = _valid_raw_config()
    raw_config["extra"] = "ignored"

    config = read_provider_config(raw_config)

    assert not hasattr(config, "extra")


@pytest.mark.parametrize("missing_key", ["api_token", "max_poll_attempts"])
def test_read_provider_config_missing_required_key(missing_key: str) -> None:
    """验证：缺少任一必填字段时抛出 KeyError。"""
    raw_config = _valid_raw_config()
    raw_config.pop(missing_key)

    with pytest.raises(KeyError, match="Missing required provider config keys"):
        read_provider_config(raw_config)


def test_read_provider_config_requires_mapping() -> None:
    with pytest.raises(TypeError, match="mapping"):
        read_provider_config(["replicate"])


def test_provider_config_from_settings() -> None:
    """验证：从插件设置映射出供应商配置。"""
    settings = LazySketchSettings(api_token="r8_test", max_poll_attempts=10)

    config = provider_config_from_settings(settings)

    assert config.provider == "replicate"
    assert config.api_token == "r8_test"
    assert config.model == settings.model
    assert config.lora_weights == settings.lora_weights
    assert config.max_poll_attempts == 10
